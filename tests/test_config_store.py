import json
import os

import pytest

from sshdb import config as config_module
from sshdb.config import ConfigStore
from sshdb.errors import PersistError
from sshdb.models import Config, Host


def test_load_or_init_creates_empty_registry(tmp_path):
    path = tmp_path / "nested" / "config.json"
    store = ConfigStore(str(path))

    config = store.load_or_init()

    assert config.hosts == []
    assert path.exists()
    data = json.loads(path.read_text(encoding="utf-8"))
    assert data["hosts"] == []
    assert data["version"] == 1


def test_save_and_load_preserve_hosts(store, sample_config):
    loaded = store.load()

    assert loaded.default_key == "~/.ssh/id_ed25519"
    assert [h.name for h in loaded.hosts] == ["prod-web", "staging-db", "jump-eu"]
    staging = loaded.find_host("staging-db")
    assert staging.port == 2222
    assert staging.bastion == "jump-eu"
    assert staging.tags == ["staging", "db"]


def test_address_is_stored_under_host_key(store):
    data = json.loads(open(store.path, encoding="utf-8").read())

    assert data["hosts"][0]["host"] == "203.0.113.10"
    assert "address" not in data["hosts"][0]


def test_save_keeps_backup_of_previous_file(store, sample_config):
    previous = open(store.path, encoding="utf-8").read()
    sample_config.hosts.append(Host(name="extra", address="198.51.100.7"))

    store.save(sample_config)

    assert os.path.exists(store.backup_path)
    assert open(store.backup_path, encoding="utf-8").read() == previous
    assert store.load().find_host("extra") is not None


def test_load_missing_file_raises(tmp_path):
    store = ConfigStore(str(tmp_path / "absent.json"))

    with pytest.raises(PersistError):
        store.load()


def test_load_malformed_file_raises(tmp_path):
    path = tmp_path / "config.json"
    path.write_text("{not json", encoding="utf-8")

    with pytest.raises(PersistError) as excinfo:
        ConfigStore(str(path)).load()
    assert "failed to parse config" in str(excinfo.value)


def test_load_rejects_non_object_document(tmp_path):
    path = tmp_path / "config.json"
    path.write_text("[]", encoding="utf-8")

    with pytest.raises(PersistError):
        ConfigStore(str(path)).load()


def test_save_failure_raises_persist_error(tmp_path, monkeypatch):
    store = ConfigStore(str(tmp_path / "config.json"))

    def _boom(*args, **kwargs):
        raise OSError("disk full")

    monkeypatch.setattr(config_module, "open", _boom, raising=False)

    with pytest.raises(PersistError) as excinfo:
        store.save(Config())
    assert "disk full" in str(excinfo.value)


def test_default_path_honours_env_override(monkeypatch, tmp_path):
    target = tmp_path / "custom.json"
    monkeypatch.setenv("SSHDB_CONFIG", str(target))

    assert ConfigStore().path == str(target)


@pytest.mark.parametrize(
    "entry",
    [
        {"name": "web", "host": "10.0.0.1", "port": 70000},
        {"name": "web", "host": "10.0.0.1", "port": -1},
        {"name": "web", "host": "10.0.0.1", "port": 22.7},
        {"name": "web", "host": "10.0.0.1", "port": "ssh"},
        {"name": "", "host": "10.0.0.1"},
        {"name": "web", "host": "  "},
        {"name": "web"},
    ],
)
def test_load_rejects_invalid_host_entries(tmp_path, entry):
    path = tmp_path / "config.json"
    path.write_text(json.dumps({"version": 1, "hosts": [entry]}), encoding="utf-8")

    with pytest.raises(PersistError):
        ConfigStore(str(path)).load()


def test_load_accepts_port_bounds(tmp_path):
    path = tmp_path / "config.json"
    hosts = [
        {"name": "low", "host": "10.0.0.1", "port": 0},
        {"name": "high", "host": "10.0.0.2", "port": 65535},
        {"name": "text", "host": "10.0.0.3", "port": "2222"},
    ]
    path.write_text(json.dumps({"version": 1, "hosts": hosts}), encoding="utf-8")

    loaded = ConfigStore(str(path)).load()

    assert [h.port for h in loaded.hosts] == [0, 65535, 2222]
