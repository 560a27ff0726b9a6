import os
import sys

import pytest

# Ensure project root is on sys.path
ROOT = os.path.abspath(os.path.join(os.path.dirname(__file__), '..'))
if ROOT not in sys.path:
    sys.path.insert(0, ROOT)

from sshdb.config import ConfigStore
from sshdb.models import Config, Host
from sshdb.tui.session import Session


def make_sample_config():
    return Config(
        default_key="~/.ssh/id_ed25519",
        hosts=[
            Host(
                name="prod-web",
                address="203.0.113.10",
                user="deploy",
                tags=["prod", "web"],
                description="Primary web node",
            ),
            Host(
                name="staging-db",
                address="35.12.2.4",
                user="db",
                port=2222,
                tags=["staging", "db"],
                bastion="jump-eu",
                description="Staging database",
            ),
            Host(
                name="jump-eu",
                address="52.17.9.3",
                user="ops",
                tags=["bastion"],
                description="EU jump host",
            ),
        ],
    )


@pytest.fixture
def home(monkeypatch, tmp_path):
    path = tmp_path / "home"
    path.mkdir()
    monkeypatch.setenv("HOME", str(path))
    monkeypatch.delenv("SSH_AUTH_SOCK", raising=False)
    return str(path)


@pytest.fixture
def sample_config():
    return make_sample_config()


@pytest.fixture
def store(tmp_path, sample_config):
    store = ConfigStore(str(tmp_path / "sshdb" / "config.json"))
    store.save(sample_config)
    return store


@pytest.fixture
def session(store, home):
    return Session(store, dry_run=True)
