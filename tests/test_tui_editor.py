import pytest

from sshdb.errors import ParseError, ValidationError
from sshdb.models import Host
from sshdb.tui.editor import (
    LABEL_ADDRESS,
    LABEL_BASTION,
    LABEL_COMMAND,
    LABEL_DESCRIPTION,
    LABEL_NAME,
    LABEL_OPTIONS,
    LABEL_PORT,
    LABEL_REMOTE,
    LABEL_TAGS,
    LABEL_USER,
    FormField,
    FormKind,
    FormState,
)
from sshdb.tui.keys import BACKSPACE, DOWN, ENTER, ESCAPE, LEFT, SHIFT_TAB, TAB, UP, KeyPress


def type_text(form, config, text):
    for ch in text:
        form.handle_key(KeyPress.char(ch), config)


def press(form, config, key, times=1):
    for _ in range(times):
        form.handle_key(KeyPress.named(key), config)


def focus(form, label):
    form.index = [f.label for f in form.fields].index(label)
    form.active_field.move_end()


def test_add_form_starts_with_command_field():
    form = FormState(FormKind.ADD)

    assert form.fields[0].label == LABEL_COMMAND
    assert form.fields[1].label == LABEL_NAME
    assert form.on_command_field
    assert form.editing_host_name is None


def test_edit_form_prefills_host_values():
    host = Host(
        name="web",
        address="10.0.0.1",
        user="deploy",
        port=2200,
        tags=["prod", "eu"],
        options=["-A"],
    )
    form = FormState(FormKind.EDIT, host)

    assert form.fields[0].label == LABEL_NAME
    assert form.editing_host_name == "web"
    assert form.value(LABEL_PORT) == "2200"
    assert form.value(LABEL_TAGS) == "prod,eu"
    assert form.value(LABEL_OPTIONS) == "-A"
    assert not form.on_command_field


def test_field_editing_with_cursor():
    buffer = FormField("x", "helo")
    assert buffer.cursor == 4
    buffer.move_left()
    buffer.insert("l")
    assert buffer.value == "hello"
    assert buffer.cursor == 4

    buffer.move_end()
    assert buffer.backspace()
    assert buffer.value == "hell"

    buffer.cursor = 0
    assert not buffer.backspace()


def test_field_cursor_can_be_given_explicitly():
    assert FormField("x").cursor == 0
    assert FormField("x", "abc", 1).cursor == 1
    assert FormField("x", "abc", 9).cursor == 3


def test_tab_navigation_wraps(sample_config):
    form = FormState(FormKind.EDIT, sample_config.hosts[0])

    press(form, sample_config, SHIFT_TAB)
    assert form.index == len(form.fields) - 1
    press(form, sample_config, TAB)
    assert form.index == 0
    press(form, sample_config, DOWN)
    press(form, sample_config, UP)
    assert form.index == 0


def test_command_field_syncs_structured_fields(sample_config):
    form = FormState(FormKind.ADD)

    type_text(form, sample_config, "ssh -p 2222 -J jump-eu deploy@10.0.0.5 uptime")

    assert form.value(LABEL_ADDRESS) == "10.0.0.5"
    assert form.value(LABEL_USER) == "deploy"
    assert form.value(LABEL_PORT) == "2222"
    assert form.value(LABEL_BASTION) == "jump-eu"
    assert form.value(LABEL_REMOTE) == "uptime"
    assert form.value(LABEL_NAME) == "deploy@10.0.0.5"


def test_command_sync_follows_edits_to_generated_name(sample_config):
    form = FormState(FormKind.ADD)

    type_text(form, sample_config, "deploy@10.0.0.5")
    press(form, sample_config, BACKSPACE)
    type_text(form, sample_config, "6")

    assert form.value(LABEL_NAME) == "deploy@10.0.0.6"


def test_command_sync_never_overwrites_typed_name(sample_config):
    form = FormState(FormKind.ADD)
    focus(form, LABEL_NAME)
    type_text(form, sample_config, "my-box")
    focus(form, LABEL_COMMAND)

    type_text(form, sample_config, "ssh root@192.0.2.1")

    assert form.value(LABEL_NAME) == "my-box"
    assert form.value(LABEL_ADDRESS) == "192.0.2.1"


def test_unparseable_command_leaves_fields_alone(sample_config):
    form = FormState(FormKind.ADD)
    focus(form, LABEL_ADDRESS)
    type_text(form, sample_config, "manual.example")
    focus(form, LABEL_COMMAND)

    type_text(form, sample_config, "-p 22")

    assert form.value(LABEL_ADDRESS) == "manual.example"
    assert form.value(LABEL_PORT) == ""


def test_edits_to_other_fields_do_not_resync(sample_config):
    form = FormState(FormKind.ADD)
    type_text(form, sample_config, "ssh deploy@10.0.0.5")
    focus(form, LABEL_ADDRESS)
    press(form, sample_config, BACKSPACE)
    type_text(form, sample_config, "9")

    assert form.value(LABEL_ADDRESS) == "10.0.0.9"


def test_space_inserts_outside_bastion_field(sample_config):
    form = FormState(FormKind.ADD)
    focus(form, LABEL_DESCRIPTION)
    type_text(form, sample_config, "a b")

    assert form.value(LABEL_DESCRIPTION) == "a b"
    assert not form.dropdown_open


def test_space_on_bastion_field_opens_picker(sample_config):
    form = FormState(FormKind.EDIT, sample_config.hosts[0])
    focus(form, LABEL_BASTION)

    type_text(form, sample_config, " ")

    assert form.dropdown_open
    assert form.value(LABEL_BASTION) == ""
    assert form.bastion_dropdown.filtered_indices == [1, 2]


def test_picker_typing_filters_and_enter_commits(sample_config):
    form = FormState(FormKind.EDIT, sample_config.hosts[1])
    focus(form, LABEL_BASTION)
    for _ in range(len("jump-eu")):
        press(form, sample_config, BACKSPACE)
    type_text(form, sample_config, " ")
    type_text(form, sample_config, "prod")

    assert form.bastion_dropdown.filtered_indices == [0]

    press(form, sample_config, ENTER)

    assert not form.dropdown_open
    assert form.value(LABEL_BASTION) == "prod-web"


def test_picker_navigation_wraps(sample_config):
    form = FormState(FormKind.ADD)
    focus(form, LABEL_BASTION)
    type_text(form, sample_config, " ")

    press(form, sample_config, UP)
    assert form.bastion_dropdown.selected == 2
    press(form, sample_config, DOWN)
    assert form.bastion_dropdown.selected == 0

    press(form, sample_config, DOWN)
    press(form, sample_config, ENTER)
    assert form.value(LABEL_BASTION) == "staging-db"


def test_picker_escape_and_space_close_keeping_text(sample_config):
    form = FormState(FormKind.ADD)
    focus(form, LABEL_BASTION)
    type_text(form, sample_config, " jum")

    press(form, sample_config, ESCAPE)
    assert not form.dropdown_open
    assert form.value(LABEL_BASTION) == "jum"

    type_text(form, sample_config, " ")
    assert form.dropdown_open
    type_text(form, sample_config, " ")
    assert not form.dropdown_open
    assert form.value(LABEL_BASTION) == "jum"


def test_picker_backspace_refilters(sample_config):
    form = FormState(FormKind.ADD)
    focus(form, LABEL_BASTION)
    type_text(form, sample_config, " zz")
    assert form.bastion_dropdown.filtered_indices == []

    press(form, sample_config, BACKSPACE, times=2)

    assert form.value(LABEL_BASTION) == ""
    assert form.bastion_dropdown.filtered_indices == [0, 1, 2]


def test_leaving_bastion_field_closes_picker(sample_config):
    form = FormState(FormKind.ADD)
    focus(form, LABEL_BASTION)
    type_text(form, sample_config, " ")

    press(form, sample_config, TAB)

    assert not form.dropdown_open
    assert not form.on_bastion_field


def test_cursor_movement_in_field(sample_config):
    form = FormState(FormKind.ADD)
    focus(form, LABEL_ADDRESS)
    type_text(form, sample_config, "hst")
    press(form, sample_config, LEFT, times=2)
    type_text(form, sample_config, "o")

    assert form.value(LABEL_ADDRESS) == "host"


def test_build_host_defaults_name_to_address():
    form = FormState(FormKind.ADD)
    form.field(LABEL_ADDRESS).set_value("  10.1.1.1  ")

    host = form.build_host()

    assert host.name == "10.1.1.1"
    assert host.address == "10.1.1.1"
    assert host.user is None
    assert host.port is None


def test_build_host_falls_back_to_parsed_command():
    form = FormState(FormKind.ADD)
    form.fields[0].set_value("ssh -p 2022 -i ~/.ssh/k -J jump ops@198.51.100.4 htop")

    host = form.build_host()

    assert host.address == "198.51.100.4"
    assert host.name == "198.51.100.4"
    assert host.user == "ops"
    assert host.port == 2022
    assert host.key_path == "~/.ssh/k"
    assert host.bastion == "jump"
    assert host.remote_command == "htop"


def test_build_host_splits_tags_and_options():
    form = FormState(FormKind.ADD)
    form.field(LABEL_ADDRESS).set_value("host")
    form.field(LABEL_TAGS).set_value(" prod, ,web ,")
    form.field(LABEL_OPTIONS).set_value("  -o  ServerAliveInterval=30  -A ")
    form.field(LABEL_DESCRIPTION).set_value("   ")

    host = form.build_host()

    assert host.tags == ["prod", "web"]
    assert host.options == ["-o", "ServerAliveInterval=30", "-A"]
    assert host.description is None


def test_build_host_requires_name_and_address():
    form = FormState(FormKind.ADD)
    form.field(LABEL_NAME).set_value("only-name")

    with pytest.raises(ValidationError) as excinfo:
        form.build_host()
    assert str(excinfo.value) == "name and host cannot be empty"


def test_build_host_rejects_bad_port():
    form = FormState(FormKind.ADD)
    form.field(LABEL_ADDRESS).set_value("host")
    form.field(LABEL_PORT).set_value("22x")

    with pytest.raises(ValidationError) as excinfo:
        form.build_host()
    assert "22x" in str(excinfo.value)


def test_build_host_with_targetless_command_raises_parse_error():
    form = FormState(FormKind.ADD)
    form.fields[0].set_value("ssh -p 22")
    form.field(LABEL_ADDRESS).set_value("host")

    with pytest.raises(ParseError):
        form.build_host()
