"""Unit tests for the command line interface."""

import json

import pytest

from fleetdesk.cli import (
    EXIT_FATAL,
    EXIT_ITEM_FAILURES,
    EXIT_OK,
    EXIT_USAGE,
    FleetDeskApp,
    main,
    parse_args,
    read_device_names,
)
from fleetdesk.device_management.host_registry import HostRegistry
from fleetdesk.directory.models import Collection, validate_child_count
from fleetdesk.error_handling.exceptions import InvalidInputError
from fleetdesk.prompts import InputAborted, confirm, parse_yes_no, prompt_until_valid
from fleetdesk.utils.logging_config import logging_manager


class ScriptedInput:
    """Feeds prepared answers to prompts."""

    def __init__(self, answers):
        self.answers = list(answers)
        self.prompts = []

    def __call__(self, prompt):
        self.prompts.append(prompt)
        if not self.answers:
            raise EOFError
        return self.answers.pop(0)


def make_app(settings, directory, answers=()):
    lines = []
    app = FleetDeskApp(
        settings,
        directory_factory=lambda s: directory,
        input_func=ScriptedInput(answers),
        output=lines.append
    )
    return app, lines


def test_prompt_until_valid_retries():
    answers = ScriptedInput(["zero", "0", "4"])
    messages = []

    value = prompt_until_valid("Count: ", validate_child_count, answers, messages.append)

    assert value == 4
    assert len(messages) == 2


def test_prompt_until_valid_gives_up():
    with pytest.raises(InputAborted):
        prompt_until_valid("Answer: ", parse_yes_no, ScriptedInput(["maybe"]), lambda m: None)
    with pytest.raises(InputAborted):
        prompt_until_valid("Answer: ", parse_yes_no, ScriptedInput(["a", "b"]), lambda m: None, max_attempts=2)


def test_confirm_needs_explicit_yes():
    assert confirm("Sure?", ScriptedInput(["yes"]))
    assert not confirm("Sure?", ScriptedInput([""]))
    assert not confirm("Sure?", ScriptedInput([]))


def test_read_device_names(tmp_path):
    names_file = tmp_path / "devices.txt"
    names_file.write_text("ws002\n\n# retired\nws003  # lab\n", encoding='utf-8')

    assert read_device_names(["ws001"], str(names_file)) == ["ws001", "ws002", "ws003"]
    with pytest.raises(InvalidInputError):
        read_device_names([], str(tmp_path / "missing.txt"))


@pytest.mark.asyncio
async def test_create_collections_from_flags(settings, directory):
    app, lines = make_app(settings, directory)
    args = parse_args(["collections", "create", "--parent", "FD100100", "--pilot", "--children", "2", "--no-input"])

    code = await app.create_collections(args)

    assert code == EXIT_OK
    assert "Parent: Workstations (FD100100), 2 devices" in lines
    assert lines[-1] == "3 collections created, 0 failed"


@pytest.mark.asyncio
async def test_create_collections_prompts_until_valid(settings, directory):
    app, lines = make_app(settings, directory, ["bad", "ZZZ99999", "FD100100", "maybe", "n", "0", "2"])
    args = parse_args(["collections", "create"])

    code = await app.create_collections(args)

    assert code == EXIT_OK
    assert len(app.input_func.prompts) == 7
    assert lines[-1] == "2 collections created, 0 failed"


@pytest.mark.asyncio
async def test_create_collections_without_input_requires_values(settings, directory):
    app, _ = make_app(settings, directory)
    args = parse_args(["collections", "create", "--parent", "FD100100", "--no-input"])

    with pytest.raises(InvalidInputError):
        await app.create_collections(args)


@pytest.mark.asyncio
async def test_dedup_reports_duplicates(settings, directory):
    directory.add_collection(Collection(id="FD100200", name="Laptops"), ["WS002", "lt01"])
    app, lines = make_app(settings, directory)
    args = parse_args(["collections", "dedup", "FD100100", "FD100200"])

    code = await app.dispatch(args)

    assert code == EXIT_OK
    assert "  ws002: FD100100, FD100200" in lines


@pytest.mark.asyncio
async def test_dedup_unknown_collection_is_item_failure(settings, directory):
    app, _ = make_app(settings, directory)

    code = await app.dispatch(parse_args(["collections", "dedup", "FD100100", "NOPE0000"]))

    assert code == EXIT_ITEM_FAILURES


@pytest.mark.asyncio
async def test_enroll_with_item_failures(settings, directory, fake_probe, monkeypatch):
    monkeypatch.setattr("fleetdesk.device_management.enrollment_orchestrator.ReachabilityProbe",
                        lambda settings: fake_probe)
    app, lines = make_app(settings, directory)

    code = await app.dispatch(parse_args(["devices", "enroll", "ws001", "ghost"]))

    assert code == EXIT_ITEM_FAILURES
    assert lines[0] == "ws001: ws001.corp.example.com 10.0.0.11 registered, channel healthy"
    assert lines[1].startswith("ghost: FAILED (No management record")
    assert HostRegistry(settings.hosts_file).exists("10.0.0.11", "ws001")


@pytest.mark.asyncio
async def test_registry_clear_needs_confirmation(settings, directory):
    registry = HostRegistry(settings.hosts_file)
    registry.append("10.0.0.11", "ws001")

    app, lines = make_app(settings, directory, ["n"])
    await app.dispatch(parse_args(["registry", "clear"]))
    assert registry.entries() != []
    assert "Registry left unchanged" in lines

    app, _ = make_app(settings, directory, ["y"])
    await app.dispatch(parse_args(["registry", "clear"]))
    assert registry.entries() == []


@pytest.fixture
def settings_file(tmp_path):
    path = tmp_path / "settings.json"
    path.write_text(json.dumps({
        "inventory_file": str(tmp_path / "inventory.json"),
        "hosts_file": str(tmp_path / "hosts"),
        "export_dir": str(tmp_path / "exports"),
        "logging": {"log_dir": str(tmp_path / "logs"), "console_level": "critical"}
    }), encoding='utf-8')
    yield path
    logging_manager.shutdown()


def test_main_lists_registry(settings_file, tmp_path, capsys):
    (tmp_path / "hosts").write_text("10.0.0.11\tws001 \n", encoding='utf-8')

    assert main(["--settings", str(settings_file), "registry", "list"]) == EXIT_OK
    assert "10.0.0.11\tws001" in capsys.readouterr().out


def test_main_missing_inventory_is_fatal(settings_file, capsys):
    code = main(["--settings", str(settings_file), "collections", "dedup", "FD100100"])

    assert code == EXIT_FATAL
    assert "Directory service unavailable" in capsys.readouterr().err


def test_main_invalid_input_is_usage_error(settings_file, tmp_path):
    (tmp_path / "inventory.json").write_text(json.dumps({"collections": {}}), encoding='utf-8')

    code = main(["--settings", str(settings_file), "collections", "create",
                 "--parent", "FD1", "--children", "1", "--no-input"])

    assert code == EXIT_USAGE


@pytest.mark.asyncio
async def test_create_reads_device_count_once(settings, directory):
    calls = []
    original = directory.get_device_count

    async def counting(collection_id):
        calls.append(collection_id)
        return await original(collection_id)

    directory.get_device_count = counting
    app, lines = make_app(settings, directory)

    await app.create_collections(parse_args(["collections", "create", "--parent", "FD100100",
                                             "--no-pilot", "--children", "1", "--no-input"]))

    assert calls == ["FD100100"]
    assert lines[0] == "Parent: Workstations (FD100100), 2 devices"
