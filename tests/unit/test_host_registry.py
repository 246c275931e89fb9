"""Unit tests for the hosts-file registry."""

import threading

import pytest

from fleetdesk.device_management.device import RegistryOutcome
from fleetdesk.device_management.host_registry import HostRegistry, parse_line


@pytest.fixture
def hosts_file(tmp_path):
    return tmp_path / "hosts"


def test_parse_line_ignores_comments():
    assert parse_line("# 10.0.0.1 ws001\n") == []
    entries = parse_line("10.0.0.1\tws001 ws001-alias # managed\n")
    assert [(e.ip, e.short_name) for e in entries] == [("10.0.0.1", "ws001"), ("10.0.0.1", "ws001-alias")]


def test_append_writes_expected_line(hosts_file):
    registry = HostRegistry(str(hosts_file))

    assert registry.append("10.0.0.11", "ws001") == RegistryOutcome.ADDED

    assert hosts_file.read_text(encoding='utf-8') == "10.0.0.11\tws001 \n"


def test_append_is_idempotent(hosts_file):
    registry = HostRegistry(str(hosts_file))

    registry.append("10.0.0.11", "ws001")
    assert registry.append("10.0.0.11", "ws001") == RegistryOutcome.ALREADY_PRESENT
    assert registry.append("10.0.0.11", "WS001") == RegistryOutcome.ALREADY_PRESENT

    assert hosts_file.read_text(encoding='utf-8').count("ws001") == 1


def test_whole_token_matching(hosts_file):
    hosts_file.write_text("10.0.0.10\tdev10 \n", encoding='utf-8')
    registry = HostRegistry(str(hosts_file))

    assert not registry.exists("10.0.0.10", "dev1")
    assert registry.append("10.0.0.10", "dev1") == RegistryOutcome.ADDED
    assert registry.exists("10.0.0.10", "dev1")


def test_same_name_other_address_is_added(hosts_file):
    registry = HostRegistry(str(hosts_file))
    registry.append("10.0.0.11", "ws001")

    assert registry.append("10.0.0.99", "ws001") == RegistryOutcome.ADDED
    assert len(registry.entries()) == 2


def test_append_after_line_without_newline(hosts_file):
    hosts_file.write_text("127.0.0.1 localhost", encoding='utf-8')
    registry = HostRegistry(str(hosts_file))

    registry.append("10.0.0.11", "ws001")

    assert hosts_file.read_text(encoding='utf-8') == "127.0.0.1 localhost\n10.0.0.11\tws001 \n"


def test_existing_content_is_preserved(hosts_file):
    original = "# static entries\n127.0.0.1 localhost\n"
    hosts_file.write_text(original, encoding='utf-8')
    registry = HostRegistry(str(hosts_file))

    registry.append("10.0.0.11", "ws001")

    assert hosts_file.read_text(encoding='utf-8').startswith(original)


def test_missing_file_reads_empty(hosts_file):
    registry = HostRegistry(str(hosts_file))

    assert registry.entries() == []
    assert not registry.exists("10.0.0.11", "ws001")


def test_clear_truncates(hosts_file):
    registry = HostRegistry(str(hosts_file))
    registry.append("10.0.0.11", "ws001")
    registry.append("10.0.0.12", "ws002")

    registry.clear()

    assert hosts_file.read_text(encoding='utf-8') == ""
    assert registry.entries() == []


def test_concurrent_appends_write_one_line(hosts_file):
    registry = HostRegistry(str(hosts_file))
    outcomes = []

    def worker(name):
        outcomes.append(registry.append("10.0.0.11", name))

    threads = [threading.Thread(target=worker, args=(name,)) for name in ["ws001", "WS001", "Ws001", "ws001"]]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join()

    assert outcomes.count(RegistryOutcome.ADDED) == 1
    assert len(registry.entries()) == 1


def test_non_utf8_content_is_read_and_preserved(hosts_file):
    original = b"# caf\xe9 entries\n127.0.0.1 localhost\n"
    hosts_file.write_bytes(original)
    registry = HostRegistry(str(hosts_file))

    assert [(e.ip, e.short_name) for e in registry.entries()] == [("127.0.0.1", "localhost")]
    assert registry.append("10.0.0.11", "ws001") == RegistryOutcome.ADDED

    assert hosts_file.read_bytes() == original + b"10.0.0.11\tws001 \n"
