"""Unit tests for remote session launching."""

import asyncio

import pytest

from fleetdesk.device_management.device import ResolvedDevice
from fleetdesk.device_management.session_launcher import SessionLauncher

DEVICE = ResolvedDevice(short_name="ws001", fqdn="ws001.corp.example.com", ip_address="10.0.0.11")


class FakeProcess:
    def __init__(self, return_code):
        self.return_code = return_code

    async def wait(self):
        return self.return_code


def test_build_command(settings):
    settings = settings.model_copy(update={"session_command": "ssh -t admin@{fqdn} # {short_name} {ip}"})

    assert SessionLauncher(settings).build_command(DEVICE) == [
        "ssh", "-t", "admin@ws001.corp.example.com", "#", "ws001", "10.0.0.11"
    ]


@pytest.mark.asyncio
@pytest.mark.parametrize("return_code,expected", [(0, True), (1, False)])
async def test_open_session_exit_code(settings, monkeypatch, return_code, expected):
    launched = []

    async def fake_exec(*command):
        launched.append(command)
        return FakeProcess(return_code)

    monkeypatch.setattr(asyncio, "create_subprocess_exec", fake_exec)

    assert await SessionLauncher(settings).open_session(DEVICE) is expected
    assert launched[0][-1] == "ws001.corp.example.com"


@pytest.mark.asyncio
async def test_missing_session_tool(settings, monkeypatch):
    async def fake_exec(*command):
        raise FileNotFoundError(command[0])

    monkeypatch.setattr(asyncio, "create_subprocess_exec", fake_exec)

    assert await SessionLauncher(settings).open_session(DEVICE) is False


@pytest.mark.asyncio
async def test_bad_template(settings):
    settings = settings.model_copy(update={"session_command": "connect {hostname}"})

    assert await SessionLauncher(settings).open_session(DEVICE) is False
