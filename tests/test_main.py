"""Tests for the entry point's exit codes and printed summary."""

import logging
import re

import pytest

from bluepairy.__main__ import main, pair
from bluepairy.bluez.bus import BluezBus
from bluepairy.config import AppConfig
from conftest import HID, FakeBluez

NAME = "Active Braille AB4/B1-12345"


@pytest.mark.asyncio
async def test_pair_success(
    bluez: BluezBus, fake_bus: FakeBluez, fast_config: AppConfig, capsys: pytest.CaptureFixture
) -> None:
    fake_bus.add_adapter(powered=True)
    fake_bus.add_device("AA:BB:CC:DD:EE:FF", NAME, paired=True, uuids=(HID,))

    code = await pair(bluez, fast_config, re.compile("Braille"), (HID,))

    assert code == 0
    out = capsys.readouterr().out
    assert (
        f"Apparently usable pairing with {NAME} (AA:BB:CC:DD:EE:FF) "
        "via 00:11:22:33:44:55 found"
    ) in out
    assert "All required profiles connected, good luck!" in out
    assert [m.member for m in fake_bus.calls if "Agent" in m.member] == [
        "RegisterAgent", "UnregisterAgent",
    ]
    assert fake_bus.exported == {}


@pytest.mark.asyncio
async def test_pair_reports_ambiguity(
    bluez: BluezBus, fake_bus: FakeBluez, fast_config: AppConfig, capsys: pytest.CaptureFixture
) -> None:
    fake_bus.add_adapter(powered=True)
    fake_bus.add_device("11:11:11:11:11:11", NAME, paired=True)
    fake_bus.add_device("22:22:22:22:22:22", NAME, paired=True)

    assert await pair(bluez, fast_config, re.compile("Braille"), ()) == 0
    out = capsys.readouterr().out
    assert out.count("Apparently usable pairing") == 2
    assert "2 devices match, no profiles connected." in out


@pytest.mark.asyncio
async def test_pair_without_adapter_fails(
    bluez: BluezBus, fake_bus: FakeBluez, fast_config: AppConfig, capsys: pytest.CaptureFixture
) -> None:
    assert await pair(bluez, fast_config, re.compile("Braille"), ()) == 1
    assert "Failed: No Bluetooth adapter present" in capsys.readouterr().out
    assert fake_bus.called("Pair") == []
    assert fake_bus.called("UnregisterAgent")


@pytest.mark.asyncio
async def test_pair_with_bad_snapshot_fails(
    bluez: BluezBus, fake_bus: FakeBluez, fast_config: AppConfig
) -> None:
    fake_bus.managed_objects_reply = ("s", ["nonsense"])
    assert await pair(bluez, fast_config, re.compile("Braille"), ()) == 1
    assert fake_bus.called("RegisterAgent") == []


@pytest.mark.asyncio
async def test_pair_agent_registration_error_fails(
    bluez: BluezBus, fake_bus: FakeBluez, fast_config: AppConfig
) -> None:
    fake_bus.add_adapter(powered=True)
    fake_bus.method_errors[("org.bluez.AgentManager1", "RegisterAgent")] = (
        "org.bluez.Error.AlreadyExists"
    )
    assert await pair(bluez, fast_config, re.compile("Braille"), ()) == 1
    assert fake_bus.called("Pair") == []


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "argv",
    [[""], ["Braille("], ["Braille", "-u", " "]],
)
async def test_main_rejects_bad_arguments(
    argv: list[str], tmp_path, capsys: pytest.CaptureFixture
) -> None:
    code = await main([*argv, "-c", str(tmp_path / "missing.json")])
    assert code == 1
    assert capsys.readouterr().err


@pytest.mark.asyncio
async def test_main_logs_effective_options(tmp_path, caplog: pytest.LogCaptureFixture) -> None:
    options = tmp_path / "options.json"
    options.write_text('{"overall_timeout": 42}')
    with caplog.at_level(logging.DEBUG, logger="bluepairy.__main__"):
        assert await main(["", "-v", "-c", str(options)]) == 1
    assert "Effective options" in caplog.text
    assert "'overall_timeout': 42.0" in caplog.text
