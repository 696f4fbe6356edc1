import asyncio

import pytest
from typer.testing import CliRunner

import bridge as cli
import mock_vmix_cli
from vmixember.bridge import Bridge
from vmixember.config import BridgeConfig
from vmixember.mock_device import MockVmix

runner = CliRunner()


def test_tree_command_lists_functions_and_inputs():
    result = runner.invoke(cli.app, ["tree", "--inputs", "2"])
    assert result.exit_code == 0
    assert "Stinger 2" in result.output
    assert "Input 2" in result.output
    assert "Input 3" not in result.output
    assert "vMix Connected" in result.output


def test_info_command():
    result = runner.invoke(cli.app, ["info"])
    assert result.exit_code == 0
    assert "vMix Ember Bridge" in result.output


def test_info_names_reconnect_defaults():
    result = runner.invoke(cli.app, ["info"])
    assert "default 32" in result.output
    assert "default 2s, 4s, 16s" in result.output


def test_tree_command_rejects_too_many_inputs():
    result = runner.invoke(cli.app, ["tree", "--inputs", "33"])
    assert result.exit_code != 0


def test_start_rejects_bad_config(tmp_path):
    path = tmp_path / "bad.yaml"
    path.write_text("vmix:\n  port: 99999\n", encoding="utf-8")
    result = runner.invoke(cli.app, ["start", "--config", str(path)])
    assert result.exit_code == 1
    assert "Error" in result.output


def test_console_commands_without_connection(capsys):
    bridge = Bridge(BridgeConfig())
    bridge.tree_service.init(bridge.tree)

    assert cli.handle_console_command(bridge, "invoke Stinger 2") is True
    assert cli.handle_console_command(bridge, "set 1.1.1.3.1 1") is True
    assert bridge.handles.program_tally[3].value is True
    assert cli.handle_console_command(bridge, "show 9.9") is True
    assert cli.handle_console_command(bridge, "quit") is False

    out = capsys.readouterr().out
    assert "failed: vMix connection not available." in out
    assert "Unknown tree path" in out


@pytest.mark.asyncio
async def test_mock_console_drives_bridge():
    device = MockVmix(port=0)
    await device.start()
    bridge = Bridge(BridgeConfig(vmix_host="127.0.0.1", vmix_port=device.port))
    await bridge.start()
    try:
        await bridge.supervisor.wait_connected(timeout=2.0)
        await device.wait_for_subscriptions()

        assert mock_vmix_cli.handle_console_command(device, "tally 21") is True
        assert mock_vmix_cli.handle_console_command(device, "acts Streaming 1") is True

        async def _settled():
            while bridge.handles.activity["Streaming"].value is not True:
                await asyncio.sleep(0.01)

        await asyncio.wait_for(_settled(), timeout=2.0)
        assert bridge.handles.preview_tally[1].value is True
        assert bridge.handles.program_tally[2].value is True

        assert cli.handle_console_command(bridge, "invoke Auto Mix 1") is True
        command = await device.wait_for_command()
        assert command.line == "FUNCTION CUT"
    finally:
        await bridge.stop()
        await device.stop()
