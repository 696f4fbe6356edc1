import asyncio

import pytest

from vmixember.bridge import Bridge
from vmixember.config import BridgeConfig
from vmixember.mock_device import MockVmix
from vmixember.tree import MatrixConnection


async def wait_for(predicate, timeout=2.0):
    async def _poll():
        while not predicate():
            await asyncio.sleep(0.01)

    await asyncio.wait_for(_poll(), timeout=timeout)


async def start_pair(**config):
    device = MockVmix(port=0)
    await device.start()
    bridge = Bridge(BridgeConfig(vmix_host="127.0.0.1", vmix_port=device.port, **config))
    await bridge.start()
    await bridge.supervisor.wait_connected(timeout=2.0)
    await device.wait_for_subscriptions()
    return device, bridge


async def stop_pair(device, bridge):
    await bridge.stop()
    await device.stop()


@pytest.mark.asyncio
async def test_connects_and_subscribes():
    device, bridge = await start_pair()
    try:
        assert bridge.handles.connected.value is True
        assert device.subscribed_clients("TALLY") == 1
        assert device.subscribed_clients("ACTS") == 1
        assert device.commands == []
    finally:
        await stop_pair(device, bridge)


@pytest.mark.asyncio
async def test_tally_and_acts_reach_the_tree():
    device, bridge = await start_pair()
    handles = bridge.handles
    try:
        device.set_tally("0120")
        device.set_activity("Recording", True)
        device.set_activity("Streaming", True)
        await wait_for(lambda: handles.activity["Streaming"].value is True)

        assert handles.program_tally[2].value is True
        assert handles.preview_tally[3].value is True
        assert handles.program_tally[1].value is False
        assert handles.activity["Recording"].value is True
        assert handles.activity["MultiCorder"].value is False
    finally:
        await stop_pair(device, bridge)


@pytest.mark.asyncio
async def test_invocation_sends_function_command():
    device, bridge = await start_pair()
    try:
        result = bridge.tree_service.invoke("vMix/Functions/Stinger 2")
        assert result.success is True

        command = await device.wait_for_command()
        assert command.line == "FUNCTION STINGER2"
        await asyncio.sleep(0.05)
        assert [c.line for c in device.commands] == ["FUNCTION STINGER2"]
    finally:
        await stop_pair(device, bridge)


@pytest.mark.asyncio
async def test_invocation_fails_while_vmix_is_down():
    probe = MockVmix(port=0)
    await probe.start()
    port = probe.port
    await probe.stop()

    bridge = Bridge(BridgeConfig(vmix_host="127.0.0.1", vmix_port=port))
    await bridge.start()
    try:
        await wait_for(lambda: bridge.supervisor.reconnect_scheduled)
        result = bridge.tree_service.invoke("vMix/Functions/Stinger 2")
        assert result.success is False
        assert result.error == "vMix connection not available."
        assert bridge.handles.connected.value is False
    finally:
        await bridge.stop()


@pytest.mark.asyncio
async def test_reconnects_after_vmix_drops_the_connection():
    device, bridge = await start_pair(retry_delays=(0.05,), max_retry_delay=0.1)
    flags = []
    bridge.tree_service.add_update_listener(
        lambda param, value: flags.append(value) if param is bridge.handles.connected else None
    )
    try:
        await device.disconnect_clients()
        await wait_for(lambda: flags[-2:] == [False, True])
        await device.wait_for_subscriptions()
        assert bridge.supervisor.connect_attempts == 2
        assert bridge.supervisor.backoff_index == 0

        device.set_tally("1")
        await wait_for(lambda: bridge.handles.program_tally[1].value is True)
    finally:
        await stop_pair(device, bridge)


@pytest.mark.asyncio
async def test_split_frames_and_malformed_lines():
    device, bridge = await start_pair()
    handles = bridge.handles
    try:
        device.send_raw(b"TALLY OK 1")
        await asyncio.sleep(0.02)
        device.send_raw(b"2\r")
        await asyncio.sleep(0.02)
        device.send_raw(b"\nACTS OK Recording\r\nACTS OK MultiCorder 1\r\n")
        await wait_for(lambda: handles.activity["MultiCorder"].value is True)

        assert handles.program_tally[1].value is True
        assert handles.preview_tally[2].value is True
        assert bridge.malformed_lines == 1
        assert bridge.other_lines >= 1  # SUBSCRIBE OK replies
    finally:
        await stop_pair(device, bridge)


@pytest.mark.asyncio
async def test_set_value_is_echoed_until_next_report():
    device, bridge = await start_pair()
    handles = bridge.handles
    try:
        assert bridge.tree_service.set_value(handles.program_tally[5].path, True) is True
        assert handles.program_tally[5].value is True

        device.set_tally("00000")
        await wait_for(lambda: handles.program_tally[5].value is False)
    finally:
        await stop_pair(device, bridge)


@pytest.mark.asyncio
async def test_matrix_operation_is_echoed():
    bridge = Bridge(BridgeConfig())
    bridge.tree_service.init(bridge.tree)
    bridge.tree_service.matrix_operation(
        "vMix/Matrices/Test Matrix",
        {1: MatrixConnection(1, (2, 3)), 4: MatrixConnection(4, (5,))},
    )
    matrix = bridge.tree.find("1.3.1")
    assert matrix.connections[1].sources == (2, 3)
    assert matrix.connections[4].sources == (5,)


@pytest.mark.asyncio
async def test_matrix_operation_skips_unknown_targets_and_sources():
    bridge = Bridge(BridgeConfig())
    bridge.tree_service.init(bridge.tree)
    bridge.tree_service.matrix_operation(
        "vMix/Matrices/Test Matrix",
        {
            1: MatrixConnection(1, (2,)),
            9: MatrixConnection(9, (1,)),
            3: MatrixConnection(3, (7,)),
            4: MatrixConnection(4, (5,)),
        },
    )
    matrix = bridge.tree.find("1.3.1")
    assert set(matrix.connections) == {1, 4}
    assert matrix.connections[1].sources == (2,)
    assert matrix.connections[4].sources == (5,)


def test_stats_before_start():
    bridge = Bridge(BridgeConfig())
    stats = bridge.get_stats()
    assert stats["running"] is False
    assert stats["state"] == "DISCONNECTED"
    assert stats["commands_sent"] == 0
