import asyncio
from unittest.mock import patch

import pytest
from websockets.protocol import State

from telemetry_publisher.negotiation import ConnectionConfig
from telemetry_publisher.session import ConnectionSession, PeriodicTask, Phase

FAST = ConnectionConfig(asset_id="asset-1", interval_ms=20, keys=("temperature",), count=2)


def make_session(ws, generator, config=FAST, keepalive=60.0):
    return ConnectionSession(ws, config, generator, keepalive_interval=keepalive)


@pytest.mark.asyncio
async def test_hello_then_batches(fake_ws, generator):
    session = make_session(fake_ws, generator)
    assert session.phase is Phase.IDLE

    await session.start()
    assert session.phase is Phase.RUNNING
    await asyncio.sleep(0.11)
    session.stop()

    assert fake_ws.sent[0] == FAST.hello_message()
    telemetry = fake_ws.telemetry
    assert len(telemetry) >= 4
    assert len(telemetry) % 2 == 0
    for message in telemetry:
        [entry] = message["telemetry"]
        assert message["assetId"] == "asset-1"
        assert entry["name"] == "temperature"
        assert entry["unit"] == "°C"
        assert 20 <= entry["value"] <= 35


@pytest.mark.asyncio
async def test_no_emission_after_stop(fake_ws, generator):
    session = make_session(fake_ws, generator)
    await session.start()
    await asyncio.sleep(0.05)
    session.stop()
    sent = len(fake_ws.sent)

    await asyncio.sleep(0.08)
    assert len(fake_ws.sent) == sent
    assert session.phase is Phase.STOPPED
    assert not session.state.scheduler.running
    assert not session.state.watchdog.running


@pytest.mark.asyncio
async def test_tick_skipped_while_not_writable(fake_ws, generator):
    session = make_session(fake_ws, generator)
    await session.start()
    fake_ws.state = State.CLOSING

    await asyncio.sleep(0.08)
    session.stop()
    assert fake_ws.telemetry == []


@pytest.mark.asyncio
async def test_send_failure_skips_tick_and_keeps_running(fake_ws, generator):
    session = make_session(fake_ws, generator)
    await session.start()
    fake_ws.fail_sends = True
    await asyncio.sleep(0.05)
    assert session.phase is Phase.RUNNING

    fake_ws.fail_sends = False
    await asyncio.sleep(0.05)
    session.stop()
    assert fake_ws.telemetry


@pytest.mark.asyncio
async def test_double_stop_cancels_each_timer_once(fake_ws, generator):
    session = make_session(fake_ws, generator)
    await session.start()

    original = PeriodicTask.cancel
    with patch.object(PeriodicTask, "cancel", autospec=True, side_effect=original) as cancel:
        assert session.stop() is True
        assert session.stop() is False
        session.terminate()

    assert cancel.call_count == 2
    cancelled = {call.args[0] for call in cancel.call_args_list}
    assert cancelled == {session.state.scheduler, session.state.watchdog}


@pytest.mark.asyncio
async def test_stop_before_start_never_starts_timers(fake_ws, generator):
    session = make_session(fake_ws, generator)
    session.stop()
    await session.start()
    assert session.state.scheduler is None
    assert fake_ws.sent == []


@pytest.mark.asyncio
async def test_silent_peer_is_reaped_on_second_probe(make_ws, generator):
    ws = make_ws(answer_pings=False)
    session = make_session(ws, generator, keepalive=0.02)
    await session.start()

    await asyncio.sleep(0.15)
    assert ws.pings == 1
    ws.transport.abort.assert_called_once_with()
    assert session.phase is Phase.STOPPED


@pytest.mark.asyncio
async def test_responsive_peer_stays_alive(fake_ws, generator):
    session = make_session(fake_ws, generator, keepalive=0.02)
    await session.start()

    await asyncio.sleep(0.15)
    session.stop()
    assert fake_ws.pings >= 3
    fake_ws.transport.abort.assert_not_called()


@pytest.mark.asyncio
async def test_failed_ping_is_swallowed_then_reaped(make_ws, generator):
    ws = make_ws()
    ws.fail_pings = True
    session = make_session(ws, generator, keepalive=0.02)
    await session.start()

    await asyncio.sleep(0.15)
    ws.transport.abort.assert_called_once_with()
    assert session.phase is Phase.STOPPED


@pytest.mark.asyncio
async def test_periodic_task_survives_callback_errors():
    calls = []

    async def flaky():
        calls.append(None)
        if len(calls) == 1:
            raise RuntimeError("boom")

    timer = PeriodicTask(0.01, flaky, name="flaky")
    timer.start()
    await asyncio.sleep(0.06)
    assert timer.cancel() is True
    await asyncio.sleep(0)
    assert len(calls) >= 2
    assert timer.cancel() is False
