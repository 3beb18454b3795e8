"""Test the desk-control command line."""
from __future__ import annotations

import asyncio
import io
from unittest.mock import AsyncMock, MagicMock, patch

import pytest
from rich.console import Console

from conftest import FakePeripheral, SimulatedDesk
from ergostol import cli
from ergostol.broadcast import EventBroadcast
from ergostol.config import DeskSettings
from ergostol.exceptions import ChannelClosedError, DeskCommunicationError, DeskNotFoundError
from ergostol.protocol import CMD_GET_HEIGHT, CMD_STOP, CMD_UP, HeightMoving, StartMoving


@pytest.fixture
def output():
    """Capture CLI console output."""
    buffer = io.StringIO()
    with patch.object(cli, "console", Console(file=buffer, width=120)):
        yield buffer


async def test_goto(output):
    """Test a one-shot move connects, seeks, stops and disconnects."""
    desk = SimulatedDesk(raw=2000)

    with patch(
        "ergostol.cli.DeskPeripheral.find_and_connect", AsyncMock(return_value=desk)
    ) as connect:
        await asyncio.wait_for(cli.run_control(["goto", "75"], DeskSettings(scan_timeout=5.0)), 5)

    connect.assert_awaited_once_with(scan_timeout=5.0, connect_timeout=30.0, retries=2)
    assert desk.written[:2] == [CMD_GET_HEIGHT, CMD_UP]
    assert desk.written[-1] == CMD_STOP
    assert desk.is_connected is False
    assert "Done: 75.4cm" in output.getvalue()


async def test_height(output):
    """Test printing the current height."""
    desk = SimulatedDesk(raw=2000)

    with patch("ergostol.cli.DeskPeripheral.find_and_connect", AsyncMock(return_value=desk)):
        await asyncio.wait_for(cli.run_control(["height"], DeskSettings()), 5)

    assert desk.written == [CMD_GET_HEIGHT]
    assert "Height: 70.4cm" in output.getvalue()


async def test_unknown_command(output):
    """Test an unknown command prints help without touching the radio."""
    with patch("ergostol.cli.DeskPeripheral.find_and_connect", AsyncMock()) as connect:
        await cli.run_control(["dance"], DeskSettings())

    connect.assert_not_awaited()
    assert "Unknown command: dance" in output.getvalue()
    assert "goto <cm>" in output.getvalue()


async def test_goto_bad_height(output):
    """Test a malformed height is a user error."""
    with pytest.raises(SystemExit) as exc_info:
        await cli.run_control(["goto", "tall"], DeskSettings())

    assert exc_info.value.code == 1
    assert "Not a height" in output.getvalue()


async def test_desk_not_found(output):
    """Test a missing desk exits with an error."""
    with patch(
        "ergostol.cli.DeskPeripheral.find_and_connect",
        AsyncMock(side_effect=DeskNotFoundError("No desk advertising it")),
    ):
        with pytest.raises(SystemExit) as exc_info:
            await cli.run_control([], DeskSettings())

    assert exc_info.value.code == 1
    assert "No desk advertising it" in output.getvalue()


async def test_interactive_mode_forwards_heights():
    """Test prompted heights become target requests until EOF."""
    session = MagicMock()
    session.request_height = AsyncMock()

    with patch("ergostol.cli.FloatPrompt.ask", side_effect=[100.0, 72.5, EOFError()]):
        await asyncio.wait_for(cli.interactive_mode(session), 1)

    assert [c.args[0] for c in session.request_height.await_args_list] == [100.0, 72.5]


async def test_event_logger_prints_until_closed(output):
    """Test every event is printed and closure ends the logger."""
    events = EventBroadcast()
    subscription = events.subscribe()
    events.send(StartMoving())
    events.send(HeightMoving(80.5))
    events.close()

    with pytest.raises(ChannelClosedError):
        await cli.event_logger(subscription)

    text = output.getvalue()
    assert "StartMoving" in text
    assert "HeightMoving" in text
    assert "80.5" in text


async def test_wait_for_height_timeout():
    """Test a silent desk is reported."""
    events = EventBroadcast()

    with patch.object(cli, "HEIGHT_QUERY_TIMEOUT", 0.05):
        with pytest.raises(DeskCommunicationError):
            await cli.wait_for_height(events.subscribe())


async def test_stop_desk():
    """Test the best-effort stop."""
    desk = FakePeripheral()

    await cli.stop_desk(desk)

    assert desk.written == [CMD_STOP]


async def test_stop_desk_ignores_errors():
    """Test a failing stop does not mask the original outcome."""
    desk = FakePeripheral()
    desk.write_error = DeskCommunicationError("Write failed")

    await cli.stop_desk(desk)

    desk.is_connected = False
    desk.write_error = None
    await cli.stop_desk(desk)
    assert desk.written == []
