"""
CLI interface for desk control.

Provides command-line tools for scanning BLE devices and controlling the desk.
"""

import asyncio
import logging
import sys
import threading
from contextlib import suppress

from rich.console import Console
from rich.logging import RichHandler
from rich.prompt import FloatPrompt

from ergostol.broadcast import Subscription
from ergostol.config import DeskSettings
from ergostol.exceptions import (
    DeskCommunicationError,
    DeskConnectionError,
    DeskError,
    DeskNotFoundError,
)
from ergostol.peripheral import DeskPeripheral
from ergostol.protocol import WRITE_CHAR_UUID, DeskCommand, HeightStatic, MovingEnd, encode_command
from ergostol.scanner import print_devices, scan_devices
from ergostol.session import DeskSession

console = Console()

HEIGHT_QUERY_TIMEOUT = 10.0


async def interactive_mode(session: DeskSession) -> None:
    """Prompt for target heights until the user ends input."""
    loop = asyncio.get_running_loop()
    answers: asyncio.Queue = asyncio.Queue()

    def _forward(value: float | None) -> None:
        # The loop may already be gone when the user answers during shutdown
        with suppress(RuntimeError):
            loop.call_soon_threadsafe(answers.put_nowait, value)

    def _prompt() -> None:
        while True:
            try:
                height = FloatPrompt.ask("[bold]Target height (cm)[/]", console=console)
            except (EOFError, KeyboardInterrupt):
                _forward(None)
                return
            _forward(height)

    # Daemon thread so a pending prompt never blocks interpreter exit
    threading.Thread(target=_prompt, name="height-prompt", daemon=True).start()

    while (height := await answers.get()) is not None:
        await session.request_height(height)


async def event_logger(events: Subscription) -> None:
    """Print every desk event."""
    while True:
        event = await events.recv()
        console.print(event)


async def seek(session: DeskSession, events: Subscription, height: float) -> float:
    """
    Move to height and return the height the desk stopped at.

    Waits for the desk to report its starting height first, so the
    controller picks the right direction.
    """
    await wait_for_height(events)
    await session.request_height(height)
    while True:
        event = await events.recv()
        if isinstance(event, MovingEnd):
            return event.height


async def wait_for_height(events: Subscription) -> float:
    """Return the next height the desk reports while standing still."""

    async def _wait() -> float:
        while True:
            event = await events.recv()
            if isinstance(event, (HeightStatic, MovingEnd)):
                return event.height

    try:
        return await asyncio.wait_for(_wait(), HEIGHT_QUERY_TIMEOUT)
    except asyncio.TimeoutError:
        raise DeskCommunicationError("Desk did not report its height") from None


async def stop_desk(peripheral: DeskPeripheral) -> None:
    """Best-effort STOP, used when leaving a session that may have moved the desk."""
    if not peripheral.is_connected:
        return
    with suppress(DeskError):
        await peripheral.write(
            peripheral.characteristic(WRITE_CHAR_UUID), encode_command(DeskCommand.STOP)
        )


async def run_scan():
    """Scan for BLE devices."""
    console.print("🔍 Scanning for BLE devices (10 seconds)...\n")
    devices = await scan_devices(timeout=10.0)
    print_devices(devices, console)

    desks = [d for d in devices if d.is_desk]
    if desks:
        console.print(f"\n✅ Found {len(desks)} desk(s):")
        for desk in desks:
            console.print(f"   • {desk.name} ({desk.address})")
    else:
        console.print("\n⚠️  No desks found. Make sure your desk is powered on.")


def parse_height(value: str) -> float:
    try:
        return float(value)
    except ValueError:
        raise ValueError(f"Not a height: {value!r}") from None


async def run_control(args: list[str], settings: DeskSettings):
    """Run a desk command."""
    command = args[0] if args else None
    target = None
    if command == "goto":
        if len(args) < 2:
            console.print("Usage: desk-control goto <height_cm>")
            return
        try:
            target = parse_height(args[1])
        except ValueError as e:
            console.print(f"[red]❌ {e}[/]")
            sys.exit(1)
    elif command not in (None, "height"):
        console.print(f"Unknown command: {command}")
        print_control_help()
        return

    peripheral = None
    try:
        console.print("🔍 Searching for desk...")
        peripheral = await DeskPeripheral.find_and_connect(
            scan_timeout=settings.scan_timeout,
            connect_timeout=settings.connect_timeout,
            retries=settings.connect_retries,
        )
        console.print(f"🔗 Connected to {peripheral.name}")
        session = DeskSession(peripheral, settings.event_buffer)

        if command is None:
            await session.run(event_logger(session.subscribe()), interactive_mode(session))

        elif command == "height":
            result = asyncio.ensure_future(wait_for_height(session.subscribe()))
            await session.run(result)
            console.print(f"📏 Height: {result.result():.1f}cm")

        else:
            result = asyncio.ensure_future(seek(session, session.subscribe(), target))
            await session.run(result)
            final = result.result()
            console.print(f"✅ Done: {final:.1f}cm (error: {final - target:+.1f}cm)")

    except DeskNotFoundError as e:
        console.print(f"[red]❌ {e}[/]")
        sys.exit(1)
    except DeskConnectionError as e:
        console.print(f"[red]❌ Connection failed: {e}[/]")
        sys.exit(1)
    except DeskError as e:
        console.print(f"[red]❌ Communication error: {e}[/]")
        sys.exit(1)
    finally:
        if peripheral:
            if command != "height":
                await stop_desk(peripheral)
            await peripheral.disconnect()


def print_control_help():
    """Print help for desk control commands."""
    console.print(
        """
Usage: desk-control [command] [args]

Commands:
  (no command)     Interactive mode: enter target heights, watch desk events
  height           Show current height in cm
  goto <cm>        Move to a specific height in cm

Environment (also read from .env):
  ERGOSTOL_SCAN_TIMEOUT      Seconds to scan for the desk (default: forever)
  ERGOSTOL_CONNECT_TIMEOUT   Connection timeout in seconds (default: 30)
  ERGOSTOL_CONNECT_RETRIES   Extra connection attempts (default: 2)
  ERGOSTOL_EVENT_BUFFER      Events buffered per observer (default: 16)
  ERGOSTOL_LOG_LEVEL         Log level (default: WARNING)

Examples:
  desk-control                  # Interactive mode
  desk-control goto 100         # Move to 100cm
""",
        markup=False,
    )


def setup_logging(level: str) -> None:
    logging.basicConfig(
        level=level,
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(console=console, rich_tracebacks=True)],
    )


def main_scan():
    """Entry point for desk-scan command."""
    asyncio.run(run_scan())


def main_control():
    """Entry point for desk-control command."""
    if len(sys.argv) > 1 and sys.argv[1] in ("-h", "--help", "help"):
        print_control_help()
        return
    try:
        settings = DeskSettings.from_env()
    except ValueError as e:
        console.print(f"[red]❌ {e}[/]")
        sys.exit(1)
    setup_logging(settings.log_level)
    try:
        asyncio.run(run_control(sys.argv[1:], settings))
    except KeyboardInterrupt:
        console.print("\n🛑 Interrupted")


if __name__ == "__main__":
    main_control()
