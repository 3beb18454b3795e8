"""Wires the decoder, writer and controller around one connected desk."""

import asyncio
import logging
from collections.abc import Awaitable

from ergostol.broadcast import DEFAULT_CAPACITY, EventBroadcast, Subscription
from ergostol.controller import DeskController
from ergostol.decoder import run_notification_decoder
from ergostol.exceptions import ChannelClosedError
from ergostol.peripheral import DeskPeripheral
from ergostol.writer import run_command_writer

_LOGGER = logging.getLogger(__name__)


class DeskSession:
    """
    One control session with a connected desk.

    Subscribe observers before calling run(); events sent earlier are not
    replayed.
    """

    def __init__(self, peripheral: DeskPeripheral, event_capacity: int = DEFAULT_CAPACITY):
        self.peripheral = peripheral
        self.events = EventBroadcast(event_capacity)
        self.commands: asyncio.Queue = asyncio.Queue(maxsize=1)
        self.targets: asyncio.Queue = asyncio.Queue(maxsize=1)
        self.controller = DeskController(self.events.subscribe(), self.commands, self.targets)

    def subscribe(self) -> Subscription:
        return self.events.subscribe()

    async def request_height(self, height: float) -> None:
        """Ask the controller to move the desk to height."""
        await self.targets.put(height)

    async def run(self, *extra: Awaitable) -> None:
        """
        Run the session until something ends it.

        Core tasks never finish on their own: an exception from any task, or
        a core task returning, cancels the rest and is raised here. An extra
        coroutine returning normally ends the session cleanly.

        Raises:
            DeskError: The first failure observed
        """
        core = {
            asyncio.ensure_future(run_notification_decoder(self.peripheral, self.events)): "decoder",
            asyncio.ensure_future(run_command_writer(self.peripheral, self.commands)): "writer",
            asyncio.ensure_future(self.controller.run()): "controller",
        }
        tasks = set(core) | {asyncio.ensure_future(coro) for coro in extra}

        try:
            done, _ = await asyncio.wait(tasks, return_when=asyncio.FIRST_COMPLETED)
            for task in done:
                err = task.exception()
                if err is not None:
                    _LOGGER.error("Session task %s failed: %s", core.get(task, "extra"), err)
                    raise err
            for task in done:
                if task in core:
                    raise ChannelClosedError(f"Desk {core[task]} exited")
        finally:
            pending = [task for task in tasks if not task.done()]
            for task in pending:
                task.cancel()
            await asyncio.gather(*pending, return_exceptions=True)
