"""
Closed-loop height controller for the Ergostol desk.

The desk has no target-seeking firmware: it moves while told to and reports
its height as it goes. The controller starts a move toward the requested
height, watches the height samples and sends STOP on the first sample past
the target.
"""

import asyncio
import logging
from enum import Enum

from ergostol.broadcast import Subscription
from ergostol.protocol import (
    DeskCommand,
    DeskEvent,
    HeightMoving,
    HeightStatic,
    MovingEnd,
    StartMoving,
    StartMovingDown,
    StartMovingUp,
)

_LOGGER = logging.getLogger(__name__)


class Direction(Enum):
    UP = "up"
    DOWN = "down"


class ControllerPhase(Enum):
    IDLE = "idle"
    SEEKING = "seeking"
    RECONCILING = "reconciling"


class DeskController:
    """
    Desk state machine.

    All state is owned by this object and only changed from its own loop.
    Other tasks learn about desk motion by subscribing to the event broadcast.
    """

    def __init__(self, events: Subscription, commands: asyncio.Queue, targets: asyncio.Queue):
        self._events = events
        self._commands = commands
        self._targets = targets
        self.current_height = 0.0
        self.target_height: float | None = None
        self.move_direction: Direction | None = None
        self.is_moving = False
        self.stop_requested = False
        self.awaiting_stop = False

    @property
    def phase(self) -> ControllerPhase:
        if self.move_direction is None:
            return ControllerPhase.IDLE
        if self.stop_requested or self.awaiting_stop:
            return ControllerPhase.RECONCILING
        return ControllerPhase.SEEKING

    async def _send(self, cmd: DeskCommand) -> None:
        await self._commands.put(cmd)

    async def _start_move(self) -> None:
        # Ties go up
        if self.current_height <= self.target_height:
            self.move_direction = Direction.UP
            cmd = DeskCommand.MOVE_UP
        else:
            self.move_direction = Direction.DOWN
            cmd = DeskCommand.MOVE_DOWN

        _LOGGER.info(
            "Seeking %.2f -> %.2f (%s)",
            self.current_height,
            self.target_height,
            self.move_direction.value,
        )
        await self._send(cmd)

    async def handle_target(self, height: float) -> None:
        """
        Start a seek toward height, replacing any seek in progress.

        If the desk is moving it is stopped first. Until the desk confirms
        that stop, height samples belong to the old motion and are not
        checked against the new target.
        """
        if self.is_moving:
            await self._send(DeskCommand.STOP)
            self.awaiting_stop = True

        self.target_height = height
        self.stop_requested = False
        await self._start_move()

    def _overshot(self) -> bool:
        if self.move_direction is Direction.UP:
            return self.current_height > self.target_height
        if self.move_direction is Direction.DOWN:
            return self.current_height < self.target_height
        return False

    async def _stop_confirmed(self) -> None:
        """The desk is stationary after a superseding STOP: resume the new seek."""
        self.awaiting_stop = False
        _LOGGER.debug("Superseded move stopped at %.2f", self.current_height)
        await self._start_move()

    async def handle_event(self, event: DeskEvent) -> None:
        """Apply one desk event to the controller state."""
        if isinstance(event, (StartMoving, StartMovingUp, StartMovingDown)):
            # A requested direction stays authoritative; these only flag motion
            self.is_moving = True

        elif isinstance(event, HeightMoving):
            self.current_height = event.height
            self.is_moving = True
            if not self.stop_requested and not self.awaiting_stop and self._overshot():
                _LOGGER.debug(
                    "Passed target %.2f at %.2f, stopping", self.target_height, self.current_height
                )
                self.stop_requested = True
                await self._send(DeskCommand.STOP)

        elif isinstance(event, HeightStatic):
            self.current_height = event.height
            self.is_moving = False
            if self.awaiting_stop:
                await self._stop_confirmed()

        elif isinstance(event, MovingEnd):
            self.current_height = event.height
            self.is_moving = False
            if self.awaiting_stop:
                await self._stop_confirmed()
                return
            self.move_direction = None
            self.target_height = None
            self.stop_requested = False
            _LOGGER.info("Stopped at %.2f", self.current_height)

    async def run(self) -> None:
        """
        Run the control loop until a channel fails.

        Raises:
            ChannelClosedError: If the event broadcast closes
        """
        await self._send(DeskCommand.GET_HEIGHT)

        target_task: asyncio.Future | None = None
        event_task: asyncio.Future | None = None
        try:
            while True:
                if self.is_moving:
                    await self._send(DeskCommand.GET_HEIGHT)

                # Pending reads survive across iterations so nothing is lost
                if target_task is None:
                    target_task = asyncio.ensure_future(self._targets.get())
                if event_task is None:
                    event_task = asyncio.ensure_future(self._events.recv())

                done, _ = await asyncio.wait(
                    {target_task, event_task}, return_when=asyncio.FIRST_COMPLETED
                )

                # When both are ready, apply the event first so a request sees
                # the freshest height
                if event_task in done:
                    event = event_task.result()
                    event_task = None
                    await self.handle_event(event)

                if target_task in done:
                    height = target_task.result()
                    target_task = None
                    await self.handle_target(height)
        finally:
            for task in (target_task, event_task):
                if task is not None and not task.done():
                    task.cancel()
