"""
Ergostol - Bluetooth Low Energy control for Ergostol standing desks.

This package decodes the desk's status notifications, encodes its command
frames and runs a closed-loop controller that moves the desk to a height.
"""

from ergostol.broadcast import EventBroadcast, Subscription
from ergostol.controller import ControllerPhase, DeskController, Direction
from ergostol.exceptions import (
    ChannelClosedError,
    CharacteristicNotFoundError,
    DeskCommunicationError,
    DeskConnectionError,
    DeskError,
    DeskNotFoundError,
)
from ergostol.peripheral import DeskPeripheral, find_desk
from ergostol.protocol import (
    DeskCommand,
    DeskEvent,
    HeightMoving,
    HeightStatic,
    MovingEnd,
    StartMoving,
    StartMovingDown,
    StartMovingUp,
    decode_height,
    decode_notification,
    encode_command,
)
from ergostol.session import DeskSession

__all__ = [
    # Protocol
    "DeskCommand",
    "DeskEvent",
    "StartMoving",
    "StartMovingUp",
    "StartMovingDown",
    "HeightMoving",
    "HeightStatic",
    "MovingEnd",
    "decode_height",
    "decode_notification",
    "encode_command",
    # Control
    "DeskController",
    "ControllerPhase",
    "Direction",
    "DeskSession",
    "EventBroadcast",
    "Subscription",
    # Transport
    "DeskPeripheral",
    "find_desk",
    # Errors
    "DeskError",
    "DeskNotFoundError",
    "DeskConnectionError",
    "CharacteristicNotFoundError",
    "DeskCommunicationError",
    "ChannelClosedError",
]
