"""
Ergostol desk BLE protocol.

Command frames are literal constants validated by the desk firmware.
Status notifications are at least 4 bytes: byte 0 selects the event class,
byte 1 is a sub-discriminator for height reports and bytes 2-3 carry the
raw height (big-endian).
"""

from dataclasses import dataclass
from enum import Enum

# === ERGOSTOL BLE UUIDS ===
SERVICE_UUID = "0000ff12-0000-1000-8000-00805f9b34fb"
WRITE_CHAR_UUID = "0000ff01-0000-1000-8000-00805f9b34fb"
NOTIFY_CHAR_UUID = "0000ff02-0000-1000-8000-00805f9b34fb"

# === COMMANDS ===
CMD_UP = bytes([0x02, 0x01, 0x00, 0x00, 0xAA, 0xAD])
CMD_DOWN = bytes([0x01, 0x01, 0x00, 0x00, 0xAA, 0xE9])
CMD_STOP = bytes([0x09, 0x01, 0x00, 0x00, 0xA8, 0x89])
CMD_GET_HEIGHT = bytes([0x08, 0x01, 0x00, 0x00, 0xA9, 0x75])

# === NOTIFICATION OPCODES ===
OP_START_MOVING = 0x0B
OP_START_MOVING_UP = 0x02
OP_START_MOVING_DOWN = 0x01
OP_MOVING_END = 0x09
OP_HEIGHT = 0x08

SUB_HEIGHT_MOVING = 0x01
SUB_HEIGHT_STATIC = 0x06

MIN_NOTIFICATION_LENGTH = 4

# Sensor calibration
HEIGHT_DIVISOR = 43.22
HEIGHT_OFFSET = 24.16


class DeskCommand(Enum):
    """Commands the desk understands."""

    MOVE_UP = "move_up"
    MOVE_DOWN = "move_down"
    STOP = "stop"
    GET_HEIGHT = "get_height"


COMMAND_FRAMES: dict[DeskCommand, bytes] = {
    DeskCommand.MOVE_UP: CMD_UP,
    DeskCommand.MOVE_DOWN: CMD_DOWN,
    DeskCommand.STOP: CMD_STOP,
    DeskCommand.GET_HEIGHT: CMD_GET_HEIGHT,
}


class DeskEvent:
    """Base class for events decoded from desk notifications."""

    __slots__ = ()


@dataclass(frozen=True, slots=True)
class StartMoving(DeskEvent):
    """Motion has begun, direction not reported yet."""


@dataclass(frozen=True, slots=True)
class StartMovingUp(DeskEvent):
    """Motion has begun upwards."""


@dataclass(frozen=True, slots=True)
class StartMovingDown(DeskEvent):
    """Motion has begun downwards."""


@dataclass(frozen=True, slots=True)
class HeightMoving(DeskEvent):
    """Height sampled while the desk is moving."""

    height: float


@dataclass(frozen=True, slots=True)
class HeightStatic(DeskEvent):
    """Height sampled while the desk is stationary."""

    height: float


@dataclass(frozen=True, slots=True)
class MovingEnd(DeskEvent):
    """Motion has finished at the reported height."""

    height: float


def decode_height(byte_high: int, byte_low: int) -> float:
    """Convert the two raw sensor bytes (big-endian) to a height in centimeters."""
    raw = ((byte_high & 0xFF) << 8) | (byte_low & 0xFF)
    return raw / HEIGHT_DIVISOR + HEIGHT_OFFSET


def encode_command(cmd: DeskCommand) -> bytes:
    """Return the fixed frame for a command."""
    return COMMAND_FRAMES[cmd]


def decode_notification(payload: bytes) -> DeskEvent | None:
    """
    Decode one notification payload.

    Returns None for short frames and unknown opcodes; never raises.
    """
    if len(payload) < MIN_NOTIFICATION_LENGTH:
        return None

    opcode, sub, high, low = payload[0], payload[1], payload[2], payload[3]

    if opcode == OP_START_MOVING:
        return StartMoving()
    if opcode == OP_START_MOVING_UP:
        return StartMovingUp()
    if opcode == OP_START_MOVING_DOWN:
        return StartMovingDown()
    if opcode == OP_MOVING_END:
        return MovingEnd(decode_height(high, low))
    if opcode == OP_HEIGHT:
        if sub == SUB_HEIGHT_MOVING:
            return HeightMoving(decode_height(high, low))
        if sub == SUB_HEIGHT_STATIC:
            return HeightStatic(decode_height(high, low))
    return None
