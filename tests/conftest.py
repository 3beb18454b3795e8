"""Common test fixtures for Ergostol desk tests."""
from __future__ import annotations

import asyncio
from unittest.mock import AsyncMock, MagicMock

import pytest

from ergostol.exceptions import CharacteristicNotFoundError
from ergostol.protocol import (
    CMD_DOWN,
    CMD_GET_HEIGHT,
    CMD_STOP,
    CMD_UP,
    NOTIFY_CHAR_UUID,
    WRITE_CHAR_UUID,
)


class FakePeripheral:
    """In-memory stand-in for DeskPeripheral.

    Characteristics are represented by their UUID strings. Payloads fed with
    feed() come out of notifications(); end_stream() ends it like a disconnect.
    """

    name = "Ergostol"

    def __init__(self, characteristics=(WRITE_CHAR_UUID, NOTIFY_CHAR_UUID)):
        self.characteristics = set(characteristics)
        self.payloads: asyncio.Queue = asyncio.Queue()
        self.written: list[bytes] = []
        self.write_error: Exception | None = None
        self.is_connected = True

    def characteristic(self, uuid):
        if uuid not in self.characteristics:
            raise CharacteristicNotFoundError(uuid)
        return uuid

    def feed(self, *payloads: bytes) -> None:
        for payload in payloads:
            self.payloads.put_nowait(bytes(payload))

    def end_stream(self) -> None:
        self.payloads.put_nowait(None)

    async def notifications(self, char):
        while (payload := await self.payloads.get()) is not None:
            yield payload

    async def write(self, char, data, response=False):
        if self.write_error is not None:
            raise self.write_error
        self.written.append(bytes(data))
        self.on_write(bytes(data))

    def on_write(self, data: bytes) -> None:
        """Hook for simulated desks."""

    async def disconnect(self) -> None:
        self.is_connected = False


RAW_STEP = 43  # roughly one centimeter per height poll


class SimulatedDesk(FakePeripheral):
    """Desk that moves one step per height query while its motor runs."""

    def __init__(self, raw: int = 2000):
        super().__init__()
        self.raw = raw
        self.direction = 0

    def _height_frame(self, opcode: int, sub: int) -> bytes:
        return bytes([opcode, sub, self.raw >> 8, self.raw & 0xFF])

    def on_write(self, data: bytes) -> None:
        if data == CMD_UP:
            self.direction = 1
            self.feed(b"\x02\x00\x00\x00")
        elif data == CMD_DOWN:
            self.direction = -1
            self.feed(b"\x01\x00\x00\x00")
        elif data == CMD_STOP:
            if self.direction:
                self.direction = 0
                self.feed(self._height_frame(0x09, 0x00))
        elif data == CMD_GET_HEIGHT:
            if self.direction:
                self.raw += self.direction * RAW_STEP
                self.feed(self._height_frame(0x08, 0x01))
            else:
                self.feed(self._height_frame(0x08, 0x06))


@pytest.fixture
def fake_peripheral() -> FakePeripheral:
    """Return a fake connected peripheral."""
    return FakePeripheral()


@pytest.fixture
def mock_ble_device() -> MagicMock:
    """Return a mock BLE device."""
    device = MagicMock()
    device.address = "AA:BB:CC:DD:EE:FF"
    device.name = "Ergostol"
    return device


@pytest.fixture
def mock_bleak_client() -> MagicMock:
    """Return a mock Bleak client."""
    client = MagicMock()
    client.is_connected = True
    client.connect = AsyncMock(return_value=True)
    client.disconnect = AsyncMock()
    client.start_notify = AsyncMock()
    client.stop_notify = AsyncMock()
    client.write_gatt_char = AsyncMock()

    write_char = MagicMock()
    write_char.uuid = WRITE_CHAR_UUID
    notify_char = MagicMock()
    notify_char.uuid = NOTIFY_CHAR_UUID
    chars = {WRITE_CHAR_UUID: write_char, NOTIFY_CHAR_UUID: notify_char}
    client.services.get_characteristic = MagicMock(side_effect=chars.get)

    return client


async def wait_until(predicate, timeout: float = 1.0) -> None:
    """Yield to the event loop until predicate() holds."""
    deadline = asyncio.get_running_loop().time() + timeout
    while not predicate():
        if asyncio.get_running_loop().time() > deadline:
            raise AssertionError("Condition not reached in time")
        await asyncio.sleep(0.005)
