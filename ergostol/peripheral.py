"""
BLE transport for the Ergostol desk.

Finds the desk by its advertised service, connects, and exposes the three
things the rest of the package needs: characteristic lookup, a notification
stream and fire-and-forget writes.
"""

import asyncio
import logging
import warnings
from collections.abc import AsyncIterator
from contextlib import suppress

from bleak import BleakClient, BleakScanner
from bleak.backends.characteristic import BleakGATTCharacteristic
from bleak.backends.device import BLEDevice
from bleak.exc import BleakError

from ergostol.exceptions import (
    CharacteristicNotFoundError,
    DeskCommunicationError,
    DeskConnectionError,
    DeskNotFoundError,
)
from ergostol.protocol import NOTIFY_CHAR_UUID, SERVICE_UUID, WRITE_CHAR_UUID

# Suppress bleak's internal asyncio warnings (race condition in CoreBluetooth backend)
warnings.filterwarnings("ignore", message=".*invalid state.*")
logging.getLogger("bleak").setLevel(logging.ERROR)

_LOGGER = logging.getLogger(__name__)

_STREAM_END = object()


async def find_desk(service_uuid: str = SERVICE_UUID, timeout: float | None = None) -> BLEDevice:
    """
    Scan until a peripheral advertising the given service shows up.

    Args:
        service_uuid: Service the desk advertises
        timeout: Seconds to scan before giving up; None scans forever

    Raises:
        DeskNotFoundError: If the timeout expires first
        DeskConnectionError: If the scan itself fails
    """

    async def _scan() -> BLEDevice:
        async with BleakScanner(service_uuids=[service_uuid]) as scanner:
            async for device, adv_data in scanner.advertisement_data():
                advertised = [uuid.lower() for uuid in adv_data.service_uuids]
                if service_uuid.lower() in advertised:
                    return device
        raise DeskNotFoundError("Scan ended without finding a desk")

    _LOGGER.debug("Scanning for service %s (timeout=%s)", service_uuid, timeout)
    try:
        if timeout is None:
            return await _scan()
        return await asyncio.wait_for(_scan(), timeout)
    except asyncio.TimeoutError as err:
        raise DeskNotFoundError(
            f"No desk advertising {service_uuid} within {timeout:g}s. Is it powered on?"
        ) from err
    except BleakError as err:
        raise DeskConnectionError(f"BLE scan failed: {err}") from err


class DeskPeripheral:
    """Connected desk peripheral."""

    def __init__(self, device: BLEDevice):
        self.device = device
        self.client: BleakClient | None = None
        self._connected = False
        self._disconnecting = False
        self._streams: list[asyncio.Queue] = []

    @property
    def name(self) -> str:
        return self.device.name or self.device.address

    @property
    def is_connected(self) -> bool:
        return self._connected

    @classmethod
    async def find_and_connect(
        cls,
        service_uuid: str = SERVICE_UUID,
        scan_timeout: float | None = None,
        connect_timeout: float = 30.0,
        retries: int = 2,
    ) -> "DeskPeripheral":
        """
        Find the desk, connect to it and check its characteristics.

        Raises:
            DeskNotFoundError: If no desk is found within scan_timeout
            DeskConnectionError: If connecting fails
            CharacteristicNotFoundError: If the desk lacks the command or
                notification characteristic; the link is closed first
        """
        device = await find_desk(service_uuid, timeout=scan_timeout)
        _LOGGER.info("Found desk %s (%s)", device.name, device.address)
        peripheral = cls(device)
        await peripheral.connect(timeout=connect_timeout, retries=retries)
        try:
            peripheral.characteristic(WRITE_CHAR_UUID)
            peripheral.characteristic(NOTIFY_CHAR_UUID)
        except CharacteristicNotFoundError:
            await peripheral.disconnect()
            raise
        return peripheral

    async def connect(self, timeout: float = 30.0, retries: int = 2) -> None:
        """
        Connect to the desk.

        Args:
            timeout: Connection timeout in seconds
            retries: Number of additional connection attempts

        Raises:
            DeskConnectionError: If connection fails after retries
        """
        last_error = None
        for attempt in range(retries + 1):
            try:
                _LOGGER.debug("Connecting to %s (attempt %d)", self.name, attempt + 1)
                self.client = BleakClient(
                    self.device,
                    timeout=timeout,
                    disconnected_callback=self._on_disconnect,
                )
                await self.client.connect()

                if self.client.is_connected:
                    self._connected = True
                    self._disconnecting = False
                    _LOGGER.info("Connected to %s", self.name)
                    return

            except asyncio.TimeoutError:
                last_error = DeskConnectionError("Connection timed out")
            except BleakError as e:
                last_error = DeskConnectionError(f"BLE error: {e}")

            if attempt < retries:
                _LOGGER.warning("Connection attempt %d failed, retrying", attempt + 1)
                await asyncio.sleep(1)

        raise last_error or DeskConnectionError("Connection failed")

    def _on_disconnect(self, client: BleakClient) -> None:
        """Handle disconnection; ends every open notification stream."""
        was_connected = self._connected
        self._connected = False
        if was_connected and not self._disconnecting:
            _LOGGER.warning("Desk disconnected unexpectedly")
        for queue in self._streams:
            queue.put_nowait(_STREAM_END)

    def characteristic(self, uuid: str) -> BleakGATTCharacteristic:
        """
        Look up a characteristic on the connected desk.

        Raises:
            DeskConnectionError: If not connected
            CharacteristicNotFoundError: If the desk does not expose it
        """
        if not self._connected or not self.client:
            raise DeskConnectionError("Not connected")
        char = self.client.services.get_characteristic(uuid)
        if char is None:
            raise CharacteristicNotFoundError(uuid)
        return char

    async def notifications(self, char: BleakGATTCharacteristic) -> AsyncIterator[bytes]:
        """
        Subscribe to a characteristic and yield its payloads.

        The stream ends when the desk disconnects. Payloads are buffered
        without limit so the BLE callback never waits on a consumer.
        """
        queue: asyncio.Queue = asyncio.Queue()

        def _callback(sender: BleakGATTCharacteristic, data: bytearray) -> None:
            queue.put_nowait(bytes(data))

        self._streams.append(queue)
        try:
            try:
                await self.client.start_notify(char, _callback)
            except BleakError as e:
                raise DeskCommunicationError(f"Failed to subscribe to notifications: {e}") from e

            while True:
                item = await queue.get()
                if item is _STREAM_END:
                    return
                yield item
        finally:
            self._streams.remove(queue)
            if self._connected:
                with suppress(BleakError):
                    await self.client.stop_notify(char)

    async def write(self, char: BleakGATTCharacteristic, data: bytes, response: bool = False) -> None:
        """
        Write a frame to a characteristic.

        Raises:
            DeskCommunicationError: If not connected or the write fails
        """
        if not self._connected or not self.client:
            raise DeskCommunicationError("Not connected")
        try:
            await self.client.write_gatt_char(char, data, response=response)
        except BleakError as e:
            raise DeskCommunicationError(f"Write failed: {e}") from e

    async def disconnect(self) -> None:
        """Disconnect from the desk gracefully."""
        self._disconnecting = True
        if self.client:
            with suppress(BleakError):
                await self.client.disconnect()
            if self._connected:
                self._connected = False
                _LOGGER.info("Disconnected from %s", self.name)
