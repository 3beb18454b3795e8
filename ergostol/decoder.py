"""Turns raw desk notifications into broadcast DeskEvents."""

import logging

from ergostol.broadcast import EventBroadcast
from ergostol.peripheral import DeskPeripheral
from ergostol.protocol import NOTIFY_CHAR_UUID, decode_notification

_LOGGER = logging.getLogger(__name__)


async def run_notification_decoder(peripheral: DeskPeripheral, events: EventBroadcast) -> None:
    """
    Decode every notification from the desk and broadcast the result.

    Runs until the notification stream ends, then closes the broadcast so
    subscribers see the channel go away.

    Raises:
        CharacteristicNotFoundError: If the desk has no notify characteristic
    """
    char = peripheral.characteristic(NOTIFY_CHAR_UUID)
    try:
        async for payload in peripheral.notifications(char):
            event = decode_notification(payload)
            if event is None:
                _LOGGER.debug("Ignoring notification %s", payload.hex())
                continue
            events.send(event)
        _LOGGER.warning("Notification stream ended")
    finally:
        events.close()
