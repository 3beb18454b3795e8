"""Serializes queued DeskCommands onto the desk's command characteristic."""

import asyncio
import logging

from ergostol.peripheral import DeskPeripheral
from ergostol.protocol import WRITE_CHAR_UUID, DeskCommand, encode_command

_LOGGER = logging.getLogger(__name__)


async def run_command_writer(peripheral: DeskPeripheral, commands: asyncio.Queue) -> None:
    """
    Write queued commands to the desk one at a time, in order.

    Runs until cancelled or a write fails. Failed writes are not retried.

    Raises:
        CharacteristicNotFoundError: If the desk has no command characteristic
        DeskCommunicationError: If a write fails
    """
    char = peripheral.characteristic(WRITE_CHAR_UUID)

    while True:
        cmd: DeskCommand = await commands.get()
        _LOGGER.debug("Writing %s", cmd.name)
        await peripheral.write(char, encode_command(cmd), response=False)
