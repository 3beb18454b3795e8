"""Exceptions raised by the desk controller."""


class DeskError(Exception):
    """Base exception for desk controller errors."""

    pass


class DeskNotFoundError(DeskError):
    """Raised when desk cannot be found via BLE scan."""

    pass


class DeskConnectionError(DeskError):
    """Raised when connection to desk fails."""

    pass


class CharacteristicNotFoundError(DeskConnectionError):
    """Raised when a connected desk does not expose an expected characteristic."""

    def __init__(self, uuid: str):
        super().__init__(f"Characteristic {uuid} not found on desk")
        self.uuid = uuid


class DeskCommunicationError(DeskError):
    """Raised when BLE communication fails during operation."""

    pass


class ChannelClosedError(DeskError):
    """Raised when the peer task on the other end of a channel has gone away."""

    pass
