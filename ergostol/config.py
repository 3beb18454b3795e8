"""Runtime settings, read from the environment (and a .env file if present)."""

import logging
import os
from dataclasses import dataclass

from dotenv import load_dotenv

from ergostol.broadcast import DEFAULT_CAPACITY


def _float(env: dict, key: str, default: float | None) -> float | None:
    value = env.get(key, "").strip()
    if not value:
        return default
    try:
        return float(value)
    except ValueError:
        raise ValueError(f"{key} must be a number, got {value!r}") from None


def _int(env: dict, key: str, default: int) -> int:
    value = env.get(key, "").strip()
    if not value:
        return default
    try:
        return int(value)
    except ValueError:
        raise ValueError(f"{key} must be an integer, got {value!r}") from None


@dataclass
class DeskSettings:
    """Connection and logging settings."""

    scan_timeout: float | None = None
    connect_timeout: float = 30.0
    connect_retries: int = 2
    event_buffer: int = DEFAULT_CAPACITY
    log_level: str = "WARNING"

    @classmethod
    def from_env(cls, env: dict | None = None) -> "DeskSettings":
        """
        Build settings from ERGOSTOL_* variables.

        A scan timeout that is unset, empty or 0 means scan forever.

        Raises:
            ValueError: If a variable holds an invalid value
        """
        if env is None:
            load_dotenv()
            env = dict(os.environ)

        scan_timeout = _float(env, "ERGOSTOL_SCAN_TIMEOUT", None)
        if scan_timeout is not None and scan_timeout <= 0:
            scan_timeout = None

        settings = cls(
            scan_timeout=scan_timeout,
            connect_timeout=_float(env, "ERGOSTOL_CONNECT_TIMEOUT", 30.0),
            connect_retries=_int(env, "ERGOSTOL_CONNECT_RETRIES", 2),
            event_buffer=_int(env, "ERGOSTOL_EVENT_BUFFER", DEFAULT_CAPACITY),
            log_level=env.get("ERGOSTOL_LOG_LEVEL", "").strip().upper() or "WARNING",
        )
        if settings.connect_retries < 0:
            raise ValueError("ERGOSTOL_CONNECT_RETRIES must not be negative")
        if settings.event_buffer < 1:
            raise ValueError("ERGOSTOL_EVENT_BUFFER must be at least 1")
        if not isinstance(logging.getLevelName(settings.log_level), int):
            raise ValueError(f"ERGOSTOL_LOG_LEVEL is not a log level: {settings.log_level!r}")
        return settings
