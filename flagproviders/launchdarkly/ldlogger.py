"""Minimal logging interface used by the LaunchDarkly provider."""

from __future__ import annotations

import logging
from typing import Any, Protocol, runtime_checkable


@runtime_checkable
class Logger(Protocol):
    """Receives printf-style messages from the provider."""

    def debug(self, msg: str, *args: Any) -> None: ...

    def error(self, msg: str, *args: Any) -> None: ...

    def warn(self, msg: str, *args: Any) -> None: ...


def _silent_logger() -> logging.Logger:
    logger = logging.getLogger("flagproviders.launchdarkly.discarded")
    if not any(isinstance(handler, logging.NullHandler) for handler in logger.handlers):
        logger.addHandler(logging.NullHandler())
    logger.propagate = False
    logger.setLevel(logging.CRITICAL + 1)
    return logger


class NoOpLogger:
    """A logger that discards every message without formatting it."""

    def __init__(self) -> None:
        self._sink = _silent_logger()

    def debug(self, msg: str, *args: Any) -> None:
        """Discard a debug message."""
        self._sink.debug(msg, *args)

    def info(self, msg: str, *args: Any) -> None:
        """Discard an informational message."""
        self._sink.info(msg, *args)

    def error(self, msg: str, *args: Any) -> None:
        """Discard an error message."""
        self._sink.error(msg, *args)

    def warn(self, msg: str, *args: Any) -> None:
        """Discard a warning."""
        self._sink.warning(msg, *args)