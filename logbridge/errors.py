"""Exception hierarchy shared by config loading, sources, sinks and the bridge."""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from .models import Record


class BridgeError(Exception):
    """Base class for every error raised by logbridge."""


class ConfigError(BridgeError):
    """A configuration file could not be read, parsed or validated.

    ``path`` is the dotted field path (``producer.linger``) when known;
    ``line`` and ``column`` are 1-based and only set when the underlying
    parser reported a position.
    """

    def __init__(
        self,
        message: str,
        *,
        path: str | None = None,
        line: int | None = None,
        column: int | None = None,
    ) -> None:
        self.message = message
        self.path = path
        self.line = line
        self.column = column
        super().__init__(str(self))

    def __str__(self) -> str:
        text = f"{self.path}: {self.message}" if self.path else self.message
        if self.line is not None:
            text += f" at line {self.line} column {self.column}"
        return text


class DeliveryError(BridgeError):
    """A sink rejected (or could not enqueue) one specific record.

    The bridge logs these and moves on to the next record.
    """

    def __init__(self, message: str, record: Record | None = None) -> None:
        self.record = record
        super().__init__(message)


class TransportError(BridgeError):
    """The connection behind a source or sink is unusable.

    Fatal for the pipeline: the bridge re-raises it.
    """
