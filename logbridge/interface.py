"""Abstract source and sink transports the bridge loop runs between."""

from __future__ import annotations

import abc
from collections.abc import AsyncIterator

from .models import Record


class RecordSource(abc.ABC):
    """A lazy, ordered and potentially infinite sequence of records.

    Iteration ends when the source is exhausted or closed.  A source whose
    underlying connection dies raises :class:`~logbridge.errors.TransportError`
    from the iterator.
    """

    async def start(self) -> None:
        """Open the underlying connection or file."""

    async def stop(self) -> None:
        """Release resources.  Safe to call more than once."""

    def close(self) -> None:
        """Make a pending or future iteration end.  Called from the loop
        thread, e.g. by a signal handler.
        """

    @abc.abstractmethod
    def __aiter__(self) -> AsyncIterator[Record]:
        ...

    async def health_check(self) -> dict[str, object]:
        """Return source-specific details for the ``/health`` response."""
        return {}


class RecordSink(abc.ABC):
    """Something records can be delivered to, one at a time."""

    async def start(self) -> None:
        """Open the underlying connection."""

    async def stop(self) -> None:
        """Flush and close.  Safe to call more than once."""

    @abc.abstractmethod
    async def send(self, record: Record, *, partition: int | None = None) -> None:
        """Deliver *record*.

        *partition*, when given, pins the record to that partition of the
        destination; otherwise the transport's own partitioning applies.

        Raises :class:`~logbridge.errors.DeliveryError` when this record
        alone could not be delivered and
        :class:`~logbridge.errors.TransportError` when the connection is
        unusable.
        """
        ...
