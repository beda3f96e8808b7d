"""StreamBridge: pulls records from a source and pushes them to a sink."""

from __future__ import annotations

import asyncio
from typing import Any

import structlog

from .errors import DeliveryError
from .interface import RecordSink, RecordSource
from .models import BridgeStats, ConnectorStatus, Record


class StreamBridge:
    """Sequential pull/push loop between a :class:`RecordSource` and a
    :class:`RecordSink`.

    Records are handled one at a time in source order.  A
    :class:`~logbridge.errors.DeliveryError` drops that record (it is
    logged with its offset and partition) and the loop continues; any other
    exception, from the source or the sink, stops the loop and propagates.
    Nothing is retried here.

    When *partition* is set every record handed to the sink carries that
    partition.
    """

    def __init__(
        self,
        source: RecordSource,
        sink: RecordSink,
        *,
        name: str,
        partition: int | None = None,
        logger: Any = None,
        stop_event: asyncio.Event | None = None,
    ) -> None:
        self.source = source
        self.sink = sink
        self.name = name
        self.partition = partition
        self.status = ConnectorStatus.STARTING
        self.stats = BridgeStats()
        self._log = (logger or structlog.get_logger()).bind(connector=name)
        self._stop_event = stop_event or asyncio.Event()

    def stop(self) -> None:
        """Ask the loop to exit before pulling the next record."""
        self._stop_event.set()

    async def _deliver(self, record: Record) -> None:
        if self.partition is not None:
            record = record.model_copy(update={"partition": self.partition})

        self.stats.attempted += 1
        try:
            await self.sink.send(record, partition=self.partition)
        except DeliveryError as exc:
            self.stats.failed += 1
            self._log.error(
                "record_delivery_failed",
                offset=record.offset,
                partition=record.partition,
                error=str(exc),
            )
            return
        self.stats.delivered += 1

    async def run(self) -> BridgeStats:
        """Run until the source is exhausted, :meth:`stop` is called, or a
        fatal error occurs.  Returns the final counters.
        """
        self._log.info("bridge_started", partition=self.partition)
        self.status = ConnectorStatus.RUNNING
        try:
            async for record in self.source:
                if self._stop_event.is_set():
                    self._log.warning(
                        "record_dropped_on_shutdown",
                        offset=record.offset,
                        partition=record.partition,
                    )
                    break
                await self._deliver(record)
        except Exception:
            self.status = ConnectorStatus.FAILED
            self._log.exception("bridge_failed", **self.stats.model_dump())
            raise
        self.status = ConnectorStatus.STOPPED
        self._log.info("bridge_stopped", **self.stats.model_dump())
        return self.stats
