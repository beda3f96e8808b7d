"""Shared test fixtures for the logbridge test suite."""

from __future__ import annotations

from collections.abc import AsyncIterator
from unittest.mock import AsyncMock, MagicMock

import pytest

from logbridge.errors import DeliveryError
from logbridge.interface import RecordSink, RecordSource
from logbridge.models import Record
from logbridge.settings import KafkaSettings, RetrySettings, RuntimeSettings


@pytest.fixture
def kafka_settings() -> KafkaSettings:
    return KafkaSettings(bootstrap_servers="localhost:9092", client_id="test")


@pytest.fixture
def retry_settings() -> RetrySettings:
    return RetrySettings(
        max_attempts=3,
        initial_wait_seconds=0.01,
        max_wait_seconds=0.1,
        multiplier=2.0,
    )


@pytest.fixture
def runtime_settings(kafka_settings: KafkaSettings, retry_settings: RetrySettings) -> RuntimeSettings:
    return RuntimeSettings(
        log_json=False,
        health_port=18080,
        queue_capacity=8,
        kafka=kafka_settings,
        retry=retry_settings,
    )


@pytest.fixture
def mock_logger() -> MagicMock:
    """A structlog-shaped logger; ``bind()`` returns ``mock_logger.bind.return_value``."""
    return MagicMock()


@pytest.fixture
def mock_kafka_producer() -> AsyncMock:
    """A mock AIOKafkaProducer with async start/stop/send_and_wait."""
    producer = AsyncMock()
    producer.start = AsyncMock()
    producer.stop = AsyncMock()
    producer.send_and_wait = AsyncMock()
    return producer


@pytest.fixture
def write_config(tmp_path):
    """Write *text* to a config file under tmp_path and return its path."""

    def _write(text: str, name: str = "connector.yaml"):
        path = tmp_path / name
        path.write_text(text, encoding="utf-8")
        return path

    return _write


class ListSource(RecordSource):
    """Source that yields a fixed list of records, then optionally raises."""

    def __init__(self, records: list[Record], error: Exception | None = None) -> None:
        self.records = records
        self.error = error
        self.started = False
        self.stopped = False
        self.closed = False

    async def start(self) -> None:
        self.started = True

    async def stop(self) -> None:
        self.stopped = True

    def close(self) -> None:
        self.closed = True

    async def __aiter__(self) -> AsyncIterator[Record]:
        for record in self.records:
            yield record
        if self.error is not None:
            raise self.error


class CollectingSink(RecordSink):
    """Sink that keeps delivered records and rejects chosen offsets."""

    def __init__(self, reject_offsets: set[int] | None = None) -> None:
        self.reject_offsets = reject_offsets or set()
        self.attempts: list[tuple[Record, int | None]] = []
        self.delivered: list[Record] = []
        self.started = False
        self.stopped = False

    async def start(self) -> None:
        self.started = True

    async def stop(self) -> None:
        self.stopped = True

    async def send(self, record: Record, *, partition: int | None = None) -> None:
        self.attempts.append((record, partition))
        if record.offset in self.reject_offsets:
            raise DeliveryError("rejected", record)
        self.delivered.append(record)


@pytest.fixture
def record_factory():
    """Factory to create numbered records."""

    def _make(count: int) -> list[Record]:
        return [Record(value=f"line {i}".encode(), offset=i) for i in range(1, count + 1)]

    return _make
