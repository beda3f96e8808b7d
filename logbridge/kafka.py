"""Kafka topic transports built on aiokafka.

:class:`KafkaTopicSink` writes records to a topic (the write side of a
source connector, or the external side of the kafka-sink connector).
:class:`KafkaTopicSource` reads records from a topic.
"""

from __future__ import annotations

import asyncio
from collections.abc import AsyncIterator

import structlog
from aiokafka import AIOKafkaConsumer, AIOKafkaProducer, TopicPartition
from aiokafka.admin import AIOKafkaAdminClient, NewTopic
from aiokafka.errors import KafkaConnectionError, KafkaError, TopicAlreadyExistsError

from .config import ConsumerParameters, ProducerParameters
from .errors import DeliveryError, TransportError
from .interface import RecordSink, RecordSource
from .models import Record
from .settings import KafkaSettings

logger = structlog.get_logger()


def _connection_kwargs(settings: KafkaSettings) -> dict[str, object]:
    return {
        "bootstrap_servers": settings.bootstrap_servers,
        "client_id": settings.client_id,
        "security_protocol": settings.security_protocol,
        "ssl_context": settings.ssl_context(),
    }


async def ensure_topic(settings: KafkaSettings, topic: str) -> None:
    """Create *topic* with one partition unless it already exists."""
    admin = AIOKafkaAdminClient(**_connection_kwargs(settings))
    try:
        await admin.start()
    except KafkaConnectionError as exc:
        raise TransportError(f"cannot reach Kafka at {settings.bootstrap_servers}: {exc}") from exc
    try:
        existing = await admin.list_topics()
        if topic in existing:
            return
        await admin.create_topics([NewTopic(name=topic, num_partitions=1, replication_factor=1)])
        logger.info("kafka_topic_created", topic=topic)
    except TopicAlreadyExistsError:
        pass
    finally:
        await admin.close()


class KafkaTopicSink(RecordSink):
    """Writes records to a Kafka topic.

    A :class:`~aiokafka.errors.KafkaConnectionError` means the brokers are
    unreachable and is fatal; any other Kafka error is blamed on the record.
    """

    def __init__(
        self,
        settings: KafkaSettings,
        topic: str,
        *,
        producer_params: ProducerParameters | None = None,
        create_topic: bool = False,
        options: dict[str, object] | None = None,
    ) -> None:
        self._settings = settings
        self._options = options or {}
        self._params = producer_params or ProducerParameters()
        self.topic = topic
        self._create_topic = create_topic
        self._producer: AIOKafkaProducer | None = None

    def _producer_kwargs(self) -> dict[str, object]:
        kwargs = _connection_kwargs(self._settings)
        if self._params.linger_ms is not None:
            kwargs["linger_ms"] = self._params.linger_ms
        if self._params.compression is not None and self._params.compression.value != "none":
            kwargs["compression_type"] = self._params.compression.value
        if self._params.batch_size is not None:
            kwargs["max_batch_size"] = int(self._params.batch_size)
        kwargs.update(self._options)
        return kwargs

    async def start(self) -> None:
        if self._create_topic:
            await ensure_topic(self._settings, self.topic)
        self._producer = AIOKafkaProducer(**self._producer_kwargs())
        try:
            await self._producer.start()
        except KafkaConnectionError as exc:
            self._producer = None
            raise TransportError(f"cannot reach Kafka at {self._settings.bootstrap_servers}: {exc}") from exc
        logger.info(
            "kafka_producer_started",
            servers=self._settings.bootstrap_servers,
            topic=self.topic,
        )

    async def stop(self) -> None:
        if self._producer is not None:
            await self._producer.stop()
            self._producer = None
            logger.info("kafka_producer_stopped", topic=self.topic)

    async def send(self, record: Record, *, partition: int | None = None) -> None:
        """Publish *record* and wait for the broker acknowledgement."""
        assert self._producer is not None, "Producer not started"
        try:
            await self._producer.send_and_wait(
                self.topic,
                value=record.value,
                key=record.key,
                partition=partition,
            )
        except KafkaConnectionError as exc:
            raise TransportError(f"lost connection to Kafka: {exc}") from exc
        except KafkaError as exc:
            raise DeliveryError(f"{type(exc).__name__}: {exc}", record) from exc
        logger.debug(
            "record_sent",
            topic=self.topic,
            offset=record.offset,
            partition=partition,
        )


class KafkaTopicSource(RecordSource):
    """Reads records from a Kafka topic.

    With ``consumer.partition`` set the partition is assigned explicitly
    (and seeked to ``consumer.offset`` if given); otherwise the consumer
    subscribes to the whole topic starting from the latest offset.
    """

    def __init__(
        self,
        settings: KafkaSettings,
        topic: str,
        *,
        consumer_params: ConsumerParameters | None = None,
        group_id: str | None = None,
    ) -> None:
        self._settings = settings
        self._params = consumer_params or ConsumerParameters()
        self.topic = topic
        self._group_id = group_id
        self._consumer: AIOKafkaConsumer | None = None
        self._last_offset: int | None = None
        self._closing: asyncio.Task[None] | None = None

    async def start(self) -> None:
        if self._params.partition is None:
            self._consumer = AIOKafkaConsumer(
                self.topic,
                group_id=self._group_id,
                auto_offset_reset="latest",
                **_connection_kwargs(self._settings),
            )
        else:
            self._consumer = AIOKafkaConsumer(
                group_id=None,
                auto_offset_reset="latest",
                **_connection_kwargs(self._settings),
            )
        try:
            await self._consumer.start()
        except KafkaConnectionError as exc:
            self._consumer = None
            raise TransportError(f"cannot reach Kafka at {self._settings.bootstrap_servers}: {exc}") from exc

        if self._params.partition is not None:
            tp = TopicPartition(self.topic, self._params.partition)
            self._consumer.assign([tp])
            if self._params.offset is not None:
                self._consumer.seek(tp, self._params.offset)
        logger.info(
            "kafka_consumer_started",
            topic=self.topic,
            partition=self._params.partition,
            offset=self._params.offset,
        )

    async def stop(self) -> None:
        closing = self._closing
        if closing is not None and closing is not asyncio.current_task():
            self._closing = None
            await closing
        if self._consumer is not None:
            consumer, self._consumer = self._consumer, None
            await consumer.stop()
            logger.info("kafka_consumer_stopped", topic=self.topic)

    def close(self) -> None:
        # a stopped consumer ends its async iteration
        if self._consumer is not None and self._closing is None:
            self._closing = asyncio.get_running_loop().create_task(self.stop())

    async def __aiter__(self) -> AsyncIterator[Record]:
        assert self._consumer is not None, "Consumer not started"
        try:
            async for message in self._consumer:
                self._last_offset = message.offset
                yield Record(
                    value=message.value or b"",
                    key=message.key,
                    offset=message.offset,
                    partition=message.partition,
                )
        except KafkaConnectionError as exc:
            raise TransportError(f"lost connection to Kafka: {exc}") from exc

    async def health_check(self) -> dict[str, object]:
        return {
            "topic": self.topic,
            "partition": self._params.partition,
            "last_offset": self._last_offset,
        }
