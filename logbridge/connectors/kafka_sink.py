"""kafka-sink connector: copies a topic to a topic on an external Kafka cluster.

Parameters (Format A ``parameters`` block):

``kafka-url``
    Bootstrap servers of the external cluster (required; may also be given
    as a secret).
``kafka-topic``
    Destination topic; defaults to the connector's own ``topic``.
``kafka-partition``
    Pin every record to this destination partition.
``kafka-option``
    Extra producer settings, as a list of ``key:value`` items or a map.
    Dotted keys are accepted (``linger.ms``); every key must name an
    aiokafka producer argument.
``kafka-ssl-ca-file``, ``kafka-ssl-cert-file``, ``kafka-ssl-key-file``
    TLS material for the external cluster.
"""

from __future__ import annotations

import inspect
from pathlib import Path

from aiokafka import AIOKafkaProducer

from ..config import ConnectorConfig, load_connector_config
from ..errors import ConfigError
from ..kafka import KafkaTopicSink, KafkaTopicSource
from ..models import Direction
from ..parameters import ListValue, MapValue
from ..runner import ConnectorRunner
from ..settings import KafkaSettings, RuntimeSettings

NAME = "kafka-sink"
DIRECTION = Direction.SINK
DESCRIPTION = "Copy records from a topic to an external Kafka cluster"
CONFIG_MODEL = ConnectorConfig

_PRODUCER_OPTIONS = frozenset(inspect.signature(AIOKafkaProducer.__init__).parameters) - {"self"}


def _coerce(text: str) -> object:
    if text.lstrip("-").isdigit():
        return int(text)
    if text in ("true", "false"):
        return text == "true"
    return text


def parse_options(config: ConnectorConfig) -> dict[str, object]:
    """Turn ``kafka-option`` into aiokafka producer keyword arguments."""
    value = config.parameter_value("kafka-option")
    if isinstance(value, MapValue):
        pairs = list(value.entries.items())
    else:
        items = value.items if isinstance(value, ListValue) else (value.text,)
        pairs = []
        for item in items:
            key, sep, option = item.partition(":")
            if not sep or not key:
                raise ConfigError(
                    f"expected key:value, got {item!r}",
                    path="parameters.kafka-option",
                )
            pairs.append((key, option))
    options = {key.replace(".", "_"): _coerce(option) for key, option in pairs}
    unknown = [key for key, _ in pairs if key.replace(".", "_") not in _PRODUCER_OPTIONS]
    if unknown:
        raise ConfigError(
            f"unknown producer option(s): {', '.join(unknown)}",
            path="parameters.kafka-option",
        )
    return options


def _partition(config: ConnectorConfig) -> int | None:
    text = config.parameter("kafka-partition")
    if text is None:
        return None
    try:
        return int(text)
    except ValueError:
        raise ConfigError(f"expected an integer, got {text!r}", path="parameters.kafka-partition") from None


def _external_settings(config: ConnectorConfig) -> KafkaSettings:
    secret = config.secret("kafka-url")
    url = secret.get_secret_value() if secret is not None else config.parameter("kafka-url")
    if not url:
        raise ConfigError("missing parameter `kafka-url`", path="parameters")
    return KafkaSettings(
        bootstrap_servers=url,
        ssl_ca_path=config.parameter("kafka-ssl-ca-file"),
        ssl_cert_path=config.parameter("kafka-ssl-cert-file"),
        ssl_key_path=config.parameter("kafka-ssl-key-file"),
    )


def build_runners(config_path: str | Path, settings: RuntimeSettings) -> list[ConnectorRunner]:
    config = load_connector_config(config_path)
    return [build_runner(config, settings)]


def build_runner(config: ConnectorConfig, settings: RuntimeSettings) -> ConnectorRunner:
    source = KafkaTopicSource(
        settings.kafka,
        config.topic,
        consumer_params=config.consumer,
        group_id=config.name,
    )
    sink = KafkaTopicSink(
        _external_settings(config),
        config.parameter("kafka-topic", config.topic),
        producer_params=config.producer,
        create_topic=config.create_topic,
        options=parse_options(config),
    )
    return ConnectorRunner(config.name, source, sink, settings, partition=_partition(config))

