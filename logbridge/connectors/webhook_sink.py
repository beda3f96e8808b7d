"""webhook-sink connector: posts every record of a topic to a chat webhook.

The webhook URL embeds a token, so it is read from ``secrets.webhook-url``
first and only then from ``parameters.webhook-url``.
"""

from __future__ import annotations

from pathlib import Path

from ..config import ConnectorConfig, load_connector_config
from ..errors import ConfigError
from ..kafka import KafkaTopicSource
from ..models import Direction
from ..runner import ConnectorRunner
from ..settings import RuntimeSettings
from ..units import parse_duration
from ..webhook import WebhookSink

NAME = "webhook-sink"
DIRECTION = Direction.SINK
DESCRIPTION = "Post records from a topic to an incoming webhook"
CONFIG_MODEL = ConnectorConfig


def build_runners(config_path: str | Path, settings: RuntimeSettings) -> list[ConnectorRunner]:
    config = load_connector_config(config_path)
    return [build_runner(config, settings)]


def build_runner(config: ConnectorConfig, settings: RuntimeSettings) -> ConnectorRunner:
    secret = config.secret("webhook-url")
    url = secret.get_secret_value() if secret is not None else config.parameter("webhook-url")
    if not url:
        raise ConfigError("missing secret `webhook-url`", path="secrets")

    timeout = 30.0
    if (text := config.parameter("timeout")) is not None:
        try:
            timeout = parse_duration(text).total_seconds()
        except ValueError as exc:
            raise ConfigError(str(exc), path="parameters.timeout") from None
    sink = WebhookSink(url, timeout_seconds=timeout)
    source = KafkaTopicSource(
        settings.kafka,
        config.topic,
        consumer_params=config.consumer,
        group_id=config.name,
    )
    return ConnectorRunner(config.name, source, sink, settings)
