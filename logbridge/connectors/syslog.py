"""syslog connector: tails a file (or stdin) into a topic, one record per line."""

from __future__ import annotations

from pathlib import Path

from ..config import TailerConfig, TailSourceConfig, load_tailer_config
from ..errors import ConfigError
from ..interface import RecordSource
from ..kafka import KafkaTopicSink
from ..models import Direction
from ..runner import ConnectorRunner
from ..settings import RuntimeSettings
from ..tail import FileTailSource, StdinSource

NAME = "syslog"
DIRECTION = Direction.SOURCE
DESCRIPTION = "Forward lines appended to a file, or read from stdin, to a topic"
CONFIG_MODEL = TailerConfig


def _build_source(entry: TailSourceConfig, settings: RuntimeSettings) -> RecordSource:
    if entry.input_file is not None:
        return FileTailSource(
            entry.input_file,
            capacity=settings.queue_capacity,
            filter_prefix=entry.filter_prefix,
        )
    return StdinSource(capacity=settings.queue_capacity, filter_prefix=entry.filter_prefix)


def build_runners(config_path: str | Path, settings: RuntimeSettings) -> list[ConnectorRunner]:
    """Load a tailer config and build one pipeline per ``[[source]]`` entry."""
    config = load_tailer_config(config_path)
    if not config.source:
        raise ConfigError("at least one source is required", path="source")

    stdin_readers = [entry.name for entry in config.source if entry.input_file is None]
    if len(stdin_readers) > 1:
        raise ConfigError(
            f"only one source may read stdin, got {', '.join(stdin_readers)}",
            path="source",
        )

    runners = []
    for index, entry in enumerate(config.source):
        if entry.bind_url is not None:
            raise ConfigError("network bind mode is not supported", path=f"source.{index}.bind_url")
        sink = KafkaTopicSink(settings.kafka, entry.topic, create_topic=entry.create_topic)
        runners.append(ConnectorRunner(entry.name, _build_source(entry, settings), sink, settings))
    return runners
