"""logbridge: connectors between external systems and Kafka topics.

Public API re-exported here for convenience::

    from logbridge import StreamBridge, FileTailSource, load_connector_config
"""

from .bridge import StreamBridge
from .config import (
    Compression,
    ConnectorConfig,
    ConsumerParameters,
    ProducerParameters,
    TailerConfig,
    TailSourceConfig,
    load_connector_config,
    load_connector_set,
    load_tailer_config,
)
from .errors import BridgeError, ConfigError, DeliveryError, TransportError
from .interface import RecordSink, RecordSource
from .logging import setup_logging
from .models import BridgeStats, ConnectorStatus, Direction, Record
from .parameters import ListValue, MapValue, SecretString, StringValue, classify_parameter
from .runner import ConnectorRunner
from .settings import KafkaSettings, RetrySettings, RuntimeSettings
from .tail import FileTailSource, StdinSource

__version__ = "0.3.0"

__all__ = [
    "BridgeError",
    "BridgeStats",
    "Compression",
    "ConfigError",
    "ConnectorConfig",
    "ConnectorRunner",
    "ConnectorStatus",
    "ConsumerParameters",
    "DeliveryError",
    "Direction",
    "FileTailSource",
    "KafkaSettings",
    "ListValue",
    "MapValue",
    "ProducerParameters",
    "Record",
    "RecordSink",
    "RecordSource",
    "RetrySettings",
    "RuntimeSettings",
    "SecretString",
    "StdinSource",
    "StreamBridge",
    "StringValue",
    "TailSourceConfig",
    "TailerConfig",
    "TransportError",
    "classify_parameter",
    "load_connector_config",
    "load_connector_set",
    "load_tailer_config",
    "setup_logging",
]
