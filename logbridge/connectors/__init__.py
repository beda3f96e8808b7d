"""Built-in connectors, keyed by the name used on the command line."""

from types import ModuleType

from . import kafka_sink, syslog, webhook_sink

CONNECTORS: dict[str, ModuleType] = {
    module.NAME: module for module in (syslog, kafka_sink, webhook_sink)
}

__all__ = ["CONNECTORS"]
