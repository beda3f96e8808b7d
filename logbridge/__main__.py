"""Entry point for the logbridge package.

Usage::

    python -m logbridge <connector> <config-path>   # run a connector
    python -m logbridge metadata <connector>        # print its config schema

Connectors: ``syslog``, ``kafka-sink``, ``webhook-sink``.
"""

from __future__ import annotations

import asyncio
import json
import sys

import structlog

from . import __version__
from .connectors import CONNECTORS
from .errors import BridgeError, ConfigError
from .logging import setup_logging
from .runner import run_all
from .settings import RuntimeSettings

USAGE = (
    "Usage: python -m logbridge <connector> <config-path>\n"
    "       python -m logbridge metadata <connector>\n"
    f"Connectors: {', '.join(sorted(CONNECTORS))}"
)


def metadata(name: str) -> dict[str, object]:
    """Describe a connector and the schema of its config file."""
    module = CONNECTORS[name]
    return {
        "name": module.NAME,
        "version": __version__,
        "description": module.DESCRIPTION,
        "direction": module.DIRECTION.value,
        "schema": module.CONFIG_MODEL.model_json_schema(by_alias=True),
    }


def main(argv: list[str] | None = None) -> int:
    args = sys.argv[1:] if argv is None else argv
    if len(args) != 2:
        print(USAGE, file=sys.stderr)
        return 2

    if args[0] == "metadata":
        if args[1] not in CONNECTORS:
            print(USAGE, file=sys.stderr)
            return 2
        print(json.dumps(metadata(args[1]), indent=2))
        return 0

    name, config_path = args
    if name not in CONNECTORS:
        print(USAGE, file=sys.stderr)
        return 2

    settings = RuntimeSettings()
    setup_logging(json=settings.log_json, level=settings.log_level)
    logger = structlog.get_logger()
    logger.info("logbridge_starting", connector=name, version=__version__)

    try:
        runners = CONNECTORS[name].build_runners(config_path, settings)
    except ConfigError as exc:
        logger.error("config_invalid", connector=name, error=str(exc))
        return 1

    try:
        asyncio.run(run_all(runners))
    except BridgeError as exc:
        logger.error("connector_failed", connector=name, error=str(exc))
        return 1
    except KeyboardInterrupt:
        pass
    return 0


if __name__ == "__main__":
    sys.exit(main())
