"""Data models shared by sources, sinks and the bridge loop."""

from __future__ import annotations

from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field


class ConnectorStatus(str, Enum):
    """Runtime status of a connector instance."""

    STARTING = "starting"
    RUNNING = "running"
    FAILED = "failed"
    STOPPING = "stopping"
    STOPPED = "stopped"


class Direction(str, Enum):
    """Which way a connector moves records relative to the topic."""

    SOURCE = "source"
    SINK = "sink"


class Record(BaseModel):
    """One unit of data moving through a bridge.

    ``offset`` and ``partition`` describe where the record came from; a
    file-tailing source reports the byte offset of the line and partition 0.
    """

    model_config = ConfigDict(frozen=True)

    value: bytes = Field(description="Record payload")
    key: bytes | None = Field(default=None, description="Optional record key")
    offset: int = Field(default=0, description="Position in the source")
    partition: int = Field(default=0, description="Source partition")


class BridgeStats(BaseModel):
    """Counters kept by a running bridge."""

    attempted: int = 0
    delivered: int = 0
    failed: int = 0


class HealthStatus(BaseModel):
    """Response model for the /health probe endpoint."""

    connector_name: str = Field(description="Name of the connector")
    status: ConnectorStatus = Field(description="Current connector status")
    uptime_seconds: float = Field(description="Seconds since the connector started")
    stats: BridgeStats = Field(default_factory=BridgeStats)
    details: dict[str, Any] = Field(
        default_factory=dict,
        description="Connector-specific health details",
    )
