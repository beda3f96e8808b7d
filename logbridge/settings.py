"""Process-level settings loaded from environment variables.

Connector semantics live in the config file (see :mod:`logbridge.config`);
what differs per deployment (broker addresses, TLS material, log format)
is read from the environment via pydantic-settings.
"""

from __future__ import annotations

import ssl

from pydantic import Field
from pydantic_settings import BaseSettings


class KafkaSettings(BaseSettings):
    """Kafka connection settings."""

    model_config = {"env_prefix": "KAFKA_"}

    bootstrap_servers: str = Field(
        default="localhost:9092",
        description="Comma-separated Kafka bootstrap servers",
    )
    client_id: str = Field(default="logbridge", description="Client id sent to the brokers")
    ssl_ca_path: str | None = Field(default=None, description="Path to CA bundle")
    ssl_cert_path: str | None = Field(default=None, description="Path to client certificate")
    ssl_key_path: str | None = Field(default=None, description="Path to client private key")

    @property
    def security_protocol(self) -> str:
        return "SSL" if self.ssl_ca_path or self.ssl_cert_path else "PLAINTEXT"

    def ssl_context(self) -> ssl.SSLContext | None:
        """Build a client SSL context, or ``None`` for plaintext connections."""
        if self.security_protocol != "SSL":
            return None
        context = ssl.create_default_context(cafile=self.ssl_ca_path)
        if self.ssl_cert_path and self.ssl_key_path:
            context.load_cert_chain(certfile=self.ssl_cert_path, keyfile=self.ssl_key_path)
        return context


class RetrySettings(BaseSettings):
    """Backoff used while a transport is connecting at start-up."""

    model_config = {"env_prefix": "RETRY_"}

    max_attempts: int = Field(default=5, description="Maximum connection attempts")
    initial_wait_seconds: float = Field(default=1.0, description="Initial backoff wait")
    max_wait_seconds: float = Field(default=30.0, description="Maximum backoff wait")
    multiplier: float = Field(default=2.0, description="Exponential backoff multiplier")


class RuntimeSettings(BaseSettings):
    """Logging and health-probe settings for a connector process."""

    model_config = {"env_prefix": "LOGBRIDGE_"}

    log_level: str = Field(default="INFO", description="Root log level")
    log_json: bool = Field(default=True, description="Emit JSON log lines")
    health_enabled: bool = Field(default=False, description="Serve /health and /ready")
    health_port: int = Field(default=8080, description="Port for the health endpoints")
    queue_capacity: int = Field(
        default=64,
        description="Capacity of the file-change notification queue",
    )

    kafka: KafkaSettings = Field(default_factory=KafkaSettings)
    retry: RetrySettings = Field(default_factory=RetrySettings)
