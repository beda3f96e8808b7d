"""Webhook sink: POSTs each record as a ``{"text": ...}`` JSON message."""

from __future__ import annotations

import httpx
import structlog

from .errors import DeliveryError, TransportError
from .interface import RecordSink
from .models import Record

logger = structlog.get_logger()


class WebhookSink(RecordSink):
    """Delivers records to a chat-style incoming webhook (e.g. Slack).

    The record value is decoded as UTF-8 (invalid bytes replaced) and sent
    as the ``text`` field.  Failing to connect at all is fatal; a timeout or
    a non-2xx answer only loses the record in hand.
    """

    def __init__(self, url: str, *, timeout_seconds: float = 30.0) -> None:
        self._url = url
        self._timeout = timeout_seconds
        self._client: httpx.AsyncClient | None = None

    async def start(self) -> None:
        self._client = httpx.AsyncClient(timeout=httpx.Timeout(self._timeout))
        logger.info("webhook_client_started", host=httpx.URL(self._url).host)

    async def stop(self) -> None:
        if self._client is not None:
            await self._client.aclose()
            self._client = None
            logger.info("webhook_client_stopped")

    async def send(self, record: Record, *, partition: int | None = None) -> None:
        assert self._client is not None, "Client not started"

        text = record.value.decode("utf-8", errors="replace")
        try:
            response = await self._client.post(self._url, json={"text": text})
            response.raise_for_status()
        except httpx.ConnectError as exc:
            raise TransportError(f"cannot reach webhook: {exc}") from exc
        except httpx.HTTPStatusError as exc:
            raise DeliveryError(f"webhook answered {exc.response.status_code}", record) from exc
        except httpx.HTTPError as exc:
            raise DeliveryError(f"{type(exc).__name__}: {exc}", record) from exc
        logger.debug("webhook_record_sent", offset=record.offset, status_code=response.status_code)
