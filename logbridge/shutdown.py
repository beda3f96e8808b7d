"""Graceful shutdown handling via SIGTERM / SIGINT."""

from __future__ import annotations

import asyncio
import signal
from collections.abc import Callable

import structlog

logger = structlog.get_logger()


def install_signal_handlers(on_shutdown: Callable[[], None]) -> None:
    """Register SIGTERM and SIGINT handlers that call *on_shutdown*.

    Call this once from the running event loop.  The callback runs on the
    loop thread, so it may close queues and set events directly.
    """
    loop = asyncio.get_running_loop()

    def _handle(sig: signal.Signals) -> None:
        logger.info("shutdown_signal_received", signal=sig.name)
        on_shutdown()

    for sig in (signal.SIGTERM, signal.SIGINT):
        loop.add_signal_handler(sig, _handle, sig)
