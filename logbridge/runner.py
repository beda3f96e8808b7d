"""ConnectorRunner: starts transports, runs the bridge, tears down."""

from __future__ import annotations

import asyncio
import time

import structlog
import uvicorn

from .bridge import StreamBridge
from .health import create_health_app
from .interface import RecordSink, RecordSource
from .models import BridgeStats, ConnectorStatus
from .retry import start_with_retry
from .settings import RuntimeSettings
from .shutdown import install_signal_handlers

logger = structlog.get_logger()


class ConnectorRunner:
    """Owns one pipeline: a source, a sink and the bridge between them.

    ``run()`` connects the sink, then the source (both with start-up
    backoff), optionally serves the health endpoints, and runs the bridge
    until the source ends, a shutdown signal arrives, or a fatal error
    propagates.  Transports are always stopped on the way out.
    """

    def __init__(
        self,
        name: str,
        source: RecordSource,
        sink: RecordSink,
        settings: RuntimeSettings,
        *,
        partition: int | None = None,
        install_signals: bool = True,
    ) -> None:
        self.name = name
        self.settings = settings
        self.start_time: float = time.monotonic()
        self.install_signals = install_signals
        self._shutdown_event = asyncio.Event()
        self.bridge = StreamBridge(
            source,
            sink,
            name=name,
            partition=partition,
            stop_event=self._shutdown_event,
        )

    @property
    def status(self) -> ConnectorStatus:
        return self.bridge.status

    def shutdown(self) -> None:
        """Stop pulling records and close the source."""
        self._shutdown_event.set()
        self.bridge.source.close()

    async def _run_health_server(self) -> None:
        app = create_health_app(self)
        config = uvicorn.Config(
            app,
            host="0.0.0.0",
            port=self.settings.health_port,
            log_level="warning",
        )
        server = uvicorn.Server(config)

        serve_task = asyncio.create_task(server.serve())
        await self._shutdown_event.wait()
        server.should_exit = True
        await serve_task

    async def run(self) -> BridgeStats:
        """Run the pipeline to completion.  Fatal errors propagate."""
        if self.install_signals:
            install_signal_handlers(self.shutdown)
        self.start_time = time.monotonic()
        source, sink = self.bridge.source, self.bridge.sink

        logger.info("connector_starting", connector=self.name)
        health_task: asyncio.Task[None] | None = None
        try:
            await start_with_retry(sink.start, self.settings.retry, what="sink")
            await start_with_retry(source.start, self.settings.retry, what="source")
            if self.settings.health_enabled:
                health_task = asyncio.create_task(self._run_health_server())
            return await self.bridge.run()
        finally:
            self._shutdown_event.set()
            if health_task is not None:
                await health_task
            await source.stop()
            await sink.stop()
            logger.info("connector_stopped", connector=self.name, status=self.bridge.status.value)


async def run_all(runners: list[ConnectorRunner]) -> list[BridgeStats]:
    """Run several pipelines side by side under one set of signal handlers.

    The first fatal error propagates; the remaining pipelines are shut down.
    """
    if len(runners) == 1:
        return [await runners[0].run()]

    def _shutdown_all() -> None:
        for runner in runners:
            runner.shutdown()

    for index, runner in enumerate(runners):
        runner.install_signals = False
        if index:
            # one health server per process
            runner.settings = runner.settings.model_copy(update={"health_enabled": False})
    install_signal_handlers(_shutdown_all)

    tasks = [asyncio.create_task(runner.run()) for runner in runners]
    try:
        return list(await asyncio.gather(*tasks))
    except BaseException:
        _shutdown_all()
        for task in tasks:
            task.cancel()
        await asyncio.gather(*tasks, return_exceptions=True)
        raise
