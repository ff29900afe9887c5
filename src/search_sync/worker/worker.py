"""Main worker class for continuous SQS polling."""

import asyncio
import signal
from collections.abc import Callable, Mapping
from typing import Any

from aiohttp import web

from search_sync.config import Settings, get_settings
from search_sync.core.logging import get_logger, setup_logging
from search_sync.repositories.content_repository import RestContentRepository
from search_sync.services.index_service import SearchIndexService
from search_sync.services.sync_service import SyncService
from search_sync.transform.transformers import FieldTransformer, TransformerRegistry
from search_sync.worker.handlers import MessageHandlerRegistry
from search_sync.worker.processor import MessageProcessor
from search_sync.worker.sqs_client import SQSClient

logger = get_logger(__name__)


class HealthCheckServer:
    """Lightweight HTTP server for health check endpoint."""

    def __init__(
        self,
        port: int = 8080,
        health_check_fn: Callable[[], dict[str, Any]] | None = None,
    ):
        """Initialize the health check server.

        Args:
            port: Port to run the server on.
            health_check_fn: Optional callable that returns health status dict.
        """
        self.port = port
        self.health_check_fn = health_check_fn or self._default_health_check
        self.runner: web.AppRunner | None = None

    def _default_health_check(self) -> dict[str, Any]:
        """Default health check response."""
        return {"status": "healthy"}

    async def _healthz_handler(self, request: web.Request) -> web.Response:
        """Health check endpoint handler."""
        return web.json_response(self.health_check_fn())

    def build_app(self) -> web.Application:
        app = web.Application()
        app.router.add_get("/healthz", self._healthz_handler)
        return app

    async def start(self) -> None:
        """Start the health check HTTP server."""
        self.runner = web.AppRunner(self.build_app())
        await self.runner.setup()

        site = web.TCPSite(self.runner, "0.0.0.0", self.port)
        await site.start()
        logger.info("Health check server started on port %d", self.port)

    async def stop(self) -> None:
        """Stop the health check HTTP server."""
        if self.runner:
            await self.runner.cleanup()
            self.runner = None
            logger.info("Health check server stopped")


class SQSWorker:
    """Worker that mirrors document lifecycle events from SQS into the index."""

    def __init__(
        self,
        settings: Settings | None = None,
        *,
        sqs_client: SQSClient | None = None,
        index_service: SearchIndexService | None = None,
        transformers: Mapping[str, FieldTransformer] | None = None,
    ):
        """Initialize the worker.

        Args:
            settings: Application settings; loaded from the environment when omitted.
            sqs_client: SQS client; built from settings when omitted.
            index_service: Index client; built from settings when omitted.
            transformers: Field transformers overriding the defaults per type tag.
        """
        self.settings = settings or get_settings()
        self.sqs_client = sqs_client or SQSClient(self.settings)
        self.index_service = index_service or SearchIndexService(self.settings)
        self.sync_service = SyncService(
            self.settings,
            RestContentRepository(self.settings),
            self.index_service,
            TransformerRegistry(transformers),
        )
        self.processor = MessageProcessor(
            self.settings,
            self.sqs_client,
            MessageHandlerRegistry(self.settings, self.sync_service),
        )
        self.running = False
        self.shutdown_event: asyncio.Event | None = None
        self.health_server = HealthCheckServer(
            port=self.settings.worker_health_port,
            health_check_fn=self._get_health_status,
        )

    def _setup_signal_handlers(self) -> None:
        """Setup signal handlers for graceful shutdown."""

        def signal_handler(sig: int, frame: Any) -> None:
            """Handle shutdown signals."""
            logger.info("Received signal %s, initiating graceful shutdown...", sig)
            if self.shutdown_event:
                self.shutdown_event.set()

        signal.signal(signal.SIGINT, signal_handler)
        signal.signal(signal.SIGTERM, signal_handler)

    def _get_health_status(self) -> dict[str, Any]:
        """Get current health status.

        Returns:
            dict[str, Any]: Health status information.
        """
        return {
            "status": "healthy" if self.running else "stopped",
            "queue_url": self.settings.sqs_queue_url,
            "region": self.settings.aws_region,
            "index": self.settings.index_name,
        }

    async def poll_once(self) -> tuple[int, int]:
        """Poll SQS and process the received messages once.

        Returns:
            tuple[int, int]: (successful_count, failed_count).
        """
        try:
            messages = await self.sqs_client.receive_messages()

            if not messages:
                logger.debug("No messages received")
                return 0, 0

            success_count, failed_count = await self.processor.process_messages_batch(messages)
            logger.info("Batch complete: %d succeeded, %d failed", success_count, failed_count)
            return success_count, failed_count

        except Exception as e:
            logger.error("Error in poll cycle: %s", e, exc_info=True)
            return 0, 0

    async def start(self) -> None:
        """Start the worker and begin polling."""
        setup_logging()
        logger.info("Starting SQS Worker...")
        logger.info("Environment: %s", self.settings.environment)
        logger.info("Queue URL: %s", self.settings.sqs_queue_url)
        logger.info("AWS Region: %s", self.settings.aws_region)

        if self.settings.disabled:
            logger.info("Search sync is disabled. Exiting.")
            return

        if not self.settings.sqs_queue_url:
            logger.error("SQS_QUEUE_URL not configured. Exiting.")
            return

        # Create shutdown event in the running event loop
        self.shutdown_event = asyncio.Event()

        self._setup_signal_handlers()
        self.running = True

        await self.health_server.start()

        logger.info("Worker started. Polling for messages...")

        try:
            while self.running and not self.shutdown_event.is_set():
                await self.poll_once()

                if self.settings.worker_poll_interval > 0:
                    await asyncio.sleep(self.settings.worker_poll_interval)

        except asyncio.CancelledError:
            logger.info("Worker task cancelled")
        except Exception as e:
            logger.error("Fatal error in worker: %s", e, exc_info=True)
        finally:
            await self.stop()

    async def stop(self) -> None:
        """Stop the worker gracefully."""
        logger.info("Stopping worker...")
        self.running = False

        await self.health_server.stop()

        try:
            await asyncio.wait_for(
                self.index_service.aclose(),
                timeout=self.settings.worker_shutdown_timeout,
            )
        except TimeoutError:
            logger.warning("Shutdown timeout reached, forcing stop")

        logger.info("Worker stopped")


async def main() -> None:
    """Main entry point for the worker."""
    worker = SQSWorker()
    await worker.start()


def run() -> None:
    """Console script entry point."""
    asyncio.run(main())


if __name__ == "__main__":
    run()
