"""
Common worker launcher: telemetry, signals and the asyncio lifecycle.
"""

import asyncio
import signal
import sys
from typing import Optional, Any, Callable

from common.core.otel_axiom_exporter import get_logger


class WorkerLauncher:
    """Runs one queue worker until it is interrupted."""

    def __init__(self):
        self.logger = get_logger(__name__)
        self.worker_instance: Optional[Any] = None

    def _signal_handler(self, signum: int, frame: Any) -> None:
        self.logger.info(f"Received signal {signum}, initiating graceful shutdown...")
        if self.worker_instance:
            self.worker_instance.running = False
        sys.exit(0)

    def _register_signal_handlers(self):
        signal.signal(signal.SIGINT, self._signal_handler)
        signal.signal(signal.SIGTERM, self._signal_handler)

    async def _run_worker_async(self, worker_instance: Any, worker_name: str):
        self.worker_instance = worker_instance
        self._register_signal_handlers()

        try:
            self.logger.info(f"Starting {worker_name}...")
            await worker_instance.start()
        except Exception as e:
            self.logger.error(f"Worker failed with error: {e}", exc_info=True)
            raise
        finally:
            await worker_instance.stop()
            self.logger.info("Worker shutdown complete")

    def run(
        self,
        worker_factory: Callable,
        worker_name: str,
        factory_args: tuple = (),
        factory_kwargs: dict = None,
    ):
        """
        Main entry point to run a worker.

        Args:
            worker_factory: Function/class that creates the worker instance
            worker_name: Human readable name for logging
            factory_args: Args to pass to worker factory
            factory_kwargs: Kwargs to pass to worker factory
        """
        if factory_kwargs is None:
            factory_kwargs = {}

        self.logger.info(f"Configuring {worker_name}...")
        worker_instance = worker_factory(*factory_args, **factory_kwargs)

        try:
            asyncio.run(self._run_worker_async(worker_instance, worker_name))
        except KeyboardInterrupt:
            self.logger.info("Final keyboard interrupt caught, exiting...")
            sys.exit(0)
