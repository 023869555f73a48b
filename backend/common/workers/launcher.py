"""
Entry-point helper for long-running workers.

Handles CLI parsing, logging level, SIGINT/SIGTERM and engine disposal so
worker scripts only declare their arguments.
"""

import asyncio
import signal
from typing import Any, Callable, Optional

from common.core.otel_axiom_exporter import configure_logging, get_logger
from common.db.session import dispose_engine


class WorkerLauncher:
    """
    Runs a worker exposing `async start()` and `async stop()`.

    A signal asks the worker to stop; the current sweep finishes before the
    loop exits.
    """

    def __init__(self):
        self.logger = get_logger(__name__)
        self.worker_instance: Optional[Any] = None

    def _request_stop(self, signame: str):
        self.logger.info(f"Received {signame}, stopping after the current run...")
        if self.worker_instance is not None:
            asyncio.ensure_future(self.worker_instance.stop())

    def _register_signal_handlers(self):
        loop = asyncio.get_running_loop()
        for sig in (signal.SIGINT, signal.SIGTERM):
            loop.add_signal_handler(sig, self._request_stop, sig.name)

    async def _run_worker_async(self, worker_instance: Any, worker_name: str):
        self.worker_instance = worker_instance
        self._register_signal_handlers()

        try:
            self.logger.info(f"Starting {worker_name}...")
            await worker_instance.start()
        except Exception as e:
            self.logger.error(f"{worker_name} failed: {e}", exc_info=True)
            raise
        finally:
            await dispose_engine()
            self.logger.info(f"{worker_name} shutdown complete")

    def run(
        self,
        worker_factory: Callable,
        worker_name: str,
        log_level: Optional[str] = None,
        factory_args: tuple = (),
        factory_kwargs: Optional[dict] = None,
    ):
        """
        Build the worker and run it until it stops.

        Args:
            worker_factory: Class or function creating the worker
            worker_name: Human readable name for logging
            log_level: Root log level, LOG_LEVEL setting when omitted
            factory_args: Args to pass to worker factory
            factory_kwargs: Kwargs to pass to worker factory
        """
        configure_logging(log_level)
        self.logger.info(f"Configuring {worker_name}...")

        worker_instance = worker_factory(*factory_args, **(factory_kwargs or {}))
        asyncio.run(self._run_worker_async(worker_instance, worker_name))

    def run_with_cli(
        self,
        worker_factory: Callable,
        worker_name: str,
        cli_setup_func: Callable,
    ):
        """
        Run a worker configured from the command line.

        `cli_setup_func` returns (args, factory_args, factory_kwargs); an
        `args.log_level` attribute overrides the configured log level.
        """
        args, factory_args, factory_kwargs = cli_setup_func()
        self.run(
            worker_factory=worker_factory,
            worker_name=worker_name,
            log_level=getattr(args, "log_level", None),
            factory_args=factory_args,
            factory_kwargs=factory_kwargs,
        )
