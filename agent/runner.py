"""
Agent - Runtime.

============================================================
RESPONSIBILITY
============================================================
Drives the collector and the reporter on their own timers.

- Poll loop: samples metrics every poll_interval seconds
- Report loop: sends the snapshot every report_interval seconds
- SIGINT/SIGTERM stop both loops and close the HTTP session

============================================================
"""

import asyncio
import logging
import signal
import sys
from typing import List, Optional

from core.config import AgentConfig

from .collector import RuntimeMetrics
from .reporter import MetricsReporter


logger = logging.getLogger(__name__)


class Agent:
    """
    Poll and report loops around one collector.
    """

    def __init__(
        self,
        config: AgentConfig,
        collector: Optional[RuntimeMetrics] = None,
        reporter: Optional[MetricsReporter] = None,
    ):
        self._config = config
        self._collector = collector or RuntimeMetrics()
        self._reporter = reporter or MetricsReporter(config)
        self._tasks: List[asyncio.Task] = []
        self._running = False
        self._stopped: Optional[asyncio.Event] = None
        self._signals_installed = False

    @property
    def collector(self) -> RuntimeMetrics:
        return self._collector

    @property
    def is_running(self) -> bool:
        return self._running

    # --------------------------------------------------------
    # Lifecycle
    # --------------------------------------------------------

    async def start(self) -> None:
        """Start the poll and report loops."""
        if self._running:
            return

        self._running = True
        # Must be created on the running loop
        self._stopped = asyncio.Event()
        self._tasks = [
            asyncio.create_task(self._poll_loop(), name="agent-poll"),
            asyncio.create_task(self._report_loop(), name="agent-report"),
        ]
        logger.info(
            f"Agent started (server={self._config.address}, "
            f"poll={self._config.poll_interval}s, report={self._config.report_interval}s)"
        )

    async def stop(self) -> None:
        """Cancel both loops and close the HTTP session."""
        if not self._running:
            return

        self._running = False
        for task in self._tasks:
            task.cancel()
        await asyncio.gather(*self._tasks, return_exceptions=True)
        self._tasks = []

        await self._reporter.close()
        if self._stopped is not None:
            self._stopped.set()
        logger.info("Agent stopped")

    async def run(self) -> None:
        """Run until a termination signal arrives."""
        self._install_signal_handlers()
        try:
            await self.start()
            await self._stopped.wait()
        finally:
            await self.stop()
            self._restore_signal_handlers()

    # --------------------------------------------------------
    # Loops
    # --------------------------------------------------------

    async def poll_once(self) -> None:
        await asyncio.to_thread(self._collector.update)
        logger.debug("Metrics are updated")

    async def report_once(self) -> None:
        await self._reporter.report(self._collector.snapshot())

    async def _poll_loop(self) -> None:
        while self._running:
            await asyncio.sleep(self._config.poll_interval)
            await self.poll_once()

    async def _report_loop(self) -> None:
        while self._running:
            await asyncio.sleep(self._config.report_interval)
            await self.report_once()

    # --------------------------------------------------------
    # Signal Handlers
    # --------------------------------------------------------

    def _install_signal_handlers(self) -> None:
        """Install signal handlers for graceful shutdown."""
        if sys.platform == "win32":
            return

        loop = asyncio.get_running_loop()
        for sig in (signal.SIGTERM, signal.SIGINT):
            loop.add_signal_handler(
                sig,
                lambda s=sig: asyncio.create_task(self._async_signal_handler(s)),
            )
        self._signals_installed = True

    def _restore_signal_handlers(self) -> None:
        """Restore original signal handlers."""
        if not self._signals_installed:
            return

        loop = asyncio.get_running_loop()
        for sig in (signal.SIGTERM, signal.SIGINT):
            loop.remove_signal_handler(sig)
        self._signals_installed = False

    async def _async_signal_handler(self, sig: signal.Signals) -> None:
        logger.info(f"Received signal {sig.name}")
        await self.stop()
