"""Headless poller - runs the scheduler without the HTTP/WebSocket surface."""

from __future__ import annotations

import asyncio
import signal

from loguru import logger

from mailbeacon.infrastructure import configure_logging, get_settings
from mailbeacon.service import MailMonitor, build_monitor


class MonitorWorker:
    """
    Polls every active account on the configured interval until signalled.

    New events are persisted and logged; with no subscribers attached the
    hub simply has nobody to deliver to.
    """

    def __init__(self, monitor: MailMonitor):
        self.monitor = monitor
        self._stop = asyncio.Event()

    def _handle_shutdown(self, signum: int) -> None:
        """Handle graceful shutdown."""
        logger.info(f"Received signal {signum}, shutting down...")
        self._stop.set()

    def _log_stats(self) -> None:
        """Log current scheduler statistics."""
        stats = self.monitor.scheduler.stats
        logger.info(
            f"Worker stats: "
            f"cycles={stats.cycles}, "
            f"checks={stats.checks_started}, "
            f"failed={stats.checks_failed}, "
            f"inserted={stats.events_inserted}"
        )

    async def run(self) -> int:
        loop = asyncio.get_running_loop()
        for sig in (signal.SIGTERM, signal.SIGINT):
            loop.add_signal_handler(sig, self._handle_shutdown, sig)

        accounts = await asyncio.to_thread(self.monitor.accounts.list_active)
        logger.info(f"Worker starting with {len(accounts)} active account(s)")
        for account in accounts:
            logger.info(f"  - {account.email} ({account.protocol.value} {account.host}:{account.port})")

        # Initial poll, then the regular ticks
        await self.monitor.scheduler.run_cycle()
        self.monitor.start()

        await self._stop.wait()

        await self.monitor.stop()
        logger.info("Worker shutdown complete")
        self._log_stats()
        return 0


def main() -> int:
    """Entry point for the mailbeacon worker."""
    settings = get_settings()
    configure_logging(settings.log_level)

    logger.info("=" * 60)
    logger.info(f"{settings.app_name} Worker")
    logger.info("=" * 60)

    try:
        monitor = build_monitor(settings)
    except Exception as e:
        logger.error(f"Failed to initialize infrastructure: {e}")
        return 1

    return asyncio.run(MonitorWorker(monitor).run())


if __name__ == "__main__":
    raise SystemExit(main())
