"""
Main application orchestrator for the Flat Notifier system.

This module wires the components together, drives the fixed-interval poll
scheduler, runs the Telegram command bot and handles graceful shutdown.
"""

import asyncio
import signal
import sys
from datetime import datetime, timedelta
from typing import Any, Dict, Optional

from .components.feed_fetcher import FeedFetcher
from .components.feed_parser import FeedParser
from .components.listing_formatter import ListingFormatter
from .components.matcher import SubscriptionMatcher
from .components.notifier import TelegramNotifier
from .components.telegram_bot_handler import TelegramBotHandler
from .models.config import Configuration
from .models.cycle import CycleReport
from .services.config_manager import ConfigurationManager
from .services.database import Database
from .services.delivery_ledger import DeliveryLedger
from .services.failure_sink import FailureSink
from .services.listing_store import ListingStore
from .services.poll_service import PollService
from .services.subscription_store import SubscriptionStore
from .utils.error_handling import (
    ErrorCategory,
    ErrorSeverity,
    get_error_tracker,
    with_error_handling,
)
from .utils.logging import get_logger, setup_logging


class ApplicationOrchestrator:
    """
    Coordinates all system components.

    Owns the component lifecycle: configuration and schema setup, the poll
    scheduler, the bot, and shutdown on signal.
    """

    def __init__(self, config_path: Optional[str] = None):
        """
        Initialize the application orchestrator.

        Args:
            config_path: Path to configuration file. If None, uses default paths.
        """
        self.logger = get_logger("orchestrator")
        self.config_path = config_path
        self.error_tracker = get_error_tracker()

        self._running = False
        self._shutdown_event: Optional[asyncio.Event] = None

        self._config: Optional[Configuration] = None
        self._database: Optional[Database] = None
        self._poll_service: Optional[PollService] = None
        self._notifier: Optional[TelegramNotifier] = None
        self._bot_handler: Optional[TelegramBotHandler] = None

        self._startup_time: Optional[datetime] = None
        self._component_health: Dict[str, bool] = {}
        self._cycle_count = 0
        self._failed_cycles = 0
        self._last_report: Optional[CycleReport] = None

    @with_error_handling(
        component="orchestrator",
        category=ErrorCategory.SYSTEM,
        severity=ErrorSeverity.CRITICAL,
        fallback_value=False,
        suppress_exceptions=True,
    )
    async def initialize(self) -> bool:
        """
        Load configuration and build every component.

        Returns:
            True if initialization successful, False otherwise.
        """
        if not self._load_configuration():
            return False

        config = self._config
        setup_logging(config.log_dir, config.log_level)
        self.logger = get_logger("orchestrator")
        self.logger.info("Initializing Flat Notifier...")

        self._database = Database(config.database.url, echo=config.database.echo)
        self._database.create_all()
        self._component_health["database"] = True

        failure_sink = FailureSink(self._database)
        subscription_store = SubscriptionStore(self._database)
        formatter = ListingFormatter()

        self._notifier = TelegramNotifier(
            config.telegram.bot_token, timeout=config.telegram.request_timeout
        )
        self._poll_service = PollService(
            fetcher=FeedFetcher(
                config.feed.url, config.feed.district_base_url, config.feed.timeout
            ),
            parser=FeedParser(failure_sink, category=config.feed.category),
            listing_store=ListingStore(self._database),
            subscription_store=subscription_store,
            ledger=DeliveryLedger(self._database),
            matcher=SubscriptionMatcher(),
            formatter=formatter,
            notifier=self._notifier,
            failure_sink=failure_sink,
            recent_window=timedelta(minutes=config.recent_window_minutes),
        )
        self._component_health["poll_service"] = True

        self._bot_handler = TelegramBotHandler(
            config.telegram.bot_token,
            subscription_store=subscription_store,
            poll_service=self._poll_service,
            formatter=formatter,
            failure_sink=failure_sink,
            admin_chat_ids=config.telegram.admin_chat_ids,
        )

        loop = asyncio.get_running_loop()
        self._component_health["notifier"] = await loop.run_in_executor(
            None, self._notifier.test_connection
        )
        if not self._component_health["notifier"]:
            self.logger.warning("Telegram API unreachable, deliveries will fail until it recovers")

        self._startup_time = datetime.now()
        self.logger.info(
            "System initialization completed",
            extra={
                "polling_interval": config.polling_interval,
                "recent_window_minutes": config.recent_window_minutes,
                "database": self._database.engine.url.get_backend_name(),
            },
        )
        return True

    @with_error_handling(
        component="orchestrator",
        category=ErrorCategory.CONFIGURATION,
        severity=ErrorSeverity.CRITICAL,
        fallback_value=False,
        suppress_exceptions=True,
    )
    def _load_configuration(self) -> bool:
        """Load and validate system configuration."""
        self._config = ConfigurationManager(self.config_path).load_config()
        self.logger.info("Configuration loaded and validated successfully")
        return True

    def _setup_signal_handlers(self) -> None:
        """Setup signal handlers for graceful shutdown."""
        if sys.platform == "win32":
            # The Windows event loop has no add_signal_handler
            return

        loop = asyncio.get_running_loop()
        for signum in (signal.SIGINT, signal.SIGTERM):
            loop.add_signal_handler(signum, self._signal_handler, signum)

    def _signal_handler(self, signum: int) -> None:
        self.logger.info(
            "Received shutdown signal, initiating graceful shutdown",
            extra={"signal": signum},
        )
        self._running = False
        if self._shutdown_event is not None:
            self._shutdown_event.set()

    async def start(self) -> None:
        """Start the bot and the poll scheduler; returns once shutdown is requested."""
        if self._running:
            self.logger.warning("System is already running")
            return

        self._running = True

        try:
            await self._bot_handler.start_polling()
            self._component_health["telegram_bot"] = True
        except Exception as e:
            # Scheduled notifications keep working without the command bot
            self._component_health["telegram_bot"] = False
            self.error_tracker.record_error(
                component="orchestrator",
                category=ErrorCategory.MESSAGE_DELIVERY,
                severity=ErrorSeverity.HIGH,
                message=f"Telegram bot failed to start: {e}",
                exception=e,
            )

        self.logger.info("Starting poll scheduler...")
        await self._scheduler_loop()

    async def _scheduler_loop(self) -> None:
        """Run a poll cycle every polling_interval seconds until shutdown."""
        interval = self._config.polling_interval

        while self._running and not self._shutdown_event.is_set():
            await self.run_cycle_once()

            try:
                await asyncio.wait_for(self._shutdown_event.wait(), timeout=interval)
            except asyncio.TimeoutError:
                continue

    async def run_cycle_once(self) -> Optional[CycleReport]:
        """Run one poll cycle in a worker thread."""
        loop = asyncio.get_running_loop()
        self._cycle_count += 1

        try:
            report = await loop.run_in_executor(None, self._poll_service.run_cycle)
        except Exception as e:
            self._failed_cycles += 1
            self.error_tracker.record_error(
                component="orchestrator",
                category=ErrorCategory.SYSTEM,
                severity=ErrorSeverity.HIGH,
                message=f"Poll cycle failed: {e}",
                exception=e,
                context={"cycle": self._cycle_count},
            )
            return None

        self._last_report = report
        return report

    async def shutdown(self) -> None:
        """Gracefully shutdown the system."""
        self.logger.info("Initiating graceful shutdown...")
        self._running = False
        if self._shutdown_event is not None:
            self._shutdown_event.set()

        if self._bot_handler:
            await self._bot_handler.stop_polling()

        if self._database:
            self._database.dispose()

        uptime = datetime.now() - self._startup_time if self._startup_time else None
        self.logger.info(
            "System shutdown complete",
            extra={"uptime": str(uptime), "cycles": self._cycle_count},
        )

    def get_system_status(self) -> Dict[str, Any]:
        """Get current system status information."""
        last_report = self._last_report
        return {
            "running": self._running,
            "startup_time": self._startup_time.isoformat()
            if self._startup_time
            else None,
            "uptime": str(datetime.now() - self._startup_time)
            if self._startup_time
            else None,
            "component_health": self._component_health.copy(),
            "cycles": self._cycle_count,
            "failed_cycles": self._failed_cycles,
            "last_cycle": {
                "finished_at": last_report.finished_at.isoformat()
                if last_report.finished_at
                else None,
                "created": last_report.created,
                "sent": last_report.sent,
                "send_failures": last_report.send_failures,
            }
            if last_report
            else None,
            "errors": self.error_tracker.get_error_stats(),
            "config_loaded": self._config is not None,
        }

    async def run(self) -> bool:
        """
        Run the complete application lifecycle.

        Returns:
            False if the system could not be initialized.
        """
        self._shutdown_event = asyncio.Event()

        if not await self.initialize():
            self.logger.error("System initialization failed")
            return False

        self._setup_signal_handlers()

        try:
            await self.start()
        finally:
            await self.shutdown()

        return True
