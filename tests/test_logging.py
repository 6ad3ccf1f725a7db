"""
Tests for logging utilities.
"""

import json
import logging
from unittest.mock import Mock, patch

from flat_notifier.utils.logging import (
    FAILURE_LOGGER_NAME,
    ComponentLogger,
    LoggingManager,
    get_logger,
)


class TestComponentLogger:
    """Test cases for ComponentLogger."""

    def test_initialization(self):
        logger = ComponentLogger("services.poll_service", {"key": "value"})

        assert logger.component_name == "services.poll_service"
        assert logger.extra_context == {"key": "value"}
        assert logger.logger.name == "flat_notifier.services.poll_service"

    def test_format_message_is_json(self):
        logger = ComponentLogger("orchestrator", {"context_key": "context_value"})

        formatted = json.loads(
            logger._format_message("Cycle finished", {"sent": 2})
        )

        assert formatted["component"] == "orchestrator"
        assert formatted["message"] == "Cycle finished"
        assert formatted["context_key"] == "context_value"
        assert formatted["sent"] == 2
        assert "timestamp" in formatted

    def test_log_methods(self):
        with patch("logging.getLogger") as mock_get_logger:
            mock_logger = Mock()
            mock_get_logger.return_value = mock_logger

            logger = ComponentLogger("orchestrator")
            logger.debug("debug")
            logger.info("info")
            logger.warning("warning")
            logger.error("error", exc_info=True)
            logger.critical("critical")

            mock_logger.debug.assert_called_once()
            mock_logger.info.assert_called_once()
            mock_logger.warning.assert_called_once()
            mock_logger.error.assert_called_once()
            assert mock_logger.error.call_args[1]["exc_info"] is True
            mock_logger.critical.assert_called_once()


class TestLoggingManager:
    """Test cases for LoggingManager."""

    def test_creates_log_files(self, tmp_path):
        manager = LoggingManager(str(tmp_path), "DEBUG")
        try:
            manager.get_component_logger("orchestrator").info("started")
            logging.getLogger(FAILURE_LOGGER_NAME).error('{"type": "PARSING_ERROR"}')

            for handler in self._all_handlers():
                handler.flush()

            assert (tmp_path / "flat_notifier.log").exists()
            assert (tmp_path / "orchestrator.log").exists()
            failure_log = (tmp_path / "failed_listings.log").read_text(encoding="utf-8")
            assert failure_log.strip() == '{"type": "PARSING_ERROR"}'
        finally:
            for handler in self._all_handlers():
                handler.close()

    def test_component_logger_is_cached(self, tmp_path):
        manager = LoggingManager(str(tmp_path))
        try:
            assert manager.get_component_logger("a") is manager.get_component_logger("a")
        finally:
            for handler in self._all_handlers():
                handler.close()

    def test_get_logger_before_setup(self):
        with patch("flat_notifier.utils.logging._logging_manager", None):
            logger = get_logger("main")

        assert isinstance(logger, ComponentLogger)

    @staticmethod
    def _all_handlers():
        names = ["flat_notifier", FAILURE_LOGGER_NAME] + [
            f"flat_notifier.{name}" for name in LoggingManager.COMPONENT_LOG_FILES
        ]
        return [h for name in names for h in logging.getLogger(name).handlers]
