"""
Notification delivery for the Flat Notifier system.

This module delivers chat messages through the Telegram Bot API. Delivery
is attempted once; failures are reported in the DeliveryResult and retrying
is left to the operator.
"""

import logging
from datetime import datetime, timezone

import requests

from ..interfaces import INotifier
from ..models.delivery import DeliveryResult

logger = logging.getLogger(__name__)

TELEGRAM_API_URL = "https://api.telegram.org"

# Telegram rejects messages longer than this
MAX_MESSAGE_LENGTH = 4096


class TelegramNotifier(INotifier):
    """Telegram Bot API notifier."""

    def __init__(
        self,
        bot_token: str,
        timeout: float = 30.0,
        disable_web_page_preview: bool = False,
    ):
        """
        Initialize Telegram notifier.

        Args:
            bot_token: Telegram bot token
            timeout: Request timeout in seconds
            disable_web_page_preview: Suppress link previews in messages
        """
        self.bot_token = bot_token
        self.timeout = timeout
        self.disable_web_page_preview = disable_web_page_preview
        self.base_url = f"{TELEGRAM_API_URL}/bot{bot_token}"
        self.session = requests.Session()

    def send(self, chat_id: str, text: str) -> DeliveryResult:
        """
        Send a message to a chat.

        Args:
            chat_id: Target chat ID
            text: Message text

        Returns:
            DeliveryResult: Result of the delivery attempt
        """
        try:
            self._send_message(chat_id, text)
        except (requests.exceptions.RequestException, ValueError) as e:
            error_msg = f"Telegram delivery failed: {e}"[:500]
            logger.warning(f"Failed to send message to chat {chat_id}: {e}")
            result = DeliveryResult(
                success=False,
                delivery_time=datetime.now(timezone.utc),
                error_message=error_msg,
            )
            result.validate()
            return result

        logger.info(f"Message sent to Telegram chat {chat_id}")
        result = DeliveryResult(
            success=True, delivery_time=datetime.now(timezone.utc), error_message=None
        )
        result.validate()
        return result

    def _send_message(self, chat_id: str, text: str) -> None:
        """Send message via Telegram Bot API."""
        if len(text) > MAX_MESSAGE_LENGTH:
            text = text[: MAX_MESSAGE_LENGTH - 1] + "…"

        payload = {
            "chat_id": chat_id,
            "text": text,
            "disable_web_page_preview": self.disable_web_page_preview,
        }

        response = self.session.post(
            f"{self.base_url}/sendMessage", json=payload, timeout=self.timeout
        )
        response.raise_for_status()

        result = response.json()
        if not result.get("ok"):
            raise ValueError(
                f"Telegram API error: {result.get('description', 'Unknown error')}"
            )

    def test_connection(self) -> bool:
        """Test connection to Telegram Bot API."""
        try:
            response = self.session.get(f"{self.base_url}/getMe", timeout=10)
            response.raise_for_status()

            result = response.json()
            if result.get("ok"):
                bot_info = result.get("result", {})
                logger.info(
                    f"Connected to Telegram bot: {bot_info.get('username', 'Unknown')}"
                )
                return True

            logger.error(
                f"Telegram API error: {result.get('description', 'Unknown error')}"
            )
            return False

        except (requests.exceptions.RequestException, ValueError) as e:
            logger.error(f"Failed to connect to Telegram: {e}")
            return False
