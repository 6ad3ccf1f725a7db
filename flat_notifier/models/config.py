"""
Configuration models for the system.
"""

from dataclasses import dataclass, field
from typing import List
from urllib.parse import urlparse

from .listing import FLATS_CATEGORY

DEFAULT_FEED_URL = "https://www.ss.lv/lv/real-estate/flats/riga/rss/"
DEFAULT_DISTRICT_BASE_URL = "https://www.ss.lv/lv/real-estate/flats/riga/"


def _validate_http_url(value: str, name: str) -> None:
    if not isinstance(value, str) or not value.strip():
        raise ValueError(f"{name} must be a non-empty string")

    parsed_url = urlparse(value)
    if not parsed_url.scheme or not parsed_url.netloc:
        raise ValueError(f"Invalid {name} format: {value}")

    if parsed_url.scheme not in ["http", "https"]:
        raise ValueError(f"{name} must use HTTP or HTTPS: {value}")


@dataclass
class FeedConfig:
    """Where and how the listings feed is fetched."""

    url: str = DEFAULT_FEED_URL
    district_base_url: str = DEFAULT_DISTRICT_BASE_URL
    timeout: float = 10.0
    category: str = FLATS_CATEGORY

    def validate(self) -> bool:
        """Validate feed configuration."""
        _validate_http_url(self.url, "Feed URL")
        _validate_http_url(self.district_base_url, "District base URL")

        if not self.district_base_url.endswith("/"):
            raise ValueError("District base URL must end with '/'")

        if not isinstance(self.timeout, (int, float)) or self.timeout <= 0:
            raise ValueError("Feed timeout must be a positive number")

        if not self.category or not self.category.strip():
            raise ValueError("Feed category cannot be empty")

        return True


@dataclass
class TelegramConfig:
    """Telegram bot credentials and operator settings."""

    bot_token: str
    admin_chat_ids: List[str] = field(default_factory=list)
    request_timeout: float = 30.0

    def validate(self) -> bool:
        """Validate Telegram configuration."""
        if not self.bot_token or not str(self.bot_token).strip():
            raise ValueError("Telegram configuration must include 'bot_token'")

        if not isinstance(self.admin_chat_ids, list):
            raise ValueError("Telegram admin_chat_ids must be a list")

        if (
            not isinstance(self.request_timeout, (int, float))
            or self.request_timeout <= 0
        ):
            raise ValueError("Telegram request timeout must be a positive number")

        return True


@dataclass
class DatabaseConfig:
    """SQLAlchemy connection settings."""

    url: str = "sqlite:///data/flat_notifier.db"
    echo: bool = False

    def validate(self) -> bool:
        """Validate database configuration."""
        if not self.url or not self.url.strip():
            raise ValueError("Database URL cannot be empty")

        if "://" not in self.url:
            raise ValueError(f"Invalid database URL: {self.url}")

        return True


@dataclass
class Configuration:
    """System configuration."""

    feed: FeedConfig
    telegram: TelegramConfig
    database: DatabaseConfig
    polling_interval: int = 300
    recent_window_minutes: int = 10
    log_dir: str = "logs"
    log_level: str = "INFO"

    def validate(self) -> bool:
        """Validate system configuration."""
        if not isinstance(self.polling_interval, int) or self.polling_interval <= 0:
            raise ValueError("Polling interval must be a positive integer")

        if self.polling_interval < 60:
            raise ValueError("Polling interval must be at least 60 seconds")

        if (
            not isinstance(self.recent_window_minutes, int)
            or self.recent_window_minutes <= 0
        ):
            raise ValueError("Recent window must be a positive number of minutes")

        # The window has to cover at least one poll interval or listings fall
        # between cycles unmatched.
        if self.recent_window_minutes * 60 < self.polling_interval:
            raise ValueError(
                "Recent window must be at least as long as the polling interval"
            )

        if self.log_level.upper() not in [
            "DEBUG",
            "INFO",
            "WARNING",
            "ERROR",
            "CRITICAL",
        ]:
            raise ValueError(f"Unknown log level: {self.log_level}")

        self.feed.validate()
        self.telegram.validate()
        self.database.validate()

        return True
