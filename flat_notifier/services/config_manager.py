"""
Configuration loading for the Flat Notifier.
"""

import json
import os
from pathlib import Path
from typing import Any, Dict, List, Optional

import yaml

from ..models.config import (
    DEFAULT_DISTRICT_BASE_URL,
    DEFAULT_FEED_URL,
    Configuration,
    DatabaseConfig,
    FeedConfig,
    TelegramConfig,
)
from ..models.listing import FLATS_CATEGORY

CONFIG_SEARCH_PATHS = [
    "config/config.yaml",
    "config/config.yml",
    "config/config.json",
    "config.yaml",
    "config.yml",
    "config.json",
]

EXAMPLE_CONFIG_PATH = "config/config.example.yaml"


class ConfigurationManager:
    """Loads, expands and validates the system configuration once at startup."""

    def __init__(self, config_path: Optional[str] = None):
        """
        Initialize the configuration manager.

        Args:
            config_path: Path to the configuration file. If None, standard
                locations are searched.
        """
        self.config_path = config_path or self._find_config_file()
        self._config: Optional[Configuration] = None

    @staticmethod
    def _find_config_file() -> str:
        """Find the configuration file in standard locations."""
        for path in CONFIG_SEARCH_PATHS:
            if os.path.exists(path):
                return path

        if os.path.exists(EXAMPLE_CONFIG_PATH):
            raise ValueError(
                f"No configuration file found. Copy '{EXAMPLE_CONFIG_PATH}' to "
                "'config/config.yaml' and fill in your bot token."
            )

        raise ValueError(
            "No configuration file found. Create one at: "
            + ", ".join(CONFIG_SEARCH_PATHS)
        )

    def load_config(self) -> Configuration:
        """
        Load and validate configuration from file.

        Raises:
            FileNotFoundError: If the configuration file doesn't exist
            ValueError: If the file cannot be parsed or fails validation
        """
        if not os.path.exists(self.config_path):
            raise FileNotFoundError(f"Configuration file not found: {self.config_path}")

        raw_config = self._expand_env_vars(self._read_file(self.config_path))
        config = self._parse_config(raw_config)
        config.validate()

        self._config = config
        return config

    def get_config(self) -> Configuration:
        """Current configuration, loading it on first use."""
        if self._config is None:
            return self.load_config()
        return self._config

    def validate_config_file(self, config_path: str) -> bool:
        """
        Validate a configuration file without keeping it.

        Missing environment variables are tolerated here so that a template
        can be checked on a machine without secrets.

        Raises:
            ValueError: If the configuration is invalid
        """
        if not os.path.exists(config_path):
            raise ValueError(f"Configuration file not found: {config_path}")

        raw_config = self._read_file(config_path)
        try:
            raw_config = self._expand_env_vars(raw_config)
        except ValueError:
            pass

        try:
            self._parse_config(raw_config).validate()
        except ValueError as e:
            raise ValueError(f"Configuration validation failed: {e}") from e

        return True

    @staticmethod
    def _read_file(path: str) -> Dict[str, Any]:
        try:
            with open(path, "r", encoding="utf-8") as f:
                if Path(path).suffix == ".json":
                    raw_config = json.load(f)
                else:
                    raw_config = yaml.safe_load(f)
        except yaml.YAMLError as e:
            raise ValueError(f"Invalid YAML in configuration file: {e}") from e
        except json.JSONDecodeError as e:
            raise ValueError(f"Invalid JSON in configuration file: {e}") from e

        if raw_config is None:
            return {}
        if not isinstance(raw_config, dict):
            raise ValueError("Configuration file must contain a mapping")
        return raw_config

    def _expand_env_vars(self, obj: Any) -> Any:
        """Recursively replace ${VAR_NAME} values with environment variables."""
        if isinstance(obj, dict):
            return {key: self._expand_env_vars(value) for key, value in obj.items()}
        if isinstance(obj, list):
            return [self._expand_env_vars(item) for item in obj]
        if isinstance(obj, str) and obj.startswith("${") and obj.endswith("}"):
            var_name = obj[2:-1]
            env_value = os.getenv(var_name)
            if env_value is None:
                raise ValueError(f"Environment variable '{var_name}' not found")
            return env_value
        return obj

    def _parse_config(self, raw_config: Dict[str, Any]) -> Configuration:
        """Build the Configuration object from the raw mapping."""
        feed_data = raw_config.get("feed") or {}
        telegram_data = raw_config.get("telegram") or {}
        database_data = raw_config.get("database") or {}
        system_data = raw_config.get("system") or {}

        try:
            feed = FeedConfig(
                url=feed_data.get("url", DEFAULT_FEED_URL),
                district_base_url=feed_data.get(
                    "district_base_url", DEFAULT_DISTRICT_BASE_URL
                ),
                timeout=float(feed_data.get("timeout", 10.0)),
                category=feed_data.get("category", FLATS_CATEGORY),
            )
            telegram = TelegramConfig(
                bot_token=telegram_data.get("bot_token", ""),
                admin_chat_ids=self._parse_chat_ids(
                    telegram_data.get("admin_chat_ids")
                ),
                request_timeout=float(telegram_data.get("request_timeout", 30.0)),
            )
            database = DatabaseConfig(
                url=database_data.get("url", DatabaseConfig.url),
                echo=bool(database_data.get("echo", False)),
            )
            return Configuration(
                feed=feed,
                telegram=telegram,
                database=database,
                polling_interval=int(system_data.get("polling_interval", 300)),
                recent_window_minutes=int(
                    system_data.get("recent_window_minutes", 10)
                ),
                log_dir=system_data.get("log_dir", "logs"),
                log_level=str(system_data.get("log_level", "INFO")),
            )
        except (TypeError, ValueError) as e:
            raise ValueError(f"Error parsing configuration: {e}") from e

    @staticmethod
    def _parse_chat_ids(value: Any) -> List[str]:
        """Accept a list or a comma-separated string (handy for env vars)."""
        if value is None or value == "":
            return []
        if isinstance(value, (str, int)):
            value = str(value).split(",")
        return [str(item).strip() for item in value if str(item).strip()]
