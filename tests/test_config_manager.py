"""
Unit tests for configuration management.
"""

import json
import os
import tempfile
from unittest.mock import patch

import pytest
import yaml

from flat_notifier.models.config import Configuration
from flat_notifier.services.config_manager import ConfigurationManager


class TestConfigurationManager:
    """Test ConfigurationManager functionality."""

    def create_temp_config(self, config_data: dict, file_format: str = "yaml") -> str:
        """Create a temporary configuration file."""
        with tempfile.NamedTemporaryFile(
            mode="w", suffix=f".{file_format}", delete=False, encoding="utf-8"
        ) as f:
            if file_format == "json":
                json.dump(config_data, f, indent=2)
            else:
                yaml.dump(config_data, f, default_flow_style=False)
            return f.name

    def get_valid_config_data(self) -> dict:
        """Get valid configuration data for testing."""
        return {
            "feed": {
                "url": "https://www.ss.lv/lv/real-estate/flats/riga/rss/",
                "timeout": 10,
            },
            "telegram": {"bot_token": "test-token", "admin_chat_ids": ["42"]},
            "database": {"url": "sqlite://"},
            "system": {"polling_interval": 300, "recent_window_minutes": 10},
        }

    def test_load_valid_yaml(self):
        config_path = self.create_temp_config(self.get_valid_config_data())
        try:
            config = ConfigurationManager(config_path).load_config()

            assert isinstance(config, Configuration)
            assert config.feed.timeout == 10.0
            assert config.feed.category == "flats"
            assert config.telegram.bot_token == "test-token"
            assert config.telegram.admin_chat_ids == ["42"]
            assert config.database.url == "sqlite://"
            assert config.polling_interval == 300
            assert config.recent_window_minutes == 10
        finally:
            os.unlink(config_path)

    def test_load_valid_json(self):
        config_path = self.create_temp_config(self.get_valid_config_data(), "json")
        try:
            config = ConfigurationManager(config_path).load_config()

            assert config.telegram.bot_token == "test-token"
        finally:
            os.unlink(config_path)

    def test_defaults(self):
        config_path = self.create_temp_config({"telegram": {"bot_token": "t"}})
        try:
            config = ConfigurationManager(config_path).load_config()

            assert config.feed.url == "https://www.ss.lv/lv/real-estate/flats/riga/rss/"
            assert config.feed.district_base_url.endswith("/riga/")
            assert config.database.url == "sqlite:///data/flat_notifier.db"
            assert config.polling_interval == 300
            assert config.log_level == "INFO"
        finally:
            os.unlink(config_path)

    def test_env_var_expansion(self):
        data = self.get_valid_config_data()
        data["telegram"]["bot_token"] = "${FLAT_TEST_TOKEN}"
        data["telegram"]["admin_chat_ids"] = "${FLAT_TEST_ADMINS}"
        config_path = self.create_temp_config(data)
        try:
            with patch.dict(
                os.environ, {"FLAT_TEST_TOKEN": "env-token", "FLAT_TEST_ADMINS": "1, 2"}
            ):
                config = ConfigurationManager(config_path).load_config()

            assert config.telegram.bot_token == "env-token"
            assert config.telegram.admin_chat_ids == ["1", "2"]
        finally:
            os.unlink(config_path)

    def test_missing_env_var(self):
        data = self.get_valid_config_data()
        data["telegram"]["bot_token"] = "${FLAT_TEST_MISSING_VAR}"
        config_path = self.create_temp_config(data)
        try:
            with patch.dict(os.environ, {}, clear=False):
                os.environ.pop("FLAT_TEST_MISSING_VAR", None)
                with pytest.raises(ValueError, match="FLAT_TEST_MISSING_VAR"):
                    ConfigurationManager(config_path).load_config()
        finally:
            os.unlink(config_path)

    def test_missing_bot_token(self):
        data = self.get_valid_config_data()
        del data["telegram"]["bot_token"]
        config_path = self.create_temp_config(data)
        try:
            with pytest.raises(ValueError, match="bot_token"):
                ConfigurationManager(config_path).load_config()
        finally:
            os.unlink(config_path)

    def test_window_shorter_than_interval(self):
        data = self.get_valid_config_data()
        data["system"] = {"polling_interval": 900, "recent_window_minutes": 10}
        config_path = self.create_temp_config(data)
        try:
            with pytest.raises(ValueError, match="Recent window"):
                ConfigurationManager(config_path).load_config()
        finally:
            os.unlink(config_path)

    def test_invalid_yaml(self):
        with tempfile.NamedTemporaryFile(
            mode="w", suffix=".yaml", delete=False, encoding="utf-8"
        ) as f:
            f.write("feed: [unclosed\n")
            config_path = f.name
        try:
            with pytest.raises(ValueError, match="Invalid YAML"):
                ConfigurationManager(config_path).load_config()
        finally:
            os.unlink(config_path)

    def test_file_not_found(self):
        with pytest.raises(FileNotFoundError):
            ConfigurationManager("/nonexistent/config.yaml").load_config()

    def test_get_config_caches(self):
        config_path = self.create_temp_config(self.get_valid_config_data())
        try:
            manager = ConfigurationManager(config_path)

            assert manager.get_config() is manager.get_config()
        finally:
            os.unlink(config_path)

    def test_validate_config_file_checks_unexpanded_values(self):
        data = self.get_valid_config_data()
        data["database"]["url"] = "${FLAT_TEST_UNSET_DB}"
        config_path = self.create_temp_config(data)
        try:
            os.environ.pop("FLAT_TEST_UNSET_DB", None)
            with pytest.raises(ValueError, match="Configuration validation failed"):
                ConfigurationManager(config_path).validate_config_file(config_path)
        finally:
            os.unlink(config_path)

    def test_no_config_file_found(self, tmp_path, monkeypatch):
        monkeypatch.chdir(tmp_path)

        with pytest.raises(ValueError, match="No configuration file found"):
            ConfigurationManager()
