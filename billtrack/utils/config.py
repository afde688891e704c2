"""
Configuration management for Billtrack.

This module handles user configuration, data directories, and settings.
"""

import copy
import json
import logging
import os
from datetime import datetime, timezone, tzinfo
from pathlib import Path
from typing import Any, Dict, Optional, cast
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from platformdirs import user_config_dir, user_data_dir

logger = logging.getLogger(__name__)

APP_NAME = "billtrack"
DATA_DIR_ENV = "BILLTRACK_DATA_DIR"


class ConfigManager:
    """Manages Billtrack configuration and data directories."""

    def __init__(self, config_dir: Optional[Path] = None, data_dir: Optional[Path] = None) -> None:
        """Initialize configuration manager."""
        self.app_name = APP_NAME
        self.config_dir = Path(config_dir or user_config_dir(self.app_name))
        self.data_dir = Path(data_dir or user_data_dir(self.app_name))
        self.config_file = self.config_dir / "config.json"

        self.config_dir.mkdir(parents=True, exist_ok=True)

        self.default_config: Dict[str, Any] = {
            "data_directory": str(self.data_dir),
            "timezone": "local",
            "default_currency": "USD",
            "date_format": "%Y-%m-%d",
            "time_format": "%H:%M",
            "colors": {
                "running": "green",
                "idle": "dim",
                "duration": "cyan",
                "project": "bold",
                "money": "green",
                "tags": "yellow",
            },
            "display": {
                "hours_decimals": 1,
                "list_limit": 50,
            },
        }

        self._config = self._load_config()

    def _load_config(self) -> Dict[str, Any]:
        """Load configuration from file, creating default if it doesn't exist."""
        if self.config_file.exists():
            try:
                with open(self.config_file, "r") as f:
                    loaded_config = json.load(f)

                # Merge with defaults to ensure all keys exist
                config = copy.deepcopy(self.default_config)
                config.update(loaded_config)
                return config

            except (json.JSONDecodeError, IOError) as e:
                logger.warning("Could not load config file %s: %s", self.config_file, e)
                logger.warning("Using default configuration")

        self._save_config(self.default_config)
        return copy.deepcopy(self.default_config)

    def _save_config(self, config: Dict[str, Any]) -> None:
        """Save configuration to file."""
        try:
            with open(self.config_file, "w") as f:
                json.dump(config, f, indent=2, sort_keys=True)
        except IOError as e:
            logger.warning("Could not save config file %s: %s", self.config_file, e)

    def get(self, key: str, default: Any = None) -> Any:
        """Get a configuration value by dotted key, with optional default."""
        keys = key.split(".")
        value = self._config

        for k in keys:
            if isinstance(value, dict) and k in value:
                value = value[k]
            else:
                return default

        return value

    def set(self, key: str, value: Any) -> None:
        """Set a configuration value by dotted key and persist it."""
        keys = key.split(".")
        config = self._config

        for k in keys[:-1]:
            if k not in config or not isinstance(config[k], dict):
                config[k] = {}
            config = config[k]

        config[keys[-1]] = value
        self._save_config(self._config)

    def as_dict(self) -> Dict[str, Any]:
        """Return a copy of the whole configuration."""
        return copy.deepcopy(self._config)

    def get_data_dir(self) -> Path:
        """Get the data directory, honouring the BILLTRACK_DATA_DIR override."""
        override = os.environ.get(DATA_DIR_ENV)
        if override:
            return Path(override).expanduser()
        return Path(self.get("data_directory", str(self.data_dir))).expanduser()

    def get_config_dir(self) -> Path:
        """Get the configuration directory path."""
        return self.config_dir

    def get_timezone_name(self) -> str:
        """Get the configured timezone name ("local" or an IANA name)."""
        return cast(str, self.get("timezone", "local"))

    def get_timezone(self) -> tzinfo:
        """
        Resolve the configured timezone.

        "local" maps to the system zone. Unknown names fall back to the
        system zone with a warning.
        """
        name = self.get_timezone_name()
        if name and name != "local":
            try:
                return ZoneInfo(name)
            except (ZoneInfoNotFoundError, ValueError):
                logger.warning("Unknown timezone %r, using the system timezone", name)
        return datetime.now().astimezone().tzinfo or timezone.utc

    def get_default_currency(self) -> str:
        """Get the currency used for new projects."""
        return cast(str, self.get("default_currency", "USD")).upper()

    def get_date_format(self) -> str:
        """Get the date format string."""
        return cast(str, self.get("date_format", "%Y-%m-%d"))

    def get_time_format(self) -> str:
        """Get the time format string."""
        return cast(str, self.get("time_format", "%H:%M"))

    def get_color(self, element: str) -> str:
        """Get color for a UI element."""
        return cast(str, self.get(f"colors.{element}", "white"))

    def get_hours_decimals(self) -> int:
        """Get how many decimals hours are displayed with."""
        return int(self.get("display.hours_decimals", 1))

    def get_list_limit(self) -> int:
        """Get the default number of entries listed by the CLI."""
        return cast(int, self.get("display.list_limit", 50))

    def reset_to_defaults(self) -> None:
        """Reset configuration to default values."""
        self._config = copy.deepcopy(self.default_config)
        self._save_config(self._config)

    def export_config(self, file_path: Path) -> None:
        """Export current configuration to a file."""
        with open(file_path, "w") as f:
            json.dump(self._config, f, indent=2, sort_keys=True)

    def import_config(self, file_path: Path) -> None:
        """Import configuration from a file."""
        with open(file_path, "r") as f:
            imported_config = json.load(f)

        self._config.update(imported_config)
        self._save_config(self._config)


# Global configuration manager instance
_config_manager: Optional[ConfigManager] = None


def get_config_manager() -> ConfigManager:
    """Get the global configuration manager instance."""
    global _config_manager
    if _config_manager is None:
        _config_manager = ConfigManager()
    return _config_manager
