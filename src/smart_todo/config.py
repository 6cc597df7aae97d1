"""Configuration management for smart-todo."""

import logging
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

import yaml

from .task import Priority

logger = logging.getLogger(__name__)


class ConfigError(ValueError):
    """Raised when an explicitly requested config file cannot be used."""


@dataclass
class ConfigModel:
    """Global configuration model for smart-todo."""

    # Defaults applied when building tasks from parsed input
    default_priority: Priority = Priority.NONE
    default_list: str = "inbox"

    # Recurrence scheduler
    instance_window_days: int = 30  # Materialize instances this far ahead

    # Parser suggestions
    suggestion_min_length: int = 3
    fuzzy_match_cutoff: int = 70

    # Logging
    log_level: str = "WARNING"

    # File paths
    data_dir: str = "~/.smart_todo"

    def __post_init__(self):
        self.data_dir = os.path.expanduser(self.data_dir)
        if isinstance(self.default_priority, str):
            self.default_priority = Priority(self.default_priority)
        if self.instance_window_days < 1:
            raise ConfigError(f"instance_window_days must be >= 1, got {self.instance_window_days}")

    def to_yaml(self) -> str:
        """Serialize config to YAML."""
        data = {
            "default_priority": self.default_priority.value,
            "default_list": self.default_list,
            "instance_window_days": self.instance_window_days,
            "suggestion_min_length": self.suggestion_min_length,
            "fuzzy_match_cutoff": self.fuzzy_match_cutoff,
            "log_level": self.log_level,
            "data_dir": self.data_dir,
        }
        return yaml.dump(data, default_flow_style=False)

    @classmethod
    def from_yaml(cls, yaml_str: str) -> "ConfigModel":
        """Deserialize config from YAML.

        Raises:
            ConfigError: If the document is not a mapping or holds unknown keys.
        """
        try:
            data = yaml.safe_load(yaml_str) or {}
        except yaml.YAMLError as e:
            raise ConfigError(f"Invalid YAML: {e}") from e

        if not isinstance(data, dict):
            raise ConfigError("Config document must be a mapping")

        if "default_priority" in data and isinstance(data["default_priority"], str):
            try:
                data["default_priority"] = Priority(data["default_priority"])
            except ValueError:
                logger.warning(f"Unknown default_priority {data['default_priority']!r}, using None")
                data["default_priority"] = Priority.NONE

        try:
            return cls(**data)
        except TypeError as e:
            raise ConfigError(f"Unknown config option: {e}") from e

    def get_config_path(self) -> Path:
        """Get the config file path."""
        return Path(self.data_dir) / "config.yaml"


class Config:
    """Configuration manager for smart-todo."""

    _instance: Optional[ConfigModel] = None

    @classmethod
    def load(cls, config_path: Optional[Path] = None) -> ConfigModel:
        """Load configuration from file or fall back to defaults.

        An explicit ``config_path`` that is missing or malformed raises
        ``ConfigError``; problems with the default location only log a warning.
        """
        if cls._instance is not None and config_path is None:
            return cls._instance

        config = ConfigModel()
        explicit = config_path is not None
        if config_path is None:
            config_path = config.get_config_path()

        if config_path.exists():
            try:
                config = ConfigModel.from_yaml(config_path.read_text())
                logger.info(f"Loaded configuration from {config_path}")
            except ConfigError:
                if explicit:
                    raise
                logger.warning(f"Failed to load config from {config_path}, using defaults", exc_info=True)
        elif explicit:
            raise ConfigError(f"Config file not found: {config_path}")

        cls._instance = config
        return config

    @classmethod
    def save(cls, config: ConfigModel, config_path: Optional[Path] = None) -> None:
        """Save configuration to file."""
        if config_path is None:
            config_path = config.get_config_path()

        config_path.parent.mkdir(parents=True, exist_ok=True)
        config_path.write_text(config.to_yaml())
        logger.info(f"Configuration saved to {config_path}")

    @classmethod
    def get(cls) -> ConfigModel:
        """Get the current configuration instance."""
        if cls._instance is None:
            cls._instance = cls.load()
        return cls._instance

    @classmethod
    def reset(cls) -> None:
        """Forget the cached configuration."""
        cls._instance = None


def get_config() -> ConfigModel:
    """Get the current configuration."""
    return Config.get()


def load_config(config_path: Optional[Path] = None) -> ConfigModel:
    """Load configuration from file."""
    return Config.load(config_path)


def save_config(config: ConfigModel, config_path: Optional[Path] = None) -> None:
    """Save configuration to file."""
    Config.save(config, config_path)
