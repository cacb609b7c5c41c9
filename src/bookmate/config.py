"""
Configuration management for Bookmate

Handles configuration loading with sensible defaults and environment overrides.
"""

import json
import os
from pathlib import Path
from typing import Dict, Any, Optional
from dataclasses import dataclass, asdict, field
import logging


@dataclass
class DatabaseConfig:
    """Database configuration."""

    url: str = "sqlite:///bookmate.db"
    echo: bool = False
    pool_pre_ping: bool = True
    log_queries: bool = False  # Enable query logging for performance analysis
    busy_timeout_ms: int = 5000  # SQLite writer wait before "database is locked"
    immediate_transactions: bool = True  # SQLite: BEGIN IMMEDIATE for write units


@dataclass
class EngineConfig:
    """Reciprocity engine configuration."""

    lock_timeout_ms: int = 5000  # PostgreSQL advisory lock wait
    retry_attempts: int = 3
    retry_base_delay: float = 0.2
    retry_max_delay: float = 2.0
    retry_jitter_ratio: float = 0.2

    mutual_interest_template: str = "You and {name} are interested in each other."
    soulmate_formed_template: str = "You and {name} are now soulmates."
    notification_templates: Dict[str, str] = field(default_factory=dict)

    def template_for(self, notification_type: str) -> str:
        """Return the content template for a notification type."""
        if notification_type in self.notification_templates:
            return self.notification_templates[notification_type]
        if notification_type == "SOULMATE_FORMED":
            return self.soulmate_formed_template
        return self.mutual_interest_template


@dataclass
class AppConfig:
    """Main application configuration."""

    app_name: str = "Bookmate"
    version: str = "1.0.0"
    description: str = "Social reading companion persistence layer"

    # Logging
    log_level: str = "INFO"
    log_to_file: bool = False
    log_dir: str = "logs"  # Directory for log files

    # Environment
    is_development: bool = False


@dataclass
class BookmateConfig:
    """Complete configuration for Bookmate."""

    app: AppConfig
    engine: EngineConfig
    database: DatabaseConfig

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary."""
        return {
            "app": asdict(self.app),
            "engine": asdict(self.engine),
            "database": asdict(self.database),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "BookmateConfig":
        """Create from dictionary."""
        return cls(
            app=AppConfig(**data.get("app", {})),
            engine=EngineConfig(**data.get("engine", {})),
            database=DatabaseConfig(**data.get("database", {})),
        )


class ConfigManager:
    """Manages configuration loading, saving, and environment overrides."""

    def __init__(self):
        self.config_file: Optional[Path] = None
        self.config: Optional[BookmateConfig] = None

    def detect_environment(self) -> Dict[str, Any]:
        """Detect the current environment and return environment info."""
        env_info = {}

        env_info["debug"] = bool(os.getenv("BOOKMATE_DEBUG", "0") == "1")
        env_info["is_development"] = env_info["debug"]
        env_info["log_dir"] = os.getenv("BOOKMATE_LOG_DIR")

        # Database URL priority: BOOKMATE_DATABASE_URL > DATABASE_URL
        env_info["database_url"] = os.getenv("BOOKMATE_DATABASE_URL") or os.getenv(
            "DATABASE_URL"
        )

        return env_info

    def get_config_file_path(self) -> Path:
        """Get the path for the config file."""
        config_dir = os.getenv("BOOKMATE_CONFIG_DIR")
        if config_dir:
            return Path(config_dir) / "config.json"
        return Path.cwd() / "data" / "config.json"

    def _apply_environment(self, config: BookmateConfig) -> BookmateConfig:
        env_info = self.detect_environment()

        if env_info["database_url"]:
            config.database.url = env_info["database_url"]
        if env_info["debug"]:
            config.app.log_level = "DEBUG"
            config.app.is_development = True
        if env_info["log_dir"]:
            config.app.log_dir = env_info["log_dir"]
            config.app.log_to_file = True

        return config

    def create_default_config(self) -> BookmateConfig:
        """Create default configuration with environment overrides applied."""
        config = BookmateConfig(
            app=AppConfig(),
            engine=EngineConfig(),
            database=DatabaseConfig(),
        )
        return self._apply_environment(config)

    def load_config(self) -> BookmateConfig:
        """Load configuration from file or create default."""
        if self.config is not None:
            return self.config

        self.config_file = self.get_config_file_path()

        if self.config_file.exists():
            try:
                with open(self.config_file, "r", encoding="utf-8") as f:
                    data = json.load(f)

                self.config = self._apply_environment(BookmateConfig.from_dict(data))
                logging.info(f"Loaded configuration from {self.config_file}")

            except (OSError, ValueError, TypeError) as e:
                logging.warning(f"Failed to load config from {self.config_file}: {e}")
                logging.info("Creating default configuration")
                self.config = self.create_default_config()
        else:
            logging.debug("No config file found, using default configuration")
            self.config = self.create_default_config()

        return self.config

    def save_config(self, config: Optional[BookmateConfig] = None) -> bool:
        """Save configuration to file."""
        if config is None:
            config = self.config

        if config is None:
            logging.error("No configuration to save")
            return False

        try:
            if self.config_file is None:
                self.config_file = self.get_config_file_path()

            self.config_file.parent.mkdir(parents=True, exist_ok=True)
            with open(self.config_file, "w", encoding="utf-8") as f:
                json.dump(config.to_dict(), f, indent=2, ensure_ascii=False)

            logging.info(f"Saved configuration to {self.config_file}")
            return True

        except OSError as e:
            logging.error(f"Failed to save config to {self.config_file}: {e}")
            return False

    def update_config(self, updates: Dict[str, Any]) -> bool:
        """Update configuration with new values (``"section.field"`` keys)."""
        config_dict = self.load_config().to_dict()

        for key, value in updates.items():
            if "." in key:
                section, field_name = key.split(".", 1)
                if section in config_dict:
                    config_dict[section][field_name] = value
            elif key in config_dict and isinstance(value, dict):
                config_dict[key].update(value)

        self.config = BookmateConfig.from_dict(config_dict)
        return self.save_config()

    def reset(self) -> None:
        """Forget the cached configuration."""
        self.config = None
        self.config_file = None


# Global config manager instance
config_manager = ConfigManager()


def get_config() -> BookmateConfig:
    """Get the current configuration."""
    return config_manager.load_config()


def reset_config() -> None:
    """Drop the cached configuration so the next access reloads it."""
    config_manager.reset()
