"""
config.py
---------
Centralised configuration management for the SQLite Database Manager.

Loads settings from environment variables (with .env file support via
python-dotenv). Provides typed settings as frozen dataclasses so
configuration is immutable at runtime.

Design Decision:
    The database location is part of the configuration instead of a
    process-wide constant, so several independent managers (for example one
    per test) can exist side by side.
"""
from __future__ import annotations

import logging
import os
from dataclasses import dataclass, field
from pathlib import Path

from dotenv import load_dotenv

_env_path = Path(__file__).parent / ".env"
if _env_path.exists():
    load_dotenv(dotenv_path=_env_path)


@dataclass(frozen=True)
class DatabaseConfig:
    """Location of the database file and connection settings."""
    app_path: Path = field(
        default_factory=lambda: Path(os.getenv("APP_PATH", "."))
    )
    file_name: str = field(
        default_factory=lambda: os.getenv("DB_FILE", "database.sqlite")
    )
    timeout: float = field(
        default_factory=lambda: float(os.getenv("DB_TIMEOUT", "5.0"))
    )
    # Access is serialised by the controller lock, so the handle may be
    # shared between threads.
    check_same_thread: bool = False

    @property
    def database_path(self) -> Path:
        """Full path of the live database file."""
        return Path(self.app_path) / self.file_name


@dataclass(frozen=True)
class RetryConfig:
    """Bounds for the retry/abandon loop."""
    max_attempts: int = field(
        default_factory=lambda: int(os.getenv("DB_MAX_RETRIES", "3"))
    )
    retry_delay: float = field(
        default_factory=lambda: float(os.getenv("DB_RETRY_DELAY", "0.5"))
    )


@dataclass(frozen=True)
class BackupConfig:
    """Backup directory layout and retention."""
    dir_name: str = field(
        default_factory=lambda: os.getenv("BACKUP_DIR", "backups")
    )
    retention_days: int = field(
        default_factory=lambda: int(os.getenv("BACKUP_RETENTION_DAYS", "30"))
    )


@dataclass(frozen=True)
class AppConfig:
    """Root application configuration."""
    db: DatabaseConfig = field(default_factory=DatabaseConfig)
    retry: RetryConfig = field(default_factory=RetryConfig)
    backup: BackupConfig = field(default_factory=BackupConfig)
    log_level: str = field(
        default_factory=lambda: os.getenv("LOG_LEVEL", "INFO").upper()
    )
    log_file: str | None = field(
        default_factory=lambda: os.getenv("LOG_FILE")  # None → log to stderr only
    )
    app_name: str = "SQLite Database Manager"
    app_version: str = "1.0.0"


def load_config() -> AppConfig:
    """
    Build and return the application configuration.

    Returns:
        AppConfig: Fully populated (and frozen) configuration object.

    Example::

        cfg = load_config()
        print(cfg.db.database_path)     # "database.sqlite"
        print(cfg.retry.max_attempts)   # 3
    """
    return AppConfig()


# Module-level singleton used throughout the application
CONFIG: AppConfig = load_config()


def get_log_level() -> int:
    """Convert string log level from config to logging module constant."""
    level = getattr(logging, CONFIG.log_level, None)
    if not isinstance(level, int):
        return logging.INFO
    return level
