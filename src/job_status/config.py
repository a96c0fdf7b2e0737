"""
Configuration system for job-status.

This module provides typed configuration classes with:
- Dataclass-based settings with validation
- Environment variable loading
- YAML/TOML file loading
- Per-job-type configuration supplied at registration time
"""
from __future__ import annotations

import os
import tomllib
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, Literal, Optional, Union

import yaml
from dotenv import find_dotenv, load_dotenv

from .errors import ConfigError


DEFAULT_QUEUE = "statused"


# =============================================================================
# Store Configuration
# =============================================================================

StoreBackendType = Literal["memory", "redis"]


@dataclass
class StoreConfig:
    """Configuration for the status store."""

    backend: StoreBackendType = "memory"

    redis_url: str = field(
        default_factory=lambda: os.getenv("REDIS_URL", "redis://localhost:6379/0")
    )
    key_prefix: str = "status"

    # Seconds after the last update before a record expires. None keeps
    # records until they are cleared.
    expire_in: Optional[int] = None

    # Optimistic transaction attempts for atomic updates
    max_update_retries: int = 50

    def __post_init__(self):
        if self.backend not in ("memory", "redis"):
            raise ConfigError(f"Unsupported store backend: {self.backend}")
        if self.expire_in is not None and self.expire_in <= 0:
            raise ConfigError("expire_in must be positive")
        if self.max_update_retries < 1:
            raise ConfigError("max_update_retries must be at least 1")


# =============================================================================
# Job Type Configuration
# =============================================================================

@dataclass
class JobTypeConfig:
    """Configuration for one registered job type."""

    name: Optional[str] = None
    queue: str = DEFAULT_QUEUE

    # Automatic re-enqueue ceilings
    retry_failed: int = 0
    retry_failed_child: int = 0

    def __post_init__(self):
        if self.retry_failed < 0:
            raise ConfigError("retry_failed cannot be negative")
        if self.retry_failed_child < 0:
            raise ConfigError("retry_failed_child cannot be negative")

    def retry_limit(self, is_child: bool) -> int:
        return self.retry_failed_child if is_child else self.retry_failed


# =============================================================================
# Logging Configuration
# =============================================================================

LogLevel = Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]
LogFormat = Literal["text", "json"]


@dataclass
class LoggingConfig:
    """Configuration for logging."""

    level: LogLevel = "INFO"
    format: LogFormat = "text"

    # What to log
    log_transitions: bool = True
    log_progress: bool = False


# =============================================================================
# Master Configuration
# =============================================================================

@dataclass
class Settings:
    """
    Master configuration for job-status.

    Aggregates the store, logging and default job type sections into a
    single object that can be loaded from environment variables, files,
    or constructed programmatically.
    """

    store: StoreConfig = field(default_factory=StoreConfig)
    logging: LoggingConfig = field(default_factory=LoggingConfig)

    # Defaults for job types registered without their own config
    jobs: JobTypeConfig = field(default_factory=JobTypeConfig)

    @classmethod
    def from_env(cls, prefix: str = "JOB_STATUS_") -> "Settings":
        """
        Load settings from environment variables.

        Example:
            JOB_STATUS_STORE_BACKEND=redis
            JOB_STATUS_REDIS_URL=redis://localhost:6379/1
            JOB_STATUS_EXPIRE_IN=86400
            JOB_STATUS_RETRY_FAILED=2
        """
        settings = cls()

        # Store settings
        if backend := os.getenv(f"{prefix}STORE_BACKEND"):
            settings.store.backend = backend.lower()  # type: ignore
        if url := os.getenv(f"{prefix}REDIS_URL"):
            settings.store.redis_url = url
        if key_prefix := os.getenv(f"{prefix}KEY_PREFIX"):
            settings.store.key_prefix = key_prefix
        if expire_in := os.getenv(f"{prefix}EXPIRE_IN"):
            settings.store.expire_in = int(expire_in)
        if retries := os.getenv(f"{prefix}MAX_UPDATE_RETRIES"):
            settings.store.max_update_retries = int(retries)
        settings.store.__post_init__()

        # Job defaults
        if queue := os.getenv(f"{prefix}QUEUE"):
            settings.jobs.queue = queue
        if retry_failed := os.getenv(f"{prefix}RETRY_FAILED"):
            settings.jobs.retry_failed = int(retry_failed)
        if retry_failed_child := os.getenv(f"{prefix}RETRY_FAILED_CHILD"):
            settings.jobs.retry_failed_child = int(retry_failed_child)
        settings.jobs.__post_init__()

        # Logging settings
        if level := os.getenv(f"{prefix}LOG_LEVEL"):
            settings.logging.level = level.upper()  # type: ignore
        if log_format := os.getenv(f"{prefix}LOG_FORMAT"):
            settings.logging.format = log_format.lower()  # type: ignore

        return settings

    @classmethod
    def from_file(cls, path: Union[str, Path]) -> "Settings":
        """
        Load settings from a YAML or TOML file.

        Args:
            path: Path to configuration file (.yaml, .yml, or .toml)

        Returns:
            Settings object with values from file
        """
        path = Path(path)

        if not path.exists():
            raise FileNotFoundError(f"Configuration file not found: {path}")

        suffix = path.suffix.lower()

        if suffix in (".yaml", ".yml"):
            with open(path) as f:
                data = yaml.safe_load(f) or {}
        elif suffix == ".toml":
            with open(path, "rb") as f:
                data = tomllib.load(f)
        else:
            raise ValueError(f"Unsupported config file format: {suffix}")

        return cls._from_dict(data)

    @classmethod
    def _from_dict(cls, data: Dict[str, Any]) -> "Settings":
        """Create Settings from a dictionary."""
        settings = cls()

        if "store" in data:
            settings.store = StoreConfig(**{
                k: v for k, v in data["store"].items()
                if hasattr(settings.store, k)
            })

        if "jobs" in data:
            settings.jobs = JobTypeConfig(**{
                k: v for k, v in data["jobs"].items()
                if hasattr(settings.jobs, k)
            })

        if "logging" in data:
            for key, value in data["logging"].items():
                if hasattr(settings.logging, key):
                    setattr(settings.logging, key, value)

        return settings

    def to_dict(self) -> Dict[str, Any]:
        """Convert settings to dictionary."""
        import dataclasses

        return dataclasses.asdict(self)


# =============================================================================
# Global Settings & Helpers
# =============================================================================

_global_settings: Optional[Settings] = None


def get_settings() -> Settings:
    """Get the global settings instance, creating with defaults if needed."""
    global _global_settings
    if _global_settings is None:
        _global_settings = Settings.from_env()
    return _global_settings


def configure(settings: Optional[Settings] = None, **kwargs) -> Settings:
    """
    Configure global settings.

    Args:
        settings: Settings object to use globally
        **kwargs: Override specific settings sections

    Returns:
        The configured Settings object
    """
    global _global_settings

    if settings is not None:
        _global_settings = settings
    elif _global_settings is None:
        _global_settings = Settings.from_env()

    for key, value in kwargs.items():
        if hasattr(_global_settings, key):
            setattr(_global_settings, key, value)

    return _global_settings


def load_env(path: Optional[str] = None, *, override: bool = False) -> bool:
    """
    Load environment variables from a .env file.

    Args:
        path: Optional path to a .env file. If not provided, uses find_dotenv().
        override: Whether to override existing environment variables.

    Returns:
        True if a .env file was found and loaded, False otherwise.
    """
    env_path = path or find_dotenv(usecwd=True)
    if not env_path:
        return False
    return load_dotenv(env_path, override=override)


__all__ = [
    "DEFAULT_QUEUE",
    "StoreConfig",
    "JobTypeConfig",
    "LoggingConfig",
    "Settings",
    "get_settings",
    "configure",
    "load_env",
]
