"""Application configuration helpers."""

from __future__ import annotations

from .env import require_env_var, require_env_vars
from .errors import ConfigurationError, MissingConfigurationError
from .logging import configure_logging
from .queue import (
    ConsumerConfig,
    IngestConfig,
    QueueConfig,
    get_consumer_config,
    get_ingest_config,
    get_queue_config,
)
from .storage import DatabaseConfig, StorageConfig, get_database_config, get_storage_config

__all__ = [
    "ConfigurationError",
    "ConsumerConfig",
    "DatabaseConfig",
    "IngestConfig",
    "MissingConfigurationError",
    "QueueConfig",
    "StorageConfig",
    "configure_logging",
    "get_consumer_config",
    "get_database_config",
    "get_ingest_config",
    "get_queue_config",
    "get_storage_config",
    "require_env_var",
    "require_env_vars",
]
