"""
Storage provider construction and process-wide lifecycle.

The provider is created and initialized once per process (init_provider) and
closed on shutdown (close_provider). Nothing connects at import time.
"""

import logging
from typing import Any, Dict, Optional

from pickem.config import get_database_config
from pickem.providers.base import StorageProvider

logger = logging.getLogger(__name__)

_provider: Optional[StorageProvider] = None


def create_provider(config: Optional[Dict[str, Any]] = None) -> StorageProvider:
    """
    Build an uninitialized provider for the configured backend.

    Args:
        config: Output of get_database_config(); read from the environment when omitted

    Returns:
        SQLiteProvider or DynamoDBProvider
    """
    config = config or get_database_config()
    db_type = config["type"]

    if db_type == "sqlite":
        from pickem.providers.sqlite_provider import SQLiteProvider

        return SQLiteProvider(config["sqlite_path"], echo=config.get("sql_echo", False))

    if db_type == "dynamodb":
        from pickem.providers.dynamodb_provider import DynamoDBProvider

        return DynamoDBProvider(
            region=config["region"],
            table_prefix=config["table_prefix"],
            endpoint_url=config.get("endpoint_url"),
            access_key_id=config.get("access_key_id"),
            secret_access_key=config.get("secret_access_key"),
        )

    raise ValueError(f"Unsupported database type: {db_type}")


async def init_provider(config: Optional[Dict[str, Any]] = None) -> StorageProvider:
    """Create and initialize the process-wide provider (no-op if already running)."""
    global _provider
    if _provider is None:
        provider = create_provider(config)
        await provider.initialize()
        _provider = provider
        logger.info(f"Storage provider ready: {provider.get_type()}")
    return _provider


def get_provider() -> StorageProvider:
    """
    Return the initialized provider.

    Raises:
        RuntimeError: If init_provider() has not run
    """
    if _provider is None:
        raise RuntimeError("Storage provider not initialized; call init_provider() at startup")
    return _provider


async def close_provider():
    """Close and forget the process-wide provider."""
    global _provider
    if _provider is not None:
        await _provider.close()
        _provider = None
