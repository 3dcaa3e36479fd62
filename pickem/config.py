"""
Environment-driven configuration for the data layer.

Values are read at call time (not import time) so tests can patch os.environ.
"""

import logging
import os
from typing import Dict, Any

from dotenv import load_dotenv

load_dotenv()

SUPPORTED_DATABASE_TYPES = ("sqlite", "dynamodb")
DEFAULT_TABLE_PREFIX = "football_pickem_"
DEFAULT_DATABASE_PATH = "./data/pickem.db"
LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"


def get_bool_env(key: str, default: bool = False) -> bool:
    """
    Parse a boolean environment variable from a string value.

    Args:
        key: Environment variable name
        default: Default value if the variable is not set

    Returns:
        bool: Parsed boolean value
    """
    value = os.getenv(key)
    if value is None:
        return default
    return value.lower() in ("true", "1", "yes")


def get_app_env() -> str:
    """Return the deployment environment name (APP_ENV, falling back to NODE_ENV)."""
    return os.getenv("APP_ENV") or os.getenv("NODE_ENV") or "development"


def resolve_database_type(value: str = None) -> str:
    """
    Resolve the configured backend selector to a concrete provider type.

    "auto" picks dynamodb in production and sqlite everywhere else.

    Raises:
        ValueError: If the selector names an unsupported backend
    """
    db_type = (value or os.getenv("DATABASE_TYPE") or "sqlite").strip().lower()
    if db_type == "auto":
        return "dynamodb" if get_app_env() == "production" else "sqlite"
    if db_type not in SUPPORTED_DATABASE_TYPES:
        raise ValueError(
            f"Unsupported DATABASE_TYPE '{db_type}'. "
            f"Expected one of: {', '.join(SUPPORTED_DATABASE_TYPES)}, auto"
        )
    return db_type


def get_database_config() -> Dict[str, Any]:
    """Read storage configuration from the environment."""
    return {
        "type": resolve_database_type(),
        "sqlite_path": os.getenv("DATABASE_PATH", DEFAULT_DATABASE_PATH),
        "sql_echo": get_bool_env("SQL_ECHO"),
        "region": os.getenv("AWS_REGION", "us-east-1"),
        "table_prefix": os.getenv("DYNAMODB_TABLE_PREFIX", DEFAULT_TABLE_PREFIX),
        "endpoint_url": os.getenv("DYNAMODB_ENDPOINT_URL") or None,
        "access_key_id": os.getenv("AWS_ACCESS_KEY_ID") or None,
        "secret_access_key": os.getenv("AWS_SECRET_ACCESS_KEY") or None,
    }


def configure_logging(level: str = None):
    """Configure root logging with the standard format and LOG_LEVEL."""
    log_level = (level or os.getenv("LOG_LEVEL", "INFO")).upper()
    logging.basicConfig(
        level=getattr(logging, log_level, logging.INFO),
        format=LOG_FORMAT,
    )
