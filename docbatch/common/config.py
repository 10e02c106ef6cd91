"""
Configuration loader for docbatch.

Loads store settings from environment variables (.env file).
A single connection string supplies the store endpoint.
"""

import logging
import os
from dataclasses import dataclass

from dotenv import load_dotenv

# Load environment variables from .env file
load_dotenv()

logger = logging.getLogger(__name__)

DEFAULT_DATABASE = "docbatch"
DEFAULT_PAGE_SIZE = 500
DEFAULT_SERVER_SELECTION_TIMEOUT_MS = 5000


def _int_from_env(name: str, default: int) -> int:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        value = int(raw)
    except ValueError:
        logger.warning(f"Invalid {name} '{raw}', defaulting to {default}")
        return default
    if value < 1:
        logger.warning(f"{name} must be >= 1, got {value}; defaulting to {default}")
        return default
    return value


@dataclass
class StoreConfig:
    """
    Configuration for a store handle.

    Loaded from environment variables with sensible defaults.
    """
    url: str
    database: str = DEFAULT_DATABASE
    server_selection_timeout_ms: int = DEFAULT_SERVER_SELECTION_TIMEOUT_MS
    default_page_size: int = DEFAULT_PAGE_SIZE

    @classmethod
    def from_env(cls) -> "StoreConfig":
        """
        Load configuration from environment variables.

        Environment variables:
        - MONGO_DB_URL (required): MongoDB connection string
        - MONGO_DB_NAME: Database used when the URL names none
        - MONGO_SERVER_SELECTION_TIMEOUT_MS: Driver server selection timeout
        - DOCBATCH_PAGE_SIZE: Default window size for batch traversal

        Returns:
            StoreConfig instance

        Raises:
            ValueError: If MONGO_DB_URL is not set
        """
        url = os.getenv("MONGO_DB_URL")
        if not url:
            raise ValueError("MONGO_DB_URL environment variable is required")

        return cls(
            url=url,
            database=os.getenv("MONGO_DB_NAME") or DEFAULT_DATABASE,
            server_selection_timeout_ms=_int_from_env(
                "MONGO_SERVER_SELECTION_TIMEOUT_MS", DEFAULT_SERVER_SELECTION_TIMEOUT_MS
            ),
            default_page_size=_int_from_env("DOCBATCH_PAGE_SIZE", DEFAULT_PAGE_SIZE),
        )
