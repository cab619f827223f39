"""
Settings for the trade journal embedding toolkit.

Values are looked up in AWS Systems Manager Parameter Store under
``/trade-journal/<KEY>`` when running in AWS (AWS_REGION set), then in the
process environment, then in the defaults below. Resolved values are cached
per Config instance.
"""

import os
import logging
from typing import Any, Callable, Dict, Optional
from functools import lru_cache
import boto3
from botocore.exceptions import BotoCoreError, ClientError

logger = logging.getLogger(__name__)

DEFAULT_EMBEDDING_MODEL = "voyage-3.5-lite"
DEFAULT_BATCH_SIZE = 5
DEFAULT_BATCH_DELAY_SECONDS = 0.1
DEFAULT_SIMILARITY_THRESHOLD = 0.5
DEFAULT_MAX_RESULTS = 20


class ConfigError(Exception):
    """Raised when a setting is missing or malformed."""
    pass


class Config:
    """
    Layered settings lookup: Parameter Store, environment, defaults.

    Usage:
        config = Config()
        api_key = config.get("VOYAGE_API_KEY")
        batch_size = config.get_migration_config()["batch_size"]
    """

    def __init__(self, parameter_prefix: str = "/trade-journal", use_local: bool = None):
        """
        Args:
            parameter_prefix: Parameter Store path prefix
            use_local: Skip Parameter Store entirely. None means "local unless AWS_REGION is set".
        """
        self.parameter_prefix = parameter_prefix.rstrip("/")
        self._cache: Dict[str, str] = {}
        self.use_local = os.getenv("AWS_REGION") is None if use_local is None else use_local
        self.ssm_client = None

        if not self.use_local:
            try:
                self.ssm_client = boto3.client("ssm")
                logger.info(f"Reading settings from Parameter Store under {self.parameter_prefix}")
            except Exception as e:
                logger.warning(f"SSM client unavailable, using environment only: {e}")
                self.use_local = True

    def get(self, key: str, default: Optional[str] = None, required: bool = False) -> Optional[str]:
        """
        Resolve a setting.

        Args:
            key: Setting name, e.g. "VOYAGE_API_KEY"
            default: Returned when no source defines the key
            required: Raise instead of returning None

        Raises:
            ConfigError: If required and unresolved
        """
        if key in self._cache:
            return self._cache[key]

        value = self._lookup_parameter(key) if self.ssm_client else None
        if value is None:
            value = os.getenv(key, default)

        if value is None:
            if required:
                raise ConfigError(f"Required configuration key '{key}' not found")
            return None

        self._cache[key] = value
        return value

    def _lookup_parameter(self, key: str) -> Optional[str]:
        name = f"{self.parameter_prefix}/{key}"
        try:
            response = self.ssm_client.get_parameter(Name=name, WithDecryption=True)
        except ClientError as e:
            if e.response["Error"]["Code"] != "ParameterNotFound":
                logger.warning(f"Parameter Store lookup of {name} failed: {e}")
            return None
        except BotoCoreError as e:
            logger.warning(f"Parameter Store unreachable for {name}: {e}")
            return None
        logger.debug(f"Loaded {key} from Parameter Store")
        return response["Parameter"]["Value"]

    def _typed(self, key: str, default: Any, cast: Callable[[str], Any], kind: str) -> Any:
        raw = self.get(key, default=str(default))
        try:
            return cast(raw)
        except ValueError:
            raise ConfigError(f"Configuration key '{key}' must be {kind}, got {raw!r}")

    def get_int(self, key: str, default: int) -> int:
        return self._typed(key, default, int, "an integer")

    def get_float(self, key: str, default: float) -> float:
        return self._typed(key, default, float, "a number")

    def get_database_config(self) -> Dict[str, str]:
        """
        Database settings: either a full DATABASE_URL or its parts.

        Raises:
            ConfigError: If neither DATABASE_URL nor host/username/password are set
        """
        database_url = self.get("DATABASE_URL")
        if database_url:
            return {"DATABASE_URL": database_url}

        return {
            "DATABASE_HOST": self.get("DATABASE_HOST", required=True),
            "DATABASE_PORT": self.get("DATABASE_PORT", default="5432"),
            "DATABASE_NAME": self.get("DATABASE_NAME", default="trade_journal"),
            "DATABASE_USERNAME": self.get("DATABASE_USERNAME", required=True),
            "DATABASE_PASSWORD": self.get("DATABASE_PASSWORD", required=True),
        }

    def get_database_url(self) -> str:
        """DATABASE_URL, or a PostgreSQL URL assembled from the database parts."""
        parts = self.get_database_config()
        if "DATABASE_URL" in parts:
            return parts["DATABASE_URL"]
        return (
            f"postgresql://{parts['DATABASE_USERNAME']}:{parts['DATABASE_PASSWORD']}"
            f"@{parts['DATABASE_HOST']}:{parts['DATABASE_PORT']}/{parts['DATABASE_NAME']}"
        )

    def get_api_keys(self) -> Dict[str, Optional[str]]:
        return {"VOYAGE_API_KEY": self.get("VOYAGE_API_KEY")}

    def get_migration_config(self) -> Dict[str, Any]:
        """
        Batch settings for the re-embedding migration.

        Returns:
            {"batch_size": int >= 1, "batch_delay": seconds >= 0}
        """
        batch_size = self.get_int("MIGRATION_BATCH_SIZE", DEFAULT_BATCH_SIZE)
        batch_delay = self.get_float("MIGRATION_BATCH_DELAY_SECONDS", DEFAULT_BATCH_DELAY_SECONDS)

        if batch_size < 1:
            raise ConfigError(f"MIGRATION_BATCH_SIZE must be at least 1, got {batch_size}")
        if batch_delay < 0:
            raise ConfigError(f"MIGRATION_BATCH_DELAY_SECONDS cannot be negative, got {batch_delay}")

        return {"batch_size": batch_size, "batch_delay": batch_delay}

    def get_vector_search_config(self) -> Dict[str, Any]:
        """Embedding model and default search threshold / result cap."""
        return {
            "embedding_model": self.get("VOYAGE_EMBEDDING_MODEL", default=DEFAULT_EMBEDDING_MODEL),
            "similarity_threshold": self.get_float("VECTOR_SIMILARITY_THRESHOLD", DEFAULT_SIMILARITY_THRESHOLD),
            "max_results": self.get_int("VECTOR_MAX_RESULTS", DEFAULT_MAX_RESULTS),
        }

    def clear_cache(self):
        self._cache.clear()
        logger.info("Configuration cache cleared")


@lru_cache(maxsize=1)
def get_config() -> Config:
    """Process-wide Config instance."""
    return Config()
