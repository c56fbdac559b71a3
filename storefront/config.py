"""
Configuration management for the storefront cart service.
Loads settings from environment variables and AWS Secrets Manager.
"""
import os
import json
import logging
import boto3
from typing import Optional
from botocore.exceptions import BotoCoreError, ClientError

from storefront.exceptions import ConfigurationError

logger = logging.getLogger(__name__)


def _optional_int(name: str) -> Optional[int]:
    raw = os.getenv(name, "").strip()
    return int(raw) if raw else None


class Config:
    """Application configuration"""

    # Application settings
    APP_PORT: int = int(os.getenv("APP_PORT", "8000"))
    PROJECT_NAME: str = os.getenv("PROJECT_NAME", "storefront")
    REGION: str = os.getenv("REGION", "ap-southeast-2")
    LOG_LEVEL: str = os.getenv("LOG_LEVEL", "INFO")

    # Redis settings
    REDIS_HOST: Optional[str] = os.getenv("REDIS_HOST")
    REDIS_PORT: int = int(os.getenv("REDIS_PORT", "6379"))
    REDIS_AUTH_TOKEN: Optional[str] = os.getenv("REDIS_AUTH_TOKEN")
    REDIS_DB: int = int(os.getenv("REDIS_DB", "0"))
    REDIS_SSL: bool = os.getenv("REDIS_SSL", "false").lower() in ("1", "true", "yes")
    REDIS_SECRET_NAME: Optional[str] = os.getenv("REDIS_SECRET_NAME")

    # Cart settings (unset means carts never expire)
    CART_TTL_SECONDS: Optional[int] = _optional_int("CART_TTL_SECONDS")
    MAX_QUANTITY_PER_ITEM: int = int(os.getenv("MAX_QUANTITY_PER_ITEM", "99"))

    # Redis connection settings
    REDIS_SOCKET_CONNECT_TIMEOUT: int = 5
    REDIS_SOCKET_TIMEOUT: int = 5
    REDIS_MAX_CONNECTIONS: int = 50

    REQUIRED = ("REDIS_HOST",)

    @classmethod
    def load_redis_secrets(cls) -> None:
        """Load Redis host and auth token from AWS Secrets Manager"""
        if cls.REDIS_AUTH_TOKEN or not cls.REDIS_SECRET_NAME:
            return

        try:
            client = boto3.client("secretsmanager", region_name=cls.REGION)
            response = client.get_secret_value(SecretId=cls.REDIS_SECRET_NAME)
            secret_data = json.loads(response["SecretString"])
        except (BotoCoreError, ClientError, ValueError, KeyError) as e:
            raise ConfigurationError(
                f"Could not load Redis secret {cls.REDIS_SECRET_NAME}: {e}"
            ) from e

        cls.REDIS_AUTH_TOKEN = secret_data.get("auth_token")
        if "endpoint" in secret_data:
            cls.REDIS_HOST = secret_data["endpoint"]
        logger.info("Loaded Redis settings from Secrets Manager")

    @classmethod
    def validate(cls) -> None:
        """Fail fast when a required setting is missing"""
        cls.load_redis_secrets()
        missing = [name for name in cls.REQUIRED if not getattr(cls, name)]
        if missing:
            raise ConfigurationError(
                f"Missing required configuration: {', '.join(missing)}"
            )

    @classmethod
    def redis_url(cls) -> str:
        scheme = "rediss" if cls.REDIS_SSL else "redis"
        auth = f":{cls.REDIS_AUTH_TOKEN}@" if cls.REDIS_AUTH_TOKEN else ""
        return f"{scheme}://{auth}{cls.REDIS_HOST}:{cls.REDIS_PORT}/{cls.REDIS_DB}"
