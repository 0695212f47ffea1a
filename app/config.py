from pathlib import Path
from urllib.parse import urlparse

from pydantic_settings import BaseSettings, SettingsConfigDict

ENV_PATH = Path(__file__).resolve().parent.parent / ".env.local"


class Settings(BaseSettings):
    # Environment settings
    environment: str = "development"
    debug: bool = False
    LOG_LEVEL: str = "INFO"

    # Zoom webhook settings
    ZOOM_WEBHOOK_SECRET_TOKEN: str | None = None
    ZOOM_REQUIRE_SIGNED_VALIDATION: bool = False

    # Forward sink (e.g. a spreadsheet logging endpoint)
    FORWARD_WEBHOOK_URL: str | None = None
    FORWARD_AUTH_TOKEN: str | None = None
    FORWARD_AUTH_FIELD: str = "auth_token"
    FORWARD_TIMEOUT_SECONDS: float = 10.0

    # Durable store; the service runs with a no-op store when unset
    DATABASE_URL: str | None = None

    # Redis backs the per-key lock when several workers share one store
    REDIS_URL: str | None = None
    KEY_LOCK_TIMEOUT_SECONDS: float = 30.0

    # Proxy handling for request context
    TRUST_X_FORWARDED_FOR: bool = False
    TRUSTED_PROXY_IPS: list[str] = []

    # =================================================================
    # DATABASE POOL SETTINGS
    # =================================================================
    DB_POOL_MIN_SIZE: int = 1
    DB_POOL_MAX_SIZE: int = 8
    DB_POOL_TIMEOUT: float = 30.0
    DB_POOL_MAX_IDLE: float = 600.0  # 10 minutes
    DB_POOL_MAX_LIFETIME: float = 3600.0  # 1 hour

    model_config = SettingsConfigDict(
        env_file=str(ENV_PATH),
        env_file_encoding="utf-8",
        extra="ignore",
    )

    def persistence_enabled(self) -> bool:
        return bool(self.DATABASE_URL)

    def forwarding_enabled(self) -> bool:
        return bool(self.FORWARD_WEBHOOK_URL)

    def forward_host(self) -> str | None:
        """
        Host part of the forward sink URL, safe to log (the path of
        Apps Script style endpoints carries the deployment secret).
        """
        if not self.FORWARD_WEBHOOK_URL:
            return None
        try:
            return urlparse(self.FORWARD_WEBHOOK_URL).hostname
        except Exception:
            return None

    def get_db_pool_config(self) -> dict:
        """
        Get database pool configuration.
        Adjust environment-specific settings based on self.environment.
        """
        config = {
            "min_size": self.DB_POOL_MIN_SIZE,
            "max_size": self.DB_POOL_MAX_SIZE,
            "timeout": self.DB_POOL_TIMEOUT,
            "max_idle": self.DB_POOL_MAX_IDLE,
            "max_lifetime": self.DB_POOL_MAX_LIFETIME,
        }

        if self.environment == "development":
            # Webhook traffic is bursty but tiny; keep local pools small
            config.update(
                {
                    "max_size": min(self.DB_POOL_MAX_SIZE, 4),
                    "timeout": 15.0,
                }
            )

        return config


settings = Settings()
