"""
FireChain - Configuration Management
Centralized configuration using pydantic-settings.
"""

from functools import lru_cache
from typing import List, Optional

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Application
    app_env: str = "development"
    debug: bool = True
    log_level: str = "INFO"

    # Ledger backend: "memory" or "sql"
    ledger_backend: str = "memory"
    database_url: str = "sqlite:///./firechain.db"
    db_echo: bool = False

    # Ledger confirmation and retry policy
    ledger_confirmation_timeout_seconds: float = 30.0
    ledger_max_retries: int = 3
    ledger_retry_backoff_seconds: float = 0.2

    # Rewards and emergency fund
    reward_amount: int = 10
    initial_fund_pool: int = 0

    # Authorization allow-lists (empty means any authenticated actor)
    authorized_verifiers: List[str] = []
    fund_approvers: List[str] = []

    # Twilio (SMS)
    twilio_account_sid: Optional[str] = None
    twilio_auth_token: Optional[str] = None
    twilio_phone_number: Optional[str] = None
    notify_phone_numbers: List[str] = []
    notification_workers: int = 2

    # API Settings
    api_host: str = "0.0.0.0"
    api_port: int = 8000
    api_workers: int = 4

    @property
    def is_production(self) -> bool:
        return self.app_env == "production"

    @property
    def uses_sql_ledger(self) -> bool:
        return self.ledger_backend.lower() == "sql"

    @property
    def server_workers(self) -> int:
        """Uvicorn worker processes; the in-memory ledger lives in one process."""
        return self.api_workers if self.uses_sql_ledger else 1


@lru_cache()
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()


# Global settings instance
settings = get_settings()
