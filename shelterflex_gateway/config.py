"""Configuration management using Pydantic Settings"""

from decimal import Decimal
from typing import List, Literal

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application configuration loaded from environment variables"""

    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8", extra="ignore")

    # Database
    database_url: str = "sqlite:///./shelterflex.db"
    auto_create_schema: bool = True

    # Ledger (Soroban contract behind an adapter)
    ledger_adapter: Literal["stub", "http"] = "stub"
    ledger_api_base: str = "http://localhost:8002"
    soroban_rpc_url: str = "https://soroban-testnet.stellar.org"
    soroban_network_passphrase: str = "Test SDF Network ; September 2015"
    soroban_contract_id: str | None = None

    # Service
    service_name: str = "shelterflex-gateway"
    environment: str = "development"
    log_level: str = "INFO"

    # HTTP Client
    http_timeout_seconds: float = 5.0
    ledger_max_retries: int = 3
    ledger_backoff_base: float = 0.5  # Exponential backoff base in seconds

    # Outbox retry bookkeeping
    outbox_backoff_base_seconds: float = 30.0
    outbox_backoff_max_seconds: float = 3600.0

    # Deal origination rules
    allowed_term_months: List[int] = [3, 6, 12]
    min_deposit_ratio: Decimal = Decimal("0.2")
    grace_period_days: int = 5

    @property
    def is_production(self) -> bool:
        return self.environment.lower() == "production"


settings = Settings()
