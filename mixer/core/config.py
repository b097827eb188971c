"""Starknet Lightning Mixer - Core configuration."""

from functools import lru_cache
from typing import Literal

from pydantic import Field
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
    app_name: str = "Starknet Lightning Mixer"
    environment: Literal["development", "production", "test"] = "development"
    debug: bool = False
    log_level: str = Field(default="INFO", description="Root log level")
    allowed_origins: str = Field(
        default="http://localhost:3000",
        description="Comma-separated list of allowed CORS origins",
    )

    # Database
    database_url: str = Field(
        default="sqlite+aiosqlite:///./mixer.db",
        description="Async SQLAlchemy URL (sqlite+aiosqlite or mysql+aiomysql)",
    )

    # Mixing pipeline
    step_duration_scale: float = Field(
        default=1.0,
        ge=0,
        description="Multiplier applied to every nominal step duration (0 = instant)",
    )
    retry_restarts_pipeline: bool = Field(
        default=True,
        description="Re-enter the step scheduler after a successful retry",
    )
    invoice_expiry_seconds: int = Field(default=3600, description="Deposit invoice expiry")
    sats_per_token_unit: int = Field(
        default=1000, description="Mock conversion rate of one token unit into sats"
    )

    # Lightning node
    lnd_rpc_url: str = Field(default="localhost:10009", description="LND gRPC host:port")
    lnd_macaroon_path: str = Field(default="", description="LND macaroon path")
    lnd_cert_path: str = Field(default="", description="LND TLS certificate path")

    # Cashu mint
    cashu_mint_url: str = Field(
        default="https://testnet.cashu.space", description="Cashu mint endpoint"
    )

    # Atomiq swaps
    atomiq_api_url: str = Field(default="https://api.atomiq.io", description="Atomiq API")
    atomiq_api_key: str = Field(default="mock-key", description="Atomiq API key")

    # Simulation
    simulated_failure_rate: float = Field(
        default=0.0,
        ge=0,
        le=1,
        description="Probability that a simulated integration call fails",
    )

    # Push channel
    ws_queue_size: int = Field(
        default=100, ge=1, description="Outbound message buffer per WebSocket observer"
    )

    @property
    def cors_origins(self) -> list[str]:
        """Allowed CORS origins as a list."""
        return [origin.strip() for origin in self.allowed_origins.split(",") if origin.strip()]

    @property
    def is_production(self) -> bool:
        return self.environment == "production"


@lru_cache
def get_settings() -> Settings:
    """Get cached application settings."""
    return Settings()
