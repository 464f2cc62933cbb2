"""
Indexer settings.

Loads configuration from environment variables using pydantic-settings.
"""

from typing import Literal

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from indexer.config.constants import (
    DEFAULT_MAX_BLOCK_RANGE,
    DEFAULT_POLL_INTERVAL,
    DEFAULT_RPC_URL,
)


class Settings(BaseSettings):
    """Indexer settings loaded from environment variables."""

    # Blockchain RPC
    rpc_url: str = DEFAULT_RPC_URL

    # Contracts (each optional - missing address disables that projector)
    launchpad_address: str | None = None
    leaderboard_address: str | None = None
    farm_address: str | None = None

    # Polling
    poll_interval: float = Field(
        default=DEFAULT_POLL_INTERVAL,
        gt=0,
        description="Seconds between eth_getLogs polls",
    )
    max_block_range: int = Field(
        default=DEFAULT_MAX_BLOCK_RANGE,
        ge=1,
        description="Maximum number of blocks per eth_getLogs request",
    )
    start_block: int | None = Field(
        default=None,
        ge=0,
        description="First block to index (default: latest block at startup)",
    )

    # Aggregate store
    store_backend: Literal["firestore", "memory"] = "firestore"
    google_application_credentials: str | None = None
    firebase_project_id: str | None = None

    # Farm stats precision
    farm_exact_totals: bool = Field(
        default=False,
        description="Also keep exact wei totals on stats/farm as integer strings",
    )

    # Application
    log_level: str = "INFO"
    log_file: str = "logs/indexer.log"
    health_check_enabled: bool = False
    health_check_port: int = Field(
        default=8080, ge=1, le=65535, description="Health check HTTP server port"
    )

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    @field_validator(
        'launchpad_address',
        'leaderboard_address',
        'farm_address',
        mode='before',
    )
    @classmethod
    def validate_contract_address(cls, v: str | None) -> str | None:
        """Validate contract address format, treating blanks as unset."""
        if v is None:
            return None
        v = v.strip()
        if not v:
            return None
        if not v.startswith('0x') or len(v) != 42:
            raise ValueError(
                f'Invalid contract address: {v}. '
                'Must start with 0x and be 42 characters long.'
            )
        try:
            int(v[2:], 16)
        except ValueError as e:
            raise ValueError(f'Invalid contract address: {v}') from e
        return v.lower()

    @field_validator('log_level')
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        """Normalize log level name."""
        return v.upper()

    def contract_addresses(self) -> dict[str, str | None]:
        """Return configured contract addresses keyed by projector name."""
        return {
            "launchpad": self.launchpad_address,
            "farm": self.farm_address,
            "leaderboard": self.leaderboard_address,
        }


# Global settings instance
settings = Settings()
