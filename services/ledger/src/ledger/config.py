import os
from pathlib import Path

from pydantic_settings import BaseSettings, SettingsConfigDict


def _find_env_file() -> str | None:
    """Find .env file, preferring .env.local for local development."""
    for env_file in [".env.local", ".env"]:
        # Check in current directory and project root
        for base in [".", os.environ.get("REPO_ROOT", "")]:
            if base:
                path = Path(base) / env_file
                if path.exists():
                    return str(path)
    return None


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=_find_env_file(),
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # DATABASE_URL from environment (production/CI)
    # Falls back to SQLite for local development if not set
    database_url: str = "sqlite:///./ledger.db"

    # JSON-RPC endpoint used for contract reads (reserve state, oracle, ERC20)
    rpc_url: str = "https://base.publicnode.com"

    # Event cursor used when the store holds no transactions yet
    # Base mainnet Aave V3 launch (2024-03-01 00:00:00 UTC)
    first_event_time: int = 1709251200


settings = Settings()
