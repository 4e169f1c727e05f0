import os
from functools import lru_cache
from pathlib import Path
from typing import Optional


class Settings:
    def __init__(
        self,
        database_url: str,
        access_token_secret: Optional[str],
        refresh_token_secret: Optional[str],
        environment: str,
        client_url: str,
        bcrypt_rounds: int,
    ) -> None:
        self.database_url = database_url
        self.access_token_secret = access_token_secret
        self.refresh_token_secret = refresh_token_secret
        self.environment = environment
        self.client_url = client_url
        self.bcrypt_rounds = bcrypt_rounds

    @property
    def is_production(self) -> bool:
        return self.environment == "production"


def _ensure_data_dir() -> Path:
    root = Path(os.getenv("EXPENSES_DATA_DIR", "./data")).resolve()
    root.mkdir(parents=True, exist_ok=True)
    return root


def _optional_env(name: str) -> Optional[str]:
    value = os.getenv(name, "").strip()
    return value or None


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    data_dir = _ensure_data_dir()
    default_db = data_dir / "expenses.db"
    database_url = os.getenv("EXPENSES_DATABASE_URL", f"sqlite:///{default_db}")
    environment = os.getenv("EXPENSES_ENV", "development").strip().lower()
    client_url = os.getenv("EXPENSES_CLIENT_URL", "http://localhost:3000")
    bcrypt_rounds = int(os.getenv("EXPENSES_BCRYPT_ROUNDS", "12"))
    return Settings(
        database_url=database_url,
        access_token_secret=_optional_env("EXPENSES_ACCESS_TOKEN_SECRET"),
        refresh_token_secret=_optional_env("EXPENSES_REFRESH_TOKEN_SECRET"),
        environment=environment,
        client_url=client_url,
        bcrypt_rounds=bcrypt_rounds,
    )
