import os
from functools import lru_cache
from pathlib import Path


class Settings:
    def __init__(
        self,
        database_url: str,
        session_secret: str,
        session_max_age: int,
        environment: str,
        log_level: str,
        seed_categories: bool,
    ) -> None:
        self.database_url = database_url
        self.session_secret = session_secret
        self.session_max_age = session_max_age
        self.environment = environment
        self.log_level = log_level
        self.seed_categories = seed_categories

    @property
    def is_development(self) -> bool:
        return self.environment == "development"


def _ensure_data_dir() -> Path:
    root = Path(os.getenv("FINTRACKER_DATA_DIR", "./data")).resolve()
    root.mkdir(parents=True, exist_ok=True)
    return root


def _env_flag(name: str, default: bool) -> bool:
    raw = os.getenv(name)
    if raw is None:
        return default
    return raw.strip().lower() in {"1", "true", "yes", "on"}


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    data_dir = _ensure_data_dir()
    default_db = data_dir / "fintracker.db"
    database_url = os.getenv("FINTRACKER_DATABASE_URL", f"sqlite:///{default_db}")
    session_secret = os.getenv(
        "FINTRACKER_SESSION_SECRET",
        "3c1f9a7e52d04b8f86a1e0c4d7b29f65a8e3c0d1b4f7a2e9c6d5b8a1f0e3d7c2",
    )
    session_max_age = int(os.getenv("FINTRACKER_SESSION_MAX_AGE", str(14 * 24 * 3600)))
    environment = os.getenv("FINTRACKER_ENV", "production").strip().lower()
    log_level = os.getenv("FINTRACKER_LOG_LEVEL", "INFO").upper()
    seed_categories = _env_flag("FINTRACKER_SEED_CATEGORIES", True)
    return Settings(
        database_url=database_url,
        session_secret=session_secret,
        session_max_age=session_max_age,
        environment=environment,
        log_level=log_level,
        seed_categories=seed_categories,
    )
