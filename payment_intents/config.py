import os
from dataclasses import dataclass
from functools import lru_cache
from pathlib import Path
from typing import Optional

from dotenv import load_dotenv

# Force-load .env (Windows-safe, reload-safe)
BASE_DIR = Path(__file__).resolve().parent.parent
ENV_PATH = BASE_DIR / ".env"
load_dotenv(dotenv_path=ENV_PATH)

DEFAULT_DATABASE_URL = "sqlite:///./payment_intents.db"
DEFAULT_WEBHOOK_TOLERANCE = 300


@dataclass(frozen=True)
class Settings:
    app_env: str
    stripe_secret_key: Optional[str]
    webhook_secret: Optional[str]
    webhook_tolerance: int
    currency: str
    database_url: str
    catalog_path: Path
    log_level: str

    @classmethod
    def from_env(cls) -> "Settings":
        app_env = os.getenv("APP_ENV", "development")
        # Signing secrets are keyed by environment name, e.g.
        # STRIPE_HANDLE_EVENT_SECRET_production
        webhook_secret = os.getenv(f"STRIPE_HANDLE_EVENT_SECRET_{app_env}") or os.getenv(
            "STRIPE_WEBHOOK_SECRET"
        )
        return cls(
            app_env=app_env,
            stripe_secret_key=os.getenv("STRIPE_SECRET_KEY"),
            webhook_secret=webhook_secret,
            webhook_tolerance=int(
                os.getenv("STRIPE_WEBHOOK_TOLERANCE", DEFAULT_WEBHOOK_TOLERANCE)
            ),
            currency=os.getenv("PAYMENT_CURRENCY", "usd").lower(),
            database_url=os.getenv("DATABASE_URL", DEFAULT_DATABASE_URL),
            catalog_path=Path(os.getenv("CATALOG_PATH", BASE_DIR / "catalog.json")),
            log_level=os.getenv("LOG_LEVEL", "INFO").upper(),
        )


@lru_cache
def get_settings() -> Settings:
    return Settings.from_env()
