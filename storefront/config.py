import os
from dataclasses import dataclass
from pathlib import Path

from dotenv import load_dotenv

# Force-load .env (Windows-safe, reload-safe)
BASE_DIR = Path(__file__).resolve().parent.parent
ENV_PATH = BASE_DIR / ".env"


@dataclass(frozen=True)
class Settings:
    """Process-wide configuration, loaded once at startup and never mutated."""

    database_url: str
    callback_secret: str
    jwt_secret: str | None = None
    jwt_algorithm: str = "HS256"
    gateway: str = "fake"
    stripe_secret_key: str | None = None
    currency: str = "eur"
    gateway_timeout: float = 10.0
    log_level: str = "INFO"
    json_logs: bool = False

    @classmethod
    def from_env(cls) -> "Settings":
        load_dotenv(dotenv_path=ENV_PATH)

        database_url = os.getenv("DATABASE_URL")
        if not database_url:
            raise RuntimeError("DATABASE_URL is not set. Check your .env file.")

        callback_secret = os.getenv("GATEWAY_CALLBACK_SECRET")
        if not callback_secret:
            raise RuntimeError("GATEWAY_CALLBACK_SECRET is not set. Check your .env file.")

        gateway = os.getenv("PAYMENT_GATEWAY", "fake").lower()
        if gateway not in ("fake", "stripe"):
            raise RuntimeError(f"Unknown PAYMENT_GATEWAY {gateway!r}")

        return cls(
            database_url=database_url,
            callback_secret=callback_secret,
            jwt_secret=os.getenv("JWT_SECRET"),
            jwt_algorithm=os.getenv("JWT_ALGORITHM", "HS256"),
            gateway=gateway,
            stripe_secret_key=os.getenv("STRIPE_SECRET_KEY"),
            currency=os.getenv("CURRENCY", "eur").lower(),
            gateway_timeout=float(os.getenv("GATEWAY_TIMEOUT", "10")),
            log_level=os.getenv("LOG_LEVEL", "INFO").upper(),
            json_logs=os.getenv("ENVIRONMENT", "development").lower() in ("production", "staging"),
        )
