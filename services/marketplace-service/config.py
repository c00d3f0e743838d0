"""Configuration from environment variables."""

import os
from pathlib import Path
from typing import Optional

from dotenv import load_dotenv

# Load .env from project root
_project_root = Path(__file__).resolve().parents[2]
load_dotenv(_project_root / ".env")


def get_env(key: str, default: Optional[str] = None) -> Optional[str]:
    """Get environment variable."""
    return os.getenv(key, default)


def get_env_bool(key: str, default: bool = False) -> bool:
    """Get boolean env var."""
    v = os.getenv(key, "").lower()
    return v in ("1", "true", "yes") if v else default


def get_env_int(key: str, default: int) -> int:
    """Get integer env var, falling back to default on garbage."""
    try:
        return int(os.getenv(key, ""))
    except ValueError:
        return default


class Settings:
    """Marketplace service settings."""

    # Supabase
    supabase_url: str = get_env("SUPABASE_URL") or ""
    supabase_key: str = get_env("SUPABASE_SECRET_KEY") or get_env("SUPABASE_SERVICE_KEY") or ""

    # Stripe
    stripe_secret_key: str = get_env("STRIPE_SECRET_KEY") or ""
    stripe_webhook_secret: str = get_env("STRIPE_WEBHOOK_SECRET") or ""
    stripe_currency: str = (get_env("STRIPE_CURRENCY") or "inr").lower()
    stripe_max_network_retries: int = get_env_int("STRIPE_MAX_NETWORK_RETRIES", 2)

    # Pull verification of checkout sessions (no webhook reachable)
    test_mode: bool = get_env_bool("TEST_MODE", False)

    # Email (Resend)
    resend_api_key: str = get_env("RESEND_API_KEY") or ""
    mail_from_email: str = get_env("MAIL_FROM_EMAIL") or "orders@farmer-marketplace.local"
    mail_from_name: str = get_env("MAIL_FROM_NAME") or "Farmer Marketplace"

    # Service
    environment: str = get_env("ENVIRONMENT", "development")
    log_level: str = get_env("LOG_LEVEL", "INFO")
    cors_origins: str = get_env("CORS_ORIGINS", "*")
    public_base_url: str = (get_env("PUBLIC_BASE_URL") or "http://localhost:3000").rstrip("/")

    @property
    def supabase_configured(self) -> bool:
        return bool(self.supabase_url and self.supabase_key)

    @property
    def stripe_configured(self) -> bool:
        return bool(self.stripe_secret_key)

    @property
    def resend_configured(self) -> bool:
        return bool(self.resend_api_key)

    @property
    def is_production(self) -> bool:
        return self.environment.lower() == "production"


settings = Settings()
