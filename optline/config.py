"""OPTLINE — Central Configuration via Pydantic Settings."""

import os
from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """Application settings loaded from environment variables / .env file."""

    # ── Database ──
    database_url: str = ""

    # ── Subscription Management ──
    dashboard_url_prefix: str = "/dashboard"
    subscription_management_page: str = "/public/subscription-management"
    subscription_secret_name: str = "subscription-key"
    email_channel_name: str = "email"

    # ── App ──
    log_level: str = "INFO"

    @property
    def effective_database_url(self) -> str:
        """Return an async driver URL: PostgreSQL if set, otherwise SQLite."""
        if self.database_url:
            url = self.database_url
            if url.startswith("postgres://"):
                url = "postgresql://" + url[len("postgres://") :]
            if url.startswith("postgresql://"):
                return "postgresql+asyncpg://" + url[len("postgresql://") :]
            return url
        # Vercel has a read-only filesystem; use /tmp for SQLite
        if os.environ.get("VERCEL"):
            return "sqlite+aiosqlite:////tmp/optline.db"
        return "sqlite+aiosqlite:///./optline.db"

    model_config = {
        "env_file": ".env",
        "env_file_encoding": "utf-8",
        "env_prefix": "OPTLINE_",
    }


settings = Settings()
