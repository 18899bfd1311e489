"""Application settings and configuration."""

import sys

from pydantic_settings import BaseSettings, SettingsConfigDict

_INSECURE_JWT_DEFAULTS = {"change-me-in-production", "secret", "your_jwt_secret_key_here_at_least_32_characters"}


class Settings(BaseSettings):
    """Application configuration."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Application
    app_name: str = "june-waitlist"
    env: str = "development"
    log_level: str = "INFO"
    log_format: str = "console"  # console or json
    allowed_origins: str = (
        "https://june.money,https://june.netlify.app,http://localhost:5173,http://localhost:3000"
    )

    # Database
    database_url: str = "sqlite:///./waitlist.db"

    # Sign-in links
    jwt_secret_key: str = "change-me-in-production"
    sign_in_link_ttl_minutes: int = 60
    verify_url: str = "https://june.money/verify"
    site_url: str = "https://june.money/"

    # Mailgun
    mailgun_api_key: str | None = None
    mailgun_domain: str | None = None
    mailgun_from: str = "JUNE <hello@june.money>"
    mailgun_base_url: str = "https://api.mailgun.net"

    # HTTP Client
    request_timeout_seconds: float = 30.0

    # Referrals
    referral_code_prefix: str = "JUNE"
    referral_code_length: int = 6
    referral_code_max_attempts: int = 10
    leaderboard_size: int = 10
    invites_per_user: int = 5

    # Rate limiting (unset: enabled in production only)
    rate_limit_enabled: bool | None = None
    rate_limit_storage_uri: str = "memory://"
    rate_limit_default: str = "200/minute"
    rate_limit_sign_in: str = "5/minute"
    rate_limit_verify: str = "20/minute"
    rate_limit_validate: str = "30/minute"

    @property
    def email_enabled(self) -> bool:
        return bool(self.mailgun_api_key and self.mailgun_domain)


# Global settings instance
settings = Settings()

# ── Security validation ──────────────────────────────────────────────
if settings.env == "production":
    if settings.jwt_secret_key in _INSECURE_JWT_DEFAULTS or len(settings.jwt_secret_key) < 32:
        print(
            "\n❌  FATAL: JWT_SECRET_KEY is insecure or too short (min 32 chars).\n"
            "   Set a strong random value:  openssl rand -hex 32\n",
            file=sys.stderr,
        )
        sys.exit(1)
