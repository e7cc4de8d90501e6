"""Service configuration loaded from environment variables."""

import os
import logging
from dataclasses import dataclass, field
from functools import lru_cache
from pathlib import Path
from typing import List

from dotenv import load_dotenv

# Load environment variables from .env file (for local development)
load_dotenv()


def _env_bool(name: str, default: bool) -> bool:
    value = os.environ.get(name)
    if value is None:
        return default
    return value.strip().lower() in ("1", "true", "yes", "on")


def _env_list(name: str) -> List[str]:
    value = os.environ.get(name, "")
    return [item.strip() for item in value.split(",") if item.strip()]


@dataclass(frozen=True)
class Settings:
    """Runtime settings. Every field maps to one environment variable."""
    database_url: str = "sqlite:///./inquiries.db"
    secret_key: str = ""
    access_token_expire_minutes: int = 60
    auth_cookie_name: str = "access_token"
    auth_query_param: str = "token"
    cookie_secure: bool = False

    submit_requires_auth: bool = False
    rate_limit_max_submissions: int = 2
    rate_limit_window_seconds: int = 3600
    trusted_proxies: List[str] = field(default_factory=list)

    captcha_enabled: bool = True
    recaptcha_secret: str = ""
    recaptcha_verify_url: str = "https://www.google.com/recaptcha/api/siteverify"
    captcha_min_score: float = 0.5
    captcha_timeout_seconds: float = 5.0

    max_upload_bytes: int = 5 * 1024 * 1024
    uploads_dir: Path = Path("uploads")
    public_base_url: str = ""
    inquiry_upload_bucket: str = "inquiries"
    storage_timeout_seconds: float = 10.0

    resend_api_key: str = ""
    resend_api_url: str = "https://api.resend.com/emails"
    from_email: str = ""
    to_email: str = ""
    studio_name: str = "the studio"
    email_timeout_seconds: float = 10.0

    cors_origins: List[str] = field(default_factory=list)
    log_level: str = "INFO"

    @classmethod
    def from_env(cls) -> "Settings":
        database_url = os.environ.get("DATABASE_URL", cls.database_url)
        # Heroku uses postgres:// but SQLAlchemy 2.0+ requires postgresql://
        if database_url.startswith("postgres://"):
            database_url = database_url.replace("postgres://", "postgresql://", 1)

        # Production (HTTPS) when running on a dyno or explicitly flagged
        is_production = bool(os.environ.get("DYNO")) or os.environ.get("ENVIRONMENT") == "production"

        return cls(
            database_url=database_url,
            secret_key=os.environ.get("SECRET_KEY", ""),
            access_token_expire_minutes=int(os.environ.get("ACCESS_TOKEN_EXPIRE_MINUTES", "60")),
            cookie_secure=_env_bool("AUTH_COOKIE_SECURE", is_production),
            submit_requires_auth=_env_bool("SUBMIT_REQUIRES_AUTH", False),
            rate_limit_max_submissions=int(os.environ.get("RATE_LIMIT_MAX_SUBMISSIONS", "2")),
            rate_limit_window_seconds=int(os.environ.get("RATE_LIMIT_WINDOW_SECONDS", "3600")),
            trusted_proxies=_env_list("TRUSTED_PROXIES"),
            captcha_enabled=_env_bool("CAPTCHA_ENABLED", True),
            recaptcha_secret=os.environ.get("RECAPTCHA_SECRET_KEY", ""),
            captcha_min_score=float(os.environ.get("CAPTCHA_MIN_SCORE", "0.5")),
            captcha_timeout_seconds=float(os.environ.get("CAPTCHA_TIMEOUT_SECONDS", "5")),
            max_upload_bytes=int(os.environ.get("MAX_UPLOAD_BYTES", str(5 * 1024 * 1024))),
            # Heroku has an ephemeral filesystem, keep uploads under /tmp there
            uploads_dir=Path(os.environ.get("UPLOADS_DIR", "/tmp/uploads" if os.environ.get("DYNO") else "uploads")),
            public_base_url=os.environ.get("PUBLIC_BASE_URL", "").rstrip("/"),
            inquiry_upload_bucket=os.environ.get("INQUIRY_UPLOAD_BUCKET", "inquiries"),
            storage_timeout_seconds=float(os.environ.get("STORAGE_TIMEOUT_SECONDS", "10")),
            resend_api_key=os.environ.get("RESEND_API_KEY", ""),
            from_email=os.environ.get("FROM_EMAIL", ""),
            to_email=os.environ.get("TO_EMAIL", ""),
            studio_name=os.environ.get("STUDIO_NAME", "the studio"),
            email_timeout_seconds=float(os.environ.get("EMAIL_TIMEOUT_SECONDS", "10")),
            cors_origins=_env_list("CORS_ORIGINS"),
            log_level=os.environ.get("LOG_LEVEL", "INFO").upper(),
        )


@lru_cache()
def get_settings() -> Settings:
    """Settings are read once per process."""
    settings = Settings.from_env()
    if not settings.secret_key:
        logging.warning(
            "SECRET_KEY environment variable is not set. "
            "JWT token operations will fail. "
            "Please set SECRET_KEY to a secure random string."
        )
    return settings
