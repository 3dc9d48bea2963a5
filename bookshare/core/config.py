"""
Configuration helpers for the Bookshare backend.

Routers and services read everything through get_settings() instead of
touching os.environ directly (database URL, signing key, SMTP, activation
window, etc.).
"""

from dataclasses import dataclass
from functools import lru_cache
import os

_DEV_SECRET_KEY = "bookshare-dev-secret-change-me"


@dataclass(frozen=True)
class Settings:
    """Typed view of environment variables."""

    app_env: str
    public_base_url: str
    database_url: str
    secret_key: str
    jwt_algorithm: str
    session_ttl_seconds: int
    activation_code_length: int
    activation_ttl_seconds: int
    smtp_host: str
    smtp_port: int
    smtp_user: str
    smtp_password: str
    smtp_from: str
    mail_async: bool
    log_level: str
    cors_origins: tuple[str, ...]

    @property
    def activation_url(self) -> str:
        return f"{self.public_base_url}/activate-account"


@lru_cache
def get_settings() -> Settings:
    """Read the current environment and build a Settings instance."""
    def _int(value: str, default: int = 0) -> int:
        try:
            return int(value)
        except (TypeError, ValueError):
            return default

    def _bool(value: str | None, default: bool = False) -> bool:
        if value is None:
            return default
        return value.strip().lower() in {"1", "true", "yes", "on"}

    app_env = (os.getenv("APP_ENV") or "dev").lower()
    secret_key = os.getenv("SECRET_KEY", "")
    if not secret_key:
        if app_env == "prod":
            raise RuntimeError("SECRET_KEY must be configured when APP_ENV=prod.")
        secret_key = _DEV_SECRET_KEY
    origins = os.getenv("CORS_ORIGINS", "")

    return Settings(
        app_env=app_env,
        public_base_url=os.getenv("PUBLIC_BASE_URL", "http://localhost:4200").rstrip("/"),
        database_url=os.getenv("DATABASE_URL", "sqlite:///./bookshare.db"),
        secret_key=secret_key,
        jwt_algorithm=os.getenv("JWT_ALGORITHM", "HS256"),
        session_ttl_seconds=_int(os.getenv("SESSION_TTL_SECONDS", "86400"), 86400),
        activation_code_length=max(1, _int(os.getenv("ACTIVATION_CODE_LENGTH", "6"), 6)),
        activation_ttl_seconds=_int(os.getenv("ACTIVATION_TTL_SECONDS", "900"), 900),
        smtp_host=os.getenv("SMTP_HOST", ""),
        smtp_port=_int(os.getenv("SMTP_PORT", "465"), 465),
        smtp_user=os.getenv("SMTP_USER", ""),
        smtp_password=os.getenv("SMTP_PASSWORD", ""),
        smtp_from=os.getenv("SMTP_FROM", os.getenv("SMTP_USER", "")),
        mail_async=_bool(os.getenv("MAIL_ASYNC"), True),
        log_level=(os.getenv("LOG_LEVEL") or "INFO").upper(),
        cors_origins=tuple(o.strip() for o in origins.split(",") if o.strip()),
    )
