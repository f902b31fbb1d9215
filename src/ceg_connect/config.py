"""CEG Connect backend: configuration loaded from environment."""

from enum import Enum

from pydantic_settings import BaseSettings


class OTPDeliveryMode(str, Enum):
    """How an issued OTP reaches the user.

    ``disclose`` returns the code in the HTTP response and skips email
    (local development only).  ``send_only`` emails the code and never
    returns it to the caller.
    """

    DISCLOSE = "disclose"
    SEND_ONLY = "send_only"


class Settings(BaseSettings):
    """Application-wide settings, loaded from .env or environment variables."""

    # ── Database ──────────────────────────────────────────
    database_url: str = "sqlite+aiosqlite:///./ceg_connect.db"

    # ── Challenge store (Redis when set, in-process otherwise) ─
    redis_url: str | None = None
    redis_key_prefix: str = "ceg:otp:"

    # ── Session credentials ───────────────────────────────
    jwt_secret: str = "changeme"
    jwt_algorithm: str = "HS256"
    jwt_ttl_seconds: int = 3600

    # ── OTP ───────────────────────────────────────────────
    otp_ttl_seconds: int = 300
    otp_max_attempts: int = 3
    otp_sweep_interval_seconds: float = 300.0
    otp_delivery_mode: OTPDeliveryMode = OTPDeliveryMode.SEND_ONLY

    # ── SMTP ──────────────────────────────────────────────
    smtp_host: str = "smtp.gmail.com"
    smtp_port: int = 587
    smtp_username: str = ""
    smtp_password: str = ""
    email_from: str = "no-reply@cegconnect.app"

    # ── HTTP ──────────────────────────────────────────────
    cors_origins: list[str] = ["*"]

    # ── App ───────────────────────────────────────────────
    app_name: str = "CEG Connect Backend"
    debug: bool = False

    model_config = {"env_file": ".env", "env_file_encoding": "utf-8"}


# Singleton settings instance
settings = Settings()
