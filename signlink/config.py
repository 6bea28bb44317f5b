# File: signlink/config.py
# DESCRIPTION: Runtime settings read from the environment (.env supported).

import os
from dataclasses import dataclass

from dotenv import load_dotenv


def _text(name: str, default: str = "") -> str:
    value = os.environ.get(name)
    if value is None:
        return default
    return value.strip()


def _clamped_int(name: str, minimum: int, maximum: int, default: int) -> int:
    try:
        value = int(os.environ.get(name, ""))
    except ValueError:
        return default
    return max(minimum, min(maximum, value))


@dataclass(frozen=True)
class Settings:
    port: int = 8787
    public_base_url: str = "http://localhost:8787"
    database_url: str = "sqlite:///data/signlink.db"

    smtp_host: str = ""
    smtp_port: int = 587
    smtp_user: str = ""
    smtp_pass: str = ""
    smtp_from: str = ""
    smtp_secure: bool = False

    twilio_account_sid: str = ""
    twilio_auth_token: str = ""
    twilio_from_number: str = ""

    delivery_timeout_seconds: int = 10
    rate_limit_window_ms: int = 60_000
    rate_limit_max: int = 240
    retention_days: int = 180
    cleanup_interval_ms: int = 21_600_000
    shutdown_grace_ms: int = 10_000
    run_background_jobs: bool = True

    @classmethod
    def from_env(cls, env_file: str = None) -> "Settings":
        """Build settings from os.environ after loading an optional .env file."""
        load_dotenv(env_file)

        port = _clamped_int("PORT", 1, 65535, 8787)
        return cls(
            port=port,
            public_base_url=_text("PUBLIC_BASE_URL") or f"http://localhost:{port}",
            database_url=_text("DATABASE_URL") or "sqlite:///data/signlink.db",
            smtp_host=_text("SMTP_HOST"),
            smtp_port=_clamped_int("SMTP_PORT", 1, 65535, 587),
            smtp_user=_text("SMTP_USER"),
            smtp_pass=_text("SMTP_PASS"),
            smtp_from=_text("SMTP_FROM"),
            smtp_secure=_text("SMTP_SECURE").lower() == "true",
            twilio_account_sid=_text("TWILIO_ACCOUNT_SID"),
            twilio_auth_token=_text("TWILIO_AUTH_TOKEN"),
            twilio_from_number=_text("TWILIO_FROM_NUMBER"),
            delivery_timeout_seconds=_clamped_int("DELIVERY_TIMEOUT_SECONDS", 1, 120, 10),
            rate_limit_window_ms=_clamped_int("API_RATE_LIMIT_WINDOW_MS", 1_000, 3_600_000, 60_000),
            rate_limit_max=_clamped_int("API_RATE_LIMIT_MAX", 20, 10_000, 240),
            retention_days=_clamped_int("SIGN_REQUEST_RETENTION_DAYS", 7, 3_650, 180),
            cleanup_interval_ms=_clamped_int("CLEANUP_INTERVAL_MS", 60_000, 86_400_000, 21_600_000),
            shutdown_grace_ms=_clamped_int("SHUTDOWN_GRACE_MS", 1_000, 60_000, 10_000),
            run_background_jobs=_text("DISABLE_BACKGROUND_JOBS").lower() != "true",
        )

    @property
    def email_configured(self) -> bool:
        return bool(self.smtp_host and self.smtp_from)

    @property
    def sms_configured(self) -> bool:
        return bool(self.twilio_account_sid and self.twilio_auth_token and self.twilio_from_number)
