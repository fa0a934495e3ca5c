"""Application settings and validation."""

import os
from pathlib import Path

BASE = Path(__file__).resolve().parent.parent


def _flag(name: str, default: str) -> bool:
    return os.getenv(name, default).lower() == "true"


class Settings:
    PROFILE: str
    JWT_SECRET: str
    JWT_ALGORITHM: str
    JWT_EXPIRE_HOURS: int
    DATABASE_URL: str
    UPLOAD_DIR: Path
    MAX_UPLOAD_BYTES: int
    SEED_DATA: bool
    CACHE_TTL_SECONDS: int
    RESERVATION_MINUTES: int
    RESERVATION_CLEANUP_INTERVAL_MINUTES: int
    CART_TTL_SECONDS: int
    SMTP_HOST: str
    SMTP_PORT: int
    SMTP_USER: str
    SMTP_PASSWORD: str
    SMTP_START_TLS: bool
    MAIL_FROM: str
    COOKIE_SECURE: bool
    ALLOW_INSECURE_JWT: bool
    ALLOW_DEV_CORS: bool
    LOG_LEVEL: str

    def __init__(self):
        self.PROFILE = os.getenv("APP_PROFILE", "dev").strip().lower() or "dev"
        self.JWT_SECRET = os.getenv("JWT_SECRET", "change_me_for_prod")
        self.JWT_ALGORITHM = os.getenv("JWT_ALGORITHM", "HS256")
        self.JWT_EXPIRE_HOURS = int(os.getenv("JWT_EXPIRE_HOURS", "24"))
        self.DATABASE_URL = os.getenv("DATABASE_URL", f"sqlite:///{BASE / f'wala-{self.PROFILE}.db'}")
        self.UPLOAD_DIR = Path(os.getenv("UPLOAD_DIR", str(BASE / "upload-dir"))).expanduser().resolve()
        self.MAX_UPLOAD_BYTES = int(os.getenv("MAX_UPLOAD_BYTES", str(5 * 1024 * 1024)))  # 5 MB default
        self.SEED_DATA = _flag("SEED_DATA", "true" if self.PROFILE == "dev" else "false")
        self.CACHE_TTL_SECONDS = int(os.getenv("CACHE_TTL_SECONDS", "600"))
        self.RESERVATION_MINUTES = int(os.getenv("RESERVATION_MINUTES", "15"))
        self.RESERVATION_CLEANUP_INTERVAL_MINUTES = int(os.getenv("RESERVATION_CLEANUP_INTERVAL_MINUTES", "5"))
        self.CART_TTL_SECONDS = int(os.getenv("CART_TTL_SECONDS", "1800"))
        self.SMTP_HOST = os.getenv("SMTP_HOST", "")
        self.SMTP_PORT = int(os.getenv("SMTP_PORT", "587"))
        self.SMTP_USER = os.getenv("SMTP_USER", "")
        self.SMTP_PASSWORD = os.getenv("SMTP_PASSWORD", "")
        self.SMTP_START_TLS = _flag("SMTP_START_TLS", "true")
        self.MAIL_FROM = os.getenv("MAIL_FROM", "no-reply@waladaw.com")
        self.COOKIE_SECURE = _flag("COOKIE_SECURE", "false")
        self.ALLOW_INSECURE_JWT = _flag("ALLOW_INSECURE_JWT", "false")
        self.ALLOW_DEV_CORS = _flag("ALLOW_DEV_CORS", "true")
        self.LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()
        self._validate()

    def _validate(self):
        if self.PROFILE != "dev" and not self.ALLOW_INSECURE_JWT and self.JWT_SECRET == "change_me_for_prod":
            raise RuntimeError("JWT_SECRET must be set to a non-default value in non-dev profiles")
        if self.RESERVATION_MINUTES <= 0:
            raise RuntimeError("RESERVATION_MINUTES must be positive")

    @property
    def smtp_configured(self) -> bool:
        return bool(self.SMTP_HOST)


settings = Settings()
