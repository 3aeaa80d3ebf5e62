"""Centralised settings, read from env vars once."""
from __future__ import annotations

import os


def _env_bool(name: str, default: bool = False) -> bool:
    raw = os.getenv(name)
    if raw is None:
        return default
    return raw.strip().lower() in ("1", "true", "yes", "on")


class Settings:
    SERVICE_NAME: str = "watchclub"

    def __init__(self) -> None:
        # "" / "memory" or "sqlite://<path>"
        self.STORAGE_URI: str = os.getenv("WATCHCLUB_STORAGE", "memory")
        self.BASE_URL: str = os.getenv("WATCHCLUB_BASE_URL", "http://localhost:3000/")
        self.LOG_LEVEL: str = os.getenv("LOG_LEVEL", "INFO").upper()
        self.NOTIFY_WORKERS: int = int(os.getenv("WATCHCLUB_NOTIFY_WORKERS", "2"))
        self.NOTIFY_QUEUE_SIZE: int = int(os.getenv("WATCHCLUB_NOTIFY_QUEUE_SIZE", "100"))
        self.NOTIFY_MAX_ATTEMPTS: int = int(os.getenv("WATCHCLUB_NOTIFY_MAX_ATTEMPTS", "3"))
        self.NOTIFY_BACKOFF_SECONDS: float = float(os.getenv("WATCHCLUB_NOTIFY_BACKOFF_SECONDS", "0.5"))
        # Off: a non-positive schedule interval quantity is normalized to 1.
        self.REJECT_NONPOSITIVE_INTERVAL: bool = _env_bool("WATCHCLUB_REJECT_NONPOSITIVE_INTERVAL")


settings = Settings()
