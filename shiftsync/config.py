from __future__ import annotations

import os
from dataclasses import dataclass

DEFAULT_TIMEZONE = "Asia/Ho_Chi_Minh"


def _require_env(name: str) -> str:
    value = os.getenv(name)
    if not value:
        raise RuntimeError(f"Environment variable {name} is not set")
    return value


def _int_env(name: str, default: int) -> int:
    raw = os.getenv(name)
    if not raw:
        return default
    try:
        return int(raw)
    except ValueError:
        raise RuntimeError(f"Environment variable {name} must be an integer, got {raw!r}")


@dataclass
class AppConfig:
    database_path: str
    google_sheets_url: str | None
    sync_debounce_ms: int
    timezone: str
    host: str
    port: int

    @property
    def sync_debounce_seconds(self) -> float:
        return self.sync_debounce_ms / 1000

    @classmethod
    def from_env(cls) -> "AppConfig":
        return cls(
            database_path=os.getenv("DATABASE_PATH", "schedule.db"),
            google_sheets_url=os.getenv("GOOGLE_SHEETS_URL") or None,
            sync_debounce_ms=_int_env("SYNC_DEBOUNCE_MS", 2000),
            timezone=os.getenv("TIMEZONE", DEFAULT_TIMEZONE),
            host=os.getenv("HOST", "0.0.0.0"),
            port=_int_env("PORT", 3000),
        )


@dataclass
class GatewayConfig:
    """Cấu hình cho gateway đứng trước Google Sheet."""

    google_service_account_json: str
    google_sheet_id: str
    timezone: str
    host: str
    port: int

    @classmethod
    def from_env(cls) -> "GatewayConfig":
        return cls(
            google_service_account_json=_require_env("GOOGLE_SERVICE_ACCOUNT_JSON"),
            google_sheet_id=_require_env("GOOGLE_SHEET_ID"),
            timezone=os.getenv("TIMEZONE", DEFAULT_TIMEZONE),
            host=os.getenv("GATEWAY_HOST", "0.0.0.0"),
            port=_int_env("GATEWAY_PORT", 8080),
        )


def load_config() -> AppConfig:
    return AppConfig.from_env()
