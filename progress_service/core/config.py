from __future__ import annotations

import os
from dataclasses import dataclass
from typing import Literal

AppEnv = Literal["dev", "test", "prod"]
LogLevel = Literal["debug", "info", "warning", "error"]
IssuanceMode = Literal["inline", "queued"]


def _getenv(name: str, default: str) -> str:
    return os.environ.get(name, default).strip()


def _getenv_int(name: str, default: str) -> int:
    raw = _getenv(name, default)
    try:
        return int(raw)
    except ValueError:
        raise ValueError(f"{name} must be an integer (got {raw!r})") from None


@dataclass(frozen=True)
class Settings:
    app_env: AppEnv
    log_level: LogLevel
    log_json: bool
    port: int
    database_url: str | None
    redis_url: str | None
    lab_pass_threshold: float = 75.0
    certificate_issuance: IssuanceMode = "inline"
    store_retry_attempts: int = 3
    store_retry_backoff_ms: int = 50
    jwt_public_key_file: str | None = None

    @property
    def is_dev(self) -> bool:
        return self.app_env == "dev"

    @property
    def is_test(self) -> bool:
        return self.app_env == "test"

    @property
    def is_prod(self) -> bool:
        return self.app_env == "prod"


def load_settings() -> Settings:
    app_env_raw = _getenv("APP_ENV", "dev").lower()
    log_level_raw = _getenv("LOG_LEVEL", "info").lower()
    log_json_raw = _getenv("LOG_JSON", "false").lower()
    issuance_raw = _getenv("CERTIFICATE_ISSUANCE", "inline").lower()

    if app_env_raw not in ("dev", "test", "prod"):
        raise ValueError(f"APP_ENV must be dev|test|prod (got {app_env_raw!r})")

    if log_level_raw not in ("debug", "info", "warning", "error"):
        raise ValueError(
            f"LOG_LEVEL must be debug|info|warning|error (got {log_level_raw!r})"
        )

    if issuance_raw not in ("inline", "queued"):
        raise ValueError(
            f"CERTIFICATE_ISSUANCE must be inline|queued (got {issuance_raw!r})"
        )

    port = _getenv_int("PORT", "8000")

    threshold_raw = _getenv("LAB_PASS_THRESHOLD", "75")
    try:
        threshold = float(threshold_raw)
    except ValueError:
        raise ValueError(
            f"LAB_PASS_THRESHOLD must be a number (got {threshold_raw!r})"
        ) from None
    if not 0 <= threshold <= 100:
        raise ValueError(f"LAB_PASS_THRESHOLD must be within 0-100 (got {threshold})")

    retry_attempts = _getenv_int("STORE_RETRY_ATTEMPTS", "3")
    if retry_attempts < 1:
        raise ValueError(
            f"STORE_RETRY_ATTEMPTS must be at least 1 (got {retry_attempts})"
        )
    retry_backoff_ms = _getenv_int("STORE_RETRY_BACKOFF_MS", "50")

    return Settings(  # type: ignore[arg-type]
        app_env=app_env_raw,
        log_level=log_level_raw,
        log_json=log_json_raw in ("1", "true", "yes"),
        port=port,
        database_url=_getenv("DATABASE_URL", "") or None,
        redis_url=_getenv("REDIS_URL", "") or None,
        lab_pass_threshold=threshold,
        certificate_issuance=issuance_raw,
        store_retry_attempts=retry_attempts,
        store_retry_backoff_ms=max(retry_backoff_ms, 0),
        jwt_public_key_file=_getenv("JWT_PUBLIC_KEY_FILE", "") or None,
    )


SETTINGS = load_settings()
