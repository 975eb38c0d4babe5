from __future__ import annotations

import os
from dataclasses import dataclass
from typing import Literal

AppEnv = Literal["dev", "test", "prod"]
LogLevel = Literal["debug", "info", "warning", "error"]

_TRUTHY = ("1", "true", "yes", "on")
_FALSY = ("0", "false", "no", "off", "")


def _getenv(name: str, default: str) -> str:
    return os.environ.get(name, default).strip()


def _parse_bool(name: str, raw: str) -> bool:
    value = raw.lower()
    if value in _TRUTHY:
        return True
    if value in _FALSY:
        return False
    raise ValueError(f"{name} must be a boolean (got {raw!r})")


def _parse_int(name: str, raw: str, *, minimum: int) -> int:
    try:
        value = int(raw)
    except ValueError:
        raise ValueError(f"{name} must be an integer (got {raw!r})") from None
    if value < minimum:
        raise ValueError(f"{name} must be >= {minimum} (got {value})")
    return value


@dataclass(frozen=True)
class Settings:
    app_env: AppEnv
    log_level: LogLevel
    log_json: bool
    port: int
    database_url: str | None
    redis_url: str | None
    # Progress engine tuning
    progress_cache_ttl: int = 300
    lock_timeout_seconds: float = 10.0
    write_retry_attempts: int = 3

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

    if app_env_raw not in ("dev", "test", "prod"):
        raise ValueError(f"APP_ENV must be dev|test|prod (got {app_env_raw!r})")

    if log_level_raw not in ("debug", "info", "warning", "error"):
        raise ValueError(
            f"LOG_LEVEL must be debug|info|warning|error (got {log_level_raw!r})"
        )

    log_json = _parse_bool("LOG_JSON", _getenv("LOG_JSON", "false"))
    port = _parse_int("PORT", _getenv("PORT", "8000"), minimum=1)

    cache_ttl = _parse_int(
        "PROGRESS_CACHE_TTL", _getenv("PROGRESS_CACHE_TTL", "300"), minimum=0
    )
    retry_attempts = _parse_int(
        "WRITE_RETRY_ATTEMPTS", _getenv("WRITE_RETRY_ATTEMPTS", "3"), minimum=1
    )

    lock_timeout_raw = _getenv("LOCK_TIMEOUT_SECONDS", "10")
    try:
        lock_timeout = float(lock_timeout_raw)
    except ValueError:
        raise ValueError(
            f"LOCK_TIMEOUT_SECONDS must be a number (got {lock_timeout_raw!r})"
        ) from None
    if lock_timeout <= 0:
        raise ValueError(f"LOCK_TIMEOUT_SECONDS must be > 0 (got {lock_timeout})")

    database_url = _getenv("DATABASE_URL", "") or None
    redis_url = _getenv("REDIS_URL", "") or None

    return Settings(  # type: ignore[arg-type]
        app_env=app_env_raw,
        log_level=log_level_raw,
        log_json=log_json,
        port=port,
        database_url=database_url,
        redis_url=redis_url,
        progress_cache_ttl=cache_ttl,
        lock_timeout_seconds=lock_timeout,
        write_retry_attempts=retry_attempts,
    )


SETTINGS = load_settings()
