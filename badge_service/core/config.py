from __future__ import annotations

import os
from dataclasses import dataclass
from typing import Literal

AppEnv = Literal["dev", "test", "prod"]
LogLevel = Literal["debug", "info", "warning", "error"]

_DEV_JWT_SECRET = "dev-only-badge-service-secret-change-me"


def _getenv(name: str, default: str) -> str:
    return os.environ.get(name, default).strip()


def _parse_bool(name: str, raw: str) -> bool:
    value = raw.lower()
    if value in ("1", "true", "yes", "on"):
        return True
    if value in ("0", "false", "no", "off", ""):
        return False
    raise ValueError(f"{name} must be a boolean (got {raw!r})")


@dataclass(frozen=True)
class Settings:
    app_env: AppEnv
    log_level: LogLevel
    log_json: bool
    port: int
    database_url: str | None
    jwt_secret: str = _DEV_JWT_SECRET
    award_merge_attempts: int = 3

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
    port_raw = _getenv("PORT", "8000")
    attempts_raw = _getenv("AWARD_MERGE_ATTEMPTS", "3")

    if app_env_raw not in ("dev", "test", "prod"):
        raise ValueError(f"APP_ENV must be dev|test|prod (got {app_env_raw!r})")

    if log_level_raw not in ("debug", "info", "warning", "error"):
        raise ValueError(
            f"LOG_LEVEL must be debug|info|warning|error (got {log_level_raw!r})"
        )

    try:
        port = int(port_raw)
    except ValueError:
        raise ValueError(f"PORT must be an integer (got {port_raw!r})") from None

    try:
        award_merge_attempts = int(attempts_raw)
    except ValueError:
        raise ValueError(
            f"AWARD_MERGE_ATTEMPTS must be an integer (got {attempts_raw!r})"
        ) from None
    if award_merge_attempts < 1:
        raise ValueError(
            f"AWARD_MERGE_ATTEMPTS must be >= 1 (got {award_merge_attempts})"
        )

    log_json = _parse_bool("LOG_JSON", _getenv("LOG_JSON", "false"))
    database_url = _getenv("DATABASE_URL", "") or None
    jwt_secret = _getenv("JWT_SECRET", "") or _DEV_JWT_SECRET

    if app_env_raw == "prod" and jwt_secret == _DEV_JWT_SECRET:
        raise ValueError("JWT_SECRET must be set when APP_ENV=prod")

    return Settings(  # type: ignore[arg-type]
        app_env=app_env_raw,
        log_level=log_level_raw,
        log_json=log_json,
        port=port,
        database_url=database_url,
        jwt_secret=jwt_secret,
        award_merge_attempts=award_merge_attempts,
    )


SETTINGS = load_settings()
