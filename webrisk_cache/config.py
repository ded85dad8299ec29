"""Global configuration management for webrisk-cache."""

from __future__ import annotations

import json
import logging
import os
from dataclasses import dataclass, replace
from contextlib import contextmanager
from contextvars import ContextVar
from collections.abc import Mapping
from pathlib import Path
from typing import Any, Dict

from .text import Messages

DEFAULT_CONFIG_DIR = Path(os.path.expanduser("~")) / ".webrisk-cache"
CONFIG_DIR = DEFAULT_CONFIG_DIR
CONFIG_FILE = CONFIG_DIR / "config.json"
_CONFIG_DIR_OVERRIDE: ContextVar[Path | None] = ContextVar(
    "webrisk_cache_config_dir_override",
    default=None,
)
DEFAULT_SYNC_ATTEMPTS = 2
DEFAULT_SYNC_RETRY_DELAY = 30.0
DEFAULT_VERIFY_ATTEMPTS = 10
DEFAULT_VERIFY_BASE_DELAY = 1.0
DEFAULT_VERIFY_MAX_DELAY = 32.0
DEFAULT_FALLBACK_RESYNC_DELAY = 15 * 60.0
DEFAULT_MAX_RESET_ATTEMPTS = 3
DEFAULT_LOG_LEVEL = "WARNING"
SUPPORTED_LOG_LEVELS: tuple[str, ...] = ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")
ENV_API_KEY = "WEBRISK_API_KEY"


@dataclass
class Config:
    api_key: str | None = None
    sync_attempts: int = DEFAULT_SYNC_ATTEMPTS
    sync_retry_delay: float = DEFAULT_SYNC_RETRY_DELAY
    verify_attempts: int = DEFAULT_VERIFY_ATTEMPTS
    verify_base_delay: float = DEFAULT_VERIFY_BASE_DELAY
    verify_max_delay: float = DEFAULT_VERIFY_MAX_DELAY
    fallback_resync_delay: float = DEFAULT_FALLBACK_RESYNC_DELAY
    max_reset_attempts: int = DEFAULT_MAX_RESET_ATTEMPTS
    max_diff_entries: int | None = None
    max_database_entries: int | None = None
    log_level: str = DEFAULT_LOG_LEVEL

    def diff_constraint(self) -> dict[str, object]:
        """Constraint mapping forwarded with every diff request."""
        constraint: dict[str, object] = {}
        if self.max_diff_entries:
            constraint["max_diff_entries"] = self.max_diff_entries
        if self.max_database_entries:
            constraint["max_database_entries"] = self.max_database_entries
        return constraint


_INT_FIELDS = (
    "sync_attempts",
    "verify_attempts",
    "max_reset_attempts",
)
_FLOAT_FIELDS = (
    "sync_retry_delay",
    "verify_base_delay",
    "verify_max_delay",
    "fallback_resync_delay",
)
_OPTIONAL_INT_FIELDS = ("max_diff_entries", "max_database_entries")


def _resolve_config_dir() -> Path:
    override = _CONFIG_DIR_OVERRIDE.get()
    return override if override is not None else CONFIG_DIR


def _resolve_config_file() -> Path:
    override = _CONFIG_DIR_OVERRIDE.get()
    if override is not None:
        return override / "config.json"
    return CONFIG_FILE


@contextmanager
def config_dir_context(path: Path | str | None):
    """Temporarily override the config directory for the current context."""

    if path is None:
        yield
        return
    dir_path = Path(path).expanduser().resolve()
    if dir_path.exists() and not dir_path.is_dir():
        raise NotADirectoryError(f"Path is not a directory: {dir_path}")
    token = _CONFIG_DIR_OVERRIDE.set(dir_path)
    try:
        yield
    finally:
        _CONFIG_DIR_OVERRIDE.reset(token)


def load_config() -> Config:
    config_file = _resolve_config_file()
    if not config_file.exists():
        return Config()
    raw = json.loads(config_file.read_text(encoding="utf-8"))
    if not isinstance(raw, Mapping):
        raise ValueError(Messages.ERROR_CONFIG_JSON_INVALID)
    config = Config()
    _apply_config_payload(config, raw)
    return config


def save_config(config: Config) -> None:
    config_dir = _resolve_config_dir()
    config_dir.mkdir(parents=True, exist_ok=True)
    data: Dict[str, Any] = {}
    if config.api_key:
        data["api_key"] = config.api_key
    for name in _INT_FIELDS + _FLOAT_FIELDS:
        data[name] = getattr(config, name)
    for name in _OPTIONAL_INT_FIELDS:
        value = getattr(config, name)
        if value:
            data[name] = value
    data["log_level"] = config.log_level
    config_file = _resolve_config_file()
    config_file.write_text(
        json.dumps(data, ensure_ascii=False, indent=2),
        encoding="utf-8",
    )


def set_config_dir(path: Path | str | None) -> None:
    global CONFIG_DIR, CONFIG_FILE
    if path is None:
        CONFIG_DIR = DEFAULT_CONFIG_DIR
    else:
        dir_path = Path(path).expanduser().resolve()
        if dir_path.exists() and not dir_path.is_dir():
            raise NotADirectoryError(f"Path is not a directory: {dir_path}")
        CONFIG_DIR = dir_path
    CONFIG_FILE = CONFIG_DIR / "config.json"


def config_from_json(
    payload: str | Mapping[str, object], *, base: Config | None = None
) -> Config:
    """Return a Config from a JSON string or mapping without saving it."""
    data = _coerce_config_payload(payload)
    config = Config() if base is None else replace(base)
    _apply_config_payload(config, data)
    return config


def update_config_from_json(
    payload: str | Mapping[str, object], *, replace: bool = False
) -> Config:
    """Update config from a JSON string or mapping and persist it."""
    base = None if replace else load_config()
    config = config_from_json(payload, base=base)
    save_config(config)
    return config


def set_api_key(value: str | None) -> None:
    config = load_config()
    config.api_key = value
    save_config(config)


def set_log_level(value: str) -> None:
    config = load_config()
    config.log_level = normalize_log_level(value)
    save_config(config)


def set_sync_retry(*, attempts: int | None = None, delay: float | None = None) -> None:
    config = load_config()
    if attempts is not None:
        config.sync_attempts = _coerce_positive_int(attempts, "sync_attempts")
    if delay is not None:
        config.sync_retry_delay = _coerce_delay(delay, "sync_retry_delay")
    save_config(config)


def set_verify_retry(
    *,
    attempts: int | None = None,
    base_delay: float | None = None,
    max_delay: float | None = None,
) -> None:
    config = load_config()
    if attempts is not None:
        config.verify_attempts = _coerce_positive_int(attempts, "verify_attempts")
    if base_delay is not None:
        config.verify_base_delay = _coerce_delay(base_delay, "verify_base_delay")
    if max_delay is not None:
        config.verify_max_delay = _coerce_delay(max_delay, "verify_max_delay")
    save_config(config)


def set_constraints(
    *,
    max_diff_entries: int | None = None,
    max_database_entries: int | None = None,
) -> None:
    """Store diff-request size limits; 0 removes a limit."""
    config = load_config()
    if max_diff_entries is not None:
        config.max_diff_entries = _coerce_limit(max_diff_entries, "max_diff_entries")
    if max_database_entries is not None:
        config.max_database_entries = _coerce_limit(
            max_database_entries, "max_database_entries"
        )
    save_config(config)


def normalize_log_level(value: object) -> str:
    if value is None:
        return DEFAULT_LOG_LEVEL
    if isinstance(value, str):
        normalized = value.strip().upper() or DEFAULT_LOG_LEVEL
        if normalized in SUPPORTED_LOG_LEVELS:
            return normalized
    raise ValueError(Messages.ERROR_CONFIG_VALUE_INVALID.format(field="log_level"))


def resolve_log_level(value: str | None) -> int:
    return getattr(logging, normalize_log_level(value))


def resolve_api_key(configured: str | None) -> str | None:
    """Return the first available API key from config or environment."""

    if configured:
        return configured
    env_key = os.getenv(ENV_API_KEY)
    if env_key:
        return env_key
    return None


def _coerce_config_payload(payload: str | Mapping[str, object]) -> Mapping[str, object]:
    if isinstance(payload, str):
        try:
            data = json.loads(payload)
        except json.JSONDecodeError as exc:
            raise ValueError(Messages.ERROR_CONFIG_JSON_INVALID) from exc
    elif isinstance(payload, Mapping):
        data = dict(payload)
    else:
        raise ValueError(Messages.ERROR_CONFIG_JSON_INVALID)
    if not isinstance(data, Mapping):
        raise ValueError(Messages.ERROR_CONFIG_JSON_INVALID)
    return data


def _apply_config_payload(config: Config, payload: Mapping[str, object]) -> None:
    if "api_key" in payload:
        config.api_key = _coerce_optional_str(payload["api_key"], "api_key")
    for name in _INT_FIELDS:
        if name in payload:
            setattr(config, name, _coerce_positive_int(payload[name], name))
    for name in _FLOAT_FIELDS:
        if name in payload:
            setattr(config, name, _coerce_delay(payload[name], name))
    for name in _OPTIONAL_INT_FIELDS:
        if name in payload:
            setattr(config, name, _coerce_limit(payload[name], name))
    if "log_level" in payload:
        config.log_level = normalize_log_level(payload["log_level"])


def _coerce_optional_str(value: object, field: str) -> str | None:
    if value is None:
        return None
    if isinstance(value, str):
        cleaned = value.strip()
        return cleaned or None
    raise ValueError(Messages.ERROR_CONFIG_VALUE_INVALID.format(field=field))


def _coerce_int(value: object, field: str) -> int:
    if isinstance(value, bool):
        raise ValueError(Messages.ERROR_CONFIG_VALUE_INVALID.format(field=field))
    if isinstance(value, int):
        return value
    if isinstance(value, float):
        if value.is_integer():
            return int(value)
        raise ValueError(Messages.ERROR_CONFIG_VALUE_INVALID.format(field=field))
    if isinstance(value, str):
        try:
            return int(value.strip())
        except ValueError as exc:
            raise ValueError(Messages.ERROR_CONFIG_VALUE_INVALID.format(field=field)) from exc
    raise ValueError(Messages.ERROR_CONFIG_VALUE_INVALID.format(field=field))


def _coerce_positive_int(value: object, field: str) -> int:
    number = _coerce_int(value, field)
    if number < 1:
        raise ValueError(Messages.ERROR_CONFIG_VALUE_INVALID.format(field=field))
    return number


def _coerce_limit(value: object, field: str) -> int | None:
    if value is None:
        return None
    number = _coerce_int(value, field)
    if number < 0:
        raise ValueError(Messages.ERROR_CONFIG_VALUE_INVALID.format(field=field))
    return number or None


def _coerce_delay(value: object, field: str) -> float:
    if isinstance(value, bool) or not isinstance(value, (int, float, str)):
        raise ValueError(Messages.ERROR_CONFIG_VALUE_INVALID.format(field=field))
    try:
        number = float(value)
    except ValueError as exc:
        raise ValueError(Messages.ERROR_CONFIG_VALUE_INVALID.format(field=field)) from exc
    if number < 0:
        raise ValueError(Messages.ERROR_CONFIG_VALUE_INVALID.format(field=field))
    return number
