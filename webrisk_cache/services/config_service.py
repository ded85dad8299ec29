"""Logic helpers for the `webrisk-cache config` command."""

from __future__ import annotations

from dataclasses import dataclass

from ..config import (
    Config,
    load_config,
    set_api_key,
    set_constraints,
    set_log_level,
    set_sync_retry,
    set_verify_retry,
)


@dataclass(slots=True)
class ConfigUpdateResult:
    api_key_set: bool = False
    api_key_cleared: bool = False
    log_level_set: bool = False
    sync_retry_set: bool = False
    verify_retry_set: bool = False
    constraints_set: bool = False

    @property
    def changed(self) -> bool:
        return any(
            (
                self.api_key_set,
                self.api_key_cleared,
                self.log_level_set,
                self.sync_retry_set,
                self.verify_retry_set,
                self.constraints_set,
            )
        )


def apply_config_updates(
    *,
    api_key: str | None = None,
    clear_api_key: bool = False,
    log_level: str | None = None,
    sync_attempts: int | None = None,
    sync_retry_delay: float | None = None,
    verify_attempts: int | None = None,
    verify_base_delay: float | None = None,
    verify_max_delay: float | None = None,
    max_diff_entries: int | None = None,
    max_database_entries: int | None = None,
) -> ConfigUpdateResult:
    """Apply config mutations and report which fields were updated."""

    result = ConfigUpdateResult()
    if api_key is not None:
        set_api_key(api_key)
        result.api_key_set = True
    if clear_api_key:
        set_api_key(None)
        result.api_key_cleared = True
    if log_level is not None:
        set_log_level(log_level)
        result.log_level_set = True
    if sync_attempts is not None or sync_retry_delay is not None:
        set_sync_retry(attempts=sync_attempts, delay=sync_retry_delay)
        result.sync_retry_set = True
    if any(value is not None for value in (verify_attempts, verify_base_delay, verify_max_delay)):
        set_verify_retry(
            attempts=verify_attempts,
            base_delay=verify_base_delay,
            max_delay=verify_max_delay,
        )
        result.verify_retry_set = True
    if max_diff_entries is not None or max_database_entries is not None:
        set_constraints(
            max_diff_entries=max_diff_entries,
            max_database_entries=max_database_entries,
        )
        result.constraints_set = True
    return result


def get_config_snapshot() -> Config:
    """Return the current configuration dataclass."""

    return load_config()
