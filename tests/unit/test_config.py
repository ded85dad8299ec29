import json

import pytest

from webrisk_cache import config as config_module
from webrisk_cache.services.config_service import apply_config_updates, get_config_snapshot


def test_load_config_defaults():
    cfg = config_module.load_config()

    assert cfg.api_key is None
    assert cfg.sync_attempts == 2
    assert cfg.sync_retry_delay == 30.0
    assert cfg.verify_attempts == 10
    assert cfg.verify_base_delay == 1.0
    assert cfg.verify_max_delay == 32.0
    assert cfg.fallback_resync_delay == 900.0
    assert cfg.max_reset_attempts == config_module.DEFAULT_MAX_RESET_ATTEMPTS
    assert cfg.log_level == "WARNING"
    assert cfg.diff_constraint() == {}


def test_set_api_key_round_trip(isolated_config_dir):
    config_module.set_api_key("abc123")

    stored = json.loads(isolated_config_dir.read_text())
    assert stored["api_key"] == "abc123"
    assert config_module.load_config().api_key == "abc123"

    config_module.set_api_key(None)
    assert "api_key" not in json.loads(isolated_config_dir.read_text())


def test_resolve_api_key_falls_back_to_environment(monkeypatch):
    assert config_module.resolve_api_key(None) is None

    monkeypatch.setenv(config_module.ENV_API_KEY, "from-env")

    assert config_module.resolve_api_key(None) == "from-env"
    assert config_module.resolve_api_key("configured") == "configured"


def test_set_retry_settings():
    config_module.set_sync_retry(attempts=3, delay=5)
    config_module.set_verify_retry(attempts=4, base_delay=0.5, max_delay=8)

    cfg = config_module.load_config()
    assert (cfg.sync_attempts, cfg.sync_retry_delay) == (3, 5.0)
    assert (cfg.verify_attempts, cfg.verify_base_delay, cfg.verify_max_delay) == (4, 0.5, 8.0)


def test_set_retry_rejects_invalid_values():
    with pytest.raises(ValueError):
        config_module.set_sync_retry(attempts=0)
    with pytest.raises(ValueError):
        config_module.set_verify_retry(base_delay=-1)


def test_constraints_zero_removes_limit():
    config_module.set_constraints(max_diff_entries=1024, max_database_entries=4096)

    cfg = config_module.load_config()
    assert cfg.diff_constraint() == {"max_diff_entries": 1024, "max_database_entries": 4096}

    config_module.set_constraints(max_diff_entries=0)

    assert config_module.load_config().diff_constraint() == {"max_database_entries": 4096}


def test_log_level_normalization():
    config_module.set_log_level("debug")

    assert config_module.load_config().log_level == "DEBUG"
    assert config_module.resolve_log_level("info") == 20
    assert config_module.resolve_log_level(None) == 30
    with pytest.raises(ValueError):
        config_module.normalize_log_level("loud")


def test_config_from_json_validates_fields():
    cfg = config_module.config_from_json('{"sync_attempts": "4", "max_diff_entries": 0}')

    assert cfg.sync_attempts == 4
    assert cfg.max_diff_entries is None

    with pytest.raises(ValueError):
        config_module.config_from_json("[1, 2]")
    with pytest.raises(ValueError):
        config_module.config_from_json({"verify_attempts": True})
    with pytest.raises(ValueError):
        config_module.config_from_json("{not json")


def test_update_config_from_json_merges_with_saved_values():
    config_module.set_api_key("keep-me")

    cfg = config_module.update_config_from_json({"log_level": "error"})

    assert cfg.api_key == "keep-me"
    assert config_module.load_config().log_level == "ERROR"

    replaced = config_module.update_config_from_json({"log_level": "info"}, replace=True)
    assert replaced.api_key is None


def test_load_config_rejects_non_object(isolated_config_dir):
    isolated_config_dir.parent.mkdir(parents=True)
    isolated_config_dir.write_text("[]", encoding="utf-8")

    with pytest.raises(ValueError):
        config_module.load_config()


def test_config_dir_context_overrides_location(tmp_path):
    override = tmp_path / "elsewhere"

    with config_module.config_dir_context(override):
        config_module.set_api_key("scoped")
        assert config_module.load_config().api_key == "scoped"

    assert (override / "config.json").exists()
    assert config_module.load_config().api_key is None


def test_apply_config_updates_reports_changes():
    result = apply_config_updates(
        api_key="k",
        log_level="info",
        sync_attempts=5,
        verify_max_delay=16.0,
        max_database_entries=2048,
    )

    assert result.changed
    assert result.api_key_set and result.log_level_set
    assert result.sync_retry_set and result.verify_retry_set and result.constraints_set
    snapshot = get_config_snapshot()
    assert snapshot.sync_attempts == 5
    assert snapshot.verify_max_delay == 16.0
    assert snapshot.max_database_entries == 2048


def test_apply_config_updates_without_changes():
    assert apply_config_updates().changed is False


def test_set_config_dir_switches_default_location(tmp_path, monkeypatch):
    monkeypatch.setattr(config_module, "CONFIG_DIR", config_module.CONFIG_DIR)
    monkeypatch.setattr(config_module, "CONFIG_FILE", config_module.CONFIG_FILE)
    target = tmp_path / "custom"

    config_module.set_config_dir(target)

    assert config_module.CONFIG_FILE == target.resolve() / "config.json"
    config_module.set_api_key("here")
    assert (target / "config.json").exists()

    config_module.set_config_dir(None)
    assert config_module.CONFIG_DIR == config_module.DEFAULT_CONFIG_DIR
