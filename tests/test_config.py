"""
Tests for configuration defaults and environment overrides.
"""
import logging

from config import AppConfig


ENV_VARS = (
    "SHIFT_ENGINE_VERBOSE", "SHIFT_ENGINE_LOG_DIR", "SHIFT_ENGINE_MIN_REST_HOURS",
    "SHIFT_ENGINE_MAX_SNAPSHOTS", "SHIFT_ENGINE_CACHE_SIZE", "SHIFT_ENGINE_TARGET_HOURS",
)


def clean_env(monkeypatch):
    for name in ENV_VARS:
        monkeypatch.delenv(name, raising=False)


def test_defaults(monkeypatch):
    clean_env(monkeypatch)

    cfg = AppConfig.load()

    assert cfg.detection.min_rest_hours == 12.0
    assert cfg.detection.critical_rest_hours == 8.0
    assert (cfg.detection.overtime_ratio, cfg.detection.critical_overtime_ratio) == (1.25, 1.5)
    assert cfg.balancing.target_hours_per_week == 32.0
    assert cfg.balancing.auto_apply_window == (4.0, 10.0)
    assert cfg.validation.cache_size == 50
    assert cfg.snapshots.max_snapshots == 10
    assert cfg.verbose is False
    assert cfg.log_dir is None


def test_environment_overrides(monkeypatch):
    clean_env(monkeypatch)
    monkeypatch.setenv("SHIFT_ENGINE_VERBOSE", "yes")
    monkeypatch.setenv("SHIFT_ENGINE_LOG_DIR", "logs")
    monkeypatch.setenv("SHIFT_ENGINE_MIN_REST_HOURS", "11")
    monkeypatch.setenv("SHIFT_ENGINE_MAX_SNAPSHOTS", "20")
    monkeypatch.setenv("SHIFT_ENGINE_CACHE_SIZE", "100")
    monkeypatch.setenv("SHIFT_ENGINE_TARGET_HOURS", "35")

    cfg = AppConfig.load()

    assert cfg.verbose is True
    assert cfg.log_dir == "logs"
    assert cfg.detection.min_rest_hours == 11.0
    assert cfg.validation.min_rest_hours == 11.0
    assert cfg.snapshots.max_snapshots == 20
    assert cfg.validation.cache_size == 100
    assert cfg.balancing.target_hours_per_week == 35.0
    assert cfg.validation.default_contract_hours == 35.0


def test_malformed_values_are_ignored_with_warning(monkeypatch, caplog):
    clean_env(monkeypatch)
    monkeypatch.setenv("SHIFT_ENGINE_MAX_SNAPSHOTS", "-3")
    monkeypatch.setenv("SHIFT_ENGINE_VERBOSE", "maybe")

    with caplog.at_level(logging.WARNING):
        cfg = AppConfig.load()

    assert cfg.snapshots.max_snapshots == 10
    assert cfg.verbose is False
    assert "SHIFT_ENGINE_MAX_SNAPSHOTS" in caplog.text
    assert "SHIFT_ENGINE_VERBOSE" in caplog.text


def test_configs_are_independent_instances():
    first = AppConfig()
    second = AppConfig()

    first.detection.min_rest_hours = 6

    assert second.detection.min_rest_hours == 12.0
