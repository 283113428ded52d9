"""Tests for InspectionConfigStore — bounds, partial updates, persistence, rollback."""

import pytest
import yaml

from auth_inspector.inspection.config_store import (
    DEFAULT_INTERVAL_SECONDS,
    MAX_INTERVAL_SECONDS,
    MIN_INTERVAL_SECONDS,
    ConfigPersistError,
    ConfigValidationError,
    InspectionConfigStore,
    clamp_interval,
)
from auth_inspector.models.inspection import InspectionConfig


def test_clamp_interval():
    assert clamp_interval(0) == DEFAULT_INTERVAL_SECONDS
    assert clamp_interval(-5) == DEFAULT_INTERVAL_SECONDS
    assert clamp_interval(60) == MIN_INTERVAL_SECONDS
    assert clamp_interval(10**9) == MAX_INTERVAL_SECONDS
    assert clamp_interval(7200) == 7200


def test_effective_clamps_stored_interval():
    store = InspectionConfigStore(initial=InspectionConfig(interval_seconds=10))
    assert store.effective().interval_seconds == MIN_INTERVAL_SECONDS


@pytest.mark.parametrize("interval", [MIN_INTERVAL_SECONDS - 1, MAX_INTERVAL_SECONDS + 1, 0])
def test_out_of_range_interval_rejected_without_mutation(tmp_path, interval):
    path = tmp_path / "config.yaml"
    store = InspectionConfigStore(path=path, initial=InspectionConfig(enabled=False, interval_seconds=7200))

    with pytest.raises(ConfigValidationError, match="between 3600 and 604800"):
        store.update(enabled=True, interval_seconds=interval)

    cfg = store.effective()
    assert cfg.enabled is False
    assert cfg.interval_seconds == 7200
    assert not path.exists()


def test_empty_update_rejected():
    store = InspectionConfigStore()
    with pytest.raises(ConfigValidationError, match="no config field"):
        store.update()


def test_partial_update_keeps_other_fields(tmp_path):
    store = InspectionConfigStore(
        path=tmp_path / "c.yaml",
        initial=InspectionConfig(enabled=True, interval_seconds=7200, auto_delete_invalid=False),
    )
    cfg = store.update(auto_delete_invalid=True)
    assert cfg.enabled is True
    assert cfg.interval_seconds == 7200
    assert cfg.auto_delete_invalid is True


def test_bounds_are_inclusive(tmp_path):
    store = InspectionConfigStore(path=tmp_path / "c.yaml")
    assert store.update(interval_seconds=MIN_INTERVAL_SECONDS).interval_seconds == MIN_INTERVAL_SECONDS
    assert store.update(interval_seconds=MAX_INTERVAL_SECONDS).interval_seconds == MAX_INTERVAL_SECONDS


def test_update_persists_and_preserves_other_keys(tmp_path):
    path = tmp_path / "config.yaml"
    path.write_text(yaml.safe_dump({"port": 8317, "auth-dir": "~/.auths"}))
    store = InspectionConfigStore(path=path)

    store.update(enabled=True, interval_seconds=86400)

    doc = yaml.safe_load(path.read_text())
    assert doc["port"] == 8317
    assert doc["auth-dir"] == "~/.auths"
    assert doc["auth-inspection"] == {
        "enabled": True,
        "interval-seconds": 86400,
        "auto-delete-invalid": False,
    }

    reloaded = InspectionConfigStore(path=path)
    cfg = reloaded.load()
    assert cfg.enabled is True
    assert cfg.interval_seconds == 86400


def test_save_failure_rolls_back(tmp_path):
    # a directory where the file should be makes every write fail
    path = tmp_path / "config.yaml"
    path.mkdir()
    store = InspectionConfigStore(path=path, initial=InspectionConfig(enabled=False, interval_seconds=3600))

    with pytest.raises(ConfigPersistError, match="failed to save config"):
        store.update(enabled=True, interval_seconds=7200)

    cfg = store.effective()
    assert cfg.enabled is False
    assert cfg.interval_seconds == 3600


def test_load_ignores_malformed_file(tmp_path):
    path = tmp_path / "config.yaml"
    path.write_text("auth-inspection: [unclosed")
    store = InspectionConfigStore(path=path, initial=InspectionConfig(enabled=True))
    assert store.load().enabled is True


def test_load_ignores_non_numeric_interval(tmp_path):
    path = tmp_path / "config.yaml"
    path.write_text("auth-inspection:\n  enabled: true\n  interval-seconds: hourly\n")
    store = InspectionConfigStore(path=path, initial=InspectionConfig(enabled=False, interval_seconds=7200))

    cfg = store.load()

    assert cfg.enabled is False
    assert cfg.interval_seconds == 7200


def test_no_path_updates_in_memory_only():
    store = InspectionConfigStore()
    assert store.update(enabled=True).enabled is True
    assert store.effective().enabled is True
