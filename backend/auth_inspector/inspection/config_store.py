"""Inspection config store — bounds, validation, and YAML persistence.

The config lives under the "auth-inspection" key of a YAML file; other keys
in the same file are preserved on save. A failed save rolls the in-memory
config back to its previous value.
"""

from __future__ import annotations

import logging
import threading
from pathlib import Path

import yaml

from auth_inspector.config import settings
from auth_inspector.models.inspection import InspectionConfig

logger = logging.getLogger(__name__)

DEFAULT_INTERVAL_SECONDS = 3600
MIN_INTERVAL_SECONDS = 3600
MAX_INTERVAL_SECONDS = 7 * 24 * 3600

_SECTION = "auth-inspection"


class ConfigValidationError(ValueError):
    """Rejected config update; nothing was changed."""


class ConfigPersistError(RuntimeError):
    """Config could not be saved; the previous value was restored."""


def clamp_interval(seconds: int) -> int:
    if seconds <= 0:
        seconds = DEFAULT_INTERVAL_SECONDS
    return max(MIN_INTERVAL_SECONDS, min(seconds, MAX_INTERVAL_SECONDS))


class InspectionConfigStore:
    """Holds the live InspectionConfig and persists updates."""

    def __init__(self, path: str | Path | None = None, initial: InspectionConfig | None = None) -> None:
        self.path = Path(path) if path else None
        self._lock = threading.Lock()
        self._config = initial.model_copy() if initial else InspectionConfig()

    @classmethod
    def from_settings(cls) -> "InspectionConfigStore":
        """Build from settings, overlaying the persisted file if present."""
        store = cls(
            path=settings.inspection_config_path,
            initial=InspectionConfig(
                enabled=settings.inspection_enabled,
                interval_seconds=settings.inspection_interval_seconds,
                auto_delete_invalid=settings.inspection_auto_delete_invalid,
            ),
        )
        store.load()
        return store

    def load(self) -> InspectionConfig:
        """Read the persisted section, if any. Unreadable files are ignored."""
        if self.path is None or not self.path.exists():
            return self.effective()
        try:
            doc = yaml.safe_load(self.path.read_text(encoding="utf-8")) or {}
        except (OSError, yaml.YAMLError) as e:
            logger.warning("Could not read inspection config %s: %s", self.path, e)
            return self.effective()

        section = doc.get(_SECTION) if isinstance(doc, dict) else None
        if isinstance(section, dict):
            with self._lock:
                cfg = self._config
                try:
                    self._config = InspectionConfig(
                        enabled=bool(section.get("enabled", cfg.enabled)),
                        interval_seconds=int(section.get("interval-seconds", cfg.interval_seconds) or 0),
                        auto_delete_invalid=bool(section.get("auto-delete-invalid", cfg.auto_delete_invalid)),
                    )
                except (TypeError, ValueError) as e:
                    logger.warning("Ignoring invalid %s section in %s: %s", _SECTION, self.path, e)
        return self.effective()

    def effective(self) -> InspectionConfig:
        """Current config with the interval defaulted and clamped."""
        with self._lock:
            cfg = self._config.model_copy()
        cfg.interval_seconds = clamp_interval(cfg.interval_seconds)
        return cfg

    def update(
        self,
        enabled: bool | None = None,
        interval_seconds: int | None = None,
        auto_delete_invalid: bool | None = None,
    ) -> InspectionConfig:
        """Apply a partial update and persist it.

        Raises:
            ConfigValidationError: no field given, or interval out of range.
            ConfigPersistError: the file could not be written (update rolled back).
        """
        if enabled is None and interval_seconds is None and auto_delete_invalid is None:
            raise ConfigValidationError("no config field provided")
        if interval_seconds is not None and not (
            MIN_INTERVAL_SECONDS <= interval_seconds <= MAX_INTERVAL_SECONDS
        ):
            raise ConfigValidationError(
                f"interval_seconds must be between {MIN_INTERVAL_SECONDS} and {MAX_INTERVAL_SECONDS}"
            )

        with self._lock:
            old = self._config
            cfg = old.model_copy()
            if enabled is not None:
                cfg.enabled = enabled
            if interval_seconds is not None:
                cfg.interval_seconds = interval_seconds
            if auto_delete_invalid is not None:
                cfg.auto_delete_invalid = auto_delete_invalid
            if cfg.interval_seconds <= 0:
                cfg.interval_seconds = DEFAULT_INTERVAL_SECONDS

            self._config = cfg
            try:
                self._save(cfg)
            except (OSError, yaml.YAMLError) as e:
                self._config = old
                raise ConfigPersistError(f"failed to save config: {e}") from e

        logger.info(
            "Inspection config updated: enabled=%s interval=%ds auto_delete_invalid=%s",
            cfg.enabled, cfg.interval_seconds, cfg.auto_delete_invalid,
        )
        return self.effective()

    def _save(self, cfg: InspectionConfig) -> None:
        if self.path is None:
            return
        doc: dict = {}
        if self.path.exists():
            loaded = yaml.safe_load(self.path.read_text(encoding="utf-8"))
            if isinstance(loaded, dict):
                doc = loaded
        doc[_SECTION] = {
            "enabled": cfg.enabled,
            "interval-seconds": cfg.interval_seconds,
            "auto-delete-invalid": cfg.auto_delete_invalid,
        }
        self.path.parent.mkdir(parents=True, exist_ok=True)
        self.path.write_text(yaml.safe_dump(doc, sort_keys=False), encoding="utf-8")
