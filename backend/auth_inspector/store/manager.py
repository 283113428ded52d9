"""Credential Manager — in-process registry of credential records backed by auth files.

Design:
- load_directory() registers every *.json file in the auth directory
  (id = file name, provider = the file's "type" field, metadata = file body)
- list_matching() returns records in a stable order (sorted by id)
- update_metadata() merges a patch and writes it back to the record's file;
  a failed write restores the previous record
- delete() only deregisters; removing files is the caller's job
"""

from __future__ import annotations

import json
import logging
import os
import threading
from pathlib import Path
from typing import Any

from auth_inspector.models.credential import PATH_ATTRIBUTE, Credential

logger = logging.getLogger(__name__)

_ALL_PROVIDERS = frozenset({"", "all", "*"})


class CredentialNotFoundError(KeyError):
    """Raised when a credential id is not registered."""


class CredentialPersistError(RuntimeError):
    """Raised when a metadata update cannot be written to disk."""


class CredentialManager:
    """Thread-safe store of Credential records keyed by id."""

    def __init__(self) -> None:
        self._records: dict[str, Credential] = {}
        self._lock = threading.Lock()

    def load_directory(self, auth_dir: str | Path) -> int:
        """Register every JSON auth file found in auth_dir.

        Returns the number of records loaded. Unreadable files are skipped.
        """
        auth_dir = Path(auth_dir)
        if not auth_dir.is_dir():
            logger.warning("Auth directory does not exist: %s", auth_dir)
            return 0

        loaded = 0
        for path in sorted(auth_dir.glob("*.json")):
            try:
                data = json.loads(path.read_text(encoding="utf-8"))
            except (OSError, ValueError) as e:
                logger.warning("Skipping unreadable auth file %s: %s", path.name, e)
                continue
            if not isinstance(data, dict):
                logger.warning("Skipping auth file %s: expected a JSON object", path.name)
                continue

            self.register(
                Credential(
                    id=path.name,
                    file_name=path.name,
                    provider=str(data.get("type") or "").strip().lower(),
                    status="error" if data.get("disabled") else "active",
                    attributes={PATH_ATTRIBUTE: str(path.resolve())},
                    metadata=data,
                )
            )
            loaded += 1

        logger.info("Loaded %d auth files from %s", loaded, auth_dir)
        return loaded

    def register(self, credential: Credential) -> Credential:
        with self._lock:
            self._records[credential.id] = credential.model_copy(deep=True)
        return credential

    def get_by_id(self, credential_id: str) -> Credential | None:
        with self._lock:
            record = self._records.get(credential_id)
            return record.model_copy(deep=True) if record is not None else None

    def list_all(self) -> list[Credential]:
        with self._lock:
            records = [r.model_copy(deep=True) for r in self._records.values()]
        records.sort(key=lambda r: r.id)
        return records

    def list_matching(self, provider: str = "") -> list[Credential]:
        """Records whose provider matches, ordered by id."""
        wanted = (provider or "").strip().lower()
        records = self.list_all()
        if wanted in _ALL_PROVIDERS:
            return records
        return [r for r in records if r.provider.strip().lower() == wanted]

    def update_metadata(self, credential_id: str, patch: dict[str, Any]) -> Credential:
        """Merge patch into the record's metadata and persist it.

        Keys whose value is None are removed.
        """
        with self._lock:
            current = self._records.get(credential_id)
            if current is None:
                raise CredentialNotFoundError(credential_id)

            updated = current.model_copy(deep=True)
            for key, value in patch.items():
                if value is None:
                    updated.metadata.pop(key, None)
                else:
                    updated.metadata[key] = value
            self._records[credential_id] = updated

            try:
                self._write_metadata(updated)
            except OSError as e:
                self._records[credential_id] = current
                raise CredentialPersistError(
                    f"failed to persist metadata for {credential_id}: {e}"
                ) from e

            return updated.model_copy(deep=True)

    def delete(self, credential_id: str) -> bool:
        with self._lock:
            return self._records.pop(credential_id, None) is not None

    def __len__(self) -> int:
        with self._lock:
            return len(self._records)

    @staticmethod
    def _write_metadata(credential: Credential) -> None:
        """Write metadata to the record's auth file, if it has one on disk."""
        path_str = credential.path
        if not path_str:
            return
        path = Path(path_str)
        if not path.exists():
            return

        tmp_path = path.with_name(path.name + ".tmp")
        try:
            tmp_path.write_text(
                json.dumps(credential.metadata, indent=2, ensure_ascii=False),
                encoding="utf-8",
            )
            os.replace(tmp_path, path)
        except OSError:
            tmp_path.unlink(missing_ok=True)
            raise
