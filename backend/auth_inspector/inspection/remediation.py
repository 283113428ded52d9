"""Remediation — delete failed and/or invalid credential files.

A file is only ever removed when its resolved path lies strictly inside the
configured auth directory. Records pointing elsewhere are matched but left
untouched, whatever their stored path claims.
"""

from __future__ import annotations

import logging
import os
from pathlib import Path

from auth_inspector.models.credential import Credential
from auth_inspector.models.inspection import DeleteResult
from auth_inspector.store.manager import CredentialManager

logger = logging.getLogger(__name__)


def resolve_inside(auth_dir: str | Path, file_path: str) -> Path | None:
    """Resolve file_path and return it only if strictly inside auth_dir."""
    if not file_path or not str(auth_dir).strip():
        return None
    root = Path(auth_dir).resolve()
    target = Path(file_path)
    if not target.is_absolute():
        target = root / target
    target = target.resolve()
    if target == root or not target.is_relative_to(root):
        return None
    return target


def matches(credential: Credential, failed: bool, invalid: bool) -> bool:
    return (failed and credential.is_failed()) or (invalid and credential.is_invalid())


def delete_auth_files(
    manager: CredentialManager,
    auth_dir: str | Path,
    failed: bool = False,
    invalid: bool = False,
) -> DeleteResult:
    """Delete the files of credentials matching the predicate and deregister them.

    Args:
        manager: Credential store.
        auth_dir: Configured auth directory; the containment root.
        failed: Select credentials in error status or flagged unavailable.
        invalid: Select credentials flagged token_invalid by an inspection.

    Returns:
        DeleteResult with matched / deleted counts and the deleted file names.
    """
    result = DeleteResult()
    if not failed and not invalid:
        return result

    for credential in manager.list_all():
        if not matches(credential, failed, invalid):
            continue
        result.matched += 1

        target = resolve_inside(auth_dir, credential.path)
        if target is None:
            logger.warning(
                "Refusing to delete %s: path %r is outside auth dir",
                credential.display_name, credential.path,
            )
            continue

        try:
            os.remove(target)
        except FileNotFoundError:
            pass  # already gone
        except OSError as e:
            logger.warning("Failed to delete %s: %s", target, e)
            result.errors.append(f"{credential.display_name}: {e}")
            continue

        manager.delete(credential.id)
        result.deleted += 1
        result.files.append(credential.display_name)

    if result.matched:
        logger.info(
            "Remediation (failed=%s, invalid=%s): matched %d, deleted %d",
            failed, invalid, result.matched, result.deleted,
        )
    return result
