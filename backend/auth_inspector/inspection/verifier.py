"""Batch verifier — probes one page of credentials concurrently and records the verdicts.

Pagination is offset-based over a stable, id-ordered enumeration of the
matching credentials. Long runs pass the id snapshot taken at run start
(see snapshot_ids) so deletions mid-run cannot shift pages.

Classification:
  2xx                          → valid   (clears token_invalid / reason / at)
  401, 403, or a 4xx carrying
  a revoked-account error code → invalid (reason includes the HTTP status)
  anything else / ProbeError   → error   (inconclusive, metadata untouched)
"""

from __future__ import annotations

import asyncio
import json
import logging
from typing import Protocol

from auth_inspector.config import settings
from auth_inspector.integrations.codex_probe import CodexProbeClient, ProbeError, ProbeResult
from auth_inspector.models.credential import (
    TOKEN_INVALID_AT_KEY,
    TOKEN_INVALID_KEY,
    TOKEN_INVALID_REASON_KEY,
    Credential,
    utc_timestamp,
)
from auth_inspector.models.inspection import VerifyBatchResult, VerifyItem, VerifyOutcome
from auth_inspector.store.manager import (
    CredentialManager,
    CredentialNotFoundError,
    CredentialPersistError,
)

logger = logging.getLogger(__name__)

INVALID_STATUS_CODES = frozenset({401, 403})
INVALID_ERROR_CODES = frozenset({
    "account_deactivated",
    "invalid_api_key",
    "invalid_token",
    "token_expired",
    "token_revoked",
})


class Prober(Protocol):
    async def probe(self, credential: Credential) -> ProbeResult: ...


def _error_code(body: str) -> str:
    """Extract error.code (or a top-level code) from a JSON error body."""
    try:
        data = json.loads(body) if body else None
    except ValueError:
        return ""
    if not isinstance(data, dict):
        return ""
    err = data.get("error")
    if isinstance(err, dict):
        code = err.get("code") or err.get("type")
    else:
        code = data.get("code")
    return code.strip() if isinstance(code, str) else ""


def classify_probe(result: ProbeResult) -> tuple[VerifyOutcome, str]:
    """Map a raw probe response to (outcome, reason)."""
    if result.ok:
        return "valid", ""

    status = result.status_code
    code = _error_code(result.body)
    if status in INVALID_STATUS_CODES or (400 <= status < 500 and code in INVALID_ERROR_CODES):
        reason = f"probe returned HTTP {status}"
        if code:
            reason += f" ({code})"
        return "invalid", reason
    return "error", f"probe returned HTTP {status}"


class BatchVerifier:
    """Verifies credentials page by page against their provider."""

    def __init__(
        self,
        manager: CredentialManager,
        probers: dict[str, Prober] | None = None,
        max_concurrency: int | None = None,
        max_batch_size: int | None = None,
    ) -> None:
        self.manager = manager
        if probers is None:
            probers = {"codex": CodexProbeClient()}
        self.probers = {k.strip().lower(): v for k, v in probers.items()}
        self.max_concurrency = max_concurrency or settings.verify_max_concurrency
        self.max_batch_size = max_batch_size or settings.verify_max_batch_size

    def snapshot_ids(self, provider: str) -> list[str]:
        """Stable id enumeration of the credentials matching provider."""
        return [c.id for c in self.manager.list_matching(provider)]

    def effective_concurrency(self, concurrency: int) -> int:
        if concurrency <= 0:
            concurrency = settings.verify_default_concurrency
        return max(1, min(concurrency, self.max_concurrency))

    def effective_batch_size(self, batch_size: int) -> int:
        if batch_size <= 0:
            batch_size = settings.verify_default_batch_size
        return max(1, min(batch_size, self.max_batch_size))

    async def verify_batch(
        self,
        provider: str = "codex",
        concurrency: int = 0,
        batch_size: int = 0,
        cursor: int = 0,
        ids: list[str] | None = None,
    ) -> VerifyBatchResult:
        """Verify the page [cursor, cursor + batch_size) of matching credentials.

        Args:
            provider: Provider filter ("" or "all" matches every credential).
            concurrency: Max probes in flight; clamped to max_concurrency.
            batch_size: Page size; clamped to [1, max_batch_size].
            cursor: Offset into the enumeration.
            ids: Id snapshot to paginate over. Defaults to the live matching set.

        Returns:
            VerifyBatchResult with per-credential outcomes and the next cursor.
        """
        provider = (provider or "").strip().lower()
        concurrency = self.effective_concurrency(concurrency)
        batch_size = self.effective_batch_size(batch_size)
        if ids is None:
            ids = self.snapshot_ids(provider)

        total = len(ids)
        cursor = max(0, min(cursor, total))
        page = ids[cursor:cursor + batch_size]
        next_cursor = cursor + len(page)

        semaphore = asyncio.Semaphore(concurrency)

        async def _bounded(credential_id: str) -> VerifyItem:
            async with semaphore:
                return await self._verify_one(credential_id)

        items = list(await asyncio.gather(*(_bounded(cid) for cid in page)))

        result = VerifyBatchResult(
            provider=provider or "all",
            total=total,
            cursor=cursor,
            next_cursor=next_cursor,
            checked=len(items),
            valid=sum(1 for i in items if i.outcome == "valid"),
            invalid=sum(1 for i in items if i.outcome == "invalid"),
            errors=sum(1 for i in items if i.outcome == "error"),
            done=next_cursor >= total,
            results=items,
        )
        logger.debug(
            "Verified %s page %d-%d of %d: %d valid, %d invalid, %d errors",
            result.provider, cursor, next_cursor, total,
            result.valid, result.invalid, result.errors,
        )
        return result

    async def _verify_one(self, credential_id: str) -> VerifyItem:
        credential = self.manager.get_by_id(credential_id)
        if credential is None:
            return VerifyItem(
                id=credential_id,
                name=credential_id,
                outcome="skipped",
                reason="credential no longer registered",
            )

        item = VerifyItem(
            id=credential.id,
            name=credential.display_name,
            provider=credential.provider,
            outcome="skipped",
        )
        prober = self.probers.get(credential.provider.strip().lower())
        if prober is None:
            item.reason = f"no probe for provider {credential.provider!r}"
            return item

        try:
            probe_result = await prober.probe(credential)
        except ProbeError as e:
            item.outcome = "error"
            item.reason = str(e)
            return item
        except Exception as e:
            logger.error("Probe for %s failed unexpectedly: %s", credential.display_name, e, exc_info=True)
            item.outcome = "error"
            item.reason = f"probe failed: {str(e) or type(e).__name__}"
            return item

        item.status_code = probe_result.status_code
        item.outcome, item.reason = classify_probe(probe_result)

        try:
            self._record(credential, item)
        except CredentialNotFoundError:
            item.outcome = "skipped"
            item.reason = "credential no longer registered"
        except CredentialPersistError as e:
            logger.error("Could not record verdict for %s: %s", credential.display_name, e)
            item.outcome = "error"
            item.reason = str(e)
        return item

    def _record(self, credential: Credential, item: VerifyItem) -> None:
        """Write the verdict into the credential's metadata."""
        if item.outcome == "invalid":
            self.manager.update_metadata(credential.id, {
                TOKEN_INVALID_KEY: True,
                TOKEN_INVALID_REASON_KEY: item.reason,
                TOKEN_INVALID_AT_KEY: utc_timestamp(),
            })
            logger.info("Marked %s invalid: %s", credential.display_name, item.reason)
        elif item.outcome == "valid":
            stale = any(
                key in credential.metadata
                for key in (TOKEN_INVALID_KEY, TOKEN_INVALID_REASON_KEY, TOKEN_INVALID_AT_KEY)
            )
            if stale:
                self.manager.update_metadata(credential.id, {
                    TOKEN_INVALID_KEY: None,
                    TOKEN_INVALID_REASON_KEY: None,
                    TOKEN_INVALID_AT_KEY: None,
                })
                logger.info("Cleared invalid flag on %s", credential.display_name)
