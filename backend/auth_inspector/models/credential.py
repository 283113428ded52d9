"""Credential record model.

A Credential is one stored provider identity (one auth file on disk).
Inspection results live only in its metadata, under the TOKEN_INVALID_* keys.
"""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Any, Literal

from pydantic import BaseModel, Field

CredentialStatus = Literal["active", "error"]

TOKEN_INVALID_KEY = "token_invalid"
TOKEN_INVALID_REASON_KEY = "token_invalid_reason"
TOKEN_INVALID_AT_KEY = "token_invalid_at"

PATH_ATTRIBUTE = "path"


def _truthy(value: Any) -> bool:
    if isinstance(value, bool):
        return value
    if isinstance(value, str):
        return value.strip().lower() in ("1", "true", "yes")
    if isinstance(value, (int, float)):
        return value != 0
    return False


def utc_timestamp(now: datetime | None = None) -> str:
    """RFC 3339 UTC timestamp used for TOKEN_INVALID_AT_KEY."""
    now = now or datetime.now(timezone.utc)
    return now.astimezone(timezone.utc).strftime("%Y-%m-%dT%H:%M:%SZ")


class Credential(BaseModel):
    """A stored credential bundle for one provider account."""

    id: str
    file_name: str = ""
    provider: str = ""  # "codex" | "gemini" | ...
    status: CredentialStatus = "active"
    unavailable: bool = False
    attributes: dict[str, str] = Field(default_factory=dict)
    metadata: dict[str, Any] = Field(default_factory=dict)

    @property
    def path(self) -> str:
        return (self.attributes.get(PATH_ATTRIBUTE) or "").strip()

    @property
    def display_name(self) -> str:
        return (self.file_name or self.id).strip()

    def is_failed(self) -> bool:
        """Error status or flagged unavailable by the store."""
        return self.status == "error" or self.unavailable

    def invalid_state(self) -> tuple[bool, str]:
        """Return (invalid, reason) as recorded by the last inspection."""
        invalid = _truthy(self.metadata.get(TOKEN_INVALID_KEY))
        reason = self.metadata.get(TOKEN_INVALID_REASON_KEY) or ""
        return invalid, str(reason).strip()

    def is_invalid(self) -> bool:
        return self.invalid_state()[0]

    def metadata_str(self, *keys: str) -> str:
        """First non-empty string value among metadata keys."""
        for key in keys:
            value = self.metadata.get(key)
            if isinstance(value, str) and value.strip():
                return value.strip()
        return ""
