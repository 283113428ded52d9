"""Inspection models.

Includes:
- InspectionConfig: enable flag, interval, auto-delete toggle
- InspectionStatus: progress of the current / most recent run
- VerifyItem, VerifyBatchResult: one page of batch verification
- DeleteResult: outcome of a remediation pass
"""

from __future__ import annotations

from datetime import datetime
from typing import Literal

from pydantic import BaseModel, Field

InspectionTrigger = Literal["manual", "scheduled"]
VerifyOutcome = Literal["valid", "invalid", "error", "skipped"]


class InspectionConfig(BaseModel):
    """Mutable inspection settings, persisted by InspectionConfigStore."""

    enabled: bool = False
    interval_seconds: int = 3600
    auto_delete_invalid: bool = False


class InspectionStatus(BaseModel):
    """Snapshot of the current or most recent inspection run."""

    running: bool = False
    trigger: str = ""
    current_file: str = ""
    recent_checked: list[str] = Field(default_factory=list)
    checked: int = 0
    valid: int = 0
    invalid: int = 0
    deleted: int = 0
    total: int = 0
    round: int = 0
    last_error: str = ""
    last_run_started_at: datetime | None = None
    last_run_finished: datetime | None = None
    next_run_at: datetime | None = None


class VerifyItem(BaseModel):
    """Probe outcome for a single credential."""

    id: str
    name: str = ""
    provider: str = ""
    outcome: VerifyOutcome
    status_code: int | None = None
    reason: str = ""


class VerifyBatchResult(BaseModel):
    """One page of batch verification."""

    provider: str
    total: int = 0
    cursor: int = 0
    next_cursor: int = 0
    checked: int = 0
    valid: int = 0
    invalid: int = 0
    errors: int = 0
    done: bool = False
    results: list[VerifyItem] = Field(default_factory=list)


class DeleteResult(BaseModel):
    """Matched vs. actually deleted credential files."""

    matched: int = 0
    deleted: int = 0
    files: list[str] = Field(default_factory=list)
    errors: list[str] = Field(default_factory=list)
