"""Command-specific result models."""

from __future__ import annotations

from pydantic import BaseModel, Field


class TableMeta(BaseModel):
    """Metadata returned by ``tsvd show``."""

    path: str | None = None
    fingerprint: str | None = None
    rows: int = 0
    columns: int = 0


class ToolOutcome(BaseModel):
    """Result of one tool call, phrased for the model that issued it."""

    tool: str
    ok: bool
    message: str
    code: str | None = None


class ApplyResult(BaseModel):
    """Result of a mutating command."""

    applied: bool = False
    dry_run: bool = False
    declined: bool = False
    backup_path: str | None = None
    output_path: str | None = None
    calls_applied: int = 0
    calls_failed: int = 0
    fingerprint_before: str | None = None
    fingerprint_after: str | None = None
    diff: str = ""
    outcomes: list[ToolOutcome] = Field(default_factory=list)
