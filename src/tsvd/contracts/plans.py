"""Edit plan models: a persisted batch of tool calls against one file."""

from __future__ import annotations

from pydantic import BaseModel, Field

from tsvd.contracts.tools import ToolCall


class PlanOptions(BaseModel):
    """Options controlling how a plan is applied."""

    stop_on_error: bool = False
    backup: bool = False
    fail_on_external_change: bool = True


class PlanTarget(BaseModel):
    """Target file for an edit plan."""

    file: str
    fingerprint: str | None = None


class EditPlan(BaseModel):
    """An ordered batch of tool calls, applied to one working table."""

    schema_version: str = "1.0"
    plan_id: str = ""
    target: PlanTarget
    options: PlanOptions = Field(default_factory=PlanOptions)
    calls: list[ToolCall] = Field(default_factory=list)
