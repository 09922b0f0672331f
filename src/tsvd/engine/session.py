"""Edit session: a committed table plus the working copy a batch of tool calls builds."""

from __future__ import annotations

from typing import Any

from pydantic import ValidationError

from tsvd.contracts.common import LimitExceededError, TableEditError
from tsvd.contracts.responses import ToolOutcome
from tsvd.contracts.tools import (
    EditCellsCall,
    MutationResult,
    ReplaceAllCall,
    ReplaceAreaCall,
    StrReplaceCall,
    ToolCall,
    parse_tool_call,
)
from tsvd.diff.differ import CONTEXT_LINES, compute_diff
from tsvd.engine.mutations import apply_tool_call
from tsvd.observe.events import EventEmitter
from tsvd.table.coords import parse_cell_address
from tsvd.table.model import Table, clone_table, render_labeled, serialize
from tsvd.validation.policy import Policy, check_table_limits


def success_message(call: ToolCall) -> str:
    """The text reported back to the model after a call succeeds."""
    if isinstance(call, StrReplaceCall):
        return f'Replaced "{call.old_str}" with "{call.new_str}"'
    if isinstance(call, ReplaceAllCall):
        return "Replaced entire table"
    if isinstance(call, EditCellsCall):
        return f"Edited {len(call.edits)} cell(s)"
    if isinstance(call, ReplaceAreaCall):
        return f"Replaced area {call.from_cell}:{call.to_cell}"
    return "OK"


class EditSession:
    """Holds the committed table and applies tool calls to a working clone.

    Tool calls run strictly in order; each sees the previous call's result.
    Nothing here touches the disk: :meth:`commit` only promotes the working
    table to committed, and the caller decides when to persist it.
    """

    def __init__(
        self,
        committed: Table,
        *,
        policy: Policy | None = None,
        events: EventEmitter | None = None,
    ) -> None:
        self.committed: Table = clone_table(committed)
        self.policy = policy
        self.events = events or EventEmitter(enabled=False)
        self.working: Table = clone_table(self.committed)
        self.applied_calls: list[ToolCall] = []
        self.errors: list[str] = []

    def begin(self) -> None:
        """Start a fresh batch from the committed table."""
        self.working = clone_table(self.committed)
        self.applied_calls = []
        self.errors = []

    @property
    def has_changes(self) -> bool:
        return bool(self.applied_calls)

    def _check_limits(self, result: MutationResult) -> MutationResult:
        if self.policy is None or not result.success or result.table is None:
            return result
        violations = check_table_limits(self.policy, result.table)
        if not violations:
            return result
        exc = LimitExceededError("; ".join(v["message"] for v in violations))
        return MutationResult(success=False, error=str(exc), code=exc.code)

    def _check_addresses(self, call: ToolCall) -> MutationResult | None:
        """Reject cell and area calls that address past a ceiling, before the table grows."""
        if self.policy is None:
            return None
        if isinstance(call, EditCellsCall):
            refs = [edit.cell for edit in call.edits]
        elif isinstance(call, ReplaceAreaCall):
            refs = [call.from_cell, call.to_cell]
        else:
            return None

        max_rows, max_columns = self.policy.max_rows, self.policy.max_columns
        problems: list[str] = []
        for ref in refs:
            try:
                address = parse_cell_address(ref.upper())
            except TableEditError:
                continue  # reported by the primitive
            if max_rows is not None and address.row >= max_rows:
                problems.append(f"{ref.upper()} addresses row {address.row + 1}, exceeding the limit of {max_rows}")
            if max_columns is not None and address.col >= max_columns:
                problems.append(
                    f"{ref.upper()} addresses column {address.col + 1}, exceeding the limit of {max_columns}"
                )
        if not problems:
            return None
        exc = LimitExceededError("; ".join(problems))
        return MutationResult(success=False, error=str(exc), code=exc.code)

    def call(self, call: ToolCall) -> ToolOutcome:
        """Apply one typed tool call to the working table."""
        result = self._check_addresses(call)
        if result is None:
            result = self._check_limits(apply_tool_call(self.working, call))
        if result.success and result.table is not None:
            self.working = result.table
            self.applied_calls.append(call)
            self.events.emit("tool.applied", {"tool": call.tool})
            return ToolOutcome(tool=call.tool, ok=True, message=success_message(call))

        self.errors.append(f"{call.summary()}: {result.error}")
        self.events.emit("tool.failed", {"tool": call.tool, "code": result.code, "error": result.error})
        return ToolOutcome(tool=call.tool, ok=False, message=f"Error: {result.error}", code=result.code)

    def call_raw(self, name: str, arguments: dict[str, Any]) -> ToolOutcome:
        """Validate loosely-typed tool arguments, then apply them."""
        try:
            call = parse_tool_call(name, arguments)
        except ValidationError as e:
            problems = "; ".join(
                f"{'.'.join(str(p) for p in err['loc']) or 'arguments'}: {err['msg']}"
                for err in e.errors()
            )
            self.errors.append(f"{name}: {problems}")
            self.events.emit("tool.failed", {"tool": name, "code": "ERR_TOOL_INVALID"})
            return ToolOutcome(
                tool=name, ok=False, message=f"Error: invalid arguments: {problems}", code="ERR_TOOL_INVALID"
            )
        return self.call(call)

    def labeled(self) -> str:
        """The working table as the model sees it."""
        return render_labeled(self.working)

    def diff(self) -> str:
        context = self.policy.context_lines if self.policy else CONTEXT_LINES
        return compute_diff(serialize(self.committed), serialize(self.working), context=context)

    def commit(self) -> Table:
        """Promote the working table to committed and start a new batch."""
        self.committed = clone_table(self.working)
        self.events.emit("batch.committed", {"calls": len(self.applied_calls)})
        self.begin()
        return clone_table(self.committed)

    def discard(self) -> None:
        """Drop the working table's changes."""
        self.events.emit("batch.discarded", {"calls": len(self.applied_calls)})
        self.begin()
