"""The four table mutation primitives.

Each primitive takes the current table plus its arguments and returns a
:class:`MutationResult`. None of them writes through the table it was given:
the replace primitives build a fresh table from text, and the cell/area
primitives mutate a private clone.
"""

from __future__ import annotations

from copy import copy
from typing import Sequence, TypeVar

from tsvd.contracts.common import (
    BatchInvalidError,
    MatchNotFoundError,
    RangeViolationError,
    TableEditError,
    TableParseError,
)
from tsvd.contracts.tools import (
    CellEdit,
    EditCellsCall,
    MutationResult,
    ReplaceAllCall,
    ReplaceAreaCall,
    StrReplaceCall,
    ToolCall,
)
from tsvd.table.coords import parse_cell_address
from tsvd.table.model import Table, clone_table, parse_labeled, render_labeled

T = TypeVar("T")


def _fail(exc: TableEditError) -> MutationResult:
    return MutationResult(success=False, error=str(exc), code=exc.code)


def ensure_capacity(items: list[T], length: int, fill: T) -> list[T]:
    """Extend *items* in place to at least *length* entries.

    Each appended entry is a shallow copy of *fill*, so a list fill value
    yields independent lists. Returns *items* for chaining.
    """
    while len(items) < length:
        items.append(copy(fill))
    return items


def _grow_to(table: Table, row: int, col: int) -> None:
    """Make cell (row, col) exist, growing the table and that row only."""
    ensure_capacity(table, row + 1, [])
    ensure_capacity(table[row], col + 1, "")


def str_replace(table: Table, old_str: str, new_str: str) -> MutationResult:
    """Replace every literal occurrence of *old_str* in the labeled rendering.

    Fails when the text does not occur at all. Any number of matches is
    accepted and all of them are replaced.
    """
    labeled = render_labeled(table)
    occurrences = labeled.count(old_str) if old_str else 0
    if occurrences == 0:
        return _fail(MatchNotFoundError("String not found in spreadsheet"))

    try:
        new_table = parse_labeled(labeled.replace(old_str, new_str))
    except TableParseError as e:
        return _fail(TableParseError(f"Failed to parse result: {e}"))
    return MutationResult(success=True, table=new_table)


def replace_all(table: Table, new_table: str) -> MutationResult:
    """Replace the whole table with a parsed labeled rendering."""
    try:
        parsed = parse_labeled(new_table)
    except TableParseError as e:
        return _fail(TableParseError(f"Failed to parse table: {e}"))
    return MutationResult(success=True, table=parsed)


def edit_cells(table: Table, edits: Sequence[CellEdit]) -> MutationResult:
    """Assign a batch of cells, growing the table as needed.

    If any address is invalid the whole batch fails and every bad address is
    reported; no partial result is returned.
    """
    new_table = clone_table(table)
    errors: list[str] = []

    for edit in edits:
        try:
            address = parse_cell_address(edit.cell.upper())
        except TableEditError as e:
            errors.append(f'Invalid cell coordinate "{edit.cell}": {e}')
            continue
        _grow_to(new_table, address.row, address.col)
        new_table[address.row][address.col] = edit.value

    if errors:
        return _fail(BatchInvalidError(
            f"{len(errors)} of {len(edits)} edit(s) rejected: " + "; ".join(errors)
        ))
    return MutationResult(success=True, table=new_table)


def replace_area(
    table: Table,
    from_cell: str,
    to_cell: str,
    values: Sequence[Sequence[str]],
) -> MutationResult:
    """Overwrite the rectangle *from_cell*:*to_cell* with *values*.

    *values* may be smaller than the rectangle (missing rows and cells become
    empty strings) but never larger.
    """
    try:
        start = parse_cell_address(from_cell.upper())
    except TableEditError as e:
        return _fail(type(e)(f"Invalid from_cell: {e}"))
    try:
        end = parse_cell_address(to_cell.upper())
    except TableEditError as e:
        return _fail(type(e)(f"Invalid to_cell: {e}"))

    if start.row > end.row:
        return _fail(RangeViolationError("from_cell row must be less than or equal to to_cell row"))
    if start.col > end.col:
        return _fail(RangeViolationError("from_cell column must be less than or equal to to_cell column"))

    expected_rows = end.row - start.row + 1
    expected_cols = end.col - start.col + 1
    span = f"from {from_cell} to {to_cell}"

    if len(values) > expected_rows:
        return _fail(RangeViolationError(
            f"values has {len(values)} rows, but expected at most {expected_rows} ({span})"
        ))

    area: Table = [list(row) for row in values]
    for i, row in enumerate(area):
        if len(row) > expected_cols:
            return _fail(RangeViolationError(
                f"Row {i + 1} in values has {len(row)} columns, "
                f"but expected at most {expected_cols} ({span})"
            ))
        ensure_capacity(row, expected_cols, "")
    ensure_capacity(area, expected_rows, [""] * expected_cols)

    new_table = clone_table(table)
    for row_offset, area_row in enumerate(area):
        _grow_to(new_table, start.row + row_offset, end.col)
        target_row = new_table[start.row + row_offset]
        target_row[start.col : end.col + 1] = area_row

    return MutationResult(success=True, table=new_table)


def apply_tool_call(table: Table, call: ToolCall) -> MutationResult:
    """Dispatch a typed tool call to its primitive."""
    if isinstance(call, StrReplaceCall):
        return str_replace(table, call.old_str, call.new_str)
    if isinstance(call, ReplaceAllCall):
        return replace_all(table, call.new_table)
    if isinstance(call, EditCellsCall):
        return edit_cells(table, call.edits)
    if isinstance(call, ReplaceAreaCall):
        return replace_area(table, call.from_cell, call.to_cell, call.values)
    raise TypeError(f"Unsupported tool call: {type(call).__name__}")


def affected_area(call: ToolCall) -> tuple[str, int]:
    """Describe what a call touches: a target string and a cell count (0 if unknown)."""
    if isinstance(call, EditCellsCall):
        return ",".join(e.cell.upper() for e in call.edits), len(call.edits)
    if isinstance(call, ReplaceAreaCall):
        try:
            a = parse_cell_address(call.from_cell.upper())
            b = parse_cell_address(call.to_cell.upper())
        except TableEditError:
            return f"{call.from_cell}:{call.to_cell}", 0
        cells = max(0, b.row - a.row + 1) * max(0, b.col - a.col + 1)
        return f"{call.from_cell.upper()}:{call.to_cell.upper()}", cells
    return "table", 0
