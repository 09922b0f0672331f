"""Jagged row/column table model and its text serializations.

Two text forms exist:

- the *delimited* form (tab-separated lines) used for files and for diffing;
- the *labeled* form, a pipe table with column letters across the top and
  1-based row numbers down the left, used for everything a model reads or
  writes.
"""

from __future__ import annotations

import re

from tsvd.contracts.common import TableParseError
from tsvd.table.coords import index_to_label

Row = list[str]
Table = list[Row]

DELIMITER = "\t"

_SEPARATOR_RE = re.compile(r"^[\s|:\-]+$")


def clone_table(table: Table) -> Table:
    """Return a copy that shares no row lists with *table*."""
    return [list(row) for row in table]


def column_count(table: Table) -> int:
    """Width of the table: the longest row's length (0 for an empty table)."""
    return max((len(row) for row in table), default=0)


def parse_delimited(text: str) -> Table:
    """Parse tab-separated text into a table, one row per line.

    CRLF line endings are read as LF. A single trailing empty line (from the
    final line terminator) is dropped.
    """
    table: Table = []
    for line in text.replace("\r\n", "\n").split("\n"):
        # a cell holding the delimiter is malformed input; keep it empty
        table.append(["" if DELIMITER in cell else cell for cell in line.split(DELIMITER)])

    if table and table[-1] == [""]:
        table.pop()
    return table


def serialize(table: Table) -> str:
    """Render a table as tab-separated text ending in exactly one newline."""
    return "\n".join(DELIMITER.join(row) for row in table) + "\n"


def render_labeled(table: Table) -> str:
    """Render the labeled pipe-table form; empty string for an empty table."""
    if not table:
        return ""

    num_cols = column_count(table)
    headers = [""] + [index_to_label(i) for i in range(num_cols)]
    lines = [
        "| " + " | ".join(headers) + " |",
        "| " + " | ".join("---" for _ in headers) + " |",
    ]
    for row_index, row in enumerate(table):
        padded = row + [""] * (num_cols - len(row))
        cells = [str(row_index + 1)] + [cell or " " for cell in padded]
        lines.append("| " + " | ".join(cells) + " |")
    return "\n".join(lines)


def parse_labeled(text: str) -> Table:
    """Parse the labeled pipe-table form back into a table.

    The first line is the column-label header and is discarded, as are
    separator lines and blank lines. Every other line must be framed by
    pipes; its first cell (the row number) is dropped and the remaining cells
    are stripped of surrounding whitespace. Cell text containing ``|`` cannot
    be represented and will be split.
    """
    lines = text.strip().split("\n")
    table: Table = []

    for line_number, raw in enumerate(lines, start=1):
        line = raw.strip()
        if line_number == 1 or not line or _SEPARATOR_RE.match(line):
            continue
        if not (line.startswith("|") and line.endswith("|")) or len(line) < 2:
            raise TableParseError(
                f"Line {line_number} is not a table row (expected '| n | ... |'): {line!r}"
            )
        cells = [cell.strip() for cell in line[1:-1].split("|")]
        table.append(cells[1:])

    return table
