"""Line-level diff between two delimited-text table states."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Literal

from tsvd.table.model import DELIMITER

NO_CHANGES = "No changes."
CONTEXT_LINES = 3
FIELD_MARKER = "→"

OpType = Literal["equal", "delete", "insert"]


@dataclass(frozen=True)
class LineOp:
    """One line of an edit script; indices are 0-based positions in each side."""

    type: OpType
    content: str
    old_index: int | None = None
    new_index: int | None = None


@dataclass
class Hunk:
    """A context-padded run of changes, with 1-based unified-diff ranges."""

    old_start: int
    old_count: int
    new_start: int
    new_count: int
    ops: list[LineOp] = field(default_factory=list)

    @property
    def header(self) -> str:
        return f"@@ -{self.old_start},{self.old_count} +{self.new_start},{self.new_count} @@"


def split_lines(text: str) -> list[str]:
    """Split on newlines; a final line terminator does not start a new line."""
    if not text:
        return []
    lines = text.split("\n")
    if lines[-1] == "":
        lines.pop()
    return lines


def diff_lines(old: list[str], new: list[str]) -> list[LineOp]:
    """Minimal equal/delete/insert script via a longest-common-subsequence table.

    When two minimal paths exist, inserts are preferred over deletes while
    backtracking, so replaced lines show as ``-old`` followed by ``+new``.
    """
    n, m = len(old), len(new)
    lcs = [[0] * (m + 1) for _ in range(n + 1)]
    for i in range(1, n + 1):
        for j in range(1, m + 1):
            if old[i - 1] == new[j - 1]:
                lcs[i][j] = lcs[i - 1][j - 1] + 1
            else:
                lcs[i][j] = max(lcs[i - 1][j], lcs[i][j - 1])

    ops: list[LineOp] = []
    i, j = n, m
    while i > 0 or j > 0:
        if i > 0 and j > 0 and old[i - 1] == new[j - 1]:
            ops.append(LineOp("equal", old[i - 1], i - 1, j - 1))
            i -= 1
            j -= 1
        elif j > 0 and (i == 0 or lcs[i][j - 1] >= lcs[i - 1][j]):
            ops.append(LineOp("insert", new[j - 1], new_index=j - 1))
            j -= 1
        else:
            ops.append(LineOp("delete", old[i - 1], old_index=i - 1))
            i -= 1
    ops.reverse()
    return ops


def group_hunks(ops: list[LineOp], context: int = CONTEXT_LINES) -> list[Hunk]:
    """Pad each change run with *context* equal lines; merge spans that overlap or touch."""
    spans: list[list[int]] = []
    idx = 0
    while idx < len(ops):
        if ops[idx].type == "equal":
            idx += 1
            continue
        run_end = idx
        while run_end + 1 < len(ops) and ops[run_end + 1].type != "equal":
            run_end += 1
        start = max(0, idx - context)
        end = min(len(ops) - 1, run_end + context)
        if spans and start <= spans[-1][1] + 1:
            spans[-1][1] = end
        else:
            spans.append([start, end])
        idx = run_end + 1

    hunks: list[Hunk] = []
    for start, end in spans:
        hunk_ops = ops[start : end + 1]
        old_before = sum(1 for op in ops[:start] if op.old_index is not None)
        new_before = sum(1 for op in ops[:start] if op.new_index is not None)
        old_count = sum(1 for op in hunk_ops if op.old_index is not None)
        new_count = sum(1 for op in hunk_ops if op.new_index is not None)
        hunks.append(Hunk(
            old_start=old_before + 1 if old_count else old_before,
            old_count=old_count,
            new_start=new_before + 1 if new_count else new_before,
            new_count=new_count,
            ops=hunk_ops,
        ))
    return hunks


def _visible(content: str) -> str:
    return content.replace(DELIMITER, FIELD_MARKER + DELIMITER)


def render_hunks(hunks: list[Hunk]) -> str:
    """Render hunks as unified-diff text with visible field delimiters."""
    if not hunks:
        return NO_CHANGES
    prefixes = {"equal": " ", "delete": "-", "insert": "+"}
    out: list[str] = []
    for hunk in hunks:
        out.append(hunk.header)
        out.extend(prefixes[op.type] + _visible(op.content) for op in hunk.ops)
    return "\n".join(out)


def compute_diff(old_text: str, new_text: str, *, context: int = CONTEXT_LINES) -> str:
    """Render the cumulative change between two serialized tables."""
    if old_text == new_text:
        return NO_CHANGES
    ops = diff_lines(split_lines(old_text), split_lines(new_text))
    return render_hunks(group_hunks(ops, context))


def diff_stats(old_text: str, new_text: str) -> dict[str, int]:
    """Count inserted and deleted lines between two texts."""
    ops = diff_lines(split_lines(old_text), split_lines(new_text))
    return {
        "inserted": sum(1 for op in ops if op.type == "insert"),
        "deleted": sum(1 for op in ops if op.type == "delete"),
        "unchanged": sum(1 for op in ops if op.type == "equal"),
    }
