"""Spreadsheet-style coordinates: column labels (A, Z, AA, ...) and cell refs (C14)."""

from __future__ import annotations

import re
from typing import NamedTuple

from tsvd.contracts.common import InvalidAddressError, InvalidLabelError

_LABEL_RE = re.compile(r"[A-Z]+")
_CELL_RE = re.compile(r"([A-Z]+)([0-9]+)")
# CPython refuses longer digit strings by default (sys.get_int_max_str_digits)
_MAX_ROW_DIGITS = 4300


class CellAddress(NamedTuple):
    """Zero-based (row, col) pair."""

    row: int
    col: int


def index_to_label(index: int) -> str:
    """Convert a zero-based column index to its bijective base-26 label.

    ``0 -> "A"``, ``25 -> "Z"``, ``26 -> "AA"``, ``701 -> "ZZ"``, ``702 -> "AAA"``.
    There is no upper bound.
    """
    if index < 0:
        raise InvalidLabelError(f"Column index must be non-negative, got {index}")
    label = ""
    num = index + 1
    while num > 0:
        num, rem = divmod(num - 1, 26)
        label = chr(ord("A") + rem) + label
    return label


def label_to_index(label: str) -> int:
    """Convert a column label (``"A"``, ``"AA"``, ...) to a zero-based index."""
    if not _LABEL_RE.fullmatch(label):
        raise InvalidLabelError(f"Invalid column label: {label!r}")
    result = 0
    for ch in label:
        result = result * 26 + (ord(ch) - ord("A") + 1)
    return result - 1


def parse_cell_address(ref: str) -> CellAddress:
    """Parse an uppercase cell reference such as ``"C14"`` into a CellAddress.

    Callers normalize case before calling; lowercase letters are rejected.
    """
    m = _CELL_RE.fullmatch(ref)
    if not m:
        raise InvalidAddressError(f"Invalid cell coordinate: {ref}")
    digits = m.group(2)
    if len(digits) > _MAX_ROW_DIGITS:
        raise InvalidAddressError(f"Invalid row number in cell coordinate: {ref[:40]}...")
    row_number = int(digits)
    if row_number < 1:
        raise InvalidAddressError(f"Invalid row number in cell coordinate: {ref}")
    return CellAddress(row=row_number - 1, col=label_to_index(m.group(1)))


def format_cell_address(row: int, col: int) -> str:
    """Inverse of :func:`parse_cell_address` for zero-based indices."""
    if row < 0:
        raise InvalidAddressError(f"Row index must be non-negative, got {row}")
    return f"{index_to_label(col)}{row + 1}"
