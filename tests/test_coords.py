"""Tests for the column-label and cell-reference codec."""

from __future__ import annotations

import pytest
from hypothesis import given
from hypothesis import strategies as st

from tsvd.contracts.common import InvalidAddressError, InvalidLabelError, TableEditError
from tsvd.table.coords import (
    CellAddress,
    format_cell_address,
    index_to_label,
    label_to_index,
    parse_cell_address,
)


@pytest.mark.parametrize(
    "index,label",
    [(0, "A"), (1, "B"), (25, "Z"), (26, "AA"), (27, "AB"), (51, "AZ"), (52, "BA"),
     (701, "ZZ"), (702, "AAA"), (16383, "XFD")],
)
def test_known_labels(index: int, label: str):
    assert index_to_label(index) == label
    assert label_to_index(label) == index


def test_no_upper_bound():
    # Far past the 16384-column spreadsheet ceiling
    label = index_to_label(10_000_000)
    assert label_to_index(label) == 10_000_000


def test_negative_index_rejected():
    with pytest.raises(InvalidLabelError):
        index_to_label(-1)


@pytest.mark.parametrize("bad", ["", "a", "A1", "Ä", " A", "A-B"])
def test_bad_labels(bad: str):
    with pytest.raises(InvalidLabelError):
        label_to_index(bad)


def test_parse_cell_address():
    assert parse_cell_address("A1") == CellAddress(row=0, col=0)
    assert parse_cell_address("C14") == CellAddress(row=13, col=2)
    assert parse_cell_address("AA3") == CellAddress(row=2, col=26)


@pytest.mark.parametrize("bad", ["", "1A", "A", "14", "a1", "A1B", "A-1", "A 1"])
def test_parse_cell_address_malformed(bad: str):
    with pytest.raises(InvalidAddressError) as exc:
        parse_cell_address(bad)
    assert str(exc.value) == f"Invalid cell coordinate: {bad}"


def test_row_zero_rejected():
    with pytest.raises(InvalidAddressError, match="Invalid row number"):
        parse_cell_address("A0")


def test_overlong_row_number_is_address_error():
    with pytest.raises(InvalidAddressError, match="Invalid row number"):
        parse_cell_address("A" + "1" * 5000)


def test_errors_are_value_errors():
    with pytest.raises(ValueError):
        parse_cell_address("zz")
    assert issubclass(InvalidAddressError, TableEditError)


def test_format_cell_address():
    assert format_cell_address(13, 2) == "C14"
    with pytest.raises(InvalidAddressError):
        format_cell_address(-1, 0)


@given(st.integers(min_value=0, max_value=10**7))
def test_label_roundtrip(index: int):
    label = index_to_label(index)
    assert label.isalpha() and label.isupper()
    assert label_to_index(label) == index


@given(st.integers(min_value=0, max_value=10**5), st.integers(min_value=0, max_value=10**4))
def test_cell_roundtrip(row: int, col: int):
    assert parse_cell_address(format_cell_address(row, col)) == (row, col)


@given(st.integers(min_value=0, max_value=10**5))
def test_labels_sort_by_length_then_alphabet(index: int):
    a, b = index_to_label(index), index_to_label(index + 1)
    assert (len(a), a) < (len(b), b)
