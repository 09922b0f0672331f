"""Shared test fixtures."""

from __future__ import annotations

from pathlib import Path

import pytest

from tsvd.table.model import Table, serialize


SALES_ROWS: Table = [
    ["Region", "Product", "Sales", "Cost"],
    ["North", "Widget", "1000", "600"],
    ["South", "Widget", "1500", "900"],
    ["East", "Gadget", "2000", "1100"],
    ["West", "Gadget", "800", "500"],
    ["Total", "", "5300", "3100"],
]


def _write_table(path: Path, table: Table) -> Path:
    path.write_text(serialize(table), encoding="utf-8")
    return path


@pytest.fixture()
def sales_table() -> Table:
    return [list(row) for row in SALES_ROWS]


@pytest.fixture()
def sales_file(tmp_path: Path) -> Path:
    """A six-row sales sheet with a Total row."""
    return _write_table(tmp_path / "sales.tsv", SALES_ROWS)


@pytest.fixture()
def jagged_file(tmp_path: Path) -> Path:
    """Rows of differing widths, including an empty row."""
    return _write_table(tmp_path / "jagged.tsv", [["a"], ["b", "c", "d"], [], ["e", "f"]])


@pytest.fixture()
def empty_file(tmp_path: Path) -> Path:
    path = tmp_path / "empty.tsv"
    path.write_text("", encoding="utf-8")
    return path


@pytest.fixture()
def policy_file(tmp_path: Path) -> Path:
    """Policy with tight ceilings, stored next to the fixtures."""
    path = tmp_path / "tsvd-policy.yaml"
    path.write_text(
        "limits:\n  max_rows: 8\n  max_columns: 5\ndiff:\n  context_lines: 1\n",
        encoding="utf-8",
    )
    return path
