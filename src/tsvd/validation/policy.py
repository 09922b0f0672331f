"""Policy engine: load ``tsvd-policy.yaml`` and enforce table ceilings."""

from __future__ import annotations

from pathlib import Path
from typing import Any

import yaml

from tsvd.diff.differ import CONTEXT_LINES
from tsvd.io.fileops import read_text_safe
from tsvd.table.model import Table, column_count

POLICY_FILENAME = "tsvd-policy.yaml"


def _non_negative(value: Any, key: str) -> Any:
    if value is None:
        return None
    if isinstance(value, bool) or not isinstance(value, int) or value < 0:
        raise ValueError(f"{key} must be a non-negative integer, got {value!r}")
    return value


class Policy:
    """Represents a loaded policy configuration.

    Ceilings are optional; ``None`` means unbounded.
    """

    def __init__(self, data: dict[str, Any] | None = None) -> None:
        data = data or {}
        limits = data.get("limits") or {}
        diff = data.get("diff") or {}
        if not isinstance(limits, dict) or not isinstance(diff, dict):
            raise ValueError("Policy sections 'limits' and 'diff' must be mappings")
        self.max_rows: int | None = _non_negative(limits.get("max_rows"), "limits.max_rows")
        self.max_columns: int | None = _non_negative(limits.get("max_columns"), "limits.max_columns")
        context = _non_negative(diff.get("context_lines"), "diff.context_lines")
        self.context_lines: int = CONTEXT_LINES if context is None else context

    @classmethod
    def load(cls, path: str | Path) -> "Policy":
        """Load policy from a YAML file."""
        try:
            data = yaml.safe_load(read_text_safe(path)) or {}
        except yaml.YAMLError as e:
            raise ValueError(f"Cannot parse policy {path}: {e}") from e
        if not isinstance(data, dict):
            raise ValueError(f"Policy file {path} must contain a mapping")
        return cls(data)

    @classmethod
    def load_from_dir(cls, directory: str | Path) -> "Policy | None":
        """Try to load tsvd-policy.yaml from a directory. Returns None if not found."""
        path = Path(directory) / POLICY_FILENAME
        if path.exists():
            return cls.load(path)
        return None


def check_table_limits(policy: Policy, table: Table) -> list[dict[str, Any]]:
    """Check a table against the policy ceilings. Returns list of violations."""
    violations: list[dict[str, Any]] = []
    rows = len(table)
    cols = column_count(table)

    if policy.max_rows is not None and rows > policy.max_rows:
        violations.append({
            "type": "max_rows",
            "limit": policy.max_rows,
            "actual": rows,
            "message": f"Table has {rows} rows, exceeding the limit of {policy.max_rows}",
        })
    if policy.max_columns is not None and cols > policy.max_columns:
        violations.append({
            "type": "max_columns",
            "limit": policy.max_columns,
            "actual": cols,
            "message": f"Table has {cols} columns, exceeding the limit of {policy.max_columns}",
        })
    return violations
