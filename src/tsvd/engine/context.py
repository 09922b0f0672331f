"""TableContext: loads a delimited table file, tracks its fingerprint, saves it back."""

from __future__ import annotations

from pathlib import Path

from tsvd.contracts.common import Target
from tsvd.contracts.responses import TableMeta
from tsvd.io.fileops import (
    TableLock,
    atomic_write,
    backup,
    fingerprint,
    fingerprint_bytes,
    read_text_safe,
)
from tsvd.table.model import Table, clone_table, column_count, parse_delimited, serialize


class FingerprintConflictError(Exception):
    """Raised when the file on disk changed after it was loaded."""


class TableContext:
    """Wraps a table loaded from disk (or stdin) with its provenance."""

    def __init__(self, path: str | Path) -> None:
        self.path: Path | None = Path(path).resolve()
        if not self.path.exists():
            raise FileNotFoundError(f"Table file not found: {self.path}")
        self.fp: str | None = fingerprint(self.path)
        self.table: Table = parse_delimited(read_text_safe(self.path))

    @classmethod
    def from_text(cls, text: str) -> "TableContext":
        """Build a context for content with no backing file (stdin)."""
        ctx = cls.__new__(cls)
        ctx.path = None
        ctx.fp = fingerprint_bytes(text.encode("utf-8"))
        ctx.table = parse_delimited(text)
        return ctx

    def snapshot(self) -> Table:
        return clone_table(self.table)

    def target(self, ref: str | None = None) -> Target:
        return Target(file=str(self.path) if self.path else "-", ref=ref)

    def get_meta(self) -> TableMeta:
        return TableMeta(
            path=str(self.path) if self.path else None,
            fingerprint=self.fp,
            rows=len(self.table),
            columns=column_count(self.table),
        )

    def save(
        self,
        table: Table,
        path: str | Path | None = None,
        *,
        make_backup: bool = False,
        check_fingerprint: bool = True,
        lock_timeout: float = 0,
    ) -> dict[str, str | None]:
        """Persist *table* as delimited text.

        Writes to *path*, or back to the loaded file. When writing back, the
        file must still match the fingerprint taken at load time. Returns the
        written path, the backup path (if any) and the new fingerprint.
        """
        dest = Path(path).resolve() if path else self.path
        if dest is None:
            raise ValueError("No output path: content came from stdin, pass --out")

        data = serialize(table).encode("utf-8")
        backup_path: str | None = None
        with TableLock(dest, timeout=lock_timeout):
            if check_fingerprint and dest == self.path and dest.exists():
                current = fingerprint(dest)
                if current != self.fp:
                    raise FingerprintConflictError(
                        f"{dest} changed on disk since it was loaded "
                        f"(expected {self.fp}, found {current})"
                    )
            if make_backup and dest.exists():
                backup_path = backup(dest)
            atomic_write(dest, data)

        self.table = clone_table(table)
        if dest == self.path:
            self.fp = fingerprint(dest)
        return {"path": str(dest), "backup_path": backup_path, "fingerprint": fingerprint(dest)}
