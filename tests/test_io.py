"""Tests for file operations and TableContext persistence."""

from __future__ import annotations

from pathlib import Path

import pytest

from tsvd.engine.context import FingerprintConflictError, TableContext
from tsvd.io.fileops import atomic_write, backup, fingerprint, fingerprint_bytes, read_text_safe


def test_fingerprint_is_stable(sales_file: Path):
    fp = fingerprint(sales_file)
    assert fp.startswith("sha256:")
    assert fp == fingerprint(sales_file)
    assert fp == fingerprint_bytes(sales_file.read_bytes())


def test_atomic_write_leaves_no_temp_files(tmp_path: Path):
    target = tmp_path / "out.tsv"
    atomic_write(target, b"a\tb\n")
    assert target.read_bytes() == b"a\tb\n"
    assert [p.name for p in tmp_path.iterdir()] == ["out.tsv"]


def test_atomic_write_replaces_existing(sales_file: Path):
    atomic_write(sales_file, b"x\n")
    assert sales_file.read_bytes() == b"x\n"
    assert not list(sales_file.parent.glob(".tsvd_tmp_*"))


def test_backup(sales_file: Path):
    path = Path(backup(sales_file))
    assert path.exists()
    assert path.name.startswith("sales.") and path.name.endswith(".bak.tsv")
    assert path.read_bytes() == sales_file.read_bytes()


def test_read_text_safe_strips_bom(tmp_path: Path):
    path = tmp_path / "bom.tsv"
    path.write_bytes(b"\xef\xbb\xbfa\tb\n")
    assert read_text_safe(path) == "a\tb\n"


class TestTableContext:
    def test_load(self, sales_file: Path):
        ctx = TableContext(sales_file)
        assert ctx.table[0] == ["Region", "Product", "Sales", "Cost"]
        meta = ctx.get_meta()
        assert (meta.rows, meta.columns) == (6, 4)
        assert meta.fingerprint == fingerprint(sales_file)

    def test_missing_file(self, tmp_path: Path):
        with pytest.raises(FileNotFoundError):
            TableContext(tmp_path / "nope.tsv")

    def test_from_text(self):
        ctx = TableContext.from_text("a\tb\n")
        assert ctx.path is None
        assert ctx.table == [["a", "b"]]
        assert ctx.target().file == "-"

    def test_from_text_save_needs_destination(self):
        ctx = TableContext.from_text("a\n")
        with pytest.raises(ValueError, match="--out"):
            ctx.save([["b"]])

    def test_save_back(self, sales_file: Path):
        ctx = TableContext(sales_file)
        table = ctx.snapshot()
        table[0][0] = "Area"
        saved = ctx.save(table)
        assert sales_file.read_text(encoding="utf-8").startswith("Area\tProduct")
        assert saved["fingerprint"] == fingerprint(sales_file)
        assert ctx.fp == saved["fingerprint"]
        assert saved["backup_path"] is None

    def test_save_with_backup(self, sales_file: Path):
        original = sales_file.read_bytes()
        ctx = TableContext(sales_file)
        saved = ctx.save([["x"]], make_backup=True)
        assert Path(saved["backup_path"]).read_bytes() == original
        assert sales_file.read_text(encoding="utf-8") == "x\n"

    def test_save_to_other_path(self, sales_file: Path, tmp_path: Path):
        ctx = TableContext(sales_file)
        out = tmp_path / "copy.tsv"
        saved = ctx.save([["x"]], out)
        assert saved["path"] == str(out.resolve())
        assert out.read_text(encoding="utf-8") == "x\n"
        assert sales_file.read_text(encoding="utf-8").startswith("Region")

    def test_external_change_is_not_overwritten(self, sales_file: Path):
        ctx = TableContext(sales_file)
        sales_file.write_text("someone\telse\n", encoding="utf-8")
        with pytest.raises(FingerprintConflictError):
            ctx.save([["mine"]])
        assert sales_file.read_text(encoding="utf-8") == "someone\telse\n"

    def test_crlf_file_is_normalized_on_save(self, tmp_path: Path):
        path = tmp_path / "crlf.tsv"
        path.write_bytes(b"a\tb\r\nc\td\r\n")
        ctx = TableContext(path)
        assert ctx.table == [["a", "b"], ["c", "d"]]
        ctx.save(ctx.snapshot())
        assert path.read_bytes() == b"a\tb\nc\td\n"
