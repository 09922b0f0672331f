"""File operations: fingerprinting, backup, atomic write, locking."""

from __future__ import annotations

import hashlib
import os
import shutil
import tempfile
from datetime import datetime, timezone
from pathlib import Path
from typing import IO

import portalocker

LOCK_SUFFIX = ".tsvd.lock"
BACKUP_STAMP = "%Y%m%dT%H%M%SZ"


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def fingerprint_bytes(data: bytes) -> str:
    """SHA-256 fingerprint of in-memory content."""
    return f"sha256:{hashlib.sha256(data).hexdigest()}"


def fingerprint(path: str | Path) -> str:
    """Fingerprint a table file as stored on disk."""
    return fingerprint_bytes(Path(path).read_bytes())


def backup(path: str | Path) -> str:
    """Copy a table file to ``<stem>.<utc stamp>.bak<suffix>`` beside it."""
    source = Path(path)
    name = f"{source.stem}.{_utcnow().strftime(BACKUP_STAMP)}.bak{source.suffix}"
    return str(shutil.copy2(source, source.with_name(name)))


def atomic_write(target: str | Path, data: bytes) -> None:
    """Replace target with data so readers never observe a partial table."""
    target = Path(target)
    tmp = tempfile.NamedTemporaryFile(  # noqa: SIM115
        dir=target.parent, prefix=".tsvd_tmp_", suffix=target.suffix, delete=False
    )
    try:
        with tmp:
            tmp.write(data)
            tmp.flush()
            os.fsync(tmp.fileno())
        os.replace(tmp.name, target)
    except BaseException:
        Path(tmp.name).unlink(missing_ok=True)
        raise


def lock_path_for(path: str | Path) -> Path:
    table = Path(path).resolve()
    return table.with_name(table.name + LOCK_SUFFIX)


def _read_holder(lock_path: Path) -> dict[str, str]:
    try:
        text = lock_path.read_text()
    except OSError:
        return {}
    return {
        key.strip(): value.strip()
        for key, sep, value in (line.partition("=") for line in text.splitlines())
        if sep
    }


class TableLock:
    """Exclusive ``<file>.tsvd.lock`` sidecar held while a table is checked and rewritten.

    A zero timeout fails at once when another writer holds the lock. The OS
    drops the lock if the holder dies, so a leftover sidecar reads as free.
    Raises ``portalocker.LockException`` when the lock cannot be taken.
    """

    def __init__(self, table_path: str | Path, *, timeout: float = 0) -> None:
        self.table_path = Path(table_path).resolve()
        self.timeout = timeout
        self._lock = portalocker.Lock(
            lock_path_for(self.table_path),
            mode="w",
            timeout=max(timeout, 0),
            check_interval=min(0.1, max(0.01, timeout / 20)),
            fail_when_locked=timeout <= 0,
            flags=portalocker.LOCK_EX | portalocker.LOCK_NB,
        )

    @property
    def lock_path(self) -> Path:
        return Path(self._lock.filename)

    def _stamp(self, fh: IO[str]) -> None:
        fh.write(f"pid={os.getpid()}\ntime={_utcnow().isoformat()}\n")
        fh.flush()

    def __enter__(self) -> "TableLock":
        self._stamp(self._lock.acquire())
        return self

    def __exit__(self, exc_type: object, exc_val: object, exc_tb: object) -> None:
        self._lock.release()


def check_lock(path: str | Path) -> dict:
    """Report whether a writer currently holds the sidecar lock of a table file.

    Returns ``exists`` (the table file exists), ``locked``, ``lock_file`` and,
    when locked, the ``holder`` diagnostics written by :class:`TableLock`.
    """
    table = Path(path).resolve()
    lock_path = lock_path_for(table)
    status = {"exists": table.exists(), "locked": False, "lock_file": str(lock_path)}
    if not lock_path.exists():
        return status

    # append mode so a successful check leaves the holder lines in place
    attempt = portalocker.Lock(lock_path, mode="a", timeout=0, fail_when_locked=True)
    try:
        with attempt:
            pass
    except portalocker.LockException:
        return {**status, "locked": True, "holder": _read_holder(lock_path)}
    except OSError:
        return {**status, "check_error": True}
    return status


def read_text_safe(path: str | Path) -> str:
    """Read a UTF-8 text file, dropping a leading BOM if present."""
    return Path(path).read_text(encoding="utf-8-sig")
