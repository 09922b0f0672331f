"""Tests for error-code to exit-code mapping."""

from __future__ import annotations

import pytest

from tsvd.engine.dispatcher import error_envelope, exit_code_for, success_envelope


@pytest.mark.parametrize(
    "code,expected",
    [
        ("ERR_FINGERPRINT_CONFLICT", 40),
        ("ERR_LOCK_HELD", 40),
        ("ERR_ADDRESS_INVALID", 10),
        ("ERR_LABEL_INVALID", 10),
        ("ERR_MATCH_NOT_FOUND", 10),
        ("ERR_PARSE_FAILED", 10),
        ("ERR_RANGE_VIOLATION", 10),
        ("ERR_BATCH_INVALID", 10),
        ("ERR_LIMIT_EXCEEDED", 10),
        ("ERR_TOOL_INVALID", 10),
        ("ERR_PLAN_INVALID", 10),
        ("ERR_MISSING_OUTPUT", 10),
        ("ERR_USAGE", 10),
        ("ERR_FILE_NOT_FOUND", 50),
        ("ERR_PLAN_NOT_FOUND", 10),
        ("ERR_IO_WRITE", 50),
        ("ERR_IO_READ", 50),
        ("ERR_INTERNAL", 90),
    ],
)
def test_exit_code_mapping(code: str, expected: int):
    assert exit_code_for(error_envelope("cmd", code, "msg")) == expected


def test_success_is_zero():
    assert exit_code_for(success_envelope("cmd", {})) == 0
