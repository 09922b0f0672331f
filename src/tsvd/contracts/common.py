"""Common Pydantic models and the table-editing error taxonomy."""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel, Field


class TableEditError(ValueError):
    """Base class for recoverable table-editing failures."""

    code = "ERR_TABLE_EDIT"


class InvalidLabelError(TableEditError):
    """A column label is empty or contains characters outside A-Z."""

    code = "ERR_LABEL_INVALID"


class InvalidAddressError(TableEditError):
    """A cell reference is malformed or addresses row 0."""

    code = "ERR_ADDRESS_INVALID"


class MatchNotFoundError(TableEditError):
    """Targeted replace found no occurrence of the search text."""

    code = "ERR_MATCH_NOT_FOUND"


class TableParseError(TableEditError):
    """A labeled rendering could not be parsed back into a table."""

    code = "ERR_PARSE_FAILED"


class RangeViolationError(TableEditError):
    """Area bounds are inverted or the payload exceeds the addressed area."""

    code = "ERR_RANGE_VIOLATION"


class BatchInvalidError(TableEditError):
    """One or more edits in a cell batch carried an invalid address."""

    code = "ERR_BATCH_INVALID"


class LimitExceededError(TableEditError):
    """A result table is larger than the configured ceilings allow."""

    code = "ERR_LIMIT_EXCEEDED"


class Target(BaseModel):
    """Identifies the target file (and optionally a cell or area) for a command."""

    file: str | None = None
    ref: str | None = None


class WarningDetail(BaseModel):
    """Structured warning."""

    code: str
    message: str
    path: str | None = None


class ErrorDetail(BaseModel):
    """Structured error."""

    code: str
    message: str
    details: dict[str, Any] | None = None


class Metrics(BaseModel):
    """Execution metrics."""

    duration_ms: int = 0


class ChangeRecord(BaseModel):
    """Describes a single tool call applied (or projected) by a mutating command."""

    type: str
    target: str
    after: Any | None = None
    impact: dict[str, Any] | None = None


class ResponseEnvelope(BaseModel):
    """Standard response envelope returned by every command."""

    ok: bool = True
    command: str = ""
    target: Target = Field(default_factory=Target)
    result: Any = None
    changes: list[ChangeRecord] = Field(default_factory=list)
    warnings: list[WarningDetail] = Field(default_factory=list)
    errors: list[ErrorDetail] = Field(default_factory=list)
    metrics: Metrics = Field(default_factory=Metrics)
