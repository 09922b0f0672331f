"""Pydantic models for tool calls, plans, responses, and the error taxonomy."""

from tsvd.contracts.common import (
    BatchInvalidError,
    ChangeRecord,
    ErrorDetail,
    InvalidAddressError,
    InvalidLabelError,
    LimitExceededError,
    MatchNotFoundError,
    Metrics,
    RangeViolationError,
    ResponseEnvelope,
    TableEditError,
    TableParseError,
    Target,
    WarningDetail,
)
from tsvd.contracts.plans import EditPlan, PlanOptions, PlanTarget
from tsvd.contracts.responses import ApplyResult, TableMeta, ToolOutcome
from tsvd.contracts.tools import (
    CellEdit,
    EditCellsCall,
    MutationResult,
    ReplaceAllCall,
    ReplaceAreaCall,
    StrReplaceCall,
    ToolCall,
)

__all__ = [
    "ApplyResult",
    "BatchInvalidError",
    "CellEdit",
    "ChangeRecord",
    "EditCellsCall",
    "EditPlan",
    "ErrorDetail",
    "InvalidAddressError",
    "InvalidLabelError",
    "LimitExceededError",
    "MatchNotFoundError",
    "Metrics",
    "MutationResult",
    "PlanOptions",
    "PlanTarget",
    "RangeViolationError",
    "ReplaceAllCall",
    "ReplaceAreaCall",
    "ResponseEnvelope",
    "StrReplaceCall",
    "TableEditError",
    "TableMeta",
    "TableParseError",
    "Target",
    "ToolCall",
    "ToolOutcome",
    "WarningDetail",
]
