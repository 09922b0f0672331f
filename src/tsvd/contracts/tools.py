"""Tool-call payload models (one tagged variant per mutation primitive)."""

from __future__ import annotations

from typing import Annotated, Any, Literal, Union

from pydantic import BaseModel, ConfigDict, Field, TypeAdapter


def _preview(value: str, limit: int = 50) -> str:
    return value if len(value) <= limit else value[: limit - 3] + "..."


class CellEdit(BaseModel):
    """A single cell assignment inside an ``edit_cells`` call."""

    model_config = ConfigDict(extra="forbid")

    cell: str = Field(description="Cell coordinate (e.g., A1, B2) as shown in the table labels")
    value: str = Field(description="New cell contents")


class StrReplaceCall(BaseModel):
    """Replace a substring in the current spreadsheet. Use for targeted edits. Replaces all occurrences of the string."""

    model_config = ConfigDict(extra="forbid")

    tool: Literal["str_replace"] = "str_replace"
    old_str: str = Field(description="Exact string to find and replace (all occurrences)")
    new_str: str = Field(description="Replacement string")

    def summary(self) -> str:
        return f"str_replace({_preview(self.old_str)}, {_preview(self.new_str)})"


class ReplaceAllCall(BaseModel):
    """Replace entire spreadsheet with a new labeled table. Use for sorting, major restructuring, or when many changes are needed."""

    model_config = ConfigDict(extra="forbid")

    tool: Literal["replace_all"] = "replace_all"
    new_table: str = Field(
        description="Complete new table with row numbers and column labels, in the same format as shown"
    )

    def summary(self) -> str:
        return f"replace_all({_preview(self.new_table)})"


class EditCellsCall(BaseModel):
    """Edit specific cells by coordinates. Efficient for multiple targeted changes without replacing the entire table."""

    model_config = ConfigDict(extra="forbid")

    tool: Literal["edit_cells"] = "edit_cells"
    edits: list[CellEdit] = Field(description="Array of cell edits to apply")

    def summary(self) -> str:
        shown = ", ".join(f"{e.cell}={e.value}" for e in self.edits[:2])
        more = "..." if len(self.edits) > 2 else ""
        return f"edit_cells([{shown}{more}])"


class ReplaceAreaCall(BaseModel):
    """Replace a rectangular region of the table. More efficient than edit_cells for updating 3+ adjacent cells."""

    model_config = ConfigDict(extra="forbid")

    tool: Literal["replace_area"] = "replace_area"
    from_cell: str = Field(description="Top-left cell coordinate (e.g., A1)")
    to_cell: str = Field(description="Bottom-right cell coordinate (e.g., C5, inclusive)")
    values: list[list[str]] = Field(
        description='2D array of new values, row by row. Example: [["A1val", "B1val"], ["A2val", "B2val"]]'
    )

    def summary(self) -> str:
        return f"replace_area({self.from_cell}, {self.to_cell}, [{len(self.values)} rows])"


ToolCall = Annotated[
    Union[StrReplaceCall, ReplaceAllCall, EditCellsCall, ReplaceAreaCall],
    Field(discriminator="tool"),
]

TOOL_CALL_ADAPTER: TypeAdapter[ToolCall] = TypeAdapter(ToolCall)

TOOL_MODELS: dict[str, type[BaseModel]] = {
    "str_replace": StrReplaceCall,
    "replace_all": ReplaceAllCall,
    "edit_cells": EditCellsCall,
    "replace_area": ReplaceAreaCall,
}


def parse_tool_call(name: str, arguments: dict[str, Any]) -> ToolCall:
    """Validate loosely-typed tool arguments into a typed call.

    Raises ``pydantic.ValidationError`` when the payload has the wrong shape
    or *name* is not a known tool.
    """
    return TOOL_CALL_ADAPTER.validate_python({**arguments, "tool": name})


def tool_definitions() -> list[dict[str, Any]]:
    """Model-facing tool definitions: name, description and JSON input schema."""
    definitions: list[dict[str, Any]] = []
    for name, model in TOOL_MODELS.items():
        schema = model.model_json_schema()
        schema.pop("title", None)
        schema.pop("description", None)
        schema.get("properties", {}).pop("tool", None)
        definitions.append({
            "name": name,
            "description": (model.__doc__ or "").strip(),
            "input_schema": schema,
        })
    return definitions


class MutationResult(BaseModel):
    """Outcome of a mutation primitive: a new table, or an error and its code."""

    success: bool
    table: list[list[str]] | None = None
    error: str | None = None
    code: str | None = None
