"""Tests for tool-call models, tool definitions, and plan/envelope contracts."""

from __future__ import annotations

import json

import pytest
from pydantic import ValidationError

from tsvd.contracts import ChangeRecord, EditPlan, ResponseEnvelope, Target, WarningDetail
from tsvd.contracts.tools import (
    EditCellsCall,
    ReplaceAreaCall,
    StrReplaceCall,
    parse_tool_call,
    tool_definitions,
)


def test_tool_definitions_names():
    names = [d["name"] for d in tool_definitions()]
    assert names == ["str_replace", "replace_all", "edit_cells", "replace_area"]


def test_tool_definitions_schemas():
    defs = {d["name"]: d for d in tool_definitions()}
    area = defs["replace_area"]["input_schema"]
    assert area["type"] == "object"
    assert set(area["required"]) == {"from_cell", "to_cell", "values"}
    assert "tool" not in area["properties"]
    assert "title" not in area
    assert defs["str_replace"]["description"].startswith("Replace a substring")
    # Serializable as-is for any tool-calling API
    json.dumps(tool_definitions())


def test_parse_tool_call_variants():
    call = parse_tool_call("edit_cells", {"edits": [{"cell": "A1", "value": "x"}]})
    assert isinstance(call, EditCellsCall)
    assert call.edits[0].cell == "A1"
    call = parse_tool_call("replace_area", {"from_cell": "A1", "to_cell": "B2", "values": [["1"]]})
    assert isinstance(call, ReplaceAreaCall)


def test_parse_tool_call_name_wins_over_payload():
    call = parse_tool_call("str_replace", {"tool": "replace_all", "old_str": "a", "new_str": "b"})
    assert isinstance(call, StrReplaceCall)


@pytest.mark.parametrize(
    "name,arguments",
    [
        ("str_replace", {"old_str": "a"}),
        ("replace_area", {"from_cell": "A1", "to_cell": "B2", "values": "nope"}),
        ("edit_cells", {"edits": [{"cell": "A1", "value": "x", "extra": 1}]}),
        ("nope", {}),
    ],
)
def test_parse_tool_call_rejects(name, arguments):
    with pytest.raises(ValidationError):
        parse_tool_call(name, arguments)


def test_summaries():
    assert StrReplaceCall(old_str="a", new_str="b").summary() == "str_replace(a, b)"
    long = StrReplaceCall(old_str="x" * 80, new_str="y").summary()
    assert "..." in long and len(long) < 80
    cells = EditCellsCall(edits=[{"cell": c, "value": "v"} for c in ("A1", "B1", "C1")])
    assert cells.summary() == "edit_cells([A1=v, B1=v...])"


def test_plan_roundtrip():
    plan = EditPlan.model_validate({
        "target": {"file": "data.tsv"},
        "calls": [
            {"tool": "str_replace", "old_str": "a", "new_str": "b"},
            {"tool": "edit_cells", "edits": [{"cell": "A1", "value": "x"}]},
        ],
    })
    assert plan.options.stop_on_error is False
    assert plan.options.fail_on_external_change is True
    again = EditPlan.model_validate(plan.model_dump(mode="json"))
    assert again == plan


def test_plan_rejects_unknown_tool():
    with pytest.raises(ValidationError):
        EditPlan.model_validate({"target": {"file": "x"}, "calls": [{"tool": "drop_table"}]})


def test_envelope_defaults():
    env = ResponseEnvelope(command="show", target=Target(file="a.tsv"), result={"rows": 1})
    data = env.model_dump(mode="json")
    assert data["ok"] is True
    assert data["changes"] == [] and data["errors"] == []
    assert data["metrics"] == {"duration_ms": 0}


def test_envelope_carries_changes_and_warnings():
    env = ResponseEnvelope(
        changes=[ChangeRecord(type="edit_cells", target="A1", impact={"cells": 1})],
        warnings=[WarningDetail(code="ERR_MATCH_NOT_FOUND", message="nope")],
    )
    data = env.model_dump(mode="json")
    assert data["changes"][0]["impact"] == {"cells": 1}
    assert data["warnings"][0]["code"] == "ERR_MATCH_NOT_FOUND"
