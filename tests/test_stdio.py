"""Tests for the stdio tool server."""

from __future__ import annotations

import io
import json
from pathlib import Path

from tsvd.contracts.plans import EditPlan
from tsvd.server.stdio import StdioServer


def _call(server: StdioServer, file: Path, tool: str, arguments: dict) -> dict:
    return server.handle_request({
        "id": "t",
        "command": "tool.call",
        "args": {"file": str(file), "tool": tool, "arguments": arguments},
    })


def test_tools_list():
    response = StdioServer().handle_request({"id": "1", "command": "tools.list"})
    assert response["ok"] is True
    assert len(response["result"]) == 4


def test_table_show(sales_file: Path):
    response = StdioServer().handle_request({"id": "2", "command": "table.show", "args": {"file": str(sales_file)}})
    assert response["ok"] is True
    assert response["result"]["labeled"].startswith("|  | A | B | C | D |")


def test_tool_calls_accumulate_without_writing(sales_file: Path):
    before = sales_file.read_bytes()
    server = StdioServer()
    ok = _call(server, sales_file, "edit_cells", {"edits": [{"cell": "A1", "value": "Zone"}]})
    assert ok["ok"] is True
    assert ok["result"]["message"] == "Edited 1 cell(s)"
    bad = _call(server, sales_file, "str_replace", {"old_str": "Atlantis", "new_str": "x"})
    assert bad["ok"] is False
    assert bad["result"]["message"] == "Error: String not found in spreadsheet"

    diff = server.handle_request({"id": "3", "command": "batch.diff", "args": {"file": str(sales_file)}})
    assert diff["result"]["calls"] == 1
    assert "+Zone→\tProduct" in diff["result"]["diff"]
    assert len(diff["result"]["errors"]) == 1
    assert sales_file.read_bytes() == before


def test_invalid_arguments(sales_file: Path):
    response = _call(StdioServer(), sales_file, "replace_area", {"from_cell": "A1"})
    assert response["ok"] is False
    assert response["result"]["code"] == "ERR_TOOL_INVALID"


def test_discard(sales_file: Path):
    server = StdioServer()
    _call(server, sales_file, "edit_cells", {"edits": [{"cell": "A1", "value": "Zone"}]})
    server.handle_request({"id": "4", "command": "batch.discard", "args": {"file": str(sales_file)}})
    diff = server.handle_request({"id": "5", "command": "batch.diff", "args": {"file": str(sales_file)}})
    assert diff["result"]["diff"] == "No changes."


def test_export_is_a_valid_plan(sales_file: Path):
    server = StdioServer()
    _call(server, sales_file, "str_replace", {"old_str": "Total", "new_str": "Sum"})
    response = server.handle_request({"id": "6", "command": "batch.export", "args": {"file": str(sales_file)}})
    plan = EditPlan.model_validate(response["result"])
    assert plan.plan_id.startswith("pln_")
    assert plan.target.fingerprint.startswith("sha256:")
    assert [c.tool for c in plan.calls] == ["str_replace"]


def test_errors(tmp_path: Path):
    server = StdioServer()
    assert server.handle_request({"id": "7", "command": "table.show", "args": {}})["ok"] is False
    missing = server.handle_request({"id": "8", "command": "table.show", "args": {"file": str(tmp_path / "x.tsv")}})
    assert missing["ok"] is False
    assert "not found" in missing["error"]
    assert server.handle_request({"id": "9", "command": "bogus", "args": {"file": "x"}})["ok"] is False


def test_run_loop(sales_file: Path, monkeypatch, capsys):
    lines = [
        json.dumps({"id": "1", "command": "tools.list"}),
        "",
        "{not json",
        json.dumps({"id": "2", "command": "table.show", "args": {"file": str(sales_file)}}),
    ]
    monkeypatch.setattr("sys.stdin", io.StringIO("\n".join(lines) + "\n"))
    StdioServer().run()
    responses = [json.loads(line) for line in capsys.readouterr().out.strip().splitlines()]
    assert [r["ok"] for r in responses] == [True, False, True]
    assert responses[1]["error"].startswith("Invalid JSON")
    assert responses[2]["id"] == "2"


def test_non_object_args(sales_file: Path):
    server = StdioServer()
    response = server.handle_request({"id": "10", "command": "table.show", "args": "x"})
    assert response == {"id": "10", "ok": False, "error": "'args' must be an object"}
    # the server keeps serving after a malformed request
    ok = server.handle_request({"id": "11", "command": "table.show", "args": {"file": str(sales_file)}})
    assert ok["ok"] is True


def test_malformed_policy_is_an_error_response(sales_file: Path):
    (sales_file.parent / "tsvd-policy.yaml").write_text("limits:\n  max_rows: '10'\n", encoding="utf-8")
    response = _call(StdioServer(), sales_file, "edit_cells", {"edits": [{"cell": "A1", "value": "x"}]})
    assert response["ok"] is False
    assert "limits.max_rows" in response["error"]
