"""stdio server mode: JSON line-delimited tool protocol over stdin/stdout.

An agent drives a working session per file with tool calls and can inspect
the pending diff, but the server never writes to disk. ``batch.export``
hands back an edit plan that a human applies with ``tsvd apply``.
"""

from __future__ import annotations

import sys
import uuid
from typing import Any

import orjson

from tsvd.contracts.plans import EditPlan, PlanTarget
from tsvd.contracts.tools import tool_definitions
from tsvd.engine.context import TableContext
from tsvd.engine.session import EditSession
from tsvd.observe.events import EventEmitter
from tsvd.validation.policy import Policy


class StdioServer:
    """Simple JSON-RPC-like server over stdin/stdout."""

    def __init__(self, *, events: EventEmitter | None = None) -> None:
        self.events = events or EventEmitter(enabled=False)
        self._sessions: dict[str, tuple[TableContext, EditSession]] = {}

    def _get_session(self, file: str) -> tuple[TableContext, EditSession]:
        if file not in self._sessions:
            ctx = TableContext(file)
            policy = Policy.load_from_dir(ctx.path.parent)
            self._sessions[file] = (ctx, EditSession(ctx.table, policy=policy, events=self.events))
        return self._sessions[file]

    def _export(self, ctx: TableContext, session: EditSession) -> dict[str, Any]:
        plan = EditPlan(
            plan_id=f"pln_{uuid.uuid4().hex[:12]}",
            target=PlanTarget(file=str(ctx.path), fingerprint=ctx.fp),
            calls=list(session.applied_calls),
        )
        return plan.model_dump(mode="json")

    def handle_request(self, request: dict[str, Any]) -> dict[str, Any]:
        req_id = request.get("id", "")
        command = request.get("command", "")
        args = request.get("args", {}) or {}
        if not isinstance(args, dict):
            return {"id": req_id, "ok": False, "error": "'args' must be an object"}

        if command == "tools.list":
            return {"id": req_id, "ok": True, "result": tool_definitions()}

        try:
            if command == "close":
                self._sessions.clear()
                return {"id": req_id, "ok": True, "result": "closed"}

            file = args.get("file", "")
            if not file:
                return {"id": req_id, "ok": False, "error": "Missing 'file' in args"}
            ctx, session = self._get_session(file)

            if command == "table.show":
                return {"id": req_id, "ok": True, "result": {"labeled": session.labeled()}}

            elif command == "tool.call":
                name = args.get("tool", "")
                arguments = args.get("arguments", {})
                if not isinstance(arguments, dict):
                    return {"id": req_id, "ok": False, "error": "'arguments' must be an object"}
                outcome = session.call_raw(name, arguments)
                return {"id": req_id, "ok": outcome.ok, "result": outcome.model_dump()}

            elif command == "batch.diff":
                return {"id": req_id, "ok": True, "result": {
                    "diff": session.diff(),
                    "calls": len(session.applied_calls),
                    "errors": list(session.errors),
                }}

            elif command == "batch.discard":
                session.discard()
                return {"id": req_id, "ok": True, "result": "discarded"}

            elif command == "batch.export":
                return {"id": req_id, "ok": True, "result": self._export(ctx, session)}

            else:
                return {"id": req_id, "ok": False, "error": f"Unknown command: {command}"}

        except FileNotFoundError as e:
            return {"id": req_id, "ok": False, "error": str(e)}
        except ValueError as e:
            return {"id": req_id, "ok": False, "error": str(e)}

    def run(self) -> None:
        """Main server loop: read JSON lines from stdin, write responses to stdout."""
        for line in sys.stdin:
            line = line.strip()
            if not line:
                continue
            try:
                request = orjson.loads(line)
            except orjson.JSONDecodeError as e:
                response = {"ok": False, "error": f"Invalid JSON: {e}"}
            else:
                if isinstance(request, dict):
                    response = self.handle_request(request)
                else:
                    response = {"ok": False, "error": "Request must be a JSON object"}
            sys.stdout.write(orjson.dumps(response, default=str).decode() + "\n")
            sys.stdout.flush()

        self._sessions.clear()
