"""Typer CLI application: top-level commands and subcommand groups."""

from __future__ import annotations

import sys
from typing import Annotated, Any, NoReturn, Optional

import click
import orjson
import portalocker
import typer
from pydantic import ValidationError

from tsvd.engine.dispatcher import patch_typer_errors

patch_typer_errors()

import tsvd
from tsvd.contracts.common import ChangeRecord, Target, WarningDetail
from tsvd.contracts.plans import EditPlan
from tsvd.contracts.responses import ApplyResult
from tsvd.contracts.tools import (
    CellEdit,
    EditCellsCall,
    ReplaceAllCall,
    ReplaceAreaCall,
    StrReplaceCall,
    ToolCall,
    tool_definitions,
)
from tsvd.diff.differ import CONTEXT_LINES, NO_CHANGES, compute_diff, diff_stats
from tsvd.engine.context import FingerprintConflictError, TableContext
from tsvd.engine.dispatcher import (
    error_envelope,
    exit_code_for,
    print_response,
    success_envelope,
)
from tsvd.engine.mutations import affected_area
from tsvd.engine.session import EditSession
from tsvd.io.fileops import check_lock, read_text_safe
from tsvd.observe.events import EventEmitter, Timer
from tsvd.table.model import render_labeled, serialize
from tsvd.validation.policy import Policy

# ---------------------------------------------------------------------------
# App & subcommand groups
# ---------------------------------------------------------------------------

_MAIN_HELP = """\
Review-before-write editor for tab-separated tables, driven by model tool calls.

**Workflow:**  show → propose (tool calls) → review diff → accept → write

1. `tsvd show -f data.tsv`: dimensions plus the labeled table a model reads
2. `tsvd tools`: JSON schemas of the four edit tools
3. `tsvd edit cells -f data.tsv --set C14=42 --dry-run`: preview a change
4. `tsvd apply -f data.tsv --plan plan.json`: review the cumulative diff and confirm

**Every command** returns a JSON `ResponseEnvelope`:
`{"ok": bool, "command": "...", "result": {...}, "errors": [...], "warnings": [...], "metrics": {"duration_ms": N}}`

**Cell refs** are spreadsheet-style: column letters then a 1-based row (`A1`, `C14`, `AA3`).
Tables grow on demand: writing outside the current bounds appends rows and cells.

**Safety rails:** every write shows the diff and asks `Accept changes?` unless `--yes`;
`--dry-run` never writes; `--backup` keeps a timestamped copy; a file changed on disk
since it was loaded is never overwritten.

**Exit codes:** 0=success, 10=validation, 40=conflict, 50=io, 90=internal
"""

_EDIT_EPILOG = """\
**Examples:**

`tsvd edit cells -f data.tsv --set A1=Name --set C5=42`

`tsvd edit area -f data.tsv --from A1 --to B2 --values '[["x","y"],["z"]]'`: short rows are padded empty

`tsvd edit replace -f data.tsv --old Total --new Sum`: replaces every occurrence

`tsvd edit replace-all -f data.tsv --table-file new_table.md`

Add `--dry-run` to preview, `--yes` to skip the confirmation prompt.
"""

_DIFF_EPILOG = """\
**Examples:**

`tsvd diff compare --file-a before.tsv --file-b after.tsv`

`tsvd diff compare --file-a before.tsv --file-b after.tsv --context 1`

Tabs are shown as `→` followed by the tab so field boundaries stay visible.
"""


def _version_callback(value: bool) -> None:
    if value:
        typer.echo(tsvd.__version__)
        raise typer.Exit()


app = typer.Typer(
    name="tsvd",
    help=_MAIN_HELP,
    no_args_is_help=True,
    rich_markup_mode="markdown",
)

edit_app = typer.Typer(
    name="edit", help="Apply a single edit tool to a table file.",
    epilog=_EDIT_EPILOG,
    no_args_is_help=True, rich_markup_mode="markdown",
)
diff_app = typer.Typer(
    name="diff", help="Compare two table files line by line.",
    epilog=_DIFF_EPILOG,
    no_args_is_help=True, rich_markup_mode="markdown",
)

app.add_typer(edit_app)
app.add_typer(diff_app)


@app.callback(invoke_without_command=True)
def _root(
    ctx: typer.Context,
    version: Annotated[
        bool, typer.Option("--version", "-V", help="Print version and exit.", is_eager=True)
    ] = False,
    events: Annotated[
        bool, typer.Option("--events", help="Emit NDJSON lifecycle events to stderr.")
    ] = False,
) -> None:
    if version:
        _version_callback(True)
    ctx.obj = EventEmitter(enabled=events)


# Type aliases for common options
FilePath = Annotated[str, typer.Option("--file", "-f", help="Tab-separated table file, or '-' for stdin")]
DryRunOpt = Annotated[bool, typer.Option("--dry-run", help="Compute and return the diff without writing")]
YesOpt = Annotated[bool, typer.Option("--yes", "-y", help="Accept the changes without prompting")]
BackupOpt = Annotated[bool, typer.Option("--backup", help="Create timestamped .bak copy before writing")]
OutOpt = Annotated[Optional[str], typer.Option("--out", "-o", help="Write the result here instead of back to --file")]
PolicyOpt = Annotated[Optional[str], typer.Option("--policy", help="Policy YAML (default: tsvd-policy.yaml next to the file)")]


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------
def _emit(envelope, code=None) -> NoReturn:
    print_response(envelope)
    raise typer.Exit(code if code is not None else exit_code_for(envelope))


def _events(ctx: typer.Context) -> EventEmitter:
    root = ctx.find_root()
    return root.obj if isinstance(root.obj, EventEmitter) else EventEmitter(enabled=False)


def _load_ctx_or_emit(file: str, cmd: str) -> TableContext:
    """Load a TableContext, or emit an error envelope."""
    try:
        if file == "-":
            return TableContext.from_text(sys.stdin.read())
        return TableContext(file)
    except FileNotFoundError:
        _emit(error_envelope(cmd, "ERR_FILE_NOT_FOUND", f"File not found: {file}", target=Target(file=file)))
    except (UnicodeDecodeError, OSError) as e:
        _emit(error_envelope(cmd, "ERR_IO_READ", f"Cannot read {file}: {e}", target=Target(file=file)))


def _load_policy_or_emit(policy_path: str | None, ctx: TableContext, cmd: str) -> Policy | None:
    try:
        if policy_path:
            return Policy.load(policy_path)
        if ctx.path is not None:
            return Policy.load_from_dir(ctx.path.parent)
        return None
    except FileNotFoundError:
        _emit(error_envelope(cmd, "ERR_POLICY_NOT_FOUND", f"Policy file not found: {policy_path}"))
    except ValueError as e:
        _emit(error_envelope(cmd, "ERR_POLICY_INVALID", str(e)))


def _colorize_diff(diff: str) -> str:
    lines = []
    for line in diff.splitlines():
        if line.startswith("@@"):
            lines.append(typer.style(line, fg=typer.colors.CYAN))
        elif line.startswith("-"):
            lines.append(typer.style(line, fg=typer.colors.RED))
        elif line.startswith("+"):
            lines.append(typer.style(line, fg=typer.colors.GREEN))
        else:
            lines.append(line)
    return "\n".join(lines)


def _confirm(diff: str) -> bool:
    """Show the proposed diff on stderr and ask for confirmation."""
    typer.echo(typer.style("╭─ Proposed changes " + "─" * 40, fg=typer.colors.CYAN, bold=True), err=True)
    typer.echo(_colorize_diff(diff), err=True)
    typer.echo(typer.style("├" + "─" * 59, fg=typer.colors.CYAN, bold=True), err=True)
    try:
        return typer.confirm("Accept changes?", default=True, err=True)
    except click.exceptions.Abort:
        return False


def _run_batch(
    typer_ctx: typer.Context,
    command: str,
    file: str,
    calls: list[ToolCall],
    *,
    dry_run: bool = False,
    yes: bool = False,
    backup: bool = False,
    out: str | None = None,
    policy_path: str | None = None,
    stop_on_error: bool = False,
    expected_fingerprint: str | None = None,
) -> NoReturn:
    """Apply tool calls to a working copy, review the diff, and persist on acceptance."""
    with Timer() as t:
        ctx = _load_ctx_or_emit(file, command)
        target = ctx.target()

        if expected_fingerprint and expected_fingerprint != ctx.fp:
            _emit(error_envelope(
                command, "ERR_FINGERPRINT_CONFLICT",
                "File changed since the plan was created",
                target=target,
                details={"expected": expected_fingerprint, "actual": ctx.fp},
            ))

        policy = _load_policy_or_emit(policy_path, ctx, command)
        session = EditSession(ctx.table, policy=policy, events=_events(typer_ctx))

        changes: list[ChangeRecord] = []
        warnings: list[WarningDetail] = []
        outcomes = []
        for call in calls:
            outcome = session.call(call)
            outcomes.append(outcome)
            if outcome.ok:
                ref, cells = affected_area(call)
                changes.append(ChangeRecord(
                    type=call.tool,
                    target=ref,
                    after=outcome.message,
                    impact={"cells": cells} if cells else None,
                ))
            else:
                warnings.append(WarningDetail(
                    code=outcome.code or "ERR_TOOL_FAILED",
                    message=session.errors[-1],
                ))
                if stop_on_error:
                    break

        diff = session.diff()
        result = ApplyResult(
            dry_run=dry_run,
            calls_applied=len(session.applied_calls),
            calls_failed=len(warnings),
            fingerprint_before=ctx.fp,
            diff=diff,
            outcomes=outcomes,
        )

        if warnings and (stop_on_error or not session.has_changes):
            first = warnings[0]
            _emit(error_envelope(
                command, first.code, first.message,
                target=target,
                details={
                    "errors": [w.model_dump() for w in warnings],
                    "outcomes": [o.model_dump() for o in outcomes],
                },
            ))

        if diff != NO_CHANGES and not dry_run:
            if not yes and not _confirm(diff):
                session.discard()
                result.declined = True
                typer.echo(typer.style("→ Changes not applied.", dim=True), err=True)
            else:
                committed = session.commit()
                try:
                    saved = ctx.save(committed, out, make_backup=backup)
                except FingerprintConflictError as e:
                    _emit(error_envelope(command, "ERR_FINGERPRINT_CONFLICT", str(e), target=target))
                except portalocker.LockException:
                    _emit(error_envelope(command, "ERR_LOCK_HELD", f"{out or file} is locked by another process", target=target))
                except ValueError as e:
                    _emit(error_envelope(command, "ERR_MISSING_OUTPUT", str(e), target=target))
                except OSError as e:
                    _emit(error_envelope(command, "ERR_IO_WRITE", f"Error writing file: {e}", target=target))
                result.applied = True
                result.output_path = saved["path"]
                result.backup_path = saved["backup_path"]
                result.fingerprint_after = saved["fingerprint"]

    _emit(success_envelope(
        command,
        result.model_dump(),
        target=target,
        changes=changes,
        warnings=warnings,
        duration_ms=t.elapsed_ms,
    ))


def _load_edit_plan(plan_path: str) -> EditPlan:
    """Load and validate an edit plan JSON file."""
    try:
        data = orjson.loads(read_text_safe(plan_path))
    except orjson.JSONDecodeError as e:
        raise ValueError(f"Cannot parse plan: {e}") from e

    if not isinstance(data, dict):
        raise ValueError("Plan file must contain a JSON object.")

    if {"ok", "result"}.issubset(data):
        # A saved stdio `batch.export` response: unwrap its result.
        inner = data.get("result")
        if isinstance(inner, dict) and "target" in inner and "calls" in inner:
            data = inner
        else:
            raise ValueError("Plan file contains a response whose 'result' is not an edit plan.")

    missing = [k for k in ("target", "calls") if k not in data]
    if missing:
        raise ValueError(f"Plan file missing required keys: {', '.join(missing)}")

    try:
        return EditPlan.model_validate(data)
    except ValidationError as e:
        raise ValueError(f"Cannot parse plan: {e}") from e


def _validated_call_or_emit(command: str, file: str, model: type, **fields: Any) -> ToolCall:
    try:
        return model(**fields)
    except ValidationError as e:
        _emit(error_envelope(command, "ERR_TOOL_INVALID", str(e), target=Target(file=file)))


# ---------------------------------------------------------------------------
# tsvd version / tools / show
# ---------------------------------------------------------------------------
@app.command()
def version():
    """Print the tsvd version as an envelope."""
    _emit(success_envelope("version", {"version": tsvd.__version__}))


@app.command("tools")
def tools_cmd():
    """List the model-facing edit tools with their JSON input schemas.

    These are the four tools a model may call: `str_replace`, `replace_all`,
    `edit_cells` and `replace_area`. Feed them to any tool-calling model API.
    """
    _emit(success_envelope("tools", tool_definitions()))


@app.command("show")
def show_cmd(file: FilePath):
    """Show table dimensions and the labeled rendering a model reads.

    Example: `tsvd show -f data.tsv`
    """
    with Timer() as t:
        ctx = _load_ctx_or_emit(file, "show")
        result = {"meta": ctx.get_meta().model_dump(), "labeled": render_labeled(ctx.table)}
    _emit(success_envelope("show", result, target=ctx.target(), duration_ms=t.elapsed_ms))


# ---------------------------------------------------------------------------
# tsvd edit ...
# ---------------------------------------------------------------------------
@edit_app.command("cells")
def edit_cells_cmd(
    ctx: typer.Context,
    file: FilePath,
    assignments: Annotated[list[str], typer.Option("--set", help="Cell assignment CELL=VALUE (repeatable)")],
    dry_run: DryRunOpt = False,
    yes: YesOpt = False,
    backup: BackupOpt = False,
    out: OutOpt = None,
    policy: PolicyOpt = None,
):
    """Set individual cells. Mutating.

    Every `--set` must use a valid ref; one bad ref rejects the whole batch.
    Cells beyond the current bounds are created, padding with empty cells.

    Example: `tsvd edit cells -f data.tsv --set A1=Name --set C5=42`
    """
    edits: list[CellEdit] = []
    for item in assignments:
        cell, sep, value = item.partition("=")
        if not sep:
            _emit(error_envelope(
                "edit.cells", "ERR_INVALID_ARGUMENT",
                f"Expected CELL=VALUE, got {item!r}", target=Target(file=file),
            ))
        edits.append(CellEdit(cell=cell.strip(), value=value))
    _run_batch(
        ctx, "edit.cells", file, [EditCellsCall(edits=edits)],
        dry_run=dry_run, yes=yes, backup=backup, out=out, policy_path=policy,
    )


@edit_app.command("area")
def edit_area_cmd(
    ctx: typer.Context,
    file: FilePath,
    from_cell: Annotated[str, typer.Option("--from", help="Top-left cell (e.g. A1)")],
    to_cell: Annotated[str, typer.Option("--to", help="Bottom-right cell, inclusive (e.g. C5)")],
    values: Annotated[str, typer.Option("--values", help='JSON 2D array of strings, row by row')],
    dry_run: DryRunOpt = False,
    yes: YesOpt = False,
    backup: BackupOpt = False,
    out: OutOpt = None,
    policy: PolicyOpt = None,
):
    """Replace a rectangular area. Mutating.

    `--values` may be smaller than the area (the rest is cleared) but not larger.

    Example: `tsvd edit area -f data.tsv --from B2 --to C3 --values '[["1","2"],["3","4"]]'`
    """
    try:
        parsed = orjson.loads(values)
    except orjson.JSONDecodeError as e:
        _emit(error_envelope("edit.area", "ERR_INVALID_ARGUMENT", f"--values is not JSON: {e}", target=Target(file=file)))
    call = _validated_call_or_emit(
        "edit.area", file, ReplaceAreaCall, from_cell=from_cell, to_cell=to_cell, values=parsed,
    )
    _run_batch(
        ctx, "edit.area", file, [call],
        dry_run=dry_run, yes=yes, backup=backup, out=out, policy_path=policy,
    )


@edit_app.command("replace")
def edit_replace_cmd(
    ctx: typer.Context,
    file: FilePath,
    old: Annotated[str, typer.Option("--old", help="Exact text to find in the labeled table")],
    new: Annotated[str, typer.Option("--new", help="Replacement text")],
    dry_run: DryRunOpt = False,
    yes: YesOpt = False,
    backup: BackupOpt = False,
    out: OutOpt = None,
    policy: PolicyOpt = None,
):
    """Replace every occurrence of a string in the labeled table. Mutating.

    Matching is literal and runs over the labeled rendering shown by `tsvd show`,
    so row numbers and column letters are matchable too.

    Example: `tsvd edit replace -f data.tsv --old Total --new Sum`
    """
    _run_batch(
        ctx, "edit.replace", file, [StrReplaceCall(old_str=old, new_str=new)],
        dry_run=dry_run, yes=yes, backup=backup, out=out, policy_path=policy,
    )


@edit_app.command("replace-all")
def edit_replace_all_cmd(
    ctx: typer.Context,
    file: FilePath,
    table_file: Annotated[str, typer.Option("--table-file", help="File holding the complete new labeled table")],
    dry_run: DryRunOpt = False,
    yes: YesOpt = False,
    backup: BackupOpt = False,
    out: OutOpt = None,
    policy: PolicyOpt = None,
):
    """Replace the whole table with a labeled rendering. Mutating.

    Example: `tsvd show -f data.tsv` → edit `result.labeled` into new.md →
    `tsvd edit replace-all -f data.tsv --table-file new.md`
    """
    try:
        new_table = read_text_safe(table_file)
    except FileNotFoundError:
        _emit(error_envelope("edit.replace_all", "ERR_FILE_NOT_FOUND", f"File not found: {table_file}"))
    _run_batch(
        ctx, "edit.replace_all", file, [ReplaceAllCall(new_table=new_table)],
        dry_run=dry_run, yes=yes, backup=backup, out=out, policy_path=policy,
    )


# ---------------------------------------------------------------------------
# tsvd apply
# ---------------------------------------------------------------------------
@app.command("apply")
def apply_cmd(
    ctx: typer.Context,
    plan: Annotated[str, typer.Option("--plan", help="Edit plan JSON (a list of tool calls)")],
    file: Annotated[Optional[str], typer.Option("--file", "-f", help="Table file (default: the plan's target)")] = None,
    dry_run: DryRunOpt = False,
    yes: YesOpt = False,
    backup: BackupOpt = False,
    out: OutOpt = None,
    policy: PolicyOpt = None,
):
    """Apply an edit plan: run its tool calls in order, review, and write. Mutating.

    Calls run against one working copy, each seeing the previous result. Failed
    calls are reported as warnings while the successful ones are still proposed,
    unless the plan sets `options.stop_on_error`.

    Plan format:

        {"target": {"file": "data.tsv", "fingerprint": "sha256:..."},
         "calls": [{"tool": "edit_cells", "edits": [{"cell": "A1", "value": "x"}]}]}

    Example: `tsvd apply --plan plan.json --dry-run`
    """
    try:
        edit_plan = _load_edit_plan(plan)
    except FileNotFoundError:
        _emit(error_envelope("apply", "ERR_PLAN_NOT_FOUND", f"Plan not found: {plan}"))
    except ValueError as e:
        _emit(error_envelope("apply", "ERR_PLAN_INVALID", str(e)))

    options = edit_plan.options
    _run_batch(
        ctx, "apply", file or edit_plan.target.file, list(edit_plan.calls),
        dry_run=dry_run,
        yes=yes,
        backup=backup or options.backup,
        out=out,
        policy_path=policy,
        stop_on_error=options.stop_on_error,
        expected_fingerprint=edit_plan.target.fingerprint if options.fail_on_external_change else None,
    )


# ---------------------------------------------------------------------------
# tsvd diff compare
# ---------------------------------------------------------------------------
@diff_app.command("compare")
def diff_compare_cmd(
    file_a: Annotated[str, typer.Option("--file-a", help="First (original/before) table path")],
    file_b: Annotated[str, typer.Option("--file-b", help="Second (modified/after) table path")],
    context: Annotated[int, typer.Option("--context", min=0, help="Unchanged lines shown around each change")] = CONTEXT_LINES,
):
    """Compare two table files as a line-level unified diff.

    Both files are normalized through the table model first, so line-ending
    differences alone do not show up.

    Example: `tsvd diff compare --file-a v1.tsv --file-b v2.tsv`
    """
    with Timer() as t:
        ctx_a = _load_ctx_or_emit(file_a, "diff.compare")
        ctx_b = _load_ctx_or_emit(file_b, "diff.compare")
        old_text, new_text = serialize(ctx_a.table), serialize(ctx_b.table)
        result = {
            "file_a": file_a,
            "file_b": file_b,
            "fingerprint_a": ctx_a.fp,
            "fingerprint_b": ctx_b.fp,
            "identical": old_text == new_text,
            "stats": diff_stats(old_text, new_text),
            "diff": compute_diff(old_text, new_text, context=context),
        }
    _emit(success_envelope("diff.compare", result, duration_ms=t.elapsed_ms))


# ---------------------------------------------------------------------------
# tsvd lock-status
# ---------------------------------------------------------------------------
@app.command("lock-status")
def lock_status_cmd(file: FilePath):
    """Check whether another tsvd process holds the write lock on a file.

    Example: `tsvd lock-status -f data.tsv`
    """
    status = check_lock(file)
    _emit(success_envelope("lock-status", status, target=Target(file=file)))


# ---------------------------------------------------------------------------
# tsvd serve --stdio
# ---------------------------------------------------------------------------
@app.command("serve")
def serve_cmd(
    ctx: typer.Context,
    stdio: Annotated[bool, typer.Option("--stdio", help="Use stdin/stdout for JSON request/response (for agent tool integration)")] = True,
):
    """Start the stdio tool server for agents.

    Reads one JSON request per line and writes one JSON response per line:
    `{"id": "1", "command": "tool.call", "args": {"file": "data.tsv", "tool": "edit_cells", "arguments": {...}}}`

    Commands: `tools.list`, `table.show`, `tool.call`, `batch.diff`, `batch.discard`,
    `batch.export`, `close`. The server never writes files; export a plan and
    review it with `tsvd apply`.
    """
    from tsvd.server.stdio import StdioServer

    StdioServer(events=_events(ctx)).run()


# ---------------------------------------------------------------------------
# Entrypoint (for `python -m tsvd`)
# ---------------------------------------------------------------------------
def main() -> None:
    try:
        app()
    except SystemExit:
        raise
    except Exception as exc:
        # Unhandled errors still produce an envelope so consumers never parse a traceback.
        env = error_envelope("unknown", "ERR_INTERNAL", str(exc))
        print_response(env)
        raise SystemExit(90) from exc


if __name__ == "__main__":
    main()
