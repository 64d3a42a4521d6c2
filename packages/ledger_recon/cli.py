# ruff: noqa: I001
"""CLI for the ``ledger_recon`` package.

This module exposes callable command handlers (``cmd_reconcile``,
``cmd_knock_off``, ``cmd_show_snapshot``) and a Typer-based console interface.
Environment variables (``DATABASE_URL``, ``RECON_CACHE_DIR``,
``LEDGER_RECON_LOG_LEVEL``) are loaded from a local ``.env`` using
``python-dotenv`` before delegating to command logic. Business logic lives in
``ledger_recon.api`` and related modules.

Handlers return a process exit code and write errors to stderr as
``Error: ...``.
"""

from __future__ import annotations

import sys
from decimal import Decimal
from pathlib import Path
from typing import Annotated

import typer
from dotenv import load_dotenv
from typer.models import OptionInfo

from .logging_setup import configure_logging
from .session import ReconciliationSession


# ---- Small module-level helpers used by CLI commands -------------------------


def _fmt_amount(v: Decimal | None) -> str:
    return "n/a" if v is None else f"{v:,.2f}"


def _print_ledger(session: ReconciliationSession) -> None:
    """Per-sheet proof lines followed by the aggregate counters."""

    for sheet, proof in session.ledger.proofs.items():
        print(
            f"{sheet}\tmatched_sum={_fmt_amount(proof.matched_sum)}"
            f"\titems={proof.item_count}"
            f"\tstatus={proof.submission_status}"
            f"\tpending={_fmt_amount(session.pending_sum(sheet))}"
            f"\tsystem_balance={_fmt_amount(session.ledger.system_balance(sheet))}"
            f"\tdiff={_fmt_amount(session.diff(sheet))}"
        )
    s = session.summary
    matched = session.matched_summary()
    print(
        f"TOTAL\tmatched_pairs={s.matched_count}"
        f"\tpending_debits={s.pending_debit_count}"
        f"\tpending_credits={s.pending_credit_count}"
        f"\tmatched_amount={_fmt_amount(matched.amount)}"
        f"\tpending={_fmt_amount(session.pending_sum())}"
    )


def cmd_reconcile(
    previous: str,
    current: str,
    *,
    sheet: str | None = None,
    system_balance: str | None = None,
    mode: str = "multi",
    export: str | None = None,
    persist: bool = False,
    database_url: str | None = None,
    user_id: str | None = None,
    snapshot: str | None = None,
    submit: bool = False,
) -> int:
    """Reconcile two statement files and print the proof ledger.

    Parameters
    ----------
    previous / current:
        CSV or XLSX statement files (debit side and credit side).
    sheet:
        Restrict the run to one sheet name present in both files.
    system_balance:
        Balance to lock before running (required for ``--mode single``).
    export:
        Write the result set to this ``.csv``/``.xlsx`` path.
    persist:
        Save result rows (and submitted proofs) to the database; on failure the
        rows land in the local fallback file instead.
    snapshot:
        Write a session snapshot to this path.
    submit:
        Submit every pending proof after the run.
    """

    from .cache import write_snapshot
    from .export import export_results
    from .session import RUN_MODES
    from .workflows.reconcile_flow import reconcile_statement_files

    if mode not in RUN_MODES or mode == "all":
        print(f"Error: unsupported mode {mode!r}; use multi or single", file=sys.stderr)
        return 1
    for label, path in (("previous", previous), ("current", current)):
        if not Path(path).is_file():
            print(f"Error: {label} file not found: {path}", file=sys.stderr)
            return 1

    persister = None
    proof_persister = None
    if persist:
        from .persistence import proofs_persister, results_persister

        persister = results_persister(database_url=database_url)
        proof_persister = proofs_persister(database_url=database_url)

    try:
        outcome = reconcile_statement_files(
            previous,
            current,
            sheet=sheet,
            system_balance=system_balance,
            mode=mode,  # type: ignore[arg-type]
            user_id=user_id,
            persist=persister,
            on_progress=print,
        )
    except Exception as e:
        print(f"Error: failed to read statements: {e}", file=sys.stderr)
        return 1
    if not outcome.ok or outcome.value is None:
        print(f"Error: {outcome.error}", file=sys.stderr)
        return 1
    session = outcome.value.session

    if submit:
        submitted = session.submit(persist=proof_persister)
        if not submitted.ok:
            print(f"Error: submit failed: {submitted.error}", file=sys.stderr)
            return 1

    _print_ledger(session)

    if export:
        exported = export_results(
            session.result_rows, export, header=session.header, ledger=session.ledger
        )
        if not exported.ok:
            print(f"Error: export failed: {exported.error}", file=sys.stderr)
            return 1
        print(f"Exported {len(session.result_rows)} rows to {exported.value}")

    if snapshot:
        try:
            write_snapshot(session.to_snapshot(), snapshot)
        except OSError as e:
            print(f"Error: failed to write snapshot: {e}", file=sys.stderr)
            return 1

    return 0


def cmd_knock_off(csv_path: str) -> int:
    """Print the auto knock-off pairs found within one statement file.

    One line per pair: ``<date>\\t<narration>\\t<amount>`` for each leg, then a
    count line.
    """

    from .ingest.utils import load_statement
    from .knockoff import auto_knock_off
    from .normalizers import normalize_rows

    p = Path(csv_path)
    try:
        parsed = load_statement(p)
    except FileNotFoundError:
        print(f"Error: File not found: {csv_path}", file=sys.stderr)
        return 1
    except Exception as e:
        print(f"Error: Unexpected failure reading '{csv_path}': {e}", file=sys.stderr)
        return 1

    rows = normalize_rows(parsed.records, sheet=p.stem)
    result = auto_knock_off(rows)
    knocked = result.knocked_off
    for i in range(0, len(knocked), 2):
        for r in knocked[i : i + 2]:
            print(f"{r.date}\t{r.narration}\t{r.signed_amount}")
        print()
    print(f"Knocked off {len(knocked) // 2} pair(s); {len(result.remaining)} row(s) remain.")
    return 0


def cmd_show_snapshot(snapshot: str | None = None) -> int:
    """Print the ledger state stored in a session snapshot."""

    from .cache import default_snapshot_path, read_snapshot

    path = Path(snapshot) if snapshot else default_snapshot_path()
    snap = read_snapshot(path)
    if snap is None:
        print(f"Error: no readable snapshot at {path}", file=sys.stderr)
        return 1
    session = ReconciliationSession.from_snapshot(snap)
    h = session.header
    print(
        f"branch={h.branch_code or '-'}\taccount={h.account_no or '-'}"
        f"\tname={h.account_name or '-'}\tbalance_locked={session.ledger.locked}"
    )
    _print_ledger(session)
    return 0


# ---- Typer-based console interface -------------------------------------------


app = typer.Typer(
    no_args_is_help=True,
    add_completion=False,
    help=(
        "Reconcile previous/current bank statement batches and prove the "
        "pending total against a locked system balance."
    ),
)


# Module-level option objects to satisfy ruff B008 (no calls in parameter
# defaults). Typer inspects these when used as default values below.
PREVIOUS_OPTION: OptionInfo = typer.Option(
    ..., "--previous", help="Previous statement (CSV or XLSX): the debit side."
)
CURRENT_OPTION: OptionInfo = typer.Option(
    ..., "--current", help="Current statement (CSV or XLSX): the credit side."
)
CSV_PATH_OPTION: OptionInfo = typer.Option(
    ..., "--csv-path", help="Statement file to scan for same-file reversals."
)


@app.command("reconcile")
def reconcile_cmd(
    previous: Annotated[Path, PREVIOUS_OPTION],
    current: Annotated[Path, CURRENT_OPTION],
    *,
    sheet: str | None = typer.Option(None, help="Only reconcile this sheet name."),
    system_balance: str | None = typer.Option(
        None, help="System balance to lock before running."
    ),
    mode: str = typer.Option("multi", help="Run mode: multi or single."),
    export: Path | None = typer.Option(None, help="Export results to .csv or .xlsx."),
    persist: bool = typer.Option(False, help="Persist results to the database."),
    database_url: str | None = typer.Option(
        None, help="Override DATABASE_URL (falls back to env var)."
    ),
    user_id: str | None = typer.Option(None, help="Operator id recorded on saved rows."),
    snapshot: Path | None = typer.Option(None, help="Write a session snapshot here."),
    submit: bool = typer.Option(False, help="Submit all pending proofs after the run."),
) -> None:
    """Reconcile two statements and print the per-sheet proof ledger."""

    rc = cmd_reconcile(
        str(previous),
        str(current),
        sheet=sheet,
        system_balance=system_balance,
        mode=mode,
        export=str(export) if export else None,
        persist=persist,
        database_url=database_url,
        user_id=user_id,
        snapshot=str(snapshot) if snapshot else None,
        submit=submit,
    )
    if rc:
        raise typer.Exit(rc)


@app.command("knock-off")
def knock_off_cmd(csv_path: Annotated[Path, CSV_PATH_OPTION]) -> None:
    """List reversal pairs that auto knock-off removes from a statement."""

    rc = cmd_knock_off(str(csv_path))
    if rc:
        raise typer.Exit(rc)


@app.command("show-snapshot")
def show_snapshot_cmd(
    snapshot: Path | None = typer.Option(
        None, help="Snapshot path (defaults to RECON_CACHE_DIR/session.json)."
    ),
) -> None:
    """Print the proof ledger stored in a saved session."""

    rc = cmd_show_snapshot(str(snapshot) if snapshot else None)
    if rc:
        raise typer.Exit(rc)


@app.callback(invoke_without_command=True)
def _root(ctx: typer.Context) -> None:
    """Root command.

    Loads ``.env`` from the current working directory (without overriding any
    already-set environment variables) and configures logging.
    """

    load_dotenv(dotenv_path=Path.cwd() / ".env", override=False)

    # Central logging setup so child loggers inherit configuration
    configure_logging()

    if ctx.invoked_subcommand is None:
        typer.echo("No subcommand provided. Use --help to see available commands.")
        raise typer.Exit(1)


if __name__ == "__main__":  # pragma: no cover
    app()
