#!/usr/bin/env python3
"""
run.py – CLI entry-point for suite-sync.

Usage:
    suite-sync --script artifact/script/login.xlsx
    suite-sync --script artifact/script/login.xlsx --scenarios Login,Logout
    suite-sync --plan artifact/plan/regression.xlsx --subplan Smoke
"""

from __future__ import annotations

import argparse
import logging
import sys

from rich.console import Console
from rich.logging import RichHandler
from rich.panel import Panel
from rich.table import Table

from errors import SyncError
from models import SyncResult
from sync_orchestrator import SyncOrchestrator

console = Console()
err_console = Console(stderr=True)

# ── Logging ─────────────────────────────────────────────────────────────

def _configure_logging(verbose: bool = False) -> None:
    level = logging.DEBUG if verbose else logging.INFO
    logging.basicConfig(
        level=level,
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(rich_tracebacks=True, markup=False)],
    )


# ── Pretty output helpers ──────────────────────────────────────────────

def _show_cases(result: SyncResult) -> None:
    if result.suite is None or not result.suite.test_cases:
        return
    table = Table(title=f"Suite {result.suite.id}", show_lines=False)
    table.add_column("#", style="dim", width=4)
    table.add_column("Test case", style="bold")
    table.add_column("Case id", style="cyan")
    for i, (key, case_id) in enumerate(result.suite.test_cases.items(), 1):
        table.add_row(str(i), key, case_id)
    console.print(table)


def _show_results(result: SyncResult) -> None:
    if result.aborted:
        console.print(Panel("[yellow]Exited without updating the suite.[/]",
                            title="Sync Summary", border_style="yellow"))
        return

    _show_cases(result)
    suite = result.suite
    target = result.path + (f" › {result.subplan}" if result.subplan else "")
    console.print()
    console.print(
        Panel(
            f"[bold]File:[/]     {target}\n"
            f"[bold]Suite:[/]    {suite.id if suite else '—'}  "
            f"{'[green](new)[/]' if result.created else ''}\n"
            f"[bold]URL:[/]      {(suite.url if suite else '') or '—'}\n"
            f"[green bold]Added:[/]    {len(result.added)}\n"
            f"[yellow bold]Updated:[/]  {len(result.updated)}\n"
            f"[red bold]Deleted:[/]  {len(result.deleted)}\n"
            f"[blue bold]Written:[/]  {', '.join(result.files_written) or '—'}",
            title="Sync Summary",
            border_style="green",
        )
    )


# ── CLI ─────────────────────────────────────────────────────────────────

def _parse_args(argv: list[str] | None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        prog="suite-sync",
        description="Synchronize test scripts and plans with a test case management system.",
    )
    source = parser.add_mutually_exclusive_group(required=True)
    source.add_argument("--script", help="Script workbook to synchronize.")
    source.add_argument("--plan", help="Plan workbook to synchronize (requires --subplan).")
    parser.add_argument("--subplan", help="Subplan (worksheet) of the plan to synchronize.")
    parser.add_argument(
        "--scenarios",
        help="Comma-separated scenarios to update (scripts with an existing suite only).",
    )
    parser.add_argument(
        "--close-runs",
        action="store_true",
        default=None,
        help="Close active runs of the suite without prompting.",
    )
    parser.add_argument(
        "-v",
        "--verbose",
        action="store_true",
        default=False,
        help="Enable debug-level logging.",
    )
    args = parser.parse_args(argv)
    if args.plan and not args.subplan:
        parser.error("--plan requires --subplan")
    if args.script and args.subplan:
        parser.error("--subplan is only valid with --plan")
    return args


def main(argv: list[str] | None = None) -> None:
    args = _parse_args(argv)
    _configure_logging(args.verbose)

    console.print(
        Panel(
            "[bold white]suite-sync[/]  –  workbook ↔ TMS suite synchronization",
            border_style="bright_magenta",
        )
    )

    scenarios = [s.strip() for s in (args.scenarios or "").split(",") if s.strip()]
    try:
        orchestrator = SyncOrchestrator(close_runs=args.close_runs)
        result = orchestrator.import_to_tms(
            args.script or args.plan,
            subplan=args.subplan,
            scenarios=scenarios or None,
        )
    except KeyboardInterrupt:
        err_console.print("\n[red]Aborted by user.[/]")
        sys.exit(130)
    except SyncError as exc:
        err_console.print(f"\n[red bold]Error:[/] {exc}")
        logging.getLogger("suite-sync").debug("Traceback:", exc_info=True)
        sys.exit(1)
    except Exception as exc:
        err_console.print(f"\n[red bold]Unexpected error:[/] {exc}")
        logging.getLogger("suite-sync").debug("Traceback:", exc_info=True)
        sys.exit(1)

    _show_results(result)


if __name__ == "__main__":
    main()
