from __future__ import annotations

import argparse

from rich.table import Table

from streamkeeper.branding import STATE_SYMBOLS, STREAMKEEPER_BANNER, SYMBOLS
from streamkeeper.cli.common import (
    CONSOLE,
    add_output_flags,
    add_playlist_flag,
    build_youtube,
    require_playlist_id,
)
from streamkeeper.env import get_env
from streamkeeper.logger import get_logger
from streamkeeper.models import MoveTo
from streamkeeper.runner import RunOutcome, RunResult, run_once


# ------------------------------------------------------------
# Parser
# ------------------------------------------------------------


def _keep_count(value: str) -> int:
    n = int(value)
    if n < 0:
        raise argparse.ArgumentTypeError("--keep must be >= 0")
    return n


def _add_run_args(parser: argparse.ArgumentParser) -> None:
    add_playlist_flag(parser)
    parser.add_argument(
        "--keep",
        type=_keep_count,
        metavar="N",
        help="Completed streams to keep, newest first (default: all)",
    )
    add_output_flags(parser)


def build_sync_parser(subparsers: argparse._SubParsersAction) -> None:
    sync = subparsers.add_parser(
        "sync", help="Reorder the playlist and prune dead or surplus streams"
    )
    _add_run_args(sync)
    sync.add_argument(
        "--dry-run", action="store_true", help="Compute the plan without sending it"
    )


def build_plan_parser(subparsers: argparse._SubParsersAction) -> None:
    plan = subparsers.add_parser(
        "plan", help="Show the operations sync would send, without sending them"
    )
    _add_run_args(plan)


# ------------------------------------------------------------
# Output
# ------------------------------------------------------------


def _print_plan(outcome: RunOutcome) -> None:
    if outcome.plan is None:
        return
    if not outcome.plan:
        CONSOLE.print(f"[green]{SYMBOLS.OK}[/green] Playlist already in canonical order")
        return

    titles = {it.item_id: it.title for it in outcome.items}
    table = Table(title=f"{len(outcome.plan)} operations", show_lines=False)
    table.add_column("#", justify="right")
    table.add_column("Action")
    table.add_column("Item")
    table.add_column("Title")
    table.add_column("To", justify="right")
    if outcome.report is not None:
        table.add_column("Status")

    for i, op in enumerate(outcome.plan, start=1):
        symbol = SYMBOLS.MOVE if isinstance(op, MoveTo) else SYMBOLS.DELETE
        row = [
            str(i),
            f"{symbol} {op.kind}",
            op.item_id,
            titles.get(op.item_id, ""),
            str(op.position) if isinstance(op, MoveTo) else "",
        ]
        if outcome.report is not None:
            row.append(outcome.report.status_of(op))
        table.add_row(*row)

    CONSOLE.print(table)


def _log_summary(outcome: RunOutcome) -> None:
    log = get_logger("streamkeeper")

    log.info("")
    log.info("Run summary:")
    for stage in outcome.stages:
        line = f"  {STATE_SYMBOLS[stage.state.value]} {stage.name}: {stage.state.value}"
        log.info(f"{line} ({stage.reason})" if stage.reason else line)
    if outcome.report_path is not None:
        log.info(f"  Report: {outcome.report_path}")
    log.info("")

    if outcome.overall == RunResult.OK:
        log.info("Done: OK (playlist in canonical order)")
    elif outcome.overall == RunResult.QUOTA_EXHAUSTED:
        log.warning("Done: quota exhausted (rerun tomorrow to finish)")
    elif outcome.overall == RunResult.AUTH_INVALID:
        log.error("Done: OAuth invalid (run `streamkeeper auth --login`)")
    elif outcome.overall == RunResult.INTERRUPTED:
        log.warning("Done: interrupted (next run picks up from the remote order)")
    else:
        log.error("Done: failed")


# ------------------------------------------------------------
# Handlers
# ------------------------------------------------------------


def _run(dry_run: bool) -> RunOutcome | None:
    env = get_env()
    log = get_logger("streamkeeper")

    playlist_id = require_playlist_id()
    if playlist_id is None:
        return None

    if not env.quiet:
        log.info(STREAMKEEPER_BANNER)
    log.info(f"Playlist: {playlist_id}")

    _, remote, executor = build_youtube()
    return run_once(
        remote,
        playlist_id,
        keep_count=env.keep_count,
        dry_run=dry_run,
        executor=executor,
    )


def handle_sync(args: argparse.Namespace) -> int:
    outcome = _run(dry_run=get_env().dry_run)
    if outcome is None:
        return 2

    _log_summary(outcome)
    if outcome.report is not None and not get_env().quiet:
        _print_plan(outcome)
    return outcome.exit_code


def handle_plan(args: argparse.Namespace) -> int:
    outcome = _run(dry_run=True)
    if outcome is None:
        return 2

    _print_plan(outcome)
    return outcome.exit_code
