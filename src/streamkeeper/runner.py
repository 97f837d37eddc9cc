"""
runner.py

One reconciliation run for one playlist:

    Fetch -> Classify -> Target -> Plan -> Apply -> Verify

Everything up to Plan is read-only. A stage that ends in anything but OK
blocks the stages after it; they are reported as SKIPPED with the reason.
"""

from __future__ import annotations

import os
from collections import Counter
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from pathlib import Path
from typing import Any, Callable, Dict, Iterable, List, Optional, Tuple

from streamkeeper import config
from streamkeeper.auth.errors import AuthError, AuthInvalid
from streamkeeper.branding import stage_rule
from streamkeeper.env import get_env
from streamkeeper.logger import get_logger
from streamkeeper.models import Category, PlaylistItem, Plan, TargetSequence
from streamkeeper.providers.base import PlaylistRemote
from streamkeeper.providers.errors import (
    QuotaExhaustedError,
    RemoteError,
    RemoteUnauthorized,
)
from streamkeeper.stages.apply import ExecutionReport, Executor
from streamkeeper.stages.classify import classify_all
from streamkeeper.stages.plan import PlanInfeasible, plan as make_plan
from streamkeeper.stages.target import build_from_categories
from streamkeeper.utils import reconcile_report_path, validate_playlist_id, write_json

log = get_logger("streamkeeper.runner")


class RunResult(str, Enum):
    OK = "ok"
    QUOTA_EXHAUSTED = "quota_exhausted"
    AUTH_INVALID = "auth_invalid"
    FAILED = "failed"
    SKIPPED = "skipped"
    INTERRUPTED = "interrupted"


EXIT_CODES: Dict[RunResult, int] = {
    RunResult.OK: 0,
    RunResult.SKIPPED: 0,
    RunResult.QUOTA_EXHAUSTED: 10,
    RunResult.AUTH_INVALID: 12,
    RunResult.FAILED: 20,
    RunResult.INTERRUPTED: 130,
}

STAGES = ("Fetch", "Classify", "Target", "Plan", "Apply", "Verify")


@dataclass(frozen=True)
class StageResult:
    name: str
    state: RunResult
    reason: Optional[str] = None


@dataclass(frozen=True)
class RunOutcome:
    overall: RunResult
    stages: List[StageResult]
    items: List[PlaylistItem] = field(default_factory=list)
    target: Optional[TargetSequence] = None
    plan: Optional[Plan] = None
    report: Optional[ExecutionReport] = None
    report_path: Optional[Path] = None

    @property
    def exit_code(self) -> int:
        return EXIT_CODES[self.overall]


# ------------------------------------------------------------
# Helpers
# ------------------------------------------------------------


def state_for_error(exc: BaseException) -> RunResult:
    if isinstance(exc, QuotaExhaustedError):
        return RunResult.QUOTA_EXHAUSTED
    if isinstance(exc, (AuthInvalid, RemoteUnauthorized)):
        return RunResult.AUTH_INVALID
    return RunResult.FAILED


def _category_counts(classified: Iterable[Tuple[PlaylistItem, Category]]) -> Dict[str, int]:
    counts = Counter(category.kind.value for _, category in classified)
    return dict(sorted(counts.items()))


def _overall(stages: List[StageResult]) -> RunResult:
    for stage in stages:
        if stage.state not in (RunResult.OK, RunResult.SKIPPED):
            return stage.state
    return RunResult.OK


def _report_payload(
    *,
    playlist_id: str,
    keep_count: Optional[int],
    dry_run: bool,
    overall: RunResult,
    stages: List[StageResult],
    classified: List[Tuple[PlaylistItem, Category]],
    target: Optional[TargetSequence],
    plan: Optional[Plan],
    report: Optional[ExecutionReport],
) -> Dict[str, Any]:
    counts = _category_counts(classified)

    operations: List[Dict[str, Any]] = []
    if plan is not None:
        failures = {id(f.operation): f.reason for f in (report.failed if report else [])}
        for op in plan:
            entry = op.as_dict()
            entry["status"] = report.status_of(op) if report else "pending"
            if id(op) in failures:
                entry["reason"] = failures[id(op)]
            operations.append(entry)

    return {
        "version": config.REPORT_VERSION,
        "playlist_id": playlist_id,
        "run_id": os.environ.get("STREAMKEEPER_RUN_ID"),
        "generated_at": datetime.now(timezone.utc).isoformat(),
        "dry_run": dry_run,
        "keep_count": keep_count,
        "overall": overall.value,
        "stages": [
            {"name": s.name, "state": s.state.value, "reason": s.reason} for s in stages
        ],
        "counts": counts,
        "target": None
        if target is None
        else {
            "sequence": list(target.sequence),
            "deletions": list(target.deletions),
            "untouched": list(target.untouched),
            "pruned": list(target.pruned),
        },
        "expected_order": list(plan.expected_order) if plan is not None else None,
        "operations": operations,
        "halted_reason": report.halted_reason if report else None,
        "residual": report.residual.as_dict() if report and report.residual is not None else None,
        "verify_error": report.verify_error if report else None,
    }


def _log_header(title: str, quiet: bool) -> None:
    if not quiet:
        log.info(stage_rule(title))


# ------------------------------------------------------------
# Core execution
# ------------------------------------------------------------


def run_once(
    remote: PlaylistRemote,
    playlist_id: str,
    *,
    keep_count: Optional[int] = None,
    dry_run: bool = False,
    executor: Optional[Executor] = None,
    on_progress: Optional[Callable[[StageResult], None]] = None,
    write_report: bool = True,
) -> RunOutcome:
    """
    Reconcile one playlist against its canonical stream order.

    Raises ValueError for a malformed playlist id or keep_count; every
    remote, auth or planning failure is folded into the outcome instead.
    """
    validate_playlist_id(playlist_id)
    if keep_count is not None and keep_count < 0:
        raise ValueError(f"keep_count must be >= 0, got {keep_count}")

    env = get_env()
    quiet = env.quiet

    if executor is None:
        executor = Executor(
            remote,
            max_retries=env.max_retries,
            backoff_base_sec=env.backoff_base_sec,
            mutation_sleep_sec=env.mutation_sleep_sec,
        )

    results: List[StageResult] = []
    items: List[PlaylistItem] = []
    classified: List[Tuple[PlaylistItem, Category]] = []
    target: Optional[TargetSequence] = None
    plan: Optional[Plan] = None
    report: Optional[ExecutionReport] = None

    def record(name: str, state: RunResult, reason: Optional[str] = None) -> None:
        result = StageResult(name=name, state=state, reason=reason)
        results.append(result)
        if on_progress is not None:
            on_progress(result)

    def block_rest(reason: str) -> None:
        for name in STAGES[len(results):]:
            record(name, RunResult.SKIPPED, reason)

    def stages() -> None:
        nonlocal items, classified, target, plan, report

        # ---- Fetch ----
        _log_header("Fetch", quiet)
        try:
            items = sorted(remote.list_items(playlist_id), key=lambda it: it.position)
        except (RemoteError, AuthError) as e:
            state = state_for_error(e)
            log.error("[fetch] Could not list playlist %s: %s", playlist_id, e)
            record("Fetch", state, str(e))
            block_rest(f"blocked_by_{state.value}")
            return
        log.info("[fetch] %d items", len(items))
        record("Fetch", RunResult.OK)

        # ---- Classify ----
        classified = classify_all(items)
        counts = _category_counts(classified)
        log.info(
            "[classify] %s",
            ", ".join(f"{k}={v}" for k, v in counts.items()) or "empty playlist",
        )
        record("Classify", RunResult.OK)

        # ---- Target ----
        goal = build_from_categories(classified, keep_count)
        target = goal
        log.info(
            "[target] %d ordered, %d to delete (%d pruned), %d left in place",
            len(goal.sequence),
            len(goal.deletions),
            len(goal.pruned),
            len(goal.untouched),
        )
        record("Target", RunResult.OK)

        # ---- Plan ----
        _log_header("Plan", quiet)
        try:
            ops = make_plan([it.item_id for it in items], goal)
        except PlanInfeasible as e:
            log.error("[plan] Refusing to mutate: %s", e)
            record("Plan", RunResult.FAILED, str(e))
            block_rest("blocked_by_plan")
            return
        plan = ops
        log.info(
            "[plan] %d operations (%d deletes, %d moves)",
            len(ops),
            len(ops.deletes),
            len(ops.moves),
        )
        record("Plan", RunResult.OK)

        # ---- Apply / Verify ----
        if dry_run:
            log.info("[apply] Dry run; %d operations not sent", len(ops))
            block_rest("dry_run")
            return
        if not ops:
            log.info("[apply] Playlist already in canonical order")
            record("Apply", RunResult.OK, "no_changes")
            record("Verify", RunResult.OK, "already_converged")
            return

        _log_header("Apply", quiet)
        # Filled in place so an interrupt keeps the ops already applied
        progress = ExecutionReport()
        report = progress
        executor.execute(ops, playlist_id, report=progress)

        if progress.halted_reason == "quota_exhausted":
            record(
                "Apply",
                RunResult.QUOTA_EXHAUSTED,
                f"{len(progress.skipped)} operations not sent",
            )
            block_rest("blocked_by_quota_exhausted")
            return
        if progress.halted_reason == "auth_invalid":
            record("Apply", RunResult.AUTH_INVALID, "user action required")
            block_rest("blocked_by_auth_invalid")
            return

        if progress.failed:
            record("Apply", RunResult.FAILED, f"{len(progress.failed)} operations failed")
        else:
            record("Apply", RunResult.OK)

        if progress.verify_error is not None:
            record("Verify", RunResult.FAILED, progress.verify_error)
        elif progress.residual:
            record("Verify", RunResult.FAILED, "playlist diverges from target")
        else:
            record("Verify", RunResult.OK)

    log.info(
        "[run] playlist=%s keep=%s dry_run=%s remote=%s",
        playlist_id,
        "all" if keep_count is None else keep_count,
        dry_run,
        remote.name,
    )

    try:
        stages()
    except KeyboardInterrupt:
        log.warning("[run] Interrupted; the next run recomputes from the remote order")
        if len(results) < len(STAGES):
            record(STAGES[len(results)], RunResult.INTERRUPTED, "keyboard_interrupt")
            block_rest("blocked_by_interrupt")

    overall = _overall(results)

    report_path: Optional[Path] = None
    if write_report:
        payload = _report_payload(
            playlist_id=playlist_id,
            keep_count=keep_count,
            dry_run=dry_run,
            overall=overall,
            stages=results,
            classified=classified,
            target=target,
            plan=plan,
            report=report,
        )
        try:
            report_path = reconcile_report_path(playlist_id)
            write_json(report_path, payload)
            log.debug("[run] Report written to %s", report_path)
        except OSError as e:
            log.warning("[run] Could not write report: %s", e)
            report_path = None

    log.info("[run] Done: %s", overall.value)

    return RunOutcome(
        overall=overall,
        stages=results,
        items=items,
        target=target,
        plan=plan,
        report=report,
        report_path=report_path,
    )
