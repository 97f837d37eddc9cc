"""
apply.py

Applies a reconciliation plan to the remote playlist, one operation at a
time, then re-reads the playlist to confirm where it actually ended up.

Failure policy, per operation:
- transient   -> retry with exponential backoff (bounded)
- unauthorized -> refresh the credential, retry once
- permanent   -> record as failed, continue with the rest of the plan
- quota / revoked credential -> stop; everything already applied stays applied

Operation N is only sent after operation N-1 succeeded or failed for good.
Stopping between any two operations leaves a playlist the next run can
reconcile from scratch.
"""

from __future__ import annotations

import time
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Optional, Sequence

from streamkeeper import config
from streamkeeper.auth.errors import AuthError
from streamkeeper.logger import get_logger
from streamkeeper.models import Delete, MoveTo, Operation, Plan
from streamkeeper.providers.base import PlaylistRemote
from streamkeeper.providers.errors import (
    QuotaExhaustedError,
    RemoteError,
    RemotePermanent,
    RemoteTransient,
    RemoteUnauthorized,
)

logger = get_logger(__name__)


# ----------------------------
# Report types
# ----------------------------


@dataclass(frozen=True)
class FailedOperation:
    operation: Operation
    reason: str


@dataclass(frozen=True)
class Divergence:
    out_of_place: List[str] = field(default_factory=list)
    missing: List[str] = field(default_factory=list)
    unexpected: List[str] = field(default_factory=list)

    def __bool__(self) -> bool:
        return bool(self.out_of_place or self.missing or self.unexpected)

    def as_dict(self) -> Dict[str, List[str]]:
        return {
            "out_of_place": list(self.out_of_place),
            "missing": list(self.missing),
            "unexpected": list(self.unexpected),
        }


@dataclass
class ExecutionReport:
    applied: List[Operation] = field(default_factory=list)
    failed: List[FailedOperation] = field(default_factory=list)
    skipped: List[Operation] = field(default_factory=list)
    residual: Optional[Divergence] = None
    halted_reason: Optional[str] = None  # "quota_exhausted" | "auth_invalid" | "interrupted"
    verify_error: Optional[str] = None

    @property
    def verified(self) -> bool:
        return self.residual is not None

    @property
    def converged(self) -> bool:
        return (
            not self.failed
            and self.halted_reason is None
            and self.residual is not None
            and not self.residual
        )

    def status_of(self, op: Operation) -> str:
        if any(a is op for a in self.applied):
            return "done"
        for f in self.failed:
            if f.operation is op:
                return "failed"
        if any(s is op for s in self.skipped):
            return "skipped"
        return "pending"


def divergence(expected: Sequence[str], observed: Sequence[str]) -> Divergence:
    """Compare the order a plan promised with the order actually observed."""
    expected_set = set(expected)
    observed_set = set(observed)

    missing = [i for i in expected if i not in observed_set]
    unexpected = [i for i in observed if i not in expected_set]

    common_expected = [i for i in expected if i in observed_set]
    common_observed = [i for i in observed if i in expected_set]
    out_of_place = [
        want for want, got in zip(common_expected, common_observed) if want != got
    ]

    return Divergence(out_of_place=out_of_place, missing=missing, unexpected=unexpected)


def _describe(op: Operation) -> str:
    if isinstance(op, MoveTo):
        return f"move {op.item_id} -> {op.position}"
    return f"delete {op.item_id}"


# ----------------------------
# Executor
# ----------------------------


class Executor:
    def __init__(
        self,
        remote: PlaylistRemote,
        *,
        refresh_credentials: Optional[Callable[[], Any]] = None,
        max_retries: int = config.DEFAULT_MAX_RETRIES,
        backoff_base_sec: float = config.DEFAULT_BACKOFF_BASE_SEC,
        mutation_sleep_sec: float = config.DEFAULT_PLAYLIST_MUTATION_SLEEP_SEC,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        if max_retries < 1:
            raise ValueError("max_retries must be >= 1")

        self.remote = remote
        self._refresh = refresh_credentials
        self.max_retries = max_retries
        self.backoff_base_sec = backoff_base_sec
        self.mutation_sleep_sec = mutation_sleep_sec
        self._sleep = sleep

    # -----------------------------------------------------------------
    # Single operation
    # -----------------------------------------------------------------

    def _send(self, op: Operation, playlist_id: str) -> None:
        if isinstance(op, Delete):
            self.remote.delete_item(op.item_id)
        elif isinstance(op, MoveTo):
            self.remote.move_item(playlist_id, op.item_id, op.position)
        else:
            raise TypeError(f"Unknown operation: {op!r}")

    def _apply_with_retry(self, op: Operation, playlist_id: str) -> None:
        attempt = 0
        refreshed = False

        while True:
            try:
                self._send(op, playlist_id)
                return

            except RemoteTransient as e:
                attempt += 1
                if attempt >= self.max_retries:
                    raise

                delay = self.backoff_base_sec * (2 ** (attempt - 1))
                logger.warning(
                    "[apply] %s failed (attempt %d/%d), retrying in %.1fs: %s",
                    _describe(op),
                    attempt,
                    self.max_retries,
                    delay,
                    e,
                )
                self._sleep(delay)

            except RemoteUnauthorized:
                if refreshed or self._refresh is None:
                    raise

                refreshed = True
                logger.info("[apply] Authorization rejected; refreshing credential")
                # CredentialRevoked propagates: the run cannot continue without auth
                self._refresh()

    # -----------------------------------------------------------------
    # Whole plan
    # -----------------------------------------------------------------

    def execute(
        self,
        plan: Plan,
        playlist_id: str,
        report: Optional[ExecutionReport] = None,
    ) -> ExecutionReport:
        """
        Apply `plan` in order. Pass `report` to keep progress visible to the
        caller if KeyboardInterrupt escapes: by then it holds everything
        applied so far, and the rest (including the operation in flight,
        whose outcome is unknown) is marked skipped.
        """
        if report is None:
            report = ExecutionReport()
        ops = list(plan)

        logger.info("[apply] Applying %d operations", len(ops))

        for index, op in enumerate(ops):
            try:
                if index and self.mutation_sleep_sec > 0:
                    self._sleep(self.mutation_sleep_sec)
                self._apply_with_retry(op, playlist_id)

            except KeyboardInterrupt:
                logger.warning("[apply] Interrupted before %s completed", _describe(op))
                report.halted_reason = "interrupted"
                report.skipped.extend(ops[index:])
                raise

            except QuotaExhaustedError:
                logger.warning("[apply] Quota exhausted - stopping cleanly")
                report.halted_reason = "quota_exhausted"
                report.skipped.extend(ops[index:])
                break

            except AuthError as e:
                logger.error("[apply] Credential revoked - user action required: %s", e)
                report.halted_reason = "auth_invalid"
                report.skipped.extend(ops[index:])
                break

            except RemoteTransient as e:
                logger.warning("[apply] Giving up on %s: %s", _describe(op), e)
                report.failed.append(FailedOperation(op, f"transient:{e}"))
                continue

            except RemoteUnauthorized as e:
                logger.warning("[apply] Still unauthorized for %s: %s", _describe(op), e)
                report.failed.append(FailedOperation(op, f"unauthorized:{e}"))
                continue

            except RemotePermanent as e:
                logger.warning("[apply] Failed to %s: %s", _describe(op), e)
                report.failed.append(FailedOperation(op, f"permanent:{e}"))
                continue

            report.applied.append(op)
            logger.debug("[apply] %s", _describe(op))

        logger.info(
            "[apply] Completed - applied=%d, failed=%d, skipped=%d",
            len(report.applied),
            len(report.failed),
            len(report.skipped),
        )

        if report.halted_reason is None:
            self._verify(plan, playlist_id, report)

        return report

    def _verify(self, plan: Plan, playlist_id: str, report: ExecutionReport) -> None:
        try:
            observed = [it.item_id for it in self.remote.list_items(playlist_id)]
        except (RemoteError, AuthError) as e:
            logger.warning("[verify] Could not re-fetch playlist: %s", e)
            report.verify_error = str(e)
            return

        report.residual = divergence(plan.expected_order, observed)

        if report.residual:
            logger.warning(
                "[verify] Playlist diverges from target: out_of_place=%d missing=%d unexpected=%d",
                len(report.residual.out_of_place),
                len(report.residual.missing),
                len(report.residual.unexpected),
            )
        else:
            logger.info("[verify] Playlist matches target order")
