"""
plan.py

Diffs the observed remote order against a TargetSequence and emits the
operations that converge one into the other.

The remote API only offers two single-item mutations:

- delete(item_id)
- move(item_id, absolute_position)

and every call shifts the index of other items. Plans are therefore
computed against a simulated copy of the playlist that is updated after
every emitted operation, so each position is valid for the projected
remote state at the moment the operation runs, not for the original
snapshot.

Minimality: items that already sit in the right relative order form a
longest common subsequence of the current and final orders and are never
moved. Items that were never streams are pinned: they are forced into the
subsequence so the plan never moves them.

This module:
- DOES NOT talk to YouTube
- DOES NOT mutate anything but its own simulation
"""

from __future__ import annotations

from bisect import bisect_left
from typing import Dict, List, Sequence, Set

from streamkeeper.logger import get_logger
from streamkeeper.models import Delete, MoveTo, Operation, Plan, TargetSequence

logger = get_logger(__name__)


class PlanInfeasible(RuntimeError):
    """The target cannot be reached from the observed order. Nothing was mutated."""


# ----------------------------
# Helpers
# ----------------------------


def _check_unique(ids: Sequence[str], what: str) -> None:
    seen: Set[str] = set()
    for item_id in ids:
        if item_id in seen:
            raise PlanInfeasible(f"{what} lists {item_id} more than once")
        seen.add(item_id)


def _expected_order(remaining: List[str], pinned: Set[str], sequence: Sequence[str]) -> List[str]:
    """
    Final layout: pinned items keep their slot index among the surviving
    items, the target sequence fills every other slot in order.
    """
    fill = iter(sequence)
    expected: List[str] = []
    for item_id in remaining:
        if item_id in pinned:
            expected.append(item_id)
        else:
            expected.append(next(fill))
    return expected


def _gaps(order: Sequence[str], pinned: Set[str]) -> Dict[str, int]:
    """Number of pinned items in front of each non-pinned item."""
    out: Dict[str, int] = {}
    seen = 0
    for item_id in order:
        if item_id in pinned:
            seen += 1
        else:
            out[item_id] = seen
    return out


def _longest_increasing(values: List[int]) -> Set[int]:
    """
    Indices (into values) of one longest strictly increasing subsequence.
    Patience sorting, O(n log n); the choice is deterministic.
    """
    tails: List[int] = []  # tails[k] = index of smallest tail of an increasing run of length k+1
    tail_values: List[int] = []
    parent: List[int] = [-1] * len(values)

    for i, v in enumerate(values):
        k = bisect_left(tail_values, v)
        if k > 0:
            parent[i] = tails[k - 1]
        if k == len(tails):
            tails.append(i)
            tail_values.append(v)
        else:
            tails[k] = i
            tail_values[k] = v

    result: Set[int] = set()
    idx = tails[-1] if tails else -1
    while idx != -1:
        result.add(idx)
        idx = parent[idx]
    return result


def stable_items(remaining: List[str], expected: List[str], pinned: Set[str]) -> Set[str]:
    """
    Longest common subsequence of `remaining` and `expected` that contains
    every pinned item.

    Ids are unique, so the LCS is the longest increasing run of expected
    positions. A target item can only join a run that contains all pinned
    items if it sits between the same pair of pinned items in both orders.
    """
    expected_pos = {item_id: i for i, item_id in enumerate(expected)}
    gaps_now = _gaps(remaining, pinned)
    gaps_final = _gaps(expected, pinned)

    candidates = [
        item_id
        for item_id in remaining
        if item_id not in pinned and gaps_now[item_id] == gaps_final[item_id]
    ]
    chosen = _longest_increasing([expected_pos[item_id] for item_id in candidates])

    stable = set(pinned)
    stable.update(candidates[i] for i in chosen)
    return stable


# ----------------------------
# Planner
# ----------------------------


def plan(current_order: Sequence[str], target: TargetSequence) -> Plan:
    """
    Compute the operations that turn `current_order` into the target layout.

    Operations must be applied strictly in order; each position is computed
    against the state left behind by every earlier operation.
    """
    current = list(current_order)
    _check_unique(current, "current order")
    _check_unique(target.sequence, "target sequence")
    _check_unique(target.deletions, "deletion set")

    overlap = set(target.sequence) & set(target.deletions)
    if overlap:
        raise PlanInfeasible(f"items both kept and deleted: {sorted(overlap)}")

    present = set(current)
    missing = [item_id for item_id in target.sequence if item_id not in present]
    if missing:
        raise PlanInfeasible(f"target references items not in the playlist: {missing}")

    operations: List[Operation] = []
    sim = list(current)

    # 1) Deletes, in current order. Items already gone need no call.
    doomed = set(target.deletions)
    for item_id in target.deletions:
        if item_id not in present:
            logger.debug("[plan] %s already absent; no delete needed", item_id)
            continue
        sim.remove(item_id)
        operations.append(Delete(item_id))

    # 2) Anything neither kept nor deleted stays where it is.
    wanted = set(target.sequence)
    pinned = {item_id for item_id in sim if item_id not in wanted and item_id not in doomed}

    if len(sim) != len(pinned) + len(target.sequence):
        raise PlanInfeasible(
            f"slot mismatch: {len(sim)} surviving items, "
            f"{len(pinned)} pinned + {len(target.sequence)} ordered"
        )

    expected = _expected_order(sim, pinned, target.sequence)

    # 3) Items already in the right relative order never move.
    stable = stable_items(sim, expected, pinned)

    # 4) Place everything else right behind its final predecessor,
    #    earliest final position first.
    for final_index, item_id in enumerate(expected):
        if item_id in stable:
            continue

        old = sim.index(item_id)
        sim.pop(old)
        new = 0 if final_index == 0 else sim.index(expected[final_index - 1]) + 1
        sim.insert(new, item_id)

        if new == old:
            continue
        operations.append(MoveTo(item_id, new))

    if sim != expected:
        # Unreachable if the bookkeeping above is right; refuse to mutate.
        raise PlanInfeasible("simulated result does not match the expected order")

    n_moves = sum(1 for op in operations if isinstance(op, MoveTo))
    logger.debug(
        "[plan] %d operations (%d deletes, %d moves, %d stable, %d pinned)",
        len(operations),
        len(operations) - n_moves,
        n_moves,
        len(stable) - len(pinned),
        len(pinned),
    )

    return Plan(operations=tuple(operations), expected_order=tuple(expected))


def simulate(current_order: Sequence[str], operations: Sequence[Operation]) -> List[str]:
    """Apply operations to a copy of current_order with remote semantics."""
    sim = list(current_order)
    for op in operations:
        if isinstance(op, Delete):
            sim.remove(op.item_id)
        else:
            sim.remove(op.item_id)
            sim.insert(op.position, op.item_id)
    return sim
