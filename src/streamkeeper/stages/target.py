"""
target.py

Builds the canonical order for a playlist of streams:

    live (soonest start first)
    upcoming (soonest start first)
    completed (newest first, capped at keep_count)

Invalid items are always discarded. Items that were never streams are
left alone and do not appear in either list.
"""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Dict, Iterable, List, Optional, Tuple

from streamkeeper.logger import get_logger
from streamkeeper.models import Category, CategoryKind, PlaylistItem, TargetSequence
from streamkeeper.stages.classify import classify_all

logger = get_logger(__name__)

# Sorts after every real timestamp
_FAR_FUTURE = datetime.max.replace(tzinfo=timezone.utc)


def _soonest_first(pair: Tuple[PlaylistItem, Category]) -> Tuple[int, datetime, str]:
    item, category = pair
    ts = category.timestamp
    if ts is None:
        return (1, _FAR_FUTURE, item.item_id)
    return (0, ts, item.item_id)


def _newest_first(pair: Tuple[PlaylistItem, Category]) -> Tuple[float, str]:
    item, category = pair
    # Completed streams always carry a timestamp (see classify)
    return (-category.timestamp.timestamp(), item.item_id)


def build(
    items: Iterable[PlaylistItem],
    keep_count: Optional[int] = None,
) -> TargetSequence:
    """
    Compute the desired sequence and the deletion set for a playlist snapshot.

    keep_count=None keeps every completed stream; 0 deletes them all.
    """
    return build_from_categories(classify_all(items), keep_count)


def build_from_categories(
    classified: Iterable[Tuple[PlaylistItem, Category]],
    keep_count: Optional[int] = None,
) -> TargetSequence:
    """Same as build() for items that were already classified."""
    if keep_count is not None and keep_count < 0:
        raise ValueError(f"keep_count must be >= 0, got {keep_count}")

    pairs = sorted(classified, key=lambda pair: pair[0].position)
    items = [item for item, _ in pairs]

    buckets: Dict[CategoryKind, List[Tuple[PlaylistItem, Category]]] = {
        kind: [] for kind in CategoryKind
    }
    for item, category in pairs:
        buckets[category.kind].append((item, category))

    live = sorted(buckets[CategoryKind.LIVE], key=_soonest_first)
    upcoming = sorted(buckets[CategoryKind.UPCOMING], key=_soonest_first)
    completed = sorted(buckets[CategoryKind.COMPLETED], key=_newest_first)

    if keep_count is None:
        kept, pruned = completed, []
    else:
        kept, pruned = completed[:keep_count], completed[keep_count:]

    sequence = tuple(it.item_id for it, _ in live + upcoming + kept)

    doomed = {it.item_id for it, _ in buckets[CategoryKind.INVALID]}
    doomed.update(it.item_id for it, _ in pruned)
    # Current remote order keeps the deletion set deterministic
    deletions = tuple(it.item_id for it in items if it.item_id in doomed)

    untouched = tuple(it.item_id for it, _ in buckets[CategoryKind.NON_STREAM])

    logger.debug(
        "[target] live=%d upcoming=%d kept=%d pruned=%d invalid=%d untouched=%d",
        len(live),
        len(upcoming),
        len(kept),
        len(pruned),
        len(buckets[CategoryKind.INVALID]),
        len(untouched),
    )

    return TargetSequence(
        sequence=sequence,
        deletions=deletions,
        untouched=untouched,
        pruned=tuple(it.item_id for it, _ in pruned),
    )
