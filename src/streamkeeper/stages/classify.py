from __future__ import annotations

from typing import Iterable, List, Tuple

from streamkeeper.logger import get_logger
from streamkeeper.models import (
    Availability,
    BroadcastStatus,
    Category,
    CategoryKind,
    PlaylistItem,
)

logger = get_logger(__name__)


class ClassificationAmbiguous(ValueError):
    """Item metadata is missing a field its category needs."""


_INVALID = Category(CategoryKind.INVALID)
_NON_STREAM = Category(CategoryKind.NON_STREAM)


def _strict_classify(item: PlaylistItem) -> Category:
    if not isinstance(item.availability, Availability):
        raise ClassificationAmbiguous(f"unrecognised availability {item.availability!r}")
    if not isinstance(item.broadcast, BroadcastStatus):
        raise ClassificationAmbiguous(f"unrecognised broadcast status {item.broadcast!r}")

    if item.availability is not Availability.AVAILABLE:
        return _INVALID

    if item.broadcast is BroadcastStatus.LIVE:
        return Category(CategoryKind.LIVE, item.start_time)

    if item.broadcast is BroadcastStatus.UPCOMING:
        return Category(CategoryKind.UPCOMING, item.start_time)

    if item.broadcast is BroadcastStatus.COMPLETED:
        if item.start_time is None:
            raise ClassificationAmbiguous("completed stream without a start time")
        return Category(CategoryKind.COMPLETED, item.start_time)

    return _NON_STREAM


def classify(item: PlaylistItem) -> Category:
    """
    Map one playlist item to its category.

    Total over any PlaylistItem: ambiguous metadata degrades to INVALID
    instead of raising.
    """
    try:
        return _strict_classify(item)
    except ClassificationAmbiguous as e:
        logger.debug("[classify] %s (%s) -> invalid: %s", item.item_id, item.title, e)
        return _INVALID


def classify_all(items: Iterable[PlaylistItem]) -> List[Tuple[PlaylistItem, Category]]:
    return [(item, classify(item)) for item in items]
