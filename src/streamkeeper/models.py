"""
models.py

Snapshot types shared by the reconciliation stages.

Everything here is an immutable value for the duration of one run:
items are fetched once, classified, planned against, and discarded.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Dict, Iterator, List, Optional, Tuple, Union


# ----------------------------
# Enums
# ----------------------------


class Availability(str, Enum):
    AVAILABLE = "available"
    PRIVATE = "private"
    DELETED = "deleted"
    UNKNOWN = "unknown"


class BroadcastStatus(str, Enum):
    LIVE = "live"
    UPCOMING = "upcoming"
    COMPLETED = "completed"
    NONE = "none"

    @classmethod
    def from_string(cls, value: str) -> BroadcastStatus:
        """Accepts the enum value or YouTube's own spelling ("completed-stream" etc)."""
        normalized = (value or "").strip().lower().replace("_", "-")
        aliases = {
            "completed-stream": cls.COMPLETED,
            "not-a-stream": cls.NONE,
        }
        if normalized in aliases:
            return aliases[normalized]
        return cls(normalized)


class CategoryKind(str, Enum):
    LIVE = "live"
    UPCOMING = "upcoming"
    COMPLETED = "completed"
    INVALID = "invalid"
    NON_STREAM = "non_stream"


# ----------------------------
# Items / categories
# ----------------------------


@dataclass(frozen=True)
class PlaylistItem:
    item_id: str
    position: int
    video_id: str
    availability: Availability
    broadcast: BroadcastStatus
    start_time: Optional[datetime] = None
    title: str = ""


@dataclass(frozen=True)
class Category:
    kind: CategoryKind
    timestamp: Optional[datetime] = None

    @property
    def is_stream(self) -> bool:
        return self.kind in (
            CategoryKind.LIVE,
            CategoryKind.UPCOMING,
            CategoryKind.COMPLETED,
        )


@dataclass(frozen=True)
class TargetSequence:
    """
    sequence:  desired order of the items this engine manages
    deletions: items to remove, in current remote order
    untouched: NonStream items, left wherever they sit
    """

    sequence: Tuple[str, ...]
    deletions: Tuple[str, ...]
    untouched: Tuple[str, ...] = ()
    pruned: Tuple[str, ...] = ()  # completed streams beyond keep_count (subset of deletions)


# ----------------------------
# Operations
# ----------------------------


@dataclass(frozen=True)
class MoveTo:
    item_id: str
    position: int
    kind: str = field(default="move", init=False)

    def as_dict(self) -> Dict[str, Any]:
        return {"action": self.kind, "item_id": self.item_id, "position": self.position}


@dataclass(frozen=True)
class Delete:
    item_id: str
    kind: str = field(default="delete", init=False)

    def as_dict(self) -> Dict[str, Any]:
        return {"action": self.kind, "item_id": self.item_id}


Operation = Union[MoveTo, Delete]


@dataclass(frozen=True)
class Plan:
    operations: Tuple[Operation, ...]
    expected_order: Tuple[str, ...]

    def __iter__(self) -> Iterator[Operation]:
        return iter(self.operations)

    def __len__(self) -> int:
        return len(self.operations)

    def __bool__(self) -> bool:
        return bool(self.operations)

    @property
    def deletes(self) -> List[Delete]:
        return [op for op in self.operations if isinstance(op, Delete)]

    @property
    def moves(self) -> List[MoveTo]:
        return [op for op in self.operations if isinstance(op, MoveTo)]
