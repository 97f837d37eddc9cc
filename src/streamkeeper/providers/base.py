from __future__ import annotations

from abc import ABC, abstractmethod
from typing import List

from streamkeeper.models import PlaylistItem


class PlaylistRemote(ABC):
    """
    The three playlist capabilities the reconciliation engine needs.

    Implementations raise RemoteError subclasses (see providers.errors) so the
    executor can pick a retry policy without knowing the transport.
    """

    name: str

    @abstractmethod
    def list_items(self, playlist_id: str) -> List[PlaylistItem]:
        """All items in remote order, pagination flattened."""
        raise NotImplementedError

    @abstractmethod
    def move_item(self, playlist_id: str, item_id: str, position: int) -> None:
        raise NotImplementedError

    @abstractmethod
    def delete_item(self, item_id: str) -> None:
        raise NotImplementedError
