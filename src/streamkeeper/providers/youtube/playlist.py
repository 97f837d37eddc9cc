"""
playlist.py

YouTube Data API implementation of PlaylistRemote.

Listing is two-phase:
1) playlistItems.list (paged) -> item ids, video ids, order
2) videos.list (batched by 50) -> availability + live broadcast metadata

Moves use playlistItems.update with snippet.position; deletes use
playlistItems.delete. Neither is retried here.

The client factory is resolved before each request is built, so credential
errors (AuthError) surface as themselves instead of as remote failures.
A read rejected with 401 refreshes the credential once and is resent.
"""

from __future__ import annotations

from datetime import datetime
from typing import Any, Callable, Dict, List, Optional, Tuple

from streamkeeper import config
from streamkeeper.logger import get_logger
from streamkeeper.models import Availability, BroadcastStatus, PlaylistItem
from streamkeeper.providers.base import PlaylistRemote
from streamkeeper.providers.errors import RemotePermanent, RemoteUnauthorized
from streamkeeper.providers.youtube.api_manager import call, execute_with_retry
from streamkeeper.utils import parse_rfc3339

logger = get_logger(__name__)

YouTubeClient = Any


# ----------------------------
# Parsing
# ----------------------------


def _availability(raw_item: Dict[str, Any], video: Optional[Dict[str, Any]]) -> Availability:
    snippet = raw_item.get("snippet") or {}
    item_privacy = (raw_item.get("status") or {}).get("privacyStatus")
    title = snippet.get("title") or ""

    if video is None:
        if title in config.PRIVATE_VIDEO_TITLES or item_privacy == "private":
            return Availability.PRIVATE
        return Availability.DELETED

    status = video.get("status")
    if not isinstance(status, dict):
        return Availability.UNKNOWN

    if status.get("uploadStatus") in ("deleted", "rejected", "failed"):
        return Availability.DELETED
    privacy = status.get("privacyStatus")
    if privacy == "private":
        return Availability.PRIVATE
    if privacy in ("public", "unlisted"):
        return Availability.AVAILABLE
    return Availability.UNKNOWN


def _broadcast(video: Optional[Dict[str, Any]]) -> Tuple[BroadcastStatus, Optional[datetime]]:
    if video is None:
        return BroadcastStatus.NONE, None

    content = ((video.get("snippet") or {}).get("liveBroadcastContent") or "none").lower()
    details = video.get("liveStreamingDetails") or {}

    actual_start = parse_rfc3339(details.get("actualStartTime"))
    actual_end = parse_rfc3339(details.get("actualEndTime"))
    scheduled = parse_rfc3339(details.get("scheduledStartTime"))

    if content == "live":
        return BroadcastStatus.LIVE, actual_start or scheduled
    if content == "upcoming":
        return BroadcastStatus.UPCOMING, scheduled
    if actual_start or actual_end:
        return BroadcastStatus.COMPLETED, actual_start or scheduled or actual_end
    return BroadcastStatus.NONE, None


def parse_playlist_item(
    raw_item: Dict[str, Any],
    video: Optional[Dict[str, Any]],
    position: int,
) -> PlaylistItem:
    snippet = raw_item.get("snippet") or {}
    video_id = (raw_item.get("contentDetails") or {}).get("videoId") or (
        snippet.get("resourceId") or {}
    ).get("videoId", "")

    broadcast, start_time = _broadcast(video)
    title = (video or {}).get("snippet", {}).get("title") or snippet.get("title") or ""

    return PlaylistItem(
        item_id=raw_item["id"],
        position=position,
        video_id=video_id,
        availability=_availability(raw_item, video),
        broadcast=broadcast,
        start_time=start_time,
        title=title,
    )


# ----------------------------
# Remote
# ----------------------------


class YouTubePlaylistRemote(PlaylistRemote):
    name = "youtube"

    def __init__(
        self,
        client_factory: Callable[[], YouTubeClient],
        *,
        max_retries: int = config.DEFAULT_MAX_RETRIES,
        backoff_base_sec: float = config.DEFAULT_BACKOFF_BASE_SEC,
        refresh_credentials: Optional[Callable[[], Any]] = None,
    ) -> None:
        # client_factory is consulted per call so refreshed credentials take effect
        self._client = client_factory
        self._refresh = refresh_credentials
        self._max_retries = max_retries
        self._backoff = backoff_base_sec
        self._video_ids: Dict[str, str] = {}

    def _read(self, request: Callable[[YouTubeClient], Any], name: str) -> Any:
        def attempt() -> Any:
            client = self._client()
            return execute_with_retry(
                lambda: request(client).execute(),
                name,
                max_retries=self._max_retries,
                backoff_base_sec=self._backoff,
            )

        try:
            return attempt()
        except RemoteUnauthorized:
            if self._refresh is None:
                raise
            logger.info("[fetch] %s rejected the token; refreshing credential", name)
            self._refresh()
            return attempt()

    def _fetch_raw_items(self, playlist_id: str) -> List[Dict[str, Any]]:
        items: List[Dict[str, Any]] = []
        page_token: Optional[str] = None

        while True:

            def _page(client: YouTubeClient, token: Optional[str] = page_token) -> Any:
                return client.playlistItems().list(
                    part=config.PLAYLIST_ITEM_PARTS,
                    playlistId=playlist_id,
                    maxResults=config.YOUTUBE_BATCH_SIZE,
                    pageToken=token,
                )

            resp = self._read(_page, "playlistItems.list")
            for it in resp.get("items", []):
                if isinstance(it.get("id"), str):
                    items.append(it)

            page_token = resp.get("nextPageToken")
            if not page_token:
                break

        return items

    def _fetch_videos(self, video_ids: List[str]) -> Dict[str, Dict[str, Any]]:
        ids = [v for v in dict.fromkeys(video_ids) if v]
        out: Dict[str, Dict[str, Any]] = {}

        for i in range(0, len(ids), config.YOUTUBE_BATCH_SIZE):
            chunk = ids[i : i + config.YOUTUBE_BATCH_SIZE]

            def _batch(client: YouTubeClient, ids: List[str] = chunk) -> Any:
                return client.videos().list(
                    part=config.VIDEO_PARTS,
                    id=",".join(ids),
                    maxResults=config.YOUTUBE_BATCH_SIZE,
                )

            resp = self._read(_batch, "videos.list")
            for v in resp.get("items", []):
                if isinstance(v.get("id"), str):
                    out[v["id"]] = v

        return out

    def list_items(self, playlist_id: str) -> List[PlaylistItem]:
        raw_items = self._fetch_raw_items(playlist_id)
        video_ids = [(it.get("contentDetails") or {}).get("videoId", "") for it in raw_items]
        videos = self._fetch_videos(video_ids)

        items = [
            parse_playlist_item(raw, videos.get(vid), position)
            for position, (raw, vid) in enumerate(zip(raw_items, video_ids))
        ]

        self._video_ids = {it.item_id: it.video_id for it in items}
        logger.debug("[fetch] %d playlist items, %d videos resolved", len(items), len(videos))
        return items

    def move_item(self, playlist_id: str, item_id: str, position: int) -> None:
        video_id = self._video_ids.get(item_id)
        if not video_id:
            raise RemotePermanent(f"unknown playlist item {item_id}; list the playlist first")

        body = {
            "id": item_id,
            "snippet": {
                "playlistId": playlist_id,
                "resourceId": {"kind": "youtube#video", "videoId": video_id},
                "position": position,
            },
        }
        client = self._client()
        call(
            lambda: client.playlistItems().update(part="snippet", body=body).execute(),
            f"move {item_id}",
        )

    def delete_item(self, item_id: str) -> None:
        client = self._client()
        call(
            lambda: client.playlistItems().delete(id=item_id).execute(),
            f"delete {item_id}",
        )
        self._video_ids.pop(item_id, None)
