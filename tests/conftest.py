from dataclasses import replace
from datetime import datetime, timedelta, timezone
import os

import pytest

from streamkeeper.auth.credentials import Credential
from streamkeeper.auth.errors import CredentialRevoked
from streamkeeper.models import Availability, BroadcastStatus, PlaylistItem
from streamkeeper.providers.base import PlaylistRemote
from streamkeeper.providers.errors import RemotePermanent

T0 = datetime(2024, 3, 10, 12, 0, tzinfo=timezone.utc)


@pytest.fixture(autouse=True)
def clean_env_and_logging(monkeypatch, tmp_path):
    """
    Ensure tests don't leak env, logger state, or cached env views.
    """
    for k in list(os.environ):
        if k.startswith("STREAMKEEPER_") or k in ("LOG_LEVEL", "LOG_RETENTION"):
            monkeypatch.delenv(k, raising=False)

    # Nothing a test does may land in the project tree
    monkeypatch.setenv("STREAMKEEPER_LOGS_DIR", str(tmp_path / "logs"))
    monkeypatch.setenv("STREAMKEEPER_AUTH_DIR", str(tmp_path / "auth"))
    monkeypatch.setenv("STREAMKEEPER_OUT_DIR", str(tmp_path / "out"))
    monkeypatch.setenv("STREAMKEEPER_MUTATION_SLEEP_SEC", "0")
    monkeypatch.setenv("STREAMKEEPER_BACKOFF_BASE_SEC", "0")

    from streamkeeper.env import reset_env_caches
    from streamkeeper.logger import reset_logging

    reset_env_caches()
    reset_logging()

    yield

    reset_logging()
    reset_env_caches()


# ------------------------------------------------------------
# Item builders
# ------------------------------------------------------------


def _item(item_id, availability, broadcast, start=None):
    return PlaylistItem(
        item_id=item_id,
        position=0,
        video_id=f"vid-{item_id}",
        availability=availability,
        broadcast=broadcast,
        start_time=start,
        title=f"title {item_id}",
    )


def live(item_id, hours=0):
    return _item(item_id, Availability.AVAILABLE, BroadcastStatus.LIVE, T0 + timedelta(hours=hours))


def upcoming(item_id, hours=24):
    return _item(
        item_id, Availability.AVAILABLE, BroadcastStatus.UPCOMING, T0 + timedelta(hours=hours)
    )


def completed(item_id, hours=-24):
    return _item(
        item_id, Availability.AVAILABLE, BroadcastStatus.COMPLETED, T0 + timedelta(hours=hours)
    )


def invalid(item_id, availability=Availability.DELETED):
    return _item(item_id, availability, BroadcastStatus.NONE)


def plain(item_id):
    return _item(item_id, Availability.AVAILABLE, BroadcastStatus.NONE)


def positioned(items):
    return [replace(it, position=i) for i, it in enumerate(items)]


# ------------------------------------------------------------
# Fake remote
# ------------------------------------------------------------


class FakePlaylist(PlaylistRemote):
    """
    In-memory playlist with the remote's single-item mutation semantics.

    `failures` maps (action, item_id) to a list of exceptions raised, one per
    call, before the call is allowed to succeed.
    """

    name = "fake"

    def __init__(self, items, playlist_id="PL_TEST"):
        self.playlist_id = playlist_id
        self._items = {it.item_id: it for it in items}
        self.order = [it.item_id for it in items]
        self.calls = []
        self.failures = {}
        self.list_failures = []

    def _maybe_fail(self, key):
        queue = self.failures.get(key)
        if queue:
            raise queue.pop(0)

    def list_items(self, playlist_id):
        self.calls.append(("list", playlist_id))
        if self.list_failures:
            raise self.list_failures.pop(0)
        return [replace(self._items[i], position=pos) for pos, i in enumerate(self.order)]

    def move_item(self, playlist_id, item_id, position):
        self.calls.append(("move", item_id, position))
        self._maybe_fail(("move", item_id))
        if item_id not in self.order:
            raise RemotePermanent(f"playlistItemNotFound: {item_id}")
        self.order.remove(item_id)
        self.order.insert(position, item_id)

    def delete_item(self, item_id):
        self.calls.append(("delete", item_id))
        self._maybe_fail(("delete", item_id))
        if item_id not in self.order:
            raise RemotePermanent(f"playlistItemNotFound: {item_id}")
        self.order.remove(item_id)

    @property
    def mutations(self):
        return [c for c in self.calls if c[0] != "list"]


# ------------------------------------------------------------
# Fake credential collaborators
# ------------------------------------------------------------


def make_credential(client_id="client-1", token="tok-0", expires_in=3600, refresh_token="rt"):
    return Credential(
        client_id=client_id,
        access_token=token,
        refresh_token=refresh_token,
        expiry=T0 + timedelta(seconds=expires_in),
        issued_at=T0,
        scopes=("https://www.googleapis.com/auth/youtube",),
    )


class MemoryStore:
    def __init__(self, *credentials):
        self.records = {c.client_id: c for c in credentials}
        self.persisted = []
        self.discarded = []

    def load(self, client_id):
        return self.records.get(client_id)

    def persist(self, credential):
        self.records[credential.client_id] = credential
        self.persisted.append(credential)

    def discard(self, client_id):
        self.records.pop(client_id, None)
        self.discarded.append(client_id)


class ScriptedAuthority:
    client_id = "client-1"

    def __init__(self, *, revoked=False):
        self.revoked = revoked
        self.refresh_calls = 0
        self.consent_calls = 0

    def refresh(self, credential):
        self.refresh_calls += 1
        if self.revoked:
            raise CredentialRevoked("invalid_grant: Token has been expired or revoked.")
        return make_credential(token=f"tok-refresh-{self.refresh_calls}")

    def interactive_consent(self):
        self.consent_calls += 1
        self.revoked = False
        return make_credential(token=f"tok-consent-{self.consent_calls}")


@pytest.fixture
def clock():
    return lambda: T0


def fresh_credential(token="tok-live"):
    return Credential(
        client_id="client-1",
        access_token=token,
        refresh_token="rt",
        expiry=datetime.now(timezone.utc) + timedelta(hours=1),
    )


class LiveAuthority(ScriptedAuthority):
    """Hands out tokens that are valid against the real clock."""

    def refresh(self, credential):
        self.refresh_calls += 1
        if self.revoked:
            raise CredentialRevoked("invalid_grant: Token has been expired or revoked.")
        return fresh_credential(f"tok-refresh-{self.refresh_calls}")

    def interactive_consent(self):
        self.consent_calls += 1
        self.revoked = False
        return fresh_credential(f"tok-consent-{self.consent_calls}")


# ------------------------------------------------------------
# Fake YouTube Data API service
# ------------------------------------------------------------


class _Request:
    def __init__(self, svc, key, fn):
        self._svc = svc
        self._key = key
        self._fn = fn

    def execute(self):
        queue = self._svc.errors.get(self._key)
        if queue:
            raise queue.pop(0)
        return self._fn()


class _PlaylistItemsResource:
    def __init__(self, svc):
        self.svc = svc

    def list(self, part, playlistId, maxResults, pageToken=None):
        self.svc.calls.append(("playlistItems.list", playlistId))

        def run():
            return {
                "items": [
                    {
                        "id": item_id,
                        "snippet": {
                            "title": f"title {item_id}",
                            "resourceId": {"kind": "youtube#video", "videoId": video_id},
                        },
                        "contentDetails": {"videoId": video_id},
                        "status": {"privacyStatus": "public"},
                    }
                    for item_id, video_id in self.svc.entries
                ]
            }

        return _Request(self.svc, ("list", playlistId), run)

    def update(self, part, body):
        item_id = body["id"]
        position = body["snippet"]["position"]
        self.svc.calls.append(("playlistItems.update", item_id, position))

        def run():
            entry = self.svc.entry(item_id)
            self.svc.entries.remove(entry)
            self.svc.entries.insert(position, entry)
            return body

        return _Request(self.svc, ("move", item_id), run)

    def delete(self, id):
        self.svc.calls.append(("playlistItems.delete", id))

        def run():
            self.svc.entries.remove(self.svc.entry(id))
            return ""

        return _Request(self.svc, ("delete", id), run)


class _VideosResource:
    def __init__(self, svc):
        self.svc = svc

    def list(self, part, id, maxResults):
        self.svc.calls.append(("videos.list", id))
        ids = id.split(",")
        return _Request(
            self.svc,
            ("videos", id),
            lambda: {"items": [self.svc.catalogue[v] for v in ids if v in self.svc.catalogue]},
        )


class FakeYouTubeService:
    """
    Stateful stand-in for the googleapiclient YouTube service.

    `entries` is the playlist as (item_id, video_id) pairs; updates and
    deletes change it. `catalogue` maps video ids to videos.list resources.
    `errors` maps ("move" | "delete", item_id) or ("list", playlist_id) to
    exceptions raised one per request.
    """

    def __init__(self, entries, videos):
        self.entries = list(entries)
        self.catalogue = dict(videos)
        self.calls = []
        self.errors = {}

    def entry(self, item_id):
        for entry in self.entries:
            if entry[0] == item_id:
                return entry
        raise KeyError(item_id)

    @property
    def order(self):
        return [item_id for item_id, _ in self.entries]

    def playlistItems(self):
        return _PlaylistItemsResource(self)

    def videos(self):
        return _VideosResource(self)


def api_video(video_id, content="none", **details):
    v = {
        "id": video_id,
        "snippet": {"title": f"video {video_id}", "liveBroadcastContent": content},
        "status": {"privacyStatus": "public", "uploadStatus": "processed"},
    }
    if details:
        v["liveStreamingDetails"] = details
    return v
