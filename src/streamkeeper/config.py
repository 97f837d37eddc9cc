"""
config.py

Central configuration for Streamkeeper.

This file intentionally contains ONLY:
- Constants
- Tunables (defaults; env.py may override)
- File names

It must NOT contain:
- Business logic
- API calls
- Reading environment variables

Runtime configuration (env vars) belongs in env/env.py.
"""

from __future__ import annotations

# ============================================================
# YOUTUBE API: SCOPES / PAGING
# ============================================================

YOUTUBE_OAUTH_SCOPES = ["https://www.googleapis.com/auth/youtube"]

# playlistItems.list and videos.list both cap at 50 per call
YOUTUBE_BATCH_SIZE = 50

PLAYLIST_ITEM_PARTS = "snippet,contentDetails,status"
VIDEO_PARTS = "snippet,status,liveStreamingDetails"

# ============================================================
# REQUEST THROTTLING DEFAULTS (env.py may override)
# ============================================================

DEFAULT_MAX_RETRIES = 5
DEFAULT_BACKOFF_BASE_SEC = 1.0

# Playlist mutations are intentionally slower
DEFAULT_PLAYLIST_MUTATION_SLEEP_SEC = 1.0

# Transient statuses worth retrying; 409 is YouTube's SERVICE_UNAVAILABLE
# conflict on concurrent playlist writes.
TRANSIENT_HTTP_STATUSES = (409, 429, 500, 502, 503, 504)

QUOTA_REASONS = ("quotaExceeded", "dailyLimitExceeded")
RATE_LIMIT_REASONS = ("rateLimitExceeded", "userRateLimitExceeded")

# ============================================================
# AUTH
# ============================================================

CLIENT_SECRETS_FILENAME = "client_secret.json"
TOKEN_CACHE_FILENAME = "credentials.json"
TOKEN_CACHE_VERSION = 1

# Refresh when the access token has less than this many seconds left
DEFAULT_TOKEN_SAFETY_MARGIN_SEC = 300

# ============================================================
# PLAN / REPORT FILES
# ============================================================

RECONCILE_REPORT_BASENAME = "reconcile_{playlist_id}.json"
REPORT_VERSION = 1

# Title YouTube substitutes for items whose video went private
PRIVATE_VIDEO_TITLES = ("Private video",)
