from __future__ import annotations

import argparse
import sys
from typing import Optional, Tuple

from rich.console import Console

from streamkeeper.auth.providers.youtube import YouTubeOAuthProvider
from streamkeeper.env import get_env
from streamkeeper.providers.youtube.playlist import YouTubePlaylistRemote
from streamkeeper.stages.apply import Executor

# Command output (tables, status lines). Logging has its own console.
CONSOLE = Console(soft_wrap=True)


# ----------------------------
# Help dispatch (subparser-local)
# ----------------------------


def dispatch_subparser_help(
    parser: argparse.ArgumentParser, path: Optional[list] = None
) -> int:
    """
    Implements consistent `X help [subcmd ...]` behavior for a subtree parser.
    """
    if not path:
        parser.print_help()
        return 0

    try:
        parser.parse_args(path + ["--help"])
    except SystemExit:
        pass
    return 0


# ----------------------------
# Shared arguments
# ----------------------------


def add_output_flags(parser: argparse.ArgumentParser) -> None:
    group = parser.add_mutually_exclusive_group()
    group.add_argument("--verbose", action="store_true", help="Debug logging on the console")
    group.add_argument("--quiet", action="store_true", help="Suppress console logging")


def add_playlist_flag(parser: argparse.ArgumentParser) -> None:
    parser.add_argument(
        "--playlist",
        metavar="ID",
        help="YouTube playlist id (default: STREAMKEEPER_PLAYLIST_ID)",
    )


def require_playlist_id() -> Optional[str]:
    playlist_id = get_env().playlist_id
    if not playlist_id:
        CONSOLE.print(
            "[red]No playlist given.[/red] Pass --playlist or set STREAMKEEPER_PLAYLIST_ID."
        )
        return None
    return playlist_id


# ----------------------------
# Wiring
# ----------------------------


def build_youtube(
    *, interactive: Optional[bool] = None
) -> Tuple[YouTubeOAuthProvider, YouTubePlaylistRemote, Executor]:
    """Auth provider, playlist remote and executor sharing one credential cache."""
    env = get_env()
    if interactive is None:
        interactive = sys.stdin.isatty()

    provider = YouTubeOAuthProvider(interactive=interactive)
    remote = YouTubePlaylistRemote(
        provider.build_client,
        max_retries=env.max_retries,
        backoff_base_sec=env.backoff_base_sec,
        refresh_credentials=provider.refresh,
    )
    executor = Executor(
        remote,
        refresh_credentials=provider.refresh,
        max_retries=env.max_retries,
        backoff_base_sec=env.backoff_base_sec,
        mutation_sleep_sec=env.mutation_sleep_sec,
    )
    return provider, remote, executor
