from __future__ import annotations

import argparse

from rich.table import Table

from streamkeeper.auth.errors import AuthError
from streamkeeper.branding import SYMBOLS
from streamkeeper.cli.common import (
    CONSOLE,
    add_output_flags,
    add_playlist_flag,
    build_youtube,
    require_playlist_id,
)
from streamkeeper.logger import get_logger
from streamkeeper.models import CategoryKind
from streamkeeper.providers.errors import RemoteError
from streamkeeper.runner import EXIT_CODES, state_for_error
from streamkeeper.stages.classify import classify_all
from streamkeeper.utils import format_instant

_STYLE = {
    CategoryKind.LIVE: ("red", SYMBOLS.LIVE),
    CategoryKind.UPCOMING: ("cyan", SYMBOLS.UPCOMING),
    CategoryKind.COMPLETED: ("green", SYMBOLS.COMPLETED),
    CategoryKind.INVALID: ("dim", SYMBOLS.INVALID),
    CategoryKind.NON_STREAM: ("white", SYMBOLS.NON_STREAM),
}


def build_list_parser(subparsers: argparse._SubParsersAction) -> None:
    ls = subparsers.add_parser("list", help="Show the playlist with each item's category")
    add_playlist_flag(ls)
    add_output_flags(ls)


def handle_list(args: argparse.Namespace) -> int:
    log = get_logger("streamkeeper")

    playlist_id = require_playlist_id()
    if playlist_id is None:
        return 2

    _, remote, _ = build_youtube()
    try:
        items = remote.list_items(playlist_id)
    except (RemoteError, AuthError) as e:
        log.error(f"Could not list playlist {playlist_id}: {e}")
        if isinstance(e, AuthError):
            CONSOLE.print(f"[red]OAuth problem:[/red] {e.hint}")
        return EXIT_CODES[state_for_error(e)]

    table = Table(title=f"Playlist {playlist_id} ({len(items)} items)")
    table.add_column("#", justify="right")
    table.add_column("Title")
    table.add_column("Category")
    table.add_column("Start")

    for item, category in classify_all(items):
        style, symbol = _STYLE[category.kind]
        if category.kind is CategoryKind.UPCOMING:
            start = f"{format_instant(category.timestamp)} (future)"
        else:
            start = format_instant(category.timestamp)
        table.add_row(
            str(item.position),
            item.title or item.video_id,
            f"[{style}]{symbol} {category.kind.value}[/{style}]",
            start,
        )

    CONSOLE.print(table)
    return 0
