"""Banner, stage rules and the symbols shared by log lines and Rich tables."""

from __future__ import annotations

import shutil

RULE_MIN_WIDTH = 48
RULE_MAX_WIDTH = 88

STREAMKEEPER_BANNER = r"""
     _                            _
 ___| |_ ___ ___ ___ _____    ___| |_ ___ ___ ___ ___ ___
|_ -|  _|  _| -_| .'|     |  |_ -| '_| -_| -_| . | -_|  _|
|___|_| |_| |___|__,|_|_|_|  |___|_,_|___|___|  _|___|_|
                                             |_|
"""


def stage_rule(title: str, *, width: int = 0) -> str:
    """
    One-line divider for the start of a pipeline stage:

        ━━━━━━━━━━━━━━━━━━━━ ▸ Plan ━━━━━━━━━━━━━━━━━━━━

    width=0 sizes it to the terminal, clamped to RULE_MIN_WIDTH..RULE_MAX_WIDTH.
    """
    if width <= 0:
        width = shutil.get_terminal_size((RULE_MAX_WIDTH, 24)).columns
    width = min(max(width, RULE_MIN_WIDTH), RULE_MAX_WIDTH)

    label = f" ▸ {title.strip()} "
    fill = max(width - len(label), 4)
    left = fill // 2
    return f"{'━' * left}{label}{'━' * (fill - left)}"


class SYMBOLS:
    OK = "✔"
    FAIL = "✖"
    WARN = "⚠"
    SKIPPED = "⤼"
    STOP = "■"

    LIVE = "●"
    UPCOMING = "◷"
    COMPLETED = "✓"
    INVALID = "✖"
    NON_STREAM = "·"

    MOVE = "↕"
    DELETE = "➖"


# Keyed by RunResult value
STATE_SYMBOLS = {
    "ok": SYMBOLS.OK,
    "skipped": SYMBOLS.SKIPPED,
    "quota_exhausted": SYMBOLS.STOP,
    "auth_invalid": SYMBOLS.FAIL,
    "failed": SYMBOLS.FAIL,
    "interrupted": SYMBOLS.WARN,
}
