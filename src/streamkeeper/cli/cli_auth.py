from __future__ import annotations

import argparse

from rich.text import Text

from streamkeeper.auth import AuthError, AuthHealthStatus, check, get_provider
from streamkeeper.branding import SYMBOLS
from streamkeeper.cli.common import CONSOLE, add_output_flags
from streamkeeper.env import get_env
from streamkeeper.logger import get_logger


def build_auth_parser(subparsers: argparse._SubParsersAction) -> None:
    auth = subparsers.add_parser(
        "auth",
        help="Check that the cached OAuth token works; --login to replace it",
    )
    auth.add_argument(
        "--login",
        action="store_true",
        help="Discard the cached token and run the browser consent flow",
    )
    auth.add_argument("--provider", default="youtube", help="Auth provider (default: youtube)")
    add_output_flags(auth)


def handle_auth(args: argparse.Namespace) -> int:
    logger = get_logger("streamkeeper.auth")
    env = get_env()

    if args.login:
        provider = get_provider(args.provider, interactive=True)
        try:
            provider.login()
        except AuthError as e:
            logger.error(f"OAuth login failed: {e}")
            if not env.quiet:
                CONSOLE.print(Text(f"{SYMBOLS.FAIL} OAuth login failed: {e}", style="red"))
            return 12
        result = provider.health_check()
    else:
        result = check(args.provider)

    logger.info("auth %s: %s", result.provider, result.status.value)
    if env.quiet:
        return result.exit_code

    if result.status is AuthHealthStatus.AUTH_INVALID:
        msg = Text(f"{SYMBOLS.FAIL} {result.message}", style="red")
        msg.append(" - run `streamkeeper auth --login`", style="dim")
    elif result.ok:
        msg = Text(f"{SYMBOLS.OK} OAuth OK", style="green")
        if result.status is AuthHealthStatus.OK_API_QUOTA:
            msg.append(" (API quota exhausted)", style="yellow")
        elif env.verbose:
            msg.append(" (token valid and usable)", style="dim")
    else:
        msg = Text(f"{SYMBOLS.FAIL} {result.message}", style="red")

    CONSOLE.print(msg)
    return result.exit_code
