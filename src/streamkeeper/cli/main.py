from __future__ import annotations

import argparse
import sys
from typing import List, Optional

from streamkeeper import __version__
from streamkeeper.bootstrap import bootstrap_base_env, bootstrap_run_context


def _dispatch_help(argv: List[str]) -> int:
    # Supports:
    #   streamkeeper help
    #   streamkeeper help sync
    if argv and argv[0] == "help":
        argv = argv[1:]

    try:
        build_parser().parse_args(argv + ["--help"])
    except SystemExit:
        pass
    return 0


def build_parser() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(
        prog="streamkeeper",
        description="Keep a YouTube live-stream playlist in canonical order.",
    )
    p.add_argument("--version", action="version", version=f"%(prog)s {__version__}")

    sub = p.add_subparsers(dest="command", required=True)

    help_cmd = sub.add_parser("help", help="Show help")
    help_cmd.add_argument("path", nargs="*", help="Command path to show help for")
    help_cmd.set_defaults(_help=True)

    # Keep imports inside builder to avoid early side effects.
    from streamkeeper.cli.cli_auth import build_auth_parser
    from streamkeeper.cli.cli_env import build_env_parser
    from streamkeeper.cli.cli_list import build_list_parser
    from streamkeeper.cli.cli_sync import build_plan_parser, build_sync_parser

    build_sync_parser(sub)
    build_plan_parser(sub)
    build_list_parser(sub)
    build_auth_parser(sub)
    build_env_parser(sub)

    return p


def main(argv: Optional[List[str]] = None) -> int:
    argv = list(sys.argv[1:] if argv is None else argv)

    # Load config/.env and base environment early
    bootstrap_base_env()

    parser = build_parser()
    args = parser.parse_args(argv)

    if getattr(args, "_help", False):
        return _dispatch_help(argv)

    # Stamp run context before the first env read and before logging
    bootstrap_run_context(args)

    from streamkeeper.env import ConfigError, get_env

    try:
        env = get_env()
    except ConfigError as e:
        print(f"Configuration error: {e}", file=sys.stderr)
        return 2

    from streamkeeper.logger import get_logger, init_logging

    init_logging()

    log = get_logger(__name__)
    log.debug(f"streamkeeper {__version__} starting")
    log.debug(f"Command: {args.command}")
    for warning in env.warnings:
        log.warning(warning)

    # Dispatch
    if args.command == "sync":
        from streamkeeper.cli.cli_sync import handle_sync

        return handle_sync(args)

    if args.command == "plan":
        from streamkeeper.cli.cli_sync import handle_plan

        return handle_plan(args)

    if args.command == "list":
        from streamkeeper.cli.cli_list import handle_list

        return handle_list(args)

    if args.command == "auth":
        from streamkeeper.cli.cli_auth import handle_auth

        return handle_auth(args)

    if args.command == "env":
        from streamkeeper.cli.cli_env import handle_env

        return handle_env(args)

    raise RuntimeError(f"Unknown command: {args.command}")


if __name__ == "__main__":
    raise SystemExit(main())
