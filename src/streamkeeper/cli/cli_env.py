from __future__ import annotations

import argparse

from rich.table import Table

from streamkeeper.cli.common import CONSOLE, dispatch_subparser_help
from streamkeeper.env import get_env
from streamkeeper.env import paths


def build_env_parser(subparsers: argparse._SubParsersAction) -> None:
    env = subparsers.add_parser("env", help="Inspect resolved settings and paths")
    sub = env.add_subparsers(dest="env_cmd", required=True)

    help_p = sub.add_parser("help", help="Show help for env")
    help_p.add_argument("path", nargs="*", help="Subcommand path")
    help_p.set_defaults(action="help", _help_parser=env)

    sub.add_parser("dump", help="Show every setting after env and .env resolution").set_defaults(
        action="dump"
    )
    sub.add_parser("paths", help="Show where logs, credentials and reports go").set_defaults(
        action="paths"
    )


def handle_env(args: argparse.Namespace) -> int:
    handlers = {
        "help": lambda: dispatch_subparser_help(
            args._help_parser, list(getattr(args, "path", []) or [])
        ),
        "dump": _dump,
        "paths": _paths,
    }
    if args.action not in handlers:
        raise RuntimeError(f"Unknown env action: {args.action}")
    return handlers[args.action]()


def _dump() -> int:
    table = Table(title="streamkeeper settings", show_lines=False)
    table.add_column("Section", style="bold cyan")
    table.add_column("Key")
    table.add_column("Value")

    for section, values in get_env().as_dict().items():
        for i, (key, value) in enumerate(values.items()):
            table.add_row(section if i == 0 else "", key, str(value))

    CONSOLE.print(table)
    return 0


def _paths() -> int:
    env = get_env()
    table = Table(title="streamkeeper paths")
    table.add_column("What", style="bold cyan")
    table.add_column("Path")
    table.add_column("Exists")

    rows = [
        ("logs", paths.logs_dir()),
        ("reports", paths.out_dir()),
        ("client secrets", paths.auth_client_secrets_file(env.client_secrets_file)),
        ("token cache", paths.auth_token_file(env.token_file)),
    ]
    for label, path in rows:
        table.add_row(label, str(path), "yes" if path.exists() else "[yellow]no[/yellow]")

    CONSOLE.print(table)
    return 0
