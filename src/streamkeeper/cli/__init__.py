"""
Subcommands for the `streamkeeper` console script.

Every cli_* module pairs a build_*_parser(subparsers) with a
handle_*(args) -> int that returns the process exit code.
"""
