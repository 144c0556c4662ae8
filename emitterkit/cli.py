"""Command line entry point."""

from __future__ import annotations

import argparse
from typing import Optional, Sequence

VERSION = "0"
COMMIT = "untracked"


def version_string() -> str:
    """The version line printed by the ``version`` command."""
    return f"emitter version {VERSION}, commit {COMMIT}"


def main(argv: Optional[Sequence[str]] = None) -> int:
    """Run the command line with the given arguments."""
    parser = argparse.ArgumentParser(prog="emitter")
    commands = parser.add_subparsers(dest="command", required=True)
    commands.add_parser("version", help="Prints the version of the executable.")
    args = parser.parse_args(argv)

    if args.command == "version":
        print(version_string())
    return 0