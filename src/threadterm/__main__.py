"""CLI entrypoint for threadterm."""

from __future__ import annotations

import argparse
from collections.abc import Sequence
from importlib import metadata

from .app import ThreadTermApp
from .config import ensure_config_dir


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="threadterm",
        description="threadterm - terminal client for threaded team channels",
    )
    parser.add_argument(
        "--version",
        action="store_true",
        help="Print version and exit",
    )
    parser.add_argument(
        "--channel",
        metavar="ID",
        default=None,
        help="Channel to open instead of api.channel_id from the config",
    )
    return parser


def main(argv: Sequence[str] | None = None) -> None:
    """Ensure configuration exists, handle CLI flags, and run the TUI."""

    parser = _build_parser()
    args = parser.parse_args(list(argv) if argv is not None else None)

    if args.version:
        try:
            version = metadata.version("threadterm")
        except metadata.PackageNotFoundError:
            version = "0.0.0"
        print(f"threadterm {version}")
        return

    ensure_config_dir()
    app = ThreadTermApp(channel_id=args.channel)
    app.run()


if __name__ == "__main__":
    main()
