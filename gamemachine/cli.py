"""Command-line interface for the game machine.

This thin wrapper parses CLI options, sets up logging and delegates to
:mod:`gamemachine.runtime`. The host configuration is looked up in
``<dir>/airsoft/asm-config.cfg`` where ``<dir>`` is the working
directory (``-d``) or the current one. Type ``quit`` on standard input
to stop.
"""

from __future__ import annotations

import argparse
import os
from typing import Sequence

from .application.config_loader import default_config_path
from .logging_utils import logprintf, set_debug, setup_file_logging
from .runtime import main as _main


def _build_arg_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="gamemachine", description="Airsoft game machine controller")
    parser.add_argument(
        "-c",
        "--config",
        metavar="PATH",
        default=None,
        help="Path to asm-config.cfg (default: <dir>/airsoft/asm-config.cfg)",
    )
    parser.add_argument(
        "-d",
        "--dir",
        metavar="DIR",
        default=None,
        help="Working directory (default: current directory)",
    )
    parser.add_argument("--debug", action="store_true", help="Enable debug logging")
    parser.add_argument("--log-dir", metavar="DIR", default=None, help="Also log to DIR/asm.log")
    return parser


def main(argv: Sequence[str] | None = None) -> int:
    """CLI entry point used by the ``gamemachine`` script."""

    parser = _build_arg_parser()
    args = parser.parse_args(list(argv) if argv is not None else None)

    set_debug(args.debug)
    if args.log_dir:
        try:
            logfile = setup_file_logging(os.path.abspath(args.log_dir))
        except OSError as exc:
            logprintf(0, "Cannot log to %s: %s", args.log_dir, exc)
            return 1
        logprintf(3, "Logging to %s", logfile)

    config_path = os.path.abspath(args.config) if args.config else None
    work_dir = os.path.abspath(args.dir) if args.dir else os.getcwd()
    if config_path is None:
        config_path = default_config_path(work_dir)

    old_cwd = os.getcwd()
    try:
        os.chdir(work_dir)
        result = _main(config_path)
    finally:
        os.chdir(old_cwd)

    return int(result) if result is not None else 0


if __name__ == "__main__":  # pragma: no cover
    raise SystemExit(main())
