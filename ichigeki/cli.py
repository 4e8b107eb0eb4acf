#!/usr/bin/env python3
"""
Ichigeki CLI

Runs a command at most once per day, recording its transcript.
"""

import argparse
import logging
import sys
from typing import List, Optional

from ichigeki import __version__
from ichigeki.config.settings import Settings
from ichigeki.core.errors import IchigekiError
from ichigeki.core.guard import ExecutionGuard
from ichigeki.core.runner import command_script

logger = logging.getLogger("ichigeki.cli")

EXIT_ERROR = 1
EXIT_INTERRUPTED = 130


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="ichigeki",
        usage="ichigeki [options] -- (commands)",
        description="Run a command once per day and keep its execution log",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  ichigeki -- ./cleanup.sh               Log to ./cleanup.sh.log, ask first
  ichigeki --dir /var/log/ichigeki -- ./migrate.py
  ichigeki --s3-url-prefix s3://bucket/logs/ --no-confirm-dialog -- ./batch
  ichigeki --exec-date 2024-06-05 -- ./scheduled.sh
        """,
    )
    parser.add_argument("--version", action="version", version=f"ichigeki {__version__}")
    parser.add_argument("--config", help="config file (default: ~/.config/ichigeki/default.yaml)")
    parser.add_argument("--dir", default="", help="log destination directory")
    parser.add_argument("--name", default="", help="ichigeki name")
    parser.add_argument("--s3-url-prefix", default="", help="log destination for s3 (s3://bucket/prefix)")
    parser.add_argument("--exec-date", default="", help="scheduled execution date (YYYY-MM-DD)")
    parser.add_argument(
        "--no-confirm-dialog", action="store_true", help="do not ask for confirmation"
    )
    parser.add_argument(
        "--default-name-template", default="", help="template for the default name"
    )
    parser.add_argument("-v", "--verbose", action="store_true", help="debug logging")
    parser.add_argument("command", nargs=argparse.REMAINDER, help="command to run")
    return parser


def configure_logging(verbose: bool = False) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.INFO,
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        datefmt="%H:%M:%S",
        stream=sys.stderr,
    )


def main(argv: Optional[List[str]] = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)
    configure_logging(args.verbose)

    command = list(args.command)
    if command and command[0] == "--":
        command = command[1:]
    if not command:
        parser.print_usage(sys.stderr)
        print("[error] commands not found", file=sys.stderr)
        return EXIT_ERROR

    logger.debug(f"command: {command}")
    script = command_script(command)
    try:
        settings = Settings.load_default(args.config).apply_flags(
            dir=args.dir,
            name=args.name,
            s3_url_prefix=args.s3_url_prefix,
            exec_date=args.exec_date,
            no_confirm_dialog=args.no_confirm_dialog,
            default_name_template=args.default_name_template,
        )
        guard = ExecutionGuard(
            script=script,
            name=settings.name,
            args=command,
            exec_date=settings.exec_date,
            confirm_dialog=settings.confirm_dialog,
            destination=settings.build_destination(),
            default_name_template=settings.default_name_template,
        )
        guard.run()
    except IchigekiError as e:
        print(f"[error] {e}", file=sys.stderr)
        return EXIT_ERROR
    except KeyboardInterrupt:
        # The runner already terminated the child.
        print("[error] interrupted", file=sys.stderr)
        return EXIT_INTERRUPTED
    return 0


if __name__ == "__main__":
    sys.exit(main())
