from __future__ import annotations

import argparse
import asyncio
import logging
import sys
from typing import Optional

from .config import SessionConfig, parse_term, parse_token
from .constants import DEFAULT_HOST
from .errors import CloudCatcherError
from .session import run_session

LOG_FORMAT = "%(asctime)s [%(levelname)s] %(message)s"


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="cloudcatcher",
        description="Mirror a local shell session to a remote cloud catcher viewer.",
    )
    parser.add_argument("token", help="session token (32 alpha-numeric characters)")
    parser.add_argument("--term", "-t", default=None, help='"none" or WxH: run against a substituted display')
    parser.add_argument("--http", "-H", action="store_true", help="use ws:// instead of wss://")
    parser.add_argument("--host", default=DEFAULT_HOST)
    parser.add_argument("--root", default=".", help="directory files are edited under")
    parser.add_argument("--default-extension", default="", help="appended to new files named without one")
    parser.add_argument(
        "--log-level",
        default="WARNING",
        choices=["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"],
    )
    parser.add_argument("--log-file", default=None, help="write logs here instead of stderr")
    return parser


def config_from_args(parser: argparse.ArgumentParser, args: argparse.Namespace) -> SessionConfig:
    try:
        token = parse_token(args.token)
        if args.term is not None:
            parse_term(args.term)
    except ValueError as e:
        parser.error(str(e))

    return SessionConfig(
        token=token,
        host=args.host,
        secure=not args.http,
        term=args.term,
        root=args.root,
        default_extension=args.default_extension,
    )


def main(argv: Optional[list[str]] = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)
    config = config_from_args(parser, args)
    logging.basicConfig(level=getattr(logging, args.log_level), format=LOG_FORMAT, filename=args.log_file)

    try:
        result = asyncio.run(run_session(config, sys.stdout))
    except CloudCatcherError as e:
        print(f"cloudcatcher: {e}", file=sys.stderr)
        return 1
    return result.exit_code if isinstance(result.exit_code, int) else 0


if __name__ == "__main__":
    raise SystemExit(main())
