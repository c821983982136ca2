#!/usr/bin/env python3
"""Build and release toolkit for the keygen-ui container image."""

from __future__ import annotations

import argparse

from tools.releaseops.commands import build, publish, scan, tags
from tools.releaseops.core import logging
from tools.releaseops.core.errors import ReleaseOpsError
from tools.releaseops.core.runner import CommandRunner, RunnerError

CONFIG_EXIT_CODE = 2


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="releaseops",
        description="keygen-ui image build, release dispatch and vulnerability scan",
    )
    parser.add_argument(
        "--dry-run",
        action="store_true",
        help="Print commands without executing side effects",
    )
    parser.add_argument("-v", "--verbose", action="store_true", help="Verbose logging")
    parser.add_argument(
        "--project-root",
        default=".",
        help="Repository root containing the Dockerfile (default: current directory)",
    )

    subparsers = parser.add_subparsers(dest="command", required=True)
    build.register_parser(subparsers)
    tags.register_parser(subparsers)
    publish.register_parser(subparsers)
    scan.register_parser(subparsers)

    return parser


def main(argv: list[str] | None = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)
    logging.configure_logging(bool(args.verbose))
    runner = CommandRunner(dry_run=bool(args.dry_run))

    if not hasattr(args, "func"):
        parser.print_help()
        return 2

    try:
        return int(args.func(args, runner))
    except ReleaseOpsError as exc:
        logging.error(f"{type(exc).__name__}: {exc}")
        return exc.exit_code
    except RunnerError as exc:
        logging.error(str(exc))
        return 1
    except (ValueError, FileNotFoundError) as exc:
        logging.error(str(exc))
        return CONFIG_EXIT_CODE


if __name__ == "__main__":
    raise SystemExit(main())
