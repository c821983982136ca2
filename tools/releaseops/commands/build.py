"""CLI parser for the local image build."""

from __future__ import annotations

import argparse
import os
import sys
from pathlib import Path

import questionary

from tools.releaseops.core import logging
from tools.releaseops.core.build_ops import DEFAULT_IMAGE_TAG, BuildOptions, execute_build
from tools.releaseops.core.config import parse_assignments
from tools.releaseops.core.runner import CommandRunner


def register_parser(subparsers: argparse._SubParsersAction[argparse.ArgumentParser]) -> None:
    parser = subparsers.add_parser(
        "build",
        help="Validate build-time configuration and build the keygen-ui image",
    )
    parser.add_argument("-e", "--env-file", help="Env file to read (default: <project>/.env)")
    parser.add_argument(
        "--build-arg",
        action="append",
        default=[],
        metavar="KEY=VALUE",
        help="Override a configuration value (repeatable, highest precedence)",
    )
    parser.add_argument(
        "-t",
        "--tag",
        help=f"Output image tag (default: $IMAGE_TAG or {DEFAULT_IMAGE_TAG})",
    )
    parser.add_argument("--no-cache", action="store_true", help="Build without layer cache")
    parser.add_argument("-y", "--yes", action="store_true", help="Skip the confirmation prompt")
    parser.set_defaults(func=run)


def run(args: argparse.Namespace, runner: CommandRunner) -> int:
    environ = dict(os.environ)
    options = BuildOptions(
        project_root=Path(args.project_root).resolve(),
        output_tag=args.tag or environ.get("IMAGE_TAG", "").strip() or DEFAULT_IMAGE_TAG,
        env_file=Path(args.env_file) if args.env_file else None,
        overrides=parse_assignments(args.build_arg),
        no_cache=bool(args.no_cache),
    )

    logging.step("Keygen UI - Docker build")
    confirm = None
    if not (args.yes or runner.dry_run or _non_interactive(environ)):
        confirm = _confirm
    result = execute_build(options, runner, environ, confirm=confirm)
    if result is None:
        logging.warning("Build cancelled by user")
        return 0
    logging.success(f"Build completed: {result.artifact.handle}")
    return 0


def _non_interactive(environ: dict[str, str]) -> bool:
    return bool(environ.get("CI")) or not sys.stdin.isatty()


def _confirm() -> bool:
    return bool(questionary.confirm("Continue with build?", default=False).ask())
