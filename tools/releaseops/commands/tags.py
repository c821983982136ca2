"""CLI parser for printing the tags a reference would publish."""

from __future__ import annotations

import argparse
import os
from pathlib import Path

from tools.releaseops.commands.options import add_reference_arguments, reference_from_args
from tools.releaseops.core.refs import EventKind
from tools.releaseops.core.runner import CommandRunner
from tools.releaseops.core.settings import load_settings
from tools.releaseops.core.tags import derive_tags, image_refs


def register_parser(subparsers: argparse._SubParsersAction[argparse.ArgumentParser]) -> None:
    parser = subparsers.add_parser("tags", help="Print the image tags derived from a git reference")
    add_reference_arguments(parser)
    parser.add_argument("--repository", help="Prefix each tag with this image repository")
    parser.set_defaults(func=run)


def run(args: argparse.Namespace, runner: CommandRunner) -> int:
    environ = dict(os.environ)
    settings = load_settings(Path(args.project_root))
    ref, event_kind = reference_from_args(args, environ)
    tags = derive_tags(ref, settings.default_branch)
    lines = image_refs(args.repository, tags) if args.repository else list(tags)
    for line in lines:
        runner.emit(line)
    if event_kind is EventKind.PULL_REQUEST:
        runner.emit("# pull request: build-only, nothing is pushed")
    return 0
