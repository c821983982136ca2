"""Argument helpers shared by the reference-aware subcommands."""

from __future__ import annotations

import argparse
from typing import Mapping

from tools.releaseops.core.errors import DispatchError
from tools.releaseops.core.refs import (
    BranchRef,
    EventKind,
    GitReference,
    ManualRef,
    PullRequestRef,
    ScheduledRef,
    TagRef,
    event_kind_for,
    reference_from_github,
)


def add_reference_arguments(parser: argparse.ArgumentParser) -> None:
    group = parser.add_mutually_exclusive_group(required=True)
    group.add_argument(
        "--from-github",
        action="store_true",
        help="Read GITHUB_EVENT_NAME / GITHUB_REF / GITHUB_SHA from the environment",
    )
    group.add_argument("--branch", help="Branch push")
    group.add_argument("--tag-ref", metavar="TAG", help="Version tag push (vX.Y.Z)")
    group.add_argument("--pr", type=int, metavar="NUMBER", help="Pull request number")
    group.add_argument("--manual", metavar="BRANCH", help="Manual dispatch on BRANCH")
    group.add_argument("--scheduled", metavar="BRANCH", help="Scheduled run on BRANCH")
    parser.add_argument("--sha", default="", help="Commit id (defaults to GITHUB_SHA)")


def reference_from_args(
    args: argparse.Namespace,
    environ: Mapping[str, str],
) -> tuple[GitReference, EventKind]:
    if args.from_github:
        return reference_from_github(environ)

    sha = (args.sha or environ.get("GITHUB_SHA", "")).strip()
    ref: GitReference
    if args.branch:
        ref = BranchRef(args.branch, sha)
    elif args.tag_ref:
        ref = TagRef(args.tag_ref, sha)
    elif args.pr is not None:
        if args.pr <= 0:
            raise DispatchError(f"pull request number must be positive: {args.pr}")
        ref = PullRequestRef(args.pr, sha)
    elif args.manual:
        ref = ManualRef(args.manual, sha)
    elif args.scheduled:
        ref = ScheduledRef(args.scheduled, sha)
    else:
        raise DispatchError("no git reference given")
    return ref, event_kind_for(ref)
