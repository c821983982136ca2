"""CLI parser for build + release dispatch."""

from __future__ import annotations

import argparse
import os
from pathlib import Path

from tools.releaseops.commands.options import add_reference_arguments, reference_from_args
from tools.releaseops.core import logging
from tools.releaseops.core.build_ops import BuildOptions, prepare_build, run_build
from tools.releaseops.core.config import parse_assignments
from tools.releaseops.core.dispatch import DockerPublisher, dispatch, write_github_outputs
from tools.releaseops.core.registry import evaluate_targets
from tools.releaseops.core.runner import CommandRunner
from tools.releaseops.core.settings import load_settings
from tools.releaseops.core.tags import derive_tags

DEGRADED_EXIT_CODE = 5


def register_parser(subparsers: argparse._SubParsersAction[argparse.ArgumentParser]) -> None:
    parser = subparsers.add_parser(
        "publish",
        help="Build the image and push derived tags to every enabled registry",
    )
    add_reference_arguments(parser)
    parser.add_argument("-e", "--env-file", help="Env file to read (default: <project>/.env)")
    parser.add_argument(
        "--build-arg",
        action="append",
        default=[],
        metavar="KEY=VALUE",
        help="Override a configuration value (repeatable)",
    )
    parser.add_argument("--no-cache", action="store_true", help="Build without layer cache")
    parser.set_defaults(func=run)


def run(args: argparse.Namespace, runner: CommandRunner) -> int:
    environ = dict(os.environ)
    project_root = Path(args.project_root).resolve()
    settings = load_settings(project_root)

    # Resolve the reference first so an unknown shape fails before the build.
    ref, event_kind = reference_from_args(args, environ)
    tags = derive_tags(ref, settings.default_branch)
    logging.info(f"Reference: {ref} ({event_kind.value})")
    logging.info(f"Tags: {', '.join(tags)}")

    options = BuildOptions(
        project_root=project_root,
        output_tag=f"{settings.image_name}:{tags[0]}",
        env_file=Path(args.env_file) if args.env_file else None,
        overrides=parse_assignments(args.build_arg),
        no_cache=bool(args.no_cache),
    )
    prepared = prepare_build(options, environ)
    result = run_build(prepared, options, runner, environ)

    statuses = evaluate_targets(settings.registries, environ)
    report = dispatch(
        ref,
        event_kind,
        result.artifact,
        statuses,
        DockerPublisher(runner),
        default_branch=settings.default_branch,
    )

    github_output = environ.get("GITHUB_OUTPUT", "").strip()
    write_github_outputs(report, Path(github_output) if github_output else None)

    if not report.published:
        logging.success("Build-only run (pull request): nothing was pushed")
        return 0
    for status in report.skipped:
        logging.warning(f"Registry {status.name} skipped: {status.reason}")
    for target, dest_ref in sorted(report.pushed):
        logging.info(f"Pushed {dest_ref} ({target})")
    if report.degraded:
        for failure in report.failures:
            logging.error(str(failure))
        logging.error(f"{len(report.failures)} push(es) failed; completed pushes were kept")
        return DEGRADED_EXIT_CODE
    if not report.pushed:
        logging.warning("No registry target was enabled; nothing was pushed")
    else:
        logging.success(f"Published {len(report.pushed)} image reference(s)")
    return 0
