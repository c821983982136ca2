"""CLI parser for the image vulnerability scan."""

from __future__ import annotations

import argparse
import os
from pathlib import Path

from tools.releaseops.core import logging
from tools.releaseops.core.build_ops import BuildOptions, prepare_build, run_build
from tools.releaseops.core.config import parse_assignments
from tools.releaseops.core.errors import FindingsUploadError
from tools.releaseops.core.runner import CommandRunner
from tools.releaseops.core.scan import (
    GITHUB_API_URL,
    Severity,
    count_by_severity,
    filter_findings,
    run_trivy,
    to_sarif,
    upload_sarif,
    write_sarif,
)
from tools.releaseops.core.settings import load_settings

DEGRADED_EXIT_CODE = 5


def register_parser(subparsers: argparse._SubParsersAction[argparse.ArgumentParser]) -> None:
    parser = subparsers.add_parser(
        "scan",
        help="Build under the reserved scan tag, run trivy and report MEDIUM+ findings",
    )
    parser.add_argument("-e", "--env-file", help="Env file to read (default: <project>/.env)")
    parser.add_argument(
        "--build-arg",
        action="append",
        default=[],
        metavar="KEY=VALUE",
        help="Override a configuration value (repeatable)",
    )
    parser.add_argument(
        "-o",
        "--output",
        default="trivy-results.sarif",
        help="SARIF report path (relative to the project root)",
    )
    parser.add_argument(
        "--upload",
        action="store_true",
        help="Upload the SARIF report to GitHub code scanning",
    )
    parser.set_defaults(func=run)


def run(args: argparse.Namespace, runner: CommandRunner) -> int:
    environ = dict(os.environ)
    project_root = Path(args.project_root).resolve()
    settings = load_settings(project_root)

    options = BuildOptions(
        project_root=project_root,
        output_tag=settings.scan_tag,
        env_file=Path(args.env_file) if args.env_file else None,
        overrides=parse_assignments(args.build_arg),
    )
    prepared = prepare_build(options, environ)
    run_build(prepared, options, runner, environ)

    logging.step(f"Scanning {settings.scan_tag}")
    findings = run_trivy(runner, settings.scan_tag)
    reported = filter_findings(findings, Severity.MEDIUM)
    dropped = len(findings) - len(reported)
    counts = count_by_severity(reported)
    summary = ", ".join(f"{name}={count}" for name, count in counts.items() if count)
    logging.info(f"Findings at or above MEDIUM: {len(reported)} ({summary or 'none'})")
    if dropped:
        logging.info(f"Dropped {dropped} finding(s) below MEDIUM")

    output = Path(args.output)
    if not output.is_absolute():
        output = project_root / output
    document = to_sarif(reported, image_ref=settings.scan_tag)
    write_sarif(document, output)
    logging.info(f"SARIF written to {output}")

    if not args.upload:
        return 0
    if runner.dry_run:
        runner.emit(f"[dry-run] upload {output} to code scanning")
        return 0
    try:
        upload_sarif(
            document,
            repository=environ.get("GITHUB_REPOSITORY", ""),
            commit_sha=environ.get("GITHUB_SHA", ""),
            ref=environ.get("GITHUB_REF", ""),
            token=environ.get("GITHUB_TOKEN", ""),
            api_url=environ.get("GITHUB_API_URL", "") or GITHUB_API_URL,
        )
    except FindingsUploadError as exc:
        logging.error(str(exc))
        return DEGRADED_EXIT_CODE
    logging.success("Findings uploaded")
    return 0
