"""Release dispatch: tags per reference, pushes per enabled registry."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Protocol, Sequence

from tools.releaseops.core.errors import PushError
from tools.releaseops.core.pipeline import Artifact
from tools.releaseops.core.refs import EventKind, GitReference
from tools.releaseops.core.registry import TargetStatus
from tools.releaseops.core.runner import CommandRunner, RunnerError
from tools.releaseops.core.tags import derive_tags, image_refs

logger = logging.getLogger(__name__)


class Publisher(Protocol):
    def publish(self, source_ref: str, dest_ref: str) -> None: ...


class DockerPublisher:
    """Retags the local image and pushes it with the docker CLI."""

    def __init__(self, runner: CommandRunner) -> None:
        self.runner = runner

    def publish(self, source_ref: str, dest_ref: str) -> None:
        if source_ref != dest_ref:
            self.runner.run(["docker", "tag", source_ref, dest_ref])
        self.runner.run(["docker", "push", dest_ref], stream_output=True)


@dataclass
class DispatchReport:
    tags: tuple[str, ...]
    published: bool
    pushed: set[tuple[str, str]] = field(default_factory=set)
    skipped: list[TargetStatus] = field(default_factory=list)
    failures: list[PushError] = field(default_factory=list)

    @property
    def degraded(self) -> bool:
        return bool(self.failures)


def dispatch(
    ref: GitReference,
    event_kind: EventKind,
    artifact: Artifact,
    targets: Sequence[TargetStatus],
    publisher: Publisher,
    *,
    default_branch: str = "main",
) -> DispatchReport:
    """Push every derived tag to every enabled target.

    Tag derivation happens before any push, so an unrecognized reference
    raises ``DispatchError`` with nothing published. Pull requests are
    build-only. A failed push is recorded and the remaining pushes proceed.
    """

    tags = derive_tags(ref, default_branch)
    if event_kind is EventKind.PULL_REQUEST:
        logger.info("pull request: computed %s, publishing suppressed", ", ".join(tags))
        return DispatchReport(tags=tags, published=False)

    report = DispatchReport(tags=tags, published=True)
    source_ref = str(artifact.handle)
    for status in targets:
        if not status.enabled:
            report.skipped.append(status)
            continue
        for dest_ref in image_refs(status.repository, tags):
            try:
                publisher.publish(source_ref, dest_ref)
            except RunnerError as exc:
                failure = PushError(status.name, dest_ref, str(exc))
                logger.warning("%s", failure)
                report.failures.append(failure)
                continue
            report.pushed.add((status.name, dest_ref))
    return report


def write_github_outputs(report: DispatchReport, path: Path | None) -> None:
    if path is None:
        return
    lines = [
        f"tags={','.join(report.tags)}",
        f"published={'true' if report.published else 'false'}",
        f"degraded={'true' if report.degraded else 'false'}",
    ]
    with Path(path).open("a", encoding="utf-8") as handle:
        handle.write("\n".join(lines) + "\n")
