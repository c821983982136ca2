from __future__ import annotations

from pathlib import Path

import pytest

from tools.releaseops.core.dispatch import DockerPublisher, dispatch, write_github_outputs
from tools.releaseops.core.errors import DispatchError
from tools.releaseops.core.pipeline import Artifact
from tools.releaseops.core.refs import BranchRef, EventKind, PullRequestRef, TagRef
from tools.releaseops.core.registry import RegistryTarget, evaluate_targets
from tools.releaseops.core.runner import RunnerError

ARTIFACT = Artifact(stage="runner", handle="keygen-ui:latest", fingerprint="f" * 64)

TARGETS = (
    RegistryTarget("ghcr", "ghcr.io/acme/keygen-ui"),
    RegistryTarget("dockerhub", "docker.io/acme/keygen-ui", ("DOCKERHUB_TOKEN",)),
)


class RecordingPublisher:
    def __init__(self, fail_on: set[str] | None = None) -> None:
        self.published: list[tuple[str, str]] = []
        self.fail_on = fail_on or set()

    def publish(self, source_ref: str, dest_ref: str) -> None:
        if dest_ref in self.fail_on:
            raise RunnerError(f"denied: {dest_ref}")
        self.published.append((source_ref, dest_ref))


def test_default_branch_push_reaches_every_enabled_target() -> None:
    publisher = RecordingPublisher()
    statuses = evaluate_targets(TARGETS, {"DOCKERHUB_TOKEN": "t"})

    report = dispatch(BranchRef("main", "abc1234"), EventKind.PUSH, ARTIFACT, statuses, publisher)

    assert report.tags == ("latest", "main", "main-abc1234")
    assert report.published
    assert len(report.pushed) == 6
    assert ("dockerhub", "docker.io/acme/keygen-ui:main-abc1234") in report.pushed
    assert all(source == "keygen-ui:latest" for source, _ in publisher.published)


def test_version_tag_push() -> None:
    publisher = RecordingPublisher()
    statuses = evaluate_targets(TARGETS[:1], {})

    report = dispatch(TagRef("v2.1.0", "abc1234"), EventKind.PUSH, ARTIFACT, statuses, publisher)

    assert [dest for _, dest in publisher.published] == [
        "ghcr.io/acme/keygen-ui:v2.1.0",
        "ghcr.io/acme/keygen-ui:v2.1",
        "ghcr.io/acme/keygen-ui:v2",
        "ghcr.io/acme/keygen-ui:2.1.0",
        "ghcr.io/acme/keygen-ui:2.1",
        "ghcr.io/acme/keygen-ui:2",
    ]
    assert not report.degraded


def test_pull_request_never_pushes() -> None:
    publisher = RecordingPublisher()
    statuses = evaluate_targets(TARGETS, {"DOCKERHUB_TOKEN": "t"})

    report = dispatch(
        PullRequestRef(42, "abc1234"),
        EventKind.PULL_REQUEST,
        ARTIFACT,
        statuses,
        publisher,
    )

    assert report.tags == ("pr-42",)
    assert not report.published
    assert report.pushed == set()
    assert publisher.published == []


def test_disabled_target_is_skipped_without_error() -> None:
    publisher = RecordingPublisher()
    statuses = evaluate_targets(TARGETS, {})

    report = dispatch(BranchRef("main", "abc1234"), EventKind.PUSH, ARTIFACT, statuses, publisher)

    assert {target for target, _ in report.pushed} == {"ghcr"}
    assert [status.name for status in report.skipped] == ["dockerhub"]
    assert not report.degraded


def test_push_failure_is_isolated_per_target() -> None:
    publisher = RecordingPublisher(fail_on={"ghcr.io/acme/keygen-ui:main"})
    statuses = evaluate_targets(TARGETS, {"DOCKERHUB_TOKEN": "t"})

    report = dispatch(BranchRef("main", "abc1234"), EventKind.PUSH, ARTIFACT, statuses, publisher)

    assert report.degraded
    assert [failure.ref for failure in report.failures] == ["ghcr.io/acme/keygen-ui:main"]
    assert report.failures[0].target == "ghcr"
    assert len(report.pushed) == 5
    assert ("ghcr", "ghcr.io/acme/keygen-ui:main-abc1234") in report.pushed


def test_unrecognized_tag_fails_before_any_push() -> None:
    publisher = RecordingPublisher()
    statuses = evaluate_targets(TARGETS, {"DOCKERHUB_TOKEN": "t"})

    with pytest.raises(DispatchError):
        dispatch(TagRef("nightly", "abc1234"), EventKind.PUSH, ARTIFACT, statuses, publisher)

    assert publisher.published == []


def test_docker_publisher_tags_then_pushes(make_runner) -> None:
    runner = make_runner()

    DockerPublisher(runner).publish("keygen-ui:latest", "ghcr.io/acme/keygen-ui:main")

    assert runner.commands == [
        ["docker", "tag", "keygen-ui:latest", "ghcr.io/acme/keygen-ui:main"],
        ["docker", "push", "ghcr.io/acme/keygen-ui:main"],
    ]


def test_write_github_outputs(tmp_path: Path) -> None:
    output = tmp_path / "github_output"
    report = dispatch(
        PullRequestRef(7, "abc1234"),
        EventKind.PULL_REQUEST,
        ARTIFACT,
        [],
        RecordingPublisher(),
    )

    write_github_outputs(report, output)

    content = output.read_text(encoding="utf-8")
    assert "tags=pr-7\n" in content
    assert "published=false\n" in content
