from __future__ import annotations

import pytest

from tools.releaseops.core.errors import DispatchError
from tools.releaseops.core.refs import (
    BranchRef,
    EventKind,
    ManualRef,
    PullRequestRef,
    ScheduledRef,
    TagRef,
    reference_from_github,
    short_commit,
)

SHA = "abc1234def5678900000000000000000000000ff"


@pytest.mark.parametrize(
    ("event", "ref", "expected", "kind"),
    [
        ("push", "refs/heads/main", BranchRef("main", SHA), EventKind.PUSH),
        ("push", "refs/heads/feature/x", BranchRef("feature/x", SHA), EventKind.PUSH),
        ("push", "refs/tags/v1.2.3", TagRef("v1.2.3", SHA), EventKind.PUSH),
        ("pull_request", "refs/pull/42/merge", PullRequestRef(42, SHA), EventKind.PULL_REQUEST),
        ("workflow_dispatch", "refs/heads/main", ManualRef("main", SHA), EventKind.MANUAL),
        ("schedule", "refs/heads/main", ScheduledRef("main", SHA), EventKind.SCHEDULED),
    ],
)
def test_reference_from_github(event: str, ref: str, expected, kind: EventKind) -> None:
    env = {"GITHUB_EVENT_NAME": event, "GITHUB_REF": ref, "GITHUB_SHA": SHA}

    assert reference_from_github(env) == (expected, kind)


@pytest.mark.parametrize(
    ("event", "ref"),
    [
        ("push", "refs/notes/commits"),
        ("pull_request", "refs/heads/main"),
        ("release", "refs/tags/v1.0.0"),
        ("push", "refs/heads/"),
        ("", "refs/heads/main"),
    ],
)
def test_unsupported_github_references_fail_closed(event: str, ref: str) -> None:
    env = {"GITHUB_EVENT_NAME": event, "GITHUB_REF": ref, "GITHUB_SHA": SHA}

    with pytest.raises(DispatchError):
        reference_from_github(env)


def test_short_commit() -> None:
    assert short_commit("ABC1234DEF") == "abc1234"
    with pytest.raises(DispatchError):
        short_commit("not-a-sha")
