"""Git references that trigger a release run."""

from __future__ import annotations

import enum
import re
from dataclasses import dataclass
from typing import Mapping, Union

from tools.releaseops.core.errors import DispatchError

_SHA = re.compile(r"^[0-9a-fA-F]{7,40}$")
_PULL_REF = re.compile(r"^refs/pull/(\d+)/(?:merge|head)$")


class EventKind(enum.Enum):
    PUSH = "push"
    PULL_REQUEST = "pull_request"
    MANUAL = "manual"
    SCHEDULED = "scheduled"


@dataclass(frozen=True)
class BranchRef:
    name: str
    commit: str


@dataclass(frozen=True)
class TagRef:
    name: str
    commit: str


@dataclass(frozen=True)
class PullRequestRef:
    number: int
    commit: str


@dataclass(frozen=True)
class ManualRef:
    branch: str
    commit: str


@dataclass(frozen=True)
class ScheduledRef:
    branch: str
    commit: str


GitReference = Union[BranchRef, TagRef, PullRequestRef, ManualRef, ScheduledRef]


def short_commit(sha: str) -> str:
    value = (sha or "").strip()
    if not _SHA.match(value):
        raise DispatchError(f"invalid commit id: {sha!r}")
    return value[:7].lower()


def event_kind_for(ref: GitReference) -> EventKind:
    if isinstance(ref, PullRequestRef):
        return EventKind.PULL_REQUEST
    if isinstance(ref, ManualRef):
        return EventKind.MANUAL
    if isinstance(ref, ScheduledRef):
        return EventKind.SCHEDULED
    return EventKind.PUSH


def reference_from_github(env: Mapping[str, str]) -> tuple[GitReference, EventKind]:
    """Build the reference from GitHub Actions variables.

    Unrecognized combinations raise ``DispatchError`` instead of guessing.
    """

    event = (env.get("GITHUB_EVENT_NAME") or "").strip()
    ref = (env.get("GITHUB_REF") or "").strip()
    sha = (env.get("GITHUB_SHA") or "").strip()
    if not event or not ref:
        raise DispatchError("GITHUB_EVENT_NAME and GITHUB_REF must be set")

    if event == "push":
        if ref.startswith("refs/heads/"):
            return BranchRef(_strip(ref, "refs/heads/"), sha), EventKind.PUSH
        if ref.startswith("refs/tags/"):
            return TagRef(_strip(ref, "refs/tags/"), sha), EventKind.PUSH
    elif event in ("pull_request", "pull_request_target"):
        match = _PULL_REF.match(ref)
        if match:
            return PullRequestRef(int(match.group(1)), sha), EventKind.PULL_REQUEST
    elif event == "workflow_dispatch" and ref.startswith("refs/heads/"):
        return ManualRef(_strip(ref, "refs/heads/"), sha), EventKind.MANUAL
    elif event == "schedule" and ref.startswith("refs/heads/"):
        return ScheduledRef(_strip(ref, "refs/heads/"), sha), EventKind.SCHEDULED

    raise DispatchError(f"unsupported reference: event={event!r} ref={ref!r}")


def _strip(ref: str, prefix: str) -> str:
    name = ref[len(prefix) :]
    if name == "":
        raise DispatchError(f"empty reference name: {ref!r}")
    return name
