"""Image tag derivation from git references."""

from __future__ import annotations

import re
from typing import Callable, Iterable

from tools.releaseops.core.errors import DispatchError
from tools.releaseops.core.refs import (
    BranchRef,
    GitReference,
    ManualRef,
    PullRequestRef,
    ScheduledRef,
    TagRef,
    short_commit,
)

_SEMVER = re.compile(r"^v?(0|[1-9]\d*)\.(0|[1-9]\d*)\.(0|[1-9]\d*)$")
_DOCKER_TAG = re.compile(r"^[A-Za-z0-9_][A-Za-z0-9_.-]{0,127}$")
_INVALID_TAG_CHARS = re.compile(r"[^A-Za-z0-9_.-]+")
_MAX_TAG_LENGTH = 128
_SHORT_COMMIT_SUFFIX = len("-") + 7


def sanitize_branch(name: str, max_length: int = _MAX_TAG_LENGTH - _SHORT_COMMIT_SUFFIX) -> str:
    """Map a branch name onto the docker tag charset (feature/x -> feature-x).

    The result is cut to ``max_length`` so ``<slug>-<sha7>`` stays a legal tag.
    """

    cleaned = _INVALID_TAG_CHARS.sub("-", name.strip())[:max_length].strip("-.")
    if cleaned == "":
        raise DispatchError(f"branch name has no usable tag characters: {name!r}")
    return cleaned


def _branch_tags(branch: str, commit: str, default_branch: str) -> list[str]:
    slug = sanitize_branch(branch)
    if branch == default_branch:
        return ["latest", slug, f"{slug}-{short_commit(commit)}"]
    if slug == "latest":
        raise DispatchError(
            f"branch {branch!r} would publish 'latest' off the default branch {default_branch!r}"
        )
    return [slug, f"{slug}-{short_commit(commit)}"]


def _semver_tags(tag: str) -> list[str]:
    match = _SEMVER.match(tag.strip())
    if match is None:
        raise DispatchError(f"tag is not a vMAJOR.MINOR.PATCH version: {tag!r}")
    major, minor, patch = match.groups()
    plain = [f"{major}.{minor}.{patch}", f"{major}.{minor}", major]
    return [f"v{item}" for item in plain] + plain


_DERIVERS: dict[type, Callable[[GitReference, str], list[str]]] = {
    BranchRef: lambda ref, default: _branch_tags(ref.name, ref.commit, default),
    TagRef: lambda ref, default: _semver_tags(ref.name),
    PullRequestRef: lambda ref, default: [f"pr-{ref.number}"],
    ManualRef: lambda ref, default: _branch_tags(ref.branch, ref.commit, default),
    ScheduledRef: lambda ref, default: _branch_tags(ref.branch, ref.commit, default),
}


def derive_tags(ref: GitReference, default_branch: str = "main") -> tuple[str, ...]:
    deriver = _DERIVERS.get(type(ref))
    if deriver is None:
        raise DispatchError(f"unrecognized git reference: {ref!r}")
    tags = _dedupe(deriver(ref, default_branch))
    invalid = [tag for tag in tags if not _DOCKER_TAG.match(tag)]
    if invalid:
        raise DispatchError(f"derived invalid image tag(s): {', '.join(invalid)}")
    return tags


def image_refs(repository: str, tags: Iterable[str]) -> list[str]:
    return [f"{repository}:{tag}" for tag in tags]


def _dedupe(values: Iterable[str]) -> tuple[str, ...]:
    seen: set[str] = set()
    out: list[str] = []
    for value in values:
        if value in seen:
            continue
        seen.add(value)
        out.append(value)
    return tuple(out)
