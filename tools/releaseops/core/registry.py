"""Registry targets and their per-run enablement."""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from typing import Iterable, Mapping

logger = logging.getLogger(__name__)

_PLACEHOLDER = re.compile(r"\$\{([A-Za-z_][A-Za-z0-9_]*)\}")


@dataclass(frozen=True)
class RegistryTarget:
    name: str
    repository: str
    required_secrets: tuple[str, ...] = ()

    @property
    def always_available(self) -> bool:
        return not self.required_secrets and not self.placeholders

    @property
    def placeholders(self) -> tuple[str, ...]:
        return tuple(_PLACEHOLDER.findall(self.repository))


@dataclass(frozen=True)
class TargetStatus:
    target: RegistryTarget
    enabled: bool
    repository: str = ""
    reason: str = ""

    @property
    def name(self) -> str:
        return self.target.name


DEFAULT_TARGETS: tuple[RegistryTarget, ...] = (
    RegistryTarget("ghcr", "ghcr.io/${GITHUB_REPOSITORY}", ("GITHUB_TOKEN",)),
    RegistryTarget(
        "dockerhub",
        "docker.io/${DOCKERHUB_USERNAME}/keygen-ui",
        ("DOCKERHUB_USERNAME", "DOCKERHUB_TOKEN"),
    ),
)


def evaluate_target(target: RegistryTarget, secrets: Mapping[str, str]) -> TargetStatus:
    """Capability predicate: every required secret and placeholder must be non-empty."""

    needed = list(target.required_secrets)
    needed.extend(name for name in target.placeholders if name not in needed)
    missing = [name for name in needed if not (secrets.get(name) or "").strip()]
    if missing:
        return TargetStatus(target, False, reason=f"missing {', '.join(missing)}")

    repository = _PLACEHOLDER.sub(lambda match: secrets[match.group(1)].strip(), target.repository)
    return TargetStatus(target, True, repository=repository.lower())


def evaluate_targets(
    targets: Iterable[RegistryTarget],
    secrets: Mapping[str, str],
) -> list[TargetStatus]:
    statuses = [evaluate_target(target, secrets) for target in targets]
    for status in statuses:
        if status.enabled:
            logger.info("registry %s enabled (%s)", status.name, status.repository)
        else:
            logger.info("registry %s disabled: %s", status.name, status.reason)
    return statuses
