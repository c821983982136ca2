"""Stage-graph executor for the image build.

Stages run one at a time in dependency order. A stage only sees the
artifacts it declares in ``depends_on`` and the configuration keys it
declares in ``config_keys``. The first failing stage aborts the run.
"""

from __future__ import annotations

import hashlib
import json
import logging
from dataclasses import dataclass, field
from pathlib import Path
from types import MappingProxyType
from typing import Any, Callable, Mapping, Sequence

from tools.releaseops.core.config import ConfigurationSet
from tools.releaseops.core.errors import BuildError, ReleaseOpsError
from tools.releaseops.core.runner import RunnerError

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Artifact:
    stage: str
    handle: Any
    bound_config: Mapping[str, str] = field(default_factory=dict)
    fingerprint: str = ""


@dataclass(frozen=True)
class StageContext:
    stage: str
    source_tree: Path
    fingerprint: str
    _artifacts: Mapping[str, Artifact]
    _config: Mapping[str, str]

    def artifact(self, stage: str) -> Artifact:
        try:
            return self._artifacts[stage]
        except KeyError:
            raise KeyError(f"stage '{self.stage}' did not declare a dependency on '{stage}'") from None

    def config(self, key: str) -> str:
        try:
            return self._config[key]
        except KeyError:
            raise KeyError(f"stage '{self.stage}' did not declare config key '{key}'") from None

    @property
    def config_values(self) -> Mapping[str, str]:
        return self._config


@dataclass(frozen=True)
class BuildStage:
    name: str
    action: Callable[[StageContext], Any]
    depends_on: tuple[str, ...] = ()
    config_keys: tuple[str, ...] = ()


@dataclass(frozen=True)
class BuildResult:
    artifact: Artifact
    order: tuple[str, ...]


def plan(stages: Sequence[BuildStage]) -> list[BuildStage]:
    """Validate the graph and return a deterministic execution order.

    Among stages that are ready at the same time, declaration order wins.
    """

    by_name: dict[str, BuildStage] = {}
    for stage in stages:
        if stage.name in by_name:
            raise BuildError(stage.name, "duplicate stage name")
        by_name[stage.name] = stage
    if not by_name:
        raise BuildError("<pipeline>", "no stages declared")

    for stage in stages:
        for dep in stage.depends_on:
            if dep not in by_name:
                raise BuildError(stage.name, f"unknown dependency '{dep}'")

    ordered: list[BuildStage] = []
    done: set[str] = set()
    pending = list(stages)
    while pending:
        ready = next((s for s in pending if all(d in done for d in s.depends_on)), None)
        if ready is None:
            cycle = ", ".join(s.name for s in pending)
            raise BuildError("<pipeline>", f"dependency cycle among: {cycle}")
        ordered.append(ready)
        done.add(ready.name)
        pending.remove(ready)
    return ordered


def build(
    stages: Sequence[BuildStage],
    config: ConfigurationSet,
    source_tree: Path,
) -> BuildResult:
    ordered = plan(stages)
    remaining_consumers = _consumer_counts(ordered)
    artifacts: dict[str, Artifact] = {}

    for stage in ordered:
        missing = [key for key in stage.config_keys if config.get(key) is None]
        if missing:
            raise BuildError(stage.name, f"unresolved config key(s): {', '.join(missing)}")
        bound = MappingProxyType(config.subset(stage.config_keys))
        upstream = {dep: artifacts[dep] for dep in stage.depends_on}
        fingerprint = _fingerprint(stage.name, bound, upstream)
        context = StageContext(
            stage=stage.name,
            source_tree=source_tree,
            fingerprint=fingerprint,
            _artifacts=MappingProxyType(upstream),
            _config=bound,
        )

        logger.info("stage %s: start", stage.name)
        try:
            handle = stage.action(context)
        except BuildError:
            raise
        except (RunnerError, ReleaseOpsError, OSError, KeyError, ValueError) as exc:
            raise BuildError(stage.name, str(exc)) from exc
        logger.info("stage %s: done", stage.name)

        artifacts[stage.name] = Artifact(stage.name, handle, bound, fingerprint)
        for dep in stage.depends_on:
            remaining_consumers[dep] -= 1
            if remaining_consumers[dep] == 0:
                logger.debug("releasing intermediate artifact %s", dep)
                del artifacts[dep]

    final = ordered[-1]
    return BuildResult(artifacts[final.name], tuple(stage.name for stage in ordered))


def _consumer_counts(stages: Sequence[BuildStage]) -> dict[str, int]:
    counts = {stage.name: 0 for stage in stages}
    for stage in stages:
        for dep in stage.depends_on:
            counts[dep] += 1
    return counts


def _fingerprint(stage: str, bound: Mapping[str, str], upstream: Mapping[str, Artifact]) -> str:
    payload = {
        "stage": stage,
        "config": dict(sorted(bound.items())),
        "upstream": {name: artifact.fingerprint for name, artifact in sorted(upstream.items())},
    }
    digest = hashlib.sha256(json.dumps(payload, sort_keys=True).encode("utf-8"))
    return digest.hexdigest()
