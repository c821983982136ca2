"""High-level image build orchestration: validate, confirm, run the stage chain."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Callable, Mapping

from tools.releaseops.core.config import (
    KEYGEN_VALUES,
    ConfigurationSet,
    resolve,
    standard_sources,
)
from tools.releaseops.core.errors import ValidationError
from tools.releaseops.core.layout import check_layout, present_optional_files
from tools.releaseops.core.pipeline import BuildResult, build
from tools.releaseops.core.runner import CommandRunner
from tools.releaseops.core.settings import ReleaseSettings, load_settings
from tools.releaseops.core.stages import docker_stages

logger = logging.getLogger(__name__)

DEFAULT_IMAGE_TAG = "keygen-ui:latest"


@dataclass(frozen=True)
class BuildOptions:
    project_root: Path
    output_tag: str
    env_file: Path | None = None
    overrides: Mapping[str, str] = field(default_factory=dict)
    no_cache: bool = False


@dataclass(frozen=True)
class PreparedBuild:
    settings: ReleaseSettings
    config: ConfigurationSet


def prepare_build(options: BuildOptions, environ: Mapping[str, str]) -> PreparedBuild:
    """Resolve configuration and check the source tree.

    Raises one aggregated ``ValidationError`` covering both.
    """

    settings = load_settings(options.project_root)
    env_file = options.env_file
    if env_file is None:
        env_file = settings.project_root / ".env"

    problems: list[str] = []
    config: ConfigurationSet | None = None
    try:
        config = resolve(
            KEYGEN_VALUES,
            standard_sources(overrides=options.overrides, env_file=env_file, environ=environ),
        )
    except ValidationError as exc:
        problems.extend(exc.problems)

    problems.extend(check_layout(settings.source_path))
    if not settings.dockerfile_path.is_file():
        problems.append(f"Dockerfile not found: {settings.dockerfile_path}")

    if problems:
        raise ValidationError(problems)
    assert config is not None
    return PreparedBuild(settings, config)


def describe_build(prepared: PreparedBuild, output_tag: str, runner: CommandRunner) -> None:
    config = prepared.config
    runner.emit("Build configuration:")
    for key, value in config.build_args().items():
        runner.emit(f"  {key}={value}  ({config.origins.get(key, 'default')})")
    runner.emit(f"  Image tag: {output_tag}")
    optional = present_optional_files(prepared.settings.source_path)
    runner.emit(f"  Lockfiles: {', '.join(optional) if optional else 'none'}")


def run_build(
    prepared: PreparedBuild,
    options: BuildOptions,
    runner: CommandRunner,
    environ: Mapping[str, str],
) -> BuildResult:
    if not runner.dry_run:
        runner.require_command("docker")
    stages = docker_stages(
        prepared.settings,
        runner,
        output_tag=options.output_tag,
        environ=environ,
        no_cache=options.no_cache,
    )
    result = build(stages, prepared.config, prepared.settings.source_path)
    logger.info("built %s via %s", result.artifact.handle, " -> ".join(result.order))
    return result


def execute_build(
    options: BuildOptions,
    runner: CommandRunner,
    environ: Mapping[str, str],
    *,
    confirm: Callable[[], bool] | None = None,
) -> BuildResult | None:
    """Validate, optionally confirm, then build. Returns None when declined."""

    prepared = prepare_build(options, environ)
    describe_build(prepared, options.output_tag, runner)
    if confirm is not None and not confirm():
        return None
    result = run_build(prepared, options, runner, environ)
    emit_run_hints(prepared, options.output_tag, runner)
    return result


def emit_run_hints(prepared: PreparedBuild, image_tag: str, runner: CommandRunner) -> None:
    port = prepared.settings.port
    name = prepared.settings.image_name
    runner.emit("")
    runner.emit("To run the container:")
    runner.emit(f"  docker run -d --name {name} -p {port}:{port} --env-file .env {image_tag}")
    runner.emit("")
    runner.emit("To view logs:")
    runner.emit(f"  docker logs -f {name}")
