"""Docker stage chain for the keygen-ui image (deps -> builder -> runner)."""

from __future__ import annotations

from typing import Mapping

from tools.releaseops.core.config import KEYGEN_VALUES, Scope
from tools.releaseops.core.pipeline import BuildStage, StageContext
from tools.releaseops.core.runner import CommandRunner
from tools.releaseops.core.settings import ReleaseSettings

BUILD_KEYS = tuple(value.name for value in KEYGEN_VALUES if value.scope is Scope.BUILD)

_PROXY_ALIAS_PAIRS: tuple[tuple[str, str], ...] = (
    ("HTTP_PROXY", "http_proxy"),
    ("HTTPS_PROXY", "https_proxy"),
    ("NO_PROXY", "no_proxy"),
)


def proxy_build_args(environ: Mapping[str, str]) -> dict[str, str]:
    args: dict[str, str] = {}
    for upper, lower in _PROXY_ALIAS_PAIRS:
        value = (environ.get(upper, "") or "").strip() or (environ.get(lower, "") or "").strip()
        if value == "":
            continue
        args[upper] = value
        args[lower] = value
    return args


def buildx_command(
    settings: ReleaseSettings,
    *,
    target: str,
    tag: str,
    build_args: Mapping[str, str],
    no_cache: bool = False,
) -> list[str]:
    cmd = ["docker", "buildx", "build", "--target", target, "--load", "--tag", tag]
    if settings.platforms:
        cmd.extend(["--platform", ",".join(settings.platforms)])
    if no_cache:
        cmd.append("--no-cache")
    for key in sorted(build_args):
        cmd.extend(["--build-arg", f"{key}={build_args[key]}"])
    cmd.extend(["--file", str(settings.dockerfile_path), str(settings.project_root)])
    return cmd


def docker_stages(
    settings: ReleaseSettings,
    runner: CommandRunner,
    *,
    output_tag: str,
    environ: Mapping[str, str],
    no_cache: bool = False,
) -> list[BuildStage]:
    """Return the three Dockerfile stages wired through ``runner``.

    Intermediate stages are tagged ``<image>:<stage>-<fingerprint>``; the
    final stage is loaded under ``output_tag``.
    """

    proxies = proxy_build_args(environ)

    def _build(ctx: StageContext, tag: str, bound: Mapping[str, str]) -> str:
        args = dict(proxies)
        args.update(bound)
        runner.emit(f"Building stage '{ctx.stage}' -> {tag}")
        runner.run(
            buildx_command(settings, target=ctx.stage, tag=tag, build_args=args, no_cache=no_cache),
            cwd=settings.project_root,
            stream_output=True,
        )
        return tag

    def intermediate_tag(ctx: StageContext) -> str:
        return f"{settings.image_name}:{ctx.stage}-{ctx.fingerprint[:12]}"

    def deps(ctx: StageContext) -> str:
        return _build(ctx, intermediate_tag(ctx), {})

    def builder(ctx: StageContext) -> str:
        return _build(ctx, intermediate_tag(ctx), ctx.config_values)

    def runner_stage(ctx: StageContext) -> str:
        # The runner stage copies from builder, so it rebuilds with the same bound values.
        return _build(ctx, output_tag, ctx.artifact("builder").bound_config)

    return [
        BuildStage("deps", deps),
        BuildStage("builder", builder, depends_on=("deps",), config_keys=BUILD_KEYS),
        BuildStage("runner", runner_stage, depends_on=("builder",)),
    ]
