from __future__ import annotations

from pathlib import Path
from typing import Callable

import pytest

from tools.releaseops.core.runner import CompletedCommand, RunnerError

_ENV_KEYS = (
    "NEXT_PUBLIC_KEYGEN_ACCOUNT_ID",
    "NEXT_PUBLIC_KEYGEN_API_URL",
    "IMAGE_TAG",
    "CI",
    "GITHUB_EVENT_NAME",
    "GITHUB_REF",
    "GITHUB_SHA",
    "GITHUB_REPOSITORY",
    "GITHUB_OUTPUT",
    "GITHUB_TOKEN",
    "DOCKERHUB_USERNAME",
    "DOCKERHUB_TOKEN",
    "HTTP_PROXY",
    "http_proxy",
    "HTTPS_PROXY",
    "https_proxy",
    "NO_PROXY",
    "no_proxy",
)


class FakeRunner:
    """Records commands instead of running them."""

    def __init__(
        self,
        *,
        dry_run: bool = False,
        fail_when: Callable[[list[str]], bool] | None = None,
        stdout: str = "",
    ) -> None:
        self.dry_run = dry_run
        self.commands: list[list[str]] = []
        self.messages: list[str] = []
        self._fail_when = fail_when
        self._stdout = stdout

    def emit(self, message: str) -> None:
        self.messages.append(message)

    def require_command(self, command: str) -> str:
        return f"/usr/bin/{command}"

    def run(
        self,
        cmd,
        *,
        cwd=None,
        env=None,
        capture_output: bool = False,
        check: bool = True,
        stream_output: bool = False,
    ) -> CompletedCommand:
        del cwd, env, stream_output
        command = [str(token) for token in cmd]
        self.commands.append(command)
        if self._fail_when is not None and self._fail_when(command):
            if check:
                raise RunnerError(f"command failed with exit code 1: {' '.join(command)}")
            return CompletedCommand(tuple(command), 1, "", "")
        stdout = self._stdout if capture_output else ""
        return CompletedCommand(tuple(command), 0, stdout, "")

    def targets_built(self) -> list[str]:
        built: list[str] = []
        for command in self.commands:
            if command[:3] == ["docker", "buildx", "build"]:
                built.append(command[command.index("--target") + 1])
        return built


@pytest.fixture
def clean_env(monkeypatch: pytest.MonkeyPatch) -> pytest.MonkeyPatch:
    for key in _ENV_KEYS:
        monkeypatch.delenv(key, raising=False)
    return monkeypatch


@pytest.fixture
def project(tmp_path: Path) -> Path:
    """A minimal checkout: Dockerfile plus the keygen-ui source tree."""

    (tmp_path / "Dockerfile").write_text("FROM scratch AS deps\n", encoding="utf-8")
    source = tmp_path / "keygen-ui"
    source.mkdir()
    (source / "package.json").write_text('{"name": "keygen-ui"}\n', encoding="utf-8")
    (source / "pnpm-lock.yaml").write_text("lockfileVersion: '9.0'\n", encoding="utf-8")
    return tmp_path


@pytest.fixture
def make_runner() -> type[FakeRunner]:
    return FakeRunner
