"""Subprocess execution for releaseops (docker, trivy)."""

from __future__ import annotations

import logging
import os
import shlex
import shutil
import subprocess
from dataclasses import dataclass
from pathlib import Path
from typing import Callable, Mapping, Sequence

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class CompletedCommand:
    cmd: tuple[str, ...]
    returncode: int
    stdout: str = ""
    stderr: str = ""


class RunnerError(RuntimeError):
    """A command could not be found or exited non-zero."""

    def __init__(
        self,
        message: str,
        *,
        cmd: Sequence[str] = (),
        returncode: int | None = None,
    ) -> None:
        super().__init__(message)
        self.cmd = tuple(cmd)
        self.returncode = returncode


class CommandRunner:
    """Runs commands, or only prints them when ``dry_run`` is set.

    Output of streamed commands goes through ``printer`` line by line so the
    docker build log interleaves with the stage banners.
    """

    def __init__(
        self,
        *,
        dry_run: bool = False,
        printer: Callable[[str], None] | None = None,
    ) -> None:
        self.dry_run = dry_run
        self._printer = printer or print

    def format_cmd(self, cmd: Sequence[str]) -> str:
        return "$ " + " ".join(shlex.quote(str(token)) for token in cmd)

    def emit(self, message: str) -> None:
        self._printer(message)

    def require_command(self, command: str) -> str:
        found = shutil.which(command)
        if found is None:
            raise RunnerError(f"required command not found: {command}", cmd=(command,))
        return str(Path(found).resolve())

    def run(
        self,
        cmd: Sequence[str],
        *,
        cwd: Path | None = None,
        env: Mapping[str, str] | None = None,
        capture_output: bool = False,
        check: bool = True,
        stream_output: bool = False,
    ) -> CompletedCommand:
        tokens = tuple(str(token) for token in cmd)
        rendered = self.format_cmd(tokens)
        if self.dry_run:
            self.emit(f"[dry-run] {rendered}")
            return CompletedCommand(tokens, 0)

        run_env = {**os.environ, **{str(k): str(v) for k, v in (env or {}).items()}}
        workdir = str(cwd) if cwd else None
        logger.debug("running %s (cwd=%s)", rendered, workdir or ".")

        if stream_output:
            self.emit(rendered)
            result = self._stream(tokens, workdir, run_env)
        else:
            proc = subprocess.run(
                list(tokens),
                cwd=workdir,
                env=run_env,
                stdin=subprocess.DEVNULL,
                capture_output=capture_output,
                text=True,
                check=False,
                errors="replace",
            )
            result = CompletedCommand(tokens, proc.returncode, proc.stdout or "", proc.stderr or "")

        if check and result.returncode != 0:
            raise self._failure(result, rendered, attach_output=not stream_output)
        return result

    def _stream(
        self,
        tokens: tuple[str, ...],
        workdir: str | None,
        run_env: Mapping[str, str],
    ) -> CompletedCommand:
        lines: list[str] = []
        with subprocess.Popen(
            list(tokens),
            cwd=workdir,
            env=dict(run_env),
            stdin=subprocess.DEVNULL,
            stdout=subprocess.PIPE,
            stderr=subprocess.STDOUT,
            text=True,
            bufsize=1,
            errors="replace",
        ) as proc:
            assert proc.stdout is not None
            for raw in proc.stdout:
                line = raw.rstrip("\n")
                lines.append(line)
                self.emit(line)
            returncode = proc.wait()
        return CompletedCommand(tokens, returncode, "\n".join(lines))

    @staticmethod
    def _failure(result: CompletedCommand, rendered: str, *, attach_output: bool) -> RunnerError:
        message = f"command failed with exit code {result.returncode}: {rendered}"
        detail = (result.stderr.strip() or result.stdout.strip()) if attach_output else ""
        if detail:
            message = f"{message}\n{detail}"
        return RunnerError(message, cmd=result.cmd, returncode=result.returncode)
