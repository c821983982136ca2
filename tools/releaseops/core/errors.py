"""Error taxonomy shared by releaseops commands."""

from __future__ import annotations

from typing import Iterable


class ReleaseOpsError(RuntimeError):
    """Base class for orchestration failures surfaced to the CLI."""

    exit_code = 1


class ValidationError(ReleaseOpsError):
    """Inputs are missing or invalid; raised before any stage runs."""

    exit_code = 2

    def __init__(self, problems: Iterable[str]) -> None:
        self.problems = tuple(problems)
        super().__init__(self._render())

    def _render(self) -> str:
        lines = [f"{len(self.problems)} configuration problem(s):"]
        lines.extend(f"  - {problem}" for problem in self.problems)
        return "\n".join(lines)


class BuildError(ReleaseOpsError):
    """A build stage failed; no artifact is exposed."""

    exit_code = 3

    def __init__(self, stage: str, detail: str) -> None:
        self.stage = stage
        self.detail = detail
        super().__init__(f"stage '{stage}' failed: {detail}")


class DispatchError(ReleaseOpsError):
    """A git reference could not be turned into image tags."""

    exit_code = 4


class PushError(ReleaseOpsError):
    """Publishing one reference to one registry target failed."""

    exit_code = 5

    def __init__(self, target: str, ref: str, detail: str) -> None:
        self.target = target
        self.ref = ref
        self.detail = detail
        super().__init__(f"push to {target} failed for {ref}: {detail}")


class FindingsUploadError(PushError):
    """Scan findings could not be delivered to the findings store."""
