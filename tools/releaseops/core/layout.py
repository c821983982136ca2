"""Checks on the application source tree consumed by the image build."""

from __future__ import annotations

from pathlib import Path

REQUIRED_FILES = ("package.json",)
OPTIONAL_FILES = ("pnpm-lock.yaml", "pnpm-workspace.yaml")


def check_layout(source_dir: Path) -> list[str]:
    """Return problems with the source tree; never modifies it."""

    if not source_dir.is_dir():
        return [f"source directory not found: {source_dir}"]
    problems: list[str] = []
    for name in REQUIRED_FILES:
        if not (source_dir / name).is_file():
            problems.append(f"required file missing: {source_dir / name}")
    return problems


def present_optional_files(source_dir: Path) -> list[str]:
    return [name for name in OPTIONAL_FILES if (source_dir / name).is_file()]
