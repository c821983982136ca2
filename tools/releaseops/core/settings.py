"""Project settings (release.yml) parsing."""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import yaml

from tools.releaseops.core.registry import DEFAULT_TARGETS, RegistryTarget

SETTINGS_FILE = "release.yml"

_KNOWN_KEYS = {
    "image_name",
    "default_branch",
    "source_dir",
    "dockerfile",
    "port",
    "platforms",
    "registries",
}


@dataclass(frozen=True)
class ReleaseSettings:
    project_root: Path
    image_name: str = "keygen-ui"
    default_branch: str = "main"
    source_dir: str = "keygen-ui"
    dockerfile: str = "Dockerfile"
    port: int = 3000
    platforms: tuple[str, ...] = ("linux/amd64",)
    registries: tuple[RegistryTarget, ...] = field(default=DEFAULT_TARGETS)

    @property
    def source_path(self) -> Path:
        return self.project_root / self.source_dir

    @property
    def dockerfile_path(self) -> Path:
        return self.project_root / self.dockerfile

    @property
    def scan_tag(self) -> str:
        return f"{self.image_name}:scan"


def load_settings(project_root: Path) -> ReleaseSettings:
    root = Path(project_root).resolve()
    path = root / SETTINGS_FILE
    if not path.is_file():
        return ReleaseSettings(project_root=root)

    payload = yaml.safe_load(path.read_text(encoding="utf-8")) or {}
    if not isinstance(payload, dict):
        raise ValueError(f"{SETTINGS_FILE} must be a mapping: {path}")

    unknown = sorted(set(payload) - _KNOWN_KEYS)
    if unknown:
        raise ValueError(f"unknown keys in {path}: {', '.join(unknown)}")

    kwargs: dict[str, Any] = {}
    for key in ("image_name", "default_branch", "source_dir", "dockerfile"):
        if key in payload:
            kwargs[key] = _require_str(payload, key, path)

    if "port" in payload:
        port = payload["port"]
        if isinstance(port, bool) or not isinstance(port, int) or not 0 < port < 65536:
            raise ValueError(f"port must be an integer in 1-65535: {path}")
        kwargs["port"] = port

    if "platforms" in payload:
        platforms = payload["platforms"]
        if not isinstance(platforms, list) or not all(
            isinstance(item, str) and item.strip() for item in platforms
        ):
            raise ValueError(f"platforms must be a list of strings: {path}")
        kwargs["platforms"] = tuple(item.strip() for item in platforms)

    if "registries" in payload:
        kwargs["registries"] = _parse_registries(payload["registries"], path)

    return ReleaseSettings(project_root=root, **kwargs)


def _parse_registries(raw: Any, path: Path) -> tuple[RegistryTarget, ...]:
    if not isinstance(raw, list):
        raise ValueError(f"registries must be a list: {path}")
    targets: list[RegistryTarget] = []
    for index, entry in enumerate(raw):
        if not isinstance(entry, dict):
            raise ValueError(f"registries[{index}] must be a mapping: {path}")
        name = _require_str(entry, "name", path, prefix=f"registries[{index}].")
        repository = _require_str(entry, "repository", path, prefix=f"registries[{index}].")
        secrets = entry.get("requires", [])
        if not isinstance(secrets, list) or not all(isinstance(item, str) for item in secrets):
            raise ValueError(f"registries[{index}].requires must be a list of strings: {path}")
        targets.append(RegistryTarget(name, repository, tuple(secrets)))
    names = [target.name for target in targets]
    if len(set(names)) != len(names):
        raise ValueError(f"registry names must be unique: {path}")
    return tuple(targets)


def _require_str(payload: dict[str, Any], key: str, path: Path, *, prefix: str = "") -> str:
    value = payload.get(key)
    if not isinstance(value, str) or value.strip() == "":
        raise ValueError(f"{prefix}{key} must be a non-empty string: {path}")
    return value.strip()
