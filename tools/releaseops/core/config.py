"""Build-time / run-time configuration resolution.

Values are looked up in an explicit, ordered list of sources. The standard
chain, highest precedence first, is::

    override (--build-arg) > env file (.env) > environment > built-in default

Nothing in this module reads ``os.environ`` on its own; callers pass the
ambient environment in as a source.
"""

from __future__ import annotations

import enum
from dataclasses import dataclass, field
from pathlib import Path
from types import MappingProxyType
from typing import Callable, Iterable, Mapping, Sequence
from urllib.parse import urlparse

from dotenv import dotenv_values

from tools.releaseops.core.errors import ValidationError

DEFAULT_API_URL = "https://api.keygen.sh/v1"


class Scope(enum.Enum):
    BUILD = "build-time"
    RUNTIME = "run-time"


Validator = Callable[[str], "str | None"]


@dataclass(frozen=True)
class ConfigValue:
    name: str
    scope: Scope
    default: str | None = None
    required: bool = False
    validator: Validator | None = None
    description: str = ""


@dataclass(frozen=True)
class ConfigSource:
    name: str
    values: Mapping[str, str] = field(default_factory=dict)

    def __post_init__(self) -> None:
        object.__setattr__(self, "values", MappingProxyType(dict(self.values)))

    def lookup(self, key: str) -> str | None:
        value = self.values.get(key)
        if value is None:
            return None
        value = str(value).strip()
        return value or None


@dataclass(frozen=True)
class ConfigurationSet:
    """Resolved values plus the source each one came from."""

    values: Mapping[str, str]
    origins: Mapping[str, str]
    scopes: Mapping[str, Scope]

    def get(self, key: str, default: str | None = None) -> str | None:
        return self.values.get(key, default)

    def require(self, key: str) -> str:
        try:
            return self.values[key]
        except KeyError:
            raise KeyError(f"configuration value not resolved: {key}") from None

    def build_args(self) -> dict[str, str]:
        return {
            key: self.values[key]
            for key in sorted(self.values)
            if self.scopes.get(key) is Scope.BUILD
        }

    def runtime_values(self) -> dict[str, str]:
        return {
            key: self.values[key]
            for key in sorted(self.values)
            if self.scopes.get(key) is Scope.RUNTIME
        }

    def subset(self, keys: Iterable[str]) -> dict[str, str]:
        return {key: self.values[key] for key in keys if key in self.values}


def validate_url(value: str) -> str | None:
    parsed = urlparse(value)
    if parsed.scheme not in ("http", "https") or not parsed.netloc:
        return f"not an absolute http(s) URL: {value!r}"
    return None


KEYGEN_VALUES: tuple[ConfigValue, ...] = (
    ConfigValue(
        "NEXT_PUBLIC_KEYGEN_ACCOUNT_ID",
        Scope.BUILD,
        required=True,
        description="Keygen account identifier baked into the client bundle",
    ),
    ConfigValue(
        "NEXT_PUBLIC_KEYGEN_API_URL",
        Scope.BUILD,
        default=DEFAULT_API_URL,
        required=True,
        validator=validate_url,
        description="Keygen API endpoint",
    ),
    ConfigValue("NODE_ENV", Scope.RUNTIME, default="production"),
    ConfigValue("NEXT_TELEMETRY_DISABLED", Scope.RUNTIME, default="1"),
    ConfigValue("PORT", Scope.RUNTIME, default="3000"),
    ConfigValue("HOSTNAME", Scope.RUNTIME, default="0.0.0.0"),
)


def resolve(
    values: Sequence[ConfigValue],
    sources: Sequence[ConfigSource],
) -> ConfigurationSet:
    """Resolve ``values`` against ``sources`` (highest precedence first).

    Every problem is collected before raising, so the operator sees the full
    list of missing or invalid names in one report.
    """

    resolved: dict[str, str] = {}
    origins: dict[str, str] = {}
    scopes: dict[str, Scope] = {}
    problems: list[str] = []

    for wanted in values:
        scopes[wanted.name] = wanted.scope
        value, origin = _lookup(wanted, sources)
        if value is None:
            if wanted.required and wanted.scope is Scope.BUILD:
                problems.append(f"{wanted.name} is not set ({_hint(sources)})")
            continue
        if wanted.validator is not None:
            message = wanted.validator(value)
            if message:
                problems.append(f"{wanted.name} from {origin}: {message}")
                continue
        resolved[wanted.name] = value
        origins[wanted.name] = origin

    if problems:
        raise ValidationError(problems)

    return ConfigurationSet(
        values=MappingProxyType(resolved),
        origins=MappingProxyType(origins),
        scopes=MappingProxyType(scopes),
    )


def _lookup(wanted: ConfigValue, sources: Sequence[ConfigSource]) -> tuple[str | None, str]:
    for source in sources:
        value = source.lookup(wanted.name)
        if value is not None:
            return value, source.name
    if wanted.default is not None:
        return wanted.default, "default"
    return None, ""


def _hint(sources: Sequence[ConfigSource]) -> str:
    names = ", ".join(source.name for source in sources)
    return f"checked: {names}" if names else "no sources configured"


def parse_assignments(items: Iterable[str]) -> dict[str, str]:
    """Parse repeated ``KEY=VALUE`` command-line overrides."""

    parsed: dict[str, str] = {}
    problems: list[str] = []
    for item in items:
        key, sep, value = item.partition("=")
        key = key.strip()
        if not sep or key == "":
            problems.append(f"override must be KEY=VALUE: {item!r}")
            continue
        parsed[key] = value
    if problems:
        raise ValidationError(problems)
    return parsed


def load_env_file(path: Path | None) -> dict[str, str]:
    if path is None or not Path(path).is_file():
        return {}
    return {
        key: value
        for key, value in dotenv_values(path).items()
        if key and value is not None
    }


def standard_sources(
    *,
    overrides: Mapping[str, str] | None,
    env_file: Path | None,
    environ: Mapping[str, str],
) -> list[ConfigSource]:
    label = str(env_file) if env_file is not None else ".env"
    return [
        ConfigSource("override", dict(overrides or {})),
        ConfigSource(label, load_env_file(env_file)),
        ConfigSource("environment", dict(environ)),
    ]
