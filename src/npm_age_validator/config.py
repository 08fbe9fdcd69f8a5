"""Validator configuration: defaults, deep merge, JSON load/save.

Configuration files are JSON objects using the camelCase keys below. Every
field is optional; user values are merged over the defaults section by section
(``registry``, ``security`` and ``output`` independently) while top-level
values such as ``trustedPackages`` replace the default wholesale.

The structure is checked against ``schemas/config.schema.json`` before it is
merged, so a malformed file fails before any validation work begins.
"""

from __future__ import annotations

import json
import os
from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

from jsonschema import Draft202012Validator

DEFAULT_REGISTRY_URL = "https://registry.npmjs.org"
DEFAULT_MINIMUM_AGE_HOURS = 24
DEFAULT_TRUSTED_PACKAGES = (
    "@angular/*",
    "@types/*",
    "typescript",
    "rxjs",
    "zone.js",
    "@microsoft/*",
    "eslint*",
    "prettier",
    "jest",
    "husky",
)
SUPPORTED_FORMATS = ("console", "json")

DEFAULT_CONFIG_FILENAME = ".npm-minimum-age-validation.json"
CONFIG_PATH_ENV_VAR = "NPM_AGE_VALIDATOR_CONFIG"
SCHEMA_PATH = Path(__file__).resolve().parent / "schemas" / "config.schema.json"

SECTIONS = ("registry", "security", "output")

_REGISTRY_KEYS = {
    "url": "url",
    "concurrency": "concurrency",
    "timeout": "timeout",
    "retries": "retries",
    "cacheEnabled": "cache_enabled",
    "cacheTtlMinutes": "cache_ttl_minutes",
}
_SECURITY_KEYS = {
    "enforceHttps": "enforce_https",
    "allowPrivatePackages": "allow_private_packages",
    "blocklistPatterns": "blocklist_patterns",
    "requireSignedPackages": "require_signed_packages",
}
_OUTPUT_KEYS = {
    "format": "format",
    "verbose": "verbose",
    "colors": "colors",
    "logLevel": "log_level",
}


class ConfigError(RuntimeError):
    """Raised when configuration cannot be loaded, saved or is invalid."""


def _kwargs(data: Mapping[str, Any] | None, keys: Mapping[str, str]) -> dict[str, Any]:
    data = data or {}
    return {attr: data[key] for key, attr in keys.items() if key in data}


def _as_dict(obj: object, keys: Mapping[str, str]) -> dict[str, Any]:
    out: dict[str, Any] = {}
    for key, attr in keys.items():
        value = getattr(obj, attr)
        out[key] = list(value) if isinstance(value, tuple) else value
    return out


@dataclass(slots=True, frozen=True)
class RegistryConfig:
    """Registry endpoint and request policy. ``timeout`` is in milliseconds."""

    url: str = DEFAULT_REGISTRY_URL
    concurrency: int = 10
    timeout: float = 8000
    retries: int = 3
    cache_enabled: bool = True
    cache_ttl_minutes: float = 60

    @classmethod
    def from_dict(cls, data: Mapping[str, Any] | None) -> RegistryConfig:
        return cls(**_kwargs(data, _REGISTRY_KEYS))

    def to_dict(self) -> dict[str, Any]:
        return _as_dict(self, _REGISTRY_KEYS)


@dataclass(slots=True, frozen=True)
class SecurityConfig:
    enforce_https: bool = True
    allow_private_packages: bool = True
    blocklist_patterns: tuple[str, ...] = ()
    require_signed_packages: bool = False

    @classmethod
    def from_dict(cls, data: Mapping[str, Any] | None) -> SecurityConfig:
        kwargs = _kwargs(data, _SECURITY_KEYS)
        if "blocklist_patterns" in kwargs:
            kwargs["blocklist_patterns"] = tuple(kwargs["blocklist_patterns"])
        return cls(**kwargs)

    def to_dict(self) -> dict[str, Any]:
        return _as_dict(self, _SECURITY_KEYS)


@dataclass(slots=True, frozen=True)
class OutputConfig:
    format: str = "console"
    verbose: bool = False
    colors: bool = True
    log_level: str = "info"

    @classmethod
    def from_dict(cls, data: Mapping[str, Any] | None) -> OutputConfig:
        return cls(**_kwargs(data, _OUTPUT_KEYS))

    def to_dict(self) -> dict[str, Any]:
        return _as_dict(self, _OUTPUT_KEYS)


@dataclass(slots=True, frozen=True)
class ValidatorConfig:
    """Top-level settings container."""

    minimum_age_hours: float = DEFAULT_MINIMUM_AGE_HOURS
    trusted_packages: tuple[str, ...] = DEFAULT_TRUSTED_PACKAGES
    registry: RegistryConfig = field(default_factory=RegistryConfig)
    security: SecurityConfig = field(default_factory=SecurityConfig)
    output: OutputConfig = field(default_factory=OutputConfig)

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> ValidatorConfig:
        """Build a config from camelCase data; missing fields take defaults."""
        kwargs: dict[str, Any] = {}
        if "minimumAgeHours" in data:
            kwargs["minimum_age_hours"] = data["minimumAgeHours"]
        if "trustedPackages" in data:
            kwargs["trusted_packages"] = tuple(data["trustedPackages"] or ())
        return cls(
            registry=RegistryConfig.from_dict(data.get("registry")),
            security=SecurityConfig.from_dict(data.get("security")),
            output=OutputConfig.from_dict(data.get("output")),
            **kwargs,
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "minimumAgeHours": self.minimum_age_hours,
            "trustedPackages": list(self.trusted_packages),
            "registry": self.registry.to_dict(),
            "security": self.security.to_dict(),
            "output": self.output.to_dict(),
        }

    def merged(self, overrides: Mapping[str, Any]) -> ValidatorConfig:
        """Return a copy with ``overrides`` deep-merged over this config."""
        return ValidatorConfig.from_dict(merge_config(self.to_dict(), overrides))


def create_default_config() -> ValidatorConfig:
    return ValidatorConfig()


def merge_config(base: Mapping[str, Any], overrides: Mapping[str, Any]) -> dict[str, Any]:
    """Merge ``overrides`` over ``base``.

    Sections in ``SECTIONS`` are merged key by key; everything else in
    ``overrides`` replaces the value in ``base``.
    """
    merged: dict[str, Any] = {**base, **overrides}
    for section in SECTIONS:
        merged[section] = {**(base.get(section) or {}), **(overrides.get(section) or {})}
    return merged


def _format_errors(errors: Iterable) -> str:
    messages = []
    for error in errors:
        pointer = "/".join(str(p) for p in error.path)
        messages.append(f"- {pointer or '<root>'}: {error.message}")
    return "\n".join(messages)


def validate_config_data(data: Any, schema_path: Path = SCHEMA_PATH) -> None:
    """Check user configuration data against the JSON schema.

    Raises:
        ConfigError: listing every schema violation, one per line.
    """
    schema = json.loads(schema_path.read_text(encoding="utf-8"))
    validator = Draft202012Validator(schema)
    errors = sorted(validator.iter_errors(data), key=lambda e: list(e.path))
    if errors:
        raise ConfigError("Invalid configuration:\n" + _format_errors(errors))


def resolve_config_path(path: Path | str | None = None, cwd: Path | None = None) -> Path | None:
    """Resolve which configuration file to load, if any.

    Priority:
    1. Explicit path argument
    2. NPM_AGE_VALIDATOR_CONFIG environment variable
    3. ``.npm-minimum-age-validation.json`` in ``cwd`` when it exists
    """
    if path is not None:
        return Path(path)

    env_path = os.environ.get(CONFIG_PATH_ENV_VAR)
    if env_path:
        return Path(env_path)

    default = (cwd or Path.cwd()) / DEFAULT_CONFIG_FILENAME
    return default if default.is_file() else None


def load_config(path: Path | str) -> ValidatorConfig:
    """Load a JSON configuration file and merge it over the defaults.

    Raises:
        ConfigError: if the file cannot be read, is not valid JSON, or does
            not match the configuration schema.
    """
    config_path = Path(path)
    try:
        content = config_path.read_text(encoding="utf-8")
    except OSError as exc:
        raise ConfigError(f"Failed to load config from {config_path}: {exc}") from exc

    try:
        data = json.loads(content)
    except json.JSONDecodeError as exc:
        raise ConfigError(f"Invalid JSON in config file {config_path}: {exc}") from exc

    validate_config_data(data)
    return create_default_config().merged(data)


def save_config(config: ValidatorConfig, path: Path | str) -> None:
    config_path = Path(path)
    try:
        config_path.write_text(json.dumps(config.to_dict(), indent=2) + "\n", encoding="utf-8")
    except OSError as exc:
        raise ConfigError(f"Failed to save config to {config_path}: {exc}") from exc
