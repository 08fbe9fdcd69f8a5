"""Parse npm package-lock.json into the flat installation-path form."""

from __future__ import annotations

import json
from pathlib import Path
from typing import Any

ROOT_PATH = ""
NODE_MODULES = "node_modules/"


def load(path: Path) -> dict[str, Any]:
    """Read and decode a lockfile from disk."""
    return loads(path.read_text(encoding="utf-8"))


def loads(text: str) -> dict[str, Any]:
    data = json.loads(text)
    if not isinstance(data, dict):
        raise ValueError("package-lock.json must contain a JSON object")
    return data


def packages_map(data: dict[str, Any]) -> dict[str, dict[str, Any]]:
    """Return the installation-path -> metadata map of a lockfile.

    Supports npm v2+ ("packages" map) directly and flattens the npm v1
    ("dependencies" tree) into the same shape. v1 lockfiles carry no root
    entry, so their root dependencies are unknown.
    """
    packages = data.get("packages")
    if isinstance(packages, dict):
        return {key: meta for key, meta in packages.items() if isinstance(meta, dict)}

    flat: dict[str, dict[str, Any]] = {}
    deps = data.get("dependencies")
    if isinstance(deps, dict):
        _flatten_v1(deps, "", flat)
    return flat


def _flatten_v1(deps: dict[str, Any], prefix: str, out: dict[str, dict[str, Any]]) -> None:
    for name, meta in deps.items():
        if not isinstance(meta, dict):
            continue
        path = f"{prefix}{NODE_MODULES}{name}"
        entry: dict[str, Any] = {}
        if "version" in meta:
            entry["version"] = str(meta["version"])
        requires = meta.get("requires")
        if isinstance(requires, dict):
            entry["dependencies"] = dict(requires)
        out[path] = entry

        nested = meta.get("dependencies")
        if isinstance(nested, dict):
            _flatten_v1(nested, f"{path}/", out)


def root_entry(data: dict[str, Any]) -> dict[str, Any]:
    root = packages_map(data).get(ROOT_PATH)
    return root if isinstance(root, dict) else {}


def package_name(path: str) -> str:
    """Return the package name installed at ``path``.

    ``node_modules/a/node_modules/@scope/b`` -> ``@scope/b``. Paths outside
    node_modules (workspace folders) are returned unchanged.
    """
    return path.rsplit(NODE_MODULES, 1)[-1]


def nesting_chain(path: str) -> list[str]:
    """Return the package names along an installation path, outermost first."""
    return [segment.rstrip("/") for segment in path.split(NODE_MODULES) if segment.rstrip("/")]
