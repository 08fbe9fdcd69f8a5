"""Find packages added or changed in package-lock.json since the last commit."""

from __future__ import annotations

import re
from pathlib import Path
from typing import Any

from .git import GitHelper
from .logger import ConsoleLogger, ValidatorLogger
from .models import GitDiffResult, PackageInfo
from .parsers import package_lock

LOCKFILE_NAME = "package-lock.json"

ROOT_PARENT = "root"
ROOT_DEPENDENCY = "root (dependency)"
ROOT_DEV_DEPENDENCY = "root (devDependency)"
LATEST_VERSION = "latest"

_RANGE_PREFIX = re.compile(r"^[\^~]")


class DifferError(RuntimeError):
    """Raised when the lockfile cannot be read or parsed."""


class PackageLockDiffer:
    """Compare the working-tree lockfile with its HEAD revision.

    Strategy:
    - not a git repository: every direct dependency of the root is a candidate
    - lockfile unchanged: nothing to validate
    - lockfile not tracked at HEAD: every direct dependency is a candidate
    - otherwise: every package entry whose version changed or that is new
    """

    def __init__(
        self,
        logger: ValidatorLogger | None = None,
        root: Path | None = None,
        git: GitHelper | None = None,
        lockfile_name: str = LOCKFILE_NAME,
    ) -> None:
        self.root = root or Path.cwd()
        self.logger = logger or ConsoleLogger()
        self.git = git or GitHelper(self.root)
        self.lockfile_name = lockfile_name

    @property
    def lockfile_path(self) -> Path:
        return self.root / self.lockfile_name

    def get_modified_packages(self) -> GitDiffResult:
        """Return the candidate packages for age validation.

        Raises:
            DifferError: if the lockfile (or its HEAD revision) cannot be read
                or is not valid JSON.
        """
        try:
            return self._diff()
        except (OSError, ValueError) as exc:
            raise DifferError(f"Error analyzing {self.lockfile_name} changes: {exc}") from exc

    def _diff(self) -> GitDiffResult:
        if not self.git.is_git_repository():
            self.logger.warn("Not a git repository, analyzing all direct dependencies")
            current = package_lock.load(self.lockfile_path)
            return GitDiffResult(
                modified=tuple(extract_direct_dependencies(current)),
                is_new_file=True,
                changed_files=(self.lockfile_name,),
            )

        if not self.git.has_changes(self.lockfile_name):
            self.logger.debug(f"No changes in {self.lockfile_name}")
            return GitDiffResult.empty()

        self.logger.debug(
            f"Diffing {self.lockfile_name} against HEAD "
            f"({self.git.current_branch()} @ {self.git.last_commit_hash()[:12]})"
        )
        current = package_lock.load(self.lockfile_path)
        head_content = self.git.show_head(self.lockfile_name)

        if head_content is None:
            self.logger.info(f"{self.lockfile_name} is new, analyzing direct dependencies")
            return GitDiffResult(
                modified=tuple(extract_direct_dependencies(current)),
                is_new_file=True,
                changed_files=(self.lockfile_name,),
            )

        previous = package_lock.loads(head_content)
        modified = compute_package_diff(previous, current)
        self.logger.debug(f"Found {len(modified)} modified packages")
        return GitDiffResult(
            modified=tuple(modified),
            is_new_file=False,
            changed_files=(self.lockfile_name,),
        )


def strip_range_prefix(version: str) -> str:
    return _RANGE_PREFIX.sub("", str(version))


def extract_direct_dependencies(lock_data: dict[str, Any]) -> list[PackageInfo]:
    """Return the root's dependencies and devDependencies as new packages.

    An empty range (npm reads it as "any version") is looked up as ``latest``.
    """
    root = package_lock.root_entry(lock_data)
    packages: list[PackageInfo] = []
    for section, parent in (
        ("dependencies", ROOT_DEPENDENCY),
        ("devDependencies", ROOT_DEV_DEPENDENCY),
    ):
        for name, version in (root.get(section) or {}).items():
            packages.append(
                PackageInfo(
                    name=name,
                    version=strip_range_prefix(version or "") or LATEST_VERSION,
                    parent=parent,
                    is_new=True,
                )
            )
    return packages


def compute_package_diff(
    previous: dict[str, Any], current: dict[str, Any]
) -> list[PackageInfo]:
    """Return every package in ``current`` that is absent from or differs in ``previous``."""
    old_packages = package_lock.packages_map(previous)
    new_packages = package_lock.packages_map(current)
    parents = build_parent_map(new_packages)

    modified: list[PackageInfo] = []
    for path, meta in new_packages.items():
        if path == package_lock.ROOT_PATH:
            continue
        version = meta.get("version")
        if not version:
            continue

        old_meta = old_packages.get(path)
        if old_meta is not None and old_meta.get("version") == version:
            continue

        name = package_lock.package_name(path)
        modified.append(
            PackageInfo(
                name=name,
                version=str(version),
                parent=parents.get(name) or infer_parent(path),
                is_new=old_meta is None,
            )
        )
    return modified


def build_parent_map(packages: dict[str, dict[str, Any]]) -> dict[str, str]:
    """Map each dependency name to one package that depends on it.

    Direct dependencies of the root are seeded first. Transitive edges are
    then taken in lockfile order and the first parent seen for a name wins.
    """
    parents: dict[str, str] = {}
    root = packages.get(package_lock.ROOT_PATH) or {}
    for name in root.get("dependencies") or {}:
        parents[name] = ROOT_DEPENDENCY
    for name in root.get("devDependencies") or {}:
        parents[name] = ROOT_DEV_DEPENDENCY

    for path, meta in packages.items():
        if path == package_lock.ROOT_PATH:
            continue
        parent_name = package_lock.package_name(path)
        for dep_name in meta.get("dependencies") or {}:
            parents.setdefault(dep_name, parent_name)
    return parents


def infer_parent(path: str) -> str:
    """Guess the parent from nesting: ``node_modules/a/node_modules/b`` -> ``a``."""
    chain = package_lock.nesting_chain(path)
    if len(chain) >= 2:
        return chain[-2]
    return ROOT_PARENT
