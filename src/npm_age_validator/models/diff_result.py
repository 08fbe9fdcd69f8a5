"""Result of comparing the working-tree lockfile against its committed revision."""

from __future__ import annotations

from dataclasses import dataclass

from .package_info import PackageInfo


@dataclass(frozen=True)
class GitDiffResult:
    """Packages added or changed since the last commit.

    ``is_new_file`` means there was no committed baseline to diff against, so
    the root's direct dependencies were taken as candidates instead.
    """

    modified: tuple[PackageInfo, ...] = ()
    is_new_file: bool = False
    changed_files: tuple[str, ...] = ()

    @classmethod
    def empty(cls) -> GitDiffResult:
        return cls()

    def to_dict(self) -> dict[str, object]:
        return {
            "modified": [pkg.to_dict() for pkg in self.modified],
            "isNewFile": self.is_new_file,
            "changedFiles": list(self.changed_files),
        }
