"""Package entry model for dependencies discovered in a lockfile."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime


def package_key(name: str, version: str) -> str:
    """Return the canonical ``name@version`` key used for registry lookups."""
    return f"{name}@{version}"


def split_package_key(key: str) -> tuple[str, str]:
    """Split ``name@version`` on the last ``@``.

    Scoped names keep their leading ``@``. Keys without a version resolve to
    ``latest``.
    """
    name, sep, version = key.rpartition("@")
    if not sep or not name:
        return key, "latest"
    return name, version


@dataclass(frozen=True)
class PackageInfo:
    """One dependency edge discovered in package-lock.json."""

    name: str
    version: str
    parent: str
    is_new: bool = False
    publish_date: datetime | None = None
    age_in_hours: float | None = None

    def __post_init__(self) -> None:
        if not self.name:
            raise ValueError("Package name must be non-empty")
        if not self.version:
            raise ValueError(f"Package {self.name} must have a version")

    @property
    def key(self) -> str:
        return package_key(self.name, self.version)

    def to_dict(self) -> dict[str, object]:
        data: dict[str, object] = {
            "name": self.name,
            "version": self.version,
            "parent": self.parent,
            "isNew": self.is_new,
        }
        if self.publish_date is not None:
            data["publishDate"] = format_timestamp(self.publish_date)
        if self.age_in_hours is not None:
            data["ageInHours"] = self.age_in_hours
        return data


def format_timestamp(value: datetime) -> str:
    return value.isoformat().replace("+00:00", "Z")
