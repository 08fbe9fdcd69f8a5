"""Validation result models."""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass
from datetime import datetime

from .package_info import PackageInfo, format_timestamp, package_key


@dataclass(frozen=True)
class PackageViolation:
    """A package whose publish date is younger than the minimum age."""

    name: str
    version: str
    parent: str
    publish_date: datetime
    age_in_hours: float

    @property
    def key(self) -> str:
        return package_key(self.name, self.version)

    def to_dict(self) -> dict[str, object]:
        return {
            "name": self.name,
            "version": self.version,
            "parent": self.parent,
            "publishDate": format_timestamp(self.publish_date),
            "ageInHours": self.age_in_hours,
        }

    @classmethod
    def from_package(
        cls, pkg: PackageInfo, *, publish_date: datetime, age_in_hours: float
    ) -> PackageViolation:
        return cls(
            name=pkg.name,
            version=pkg.version,
            parent=pkg.parent,
            publish_date=publish_date,
            age_in_hours=age_in_hours,
        )


@dataclass(frozen=True)
class ValidationSummary:
    """Aggregate counters for one validation run."""

    total_packages: int
    new_packages: int
    modified_packages: int
    violations: int
    execution_time_ms: float = 0

    def __post_init__(self) -> None:
        counts = (self.total_packages, self.new_packages, self.modified_packages, self.violations)
        if any(count < 0 for count in counts):
            raise ValueError("Summary counts must be non-negative")

    def to_dict(self) -> dict[str, object]:
        return {
            "totalPackages": self.total_packages,
            "newPackages": self.new_packages,
            "modifiedPackages": self.modified_packages,
            "violations": self.violations,
            "executionTimeMs": self.execution_time_ms,
        }

    @classmethod
    def from_packages(
        cls,
        packages: Iterable[PackageInfo],
        *,
        violations: int,
        execution_time_ms: float = 0,
    ) -> ValidationSummary:
        packages = list(packages)
        new_count = sum(1 for pkg in packages if pkg.is_new)
        return cls(
            total_packages=len(packages),
            new_packages=new_count,
            modified_packages=len(packages) - new_count,
            violations=violations,
            execution_time_ms=execution_time_ms,
        )


@dataclass(frozen=True)
class ValidationResult:
    """Outcome of ``PackageValidator.validate``."""

    success: bool
    violations: tuple[PackageViolation, ...]
    summary: ValidationSummary

    def to_dict(self) -> dict[str, object]:
        return {
            "success": self.success,
            "violations": [violation.to_dict() for violation in self.violations],
            "summary": self.summary.to_dict(),
        }
