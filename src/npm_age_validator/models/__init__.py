"""Data models for the package age validator."""

from __future__ import annotations

from .cache_entry import CacheEntry, CacheStats
from .diff_result import GitDiffResult
from .package_info import PackageInfo, format_timestamp, package_key, split_package_key
from .result import PackageViolation, ValidationResult, ValidationSummary

__all__ = [
    "CacheEntry",
    "CacheStats",
    "GitDiffResult",
    "PackageInfo",
    "PackageViolation",
    "ValidationResult",
    "ValidationSummary",
    "format_timestamp",
    "package_key",
    "split_package_key",
]
