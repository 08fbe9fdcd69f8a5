"""Render a ValidationResult for people or machines."""

from __future__ import annotations

import json

from .models import ValidationResult


def render_json(result: ValidationResult) -> str:
    """Return the result as indented JSON with camelCase keys."""
    return json.dumps(result.to_dict(), indent=2)


def render_text(result: ValidationResult, minimum_age_hours: float, verbose: bool = False) -> str:
    """Return a short plain-text report.

    Failures list each violating package with its age and the threshold; a
    passing run reports the package count, plus the summary counters when
    ``verbose`` is set.
    """
    summary = result.summary
    lines = []

    if result.success:
        lines.append(
            f"Validation passed - {summary.total_packages} packages checked "
            f"({summary.execution_time_ms}ms)"
        )
        if verbose and summary.total_packages > 0:
            lines.append(f"   New: {summary.new_packages} packages")
            lines.append(f"   Modified: {summary.modified_packages} packages")
            lines.append(f"   Violations: {summary.violations} packages")
    else:
        lines.append(f"Validation failed with {len(result.violations)} violations")
        for violation in result.violations:
            lines.append(
                f"   {violation.key}: {violation.age_in_hours}h old "
                f"(minimum: {minimum_age_hours}h, parent: {violation.parent})"
            )

    return "\n".join(lines) + "\n"
