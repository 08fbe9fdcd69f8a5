"""Validation entrypoints.

This module MUST NOT exit the process or print results; it returns a
``ValidationResult`` and leaves rendering and exit codes to the caller.

Pipeline: diff -> filter trusted -> fetch publish dates -> evaluate ages.
"""

from __future__ import annotations

import asyncio
import re
from collections.abc import Callable, Iterable, Mapping
from datetime import datetime, timezone
from types import MappingProxyType
from typing import Any

from .config import ValidatorConfig, create_default_config, validate_config_data
from .differ import PackageLockDiffer
from .logger import ConsoleLogger, ValidatorLogger
from .models import PackageInfo, PackageViolation, ValidationResult, ValidationSummary
from .performance import Performance
from .registry import RegistryClient

HOUR_SECONDS = 3600


def compile_trusted_pattern(pattern: str) -> re.Pattern[str]:
    """Translate a ``*`` glob into an anchored regex; ``*`` is the only wildcard."""
    return re.compile("^" + ".*".join(re.escape(part) for part in pattern.split("*")) + "$")


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class PackageValidator:
    """Check that new or changed lockfile packages are old enough.

    Wildcard trusted patterns are compiled once here, keyed by pattern string;
    exact names are matched by set membership.

    Args:
        config: validator settings; defaults when omitted.
        logger: progress sink shared with the differ and registry client.
        differ: lockfile differ; built from the logger when omitted.
        registry_client: registry client; built from ``config.registry``.
        now: current-time source used for age calculation.
    """

    def __init__(
        self,
        config: ValidatorConfig | None = None,
        *,
        logger: ValidatorLogger | None = None,
        differ: PackageLockDiffer | None = None,
        registry_client: RegistryClient | None = None,
        now: Callable[[], datetime] = _utcnow,
    ) -> None:
        self.config = config or create_default_config()
        self.logger = logger or ConsoleLogger(
            self.config.output.log_level, colors=self.config.output.colors
        )
        self.performance = Performance()
        self.registry_client = registry_client or RegistryClient(
            self.config.registry,
            self.logger,
            enforce_https=self.config.security.enforce_https,
        )
        self.differ = differ or PackageLockDiffer(self.logger)
        self._now = now

        trusted = self.config.trusted_packages
        self._trusted_names = frozenset(p for p in trusted if "*" not in p)
        self._trusted_patterns = {p: compile_trusted_pattern(p) for p in trusted if "*" in p}

    @property
    def trusted_patterns(self) -> Mapping[str, re.Pattern[str]]:
        return MappingProxyType(self._trusted_patterns)

    def is_trusted(self, name: str) -> bool:
        if name in self._trusted_names:
            return True
        return any(regex.match(name) for regex in self._trusted_patterns.values())

    async def validate(self) -> ValidationResult:
        """Run the full pipeline once.

        Errors from the differ or registry client are logged and re-raised
        unchanged.
        """
        self.performance.reset()
        self.performance.start("total-validation")
        self.logger.info("Validating npm package ages...")
        try:
            return await self._validate()
        except Exception as exc:
            self.logger.error(f"Validation failed: {exc}")
            raise

    async def _validate(self) -> ValidationResult:
        self.performance.start("diff-analysis")
        candidates = list(self.differ.get_modified_packages().modified)
        self.performance.end("diff-analysis")

        if not candidates:
            self.logger.success("No new or modified packages to validate")
            return self._create_result([], candidates)

        self.logger.info(f"Analyzing {len(candidates)} modified packages...")

        to_validate = [pkg for pkg in candidates if not self.is_trusted(pkg.name)]
        if not to_validate:
            self.logger.success("All packages are in the trusted list")
            return self._create_result([], candidates)

        skipped = len(candidates) - len(to_validate)
        if skipped:
            self.logger.debug(f"{skipped} packages skipped (trusted)")

        self.performance.start("registry-fetch")
        publish_dates = await self.registry_client.get_packages_publish_dates(
            [pkg.key for pkg in to_validate]
        )
        self.performance.end("registry-fetch")

        self.performance.start("age-validation")
        violations = self._check_ages(to_validate, publish_dates)
        self.performance.end("age-validation")

        result = self._create_result(violations, candidates)
        if violations:
            self._display_violations(violations)
        else:
            self.logger.success(
                f"All packages meet the minimum age requirement of "
                f"{self.config.minimum_age_hours}h ({result.summary.execution_time_ms}ms)"
            )
        self.logger.debug(f"Timings: {self.performance.summary()}")
        return result

    def _check_ages(
        self, packages: Iterable[PackageInfo], publish_dates: Mapping[str, datetime]
    ) -> list[PackageViolation]:
        verbose = self.config.output.verbose
        now = self._now()
        violations: list[PackageViolation] = []

        for pkg in packages:
            publish_date = publish_dates.get(pkg.key)
            if publish_date is None:
                # Unknown provenance (private or unpublished) is not a violation.
                if verbose:
                    self.logger.step(f"{pkg.key} (publish date unknown) ?")
                continue

            age_in_hours = (now - publish_date).total_seconds() / HOUR_SECONDS
            too_young = age_in_hours < self.config.minimum_age_hours
            if verbose:
                status = "too new" if too_young else "ok"
                self.logger.step(f"{pkg.key} ({age_in_hours:.1f}h) {status}")

            if too_young:
                violations.append(
                    PackageViolation.from_package(
                        pkg,
                        publish_date=publish_date,
                        age_in_hours=round(age_in_hours, 1),
                    )
                )
        return violations

    def _display_violations(self, violations: list[PackageViolation]) -> None:
        hours = self.config.minimum_age_hours
        self.logger.error(
            f"COMMIT BLOCKED: {len(violations)} packages do not meet the minimum age "
            f"requirement of {hours}h:"
        )
        for violation in violations:
            self.logger.step(
                f"- {violation.key} ({violation.age_in_hours}h) - parent: {violation.parent}"
            )

        self.logger.info("Solutions:")
        self.logger.step(f"1. Wait {hours}h before using these packages")
        self.logger.step("2. Use an older version of the package")
        self.logger.step("3. Add to trustedPackages after manual verification")
        self.logger.step("4. Emergency bypass: git commit --no-verify")

    def _create_result(
        self, violations: list[PackageViolation], candidates: list[PackageInfo]
    ) -> ValidationResult:
        execution_time_ms = self.performance.end("total-validation")
        return ValidationResult(
            success=not violations,
            violations=tuple(violations),
            summary=ValidationSummary.from_packages(
                candidates,
                violations=len(violations),
                execution_time_ms=execution_time_ms,
            ),
        )

    def close(self) -> None:
        self.registry_client.close()


def validate_packages(
    config: ValidatorConfig | Mapping[str, Any] | None = None,
    *,
    logger: ValidatorLogger | None = None,
) -> ValidationResult:
    """Validate the lockfile in the working directory and return the result.

    ``config`` may be a full ``ValidatorConfig`` or a partial camelCase
    mapping merged over the defaults.

    Raises:
        ConfigError: if a mapping does not match the configuration schema.
    """
    if config is None:
        config = create_default_config()
    elif not isinstance(config, ValidatorConfig):
        validate_config_data(dict(config))
        config = create_default_config().merged(config)

    validator = PackageValidator(config, logger=logger)
    try:
        return asyncio.run(validator.validate())
    finally:
        validator.close()
