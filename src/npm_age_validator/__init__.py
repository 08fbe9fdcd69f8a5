"""npm-age-validator core package.

Checks that npm packages added or changed in package-lock.json have been on
the public registry for a minimum number of hours before they are committed.
The same entrypoints back the command line and programmatic use.
"""

from .config import (
    DEFAULT_MINIMUM_AGE_HOURS,
    DEFAULT_REGISTRY_URL,
    SUPPORTED_FORMATS,
    ConfigError,
    OutputConfig,
    RegistryConfig,
    SecurityConfig,
    ValidatorConfig,
    create_default_config,
    load_config,
    save_config,
)
from .differ import DifferError, PackageLockDiffer
from .logger import ConsoleLogger, ValidatorLogger
from .models import (
    GitDiffResult,
    PackageInfo,
    PackageViolation,
    ValidationResult,
    ValidationSummary,
)
from .performance import Performance
from .registry import InsecureRegistryError, RegistryClient
from .validator import PackageValidator, validate_packages

__version__ = "0.1.0"

__all__ = [
    "DEFAULT_MINIMUM_AGE_HOURS",
    "DEFAULT_REGISTRY_URL",
    "SUPPORTED_FORMATS",
    "ConfigError",
    "ConsoleLogger",
    "DifferError",
    "GitDiffResult",
    "InsecureRegistryError",
    "OutputConfig",
    "PackageInfo",
    "PackageLockDiffer",
    "PackageValidator",
    "PackageViolation",
    "Performance",
    "RegistryClient",
    "RegistryConfig",
    "SecurityConfig",
    "ValidationResult",
    "ValidationSummary",
    "ValidatorConfig",
    "ValidatorLogger",
    "create_default_config",
    "load_config",
    "save_config",
    "validate_packages",
]
