"""Command line entrypoint: ``npm-age-validator [options] [validate|config]``.

Exit codes:
  0  every package passed (or dry-run mode)
  1  one or more packages are younger than the minimum age
  2  configuration, lockfile or other runtime error
"""

from __future__ import annotations

import argparse
import asyncio
import os
import sys
from pathlib import Path
from typing import Any

from .config import (
    DEFAULT_CONFIG_FILENAME,
    SUPPORTED_FORMATS,
    ConfigError,
    ValidatorConfig,
    create_default_config,
    load_config,
    resolve_config_path,
    save_config,
)
from .differ import PackageLockDiffer
from .logger import ConsoleLogger, ValidatorLogger
from .registry import InsecureRegistryError
from .report import render_json, render_text
from .validator import PackageValidator

EXIT_OK = 0
EXIT_VIOLATIONS = 1
EXIT_ERROR = 2

DRY_RUN_ENV_VAR = "NPM_AGE_VALIDATOR_DRY_RUN"


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        prog="npm-age-validator",
        description="Block npm packages published more recently than a minimum age.",
    )
    parser.add_argument("-c", "--config", type=Path, default=None, help="configuration file path")
    parser.add_argument("--root", type=Path, default=Path("."), help="project directory")
    parser.add_argument(
        "-a", "--min-age", dest="min_age", type=float, default=None,
        help="minimum package age in hours",
    )
    parser.add_argument(
        "-t", "--trusted", default=None, help="comma-separated trusted package patterns"
    )
    parser.add_argument(
        "-f", "--format", choices=SUPPORTED_FORMATS, default=None, help="output format"
    )
    parser.add_argument("-v", "--verbose", action="store_true", help="verbose output")
    parser.add_argument(
        "--no-cache", dest="no_cache", action="store_true", help="disable registry cache"
    )
    parser.add_argument(
        "--dry-run", dest="dry_run", action="store_true",
        help="report violations without failing",
    )
    parser.add_argument("--registry", default=None, help="npm registry URL")
    parser.add_argument(
        "--concurrency", type=int, default=None, help="max concurrent registry requests"
    )

    subcommands = parser.add_subparsers(dest="command")
    subcommands.add_parser("validate", help="validate package ages in the project")
    config_cmd = subcommands.add_parser("config", help="write the default configuration file")
    config_cmd.add_argument(
        "-o", "--output", type=Path, default=Path(DEFAULT_CONFIG_FILENAME),
        help="output file path",
    )

    args = parser.parse_args(argv)
    if args.command is None:
        args.command = "validate"
    return args


def build_overrides(args: argparse.Namespace) -> dict[str, Any]:
    """Translate command line flags into a partial configuration mapping."""
    overrides: dict[str, Any] = {}
    if args.min_age is not None:
        overrides["minimumAgeHours"] = args.min_age
    if args.trusted:
        overrides["trustedPackages"] = [p.strip() for p in args.trusted.split(",") if p.strip()]

    registry: dict[str, Any] = {}
    if args.registry:
        registry["url"] = args.registry
    if args.concurrency is not None:
        registry["concurrency"] = args.concurrency
    if args.no_cache:
        registry["cacheEnabled"] = False
    if registry:
        overrides["registry"] = registry

    output: dict[str, Any] = {}
    if args.verbose:
        output["verbose"] = True
        output["logLevel"] = "debug"
    if args.format:
        output["format"] = args.format
    if output:
        overrides["output"] = output

    return overrides


def load_effective_config(args: argparse.Namespace) -> ValidatorConfig:
    path = resolve_config_path(args.config, cwd=args.root)
    config = load_config(path) if path is not None else create_default_config()
    return config.merged(build_overrides(args))


def _dry_run_enabled(args: argparse.Namespace) -> bool:
    if args.dry_run:
        return True
    return os.getenv(DRY_RUN_ENV_VAR, "").strip().lower() in {"1", "true", "yes", "y"}


def run_validation(args: argparse.Namespace, logger: ValidatorLogger | None = None) -> int:
    try:
        config = load_effective_config(args)
    except ConfigError as exc:
        print(f"ERROR: {exc}", file=sys.stderr)
        return EXIT_ERROR

    logger = logger or ConsoleLogger(config.output.log_level, colors=config.output.colors)

    try:
        validator = PackageValidator(
            config,
            logger=logger,
            differ=PackageLockDiffer(logger, root=args.root),
        )
    except InsecureRegistryError as exc:
        logger.error(str(exc))
        return EXIT_ERROR

    try:
        result = asyncio.run(validator.validate())
    except Exception:
        # validate() has already logged the failure.
        return EXIT_ERROR
    finally:
        validator.close()

    if config.output.format == "json":
        print(render_json(result))
    else:
        print(render_text(result, config.minimum_age_hours, verbose=config.output.verbose), end="")

    if _dry_run_enabled(args):
        logger.info("Dry run mode - no commit blocking")
        return EXIT_OK

    return EXIT_OK if result.success else EXIT_VIOLATIONS


def write_default_config(args: argparse.Namespace, logger: ValidatorLogger | None = None) -> int:
    logger = logger or ConsoleLogger()
    try:
        save_config(create_default_config(), args.output)
    except ConfigError as exc:
        logger.error(str(exc))
        return EXIT_ERROR
    logger.info(f"Configuration file created: {args.output}")
    return EXIT_OK


def main(argv: list[str] | None = None) -> int:
    args = parse_args(argv)
    if args.command == "config":
        return write_default_config(args)
    return run_validation(args)


if __name__ == "__main__":  # pragma: no cover
    raise SystemExit(main())
