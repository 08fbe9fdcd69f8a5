#!/usr/bin/env python3
"""Local entrypoint to run the validator from a checkout.

Usage:
  python scripts/validate_packages.py [--root .] [--min-age 48] [--dry-run] [validate|config]

This calls the same cli.main used by the installed ``npm-age-validator`` command.
"""

from __future__ import annotations

from npm_age_validator.cli import main

if __name__ == "__main__":
    raise SystemExit(main())
