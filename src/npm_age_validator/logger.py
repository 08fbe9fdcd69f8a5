"""Logging contract shared by the differ, registry client and validator.

``ConsoleLogger`` is the default implementation: a standard-library logger
whose handler prints through a rich console, styled per level.
"""

from __future__ import annotations

import logging
from typing import Any, Protocol

from rich.console import Console

SUCCESS = 25
logging.addLevelName(SUCCESS, "SUCCESS")

LOG_LEVELS: dict[str, int] = {
    "error": logging.ERROR,
    "warn": logging.WARNING,
    "info": logging.INFO,
    "debug": logging.DEBUG,
}

_STYLES: dict[int, str] = {
    logging.ERROR: "bold red",
    logging.WARNING: "yellow",
    SUCCESS: "green",
    logging.DEBUG: "dim",
}

STEP_INDENT = "  "


class ValidatorLogger(Protocol):
    def error(self, message: str, *args: Any) -> None: ...

    def warn(self, message: str, *args: Any) -> None: ...

    def info(self, message: str, *args: Any) -> None: ...

    def success(self, message: str, *args: Any) -> None: ...

    def debug(self, message: str, *args: Any) -> None: ...

    def step(self, message: str, *args: Any) -> None: ...

    def set_level(self, level: str) -> None: ...


class _ConsoleHandler(logging.Handler):
    def __init__(self, console: Console) -> None:
        super().__init__()
        self.console = console

    def emit(self, record: logging.LogRecord) -> None:
        try:
            message = self.format(record)
            self.console.print(
                message,
                style=_STYLES.get(record.levelno),
                markup=False,
                highlight=False,
                soft_wrap=True,
            )
        except Exception:
            self.handleError(record)


class ConsoleLogger:
    """Write validator progress to stderr.

    Args:
        level: one of ``error``, ``warn``, ``info`` or ``debug``.
        colors: style lines by level; plain text otherwise.
        console: rich console to print through (tests pass one writing to a buffer).
        name: name given to this instance's logger. Each instance owns its logger,
            so levels and consoles never leak between instances.
    """

    def __init__(
        self,
        level: str = "info",
        colors: bool = True,
        console: Console | None = None,
        name: str = "npm_age_validator",
    ) -> None:
        if console is None:
            console = Console(stderr=True, color_system="auto" if colors else None)
        # Not registered with logging.getLogger, so it is never shared.
        self._logger = logging.Logger(name)
        self._logger.propagate = False
        self._handler = _ConsoleHandler(console)
        self._handler.setFormatter(logging.Formatter("%(message)s"))
        self._logger.addHandler(self._handler)
        self.set_level(level)

    def set_level(self, level: str) -> None:
        try:
            self._logger.setLevel(LOG_LEVELS[level])
        except KeyError:
            raise ValueError(
                f"Unknown log level '{level}'. Expected one of: {', '.join(LOG_LEVELS)}"
            ) from None

    def error(self, message: str, *args: Any) -> None:
        self._logger.error(_join(message, args))

    def warn(self, message: str, *args: Any) -> None:
        self._logger.warning(_join(message, args))

    def info(self, message: str, *args: Any) -> None:
        self._logger.info(_join(message, args))

    def success(self, message: str, *args: Any) -> None:
        self._logger.log(SUCCESS, _join(message, args))

    def debug(self, message: str, *args: Any) -> None:
        self._logger.debug(_join(message, args))

    def step(self, message: str, *args: Any) -> None:
        self._logger.info(STEP_INDENT + _join(message, args))


def _join(message: str, args: tuple[Any, ...]) -> str:
    # Extra arguments are appended as-is; messages are never %-formatted.
    if not args:
        return message
    return " ".join([message, *(str(arg) for arg in args)])
