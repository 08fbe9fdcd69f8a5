"""Shared test fixtures for npm-age-validator tests."""

from __future__ import annotations

import json
import threading
from collections.abc import Callable
from pathlib import Path
from typing import Any

import pytest

from npm_age_validator.git import GitHelper


class RecordingLogger:
    """Logger double capturing ``(method, message)`` pairs in call order."""

    def __init__(self) -> None:
        self.calls: list[tuple[str, str]] = []
        self.level = "info"

    def _record(self, method: str, message: str, args: tuple[Any, ...]) -> None:
        text = " ".join([message, *(str(a) for a in args)])
        self.calls.append((method, text))

    def error(self, message: str, *args: Any) -> None:
        self._record("error", message, args)

    def warn(self, message: str, *args: Any) -> None:
        self._record("warn", message, args)

    def info(self, message: str, *args: Any) -> None:
        self._record("info", message, args)

    def success(self, message: str, *args: Any) -> None:
        self._record("success", message, args)

    def debug(self, message: str, *args: Any) -> None:
        self._record("debug", message, args)

    def step(self, message: str, *args: Any) -> None:
        self._record("step", message, args)

    def set_level(self, level: str) -> None:
        self.level = level

    def messages(self, method: str) -> list[str]:
        return [text for name, text in self.calls if name == method]


class FakeGit(GitHelper):
    """GitHelper double answering from canned state instead of running git."""

    def __init__(
        self,
        *,
        is_repo: bool = True,
        changed: bool = True,
        head_content: str | None = None,
    ) -> None:
        super().__init__(Path("."))
        self.is_repo = is_repo
        self.changed = changed
        self.head_content = head_content

    def _run(self, *args: str) -> str:
        raise AssertionError(f"git should not be executed: {args}")

    def is_git_repository(self) -> bool:
        return self.is_repo

    def has_changes(self, filename: str) -> bool:
        return self.changed

    def show_head(self, filename: str) -> str | None:
        return self.head_content

    def current_branch(self) -> str:
        return "main"

    def last_commit_hash(self) -> str:
        return "0123456789abcdef0123456789abcdef01234567"


class FakeResponse:
    def __init__(self, status_code: int = 200, payload: Any = None, reason: str = "OK") -> None:
        self.status_code = status_code
        self.reason = reason
        self._payload = payload

    def json(self) -> Any:
        if isinstance(self._payload, Exception):
            raise self._payload
        return self._payload


class FakeSession:
    """requests.Session double.

    ``handler`` receives the requested URL and returns a FakeResponse or
    raises a ``requests`` exception.
    """

    def __init__(self, handler: Callable[[str], FakeResponse]) -> None:
        self.handler = handler
        self.urls: list[str] = []
        self.timeouts: list[float] = []
        self.closed = False
        self._lock = threading.Lock()

    def get(self, url: str, headers: dict[str, str] | None = None, timeout: float | None = None):
        with self._lock:
            self.urls.append(url)
            self.timeouts.append(timeout)
        return self.handler(url)

    def close(self) -> None:
        self.closed = True


def registry_payload(times: dict[str, str], latest: str | None = None) -> dict[str, Any]:
    payload: dict[str, Any] = {"time": {"created": "2015-01-01T00:00:00.000Z", **times}}
    if latest:
        payload["dist-tags"] = {"latest": latest}
    return payload


def lockfile(
    packages: dict[str, dict[str, Any]],
    dependencies: dict[str, str] | None = None,
    dev_dependencies: dict[str, str] | None = None,
) -> dict[str, Any]:
    root: dict[str, Any] = {"name": "demo-app", "version": "1.0.0"}
    if dependencies:
        root["dependencies"] = dependencies
    if dev_dependencies:
        root["devDependencies"] = dev_dependencies
    return {
        "name": "demo-app",
        "version": "1.0.0",
        "lockfileVersion": 3,
        "requires": True,
        "packages": {"": root, **packages},
    }


@pytest.fixture
def recording_logger() -> RecordingLogger:
    return RecordingLogger()


@pytest.fixture
def write_lockfile(tmp_path: Path) -> Callable[[dict[str, Any]], Path]:
    def _write(data: dict[str, Any]) -> Path:
        path = tmp_path / "package-lock.json"
        path.write_text(json.dumps(data, indent=2), encoding="utf-8")
        return path

    return _write

