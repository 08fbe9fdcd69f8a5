"""npm registry client resolving publish dates for ``name@version`` keys.

Requests are issued in batches of ``concurrency``; a batch is awaited in full
before the next one starts. Each request is retried with exponential backoff
(1s, 2s, 4s ... capped at 5s). Every outcome, including exhausted retries, is
cached for ``cacheTtlMinutes`` so a failing package is not retried again
within the same window.
"""

from __future__ import annotations

import asyncio
import time
from collections.abc import Awaitable, Callable, Iterable, Iterator
from datetime import datetime, timezone
from typing import Any
from urllib.parse import quote

import requests
from tenacity import (
    AsyncRetrying,
    RetryCallState,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

from .cache import PublishDateCache
from .config import RegistryConfig
from .logger import ConsoleLogger, ValidatorLogger
from .models import CacheEntry, CacheStats, package_key, split_package_key

USER_AGENT = "npm-age-validator"

BACKOFF_INITIAL_SECONDS = 1
BACKOFF_MAX_SECONDS = 5

_LOCAL_KEY_PREFIXES = ("file:", "./", "../", "/")
_LOCAL_VERSION_PREFIXES = ("file:", "link:", "./", "../", "/")


class RegistryRequestError(RuntimeError):
    """Raised for timeouts, transport failures and unexpected HTTP statuses."""


class InsecureRegistryError(ValueError):
    """Raised when HTTPS is enforced and the registry URL is not HTTPS."""


def is_local_package(key: str) -> bool:
    """True for filesystem references that the public registry cannot resolve."""
    if key.startswith(_LOCAL_KEY_PREFIXES) or "lib/@" in key:
        return True
    _, version = split_package_key(key)
    return version.startswith(_LOCAL_VERSION_PREFIXES)


def parse_timestamp(value: Any) -> datetime | None:
    """Parse an ISO-8601 registry timestamp; naive values are taken as UTC."""
    if not isinstance(value, str) or not value:
        return None
    try:
        parsed = datetime.fromisoformat(value.replace("Z", "+00:00"))
    except ValueError:
        return None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def _batches(items: list[str], size: int) -> Iterator[list[str]]:
    for start in range(0, len(items), size):
        yield items[start : start + size]


class RegistryClient:
    """Fetch package publish dates from an npm-compatible registry.

    Args:
        config: registry URL, concurrency, timeout (ms), retries and cache settings.
        logger: progress sink; defaults to a console logger.
        session: ``requests``-style session used for HTTP GETs.
        enforce_https: reject non-HTTPS registry URLs.
        sleep: coroutine awaited between retry attempts.
        clock: wall-clock source for cache timestamps, in seconds.

    Raises:
        InsecureRegistryError: if ``enforce_https`` is set and ``config.url``
            is not an ``https://`` URL.
    """

    def __init__(
        self,
        config: RegistryConfig,
        logger: ValidatorLogger | None = None,
        *,
        session: requests.Session | None = None,
        enforce_https: bool = True,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
        clock: Callable[[], float] = time.time,
    ) -> None:
        if enforce_https and not config.url.lower().startswith("https://"):
            raise InsecureRegistryError(
                f"Registry URL must use HTTPS when enforceHttps is enabled: {config.url}"
            )
        self.config = config
        self.logger = logger or ConsoleLogger()
        self._session = session or requests.Session()
        self._headers = {"User-Agent": USER_AGENT, "Accept": "application/json"}
        self._sleep = sleep
        self._cache = PublishDateCache(config.cache_ttl_minutes * 60, clock=clock)

    async def get_packages_publish_dates(self, packages: Iterable[str]) -> dict[str, datetime]:
        """Resolve publish dates for ``name@version`` keys.

        Local packages are dropped. Keys without a version resolve ``latest``
        (``lodash`` is fetched as ``lodash@latest``) but results are keyed by the
        strings the caller passed in. The returned mapping only holds keys with
        a known date; a missing key means the age is unknown.
        """
        requested: dict[str, str] = {}
        for pkg in packages:
            if is_local_package(pkg):
                self.logger.debug(f"Skipping local package {pkg}")
                continue
            requested[pkg] = package_key(*split_package_key(pkg))
        keys = list(dict.fromkeys(requested.values()))

        entries: dict[str, CacheEntry] = {}
        uncached: list[str] = []
        for key in keys:
            entry = self._cache.get(key) if self.config.cache_enabled else None
            if entry is None:
                uncached.append(key)
            else:
                entries[key] = entry

        if uncached:
            self.logger.debug(
                f"Fetching {len(uncached)} packages from {self.config.url} "
                f"({len(entries)} served from cache)"
            )
            entries.update(await self._fetch_uncached(uncached))

        return {
            pkg: entries[key].publish_date
            for pkg, key in requested.items()
            if entries[key].publish_date is not None
        }

    async def _fetch_uncached(self, keys: list[str]) -> dict[str, CacheEntry]:
        fetched: dict[str, CacheEntry] = {}
        for batch in _batches(keys, max(1, self.config.concurrency)):
            outcomes = await asyncio.gather(*(self._resolve(key) for key in batch))
            for key, (publish_date, error) in zip(batch, outcomes):
                fetched[key] = self._cache.set(key, publish_date, error)
                if error:
                    self.logger.warn(f"Failed to fetch {key}: {error}")
                elif publish_date is not None:
                    self.logger.debug(f"Cached {key}: {publish_date.isoformat()}")
                else:
                    self.logger.debug(f"Cached {key}: publish date unknown")
        return fetched

    async def _resolve(self, key: str) -> tuple[datetime | None, str | None]:
        name, version = split_package_key(key)
        try:
            return await self._fetch_with_retry(name, version), None
        except RegistryRequestError as exc:
            return None, str(exc)

    async def _fetch_with_retry(self, name: str, version: str) -> datetime | None:
        retrying = AsyncRetrying(
            stop=stop_after_attempt(max(1, self.config.retries)),
            wait=wait_exponential(
                multiplier=BACKOFF_INITIAL_SECONDS,
                min=BACKOFF_INITIAL_SECONDS,
                max=BACKOFF_MAX_SECONDS,
            ),
            retry=retry_if_exception_type(RegistryRequestError),
            sleep=self._sleep,
            before_sleep=self._log_retry,
            reraise=True,
        )
        return await retrying(self.fetch_publish_date, name, version)

    def _log_retry(self, retry_state: RetryCallState) -> None:
        name, version = retry_state.args
        delay_ms = int((retry_state.next_action.sleep if retry_state.next_action else 0) * 1000)
        self.logger.debug(
            f"Attempt {retry_state.attempt_number} failed for {package_key(name, version)}, "
            f"retrying in {delay_ms}ms"
        )

    async def fetch_publish_date(self, name: str, version: str) -> datetime | None:
        """Single registry round trip for one package version.

        Returns None for 404s and for metadata without a usable date.

        Raises:
            RegistryRequestError: on timeout, transport failure, a status other
                than 200/404, or a body that is not JSON.
        """
        url = f"{self.config.url.rstrip('/')}/{quote(name, safe='')}"
        try:
            response = await asyncio.to_thread(
                self._session.get,
                url,
                headers=self._headers,
                timeout=self.config.timeout / 1000,
            )
        except requests.Timeout as exc:
            raise RegistryRequestError(f"Request timeout after {self.config.timeout}ms") from exc
        except requests.RequestException as exc:
            raise RegistryRequestError(f"Request failed: {exc}") from exc

        if response.status_code == 404:
            return None
        if response.status_code != 200:
            raise RegistryRequestError(f"HTTP {response.status_code}: {response.reason}")

        try:
            metadata = response.json()
        except ValueError as exc:
            raise RegistryRequestError(f"JSON parsing failed: {exc}") from exc

        return self._publish_date_from_metadata(name, version, metadata)

    def _publish_date_from_metadata(
        self, name: str, version: str, metadata: Any
    ) -> datetime | None:
        times = metadata.get("time") if isinstance(metadata, dict) else None
        if not isinstance(times, dict):
            self.logger.warn(f"No time info for {package_key(name, version)}")
            return None

        resolved = version
        if version not in times and version == "latest":
            dist_tags = metadata.get("dist-tags")
            if isinstance(dist_tags, dict) and dist_tags.get("latest"):
                resolved = str(dist_tags["latest"])

        raw = times.get(resolved)
        if raw is None:
            self.logger.warn(f"No time info for {package_key(name, version)}")
            return None

        publish_date = parse_timestamp(raw)
        if publish_date is None:
            self.logger.warn(f"Invalid date for {package_key(name, resolved)}: {raw}")
        return publish_date

    def get_cache_stats(self) -> CacheStats:
        return self._cache.stats()

    def clear_cache(self) -> None:
        self._cache.clear()

    def close(self) -> None:
        self._session.close()
