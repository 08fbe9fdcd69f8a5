import asyncio
from datetime import datetime, timezone

import pytest
import requests

from conftest import FakeResponse, FakeSession, registry_payload
from npm_age_validator.config import RegistryConfig
from npm_age_validator.registry import (
    InsecureRegistryError,
    RegistryClient,
    is_local_package,
    parse_timestamp,
)


class Clock:
    def __init__(self, now: float = 1_000_000.0) -> None:
        self.now = now

    def __call__(self) -> float:
        return self.now


class RecordingSleep:
    def __init__(self) -> None:
        self.delays: list[float] = []

    async def __call__(self, seconds: float) -> None:
        self.delays.append(seconds)


def _client(handler, recording_logger, clock=None, sleep=None, **overrides):
    config = RegistryConfig(**{"retries": 3, "concurrency": 10, **overrides})
    session = FakeSession(handler)
    client = RegistryClient(
        config,
        recording_logger,
        session=session,
        sleep=sleep or RecordingSleep(),
        clock=clock or Clock(),
    )
    return client, session


def test_resolves_publish_date_for_exact_version(recording_logger):
    client, session = _client(
        lambda url: FakeResponse(payload=registry_payload({"4.17.21": "2021-02-20T15:42:16.891Z"})),
        recording_logger,
    )

    dates = asyncio.run(client.get_packages_publish_dates(["lodash@4.17.21"]))

    assert dates == {
        "lodash@4.17.21": datetime(2021, 2, 20, 15, 42, 16, 891000, tzinfo=timezone.utc)
    }
    assert session.urls == ["https://registry.npmjs.org/lodash"]
    assert session.timeouts == [8.0]


def test_scoped_names_are_url_encoded(recording_logger):
    client, session = _client(
        lambda url: FakeResponse(payload=registry_payload({"16.0.0": "2023-05-03T00:00:00Z"})),
        recording_logger,
    )

    dates = asyncio.run(client.get_packages_publish_dates(["@angular/core@16.0.0"]))

    assert list(dates) == ["@angular/core@16.0.0"]
    assert session.urls == ["https://registry.npmjs.org/%40angular%2Fcore"]


def test_latest_resolves_through_dist_tags(recording_logger):
    payload = registry_payload({"2.0.0": "2024-01-01T00:00:00.000Z"}, latest="2.0.0")
    client, _ = _client(lambda url: FakeResponse(payload=payload), recording_logger)

    dates = asyncio.run(client.get_packages_publish_dates(["demo@latest", "other"]))

    expected = datetime(2024, 1, 1, tzinfo=timezone.utc)
    assert dates == {"demo@latest": expected, "other": expected}


def test_results_are_keyed_by_requested_strings(recording_logger):
    payload = registry_payload({"4.17.21": "2021-02-20T15:42:16.891Z"}, latest="4.17.21")
    client, session = _client(lambda url: FakeResponse(payload=payload), recording_logger)

    dates = asyncio.run(client.get_packages_publish_dates(["lodash", "lodash@latest"]))

    assert set(dates) == {"lodash", "lodash@latest"}
    assert dates["lodash"] == dates["lodash@latest"]
    assert len(session.urls) == 1


def test_local_packages_are_never_fetched(recording_logger):
    client, session = _client(lambda url: pytest.fail("unexpected request"), recording_logger)

    dates = asyncio.run(
        client.get_packages_publish_dates(
            ["file:./local-package", "lib/@internal/x@1.0.0", "mylib@file:../mylib", "./pkg"]
        )
    )

    assert dates == {}
    assert session.urls == []


def test_is_local_package():
    assert is_local_package("file:../lib")
    assert is_local_package("shared@link:../shared")
    assert not is_local_package("@scope/pkg@1.0.0")
    assert not is_local_package("lodash@4.17.21")


def test_second_call_within_ttl_is_served_from_cache(recording_logger):
    client, session = _client(
        lambda url: FakeResponse(payload=registry_payload({"1.0.0": "2020-01-01T00:00:00Z"})),
        recording_logger,
    )

    first = asyncio.run(client.get_packages_publish_dates(["a@1.0.0"]))
    second = asyncio.run(client.get_packages_publish_dates(["a@1.0.0"]))

    assert first == second
    assert len(session.urls) == 1
    stats = client.get_cache_stats()
    assert (stats.keys, stats.hits, stats.misses) == (1, 1, 1)


def test_cache_entries_expire_after_ttl(recording_logger):
    clock = Clock()
    client, session = _client(
        lambda url: FakeResponse(payload=registry_payload({"1.0.0": "2020-01-01T00:00:00Z"})),
        recording_logger,
        clock=clock,
        cache_ttl_minutes=1,
    )

    asyncio.run(client.get_packages_publish_dates(["a@1.0.0"]))
    clock.now += 61
    asyncio.run(client.get_packages_publish_dates(["a@1.0.0"]))

    assert len(session.urls) == 2


def test_disabled_cache_refetches(recording_logger):
    client, session = _client(
        lambda url: FakeResponse(payload=registry_payload({"1.0.0": "2020-01-01T00:00:00Z"})),
        recording_logger,
        cache_enabled=False,
    )

    asyncio.run(client.get_packages_publish_dates(["a@1.0.0"]))
    dates = asyncio.run(client.get_packages_publish_dates(["a@1.0.0"]))

    assert len(session.urls) == 2
    assert "a@1.0.0" in dates


def test_not_found_is_unknown_and_not_retried(recording_logger):
    sleep = RecordingSleep()
    client, session = _client(
        lambda url: FakeResponse(status_code=404, reason="Not Found"), recording_logger, sleep=sleep
    )

    dates = asyncio.run(client.get_packages_publish_dates(["ghost@1.0.0"]))

    assert dates == {}
    assert len(session.urls) == 1
    assert sleep.delays == []


def test_missing_version_and_invalid_date_are_unknown(recording_logger):
    payload = registry_payload({"1.0.0": "not-a-date"})
    client, session = _client(lambda url: FakeResponse(payload=payload), recording_logger)

    dates = asyncio.run(client.get_packages_publish_dates(["a@1.0.0", "a@9.9.9"]))

    assert dates == {}
    assert len(session.urls) == 2
    warnings = recording_logger.messages("warn")
    assert any("Invalid date for a@1.0.0" in w for w in warnings)
    assert any("No time info for a@9.9.9" in w for w in warnings)


def test_retries_with_exponential_backoff(recording_logger):
    attempts = []

    def handler(url):
        attempts.append(url)
        if len(attempts) < 3:
            raise requests.Timeout("read timed out")
        return FakeResponse(payload=registry_payload({"1.0.0": "2020-01-01T00:00:00Z"}))

    sleep = RecordingSleep()
    client, _ = _client(handler, recording_logger, sleep=sleep)

    dates = asyncio.run(client.get_packages_publish_dates(["slow@1.0.0"]))

    assert dates == {"slow@1.0.0": datetime(2020, 1, 1, tzinfo=timezone.utc)}
    assert len(attempts) == 3
    assert sleep.delays == [1, 2]


def test_backoff_is_capped(recording_logger):
    sleep = RecordingSleep()
    client, session = _client(
        lambda url: FakeResponse(status_code=503, reason="Service Unavailable"),
        recording_logger,
        sleep=sleep,
        retries=5,
    )

    asyncio.run(client.get_packages_publish_dates(["flaky@1.0.0"]))

    assert len(session.urls) == 5
    assert sleep.delays == [1, 2, 4, 5]


def test_exhausted_retries_are_cached_as_errors(recording_logger):
    def handler(url):
        raise requests.ConnectionError("connection refused")

    client, session = _client(handler, recording_logger)

    first = asyncio.run(client.get_packages_publish_dates(["down@1.0.0"]))
    second = asyncio.run(client.get_packages_publish_dates(["down@1.0.0"]))

    assert first == second == {}
    assert len(session.urls) == 3
    assert any("Failed to fetch down@1.0.0" in w for w in recording_logger.messages("warn"))


def test_malformed_json_is_retried(recording_logger):
    client, session = _client(
        lambda url: FakeResponse(payload=ValueError("Expecting value")), recording_logger
    )

    dates = asyncio.run(client.get_packages_publish_dates(["broken@1.0.0"]))

    assert dates == {}
    assert len(session.urls) == 3


def test_requests_are_batched_by_concurrency(recording_logger, monkeypatch):
    client, _ = _client(lambda url: pytest.fail("unexpected request"), recording_logger, concurrency=2)
    in_flight = 0
    peak = 0
    in_flight_at_start: list[int] = []

    async def fake_fetch(name, version):
        nonlocal in_flight, peak
        in_flight += 1
        peak = max(peak, in_flight)
        in_flight_at_start.append(in_flight)
        await asyncio.sleep(0.01)
        in_flight -= 1
        return datetime(2020, 1, 1, tzinfo=timezone.utc)

    monkeypatch.setattr(client, "fetch_publish_date", fake_fetch)

    keys = [f"pkg{i}@1.0.0" for i in range(5)]
    dates = asyncio.run(client.get_packages_publish_dates(keys))

    assert list(dates) == keys
    assert peak == 2
    assert in_flight_at_start == [1, 2, 1, 2, 1]


def test_duplicate_keys_fetch_once(recording_logger):
    client, session = _client(
        lambda url: FakeResponse(payload=registry_payload({"1.0.0": "2020-01-01T00:00:00Z"})),
        recording_logger,
    )

    asyncio.run(client.get_packages_publish_dates(["a@1.0.0", "a@1.0.0"]))

    assert len(session.urls) == 1


def test_http_registry_rejected_when_https_enforced(recording_logger):
    with pytest.raises(InsecureRegistryError):
        RegistryClient(RegistryConfig(url="http://registry.example.com"), recording_logger)


def test_http_registry_allowed_when_not_enforced(recording_logger):
    client = RegistryClient(
        RegistryConfig(url="http://localhost:4873"),
        recording_logger,
        session=FakeSession(lambda url: FakeResponse()),
        enforce_https=False,
    )
    assert client.config.url == "http://localhost:4873"


def test_clear_cache_and_close(recording_logger):
    client, session = _client(
        lambda url: FakeResponse(payload=registry_payload({"1.0.0": "2020-01-01T00:00:00Z"})),
        recording_logger,
    )
    asyncio.run(client.get_packages_publish_dates(["a@1.0.0"]))

    client.clear_cache()
    client.close()

    assert client.get_cache_stats().keys == 0
    assert session.closed is True


def test_parse_timestamp():
    assert parse_timestamp("2021-05-06T16:37:45.000Z") == datetime(
        2021, 5, 6, 16, 37, 45, tzinfo=timezone.utc
    )
    assert parse_timestamp("2021-05-06T16:37:45") == datetime(
        2021, 5, 6, 16, 37, 45, tzinfo=timezone.utc
    )
    assert parse_timestamp("yesterday") is None
    assert parse_timestamp(None) is None
