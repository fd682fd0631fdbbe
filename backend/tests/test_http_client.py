"""
Unit tests for the retrying provider HTTP client and the API-Football connector.
Upstream responses come from httpx.MockTransport; backoff sleeps are recorded, not awaited.

Run: pytest backend/tests/test_http_client.py -v
"""
from __future__ import annotations

from datetime import date
from typing import Any

import httpx
import pytest

from shared.config import Settings
from shared.errors import ExternalServiceError
from shared.utils.http_client import ProviderHTTPClient

from conftest import RecordingSleep, make_raw_fixture
from ingest.providers.api_football import API_KEY_HEADER, ApiFootballProvider

BASE_URL = "https://v3.football.api-sports.io"


def _client(handler: Any, sleep: RecordingSleep, max_retries: int = 3) -> ProviderHTTPClient:
    return ProviderHTTPClient(
        provider_name="api_football",
        base_url=BASE_URL,
        headers={API_KEY_HEADER: "test-key"},
        max_retries=max_retries,
        retry_delay_s=2.0,
        sleep=sleep,
        transport=httpx.MockTransport(handler),
    )


# ── Retry and backoff ───────────────────────────────────────────────────

@pytest.mark.asyncio
async def test_get_json_recovers_after_two_failures(sleep: RecordingSleep) -> None:
    calls: list[httpx.Request] = []

    def handler(request: httpx.Request) -> httpx.Response:
        calls.append(request)
        if len(calls) < 3:
            return httpx.Response(503)
        return httpx.Response(200, json={"response": []})

    client = _client(handler, sleep)
    await client.start()
    try:
        payload = await client.get_json("/fixtures", params={"date": "2026-10-17"})
    finally:
        await client.close()

    assert payload == {"response": []}
    assert len(calls) == 3
    assert sleep.calls == [2.0, 4.0]


@pytest.mark.asyncio
async def test_get_json_gives_up_after_max_retries(sleep: RecordingSleep) -> None:
    calls = 0

    def handler(request: httpx.Request) -> httpx.Response:
        nonlocal calls
        calls += 1
        return httpx.Response(500)

    client = _client(handler, sleep)
    await client.start()
    try:
        with pytest.raises(ExternalServiceError) as exc_info:
            await client.get_json("/fixtures")
    finally:
        await client.close()

    assert calls == 3
    assert sleep.calls == [2.0, 4.0]
    assert exc_info.value.attempts == 3
    assert "HTTP 500" in str(exc_info.value)
    assert str(exc_info.value).startswith("Failed to fetch data from API")


@pytest.mark.asyncio
async def test_client_errors_are_retried_too(sleep: RecordingSleep) -> None:
    statuses = iter([429, 200])

    def handler(request: httpx.Request) -> httpx.Response:
        status = next(statuses)
        return httpx.Response(status, json={"response": []} if status == 200 else None)

    client = _client(handler, sleep)
    await client.start()
    try:
        assert await client.get_json("/fixtures") == {"response": []}
    finally:
        await client.close()
    assert sleep.calls == [2.0]


@pytest.mark.asyncio
async def test_transport_error_is_transient(sleep: RecordingSleep) -> None:
    attempts = 0

    def handler(request: httpx.Request) -> httpx.Response:
        nonlocal attempts
        attempts += 1
        if attempts == 1:
            raise httpx.ConnectError("connection refused", request=request)
        return httpx.Response(200, json={"ok": True})

    client = _client(handler, sleep)
    await client.start()
    try:
        assert await client.get_json("/status") == {"ok": True}
    finally:
        await client.close()
    assert attempts == 2


@pytest.mark.asyncio
async def test_timeouts_are_retried_with_backoff(sleep: RecordingSleep) -> None:
    attempts = 0

    def handler(request: httpx.Request) -> httpx.Response:
        nonlocal attempts
        attempts += 1
        if attempts < 3:
            raise httpx.ReadTimeout("read timed out", request=request)
        return httpx.Response(200, json={"response": []})

    client = _client(handler, sleep)
    await client.start()
    try:
        assert await client.get_json("/fixtures") == {"response": []}
    finally:
        await client.close()
    assert attempts == 3
    assert sleep.calls == [2.0, 4.0]


@pytest.mark.asyncio
async def test_persistent_timeout_raises_external_service_error(sleep: RecordingSleep) -> None:
    attempts = 0

    def handler(request: httpx.Request) -> httpx.Response:
        nonlocal attempts
        attempts += 1
        raise httpx.ReadTimeout("read timed out", request=request)

    client = _client(handler, sleep)
    await client.start()
    try:
        with pytest.raises(ExternalServiceError) as exc_info:
            await client.get_json("/fixtures")
    finally:
        await client.close()

    assert attempts == 3
    assert exc_info.value.attempts == 3
    assert "timed out after 30.0s" in str(exc_info.value)


@pytest.mark.asyncio
async def test_invalid_json_is_retried(sleep: RecordingSleep) -> None:
    bodies = iter([b"<html>busy</html>", b'{"response": []}'])

    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(200, content=next(bodies))

    client = _client(handler, sleep)
    await client.start()
    try:
        assert await client.get_json("/fixtures") == {"response": []}
    finally:
        await client.close()
    assert sleep.calls == [2.0]


@pytest.mark.asyncio
async def test_get_json_requires_start(sleep: RecordingSleep) -> None:
    client = _client(lambda request: httpx.Response(200, json={}), sleep)
    with pytest.raises(RuntimeError):
        await client.get_json("/fixtures")


@pytest.mark.asyncio
async def test_single_attempt_requires_start(sleep: RecordingSleep) -> None:
    client = _client(lambda request: httpx.Response(200, json={}), sleep)
    with pytest.raises(RuntimeError, match="not started"):
        await client._attempt("/fixtures", None)


def test_backoff_delay_doubles() -> None:
    client = ProviderHTTPClient("api_football", BASE_URL, retry_delay_s=2.0)
    assert [client.backoff_delay(n) for n in (1, 2, 3)] == [2.0, 4.0, 8.0]


# ── ApiFootballProvider ─────────────────────────────────────────────────

def _provider(handler: Any, sleep: RecordingSleep) -> ApiFootballProvider:
    return ApiFootballProvider(Settings(metrics_enabled=False), http_client=_client(handler, sleep))


@pytest.mark.asyncio
async def test_provider_client_uses_thirty_second_timeout(settings: Settings) -> None:
    provider = ApiFootballProvider(settings)
    assert provider._http.timeout_s == 30.0

    await provider.start()
    try:
        assert provider._http._client is not None
        assert provider._http._client.timeout.read == 30.0
        assert provider._http._client.timeout.connect == 30.0
    finally:
        await provider.close()


@pytest.mark.asyncio
async def test_fetch_fixtures_sends_date_and_key(sleep: RecordingSleep) -> None:
    seen: list[httpx.Request] = []
    fixture = make_raw_fixture()

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        return httpx.Response(200, json={"errors": [], "response": [fixture]})

    provider = _provider(handler, sleep)
    await provider.start()
    try:
        fixtures = await provider.fetch_fixtures_for_date(date(2026, 10, 17))
    finally:
        await provider.close()

    assert fixtures == [fixture]
    assert seen[0].url.path == "/fixtures"
    assert seen[0].url.params["date"] == "2026-10-17"
    assert seen[0].headers[API_KEY_HEADER] == "test-key"


@pytest.mark.asyncio
async def test_fetch_fixtures_missing_response_is_empty(sleep: RecordingSleep) -> None:
    provider = _provider(lambda request: httpx.Response(200, json={"results": 0}), sleep)
    await provider.start()
    try:
        assert await provider.fetch_fixtures_for_date(date(2026, 10, 17)) == []
    finally:
        await provider.close()


@pytest.mark.asyncio
async def test_fetch_fixtures_with_errors_payload_still_returns_list(sleep: RecordingSleep) -> None:
    payload = {"errors": {"requests": "You have reached the request limit"}, "response": []}
    provider = _provider(lambda request: httpx.Response(200, json=payload), sleep)
    await provider.start()
    try:
        assert await provider.fetch_fixtures_for_date(date(2026, 10, 17)) == []
    finally:
        await provider.close()
    assert sleep.calls == []


@pytest.mark.asyncio
async def test_fetch_fixtures_drops_non_object_entries(sleep: RecordingSleep) -> None:
    fixture = make_raw_fixture()
    payload = {"response": [fixture, "garbage", None, 7]}
    provider = _provider(lambda request: httpx.Response(200, json=payload), sleep)
    await provider.start()
    try:
        assert await provider.fetch_fixtures_for_date(date(2026, 10, 17)) == [fixture]
    finally:
        await provider.close()


@pytest.mark.asyncio
async def test_fetch_fixtures_propagates_exhausted_retries(sleep: RecordingSleep) -> None:
    provider = _provider(lambda request: httpx.Response(502), sleep)
    await provider.start()
    try:
        with pytest.raises(ExternalServiceError):
            await provider.fetch_fixtures_for_date(date(2026, 10, 17))
    finally:
        await provider.close()
    assert sleep.calls == [2.0, 4.0]
