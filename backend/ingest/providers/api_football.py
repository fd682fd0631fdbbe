"""
API-Football (api-sports.io) v3 provider connector.
Football only: daily fixture lists via GET /fixtures?date=YYYY-MM-DD.
Authenticated with the x-apisports-key header.
"""
from __future__ import annotations

from datetime import date
from typing import Any

from shared.config import Settings, get_settings
from shared.models.enums import ProviderName
from shared.utils.http_client import ProviderHTTPClient, SleepFn
from shared.utils.logging import get_logger

from ingest.providers.base import BaseProvider, RawFixture

logger = get_logger(__name__)

API_KEY_HEADER = "x-apisports-key"


class ApiFootballProvider(BaseProvider):
    """API-Football v3 fixture source."""

    def __init__(
        self,
        settings: Settings | None = None,
        http_client: ProviderHTTPClient | None = None,
        sleep: SleepFn | None = None,
    ) -> None:
        settings = settings or get_settings()
        if http_client is None:
            headers: dict[str, str] = {}
            if settings.api_football_key:
                headers[API_KEY_HEADER] = settings.api_football_key
            http_client = ProviderHTTPClient(
                provider_name=ProviderName.API_FOOTBALL.value,
                base_url=settings.api_football_url,
                headers=headers,
                timeout_s=settings.api_football_timeout_s,
                max_retries=settings.sync_max_retries,
                retry_delay_s=settings.sync_retry_delay_s,
                sleep=sleep,
            )
        super().__init__(name=ProviderName.API_FOOTBALL, http_client=http_client)

    async def fetch_fixtures_for_date(self, day: date) -> list[RawFixture]:
        """GET /fixtures for one day and return the raw ``response`` list."""
        date_str = day.isoformat()
        logger.info("fixtures_fetch_started", date=date_str)
        payload = await self._http.get_json("/fixtures", params={"date": date_str})
        return self._extract_fixtures(payload, date_str)

    def _extract_fixtures(self, payload: Any, date_str: str) -> list[RawFixture]:
        if not isinstance(payload, dict):
            logger.warning("fixtures_payload_malformed", date=date_str, type=type(payload).__name__)
            return []

        errors = payload.get("errors")
        if errors:
            # The upstream reports quota/parameter problems here with HTTP 200.
            logger.warning("fixtures_payload_errors", date=date_str, errors=errors)

        fixtures = payload.get("response")
        if not isinstance(fixtures, list):
            logger.warning("fixtures_payload_missing_response", date=date_str)
            return []
        return [f for f in fixtures if isinstance(f, dict)]
