"""
Abstract base class for fixture source providers.
Defines the contract every upstream connector must implement.
"""
from __future__ import annotations

import abc
from datetime import date
from typing import Any

from shared.models.enums import ProviderName
from shared.utils.http_client import ProviderHTTPClient

RawFixture = dict[str, Any]


class BaseProvider(abc.ABC):
    """
    Abstract base class for fixture providers.

    The base class owns the HTTP client lifecycle; subclasses map one
    calendar date to the upstream's raw fixture records.
    """

    def __init__(self, name: ProviderName, http_client: ProviderHTTPClient) -> None:
        self._name = name
        self._http = http_client

    @property
    def name(self) -> ProviderName:
        return self._name

    async def start(self) -> None:
        """Initialize the provider HTTP client."""
        await self._http.start()

    async def close(self) -> None:
        """Shutdown the provider HTTP client."""
        await self._http.close()

    @abc.abstractmethod
    async def fetch_fixtures_for_date(self, day: date) -> list[RawFixture]:
        """
        Fetch every fixture the upstream lists for ``day``.

        Raises:
            ExternalServiceError: When the upstream stays unreachable after retries.
        """
        ...
