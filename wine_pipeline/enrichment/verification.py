"""
Verification Lookup Module
==========================

Client for the external wine rating/review service consulted first in
the enrichment chain. Lookups are keyed by producer, name and vintage
and are rate limited with a token bucket.
"""

from __future__ import annotations

import asyncio
import logging
import os
import time
from abc import ABC, abstractmethod

import httpx
from pydantic import BaseModel, field_validator
from pydantic import ValidationError as PydanticValidationError

from wine_pipeline.core.enums import WineType
from wine_pipeline.core.errors import UpstreamServiceError
from wine_pipeline.core.schema import coerce_wine_type
from wine_pipeline.ingestion.settings import VerificationConfig

logger = logging.getLogger(__name__)


class VerificationResult(BaseModel):
    """Answer from the verification service."""

    found: bool = False
    confidence: float = 0.0
    source: str | None = None
    rating: float | None = None
    wine_type: WineType | None = None
    wine_style: str | None = None
    region: str | None = None
    notes: str | None = None

    @field_validator("wine_type", mode="before")
    @classmethod
    def parse_wine_type(cls, v: object) -> WineType | None:
        return coerce_wine_type(v)

    @classmethod
    def not_found(cls) -> VerificationResult:
        return cls(found=False)


class TokenBucket:
    """
    Token bucket rate limiter.

    Allows bursting up to burst_limit requests, then enforces
    the steady-state rate of requests_per_second.
    """

    def __init__(self, requests_per_second: float, burst_limit: int) -> None:
        self.requests_per_second = requests_per_second
        self.burst_limit = burst_limit
        self.tokens = float(burst_limit)
        self.last_update = time.monotonic()
        self._lock = asyncio.Lock()

    async def acquire(self) -> None:
        """Acquire a token, waiting if necessary."""
        async with self._lock:
            now = time.monotonic()
            elapsed = now - self.last_update
            self.last_update = now

            self.tokens = min(
                self.burst_limit, self.tokens + elapsed * self.requests_per_second
            )

            if self.tokens < 1.0:
                wait_time = (1.0 - self.tokens) / self.requests_per_second
                await asyncio.sleep(wait_time)
                self.tokens = 0.0
            else:
                self.tokens -= 1.0


class VerificationClient(ABC):
    """Interface of the external verification service."""

    source_name: str = "Verification"

    @abstractmethod
    async def lookup(self, producer: str, wine_name: str, vintage: str) -> VerificationResult:
        """
        Look up a wine.

        Returns:
            VerificationResult, with found=False when the service has no match

        Raises:
            UpstreamServiceError: If the service cannot be reached
        """
        pass


class NullVerificationClient(VerificationClient):
    """Verification client used when no service is configured."""

    source_name = "None"

    async def lookup(self, producer: str, wine_name: str, vintage: str) -> VerificationResult:
        return VerificationResult.not_found()


class HttpVerificationClient(VerificationClient):
    """
    Verification client for a JSON lookup endpoint.

    Calls GET {base_url}/lookup with producer, name and vintage query
    parameters. A 404 means the wine is unknown.
    """

    def __init__(
        self,
        base_url: str,
        api_key: str | None = None,
        source_name: str = "Vivino",
        timeout: float = 10.0,
        requests_per_second: float = 2.0,
        burst_limit: int = 2,
    ) -> None:
        self.base_url = base_url.rstrip("/")
        self.api_key = api_key
        self.source_name = source_name
        self.timeout = timeout
        self.bucket = TokenBucket(requests_per_second, burst_limit)

    @classmethod
    def from_config(cls, config: VerificationConfig) -> HttpVerificationClient:
        """Create client from configuration, reading VERIFICATION_API_KEY."""
        return cls(
            base_url=config.base_url,
            api_key=os.environ.get("VERIFICATION_API_KEY"),
            source_name=config.source_name,
            timeout=config.timeout,
            requests_per_second=config.requests_per_second,
            burst_limit=config.burst_limit,
        )

    async def lookup(self, producer: str, wine_name: str, vintage: str) -> VerificationResult:
        await self.bucket.acquire()

        headers = {"Accept": "application/json"}
        if self.api_key:
            headers["Authorization"] = f"Bearer {self.api_key}"
        params = {"producer": producer, "name": wine_name, "vintage": vintage}

        try:
            async with httpx.AsyncClient(timeout=self.timeout) as client:
                response = await client.get(
                    f"{self.base_url}/lookup", params=params, headers=headers
                )
        except httpx.TimeoutException as e:
            raise UpstreamServiceError(self.source_name, "request timed out") from e
        except httpx.HTTPError as e:
            raise UpstreamServiceError(self.source_name, str(e)) from e

        if response.status_code == 404:
            return VerificationResult.not_found()
        if response.status_code >= 400:
            raise UpstreamServiceError(
                self.source_name, f"HTTP {response.status_code} for {wine_name!r}"
            )

        try:
            payload = response.json()
        except ValueError as e:
            raise UpstreamServiceError(self.source_name, "response is not JSON") from e

        try:
            result = VerificationResult.model_validate(payload)
        except PydanticValidationError as e:
            raise UpstreamServiceError(self.source_name, f"unexpected response: {e}") from e
        if result.source is None:
            result.source = self.source_name
        return result


def create_verification_client(config: VerificationConfig) -> VerificationClient:
    """Build the HTTP client when a base URL is configured, else the null client."""
    if config.base_url:
        logger.info(f"Using {config.source_name} verification at {config.base_url}")
        return HttpVerificationClient.from_config(config)
    return NullVerificationClient()
