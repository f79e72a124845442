"""Tests for the verification lookup clients."""

import functools

import httpx
import pytest

from wine_pipeline.core.enums import WineType
from wine_pipeline.core.errors import UpstreamServiceError
from wine_pipeline.enrichment.verification import (
    HttpVerificationClient,
    NullVerificationClient,
    create_verification_client,
)
from wine_pipeline.ingestion.settings import VerificationConfig


@pytest.fixture
def mock_service(monkeypatch):
    """Route httpx.AsyncClient through a MockTransport; returns the recorded requests."""
    requests = []
    responses = {}

    def handler(request: httpx.Request) -> httpx.Response:
        requests.append(request)
        return responses["next"](request)

    transport = httpx.MockTransport(handler)
    monkeypatch.setattr(
        httpx, "AsyncClient", functools.partial(httpx.AsyncClient, transport=transport)
    )
    return requests, responses


def _client() -> HttpVerificationClient:
    return HttpVerificationClient(
        "https://verify.example.com/",
        api_key="secret",
        requests_per_second=100.0,
        burst_limit=10,
    )


class TestNullVerificationClient:
    """Tests for the unconfigured client."""

    @pytest.mark.asyncio
    async def test_never_finds(self) -> None:
        """Test that the null client reports not found."""
        result = await NullVerificationClient().lookup("Antinori", "Solaia", "2017")
        assert result.found is False

    def test_factory_without_url(self) -> None:
        """Test that no base URL selects the null client."""
        assert isinstance(create_verification_client(VerificationConfig()), NullVerificationClient)

    def test_factory_with_url(self) -> None:
        """Test that a base URL selects the HTTP client."""
        client = create_verification_client(VerificationConfig(base_url="https://v.example.com"))
        assert isinstance(client, HttpVerificationClient)


class TestHttpVerificationClient:
    """Tests for the HTTP lookup client."""

    @pytest.mark.asyncio
    async def test_found(self, mock_service) -> None:
        """Test a successful lookup."""
        requests, responses = mock_service
        responses["next"] = lambda request: httpx.Response(
            200,
            json={"found": True, "confidence": 0.92, "rating": 4.6, "wine_type": "Red"},
        )

        result = await _client().lookup("Antinori", "Solaia", "2017")

        assert result.found is True
        assert result.confidence == 0.92
        assert result.wine_type == WineType.RED
        assert result.source == "Vivino"
        request = requests[0]
        assert request.url.path == "/lookup"
        assert request.url.params["name"] == "Solaia"
        assert request.headers["Authorization"] == "Bearer secret"

    @pytest.mark.asyncio
    async def test_not_found(self, mock_service) -> None:
        """Test that a 404 means the wine is unknown."""
        _, responses = mock_service
        responses["next"] = lambda request: httpx.Response(404)

        result = await _client().lookup("Nobody", "Nothing", "")

        assert result.found is False

    @pytest.mark.asyncio
    async def test_server_error(self, mock_service) -> None:
        """Test that a 5xx raises UpstreamServiceError."""
        _, responses = mock_service
        responses["next"] = lambda request: httpx.Response(503)

        with pytest.raises(UpstreamServiceError, match="HTTP 503"):
            await _client().lookup("Antinori", "Solaia", "2017")

    @pytest.mark.asyncio
    async def test_connection_error(self, mock_service) -> None:
        """Test that transport errors raise UpstreamServiceError."""
        _, responses = mock_service

        def refuse(request):
            raise httpx.ConnectError("refused", request=request)

        responses["next"] = refuse

        with pytest.raises(UpstreamServiceError):
            await _client().lookup("Antinori", "Solaia", "2017")

    @pytest.mark.asyncio
    async def test_non_json_body(self, mock_service) -> None:
        """Test that a non-JSON body raises UpstreamServiceError."""
        _, responses = mock_service
        responses["next"] = lambda request: httpx.Response(200, text="<html>")

        with pytest.raises(UpstreamServiceError, match="not JSON"):
            await _client().lookup("Antinori", "Solaia", "2017")
