from __future__ import annotations

from typing import Any, Optional
from unittest.mock import AsyncMock, patch

import httpx
import pytest

from depdoctor.__version__ import __version__
from depdoctor.exceptions import NetworkError, RegistryError
from depdoctor.utils.http import REGISTRY_ACCEPT_HEADER, HTTPClient

URL = "https://registry.npmjs.org/react"


def _response(status: int, *, json: Any = None, text: Optional[str] = None, headers: Any = None) -> httpx.Response:
    request = httpx.Request("GET", URL)
    if json is not None:
        return httpx.Response(status, json=json, request=request, headers=headers)
    return httpx.Response(status, text=text or "", request=request, headers=headers)


@pytest.mark.unit
class TestHTTPClientInit:
    """Tests for HTTPClient configuration."""

    def test_default_user_agent(self) -> None:
        """Test the User-Agent names the tool and its version."""
        client = HTTPClient()

        assert client.user_agent == f"depdoctor/{__version__}"

    def test_custom_values(self) -> None:
        """Test constructor arguments are stored."""
        client = HTTPClient(timeout=3, max_retries=0, user_agent="custom/1")

        assert client.timeout == 3
        assert client.max_retries == 0
        assert client.user_agent == "custom/1"

    @pytest.mark.asyncio
    async def test_context_manager_creates_and_closes_client(self) -> None:
        """Test the underlying httpx client lives only inside the block."""
        client = HTTPClient()

        async with client:
            assert client._client is not None
            assert client._client.headers["Accept"] == REGISTRY_ACCEPT_HEADER

        assert client._client is None


@pytest.mark.unit
class TestRequestWithRetry:
    """Tests for retry and error mapping."""

    @pytest.mark.asyncio
    async def test_success_first_try(self) -> None:
        """Test a 200 response returns without retrying."""
        with patch.object(httpx.AsyncClient, "request", new_callable=AsyncMock) as mock_request:
            mock_request.return_value = _response(200, json={})

            async with HTTPClient(max_retries=2) as client:
                response = await client.get(URL)

        assert response.status_code == 200
        assert mock_request.call_count == 1

    @pytest.mark.asyncio
    async def test_404_raises_registry_error_without_retry(self) -> None:
        """Test 404 maps to RegistryError and is not retried."""
        with patch.object(httpx.AsyncClient, "request", new_callable=AsyncMock) as mock_request:
            mock_request.return_value = _response(404)

            async with HTTPClient(max_retries=3) as client:
                with pytest.raises(RegistryError) as exc_info:
                    await client.get(URL)

        assert exc_info.value.status_code == 404
        assert mock_request.call_count == 1

    @pytest.mark.asyncio
    async def test_other_4xx_raises_network_error(self) -> None:
        """Test 403 fails fast as NetworkError."""
        with patch.object(httpx.AsyncClient, "request", new_callable=AsyncMock) as mock_request:
            mock_request.return_value = _response(403, text="forbidden")

            async with HTTPClient(max_retries=3) as client:
                with pytest.raises(NetworkError) as exc_info:
                    await client.get(URL)

        assert exc_info.value.status_code == 403
        assert not isinstance(exc_info.value, RegistryError)
        assert mock_request.call_count == 1

    @pytest.mark.asyncio
    async def test_5xx_is_retried(self) -> None:
        """Test a server error is retried and a later success returned."""
        with patch.object(httpx.AsyncClient, "request", new_callable=AsyncMock) as mock_request, patch(
            "depdoctor.utils.http.asyncio.sleep", new_callable=AsyncMock
        ):
            mock_request.side_effect = [_response(503), _response(200, json={})]

            async with HTTPClient(max_retries=2) as client:
                response = await client.get(URL)

        assert response.status_code == 200
        assert mock_request.call_count == 2

    @pytest.mark.asyncio
    async def test_timeouts_exhaust_retries(self) -> None:
        """Test repeated timeouts end in NetworkError after every attempt."""
        with patch.object(httpx.AsyncClient, "request", new_callable=AsyncMock) as mock_request, patch(
            "depdoctor.utils.http.asyncio.sleep", new_callable=AsyncMock
        ):
            mock_request.side_effect = httpx.TimeoutException("slow")

            async with HTTPClient(max_retries=2) as client:
                with pytest.raises(NetworkError, match="after 3 attempts"):
                    await client.get(URL)

        assert mock_request.call_count == 3

    @pytest.mark.asyncio
    async def test_429_honours_retry_after(self) -> None:
        """Test a rate-limited response waits Retry-After seconds then retries."""
        with patch.object(httpx.AsyncClient, "request", new_callable=AsyncMock) as mock_request, patch(
            "depdoctor.utils.http.asyncio.sleep", new_callable=AsyncMock
        ) as mock_sleep:
            mock_request.side_effect = [
                _response(429, headers={"Retry-After": "2"}),
                _response(200, json={}),
            ]

            async with HTTPClient(max_retries=1) as client:
                response = await client.get(URL)

        assert response.status_code == 200
        mock_sleep.assert_any_await(2)


@pytest.mark.unit
class TestGetJson:
    """Tests for get_json."""

    @pytest.mark.asyncio
    async def test_returns_object(self) -> None:
        """Test a JSON object body is returned as a dict."""
        with patch.object(httpx.AsyncClient, "request", new_callable=AsyncMock) as mock_request:
            mock_request.return_value = _response(200, json={"name": "react"})

            async with HTTPClient() as client:
                data = await client.get_json(URL)

        assert data == {"name": "react"}

    @pytest.mark.asyncio
    async def test_invalid_json(self) -> None:
        """Test a non-JSON body raises NetworkError."""
        with patch.object(httpx.AsyncClient, "request", new_callable=AsyncMock) as mock_request:
            mock_request.return_value = _response(200, text="<html>")

            async with HTTPClient() as client:
                with pytest.raises(NetworkError, match="Invalid JSON"):
                    await client.get_json(URL)

    @pytest.mark.asyncio
    async def test_non_object_json(self) -> None:
        """Test a JSON array raises NetworkError."""
        with patch.object(httpx.AsyncClient, "request", new_callable=AsyncMock) as mock_request:
            mock_request.return_value = _response(200, json=[1, 2])

            async with HTTPClient() as client:
                with pytest.raises(NetworkError, match="Expected JSON object"):
                    await client.get_json(URL)
