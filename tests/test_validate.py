import base64
from unittest.mock import AsyncMock, MagicMock

import httpx
import pytest

from api_dochancer.exceptions import EnhancementError
from api_dochancer.llm import AiEnhancer
from api_dochancer.validate import auth_probe_headers, validate_ai_key, validate_test_api, validate_url
from conftest import mock_transport


class TestValidateUrl:
    @pytest.mark.asyncio
    async def test_parseable(self, settings):
        transport = mock_transport({"/docs": httpx.Response(200, html="<h1>Docs</h1>")})
        result = await validate_url("https://acme.io/docs", settings, transport)
        assert result.status == "success"
        assert result.message == "URL is accessible and parseable"

    @pytest.mark.asyncio
    async def test_limited_parsing(self, settings):
        transport = mock_transport({"/logo": httpx.Response(200, content=b"\x89PNG", headers={"content-type": "image/png"})})
        result = await validate_url("https://acme.io/logo", settings, transport)
        assert result.status == "success"
        assert "limited parsing" in result.message

    @pytest.mark.asyncio
    async def test_error_status(self, settings):
        result = await validate_url("https://acme.io/gone", settings, mock_transport({}))
        assert result.status == "failure"
        assert result.message == "URL returned status 404"

    @pytest.mark.asyncio
    async def test_unreachable(self, settings):
        transport = mock_transport({"/docs": httpx.ConnectError("refused")})
        result = await validate_url("https://acme.io/docs", settings, transport)
        assert result.status == "failure"
        assert result.message == "Failed to access URL"


class TestAuthProbeHeaders:
    def test_bearer_passthrough(self):
        assert auth_probe_headers("Bearer abc")["Authorization"] == "Bearer abc"

    def test_basic_credentials(self):
        expected = "Basic " + base64.b64encode(b"user:pass").decode()
        assert auth_probe_headers("user:pass")["Authorization"] == expected

    def test_plain_key_sent_every_way(self):
        headers = auth_probe_headers("k1")
        assert headers["Authorization"] == "Bearer k1"
        assert headers["X-API-Key"] == "k1"
        assert headers["api-key"] == "k1"


class TestValidateTestApi:
    @pytest.mark.asyncio
    @pytest.mark.parametrize("status, expected, message", [
        (200, "success", "Test API key is valid"),
        (401, "failure", "API key authentication failed"),
        (403, "failure", "API key authentication failed"),
        (404, "success", "API key appears valid (endpoint not found is expected)"),
        (500, "success", "API key validation inconclusive"),
    ])
    async def test_status_mapping(self, settings, status, expected, message):
        transport = mock_transport({}, default=status)
        result = await validate_test_api("k1", "https://api.acme.io", settings, transport)
        assert (result.status, result.message) == (expected, message)

    @pytest.mark.asyncio
    async def test_cannot_connect(self, settings):
        transport = mock_transport({"": httpx.ConnectError("refused"), "/": httpx.ConnectError("refused")})
        result = await validate_test_api("k1", "https://api.acme.io", settings, transport)
        assert result.status == "failure"
        assert result.details == "Cannot reach https://api.acme.io"

    @pytest.mark.asyncio
    async def test_other_errors_skip(self, settings):
        transport = mock_transport({"/": httpx.ReadTimeout("slow")})
        result = await validate_test_api("k1", "https://api.acme.io/", settings, transport)
        assert result.status == "success"
        assert result.message == "API key validation skipped"


class TestValidateAiKey:
    @pytest.mark.asyncio
    async def test_valid(self):
        enhancer = MagicMock(spec=AiEnhancer)
        enhancer.ping = AsyncMock(return_value="OK")
        result = await validate_ai_key(enhancer)
        assert result.status == "success"

    @pytest.mark.asyncio
    async def test_invalid(self):
        enhancer = MagicMock(spec=AiEnhancer)
        enhancer.ping = AsyncMock(side_effect=EnhancementError("LLM call failed: 401"))
        result = await validate_ai_key(enhancer)
        assert result.status == "failure"
        assert result.details == "LLM call failed: 401"
