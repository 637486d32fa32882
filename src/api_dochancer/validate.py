"""Pre-flight checks for a documentation URL, a test API key and the AI key."""

import base64
import logging

import httpx

from api_dochancer.config import Settings, get_settings
from api_dochancer.exceptions import EnhancementError
from api_dochancer.llm import AiEnhancer
from api_dochancer.parser.base import ValidationResult

logger = logging.getLogger(__name__)

PARSEABLE_CONTENT_TYPES = ("text/", "application/json", "application/pdf")
DEFAULT_TEST_URL = "https://api.example.com"


async def validate_url(
    url: str,
    settings: Settings | None = None,
    transport: httpx.AsyncBaseTransport | None = None,
) -> ValidationResult:
    """Check that ``url`` answers and serves something the parser can read."""
    settings = settings or get_settings()
    try:
        async with httpx.AsyncClient(
            timeout=settings.validation_timeout,
            headers={
                "User-Agent": settings.user_agent,
                "Accept": "text/html,application/xhtml+xml,application/xml,application/json",
            },
            follow_redirects=True,
            max_redirects=5,
            transport=transport,
        ) as client:
            response = await client.get(url)
    except (httpx.HTTPError, httpx.InvalidURL) as e:
        result = ValidationResult(type="url", status="failure", message="Failed to access URL", details=str(e))
    else:
        content_type = response.headers.get("content-type", "")
        details = f"Content-Type: {content_type}, Status: {response.status_code}"
        if response.status_code != 200:
            result = ValidationResult(
                type="url",
                status="failure",
                message=f"URL returned status {response.status_code}",
                details=response.reason_phrase,
            )
        elif any(t in content_type for t in PARSEABLE_CONTENT_TYPES):
            result = ValidationResult(type="url", status="success", message="URL is accessible and parseable", details=details)
        else:
            result = ValidationResult(
                type="url", status="success", message="URL is accessible but may have limited parsing", details=details
            )

    logger.info("URL validation: %s for %s", result.status, url)
    return result


def auth_probe_headers(api_key: str) -> dict[str, str]:
    """Bearer tokens pass through, ``user:pass`` becomes Basic auth, anything else is sent every common way."""
    headers = {"Accept": "application/json", "Content-Type": "application/json"}
    if api_key.lower().startswith("bearer "):
        headers["Authorization"] = api_key
    elif ":" in api_key:
        headers["Authorization"] = "Basic " + base64.b64encode(api_key.encode()).decode()
    else:
        headers["Authorization"] = f"Bearer {api_key}"
        headers["X-API-Key"] = api_key
        headers["api-key"] = api_key
    return headers


async def validate_test_api(
    api_key: str,
    base_url: str | None = None,
    settings: Settings | None = None,
    transport: httpx.AsyncBaseTransport | None = None,
) -> ValidationResult:
    """Probe ``base_url`` with the key; only 401/403 or an unreachable host count as failure."""
    settings = settings or get_settings()
    try:
        async with httpx.AsyncClient(timeout=settings.validation_timeout, transport=transport) as client:
            response = await client.get(base_url or DEFAULT_TEST_URL, headers=auth_probe_headers(api_key))
    except httpx.ConnectError as e:
        logger.info("Test API validation: cannot connect (%s)", e)
        return ValidationResult(
            type="test_api",
            status="failure",
            message="Cannot connect to API server",
            details=f"Cannot reach {base_url}" if base_url else "No base URL provided",
        )
    except (httpx.HTTPError, httpx.InvalidURL) as e:
        logger.info("Test API validation skipped: %s", e)
        return ValidationResult(
            type="test_api", status="success", message="API key validation skipped", details="Could not verify but will proceed"
        )

    status = response.status_code
    if status in (401, 403):
        result = ValidationResult(
            type="test_api",
            status="failure",
            message="API key authentication failed",
            details=f"Status {status}: {response.reason_phrase}",
        )
    elif response.is_success:
        result = ValidationResult(
            type="test_api",
            status="success",
            message="Test API key is valid",
            details=f"Successfully authenticated with status {status}",
        )
    elif status == 404:
        result = ValidationResult(
            type="test_api",
            status="success",
            message="API key appears valid (endpoint not found is expected)",
            details="Authentication passed but specific endpoint not found",
        )
    else:
        result = ValidationResult(
            type="test_api",
            status="success",
            message="API key validation inconclusive",
            details=f"Received status {status} - key may be valid",
        )

    logger.info("Test API validation: %s", result.status)
    return result


async def validate_ai_key(enhancer: AiEnhancer) -> ValidationResult:
    try:
        await enhancer.ping()
    except EnhancementError as e:
        return ValidationResult(type="ai_key", status="failure", message="Invalid AI API key", details=str(e))
    return ValidationResult(type="ai_key", status="success", message="AI API key is valid and working")
