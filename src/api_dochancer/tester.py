"""Live endpoint testing.

Builds one request per endpoint from synthesized values and configured
common parameters, fires it and classifies the outcome. Every HTTP status is
a result; only a missing response counts as a failure.
"""

import asyncio
import json
import logging
import re
import traceback
from dataclasses import dataclass
from typing import Any
from urllib.parse import quote

import httpx

from api_dochancer.config import Settings, get_settings
from api_dochancer.llm import AiEnhancer, with_fallback
from api_dochancer.parser.base import ApiEndpoint, ApiParameter, Param, TestResult
from api_dochancer.values import generate_from_schema, generate_param_value

logger = logging.getLogger(__name__)

BODY_METHODS = ("POST", "PUT", "PATCH")
PLACEHOLDER = re.compile(r"\{([^}]+)\}")


@dataclass(frozen=True)
class TesterConfig:
    """Snapshot of the tester configuration used for one run."""

    base_url: str = ""
    api_key: str = ""
    ai: AiEnhancer | None = None
    common_parameters: tuple[ApiParameter, ...] = ()

    def overrides(self, param_type: str) -> list[ApiParameter]:
        return [p for p in self.common_parameters if p.type == param_type]

    def override_value(self, name: str) -> str | None:
        for p in self.common_parameters:
            if p.name == name and p.value:
                return p.value
        return None


@dataclass
class PreparedRequest:
    method: str
    url: str
    params: list[tuple[str, str]]
    headers: dict[str, str]
    json: Any = None


class EndpointTester:
    """Sends one live request per endpoint against a configured server."""

    def __init__(self, settings: Settings | None = None, transport: httpx.AsyncBaseTransport | None = None):
        self.settings = settings or get_settings()
        self._transport = transport
        self._config = TesterConfig()
        self._in_flight = 0

    @property
    def config(self) -> TesterConfig:
        return self._config

    def configure(
        self,
        base_url: str,
        api_key: str = "",
        ai: AiEnhancer | None = None,
        common_parameters: list[ApiParameter] | None = None,
    ) -> None:
        if self._in_flight:
            raise RuntimeError("Cannot reconfigure the tester while a test run is in progress")
        self._config = TesterConfig(
            base_url=base_url or "",
            api_key=api_key or "",
            ai=ai,
            common_parameters=tuple(p.model_copy() for p in common_parameters or []),
        )

    async def test_endpoint(self, endpoint: ApiEndpoint) -> TestResult:
        config = self._config
        self._in_flight += 1
        try:
            async with self._client() as client:
                return await self._test(client, config, endpoint)
        finally:
            self._in_flight -= 1

    async def test_all_endpoints(self, endpoints: list[ApiEndpoint]) -> list[ApiEndpoint]:
        """Test every endpoint concurrently; the output keeps the input order."""
        config = self._config
        self._in_flight += 1
        try:
            async with self._client() as client:
                results = await asyncio.gather(
                    *(self._test(client, config, endpoint) for endpoint in endpoints),
                    return_exceptions=True,
                )
        finally:
            self._in_flight -= 1

        tested = []
        for endpoint, result in zip(endpoints, results):
            if isinstance(result, BaseException):
                logger.error("Testing %s %s crashed: %s", endpoint.method, endpoint.path, result)
                result = TestResult(status="failure", message=str(result) or type(result).__name__, error=repr(result))
            tested.append(endpoint.model_copy(update={"test_result": result}))
        return tested

    def _client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(timeout=self.settings.test_timeout, transport=self._transport)

    async def _test(self, client: httpx.AsyncClient, config: TesterConfig, endpoint: ApiEndpoint) -> TestResult:
        if not config.base_url:
            return TestResult(status="warning", message="No base URL configured for testing")

        request = await self.build_request(config, endpoint)
        logger.info("Testing endpoint: %s %s", request.method, request.url)

        try:
            response = await client.request(
                request.method,
                request.url,
                params=request.params or None,
                headers=request.headers,
                json=request.json,
            )
        except (httpx.HTTPError, httpx.InvalidURL) as e:
            logger.warning("No response from %s %s: %s", request.method, request.url, e)
            return TestResult(
                status="failure",
                message=str(e) or type(e).__name__,
                error="".join(traceback.format_exception_only(type(e), e)).strip(),
            )

        return TestResult(
            status="success" if response.is_success else "warning",
            status_code=response.status_code,
            message=f"Received {response.status_code} {response.reason_phrase}".strip(),
            response=_response_body(response),
            headers=dict(response.headers),
        )

    async def build_request(self, config: TesterConfig, endpoint: ApiEndpoint) -> PreparedRequest:
        params = endpoint.parameters or []
        path = self._build_path(config, endpoint.path, params)
        query = self._build_query(config, params)
        headers = self._build_headers(config)
        data = await self._build_data(config, endpoint)

        body = None
        if endpoint.method == "GET" and isinstance(data, dict):
            supplied = {name for name, _ in query}
            query.extend((str(k), _query_value(v)) for k, v in data.items() if str(k) not in supplied)
        elif endpoint.method in BODY_METHODS:
            body = data

        return PreparedRequest(
            method=endpoint.method.lower(),
            url=config.base_url.rstrip("/") + "/" + path.lstrip("/"),
            params=query,
            headers=headers,
            json=body,
        )

    def _build_path(self, config: TesterConfig, path: str, params: list[Param]) -> str:
        placeholders = set(PLACEHOLDER.findall(path))
        for override in config.overrides("path"):
            if override.name in placeholders and override.value:
                path = path.replace(f"{{{override.name}}}", quote(override.value, safe=""))

        for param in params:
            token = f"{{{param.name}}}"
            if param.location != "path" or token not in path:
                continue
            value = config.override_value(param.name) or generate_param_value(param)
            path = path.replace(token, quote(value, safe=""))

        # placeholders the endpoint never declared
        return PLACEHOLDER.sub(lambda m: quote(generate_param_value(Param(name=m.group(1), location="path")), safe=""), path)

    def _build_query(self, config: TesterConfig, params: list[Param]) -> list[tuple[str, str]]:
        query = [(p.name, p.value) for p in config.overrides("query")]
        supplied = {name for name, _ in query}
        for param in params:
            if param.location == "query" and param.name not in supplied:
                query.append((param.name, generate_param_value(param)))
                supplied.add(param.name)
        return query

    def _build_headers(self, config: TesterConfig) -> dict[str, str]:
        headers = {
            "Content-Type": "application/json",
            "Accept": "application/json",
        }
        if config.api_key:
            headers["Authorization"] = f"Bearer {config.api_key}"
            headers["X-API-Key"] = config.api_key

        for override in config.overrides("header"):
            if not override.value:
                continue
            for existing in [h for h in headers if h.lower() == override.name.lower()]:
                del headers[existing]
            headers[override.name] = override.value
        return headers

    async def _build_data(self, config: TesterConfig, endpoint: ApiEndpoint) -> Any:
        if config.ai is not None:
            data = await with_fallback(
                config.ai.generate_test_data(endpoint), None, f"Test data generation for {endpoint.method} {endpoint.path}"
            )
            if data is not None:
                return data

        schema = endpoint.json_request_schema()
        if schema is not None:
            return generate_from_schema(schema)

        return {p.name: generate_param_value(p) for p in endpoint.parameters or [] if p.location == "body"}


def _response_body(response: httpx.Response) -> Any:
    try:
        return response.json()
    except ValueError:
        return response.text


def _query_value(value: Any) -> str:
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, (dict, list)):
        return json.dumps(value)
    return "" if value is None else str(value)
