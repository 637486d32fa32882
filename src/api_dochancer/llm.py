"""LLM client wrapper around litellm, and the AI enhancement capability.

Every ``AiEnhancer`` method raises ``EnhancementError`` when the model call
or its answer is unusable. Call sites decide what to substitute, usually via
``with_fallback``.
"""

import json
import logging
import re
from typing import Any, Awaitable, TypeVar

from litellm import acompletion
from pydantic import TypeAdapter, ValidationError

from api_dochancer.exceptions import EnhancementError
from api_dochancer.parser.base import ApiEndpoint, Param, RequestBody, Response, unique_parameters

logger = logging.getLogger(__name__)

DEFAULT_MODEL = "claude-sonnet-4-20250514"

T = TypeVar("T")

EXTRACT_PROMPT = """You are an API documentation parser. Extract all API endpoints from the given document.

Output a JSON array of endpoint objects. Each object must have these fields:
- method: HTTP method (GET/POST/PUT/DELETE/PATCH/HEAD/OPTIONS)
- path: URL path (e.g., /api/users/{id})
- summary: Brief description
- description: Longer description, if the document has one
- parameters: Array of {name, in (query/path/header/cookie), required (bool), description, schema: {type}}

Output ONLY the JSON array, no other text."""

CATEGORIZE_PROMPT = """You organise API endpoints into logical groups for user flows and actions.
Also improve the documentation for clarity, grammar and spelling while keeping it technically accurate.

Return a JSON array with one object per endpoint: {method, path, category, summary, description}.
Output ONLY the JSON array, no other text."""

TEST_DATA_PROMPT = """Generate realistic test data for the given API endpoint.
The data must be semantically correct and follow the expected format.
Return only a JSON object that can be used as request body or parameters."""

DETAILS_PROMPT = """Extract detailed API endpoint information from the documentation.

Return a JSON object:
{
  "summary": "brief one-line summary",
  "description": "detailed description of what this endpoint does",
  "parameters": [{"name": "...", "in": "query|header|path|cookie", "description": "...", "required": true, "schema": {"type": "string"}}],
  "requestBody": {"description": "...", "required": true, "content": {"application/json": {"schema": {"type": "object", "properties": {}}}}},
  "responses": [{"statusCode": "200", "description": "...", "content": {"application/json": {"schema": {"type": "object"}}}}]
}

Parameter locations:
- "?key=value", "query string", "URL parameters" -> query
- "header:", "Authorization:", "X-API-Key:" -> header
- ":id", "{id}", "in the path" -> path
- "request body", "JSON payload" -> requestBody

Extract ALL parameters mentioned. Output ONLY the JSON object, no other text."""

ENHANCE_PROMPT = """Review and enhance API endpoint documentation.
Keep every technical detail, example and code snippet; fix grammar and spelling; improve clarity for developers.

Return a JSON object: {"summary": "brief one-line summary", "description": "enhanced description incorporating the original docs", "technicalNotes": "important technical details"}
Output ONLY the JSON object, no other text."""

PRODUCT_INTRO_PROMPT = """Write a technical product introduction for API documentation.
Use language appropriate for developers, focus on the API's capabilities and use cases,
keep it to 2-3 paragraphs and at most 200 words. Return only the introduction text."""

PRODUCT_CONTEXT_PROMPT = """Summarise what the named product does, focusing on its main features and API capabilities.
Keep it under 200 words."""

MIN_DETAIL_DOCUMENTATION = 50

_endpoint_list = TypeAdapter(list[ApiEndpoint])
_param_list = TypeAdapter(list[Param])
_response_list = TypeAdapter(list[Response])


class LlmClient:
    """Wrapper for LLM API calls via litellm."""

    def __init__(self, model: str | None = None, api_key: str | None = None):
        self.model = model or DEFAULT_MODEL
        self.api_key = api_key or None

    async def acall(self, system: str, user: str) -> str:
        """Send a system+user message to the LLM and return the response text."""
        response = await acompletion(model=self.model, messages=self._messages(system, user), api_key=self.api_key)
        return response.choices[0].message.content

    def _messages(self, system: str, user: str) -> list[dict]:
        return [
            {"role": "system", "content": system},
            {"role": "user", "content": user},
        ]


class AiEnhancer:
    """Optional AI capability used to extract, polish and categorise endpoints."""

    def __init__(self, client: LlmClient):
        self.client = client

    async def extract_endpoints(self, raw_content: str) -> list[ApiEndpoint]:
        if not raw_content.strip():
            return []
        data = await self._ask_json(EXTRACT_PROMPT, raw_content, expect=list)
        try:
            return _endpoint_list.validate_python(data)
        except ValidationError as e:
            raise EnhancementError(f"AI returned invalid endpoints: {e}") from e

    async def categorize_endpoints(self, endpoints: list[ApiEndpoint], product_context: str = "") -> list[ApiEndpoint]:
        """Overlay AI categories and descriptions; endpoints are matched by (method, path)."""
        if not endpoints:
            return []
        user = (
            f"Product Context: {product_context or 'Not provided'}\n\n"
            f"Endpoints:\n{_dump([_brief(e) for e in endpoints])}"
        )
        data = await self._ask_json(CATEGORIZE_PROMPT, user, expect=list)

        updates: dict[tuple[str, str], dict] = {}
        for item in data:
            if isinstance(item, dict) and _string(item, "method") and _string(item, "path"):
                updates.setdefault((_string(item, "method").upper(), _string(item, "path")), item)

        result = []
        for endpoint in endpoints:
            item = updates.get(endpoint.key, {})
            result.append(endpoint.model_copy(update={
                field: _string(item, field)
                for field in ("category", "summary", "description")
                if _string(item, field)
            }))
        return result

    async def generate_test_data(self, endpoint: ApiEndpoint) -> Any:
        return await self._ask_json(TEST_DATA_PROMPT, _dump(endpoint.to_json_dict()), expect=dict)

    async def extract_endpoint_details(self, endpoint: ApiEndpoint) -> ApiEndpoint:
        """Overlay summary, description, parameters, body and responses found in the docs."""
        documentation = endpoint.original_documentation or endpoint.description or ""
        if len(documentation) < MIN_DETAIL_DOCUMENTATION:
            return endpoint

        user = f"Endpoint: {endpoint.method} {endpoint.path}\n\nDocumentation:\n{documentation}"
        data = await self._ask_json(DETAILS_PROMPT, user, expect=dict)
        try:
            update: dict[str, Any] = {}
            for field in ("summary", "description"):
                if _string(data, field):
                    update[field] = _string(data, field)
            if data.get("parameters"):
                update["parameters"] = unique_parameters(_param_list.validate_python(data["parameters"]))
            if data.get("requestBody"):
                update["request_body"] = RequestBody.model_validate(data["requestBody"])
            if data.get("responses"):
                update["responses"] = _response_list.validate_python(data["responses"])
        except ValidationError as e:
            raise EnhancementError(f"AI returned invalid endpoint details: {e}") from e
        return endpoint.model_copy(update=update)

    async def enhance_endpoint_documentation(self, endpoint: ApiEndpoint) -> ApiEndpoint:
        original = endpoint.original_documentation or endpoint.description or ""
        if not original:
            return endpoint

        user = (
            f"Original Documentation:\n{original}\n\n"
            f"Method: {endpoint.method}\nPath: {endpoint.path}\n"
            f"Summary: {endpoint.summary or 'Not provided'}\n"
            f"Description: {endpoint.description or 'Not provided'}"
        )
        data = await self._ask_json(ENHANCE_PROMPT, user, expect=dict)
        return endpoint.model_copy(update={
            "summary": _string(data, "summary") or endpoint.summary,
            "description": _string(data, "description") or endpoint.description,
        })

    async def generate_product_intro(
        self,
        product_url: str | None = None,
        doc_url: str | None = None,
        existing_description: str | None = None,
    ) -> str:
        context = []
        if product_url:
            context.append(f"Product URL: {product_url}")
        if doc_url:
            context.append(f"Documentation URL: {doc_url}")
        if existing_description:
            context.append(f"Existing description: {existing_description}")
        return await self._ask_text(PRODUCT_INTRO_PROMPT, "\n".join(context) or "No context available.")

    async def search_product_context(self, product_name: str) -> str:
        return await self._ask_text(PRODUCT_CONTEXT_PROMPT, f"Product: {product_name}")

    async def ping(self) -> str:
        return await self._ask_text("Reply with OK.", "Test")

    async def _ask_text(self, system: str, user: str) -> str:
        try:
            text = await self.client.acall(system=system, user=user)
        except Exception as e:
            raise EnhancementError(f"LLM call failed: {e}") from e
        if not text or not text.strip():
            raise EnhancementError("LLM returned an empty answer")
        return text.strip()

    async def _ask_json(self, system: str, user: str, expect: type) -> Any:
        text = await self._ask_text(system, user)
        try:
            data = json.loads(_extract_json(text, expect))
        except ValueError as e:
            raise EnhancementError(f"LLM answer is not valid JSON: {e}") from e
        if not isinstance(data, expect):
            raise EnhancementError(f"LLM answer is not a JSON {expect.__name__}")
        return data


async def with_fallback(call: Awaitable[T], fallback: T, action: str) -> T:
    """Await an enhancement; on EnhancementError log it and return ``fallback``."""
    try:
        return await call
    except EnhancementError as e:
        logger.warning("%s failed, keeping original: %s", action, e)
        return fallback


def _extract_json(text: str, expect: type) -> str:
    """Extract JSON from a response that might contain Markdown code blocks or prose."""
    match = re.search(r"```(?:json)?\s*\n(.*?)```", text, re.DOTALL)
    if match:
        return match.group(1).strip()
    pattern = r"\[.*\]" if expect is list else r"\{.*\}"
    match = re.search(pattern, text, re.DOTALL)
    return match.group(0) if match else text.strip()


def _string(data: dict, key: str) -> str | None:
    """Non-blank string value of ``key``; anything else the model sent is ignored."""
    value = data.get(key)
    return value.strip() if isinstance(value, str) and value.strip() else None


def _brief(endpoint: ApiEndpoint) -> dict:
    return {
        "method": endpoint.method,
        "path": endpoint.path,
        "summary": endpoint.summary,
        "description": endpoint.description,
        "category": endpoint.category,
    }


def _dump(data: Any) -> str:
    return json.dumps(data, indent=2, default=str)
