"""Unified data models for parsed API documentation.

All parsers (OpenAPI, HTML, text, PDF/DOCX) convert their input into these
standard models for downstream processing. Attributes are snake_case; JSON
uses the camelCase OpenAPI spelling (``in`` for a parameter's location).
"""

import re
from datetime import datetime, timezone
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator
from pydantic.alias_generators import to_camel

HTTP_METHODS = ("GET", "POST", "PUT", "DELETE", "PATCH", "HEAD", "OPTIONS")

JSON_MEDIA_TYPE = "application/json"


def endpoint_id(method: str, path: str) -> str:
    """Stable endpoint id: ``GET /users/{id}`` -> ``GET__users__id_``."""
    return f"{method.upper()}_{re.sub(r'[^a-zA-Z0-9]', '_', path)}"


class _Model(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    def to_json_dict(self) -> dict:
        return self.model_dump(mode="json", by_alias=True, exclude_none=True)


class Schema(_Model):
    """JSON-schema fragment. Unknown keywords (maxLength, $ref, ...) are kept."""

    model_config = ConfigDict(extra="allow")

    type: str | list[str] | None = None  # OpenAPI 3.1 allows ["string", "null"]
    format: str | None = None
    properties: dict[str, "Schema"] | None = None
    items: "Schema | None" = None
    required: list[str] | bool | None = None
    enum: list[Any] | None = None
    example: Any = None
    minimum: int | float | None = None
    description: str | None = None

    @property
    def base_type(self) -> str | None:
        """The declared type, ignoring "null" in a 3.1 type list."""
        if isinstance(self.type, list):
            return next((t for t in self.type if t != "null"), None)
        return self.type


class Param(_Model):
    """A single endpoint parameter (path, query, header or cookie)."""

    name: str
    location: str = Field(default="query", alias="in")  # path / query / header / cookie / body
    required: bool = False
    param_schema: Schema = Field(default_factory=Schema, alias="schema")
    description: str | None = None
    example: Any = None

    @field_validator("required", mode="before")
    @classmethod
    def _required_or_false(cls, value: Any) -> bool:
        return bool(value)


def unique_parameters(params: list[Param]) -> list[Param]:
    """Drop repeated (in, name) pairs; the first declaration wins."""
    seen = set()
    unique = []
    for param in params:
        key = (param.location, param.name)
        if key not in seen:
            seen.add(key)
            unique.append(param)
    return unique


class MediaType(_Model):
    body_schema: Schema | None = Field(default=None, alias="schema")
    example: Any = None


class RequestBody(_Model):
    description: str | None = None
    required: bool | None = None
    content: dict[str, MediaType] = {}


class Response(_Model):
    status_code: str
    description: str | None = None
    content: dict[str, MediaType] | None = None

    @field_validator("status_code", mode="before")
    @classmethod
    def _status_as_str(cls, value: Any) -> str:
        return str(value)


class TestResult(_Model):
    """Outcome of one live request against an endpoint."""

    __test__ = False

    status: Literal["success", "warning", "failure", "pending"]
    status_code: int | None = None
    message: str | None = None
    response: Any = None
    headers: dict[str, str] | None = None
    error: str | None = None
    timestamp: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))


class ApiEndpoint(_Model):
    """A single API endpoint with all its metadata.

    ``parameters`` is None until something (the document or the extractor)
    has derived them; an empty list means "derived, none found".
    """

    id: str = ""
    method: str  # GET / POST / PUT / DELETE / PATCH / HEAD / OPTIONS
    path: str  # /api/users/{id}
    summary: str | None = None
    description: str | None = None
    category: str | None = None
    parameters: list[Param] | None = None
    request_body: RequestBody | None = None
    responses: list[Response] | None = None
    test_result: TestResult | None = None
    original_documentation: str | None = None
    documentation_link: str | None = None

    @field_validator("method", mode="before")
    @classmethod
    def _known_method(cls, value: Any) -> str:
        method = str(value).upper()
        if method not in HTTP_METHODS:
            raise ValueError(f"unsupported HTTP method: {value}")
        return method

    @field_validator("parameters", mode="after")
    @classmethod
    def _unique_parameters(cls, value: list[Param] | None) -> list[Param] | None:
        return unique_parameters(value) if value is not None else None

    @model_validator(mode="after")
    def _derive_id(self) -> "ApiEndpoint":
        if not self.id:
            self.id = endpoint_id(self.method, self.path)
        return self

    @property
    def key(self) -> tuple[str, str]:
        return (self.method, self.path)

    def json_request_schema(self) -> Schema | None:
        if self.request_body is None:
            return None
        media = self.request_body.content.get(JSON_MEDIA_TYPE)
        return media.body_schema if media else None

    def uses_json(self) -> bool:
        """True when the request body or any response declares JSON content."""
        if self.request_body is not None and JSON_MEDIA_TYPE in self.request_body.content:
            return True
        return any(r.content and JSON_MEDIA_TYPE in r.content for r in self.responses or [])


class ApiParameter(_Model):
    """A parameter inferred to apply across many endpoints (e.g. an API key header)."""

    name: str
    value: str = ""
    type: Literal["header", "query", "path"]
    generated: bool = False
    description: str | None = None
    format: str | None = None


class ParsedDocument(_Model):
    """Canonical output of the document parser.

    ``raw_content`` holds only the first ``raw_content_limit`` characters of
    the extracted text. Endpoints whose context lies beyond the cap lose it,
    but keep anything captured in ``original_documentation``.
    """

    title: str | None = None
    description: str | None = None
    version: str | None = None
    base_url: str | None = None
    endpoints: list[ApiEndpoint] = []
    raw_content: str | None = None


class ValidationResult(_Model):
    type: Literal["url", "ai_key", "test_api"]
    status: Literal["pending", "checking", "success", "failure"]
    message: str
    details: str | None = None


class GeneratedDocumentation(_Model):
    openapi_spec: dict[str, Any]
    html_bundle: str
    warnings: list[str]
    timestamp: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
