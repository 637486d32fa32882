"""OpenAPI / Swagger document ingestion.

Parses OpenAPI 3.x and Swagger 2.0 documents into a ParsedDocument. This
path is authoritative: it never runs the text heuristics. Every declared
``path x verb`` pair yields an endpoint, even when parts of it are malformed.
"""

import json
import logging
from typing import Any

from pydantic import ValidationError

from .base import HTTP_METHODS, ApiEndpoint, MediaType, Param, ParsedDocument, RequestBody, Response, Schema

logger = logging.getLogger(__name__)

SWAGGER2_SCHEMA_KEYS = ("type", "format", "items", "enum", "minimum", "maximum", "default", "pattern")

# stands in for a schema that refers back to itself
RECURSIVE_SCHEMA = {"type": "object"}


def parse_openapi(doc: dict, raw_content_limit: int = 10_000) -> ParsedDocument:
    """Build one endpoint per declared ``path x verb`` pair."""
    endpoints = []
    paths = doc.get("paths") or {}

    for path, path_item in paths.items():
        if not isinstance(path_item, dict):
            continue
        path = str(path)
        shared_params = inline_refs(doc, path_item.get("parameters") or [])

        for method, operation in path_item.items():
            if str(method).upper() not in HTTP_METHODS or not isinstance(operation, dict):
                continue
            operation = inline_refs(doc, operation)
            try:
                endpoints.append(_build_endpoint(path, method, operation, shared_params))
            except (ValidationError, TypeError, AttributeError) as e:
                logger.warning("Malformed operation %s %s, keeping it bare: %s", str(method).upper(), path, e)
                endpoints.append(ApiEndpoint(method=method, path=path, summary=_text(operation.get("summary"))))

    info = doc.get("info") or {}
    version = info.get("version")
    return ParsedDocument(
        title=_text(info.get("title")),
        description=_text(info.get("description")),
        version=str(version) if version is not None else None,
        base_url=_base_url(doc),
        endpoints=endpoints,
        raw_content=json.dumps(doc, default=str)[:raw_content_limit],
    )


def _build_endpoint(path: str, method: str, operation: dict, shared_params: list) -> ApiEndpoint:
    raw_params = _merge_parameters(shared_params, operation.get("parameters") or [])

    body_params = [p for p in raw_params if p.get("in") == "body"]
    params = [_parse_parameter(p) for p in raw_params if p.get("in") != "body" and p.get("name")]

    request_body = _parse_request_body(operation.get("requestBody"))
    if request_body is None and body_params:
        # Swagger 2 carries the body as an "in: body" parameter
        request_body = RequestBody(
            description=_text(body_params[0].get("description")),
            required=bool(body_params[0].get("required")),
            content={"application/json": MediaType(body_schema=_schema(body_params[0].get("schema") or {}))},
        )

    return ApiEndpoint(
        method=method.upper(),
        path=path,
        summary=_text(operation.get("summary")),
        description=_text(operation.get("description")),
        category=_text((operation.get("tags") or [None])[0]),
        parameters=params,
        request_body=request_body,
        responses=_parse_responses(operation.get("responses") or {}),
    )


def _merge_parameters(shared: list, own: list) -> list[dict]:
    """Path-item parameters first; an operation parameter with the same (in, name) replaces it."""
    merged: dict[tuple, dict] = {}
    for param in list(shared) + list(own):
        if not isinstance(param, dict):
            continue
        merged[(param.get("in"), param.get("name"))] = param
    return list(merged.values())


def inline_refs(doc: dict, node: Any, active: frozenset = frozenset()) -> Any:
    """Copy of ``node`` with every local ``$ref`` replaced by its target.

    A reference back into a schema that is already being expanded becomes a
    plain object schema. Unresolvable references are left in place.
    """
    if isinstance(node, list):
        return [inline_refs(doc, item, active) for item in node]
    if not isinstance(node, dict):
        return node

    ref = node.get("$ref")
    if isinstance(ref, str) and ref.startswith("#/"):
        if ref in active:
            return dict(RECURSIVE_SCHEMA)
        target = _resolve_ref(doc, node)
        if target is node:
            return node
        return inline_refs(doc, target, active | {ref})
    return {key: inline_refs(doc, value, active) for key, value in node.items()}


def _resolve_ref(doc: dict, node: Any) -> Any:
    """Follow local ``#/...`` references; anything else is returned as-is."""
    seen = set()
    while isinstance(node, dict) and isinstance(node.get("$ref"), str):
        ref = node["$ref"]
        if not ref.startswith("#/") or ref in seen:
            return node
        seen.add(ref)
        target: Any = doc
        for part in ref[2:].split("/"):
            part = part.replace("~1", "/").replace("~0", "~")
            if not isinstance(target, dict) or part not in target:
                return node
            target = target[part]
        node = target
    return node


def _schema(raw: Any) -> Schema:
    """Validate a schema; one we cannot model degrades to an untyped schema."""
    if not isinstance(raw, dict):
        return Schema()
    try:
        return Schema.model_validate(raw)
    except ValidationError as e:
        logger.warning("Unsupported schema, keeping it untyped: %s", e)
        return Schema()


def _content(raw: Any) -> dict[str, MediaType]:
    if not isinstance(raw, dict):
        return {}
    return {
        str(media_type): MediaType(
            body_schema=_schema(media["schema"]) if "schema" in media else None,
            example=media.get("example"),
        )
        for media_type, media in raw.items()
        if isinstance(media, dict)
    }


def _parse_parameter(p: dict) -> Param:
    schema = p.get("schema")
    if schema is None:
        # Swagger 2 puts type/format/enum on the parameter itself
        schema = {key: p[key] for key in SWAGGER2_SCHEMA_KEYS if key in p}
    return Param(
        name=str(p["name"]),
        location=p.get("in", "query"),
        required=p.get("required", False),
        param_schema=_schema(schema),
        description=_text(p.get("description")),
        example=p.get("example"),
    )


def _parse_request_body(body: Any) -> RequestBody | None:
    if not body or not isinstance(body, dict):
        return None
    return RequestBody(
        description=_text(body.get("description")),
        required=bool(body["required"]) if "required" in body else None,
        content=_content(body.get("content")),
    )


def _parse_responses(responses: dict) -> list[Response]:
    result = []
    for status_code, resp in responses.items():
        resp = resp if isinstance(resp, dict) else {}
        content = resp.get("content")
        if content is None and "schema" in resp:
            content = {"application/json": {"schema": resp["schema"]}}
        result.append(Response(
            status_code=status_code,
            description=_text(resp.get("description")),
            content=_content(content) if content is not None else None,
        ))
    return result


def _text(value: Any) -> str | None:
    return None if value is None else str(value)


def _base_url(doc: dict) -> str | None:
    servers = doc.get("servers") or []
    if servers and isinstance(servers[0], dict) and servers[0].get("url"):
        return servers[0]["url"]
    host = doc.get("host")
    if host:
        scheme = (doc.get("schemes") or ["https"])[0]
        return f"{scheme}://{host}{doc.get('basePath', '')}"
    return None
