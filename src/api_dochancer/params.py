"""Common parameter inference.

Finds parameters that recur across an API (auth headers, shared query keys)
so they can be configured once and applied to every endpoint test.
"""

import json
import math
import re

from api_dochancer.parser.base import ApiEndpoint, ApiParameter, Param

AUTH_HEADERS = (
    "Authorization",
    "X-API-Key",
    "API-Key",
    "X-Auth-Token",
    "X-Access-Token",
    "X-Request-ID",
    "X-Session-ID",
)

# mentions that imply an Authorization header even when no header is named
AUTH_HINTS = ("authentication", "api key", "auth")

THRESHOLD_RATIO = 0.2

LOCATION_TYPES = {"path": "path", "query": "query", "header": "header", "cookie": "header"}


def extract_common_parameters(endpoints: list[ApiEndpoint]) -> list[ApiParameter]:
    """Return the parameters worth configuring once for the whole API.

    A query parameter qualifies when it appears in at least
    ``ceil(0.2 * len(endpoints))`` endpoints; headers always qualify. Path
    parameters never do. Known auth headers mentioned anywhere are added even
    when no endpoint declares them, and JSON APIs get Content-Type/Accept.
    """
    counts: dict[tuple[str, str], int] = {}
    first_seen: dict[tuple[str, str], ApiParameter] = {}

    for endpoint in endpoints:
        for param in endpoint.parameters or []:
            param_type = LOCATION_TYPES.get(param.location)
            if param_type is None:
                continue
            key = (param_type, param.name)
            counts[key] = counts.get(key, 0) + 1
            if key not in first_seen:
                first_seen[key] = _candidate(param, param_type)

    threshold = math.ceil(THRESHOLD_RATIO * len(endpoints))
    result = [
        candidate
        for key, candidate in first_seen.items()
        if candidate.type != "path" and (candidate.type == "header" or counts[key] >= threshold)
    ]

    for name in _mentioned_auth_headers(endpoints):
        if not _has_name(result, name):
            result.append(ApiParameter(name=name, value="", type="header", description="Authentication header"))

    if any(endpoint.uses_json() for endpoint in endpoints):
        if not _has_name(result, "Content-Type"):
            result.append(ApiParameter(
                name="Content-Type",
                value="application/json",
                type="header",
                description="Content type of the request body",
                generated=True,
            ))
        if not _has_name(result, "Accept"):
            result.append(ApiParameter(
                name="Accept",
                value="application/json",
                type="header",
                description="Accepted response content type",
                generated=True,
            ))

    return result


def _candidate(param: Param, param_type: str) -> ApiParameter:
    example = param.example if param.example is not None else param.param_schema.example
    return ApiParameter(
        name=param.name,
        value="" if example is None else str(example),
        type=param_type,
        description=param.description,
        format=param.param_schema.format,
    )


def _mentioned_auth_headers(endpoints: list[ApiEndpoint]) -> list[str]:
    if not endpoints:
        return []
    blob = json.dumps([e.to_json_dict() for e in endpoints], default=str).lower()
    found = [name for name in AUTH_HEADERS if _mentions(blob, name)]
    if not found and any(hint in blob for hint in AUTH_HINTS):
        found.append("Authorization")
    return found


def _mentions(blob: str, name: str) -> bool:
    # "api-key" must not match inside "x-api-key"
    return re.search(rf"(?<![\w-]){re.escape(name.lower())}(?![\w-])", blob) is not None


def _has_name(params: list[ApiParameter], name: str) -> bool:
    return any(p.name.lower() == name.lower() for p in params)
