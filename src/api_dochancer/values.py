"""Plausible concrete values for schemas and parameters.

Used by the endpoint tester to fill path/query parameters and to synthesize
JSON request bodies when no AI-generated test data is available.
"""

from typing import Any

from api_dochancer.parser.base import Param, Schema

FORMAT_SAMPLES = {
    "email": "test@example.com",
    "date": "2024-01-01",
    "date-time": "2024-01-01T00:00:00Z",
    "uuid": "123e4567-e89b-12d3-a456-426614174000",
}


def generate_from_schema(schema: Schema | dict | None) -> Any:
    """Build a value matching ``schema``; objects and arrays recurse."""
    if schema is None:
        return {}
    if isinstance(schema, dict):
        schema = Schema.model_validate(schema)

    if schema.base_type == "object":
        return {name: generate_from_schema(prop) for name, prop in (schema.properties or {}).items()}

    if schema.base_type == "array":
        return [generate_from_schema(schema.items)]

    if schema.base_type == "string":
        if schema.enum:
            return schema.enum[0]
        return FORMAT_SAMPLES.get(schema.format or "", "test-string")

    if schema.base_type in ("number", "integer"):
        if schema.enum:
            return schema.enum[0]
        value = schema.minimum if schema.minimum is not None else 1
        return int(value) if schema.base_type == "integer" else value

    if schema.base_type == "boolean":
        return True

    return None


def generate_param_value(param: Param) -> str:
    """String value for a path/query/header parameter."""
    if param.example is not None:
        return _as_text(param.example)

    schema = param.param_schema
    if schema.enum:
        return _as_text(schema.enum[0])

    if schema.base_type in ("integer", "number"):
        return "1"
    if schema.base_type == "boolean":
        return "true"
    if "id" in param.name.lower():
        return "123"
    return "test"


def _as_text(value: Any) -> str:
    if isinstance(value, bool):
        return "true" if value else "false"
    return str(value)
