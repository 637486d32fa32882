import pytest
from pydantic import ValidationError

from api_dochancer.parser.base import (
    ApiEndpoint,
    ApiParameter,
    MediaType,
    Param,
    RequestBody,
    Response,
    Schema,
    TestResult,
    endpoint_id,
)


class TestParam:
    def test_location_uses_in_alias(self):
        p = Param.model_validate({"name": "id", "in": "path", "required": True, "schema": {"type": "integer"}})
        assert p.location == "path"
        assert p.param_schema.type == "integer"

    def test_populate_by_field_name(self):
        p = Param(name="limit", location="query")
        assert p.required is False
        assert p.param_schema == Schema()

    def test_required_none_becomes_false(self):
        p = Param.model_validate({"name": "q", "in": "query", "required": None})
        assert p.required is False

    def test_json_dump_uses_openapi_spelling(self):
        data = Param(name="id", location="path", required=True, param_schema=Schema(type="string")).to_json_dict()
        assert data == {"name": "id", "in": "path", "required": True, "schema": {"type": "string"}}


class TestSchema:
    def test_unknown_keywords_are_kept(self):
        schema = Schema.model_validate({"type": "string", "maxLength": 10})
        assert schema.to_json_dict() == {"type": "string", "maxLength": 10}

    def test_nested_properties(self):
        schema = Schema.model_validate({
            "type": "object",
            "properties": {"tags": {"type": "array", "items": {"type": "string"}}},
        })
        assert schema.properties["tags"].items.type == "string"


class TestApiEndpoint:
    def test_id_is_derived(self):
        ep = ApiEndpoint(method="get", path="/api/users/{id}")
        assert ep.method == "GET"
        assert ep.id == "GET__api_users__id_"
        assert ep.id == endpoint_id("GET", "/api/users/{id}")

    def test_parameters_unique_per_location_and_name(self):
        ep = ApiEndpoint.model_validate({
            "method": "GET",
            "path": "/search",
            "parameters": [
                {"name": "q", "in": "query", "description": "first"},
                {"name": "q", "in": "query", "description": "second"},
                {"name": "q", "in": "header"},
            ],
        })
        assert [(p.location, p.name, p.description) for p in ep.parameters] == [
            ("query", "q", "first"),
            ("header", "q", None),
        ]

    def test_explicit_id_is_kept(self):
        ep = ApiEndpoint(id="listUsers", method="GET", path="/users")
        assert ep.id == "listUsers"

    def test_unknown_method_rejected(self):
        with pytest.raises(ValidationError):
            ApiEndpoint(method="FETCH", path="/users")

    def test_parameters_default_to_not_derived(self):
        ep = ApiEndpoint(method="GET", path="/users")
        assert ep.parameters is None
        assert ep.key == ("GET", "/users")

    def test_uses_json_from_request_body(self):
        ep = ApiEndpoint(
            method="POST",
            path="/users",
            request_body=RequestBody(content={"application/json": MediaType(body_schema=Schema(type="object"))}),
        )
        assert ep.uses_json() is True
        assert ep.json_request_schema().type == "object"

    def test_uses_json_from_responses(self):
        ep = ApiEndpoint(
            method="GET",
            path="/users",
            responses=[Response(status_code=200, content={"application/json": MediaType()})],
        )
        assert ep.responses[0].status_code == "200"
        assert ep.uses_json() is True

    def test_no_json(self):
        ep = ApiEndpoint(method="GET", path="/users", responses=[Response(status_code="204")])
        assert ep.uses_json() is False
        assert ep.json_request_schema() is None

    def test_camel_case_roundtrip(self):
        ep = ApiEndpoint(
            method="DELETE",
            path="/users/{id}",
            parameters=[Param(name="id", location="path", required=True)],
            test_result=TestResult(status="success", status_code=204),
            original_documentation="Deletes a user.",
        )
        data = ep.to_json_dict()
        assert data["originalDocumentation"] == "Deletes a user."
        assert data["testResult"]["statusCode"] == 204

        ep2 = ApiEndpoint.model_validate(data)
        assert ep2.parameters[0].location == "path"
        assert ep2.test_result.status == "success"


class TestApiParameter:
    def test_type_is_restricted(self):
        with pytest.raises(ValidationError):
            ApiParameter(name="session", type="cookie")

    def test_defaults(self):
        p = ApiParameter(name="Authorization", type="header")
        assert p.value == ""
        assert p.generated is False
