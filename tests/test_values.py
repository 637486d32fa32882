from api_dochancer.parser.base import Param, Schema
from api_dochancer.values import generate_from_schema, generate_param_value


class TestGenerateFromSchema:
    def test_none_schema_gives_empty_object(self):
        assert generate_from_schema(None) == {}

    def test_object_recurses_into_properties(self):
        schema = {
            "type": "object",
            "properties": {
                "email": {"type": "string", "format": "email"},
                "born": {"type": "string", "format": "date"},
                "status": {"type": "string", "enum": ["active", "blocked"]},
                "age": {"type": "integer", "minimum": 18},
                "score": {"type": "number"},
                "admin": {"type": "boolean"},
                "tags": {"type": "array", "items": {"type": "string"}},
                "blob": {},
            },
        }
        assert generate_from_schema(schema) == {
            "email": "test@example.com",
            "born": "2024-01-01",
            "status": "active",
            "age": 18,
            "score": 1,
            "admin": True,
            "tags": ["test-string"],
            "blob": None,
        }

    def test_string_formats(self):
        assert generate_from_schema(Schema(type="string", format="uuid")) == "123e4567-e89b-12d3-a456-426614174000"
        assert generate_from_schema(Schema(type="string", format="date-time")) == "2024-01-01T00:00:00Z"
        assert generate_from_schema(Schema(type="string")) == "test-string"

    def test_numeric_enum_wins_over_minimum(self):
        assert generate_from_schema(Schema(type="integer", enum=[5, 10], minimum=1)) == 5

    def test_minimum_zero_is_respected(self):
        assert generate_from_schema(Schema(type="integer", minimum=0)) == 0

    def test_nullable_type_list(self):
        assert generate_from_schema({"type": ["null", "integer"], "minimum": 3}) == 3
        assert generate_from_schema({"type": ["null"]}) is None

    def test_array_of_objects(self):
        schema = Schema.model_validate({
            "type": "array",
            "items": {"type": "object", "properties": {"id": {"type": "integer"}}},
        })
        assert generate_from_schema(schema) == [{"id": 1}]

    def test_array_without_items(self):
        assert generate_from_schema(Schema(type="array")) == [{}]

    def test_object_matches_every_declared_property(self):
        schema = Schema.model_validate({
            "type": "object",
            "properties": {
                "name": {"type": "string"},
                "nested": {"type": "object", "properties": {"flag": {"type": "boolean"}}},
            },
        })
        value = generate_from_schema(schema)
        assert set(value) == {"name", "nested"}
        assert isinstance(value["name"], str)
        assert value["nested"] == {"flag": True}


class TestGenerateParamValue:
    def test_example_wins(self):
        assert generate_param_value(Param(name="id", example=42)) == "42"

    def test_boolean_example_is_lowercase(self):
        assert generate_param_value(Param(name="verbose", example=True)) == "true"

    def test_enum(self):
        p = Param(name="sort", param_schema=Schema(type="string", enum=["asc", "desc"]))
        assert generate_param_value(p) == "asc"

    def test_numeric(self):
        assert generate_param_value(Param(name="limit", param_schema=Schema(type="integer"))) == "1"

    def test_nullable_numeric(self):
        assert generate_param_value(Param(name="limit", param_schema=Schema(type=["integer", "null"]))) == "1"

    def test_boolean(self):
        assert generate_param_value(Param(name="active", param_schema=Schema(type="boolean"))) == "true"

    def test_id_like_name(self):
        assert generate_param_value(Param(name="userId", location="path")) == "123"

    def test_fallback(self):
        assert generate_param_value(Param(name="q")) == "test"
