"""Tests for SchemaNode."""

import pytest

from genplan.ai_providers.schema import SchemaError, SchemaNode, array, integer, obj, string


class TestSchemaNode:
    def test_to_gemini_uppercases_types_and_keeps_order(self):
        schema = obj(
            {"title": string("Book title"), "chapters": array(integer())},
            required=("title",),
        )
        assert schema.to_gemini() == {
            "type": "OBJECT",
            "properties": {
                "title": {"type": "STRING", "description": "Book title"},
                "chapters": {"type": "ARRAY", "items": {"type": "INTEGER"}},
            },
            "property_ordering": ["title", "chapters"],
            "required": ["title"],
        }

    def test_property_lookup(self):
        schema = obj({"description": string(), "required": string()})
        assert schema.property_names == ("description", "required")
        assert schema.get_property("required").type == "string"
        with pytest.raises(KeyError):
            schema.get_property("missing")

    def test_array_requires_items(self):
        with pytest.raises(SchemaError):
            SchemaNode("array")

    def test_unknown_type(self):
        with pytest.raises(SchemaError):
            SchemaNode("date")

    def test_required_must_be_declared(self):
        with pytest.raises(SchemaError):
            obj({"a": string()}, required=("b",))

    def test_only_objects_have_properties(self):
        with pytest.raises(SchemaError):
            SchemaNode("string", properties=(("a", string()),))


class TestFromDict:
    def test_nested_schema(self):
        schema = SchemaNode.from_dict(
            {
                "type": "object",
                "properties": {
                    "emails": {
                        "type": "array",
                        "items": {
                            "type": "object",
                            "properties": {"day": {"type": "integer"}, "tone": {"type": "string", "enum": ["warm", "urgent"]}},
                        },
                    }
                },
            }
        )
        item = schema.get_property("emails").items
        assert item.get_property("day").type == "integer"
        assert item.get_property("tone").enum == ("warm", "urgent")

    def test_unsupported_keywords_dropped(self):
        schema = SchemaNode.from_dict(
            {"type": "STRING", "title": "Name", "minLength": 3, "description": "Author"}
        )
        assert schema.to_dict() == {"type": "string", "description": "Author"}

    def test_missing_type(self):
        with pytest.raises(SchemaError):
            SchemaNode.from_dict({"properties": {}})

    def test_to_dict_matches_input(self):
        data = {
            "type": "object",
            "properties": {"title": {"type": "string"}},
            "required": ["title"],
        }
        assert SchemaNode.from_dict(data).to_dict() == data
