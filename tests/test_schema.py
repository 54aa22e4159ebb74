"""Tests for tool parameter schema clean-up."""

import copy

import pytest

from anthropic_proxy.messages.schema import strip_uri_format


NESTED_SCHEMA = {
    "type": "object",
    "properties": {
        "homepage": {"type": "string", "format": "uri", "description": "Site"},
        "email": {"type": "string", "format": "email"},
        "links": {
            "type": "array",
            "items": {"type": "string", "format": "uri"},
        },
        "meta": {
            "type": "object",
            "additionalProperties": {"type": "string", "format": "uri"},
        },
        "target": {
            "anyOf": [
                {"type": "string", "format": "uri"},
                {"type": "null"},
            ],
        },
        "source": {
            "allOf": [{"type": "string", "format": "uri", "minLength": 1}],
        },
        "choice": {
            "oneOf": [
                {
                    "type": "object",
                    "properties": {"url": {"type": "string", "format": "uri"}},
                },
            ],
        },
    },
    "$defs": {"link": {"type": "string", "format": "uri"}},
}


def _contains_uri_format(value) -> bool:
    if isinstance(value, dict):
        if value.get("format") == "uri":
            return True
        return any(_contains_uri_format(v) for v in value.values())
    if isinstance(value, list):
        return any(_contains_uri_format(v) for v in value)
    return False


class TestStripUriFormat:
    """Tests for strip_uri_format()."""

    def test_removes_uri_format_from_string_schema(self):
        result = strip_uri_format({"type": "string", "format": "uri", "description": "A link"})
        assert result == {"type": "string", "description": "A link"}

    def test_removes_uri_format_at_every_nesting_level(self):
        result = strip_uri_format(NESTED_SCHEMA)

        assert not _contains_uri_format(result)
        props = result["properties"]
        assert props["homepage"] == {"type": "string", "description": "Site"}
        assert props["links"]["items"] == {"type": "string"}
        assert props["meta"]["additionalProperties"] == {"type": "string"}
        assert props["target"]["anyOf"] == [{"type": "string"}, {"type": "null"}]
        assert props["source"]["allOf"] == [{"type": "string", "minLength": 1}]
        assert props["choice"]["oneOf"][0]["properties"]["url"] == {"type": "string"}
        assert result["$defs"]["link"] == {"type": "string"}

    def test_keeps_other_formats(self):
        result = strip_uri_format(NESTED_SCHEMA)
        assert result["properties"]["email"] == {"type": "string", "format": "email"}

    def test_keeps_uri_format_on_non_string_types(self):
        schema = {"type": "object", "format": "uri"}
        assert strip_uri_format(schema) == schema

    def test_property_named_format_is_not_treated_as_keyword(self):
        schema = {
            "type": "object",
            "properties": {"format": {"type": "string", "enum": ["uri", "json"]}},
        }
        assert strip_uri_format(schema) == schema

    def test_is_idempotent(self):
        once = strip_uri_format(NESTED_SCHEMA)
        assert strip_uri_format(once) == once

    def test_does_not_mutate_input(self):
        original = copy.deepcopy(NESTED_SCHEMA)
        strip_uri_format(NESTED_SCHEMA)
        assert NESTED_SCHEMA == original

    @pytest.mark.parametrize("value", [None, 0, 3.5, True, "uri", []])
    def test_non_schema_values_pass_through(self, value):
        assert strip_uri_format(value) == value

    def test_top_level_list_is_processed(self):
        result = strip_uri_format([{"type": "string", "format": "uri"}, {"type": "integer"}])
        assert result == [{"type": "string"}, {"type": "integer"}]
