"""Tool parameter schema clean-up.

Some OpenAI-compatible backends (Gemini in particular) reject
``{"type": "string", "format": "uri"}`` in function parameter schemas, so the
``format`` keyword is stripped wherever it appears on a string schema.
"""

from typing import Any

_COMBINATOR_KEYS = ("anyOf", "allOf", "oneOf")


def strip_uri_format(schema: Any) -> Any:
    """Return a copy of ``schema`` with every ``format: "uri"`` removed.

    Walks ``properties``, ``items``, ``additionalProperties``, the
    ``anyOf``/``allOf``/``oneOf`` arrays and any other nested value. Scalars
    are returned unchanged; the input is never mutated.
    """
    if isinstance(schema, list):
        return [strip_uri_format(item) for item in schema]
    if not isinstance(schema, dict):
        return schema

    if schema.get("type") == "string" and schema.get("format") == "uri":
        schema = {key: value for key, value in schema.items() if key != "format"}

    result: dict[str, Any] = {}
    for key, value in schema.items():
        if key == "properties" and isinstance(value, dict):
            # Keys here are property names, not schema keywords
            result[key] = {name: strip_uri_format(prop) for name, prop in value.items()}
        elif key in _COMBINATOR_KEYS and isinstance(value, list):
            result[key] = [strip_uri_format(item) for item in value]
        else:
            # items, additionalProperties, $defs, ...
            result[key] = strip_uri_format(value)
    return result
