"""Unit tests for schema normalization helpers."""

from __future__ import annotations

from abi_to_mcp.json_types import JSONValue
from abi_to_mcp.normalize import normalize_generated_schema, normalize_source_schema
from abi_to_mcp.normalize import strict_validation_schema, subset_mismatch


def test_source_schema_drops_descriptor_names_but_keeps_property_keys() -> None:
    """Descriptor ``name`` keys are dropped; a property called ``name`` survives."""
    schema: dict[str, JSONValue] = {
        "type": "object",
        "properties": {
            "name": {"name": "name", "type": "string", "description": "String value for name"},
        },
        "required": ["name"],
    }
    normalized = normalize_source_schema(schema)
    assert normalized["properties"] == {
        "name": {"type": "string", "description": "String value for name"}
    }
    assert normalized["required"] == ["name"]


def test_empty_required_is_dropped() -> None:
    """An empty required list carries no constraint."""
    normalized = normalize_source_schema({"type": "object", "properties": {}, "required": []})
    assert normalized == {"type": "object", "properties": {}}


def test_generated_refs_are_inlined_and_single_all_of_collapsed() -> None:
    """Local references are inlined and sibling keys win over the target's."""
    schema: dict[str, JSONValue] = {
        "$defs": {
            "Order": {
                "title": "Order",
                "description": "Structure Order.",
                "type": "object",
                "properties": {"maker": {"title": "Maker", "type": "string"}},
                "required": ["maker"],
            }
        },
        "title": "QuoteParams",
        "type": "object",
        "properties": {
            "order": {"allOf": [{"$ref": "#/$defs/Order"}], "description": "Order to quote"},
        },
        "required": ["order"],
    }
    normalized = normalize_generated_schema(schema)
    order = normalized["properties"]["order"]
    assert order == {
        "description": "Order to quote",
        "type": "object",
        "properties": {"maker": {"type": "string"}},
        "required": ["maker"],
    }


def test_subset_mismatch_reports_first_difference() -> None:
    """The first differing path should be reported."""
    expected = {"type": "object", "properties": {"a": {"type": "integer"}}}
    actual = {"type": "object", "properties": {"a": {"type": "string"}}, "title": "X"}
    mismatch = subset_mismatch(expected, actual)
    assert mismatch is not None
    assert mismatch.path == "$.properties.a.type"
    assert (mismatch.expected, mismatch.actual) == ("integer", "string")
    assert subset_mismatch({"required": ["b", "a"]}, {"required": ["a", "b", "c"]}) is None


def test_strict_schema_closes_nested_structures_only() -> None:
    """Nested structures become closed; the top level stays open."""
    schema: dict[str, JSONValue] = {
        "type": "object",
        "properties": {
            "orders": {
                "name": "orders",
                "type": "array",
                "description": "",
                "items": {
                    "type": "object",
                    "properties": {"maker": {"name": "maker", "type": "string", "description": ""}},
                },
            }
        },
        "required": ["orders"],
    }
    strict = strict_validation_schema(schema)
    assert "additionalProperties" not in strict
    items = strict["properties"]["orders"]["items"]
    assert items["additionalProperties"] is False
    assert items["required"] == ["maker"]
