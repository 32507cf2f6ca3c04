"""Tests for compiling interface definitions into both schema dialects."""

from __future__ import annotations

import json

import pytest

from abi_to_mcp.abi import load_description_overrides, load_interface_definition
from abi_to_mcp.compiler import action_entries, compile_actions, compile_schema, compile_schemas
from abi_to_mcp.compiler import parse_compiled_schema, state_mutating_actions, validate_dialect
from abi_to_mcp.errors import InvalidRequest, ParseError

from .fixture_helpers import fixture_text


def _actions(schema_text: str) -> dict[str, dict]:
    return {action["name"]: action for action in json.loads(schema_text)}


def test_compilation_is_deterministic() -> None:
    """Compiling the same input twice should yield identical text."""
    text = fixture_text("nested_structs.json")
    assert compile_schemas(text) == compile_schemas(text)


def test_getters_events_and_constructors_are_not_actions() -> None:
    """Only functions are kept; read-only functions without inputs are dropped."""
    actions = _actions(compile_schema(fixture_text("erc20.json"), "mcp"))
    assert list(actions) == ["balanceOf", "transfer", "deposit"]


def test_state_mutating_function_without_inputs_is_kept() -> None:
    """A payable function without inputs still becomes an action."""
    deposit = _actions(compile_schema(fixture_text("erc20.json"), "mcp"))["deposit"]
    assert deposit == {
        "name": "deposit",
        "description": (
            "Calls the deposit function. This function may modify state and can receive "
            "value transfer."
        ),
        "parameters": {"type": "object", "properties": {}, "required": []},
    }


def test_default_read_only_action() -> None:
    """A view function compiles with the read-only marker and a required input."""
    balance_of = _actions(compile_schema(fixture_text("erc20.json"), "mcp"))["balanceOf"]
    assert balance_of["description"] == (
        "Calls the balanceOf function with parameters: owner (address). "
        "Returns: balance (uint256). This function does not modify state."
    )
    assert balance_of["parameters"] == {
        "type": "object",
        "properties": {
            "owner": {
                "name": "owner",
                "type": "string",
                "description": "Chain address for owner",
            }
        },
        "required": ["owner"],
    }


def test_overrides_merge_field_by_field() -> None:
    """Overrides replace supplied descriptions and keep generated ones elsewhere."""
    overrides = load_description_overrides(
        '{"transfer": {"description": "Send tokens", "inputs": {"to": {"description": "Recipient"}}}}'
    )
    transfer = _actions(compile_schema(fixture_text("erc20.json"), "mcp", overrides))["transfer"]
    assert transfer["description"] == "Send tokens"
    properties = transfer["parameters"]["properties"]
    assert properties["to"]["description"] == "Recipient"
    assert properties["amount"]["description"] == "Numeric value for amount"
    assert transfer["parameters"]["required"] == ["to", "amount"]


def test_tool_call_dialect_wraps_direct_dialect() -> None:
    """Each tool-call action should wrap the direct action unchanged."""
    schemas = compile_schemas(fixture_text("nested_structs.json"))
    direct = json.loads(schemas.mcp_schema)
    tool_call = json.loads(schemas.gpt_action_schema)
    assert tool_call == [{"type": "function", "function": action} for action in direct]


def test_structures_and_arrays_keep_their_nesting() -> None:
    """Structure components and array dimensions should be preserved."""
    actions = _actions(compile_schema(fixture_text("nested_structs.json"), "mcp"))

    quote = actions["quote"]["parameters"]
    assert quote["required"] == ["order", "param1"]
    order = quote["properties"]["order"]
    assert order["type"] == "object"
    assert list(order["properties"]) == ["maker", "amount", "active"]
    assert order["properties"]["active"]["type"] == "boolean"
    assert quote["properties"]["param1"]["type"] == "string"

    batch = actions["submitBatch"]["parameters"]["properties"]
    orders_item = batch["orders"]["items"]
    assert orders_item["type"] == "object"
    legs = orders_item["properties"]["legs"]
    assert legs["type"] == "array"
    assert legs["items"]["properties"]["weight"]["type"] == "integer"
    assert batch["grid"]["items"] == {"type": "array", "items": {"type": "integer"}}


def test_required_follows_declaration_order() -> None:
    """Required names follow the declared input order."""
    actions = _actions(compile_schema(fixture_text("nested_structs.json"), "mcp"))
    assert actions["submitBatch"]["parameters"]["required"] == ["orders", "grid", "type"]


def test_overloads_keep_first_declaration_with_warning() -> None:
    """Only the first overload is exposed and a warning is reported."""
    schemas = compile_schemas(fixture_text("overloads.json"))
    actions = _actions(schemas.mcp_schema)
    assert list(actions) == ["safeTransferFrom", "ownerOf"]
    assert actions["safeTransferFrom"]["parameters"]["required"] == ["from", "to", "tokenId"]
    assert len(schemas.warnings) == 1
    assert "safeTransferFrom" in schemas.warnings[0]


def test_compiled_actions_record_mutability() -> None:
    """Legacy flag entries should be classified by their derived mutability."""
    result = compile_actions(load_interface_definition(fixture_text("legacy_flags.json")))
    assert {action.name: action.state_mutating for action in result.actions} == {
        "getOwner": False,
        "buy": True,
        "setFlag": True,
    }


def test_action_lookup_skips_dropped_getter_overloads() -> None:
    """A dropped getter never stands in for the overload an action was compiled from."""
    entries = load_interface_definition(fixture_text("overloaded_getters.json"))
    resolved = action_entries(entries)
    assert [field.name for field in resolved["balance"].inputs] == ["owner"]
    assert resolved["checkpoint"].mutability == "nonpayable"
    assert state_mutating_actions(entries) == {"balance": False, "checkpoint": True}


def test_malformed_interface_raises_parse_error() -> None:
    """Invalid JSON should be rejected with ParseError."""
    with pytest.raises(ParseError):
        compile_schemas("{not json")


def test_unknown_dialect_is_rejected() -> None:
    """Only mcp and gpt are supported dialects."""
    with pytest.raises(InvalidRequest):
        validate_dialect("openai")
    with pytest.raises(InvalidRequest):
        compile_schema(fixture_text("erc20.json"), "xml")


@pytest.mark.parametrize("dialect", ["mcp", "gpt"])
def test_compiled_schema_reads_back(dialect: str) -> None:
    """Persisted schemas in either dialect read back into the same actions."""
    text = compile_schema(fixture_text("erc20.json"), dialect)
    actions = parse_compiled_schema(text, dialect)
    assert [action.name for action in actions] == ["balanceOf", "transfer", "deposit"]
    assert actions[1].required == ("to", "amount")


def test_malformed_stored_schema_raises_parse_error() -> None:
    """A stored schema with a broken action is rejected."""
    with pytest.raises(ParseError):
        parse_compiled_schema('[{"name": "x"}]', "mcp")
    with pytest.raises(ParseError):
        parse_compiled_schema('[{"name": "x", "description": "", "parameters": {}}]', "gpt")
