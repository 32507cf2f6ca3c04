"""Tests for mapping interface field types onto parameter descriptors."""

from __future__ import annotations

import pytest

from abi_to_mcp.abi import InterfaceField
from abi_to_mcp.model_types import ArrayType, ObjectType, ScalarType
from abi_to_mcp.type_mapper import element_type_tag, map_field, map_shape, scalar_json_type


@pytest.mark.parametrize(
    ("type_tag", "expected"),
    [
        ("uint256", "integer"),
        ("int8", "integer"),
        ("bool", "boolean"),
        ("address", "string"),
        ("string", "string"),
        ("bytes32", "string"),
        ("fixed128x18", "string"),
    ],
)
def test_scalar_json_types(type_tag: str, expected: str) -> None:
    """Scalar tags map onto JSON types; unknown tags become strings."""
    assert scalar_json_type(type_tag) == expected


def test_element_type_strips_only_the_outer_dimension() -> None:
    """Only the last array dimension should be stripped."""
    assert element_type_tag("uint256[][3]") == "uint256[]"
    assert element_type_tag("tuple[2]") == "tuple"
    assert element_type_tag("address") is None


def test_nested_arrays_keep_their_depth() -> None:
    """A two-dimensional array should map onto an array of arrays."""
    assert map_shape("uint256[][]") == ArrayType(of=ArrayType(of=ScalarType(json_type="integer")))


def test_array_of_structures_maps_components_into_items() -> None:
    """Structure arrays should carry the component fields in their element shape."""
    field = InterfaceField.model_validate(
        {
            "name": "orders",
            "type": "tuple[]",
            "components": [{"name": "maker", "type": "address"}, {"name": "", "type": "uint8"}],
        }
    )
    descriptor = map_field(field)
    assert descriptor.json_type == "array"
    assert isinstance(descriptor.shape, ArrayType)
    element = descriptor.shape.of
    assert isinstance(element, ObjectType)
    assert [component.name for component in element.fields] == ["maker", "param1"]
    assert element.fields[1].description == "Numeric value for param1"


def test_unnamed_field_uses_positional_placeholder() -> None:
    """Unnamed fields are addressed by their position."""
    descriptor = map_field(InterfaceField.model_validate({"name": "", "type": "bool"}), position=2)
    assert descriptor.name == "param2"
    assert descriptor.description == "Boolean flag for param2"


def test_explicit_description_replaces_generated_one() -> None:
    """A supplied description should be used verbatim."""
    field = InterfaceField.model_validate({"name": "to", "type": "address"})
    assert map_field(field, description="Recipient").description == "Recipient"
