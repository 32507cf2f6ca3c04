"""Map interface field types onto dialect-neutral parameter descriptors."""

from __future__ import annotations

import re
from collections.abc import Sequence
from typing import Optional

from .abi import InterfaceField
from .descriptions import describe_field
from .model_types import ArrayType, ObjectType, ParameterDescriptor, ScalarType, TypeShape
from .naming import placeholder_name

_ARRAY_SUFFIX_RE = re.compile(r"\[\d*\]$")


def scalar_json_type(type_tag: str) -> str:
    """Classify a scalar type tag; unknown tags fall back to ``string``."""
    if "int" in type_tag:
        return "integer"
    if "bool" in type_tag:
        return "boolean"
    return "string"


def element_type_tag(type_tag: str) -> Optional[str]:
    """Return the element type of an array tag, or ``None`` for non-arrays.

    Only the outermost (last) dimension is stripped, so ``uint256[][3]``
    yields ``uint256[]``.
    """
    stripped = _ARRAY_SUFFIX_RE.sub("", type_tag, count=1)
    return stripped if stripped != type_tag else None


def map_shape(type_tag: str, components: Sequence[InterfaceField] = ()) -> TypeShape:
    """Map a type tag and its structure components onto a shape."""
    element = element_type_tag(type_tag)
    if element is not None:
        return ArrayType(of=map_shape(element, components))
    if components:
        return ObjectType(fields=map_components(components))
    return ScalarType(json_type=scalar_json_type(type_tag))


def map_components(components: Sequence[InterfaceField]) -> tuple[ParameterDescriptor, ...]:
    """Map the components of a structure, in declaration order."""
    return tuple(map_field(component, position=index) for index, component in enumerate(components))


def map_field(
    field: InterfaceField,
    *,
    position: int = 0,
    description: Optional[str] = None,
) -> ParameterDescriptor:
    """Map one interface field onto a parameter descriptor.

    Args:
        field (InterfaceField): Field to map.
        position (int): Position of the field within its parent, used for
            the placeholder name of unnamed fields.
        description (Optional[str]): Description to use instead of the
            generated one.

    Returns:
        ParameterDescriptor: Descriptor whose shape mirrors the field's
            array dimensions and structure nesting.
    """
    name = placeholder_name(field.name, position)
    return ParameterDescriptor(
        name=name,
        type_tag=field.type_tag,
        description=description or describe_field(name, field.type_tag),
        shape=map_shape(field.type_tag, field.components),
    )
