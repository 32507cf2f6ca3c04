"""Natural-language descriptions for compiled actions and their parameters.

The closing clause of every generated function description encodes the
function's mutability. ``READ_ONLY_MARKER`` is the phrase that marks a
read-only action; the dispatcher falls back to looking for it when a
function's mutability cannot be read from the stored interface definition.
"""

from __future__ import annotations

from collections.abc import Iterable, Mapping
from typing import Optional

from .abi import READ_ONLY_MUTABILITIES, DescriptionOverrides, FunctionOverride
from .abi import InterfaceEntry, ParameterOverride
from .naming import placeholder_name

READ_ONLY_MARKER = "does not modify state"

_READ_ONLY_CLAUSE = f"This function {READ_ONLY_MARKER}."
_PAYABLE_CLAUSE = "This function may modify state and can receive value transfer."
_MUTATING_CLAUSE = "This function may modify state."

# Checked in order; the first marker contained in the type tag wins.
_FIELD_TEMPLATES: tuple[tuple[str, str], ...] = (
    ("int", "Numeric value for {name}"),
    ("bool", "Boolean flag for {name}"),
    ("address", "Chain address for {name}"),
    ("string", "String value for {name}"),
    ("bytes", "Byte data for {name}"),
)


def is_state_mutating(mutability: str) -> bool:
    """Return whether a mutability class may change persisted chain state."""
    return mutability not in READ_ONLY_MUTABILITIES


def describes_read_only(description: str) -> bool:
    """Return whether a description carries the read-only marker phrase."""
    return READ_ONLY_MARKER in description


def closing_clause(mutability: str) -> str:
    """Return the sentence that states a function's side effects."""
    if mutability in READ_ONLY_MUTABILITIES:
        return _READ_ONLY_CLAUSE
    if mutability == "payable":
        return _PAYABLE_CLAUSE
    return _MUTATING_CLAUSE


def describe_function(entry: InterfaceEntry) -> str:
    """Generate the default description for one function entry.

    Args:
        entry (InterfaceEntry): Function entry to describe.

    Returns:
        str: Name, parameter list, output list and side-effect clause.
    """
    description = f"Calls the {entry.name} function"
    if entry.inputs:
        parameters = ", ".join(
            f"{placeholder_name(field.name, index)} ({field.type_tag})"
            for index, field in enumerate(entry.inputs)
        )
        description += f" with parameters: {parameters}"
    if entry.outputs:
        returns = ", ".join(f"{field.name or 'return'} ({field.type_tag})" for field in entry.outputs)
        description += f". Returns: {returns}"
    return f"{description}. {closing_clause(entry.mutability)}"


def describe_field(name: str, type_tag: str) -> str:
    """Generate the default description for one field from its type tag."""
    for marker, template in _FIELD_TEMPLATES:
        if marker in type_tag:
            return template.format(name=name)
    return f"Parameter {name} of type {type_tag}"


def default_descriptions(entry: InterfaceEntry) -> FunctionOverride:
    """Return generated descriptions for a function and each of its inputs.

    This is the reset operation: it depends only on the in-memory entry.
    """
    inputs: dict[str, ParameterOverride] = {}
    for index, field in enumerate(entry.inputs):
        name = placeholder_name(field.name, index)
        inputs[name] = ParameterOverride(description=describe_field(name, field.type_tag))
    return FunctionOverride(description=describe_function(entry), inputs=inputs)


def merge_descriptions(
    entry: InterfaceEntry,
    override: Optional[FunctionOverride],
) -> FunctionOverride:
    """Merge an override onto the generated defaults field by field.

    Args:
        entry (InterfaceEntry): Function entry being described.
        override (Optional[FunctionOverride]): User override for the function.

    Returns:
        FunctionOverride: Fully populated descriptions. Fields the override
            leaves out keep their generated text.
    """
    defaults = default_descriptions(entry)
    if override is None:
        return defaults

    inputs: dict[str, ParameterOverride] = {}
    for name, generated in defaults.inputs.items():
        parameter_override = override.inputs.get(name)
        text = _non_blank(parameter_override.description if parameter_override else None)
        inputs[name] = ParameterOverride(description=text or generated.description)
    return FunctionOverride(
        description=_non_blank(override.description) or defaults.description,
        inputs=inputs,
    )


def effective_descriptions(
    entries: Iterable[InterfaceEntry],
    overrides: Mapping[str, FunctionOverride],
) -> DescriptionOverrides:
    """Return the merged descriptions of every function entry, keyed by name."""
    merged: DescriptionOverrides = {}
    for entry in entries:
        if not entry.is_function or entry.name in merged:
            continue
        merged[entry.name] = merge_descriptions(entry, overrides.get(entry.name))
    return merged


def reset_descriptions(
    overrides: Mapping[str, FunctionOverride],
    function_name: str,
) -> DescriptionOverrides:
    """Return a copy of ``overrides`` with one function reverted to defaults."""
    return {name: value for name, value in overrides.items() if name != function_name}


def _non_blank(text: Optional[str]) -> Optional[str]:
    if text is None or not text.strip():
        return None
    return text
