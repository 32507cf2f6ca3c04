"""Compile interface definitions into agent action schemas.

One compilation produces a tuple of ``CompiledAction`` values. Two renderers
turn them into the published dialects:

- ``mcp``: the direct dialect, a JSON array of ``{name, description, parameters}``.
- ``gpt``: the tool-call dialect, each direct action wrapped as
  ``{"type": "function", "function": {...}}``.

The tool-call dialect is derived from the rendered direct dialect, never from
the interface definition, so the two only ever differ in their envelope.
"""

from __future__ import annotations

import json
from collections.abc import Iterable, Mapping, Sequence
from typing import Optional

from .abi import FunctionOverride, InterfaceEntry, load_interface_definition
from .descriptions import is_state_mutating, merge_descriptions
from .errors import InvalidRequest, ParseError
from .json_types import JSONObject, JSONValue, MutableJSONObject
from .model_types import ArrayType, CompilationResult, CompiledAction, CompiledSchemas
from .model_types import ObjectType, ParameterDescriptor, SchemaAction, TypeShape
from .naming import placeholder_name
from .type_mapper import map_field

DIRECT_DIALECT = "mcp"
TOOL_CALL_DIALECT = "gpt"
DIALECTS: tuple[str, ...] = (DIRECT_DIALECT, TOOL_CALL_DIALECT)
TOOL_CALL_TYPE = "function"


def validate_dialect(dialect: Optional[str]) -> str:
    """Return ``dialect`` when it names a supported schema dialect."""
    if dialect not in DIALECTS:
        raise InvalidRequest('Schema type must be either "mcp" or "gpt"')
    return dialect


def select_functions(entries: Iterable[InterfaceEntry]) -> tuple[list[InterfaceEntry], list[str]]:
    """Keep the entries worth exposing as actions.

    Only functions are kept. Read-only functions without inputs are plain
    getters and are dropped; state-mutating functions are kept even without
    inputs. Later overloads of an already selected name are dropped with a
    warning so action names stay unique.
    """
    selected: list[InterfaceEntry] = []
    seen_names: set[str] = set()
    warnings: list[str] = []
    for entry in entries:
        if not entry.is_function:
            continue
        if entry.is_read_only and not entry.inputs:
            continue
        if entry.name in seen_names:
            warnings.append(
                f"Overloaded function {entry.name!r} skipped; only the first declaration "
                "is exposed as an action"
            )
            continue
        seen_names.add(entry.name)
        selected.append(entry)
    return selected, warnings


def compile_entry(
    entry: InterfaceEntry,
    override: Optional[FunctionOverride] = None,
) -> CompiledAction:
    """Compile one function entry into an action."""
    descriptions = merge_descriptions(entry, override)
    parameters: list[ParameterDescriptor] = []
    for index, field in enumerate(entry.inputs):
        merged = descriptions.inputs.get(placeholder_name(field.name, index))
        parameters.append(
            map_field(
                field,
                position=index,
                description=merged.description if merged is not None else None,
            )
        )
    return CompiledAction(
        name=entry.name,
        description=descriptions.description or "",
        parameters=tuple(parameters),
        required=tuple(parameter.name for parameter in parameters),
        state_mutating=is_state_mutating(entry.mutability),
    )


def compile_actions(
    entries: Iterable[InterfaceEntry],
    overrides: Optional[Mapping[str, FunctionOverride]] = None,
) -> CompilationResult:
    """Compile every selected entry of an interface definition.

    Args:
        entries (Iterable[InterfaceEntry]): Interface definition entries.
        overrides (Optional[Mapping[str, FunctionOverride]]): User-supplied
            descriptions keyed by function name.

    Returns:
        CompilationResult: Actions in declaration order plus warnings.
    """
    override_map = overrides or {}
    selected, warnings = select_functions(entries)
    actions = tuple(compile_entry(entry, override_map.get(entry.name)) for entry in selected)
    return CompilationResult(actions=actions, warnings=tuple(warnings))


def action_entries(entries: Iterable[InterfaceEntry]) -> dict[str, InterfaceEntry]:
    """Map each action name to the interface entry it is compiled from.

    Selection follows ``select_functions``, so a dropped getter or a later
    overload never stands in for the entry an action was compiled from.
    """
    selected, _ = select_functions(entries)
    return {entry.name: entry for entry in selected}


def state_mutating_actions(entries: Iterable[InterfaceEntry]) -> dict[str, bool]:
    """Return the compiled ``state_mutating`` flag of each action, by name."""
    return {action.name: action.state_mutating for action in compile_actions(entries).actions}


def shape_to_json(shape: TypeShape) -> MutableJSONObject:
    """Render a shape as the ``items`` template of an array descriptor."""
    if isinstance(shape, ArrayType):
        return {"type": "array", "items": shape_to_json(shape.of)}
    if isinstance(shape, ObjectType):
        return {"type": "object", "properties": _properties_json(shape.fields)}
    return {"type": shape.json_type}


def descriptor_to_json(descriptor: ParameterDescriptor) -> MutableJSONObject:
    """Render one parameter descriptor."""
    rendered: MutableJSONObject = {
        "name": descriptor.name,
        "type": descriptor.json_type,
        "description": descriptor.description,
    }
    shape = descriptor.shape
    if isinstance(shape, ArrayType):
        rendered["items"] = shape_to_json(shape.of)
    elif isinstance(shape, ObjectType):
        rendered["properties"] = _properties_json(shape.fields)
    return rendered


def action_to_json(action: CompiledAction) -> MutableJSONObject:
    """Render one action in the direct dialect."""
    required: list[JSONValue] = list(action.required)
    return {
        "name": action.name,
        "description": action.description,
        "parameters": {
            "type": "object",
            "properties": _properties_json(action.parameters),
            "required": required,
        },
    }


def render_direct(actions: Iterable[CompiledAction]) -> list[MutableJSONObject]:
    """Render actions in the direct (``mcp``) dialect."""
    return [action_to_json(action) for action in actions]


def render_tool_call(direct_actions: Iterable[JSONObject]) -> list[MutableJSONObject]:
    """Wrap direct-dialect actions in the tool-call (``gpt``) envelope."""
    return [
        {
            "type": TOOL_CALL_TYPE,
            "function": {
                "name": action["name"],
                "description": action["description"],
                "parameters": action["parameters"],
            },
        }
        for action in direct_actions
    ]


def serialize_schema(actions: Sequence[JSONObject]) -> str:
    """Serialize a rendered dialect deterministically."""
    return json.dumps(list(actions), indent=2)


def compile_schemas(
    interface_json: str,
    overrides: Optional[Mapping[str, FunctionOverride]] = None,
) -> CompiledSchemas:
    """Compile an interface definition into both serialized dialects.

    Args:
        interface_json (str): Interface definition JSON text.
        overrides (Optional[Mapping[str, FunctionOverride]]): User-supplied
            descriptions keyed by function name.

    Returns:
        CompiledSchemas: Direct and tool-call schema text from one compilation.
    """
    entries = load_interface_definition(interface_json)
    result = compile_actions(entries, overrides)
    direct = render_direct(result.actions)
    return CompiledSchemas(
        mcp_schema=serialize_schema(direct),
        gpt_action_schema=serialize_schema(render_tool_call(direct)),
        warnings=result.warnings,
    )


def compile_schema(
    interface_json: str,
    dialect: str,
    overrides: Optional[Mapping[str, FunctionOverride]] = None,
) -> str:
    """Compile an interface definition into one serialized dialect."""
    schemas = compile_schemas(interface_json, overrides)
    if validate_dialect(dialect) == DIRECT_DIALECT:
        return schemas.mcp_schema
    return schemas.gpt_action_schema


def parse_compiled_schema(schema_text: str, dialect: str) -> tuple[SchemaAction, ...]:
    """Read a persisted compiled schema back into actions.

    Args:
        schema_text (str): Serialized schema in ``dialect``.
        dialect (str): ``mcp`` or ``gpt``; the ``gpt`` envelope is unwrapped.

    Returns:
        tuple[SchemaAction, ...]: Actions in stored order.
    """
    validate_dialect(dialect)
    try:
        payload = json.loads(schema_text)
    except (TypeError, json.JSONDecodeError) as exc:
        raise ParseError(f"Failed to parse compiled {dialect} schema: {exc}") from exc
    if not isinstance(payload, list):
        raise ParseError(f"Compiled {dialect} schema must be a JSON array")

    actions: list[SchemaAction] = []
    for index, item in enumerate(payload):
        body = item
        if dialect == TOOL_CALL_DIALECT:
            body = item.get("function") if isinstance(item, dict) else None
        actions.append(_schema_action(body, index=index))
    return tuple(actions)


def schema_payload(schema_text: str) -> JSONValue:
    """Decode a persisted compiled schema without interpreting it."""
    try:
        return json.loads(schema_text)
    except (TypeError, json.JSONDecodeError) as exc:
        raise ParseError(f"Failed to parse compiled schema: {exc}") from exc


def find_action(actions: Iterable[SchemaAction], name: str) -> Optional[SchemaAction]:
    """Return the action called ``name``, if present."""
    return next((action for action in actions if action.name == name), None)


def _schema_action(body: JSONValue, *, index: int) -> SchemaAction:
    if not isinstance(body, dict):
        raise ParseError(f"Compiled action #{index} is not an object")
    name = body.get("name")
    description = body.get("description")
    parameters = body.get("parameters")
    if not isinstance(name, str) or not name:
        raise ParseError(f"Compiled action #{index} is missing a name")
    if not isinstance(description, str):
        raise ParseError(f"Compiled action {name!r} is missing a description")
    if not isinstance(parameters, dict):
        raise ParseError(f"Compiled action {name!r} is missing parameters")
    required = parameters.get("required", [])
    if not isinstance(required, list) or not all(isinstance(item, str) for item in required):
        raise ParseError(f"Compiled action {name!r} has an invalid required list")
    return SchemaAction(
        name=name,
        description=description,
        required=tuple(required),
        parameters=parameters,
    )


def _properties_json(fields: Iterable[ParameterDescriptor]) -> MutableJSONObject:
    return {field.name: descriptor_to_json(field) for field in fields}
