"""Generate a standalone MCP service project from a compiled action schema."""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass, field
import json
from typing import Optional

from pydantic import BaseModel

from .abi import InterfaceEntry, load_interface_definition
from .codegen_ast import ROUTE_PREFIX, render_models_module, render_server_module
from .compiler import DIRECT_DIALECT, parse_compiled_schema, schema_payload, state_mutating_actions
from .descriptions import describes_read_only
from .errors import GenerationError, ParseError
from .json_types import JSONObject, JSONValue
from .model_types import FieldDef, ModelDef, RouteDef, ScaffoldModels, SchemaAction
from .naming import class_name, package_slug, snake_case, unique_name
from .scaffold_templates import DOCKERFILE_TEMPLATE, PYPROJECT_TEMPLATE, README_TEMPLATE
from .scaffold_templates import RUFF_TEMPLATE

SERVER_FILE = "server.py"
MODELS_FILE = "models.py"
INTERFACE_FILE = "abi.json"

_BASEMODEL_RESERVED = set(dir(BaseModel))
_BUILTIN_IDENTIFIER_RESERVED = {
    "bool",
    "bytes",
    "dict",
    "float",
    "int",
    "list",
    "str",
    "tuple",
    "type",
}
_SCALAR_ANNOTATIONS = {
    "integer": "int",
    "boolean": "bool",
    "string": "str",
}


@dataclass
class _ModelContext:
    models: list[ModelDef] = field(default_factory=list)
    used_names: set[str] = field(default_factory=set)


class RequestModelBuilder:
    """Create request model definitions from direct-dialect action parameters."""

    def __init__(self) -> None:
        self._context = _ModelContext()
        self._used_handlers: set[str] = set()

    def build(
        self,
        actions: Sequence[SchemaAction],
        *,
        read_only: dict[str, bool],
    ) -> ScaffoldModels:
        """Build one request model and one route per action.

        Args:
            actions (Sequence[SchemaAction]): Actions read from the compiled schema.
            read_only (dict[str, bool]): Read-only classification per action name.

        Returns:
            ScaffoldModels: Models in dependency order and routes in action order.
        """
        routes: list[RouteDef] = []
        for action in actions:
            model_name = self._object_model(
                hint=f"{class_name(action.name)}Params",
                parameters=action.parameters,
                docstring=action.description,
            )
            handler_name = unique_name(f"handle_{snake_case(action.name)}", self._used_handlers)
            routes.append(
                RouteDef(
                    action_name=action.name,
                    handler_name=handler_name,
                    model_name=model_name,
                    description=action.description,
                    required=action.required,
                    read_only=read_only.get(action.name, False),
                )
            )
        return ScaffoldModels(models=tuple(self._context.models), routes=tuple(routes))

    def _object_model(self, *, hint: str, parameters: JSONObject, docstring: str) -> str:
        model_name = unique_name(hint, self._context.used_names)
        properties = parameters.get("properties")
        if not isinstance(properties, dict):
            properties = {}

        fields: list[FieldDef] = []
        used_fields: set[str] = set()
        for source_name, descriptor in properties.items():
            if not isinstance(descriptor, dict):
                raise GenerationError(f"Parameter {source_name!r} of {hint} is not an object")
            field_name = self._field_name(source_name, used_fields)
            used_fields.add(field_name)
            annotation = self._annotation(descriptor, hint=f"{model_name}{class_name(source_name)}")
            description = descriptor.get("description")
            fields.append(
                FieldDef(
                    name=field_name,
                    source_name=source_name,
                    annotation=annotation,
                    description=description if isinstance(description, str) else "",
                )
            )

        # Nested models are appended while their fields are built, so they precede their parent.
        self._context.models.append(ModelDef(name=model_name, docstring=docstring, fields=tuple(fields)))
        return model_name

    def _annotation(self, descriptor: JSONObject, *, hint: str) -> str:
        json_type = descriptor.get("type")
        if json_type == "array":
            items = descriptor.get("items")
            if not isinstance(items, dict):
                raise GenerationError(f"Array parameter {hint} has no items template")
            return f"list[{self._annotation(items, hint=f'{hint}Item')}]"
        if json_type == "object":
            return self._object_model(hint=hint, parameters=descriptor, docstring=f"Structure {hint}.")
        if isinstance(json_type, str) and json_type in _SCALAR_ANNOTATIONS:
            return _SCALAR_ANNOTATIONS[json_type]
        raise GenerationError(f"Parameter {hint} has unsupported type {json_type!r}")

    def _field_name(self, source_name: str, used_names: set[str]) -> str:
        candidate = snake_case(source_name)
        if candidate in _BASEMODEL_RESERVED or candidate in _BUILTIN_IDENTIFIER_RESERVED:
            candidate = f"{candidate}_field"
        if candidate not in used_names:
            return candidate

        suffix = 2
        while f"{candidate}_{suffix}" in used_names:
            suffix += 1
        return f"{candidate}_{suffix}"


def build_request_models(
    actions: Sequence[SchemaAction],
    *,
    read_only: Optional[dict[str, bool]] = None,
) -> ScaffoldModels:
    """Build request models for ``actions``.

    Actions missing from ``read_only`` are classified by the read-only
    marker phrase in their description.
    """
    classification = {action.name: describes_read_only(action.description) for action in actions}
    classification.update(read_only or {})
    return RequestModelBuilder().build(actions, read_only=classification)


def classify_from_interface(entries: Sequence[InterfaceEntry]) -> dict[str, bool]:
    """Return the read-only classification of each compiled action, by name."""
    return {name: not mutating for name, mutating in state_mutating_actions(entries).items()}


def generate_scaffold_files(
    mcp_schema: str,
    contract_address: str,
    contract_name: str,
    *,
    interface_json: Optional[str] = None,
) -> dict[str, str]:
    """Generate every file of a standalone service project.

    Args:
        mcp_schema (str): Persisted direct-dialect schema text.
        contract_address (str): Address the generated service calls.
        contract_name (str): Display name of the contract.
        interface_json (Optional[str]): Interface definition text. When given it
            is shipped as ``abi.json`` and supplies each action's mutability.

    Returns:
        dict[str, str]: File contents keyed by relative path.
    """
    try:
        actions = parse_compiled_schema(mcp_schema, DIRECT_DIALECT)
        mcp_actions: JSONValue = schema_payload(mcp_schema)
        read_only = None
        if interface_json is not None:
            read_only = classify_from_interface(load_interface_definition(interface_json))
    except ParseError as exc:
        raise GenerationError(f"Failed to generate server code: {exc}") from exc

    scaffold = build_request_models(actions, read_only=read_only)
    slug = package_slug(contract_name)

    files = {
        SERVER_FILE: render_server_module(
            scaffold,
            contract_address=contract_address,
            contract_name=contract_name,
            mcp_actions=mcp_actions,
        ),
        MODELS_FILE: render_models_module(scaffold, contract_name=contract_name),
        "pyproject.toml": PYPROJECT_TEMPLATE.format(slug=slug, name=contract_name),
        "ruff.toml": RUFF_TEMPLATE,
        "Dockerfile": DOCKERFILE_TEMPLATE,
        "README.md": README_TEMPLATE.format(
            name=contract_name,
            address=contract_address,
            slug=slug,
            actions=_actions_markdown(scaffold.routes),
        ),
    }
    if interface_json is not None:
        files[INTERFACE_FILE] = _pretty_json(interface_json)
    return files


def _actions_markdown(routes: Sequence[RouteDef]) -> str:
    if not routes:
        return "This contract exposes no actions."
    lines = []
    for route in routes:
        kind = "read" if route.read_only else "simulated"
        lines.append(f"- POST `{ROUTE_PREFIX}{route.action_name}` ({kind}): {route.description}")
    return "\n".join(lines)


def _pretty_json(text: str) -> str:
    return json.dumps(json.loads(text), indent=2) + "\n"
