"""Internal datatypes for compilation, scaffolding and verification."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Union

from .json_types import JSONObject


@dataclass(frozen=True)
class ScalarType:
    """A leaf value: ``string``, ``integer`` or ``boolean``."""

    json_type: str


@dataclass(frozen=True)
class ArrayType:
    """A homogeneous sequence whose element shape is ``of``."""

    of: TypeShape


@dataclass(frozen=True)
class ObjectType:
    """A structure of named fields, in declaration order."""

    fields: tuple[ParameterDescriptor, ...]


type TypeShape = Union[ScalarType, ArrayType, ObjectType]


@dataclass(frozen=True)
class ParameterDescriptor:
    """Dialect-neutral description of one interface field."""

    name: str
    type_tag: str
    description: str
    shape: TypeShape

    @property
    def json_type(self) -> str:
        """Return the JSON type keyword for this descriptor."""
        return json_type_of(self.shape)


def json_type_of(shape: TypeShape) -> str:
    """Return the JSON type keyword of a shape."""
    if isinstance(shape, ArrayType):
        return "array"
    if isinstance(shape, ObjectType):
        return "object"
    return shape.json_type


@dataclass(frozen=True)
class CompiledAction:
    """One agent-invocable contract function."""

    name: str
    description: str
    parameters: tuple[ParameterDescriptor, ...]
    required: tuple[str, ...]
    state_mutating: bool


@dataclass(frozen=True)
class CompilationResult:
    """Compiled actions plus non-fatal notes produced while compiling."""

    actions: tuple[CompiledAction, ...]
    warnings: tuple[str, ...] = ()


@dataclass(frozen=True)
class CompiledSchemas:
    """Both serialized dialects from one compilation event."""

    mcp_schema: str
    gpt_action_schema: str
    warnings: tuple[str, ...] = ()


@dataclass(frozen=True)
class SchemaAction:
    """An action as read back from a persisted compiled schema."""

    name: str
    description: str
    required: tuple[str, ...]
    parameters: JSONObject


@dataclass(frozen=True)
class FieldDef:
    """Represents a single generated pydantic model field."""

    name: str
    source_name: str
    annotation: str
    description: str


@dataclass(frozen=True)
class ModelDef:
    """Represents a generated pydantic model class."""

    name: str
    docstring: str
    fields: tuple[FieldDef, ...]


@dataclass(frozen=True)
class RouteDef:
    """One generated service route bound to a compiled action."""

    action_name: str
    handler_name: str
    model_name: str
    description: str
    required: tuple[str, ...]
    read_only: bool


@dataclass(frozen=True)
class ScaffoldModels:
    """Generated request models for every action of one contract."""

    models: tuple[ModelDef, ...]
    routes: tuple[RouteDef, ...]


@dataclass(frozen=True)
class VerificationItem:
    """A generated request model to compare with its action schema."""

    action_name: str
    class_name: str
    source_schema: JSONObject
