"""Contract interface definition loading and validation."""

from __future__ import annotations

import json
from pathlib import Path
from typing import Any, Literal, Optional

import yaml
from pydantic import BaseModel, ConfigDict, Field, TypeAdapter, ValidationError, field_validator
from pydantic import model_validator

from .errors import ParseError
from .json_types import JSONValue, MutableJSONObject

type Mutability = Literal["pure", "view", "nonpayable", "payable"]

READ_ONLY_MUTABILITIES: frozenset[str] = frozenset({"pure", "view"})


class InterfaceField(BaseModel):
    """A single input or output of an interface entry."""

    model_config = ConfigDict(extra="allow", frozen=True, populate_by_name=True)

    name: str = ""
    type_tag: str = Field(alias="type")
    internal_type: Optional[str] = Field(default=None, alias="internalType")
    components: tuple[InterfaceField, ...] = ()

    @field_validator("name", mode="before")
    @classmethod
    def _none_name_is_empty(cls, value: Any) -> Any:
        return "" if value is None else value

    @field_validator("components", mode="before")
    @classmethod
    def _none_components_are_empty(cls, value: Any) -> Any:
        return () if value is None else value


class InterfaceEntry(BaseModel):
    """One element of a contract interface definition."""

    model_config = ConfigDict(extra="allow", frozen=True, populate_by_name=True)

    entry_kind: str = Field(default="function", alias="type")
    name: str = ""
    inputs: tuple[InterfaceField, ...] = ()
    outputs: tuple[InterfaceField, ...] = ()
    mutability: Mutability = Field(default="nonpayable", alias="stateMutability")

    @model_validator(mode="before")
    @classmethod
    def _derive_legacy_mutability(cls, data: Any) -> Any:
        if not isinstance(data, dict) or data.get("stateMutability"):
            return data
        derived = dict(data)
        if data.get("constant"):
            derived["stateMutability"] = "view"
        elif data.get("payable"):
            derived["stateMutability"] = "payable"
        else:
            derived["stateMutability"] = "nonpayable"
        return derived

    @field_validator("name", mode="before")
    @classmethod
    def _none_name_is_empty(cls, value: Any) -> Any:
        return "" if value is None else value

    @field_validator("inputs", "outputs", mode="before")
    @classmethod
    def _none_fields_are_empty(cls, value: Any) -> Any:
        return () if value is None else value

    @property
    def is_function(self) -> bool:
        """Return whether this entry is a callable function."""
        return self.entry_kind == "function"

    @property
    def is_read_only(self) -> bool:
        """Return whether invoking this entry leaves chain state untouched."""
        return self.mutability in READ_ONLY_MUTABILITIES


class ParameterOverride(BaseModel):
    """User-supplied description for one parameter."""

    model_config = ConfigDict(extra="ignore", frozen=True)

    description: Optional[str] = None

    @model_validator(mode="before")
    @classmethod
    def _accept_plain_text(cls, data: Any) -> Any:
        if isinstance(data, str):
            return {"description": data}
        return data


class FunctionOverride(BaseModel):
    """User-supplied descriptions for one function and its parameters."""

    model_config = ConfigDict(extra="ignore", frozen=True)

    description: Optional[str] = None
    inputs: dict[str, ParameterOverride] = Field(default_factory=dict)

    @field_validator("inputs", mode="before")
    @classmethod
    def _none_inputs_are_empty(cls, value: Any) -> Any:
        return {} if value is None else value


type DescriptionOverrides = dict[str, FunctionOverride]

_ENTRIES_ADAPTER: TypeAdapter[list[InterfaceEntry]] = TypeAdapter(list[InterfaceEntry])
_OVERRIDES_ADAPTER: TypeAdapter[dict[str, FunctionOverride]] = TypeAdapter(
    dict[str, FunctionOverride]
)


def load_interface_definition(text: str) -> tuple[InterfaceEntry, ...]:
    """Parse and validate an interface definition from JSON text.

    Args:
        text (str): JSON array of interface entries, or a build artifact
            object carrying the array under an ``abi`` key.

    Returns:
        tuple[InterfaceEntry, ...]: Validated entries in declaration order.
    """
    try:
        payload: JSONValue = json.loads(text)
    except (TypeError, json.JSONDecodeError) as exc:
        raise ParseError(f"Failed to parse interface definition JSON: {exc}") from exc
    return parse_interface_definition(payload)


def parse_interface_definition(payload: JSONValue) -> tuple[InterfaceEntry, ...]:
    """Validate an already-decoded interface definition."""
    if isinstance(payload, dict) and isinstance(payload.get("abi"), list):
        payload = payload["abi"]
    if not isinstance(payload, list):
        raise ParseError(
            f"Interface definition must be a JSON array, got {type(payload).__name__}"
        )
    try:
        entries = _ENTRIES_ADAPTER.validate_python(payload)
    except ValidationError as exc:
        raise ParseError(f"Interface definition validation failed: {exc}") from exc
    return tuple(entries)


def interface_payload(text: str) -> list[MutableJSONObject]:
    """Decode an interface definition into the raw entry list a chain client accepts."""
    try:
        payload = json.loads(text)
    except (TypeError, json.JSONDecodeError) as exc:
        raise ParseError(f"Failed to parse interface definition JSON: {exc}") from exc
    if isinstance(payload, dict) and isinstance(payload.get("abi"), list):
        payload = payload["abi"]
    if not isinstance(payload, list):
        raise ParseError(
            f"Interface definition must be a JSON array, got {type(payload).__name__}"
        )
    return [entry for entry in payload if isinstance(entry, dict)]


def load_description_overrides(text: Optional[str]) -> DescriptionOverrides:
    """Parse a description override mapping from JSON or YAML text."""
    if text is None or not text.strip():
        return {}
    try:
        payload = yaml.safe_load(text)
    except yaml.YAMLError as exc:
        raise ParseError(f"Failed to parse description overrides: {exc}") from exc
    return parse_description_overrides(payload)


def parse_description_overrides(payload: JSONValue) -> DescriptionOverrides:
    """Validate an already-decoded description override mapping."""
    if payload is None:
        return {}
    if not isinstance(payload, dict):
        raise ParseError(
            f"Description overrides must be a mapping, got {type(payload).__name__}"
        )
    try:
        return _OVERRIDES_ADAPTER.validate_python(payload)
    except ValidationError as exc:
        raise ParseError(f"Description override validation failed: {exc}") from exc


def read_description_overrides_file(path: Path) -> DescriptionOverrides:
    """Load a description override mapping from a JSON or YAML file."""
    return load_description_overrides(_read_text(path))


def dump_description_overrides(overrides: DescriptionOverrides) -> MutableJSONObject:
    """Render an override mapping back to its JSON-ready form."""
    dumped: MutableJSONObject = {}
    for function_name, override in overrides.items():
        dumped[function_name] = override.model_dump(exclude_none=True)
    return dumped


def _read_text(path: Path) -> str:
    try:
        return path.read_text(encoding="utf-8")
    except OSError as exc:
        raise ParseError(f"Failed to read {path}: {exc}") from exc
