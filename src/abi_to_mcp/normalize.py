"""Schema normalization helpers for verification and argument validation."""

from __future__ import annotations

from copy import deepcopy
import json
from dataclasses import dataclass
from typing import Any, Optional

_ORDER_INSENSITIVE_KEYS = {"required", "enum"}
# Keys that annotate a schema node without constraining it. ``name`` is the
# descriptor's own copy of its property key.
_IGNORED_KEYS = {"$comment", "$defs", "$schema", "title", "name"}
_MAPPING_KEYS = {"properties"}
_LOCAL_REF_PREFIX = "#/$defs/"


@dataclass(frozen=True)
class Mismatch:
    """Subset mismatch information."""

    path: str
    expected: Any
    actual: Any


def normalize_source_schema(schema: dict[str, Any]) -> dict[str, Any]:
    """Normalize compiled action parameters for comparison.

    Args:
        schema (dict[str, Any]): ``parameters`` object of a direct-dialect action.

    Returns:
        dict[str, Any]: Plain JSON Schema without descriptor-only keys.
    """
    return _as_dict(_normalize_structural(deepcopy(schema)))


def normalize_generated_schema(schema: dict[str, Any]) -> dict[str, Any]:
    """Normalize pydantic-generated schema for comparison."""
    normalized = _inline_local_refs(deepcopy(schema))
    return _as_dict(_normalize_structural(normalized))


def strict_validation_schema(schema: dict[str, Any]) -> dict[str, Any]:
    """Return a validation schema for compiled action parameters.

    Structures nested below the top level accept exactly their declared
    components: every component is required and no other key is allowed.
    """
    normalized = normalize_source_schema(schema)
    properties = normalized.get("properties")
    if isinstance(properties, dict):
        normalized["properties"] = {
            key: _close_structures(value) for key, value in properties.items()
        }
    return normalized


def subset_mismatch(expected: Any, actual: Any, *, path: str = "$") -> Optional[Mismatch]:
    """Return first mismatch where expected is not a subset of actual."""
    if isinstance(expected, dict):
        return _dict_subset_mismatch(expected, actual, path=path)

    if isinstance(expected, list):
        if not isinstance(actual, list) or len(expected) > len(actual):
            return Mismatch(path=path, expected=expected, actual=actual)
        return _list_subset_mismatch(expected, actual, path=path)

    if expected == actual:
        return None
    return Mismatch(path=path, expected=expected, actual=actual)


def _dict_subset_mismatch(
    expected: dict[str, Any],
    actual: Any,
    *,
    path: str,
) -> Optional[Mismatch]:
    if not isinstance(actual, dict):
        return Mismatch(path=path, expected=expected, actual=actual)
    for key, expected_value in expected.items():
        if key not in actual:
            return Mismatch(path=f"{path}.{key}", expected=expected_value, actual=None)
        mismatch = subset_mismatch(
            expected_value,
            actual[key],
            path=f"{path}.{key}",
        )
        if mismatch is not None:
            return mismatch
    return None


def _normalize_structural(node: Any, *, parent_key: Optional[str] = None) -> Any:
    if isinstance(node, list):
        normalized_list = [_normalize_structural(item) for item in node]
        if parent_key in _ORDER_INSENSITIVE_KEYS:
            return sorted(normalized_list, key=_canonical_json)
        return normalized_list

    if isinstance(node, dict):
        if parent_key in _MAPPING_KEYS:
            return {key: _normalize_structural(value) for key, value in node.items()}

        normalized_dict = {}
        for key, value in sorted(node.items()):
            if key in _IGNORED_KEYS:
                continue
            normalized_dict[key] = _normalize_structural(value, parent_key=key)

        _collapse_single_all_of(normalized_dict)
        if normalized_dict.get("required") == []:
            normalized_dict.pop("required")
        return normalized_dict

    return node


def _close_structures(node: Any) -> Any:
    if not isinstance(node, dict):
        return node
    closed = dict(node)
    items = closed.get("items")
    if isinstance(items, dict):
        closed["items"] = _close_structures(items)
    properties = closed.get("properties")
    if closed.get("type") == "object" and isinstance(properties, dict):
        closed["properties"] = {key: _close_structures(value) for key, value in properties.items()}
        closed["required"] = sorted(properties)
        closed["additionalProperties"] = False
    return closed


def _collapse_single_all_of(node: dict[str, Any]) -> None:
    all_of = node.get("allOf")
    if not isinstance(all_of, list) or len(all_of) != 1 or not isinstance(all_of[0], dict):
        return
    node.pop("allOf")
    for key, value in all_of[0].items():
        node.setdefault(key, value)


def _list_subset_mismatch(expected: list[Any], actual: list[Any], *, path: str) -> Optional[Mismatch]:
    # Compared lists hold scalars: ``required`` names and ``enum`` values.
    remaining = list(actual)
    for index, item in enumerate(expected):
        if item not in remaining:
            return Mismatch(path=f"{path}[{index}]", expected=item, actual=None)
        remaining.remove(item)
    return None


def _inline_local_refs(schema: Any) -> Any:
    if not isinstance(schema, dict):
        return schema
    definitions = schema.get("$defs")
    return _inline(schema, definitions if isinstance(definitions, dict) else {}, seen=frozenset())


def _inline(node: Any, definitions: dict[str, Any], *, seen: frozenset[str]) -> Any:
    if isinstance(node, list):
        return [_inline(item, definitions, seen=seen) for item in node]
    if not isinstance(node, dict):
        return node

    ref = node.get("$ref")
    if not isinstance(ref, str) or not ref.startswith(_LOCAL_REF_PREFIX):
        return {key: _inline(value, definitions, seen=seen) for key, value in node.items()}

    name = ref.removeprefix(_LOCAL_REF_PREFIX)
    if name in seen:
        raise ValueError(f"Recursive model reference: {name}")
    if name not in definitions:
        raise ValueError(f"Missing local schema definition for {ref}")
    target = _inline(deepcopy(definitions[name]), definitions, seen=seen | {name})
    siblings = {
        key: _inline(value, definitions, seen=seen) for key, value in node.items() if key != "$ref"
    }
    # Keys next to the reference win over the referenced definition.
    return {**target, **siblings}


def _canonical_json(value: Any) -> str:
    return json.dumps(value, sort_keys=True, separators=(",", ":"), ensure_ascii=True)


def _as_dict(value: Any) -> dict[str, Any]:
    if isinstance(value, dict):
        return value
    raise ValueError(f"Expected normalized schema object, got {type(value)!r}")
