"""Naming helpers for parameters, actions and generated Python identifiers."""

from __future__ import annotations

import keyword
import re

_IDENTIFIER_SANITIZE_RE = re.compile(r"[^0-9a-zA-Z_]+")
_MULTIPLE_UNDERSCORES_RE = re.compile(r"_+")
_CAMEL_BOUNDARY_RE = re.compile(r"(?<=[a-z0-9])(?=[A-Z])")
_SLUG_SANITIZE_RE = re.compile(r"[^a-z0-9]")

PLACEHOLDER_PREFIX = "param"


def placeholder_name(name: str, position: int) -> str:
    """Return ``name`` or a positional placeholder when it is empty.

    Args:
        name (str): Declared field name, possibly empty.
        position (int): Zero-based position of the field within its parent.

    Returns:
        str: An addressable key for the field.
    """
    return name if name else f"{PLACEHOLDER_PREFIX}{position}"


def sanitize_identifier(raw: str, *, lowercase: bool = True) -> str:
    """Convert arbitrary text into a valid Python identifier."""
    text = raw.lower() if lowercase else raw
    text = _IDENTIFIER_SANITIZE_RE.sub("_", text)
    text = _MULTIPLE_UNDERSCORES_RE.sub("_", text).strip("_")
    if not text:
        text = "value"
    if text[0].isdigit():
        text = f"x_{text}"
    if keyword.iskeyword(text):
        text = f"{text}_"
    return text


def snake_case(raw: str) -> str:
    """Convert a camelCase contract name into a snake_case identifier."""
    return sanitize_identifier(_CAMEL_BOUNDARY_RE.sub("_", raw))


def class_name(raw: str) -> str:
    """Convert a name to a PascalCase class name."""
    clean = snake_case(raw)
    return "".join(part[:1].upper() + part[1:] for part in clean.split("_") if part) or "Model"


def package_slug(display_name: str) -> str:
    """Return the distribution slug used for a generated scaffold."""
    slug = _SLUG_SANITIZE_RE.sub("-", display_name.lower())
    return f"{slug}-mcp-server"


def unique_name(base_name: str, used_names: set[str]) -> str:
    """Return ``base_name`` or a numbered variant not yet in ``used_names``."""
    if base_name not in used_names:
        used_names.add(base_name)
        return base_name
    suffix = 2
    while f"{base_name}{suffix}" in used_names:
        suffix += 1
    name = f"{base_name}{suffix}"
    used_names.add(name)
    return name
