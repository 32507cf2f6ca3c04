"""Compile contract interface definitions into agent action schemas and dispatch them."""

from __future__ import annotations

from .cli import main
from .compiler import compile_schema, compile_schemas
from .dispatcher import Dispatcher
from .scaffold import generate_scaffold_files

__all__ = ["Dispatcher", "compile_schema", "compile_schemas", "generate_scaffold_files", "main"]
