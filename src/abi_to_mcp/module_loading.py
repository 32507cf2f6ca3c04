"""Helpers for dynamically loading generated Python modules."""

from __future__ import annotations

import importlib.util
import itertools
from pathlib import Path
import sys
from types import ModuleType

from pydantic import BaseModel

_COUNTER = itertools.count(1)


def load_module_from_path(*, module_name: str, module_path: Path) -> ModuleType:
    """Load a module from file path and register it in ``sys.modules``.

    Args:
        module_name (str): Temporary import name for the module.
        module_path (Path): File system path to the Python module.

    Returns:
        ModuleType: Imported Python module object.
    """
    spec = importlib.util.spec_from_file_location(module_name, module_path)
    if spec is None or spec.loader is None:
        raise RuntimeError(f"Unable to import module from: {module_path}")

    module = importlib.util.module_from_spec(spec)
    sys.modules[module_name] = module
    try:
        spec.loader.exec_module(module)
    except Exception:
        sys.modules.pop(module_name, None)
        raise
    return module


def load_generated_models(module_path: Path) -> ModuleType:
    """Load a generated ``models.py`` under a unique name and rebuild its models."""
    if not module_path.exists():
        raise RuntimeError(f"Generated module not found: {module_path}")
    module_name = f"generated_models_{abs(hash(str(module_path)))}_{next(_COUNTER)}"
    module = load_module_from_path(module_name=module_name, module_path=module_path)
    _rebuild_module_models(module=module)
    return module


def model_class(module: ModuleType, class_name: str) -> type[BaseModel]:
    """Return the pydantic model called ``class_name`` from ``module``."""
    value = getattr(module, class_name, None)
    if not isinstance(value, type) or not issubclass(value, BaseModel):
        raise RuntimeError(f"Generated class {class_name} is missing or invalid in {module.__name__}")
    return value


def _rebuild_module_models(*, module: ModuleType) -> None:
    model_types: list[type[BaseModel]] = []
    for value in module.__dict__.values():
        if not isinstance(value, type):
            continue
        if not issubclass(value, BaseModel):
            continue
        if value is BaseModel:
            continue
        if value.__module__ != module.__name__:
            continue
        model_types.append(value)

    for model_type in model_types:
        model_type.model_rebuild(_types_namespace=module.__dict__)
