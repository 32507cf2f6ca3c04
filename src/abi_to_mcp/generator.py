"""High-level compile and scaffold orchestration for the command line."""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import Optional

from .abi import read_description_overrides_file
from .compiler import compile_schemas
from .errors import ParseError
from .model_types import CompiledSchemas
from .scaffold import generate_scaffold_files
from .verify import VerificationReport, verify_scaffold
from .writer import WriteError, format_generated_tree, write_scaffold


@dataclass(frozen=True)
class ScaffoldRun:
    """Scaffold result with optional verification report."""

    schemas: CompiledSchemas
    written: tuple[Path, ...]
    verification_report: Optional[VerificationReport]


def run_compile(*, input_path: Path, overrides_path: Optional[Path] = None) -> CompiledSchemas:
    """Compile an interface definition file into both schema dialects.

    Args:
        input_path (Path): Interface definition JSON file.
        overrides_path (Optional[Path]): JSON or YAML description overrides.

    Returns:
        CompiledSchemas: Both serialized dialects plus compilation warnings.
    """
    overrides = read_description_overrides_file(overrides_path) if overrides_path else None
    return compile_schemas(_read_text(input_path), overrides)


def run_scaffold(
    *,
    input_path: Path,
    output_dir: Path,
    contract_address: str,
    contract_name: str,
    overrides_path: Optional[Path] = None,
    verify: bool = False,
    format_output: bool = True,
) -> ScaffoldRun:
    """Compile an interface definition and write a standalone service scaffold.

    Args:
        input_path (Path): Interface definition JSON file.
        output_dir (Path): Directory to create for the scaffold.
        contract_address (str): Address the generated service calls.
        contract_name (str): Display name of the contract.
        overrides_path (Optional[Path]): JSON or YAML description overrides.
        verify (bool): Whether to verify generated request models afterwards.
        format_output (bool): Whether to run Ruff over the generated tree.

    Returns:
        ScaffoldRun: Compiled schemas, written paths and optional report.
    """
    interface_json = _read_text(input_path)
    overrides = read_description_overrides_file(overrides_path) if overrides_path else None
    schemas = compile_schemas(interface_json, overrides)
    files = generate_scaffold_files(
        schemas.mcp_schema,
        contract_address,
        contract_name,
        interface_json=interface_json,
    )
    written = write_scaffold(output_dir, files)
    if format_output:
        format_generated_tree(output_dir=output_dir)

    report = None
    if verify:
        report = verify_scaffold(output_dir=output_dir, mcp_schema=schemas.mcp_schema)
    return ScaffoldRun(schemas=schemas, written=tuple(written), verification_report=report)


def _read_text(path: Path) -> str:
    try:
        return path.read_text(encoding="utf-8")
    except OSError as exc:
        raise ParseError(f"Failed to read {path}: {exc}") from exc
