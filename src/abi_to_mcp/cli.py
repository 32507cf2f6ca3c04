"""Command line interface for schema compilation, scaffolding and serving."""

from __future__ import annotations

import argparse
from pathlib import Path
import sys
from typing import Optional

from .compiler import DIALECTS, DIRECT_DIALECT
from .config import get_settings
from .errors import GenerationError
from .generator import ParseError, WriteError, run_compile, run_scaffold
from .main import serve
from .verify import format_report


def build_parser() -> argparse.ArgumentParser:
    """Build the CLI parser."""
    parser = argparse.ArgumentParser(
        prog="abi-to-mcp",
        description="Compile contract interface definitions into agent action schemas",
    )
    subparsers = parser.add_subparsers(dest="command", required=True)

    compile_parser = subparsers.add_parser("compile", help="Compile an interface definition")
    compile_parser.add_argument("--abi", required=True, help="Path to an interface definition JSON file")
    compile_parser.add_argument("--overrides", help="Path to JSON or YAML description overrides")
    compile_parser.add_argument(
        "--schema-type",
        choices=DIALECTS,
        default=DIRECT_DIALECT,
        help="Schema dialect to emit (default: %(default)s)",
    )
    compile_parser.add_argument("--output", help="Write the schema here instead of stdout")

    scaffold_parser = subparsers.add_parser("scaffold", help="Generate a standalone service")
    scaffold_parser.add_argument("--abi", required=True, help="Path to an interface definition JSON file")
    scaffold_parser.add_argument("--overrides", help="Path to JSON or YAML description overrides")
    scaffold_parser.add_argument("--address", required=True, help="Deployed contract address")
    scaffold_parser.add_argument("--name", required=True, help="Contract display name")
    scaffold_parser.add_argument("--output", required=True, help="Output directory to create")
    scaffold_parser.add_argument(
        "--verify",
        action="store_true",
        help="Check generated request models against the compiled schema",
    )
    scaffold_parser.add_argument(
        "--no-format",
        action="store_true",
        help="Skip running Ruff over the generated files",
    )

    serve_parser = subparsers.add_parser("serve", help="Run the HTTP service")
    settings = get_settings()
    serve_parser.add_argument("--host", default=settings.host, help="Bind address (default: %(default)s)")
    serve_parser.add_argument("--port", type=int, default=settings.port, help="Port (default: %(default)s)")
    serve_parser.add_argument("--reload", action="store_true", help="Enable autoreload (dev only)")
    serve_parser.add_argument("--log-level", default=settings.log_level, help="Log level")
    return parser


def main(argv: Optional[list[str]] = None) -> int:
    """Run CLI and return process exit code."""
    parser = build_parser()
    args = parser.parse_args(argv)

    if args.command == "serve":
        serve(host=args.host, port=args.port, log_level=args.log_level, reload=args.reload)
        return 0

    overrides_path = Path(args.overrides) if args.overrides else None
    try:
        if args.command == "compile":
            return _compile(args, overrides_path)
        return _scaffold(args, overrides_path)
    except (ParseError, GenerationError, WriteError) as exc:
        parser.error(str(exc))
        return 2


def _compile(args: argparse.Namespace, overrides_path: Optional[Path]) -> int:
    schemas = run_compile(input_path=Path(args.abi), overrides_path=overrides_path)
    for warning in schemas.warnings:
        print(f"Warning: {warning}", file=sys.stderr)

    text = schemas.mcp_schema if args.schema_type == DIRECT_DIALECT else schemas.gpt_action_schema
    if args.output:
        output_path = Path(args.output)
        try:
            output_path.write_text(text + "\n", encoding="utf-8")
        except OSError as exc:
            raise WriteError(f"Failed to write file {output_path}: {exc}") from exc
    else:
        print(text)
    return 0


def _scaffold(args: argparse.Namespace, overrides_path: Optional[Path]) -> int:
    run = run_scaffold(
        input_path=Path(args.abi),
        output_dir=Path(args.output),
        contract_address=args.address,
        contract_name=args.name,
        overrides_path=overrides_path,
        verify=bool(args.verify),
        format_output=not args.no_format,
    )
    for warning in run.schemas.warnings:
        print(f"Warning: {warning}")
    for path in run.written:
        print(f"Wrote {path}")

    if run.verification_report is not None:
        print(format_report(run.verification_report))
        if run.verification_report.mismatch_count > 0:
            return 1

    return 0


if __name__ == "__main__":
    raise SystemExit(main())
