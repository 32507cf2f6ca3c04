"""Schema verification between compiled actions and generated request models."""

from __future__ import annotations

from collections.abc import Mapping, Sequence
from dataclasses import dataclass
from pathlib import Path
import tempfile
from typing import Any

from jsonschema.exceptions import SchemaError
from jsonschema.validators import validator_for

from .compiler import DIRECT_DIALECT, parse_compiled_schema
from .errors import ParseError
from .json_types import JSONObject
from .model_types import ScaffoldModels, SchemaAction, VerificationItem
from .module_loading import load_generated_models, model_class
from .normalize import Mismatch, normalize_generated_schema, normalize_source_schema
from .normalize import strict_validation_schema, subset_mismatch
from .scaffold import MODELS_FILE, build_request_models


@dataclass(frozen=True)
class VerificationMismatch:
    """One verification mismatch."""

    action_name: str
    class_name: str
    path: str
    expected: Any
    actual: Any


@dataclass(frozen=True)
class VerificationReport:
    """Result of the verification phase."""

    verified_count: int
    mismatch_count: int
    mismatches: tuple[VerificationMismatch, ...]


def validate_arguments(parameters: JSONObject, arguments: Mapping[str, Any]) -> list[str]:
    """Validate call arguments against an action's compiled parameters.

    Args:
        parameters (JSONObject): ``parameters`` object of a direct-dialect action.
        arguments (Mapping[str, Any]): Caller-supplied arguments.

    Returns:
        list[str]: Violations as ``path: message`` lines, empty when valid.
    """
    schema = strict_validation_schema(dict(parameters))
    validator_cls = validator_for(schema)
    try:
        validator_cls.check_schema(schema)
    except SchemaError as exc:
        raise ParseError(f"Compiled parameters are not a valid schema: {exc.message}") from exc

    validator = validator_cls(schema)
    errors = sorted(validator.iter_errors(dict(arguments)), key=lambda error: _error_path(error.absolute_path))
    return [f"{_error_path(error.absolute_path)}: {error.message}" for error in errors]


def verification_items(
    scaffold: ScaffoldModels,
    actions: Sequence[SchemaAction],
) -> list[VerificationItem]:
    """Pair each generated request model with the action schema it came from."""
    by_name = {action.name: action for action in actions}
    return [
        VerificationItem(
            action_name=route.action_name,
            class_name=route.model_name,
            source_schema=by_name[route.action_name].parameters,
        )
        for route in scaffold.routes
    ]


def verify_models(*, items: list[VerificationItem], models_path: Path) -> VerificationReport:
    """Verify generated model JSON schemas against normalized action parameters."""
    module = load_generated_models(models_path)
    mismatches: list[VerificationMismatch] = []

    for item in items:
        source_normalized = normalize_source_schema(dict(item.source_schema))
        generated_class = model_class(module, item.class_name)
        generated_schema = generated_class.model_json_schema(by_alias=True)
        generated_normalized = normalize_generated_schema(generated_schema)

        mismatch = subset_mismatch(source_normalized, generated_normalized)
        if mismatch is not None:
            mismatches.append(_to_mismatch(item=item, mismatch=mismatch))

    return VerificationReport(
        verified_count=len(items),
        mismatch_count=len(mismatches),
        mismatches=tuple(mismatches),
    )


def verify_scaffold(*, output_dir: Path, mcp_schema: str) -> VerificationReport:
    """Verify the request models of a written scaffold against its schema.

    Args:
        output_dir (Path): Directory holding the generated ``models.py``.
        mcp_schema (str): Direct-dialect schema the scaffold was generated from.

    Returns:
        VerificationReport: One entry per action.
    """
    actions = parse_compiled_schema(mcp_schema, DIRECT_DIALECT)
    scaffold = build_request_models(actions)
    return verify_models(
        items=verification_items(scaffold, actions),
        models_path=output_dir / MODELS_FILE,
    )


def verify_scaffold_files(files: Mapping[str, str], mcp_schema: str) -> VerificationReport:
    """Verify generated scaffold files that have not been written anywhere yet."""
    with tempfile.TemporaryDirectory(prefix="abi-to-mcp-verify-") as tmp:
        output_dir = Path(tmp)
        (output_dir / MODELS_FILE).write_text(files[MODELS_FILE], encoding="utf-8")
        return verify_scaffold(output_dir=output_dir, mcp_schema=mcp_schema)


def format_report(report: VerificationReport) -> str:
    """Render report as CLI output text."""
    lines = [
        f"Verified models: {report.verified_count}",
        f"Mismatches: {report.mismatch_count}",
    ]
    for mismatch in report.mismatches:
        lines.extend(
            [
                f"- {mismatch.action_name}.{mismatch.class_name}",
                f"  path: {mismatch.path}",
                f"  expected: {short_repr(mismatch.expected)}",
                f"  actual: {short_repr(mismatch.actual)}",
            ]
        )
    return "\n".join(lines)


def short_repr(value: Any, *, limit: int = 160) -> str:
    """A short representation for mismatch diagnostics."""
    text = repr(value)
    return text if len(text) <= limit else f"{text[: limit - 3]}..."


def _to_mismatch(*, item: VerificationItem, mismatch: Mismatch) -> VerificationMismatch:
    return VerificationMismatch(
        action_name=item.action_name,
        class_name=item.class_name,
        path=mismatch.path,
        expected=mismatch.expected,
        actual=mismatch.actual,
    )


def _error_path(path: Sequence[Any]) -> str:
    text = "$"
    for part in path:
        text += f"[{part}]" if isinstance(part, int) else f".{part}"
    return text
