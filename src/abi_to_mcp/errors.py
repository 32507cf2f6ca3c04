"""Error taxonomy shared by the compiler, the dispatcher and the HTTP layer."""

from __future__ import annotations

from collections.abc import Mapping, Sequence
from typing import Optional

from .json_types import JSONValue, MutableJSONObject


class AbiToMcpError(RuntimeError):
    """Base error carrying an HTTP status, a machine reason and details."""

    status_code: int = 500
    reason: str = "error"

    def __init__(
        self,
        message: str,
        *,
        details: Optional[Mapping[str, JSONValue]] = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.details: MutableJSONObject = dict(details or {})

    def to_body(self) -> MutableJSONObject:
        """Render the JSON error body returned to callers."""
        body: MutableJSONObject = {"error": self.message, "reason": self.reason}
        body.update(self.details)
        return body


class ParseError(AbiToMcpError):
    """Raised when an interface definition or override set is malformed."""

    status_code = 400
    reason = "parse_error"


class InvalidRequest(AbiToMcpError):
    """Raised when request parameters such as the dialect are invalid."""

    status_code = 400
    reason = "invalid_request"


class MissingParameters(AbiToMcpError):
    """Raised when required action arguments are absent."""

    status_code = 400
    reason = "missing_parameters"

    def __init__(self, missing: Sequence[str]) -> None:
        missing_params: list[JSONValue] = list(missing)
        super().__init__(
            "Missing required parameters",
            details={"missingParams": missing_params},
        )
        self.missing = tuple(missing)


class InvalidArguments(AbiToMcpError):
    """Raised when argument values do not match the action's declared shape."""

    status_code = 400
    reason = "invalid_arguments"

    def __init__(self, action: str, violations: Sequence[str]) -> None:
        violation_list: list[JSONValue] = list(violations)
        super().__init__(
            f'Invalid arguments for action "{action}"',
            details={"action": action, "violations": violation_list},
        )


class Forbidden(AbiToMcpError):
    """Raised when the caller does not own the contract it tries to change."""

    status_code = 403
    reason = "forbidden"


class NotFound(AbiToMcpError):
    """Raised when a contract record cannot be resolved."""

    status_code = 404
    reason = "not_found"


class SchemaMissing(NotFound):
    """Raised when the requested dialect was never compiled for a contract."""

    reason = "schema_missing"


class ActionNotFound(NotFound):
    """Raised when an action is absent from the compiled schema or the contract."""

    reason = "action_not_found"

    def __init__(self, action: str, *, message: Optional[str] = None) -> None:
        super().__init__(message or f'Action "{action}" not found', details={"action": action})
        self.action = action


class ExecutionFailed(AbiToMcpError):
    """Raised when the remote contract call fails."""

    status_code = 500
    reason = "execution_failed"

    def __init__(self, function: str, underlying: str) -> None:
        super().__init__(
            f'Failed to call contract function "{function}"',
            details={"function": function, "details": underlying},
        )


class ExecutionTimeout(AbiToMcpError):
    """Raised when the remote contract call exceeds its time bound."""

    status_code = 504
    reason = "timeout"

    def __init__(self, function: str, timeout_seconds: float) -> None:
        super().__init__(
            f'Contract function "{function}" timed out; outcome unknown',
            details={"function": function, "timeoutSeconds": timeout_seconds},
        )


class GenerationError(AbiToMcpError):
    """Raised when a scaffold cannot be generated from a compiled schema."""

    status_code = 500
    reason = "generation_error"


__all__ = [
    "AbiToMcpError",
    "ActionNotFound",
    "ExecutionFailed",
    "ExecutionTimeout",
    "Forbidden",
    "GenerationError",
    "InvalidArguments",
    "InvalidRequest",
    "MissingParameters",
    "NotFound",
    "ParseError",
    "SchemaMissing",
]
