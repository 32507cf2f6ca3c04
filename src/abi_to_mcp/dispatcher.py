"""Resolve, validate, classify and invoke compiled actions for a stored contract.

One request runs through dialect validation, contract and schema lookup,
action lookup, required-argument validation and side-effect classification.
Read-only actions are then called on the contract's network under a timeout
and their result is normalized; state-mutating actions are acknowledged as a
simulation and never executed.
"""

from __future__ import annotations

import asyncio
from collections.abc import Mapping, Sequence
import logging
from typing import Any, Optional

from .abi import InterfaceEntry, interface_payload, load_interface_definition
from .chain import ContractCaller, marshal_arguments, normalize_result
from .compiler import DIRECT_DIALECT, action_entries, find_action, parse_compiled_schema
from .compiler import schema_payload, state_mutating_actions, validate_dialect
from .config import NetworkEndpoints
from .descriptions import describes_read_only
from .errors import AbiToMcpError, ActionNotFound, ExecutionFailed, ExecutionTimeout
from .errors import InvalidArguments, MissingParameters, NotFound, ParseError, SchemaMissing
from .json_types import MutableJSONObject
from .model_types import SchemaAction
from .store import ContractRecord, ContractStore
from .verify import validate_arguments

log = logging.getLogger(__name__)

SIMULATION_MESSAGE = (
    "This is a simulation of a state-changing operation. Executing it requires "
    "a signer funded to pay for gas."
)
ESTIMATED_GAS_PLACEHOLDER = "Not calculated in simulation mode"


def missing_parameters(required: Sequence[str], arguments: Mapping[str, Any]) -> list[str]:
    """Return required names absent from ``arguments``, in ``required`` order.

    A name mapped to ``None`` counts as present.
    """
    return [name for name in required if name not in arguments]


class Dispatcher:
    """Invocation dispatcher bound to a record store, a chain caller and an endpoint table."""

    def __init__(
        self,
        *,
        store: ContractStore,
        caller: ContractCaller,
        endpoints: NetworkEndpoints,
        timeout_seconds: float = 10.0,
        strict_arguments: bool = False,
    ) -> None:
        self._store = store
        self._caller = caller
        self._endpoints = endpoints
        self._timeout_seconds = timeout_seconds
        self._strict_arguments = strict_arguments

    def describe(self, address: str, dialect: Optional[str]) -> MutableJSONObject:
        """Return the compiled schema of a contract plus a flattened action summary.

        Args:
            address (str): Contract address, matched case-insensitively.
            dialect (Optional[str]): ``mcp`` or ``gpt``.

        Returns:
            MutableJSONObject: ``{contract, schema, availableActions}``.
        """
        dialect = validate_dialect(dialect)
        record, schema_text = self._resolve(address, dialect)
        actions = self._actions(schema_text, dialect)
        log.info("Returning %s schema for contract %s", dialect, record.address)
        return {
            "contract": {
                "address": record.address,
                "name": record.name,
                "network": record.network,
            },
            "schema": schema_payload(schema_text),
            "availableActions": [
                {
                    "name": action.name,
                    "description": action.description,
                    "parameters": list(action.required),
                }
                for action in actions
            ],
        }

    async def invoke(
        self,
        address: str,
        dialect: Optional[str],
        action_name: str,
        arguments: Mapping[str, Any],
    ) -> MutableJSONObject:
        """Run one action request through the dispatch state machine.

        Args:
            address (str): Contract address, matched case-insensitively.
            dialect (Optional[str]): ``mcp`` or ``gpt``.
            action_name (str): Name of the compiled action.
            arguments (Mapping[str, Any]): Arguments by parameter name.

        Returns:
            MutableJSONObject: Read result or simulation acknowledgement.
        """
        dialect = validate_dialect(dialect)
        record, schema_text = self._resolve(address, dialect)
        action = find_action(self._actions(schema_text, dialect), action_name)
        if action is None:
            log.info("Action %s not found for contract %s", action_name, record.address)
            raise ActionNotFound(action_name)

        missing = missing_parameters(action.required, arguments)
        if missing:
            raise MissingParameters(missing)
        if self._strict_arguments:
            violations = validate_arguments(action.parameters, arguments)
            if violations:
                raise InvalidArguments(action.name, violations)

        entries = self._interface_entries(record)
        if not self._is_read_only(action, entries):
            log.info("State-changing operation requested: %s on %s", action.name, record.address)
            return {
                "simulation": True,
                "executed": False,
                "message": SIMULATION_MESSAGE,
                "function": action.name,
                "parameters": dict(arguments),
                "estimatedGas": ESTIMATED_GAS_PLACEHOLDER,
            }

        result = await self._read(record, action, entries, arguments)
        log.info("Read call %s on %s succeeded", action.name, record.address)
        return {
            "success": True,
            "function": action.name,
            "parameters": dict(arguments),
            "result": normalize_result(result),
        }

    def _resolve(self, address: str, dialect: str) -> tuple[ContractRecord, str]:
        record = self._store.find_by_address(address)
        if record is None:
            log.info("Contract not found with address %s", address)
            raise NotFound("Contract not found")
        schema_text = record.mcp_schema if dialect == DIRECT_DIALECT else record.gpt_action_schema
        if not schema_text:
            raise SchemaMissing(f"{dialect.upper()} schema not found for this contract")
        return record, schema_text

    def _actions(self, schema_text: str, dialect: str) -> tuple[SchemaAction, ...]:
        try:
            return parse_compiled_schema(schema_text, dialect)
        except ParseError as exc:
            raise AbiToMcpError(
                f"Stored {dialect.upper()} schema for this contract is malformed",
                details={"details": str(exc)},
            ) from exc

    def _interface_entries(self, record: ContractRecord) -> tuple[InterfaceEntry, ...]:
        try:
            return load_interface_definition(record.abi_json)
        except ParseError as exc:
            log.warning("Stored interface definition of %s is unreadable: %s", record.address, exc)
            return ()

    def _is_read_only(self, action: SchemaAction, entries: Sequence[InterfaceEntry]) -> bool:
        state_mutating = state_mutating_actions(entries).get(action.name)
        if state_mutating is not None:
            return not state_mutating
        return describes_read_only(action.description)

    async def _read(
        self,
        record: ContractRecord,
        action: SchemaAction,
        entries: Sequence[InterfaceEntry],
        arguments: Mapping[str, Any],
    ) -> Any:
        entry = action_entries(entries).get(action.name)
        if entry is None:
            raise ActionNotFound(
                action.name,
                message=f'Function "{action.name}" not found on contract',
            )
        call_arguments = marshal_arguments(entry, arguments)
        endpoint = self._endpoints.endpoint_for(record.network)
        log.info("Calling %s on %s (%s)", action.name, record.address, record.network)
        try:
            return await asyncio.wait_for(
                self._caller.call(
                    endpoint=endpoint,
                    address=record.address,
                    interface=interface_payload(record.abi_json),
                    function_name=action.name,
                    arguments=call_arguments,
                ),
                timeout=self._timeout_seconds,
            )
        except TimeoutError as exc:
            log.warning("Call to %s timed out after %ss", action.name, self._timeout_seconds)
            raise ExecutionTimeout(action.name, self._timeout_seconds) from exc
        except AbiToMcpError:
            raise
        except Exception as exc:
            log.warning("Call to %s failed: %s", action.name, exc)
            raise ExecutionFailed(action.name, str(exc)) from exc
