"""FastAPI application serving compiled schemas and dispatching contract actions."""

from __future__ import annotations

from collections.abc import Callable
import json
import logging
from typing import Any, Optional

from fastapi import FastAPI, Query, Request, Response
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from .abi import FunctionOverride, dump_description_overrides, load_interface_definition
from .abi import parse_description_overrides
from .chain import ContractCaller, Web3ContractCaller
from .compiler import action_entries, compile_schemas, schema_payload
from .config import Settings, get_settings
from .descriptions import default_descriptions, effective_descriptions, reset_descriptions
from .dispatcher import Dispatcher
from .errors import AbiToMcpError, Forbidden, InvalidRequest, NotFound, SchemaMissing
from .scaffold import generate_scaffold_files
from .store import ContractRecord, ContractStore, FileContractStore, InMemoryContractStore
from .verify import VerificationReport, short_repr, verify_scaffold_files

log = logging.getLogger(__name__)

type OwnershipCheck = Callable[[Request, ContractRecord], bool]

OWNER_HEADER = "X-Owner-Id"
CORS_METHODS = ["GET", "POST", "PUT", "DELETE", "OPTIONS"]


def header_ownership_check(request: Request, record: ContractRecord) -> bool:
    """Grant access when the owner header matches the record's owner."""
    owner = request.headers.get(OWNER_HEADER)
    return bool(record.owner_id) and owner == record.owner_id


def create_app(
    settings: Optional[Settings] = None,
    *,
    store: Optional[ContractStore] = None,
    caller: Optional[ContractCaller] = None,
    ownership_check: Optional[OwnershipCheck] = None,
) -> FastAPI:
    """Build the HTTP application.

    Args:
        settings (Optional[Settings]): Runtime settings; read from the
            environment when omitted.
        store (Optional[ContractStore]): Contract record store; file-backed when
            ``CONTRACT_STORE_PATH`` is set, otherwise an empty in-memory store.
        caller (Optional[ContractCaller]): Chain caller; web3 when omitted.
        ownership_check (Optional[OwnershipCheck]): Gate for owner-only routes.

    Returns:
        FastAPI: Configured application.
    """
    settings = settings or get_settings()
    if store is None:
        if settings.contract_store_path is not None:
            store = FileContractStore(settings.contract_store_path)
        else:
            store = InMemoryContractStore()
    caller = caller or Web3ContractCaller(request_timeout=settings.call_timeout_seconds)
    is_owner = ownership_check or header_ownership_check
    dispatcher = Dispatcher(
        store=store,
        caller=caller,
        endpoints=settings.network_endpoints(),
        timeout_seconds=settings.call_timeout_seconds,
        strict_arguments=settings.strict_argument_validation,
    )

    app = FastAPI(title="abi-to-mcp", description="Contract action schemas and dispatch")
    app.state.settings = settings
    app.state.store = store
    app.state.dispatcher = dispatcher

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins(),
        allow_methods=CORS_METHODS,
        allow_headers=["Content-Type", OWNER_HEADER],
    )
    _install_error_handlers(app)

    def owned_record(request: Request, contract_id: str) -> ContractRecord:
        record = store.get(contract_id)
        if record is None:
            raise NotFound("Contract not found")
        if not is_owner(request, record):
            raise Forbidden("You do not have permission to access this contract")
        return record

    def recompile(
        record: ContractRecord,
        overrides: dict[str, FunctionOverride],
    ) -> tuple[ContractRecord, list[str]]:
        # Both dialects come from one compilation and are saved together.
        schemas = compile_schemas(record.abi_json, overrides)
        updated = record.model_copy(
            update={
                "mcp_schema": schemas.mcp_schema,
                "gpt_action_schema": schemas.gpt_action_schema,
                "custom_function_descriptions": overrides,
            }
        )
        store.save(updated)
        log.info("Compiled schemas for contract %s", record.id)
        return updated, list(schemas.warnings)

    @app.get("/healthz")
    async def healthz() -> dict[str, str]:
        return {"status": "ok"}

    @app.options("/{path:path}")
    async def preflight(path: str) -> Response:
        return Response(status_code=200)

    @app.get("/contract-server/{address}")
    async def describe_contract(
        address: str,
        schema_type: Optional[str] = Query(default=None, alias="schemaType"),
    ) -> dict[str, Any]:
        return dispatcher.describe(address, schema_type)

    @app.post("/contract-server/{address}/{action}")
    async def invoke_action(
        request: Request,
        address: str,
        action: str,
        schema_type: Optional[str] = Query(default=None, alias="schemaType"),
    ) -> dict[str, Any]:
        arguments = await _json_object_body(request)
        log.info("Action %s requested on %s", action, address)
        return await dispatcher.invoke(address, schema_type, action, arguments)

    @app.get("/contract-server")
    async def describe_contract_query(
        address: Optional[str] = None,
        schema_type: Optional[str] = Query(default=None, alias="schemaType"),
    ) -> dict[str, Any]:
        return dispatcher.describe(_required_address(address), schema_type)

    @app.post("/contract-server")
    async def invoke_action_query(
        request: Request,
        address: Optional[str] = None,
        schema_type: Optional[str] = Query(default=None, alias="schemaType"),
        action: Optional[str] = None,
    ) -> dict[str, Any]:
        contract_address = _required_address(address)
        if not action:
            raise InvalidRequest("Action is required for POST requests")
        arguments = await _json_object_body(request)
        return await dispatcher.invoke(contract_address, schema_type, action, arguments)

    @app.get("/mcp/{contract_id}")
    async def raw_mcp_schema(contract_id: str) -> Any:
        record = store.get(contract_id)
        if record is None:
            raise NotFound("Contract not found")
        if not record.mcp_schema:
            raise SchemaMissing("MCP schema not found for this contract")
        return schema_payload(record.mcp_schema)

    @app.post("/contracts/{contract_id}/generate-schemas")
    async def generate_schemas(request: Request, contract_id: str) -> dict[str, Any]:
        record = owned_record(request, contract_id)
        updated, warnings = recompile(record, record.custom_function_descriptions)
        return {
            "id": updated.id,
            "mcpSchema": updated.mcp_schema,
            "gptActionSchema": updated.gpt_action_schema,
            "warnings": warnings,
        }

    @app.get("/contracts/{contract_id}/descriptions")
    async def get_descriptions(request: Request, contract_id: str) -> dict[str, Any]:
        record = owned_record(request, contract_id)
        entries = load_interface_definition(record.abi_json)
        overrides = record.custom_function_descriptions
        return {
            "customFunctionDescriptions": dump_description_overrides(overrides),
            "effectiveDescriptions": dump_description_overrides(
                effective_descriptions(entries, overrides)
            ),
        }

    @app.put("/contracts/{contract_id}/descriptions")
    async def put_descriptions(request: Request, contract_id: str) -> dict[str, Any]:
        record = owned_record(request, contract_id)
        body = await _json_object_body(request)
        if body.get("customFunctionDescriptions") is None:
            raise InvalidRequest("Custom function descriptions are required")
        overrides = parse_description_overrides(body["customFunctionDescriptions"])
        updated, warnings = recompile(record, overrides)
        return {
            "id": updated.id,
            "customFunctionDescriptions": dump_description_overrides(overrides),
            "mcpSchema": updated.mcp_schema,
            "gptActionSchema": updated.gpt_action_schema,
            "warnings": warnings,
        }

    @app.delete("/contracts/{contract_id}/descriptions/{function_name}")
    async def reset_function_descriptions(
        request: Request,
        contract_id: str,
        function_name: str,
    ) -> dict[str, Any]:
        record = owned_record(request, contract_id)
        entry = action_entries(load_interface_definition(record.abi_json)).get(function_name)
        if entry is None:
            raise NotFound(f'Function "{function_name}" not found on contract')
        overrides = reset_descriptions(record.custom_function_descriptions, function_name)
        updated, warnings = recompile(record, overrides)
        return {
            "id": updated.id,
            "function": function_name,
            "descriptions": default_descriptions(entry).model_dump(exclude_none=True),
            "customFunctionDescriptions": dump_description_overrides(overrides),
            "warnings": warnings,
        }

    @app.get("/contracts/{contract_id}/generate-server")
    async def generate_server(
        request: Request,
        contract_id: str,
        verify: bool = False,
    ) -> dict[str, Any]:
        record = owned_record(request, contract_id)
        if not record.mcp_schema:
            raise InvalidRequest("MCP schema not generated for this contract")
        files = generate_scaffold_files(
            record.mcp_schema,
            record.address,
            record.name,
            interface_json=record.abi_json,
        )
        body: dict[str, Any] = {"success": True, "files": files}
        if verify:
            body["verification"] = _verification_body(verify_scaffold_files(files, record.mcp_schema))
        return body

    return app


def _install_error_handlers(app: FastAPI) -> None:
    @app.exception_handler(AbiToMcpError)
    async def handle_known_error(request: Request, exc: AbiToMcpError) -> JSONResponse:
        if exc.status_code >= 500:
            log.warning("%s %s failed: %s", request.method, request.url.path, exc)
        return JSONResponse(exc.to_body(), status_code=exc.status_code)

    @app.exception_handler(Exception)
    async def handle_unexpected_error(request: Request, exc: Exception) -> JSONResponse:
        log.exception("Unexpected error on %s %s", request.method, request.url.path)
        return JSONResponse(
            {"error": "An unexpected error occurred", "reason": "unexpected", "details": str(exc)},
            status_code=500,
        )


async def _json_object_body(request: Request) -> dict[str, Any]:
    body = await request.body()
    if not body.strip():
        return {}
    try:
        payload = json.loads(body)
    except json.JSONDecodeError as exc:
        raise InvalidRequest("Request body must be a JSON object") from exc
    if not isinstance(payload, dict):
        raise InvalidRequest("Request body must be a JSON object")
    return payload


def _verification_body(report: VerificationReport) -> dict[str, Any]:
    return {
        "verifiedCount": report.verified_count,
        "mismatchCount": report.mismatch_count,
        "mismatches": [
            {
                "action": mismatch.action_name,
                "model": mismatch.class_name,
                "path": mismatch.path,
                "expected": short_repr(mismatch.expected),
                "actual": short_repr(mismatch.actual),
            }
            for mismatch in report.mismatches
        ],
    }


def _required_address(address: Optional[str]) -> str:
    if not address:
        raise InvalidRequest("Contract address is required")
    return address
