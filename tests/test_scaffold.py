"""Tests for standalone service scaffold generation."""

from __future__ import annotations

import ast
import asyncio
from collections.abc import Iterator, Sequence
import importlib
import json
import subprocess
import sys
import time
from pathlib import Path
from types import ModuleType
from typing import Any

import pytest
from fastapi.testclient import TestClient

from abi_to_mcp.abi import load_interface_definition
from abi_to_mcp.compiler import compile_schemas, parse_compiled_schema
from abi_to_mcp.config import NetworkEndpoints
from abi_to_mcp.dispatcher import Dispatcher
from abi_to_mcp.errors import AbiToMcpError, GenerationError
from abi_to_mcp.json_types import JSONObject
from abi_to_mcp.scaffold import build_request_models, classify_from_interface, generate_scaffold_files
from abi_to_mcp.store import ContractRecord, InMemoryContractStore
from abi_to_mcp.verify import verify_scaffold_files
from abi_to_mcp.writer import WriteError, write_scaffold

from .fixture_helpers import fixture_text, iter_fixture_paths, parametrize_fixtures

_ADDRESS = "0x6B175474E89094C44Da98b954EedeAC495271d0F"


def _class_names(source: str) -> list[str]:
    parsed = ast.parse(source)
    return [node.name for node in parsed.body if isinstance(node, ast.ClassDef)]


def _route_paths(source: str) -> list[str]:
    parsed = ast.parse(source)
    paths: list[str] = []
    for node in parsed.body:
        if not isinstance(node, ast.AsyncFunctionDef):
            continue
        for decorator in node.decorator_list:
            if isinstance(decorator, ast.Call) and isinstance(decorator.args[0], ast.Constant):
                paths.append(decorator.args[0].value)
    return paths


def test_scaffold_contains_every_project_file() -> None:
    """The scaffold should ship service, models, packaging and docs."""
    interface_json = fixture_text("erc20.json")
    schemas = compile_schemas(interface_json)
    files = generate_scaffold_files(schemas.mcp_schema, _ADDRESS, "Dai Stablecoin", interface_json=interface_json)
    assert set(files) == {
        "server.py",
        "models.py",
        "pyproject.toml",
        "ruff.toml",
        "Dockerfile",
        "README.md",
        "abi.json",
    }
    assert 'name = "dai-stablecoin-mcp-server"' in files["pyproject.toml"]
    assert _ADDRESS in files["README.md"]
    assert json.loads(files["abi.json"]) == json.loads(interface_json)


def test_interface_file_is_optional() -> None:
    """Without an interface definition no abi.json is emitted."""
    schemas = compile_schemas(fixture_text("erc20.json"))
    files = generate_scaffold_files(schemas.mcp_schema, _ADDRESS, "Token")
    assert "abi.json" not in files


@parametrize_fixtures()
def test_generated_modules_are_valid_python(fixture_path: Path) -> None:
    """Generated server and models modules should parse."""
    interface_json = fixture_path.read_text(encoding="utf-8")
    schemas = compile_schemas(interface_json)
    files = generate_scaffold_files(schemas.mcp_schema, _ADDRESS, fixture_path.stem, interface_json=interface_json)
    ast.parse(files["server.py"])
    ast.parse(files["models.py"])


def test_server_exposes_one_route_per_action() -> None:
    """Every compiled action should get a POST route."""
    interface_json = fixture_text("erc20.json")
    schemas = compile_schemas(interface_json)
    files = generate_scaffold_files(schemas.mcp_schema, _ADDRESS, "Token", interface_json=interface_json)
    assert _route_paths(files["server.py"]) == [
        "/contract/balanceOf",
        "/contract/transfer",
        "/contract/deposit",
    ]
    assert f"CONTRACT_ADDRESS = '{_ADDRESS}'" in files["server.py"]


def test_nested_models_precede_their_parents() -> None:
    """Structure models are declared before the models that reference them."""
    schemas = compile_schemas(fixture_text("nested_structs.json"))
    files = generate_scaffold_files(schemas.mcp_schema, _ADDRESS, "OrderBook")
    names = _class_names(files["models.py"])
    assert names.index("QuoteParamsOrder") < names.index("QuoteParams")
    assert names.index("SubmitBatchParamsOrdersItemLegsItem") < names.index("SubmitBatchParamsOrdersItem")
    assert names.index("SubmitBatchParamsOrdersItem") < names.index("SubmitBatchParams")


def test_reserved_field_names_are_aliased() -> None:
    """A parameter named like a builtin is renamed and keeps its wire name as alias."""
    schemas = compile_schemas(fixture_text("nested_structs.json"))
    models = build_request_models(parse_compiled_schema(schemas.mcp_schema, "mcp"))
    batch = next(model for model in models.models if model.name == "SubmitBatchParams")
    type_field = next(field for field in batch.fields if field.source_name == "type")
    assert type_field.name == "type_field"
    assert type_field.annotation == "str"
    grid = next(field for field in batch.fields if field.source_name == "grid")
    assert grid.annotation == "list[list[int]]"


def test_read_only_classification_prefers_interface_mutability() -> None:
    """Routes are classified from the interface, else from the description marker."""
    interface_json = fixture_text("legacy_flags.json")
    actions = parse_compiled_schema(compile_schemas(interface_json).mcp_schema, "mcp")
    by_marker = {route.action_name: route.read_only for route in build_request_models(actions).routes}
    assert by_marker == {"getOwner": True, "buy": False, "setFlag": False}

    overridden = build_request_models(actions, read_only={"getOwner": False})
    assert overridden.routes[0].read_only is False


@parametrize_fixtures()
def test_generated_models_match_compiled_schema(fixture_path: Path) -> None:
    """Generated request models should accept the compiled parameter shapes."""
    schemas = compile_schemas(fixture_path.read_text(encoding="utf-8"))
    files = generate_scaffold_files(schemas.mcp_schema, _ADDRESS, fixture_path.stem)
    report = verify_scaffold_files(files, schemas.mcp_schema)
    assert report.verified_count > 0
    if report.mismatch_count > 0:
        preview = "\n".join(
            f"{m.path} :: {m.action_name}.{m.class_name} | expected={m.expected!r} actual={m.actual!r}"
            for m in report.mismatches[:8]
        )
        pytest.fail(f"Verification mismatches for {fixture_path.name}:\n{preview}")


@pytest.mark.parametrize(
    "schema_text",
    ["not json", '{"name": "x"}', '[{"name": "f", "description": "", "parameters": {"properties": {"a": {"type": "number"}}}}]'],
    ids=["invalid-json", "not-array", "unsupported-type"],
)
def test_bad_schema_raises_generation_error(schema_text: str) -> None:
    """Unusable schemas should raise GenerationError."""
    with pytest.raises(GenerationError):
        generate_scaffold_files(schema_text, _ADDRESS, "Broken")


def test_output_directory_must_not_exist(tmp_path: Path) -> None:
    """The writer refuses to write into pre-existing output directories."""
    output_dir = tmp_path / "existing"
    output_dir.mkdir(parents=True)

    with pytest.raises(WriteError):
        write_scaffold(output_dir, {"server.py": ""})


def test_generated_modules_pass_ruff_check(tmp_path: Path) -> None:
    """Generated modules should pass ruff checks."""
    fixture_path = iter_fixture_paths()[0]
    interface_json = fixture_path.read_text(encoding="utf-8")
    schemas = compile_schemas(interface_json)
    files = generate_scaffold_files(schemas.mcp_schema, _ADDRESS, "Lint", interface_json=interface_json)
    output_dir = tmp_path / "scaffold"
    write_scaffold(output_dir, files)

    lint = subprocess.run(
        [sys.executable, "-m", "ruff", "check", "--isolated", "--ignore", "E501", str(output_dir)],
        check=False,
        capture_output=True,
        text=True,
    )
    details = f"{lint.stdout}\n{lint.stderr}".strip()
    assert lint.returncode == 0, details


def test_read_only_classification_follows_compiled_overload() -> None:
    """Routes take the mutability of the overload their action was compiled from."""
    interface_json = fixture_text("overloaded_getters.json")
    entries = load_interface_definition(interface_json)
    assert classify_from_interface(entries) == {"balance": True, "checkpoint": False}

    schemas = compile_schemas(interface_json)
    files = generate_scaffold_files(schemas.mcp_schema, _ADDRESS, "Vault", interface_json=interface_json)
    assert "- POST `/contract/checkpoint` (simulated)" in files["README.md"]
    assert "- POST `/contract/balance` (read)" in files["README.md"]


class _HostedCaller:
    """Contract caller double mirroring a patched scaffold contract call."""

    def __init__(self, result: Any, delay: float) -> None:
        self.result = result
        self.delay = delay
        self.calls: list[list[Any]] = []

    async def call(
        self,
        *,
        endpoint: str,
        address: str,
        interface: Sequence[JSONObject],
        function_name: str,
        arguments: Sequence[Any],
    ) -> Any:
        self.calls.append(list(arguments))
        if self.delay:
            await asyncio.sleep(self.delay)
        return self.result


@pytest.fixture
def generated_server(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> Iterator[ModuleType]:
    """Write the ERC-20 scaffold and import its server module."""
    interface_json = fixture_text("erc20.json")
    schemas = compile_schemas(interface_json)
    files = generate_scaffold_files(schemas.mcp_schema, _ADDRESS, "Dai", interface_json=interface_json)
    output_dir = tmp_path / "scaffold"
    write_scaffold(output_dir, files)

    monkeypatch.syspath_prepend(str(output_dir))
    for name in ("server", "models"):
        sys.modules.pop(name, None)
    yield importlib.import_module("server")
    for name in ("server", "models"):
        sys.modules.pop(name, None)


def _hosted_response(
    action: str,
    arguments: dict[str, Any],
    *,
    result: Any,
    delay: float = 0.0,
    timeout_seconds: float = 1.0,
    strict_arguments: bool = False,
) -> tuple[int, Any, list[list[Any]]]:
    interface_json = fixture_text("erc20.json")
    schemas = compile_schemas(interface_json)
    record = ContractRecord(
        id="c1",
        name="Dai",
        address=_ADDRESS,
        abi_json=interface_json,
        mcp_schema=schemas.mcp_schema,
        gpt_action_schema=schemas.gpt_action_schema,
    )
    caller = _HostedCaller(result, delay)
    dispatcher = Dispatcher(
        store=InMemoryContractStore([record]),
        caller=caller,
        endpoints=NetworkEndpoints(endpoints={"mainnet": "https://mainnet.example"}),
        timeout_seconds=timeout_seconds,
        strict_arguments=strict_arguments,
    )
    try:
        body = asyncio.run(dispatcher.invoke(_ADDRESS, "mcp", action, arguments))
    except AbiToMcpError as exc:
        return exc.status_code, exc.to_body(), caller.calls
    return 200, json.loads(json.dumps(body)), caller.calls


def _scaffold_response(
    server: ModuleType,
    monkeypatch: pytest.MonkeyPatch,
    action: str,
    arguments: dict[str, Any],
    *,
    result: Any,
    delay: float = 0.0,
) -> tuple[int, Any, list[list[Any]]]:
    calls: list[list[Any]] = []

    def fake_call_contract(function_name: str, call_arguments: list[Any]) -> Any:
        calls.append(list(call_arguments))
        if delay:
            time.sleep(delay)
        return result

    monkeypatch.setattr(server, "_call_contract", fake_call_contract)
    response = TestClient(server.app).post(f"/contract/{action}", json=arguments)
    return response.status_code, response.json(), calls


@pytest.mark.parametrize(
    ("action", "arguments"),
    [
        ("balanceOf", {"owner": "0xdac17f958d2ee523a2206206994597c13d831ec7"}),
        ("transfer", {"to": "0x2222222222222222222222222222222222222222", "amount": None}),
        ("transfer", {"to": "0x2222222222222222222222222222222222222222", "amount": "0x10"}),
        ("transfer", {"amount": 1}),
        ("deposit", {}),
    ],
    ids=["read", "null-amount", "hex-amount", "missing-to", "no-arguments"],
)
def test_generated_server_matches_hosted_dispatch(
    generated_server: ModuleType,
    monkeypatch: pytest.MonkeyPatch,
    action: str,
    arguments: dict[str, Any],
) -> None:
    """The generated service answers like the hosted dispatcher for the same request."""
    hosted = _hosted_response(action, arguments, result=10**24)
    scaffold = _scaffold_response(generated_server, monkeypatch, action, arguments, result=10**24)
    assert scaffold == hosted


def test_generated_server_normalizes_big_numbers(
    generated_server: ModuleType,
    monkeypatch: pytest.MonkeyPatch,
) -> None:
    """Integer results are returned as big-number records."""
    status, body, _ = _scaffold_response(
        generated_server,
        monkeypatch,
        "balanceOf",
        {"owner": "0x01"},
        result=10**24,
    )
    assert status == 200
    assert body["result"] == {
        "type": "BigNumber",
        "hex": "0xd3c21bcecceda1000000",
        "decimal": str(10**24),
        "formatted": f"{10**24}.0",
    }


def test_generated_server_times_out_like_hosted_dispatch(
    generated_server: ModuleType,
    monkeypatch: pytest.MonkeyPatch,
) -> None:
    """A slow read reports an unknown outcome with status 504."""
    monkeypatch.setattr(generated_server, "CALL_TIMEOUT_SECONDS", 0.01)
    arguments = {"owner": "0x01"}
    hosted_status, hosted_body, _ = _hosted_response(
        "balanceOf", arguments, result=1, delay=0.5, timeout_seconds=0.01
    )
    status, body, _ = _scaffold_response(
        generated_server, monkeypatch, "balanceOf", arguments, result=1, delay=0.2
    )
    assert status == hosted_status == 504
    assert body == hosted_body


def test_generated_server_strict_mode_rejects_wrong_shapes(
    generated_server: ModuleType,
    monkeypatch: pytest.MonkeyPatch,
) -> None:
    """With strict arguments enabled a string amount is rejected like the hosted dispatcher does."""
    monkeypatch.setattr(generated_server, "STRICT_ARGUMENTS", True)
    arguments = {"to": "0x2222222222222222222222222222222222222222", "amount": "5"}
    hosted_status, hosted_body, _ = _hosted_response(
        "transfer", arguments, result=1, strict_arguments=True
    )
    status, body, calls = _scaffold_response(generated_server, monkeypatch, "transfer", arguments, result=1)
    assert status == hosted_status == 400
    assert body["reason"] == hosted_body["reason"] == "invalid_arguments"
    assert body["action"] == hosted_body["action"] == "transfer"
    assert calls == []


def test_generated_server_republishes_both_dialects(generated_server: ModuleType) -> None:
    """The generated service serves the schema in both dialects."""
    schemas = compile_schemas(fixture_text("erc20.json"))
    client = TestClient(generated_server.app)
    assert client.get("/mcp-schema").json() == json.loads(schemas.mcp_schema)
    assert client.get("/gpt-actions-schema").json() == json.loads(schemas.gpt_action_schema)
