"""Static text templates for generated scaffold artifacts."""

from __future__ import annotations

SERVER_IMPORTS = '''
from __future__ import annotations

import asyncio
import json
import logging
import os
import re
from pathlib import Path
from typing import Any

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from pydantic import BaseModel, ValidationError
from web3 import Web3
'''

SERVER_RUNTIME = '''
log = logging.getLogger(__name__)

RPC_URL = os.getenv("RPC_URL", "https://eth-mainnet.g.alchemy.com/v2/demo")
CALL_TIMEOUT_SECONDS = float(os.getenv("CALL_TIMEOUT_SECONDS", "10"))
ABI_PATH = Path(os.getenv("CONTRACT_ABI_PATH", str(Path(__file__).with_name("abi.json"))))
STRICT_ARGUMENTS = os.getenv("STRICT_ARGUMENTS", "false").strip().lower() in {"1", "true", "yes"}
SIMULATION_MESSAGE = (
    "This is a simulation of a state-changing operation. Executing it requires "
    "a signer funded to pay for gas."
)

_ACTIONS = {action["name"]: action for action in MCP_SCHEMA}
_DECIMAL_RE = re.compile(r"-?\\d+")
_HEX_RE = re.compile(r"0[xX][0-9a-fA-F]+")
_BOOL_STRINGS = {"true": True, "false": False}

app = FastAPI(title=f"{CONTRACT_NAME} MCP server")
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_methods=["GET", "POST", "OPTIONS"],
    allow_headers=["Content-Type"],
)


def _load_abi() -> list[dict[str, Any]]:
    with ABI_PATH.open("r", encoding="utf-8") as handle:
        payload = json.load(handle)
    if isinstance(payload, dict):
        payload = payload.get("abi", [])
    return payload


def _call_contract(function_name: str, arguments: list[Any]) -> Any:
    web3 = Web3(Web3.HTTPProvider(RPC_URL, request_kwargs={"timeout": CALL_TIMEOUT_SECONDS}))
    contract = web3.eth.contract(
        address=Web3.to_checksum_address(CONTRACT_ADDRESS),
        abi=_load_abi(),
    )
    return getattr(contract.functions, function_name)(*arguments).call()


def _to_call_argument(descriptor: dict[str, Any], value: Any) -> Any:
    json_type = descriptor.get("type")
    if json_type == "array":
        if not isinstance(value, list):
            return value
        return [_to_call_argument(descriptor["items"], item) for item in value]

    if json_type == "object":
        fields = list(descriptor.get("properties", {}).items())
        if isinstance(value, dict):
            return tuple(_to_call_argument(field, value.get(name)) for name, field in fields)
        if isinstance(value, list):
            return tuple(
                _to_call_argument(field, item) for (_, field), item in zip(fields, value, strict=False)
            )
        return value

    if not isinstance(value, str):
        return value
    if json_type == "integer":
        if _DECIMAL_RE.fullmatch(value):
            return int(value)
        if _HEX_RE.fullmatch(value):
            return int(value, 16)
        return value
    if json_type == "boolean":
        return _BOOL_STRINGS.get(value.lower(), value)
    if Web3.is_address(value):
        return Web3.to_checksum_address(value)
    return value


def _to_hex(value: int) -> str:
    digits = format(abs(value), "x")
    if len(digits) % 2:
        digits = f"0{digits}"
    return f"-0x{digits}" if value < 0 else f"0x{digits}"


def _format_units(value: int, decimals: int = 0) -> str:
    whole, fraction = divmod(abs(value), 10**decimals)
    fraction_text = str(fraction).rjust(decimals, "0").rstrip("0") if decimals else ""
    text = f"{whole}.{fraction_text or '0'}"
    return f"-{text}" if value < 0 else text


def _normalize_result(value: Any) -> Any:
    if isinstance(value, bool):
        return value
    if isinstance(value, int):
        return {
            "type": "BigNumber",
            "hex": _to_hex(value),
            "decimal": str(value),
            "formatted": _format_units(value),
        }
    if isinstance(value, (bytes, bytearray)):
        return "0x" + bytes(value).hex()
    if isinstance(value, (list, tuple)):
        return [_normalize_result(item) for item in value]
    if isinstance(value, dict):
        return {key: _normalize_result(item) for key, item in value.items()}
    return value


def _error(status_code: int, message: str, reason: str, **details: Any) -> JSONResponse:
    return JSONResponse({"error": message, "reason": reason, **details}, status_code=status_code)


async def _read_payload(request: Request) -> Any:
    body = await request.body()
    if not body.strip():
        return {}
    try:
        return json.loads(body)
    except json.JSONDecodeError:
        return None


async def _dispatch(
    request: Request,
    action_name: str,
    model: type[BaseModel],
    required: tuple[str, ...],
    read_only: bool,
) -> JSONResponse:
    payload = await _read_payload(request)
    if not isinstance(payload, dict):
        return _error(400, "Request body must be a JSON object", "invalid_request")

    missing = [name for name in required if name not in payload]
    if missing:
        return _error(400, "Missing required parameters", "missing_parameters", missingParams=missing)

    if STRICT_ARGUMENTS:
        try:
            model.model_validate_json(json.dumps(payload), strict=True)
        except ValidationError as exc:
            violations = [f"{'.'.join(map(str, item['loc']))}: {item['msg']}" for item in exc.errors()]
            return _error(
                400,
                f'Invalid arguments for action "{action_name}"',
                "invalid_arguments",
                action=action_name,
                violations=violations,
            )

    if not read_only:
        log.info("State-changing operation requested: %s", action_name)
        return JSONResponse(
            {
                "simulation": True,
                "executed": False,
                "message": SIMULATION_MESSAGE,
                "function": action_name,
                "parameters": payload,
                "estimatedGas": "Not calculated in simulation mode",
            }
        )

    properties = _ACTIONS[action_name]["parameters"]["properties"]
    call_arguments = [_to_call_argument(field, payload.get(name)) for name, field in properties.items()]
    try:
        result = await asyncio.wait_for(
            asyncio.to_thread(_call_contract, action_name, call_arguments),
            timeout=CALL_TIMEOUT_SECONDS,
        )
    except TimeoutError:
        log.warning("Call to %s timed out after %ss", action_name, CALL_TIMEOUT_SECONDS)
        return _error(
            504,
            f'Contract function "{action_name}" timed out; outcome unknown',
            "timeout",
            function=action_name,
            timeoutSeconds=CALL_TIMEOUT_SECONDS,
        )
    except Exception as exc:
        log.warning("Call to %s failed: %s", action_name, exc)
        return _error(
            500,
            f'Failed to call contract function "{action_name}"',
            "execution_failed",
            function=action_name,
            details=str(exc),
        )

    return JSONResponse(
        {
            "success": True,
            "function": action_name,
            "parameters": payload,
            "result": _normalize_result(result),
        }
    )


@app.get("/mcp-schema")
def get_mcp_schema() -> list[dict[str, Any]]:
    return MCP_SCHEMA


@app.get("/gpt-actions-schema")
def get_gpt_actions_schema() -> list[dict[str, Any]]:
    return [
        {
            "type": "function",
            "function": {
                "name": action["name"],
                "description": action["description"],
                "parameters": action["parameters"],
            },
        }
        for action in MCP_SCHEMA
    ]
'''

SERVER_MAIN = '''
if __name__ == "__main__":
    import uvicorn

    uvicorn.run(app, host=os.getenv("HOST", "0.0.0.0"), port=int(os.getenv("PORT", "3000")))
'''

PYPROJECT_TEMPLATE = """\
[build-system]
requires = ["setuptools>=68"]
build-backend = "setuptools.build_meta"

[project]
name = "{slug}"
version = "1.0.0"
description = "MCP-compatible server for the {name} smart contract"
requires-python = ">=3.12"
dependencies = [
    "fastapi>=0.110",
    "pydantic>=2.6",
    "uvicorn>=0.29",
    "web3>=6.15",
]

[tool.setuptools]
py-modules = ["server", "models"]
"""

RUFF_TEMPLATE = """\
line-length = 100
target-version = "py312"

[lint]
select = ["E", "F", "I", "UP"]
ignore = ["E501"]

[format]
quote-style = "double"
"""

DOCKERFILE_TEMPLATE = """\
FROM python:3.12-slim

WORKDIR /app

COPY pyproject.toml ./
COPY server.py models.py ./
COPY abi.json* ./
RUN pip install --no-cache-dir .

EXPOSE 3000

CMD ["uvicorn", "server:app", "--host", "0.0.0.0", "--port", "3000"]
"""

README_TEMPLATE = """\
# {name} MCP Server

A Model Context Protocol (MCP) compatible service for the {name} smart contract
deployed at `{address}`. Every contract action is exposed as a REST route.

## Getting Started

1. Install the service:

   ```
   pip install .
   ```

2. Provide the contract interface definition as `abi.json` next to `server.py`
   (or point `CONTRACT_ABI_PATH` at it).

3. Configure the environment:

   ```
   RPC_URL=https://eth-mainnet.g.alchemy.com/v2/YOUR_KEY
   CALL_TIMEOUT_SECONDS=10
   STRICT_ARGUMENTS=false
   PORT=3000
   ```

4. Start the server:

   ```
   uvicorn server:app --port 3000
   ```

## API Endpoints

- GET `/mcp-schema`: the MCP action schema for the contract
- GET `/gpt-actions-schema`: the tool-call action schema for the contract
- POST `/contract/{{functionName}}`: call a contract function with a JSON body
  of named arguments

Read-only functions are executed against `RPC_URL`. State-changing functions
are acknowledged with a simulation response and never executed.

## Actions

{actions}

## Docker Deployment

```
docker build -t {slug} .
docker run -p 3000:3000 -e RPC_URL=your_rpc_url {slug}
```
"""
