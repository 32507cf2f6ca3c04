"""AST-based Python code generation for scaffold request models and routes."""

from __future__ import annotations

import ast
from typing import Optional

from .json_types import JSONValue
from .model_types import FieldDef, ModelDef, RouteDef, ScaffoldModels
from .scaffold_templates import SERVER_IMPORTS, SERVER_MAIN, SERVER_RUNTIME

ROUTE_PREFIX = "/contract/"
MODELS_MODULE = "models"


def render_models_module(scaffold: ScaffoldModels, *, contract_name: str) -> str:
    """Render the request models of every action as Python source code using AST.

    Args:
        scaffold (ScaffoldModels): Request models and routes to render.
        contract_name (str): Display name of the contract.

    Returns:
        str: Generated Python source code for ``models.py``.
    """
    body: list[ast.stmt] = [
        ast.Expr(value=ast.Constant(value=f"Request models for the {contract_name} contract actions.")),
        ast.ImportFrom(module="__future__", names=[ast.alias(name="annotations")], level=0),
    ]
    pydantic_imports = ["BaseModel"]
    if any(_has_alias(model) for model in scaffold.models):
        pydantic_imports.append("ConfigDict")
    if any(model.fields for model in scaffold.models):
        pydantic_imports.append("Field")
    body.append(
        ast.ImportFrom(
            module="pydantic",
            names=[ast.alias(name=name) for name in pydantic_imports],
            level=0,
        )
    )
    for model in scaffold.models:
        body.append(_model_to_ast(model))

    module = ast.Module(body=body, type_ignores=[])
    ast.fix_missing_locations(module)
    return ast.unparse(module) + "\n"


def render_server_module(
    scaffold: ScaffoldModels,
    *,
    contract_address: str,
    contract_name: str,
    mcp_actions: JSONValue,
) -> str:
    """Render the standalone FastAPI service module using AST.

    Args:
        scaffold (ScaffoldModels): Request models and routes to render.
        contract_address (str): Address the generated service calls.
        contract_name (str): Display name of the contract.
        mcp_actions (JSONValue): Decoded direct-dialect schema, embedded
            verbatim so the service can republish it.

    Returns:
        str: Generated Python source code for ``server.py``.
    """
    docstring = (
        f"MCP-compatible service for the {contract_name} contract.\n\n"
        "Every compiled action is exposed as POST /contract/<action>. Read-only actions\n"
        "are executed against RPC_URL; state-changing actions are only simulated."
    )
    body: list[ast.stmt] = [ast.Expr(value=ast.Constant(value=docstring))]
    body.extend(ast.parse(SERVER_IMPORTS).body)

    model_names = list(dict.fromkeys(route.model_name for route in scaffold.routes))
    if model_names:
        body.append(
            ast.ImportFrom(
                module=MODELS_MODULE,
                names=[ast.alias(name=name) for name in model_names],
                level=0,
            )
        )

    body.append(_constant_assign("CONTRACT_ADDRESS", contract_address))
    body.append(_constant_assign("CONTRACT_NAME", contract_name))
    body.append(
        ast.AnnAssign(
            target=ast.Name(id="MCP_SCHEMA", ctx=ast.Store()),
            annotation=_expr("list[dict[str, Any]]"),
            value=_value_expr(mcp_actions),
            simple=1,
        )
    )
    body.extend(ast.parse(SERVER_RUNTIME).body)
    for route in scaffold.routes:
        body.append(_route_to_ast(route))
    body.extend(ast.parse(SERVER_MAIN).body)

    module = ast.Module(body=body, type_ignores=[])
    ast.fix_missing_locations(module)
    return ast.unparse(module) + "\n"


def _model_to_ast(model: ModelDef) -> ast.ClassDef:
    class_body: list[ast.stmt] = []
    if model.docstring:
        class_body.append(ast.Expr(value=ast.Constant(value=model.docstring)))

    if _has_alias(model):
        class_body.append(
            ast.Assign(
                targets=[ast.Name(id="model_config", ctx=ast.Store())],
                value=ast.Call(
                    func=ast.Name(id="ConfigDict", ctx=ast.Load()),
                    args=[],
                    keywords=[ast.keyword(arg="populate_by_name", value=ast.Constant(value=True))],
                ),
            )
        )

    for field in model.fields:
        class_body.append(_field_to_ast(field))

    if not class_body:
        class_body.append(ast.Pass())

    return ast.ClassDef(
        name=model.name,
        bases=[ast.Name(id="BaseModel", ctx=ast.Load())],
        keywords=[],
        body=class_body,
        decorator_list=[],
        type_params=[],
    )


def _field_to_ast(field: FieldDef) -> ast.AnnAssign:
    keywords: list[ast.keyword] = []
    if field.source_name != field.name:
        keywords.append(ast.keyword(arg="alias", value=ast.Constant(value=field.source_name)))
    keywords.append(ast.keyword(arg="description", value=ast.Constant(value=field.description)))

    call = ast.Call(
        func=ast.Name(id="Field", ctx=ast.Load()),
        args=[ast.Constant(value=Ellipsis)],
        keywords=keywords,
    )

    return ast.AnnAssign(
        target=ast.Name(id=field.name, ctx=ast.Store()),
        annotation=_expr(field.annotation),
        value=call,
        simple=1,
    )


def _route_to_ast(route: RouteDef) -> ast.AsyncFunctionDef:
    dispatch_call = ast.Call(
        func=ast.Name(id="_dispatch", ctx=ast.Load()),
        args=[
            ast.Name(id="request", ctx=ast.Load()),
            ast.Constant(value=route.action_name),
            ast.Name(id=route.model_name, ctx=ast.Load()),
            ast.Tuple(elts=[ast.Constant(value=name) for name in route.required], ctx=ast.Load()),
        ],
        keywords=[ast.keyword(arg="read_only", value=ast.Constant(value=route.read_only))],
    )
    decorator = ast.Call(
        func=ast.Attribute(value=ast.Name(id="app", ctx=ast.Load()), attr="post", ctx=ast.Load()),
        args=[ast.Constant(value=f"{ROUTE_PREFIX}{route.action_name}")],
        keywords=[],
    )
    body: list[ast.stmt] = []
    if route.description:
        body.append(ast.Expr(value=ast.Constant(value=route.description)))
    body.append(ast.Return(value=ast.Await(value=dispatch_call)))

    return ast.AsyncFunctionDef(
        name=route.handler_name,
        args=ast.arguments(
            posonlyargs=[],
            args=[ast.arg(arg="request", annotation=ast.Name(id="Request", ctx=ast.Load()))],
            kwonlyargs=[],
            kw_defaults=[],
            defaults=[],
        ),
        body=body,
        decorator_list=[decorator],
        returns=ast.Name(id="JSONResponse", ctx=ast.Load()),
        type_params=[],
    )


def _constant_assign(name: str, value: str) -> ast.Assign:
    return ast.Assign(
        targets=[ast.Name(id=name, ctx=ast.Store())],
        value=ast.Constant(value=value),
    )


def _has_alias(model: ModelDef) -> bool:
    return any(field.source_name != field.name for field in model.fields)


def _expr(code: str) -> ast.expr:
    parsed = ast.parse(code, mode="eval")
    return parsed.body


def _value_expr(value: Optional[JSONValue]) -> ast.expr:
    parsed = ast.parse(repr(value), mode="eval")
    return parsed.body
