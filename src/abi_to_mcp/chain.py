"""Remote contract calls and conversion of their arguments and results."""

from __future__ import annotations

import asyncio
from collections.abc import Mapping, Sequence
import logging
import re
from typing import Any, Protocol

from web3 import Web3

from .abi import InterfaceEntry, InterfaceField
from .json_types import JSONObject, JSONValue
from .naming import placeholder_name
from .type_mapper import element_type_tag

log = logging.getLogger(__name__)

_DECIMAL_RE = re.compile(r"-?\d+")
_HEX_RE = re.compile(r"0[xX][0-9a-fA-F]+")
_BOOL_STRINGS = {"true": True, "false": False}


class ContractCaller(Protocol):
    """Performs one read-only call of a deployed contract function."""

    async def call(
        self,
        *,
        endpoint: str,
        address: str,
        interface: Sequence[JSONObject],
        function_name: str,
        arguments: Sequence[Any],
    ) -> Any: ...


class Web3ContractCaller:
    """``ContractCaller`` backed by a web3 HTTP provider.

    The web3 client is synchronous, so each call runs in a worker thread.
    ``request_timeout`` bounds the HTTP request itself; callers bound the
    overall call with their own deadline.
    """

    def __init__(self, *, request_timeout: float = 10.0) -> None:
        self._request_timeout = request_timeout

    async def call(
        self,
        *,
        endpoint: str,
        address: str,
        interface: Sequence[JSONObject],
        function_name: str,
        arguments: Sequence[Any],
    ) -> Any:
        return await asyncio.to_thread(
            self._call_sync,
            endpoint=endpoint,
            address=address,
            interface=list(interface),
            function_name=function_name,
            arguments=list(arguments),
        )

    def _call_sync(
        self,
        *,
        endpoint: str,
        address: str,
        interface: list[JSONObject],
        function_name: str,
        arguments: list[Any],
    ) -> Any:
        web3 = Web3(Web3.HTTPProvider(endpoint, request_kwargs={"timeout": self._request_timeout}))
        contract = web3.eth.contract(address=Web3.to_checksum_address(address), abi=interface)
        log.debug("Calling %s on %s via %s", function_name, address, endpoint)
        function = getattr(contract.functions, function_name)
        return function(*arguments).call()


def marshal_arguments(entry: InterfaceEntry, arguments: Mapping[str, Any]) -> list[Any]:
    """Order named arguments positionally and coerce them to call values.

    Args:
        entry (InterfaceEntry): Function entry whose inputs give the order.
        arguments (Mapping[str, Any]): Caller-supplied arguments by name.

    Returns:
        list[Any]: One value per input. Integers may be given as decimal or
            ``0x`` strings, booleans as ``"true"``/``"false"``, structures as
            objects keyed by component name.
    """
    return [
        marshal_value(field, arguments.get(placeholder_name(field.name, index)))
        for index, field in enumerate(entry.inputs)
    ]


def marshal_value(field: InterfaceField, value: Any) -> Any:
    """Coerce one argument value to what the web3 encoder expects for ``field``."""
    element = element_type_tag(field.type_tag)
    if element is not None:
        if not isinstance(value, list):
            return value
        element_field = field.model_copy(update={"type_tag": element})
        return [marshal_value(element_field, item) for item in value]

    if field.components:
        if isinstance(value, Mapping):
            return tuple(
                marshal_value(component, value.get(placeholder_name(component.name, index)))
                for index, component in enumerate(field.components)
            )
        if isinstance(value, list):
            return tuple(
                marshal_value(component, item)
                for component, item in zip(field.components, value, strict=False)
            )
        return value

    if not isinstance(value, str):
        return value
    if "int" in field.type_tag:
        if _DECIMAL_RE.fullmatch(value):
            return int(value)
        if _HEX_RE.fullmatch(value):
            return int(value, 16)
        return value
    if field.type_tag == "bool":
        return _BOOL_STRINGS.get(value.lower(), value)
    if field.type_tag == "address" and Web3.is_address(value):
        return Web3.to_checksum_address(value)
    return value


def normalize_result(value: Any) -> JSONValue:
    """Convert a decoded call result into a JSON-safe value.

    Integers become big-number records carrying hexadecimal, decimal and
    formatted text, so values beyond the JSON number range survive intact.
    """
    if isinstance(value, bool) or value is None:
        return value
    if isinstance(value, int):
        return {
            "type": "BigNumber",
            "hex": to_hex(value),
            "decimal": str(value),
            "formatted": format_units(value),
        }
    if isinstance(value, (bytes, bytearray)):
        return "0x" + bytes(value).hex()
    if isinstance(value, (list, tuple)):
        return [normalize_result(item) for item in value]
    if isinstance(value, Mapping):
        return {str(key): normalize_result(item) for key, item in value.items()}
    if isinstance(value, (str, float)):
        return value
    return str(value)


def to_hex(value: int) -> str:
    """Return ``value`` as ``0x`` hex padded to an even number of digits."""
    digits = format(abs(value), "x")
    if len(digits) % 2:
        digits = f"0{digits}"
    return f"-0x{digits}" if value < 0 else f"0x{digits}"


def format_units(value: int, decimals: int = 0) -> str:
    """Format an integer amount scaled down by ``decimals`` places.

    The result always carries a fractional part: ``format_units(123)`` is
    ``"123.0"`` and ``format_units(1500, 3)`` is ``"1.5"``.
    """
    whole, fraction = divmod(abs(value), 10**decimals)
    fraction_text = str(fraction).rjust(decimals, "0").rstrip("0") if decimals else ""
    text = f"{whole}.{fraction_text or '0'}"
    return f"-{text}" if value < 0 else text
