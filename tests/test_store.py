"""Tests for contract record stores."""

from __future__ import annotations

from pathlib import Path

import pytest

from abi_to_mcp.abi import FunctionOverride
from abi_to_mcp.errors import ParseError
from abi_to_mcp.store import ContractRecord, FileContractStore, InMemoryContractStore, load_records


def _record(record_id: str = "c1", address: str = "0xAbC0000000000000000000000000000000000001") -> ContractRecord:
    return ContractRecord(id=record_id, name="Token", address=address, abi_json="[]", owner_id="alice")


def test_address_lookup_ignores_case() -> None:
    """Addresses are matched case-insensitively."""
    store = InMemoryContractStore([_record()])
    found = store.find_by_address("0xabc0000000000000000000000000000000000001")
    assert found is not None
    assert found.id == "c1"
    assert store.find_by_address("0x01") is None


@pytest.mark.parametrize("suffix", [".json", ".yaml"])
def test_file_store_round_trip(tmp_path: Path, suffix: str) -> None:
    """Saved records are reloaded with their camelCase keys."""
    path = tmp_path / "nested" / f"contracts{suffix}"
    store = FileContractStore(path)
    record = _record().model_copy(
        update={
            "mcp_schema": "[]",
            "custom_function_descriptions": {"transfer": FunctionOverride(description="Send tokens")},
        }
    )
    store.save(record)

    reloaded = FileContractStore(path).get("c1")
    assert reloaded == record
    assert "ownerId" in path.read_text(encoding="utf-8")


def test_records_accept_camel_case_keys(tmp_path: Path) -> None:
    """Store files use the camelCase record keys."""
    path = tmp_path / "contracts.json"
    path.write_text(
        '[{"id": "c1", "name": "T", "address": "0x01", "abiJson": "[]", "mcpSchema": "[]"}]',
        encoding="utf-8",
    )
    (record,) = load_records(path)
    assert record.abi_json == "[]"
    assert record.mcp_schema == "[]"
    assert record.network == "mainnet"


def test_invalid_store_file_raises_parse_error(tmp_path: Path) -> None:
    """A store file that is not a record list is rejected."""
    path = tmp_path / "contracts.yaml"
    path.write_text("id: c1\n", encoding="utf-8")
    with pytest.raises(ParseError):
        load_records(path)


def test_failed_write_keeps_previous_records() -> None:
    """A save whose write fails leaves the served records unchanged."""

    def failing_write(records: list[ContractRecord]) -> None:
        raise OSError("disk full")

    original = _record()
    store = InMemoryContractStore([original], on_save=failing_write)
    with pytest.raises(OSError):
        store.save(original.model_copy(update={"mcp_schema": "[]"}))
    assert store.get("c1") == original
    assert store.records() == [original]
