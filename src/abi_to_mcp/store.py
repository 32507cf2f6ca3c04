"""Contract record persistence."""

from __future__ import annotations

from collections.abc import Callable, Iterable
import json
import logging
import os
from pathlib import Path
import tempfile
import threading
from typing import Any, Optional, Protocol

import yaml
from pydantic import BaseModel, ConfigDict, Field, TypeAdapter, ValidationError

from .abi import FunctionOverride
from .errors import ParseError

log = logging.getLogger(__name__)

_YAML_SUFFIXES = {".yaml", ".yml"}


class ContractRecord(BaseModel):
    """A registered contract together with its compiled schemas."""

    model_config = ConfigDict(frozen=True, populate_by_name=True, extra="ignore")

    id: str
    name: str
    address: str
    network: str = "mainnet"
    abi_json: str = Field(alias="abiJson")
    owner_id: Optional[str] = Field(default=None, alias="ownerId")
    mcp_schema: Optional[str] = Field(default=None, alias="mcpSchema")
    gpt_action_schema: Optional[str] = Field(default=None, alias="gptActionSchema")
    custom_function_descriptions: dict[str, FunctionOverride] = Field(
        default_factory=dict, alias="customFunctionDescriptions"
    )


_RECORDS_ADAPTER: TypeAdapter[list[ContractRecord]] = TypeAdapter(list[ContractRecord])


class ContractStore(Protocol):
    """Lookup and persistence of contract records."""

    def get(self, contract_id: str) -> Optional[ContractRecord]: ...

    def find_by_address(self, address: str) -> Optional[ContractRecord]: ...

    def save(self, record: ContractRecord) -> None: ...


class InMemoryContractStore:
    """Thread-safe in-process record store keyed by record id."""

    def __init__(
        self,
        records: Iterable[ContractRecord] = (),
        *,
        on_save: Optional[Callable[[list[ContractRecord]], None]] = None,
    ) -> None:
        self._lock = threading.Lock()
        self._on_save = on_save
        self._records: dict[str, ContractRecord] = {record.id: record for record in records}

    def get(self, contract_id: str) -> Optional[ContractRecord]:
        with self._lock:
            return self._records.get(contract_id)

    def find_by_address(self, address: str) -> Optional[ContractRecord]:
        """Return the first record whose address matches, ignoring case."""
        wanted = address.lower()
        with self._lock:
            return next(
                (record for record in self._records.values() if record.address.lower() == wanted),
                None,
            )

    def save(self, record: ContractRecord) -> None:
        with self._lock:
            updated = {**self._records, record.id: record}
            # Memory only changes once the write has succeeded.
            if self._on_save is not None:
                self._on_save(list(updated.values()))
            self._records = updated

    def records(self) -> list[ContractRecord]:
        with self._lock:
            return list(self._records.values())


class FileContractStore(InMemoryContractStore):
    """Record store backed by a JSON or YAML file, rewritten on every save."""

    def __init__(self, path: Path) -> None:
        self._path = path
        super().__init__(load_records(path) if path.exists() else (), on_save=self._write)
        log.info("Loaded %d contract records from %s", len(self.records()), path)

    def _write(self, records: list[ContractRecord]) -> None:
        payload = [record.model_dump(by_alias=True, exclude_none=True) for record in records]
        if self._path.suffix.lower() in _YAML_SUFFIXES:
            text = yaml.safe_dump(payload, sort_keys=False, allow_unicode=True)
        else:
            text = json.dumps(payload, indent=2) + "\n"
        _atomic_write(self._path, text)


def load_records(path: Path) -> list[ContractRecord]:
    """Read contract records from a JSON or YAML file."""
    try:
        text = path.read_text(encoding="utf-8")
    except OSError as exc:
        raise ParseError(f"Failed to read contract store {path}: {exc}") from exc
    try:
        payload: Any = yaml.safe_load(text)
    except yaml.YAMLError as exc:
        raise ParseError(f"Failed to parse contract store {path}: {exc}") from exc
    if payload is None:
        return []
    try:
        return _RECORDS_ADAPTER.validate_python(payload)
    except ValidationError as exc:
        raise ParseError(f"Contract store {path} is invalid: {exc}") from exc


def _atomic_write(path: Path, text: str) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    fd, tmp_name = tempfile.mkstemp(prefix=f".{path.name}.", dir=path.parent)
    try:
        with os.fdopen(fd, "w", encoding="utf-8") as handle:
            handle.write(text)
        os.replace(tmp_name, path)
    except OSError:
        Path(tmp_name).unlink(missing_ok=True)
        raise
