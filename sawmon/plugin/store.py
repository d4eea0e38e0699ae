"""
Plugin Record Store.

This module provides durable storage of installed plugin records.

Key features:
- Async store contract (find_all, find_one, create, delete)
- Name uniqueness enforced on create
- TOML file backend (tomlkit, preserves hand edits) and an in-memory backend
"""

import threading
import uuid
from pathlib import Path
from typing import Protocol

from sawmon.config.toml_handler import TOMLError, load_document, write_toml
from sawmon.plugin.manifest import PluginRecord


class StoreError(Exception):
    """Base exception for record store errors."""

    pass


class RecordNotFoundError(StoreError):
    """Raised when no record matches an identity."""

    def __init__(self, identity: str):
        super().__init__(f"Plugin record not found: {identity}")
        self.identity = identity


class DuplicateRecordError(StoreError):
    """Raised when creating a record whose name is already stored."""

    pass


class RecordStore(Protocol):
    """What the plugin manager needs from a record store."""

    async def find_all(self) -> list[PluginRecord]: ...

    async def find_one(self, identity: str) -> PluginRecord | None: ...

    async def create(self, record: PluginRecord) -> PluginRecord: ...

    async def delete(self, identity: str) -> None: ...


def _new_identity() -> str:
    return uuid.uuid4().hex


class MemoryRecordStore:
    """Record store kept in a dict. Nothing survives the process."""

    def __init__(self, records: list[PluginRecord] | None = None):
        self._records: dict[str, PluginRecord] = {}
        for record in records or []:
            identity = record.identity or _new_identity()
            self._records[identity] = PluginRecord(record.name, record.version, identity)

    async def find_all(self) -> list[PluginRecord]:
        return list(self._records.values())

    async def find_one(self, identity: str) -> PluginRecord | None:
        return self._records.get(identity)

    async def create(self, record: PluginRecord) -> PluginRecord:
        if any(r.name == record.name for r in self._records.values()):
            raise DuplicateRecordError(f"Plugin record already exists: {record.name}")
        stored = PluginRecord(record.name, record.version, _new_identity())
        self._records[stored.identity] = stored
        return stored

    async def delete(self, identity: str) -> None:
        if self._records.pop(identity, None) is None:
            raise RecordNotFoundError(identity)


class TomlRecordStore:
    """
    Record store backed by a TOML file.

    Layout:
        [plugins.<identity>]
        name = "sawmon-ip"
        version = "1.2.0"
    """

    SECTION = "plugins"

    def __init__(self, path: Path):
        self.path = Path(path)
        self._lock = threading.Lock()

    def _load(self):
        try:
            return load_document(self.path)
        except TOMLError as e:
            raise StoreError(f"Failed to read plugin records: {e}") from e

    def _read(self) -> dict[str, PluginRecord]:
        records = {}
        for identity, entry in self._load().get(self.SECTION, {}).items():
            try:
                records[identity] = PluginRecord(
                    name=str(entry["name"]),
                    version=str(entry["version"]),
                    identity=identity,
                )
            except (KeyError, TypeError) as e:
                raise StoreError(f"Malformed plugin record {identity}: {e}") from e
        return records

    async def find_all(self) -> list[PluginRecord]:
        with self._lock:
            return list(self._read().values())

    async def find_one(self, identity: str) -> PluginRecord | None:
        with self._lock:
            return self._read().get(identity)

    async def create(self, record: PluginRecord) -> PluginRecord:
        with self._lock:
            if any(r.name == record.name for r in self._read().values()):
                raise DuplicateRecordError(f"Plugin record already exists: {record.name}")

            stored = PluginRecord(record.name, record.version, _new_identity())
            doc = self._load()
            if self.SECTION not in doc:
                doc[self.SECTION] = {}
            doc[self.SECTION][stored.identity] = {
                "name": stored.name,
                "version": stored.version,
            }
            self._write(doc)
            return stored

    async def delete(self, identity: str) -> None:
        with self._lock:
            doc = self._load()
            section = doc.get(self.SECTION, {})
            if identity not in section:
                raise RecordNotFoundError(identity)
            del section[identity]
            self._write(doc)

    def _write(self, doc) -> None:
        try:
            write_toml(self.path, doc)
        except TOMLError as e:
            raise StoreError(f"Failed to write plugin records: {e}") from e
