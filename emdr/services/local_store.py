"""Protocol store on top of a plain key-value backend.

Records live under ``emdr_protocol_<id>``; the summary index is a single
JSON array under ``emdr_protocols_list`` that is rewritten on every
mutation. The read-modify-write of the index runs under one lock per
store, so the index is last-writer-wins for the whole collection.
"""

import asyncio
import json
from pathlib import Path
from typing import Any, Protocol
from urllib.parse import quote

from loguru import logger
from pydantic import ValidationError

from emdr.core.exceptions import InvalidProtocolTypeError, StaleIndexError, StorageError
from emdr.schemas.protocol import (
    ProtocolListItem,
    ProtocolVariant,
    dump_protocol,
    parse_protocol,
)
from emdr.services.protocol_store import parse_import_record, stamp

RECORD_KEY_PREFIX = "emdr_protocol_"
INDEX_KEY = "emdr_protocols_list"


class IKeyValueStore(Protocol):
    """String key-value backend."""

    async def put(self, key: str, value: str) -> None:
        """Store a value, replacing any previous one."""
        ...

    async def get(self, key: str) -> str | None:
        """Get a value or None."""
        ...

    async def remove(self, key: str) -> None:
        """Remove a key. Missing keys are ignored."""
        ...


class MemoryKeyValueStore:
    """In-memory backend, mostly for tests and ephemeral sessions."""

    def __init__(self) -> None:
        self.data: dict[str, str] = {}

    async def put(self, key: str, value: str) -> None:
        self.data[key] = value

    async def get(self, key: str) -> str | None:
        return self.data.get(key)

    async def remove(self, key: str) -> None:
        self.data.pop(key, None)


class FileKeyValueStore:
    """One file per key inside a directory."""

    def __init__(self, folder: str | Path):
        self.folder = Path(folder)

    def _path(self, key: str) -> Path:
        return self.folder / f"{quote(key, safe='')}.json"

    async def put(self, key: str, value: str) -> None:
        try:
            self.folder.mkdir(parents=True, exist_ok=True)
            tmp = self._path(key).with_suffix(".tmp")
            tmp.write_text(value, encoding="utf-8")
            tmp.replace(self._path(key))
        except OSError as e:
            raise StorageError(f"Could not write {key}: {e}") from e

    async def get(self, key: str) -> str | None:
        path = self._path(key)
        try:
            return path.read_text(encoding="utf-8")
        except FileNotFoundError:
            return None
        except OSError as e:
            raise StorageError(f"Could not read {key}: {e}") from e

    async def remove(self, key: str) -> None:
        try:
            self._path(key).unlink(missing_ok=True)
        except OSError as e:
            raise StorageError(f"Could not remove {key}: {e}") from e


class LocalProtocolService:
    """Protocol store persisting into an ``IKeyValueStore``."""

    def __init__(self, kv: IKeyValueStore):
        self.kv = kv
        self._lock = asyncio.Lock()

    @staticmethod
    def record_key(protocol_id: str) -> str:
        return f"{RECORD_KEY_PREFIX}{protocol_id}"

    async def _read_index(self) -> list[ProtocolListItem]:
        raw = await self.kv.get(INDEX_KEY)
        if not raw:
            return []
        try:
            return [ProtocolListItem.model_validate(item) for item in json.loads(raw)]
        except (json.JSONDecodeError, ValidationError, TypeError) as e:
            raise StorageError(f"Protocol index is corrupt: {e}") from e

    async def _write_index(self, items: list[ProtocolListItem]) -> None:
        payload = [item.model_dump(mode="json", by_alias=True) for item in items]
        try:
            await self.kv.put(INDEX_KEY, json.dumps(payload, ensure_ascii=False))
        except StorageError as e:
            logger.error(f"Protocol index update failed: {e}")
            raise StaleIndexError(
                "Protocol saved but the list could not be updated"
            ) from e

    async def save(self, protocol: ProtocolVariant) -> ProtocolVariant:
        """Write the record, then replace its entry in the index."""
        async with self._lock:
            previous = await self.load(protocol.id) if protocol.id else None
            stamped = stamp(
                protocol,
                previous_created_at=previous.created_at if previous else None,
                previous_modified=previous.last_modified if previous else None,
            )
            await self.kv.put(
                self.record_key(stamped.id),
                json.dumps(dump_protocol(stamped), ensure_ascii=False),
            )

            index = [item for item in await self._read_index() if item.id != stamped.id]
            index.append(ProtocolListItem.from_protocol(stamped))
            await self._write_index(index)
            return stamped

    async def load(self, protocol_id: str) -> ProtocolVariant | None:
        raw = await self.kv.get(self.record_key(protocol_id))
        if raw is None:
            return None
        try:
            return parse_protocol(json.loads(raw))
        except (json.JSONDecodeError, InvalidProtocolTypeError, ValidationError) as e:
            raise StorageError(f"Stored protocol {protocol_id} is unreadable") from e

    async def delete(self, protocol_id: str) -> bool:
        async with self._lock:
            existed = await self.kv.get(self.record_key(protocol_id)) is not None
            index = await self._read_index()
            remaining = [item for item in index if item.id != protocol_id]
            if not existed and len(remaining) == len(index):
                return False
            await self.kv.remove(self.record_key(protocol_id))
            await self._write_index(remaining)
            return True

    async def import_many(self, records: list[dict[str, Any]]) -> int:
        count = 0
        for raw in records:
            protocol = parse_import_record(raw)
            if protocol is None:
                continue
            await self.save(protocol)
            count += 1
        logger.info(f"Imported {count} of {len(records)} protocols")
        return count

    async def export_all(self) -> list[ProtocolVariant]:
        protocols = []
        for item in await self.list():
            protocol = await self.load(item.id)
            if protocol is not None:
                protocols.append(protocol)
        return protocols

    async def list(self) -> list[ProtocolListItem]:
        """Summaries from the index, most recently modified first."""
        index = await self._read_index()
        return sorted(index, key=lambda item: (-item.last_modified, item.id))
