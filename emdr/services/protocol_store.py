"""Protocol store interface shared by the database and local backends."""

import time
from typing import Any, Protocol

from loguru import logger
from pydantic import ValidationError

from emdr.core.exceptions import InvalidProtocolTypeError
from emdr.schemas.protocol import (
    ProtocolListItem,
    ProtocolVariant,
    new_id,
    parse_protocol,
)


class IProtocolStore(Protocol):
    """Persistence facade for full protocols and their summaries."""

    async def save(self, protocol: ProtocolVariant) -> ProtocolVariant:
        """Persist a protocol, stamping id/createdAt/lastModified."""
        ...

    async def load(self, protocol_id: str) -> ProtocolVariant | None:
        """Load a full protocol or None if it does not exist."""
        ...

    async def delete(self, protocol_id: str) -> bool:
        """Delete a protocol. Returns whether anything was removed."""
        ...

    async def import_many(self, records: list[dict[str, Any]]) -> int:
        """Import raw records, skipping invalid ones. Returns the count."""
        ...

    async def export_all(self) -> list[ProtocolVariant]:
        """Return every full protocol."""
        ...

    async def list(self) -> list[ProtocolListItem]:
        """List summaries ordered by lastModified descending."""
        ...


def now_ms() -> int:
    """Current time as Unix milliseconds."""
    return int(time.time() * 1000)


def stamp(
    protocol: ProtocolVariant,
    previous_created_at: int | None = None,
    previous_modified: int | None = None,
) -> ProtocolVariant:
    """Return a copy with id, createdAt and lastModified set for saving.

    ``createdAt`` of an already stored record always wins. ``lastModified``
    is strictly greater than any earlier stamp of the same record.
    """
    now = now_ms()
    floor = max(protocol.last_modified or 0, previous_modified or 0)
    last_modified = max(now, floor + 1) if floor else now
    created_at = previous_created_at or protocol.created_at or now

    return protocol.model_copy(
        update={
            "id": protocol.id or new_id(),
            "created_at": created_at,
            "last_modified": last_modified,
        }
    )


def parse_import_record(record: Any) -> ProtocolVariant | None:
    """Parse one import record, or None when it has to be skipped."""
    if not isinstance(record, dict):
        logger.warning("Skipping import record that is not an object")
        return None
    if not all(record.get(key) for key in ("id", "chiffre", "datum")):
        logger.warning("Skipping import record without id, chiffre or datum")
        return None
    try:
        return parse_protocol(record)
    except (InvalidProtocolTypeError, ValidationError) as e:
        logger.warning(f"Skipping invalid import record {record.get('id')}: {e}")
        return None
