"""Protocol service backed by the SQL record store."""

from typing import Any

from loguru import logger
from pydantic import ValidationError
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from emdr.core.exceptions import InvalidProtocolTypeError, StorageError
from emdr.models.protocol import ProtocolRecord
from emdr.schemas.protocol import (
    ProtocolListItem,
    ProtocolType,
    ProtocolVariant,
    parse_protocol,
    split_protocol,
)
from emdr.services.base_service import BaseService
from emdr.services.protocol_store import parse_import_record, stamp


class ProtocolService(BaseService[ProtocolRecord]):
    """Protocols of one therapist, keyed by (owner_id, id)."""

    def __init__(self, db: AsyncSession, owner_id: str):
        super().__init__(db, ProtocolRecord)
        self.owner_id = owner_id

    async def get_record(self, protocol_id: str) -> ProtocolRecord | None:
        """Get the raw row of a protocol owned by this therapist."""
        return await self.get_by_id((self.owner_id, protocol_id))

    async def exists(self, protocol_id: str) -> bool:
        """Check whether a protocol id is already taken."""
        return await self.get_record(protocol_id) is not None

    async def save(self, protocol: ProtocolVariant) -> ProtocolVariant:
        """Insert or update a protocol and return the stamped copy."""
        record = await self.get_record(protocol.id) if protocol.id else None
        stamped = stamp(
            protocol,
            previous_created_at=record.created_at if record else None,
            previous_modified=record.last_modified if record else None,
        )
        _, sections = split_protocol(stamped)

        if record is None:
            record = ProtocolRecord(owner_id=self.owner_id, id=stamped.id)
            self.db.add(record)

        record.chiffre = stamped.chiffre
        record.datum = stamped.datum
        record.protokollnummer = stamped.protokollnummer
        record.protocol_type = ProtocolType.parse(stamped.protocol_type).value
        record.created_at = stamped.created_at
        record.last_modified = stamped.last_modified
        record.set_data(sections)

        await self.commit()
        logger.info(f"Saved protocol {stamped.id} ({record.protocol_type})")
        return stamped

    async def load(self, protocol_id: str) -> ProtocolVariant | None:
        """Load a full protocol."""
        record = await self.get_record(protocol_id)
        if not record:
            return None
        return self._to_protocol(record)

    async def delete(self, protocol_id: str) -> bool:
        """Delete a protocol. Deleting a missing id is a no-op."""
        record = await self.get_record(protocol_id)
        if not record:
            return False
        await super().delete(record)
        logger.info(f"Deleted protocol {protocol_id}")
        return True

    async def import_many(self, records: list[dict[str, Any]]) -> int:
        """Upsert every valid record by id. Invalid records are skipped."""
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
        """Load every protocol of this therapist."""
        result = await self.db.execute(self._owned().order_by(
            ProtocolRecord.last_modified.desc()
        ))
        return [self._to_protocol(record) for record in result.scalars().all()]

    def _owned(self):
        return select(ProtocolRecord).where(ProtocolRecord.owner_id == self.owner_id)

    def _to_protocol(self, record: ProtocolRecord) -> ProtocolVariant:
        """Rebuild the full protocol from columns plus the JSON sections."""
        payload = record.get_data()
        payload.update({
            "id": record.id,
            "chiffre": record.chiffre,
            "datum": record.datum,
            "protokollnummer": record.protokollnummer,
            "protocolType": record.protocol_type,
            "createdAt": record.created_at,
            "lastModified": record.last_modified,
        })
        try:
            return parse_protocol(payload)
        except (InvalidProtocolTypeError, ValidationError) as e:
            logger.error(f"Stored protocol {record.id} is unreadable: {e}")
            raise StorageError(f"Stored protocol {record.id} is unreadable") from e

    def _to_list_item(self, record: ProtocolRecord) -> ProtocolListItem:
        """Project the summary from indexed columns."""
        return ProtocolListItem(
            id=record.id,
            chiffre=record.chiffre,
            datum=record.datum,
            protokollnummer=record.protokollnummer,
            protocol_type=ProtocolType.parse(record.protocol_type),
            last_modified=record.last_modified,
        )

    async def list(self) -> list[ProtocolListItem]:
        """List summaries, most recently modified first."""
        result = await self.db.execute(
            self._owned().order_by(
                ProtocolRecord.last_modified.desc(), ProtocolRecord.id
            )
        )
        return [self._to_list_item(record) for record in result.scalars().all()]
