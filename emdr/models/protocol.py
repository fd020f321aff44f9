"""Protocol model storing EMDR session protocols."""

import json
from typing import Any

from sqlalchemy import BigInteger, ForeignKey, Index, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from emdr.core.exceptions import StorageError
from emdr.db.base import Base


class ProtocolRecord(Base):
    """Protocol database model.

    Metadata lives in indexed columns so the summary list can be served
    without loading bodies. Type-specific sections are kept as an
    open-ended JSON document in ``data``.
    """

    __tablename__ = "protocols"

    owner_id: Mapped[str] = mapped_column(
        String(36),
        ForeignKey("users.id", ondelete="CASCADE"),
        primary_key=True,
    )
    id: Mapped[str] = mapped_column(String(64), primary_key=True)

    chiffre: Mapped[str] = mapped_column(String(255), index=True)
    datum: Mapped[str] = mapped_column(String(32))
    protokollnummer: Mapped[str] = mapped_column(String(255))
    protocol_type: Mapped[str] = mapped_column(String(32), index=True)

    # Unix timestamps in ms
    created_at: Mapped[int] = mapped_column(BigInteger)
    last_modified: Mapped[int] = mapped_column(BigInteger)

    # Type-specific sections (stored as JSON string)
    data: Mapped[str | None] = mapped_column(Text, nullable=True)

    __table_args__ = (
        Index("ix_protocols_owner_last_modified", "owner_id", "last_modified"),
    )

    def get_data(self) -> dict[str, Any]:
        """Deserialize the type-specific sections."""
        if not self.data:
            return {}
        try:
            return json.loads(self.data)
        except json.JSONDecodeError as e:
            raise StorageError(f"Corrupt protocol data for {self.id}") from e

    def set_data(self, data: dict[str, Any]) -> None:
        """Serialize the type-specific sections to JSON."""
        self.data = json.dumps(data, ensure_ascii=False) if data else None
