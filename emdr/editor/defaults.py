"""Empty-state constructors for protocol drafts."""

from datetime import date

from emdr.schemas.protocol import ProtocolType, ProtocolVariant, model_for, new_id
from emdr.services.protocol_store import now_ms


def today_iso() -> str:
    """Today's date as YYYY-MM-DD."""
    return date.today().isoformat()


def new_draft(
    protocol_type: ProtocolType | str = ProtocolType.STANDARD,
    *,
    id: str | None = None,
    chiffre: str = "",
    datum: str | None = None,
    protokollnummer: str = "",
    created_at: int | None = None,
    last_modified: int | None = None,
) -> ProtocolVariant:
    """Build a draft of the given type with every section at its default.

    Missing metadata falls back to a fresh id, today's date and the
    current time.
    """
    protocol_type = ProtocolType.parse(protocol_type)
    now = now_ms()
    return model_for(protocol_type)(
        protocol_type=protocol_type.value,
        id=id or new_id(),
        chiffre=chiffre,
        datum=datum or today_iso(),
        protokollnummer=protokollnummer,
        created_at=created_at or now,
        last_modified=last_modified,
    )
