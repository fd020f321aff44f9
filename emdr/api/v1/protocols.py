"""Protocol API endpoints."""

from typing import Any

from fastapi import APIRouter, Body, HTTPException, Query, Response, status
from fastapi.exceptions import RequestValidationError
from pydantic import ValidationError

from emdr.core.deps import ProtocolStore
from emdr.editor.defaults import new_draft
from emdr.editor.type_switch import switch_type
from emdr.editor.validation import ensure_valid, validate_protocol
from emdr.schemas.protocol import (
    ProtocolListItem,
    ProtocolVariant,
    dump_protocol,
    parse_protocol,
)
from emdr.schemas.requests import (
    DraftCreate,
    ImportRequest,
    ImportResult,
    ProtocolGroupDTO,
    ProtocolStats,
    SwitchTypeRequest,
    SwitchTypeResponse,
    ValidationResponse,
)
from emdr.services.export_service import (
    bulk_export_filename,
    bulk_to_json_bytes,
    export_filename,
    to_json_bytes,
    to_pdf_bytes,
)
from emdr.services.listing import (
    ALL_TYPES,
    count_by_type,
    filter_protocols,
    group_by_chiffre,
)

router = APIRouter()


def parse_body(payload: dict[str, Any]) -> ProtocolVariant:
    """Validate a request body into its protocol variant (422 on failure)."""
    try:
        return parse_protocol(payload)
    except ValidationError as e:
        raise RequestValidationError(e.errors(include_url=False)) from e


def attachment(content: bytes, filename: str, media_type: str) -> Response:
    return Response(
        content=content,
        media_type=media_type,
        headers={"Content-Disposition": f'attachment; filename="{filename}"'},
    )


async def get_or_404(store: ProtocolStore, protocol_id: str) -> ProtocolVariant:
    protocol = await store.load(protocol_id)
    if not protocol:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Protocol not found",
        )
    return protocol


@router.get("", response_model=list[ProtocolListItem])
async def list_protocols(
    store: ProtocolStore,
    search: str | None = None,
    protocol_type: str = Query(ALL_TYPES, alias="type"),
) -> list[ProtocolListItem]:
    """
    List protocol summaries, most recently modified first.

    - **search**: Substring of chiffre or protokollnummer
    - **type**: Protocol type tag or `all`
    """
    return filter_protocols(await store.list(), protocol_type, search)


@router.get("/grouped", response_model=list[ProtocolGroupDTO])
async def list_grouped(
    store: ProtocolStore,
    search: str | None = None,
    protocol_type: str = Query(ALL_TYPES, alias="type"),
) -> list[ProtocolGroupDTO]:
    """List summaries grouped by chiffre."""
    items = filter_protocols(await store.list(), protocol_type, search)
    return [
        ProtocolGroupDTO(chiffre=group.chiffre, protocols=group.protocols)
        for group in group_by_chiffre(items)
    ]


@router.get("/stats", response_model=ProtocolStats)
async def stats(store: ProtocolStore) -> ProtocolStats:
    """Protocol counts per type."""
    items = await store.list()
    return ProtocolStats(total=len(items), by_type=count_by_type(items))


@router.get("/export/json")
async def export_all(store: ProtocolStore) -> Response:
    """Download all protocols as one JSON file."""
    protocols = await store.export_all()
    return attachment(
        bulk_to_json_bytes(protocols), bulk_export_filename(), "application/json"
    )


@router.post("/import", response_model=ImportResult)
async def import_protocols(data: ImportRequest, store: ProtocolStore) -> ImportResult:
    """Import protocols. Records without id, chiffre or datum are skipped."""
    return ImportResult(imported=await store.import_many(data.protocols))


@router.post("/drafts")
async def create_draft(data: DraftCreate) -> dict:
    """Build an unsaved draft of a protocol type with default sections."""
    draft = new_draft(
        data.protocol_type,
        chiffre=data.chiffre,
        datum=data.datum,
        protokollnummer=data.protokollnummer,
    )
    return dump_protocol(draft)


@router.post("/drafts/switch-type", response_model=SwitchTypeResponse)
async def switch_draft_type(data: SwitchTypeRequest) -> SwitchTypeResponse:
    """
    Switch a draft to another protocol type.

    Returns `pending_confirmation` with a prompt when a chosen type would be
    replaced and `confirm` is not set.
    """
    draft = parse_body(data.draft)
    result = switch_type(draft, data.target_type, data.type_selected, data.confirm)
    return SwitchTypeResponse(
        state=result.state.value,
        editor=result.editor.value,
        draft=result.draft,
        prompt=result.prompt,
        message=result.message,
    )


@router.post("/validate", response_model=ValidationResponse)
async def validate(payload: dict[str, Any] = Body(...)) -> ValidationResponse:
    """Validate a draft without saving it."""
    result = validate_protocol(parse_body(payload))
    return ValidationResponse(
        valid=result.is_valid,
        errors=result.errors,
        missing_fields=result.missing_fields,
    )


@router.get("/{protocol_id}")
async def get_protocol(protocol_id: str, store: ProtocolStore) -> dict:
    """Get a full protocol."""
    return dump_protocol(await get_or_404(store, protocol_id))


@router.post("", status_code=status.HTTP_201_CREATED)
async def create_protocol(store: ProtocolStore, payload: dict[str, Any] = Body(...)) -> dict:
    """Create a protocol. A missing id is generated."""
    protocol = parse_body(payload)
    ensure_valid(protocol)

    if protocol.id and await store.load(protocol.id):
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail="Protocol already exists",
        )

    return dump_protocol(await store.save(protocol))


@router.put("/{protocol_id}")
async def update_protocol(
    protocol_id: str,
    store: ProtocolStore,
    payload: dict[str, Any] = Body(...),
) -> dict:
    """Replace a protocol. The stored createdAt is kept."""
    await get_or_404(store, protocol_id)

    protocol = parse_body(payload).model_copy(update={"id": protocol_id})
    ensure_valid(protocol)
    return dump_protocol(await store.save(protocol))


@router.delete("/{protocol_id}")
async def delete_protocol(protocol_id: str, store: ProtocolStore) -> dict:
    """Delete a protocol."""
    if not await store.delete(protocol_id):
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Protocol not found",
        )
    return {"status": "success"}


@router.get("/{protocol_id}/export/json")
async def export_json(protocol_id: str, store: ProtocolStore) -> Response:
    """Download one protocol as JSON."""
    protocol = await get_or_404(store, protocol_id)
    return attachment(
        to_json_bytes(protocol), export_filename(protocol, "json"), "application/json"
    )


@router.get("/{protocol_id}/export/pdf")
async def export_pdf(protocol_id: str, store: ProtocolStore) -> Response:
    """Download one protocol as PDF."""
    protocol = await get_or_404(store, protocol_id)
    return attachment(
        to_pdf_bytes(protocol), export_filename(protocol, "pdf"), "application/pdf"
    )
