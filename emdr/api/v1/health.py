"""Health check endpoint."""

from fastapi import APIRouter

from emdr.services.protocol_store import now_ms

router = APIRouter()


@router.get("")
async def health() -> dict:
    """Liveness probe."""
    return {"status": "ok", "timestamp": now_ms()}
