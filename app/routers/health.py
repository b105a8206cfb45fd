"""Health endpoint."""

from fastapi import APIRouter, Depends
from pydantic import BaseModel

from ..dependencies import get_context

router = APIRouter(tags=["Health"])


class HealthResponse(BaseModel):
    """Health check response."""
    status: str
    service: str = "tapredirect-api"
    version: str
    store_ok: bool
    dispatcher_running: bool
    queued_events: int
    dropped_events: int


@router.get("/health", response_model=HealthResponse)
async def health_check(ctx=Depends(get_context)) -> HealthResponse:
    store_ok = False
    try:
        store_ok = ctx.store.check_connection()
    except Exception:
        store_ok = False

    dispatcher = ctx.dispatcher
    return HealthResponse(
        status="healthy" if (store_ok and dispatcher.running) else "degraded",
        version=ctx.settings.API_VERSION,
        store_ok=store_ok,
        dispatcher_running=dispatcher.running,
        queued_events=dispatcher.queue.qsize(),
        dropped_events=dispatcher.dropped,
    )
