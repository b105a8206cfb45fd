"""
Resolve Router
Preview redirect resolution for a profile without touching any card.

Used by the profile editor to show owners where a tap would go for a given
time, location and device.  Nothing is recorded.
"""
import logging
from typing import Optional

from fastapi import APIRouter, status
from fastapi.responses import JSONResponse
from pydantic import BaseModel, Field

from redirect_engine.enums import Strategy
from redirect_engine.errors import NoDefaultUrlError
from redirect_engine.io.schema import Profile, TapContext
from redirect_engine.policy.resolver import resolve_redirect

logger = logging.getLogger(__name__)


# =============================================================================
# Request/Response Models
# =============================================================================

class ResolveRequest(BaseModel):
    """Profile snapshot plus the tap context to evaluate it against."""
    profile: Profile
    context: Optional[TapContext] = Field(
        None,
        description="Tap context; defaults to now, unknown location, no signals",
    )


class ResolveResponse(BaseModel):
    url: str
    strategy: Strategy
    matched_rule: Optional[str] = None
    fallback: bool


# =============================================================================
# Router
# =============================================================================

router = APIRouter()


@router.post(
    "",
    response_model=ResolveResponse,
    status_code=status.HTTP_200_OK,
    summary="Resolve a profile against a tap context",
    responses={422: {"description": "Profile has no default URL"}},
)
async def resolve_endpoint(request: ResolveRequest):
    ctx = request.context or TapContext()
    try:
        resolution = resolve_redirect(request.profile, ctx)
    except NoDefaultUrlError as e:
        return JSONResponse(
            status_code=422,
            content={"error": e.code, "profile_id": e.profile_id},
        )

    return ResolveResponse(
        url=resolution.url,
        strategy=resolution.strategy,
        matched_rule=resolution.matched_rule,
        fallback=resolution.fallback,
    )
