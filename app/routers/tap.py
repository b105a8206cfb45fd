"""
Tap Router
Public endpoints hit by a scanned NFC chip or QR code.

A successful tap answers with a 302 to the resolved destination.  Unknown
and inactive cards get a JSON error; cards without a profile go to the
generic landing page.
"""
import logging

from fastapi import APIRouter, Depends, Request, status
from fastapi.responses import JSONResponse, RedirectResponse

from redirect_engine.core.signals import client_ip
from redirect_engine.enums import TapOutcome, TapSource
from redirect_engine.io.schema import RawRequestContext
from redirect_engine.processor import TapResult

from ..context import ServiceContext
from ..dependencies import get_context

logger = logging.getLogger(__name__)

NO_STORE = {"Cache-Control": "no-store"}

_ERROR_STATUS = {
    TapOutcome.CARD_NOT_FOUND: status.HTTP_404_NOT_FOUND,
    TapOutcome.CARD_NOT_ACTIVATED: status.HTTP_400_BAD_REQUEST,
    TapOutcome.NO_DEFAULT_URL: status.HTTP_500_INTERNAL_SERVER_ERROR,
}


# =============================================================================
# Helpers
# =============================================================================

def raw_context(request: Request, source: TapSource, trust_proxy: bool) -> RawRequestContext:
    """Capture IP, headers and arrival time of a scan request."""
    headers = {k.lower(): v for k, v in request.headers.items()}
    peer = request.client.host if request.client else None
    return RawRequestContext(
        ip=client_ip(peer, headers, trust_proxy=trust_proxy),
        headers=headers,
        source=source,
    )


def tap_response(result: TapResult, landing_url: str):
    if result.outcome == TapOutcome.REDIRECT:
        return RedirectResponse(
            result.destination_url,
            status_code=status.HTTP_302_FOUND,
            headers=NO_STORE,
        )
    if result.outcome == TapOutcome.NO_PROFILE_CONFIGURED:
        return RedirectResponse(landing_url, status_code=status.HTTP_302_FOUND, headers=NO_STORE)
    return JSONResponse(
        status_code=_ERROR_STATUS[result.outcome],
        content={"success": False, "error": result.error_code, "card_uid": result.card_uid},
    )


async def _handle(card_uid: str, request: Request, ctx: ServiceContext, source: TapSource):
    raw = raw_context(request, source, ctx.settings.TRUST_PROXY_HEADERS)
    result = await ctx.processor.process_tap(card_uid, raw)
    return tap_response(result, ctx.settings.LANDING_URL)


# =============================================================================
# Router
# =============================================================================

router = APIRouter(tags=["Tap"])


@router.get("/tap/{card_uid}", summary="Resolve an NFC tap to its destination")
async def tap_card(card_uid: str, request: Request, ctx: ServiceContext = Depends(get_context)):
    return await _handle(card_uid, request, ctx, TapSource.NFC)


@router.get("/qr/{card_uid}", summary="Resolve a QR scan to its destination")
async def scan_qr(card_uid: str, request: Request, ctx: ServiceContext = Depends(get_context)):
    return await _handle(card_uid, request, ctx, TapSource.QR)
