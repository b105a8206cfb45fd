"""
Tap Redirect API - Main Application
FastAPI service that turns card taps into redirects to owner-configured destinations.
"""
import logging
from typing import Optional

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from app.config import Settings, settings as default_settings
from app.lifecycle import build_lifespan
from app.routers import health, resolve, tap

_log = logging.getLogger(__name__)


# =============================================================================
# FastAPI Application
# =============================================================================

def create_app(settings: Optional[Settings] = None) -> FastAPI:
    settings = settings or default_settings

    app = FastAPI(
        title=settings.API_TITLE,
        description="Redirect resolution for NFC/QR cards: tap → rules → destination",
        version=settings.API_VERSION,
        docs_url="/docs",
        redoc_url="/redoc",
        lifespan=build_lifespan(settings),
    )

    @app.exception_handler(RequestValidationError)
    async def validation_exception_handler(request: Request, exc: RequestValidationError):
        """Return 422 with structured error details."""
        body = await request.body()
        _log.warning(
            "422 on %s %s  body[:200]=%s  errors=%s",
            request.method, request.url.path, body[:200], exc.errors()[:3],
        )
        return JSONResponse(status_code=422, content={"detail": jsonable_errors(exc)})

    @app.get("/")
    async def root():
        """Root endpoint"""
        return {
            "message": "Tap Redirect API",
            "docs": "/docs",
            "health": "/health",
        }

    # =========================================================================
    # Register Routers
    # =========================================================================

    app.include_router(health.router)
    app.include_router(tap.router)
    app.include_router(resolve.router, prefix="/resolve", tags=["resolve"])

    return app


def jsonable_errors(exc: RequestValidationError) -> list:
    """Validation errors without the raw exception objects pydantic attaches."""
    return [
        {k: v for k, v in err.items() if k != "ctx"}
        for err in exc.errors()
    ]


logging.basicConfig(
    level=getattr(logging, default_settings.LOG_LEVEL.upper(), logging.INFO),
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)

app = create_app()


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(
        "app.main:app",
        host=default_settings.API_HOST,
        port=default_settings.API_PORT,
        reload=False,
    )
