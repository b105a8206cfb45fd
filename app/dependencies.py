"""FastAPI dependency helpers."""

from __future__ import annotations

from fastapi import Request

from .context import ServiceContext


def get_context(request: Request) -> ServiceContext:
    return request.app.state.ctx  # type: ignore[attr-defined]
