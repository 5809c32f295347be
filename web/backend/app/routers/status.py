"""Status router -- liveness probe.

Answers as long as the process serves HTTP. It says nothing about whether a
bundle exists; use the bundle endpoint for readiness.
"""

from __future__ import annotations

from fastapi import APIRouter
from fastapi.responses import PlainTextResponse

router = APIRouter(tags=["meta"])

STATUS_BODY = "i'm good"


@router.get("/status", response_class=PlainTextResponse, summary="Liveness probe")
async def status():
    """Always 200 with a fixed body."""
    return PlainTextResponse(STATUS_BODY)
