from __future__ import annotations

from fastapi import APIRouter, Request

from ..buildinfo import uptime_seconds

router = APIRouter(tags=["health"])


@router.get("/health")
def health(request: Request):
    # Liveness only: no storage access.
    return {
        "ok": True,
        "version": request.app.state.version,
        "uptimeSeconds": uptime_seconds(),
    }


@router.get("/healthz", include_in_schema=False)
def healthz():
    return {"ok": True}
