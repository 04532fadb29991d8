"""Health and readiness endpoints.

  /health (liveness): is the process up?  Always 200; `status` says
    "degraded" when the database is configured but not answering, so an
    orchestrator does not restart us over a database blip.

  /ready (readiness): can this instance take traffic?  503 while a
    configured database is unreachable; every progress write needs it.
    Without DATABASE_URL the in-memory stores are always ready.
"""

from __future__ import annotations

from fastapi import APIRouter, Response, status

from app.db import engine as db

router = APIRouter(tags=["health"])


@router.get("/health")
async def health() -> dict:
    checks: dict[str, str] = {}
    overall = "ok"

    if db.engine is None:
        checks["database"] = "not_configured"
    elif await db.ping():
        checks["database"] = "ok"
    else:
        checks["database"] = "degraded"
        overall = "degraded"

    return {"status": overall, "checks": checks}


@router.get("/ready")
async def ready() -> Response:
    if db.engine is not None and not await db.ping():
        return Response(status_code=status.HTTP_503_SERVICE_UNAVAILABLE)
    return Response(status_code=status.HTTP_200_OK)
