"""
Liveness, readiness and metrics probes.

None of them touch account data or expose configuration.
"""

import logging

from fastapi import APIRouter, Response
from fastapi.responses import JSONResponse
from sqlalchemy.exc import SQLAlchemyError

from sitequota.core.database import missing_tables
from sitequota.core.metrics import METRICS

logger = logging.getLogger("sitequota")

router = APIRouter(tags=["health"])


@router.get("/healthz")
def healthz():
    return {"status": "ok"}


@router.get("/readyz")
def readyz():
    """Ready once the database answers and every quota table exists."""
    try:
        missing = missing_tables()
    except (SQLAlchemyError, RuntimeError) as e:
        logger.error(f"[readyz] database unreachable: {e}")
        return JSONResponse(status_code=503, content={"status": "error", "detail": "database unreachable"})

    if missing:
        detail = f"missing tables: {', '.join(missing)}"
        logger.warning(f"[readyz] {detail}")
        return JSONResponse(status_code=503, content={"status": "error", "detail": detail})
    return {"status": "ok"}


@router.get("/metrics")
def metrics_endpoint():
    return Response(content=METRICS.export_prometheus(), media_type="text/plain; version=0.0.4")
