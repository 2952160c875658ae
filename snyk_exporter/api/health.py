"""Liveness and readiness endpoints."""

from typing import Annotated

from fastapi import APIRouter, Depends
from fastapi.responses import PlainTextResponse

from snyk_exporter.api.deps import get_store
from snyk_exporter.services.store import MetricsStore

router = APIRouter()


@router.get("/healthz", response_class=PlainTextResponse)
def get_healthz() -> str:
    """Liveness: succeeds whenever the process is serving."""
    return "healthy"


@router.get("/ready", response_class=PlainTextResponse)
def get_ready(store: Annotated[MetricsStore, Depends(get_store)]) -> PlainTextResponse:
    """
    Readiness: 200 once the first snapshot has been published, 503 before.
    Used by orchestrators to hold traffic until metrics exist.
    """
    ready = store.ready
    return PlainTextResponse(
        "true" if ready else "false",
        status_code=200 if ready else 503,
    )
