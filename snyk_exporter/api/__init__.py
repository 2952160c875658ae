"""HTTP routes served next to the poller."""

from fastapi import APIRouter

from snyk_exporter.api import health, metrics

router = APIRouter()
router.include_router(health.router, tags=["health"])
router.include_router(metrics.router, tags=["metrics"])
