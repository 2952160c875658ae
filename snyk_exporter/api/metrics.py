"""Prometheus exposition endpoint."""

from typing import Annotated

from fastapi import APIRouter, Depends, Request, Response
from prometheus_client import CollectorRegistry
from prometheus_client.exposition import choose_encoder

from snyk_exporter.api.deps import get_registry

router = APIRouter()


@router.get("/metrics")
def get_metrics(
    request: Request,
    registry: Annotated[CollectorRegistry, Depends(get_registry)],
) -> Response:
    """Render the current snapshot in the format the scraper asked for."""
    encoder, content_type = choose_encoder(request.headers.get("accept"))
    return Response(content=encoder(registry), media_type=content_type)
