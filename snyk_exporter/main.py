"""FastAPI application factory. No business logic; only wiring."""

from fastapi import FastAPI
from prometheus_client import CollectorRegistry

from snyk_exporter import __version__
from snyk_exporter.api import router
from snyk_exporter.services.collector import build_registry
from snyk_exporter.services.store import MetricsStore


def create_app(
    store: MetricsStore,
    registry: CollectorRegistry | None = None,
) -> FastAPI:
    """Build the HTTP app serving metrics and probes for the given store."""
    app = FastAPI(
        title="Snyk Exporter",
        version=__version__,
        docs_url=None,
        redoc_url=None,
    )
    if registry is None:
        registry, _ = build_registry(store)
    app.state.store = store
    app.state.registry = registry
    app.include_router(router)

    @app.get("/")
    def root() -> dict[str, str]:
        """Root route; minimal payload for discovery."""
        return {"message": "Snyk Exporter", "metrics": "/metrics"}

    return app
