"""Request dependencies resolving shared objects from application state."""

from fastapi import Request
from prometheus_client import CollectorRegistry

from snyk_exporter.services.store import MetricsStore


def get_store(request: Request) -> MetricsStore:
    return request.app.state.store


def get_registry(request: Request) -> CollectorRegistry:
    return request.app.state.registry
