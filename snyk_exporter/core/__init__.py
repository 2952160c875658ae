"""Core exporter configuration and lifecycle coordination."""

from snyk_exporter.core.config import Settings
from snyk_exporter.core.lifecycle import Lifecycle

__all__ = ["Settings", "Lifecycle"]
