"""Prometheus exporter for Snyk vulnerabilities."""

__version__ = "0.1.0"
