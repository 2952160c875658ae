"""Pydantic schemas for Snyk API payloads and published results."""

from snyk_exporter.schemas.metrics import AggregateRow, AggregationKey, ProjectResult
from snyk_exporter.schemas.snyk import (
    REPORTED_SEVERITIES,
    Finding,
    Issue,
    IssuesResponse,
    Organization,
    OrganizationsResponse,
    Project,
    ProjectsResponse,
)

__all__ = [
    "AggregateRow",
    "AggregationKey",
    "ProjectResult",
    "REPORTED_SEVERITIES",
    "Finding",
    "Issue",
    "IssuesResponse",
    "Organization",
    "OrganizationsResponse",
    "Project",
    "ProjectsResponse",
]
