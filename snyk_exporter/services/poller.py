"""One poll cycle: sweep organizations and projects, aggregate findings, publish once."""

import asyncio
import enum
import logging
import time
from typing import Literal

from snyk_exporter.schemas.metrics import ProjectResult
from snyk_exporter.schemas.snyk import Organization, Project
from snyk_exporter.services.aggregation import aggregate
from snyk_exporter.services.collector import ExporterMetrics
from snyk_exporter.services.snyk_client import (
    ConfigError,
    DecodeError,
    SnykClient,
    TransportError,
)
from snyk_exporter.services.store import MetricsStore

logger = logging.getLogger(__name__)

TransportErrorPolicy = Literal["skip", "abort_cycle"]


class CycleOutcome(str, enum.Enum):
    PUBLISHED = "published"
    CANCELLED = "cancelled"
    ABORTED = "aborted"


class CycleAbortedError(Exception):
    """Raised when a cycle cannot proceed at all (organization list unavailable)."""

    def __init__(self, message: str, cause: Exception | None = None) -> None:
        self.message = message
        self.cause = cause
        super().__init__(message)


class _AbortCycle(Exception):
    """Internal: a legacy-policy interruption ended the sweep early."""


class Poller:
    """
    Drives poll cycles against the Snyk API and publishes results to the store.

    Results are collected privately during a cycle and published in one swap at
    the end. A cancelled or aborted cycle publishes nothing, leaving the previous
    snapshot visible.
    """

    def __init__(
        self,
        client: SnykClient,
        store: MetricsStore,
        stop_event: asyncio.Event,
        organization_ids: list[str] | None = None,
        transport_error_policy: TransportErrorPolicy = "skip",
        metrics: ExporterMetrics | None = None,
    ) -> None:
        self.client = client
        self.store = store
        self.stop_event = stop_event
        self.organization_ids = list(organization_ids or [])
        self.transport_error_policy = transport_error_policy
        self.metrics = metrics

    @property
    def cancelled(self) -> bool:
        return self.stop_event.is_set()

    async def run_cycle(self) -> CycleOutcome:
        """
        Run one full sweep.

        Raises CycleAbortedError when the organization list cannot be fetched or
        the allow-list matches nothing this cycle. Per-organization and per-project
        failures are logged and skipped.
        """
        start = time.perf_counter()
        try:
            outcome = await self._sweep()
        except CycleAbortedError:
            self._record(CycleOutcome.ABORTED)
            raise
        self._record(outcome)
        logger.info(
            "Poll cycle finished: %s",
            outcome.value,
            extra={"outcome": outcome.value, "elapsed_seconds": time.perf_counter() - start},
        )
        return outcome

    async def _sweep(self) -> CycleOutcome:
        organizations = await self._fetch_organizations()

        results: list[ProjectResult] = []
        for organization in organizations:
            if self.cancelled:
                logger.info("Poll cycle cancelled; discarding collected results")
                return CycleOutcome.CANCELLED
            logger.info("Collecting for organization '%s'", organization.name)
            try:
                org_results = await self._collect_organization(organization)
            except _AbortCycle:
                return CycleOutcome.ABORTED
            if org_results is None:
                logger.info("Poll cycle cancelled; discarding collected results")
                return CycleOutcome.CANCELLED
            logger.info(
                "Recorded %d results for organization '%s'",
                len(org_results),
                organization.name,
            )
            results.extend(org_results)

        if self.cancelled:
            logger.info("Poll cycle cancelled; discarding collected results")
            return CycleOutcome.CANCELLED

        logger.info("Exposing %d results as metrics", len(results))
        self.store.publish(results)
        return CycleOutcome.PUBLISHED

    async def _fetch_organizations(self) -> list[Organization]:
        try:
            return await self.client.list_organizations(self.organization_ids)
        except ConfigError as e:
            raise CycleAbortedError(e.message, cause=e) from e
        except (TransportError, DecodeError) as e:
            raise CycleAbortedError(
                f"failed to list organizations: {e.message}", cause=e
            ) from e

    async def _collect_organization(
        self, organization: Organization
    ) -> list[ProjectResult] | None:
        """Collect results for one organization; None means the cycle was cancelled."""
        try:
            projects = await self.client.list_projects(organization.id)
        except (TransportError, DecodeError) as e:
            self._check_abort(e, organization)
            logger.error(
                "Collection failed for organization '%s': %s",
                organization.name,
                e.message,
                extra={"organization_id": organization.id, "organization_name": organization.name},
            )
            return []

        results: list[ProjectResult] = []
        for project in projects:
            if self.cancelled:
                return None
            if not project.id:
                logger.warning(
                    "Skipping project '%s' in organization '%s': no project ID",
                    project.name,
                    organization.name,
                    extra={"organization_id": organization.id, "project_name": project.name},
                )
                continue
            result = await self._collect_project(organization, project)
            if result is not None:
                results.append(result)
        return results

    async def _collect_project(
        self, organization: Organization, project: Project
    ) -> ProjectResult | None:
        start = time.perf_counter()
        try:
            findings = await self.client.list_findings(organization.id, project.id)
        except (TransportError, DecodeError) as e:
            self._check_abort(e, organization, project)
            logger.error(
                "Failed to get issues for organization %s (%s) and project %s (%s): %s",
                organization.name,
                organization.id,
                project.name,
                project.id,
                e.message,
                extra={
                    "organization_id": organization.id,
                    "organization_name": organization.name,
                    "project_id": project.id,
                    "project_name": project.name,
                },
            )
            return None
        rows = aggregate(findings)
        logger.debug(
            "Collected data in %.3fs for %s %s",
            time.perf_counter() - start,
            project.id,
            project.name,
        )
        return ProjectResult(
            organization=organization.name,
            project=project.name,
            monitored=project.is_monitored,
            rows=tuple(rows),
        )

    def _check_abort(
        self,
        error: Exception,
        organization: Organization,
        project: Project | None = None,
    ) -> None:
        if self.transport_error_policy != "abort_cycle":
            return
        if not isinstance(error, TransportError) or not error.interrupted:
            return
        logger.warning(
            "Ending poll cycle early after %s: %s",
            error.kind,
            error.message,
            extra={
                "organization_id": organization.id,
                "project_id": project.id if project else None,
            },
        )
        raise _AbortCycle() from error

    def _record(self, outcome: CycleOutcome) -> None:
        if self.metrics is not None:
            self.metrics.record_cycle(outcome.value)
