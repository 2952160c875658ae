"""Recurring poll loop: validate organizations once, poll immediately, then every interval."""

import asyncio
import logging

from snyk_exporter.schemas.snyk import Organization
from snyk_exporter.services.poller import CycleAbortedError, CycleOutcome, Poller
from snyk_exporter.services.snyk_client import SnykClient

logger = logging.getLogger(__name__)


async def resolve_organizations(
    client: SnykClient, organization_ids: list[str]
) -> list[Organization]:
    """
    Fetch organizations and apply the allow-list before polling starts.

    Raises ConfigError when the allow-list matches nothing; transport and decode
    errors are also raised since the exporter cannot start without this list.
    """
    organizations = await client.list_organizations(organization_ids)
    logger.info(
        "Running Snyk API scraper for organizations: %s",
        ", ".join(org.name for org in organizations),
    )
    return organizations


async def run_polling(poller: Poller, interval: float) -> None:
    """
    Run a cycle right away, then one every interval seconds until the stop event is set.

    Aborted cycles are logged and retried on the next tick. Any other exception
    from a cycle propagates. Returns normally when stopped.
    """
    stop_event = poller.stop_event
    loop = asyncio.get_running_loop()
    next_run = loop.time()
    logger.info("Snyk API scraper starting")
    try:
        while not stop_event.is_set():
            try:
                outcome = await poller.run_cycle()
            except CycleAbortedError as e:
                logger.error("Poll cycle aborted: %s", e.message)
            else:
                if outcome is CycleOutcome.CANCELLED:
                    break
            # Fixed period; a cycle that overran its slot is followed immediately.
            next_run = max(next_run + interval, loop.time())
            try:
                await asyncio.wait_for(stop_event.wait(), timeout=next_run - loop.time())
            except asyncio.TimeoutError:
                pass
    finally:
        logger.info("Snyk API scraper stopped")
