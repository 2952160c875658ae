"""
Exporter entrypoint. Run from project root:
  python -m snyk_exporter --snyk.api-token TOKEN [--snyk.organization ORG_ID ...]
Every flag can also be given as an environment variable (see core/config.py).
"""

import argparse
import asyncio
import contextlib
import logging
import signal
import sys
from collections.abc import Awaitable, Iterator
from typing import Any

import uvicorn
from dotenv import load_dotenv
from pydantic import ValidationError

from snyk_exporter import __version__
from snyk_exporter.core.config import Settings
from snyk_exporter.core.lifecycle import Lifecycle
from snyk_exporter.main import create_app
from snyk_exporter.services.collector import build_registry
from snyk_exporter.services.poller import Poller
from snyk_exporter.services.scheduler import resolve_organizations, run_polling
from snyk_exporter.services.snyk_client import (
    ConfigError,
    DecodeError,
    SnykClient,
    TransportError,
)
from snyk_exporter.services.store import MetricsStore

logger = logging.getLogger("snyk_exporter")

# argparse dest -> Settings field
_FLAG_FIELDS = {
    "api_url": "SNYK_API_URL",
    "api_token": "SNYK_API_TOKEN",
    "interval": "SNYK_INTERVAL_SEC",
    "timeout": "SNYK_REQUEST_TIMEOUT_SEC",
    "page_size": "SNYK_PAGE_SIZE",
    "transport_error_policy": "TRANSPORT_ERROR_POLICY",
    "listen_address": "LISTEN_ADDRESS",
    "log_level": "LOG_LEVEL",
}


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="snyk_exporter",
        description=(
            "Snyk exporter for Prometheus. Provide your Snyk API token and the "
            "organization(s) to scrape to expose Prometheus metrics."
        ),
    )
    parser.add_argument("--snyk.api-url", dest="api_url", help="Snyk API URL")
    parser.add_argument("--snyk.api-token", dest="api_token", help="Snyk API token")
    parser.add_argument(
        "-i",
        "--snyk.interval",
        dest="interval",
        type=int,
        help="Polling interval for requesting data from Snyk API in seconds",
    )
    parser.add_argument(
        "--snyk.organization",
        dest="organizations",
        action="append",
        default=[],
        help="Snyk organization ID to scrape projects from (can be repeated for multiple organizations)",
    )
    parser.add_argument(
        "--snyk.timeout",
        dest="timeout",
        type=float,
        help="Timeout for requests against Snyk API in seconds",
    )
    parser.add_argument(
        "--snyk.page-size",
        dest="page_size",
        type=int,
        help="Issues requested per page from the reporting API",
    )
    parser.add_argument(
        "--snyk.transport-error-policy",
        dest="transport_error_policy",
        choices=["skip", "abort_cycle"],
        help="Skip failing projects (default) or end the cycle on timeouts",
    )
    parser.add_argument(
        "--web.listen-address",
        dest="listen_address",
        help="Address on which to expose metrics.",
    )
    parser.add_argument(
        "--log.level",
        dest="log_level",
        choices=["debug", "info", "warning", "error"],
        help="Only log messages with the given severity or above.",
    )
    parser.add_argument("--version", action="version", version=__version__)
    return parser


def load_settings(args: argparse.Namespace) -> Settings:
    """Settings from the environment, with CLI flags taking precedence."""
    overrides: dict[str, Any] = {}
    for dest, field_name in _FLAG_FIELDS.items():
        value = getattr(args, dest, None)
        if value is not None:
            overrides[field_name] = value
    if args.organizations:
        overrides["SNYK_ORGANIZATIONS"] = ",".join(args.organizations)
    return Settings(**overrides)


class ExporterServer(uvicorn.Server):
    """uvicorn server that leaves signal handling to the exporter's Lifecycle."""

    def install_signal_handlers(self) -> None:
        pass

    @contextlib.contextmanager
    def capture_signals(self) -> Iterator[None]:
        yield


async def _supervise(name: str, component: Awaitable[None], lifecycle: Lifecycle) -> None:
    """Await a component and report its failure, or unexpected return, to the lifecycle."""
    try:
        await component
    except (Exception, SystemExit) as e:
        lifecycle.fail(name, e)
        return
    if not lifecycle.stopping:
        lifecycle.fail(name, RuntimeError(f"{name} stopped"))


async def serve(settings: Settings) -> int:
    """Validate organizations, then run the poller and HTTP listener until stopped."""
    lifecycle = Lifecycle()
    loop = asyncio.get_running_loop()
    for sig in (signal.SIGINT, signal.SIGTERM):
        loop.add_signal_handler(
            sig, lifecycle.request_stop, f"received os signal '{sig.name}'"
        )

    if settings.organization_ids:
        logger.info(
            "Starting Snyk exporter for organization '%s'", settings.SNYK_ORGANIZATIONS
        )
    else:
        logger.info("Starting Snyk exporter for all organization for token")

    store = MetricsStore()
    registry, metrics = build_registry(store)

    async with SnykClient(
        settings.SNYK_API_URL,
        settings.SNYK_API_TOKEN.get_secret_value(),
        timeout=settings.SNYK_REQUEST_TIMEOUT_SEC,
        page_size=settings.SNYK_PAGE_SIZE,
    ) as client:
        try:
            await resolve_organizations(client, settings.organization_ids)
        except ConfigError as e:
            logger.error("Invalid configuration: %s", e.message)
            return 1
        except (TransportError, DecodeError) as e:
            logger.error("Failed to list organizations: %s", e.message)
            return 1

        poller = Poller(
            client,
            store,
            lifecycle.stop_event,
            organization_ids=settings.organization_ids,
            transport_error_policy=settings.TRANSPORT_ERROR_POLICY,
            metrics=metrics,
        )
        server = ExporterServer(
            uvicorn.Config(
                create_app(store, registry),
                host=settings.listen_host,
                port=settings.listen_port,
                log_config=None,
                access_log=False,
            )
        )
        logger.info("Listening on %s", settings.LISTEN_ADDRESS)
        tasks = [
            asyncio.create_task(
                _supervise(
                    "snyk api scraper",
                    run_polling(poller, settings.SNYK_INTERVAL_SEC),
                    lifecycle,
                )
            ),
            asyncio.create_task(_supervise("http listener", server.serve(), lifecycle)),
        ]
        await lifecycle.stop_event.wait()
        server.should_exit = True
        await asyncio.gather(*tasks)

    return lifecycle.exit_code


def main(argv: list[str] | None = None) -> int:
    load_dotenv()
    args = build_parser().parse_args(argv)
    try:
        settings = load_settings(args)
    except ValidationError as e:
        print(f"Invalid configuration:\n{e}", file=sys.stderr)
        return 1

    logging.basicConfig(
        level=settings.LOG_LEVEL.upper(),
        format="%(asctime)s %(levelname)s %(name)s %(message)s",
        datefmt="%Y-%m-%dT%H:%M:%SZ",
    )

    exit_code = asyncio.run(serve(settings))
    if exit_code != 0:
        logger.error("Snyk exporter exited with exit %d", exit_code)
    else:
        logger.info("Snyk exporter exited with exit 0")
    return exit_code


if __name__ == "__main__":
    sys.exit(main())
