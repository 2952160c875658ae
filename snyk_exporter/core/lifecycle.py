"""Shutdown coordination between the poller, the HTTP server and signal handling."""

import asyncio
import logging

logger = logging.getLogger(__name__)


class Lifecycle:
    """
    Single coordination point for stopping the exporter.

    Holds the stop event checked by the poller at suspension points and records
    the first fatal error reported by any component. Stop is triggered exactly
    once; later requests and failures are logged and otherwise ignored.
    """

    def __init__(self) -> None:
        self.stop_event = asyncio.Event()
        self.error: BaseException | None = None
        self.reason: str | None = None

    @property
    def stopping(self) -> bool:
        return self.stop_event.is_set()

    def request_stop(self, reason: str) -> None:
        """Stop without an error (signal, normal server exit)."""
        if self.stop_event.is_set():
            logger.debug("Stop already requested; ignoring '%s'", reason)
            return
        logger.info("Stopping exporter: %s", reason)
        self.reason = reason
        self.stop_event.set()

    def fail(self, component: str, error: BaseException) -> None:
        """Record a component failure; the first one decides the exit code."""
        if self.stop_event.is_set():
            logger.warning(
                "Component '%s' failed after stop was requested: %s", component, error
            )
            return
        logger.error("Component '%s' failed: %s", component, error)
        self.error = error
        self.reason = f"{component} failed"
        self.stop_event.set()

    @property
    def exit_code(self) -> int:
        return 1 if self.error is not None else 0
