"""Published metrics store: the latest snapshot of aggregated results, swapped atomically."""

import logging
import threading
import time
from collections.abc import Iterable, Iterator
from contextlib import contextmanager
from dataclasses import dataclass

from snyk_exporter.schemas.metrics import ProjectResult

logger = logging.getLogger(__name__)


class ReadWriteLock:
    """Many concurrent readers or one writer; waiting writers block new readers."""

    def __init__(self) -> None:
        self._cond = threading.Condition(threading.Lock())
        self._readers = 0
        self._writing = False
        self._writers_waiting = 0

    @contextmanager
    def read(self) -> Iterator[None]:
        with self._cond:
            while self._writing or self._writers_waiting:
                self._cond.wait()
            self._readers += 1
        try:
            yield
        finally:
            with self._cond:
                self._readers -= 1
                if self._readers == 0:
                    self._cond.notify_all()

    @contextmanager
    def write(self) -> Iterator[None]:
        with self._cond:
            self._writers_waiting += 1
            while self._writing or self._readers:
                self._cond.wait()
            self._writers_waiting -= 1
            self._writing = True
        try:
            yield
        finally:
            with self._cond:
                self._writing = False
                self._cond.notify_all()


@dataclass(frozen=True)
class Snapshot:
    """Complete set of project results from one finished poll cycle."""

    results: tuple[ProjectResult, ...] = ()
    published_at: float | None = None

    @property
    def row_count(self) -> int:
        return sum(len(r.rows) for r in self.results)


class MetricsStore:
    """
    Holds the snapshot served to scrapes.

    publish() replaces the snapshot wholesale; read() returns the snapshot as a
    whole, so a reader never sees rows from two different cycles. The store is
    never cleared: failed cycles simply do not publish.
    """

    def __init__(self) -> None:
        self._snapshot = Snapshot()
        self._ready = False
        self._lock = ReadWriteLock()

    def publish(self, results: Iterable[ProjectResult]) -> Snapshot:
        # Built outside the lock; only the swap is exclusive.
        snapshot = Snapshot(results=tuple(results), published_at=time.time())
        with self._lock.write():
            self._snapshot = snapshot
            self._ready = True
        logger.debug(
            "Published snapshot with %d project result(s), %d row(s)",
            len(snapshot.results),
            snapshot.row_count,
        )
        return snapshot

    def read(self) -> Snapshot:
        with self._lock.read():
            return self._snapshot

    @property
    def ready(self) -> bool:
        """True once any snapshot has been published; never reverts."""
        with self._lock.read():
            return self._ready
