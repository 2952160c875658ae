"""Prometheus rendering of the published snapshot plus exporter self-metrics."""

from collections.abc import Iterator

from prometheus_client import CollectorRegistry, Counter
from prometheus_client.core import GaugeMetricFamily
from prometheus_client.registry import Collector

from snyk_exporter.services.store import MetricsStore

VULNERABILITY_METRIC = "snyk_vulnerabilities_total"

VULNERABILITY_LABELS = (
    "organization",
    "project",
    "issue_type",
    "issue_title",
    "severity",
    "ignored",
    "upgradeable",
    "patchable",
    "monitored",
)


def _bool_label(value: bool) -> str:
    return "true" if value else "false"


class SnapshotCollector(Collector):
    """Custom collector that renders exactly one store snapshot per scrape."""

    def __init__(self, store: MetricsStore) -> None:
        self.store = store

    def collect(self) -> Iterator[GaugeMetricFamily]:
        snapshot = self.store.read()

        # Projects or organizations sharing a name map to the same label set;
        # the last one wins so every series is emitted once.
        series: dict[tuple[str, ...], float] = {}
        for result in snapshot.results:
            for row in result.rows:
                labels = (
                    result.organization,
                    result.project,
                    row.issue_type,
                    row.title,
                    row.severity,
                    _bool_label(row.ignored),
                    _bool_label(row.upgradeable),
                    _bool_label(row.patchable),
                    _bool_label(result.monitored),
                )
                series[labels] = row.count

        gauge = GaugeMetricFamily(
            VULNERABILITY_METRIC,
            "Gauge of Snyk vulnerabilities",
            labels=VULNERABILITY_LABELS,
        )
        for labels, value in series.items():
            gauge.add_metric(list(labels), value)
        yield gauge

        if snapshot.published_at is not None:
            yield GaugeMetricFamily(
                "snyk_exporter_last_publish_timestamp_seconds",
                "Unix time of the last published snapshot",
                value=snapshot.published_at,
            )


class ExporterMetrics:
    """Counters the poller updates about its own cycles."""

    def __init__(self, registry: CollectorRegistry) -> None:
        self.poll_cycles = Counter(
            "snyk_exporter_poll_cycles",
            "Poll cycles by outcome",
            ["outcome"],
            registry=registry,
        )

    def record_cycle(self, outcome: str) -> None:
        self.poll_cycles.labels(outcome=outcome).inc()


def build_registry(store: MetricsStore) -> tuple[CollectorRegistry, ExporterMetrics]:
    """Create a dedicated registry serving the store snapshot and exporter metrics."""
    registry = CollectorRegistry()
    registry.register(SnapshotCollector(store))
    return registry, ExporterMetrics(registry)
