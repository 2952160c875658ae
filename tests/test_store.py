"""Unit tests for snyk_exporter.services.store and the Prometheus snapshot collector."""

import threading
import unittest

from prometheus_client import generate_latest

from snyk_exporter.schemas.metrics import AggregateRow, ProjectResult
from snyk_exporter.services.collector import VULNERABILITY_METRIC, build_registry
from snyk_exporter.services.store import MetricsStore, ReadWriteLock


def _result(project: str, *rows: AggregateRow, organization: str = "Alpha", monitored: bool = False) -> ProjectResult:
    return ProjectResult(
        organization=organization, project=project, monitored=monitored, rows=rows
    )


def _row(severity: str = "high", title: str = "DDoS", count: int = 1, **kwargs: object) -> AggregateRow:
    return AggregateRow(severity=severity, title=title, count=count, **kwargs)


class TestMetricsStore(unittest.TestCase):
    """publish replaces the snapshot wholesale; ready flips once."""

    def test_starts_empty_and_not_ready(self) -> None:
        store = MetricsStore()
        self.assertFalse(store.ready)
        snapshot = store.read()
        self.assertEqual(snapshot.results, ())
        self.assertIsNone(snapshot.published_at)

    def test_empty_publish_makes_ready(self) -> None:
        store = MetricsStore()
        store.publish([])
        self.assertTrue(store.ready)
        self.assertIsNotNone(store.read().published_at)

    def test_publish_replaces_previous_snapshot(self) -> None:
        store = MetricsStore()
        store.publish([_result("api", _row()), _result("web", _row())])
        store.publish([_result("cli", _row(count=3))])
        snapshot = store.read()
        self.assertEqual([r.project for r in snapshot.results], ["cli"])
        self.assertEqual(snapshot.row_count, 1)

    def test_ready_never_reverts(self) -> None:
        store = MetricsStore()
        store.publish([_result("api", _row())])
        store.publish([])
        self.assertTrue(store.ready)

    def test_read_returns_consistent_snapshot_during_publishes(self) -> None:
        store = MetricsStore()
        generations = [[_result(f"p{g}-{i}", _row()) for i in range(20)] for g in range(50)]
        errors: list[str] = []

        def reader() -> None:
            for _ in range(200):
                projects = {r.project.split("-")[0] for r in store.read().results}
                if len(projects) > 1:
                    errors.append(f"mixed snapshot: {projects}")

        threads = [threading.Thread(target=reader) for _ in range(4)]
        for t in threads:
            t.start()
        for generation in generations:
            store.publish(generation)
        for t in threads:
            t.join()
        self.assertEqual(errors, [])


class TestReadWriteLock(unittest.TestCase):
    def test_readers_share_lock(self) -> None:
        lock = ReadWriteLock()
        with lock.read():
            with lock.read():
                pass

    def test_writer_waits_for_reader(self) -> None:
        lock = ReadWriteLock()
        order: list[str] = []
        reader_in = threading.Event()
        release_reader = threading.Event()

        def reader() -> None:
            with lock.read():
                reader_in.set()
                release_reader.wait(5)
                order.append("reader done")

        def writer() -> None:
            with lock.write():
                order.append("writer")

        r = threading.Thread(target=reader)
        r.start()
        reader_in.wait(5)
        w = threading.Thread(target=writer)
        w.start()
        release_reader.set()
        r.join(5)
        w.join(5)
        self.assertEqual(order, ["reader done", "writer"])


class TestSnapshotCollector(unittest.TestCase):
    """The collector renders the published snapshot as one gauge family."""

    def test_renders_labels_and_values(self) -> None:
        store = MetricsStore()
        registry, _ = build_registry(store)
        store.publish(
            [
                _result(
                    "api",
                    _row("high", "DDoS", 2, issue_type="vuln", upgradeable=True),
                    _row("low", "ReDoS", 1, ignored=True),
                    monitored=True,
                ),
            ]
        )
        value = registry.get_sample_value(
            VULNERABILITY_METRIC,
            {
                "organization": "Alpha",
                "project": "api",
                "issue_type": "vuln",
                "issue_title": "DDoS",
                "severity": "high",
                "ignored": "false",
                "upgradeable": "true",
                "patchable": "false",
                "monitored": "true",
            },
        )
        self.assertEqual(value, 2.0)
        value = registry.get_sample_value(
            VULNERABILITY_METRIC,
            {
                "organization": "Alpha",
                "project": "api",
                "issue_type": "",
                "issue_title": "ReDoS",
                "severity": "low",
                "ignored": "true",
                "upgradeable": "false",
                "patchable": "false",
                "monitored": "true",
            },
        )
        self.assertEqual(value, 1.0)

    def test_series_from_previous_snapshot_disappear(self) -> None:
        store = MetricsStore()
        registry, _ = build_registry(store)
        store.publish([_result("api", _row("high", "DDoS", 1))])
        store.publish([_result("api", _row("high", "DDoS", 1, ignored=True))])
        text = generate_latest(registry).decode()
        self.assertIn('ignored="true"', text)
        self.assertNotIn('ignored="false"', text)

    def test_publish_timestamp_only_after_publish(self) -> None:
        store = MetricsStore()
        registry, _ = build_registry(store)
        self.assertIsNone(
            registry.get_sample_value("snyk_exporter_last_publish_timestamp_seconds")
        )
        store.publish([])
        self.assertIsNotNone(
            registry.get_sample_value("snyk_exporter_last_publish_timestamp_seconds")
        )

    def test_projects_sharing_a_name_render_one_series(self) -> None:
        store = MetricsStore()
        registry, _ = build_registry(store)
        store.publish(
            [
                _result("repo:package.json", _row("high", "DDoS", 2)),
                _result("repo:package.json", _row("high", "DDoS", 5)),
            ]
        )
        lines = [
            ln
            for ln in generate_latest(registry).decode().splitlines()
            if ln.startswith(VULNERABILITY_METRIC + "{")
        ]
        self.assertEqual(len(lines), 1)
        # Last published project wins.
        self.assertTrue(lines[0].endswith(" 5.0"))
