"""Unit tests for snyk_exporter.services.aggregation: dedupe by ID and grouping into counted rows."""

import random
import unittest

from snyk_exporter.schemas.snyk import Finding
from snyk_exporter.services.aggregation import aggregate, aggregation_key, dedupe_findings


def _finding(
    id: str,
    severity: str = "high",
    title: str = "DDoS",
    **kwargs: object,
) -> Finding:
    """Build a minimal Finding for tests."""
    return Finding(id=id, severity=severity, title=title, **kwargs)


def _as_set(rows: list) -> set:
    return {(row.key, row.count) for row in rows}


class TestAggregateScenarios(unittest.TestCase):
    """aggregate groups by (severity, title, issue_type, ignored, upgradeable, patchable)."""

    def test_empty_input(self) -> None:
        self.assertEqual(aggregate([]), [])

    def test_single_finding(self) -> None:
        rows = aggregate([_finding("iss-1")])
        self.assertEqual(len(rows), 1)
        self.assertEqual(rows[0].severity, "high")
        self.assertEqual(rows[0].title, "DDoS")
        self.assertEqual(rows[0].count, 1)

    def test_different_severity_same_title(self) -> None:
        rows = aggregate([_finding("a", "high"), _finding("b", "low")])
        self.assertEqual(
            _as_set(rows),
            {
                (("high", "DDoS", "", False, False, False), 1),
                (("low", "DDoS", "", False, False, False), 1),
            },
        )

    def test_same_severity_and_title_counts_two(self) -> None:
        rows = aggregate([_finding("a"), _finding("b")])
        self.assertEqual(len(rows), 1)
        self.assertEqual(rows[0].count, 2)

    def test_ignored_flag_is_part_of_key(self) -> None:
        rows = aggregate([_finding("a", ignored=False), _finding("b", ignored=True)])
        self.assertEqual(
            _as_set(rows),
            {
                (("high", "DDoS", "", False, False, False), 1),
                (("high", "DDoS", "", True, False, False), 1),
            },
        )

    def test_same_severity_different_title(self) -> None:
        rows = aggregate([_finding("a", title="DDoS"), _finding("b", title="ReDoS")])
        self.assertEqual(len(rows), 2)
        self.assertEqual({r.title for r in rows}, {"DDoS", "ReDoS"})

    def test_different_title_some_ignored(self) -> None:
        rows = aggregate(
            [_finding("a", title="DDoS"), _finding("b", title="ReDoS", ignored=True)]
        )
        self.assertEqual(
            _as_set(rows),
            {
                (("high", "DDoS", "", False, False, False), 1),
                (("high", "ReDoS", "", True, False, False), 1),
            },
        )

    def test_fix_flags_and_issue_type_split_rows(self) -> None:
        rows = aggregate(
            [
                _finding("a", upgradeable=True),
                _finding("b", patchable=True),
                _finding("c", issue_type="license"),
                _finding("d", issue_type="vuln"),
                _finding("e", issue_type="vuln"),
            ]
        )
        self.assertEqual(
            _as_set(rows),
            {
                (("high", "DDoS", "", False, True, False), 1),
                (("high", "DDoS", "", False, False, True), 1),
                (("high", "DDoS", "license", False, False, False), 1),
                (("high", "DDoS", "vuln", False, False, False), 2),
            },
        )


class TestDeduplication(unittest.TestCase):
    """Findings sharing an ID collapse to one before grouping."""

    def test_duplicate_ids_count_once(self) -> None:
        findings = [_finding("SNYK-JS-1"), _finding("SNYK-JS-1"), _finding("SNYK-JS-2")]
        rows = aggregate(findings)
        self.assertEqual(len(rows), 1)
        self.assertEqual(rows[0].count, 2)

    def test_dedupe_keeps_one_per_id(self) -> None:
        findings = [_finding("x"), _finding("y"), _finding("x")]
        deduped = dedupe_findings(findings)
        self.assertEqual(sorted(f.id for f in deduped), ["x", "y"])

    def test_dedupe_last_seen_wins(self) -> None:
        findings = [_finding("x", severity="low"), _finding("x", severity="critical")]
        deduped = dedupe_findings(findings)
        self.assertEqual(len(deduped), 1)
        self.assertEqual(deduped[0].severity, "critical")


class TestOrderIndependence(unittest.TestCase):
    """Result set does not depend on input order."""

    def test_shuffled_input_gives_same_rows(self) -> None:
        findings = [
            _finding("a", "high", "DDoS"),
            _finding("b", "high", "DDoS"),
            _finding("c", "low", "DDoS", ignored=True),
            _finding("d", "medium", "ReDoS", upgradeable=True),
            _finding("a", "high", "DDoS"),
            _finding("e", "medium", "ReDoS", upgradeable=True),
        ]
        expected = _as_set(aggregate(findings))
        rng = random.Random(7)
        for _ in range(10):
            shuffled = list(findings)
            rng.shuffle(shuffled)
            self.assertEqual(_as_set(aggregate(shuffled)), expected)


class TestAggregationKey(unittest.TestCase):
    def test_missing_issue_type_is_empty_string(self) -> None:
        key = aggregation_key(_finding("a"))
        self.assertEqual(key, ("high", "DDoS", "", False, False, False))
