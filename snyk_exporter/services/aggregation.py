"""Deduplicate findings by ID and group them into counted rows by classification attributes."""

from collections import Counter
from collections.abc import Iterable

from snyk_exporter.schemas.metrics import AggregateRow, AggregationKey
from snyk_exporter.schemas.snyk import Finding


def aggregation_key(finding: Finding) -> AggregationKey:
    """Composite key a finding is counted under; missing issue type is the empty string."""
    return (
        finding.severity,
        finding.title,
        finding.issue_type or "",
        finding.ignored,
        finding.upgradeable,
        finding.patchable,
    )


def dedupe_findings(findings: Iterable[Finding]) -> list[Finding]:
    """
    Collapse findings sharing an ID into one.

    The API reports a vulnerability once per dependency path that introduces it.
    When duplicates disagree on attributes, the last one in input order wins.
    """
    deduped: dict[str, Finding] = {}
    for finding in findings:
        deduped[finding.id] = finding
    return list(deduped.values())


def aggregate(findings: Iterable[Finding]) -> list[AggregateRow]:
    """
    Group deduplicated findings into one row per aggregation key with its count.

    Row order is not meaningful; compare results as sets of (key, count).
    """
    counts: Counter[AggregationKey] = Counter(
        aggregation_key(f) for f in dedupe_findings(findings)
    )
    return [
        AggregateRow(
            severity=severity,
            title=title,
            issue_type=issue_type,
            ignored=ignored,
            upgradeable=upgradeable,
            patchable=patchable,
            count=count,
        )
        for (severity, title, issue_type, ignored, upgradeable, patchable), count in counts.items()
    ]
