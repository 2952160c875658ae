"""Pydantic schemas for aggregated results published as metrics."""

from pydantic import BaseModel, ConfigDict, Field

# (severity, title, issue_type, ignored, upgradeable, patchable)
AggregationKey = tuple[str, str, str, bool, bool, bool]


class AggregateRow(BaseModel):
    """Count of deduplicated findings within one project sharing classification attributes."""

    model_config = ConfigDict(frozen=True)

    severity: str
    title: str
    issue_type: str = ""
    ignored: bool = False
    upgradeable: bool = False
    patchable: bool = False
    count: int = Field(..., ge=1)

    @property
    def key(self) -> AggregationKey:
        return (
            self.severity,
            self.title,
            self.issue_type,
            self.ignored,
            self.upgradeable,
            self.patchable,
        )


class ProjectResult(BaseModel):
    """Aggregated rows for one project, labelled with its organization and project names."""

    model_config = ConfigDict(frozen=True)

    organization: str
    project: str
    monitored: bool = False
    rows: tuple[AggregateRow, ...] = ()
