"""Pydantic schemas for Snyk API responses and the flattened finding used for aggregation."""

from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator

# Severities requested from the reporting endpoint.
REPORTED_SEVERITIES: tuple[str, ...] = ("critical", "high", "medium", "low")


def _null_to_empty(v: Any) -> Any:
    """The API sends null for some string fields; treat it as empty."""
    return "" if v is None else v


class OrganizationGroup(BaseModel):
    """Parent group an organization belongs to, when the account uses groups."""

    model_config = ConfigDict(extra="ignore", frozen=True)

    id: str = ""
    name: str = ""

    coerce_null = field_validator("id", "name", mode="before")(_null_to_empty)


class Organization(BaseModel):
    """One Snyk organization as returned by GET /orgs."""

    model_config = ConfigDict(extra="ignore", frozen=True)

    id: str = Field(..., min_length=1, description="Opaque organization ID.")
    name: str = Field(default="", description="Display name; used as metric label.")
    group: OrganizationGroup | None = None

    coerce_null = field_validator("name", mode="before")(_null_to_empty)


class OrganizationsResponse(BaseModel):
    model_config = ConfigDict(extra="ignore")

    orgs: list[Organization] = Field(default_factory=list)


class Project(BaseModel):
    """One project belonging to an organization (GET /org/{id}/projects)."""

    model_config = ConfigDict(extra="ignore", frozen=True, populate_by_name=True)

    id: str = ""
    name: str = ""
    is_monitored: bool = Field(default=False, alias="isMonitored")

    coerce_null = field_validator("id", "name", mode="before")(_null_to_empty)


class ProjectsResponse(BaseModel):
    model_config = ConfigDict(extra="ignore")

    projects: list[Project] = Field(default_factory=list)


class IssueData(BaseModel):
    model_config = ConfigDict(extra="ignore")

    id: str = ""
    title: str = ""
    severity: str = ""

    coerce_null = field_validator("id", "title", "severity", mode="before")(_null_to_empty)


class FixInfo(BaseModel):
    model_config = ConfigDict(extra="ignore", populate_by_name=True)

    is_upgradable: bool = Field(default=False, alias="isUpgradable")
    is_patchable: bool = Field(default=False, alias="isPatchable")


class IssueProject(BaseModel):
    model_config = ConfigDict(extra="ignore")

    id: str = ""

    coerce_null = field_validator("id", mode="before")(_null_to_empty)


class Issue(BaseModel):
    """Raw issue from POST /reporting/issues/latest."""

    model_config = ConfigDict(extra="ignore", populate_by_name=True)

    id: str = ""
    issue_type: str | None = Field(default=None, alias="issueType")
    issue_data: IssueData = Field(default_factory=IssueData, alias="issueData")
    is_ignored: bool = Field(default=False, alias="isIgnored")
    fix_info: FixInfo = Field(default_factory=FixInfo, alias="fixInfo")
    project: IssueProject | None = None

    coerce_null = field_validator("id", mode="before")(_null_to_empty)

    @field_validator("issue_data", "fix_info", mode="before")
    @classmethod
    def null_object_to_defaults(cls, v: Any) -> Any:
        return {} if v is None else v

    def to_finding(self, project_id: str) -> "Finding":
        """Flatten into the fields that identify and classify a finding."""
        return Finding(
            id=self.id or self.issue_data.id,
            title=self.issue_data.title,
            severity=self.issue_data.severity,
            issue_type=self.issue_type or "",
            ignored=self.is_ignored,
            upgradeable=self.fix_info.is_upgradable,
            patchable=self.fix_info.is_patchable,
            project_id=(self.project.id if self.project and self.project.id else project_id),
        )


class IssuesResponse(BaseModel):
    """One page of reporting issues; total counts issues across all pages."""

    model_config = ConfigDict(extra="ignore")

    issues: list[Issue] = Field(default_factory=list)
    total: int = 0


class Finding(BaseModel):
    """A reported vulnerability or policy issue attached to a project."""

    model_config = ConfigDict(frozen=True)

    id: str
    title: str = ""
    severity: str = ""
    issue_type: str = ""
    ignored: bool = False
    upgradeable: bool = False
    patchable: bool = False
    project_id: str = ""
