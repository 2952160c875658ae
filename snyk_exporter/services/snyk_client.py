"""Snyk API client: organizations, projects and reporting issues over authenticated HTTP."""

from __future__ import annotations

import asyncio
import json
import logging
from typing import Any, Literal, TypeVar

import httpx
from pydantic import BaseModel, ValidationError

from snyk_exporter.schemas.snyk import (
    REPORTED_SEVERITIES,
    Finding,
    IssuesResponse,
    Organization,
    OrganizationsResponse,
    Project,
    ProjectsResponse,
)

logger = logging.getLogger(__name__)

ModelT = TypeVar("ModelT", bound=BaseModel)

TransportErrorKind = Literal["timeout", "connection", "status", "request"]

# Response bodies are truncated in error messages.
MAX_ERROR_BODY_CHARS = 500


class ConfigError(Exception):
    """Raised when configuration cannot work against the API (e.g. org filter matches nothing)."""

    def __init__(self, message: str) -> None:
        self.message = message
        super().__init__(message)


class TransportError(Exception):
    """Raised when a request times out, the connection breaks, or the API answers non-2xx."""

    def __init__(
        self,
        message: str,
        kind: TransportErrorKind,
        status_code: int | None = None,
        body: str | None = None,
    ) -> None:
        self.message = message
        self.kind = kind
        self.status_code = status_code
        self.body = body
        super().__init__(message)

    @property
    def interrupted(self) -> bool:
        """True for timeouts and unexpected connection termination."""
        return self.kind in ("timeout", "connection")


class DecodeError(Exception):
    """Raised when a response body is not JSON or not the expected structure."""

    def __init__(self, message: str, cause: Exception | None = None) -> None:
        self.message = message
        self.cause = cause
        super().__init__(message)


def filter_organizations(
    organizations: list[Organization], organization_ids: list[str]
) -> list[Organization]:
    """Keep organizations whose ID is in organization_ids, in API order."""
    wanted = set(organization_ids)
    return [org for org in organizations if org.id in wanted]


class SnykClient:
    """
    Thin async client for the Snyk v1 API.

    One instance wraps one httpx.AsyncClient; use it as an async context manager
    or call aclose(). Every call is a single round trip (issues may take several
    pages) bounded by the configured timeout. The client never retries.
    """

    def __init__(
        self,
        base_url: str,
        token: str,
        timeout: float,
        page_size: int = 1000,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self.base_url = base_url.rstrip("/")
        self.page_size = page_size
        self.timeout = timeout
        self._http = httpx.AsyncClient(
            headers={
                "Authorization": f"token {token}",
                "Accept": "application/json",
            },
            timeout=httpx.Timeout(timeout),
            transport=transport,
        )

    async def __aenter__(self) -> SnykClient:
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        await self._http.aclose()

    async def list_organizations(
        self, organization_ids: list[str] | None = None
    ) -> list[Organization]:
        """
        Return organizations visible to the token.

        With a non-empty organization_ids, only those organizations are returned.
        Raises ConfigError when the filter matches none of them.
        """
        response = await self._request("GET", "/orgs")
        organizations = _decode(response, OrganizationsResponse).orgs
        if organization_ids:
            organizations = filter_organizations(organizations, organization_ids)
            if not organizations:
                raise ConfigError(
                    f"no organizations match the filter: '{','.join(organization_ids)}'"
                )
        return organizations

    async def list_projects(self, organization_id: str) -> list[Project]:
        response = await self._request("GET", f"/org/{organization_id}/projects")
        return _decode(response, ProjectsResponse).projects

    async def list_findings(self, organization_id: str, project_id: str) -> list[Finding]:
        """
        Return the latest issues for one project, following reporting pagination.

        Pages are requested until the collected issues reach the reported total or
        a page comes back empty.
        """
        payload: dict[str, Any] = {
            "filters": {
                "orgs": [organization_id],
                "severities": list(REPORTED_SEVERITIES),
                "projects": [project_id],
            }
        }
        findings: list[Finding] = []
        page = 1
        while True:
            params = {
                "page": page,
                "perPage": self.page_size,
                "sortBy": "issueTitle",
                "order": "asc",
            }
            response = await self._request(
                "POST", "/reporting/issues/latest", params=params, payload=payload
            )
            body = _decode(response, IssuesResponse)
            findings.extend(issue.to_finding(project_id) for issue in body.issues)
            if not body.issues or len(findings) >= body.total:
                break
            page += 1
        logger.debug(
            "Fetched %d issues in %d page(s) for project %s",
            len(findings),
            page,
            project_id,
            extra={"organization_id": organization_id, "project_id": project_id},
        )
        return findings

    async def _request(
        self,
        method: str,
        path: str,
        params: dict[str, Any] | None = None,
        payload: dict[str, Any] | None = None,
    ) -> httpx.Response:
        url = f"{self.base_url}{path}"
        try:
            # httpx applies the timeout per phase; wait_for bounds the whole call.
            response = await asyncio.wait_for(
                self._http.request(method, url, params=params, json=payload),
                timeout=self.timeout,
            )
        except (asyncio.TimeoutError, httpx.TimeoutException) as e:
            raise TransportError(
                f"{method} {path} timed out", kind="timeout"
            ) from e
        except (
            httpx.ConnectError,
            httpx.ReadError,
            httpx.WriteError,
            httpx.RemoteProtocolError,
        ) as e:
            raise TransportError(
                f"{method} {path} connection failed: {e}", kind="connection"
            ) from e
        except httpx.HTTPError as e:
            raise TransportError(
                f"{method} {path} request failed: {e}", kind="request"
            ) from e

        if not response.is_success:
            body = response.text[:MAX_ERROR_BODY_CHARS] if response.text else ""
            logger.debug(
                "Failed request: %s %s -> %s",
                method,
                response.request.url,
                response.status_code,
            )
            raise TransportError(
                f"request not OK: {response.status_code} {response.reason_phrase}: body: {body}",
                kind="status",
                status_code=response.status_code,
                body=body,
            )
        return response


def _decode(response: httpx.Response, model: type[ModelT]) -> ModelT:
    try:
        data = response.json()
    except (json.JSONDecodeError, UnicodeDecodeError) as e:
        raise DecodeError(
            f"response from {response.request.url.path} is not valid JSON", cause=e
        ) from e
    try:
        return model.model_validate(data)
    except ValidationError as e:
        raise DecodeError(
            f"response from {response.request.url.path} does not match {model.__name__}: "
            f"{e.error_count()} error(s)",
            cause=e,
        ) from e
