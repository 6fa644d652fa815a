from __future__ import annotations

import logging
from urllib.parse import quote

import httpx

from lab.domain.entities import GroupRef, Job, NumericGroupID, Page, PageCursor, Project
from lab.domain.errors import ForgeAPIError
from lab.domain.interfaces import IForgeClient

log = logging.getLogger(__name__)

API_VERSION     = "v4"
REQUEST_TIMEOUT = 30.0
NEXT_PAGE_HEADER = "X-Next-Page"


def api_url(base_url: str) -> str:
    """https://gitlab.example.com -> https://gitlab.example.com/api/v4"""
    return "/".join([base_url.rstrip("/"), "api", API_VERSION])


def _project_selector(project: str | int) -> str:
    if isinstance(project, int):
        return str(project)
    return quote(project.strip("/"), safe="")


class GitLabClient(IForgeClient):
    """
    Concrete implementation of IForgeClient for the GitLab v4 REST API.

    The constructor receives an httpx.AsyncClient (injected) rather than
    creating one internally. This lets callers control the client lifecycle
    and share one connection pool between every crawler and streamer task.
    """

    def __init__(self, base_url: str, token: str, client: httpx.AsyncClient) -> None:
        self._client   = client
        self._api_url  = api_url(base_url)
        self._headers  = {"PRIVATE-TOKEN": token}

    # Anti-Corruption Layer
    @staticmethod
    def _next_page(response: httpx.Response) -> int:
        """GitLab sends an empty X-Next-Page on the last page."""
        value = response.headers.get(NEXT_PAGE_HEADER, "").strip()
        try:
            return int(value) if value else 0
        except ValueError:
            log.debug("Ignoring malformed %s header: %r", NEXT_PAGE_HEADER, value)
            return 0

    @staticmethod
    def _json(response: httpx.Response, path: str):
        """
        Decode a response body. A 200 carrying HTML (maintenance pages,
        proxies) is as much a failed call as a 5xx.
        """
        try:
            return response.json()
        except ValueError as exc:
            raise ForgeAPIError(f"GET {path} returned a non-JSON body: {exc}", url=str(response.url)) from exc

    def _json_list(self, response: httpx.Response, path: str) -> list:
        body = self._json(response, path)
        if not isinstance(body, list):
            raise ForgeAPIError(f"GET {path} returned {type(body).__name__}, expected a list", url=str(response.url))
        return body

    @staticmethod
    def _parse_project(node) -> Project | None:
        try:
            namespace = node.get("namespace") or {}
            return Project(
                id                  = node["id"],
                path_with_namespace = node["path_with_namespace"],
                namespace_kind      = namespace.get("kind"),
            )
        except (AttributeError, KeyError, TypeError) as exc:
            log.debug("Skipping malformed project node %r: %s", node, exc)
            return None

    @staticmethod
    def _parse_group(node) -> GroupRef | None:
        try:
            return NumericGroupID(int(node["id"]))
        except (KeyError, TypeError, ValueError) as exc:
            log.debug("Skipping malformed group node %r: %s", node, exc)
            return None

    @staticmethod
    def _parse_job(node) -> Job:
        try:
            return Job(
                id      = node["id"],
                name    = node["name"],
                status  = node["status"],
                stage   = node.get("stage"),
                web_url = node.get("web_url"),
            )
        except (AttributeError, KeyError, TypeError) as exc:
            raise ForgeAPIError(f"malformed job payload: {exc}") from exc

    async def _get(self, path: str, params: dict | None = None) -> httpx.Response:
        url = f"{self._api_url}/{path}"
        try:
            response = await self._client.get(
                url,
                headers=self._headers,
                params=params,
                timeout=REQUEST_TIMEOUT,
            )
            response.raise_for_status()
        except httpx.HTTPStatusError as exc:
            raise ForgeAPIError(
                f"GET {path} failed: HTTP {exc.response.status_code}",
                status_code=exc.response.status_code,
                url=url,
            ) from exc
        except httpx.RequestError as exc:
            raise ForgeAPIError(f"GET {path} failed: {exc}", url=url) from exc
        return response

    @staticmethod
    def _page_params(cursor: PageCursor) -> dict:
        return {"page": cursor.page, "per_page": cursor.per_page}

    # IForgeClient implementation
    async def list_group_projects(self, group: GroupRef, cursor: PageCursor) -> Page[Project]:
        path = f"groups/{group.selector()}/projects"
        response = await self._get(path, self._page_params(cursor))
        projects = [p for node in self._json_list(response, path) if (p := self._parse_project(node)) is not None]
        return Page(items=projects, next_page=self._next_page(response))

    async def list_descendant_groups(self, group: GroupRef, cursor: PageCursor) -> Page[GroupRef]:
        path = f"groups/{group.selector()}/descendant_groups"
        response = await self._get(path, self._page_params(cursor))
        groups = [g for node in self._json_list(response, path) if (g := self._parse_group(node)) is not None]
        return Page(items=groups, next_page=self._next_page(response))

    async def list_projects(self, cursor: PageCursor, membership: bool = True, simple: bool = True) -> Page[Project]:
        params = self._page_params(cursor)
        params["membership"] = str(membership).lower()
        params["simple"]     = str(simple).lower()
        response = await self._get("projects", params)
        projects = [p for node in self._json_list(response, "projects") if (p := self._parse_project(node)) is not None]
        return Page(items=projects, next_page=self._next_page(response))

    async def get_job(self, project: str | int, job_id: int) -> Job:
        path = f"projects/{_project_selector(project)}/jobs/{job_id}"
        response = await self._get(path)
        return self._parse_job(self._json(response, path))

    async def get_trace(self, project: str | int, job_id: int) -> str:
        response = await self._get(f"projects/{_project_selector(project)}/jobs/{job_id}/trace")
        return response.text

    async def list_pipeline_jobs(self, project: str | int, pipeline_id: int, cursor: PageCursor) -> Page[Job]:
        path = f"projects/{_project_selector(project)}/pipelines/{pipeline_id}/jobs"
        response = await self._get(path, self._page_params(cursor))
        jobs = [self._parse_job(node) for node in self._json_list(response, path)]
        return Page(items=jobs, next_page=self._next_page(response))
