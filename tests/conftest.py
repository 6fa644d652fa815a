"""Shared pytest fixtures and in-memory fakes for the lab test suite."""

from __future__ import annotations

from collections import defaultdict

import pytest

from lab.domain.entities import GroupRef, Job, Page, PageCursor, Project
from lab.domain.errors import ForgeAPIError
from lab.domain.interfaces import IForgeClient, ITraceRenderer


def paged(items: list, per_page: int) -> list[list]:
    """Split items into server-sized pages (at least one, possibly empty)."""
    return [items[i:i + per_page] for i in range(0, len(items), per_page)] or [[]]


class FakeForgeClient(IForgeClient):
    """
    Scripted in-memory forge.

    Listings are stored as lists of pages keyed by group selector; a key
    mapped to an exception raises it on the given page number instead.
    Traces and job statuses are consumed one entry per call, repeating the
    last entry once the script runs out.
    """

    def __init__(self) -> None:
        self.group_projects: dict[str, list[list[Project]]] = {}
        self.descendants:    dict[str, list[list[GroupRef]]] = {}
        self.member_projects: list[list[Project]] = [[]]
        self.failures:       dict[tuple[str, str], int] = {}
        self.traces:         dict[int, list[str | Exception]] = {}
        self.statuses:       dict[int, list[str | Exception]] = {}
        self.pipeline_jobs:  list[list[Job]] = []
        self.calls:          dict[str, list] = defaultdict(list)

    def _page(self, kind: str, key: str, pages: list[list], cursor: PageCursor) -> Page:
        self.calls[kind].append((key, cursor.page))
        if self.failures.get((kind, key)) == cursor.page:
            raise ForgeAPIError(f"boom on {kind} {key} page {cursor.page}", status_code=500)
        index = cursor.page - 1
        items = pages[index] if index < len(pages) else []
        next_page = cursor.page + 1 if cursor.page < len(pages) else 0
        return Page(items=list(items), next_page=next_page)

    @staticmethod
    def _next(script: list):
        entry = script.pop(0) if len(script) > 1 else script[0]
        if isinstance(entry, Exception):
            raise entry
        return entry

    async def list_group_projects(self, group: GroupRef, cursor: PageCursor) -> Page[Project]:
        key = group.selector()
        return self._page("projects", key, self.group_projects.get(key, [[]]), cursor)

    async def list_descendant_groups(self, group: GroupRef, cursor: PageCursor) -> Page[GroupRef]:
        key = group.selector()
        return self._page("descendants", key, self.descendants.get(key, [[]]), cursor)

    async def list_projects(self, cursor: PageCursor, membership: bool = True, simple: bool = True) -> Page[Project]:
        self.calls["list_projects_flags"].append((membership, simple))
        return self._page("members", "-", self.member_projects, cursor)

    async def get_job(self, project: str | int, job_id: int) -> Job:
        self.calls["get_job"].append((project, job_id))
        status = self._next(self.statuses[job_id])
        return Job(id=job_id, name=f"job-{job_id}", status=status)

    async def get_trace(self, project: str | int, job_id: int) -> str:
        self.calls["get_trace"].append((project, job_id))
        return self._next(self.traces[job_id])

    async def list_pipeline_jobs(self, project: str | int, pipeline_id: int, cursor: PageCursor) -> Page[Job]:
        """
        Each round (page 1 request) takes the next script entry: a list of
        jobs (one page), a list of pages, or an exception.
        """
        self.calls["list_pipeline_jobs"].append((project, pipeline_id, cursor.page))
        if cursor.page == 1:
            entry = self._next(self.pipeline_jobs)
            self._pipeline_pages = entry if entry and isinstance(entry[0], list) else [entry]
        return self._page("pipeline_jobs", str(pipeline_id), self._pipeline_pages, cursor)


class RecordingRenderer(ITraceRenderer):
    def __init__(self) -> None:
        self.lines: list[tuple[str, str]] = []

    def emit(self, job_name: str, line: str) -> None:
        self.lines.append((job_name, line))

    def for_job(self, job_name: str) -> list[str]:
        return [line for name, line in self.lines if name == job_name]


def project(path: str, pid: int = 1, kind: str = "group") -> Project:
    return Project(id=pid, path_with_namespace=path, namespace_kind=kind)


def trace_of(n: int, start: int = 0) -> str:
    """n newline-terminated lines: "line 0\\nline 1\\n..." """
    return "".join(f"line {i}\n" for i in range(start, start + n))


@pytest.fixture
def forge() -> FakeForgeClient:
    return FakeForgeClient()


@pytest.fixture
def renderer() -> RecordingRenderer:
    return RecordingRenderer()


@pytest.fixture
def no_sleep():
    """Replaces asyncio.sleep in the streamer; records the intervals asked for."""
    slept: list[float] = []

    async def _sleep(seconds: float) -> None:
        slept.append(seconds)

    _sleep.slept = slept
    return _sleep
