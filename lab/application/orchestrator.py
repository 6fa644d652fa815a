from __future__ import annotations
import asyncio
import logging
from functools import partial
from lab.domain.entities import CrawlError, CrawlResult, GroupRef, Project, ProjectPath
from lab.domain.interfaces import IForgeClient
from .group_resolver import SubgroupResolver
from .paginator import fetch_all_pages

log = logging.getLogger(__name__)

MAX_CONCURRENT = 15
THROTTLE_SECS  = 50e-6  # 50µs courtesy pause per group worker


class GroupProjectCrawler:
    """
    Coordinates concurrent project discovery using asyncio.

    All dependencies are injected — this class creates NOTHING itself:
      - IForgeClient      → how to talk to the forge (injected)
      - SubgroupResolver  → how to expand a root group (injected)

    One task per group, all started at once; the semaphore caps how many of
    them are talking to the server at the same moment.
    """

    def __init__(self, client: IForgeClient, resolver: SubgroupResolver, max_concurrent: int = MAX_CONCURRENT, throttle: float = THROTTLE_SECS) -> None:
        if max_concurrent < 1:
            raise ValueError("max_concurrent must be at least 1")
        self._client    = client
        self._resolver  = resolver
        self._semaphore = asyncio.Semaphore(max_concurrent)
        self._throttle  = throttle
        self._max_concurrent = max_concurrent

    async def _expand_roots(self, roots: list[GroupRef], errors: list[CrawlError]) -> list[GroupRef]:
        """Each root followed by its descendants. Roots are resolved one after another."""
        all_groups: list[GroupRef] = []
        for root in roots:
            all_groups.append(root)
            async with self._semaphore:
                traversal = await self._resolver.resolve(root)
            all_groups.extend(traversal.items)
            if traversal.error:
                errors.append(traversal.error)
        return all_groups

    async def _crawl_group(self, group: GroupRef, out: list[ProjectPath], errors: list[CrawlError], lock: asyncio.Lock) -> int:
        """
        Fetch all pages of one group's direct projects.
        Returns how many project paths it contributed.
        """
        async with self._semaphore:
            traversal = await fetch_all_pages(
                partial(self._client.list_group_projects, group),
                resource=f"projects of group {group}",
            )

        paths = [p.path_with_namespace for p in traversal.items]
        async with lock:
            out.extend(paths)
            if traversal.error:
                errors.append(traversal.error)

        await asyncio.sleep(self._throttle)
        return len(paths)

    async def crawl(self, roots: list[GroupRef]) -> CrawlResult:
        """
        Every project path in the given root groups and all of their subgroups.

        A project is listed once per group it lives in; nothing is deduplicated.
        Groups whose listing failed are reported in CrawlResult.errors and
        simply contribute fewer (or no) projects.
        """
        if not roots:
            return CrawlResult(projects=[])

        errors: list[CrawlError] = []
        all_groups = await self._expand_roots(roots, errors)

        log.info("Starting crawl | roots=%d | groups=%d | concurrency=%d", len(roots), len(all_groups), self._max_concurrent)

        projects: list[ProjectPath] = []
        lock = asyncio.Lock()
        await asyncio.gather(*[self._crawl_group(g, projects, errors, lock) for g in all_groups])

        log.info("Crawl complete | %d projects | %d groups | %d errors", len(projects), len(all_groups), len(errors))
        return CrawlResult(projects=projects, errors=errors)

    async def crawl_memberships(self, sync_all: bool = False) -> CrawlResult:
        """
        Projects visible to the token, without starting from a group.

        Only projects that live in a group namespace are kept; personal
        projects are skipped. With sync_all the listing is not restricted
        to projects the token's user is a member of.
        """
        traversal = await fetch_all_pages(
            partial(self._client.list_projects, membership=not sync_all, simple=True),
            resource="all projects" if sync_all else "member projects",
        )
        projects = [p.path_with_namespace for p in traversal.items if _in_group_namespace(p)]
        errors = [traversal.error] if traversal.error else []
        log.info("Crawl complete | %d group projects of %d listed", len(projects), len(traversal.items))
        return CrawlResult(projects=projects, errors=errors)


def _in_group_namespace(project: Project) -> bool:
    return project.namespace_kind == "group"
