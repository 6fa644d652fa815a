from __future__ import annotations

import logging
from datetime import datetime, timezone

from lab.domain.entities import CrawlResult, GroupRef, SyncResult
from lab.domain.interfaces import IProjectStorage
from .orchestrator import GroupProjectCrawler

log = logging.getLogger(__name__)


class SyncApplicationService:
    """
    The top-level use case: discover projects and persist their paths.

    Receives all dependencies via constructor injection.
    Knows about the sequence of operations but not the implementation details.
    """

    def __init__(self, crawler: GroupProjectCrawler, storage: IProjectStorage) -> None:
        self._crawler = crawler
        self._storage = storage

    async def execute(self, groups: list[GroupRef], sync_all: bool = False) -> SyncResult:
        """
        Crawl `groups` (or, with no groups, every project the token can see)
        and replace the stored project list with the result.

        Partial crawls are still stored; the result's status says "partial"
        so the caller can tell them apart from a clean sync.
        """
        started_at = datetime.now(tz=timezone.utc)
        log.info("SyncApplicationService | groups: %s | sync_all: %s", ", ".join(map(str, groups)) or "-", sync_all)

        try:
            if groups:
                result: CrawlResult = await self._crawler.crawl(groups)
            else:
                result = await self._crawler.crawl_memberships(sync_all)

            self._storage.save(result.projects)
            elapsed = (datetime.now(tz=timezone.utc) - started_at).total_seconds()

            status = "partial" if result.partial else "success"
            for err in result.errors:
                log.warning("Skipped %s: %s", err.resource, err.message)
            log.info("Sync %s | %d projects -> %s | %.1fs", status, len(result.projects), self._storage.location, elapsed)

            return SyncResult(
                total_projects = len(result.projects),
                status         = status,
                elapsed_secs   = elapsed,
                destination    = self._storage.location,
                error_message  = f"{len(result.errors)} listings failed" if result.partial else None,
            )
        except OSError as exc:
            elapsed = (datetime.now(tz=timezone.utc) - started_at).total_seconds()
            log.error("Sync failed: %s", exc, exc_info=True)

            return SyncResult(
                total_projects = 0,
                status         = "failed",
                elapsed_secs   = elapsed,
                destination    = self._storage.location,
                error_message  = str(exc),
            )
