from __future__ import annotations

import asyncio
import logging
import re
from functools import partial
from typing import Awaitable, Callable

from lab.domain.entities import Job, TraceCursor
from lab.domain.errors import ForgeAPIError
from lab.domain.interfaces import IForgeClient, ITraceRenderer
from .paginator import fetch_all_pages

log = logging.getLogger(__name__)

POLL_INTERVAL = 3.0
TAIL_LINES    = 20

# GitLab traces carry section markers such as "\x1b[0m\x1b[0K\x1b[36;1mStart".
# Left in, they break the "[job] " prefix, so they are cut out before printing.
CONTROL_ARTIFACT = re.compile(r"\x1b\[0m.*?\[0K")


def strip_control_artifacts(line: str) -> str:
    return CONTROL_ARTIFACT.sub("", line)


def split_trace(blob: str, final: bool) -> list[str]:
    """
    Lines of a trace blob that are safe to print.

    Only newline-terminated lines are complete. A trailing partial line may
    still grow, so it is held back unless the job has finished (`final`).
    """
    lines = blob.split("\n")
    tail = lines.pop()
    if final and tail:
        lines.append(tail)
    return lines


class TraceStreamer:
    """
    Follows the live trace of pipeline jobs.

    The trace endpoint always returns the whole log, so each poll cuts away
    what was already printed using a per-job TraceCursor. A job is followed
    until its status (fetched again after every poll) leaves
    created/pending/running; the poll after that status change prints the
    last lines and ends the loop.

    There is no timeout: a job stuck in "running" is followed forever.
    """

    def __init__(self, client: IForgeClient, renderer: ITraceRenderer, interval: float = POLL_INTERVAL, tail_lines: int = TAIL_LINES, sleep: Callable[[float], Awaitable[None]] = asyncio.sleep) -> None:
        self._client     = client
        self._renderer   = renderer
        self._interval   = interval
        self._tail_lines = max(tail_lines, 0)
        self._sleep      = sleep

    def _emit_new_lines(self, job: Job, cursor: TraceCursor, blob: str) -> int:
        """Print what this poll added. Returns how many lines were printed."""
        lines = split_trace(blob, final=not job.is_running)
        total = len(lines)

        if cursor.first_poll:
            # Attach mid-run: only the last few lines, however long the log already is.
            cursor.offset     = max(total - self._tail_lines, 0)
            cursor.first_poll = False

        fresh = lines[cursor.offset:]
        for line in fresh:
            self._renderer.emit(job.name, strip_control_artifacts(line))

        cursor.offset = max(cursor.offset, total)
        return len(fresh)

    async def stream_trace(self, project: str | int, job: Job) -> None:
        """Print the job's trace as it grows until the job is no longer running."""
        cursor = TraceCursor()
        log.debug("Following job %d (%s) in %s", job.id, job.name, project)

        while True:
            await self._sleep(self._interval)

            try:
                blob = await self._client.get_trace(project, job.id)
            except ForgeAPIError as exc:
                log.warning("Trace of job %d (%s) unavailable this poll: %s", job.id, job.name, exc)
                continue

            self._emit_new_lines(job, cursor, blob)

            if not job.is_running:
                log.debug("Job %d (%s) finished with status %s", job.id, job.name, job.status)
                return

            try:
                job = await self._client.get_job(project, job.id)
            except ForgeAPIError as exc:
                log.warning("Status of job %d (%s) unavailable, keeping %s: %s", job.id, job.name, job.status, exc)

    async def _stream_safely(self, project: str | int, job: Job) -> None:
        try:
            await self.stream_trace(project, job)
        except Exception as exc:
            log.error("Stopped following job %d (%s): %s", job.id, job.name, exc, exc_info=True)

    async def stream_running_jobs(self, project: str | int, jobs: list[Job]) -> bool:
        """
        Follow every running job of `jobs` at the same time and wait for all of them.

        Returns True when there was nothing running to follow.
        """
        running = [j for j in jobs if j.is_running]
        if not running:
            return True

        log.info("Following %d running jobs: %s", len(running), ", ".join(j.name for j in running))
        await asyncio.gather(*[self._stream_safely(project, j) for j in running])
        return False

    async def watch_pipeline(self, project: str | int, pipeline_id: int) -> list[Job]:
        """
        Follow a pipeline until none of its jobs is running any more.

        Jobs that start later (next stage) are picked up on the following
        round. Returns the jobs as last seen.
        """
        while True:
            traversal = await fetch_all_pages(
                partial(self._client.list_pipeline_jobs, project, pipeline_id),
                resource=f"jobs of pipeline {pipeline_id}",
            )
            if traversal.error:
                # An incomplete job list could look "all done"; try again next round.
                await self._sleep(self._interval)
                continue

            jobs = traversal.items
            if await self.stream_running_jobs(project, jobs):
                for job in jobs:
                    log.info("Job %-30s %s", job.name, job.status)
                return jobs
