"""
Domain Layer — Interfaces (Abstract Contracts)
-----------------------------------------------
These are ABSTRACT definitions of what the infrastructure must provide.
The domain layer defines the shape; the infrastructure layer implements it.

The crawler and the trace streamer only ever see IForgeClient, so tests can
hand them an in-memory fake instead of a real GitLab.
"""

from __future__ import annotations
from abc import ABC, abstractmethod
from .entities import GroupRef, Job, Page, PageCursor, Project, ProjectPath


class IForgeClient(ABC):
    """
    Contract that any forge API client must fulfil.
    Every method raises ForgeAPIError when the call fails.
    """

    @abstractmethod
    async def list_group_projects(self, group: GroupRef, cursor: PageCursor) -> Page[Project]:
        """One page of the projects that live directly in `group`."""
        ...

    @abstractmethod
    async def list_descendant_groups(self, group: GroupRef, cursor: PageCursor) -> Page[GroupRef]:
        """One page of every group nested below `group`, at any depth."""
        ...

    @abstractmethod
    async def list_projects(self, cursor: PageCursor, membership: bool = True, simple: bool = True) -> Page[Project]:
        """One page of the projects visible to the token (or only those it is a member of)."""
        ...

    @abstractmethod
    async def get_job(self, project: str | int, job_id: int) -> Job:
        ...

    @abstractmethod
    async def get_trace(self, project: str | int, job_id: int) -> str:
        """The whole trace of the job so far. The API has no delta mode."""
        ...

    @abstractmethod
    async def list_pipeline_jobs(self, project: str | int, pipeline_id: int, cursor: PageCursor) -> Page[Job]:
        """One page of a pipeline's jobs."""
        ...


class IProjectStorage(ABC):
    """
    Contract for wherever discovered project paths end up.
    """

    @abstractmethod
    def save(self, projects: list[ProjectPath]) -> None:
        """Replace the stored list with `projects`."""
        ...

    @abstractmethod
    def load(self) -> list[ProjectPath]:
        """Return the stored list, or [] if nothing was synced yet."""
        ...

    @property
    @abstractmethod
    def location(self) -> str:
        ...


class ITraceRenderer(ABC):
    """Where trace lines go once they have been cut out of the blob."""

    @abstractmethod
    def emit(self, job_name: str, line: str) -> None:
        ...
