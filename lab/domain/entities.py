from __future__ import annotations
from dataclasses import dataclass, field
from typing import Generic, TypeVar, Union
from urllib.parse import quote

T = TypeVar("T")

PER_PAGE        = 100
RUNNING_STATUSES = frozenset({"created", "pending", "running"})

# "namespace/subnamespace/.../project"
ProjectPath = str


@dataclass(frozen=True)
class NumericGroupID:
    """A group addressed by its numeric ID (what descendant listings return)."""
    id: int

    def selector(self) -> str:
        return str(self.id)

    def __str__(self) -> str:
        return self.selector()


@dataclass(frozen=True)
class PathGroupID:
    """
    A group addressed by its full path, e.g. "linux/drivers".

    The API accepts the path in place of an ID as long as the slashes are
    percent-encoded, so selector() encodes everything.
    """
    path: str

    def selector(self) -> str:
        return quote(self.path, safe="")

    def __str__(self) -> str:
        return self.path


GroupRef = Union[NumericGroupID, PathGroupID]


def parse_group_ref(value: str | int) -> GroupRef:
    """Turn CLI/config text into a GroupRef. All-digit text is an ID."""
    if isinstance(value, int):
        return NumericGroupID(value)
    text = value.strip().strip("/")
    if not text:
        raise ValueError("empty group reference")
    if text.isdigit():
        return NumericGroupID(int(text))
    return PathGroupID(text)


@dataclass(frozen=True)
class PageCursor:
    """
    Position in a paginated listing.

    Cursors only move forward: advance() refuses to go back to a page that
    was already fetched.
    """
    page:     int = 1
    per_page: int = PER_PAGE

    def advance(self, next_page: int) -> PageCursor:
        if next_page <= self.page:
            raise ValueError(f"next page {next_page} does not move past page {self.page}")
        return PageCursor(page=next_page, per_page=self.per_page)


@dataclass(frozen=True)
class Page(Generic[T]):
    """One page of a list endpoint. next_page == 0 means there is nothing after it."""
    items:     list[T]
    next_page: int = 0

    @property
    def is_last(self) -> bool:
        return self.next_page == 0


@dataclass(frozen=True)
class Project:
    """
    Immutable view of a remote project, reduced to what discovery needs.
    Field names are ours; the API translation lives in the client.
    """
    id:                  int
    path_with_namespace: ProjectPath
    namespace_kind:      str | None = None


@dataclass(frozen=True)
class Job:
    """A pipeline job. Status only changes by fetching the job again."""
    id:      int
    name:    str
    status:  str
    stage:   str | None = None
    web_url: str | None = None

    @property
    def is_running(self) -> bool:
        return is_running(self.status)


def is_running(status: str) -> bool:
    return status in RUNNING_STATUSES


@dataclass
class TraceCursor:
    """
    How far one job's trace has been printed.

    Owned by a single streaming loop; never shared between jobs.
    """
    offset:     int  = 0
    first_poll: bool = True


@dataclass(frozen=True)
class CrawlError:
    """A pagination loop that was given up on, and why."""
    resource: str
    message:  str


@dataclass(frozen=True)
class PageTraversal(Generic[T]):
    """Everything one pagination loop collected, plus the error that stopped it early (if any)."""
    items: list[T]
    error: CrawlError | None = None


@dataclass(frozen=True)
class CrawlResult:
    """
    Immutable value object returned by the group crawler.

    `errors` lists every group whose listing was abandoned; the projects of
    the remaining groups are still in `projects`.
    """
    projects: list[ProjectPath]
    errors:   list[CrawlError] = field(default_factory=list)

    @property
    def partial(self) -> bool:
        return bool(self.errors)


@dataclass(frozen=True)
class SyncResult:
    """
    Immutable value object summarising a completed sync run.
    Returned by the application service when syncing finishes.
    """
    total_projects: int
    status:         str          # "success" | "partial" | "failed"
    elapsed_secs:   float
    destination:    str | None = None
    error_message:  str | None = None
