from __future__ import annotations
import logging
from typing import Awaitable, Callable, TypeVar
from lab.domain.entities import PER_PAGE, CrawlError, Page, PageCursor, PageTraversal
from lab.domain.errors import ForgeAPIError

log = logging.getLogger(__name__)

T = TypeVar("T")

FetchPage = Callable[[PageCursor], Awaitable[Page[T]]]


async def fetch_all_pages(fetch_page: FetchPage[T], resource: str, per_page: int = PER_PAGE) -> PageTraversal[T]:
    """
    Walk a list endpoint from page 1 until the server says there is no next page.

    Items come back in the order the pages were fetched. A failing page ends
    the walk: the error is logged and returned next to whatever was already
    collected. There is no retry.

    A next page that does not move forward is treated like the last page,
    so a misbehaving server cannot make us fetch the same page twice.
    """
    cursor = PageCursor(page=1, per_page=per_page)
    items: list[T] = []

    while True:
        try:
            page = await fetch_page(cursor)
        except ForgeAPIError as exc:
            log.warning("Listing %s stopped at page %d: %s", resource, cursor.page, exc)
            return PageTraversal(items=items, error=CrawlError(resource=resource, message=str(exc)))

        items.extend(page.items)

        if page.is_last:
            break
        if page.next_page <= cursor.page:
            log.warning("Listing %s: server pointed back to page %d from page %d, stopping", resource, page.next_page, cursor.page)
            break
        cursor = cursor.advance(page.next_page)

    log.debug("Listed %s | %d items | %d pages", resource, len(items), cursor.page)
    return PageTraversal(items=items)
