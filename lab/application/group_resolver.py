from __future__ import annotations
import logging
from functools import partial
from lab.domain.entities import GroupRef, PageTraversal
from lab.domain.interfaces import IForgeClient
from .paginator import fetch_all_pages

log = logging.getLogger(__name__)


class SubgroupResolver:
    """
    Finds every group below a root group.

    The descendant_groups endpoint already flattens the whole tree, so this
    is a single paginated listing, not a recursive walk.
    """

    def __init__(self, client: IForgeClient) -> None:
        self._client = client

    async def resolve(self, group: GroupRef) -> PageTraversal[GroupRef]:
        traversal = await fetch_all_pages(
            partial(self._client.list_descendant_groups, group),
            resource=f"descendant groups of {group}",
        )
        log.debug("Group %s has %d descendant groups", group, len(traversal.items))
        return traversal
