"""Unit tests for SyncApplicationService."""

from __future__ import annotations

from pathlib import Path
from unittest.mock import MagicMock

import pytest

from conftest import project
from lab.application.crawl_service import SyncApplicationService
from lab.application.group_resolver import SubgroupResolver
from lab.application.orchestrator import GroupProjectCrawler
from lab.domain.entities import NumericGroupID, PathGroupID
from lab.domain.interfaces import IProjectStorage
from lab.infrastructure.projects_file import ProjectsFileStorage


@pytest.fixture
def crawler(forge) -> GroupProjectCrawler:
    return GroupProjectCrawler(forge, SubgroupResolver(forge), throttle=0)


class TestSyncApplicationService:
    @pytest.mark.asyncio
    async def test_group_sync_is_stored(self, forge, crawler, tmp_path: Path) -> None:
        forge.descendants["linux"] = [[NumericGroupID(5)]]
        forge.group_projects["linux"] = [[project("linux/kernel")]]
        forge.group_projects["5"] = [[project("linux/drivers/usb")]]
        storage = ProjectsFileStorage(tmp_path / ".projects")

        result = await SyncApplicationService(crawler, storage).execute([PathGroupID("linux")])

        assert result.status == "success"
        assert result.total_projects == 2
        assert result.destination == str(tmp_path / ".projects")
        assert result.error_message is None
        assert sorted(storage.load()) == ["linux/drivers/usb", "linux/kernel"]

    @pytest.mark.asyncio
    async def test_partial_sync_is_stored_and_flagged(self, forge, crawler, tmp_path: Path) -> None:
        forge.descendants["linux"] = [[NumericGroupID(5)]]
        forge.group_projects["linux"] = [[project("linux/kernel")]]
        forge.failures[("projects", "5")] = 1
        storage = ProjectsFileStorage(tmp_path / ".projects")

        result = await SyncApplicationService(crawler, storage).execute([PathGroupID("linux")])

        assert result.status == "partial"
        assert result.total_projects == 1
        assert result.error_message == "1 listings failed"
        assert storage.load() == ["linux/kernel"]

    @pytest.mark.asyncio
    async def test_without_groups_syncs_memberships(self, forge, crawler, tmp_path: Path) -> None:
        forge.member_projects = [[project("team/app"), project("me/notes", kind="user")]]
        storage = ProjectsFileStorage(tmp_path / ".projects")

        result = await SyncApplicationService(crawler, storage).execute([], sync_all=True)

        assert result.status == "success"
        assert storage.load() == ["team/app"]
        assert forge.calls["list_projects_flags"] == [(False, True)]

    @pytest.mark.asyncio
    async def test_storage_failure_is_reported(self, forge, crawler) -> None:
        storage = MagicMock(spec=IProjectStorage)
        storage.save.side_effect = PermissionError("read-only file system")
        storage.location = "/ro/.projects"

        result = await SyncApplicationService(crawler, storage).execute([PathGroupID("g")])

        assert result.status == "failed"
        assert "read-only" in result.error_message
