from __future__ import annotations
import logging
import os
from pathlib import Path
from lab.domain.entities import ProjectPath
from lab.domain.interfaces import IProjectStorage

log = logging.getLogger(__name__)

DIR_PERM = 0o755


class ProjectsFileStorage(IProjectStorage):
    """
    Concrete implementation of IProjectStorage backed by a plain text file,
    one project path per line.

    save() writes to a sibling temp file and renames it over the old one, so
    an interrupted sync never leaves a half-written list behind.
    """

    def __init__(self, path: str | os.PathLike) -> None:
        self._path = Path(path).expanduser()

    @property
    def location(self) -> str:
        return str(self._path)

    def save(self, projects: list[ProjectPath]) -> None:
        self._path.parent.mkdir(parents=True, exist_ok=True, mode=DIR_PERM)
        tmp = self._path.with_name(self._path.name + ".tmp")
        with open(tmp, "w", encoding="utf-8") as f:
            for project in projects:
                f.write(project + "\n")
        os.replace(tmp, self._path)
        log.debug("Wrote %d projects to %s", len(projects), self._path)

    def load(self) -> list[ProjectPath]:
        if not self._path.exists():
            return []
        with open(self._path, encoding="utf-8") as f:
            return [line.strip() for line in f if line.strip()]
