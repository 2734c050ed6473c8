from __future__ import annotations

from dataclasses import replace
from typing import Protocol

from badge_service.models.project import Project


class ProjectRepo(Protocol):
    async def get_with_members(self, project_id: str) -> Project | None: ...
    async def get_with_confirmed_members(self, project_id: str) -> Project | None: ...
    async def add(self, project: Project) -> None: ...


class InMemoryProjectRepo:
    def __init__(self) -> None:
        self._by_id: dict[str, Project] = {}

    async def get_with_members(self, project_id: str) -> Project | None:
        return self._by_id.get(project_id)

    async def get_with_confirmed_members(self, project_id: str) -> Project | None:
        """Project narrowed to its confirmed members.

        None when the project is unknown or nobody on it is confirmed.
        """
        project = self._by_id.get(project_id)
        if project is None:
            return None
        confirmed = project.confirmed_members
        if not confirmed:
            return None
        return replace(project, members=confirmed)

    async def add(self, project: Project) -> None:
        if project.id in self._by_id:
            raise ValueError("project already exists")
        self._by_id[project.id] = project
