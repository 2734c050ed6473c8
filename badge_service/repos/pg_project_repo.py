"""PostgreSQL implementation of ProjectRepo."""

from __future__ import annotations

from dataclasses import replace

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from badge_service.db.tables import ProjectMemberRow, ProjectRow
from badge_service.models.project import MEMBER_CONFIRMED, Project, ProjectMember


class PgProjectRepo:
    """Satisfies the ProjectRepo Protocol using PostgreSQL via SQLAlchemy."""

    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    async def get_with_members(self, project_id: str) -> Project | None:
        return await self._load(project_id, confirmed_only=False)

    async def get_with_confirmed_members(self, project_id: str) -> Project | None:
        project = await self._load(project_id, confirmed_only=True)
        if project is None or not project.confirmed_members:
            return None
        return replace(project, members=project.confirmed_members)

    async def add(self, project: Project) -> None:
        self._session.add(
            ProjectRow(id=project.id, name=project.name, hackathon_id=project.hackathon_id)
        )
        # members reference the project row, flush it first
        await self._session.flush()
        for member in project.members:
            self._session.add(
                ProjectMemberRow(
                    project_id=project.id,
                    user_id=member.user_id,
                    status=member.status,
                )
            )
        await self._session.flush()

    async def _load(self, project_id: str, *, confirmed_only: bool) -> Project | None:
        stmt = select(ProjectRow).where(ProjectRow.id == project_id)
        row = (await self._session.execute(stmt)).scalar_one_or_none()
        if row is None:
            return None

        member_stmt = select(ProjectMemberRow).where(
            ProjectMemberRow.project_id == project_id
        )
        if confirmed_only:
            member_stmt = member_stmt.where(
                ProjectMemberRow.status == MEMBER_CONFIRMED,
                ProjectMemberRow.user_id.is_not(None),
            )
        member_rows = (
            (await self._session.execute(member_stmt.order_by(ProjectMemberRow.id)))
            .scalars()
            .all()
        )
        return Project(
            id=row.id,
            name=row.name,
            hackathon_id=row.hackathon_id,
            members=tuple(
                ProjectMember(project_id=m.project_id, user_id=m.user_id, status=m.status)
                for m in member_rows
            ),
        )
