"""PostgreSQL implementation of BadgeRepo."""

from __future__ import annotations

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from badge_service.db.tables import BadgeRow
from badge_service.models.badge import Badge, BadgeCategory, Requirement


class PgBadgeRepo:
    """Satisfies the BadgeRepo Protocol using PostgreSQL via SQLAlchemy.

    Requirement lookups use JSONB containment on the requirements array,
    so ``requirements @> '[{"course_id": "c1"}]'`` matches any badge with
    at least one requirement for course c1.
    """

    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    async def get(self, badge_id: str) -> Badge | None:
        stmt = select(BadgeRow).where(BadgeRow.id == badge_id)
        row = (await self._session.execute(stmt)).scalar_one_or_none()
        if row is None:
            return None
        return _row_to_badge(row)

    async def list_by_course(self, course_id: str) -> list[Badge]:
        stmt = (
            select(BadgeRow)
            .where(
                BadgeRow.category == BadgeCategory.ACADEMY.value,
                BadgeRow.requirements.contains([{"course_id": course_id}]),
            )
            .order_by(BadgeRow.created_at, BadgeRow.id)
        )
        return await self._list(stmt)

    async def list_by_hackathon(self, hackathon_id: str) -> list[Badge]:
        stmt = (
            select(BadgeRow)
            .where(
                BadgeRow.category == BadgeCategory.PROJECT.value,
                BadgeRow.requirements.contains([{"hackathon": hackathon_id}]),
            )
            .order_by(BadgeRow.created_at, BadgeRow.id)
        )
        return await self._list(stmt)

    async def list_by_ids(self, badge_ids: list[str]) -> list[Badge]:
        if not badge_ids:
            return []
        stmt = (
            select(BadgeRow)
            .where(BadgeRow.id.in_(badge_ids))
            .order_by(BadgeRow.created_at, BadgeRow.id)
        )
        return await self._list(stmt)

    async def list_by_requirement(self, requirement_id: str) -> list[Badge]:
        stmt = (
            select(BadgeRow)
            .where(BadgeRow.requirements.contains([{"id": requirement_id}]))
            .order_by(BadgeRow.created_at, BadgeRow.id)
        )
        return await self._list(stmt)

    async def add(self, badge: Badge) -> None:
        row = BadgeRow(
            id=badge.id,
            name=badge.name,
            description=badge.description,
            category=badge.category.value,
            points=badge.points,
            image_path=badge.image_path,
            requirements=[r.to_dict() for r in badge.requirements],
        )
        self._session.add(row)
        await self._session.flush()

    async def _list(self, stmt) -> list[Badge]:
        rows = (await self._session.execute(stmt)).scalars().all()
        return [_row_to_badge(row) for row in rows]


def _row_to_badge(row: BadgeRow) -> Badge:
    return Badge(
        id=row.id,
        name=row.name,
        category=BadgeCategory(row.category),
        description=row.description or "",
        points=row.points or 0,
        image_path=row.image_path or "",
        requirements=tuple(Requirement.from_dict(r) for r in row.requirements or ()),
    )
