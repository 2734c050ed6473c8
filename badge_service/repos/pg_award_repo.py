"""PostgreSQL implementation of AwardRepo.

The conditional upsert maps onto two statements:

  expected_version=None  →  INSERT ... ON CONFLICT DO NOTHING
  expected_version=N     →  UPDATE ... WHERE requirements_version = N

Zero affected rows means another writer got there first → StaleAwardError.

atomic() opens a SAVEPOINT on the request session and hands out a repo
whose reads take row locks (SELECT ... FOR UPDATE), so the records a
unit has read cannot change under it before the savepoint is released.
Driver errors are re-raised as PersistenceError.
"""

from __future__ import annotations

from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from dataclasses import replace

from sqlalchemy import select, update
from sqlalchemy.dialects.postgresql import insert
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from badge_service.db.tables import ProjectBadgeRow, UserBadgeRow
from badge_service.models.award import AwardRecord, ProjectBadge, UserBadge
from badge_service.models.badge import BadgeAwardStatus, Requirement
from badge_service.services.errors import PersistenceError, StaleAwardError


class PgAwardRepo:
    """Satisfies the AwardRepo Protocol using PostgreSQL via SQLAlchemy."""

    def __init__(self, session: AsyncSession, *, lock_rows: bool = False) -> None:
        self._session = session
        self._lock_rows = lock_rows

    # --- reads ---

    async def get_user_badge(self, user_id: str, badge_id: str) -> UserBadge | None:
        stmt = select(UserBadgeRow).where(
            UserBadgeRow.user_id == user_id, UserBadgeRow.badge_id == badge_id
        )
        if self._lock_rows:
            stmt = stmt.with_for_update(of=UserBadgeRow)
        row = await self._scalar(stmt)
        return _row_to_user_badge(row) if row is not None else None

    async def get_project_badge(
        self, project_id: str, badge_id: str
    ) -> ProjectBadge | None:
        stmt = select(ProjectBadgeRow).where(
            ProjectBadgeRow.project_id == project_id,
            ProjectBadgeRow.badge_id == badge_id,
        )
        if self._lock_rows:
            stmt = stmt.with_for_update(of=ProjectBadgeRow)
        row = await self._scalar(stmt)
        return _row_to_project_badge(row) if row is not None else None

    async def list_user_badges(self, user_ids: list[str]) -> list[UserBadge]:
        if not user_ids:
            return []
        stmt = (
            select(UserBadgeRow)
            .where(UserBadgeRow.user_id.in_(user_ids))
            .order_by(UserBadgeRow.user_id, UserBadgeRow.badge_id)
        )
        try:
            rows = (await self._session.execute(stmt)).scalars().all()
        except SQLAlchemyError as exc:
            raise PersistenceError(f"award lookup failed: {exc}") from exc
        return [_row_to_user_badge(row) for row in rows]

    async def list_project_badges(self, project_id: str) -> list[ProjectBadge]:
        stmt = (
            select(ProjectBadgeRow)
            .where(ProjectBadgeRow.project_id == project_id)
            .order_by(ProjectBadgeRow.badge_id)
        )
        try:
            rows = (await self._session.execute(stmt)).scalars().all()
        except SQLAlchemyError as exc:
            raise PersistenceError(f"award lookup failed: {exc}") from exc
        return [_row_to_project_badge(row) for row in rows]

    # --- conditional writes ---

    async def upsert_user_badge(
        self, record: UserBadge, *, expected_version: int | None
    ) -> UserBadge:
        if expected_version is None:
            stmt = (
                insert(UserBadgeRow)
                .values(
                    user_id=record.user_id,
                    badge_id=record.badge_id,
                    requirements_version=1,
                    **_state_values(record),
                )
                .on_conflict_do_nothing(index_elements=["user_id", "badge_id"])
            )
        else:
            stmt = (
                update(UserBadgeRow)
                .where(
                    UserBadgeRow.user_id == record.user_id,
                    UserBadgeRow.badge_id == record.badge_id,
                    UserBadgeRow.requirements_version == expected_version,
                )
                .values(
                    requirements_version=expected_version + 1,
                    **_state_values(record),
                )
            )
        await self._execute_conditional(stmt, record, expected_version)
        return _stamped(record, expected_version)  # type: ignore[return-value]

    async def upsert_project_badge(
        self, record: ProjectBadge, *, expected_version: int | None
    ) -> ProjectBadge:
        if expected_version is None:
            stmt = (
                insert(ProjectBadgeRow)
                .values(
                    project_id=record.project_id,
                    badge_id=record.badge_id,
                    requirements_version=1,
                    **_state_values(record),
                )
                .on_conflict_do_nothing(index_elements=["project_id", "badge_id"])
            )
        else:
            stmt = (
                update(ProjectBadgeRow)
                .where(
                    ProjectBadgeRow.project_id == record.project_id,
                    ProjectBadgeRow.badge_id == record.badge_id,
                    ProjectBadgeRow.requirements_version == expected_version,
                )
                .values(
                    requirements_version=expected_version + 1,
                    **_state_values(record),
                )
            )
        await self._execute_conditional(stmt, record, expected_version)
        return _stamped(record, expected_version)  # type: ignore[return-value]

    # --- units ---

    @asynccontextmanager
    async def atomic(self) -> AsyncIterator[PgAwardRepo]:
        try:
            async with self._session.begin_nested():
                yield PgAwardRepo(self._session, lock_rows=True)
        except SQLAlchemyError as exc:
            raise PersistenceError(f"award unit failed: {exc}") from exc

    # --- helpers ---

    async def _scalar(self, stmt):
        try:
            return (await self._session.execute(stmt)).scalar_one_or_none()
        except SQLAlchemyError as exc:
            raise PersistenceError(f"award lookup failed: {exc}") from exc

    async def _execute_conditional(
        self, stmt, record: AwardRecord, expected_version: int | None
    ) -> None:
        try:
            result = await self._session.execute(stmt)
        except SQLAlchemyError as exc:
            raise PersistenceError(f"award write failed: {exc}") from exc
        if result.rowcount == 0:
            raise StaleAwardError(record.subject.id, record.badge_id, expected_version)


def _state_values(record: AwardRecord) -> dict:
    return {
        "status": record.status.value,
        "evidence": [r.to_dict() for r in record.evidence],
        "awarded_at": record.awarded_at,
        "awarded_by": record.awarded_by,
    }


def _stamped(record: AwardRecord, expected_version: int | None) -> AwardRecord:
    next_version = 1 if expected_version is None else expected_version + 1
    return replace(record, requirements_version=next_version)


def _row_to_user_badge(row: UserBadgeRow) -> UserBadge:
    return UserBadge(
        user_id=row.user_id,
        badge_id=row.badge_id,
        status=BadgeAwardStatus(row.status),
        evidence=tuple(Requirement.from_dict(r) for r in row.evidence or ()),
        awarded_at=row.awarded_at,
        awarded_by=row.awarded_by,
        requirements_version=row.requirements_version,
    )


def _row_to_project_badge(row: ProjectBadgeRow) -> ProjectBadge:
    return ProjectBadge(
        project_id=row.project_id,
        badge_id=row.badge_id,
        status=BadgeAwardStatus(row.status),
        evidence=tuple(Requirement.from_dict(r) for r in row.evidence or ()),
        awarded_at=row.awarded_at,
        awarded_by=row.awarded_by,
        requirements_version=row.requirements_version,
    )
