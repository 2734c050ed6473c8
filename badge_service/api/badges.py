"""Badge assignment and award read endpoints.

Repos are in-memory module singletons unless DATABASE_URL is set, in
which case each request gets PostgreSQL repos bound to one session that
commits when the request succeeds.
"""

from __future__ import annotations

import datetime
import logging
from collections.abc import AsyncGenerator
from typing import Annotated

from fastapi import APIRouter, Depends, HTTPException, status
from pydantic import BaseModel

from badge_service.api.dependencies import require_user
from badge_service.db import engine as db_engine
from badge_service.models.assignment import (
    AssignBadgeBody,
    AssignBadgeResult,
    RequirementOut,
)
from badge_service.models.principal import Principal
from badge_service.repos.award_repo import InMemoryAwardRepo
from badge_service.repos.badge_repo import InMemoryBadgeRepo
from badge_service.repos.pg_award_repo import PgAwardRepo
from badge_service.repos.pg_badge_repo import PgBadgeRepo
from badge_service.repos.pg_project_repo import PgProjectRepo
from badge_service.repos.project_repo import InMemoryProjectRepo
from badge_service.services.assignment_service import (
    AwardView,
    BadgeAssignmentService,
)

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/v1", tags=["badges"])

# --- Module-level repo singletons (used when DATABASE_URL is unset) ---
badge_repo = InMemoryBadgeRepo()
award_repo = InMemoryAwardRepo()
project_repo = InMemoryProjectRepo()


async def get_assignment_service() -> AsyncGenerator[BadgeAssignmentService, None]:
    if db_engine.async_session_factory is None:
        yield BadgeAssignmentService(badge_repo, award_repo, project_repo)
        return

    async with db_engine.async_session_factory() as session:
        try:
            yield BadgeAssignmentService(
                PgBadgeRepo(session), PgAwardRepo(session), PgProjectRepo(session)
            )
            await session.commit()
        except Exception:
            await session.rollback()
            raise


# --- Pydantic schemas ---


class CategoryOut(BaseModel):
    category: str
    required_role: str | None = None


class CategoriesOut(BaseModel):
    categories: list[CategoryOut]


class AwardOut(BaseModel):
    subject_id: str
    badge_id: str
    name: str
    image_path: str
    status: str
    evidence: list[RequirementOut]
    awarded_at: datetime.datetime | None = None
    awarded_by: str | None = None
    requirements_version: int


def _award_out(view: AwardView) -> AwardOut:
    record = view.record
    return AwardOut(
        subject_id=record.subject.id,
        badge_id=record.badge_id,
        name=view.name,
        image_path=view.image_path,
        status=record.status.value,
        evidence=[RequirementOut.from_requirement(r) for r in record.evidence],
        awarded_at=record.awarded_at,
        awarded_by=record.awarded_by,
        requirements_version=record.requirements_version,
    )


ServiceDep = Annotated[BadgeAssignmentService, Depends(get_assignment_service)]
PrincipalDep = Annotated[Principal, Depends(require_user)]


# --- Endpoints ---


@router.post("/badges/assign", response_model=AssignBadgeResult)
async def assign_badge(
    body: AssignBadgeBody,
    principal: PrincipalDep,
    service: ServiceDep,
) -> AssignBadgeResult:
    """Run one assignment event.  A failed assignment is still a 200."""
    required = service.required_role_for_assignment(body)
    if required is not None and not principal.has_role(required):
        logger.warning(
            "Access denied: user=%s missing role=%s for assignment",
            principal.user_id,
            required,
        )
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Insufficient permissions",
        )
    return await service.assign_badge(body, awarded_by=principal.user_id)


@router.get("/badges/categories", response_model=CategoriesOut)
async def list_categories(
    _principal: PrincipalDep,
    service: ServiceDep,
) -> CategoriesOut:
    return CategoriesOut(
        categories=[
            CategoryOut(
                category=c.value,
                required_role=service.required_role_for_category(c),
            )
            for c in service.available_categories()
        ]
    )


@router.get("/projects/{project_id}/badges", response_model=list[AwardOut])
async def list_project_badges(
    project_id: str,
    _principal: PrincipalDep,
    service: ServiceDep,
) -> list[AwardOut]:
    return [_award_out(v) for v in await service.get_project_badges(project_id)]


@router.get("/projects/{project_id}/member-badges", response_model=list[AwardOut])
async def list_member_badges(
    project_id: str,
    _principal: PrincipalDep,
    service: ServiceDep,
) -> list[AwardOut]:
    views = await service.get_user_badges_by_project_id(project_id)
    return [_award_out(v) for v in views]
