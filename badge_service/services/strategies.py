"""Category-specific badge assignment strategies.

Each strategy turns one event (a finished course, a hackathon result, a
completed social task) into ledger updates for the badges that event
touches, and reports the badges that became approved because of it.
Progress that stays pending is persisted but not reported.

  AcademyStrategy           courseId     → user records
  ProjectStrategy           hackathonId  → member + project records, one unit
                            badgesId     → same, forced complete (admin only)
  BadgeByRequirementStrategy requirementId → user records
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import ClassVar, Protocol

from badge_service.models.assignment import (
    AssignBadgeBody,
    AssignBadgeResult,
    BadgeData,
    RequirementOut,
)
from badge_service.models.award import AwardSubject
from badge_service.models.badge import Badge, BadgeCategory, Requirement
from badge_service.repos.project_repo import ProjectRepo
from badge_service.services.catalog import BadgeCatalog
from badge_service.services.errors import (
    BadgeValidationError,
    ProjectNotFoundError,
    TransactionAbortedError,
)
from badge_service.services.ledger import AwardLedger
from badge_service.services.matcher import Discriminant, match_requirement
from badge_service.services.transaction import AwardIntent, TransactionCoordinator

logger = logging.getLogger(__name__)

ADMIN_ROLE = "admin"


class BadgeStrategy(Protocol):
    category: ClassVar[BadgeCategory]

    async def assign_badge(
        self, body: AssignBadgeBody, awarded_by: str | None = None
    ) -> AssignBadgeResult: ...

    def get_required_role(self) -> str | None: ...


@dataclass(frozen=True, slots=True)
class StrategyDependencies:
    catalog: BadgeCatalog
    ledger: AwardLedger
    projects: ProjectRepo
    transactions: TransactionCoordinator


def _badge_data(badge: Badge, requirement: Requirement | None) -> BadgeData:
    return BadgeData(
        name=badge.name,
        image_path=badge.image_path,
        completed_requirement=(
            RequirementOut.from_requirement(requirement)
            if requirement is not None
            else None
        ),
    )


def _summary(awarded: list[BadgeData]) -> str:
    if awarded:
        return "Badges assigned successfully"
    return "Progress recorded, no new badges awarded"


class AcademyStrategy:
    category: ClassVar[BadgeCategory] = BadgeCategory.ACADEMY

    def __init__(self, deps: StrategyDependencies) -> None:
        self._catalog = deps.catalog
        self._ledger = deps.ledger

    def get_required_role(self) -> str | None:
        return None

    async def assign_badge(
        self, body: AssignBadgeBody, awarded_by: str | None = None
    ) -> AssignBadgeResult:
        if not body.course_id:
            raise BadgeValidationError("courseId is required for academy badges")

        badges = await self._catalog.get_by_course_id(body.course_id)
        subject = AwardSubject.user(body.user_id)
        awarded: list[BadgeData] = []

        for badge in badges:
            existing = await self._ledger.current(subject, badge.id)
            if existing is not None and existing.state.is_approved:
                continue

            requirement = match_requirement(
                badge, Discriminant.COURSE_ID, body.course_id
            )
            if requirement is None:
                continue

            transition = await self._ledger.merge(
                subject, badge, requirement, awarded_by=awarded_by
            )
            if transition.newly_approved:
                awarded.append(_badge_data(badge, requirement))

        return AssignBadgeResult(
            success=True,
            message=_summary(awarded),
            badge_id=badges[0].id,
            user_id=body.user_id,
            badges=awarded,
        )


class ProjectStrategy:
    """Awards a team and its confirmed members together.

    Two ways in:

      hackathonId: the badges of that hackathon; each badge advances by
        the requirement the hackathon matches, like any other category.
      badgesId: an explicit badge list from an admin or judge; every
        record is forced to approved with full evidence, no requirement
        check.  Takes precedence over hackathonId.

    All member and project writes of one call commit as a single unit.
    """

    category: ClassVar[BadgeCategory] = BadgeCategory.PROJECT

    def __init__(self, deps: StrategyDependencies) -> None:
        self._catalog = deps.catalog
        self._projects = deps.projects
        self._transactions = deps.transactions

    def get_required_role(self) -> str | None:
        return ADMIN_ROLE

    async def assign_badge(
        self, body: AssignBadgeBody, awarded_by: str | None = None
    ) -> AssignBadgeResult:
        if not body.project_id:
            raise BadgeValidationError("projectId is required for project badges")

        force_complete = bool(body.badges_id)
        if body.badges_id:
            badges = await self._catalog.get_by_ids(body.badges_id)
        elif body.hackathon_id:
            badges = await self._catalog.get_by_hackathon_id(body.hackathon_id)
        else:
            raise BadgeValidationError(
                "hackathonId or badgesId is required for project badges"
            )

        project = await self._projects.get_with_confirmed_members(body.project_id)
        if project is None:
            raise ProjectNotFoundError(
                f"Project {body.project_id} not found or has no confirmed members"
            )

        intents: list[AwardIntent] = []
        for badge in badges:
            if force_complete:
                requirement = None
            else:
                assert body.hackathon_id is not None
                requirement = match_requirement(
                    badge, Discriminant.HACKATHON, body.hackathon_id
                )
                if requirement is None:
                    continue

            for member in project.confirmed_members:
                assert member.user_id is not None
                intents.append(
                    AwardIntent(
                        subject=AwardSubject.user(member.user_id),
                        badge=badge,
                        requirement=requirement,
                        force_complete=force_complete,
                    )
                )
            intents.append(
                AwardIntent(
                    subject=AwardSubject.project(project.id),
                    badge=badge,
                    requirement=requirement,
                    force_complete=force_complete,
                )
            )

        if not intents:
            return AssignBadgeResult(
                success=True,
                message="No badges to assign",
                badge_id="",
                user_id=body.user_id,
                badges=[],
            )

        try:
            outcomes = await self._transactions.commit(intents, awarded_by=awarded_by)
        except TransactionAbortedError as exc:
            return AssignBadgeResult.failure(
                f"Transaction failed: {exc}", user_id=body.user_id
            )

        awarded = [
            _badge_data(
                o.intent.badge,
                o.intent.requirement or next(iter(o.intent.badge.requirements), None),
            )
            for o in outcomes
            if o.newly_approved
        ]
        logger.info(
            "Project badges processed project=%s members=%d badges=%d forced=%s",
            project.id,
            len(project.confirmed_members),
            len(badges),
            force_complete,
        )
        return AssignBadgeResult(
            success=True,
            message="Badges assigned successfully",
            badge_id=badges[0].id,
            user_id=body.user_id,
            badges=awarded,
        )


class BadgeByRequirementStrategy:
    """Social / ad-hoc badges, advanced one requirement id at a time."""

    category: ClassVar[BadgeCategory] = BadgeCategory.REQUIREMENT

    def __init__(self, deps: StrategyDependencies) -> None:
        self._catalog = deps.catalog
        self._ledger = deps.ledger

    def get_required_role(self) -> str | None:
        return None

    async def assign_badge(
        self, body: AssignBadgeBody, awarded_by: str | None = None
    ) -> AssignBadgeResult:
        if not body.requirement_id:
            raise BadgeValidationError("requirementId is required for this badge")

        badges = await self._catalog.get_by_requirement_id(body.requirement_id)
        if not badges:
            return AssignBadgeResult(
                success=True,
                message=f"No badges linked to requirement {body.requirement_id}",
                badge_id="",
                user_id=body.user_id,
                badges=[],
            )

        subject = AwardSubject.user(body.user_id)
        awarded: list[BadgeData] = []
        for badge in badges:
            requirement = match_requirement(
                badge, Discriminant.REQUIREMENT_ID, body.requirement_id
            )
            if requirement is None:
                continue
            transition = await self._ledger.merge(
                subject, badge, requirement, awarded_by=awarded_by
            )
            if transition.newly_approved:
                awarded.append(_badge_data(badge, requirement))

        return AssignBadgeResult(
            success=True,
            message=_summary(awarded),
            badge_id=badges[0].id,
            user_id=body.user_id,
            badges=awarded,
        )


# Alias under the category's everyday name.
SocialStrategy = BadgeByRequirementStrategy
