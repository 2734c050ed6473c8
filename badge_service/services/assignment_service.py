"""Badge assignment entry point.

  caller ─▶ BadgeAssignmentService.assign_badge(body)
              │  resolve_category(body)         explicit > courseId > projectId > requirement
              │  create_strategy(category)      academy | project | requirement
              ▼
            BadgeAssignmentContext.assign_badge ─▶ strategy.assign_badge

The service is the error boundary: whatever a strategy raises comes back
as a failed AssignBadgeResult, never as an exception.
"""

from __future__ import annotations

import logging
import time
from collections.abc import Collection, Sequence
from dataclasses import dataclass

from badge_service.core.config import SETTINGS
from badge_service.core.metrics import ASSIGNMENT_DURATION, BADGE_ASSIGNMENTS
from badge_service.models.assignment import AssignBadgeBody, AssignBadgeResult
from badge_service.models.award import AwardRecord
from badge_service.models.badge import BadgeCategory
from badge_service.repos.award_repo import AwardRepo
from badge_service.repos.badge_repo import BadgeRepo
from badge_service.repos.project_repo import ProjectRepo
from badge_service.services.catalog import BadgeCatalog
from badge_service.services.errors import (
    BadgeAssignmentError,
    CategoryUndeterminedError,
)
from badge_service.services.ledger import AwardLedger
from badge_service.services.strategies import (
    AcademyStrategy,
    BadgeByRequirementStrategy,
    BadgeStrategy,
    ProjectStrategy,
    StrategyDependencies,
)
from badge_service.services.transaction import TransactionCoordinator

logger = logging.getLogger(__name__)

_STRATEGIES: dict[BadgeCategory, type[BadgeStrategy]] = {
    BadgeCategory.ACADEMY: AcademyStrategy,
    BadgeCategory.PROJECT: ProjectStrategy,
    BadgeCategory.REQUIREMENT: BadgeByRequirementStrategy,
}


def _coerce_category(raw: BadgeCategory | str) -> BadgeCategory:
    try:
        return BadgeCategory(raw)
    except ValueError:
        raise CategoryUndeterminedError(f"Unknown badge category {raw!r}") from None


def resolve_category(body: AssignBadgeBody) -> BadgeCategory:
    if body.category is not None:
        return _coerce_category(body.category)
    if body.course_id:
        return BadgeCategory.ACADEMY
    if body.project_id:
        return BadgeCategory.PROJECT
    return BadgeCategory.REQUIREMENT


def create_strategy(
    category: BadgeCategory | str, deps: StrategyDependencies
) -> BadgeStrategy:
    strategy_cls = _STRATEGIES.get(_coerce_category(category))
    if strategy_cls is None:
        raise CategoryUndeterminedError(f"No strategy for badge category {category!r}")
    return strategy_cls(deps)  # type: ignore[call-arg]


class BadgeAssignmentContext:
    """Holds the strategy chosen for one assignment call."""

    def __init__(self, strategy: BadgeStrategy) -> None:
        self._strategy = strategy

    @property
    def strategy(self) -> BadgeStrategy:
        return self._strategy

    def set_strategy(self, strategy: BadgeStrategy) -> None:
        self._strategy = strategy

    async def assign_badge(
        self, body: AssignBadgeBody, awarded_by: str | None = None
    ) -> AssignBadgeResult:
        return await self._strategy.assign_badge(body, awarded_by)


@dataclass(frozen=True, slots=True)
class AwardView:
    """A ledger record joined with the badge's display fields."""

    record: AwardRecord
    name: str
    image_path: str


class BadgeAssignmentService:
    def __init__(
        self,
        badges: BadgeRepo,
        awards: AwardRepo,
        projects: ProjectRepo,
        *,
        merge_attempts: int = SETTINGS.award_merge_attempts,
    ) -> None:
        self._awards = awards
        self._projects = projects
        self._deps = StrategyDependencies(
            catalog=BadgeCatalog(badges),
            ledger=AwardLedger(awards, max_attempts=merge_attempts),
            projects=projects,
            transactions=TransactionCoordinator(awards),
        )

    # ------------------------------------------------------------------
    # Assignment
    # ------------------------------------------------------------------

    async def assign_badge(
        self, body: AssignBadgeBody, awarded_by: str | None = None
    ) -> AssignBadgeResult:
        """Assign badges for ``body``, inferring the category from it."""
        return await self._execute(body, None, awarded_by)

    async def assign_badge_with_category(
        self,
        body: AssignBadgeBody,
        category: BadgeCategory | str,
        awarded_by: str | None = None,
    ) -> AssignBadgeResult:
        """Assign badges for ``body`` with a caller-chosen strategy."""
        return await self._execute(body, category, awarded_by)

    async def _execute(
        self,
        body: AssignBadgeBody,
        category: BadgeCategory | str | None,
        awarded_by: str | None,
    ) -> AssignBadgeResult:
        label = "unresolved"
        started = time.perf_counter()
        try:
            resolved = (
                resolve_category(body)
                if category is None
                else _coerce_category(category)
            )
            label = resolved.value
            context = BadgeAssignmentContext(create_strategy(resolved, self._deps))
            result = await context.assign_badge(body, awarded_by)
        except BadgeAssignmentError as exc:
            logger.warning(
                "Badge assignment rejected: %s",
                exc,
                extra={"user_id": body.user_id, "category": label},
            )
            result = AssignBadgeResult.failure(
                f"Error assigning badge: {exc}", user_id=body.user_id
            )
        except Exception as exc:
            logger.exception(
                "Badge assignment crashed",
                extra={"user_id": body.user_id, "category": label},
            )
            result = AssignBadgeResult.failure(
                f"Error assigning badge: {exc}", user_id=body.user_id
            )

        ASSIGNMENT_DURATION.labels(category=label).observe(
            time.perf_counter() - started
        )
        BADGE_ASSIGNMENTS.labels(
            category=label, outcome="success" if result.success else "failure"
        ).inc()
        return result

    # ------------------------------------------------------------------
    # Category / role introspection
    # ------------------------------------------------------------------

    def available_categories(self) -> list[BadgeCategory]:
        return list(BadgeCategory)

    def validate_body_for_category(
        self, body: AssignBadgeBody, category: BadgeCategory
    ) -> bool:
        if not body.user_id:
            return False
        if category == BadgeCategory.ACADEMY:
            return bool(body.course_id)
        if category == BadgeCategory.PROJECT:
            return bool(body.project_id)
        if category == BadgeCategory.REQUIREMENT:
            return bool(body.requirement_id)
        return False

    def required_role_for_category(self, category: BadgeCategory) -> str | None:
        return create_strategy(category, self._deps).get_required_role()

    def required_role_for_assignment(self, body: AssignBadgeBody) -> str | None:
        try:
            category = resolve_category(body)
        except CategoryUndeterminedError:
            return None
        return self.required_role_for_category(category)

    def has_required_role(
        self, body: AssignBadgeBody, roles: Collection[str]
    ) -> bool:
        required = self.required_role_for_assignment(body)
        if required is None:
            return True
        return required in roles

    # ------------------------------------------------------------------
    # Read models
    # ------------------------------------------------------------------

    async def get_project_badges(self, project_id: str) -> list[AwardView]:
        records = await self._awards.list_project_badges(project_id)
        return await self._with_display(records)

    async def get_user_badges_by_project_id(self, project_id: str) -> list[AwardView]:
        project = await self._projects.get_with_confirmed_members(project_id)
        if project is None:
            return []
        user_ids = [m.user_id for m in project.confirmed_members if m.user_id]
        records = await self._awards.list_user_badges(user_ids)
        return await self._with_display(records)

    async def _with_display(
        self, records: Sequence[AwardRecord]
    ) -> list[AwardView]:
        views: list[AwardView] = []
        for record in records:
            badge = await self._deps.catalog.get(record.badge_id)
            if badge is None:
                logger.warning("Award record for unknown badge=%s", record.badge_id)
                continue
            views.append(
                AwardView(record=record, name=badge.name, image_path=badge.image_path)
            )
        return views
