from __future__ import annotations

import logging

from badge_service.models.badge import Badge
from badge_service.repos.badge_repo import BadgeRepo
from badge_service.services.errors import BadgeNotFoundError

logger = logging.getLogger(__name__)


class BadgeCatalog:
    """Read-only badge lookups used by the assignment strategies.

    Course and hackathon lookups treat an empty result as an error: an
    event for a course or hackathon with no badge means the catalog and
    the caller disagree.  Id and requirement lookups may legitimately
    come back empty.
    """

    def __init__(self, badges: BadgeRepo) -> None:
        self._badges = badges

    async def get_by_course_id(self, course_id: str) -> list[Badge]:
        badges = await self._badges.list_by_course(course_id)
        if not badges:
            logger.warning("No academy badges for course=%s", course_id)
            raise BadgeNotFoundError(f"No badges found for course {course_id}")
        return badges

    async def get_by_hackathon_id(self, hackathon_id: str) -> list[Badge]:
        badges = await self._badges.list_by_hackathon(hackathon_id)
        if not badges:
            logger.warning("No project badges for hackathon=%s", hackathon_id)
            raise BadgeNotFoundError(f"No badges found for hackathon {hackathon_id}")
        return badges

    async def get_by_ids(self, badge_ids: list[str]) -> list[Badge]:
        return await self._badges.list_by_ids(badge_ids)

    async def get_by_requirement_id(self, requirement_id: str) -> list[Badge]:
        return await self._badges.list_by_requirement(requirement_id)

    async def get(self, badge_id: str) -> Badge | None:
        return await self._badges.get(badge_id)
