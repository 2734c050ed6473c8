from __future__ import annotations

from typing import Protocol

from badge_service.models.badge import Badge, BadgeCategory


class BadgeRepo(Protocol):
    async def get(self, badge_id: str) -> Badge | None: ...
    async def list_by_course(self, course_id: str) -> list[Badge]: ...
    async def list_by_hackathon(self, hackathon_id: str) -> list[Badge]: ...
    async def list_by_ids(self, badge_ids: list[str]) -> list[Badge]: ...
    async def list_by_requirement(self, requirement_id: str) -> list[Badge]: ...
    async def add(self, badge: Badge) -> None: ...


class InMemoryBadgeRepo:
    """Catalog kept in insertion order, which is the order lookups return."""

    def __init__(self) -> None:
        self._by_id: dict[str, Badge] = {}

    async def get(self, badge_id: str) -> Badge | None:
        return self._by_id.get(badge_id)

    async def list_by_course(self, course_id: str) -> list[Badge]:
        return [
            b
            for b in self._by_id.values()
            if b.category == BadgeCategory.ACADEMY
            and any(r.course_id == course_id for r in b.requirements)
        ]

    async def list_by_hackathon(self, hackathon_id: str) -> list[Badge]:
        return [
            b
            for b in self._by_id.values()
            if b.category == BadgeCategory.PROJECT
            and any(r.hackathon == hackathon_id for r in b.requirements)
        ]

    async def list_by_ids(self, badge_ids: list[str]) -> list[Badge]:
        wanted = set(badge_ids)
        return [b for b in self._by_id.values() if b.id in wanted]

    async def list_by_requirement(self, requirement_id: str) -> list[Badge]:
        return [b for b in self._by_id.values() if b.has_requirement(requirement_id)]

    async def add(self, badge: Badge) -> None:
        if badge.id in self._by_id:
            raise ValueError("badge already exists")
        self._by_id[badge.id] = badge
