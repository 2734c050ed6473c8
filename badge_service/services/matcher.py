from __future__ import annotations

from enum import StrEnum

from badge_service.models.badge import Badge, Requirement


class Discriminant(StrEnum):
    """Which requirement field an incoming event is matched against."""

    COURSE_ID = "course_id"
    HACKATHON = "hackathon"
    REQUIREMENT_ID = "requirement_id"


def _field(requirement: Requirement, discriminant: Discriminant) -> str | None:
    if discriminant == Discriminant.COURSE_ID:
        return requirement.course_id
    if discriminant == Discriminant.HACKATHON:
        return requirement.hackathon
    return requirement.id


def match_requirement(
    badge: Badge, discriminant: Discriminant, value: str
) -> Requirement | None:
    """Return the first requirement of ``badge`` the event satisfies.

    Requirements are scanned in catalog order, so when two share the same
    course or hackathon the earlier one wins.  None means the event does
    not touch this badge.
    """
    for requirement in badge.requirements:
        if _field(requirement, discriminant) == value:
            return requirement
    return None
