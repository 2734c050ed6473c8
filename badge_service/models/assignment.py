"""Request/response shapes of a badge assignment call.

AssignBadgeBody is what the route layer (or an internal event callback)
hands to the dispatcher.  Field names are snake_case in Python; the
camelCase aliases (courseId, badgesId, ...) are what JSON callers send.
Both spellings are accepted.
"""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from badge_service.models.badge import BadgeCategory, Requirement


class AssignBadgeBody(BaseModel):
    model_config = ConfigDict(
        alias_generator=to_camel, populate_by_name=True, frozen=True
    )

    user_id: str
    category: BadgeCategory | None = None
    course_id: str | None = None
    hackathon_id: str | None = None
    project_id: str | None = None
    requirement_id: str | None = None
    # admin/judge override: award these badges to a project outright
    badges_id: list[str] | None = None


class RequirementOut(BaseModel):
    id: str
    type: str
    course_id: str | None = None
    hackathon: str | None = None
    points: int | None = None
    description: str | None = None

    @staticmethod
    def from_requirement(requirement: Requirement) -> RequirementOut:
        return RequirementOut(**requirement.to_dict())


class BadgeData(BaseModel):
    name: str
    image_path: str
    completed_requirement: RequirementOut | None = None


class AssignBadgeResult(BaseModel):
    success: bool
    message: str
    badge_id: str = ""
    user_id: str = ""
    badges: list[BadgeData] = Field(default_factory=list)

    @staticmethod
    def failure(message: str, *, user_id: str = "") -> AssignBadgeResult:
        return AssignBadgeResult(
            success=False, message=message, badge_id="", user_id=user_id, badges=[]
        )
