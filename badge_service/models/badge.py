from __future__ import annotations

from dataclasses import dataclass, field
from enum import StrEnum


class BadgeCategory(StrEnum):
    ACADEMY = "academy"
    PROJECT = "project"
    # ad-hoc / social tasks, awarded by requirement id
    REQUIREMENT = "requirement"


class BadgeAwardStatus(StrEnum):
    PENDING = "pending"
    APPROVED = "approved"


@dataclass(frozen=True, slots=True)
class Requirement:
    """One atomic condition that contributes toward a badge.

    Exactly one of course_id / hackathon is usually set; social
    requirements carry neither and are matched by id.
    """

    id: str
    type: str  # course|hackathon|social|...
    course_id: str | None = None
    hackathon: str | None = None
    points: int | None = None
    description: str | None = None

    def to_dict(self) -> dict[str, object]:
        return {
            "id": self.id,
            "type": self.type,
            "course_id": self.course_id,
            "hackathon": self.hackathon,
            "points": self.points,
            "description": self.description,
        }

    @staticmethod
    def from_dict(data: dict) -> Requirement:
        return Requirement(
            id=str(data["id"]),
            type=str(data.get("type", "")),
            course_id=data.get("course_id"),
            hackathon=data.get("hackathon"),
            points=data.get("points"),
            description=data.get("description"),
        )


@dataclass(frozen=True, slots=True)
class Badge:
    """Achievement definition, owned by catalog storage."""

    id: str
    name: str
    category: BadgeCategory
    description: str = ""
    points: int = 0
    image_path: str = ""
    requirements: tuple[Requirement, ...] = field(default_factory=tuple)

    def __post_init__(self) -> None:
        ids = [r.id for r in self.requirements]
        if len(ids) != len(set(ids)):
            raise ValueError(f"badge {self.id!r} has duplicate requirement ids")

    def has_requirement(self, requirement_id: str) -> bool:
        return any(r.id == requirement_id for r in self.requirements)
