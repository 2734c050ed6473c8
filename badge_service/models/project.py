from __future__ import annotations

from dataclasses import dataclass

MEMBER_CONFIRMED = "Confirmed"


@dataclass(frozen=True, slots=True)
class ProjectMember:
    project_id: str
    user_id: str | None  # None until an invited email registers
    status: str = "Pending Confirmation"  # Confirmed|Pending Confirmation|Removed

    @property
    def is_confirmed(self) -> bool:
        return self.status == MEMBER_CONFIRMED and self.user_id is not None


@dataclass(frozen=True, slots=True)
class Project:
    id: str
    name: str
    hackathon_id: str | None = None
    members: tuple[ProjectMember, ...] = ()

    @property
    def confirmed_members(self) -> tuple[ProjectMember, ...]:
        return tuple(m for m in self.members if m.is_confirmed)
