from __future__ import annotations

import datetime
from dataclasses import dataclass
from enum import StrEnum

from badge_service.models.badge import BadgeAwardStatus, Requirement


class SubjectKind(StrEnum):
    USER = "user"
    PROJECT = "project"


@dataclass(frozen=True, slots=True)
class AwardSubject:
    """Who a ledger record belongs to: a user or a team project."""

    kind: SubjectKind
    id: str

    @staticmethod
    def user(user_id: str) -> AwardSubject:
        return AwardSubject(kind=SubjectKind.USER, id=user_id)

    @staticmethod
    def project(project_id: str) -> AwardSubject:
        return AwardSubject(kind=SubjectKind.PROJECT, id=project_id)


@dataclass(frozen=True, slots=True)
class AwardState:
    """The part of a ledger record the state machine computes."""

    status: BadgeAwardStatus
    evidence: tuple[Requirement, ...] = ()
    awarded_at: datetime.datetime | None = None

    @property
    def evidence_ids(self) -> frozenset[str]:
        return frozenset(r.id for r in self.evidence)

    @property
    def is_approved(self) -> bool:
        return self.status == BadgeAwardStatus.APPROVED


@dataclass(frozen=True, slots=True)
class UserBadge:
    """Per-user progress record for one badge.

    Append-only: created on the first fulfilled requirement, amended on
    every later one, never deleted.  requirements_version is the
    optimistic-concurrency token (1 on create, +1 per write).
    """

    user_id: str
    badge_id: str
    status: BadgeAwardStatus = BadgeAwardStatus.PENDING
    evidence: tuple[Requirement, ...] = ()
    awarded_at: datetime.datetime | None = None
    awarded_by: str | None = None
    requirements_version: int = 1

    @property
    def subject(self) -> AwardSubject:
        return AwardSubject.user(self.user_id)

    @property
    def state(self) -> AwardState:
        return AwardState(
            status=self.status, evidence=self.evidence, awarded_at=self.awarded_at
        )


@dataclass(frozen=True, slots=True)
class ProjectBadge:
    """Team-level progress record; same shape as UserBadge."""

    project_id: str
    badge_id: str
    status: BadgeAwardStatus = BadgeAwardStatus.PENDING
    evidence: tuple[Requirement, ...] = ()
    awarded_at: datetime.datetime | None = None
    awarded_by: str | None = None
    requirements_version: int = 1

    @property
    def subject(self) -> AwardSubject:
        return AwardSubject.project(self.project_id)

    @property
    def state(self) -> AwardState:
        return AwardState(
            status=self.status, evidence=self.evidence, awarded_at=self.awarded_at
        )


AwardRecord = UserBadge | ProjectBadge


def build_record(
    subject: AwardSubject,
    badge_id: str,
    state: AwardState,
    *,
    awarded_by: str | None,
    previous: AwardRecord | None,
) -> AwardRecord:
    """Materialize a ledger record for ``subject`` from a computed state.

    The version is carried over from ``previous``; the repo bumps it on
    write.
    """
    version = previous.requirements_version if previous is not None else 1
    if subject.kind == SubjectKind.USER:
        return UserBadge(
            user_id=subject.id,
            badge_id=badge_id,
            status=state.status,
            evidence=state.evidence,
            awarded_at=state.awarded_at,
            awarded_by=awarded_by,
            requirements_version=version,
        )
    return ProjectBadge(
        project_id=subject.id,
        badge_id=badge_id,
        status=state.status,
        evidence=state.evidence,
        awarded_at=state.awarded_at,
        awarded_by=awarded_by,
        requirements_version=version,
    )
