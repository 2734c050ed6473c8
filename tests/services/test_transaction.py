from __future__ import annotations

import asyncio

import pytest

from badge_service.models.award import AwardSubject, UserBadge
from badge_service.models.badge import BadgeAwardStatus, BadgeCategory
from badge_service.repos.award_repo import InMemoryAwardRepo, _InMemoryAwardUnit
from badge_service.services.errors import TransactionAbortedError
from badge_service.services.transaction import AwardIntent, TransactionCoordinator
from tests.conftest import hackathon_req, make_badge

REQ = hackathon_req("winner", "hack-1")
BADGE = make_badge("hack-winner", BadgeCategory.PROJECT, REQ)


def _intents(*users: str, project: str = "p1", force: bool = False) -> list[AwardIntent]:
    subjects = [AwardSubject.user(u) for u in users] + [AwardSubject.project(project)]
    return [
        AwardIntent(
            subject=s,
            badge=BADGE,
            requirement=None if force else REQ,
            force_complete=force,
        )
        for s in subjects
    ]


class _FailingUnit(_InMemoryAwardUnit):
    """Fails the second user write of the unit."""

    async def upsert_user_badge(self, record, *, expected_version):
        self.writes = getattr(self, "writes", 0) + 1
        if self.writes == 2:
            raise RuntimeError("disk full")
        return await super().upsert_user_badge(
            record, expected_version=expected_version
        )


class _FlakyAwardRepo(InMemoryAwardRepo):
    _unit_class = _FailingUnit


def test_commit_approves_members_and_project() -> None:
    repo = InMemoryAwardRepo()

    async def run():
        outcomes = await TransactionCoordinator(repo).commit(
            _intents("u1", "u2"), awarded_by="judge"
        )
        return outcomes, await repo.list_user_badges(["u1", "u2"]), (
            await repo.get_project_badge("p1", BADGE.id)
        )

    outcomes, users, project = asyncio.run(run())
    assert all(o.newly_approved for o in outcomes)
    assert {u.user_id for u in users} == {"u1", "u2"}
    assert all(u.status == BadgeAwardStatus.APPROVED for u in users)
    assert project is not None and project.awarded_by == "judge"


def test_failure_mid_unit_writes_nothing() -> None:
    repo = _FlakyAwardRepo()
    coordinator = TransactionCoordinator(repo)

    with pytest.raises(TransactionAbortedError, match="disk full"):
        asyncio.run(coordinator.commit(_intents("u1", "u2", "u3")))

    assert repo._store == {}


def test_concurrent_writer_aborts_unit() -> None:
    repo = InMemoryAwardRepo()

    class _Interleaved(_InMemoryAwardUnit):
        async def upsert_project_badge(self, record, *, expected_version):
            # someone else creates u1's record after the unit read it
            await repo.upsert_user_badge(
                UserBadge(user_id="u1", badge_id=BADGE.id), expected_version=None
            )
            return await super().upsert_project_badge(
                record, expected_version=expected_version
            )

    repo._unit_class = _Interleaved  # type: ignore[assignment]
    with pytest.raises(TransactionAbortedError, match="stale award record"):
        asyncio.run(TransactionCoordinator(repo).commit(_intents("u1")))

    assert asyncio.run(repo.get_project_badge("p1", BADGE.id)) is None


def test_already_approved_subjects_are_skipped() -> None:
    repo = InMemoryAwardRepo()
    coordinator = TransactionCoordinator(repo)
    asyncio.run(coordinator.commit(_intents("u1")))

    outcomes = asyncio.run(coordinator.commit(_intents("u1", "u2")))
    by_subject = {o.intent.subject.id: o for o in outcomes}
    assert by_subject["u1"].transition is None
    assert by_subject["p1"].transition is None
    assert by_subject["u2"].newly_approved is True

    u1 = asyncio.run(repo.get_user_badge("u1", BADGE.id))
    assert u1.requirements_version == 1


def test_forced_unit_records_full_evidence() -> None:
    repo = InMemoryAwardRepo()
    asyncio.run(TransactionCoordinator(repo).commit(_intents("u1", force=True)))
    record = asyncio.run(repo.get_user_badge("u1", BADGE.id))
    assert record.evidence == BADGE.requirements
    assert record.status == BadgeAwardStatus.APPROVED
