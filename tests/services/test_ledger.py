from __future__ import annotations

import asyncio
import datetime

import pytest

from badge_service.models.award import AwardSubject, UserBadge
from badge_service.models.badge import BadgeAwardStatus, BadgeCategory
from badge_service.repos.award_repo import InMemoryAwardRepo
from badge_service.services.errors import PersistenceError
from badge_service.services.ledger import AwardLedger
from tests.conftest import course_req, make_badge

R1 = course_req("r1", "c1")
R2 = course_req("r2", "c2")
R3 = course_req("r3", "c3")

BADGE = make_badge("full-stack", BadgeCategory.ACADEMY, R1, R2, R3)
ALICE = AwardSubject.user("alice")


class _RacingAwardRepo(InMemoryAwardRepo):
    """Lets another writer slip in ``races`` times before each of our upserts."""

    def __init__(self, races: int, rival_requirement) -> None:
        super().__init__()
        self.races = races
        self.rival_requirement = rival_requirement

    async def upsert_user_badge(self, record, *, expected_version):
        if self.races > 0:
            self.races -= 1
            current = await self.get_user_badge(record.user_id, record.badge_id)
            rival = UserBadge(
                user_id=record.user_id,
                badge_id=record.badge_id,
                evidence=(current.evidence if current else ())
                + (self.rival_requirement,),
                requirements_version=current.requirements_version if current else 1,
            )
            await super().upsert_user_badge(
                rival,
                expected_version=current.requirements_version if current else None,
            )
        return await super().upsert_user_badge(record, expected_version=expected_version)


def test_merge_creates_then_amends_record() -> None:
    repo = InMemoryAwardRepo()
    ledger = AwardLedger(repo)

    async def run():
        await ledger.merge(ALICE, BADGE, R1, awarded_by="sys")
        await ledger.merge(ALICE, BADGE, R2, awarded_by="sys")
        return await repo.get_user_badge("alice", BADGE.id)

    record = asyncio.run(run())
    assert record is not None
    assert record.status == BadgeAwardStatus.PENDING
    assert [r.id for r in record.evidence] == ["r1", "r2"]
    assert record.requirements_version == 2
    assert record.awarded_by == "sys"


def test_noop_merge_does_not_write() -> None:
    repo = InMemoryAwardRepo()
    ledger = AwardLedger(repo)

    async def run():
        await ledger.merge(ALICE, BADGE, R1)
        t = await ledger.merge(ALICE, BADGE, R1)
        return t, await repo.get_user_badge("alice", BADGE.id)

    transition, record = asyncio.run(run())
    assert transition.changed is False
    assert record.requirements_version == 1


def test_concurrent_merge_keeps_both_requirements() -> None:
    # a rival records r2 between our read and our write
    repo = _RacingAwardRepo(races=1, rival_requirement=R2)
    ledger = AwardLedger(repo, max_attempts=3)

    async def run():
        await ledger.merge(ALICE, BADGE, R1)
        return await repo.get_user_badge("alice", BADGE.id)

    record = asyncio.run(run())
    assert {r.id for r in record.evidence} == {"r1", "r2"}
    assert record.requirements_version == 2


def test_concurrent_merges_for_all_requirements_approve() -> None:
    repo = InMemoryAwardRepo()
    ledger = AwardLedger(repo)
    now = datetime.datetime(2026, 3, 1, tzinfo=datetime.UTC)

    async def run():
        await asyncio.gather(
            *(ledger.merge(ALICE, BADGE, r, now=now) for r in (R1, R2, R3))
        )
        return await repo.get_user_badge("alice", BADGE.id)

    record = asyncio.run(run())
    assert record.status == BadgeAwardStatus.APPROVED
    assert {r.id for r in record.evidence} == {"r1", "r2", "r3"}
    assert record.awarded_at == now


def test_merge_gives_up_after_max_attempts() -> None:
    repo = _RacingAwardRepo(races=5, rival_requirement=R2)
    ledger = AwardLedger(repo, max_attempts=2)
    with pytest.raises(PersistenceError, match="after 2 attempts"):
        asyncio.run(ledger.merge(ALICE, BADGE, R1))
