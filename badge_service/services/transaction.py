"""Multi-record award commits for team projects.

WHY A UNIT
-----------
Awarding a hackathon badge to a project touches N+1 ledger records: one
UserBadge per confirmed member and one ProjectBadge.  A team where two
members got the badge and the third did not (because the third write
failed) is a state nobody can explain later.  So the whole set is one
unit:

  - every read inside the unit sees the same snapshot
  - every write is staged until the unit finishes
  - if any read, state computation or write raises, nothing is published

There is no checkpoint in the middle.  A failed unit leaves the ledger
exactly as it was, and the caller retries the whole assignment.

INTENTS
--------
The project strategy describes what it wants as a list of AwardIntent
values (subject, badge, requirement or forced flag).  The coordinator
runs each one through the state machine inside the unit.  A subject
whose record is already approved is skipped: forcing an approved badge
again would only re-announce it.
"""

from __future__ import annotations

import datetime
import logging
from collections.abc import Sequence
from dataclasses import dataclass

from badge_service.core.metrics import AWARD_TRANSACTIONS, BADGES_AWARDED
from badge_service.models.award import AwardSubject, build_record
from badge_service.models.badge import Badge, Requirement
from badge_service.repos.award_repo import AwardRepo, get_award, upsert_award
from badge_service.services import state_machine
from badge_service.services.errors import TransactionAbortedError
from badge_service.services.state_machine import AwardTransition

logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class AwardIntent:
    subject: AwardSubject
    badge: Badge
    requirement: Requirement | None
    force_complete: bool = False


@dataclass(frozen=True, slots=True)
class AwardOutcome:
    intent: AwardIntent
    transition: AwardTransition | None  # None: already approved, skipped

    @property
    def newly_approved(self) -> bool:
        return self.transition is not None and self.transition.newly_approved


class TransactionCoordinator:
    def __init__(self, awards: AwardRepo) -> None:
        self._awards = awards

    async def commit(
        self,
        intents: Sequence[AwardIntent],
        *,
        awarded_by: str | None = None,
        now: datetime.datetime | None = None,
    ) -> list[AwardOutcome]:
        now = now or datetime.datetime.now(datetime.UTC)
        try:
            async with self._awards.atomic() as unit:
                outcomes: list[AwardOutcome] = []
                for intent in intents:
                    outcomes.append(await self._apply(unit, intent, awarded_by, now))
        except Exception as exc:
            AWARD_TRANSACTIONS.labels(outcome="rolled_back").inc()
            logger.warning(
                "Award unit rolled back (%d intents): %s", len(intents), exc
            )
            raise TransactionAbortedError(str(exc)) from exc

        AWARD_TRANSACTIONS.labels(outcome="committed").inc()
        for outcome in outcomes:
            if outcome.newly_approved:
                BADGES_AWARDED.labels(
                    category=outcome.intent.badge.category.value,
                    subject=outcome.intent.subject.kind.value,
                ).inc()
        logger.info(
            "Award unit committed intents=%d approved=%d",
            len(intents),
            sum(1 for o in outcomes if o.newly_approved),
        )
        return outcomes

    async def _apply(
        self,
        unit: AwardRepo,
        intent: AwardIntent,
        awarded_by: str | None,
        now: datetime.datetime,
    ) -> AwardOutcome:
        existing = await get_award(unit, intent.subject, intent.badge.id)
        if existing is not None and existing.state.is_approved:
            return AwardOutcome(intent=intent, transition=None)

        transition = state_machine.apply(
            existing.state if existing is not None else None,
            intent.badge.requirements,
            intent.requirement,
            force_complete=intent.force_complete,
            now=now,
        )
        if transition.changed:
            record = build_record(
                intent.subject,
                intent.badge.id,
                transition.state,
                awarded_by=awarded_by,
                previous=existing,
            )
            await upsert_award(
                unit,
                record,
                expected_version=(
                    existing.requirements_version if existing is not None else None
                ),
            )
        return AwardOutcome(intent=intent, transition=transition)
