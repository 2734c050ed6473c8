"""Single-record award writes.

Every non-project strategy persists progress through AwardLedger.merge():

  1. read the current record for (subject, badge)
  2. run the state machine on it
  3. write it back conditioned on the requirements_version read in (1)

If another writer got in between (2) and (3) the store rejects the write
with StaleAwardError and the merge starts over from a fresh read.  After
``max_attempts`` rejections the merge gives up with PersistenceError.
"""

from __future__ import annotations

import datetime
import logging

from badge_service.core.config import SETTINGS
from badge_service.core.metrics import AWARD_MERGE_CONFLICTS, BADGES_AWARDED
from badge_service.models.award import AwardRecord, AwardSubject, build_record
from badge_service.models.badge import Badge, Requirement
from badge_service.repos.award_repo import AwardRepo, get_award, upsert_award
from badge_service.services import state_machine
from badge_service.services.errors import PersistenceError, StaleAwardError
from badge_service.services.state_machine import AwardTransition

logger = logging.getLogger(__name__)


class AwardLedger:
    def __init__(
        self,
        awards: AwardRepo,
        *,
        max_attempts: int = SETTINGS.award_merge_attempts,
    ) -> None:
        self._awards = awards
        self._max_attempts = max_attempts

    async def current(self, subject: AwardSubject, badge_id: str) -> AwardRecord | None:
        return await get_award(self._awards, subject, badge_id)

    async def merge(
        self,
        subject: AwardSubject,
        badge: Badge,
        fulfilled: Requirement | None,
        *,
        force_complete: bool = False,
        awarded_by: str | None = None,
        now: datetime.datetime | None = None,
    ) -> AwardTransition:
        for attempt in range(1, self._max_attempts + 1):
            existing = await get_award(self._awards, subject, badge.id)
            transition = state_machine.apply(
                existing.state if existing is not None else None,
                badge.requirements,
                fulfilled,
                force_complete=force_complete,
                now=now,
            )
            if not transition.changed:
                logger.debug(
                    "No change for %s=%s badge=%s",
                    subject.kind,
                    subject.id,
                    badge.id,
                )
                return transition

            record = build_record(
                subject,
                badge.id,
                transition.state,
                awarded_by=awarded_by,
                previous=existing,
            )
            try:
                await upsert_award(
                    self._awards,
                    record,
                    expected_version=(
                        existing.requirements_version if existing is not None else None
                    ),
                )
            except StaleAwardError:
                AWARD_MERGE_CONFLICTS.labels(subject=subject.kind.value).inc()
                logger.info(
                    "Concurrent update on %s=%s badge=%s (attempt %d/%d)",
                    subject.kind,
                    subject.id,
                    badge.id,
                    attempt,
                    self._max_attempts,
                )
                continue

            if transition.newly_approved:
                BADGES_AWARDED.labels(
                    category=badge.category.value, subject=subject.kind.value
                ).inc()
                logger.info(
                    "Badge approved name=%s",
                    badge.name,
                    extra={
                        f"{subject.kind.value}_id": subject.id,
                        "badge_id": badge.id,
                        "awarded_by": awarded_by,
                    },
                )
            return transition

        raise PersistenceError(
            f"could not record progress for {subject.kind} {subject.id} on badge "
            f"{badge.id} after {self._max_attempts} attempts"
        )
