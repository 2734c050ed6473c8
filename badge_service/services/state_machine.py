"""Award state machine for one (subject, badge) pair.

    NonExistent ──fulfil some──▶ Pending ──fulfil rest──▶ Approved
         │                                                   ▲
         └──────────── fulfil all / force_complete ──────────┘

Approved is terminal: nothing moves a record back to pending, and the
awarded_at stamped on entry is never replaced.

apply() is pure.  It does not read or write storage; the ledger and the
transaction coordinator feed it the stored state and persist what it
returns.
"""

from __future__ import annotations

import datetime
from collections.abc import Sequence
from dataclasses import dataclass

from badge_service.models.award import AwardState
from badge_service.models.badge import BadgeAwardStatus, Requirement


@dataclass(frozen=True, slots=True)
class AwardTransition:
    state: AwardState
    # True only on the call that moves the record into approved, or on a
    # forced completion; gates whether the badge is reported to the caller.
    newly_approved: bool
    # False when the call is a no-op and nothing needs to be written.
    changed: bool


def _merge_evidence(
    prior: Sequence[Requirement],
    fulfilled: Requirement,
    requirements: Sequence[Requirement],
) -> tuple[Requirement, ...]:
    by_id = {r.id: r for r in requirements}
    # keep fulfilment order; drop anything the badge no longer requires
    merged = [by_id[r.id] for r in prior if r.id in by_id]
    if all(r.id != fulfilled.id for r in merged):
        merged.append(by_id[fulfilled.id])
    return tuple(merged)


def apply(
    existing: AwardState | None,
    requirements: Sequence[Requirement],
    fulfilled: Requirement | None,
    *,
    force_complete: bool = False,
    now: datetime.datetime | None = None,
) -> AwardTransition:
    """Compute the next award state after ``fulfilled`` is satisfied.

    With ``force_complete`` the triggering requirement is irrelevant (it
    may be None): evidence becomes the full requirement set and the
    record is approved.
    """
    if fulfilled is None and not force_complete:
        raise ValueError("a fulfilled requirement is required unless forcing")
    if fulfilled is not None and all(r.id != fulfilled.id for r in requirements):
        raise ValueError(f"requirement {fulfilled.id!r} is not part of this badge")

    now = now or datetime.datetime.now(datetime.UTC)
    was_approved = existing is not None and existing.is_approved

    if force_complete:
        evidence = tuple(requirements)
        status = BadgeAwardStatus.APPROVED
        newly_approved = True
    else:
        assert fulfilled is not None
        prior = existing.evidence if existing is not None else ()
        evidence = _merge_evidence(prior, fulfilled, requirements)
        covered = {r.id for r in evidence}
        all_met = all(r.id in covered for r in requirements)
        status = (
            BadgeAwardStatus.APPROVED
            if all_met or was_approved
            else BadgeAwardStatus.PENDING
        )
        newly_approved = status == BadgeAwardStatus.APPROVED and not was_approved

    awarded_at = existing.awarded_at if existing is not None else None
    if awarded_at is None and status == BadgeAwardStatus.APPROVED:
        awarded_at = now

    state = AwardState(status=status, evidence=evidence, awarded_at=awarded_at)
    return AwardTransition(
        state=state,
        newly_approved=newly_approved,
        changed=_differs(existing, state),
    )


def _differs(existing: AwardState | None, state: AwardState) -> bool:
    if existing is None:
        return True
    return (
        existing.status != state.status
        or [r.id for r in existing.evidence] != [r.id for r in state.evidence]
        or existing.awarded_at != state.awarded_at
    )
