"""Error taxonomy of the award engine.

Every error a strategy can raise derives from BadgeAssignmentError so the
dispatcher can tell domain failures (logged at WARNING, message surfaced
to the caller) from unexpected ones (logged with a traceback).
"""

from __future__ import annotations


class BadgeAssignmentError(Exception):
    pass


class BadgeNotFoundError(BadgeAssignmentError):
    pass


class ProjectNotFoundError(BadgeNotFoundError):
    pass


class CategoryUndeterminedError(BadgeAssignmentError):
    pass


class BadgeValidationError(BadgeAssignmentError, ValueError):
    pass


class PersistenceError(BadgeAssignmentError):
    pass


class StaleAwardError(PersistenceError):
    """A conditional upsert found a newer requirements_version than expected."""

    def __init__(self, subject_id: str, badge_id: str, expected: int | None) -> None:
        super().__init__(
            f"stale award record subject={subject_id} badge={badge_id} "
            f"expected_version={expected}"
        )
        self.subject_id = subject_id
        self.badge_id = badge_id
        self.expected = expected


class TransactionAbortedError(BadgeAssignmentError):
    pass
