"""Award ledger storage: UserBadge and ProjectBadge records.

CONDITIONAL UPSERT
-------------------
Evidence is merged read-modify-write: read the record, union the new
requirement in, write it back.  Two concurrent merges for the same
(subject, badge) would otherwise lose one update.  Every write therefore
states the requirements_version it read:

  expected_version=None  →  insert; rejected if the record already exists
  expected_version=N     →  update; rejected unless the stored version is N

A rejected write raises StaleAwardError and the caller re-reads and
retries.  Accepted writes store version N+1 (or 1 on insert).

ATOMIC UNITS
-------------
atomic() yields a repo-shaped view whose writes are staged, not visible.
When the ``async with`` block exits cleanly the staged writes are
re-validated against the store and published together; if the block
raises, they are discarded.  Other readers never see half a unit.
"""

from __future__ import annotations

from collections.abc import AsyncIterator
from contextlib import AbstractAsyncContextManager, asynccontextmanager
from dataclasses import replace
from typing import Protocol

from badge_service.models.award import (
    AwardRecord,
    AwardSubject,
    ProjectBadge,
    SubjectKind,
    UserBadge,
)
from badge_service.services.errors import StaleAwardError


class AwardRepo(Protocol):
    async def get_user_badge(self, user_id: str, badge_id: str) -> UserBadge | None: ...
    async def get_project_badge(
        self, project_id: str, badge_id: str
    ) -> ProjectBadge | None: ...
    async def upsert_user_badge(
        self, record: UserBadge, *, expected_version: int | None
    ) -> UserBadge: ...
    async def upsert_project_badge(
        self, record: ProjectBadge, *, expected_version: int | None
    ) -> ProjectBadge: ...
    async def list_user_badges(self, user_ids: list[str]) -> list[UserBadge]: ...
    async def list_project_badges(self, project_id: str) -> list[ProjectBadge]: ...
    def atomic(self) -> AbstractAsyncContextManager[AwardRepo]: ...


async def get_award(
    repo: AwardRepo, subject: AwardSubject, badge_id: str
) -> AwardRecord | None:
    if subject.kind == SubjectKind.USER:
        return await repo.get_user_badge(subject.id, badge_id)
    return await repo.get_project_badge(subject.id, badge_id)


async def upsert_award(
    repo: AwardRepo, record: AwardRecord, *, expected_version: int | None
) -> AwardRecord:
    if isinstance(record, UserBadge):
        return await repo.upsert_user_badge(record, expected_version=expected_version)
    return await repo.upsert_project_badge(record, expected_version=expected_version)


_Key = tuple[SubjectKind, str, str]


def _key(record: AwardRecord) -> _Key:
    return (record.subject.kind, record.subject.id, record.badge_id)


def _versioned(
    current: AwardRecord | None, record: AwardRecord, expected_version: int | None
) -> AwardRecord:
    """Check the optimistic-concurrency token and stamp the next version."""
    current_version = current.requirements_version if current is not None else None
    if current_version != expected_version:
        raise StaleAwardError(record.subject.id, record.badge_id, expected_version)
    next_version = 1 if expected_version is None else expected_version + 1
    return replace(record, requirements_version=next_version)


class _InMemoryAwardUnit:
    """Staged view over an InMemoryAwardRepo for one atomic unit."""

    def __init__(self, repo: InMemoryAwardRepo) -> None:
        self._repo = repo
        self._staged: dict[_Key, AwardRecord] = {}
        # version of each touched key in the backing store when first read
        self._seen: dict[_Key, int | None] = {}

    def _read(self, key: _Key) -> AwardRecord | None:
        if key in self._staged:
            return self._staged[key]
        current = self._repo._store.get(key)
        self._seen.setdefault(
            key, current.requirements_version if current is not None else None
        )
        return current

    async def get_user_badge(self, user_id: str, badge_id: str) -> UserBadge | None:
        return self._read((SubjectKind.USER, user_id, badge_id))  # type: ignore[return-value]

    async def get_project_badge(
        self, project_id: str, badge_id: str
    ) -> ProjectBadge | None:
        return self._read((SubjectKind.PROJECT, project_id, badge_id))  # type: ignore[return-value]

    async def upsert_user_badge(
        self, record: UserBadge, *, expected_version: int | None
    ) -> UserBadge:
        return self._stage(record, expected_version)  # type: ignore[return-value]

    async def upsert_project_badge(
        self, record: ProjectBadge, *, expected_version: int | None
    ) -> ProjectBadge:
        return self._stage(record, expected_version)  # type: ignore[return-value]

    async def list_user_badges(self, user_ids: list[str]) -> list[UserBadge]:
        wanted = set(user_ids)
        merged = {_key(r): r for r in await self._repo.list_user_badges(user_ids)}
        merged.update(
            (k, r)
            for k, r in self._staged.items()
            if isinstance(r, UserBadge) and r.user_id in wanted
        )
        return list(merged.values())  # type: ignore[arg-type]

    async def list_project_badges(self, project_id: str) -> list[ProjectBadge]:
        merged = {_key(r): r for r in await self._repo.list_project_badges(project_id)}
        merged.update(
            (k, r)
            for k, r in self._staged.items()
            if isinstance(r, ProjectBadge) and r.project_id == project_id
        )
        return list(merged.values())  # type: ignore[arg-type]

    @asynccontextmanager
    async def atomic(self) -> AsyncIterator[_InMemoryAwardUnit]:
        # nested units join the enclosing one
        yield self

    def _stage(self, record: AwardRecord, expected_version: int | None) -> AwardRecord:
        key = _key(record)
        staged = _versioned(self._read(key), record, expected_version)
        self._staged[key] = staged
        return staged

    def commit(self) -> None:
        store = self._repo._store
        for key in self._staged:
            current = store.get(key)
            version = current.requirements_version if current is not None else None
            if version != self._seen.get(key):
                _, subject_id, badge_id = key
                raise StaleAwardError(subject_id, badge_id, self._seen.get(key))
        store.update(self._staged)


class InMemoryAwardRepo:
    _unit_class = _InMemoryAwardUnit

    def __init__(self) -> None:
        self._store: dict[_Key, AwardRecord] = {}

    async def get_user_badge(self, user_id: str, badge_id: str) -> UserBadge | None:
        return self._store.get((SubjectKind.USER, user_id, badge_id))  # type: ignore[return-value]

    async def get_project_badge(
        self, project_id: str, badge_id: str
    ) -> ProjectBadge | None:
        return self._store.get((SubjectKind.PROJECT, project_id, badge_id))  # type: ignore[return-value]

    async def upsert_user_badge(
        self, record: UserBadge, *, expected_version: int | None
    ) -> UserBadge:
        return self._write(record, expected_version)  # type: ignore[return-value]

    async def upsert_project_badge(
        self, record: ProjectBadge, *, expected_version: int | None
    ) -> ProjectBadge:
        return self._write(record, expected_version)  # type: ignore[return-value]

    async def list_user_badges(self, user_ids: list[str]) -> list[UserBadge]:
        wanted = set(user_ids)
        return [
            r
            for r in self._store.values()
            if isinstance(r, UserBadge) and r.user_id in wanted
        ]

    async def list_project_badges(self, project_id: str) -> list[ProjectBadge]:
        return [
            r
            for r in self._store.values()
            if isinstance(r, ProjectBadge) and r.project_id == project_id
        ]

    @asynccontextmanager
    async def atomic(self) -> AsyncIterator[_InMemoryAwardUnit]:
        unit = self._unit_class(self)
        yield unit
        unit.commit()

    # The check and the write run without an await in between, so on a
    # single event loop they cannot interleave with another write.
    def _write(self, record: AwardRecord, expected_version: int | None) -> AwardRecord:
        key = _key(record)
        stored = _versioned(self._store.get(key), record, expected_version)
        self._store[key] = stored
        return stored
