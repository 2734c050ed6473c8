from __future__ import annotations

import asyncio
import sys
from pathlib import Path

import pytest
from fastapi.testclient import TestClient

# Ensure repo root is on sys.path so `import badge_service` works under pytest.
ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from badge_service.api.badges import award_repo, badge_repo, project_repo  # noqa: E402
from badge_service.main import app  # noqa: E402
from badge_service.models.badge import Badge, BadgeCategory, Requirement  # noqa: E402
from badge_service.models.project import (  # noqa: E402
    MEMBER_CONFIRMED,
    Project,
    ProjectMember,
)
from badge_service.repos.award_repo import InMemoryAwardRepo  # noqa: E402
from badge_service.repos.badge_repo import InMemoryBadgeRepo  # noqa: E402
from badge_service.repos.project_repo import InMemoryProjectRepo  # noqa: E402
from badge_service.services import token_service  # noqa: E402
from badge_service.services.assignment_service import (  # noqa: E402
    BadgeAssignmentService,
)


@pytest.fixture(autouse=True)
def reset_badge_state() -> None:
    """Clear the module-level repos the HTTP layer uses between tests."""
    badge_repo._by_id.clear()
    award_repo._store.clear()
    project_repo._by_id.clear()


@pytest.fixture
def client() -> TestClient:
    return TestClient(app)


def mint_token(
    username: str = "test-user",
    roles: list[str] | None = None,
) -> str:
    """Create a valid HS256 JWT for testing."""
    return token_service.create_access_token(sub=username, roles=roles)


@pytest.fixture
def token() -> str:
    """Token with default role (user)."""
    return mint_token()


@pytest.fixture
def admin_token() -> str:
    """Token with admin role."""
    return mint_token(username="test-admin", roles=["admin"])


# ---------------------------------------------------------------------------
# Catalog / project helpers
# ---------------------------------------------------------------------------


def course_req(req_id: str, course_id: str) -> Requirement:
    return Requirement(id=req_id, type="course", course_id=course_id)


def hackathon_req(req_id: str, hackathon: str) -> Requirement:
    return Requirement(id=req_id, type="hackathon", hackathon=hackathon)


def social_req(req_id: str) -> Requirement:
    return Requirement(id=req_id, type="social")


def make_badge(
    badge_id: str,
    category: BadgeCategory,
    *requirements: Requirement,
    name: str | None = None,
) -> Badge:
    return Badge(
        id=badge_id,
        name=name or badge_id.replace("-", " ").title(),
        category=category,
        image_path=f"/img/{badge_id}.png",
        requirements=requirements,
    )


def make_project(
    project_id: str,
    confirmed: list[str],
    *,
    pending: list[str] | None = None,
    hackathon_id: str | None = None,
) -> Project:
    members = [
        ProjectMember(project_id=project_id, user_id=u, status=MEMBER_CONFIRMED)
        for u in confirmed
    ]
    members += [
        ProjectMember(project_id=project_id, user_id=u, status="Pending Confirmation")
        for u in pending or []
    ]
    return Project(
        id=project_id,
        name=f"Project {project_id}",
        hackathon_id=hackathon_id,
        members=tuple(members),
    )


def seed(
    badges: InMemoryBadgeRepo,
    *items: Badge,
    projects: InMemoryProjectRepo | None = None,
    project_list: list[Project] | None = None,
) -> None:
    async def _seed() -> None:
        for badge in items:
            await badges.add(badge)
        for project in project_list or []:
            assert projects is not None
            await projects.add(project)

    asyncio.run(_seed())


class Repos:
    """A fresh set of in-memory repos plus a service wired to them."""

    def __init__(self, *, merge_attempts: int = 3) -> None:
        self.badges = InMemoryBadgeRepo()
        self.awards = InMemoryAwardRepo()
        self.projects = InMemoryProjectRepo()
        self.service = BadgeAssignmentService(
            self.badges, self.awards, self.projects, merge_attempts=merge_attempts
        )

    def seed(self, *badges: Badge, projects: list[Project] | None = None) -> None:
        seed(self.badges, *badges, projects=self.projects, project_list=projects)


@pytest.fixture
def repos() -> Repos:
    return Repos()
