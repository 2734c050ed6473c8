from __future__ import annotations

import asyncio

import pytest

from badge_service.models.assignment import AssignBadgeBody
from badge_service.models.badge import BadgeAwardStatus, BadgeCategory
from badge_service.services.assignment_service import create_strategy
from badge_service.services.errors import (
    BadgeNotFoundError,
    BadgeValidationError,
    ProjectNotFoundError,
)
from badge_service.services.strategies import (
    AcademyStrategy,
    BadgeByRequirementStrategy,
    ProjectStrategy,
    SocialStrategy,
)
from tests.conftest import (
    Repos,
    course_req,
    hackathon_req,
    make_badge,
    make_project,
    social_req,
)


def _strategy(repos: Repos, category: BadgeCategory):
    return create_strategy(category, repos.service._deps)


# ---------------------------------------------------------------------------
# Academy
# ---------------------------------------------------------------------------


def test_academy_two_step_approval(repos: Repos) -> None:
    r1, r2 = course_req("r1", "c1"), course_req("r2", "c2")
    repos.seed(make_badge("b", BadgeCategory.ACADEMY, r1, r2, name="B"))
    strategy = _strategy(repos, BadgeCategory.ACADEMY)

    first = asyncio.run(
        strategy.assign_badge(AssignBadgeBody(user_id="u", course_id="c1"))
    )
    record = asyncio.run(repos.awards.get_user_badge("u", "b"))
    assert first.success is True
    assert first.badges == []
    assert record.status == BadgeAwardStatus.PENDING
    assert [r.id for r in record.evidence] == ["r1"]

    second = asyncio.run(
        strategy.assign_badge(AssignBadgeBody(user_id="u", course_id="c2"))
    )
    record = asyncio.run(repos.awards.get_user_badge("u", "b"))
    assert [b.name for b in second.badges] == ["B"]
    assert second.badges[0].completed_requirement.id == "r2"
    assert second.badge_id == "b"
    assert record.status == BadgeAwardStatus.APPROVED
    assert [r.id for r in record.evidence] == ["r1", "r2"]
    assert record.awarded_at is not None


def test_academy_repeat_after_approval_is_idempotent(repos: Repos) -> None:
    repos.seed(make_badge("b", BadgeCategory.ACADEMY, course_req("r1", "c1")))
    strategy = _strategy(repos, BadgeCategory.ACADEMY)
    body = AssignBadgeBody(user_id="u", course_id="c1")

    first = asyncio.run(strategy.assign_badge(body))
    before = asyncio.run(repos.awards.get_user_badge("u", "b"))
    second = asyncio.run(strategy.assign_badge(body))
    after = asyncio.run(repos.awards.get_user_badge("u", "b"))

    assert len(first.badges) == 1
    assert second.success is True and second.badges == []
    assert after == before


def test_academy_unknown_course_raises(repos: Repos) -> None:
    strategy = _strategy(repos, BadgeCategory.ACADEMY)
    with pytest.raises(BadgeNotFoundError):
        asyncio.run(strategy.assign_badge(AssignBadgeBody(user_id="u", course_id="x")))


def test_academy_requires_course_id(repos: Repos) -> None:
    with pytest.raises(BadgeValidationError, match="courseId"):
        asyncio.run(
            AcademyStrategy(repos.service._deps).assign_badge(
                AssignBadgeBody(user_id="u")
            )
        )


# ---------------------------------------------------------------------------
# Social / by requirement
# ---------------------------------------------------------------------------


def test_social_first_call_awards_second_is_noop(repos: Repos) -> None:
    repos.seed(
        make_badge("s", BadgeCategory.REQUIREMENT, social_req("twitter-follow"), name="S")
    )
    strategy = _strategy(repos, BadgeCategory.REQUIREMENT)
    body = AssignBadgeBody(user_id="u", requirement_id="twitter-follow")

    first = asyncio.run(strategy.assign_badge(body))
    second = asyncio.run(strategy.assign_badge(body))
    record = asyncio.run(repos.awards.get_user_badge("u", "s"))

    assert [b.name for b in first.badges] == ["S"]
    assert second.success is True
    assert second.badges == []
    assert [r.id for r in record.evidence] == ["twitter-follow"]
    assert record.requirements_version == 1


def test_social_unlinked_requirement_is_success(repos: Repos) -> None:
    result = asyncio.run(
        BadgeByRequirementStrategy(repos.service._deps).assign_badge(
            AssignBadgeBody(user_id="u", requirement_id="nothing")
        )
    )
    assert result.success is True
    assert result.badges == []
    assert "No badges linked to requirement nothing" in result.message


def test_social_alias_is_same_strategy() -> None:
    assert SocialStrategy is BadgeByRequirementStrategy


# ---------------------------------------------------------------------------
# Project
# ---------------------------------------------------------------------------


def test_project_bypass_awards_all_members_and_project(repos: Repos) -> None:
    b1 = make_badge(
        "b1", BadgeCategory.PROJECT, hackathon_req("h1", "hack"), social_req("demo")
    )
    b2 = make_badge("b2", BadgeCategory.PROJECT, hackathon_req("h2", "hack"))
    repos.seed(
        b1,
        b2,
        projects=[make_project("p", ["u1", "u2", "u3"], pending=["u4"])],
    )

    result = asyncio.run(
        _strategy(repos, BadgeCategory.PROJECT).assign_badge(
            AssignBadgeBody(user_id="admin", project_id="p", badges_id=["b1", "b2"]),
            "admin",
        )
    )

    assert result.success is True
    users = asyncio.run(repos.awards.list_user_badges(["u1", "u2", "u3", "u4"]))
    projects = asyncio.run(repos.awards.list_project_badges("p"))
    assert len([u for u in users if u.badge_id == "b1"]) == 3
    assert {u.user_id for u in users} == {"u1", "u2", "u3"}
    assert len(projects) == 2
    for record in [*users, *projects]:
        badge = b1 if record.badge_id == "b1" else b2
        assert record.status == BadgeAwardStatus.APPROVED
        assert record.evidence == badge.requirements
        assert record.awarded_by == "admin"
    # one entry per newly approved record: (3 members + project) x 2 badges
    assert len(result.badges) == 8
    assert result.badges[0].completed_requirement.id == "h1"


def test_project_hackathon_path_matches_requirement(repos: Repos) -> None:
    badge = make_badge(
        "b", BadgeCategory.PROJECT, hackathon_req("h", "hack"), social_req("pitch")
    )
    repos.seed(badge, projects=[make_project("p", ["u1"])])

    result = asyncio.run(
        _strategy(repos, BadgeCategory.PROJECT).assign_badge(
            AssignBadgeBody(user_id="admin", project_id="p", hackathon_id="hack")
        )
    )
    record = asyncio.run(repos.awards.get_user_badge("u1", "b"))
    assert result.success is True
    assert result.badges == []
    assert record.status == BadgeAwardStatus.PENDING
    assert [r.id for r in record.evidence] == ["h"]


def test_project_without_confirmed_members_raises(repos: Repos) -> None:
    repos.seed(
        make_badge("b", BadgeCategory.PROJECT, hackathon_req("h", "hack")),
        projects=[make_project("p", [], pending=["u1"])],
    )
    with pytest.raises(ProjectNotFoundError):
        asyncio.run(
            ProjectStrategy(repos.service._deps).assign_badge(
                AssignBadgeBody(user_id="a", project_id="p", hackathon_id="hack")
            )
        )


def test_project_requires_hackathon_or_badges(repos: Repos) -> None:
    with pytest.raises(BadgeValidationError, match="hackathonId or badgesId"):
        asyncio.run(
            ProjectStrategy(repos.service._deps).assign_badge(
                AssignBadgeBody(user_id="a", project_id="p")
            )
        )


def test_project_unknown_badge_ids_assign_nothing(repos: Repos) -> None:
    repos.seed(projects=[make_project("p", ["u1"])])
    result = asyncio.run(
        ProjectStrategy(repos.service._deps).assign_badge(
            AssignBadgeBody(user_id="a", project_id="p", badges_id=["ghost"])
        )
    )
    assert result.success is True
    assert result.message == "No badges to assign"


def test_required_roles() -> None:
    repos = Repos()
    assert ProjectStrategy(repos.service._deps).get_required_role() == "admin"
    assert AcademyStrategy(repos.service._deps).get_required_role() is None
    assert BadgeByRequirementStrategy(repos.service._deps).get_required_role() is None
