"""SQLAlchemy table definitions.

These map to the frozen dataclass domain models in badge_service/models/.
Repos convert between rows and dataclasses; requirements and evidence are
stored as JSONB arrays of requirement objects.
"""

from __future__ import annotations

import datetime

from sqlalchemy import DateTime, ForeignKey, Index, Integer, String, Text, func
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import Mapped, mapped_column

from badge_service.db.engine import Base

# --- Catalog ---


class BadgeRow(Base):
    __tablename__ = "badges"
    __table_args__ = (
        # containment lookups by course_id / hackathon / requirement id
        Index("ix_badges_requirements", "requirements", postgresql_using="gin"),
    )

    id: Mapped[str] = mapped_column(String(64), primary_key=True)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    description: Mapped[str] = mapped_column(Text, nullable=False, default="")
    category: Mapped[str] = mapped_column(
        String(32), nullable=False
    )  # academy|project|requirement
    points: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    image_path: Mapped[str] = mapped_column(Text, nullable=False, default="")
    requirements: Mapped[list[dict]] = mapped_column(
        JSONB, nullable=False, default=list
    )
    created_at: Mapped[datetime.datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, server_default=func.now()
    )


# --- Award ledger ---


class UserBadgeRow(Base):
    __tablename__ = "user_badges"

    user_id: Mapped[str] = mapped_column(String(64), primary_key=True)
    badge_id: Mapped[str] = mapped_column(
        String(64), ForeignKey("badges.id"), primary_key=True
    )
    status: Mapped[str] = mapped_column(
        String(16), nullable=False, default="pending"
    )  # pending|approved
    evidence: Mapped[list[dict]] = mapped_column(JSONB, nullable=False, default=list)
    awarded_at: Mapped[datetime.datetime | None] = mapped_column(
        DateTime(timezone=True), nullable=True
    )
    awarded_by: Mapped[str | None] = mapped_column(String(64), nullable=True)
    requirements_version: Mapped[int] = mapped_column(
        Integer, nullable=False, default=1
    )


class ProjectBadgeRow(Base):
    __tablename__ = "project_badges"

    project_id: Mapped[str] = mapped_column(
        String(64), ForeignKey("projects.id"), primary_key=True
    )
    badge_id: Mapped[str] = mapped_column(
        String(64), ForeignKey("badges.id"), primary_key=True
    )
    status: Mapped[str] = mapped_column(String(16), nullable=False, default="pending")
    evidence: Mapped[list[dict]] = mapped_column(JSONB, nullable=False, default=list)
    awarded_at: Mapped[datetime.datetime | None] = mapped_column(
        DateTime(timezone=True), nullable=True
    )
    awarded_by: Mapped[str | None] = mapped_column(String(64), nullable=True)
    requirements_version: Mapped[int] = mapped_column(
        Integer, nullable=False, default=1
    )


# --- Projects ---


class ProjectRow(Base):
    __tablename__ = "projects"

    id: Mapped[str] = mapped_column(String(64), primary_key=True)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    hackathon_id: Mapped[str | None] = mapped_column(String(64), nullable=True)


class ProjectMemberRow(Base):
    __tablename__ = "project_members"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    project_id: Mapped[str] = mapped_column(
        String(64), ForeignKey("projects.id"), nullable=False, index=True
    )
    user_id: Mapped[str | None] = mapped_column(String(64), nullable=True)
    status: Mapped[str] = mapped_column(
        String(32), nullable=False, default="Pending Confirmation"
    )  # Confirmed|Pending Confirmation|Removed
