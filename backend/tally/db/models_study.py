"""
SQLAlchemy Database Models for Study Tracking

Tables:
- qualifications: Goals (exams/certifications) with exam date, weekly
  target and the legacy goal-wide quota mode
- study_materials: Materials belonging to a qualification, with progress
  and per-material quota configuration
- study_logs: Progress ledger entries (one dated amount per row)
- memos: Free-form notes attached to a qualification
- memo_images: Images attached to a memo

Deletes are cascaded explicitly by the repository rather than through
ORM relationship cascades, so every removed row is visible in one place
(see tally/db/repository.py).

ARCHITECTURE NOTE:
    This file contains SQLALCHEMY models for database persistence.
    There is a corresponding Pydantic file: tally/models/study.py

    Data flows: Database → SQLAlchemy → Pydantic snapshot → Ledger
"""

from datetime import date, datetime, timezone
from typing import Optional

from sqlalchemy import Boolean, Date, DateTime, ForeignKey, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from tally.db.base import Base


def _utc_now() -> datetime:
    """Return current UTC time as timezone-aware datetime."""
    return datetime.now(timezone.utc)


# ===========================================
# Goals
# ===========================================


class Qualification(Base):
    """
    A study goal such as an exam or certification.

    Attributes:
        id: Opaque string identifier (UUID4).
        name: Display name of the goal.
        exam_date: Date of the exam. Null when the user has not set one;
            auto quotas then fall back to their manual value.
        weekly_target_days: How many days per week the user intends to
            study (1-7).
        quota_mode: Legacy goal-wide quota mode ("manual" or "auto").
        is_selected: Whether this goal is shown on the dashboard. Exactly
            one goal is selected whenever at least one exists.
        created_at: Creation timestamp, used to pick the next selected goal.
    """

    __tablename__ = "qualifications"

    id: Mapped[str] = mapped_column(String(36), primary_key=True)
    name: Mapped[str] = mapped_column(String(200))
    exam_date: Mapped[Optional[date]] = mapped_column(Date)
    weekly_target_days: Mapped[int] = mapped_column(Integer, default=4)
    quota_mode: Mapped[str] = mapped_column(String(20), default="manual")
    is_selected: Mapped[bool] = mapped_column(Boolean, default=False)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=_utc_now)


# ===========================================
# Materials & Ledger
# ===========================================


class StudyMaterial(Base):
    """
    A trackable unit of study content.

    Attributes:
        id: Opaque string identifier (UUID4).
        qualification_id: Owning goal.
        name: Display name (book title, video course, ...).
        unit: "count" or "time" (time is tracked in minutes).
        unit_label: Label for count units, e.g. "pages" or "problems".
        total_amount: Total amount of work in the material.
        current_progress: Completed amount, kept within [0, total_amount].
        quota_mode: "manual" or "auto".
        daily_quota: Manual daily quota, also the auto fallback.
        deadline: Material-level deadline overriding the exam date.
        use_weekly_target: Scale auto quotas by weekly target days / 7.
        order: Display position within the goal.
        created_at: Creation timestamp, tie-breaker for ``order``.
    """

    __tablename__ = "study_materials"

    id: Mapped[str] = mapped_column(String(36), primary_key=True)
    qualification_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("qualifications.id"), index=True
    )
    name: Mapped[str] = mapped_column(String(200))
    unit: Mapped[str] = mapped_column(String(20), default="count")
    unit_label: Mapped[str] = mapped_column(String(50), default="pages")
    total_amount: Mapped[int] = mapped_column(Integer, default=0)
    current_progress: Mapped[int] = mapped_column(Integer, default=0)

    # Quota configuration
    quota_mode: Mapped[str] = mapped_column(String(20), default="manual")
    daily_quota: Mapped[int] = mapped_column(Integer, default=0)
    deadline: Mapped[Optional[date]] = mapped_column(Date)
    use_weekly_target: Mapped[bool] = mapped_column(Boolean, default=False)

    order: Mapped[int] = mapped_column(Integer, default=0)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=_utc_now)


class StudyLog(Base):
    """
    One progress ledger entry.

    Attributes:
        id: Opaque string identifier (UUID4).
        material_id: Material the work was logged against.
        day: Day key (local calendar date) the work belongs to.
        amount: Amount logged, in the material's unit. Always positive;
            corrections that bring it to zero delete the row.
        created_at: When the row was written.
    """

    __tablename__ = "study_logs"

    id: Mapped[str] = mapped_column(String(36), primary_key=True)
    material_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("study_materials.id"), index=True
    )
    day: Mapped[date] = mapped_column(Date, index=True)
    amount: Mapped[int] = mapped_column(Integer)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=_utc_now)


# ===========================================
# Memos
# ===========================================


class Memo(Base):
    """Free-form note attached to a qualification."""

    __tablename__ = "memos"

    id: Mapped[str] = mapped_column(String(36), primary_key=True)
    qualification_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("qualifications.id"), index=True
    )
    content: Mapped[str] = mapped_column(Text, default="")
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=_utc_now)


class MemoImage(Base):
    """Image attached to a memo, stored by path."""

    __tablename__ = "memo_images"

    id: Mapped[str] = mapped_column(String(36), primary_key=True)
    memo_id: Mapped[str] = mapped_column(String(36), ForeignKey("memos.id"), index=True)
    file_path: Mapped[str] = mapped_column(String(1000))
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=_utc_now)
