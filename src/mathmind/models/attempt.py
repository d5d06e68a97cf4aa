"""
Attempt models for MathMind.

An attempt is one student's traversal of a task graph within a class. This is the
INSTANCE LAYER that pairs with TaskGraph (template layer). At most one attempt
exists per (student, class, task).
"""

from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field
from sqlalchemy import Boolean, DateTime, ForeignKey, Index, Integer, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship
from sqlalchemy.sql import func

from .base import Base, TimestampMixin, utcnow

# ============================================================================
# Pydantic Models (for API/validation)
# ============================================================================


class Attempt(BaseModel):
    """Complete attempt entity."""

    model_config = ConfigDict(from_attributes=True)

    id: str
    task_id: str
    class_id: str
    student_id: str

    current_node: str
    completed: bool = False

    created_at: datetime
    updated_at: datetime


class AttemptStep(BaseModel):
    """One accepted submission in an attempt's history."""

    model_config = ConfigDict(from_attributes=True)

    id: int
    attempt_id: str
    node_key: str
    choice_key: str
    is_mistake: bool
    created_at: datetime


class StepResult(BaseModel):
    """Outcome of submitting a choice, as handed to the presentation layer."""

    is_correct: bool
    next_node: str | None = Field(
        default=None, description="Node to show next; None once the task has no further node"
    )
    mistake_type: str = ""
    hint: str = ""
    completed: bool = False


# ============================================================================
# SQLAlchemy Models (for database)
# ============================================================================


class AttemptModel(Base, TimestampMixin):
    """
    SQLAlchemy model for attempts table.

    class_id and student_id come from the identity layer and are not foreign keys.
    """

    __tablename__ = "attempts"

    id: Mapped[str] = mapped_column(String, primary_key=True)
    task_id: Mapped[str] = mapped_column(
        String, ForeignKey("tasks.id", ondelete="CASCADE"), nullable=False
    )
    class_id: Mapped[str] = mapped_column(String, nullable=False)
    student_id: Mapped[str] = mapped_column(String, nullable=False)

    current_node: Mapped[str] = mapped_column(String, nullable=False)
    completed: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)

    steps: Mapped[list["AttemptStepModel"]] = relationship(
        "AttemptStepModel",
        back_populates="attempt",
        cascade="all, delete-orphan",
        order_by="AttemptStepModel.id",
    )

    __table_args__ = (
        UniqueConstraint("student_id", "class_id", "task_id", name="uq_attempt_student_class_task"),
        Index("idx_attempts_class_student", "class_id", "student_id"),
    )


class AttemptStepModel(Base):
    """SQLAlchemy model for attempt_steps table."""

    __tablename__ = "attempt_steps"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    attempt_id: Mapped[str] = mapped_column(
        String, ForeignKey("attempts.id", ondelete="CASCADE"), nullable=False, index=True
    )
    node_key: Mapped[str] = mapped_column(String, nullable=False)
    choice_key: Mapped[str] = mapped_column(String, nullable=False)
    is_mistake: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow, server_default=func.now(), nullable=False
    )

    attempt: Mapped["AttemptModel"] = relationship("AttemptModel", back_populates="steps")
