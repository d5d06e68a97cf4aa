"""
Mistake ledger models for MathMind.

Each record is an incorrect choice taken in an attempt. Class, student and task
IDs are copied onto the record so analytics can aggregate without joining
attempts. Records are append-only.
"""

from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field
from sqlalchemy import DateTime, ForeignKey, Index, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column
from sqlalchemy.sql import func

from .base import Base, utcnow

# ============================================================================
# Pydantic Models (for API/validation)
# ============================================================================


class MistakeRecordBase(BaseModel):
    """Base ledger fields."""

    attempt_id: str
    class_id: str
    student_id: str
    task_id: str

    node_key: str
    choice_key: str

    mistake_type: str = Field(..., min_length=1)
    hint: str = ""


class MistakeRecordCreate(MistakeRecordBase):
    """Schema for appending a ledger entry."""


class MistakeRecord(MistakeRecordBase):
    """Complete ledger entry."""

    model_config = ConfigDict(from_attributes=True)

    id: int
    created_at: datetime


# ============================================================================
# SQLAlchemy Models (for database)
# ============================================================================


class MistakeRecordModel(Base):
    """SQLAlchemy model for mistake_records table."""

    __tablename__ = "mistake_records"

    # Autoincrement ID doubles as insertion order for recency tie-breaks
    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    attempt_id: Mapped[str] = mapped_column(
        String, ForeignKey("attempts.id", ondelete="CASCADE"), nullable=False, index=True
    )
    class_id: Mapped[str] = mapped_column(String, nullable=False)
    student_id: Mapped[str] = mapped_column(String, nullable=False)
    task_id: Mapped[str] = mapped_column(String, nullable=False)

    node_key: Mapped[str] = mapped_column(String, nullable=False)
    choice_key: Mapped[str] = mapped_column(String, nullable=False)
    mistake_type: Mapped[str] = mapped_column(String, nullable=False)
    hint: Mapped[str] = mapped_column(Text, default="")

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow, server_default=func.now(), nullable=False
    )

    __table_args__ = (
        Index("idx_mistake_records_class_created", "class_id", "created_at"),
        Index("idx_mistake_records_class_student", "class_id", "student_id"),
        Index("idx_mistake_records_class_task", "class_id", "task_id"),
    )
