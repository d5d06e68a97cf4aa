"""
Topic, student and classroom models for MathMind.

Topics group tasks for per-topic analytics. Students join classrooms with an
invite code; class membership decides who appears in the student breakdown.
"""

from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field
from sqlalchemy import DateTime, ForeignKey, String, Text
from sqlalchemy.orm import Mapped, mapped_column, relationship
from sqlalchemy.sql import func

from .base import Base, utcnow

# ============================================================================
# Pydantic Models (for API/validation)
# ============================================================================


class TopicBase(BaseModel):
    """Base topic fields."""

    title: str = Field(..., min_length=1, max_length=500)
    description: str = Field(default="")


class TopicCreate(TopicBase):
    """Schema for creating a topic."""

    id: str | None = Field(default=None, pattern=r"^[a-z0-9\-\.]+$")


class Topic(TopicBase):
    """Complete topic entity."""

    model_config = ConfigDict(from_attributes=True)

    id: str


class StudentCreate(BaseModel):
    """Schema for registering a student."""

    id: str | None = Field(default=None, description="External ID if provided")
    name: str = Field(..., min_length=1, max_length=200)


class Student(BaseModel):
    """Complete student entity."""

    model_config = ConfigDict(from_attributes=True)

    id: str
    name: str
    created_at: datetime


class ClassroomCreate(BaseModel):
    """Schema for creating a classroom."""

    name: str = Field(..., min_length=1, max_length=200)
    teacher_id: str | None = None
    invite_code: str | None = Field(default=None, description="Generated when omitted")


class Classroom(BaseModel):
    """Complete classroom entity."""

    model_config = ConfigDict(from_attributes=True)

    id: str
    name: str
    invite_code: str
    teacher_id: str | None = None
    created_at: datetime


# ============================================================================
# SQLAlchemy Models (for database)
# ============================================================================


class TopicModel(Base):
    """SQLAlchemy model for topics table."""

    __tablename__ = "topics"

    id: Mapped[str] = mapped_column(String, primary_key=True)
    title: Mapped[str] = mapped_column(String(500), nullable=False)
    description: Mapped[str] = mapped_column(Text, default="")

    tasks: Mapped[list["TaskModel"]] = relationship(  # type: ignore
        "TaskModel", back_populates="topic"
    )


class StudentModel(Base):
    """SQLAlchemy model for students table."""

    __tablename__ = "students"

    id: Mapped[str] = mapped_column(String, primary_key=True)
    name: Mapped[str] = mapped_column(String(200), nullable=False)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow, server_default=func.now()
    )


class ClassroomModel(Base):
    """SQLAlchemy model for classes table."""

    __tablename__ = "classes"

    id: Mapped[str] = mapped_column(String, primary_key=True)
    name: Mapped[str] = mapped_column(String(200), nullable=False)
    # Stored upper-case; lookups are case-insensitive
    invite_code: Mapped[str] = mapped_column(String, nullable=False, unique=True)
    teacher_id: Mapped[str | None] = mapped_column(String, nullable=True, index=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow, server_default=func.now()
    )

    enrollments: Mapped[list["ClassEnrollmentModel"]] = relationship(
        "ClassEnrollmentModel", back_populates="classroom", cascade="all, delete-orphan"
    )


class ClassEnrollmentModel(Base):
    """SQLAlchemy model for class_students table."""

    __tablename__ = "class_students"

    class_id: Mapped[str] = mapped_column(
        String, ForeignKey("classes.id", ondelete="CASCADE"), primary_key=True
    )
    student_id: Mapped[str] = mapped_column(
        String, ForeignKey("students.id", ondelete="CASCADE"), primary_key=True
    )
    joined_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow, server_default=func.now()
    )

    classroom: Mapped["ClassroomModel"] = relationship(
        "ClassroomModel", back_populates="enrollments"
    )
