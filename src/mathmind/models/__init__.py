"""
MathMind Models.

Exports all Pydantic and SQLAlchemy models for easy importing.
"""

# Analytics
from .analytics import (
    MistakeFrequency,
    StudentMistakeBreakdown,
    TopicMistakeFrequency,
)

# Attempt
from .attempt import (
    Attempt,
    AttemptModel,
    AttemptStep,
    AttemptStepModel,
    StepResult,
)

# Base
from .base import Base, TimestampMixin, utcnow

# Classroom
from .classroom import (
    ClassEnrollmentModel,
    Classroom,
    ClassroomCreate,
    ClassroomModel,
    Student,
    StudentCreate,
    StudentModel,
    Topic,
    TopicBase,
    TopicCreate,
    TopicModel,
)

# Mistake ledger
from .mistake import (
    MistakeRecord,
    MistakeRecordBase,
    MistakeRecordCreate,
    MistakeRecordModel,
)

# Task graph
from .task import (
    Choice,
    Node,
    TaskChoiceModel,
    TaskGraph,
    TaskGraphBase,
    TaskGraphCreate,
    TaskModel,
    TaskNodeModel,
    TaskSummary,
)

__all__ = [
    # Base
    "Base",
    "TimestampMixin",
    "utcnow",
    # Task graph
    "Choice",
    "Node",
    "TaskGraph",
    "TaskGraphBase",
    "TaskGraphCreate",
    "TaskSummary",
    "TaskModel",
    "TaskNodeModel",
    "TaskChoiceModel",
    # Attempt
    "Attempt",
    "AttemptStep",
    "StepResult",
    "AttemptModel",
    "AttemptStepModel",
    # Mistake ledger
    "MistakeRecord",
    "MistakeRecordBase",
    "MistakeRecordCreate",
    "MistakeRecordModel",
    # Analytics
    "MistakeFrequency",
    "TopicMistakeFrequency",
    "StudentMistakeBreakdown",
    # Classroom
    "Topic",
    "TopicBase",
    "TopicCreate",
    "TopicModel",
    "Student",
    "StudentCreate",
    "StudentModel",
    "Classroom",
    "ClassroomCreate",
    "ClassroomModel",
    "ClassEnrollmentModel",
]
