"""
Read-side analytics models for MathMind.

Plain result records produced by analytics_service; nothing here is persisted.
"""

from pydantic import BaseModel, Field


class MistakeFrequency(BaseModel):
    """How often one mistake type occurred in a class."""

    mistake_type: str
    count: int


class TopicMistakeFrequency(BaseModel):
    """Mistake counts within one topic of a class."""

    topic_id: str
    topic_title: str
    mistake_type: str
    count: int


class StudentMistakeBreakdown(BaseModel):
    """Per-student mistake counts; empty mapping for students without mistakes."""

    student_id: str
    student_name: str | None = None
    mistakes: dict[str, int] = Field(default_factory=dict)

    @property
    def total(self) -> int:
        return sum(self.mistakes.values())
