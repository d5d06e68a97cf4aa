"""
Task graph models for MathMind.

A task is a directed graph of nodes (prompts) joined by choices (answer options).
Some choices are authored mistakes; they carry the label used for analytics.

This is the TEMPLATE LAYER - shared by every student. Per-student progress through
a graph lives in Attempt.
"""

from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator
from sqlalchemy import Boolean, ForeignKey, Integer, String, Text, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship

from .base import Base, TimestampMixin

# ============================================================================
# Pydantic Models (for API/validation)
# ============================================================================


class Choice(BaseModel):
    """
    One selectable answer option at a node.

    next_node is a tagged optional: None means "no further node", in which case a
    correct choice completes the task. Empty strings on input are read as None.
    """

    model_config = ConfigDict(frozen=True, from_attributes=True)

    key: str = Field(..., min_length=1)
    text: str = Field(default="")
    is_mistake: bool = Field(default=False)
    mistake_type: str = Field(default="")
    hint: str = Field(default="")
    next_node: str | None = Field(default=None)

    @field_validator("next_node", mode="before")
    @classmethod
    def _empty_next_node_is_none(cls, value: str | None) -> str | None:
        if value is None or (isinstance(value, str) and not value.strip()):
            return None
        return value

    @model_validator(mode="after")
    def _mistakes_need_a_type(self) -> "Choice":
        if self.is_mistake and not self.mistake_type.strip():
            raise ValueError(f"Mistake choice '{self.key}' must declare a mistake_type")
        return self


class Node(BaseModel):
    """A prompt plus the choices offered at that point of the graph."""

    model_config = ConfigDict(frozen=True, from_attributes=True)

    key: str = Field(..., min_length=1)
    title: str = Field(default="")
    prompt: str = Field(default="")
    terminal: bool = Field(default=False)
    choices: list[Choice] = Field(default_factory=list)


class TaskGraphBase(BaseModel):
    """Fields shared by authored and loaded task graphs."""

    title: str = Field(..., min_length=1, max_length=500)
    description: str = Field(default="")
    topic_id: str | None = Field(default=None)
    root_node: str = Field(..., min_length=1)


class TaskGraphCreate(TaskGraphBase):
    """
    Schema for registering a task graph.

    Nodes are given as an ordered list; key uniqueness and the graph invariants
    are checked by graph_service.validate_graph.
    """

    id: str | None = Field(default=None, pattern=r"^[a-z0-9\-\.]+$")
    nodes: list[Node] = Field(..., min_length=1)


class TaskGraph(TaskGraphBase):
    """Immutable, validated task graph used by the attempt state machine."""

    model_config = ConfigDict(frozen=True)

    id: str
    nodes: dict[str, Node]


class TaskSummary(BaseModel):
    """Minimal task info for lists and references."""

    model_config = ConfigDict(from_attributes=True)

    id: str
    title: str
    topic_id: str | None = None


# ============================================================================
# SQLAlchemy Models (for database)
# ============================================================================


class TaskModel(Base, TimestampMixin):
    """SQLAlchemy model for tasks table."""

    __tablename__ = "tasks"

    id: Mapped[str] = mapped_column(String, primary_key=True)
    topic_id: Mapped[str | None] = mapped_column(
        String, ForeignKey("topics.id", ondelete="SET NULL"), nullable=True, index=True
    )

    title: Mapped[str] = mapped_column(String(500), nullable=False)
    description: Mapped[str] = mapped_column(Text, default="")
    root_node: Mapped[str] = mapped_column(String, nullable=False)

    # Relationships
    topic: Mapped[Optional["TopicModel"]] = relationship(  # type: ignore
        "TopicModel", back_populates="tasks"
    )
    nodes: Mapped[list["TaskNodeModel"]] = relationship(
        "TaskNodeModel",
        back_populates="task",
        cascade="all, delete-orphan",
        order_by="TaskNodeModel.position",
    )


class TaskNodeModel(Base):
    """SQLAlchemy model for task_nodes table."""

    __tablename__ = "task_nodes"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    task_id: Mapped[str] = mapped_column(
        String, ForeignKey("tasks.id", ondelete="CASCADE"), nullable=False
    )
    key: Mapped[str] = mapped_column(String, nullable=False)
    title: Mapped[str] = mapped_column(String(500), default="")
    prompt: Mapped[str] = mapped_column(Text, default="")
    terminal: Mapped[bool] = mapped_column(Boolean, default=False)
    position: Mapped[int] = mapped_column(Integer, default=0)

    task: Mapped["TaskModel"] = relationship("TaskModel", back_populates="nodes")
    choices: Mapped[list["TaskChoiceModel"]] = relationship(
        "TaskChoiceModel",
        back_populates="node",
        cascade="all, delete-orphan",
        order_by="TaskChoiceModel.position",
    )

    __table_args__ = (UniqueConstraint("task_id", "key", name="uq_task_node_key"),)


class TaskChoiceModel(Base):
    """SQLAlchemy model for task_choices table."""

    __tablename__ = "task_choices"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    node_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("task_nodes.id", ondelete="CASCADE"), nullable=False
    )
    key: Mapped[str] = mapped_column(String, nullable=False)
    text: Mapped[str] = mapped_column(Text, default="")
    is_mistake: Mapped[bool] = mapped_column(Boolean, default=False)
    mistake_type: Mapped[str] = mapped_column(String, default="")
    hint: Mapped[str] = mapped_column(Text, default="")
    # NULL means the choice has no further node
    next_node: Mapped[str | None] = mapped_column(String, nullable=True)
    position: Mapped[int] = mapped_column(Integer, default=0)

    node: Mapped["TaskNodeModel"] = relationship("TaskNodeModel", back_populates="choices")

    __table_args__ = (UniqueConstraint("node_id", "key", name="uq_task_choice_key"),)
