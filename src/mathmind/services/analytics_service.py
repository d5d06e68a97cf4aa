"""
Analytics Service for MathMind.

Teacher-facing views over the mistake ledger. Everything is recomputed on
demand from the denormalized ledger columns; there is no materialized view to
invalidate.

Sort keys are applied in Python after grouping so that tie-breaks do not depend
on the database collation.
"""

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from mathmind.models import (
    AttemptModel,
    ClassEnrollmentModel,
    MistakeFrequency,
    MistakeRecordModel,
    StudentMistakeBreakdown,
    StudentModel,
    TaskModel,
    TopicMistakeFrequency,
    TopicModel,
)
from mathmind.services.storage import run_bounded

# ============================================================================
# Class-level Frequencies
# ============================================================================


async def mistake_frequency_by_class(
    session: AsyncSession,
    class_id: str,
    timeout: float | None = None,
) -> list[MistakeFrequency]:
    """
    Count mistakes per type for a class.

    Args:
        session: Database session
        class_id: Class ID
        timeout: Seconds before giving up

    Returns:
        Frequencies by count descending, then mistake type ascending
    """

    async def _frequencies() -> list[MistakeFrequency]:
        result = await session.execute(
            select(MistakeRecordModel.mistake_type, func.count().label("mistake_count"))
            .where(MistakeRecordModel.class_id == class_id)
            .group_by(MistakeRecordModel.mistake_type)
        )
        frequencies = [
            MistakeFrequency(mistake_type=row.mistake_type, count=row.mistake_count)
            for row in result.all()
        ]
        frequencies.sort(key=lambda f: (-f.count, f.mistake_type))
        return frequencies

    return await run_bounded(session, _frequencies(), timeout)


async def mistake_frequency_by_topic(
    session: AsyncSession,
    class_id: str,
    timeout: float | None = None,
) -> list[TopicMistakeFrequency]:
    """
    Count mistakes per type within each topic for a class.

    Mistakes on tasks without a topic are not included.

    Returns:
        Frequencies by topic ID ascending, then count descending, then mistake
        type ascending
    """

    async def _frequencies() -> list[TopicMistakeFrequency]:
        result = await session.execute(
            select(
                TopicModel.id.label("topic_id"),
                TopicModel.title.label("topic_title"),
                MistakeRecordModel.mistake_type,
                func.count().label("mistake_count"),
            )
            .select_from(MistakeRecordModel)
            .join(TaskModel, TaskModel.id == MistakeRecordModel.task_id)
            .join(TopicModel, TopicModel.id == TaskModel.topic_id)
            .where(MistakeRecordModel.class_id == class_id)
            .group_by(TopicModel.id, TopicModel.title, MistakeRecordModel.mistake_type)
        )
        frequencies = [
            TopicMistakeFrequency(
                topic_id=row.topic_id,
                topic_title=row.topic_title,
                mistake_type=row.mistake_type,
                count=row.mistake_count,
            )
            for row in result.all()
        ]
        frequencies.sort(key=lambda f: (f.topic_id, -f.count, f.mistake_type))
        return frequencies

    return await run_bounded(session, _frequencies(), timeout)


# ============================================================================
# Per-student Breakdown
# ============================================================================


async def student_mistake_breakdown(
    session: AsyncSession,
    class_id: str,
    timeout: float | None = None,
) -> list[StudentMistakeBreakdown]:
    """
    Break mistakes down by student for a class.

    A student is included when enrolled in the class, when they have an attempt
    in it, or when they appear in its ledger, so students without mistakes
    appear with an empty mapping.

    Returns:
        One entry per student, by student ID ascending
    """

    async def _breakdown() -> list[StudentMistakeBreakdown]:
        enrolled = await session.execute(
            select(ClassEnrollmentModel.student_id).where(ClassEnrollmentModel.class_id == class_id)
        )
        breakdown: dict[str, dict[str, int]] = {student_id: {} for student_id in enrolled.scalars()}

        attempted = await session.execute(
            select(AttemptModel.student_id)
            .where(AttemptModel.class_id == class_id)
            .distinct()
        )
        for student_id in attempted.scalars():
            breakdown.setdefault(student_id, {})

        counts = await session.execute(
            select(
                MistakeRecordModel.student_id,
                MistakeRecordModel.mistake_type,
                func.count().label("mistake_count"),
            )
            .where(MistakeRecordModel.class_id == class_id)
            .group_by(MistakeRecordModel.student_id, MistakeRecordModel.mistake_type)
        )
        for row in counts.all():
            breakdown.setdefault(row.student_id, {})[row.mistake_type] = row.mistake_count

        if not breakdown:
            return []

        names_result = await session.execute(
            select(StudentModel.id, StudentModel.name).where(StudentModel.id.in_(list(breakdown)))
        )
        names = {row.id: row.name for row in names_result.all()}

        return [
            StudentMistakeBreakdown(
                student_id=student_id,
                student_name=names.get(student_id),
                mistakes=breakdown[student_id],
            )
            for student_id in sorted(breakdown)
        ]

    return await run_bounded(session, _breakdown(), timeout)
