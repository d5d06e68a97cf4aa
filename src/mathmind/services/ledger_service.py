"""
Mistake Ledger Service for MathMind.

Append-only history of incorrect choices. Appends are atomic, so concurrent
writers on different attempts never lose records; ordering by ID reproduces
insertion order.
"""

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from mathmind.models import MistakeRecord, MistakeRecordCreate, MistakeRecordModel
from mathmind.services.storage import run_bounded

RECENT_MISTAKES_LIMIT = 10


def stage_mistake(session: AsyncSession, record: MistakeRecordCreate) -> MistakeRecordModel:
    """
    Add a ledger entry to the caller's unit of work without committing.

    Used when the append must commit together with an attempt update.
    """
    model = MistakeRecordModel(**record.model_dump())
    session.add(model)
    return model


async def append_mistake(
    session: AsyncSession,
    record: MistakeRecordCreate,
    timeout: float | None = None,
) -> MistakeRecord:
    """
    Append a single ledger entry in its own transaction.

    Args:
        session: Database session
        record: Entry to append
        timeout: Seconds before giving up

    Returns:
        The stored entry with its ID and timestamp

    Raises:
        StorageUnavailableError: If storage cannot be reached in time
    """

    async def _append() -> MistakeRecord:
        model = stage_mistake(session, record)
        await session.commit()
        await session.refresh(model)
        return MistakeRecord.model_validate(model)

    return await run_bounded(session, _append(), timeout)


async def recent_for_class(
    session: AsyncSession,
    class_id: str,
    limit: int = RECENT_MISTAKES_LIMIT,
    timeout: float | None = None,
) -> list[MistakeRecord]:
    """
    Get the most recent mistakes made in a class.

    Ordered by created_at descending; records with equal timestamps are ordered
    by insertion, later first.

    Args:
        session: Database session
        class_id: Class ID
        limit: Maximum number of records to return
        timeout: Seconds before giving up

    Returns:
        Up to limit records, newest first

    Raises:
        ValueError: If limit is less than 1
    """
    if limit < 1:
        raise ValueError(f"limit must be at least 1, got {limit}")

    async def _recent() -> list[MistakeRecord]:
        result = await session.execute(
            select(MistakeRecordModel)
            .where(MistakeRecordModel.class_id == class_id)
            .order_by(MistakeRecordModel.created_at.desc(), MistakeRecordModel.id.desc())
            .limit(limit)
        )
        return [MistakeRecord.model_validate(m) for m in result.scalars().all()]

    return await run_bounded(session, _recent(), timeout)


async def list_for_attempt(session: AsyncSession, attempt_id: str) -> list[MistakeRecord]:
    """
    Get every mistake recorded for an attempt, oldest first.
    """
    result = await session.execute(
        select(MistakeRecordModel)
        .where(MistakeRecordModel.attempt_id == attempt_id)
        .order_by(MistakeRecordModel.id)
    )
    return [MistakeRecord.model_validate(m) for m in result.scalars().all()]
