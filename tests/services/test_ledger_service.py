"""
Tests for the mistake ledger.
"""

from datetime import datetime, timedelta, timezone

import pytest

from mathmind.models import MistakeRecordCreate, MistakeRecordModel
from mathmind.services.attempt_service import get_or_create_attempt
from mathmind.services.ledger_service import append_mistake, list_for_attempt, recent_for_class

CLASS = "cls-ledger"


def _record(attempt, mistake_type="sign error", **overrides):
    data = {
        "attempt_id": attempt.id,
        "class_id": attempt.class_id,
        "student_id": attempt.student_id,
        "task_id": attempt.task_id,
        "node_key": "root",
        "choice_key": "wrong",
        "mistake_type": mistake_type,
        "hint": "Check the sign.",
    }
    data.update(overrides)
    return MistakeRecordCreate(**data)


@pytest.mark.asyncio
async def test_append_mistake(async_session, walkthrough_task):
    attempt = await get_or_create_attempt(async_session, "stu-1", CLASS, walkthrough_task.id)

    record = await append_mistake(async_session, _record(attempt))

    assert record.id is not None
    assert record.created_at is not None
    assert record.mistake_type == "sign error"
    assert record.hint == "Check the sign."

    assert [r.id for r in await list_for_attempt(async_session, attempt.id)] == [record.id]


@pytest.mark.asyncio
async def test_recent_for_class_newest_first(async_session, walkthrough_task):
    attempt = await get_or_create_attempt(async_session, "stu-1", CLASS, walkthrough_task.id)
    for i in range(5):
        await append_mistake(async_session, _record(attempt, mistake_type=f"type-{i}"))

    recent = await recent_for_class(async_session, CLASS, limit=3)

    assert [r.mistake_type for r in recent] == ["type-4", "type-3", "type-2"]


@pytest.mark.asyncio
async def test_recent_for_class_equal_timestamps_use_insertion_order(async_session):
    stamp = datetime(2025, 1, 1, 12, 0, tzinfo=timezone.utc)
    for i in range(3):
        async_session.add(
            MistakeRecordModel(
                attempt_id="att-x",
                class_id=CLASS,
                student_id="stu-1",
                task_id="walkthrough",
                node_key="root",
                choice_key="wrong",
                mistake_type=f"type-{i}",
                created_at=stamp,
            )
        )
    async_session.add(
        MistakeRecordModel(
            attempt_id="att-x",
            class_id=CLASS,
            student_id="stu-1",
            task_id="walkthrough",
            node_key="root",
            choice_key="wrong",
            mistake_type="older",
            created_at=stamp - timedelta(minutes=5),
        )
    )
    await async_session.commit()

    recent = await recent_for_class(async_session, CLASS)

    assert [r.mistake_type for r in recent] == ["type-2", "type-1", "type-0", "older"]


@pytest.mark.asyncio
async def test_recent_for_class_is_scoped_and_bounded(async_session, walkthrough_task):
    mine = await get_or_create_attempt(async_session, "stu-1", CLASS, walkthrough_task.id)
    other = await get_or_create_attempt(async_session, "stu-1", "cls-other", walkthrough_task.id)
    for _ in range(12):
        await append_mistake(async_session, _record(mine))
    await append_mistake(async_session, _record(other))

    recent = await recent_for_class(async_session, CLASS)

    assert len(recent) == 10
    assert all(r.class_id == CLASS for r in recent)
    assert await recent_for_class(async_session, "cls-empty") == []


@pytest.mark.asyncio
async def test_recent_for_class_rejects_bad_limit(async_session):
    with pytest.raises(ValueError):
        await recent_for_class(async_session, CLASS, limit=0)
