"""
Attempt Service for MathMind.

Walks a student's attempt through its task graph. Works with the INSTANCE LAYER
(attempts, attempt_steps) and appends to the mistake ledger.

States:
    in progress (current_node)  --correct choice, no next node-->  completed
    in progress (current_node)  --correct choice to terminal-->    completed
    in progress (current_node)  --correct choice-->                in progress (next)
    in progress (current_node)  --mistake-->                       in progress (next or same)

Completed is final. Every submission on one attempt runs under that attempt's
lock; the cursor update, the step history and the ledger append commit together.
"""

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from mathmind.models import (
    Attempt,
    AttemptModel,
    AttemptStep,
    AttemptStepModel,
    MistakeRecordCreate,
    StepResult,
    utcnow,
)
from mathmind.services.errors import (
    AlreadyCompletedError,
    AttemptNotFoundError,
    StaleNodeError,
    StorageUnavailableError,
)
from mathmind.services.graph_service import get_choice, get_node, load_graph
from mathmind.services.ledger_service import stage_mistake
from mathmind.services.locks import KeyedLock
from mathmind.services.storage import run_bounded
from mathmind.utils.ids import PREFIX_ATTEMPT, generate_entity_id

# Per-attempt serialization of submissions
_attempt_locks = KeyedLock()

# Per-(student, class, task) serialization of get-or-create
_creation_locks = KeyedLock()

# Inserts tried before giving up on attempt ID collisions
_CREATE_TRIES = 2


# ============================================================================
# Attempt Lifecycle
# ============================================================================


async def get_or_create_attempt(
    session: AsyncSession,
    student_id: str,
    class_id: str,
    task_id: str,
    timeout: float | None = None,
) -> Attempt:
    """
    Get the student's attempt at a task in a class, creating it on first access.

    Idempotent: concurrent first calls for the same triple all return the same
    attempt. A new attempt starts at the graph's root node.

    Args:
        session: Database session
        student_id: Student ID
        class_id: Class ID
        task_id: Task ID
        timeout: Seconds before giving up, lock wait included

    Returns:
        Existing or newly created attempt

    Raises:
        TaskNotFoundError: If the task does not exist
        StorageUnavailableError: If storage cannot be reached in time
    """

    async def _get_or_create() -> Attempt:
        async with _creation_locks.hold((student_id, class_id, task_id)):
            existing = await _find_attempt(session, student_id, class_id, task_id)
            if existing is not None:
                return Attempt.model_validate(existing)

            graph = await load_graph(session, task_id)
            for _ in range(_CREATE_TRIES):
                now = utcnow()
                attempt = AttemptModel(
                    id=generate_entity_id(PREFIX_ATTEMPT),
                    task_id=task_id,
                    class_id=class_id,
                    student_id=student_id,
                    current_node=graph.root_node,
                    completed=False,
                    created_at=now,
                    updated_at=now,
                )
                session.add(attempt)
                try:
                    await session.commit()
                except IntegrityError:
                    # Another process created the triple first, or the ID is taken
                    await session.rollback()
                    existing = await _find_attempt(session, student_id, class_id, task_id)
                    if existing is not None:
                        return Attempt.model_validate(existing)
                    continue

                await session.refresh(attempt)
                return Attempt.model_validate(attempt)

            raise StorageUnavailableError(
                f"Could not allocate an attempt ID after {_CREATE_TRIES} tries"
            )

    return await run_bounded(session, _get_or_create(), timeout)


async def _find_attempt(
    session: AsyncSession, student_id: str, class_id: str, task_id: str
) -> AttemptModel | None:
    result = await session.execute(
        select(AttemptModel)
        .where(
            AttemptModel.student_id == student_id,
            AttemptModel.class_id == class_id,
            AttemptModel.task_id == task_id,
        )
        .execution_options(populate_existing=True)
    )
    return result.scalar_one_or_none()


async def get_attempt(session: AsyncSession, attempt_id: str) -> Attempt:
    """
    Get an attempt by ID.

    Raises:
        AttemptNotFoundError: If the attempt does not exist
    """
    attempt = await session.get(AttemptModel, attempt_id, populate_existing=True)
    if attempt is None:
        raise AttemptNotFoundError(f"Attempt {attempt_id} does not exist")
    return Attempt.model_validate(attempt)


async def get_attempt_steps(session: AsyncSession, attempt_id: str) -> list[AttemptStep]:
    """
    Get the step history of an attempt, oldest first.

    Raises:
        AttemptNotFoundError: If the attempt does not exist
    """
    if await session.get(AttemptModel, attempt_id) is None:
        raise AttemptNotFoundError(f"Attempt {attempt_id} does not exist")

    result = await session.execute(
        select(AttemptStepModel)
        .where(AttemptStepModel.attempt_id == attempt_id)
        .order_by(AttemptStepModel.id)
    )
    return [AttemptStep.model_validate(step) for step in result.scalars().all()]


# ============================================================================
# State Transition
# ============================================================================


async def submit_choice(
    session: AsyncSession,
    attempt_id: str,
    node_key: str,
    choice_key: str,
    timeout: float | None = None,
) -> StepResult:
    """
    Apply a student's choice at the attempt's current node.

    Completion happens on a correct choice without a next node, or on a correct
    choice leading to a terminal node. A mistake never completes the attempt; it
    is appended to the ledger and the cursor follows the choice's next_node, or
    stays put when the choice has none.

    Rejected submissions leave the attempt untouched.

    Args:
        session: Database session
        attempt_id: Attempt ID
        node_key: Node the student answered (must be the current node)
        choice_key: Choice the student picked
        timeout: Seconds before giving up, lock wait included

    Returns:
        Outcome of the step

    Raises:
        AttemptNotFoundError: If the attempt does not exist
        AlreadyCompletedError: If the attempt is already completed
        StaleNodeError: If node_key is not the current node
        ChoiceNotFoundError: If the node does not offer choice_key
        InvalidStateError: If the cursor or a next_node is outside the graph
        StorageUnavailableError: If storage cannot be reached in time
    """

    async def _submit() -> StepResult:
        async with _attempt_locks.hold(attempt_id):
            attempt = await session.get(
                AttemptModel, attempt_id, with_for_update=True, populate_existing=True
            )
            if attempt is None:
                raise AttemptNotFoundError(f"Attempt {attempt_id} does not exist")

            if attempt.completed:
                raise AlreadyCompletedError(f"Attempt {attempt_id} is already completed")

            if node_key != attempt.current_node:
                raise StaleNodeError(
                    f"Attempt {attempt_id} is at node '{attempt.current_node}', not '{node_key}'"
                )

            graph = await load_graph(session, attempt.task_id)
            node = get_node(graph, attempt.current_node)
            choice = get_choice(node, choice_key)

            if choice.is_mistake:
                stage_mistake(
                    session,
                    MistakeRecordCreate(
                        attempt_id=attempt.id,
                        class_id=attempt.class_id,
                        student_id=attempt.student_id,
                        task_id=attempt.task_id,
                        node_key=node.key,
                        choice_key=choice.key,
                        mistake_type=choice.mistake_type,
                        hint=choice.hint,
                    ),
                )
                if choice.next_node is not None:
                    attempt.current_node = choice.next_node
                result = StepResult(
                    is_correct=False,
                    next_node=attempt.current_node,
                    mistake_type=choice.mistake_type,
                    hint=choice.hint,
                    completed=False,
                )
            elif choice.next_node is None:
                attempt.completed = True
                result = StepResult(is_correct=True, next_node=None, completed=True)
            else:
                next_node = get_node(graph, choice.next_node)
                if next_node.terminal:
                    attempt.completed = True
                else:
                    attempt.current_node = next_node.key
                result = StepResult(
                    is_correct=True, next_node=next_node.key, completed=attempt.completed
                )

            session.add(
                AttemptStepModel(
                    attempt_id=attempt.id,
                    node_key=node.key,
                    choice_key=choice.key,
                    is_mistake=choice.is_mistake,
                )
            )
            attempt.updated_at = utcnow()
            await session.commit()

            return result

    return await run_bounded(session, _submit(), timeout)
