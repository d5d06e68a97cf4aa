"""
Task Graph Service for MathMind.

Registers, validates and loads task graphs. Graph invariants are checked once,
at registration and when a graph first enters the process cache; traversal
helpers then assume a well-formed graph.
"""

from collections import deque

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from mathmind.models import (
    Choice,
    Node,
    TaskChoiceModel,
    TaskGraph,
    TaskGraphCreate,
    TaskModel,
    TaskNodeModel,
    TaskSummary,
    TopicModel,
)
from mathmind.services.errors import (
    ChoiceNotFoundError,
    DuplicateError,
    GraphValidationError,
    InvalidStateError,
    TaskNotFoundError,
    TopicNotFoundError,
)
from mathmind.utils.ids import PREFIX_TASK, generate_entity_id

# Loaded graphs are immutable for the lifetime of the process
_graph_cache: dict[str, TaskGraph] = {}


def clear_graph_cache() -> None:
    """Forget every loaded graph (used in tests and after re-ingestion)."""
    _graph_cache.clear()


# ============================================================================
# Validation
# ============================================================================


def validate_graph(graph: TaskGraph | TaskGraphCreate) -> list[str]:
    """
    Check the structural invariants of a task graph.

    - node keys are unique, choice keys are unique within their node
    - root_node exists and is not terminal
    - every next_node references an existing node
    - no mistake choice leads to a terminal node
    - every node the cursor can reach from the root can still lead to a
      completion (a correct choice without next_node or into a terminal node)

    Args:
        graph: Authored or loaded graph

    Returns:
        List of error messages (empty if valid)
    """
    errors: list[str] = []

    if isinstance(graph, TaskGraphCreate):
        nodes: dict[str, Node] = {}
        for node in graph.nodes:
            if node.key in nodes:
                errors.append(f"Duplicate node key '{node.key}'")
            nodes[node.key] = node
    else:
        nodes = dict(graph.nodes)
        for key, node in nodes.items():
            if node.key != key:
                errors.append(f"Node stored under '{key}' has key '{node.key}'")

    for node in nodes.values():
        seen: set[str] = set()
        for choice in node.choices:
            if choice.key in seen:
                errors.append(f"Duplicate choice key '{choice.key}' at node '{node.key}'")
            seen.add(choice.key)
            if choice.next_node is None:
                continue
            target = nodes.get(choice.next_node)
            if target is None:
                errors.append(
                    f"Choice '{choice.key}' at node '{node.key}' "
                    f"points to missing node '{choice.next_node}'"
                )
            elif target.terminal and choice.is_mistake:
                errors.append(
                    f"Mistake choice '{choice.key}' at node '{node.key}' "
                    f"leads to terminal node '{choice.next_node}'"
                )

    root = nodes.get(graph.root_node)
    if root is None:
        errors.append(f"Root node '{graph.root_node}' does not exist")
        return errors
    if root.terminal:
        errors.append(f"Root node '{graph.root_node}' must not be terminal")

    stranded = _stranded_nodes(nodes, graph.root_node)
    if graph.root_node in stranded:
        errors.append("No terminal node or final correct choice is reachable from the root")
    errors.extend(
        f"Node '{key}' is reachable from the root but cannot lead to completion"
        for key in sorted(stranded - {graph.root_node})
    )

    return errors


def _completes(choice: Choice, nodes: dict[str, Node]) -> bool:
    if choice.is_mistake:
        return False
    if choice.next_node is None:
        return True
    target = nodes.get(choice.next_node)
    return target is not None and target.terminal


def _stranded_nodes(nodes: dict[str, Node], root: str) -> set[str]:
    """
    Nodes the cursor can reach from root that offer no way to complete.

    Forward breadth-first search over the edges that move the cursor, then a
    backward fixpoint from completing choices.
    """
    reachable = {root}
    queue = deque([root])
    while queue:
        for choice in nodes[queue.popleft()].choices:
            if choice.next_node is None or choice.next_node not in nodes:
                continue
            if _completes(choice, nodes) or choice.next_node in reachable:
                continue
            reachable.add(choice.next_node)
            queue.append(choice.next_node)

    can_complete = {
        key for key, node in nodes.items() if any(_completes(c, nodes) for c in node.choices)
    }
    changed = True
    while changed:
        changed = False
        for key, node in nodes.items():
            if key not in can_complete and any(
                c.next_node in can_complete for c in node.choices
            ):
                can_complete.add(key)
                changed = True

    return reachable - can_complete


# ============================================================================
# Registration and Loading
# ============================================================================


async def create_task_graph(session: AsyncSession, data: TaskGraphCreate) -> TaskGraph:
    """
    Register a new task graph.

    Args:
        session: Database session
        data: Authored graph

    Returns:
        The stored graph as the engine will see it

    Raises:
        GraphValidationError: If the graph breaks an invariant
        TopicNotFoundError: If topic_id does not exist
        DuplicateError: If a task with the same ID already exists
    """
    errors = validate_graph(data)
    if errors:
        raise GraphValidationError(data.id or data.title, errors)

    if data.topic_id is not None and await session.get(TopicModel, data.topic_id) is None:
        raise TopicNotFoundError(f"Topic {data.topic_id} does not exist")

    if data.id is not None and await session.get(TaskModel, data.id) is not None:
        raise DuplicateError(f"Task {data.id} already exists")

    task = TaskModel(
        id=data.id or generate_entity_id(PREFIX_TASK),
        topic_id=data.topic_id,
        title=data.title,
        description=data.description,
        root_node=data.root_node,
    )
    for node_position, node in enumerate(data.nodes):
        node_model = TaskNodeModel(
            key=node.key,
            title=node.title,
            prompt=node.prompt,
            terminal=node.terminal,
            position=node_position,
        )
        for choice_position, choice in enumerate(node.choices):
            node_model.choices.append(
                TaskChoiceModel(
                    key=choice.key,
                    text=choice.text,
                    is_mistake=choice.is_mistake,
                    mistake_type=choice.mistake_type if choice.is_mistake else "",
                    hint=choice.hint,
                    next_node=choice.next_node,
                    position=choice_position,
                )
            )
        task.nodes.append(node_model)

    task_id = task.id
    session.add(task)
    try:
        await session.commit()
    except IntegrityError as e:
        await session.rollback()
        raise DuplicateError(f"Task {task_id} already exists") from e

    return await load_graph(session, task_id)


async def load_graph(session: AsyncSession, task_id: str) -> TaskGraph:
    """
    Load a task graph by ID.

    Args:
        session: Database session
        task_id: Task ID

    Returns:
        The immutable graph

    Raises:
        TaskNotFoundError: If no graph is registered under task_id
        InvalidStateError: If the stored graph breaks an invariant
    """
    cached = _graph_cache.get(task_id)
    if cached is not None:
        return cached

    result = await session.execute(
        select(TaskModel)
        .where(TaskModel.id == task_id)
        .options(selectinload(TaskModel.nodes).selectinload(TaskNodeModel.choices))
    )
    task = result.scalar_one_or_none()

    if not task:
        raise TaskNotFoundError(f"Task {task_id} does not exist")

    graph = TaskGraph(
        id=task.id,
        title=task.title,
        description=task.description or "",
        topic_id=task.topic_id,
        root_node=task.root_node,
        nodes={
            node.key: Node(
                key=node.key,
                title=node.title or "",
                prompt=node.prompt or "",
                terminal=node.terminal,
                choices=[Choice.model_validate(choice) for choice in node.choices],
            )
            for node in task.nodes
        },
    )

    errors = validate_graph(graph)
    if errors:
        raise InvalidStateError(f"Stored task graph {task_id} is corrupt: {'; '.join(errors)}")

    _graph_cache[task_id] = graph
    return graph


async def list_tasks(session: AsyncSession, topic_id: str | None = None) -> list[TaskSummary]:
    """
    List registered tasks, optionally for one topic.

    Returns:
        Task summaries ordered by topic, then title
    """
    query = select(TaskModel).order_by(TaskModel.topic_id, TaskModel.title, TaskModel.id)
    if topic_id is not None:
        query = query.where(TaskModel.topic_id == topic_id)

    result = await session.execute(query)
    return [TaskSummary.model_validate(task) for task in result.scalars().all()]


# ============================================================================
# Traversal
# ============================================================================


def get_node(graph: TaskGraph, key: str) -> Node:
    """
    Resolve a node of a loaded graph.

    Raises:
        InvalidStateError: If the key is absent; a cursor outside its graph is a
            data-integrity failure, not a user error
    """
    node = graph.nodes.get(key)
    if node is None:
        raise InvalidStateError(f"Node '{key}' does not exist in task {graph.id}")
    return node


def get_choice(node: Node, key: str) -> Choice:
    """
    Resolve a choice offered at a node.

    Raises:
        ChoiceNotFoundError: If the node does not offer the choice
    """
    for choice in node.choices:
        if choice.key == key:
            return choice
    raise ChoiceNotFoundError(f"Node '{node.key}' has no choice '{key}'")
