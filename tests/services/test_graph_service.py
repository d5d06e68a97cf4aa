"""
Tests for task graph registration, validation and traversal.
"""

import pytest
from pydantic import ValidationError

from mathmind.models import Choice, Node, TaskGraphCreate, TopicCreate
from mathmind.services.classroom_service import create_topic
from mathmind.services.errors import (
    ChoiceNotFoundError,
    DuplicateError,
    GraphValidationError,
    InvalidStateError,
    TaskNotFoundError,
    TopicNotFoundError,
)
from mathmind.services.graph_service import (
    create_task_graph,
    get_choice,
    get_node,
    list_tasks,
    load_graph,
    validate_graph,
)


def _graph(nodes, root="start", **kwargs):
    return TaskGraphCreate(title="Graph", root_node=root, nodes=nodes, **kwargs)


# ============================================================================
# Choice model
# ============================================================================


def test_empty_next_node_reads_as_none():
    choice = Choice(key="a", next_node="")
    assert choice.next_node is None

    choice = Choice(key="b", next_node="  ")
    assert choice.next_node is None


def test_mistake_choice_requires_type():
    with pytest.raises(ValidationError):
        Choice(key="a", is_mistake=True)


def test_correct_choice_type_is_optional():
    choice = Choice(key="a", next_node="b")
    assert choice.mistake_type == ""
    assert choice.is_mistake is False


# ============================================================================
# Validation
# ============================================================================


def test_validate_walkthrough_graph(walkthrough_graph):
    assert validate_graph(walkthrough_graph) == []


def test_validate_missing_root():
    graph = _graph([Node(key="a", choices=[Choice(key="c")])], root="missing")
    errors = validate_graph(graph)
    assert any("Root node 'missing'" in e for e in errors)


def test_validate_terminal_root():
    graph = _graph([Node(key="start", terminal=True)])
    errors = validate_graph(graph)
    assert any("must not be terminal" in e for e in errors)


def test_validate_dangling_next_node():
    graph = _graph(
        [
            Node(
                key="start",
                choices=[Choice(key="c1", next_node="nowhere"), Choice(key="c2")],
            )
        ]
    )
    errors = validate_graph(graph)
    assert errors == ["Choice 'c1' at node 'start' points to missing node 'nowhere'"]


def test_validate_duplicate_keys():
    graph = _graph(
        [
            Node(key="start", choices=[Choice(key="c"), Choice(key="c")]),
            Node(key="start"),
        ]
    )
    errors = validate_graph(graph)
    assert "Duplicate node key 'start'" in errors


def test_validate_duplicate_choice_keys():
    graph = _graph([Node(key="start", choices=[Choice(key="c"), Choice(key="c")])])
    errors = validate_graph(graph)
    assert errors == ["Duplicate choice key 'c' at node 'start'"]


def test_validate_no_reachable_completion():
    """A graph that only loops back on itself can never be completed."""
    graph = _graph(
        [
            Node(
                key="start",
                choices=[
                    Choice(key="loop", next_node="start"),
                    Choice(key="oops", is_mistake=True, mistake_type="m"),
                ],
            ),
            Node(key="end", terminal=True),
        ]
    )
    errors = validate_graph(graph)
    assert errors == ["No terminal node or final correct choice is reachable from the root"]


def test_validate_mistake_into_terminal():
    graph = _graph(
        [
            Node(
                key="start",
                choices=[
                    Choice(key="good"),
                    Choice(key="oops", is_mistake=True, mistake_type="m", next_node="end"),
                ],
            ),
            Node(key="end", terminal=True),
        ]
    )
    errors = validate_graph(graph)
    assert "Mistake choice 'oops' at node 'start' leads to terminal node 'end'" in errors


def test_validate_dead_end_node():
    """A correct choice into a node without choices strands the attempt."""
    graph = _graph(
        [
            Node(
                key="start",
                choices=[Choice(key="good"), Choice(key="lost", next_node="limbo")],
            ),
            Node(key="limbo"),
        ]
    )
    errors = validate_graph(graph)
    assert errors == ["Node 'limbo' is reachable from the root but cannot lead to completion"]


def test_validate_mistake_into_closed_loop():
    graph = _graph(
        [
            Node(
                key="start",
                choices=[
                    Choice(key="good"),
                    Choice(key="bad", is_mistake=True, mistake_type="m", next_node="spin"),
                ],
            ),
            Node(key="spin", choices=[Choice(key="again", next_node="spin")]),
        ]
    )
    errors = validate_graph(graph)
    assert errors == ["Node 'spin' is reachable from the root but cannot lead to completion"]


def test_validate_unreachable_dead_end_is_ignored():
    graph = _graph(
        [
            Node(key="start", choices=[Choice(key="good")]),
            Node(key="orphan"),
        ]
    )
    assert validate_graph(graph) == []


def test_validate_only_mistake_into_terminal_cannot_complete():
    graph = _graph(
        [
            Node(
                key="start",
                choices=[
                    Choice(key="loop", next_node="start"),
                    Choice(key="oops", is_mistake=True, mistake_type="m", next_node="end"),
                ],
            ),
            Node(key="end", terminal=True),
        ]
    )
    errors = validate_graph(graph)
    assert "No terminal node or final correct choice is reachable from the root" in errors


def test_validate_completion_reached_through_intermediate_nodes():
    graph = _graph(
        [
            Node(key="start", choices=[Choice(key="a", next_node="middle")]),
            Node(key="middle", choices=[Choice(key="b", next_node="start"), Choice(key="c")]),
        ]
    )
    assert validate_graph(graph) == []


# ============================================================================
# Registration and loading
# ============================================================================


@pytest.mark.asyncio
async def test_create_and_load_graph(async_session, walkthrough_graph):
    graph = await create_task_graph(async_session, walkthrough_graph)

    assert graph.id == "walkthrough"
    assert graph.root_node == "root"
    assert list(graph.nodes) == ["root", "mid", "end"]

    root = graph.nodes["root"]
    assert [c.key for c in root.choices] == ["wrong", "right"]
    assert root.choices[0].is_mistake is True
    assert root.choices[0].mistake_type == "skipped step"
    assert root.choices[1].next_node == "mid"
    assert graph.nodes["end"].terminal is True


@pytest.mark.asyncio
async def test_empty_next_node_round_trips_as_none(async_session, one_step_task):
    choice = one_step_task.nodes["root"].choices[0]
    assert choice.key == "ok"
    assert choice.next_node is None


@pytest.mark.asyncio
async def test_create_generates_id(async_session):
    graph = await create_task_graph(
        async_session, _graph([Node(key="start", choices=[Choice(key="c")])])
    )
    assert graph.id.startswith("task-")


@pytest.mark.asyncio
async def test_create_rejects_invalid_graph(async_session):
    data = _graph([Node(key="start", terminal=True)], id="bad")

    with pytest.raises(GraphValidationError) as exc_info:
        await create_task_graph(async_session, data)

    assert exc_info.value.task == "bad"
    assert exc_info.value.errors

    with pytest.raises(TaskNotFoundError):
        await load_graph(async_session, "bad")


@pytest.mark.asyncio
async def test_create_duplicate_task_id(async_session, walkthrough_task, walkthrough_graph):
    with pytest.raises(DuplicateError):
        await create_task_graph(async_session, walkthrough_graph)

    assert [t.id for t in await list_tasks(async_session)] == ["walkthrough"]


@pytest.mark.asyncio
async def test_create_with_unknown_topic(async_session):
    data = _graph([Node(key="start", choices=[Choice(key="c")])], topic_id="nope")

    with pytest.raises(TopicNotFoundError):
        await create_task_graph(async_session, data)


@pytest.mark.asyncio
async def test_load_missing_graph(async_session):
    with pytest.raises(TaskNotFoundError):
        await load_graph(async_session, "does-not-exist")


@pytest.mark.asyncio
async def test_load_returns_cached_graph(async_session, walkthrough_task):
    first = await load_graph(async_session, walkthrough_task.id)
    second = await load_graph(async_session, walkthrough_task.id)
    assert first is second


@pytest.mark.asyncio
async def test_list_tasks_by_topic(async_session):
    await create_topic(async_session, TopicCreate(id="percentages", title="Percentages"))
    await create_task_graph(
        async_session,
        _graph([Node(key="start", choices=[Choice(key="c")])], id="p1", topic_id="percentages"),
    )
    await create_task_graph(
        async_session, _graph([Node(key="start", choices=[Choice(key="c")])], id="loose")
    )

    all_tasks = await list_tasks(async_session)
    assert {t.id for t in all_tasks} == {"p1", "loose"}

    topic_tasks = await list_tasks(async_session, topic_id="percentages")
    assert [t.id for t in topic_tasks] == ["p1"]
    assert topic_tasks[0].topic_id == "percentages"


# ============================================================================
# Traversal
# ============================================================================


@pytest.mark.asyncio
async def test_get_node_and_choice(async_session, walkthrough_task):
    node = get_node(walkthrough_task, "mid")
    assert node.prompt == "3x = 30. What next?"

    choice = get_choice(node, "divide")
    assert choice.next_node == "end"


@pytest.mark.asyncio
async def test_get_missing_node_is_invalid_state(async_session, walkthrough_task):
    with pytest.raises(InvalidStateError):
        get_node(walkthrough_task, "nowhere")


@pytest.mark.asyncio
async def test_get_missing_choice(async_session, walkthrough_task):
    with pytest.raises(ChoiceNotFoundError):
        get_choice(walkthrough_task.nodes["root"], "zzz")
