"""
Tests for ingestion service.
"""

import json
from pathlib import Path

import pytest

from mathmind.services.classroom_service import list_topics
from mathmind.services.graph_service import list_tasks, load_graph
from mathmind.services.ingest import ingest_task_file, parse_task_file

SEED_FILE = Path(__file__).parents[2] / "data" / "seed_tasks.json"


def _task_file(tmp_path, data):
    file_path = tmp_path / "tasks.json"
    file_path.write_text(json.dumps(data))
    return file_path


SIMPLE = {
    "topics": [
        {
            "id": "equations",
            "title": "Equations",
            "tasks": [
                {
                    "id": "solve-x",
                    "title": "Solve x + 1 = 2",
                    "root_node": "start",
                    "nodes": [
                        {
                            "key": "start",
                            "prompt": "x + 1 = 2",
                            "choices": [
                                {"key": "a", "text": "Subtract 1", "next_node": "done"},
                                {
                                    "key": "b",
                                    "text": "Add 1",
                                    "is_mistake": True,
                                    "mistake_type": "wrong direction",
                                    "next_node": "start",
                                },
                            ],
                        },
                        {"key": "done", "prompt": "x = 1", "terminal": True},
                    ],
                }
            ],
        }
    ]
}


@pytest.mark.asyncio
async def test_ingest_simple_file(async_session, tmp_path):
    """Test ingesting one topic with one task."""
    result = await ingest_task_file(async_session, _task_file(tmp_path, SIMPLE))

    assert result.topic_count == 1
    assert result.task_count == 1
    assert result.task_ids == ["solve-x"]
    assert result.errors == []

    graph = await load_graph(async_session, "solve-x")
    assert graph.topic_id == "equations"
    assert graph.nodes["start"].choices[1].mistake_type == "wrong direction"


@pytest.mark.asyncio
async def test_ingest_twice_skips_existing(async_session, tmp_path):
    file_path = _task_file(tmp_path, SIMPLE)
    await ingest_task_file(async_session, file_path)

    result = await ingest_task_file(async_session, file_path)

    assert result.task_count == 0
    assert result.skipped == ["solve-x"]
    assert len(await list_topics(async_session)) == 1


@pytest.mark.asyncio
async def test_ingest_dry_run_writes_nothing(async_session, tmp_path):
    result = await ingest_task_file(async_session, _task_file(tmp_path, SIMPLE), dry_run=True)

    assert result.task_count == 1
    assert result.task_ids == ["solve-x"]
    assert await list_tasks(async_session) == []


@pytest.mark.asyncio
async def test_ingest_invalid_graph_raises(async_session, tmp_path):
    data = json.loads(json.dumps(SIMPLE))
    data["topics"][0]["tasks"][0]["nodes"][0]["choices"][0]["next_node"] = "nowhere"

    with pytest.raises(ValueError, match="missing node 'nowhere'"):
        await ingest_task_file(async_session, _task_file(tmp_path, data))

    assert await list_topics(async_session) == []


@pytest.mark.asyncio
async def test_ingest_missing_file(async_session, tmp_path):
    with pytest.raises(FileNotFoundError):
        await ingest_task_file(async_session, tmp_path / "nope.json")


def test_parse_requires_topics():
    topics, graphs, errors = parse_task_file({})
    assert topics == [] and graphs == []
    assert errors == ["File must contain a non-empty 'topics' list"]


def test_parse_reports_schema_errors():
    data = json.loads(json.dumps(SIMPLE))
    del data["topics"][0]["tasks"][0]["root_node"]

    _, graphs, errors = parse_task_file(data)

    assert graphs == []
    assert len(errors) == 1
    assert errors[0].startswith("Solve x + 1 = 2: root_node")


def test_parse_generates_topic_id():
    data = json.loads(json.dumps(SIMPLE))
    del data["topics"][0]["id"]

    topics, graphs, errors = parse_task_file(data)

    assert errors == []
    assert topics[0].id.startswith("topic-")
    assert graphs[0].topic_id == topics[0].id


@pytest.mark.asyncio
async def test_ingest_seed_file(async_session):
    """The bundled seed tasks are valid and load completely."""
    result = await ingest_task_file(async_session, SEED_FILE)

    assert result.topic_count == 2
    assert result.task_count == 12
    assert {t.id for t in await list_topics(async_session)} == {"percentages", "equations"}
    assert len(await list_tasks(async_session, topic_id="percentages")) == 6

    coupon = await load_graph(async_session, "coupon-discount")
    assert coupon.nodes["start"].choices[0].next_node is None
