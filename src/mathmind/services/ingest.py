"""
Ingestion service for importing task graphs from JSON files.

File layout::

    {
      "topics": [
        {
          "id": "percentages",
          "title": "Percentages",
          "description": "...",
          "tasks": [
            {
              "id": "discount-price",
              "title": "...",
              "root_node": "start",
              "nodes": [
                {"key": "start", "prompt": "...", "choices": [
                  {"key": "c1", "text": "...", "next_node": "calc"},
                  {"key": "c2", "text": "...", "is_mistake": true,
                   "mistake_type": "...", "hint": "...", "next_node": "start"}
                ]},
                {"key": "done", "prompt": "...", "terminal": true}
              ]
            }
          ]
        }
      ]
    }

Every graph is validated before anything is written.
"""

import json
import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

from pydantic import ValidationError
from sqlalchemy.ext.asyncio import AsyncSession

from mathmind.models import TaskGraphCreate, TaskModel, TopicCreate, TopicModel
from mathmind.services.classroom_service import create_topic
from mathmind.services.graph_service import create_task_graph, validate_graph
from mathmind.utils.ids import PREFIX_TOPIC, generate_entity_id

logger = logging.getLogger(__name__)


@dataclass
class IngestResult:
    """Result of an ingestion operation."""

    topic_count: int
    task_count: int
    task_ids: list[str] = field(default_factory=list)
    skipped: list[str] = field(default_factory=list)
    errors: list[str] = field(default_factory=list)


def parse_task_file(
    data: dict[str, Any],
) -> tuple[list[TopicCreate], list[TaskGraphCreate], list[str]]:
    """
    Parse and validate the contents of a task file.

    Returns:
        (topics, graphs, errors) - errors is empty when everything is valid
    """
    errors: list[str] = []
    topics: list[TopicCreate] = []
    graphs: list[TaskGraphCreate] = []

    if not isinstance(data.get("topics"), list) or not data["topics"]:
        return topics, graphs, ["File must contain a non-empty 'topics' list"]

    for i, topic_data in enumerate(data["topics"]):
        label = topic_data.get("title") or f"topic #{i + 1}"
        try:
            topic = TopicCreate(
                id=topic_data.get("id") or generate_entity_id(PREFIX_TOPIC),
                title=topic_data.get("title", ""),
                description=topic_data.get("description", ""),
            )
        except ValidationError as e:
            errors.append(f"{label}: {_first_error(e)}")
            continue
        topics.append(topic)

        for j, task_data in enumerate(topic_data.get("tasks", [])):
            task_label = task_data.get("title") or f"{label} task #{j + 1}"
            try:
                graph = TaskGraphCreate(**{**task_data, "topic_id": topic.id})
            except ValidationError as e:
                errors.append(f"{task_label}: {_first_error(e)}")
                continue
            graph_errors = validate_graph(graph)
            if graph_errors:
                errors.extend(f"{task_label}: {err}" for err in graph_errors)
                continue
            graphs.append(graph)

    return topics, graphs, errors


def _first_error(error: ValidationError) -> str:
    detail = error.errors()[0]
    location = ".".join(str(part) for part in detail["loc"])
    return f"{location}: {detail['msg']}" if location else detail["msg"]


async def ingest_task_file(
    session: AsyncSession,
    file_path: Path,
    dry_run: bool = False,
) -> IngestResult:
    """
    Ingest topics and task graphs from a JSON file.

    Topics whose ID already exists are reused; tasks whose ID already exists are
    skipped.

    Args:
        session: Database session
        file_path: Path to JSON file
        dry_run: If True, validate without creating

    Returns:
        IngestResult with counts

    Raises:
        ValueError: If the file holds an invalid topic or graph
        FileNotFoundError: If the file doesn't exist
    """
    with open(file_path, encoding="utf-8") as f:
        data = json.load(f)

    topics, graphs, errors = parse_task_file(data)

    if dry_run:
        return IngestResult(
            topic_count=len(topics),
            task_count=len(graphs),
            task_ids=[g.id for g in graphs if g.id],
            errors=errors,
        )

    if errors:
        raise ValueError(f"Invalid task file: {', '.join(errors)}")

    for topic in topics:
        if await session.get(TopicModel, topic.id) is not None:
            logger.info("Reusing existing topic %s", topic.id)
            continue
        await create_topic(session, topic)

    result = IngestResult(topic_count=len(topics), task_count=0)
    for graph in graphs:
        if graph.id is not None and await session.get(TaskModel, graph.id) is not None:
            logger.warning("Skipping task %s: already registered", graph.id)
            result.skipped.append(graph.id)
            continue
        created = await create_task_graph(session, graph)
        result.task_ids.append(created.id)
        result.task_count += 1
        logger.info("Registered task %s (%d nodes)", created.id, len(created.nodes))

    return result
