from __future__ import annotations

import logging
import uuid

from sqlalchemy.orm import Session

from app.db.models import Story
from app.modules.errors import MappingError
from app.modules.story.graph import StoryGraph
from app.modules.story.page_mapping import compute_mapping
from app.modules.story.validation import friendly_story_issue, validate_story_graph_structural
from app.utils.time import utc_now_naive

logger = logging.getLogger(__name__)


def create_story(db: Session, *, title: str, content: dict, story_id: str | None = None) -> Story:
    graph = StoryGraph.from_content(content)
    now = utc_now_naive()
    row = Story(
        id=str(story_id or "").strip() or str(uuid.uuid4()),
        title=str(title or "").strip(),
        story_content=graph.to_json(),
        created_at=now,
        updated_at=now,
    )
    db.add(row)
    return row


def get_story(db: Session, story_id: str) -> Story | None:
    return db.get(Story, story_id)


def story_graph(row: Story) -> StoryGraph:
    return StoryGraph.from_json(row.story_content)


def preview_story(content: dict) -> dict:
    """Structural diagnostics plus the page mapping a session would use."""
    graph = StoryGraph.from_content(content)
    errors, warnings = validate_story_graph_structural(graph)
    mapping = None
    mapping_error = None
    try:
        mapping = compute_mapping(graph).as_payload()
    except MappingError as exc:
        mapping_error = exc.as_detail()
        logger.warning("story preview has no page mapping: %s", exc.code)
    return {
        "valid": not errors and mapping_error is None,
        "errors": [friendly_story_issue(item) for item in errors],
        "warnings": [friendly_story_issue(item) for item in warnings],
        "node_count": len(graph),
        "mapping": mapping,
        "mapping_error": mapping_error,
    }
