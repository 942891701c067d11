from __future__ import annotations

import json

from app.modules.comments.types import Comment
from app.modules.story.graph import StoryGraph
from app.modules.story.page_mapping import NodeMapping

DEFAULT_SYSTEM_PROMPT = (
    "You help authors improve an interactive branching story. "
    "Each page is one story node with text and choices that lead to other nodes."
)


def format_page_comments(comments: list[Comment]) -> str:
    if not comments:
        return "\nNo reader comments for this page."
    lines = [f'- {c.author_name} ({c.category.label}): "{c.text}"' for c in comments]
    return "\nReader comments for this page:\n" + "\n".join(lines)


def _neighbour_text(graph: StoryGraph, mapping: NodeMapping, page: int, label: str) -> str:
    key = mapping.node_at(page)
    node = graph.get(key) if key else None
    if node is None:
        return ""
    return f'\n{label} page content: "{node.text}"'


def build_story_context(graph: StoryGraph, mapping: NodeMapping, node_key: str, page: int) -> str:
    node = graph.get(node_key)
    text = node.text if node else ""
    choices = [choice.to_content() for choice in node.choices] if node else []
    return (
        "\nCURRENT STORY CONTEXT:\n"
        f"Page Number: {page}\n"
        f"Node Name: {node_key}\n"
        f'Current Text: "{text}"\n'
        f"Current Choices: {json.dumps(choices, ensure_ascii=False, indent=2)}"
        f"{_neighbour_text(graph, mapping, page - 1, 'Previous')}"
        f"{_neighbour_text(graph, mapping, page + 1, 'Next')}\n"
    )


def build_generation_prompt(
    *,
    graph: StoryGraph,
    mapping: NodeMapping,
    node_key: str,
    page: int,
    comments: list[Comment],
    instruction: str,
) -> str:
    return (
        f"{build_story_context(graph, mapping, node_key, page)}"
        f"{format_page_comments(comments)}\n"
        f"\nUSER REQUEST:\n{instruction.strip()}\n"
    )
