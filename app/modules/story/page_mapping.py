from __future__ import annotations

import logging
from collections import deque
from dataclasses import dataclass, field
from typing import Literal

from app.modules.errors import MappingError
from app.modules.story.graph import ENTRY_NODE_KEYS, StoryGraph

logger = logging.getLogger(__name__)

MappingAlgorithm = Literal["structural", "declaration"]


@dataclass(frozen=True)
class NodeMapping:
    node_to_page: dict[str, int] = field(default_factory=dict)
    page_to_node: dict[int, str] = field(default_factory=dict)
    total_pages: int = 0
    algorithm: MappingAlgorithm = "structural"

    def page_of(self, node_key: str) -> int | None:
        return self.node_to_page.get(node_key)

    def node_at(self, page: int) -> str | None:
        return self.page_to_node.get(page)

    def as_payload(self) -> dict:
        return {
            "node_to_page": dict(self.node_to_page),
            "page_to_node": {str(page): key for page, key in self.page_to_node.items()},
            "total_pages": self.total_pages,
            "algorithm": self.algorithm,
        }


def find_entry_node(graph: StoryGraph) -> str:
    if len(graph) == 0:
        raise MappingError(code="EMPTY_STORY", message="Story has no nodes to paginate.")
    for key in ENTRY_NODE_KEYS:
        if key in graph:
            return key
    raise MappingError(
        code="MISSING_ENTRY_NODE",
        message=f"Story has no entry node (expected one of: {', '.join(ENTRY_NODE_KEYS)}).",
    )


def _edges(graph: StoryGraph, node_key: str) -> list[str]:
    node = graph.get(node_key)
    if node is None:
        return []
    out: list[str] = []
    for target in node.choice_targets():
        if target in graph and target not in out:
            out.append(target)
    return out


def structural_sequence(graph: StoryGraph) -> list[str]:
    """Breadth-first order from the entry node, then unreachable nodes.

    Edges are followed in choice order. Unreachable nodes keep their
    declaration order after every reachable one.
    """
    entry = find_entry_node(graph)
    visited: set[str] = set()
    sequence: list[str] = []
    queue: deque[str] = deque([entry])
    while queue:
        node_key = queue.popleft()
        if node_key in visited:
            continue
        visited.add(node_key)
        sequence.append(node_key)
        for target in _edges(graph, node_key):
            if target not in visited:
                queue.append(target)

    for node_key in graph.node_keys():
        if node_key not in visited:
            visited.add(node_key)
            sequence.append(node_key)
    return sequence


def declaration_sequence(graph: StoryGraph) -> list[str]:
    # entry node is hoisted so that page 1 stays the entry
    entry = find_entry_node(graph)
    return [entry, *[key for key in graph.node_keys() if key != entry]]


def mapping_from_sequence(sequence: list[str], algorithm: MappingAlgorithm) -> NodeMapping:
    node_to_page: dict[str, int] = {}
    page_to_node: dict[int, str] = {}
    for index, node_key in enumerate(sequence):
        page = index + 1
        node_to_page[node_key] = page
        page_to_node[page] = node_key
    return NodeMapping(
        node_to_page=node_to_page,
        page_to_node=page_to_node,
        total_pages=len(sequence),
        algorithm=algorithm,
    )


def validate_mapping(graph: StoryGraph, mapping: NodeMapping) -> bool:
    node_keys = graph.node_keys()
    valid = True

    unmapped = [key for key in node_keys if key not in mapping.node_to_page]
    if unmapped:
        logger.warning("mapping validation: %d nodes without a page: %s", len(unmapped), unmapped[:10])
        valid = False

    missing_pages = [page for page in range(1, mapping.total_pages + 1) if page not in mapping.page_to_node]
    extra_pages = [page for page in mapping.page_to_node if not 1 <= page <= mapping.total_pages]
    if missing_pages or extra_pages:
        logger.warning("mapping validation: pages not dense, missing=%s extra=%s", missing_pages[:10], extra_pages[:10])
        valid = False

    broken = [
        (key, page)
        for key, page in mapping.node_to_page.items()
        if mapping.page_to_node.get(page) != key
    ]
    broken.extend(
        (key, page)
        for page, key in mapping.page_to_node.items()
        if mapping.node_to_page.get(key) != page
    )
    if broken:
        logger.warning("mapping validation: inverse mismatch: %s", broken[:10])
        valid = False

    if mapping.total_pages != len(node_keys) or len(mapping.node_to_page) != len(node_keys):
        logger.warning(
            "mapping validation: total_pages=%d but graph has %d nodes",
            mapping.total_pages,
            len(node_keys),
        )
        valid = False

    return valid


def compute_mapping(graph: StoryGraph) -> NodeMapping:
    entry = find_entry_node(graph)

    structural = mapping_from_sequence(structural_sequence(graph), "structural")
    if validate_mapping(graph, structural) and structural.page_of(entry) == 1:
        return structural

    logger.warning("structural page mapping failed validation, falling back to declaration order")
    fallback = mapping_from_sequence(declaration_sequence(graph), "declaration")
    if validate_mapping(graph, fallback) and fallback.page_of(entry) == 1:
        return fallback

    raise MappingError(
        code="MAPPING_INVALID",
        message="Neither structural nor declaration-order page mapping passed validation.",
    )
