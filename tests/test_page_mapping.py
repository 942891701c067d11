from __future__ import annotations

import pytest

from app.modules.errors import MappingError
from app.modules.story import page_mapping
from app.modules.story.graph import StoryGraph
from app.modules.story.page_mapping import (
    compute_mapping,
    declaration_sequence,
    find_entry_node,
    mapping_from_sequence,
    validate_mapping,
)
from tests.support.story_seed import branching_story


def _node(*targets: str, ending: bool = False) -> dict:
    return {"text": "", "choices": [{"text": t, "nextNode": t} for t in targets], "isEnding": ending}


def test_mapping_is_a_dense_bijection_over_enumerable_nodes() -> None:
    graph = StoryGraph.from_content(branching_story())
    mapping = compute_mapping(graph)

    assert mapping.total_pages == 4
    assert mapping.algorithm == "structural"
    for page in range(1, mapping.total_pages + 1):
        assert mapping.node_to_page[mapping.page_to_node[page]] == page
    assert "inkVersion" not in mapping.node_to_page
    assert "listDefs" not in mapping.node_to_page


def test_mapping_is_breadth_first_in_choice_order() -> None:
    graph = StoryGraph.from_content(branching_story())
    mapping = compute_mapping(graph)
    assert mapping.node_to_page == {"root": 1, "A": 2, "B": 3, "C": 4}


def test_cycle_terminates_with_one_page_per_node() -> None:
    graph = StoryGraph.from_content({"root": _node("A", "B"), "A": _node(ending=True), "B": _node("root")})
    mapping = compute_mapping(graph)
    assert mapping.node_to_page == {"root": 1, "A": 2, "B": 3}
    assert mapping.total_pages == 3


def test_self_loop_and_duplicate_targets_are_visited_once() -> None:
    graph = StoryGraph.from_content({"start": _node("start", "next", "next"), "next": _node("start")})
    mapping = compute_mapping(graph)
    assert mapping.node_to_page == {"start": 1, "next": 2}


def test_unreachable_nodes_follow_reachable_ones_in_declaration_order() -> None:
    graph = StoryGraph.from_content(
        {"orphan_b": _node(), "root": _node("A"), "orphan_a": _node(), "A": _node(ending=True)}
    )
    mapping = compute_mapping(graph)
    assert [mapping.page_to_node[p] for p in range(1, 5)] == ["root", "A", "orphan_b", "orphan_a"]


def test_dangling_targets_are_ignored() -> None:
    graph = StoryGraph.from_content({"root": _node("missing", "A"), "A": _node(ending=True)})
    mapping = compute_mapping(graph)
    assert mapping.node_to_page == {"root": 1, "A": 2}


def test_start_is_preferred_over_root() -> None:
    graph = StoryGraph.from_content({"root": _node(), "start": _node("root")})
    assert find_entry_node(graph) == "start"
    assert compute_mapping(graph).page_of("start") == 1


def test_empty_graph_raises_mapping_error() -> None:
    graph = StoryGraph.from_content({"inkVersion": 21, "listDefs": {}})
    with pytest.raises(MappingError) as exc:
        compute_mapping(graph)
    assert exc.value.code == "EMPTY_STORY"
    assert exc.value.retryable is False


def test_missing_entry_node_raises_mapping_error() -> None:
    graph = StoryGraph.from_content({"intro": _node()})
    with pytest.raises(MappingError) as exc:
        compute_mapping(graph)
    assert exc.value.code == "MISSING_ENTRY_NODE"


def test_invalid_structural_output_falls_back_to_declaration_order(monkeypatch) -> None:
    graph = StoryGraph.from_content({"x": _node(), "root": _node("x"), "y": _node()})
    monkeypatch.setattr(page_mapping, "structural_sequence", lambda g: ["root", "x"])

    mapping = compute_mapping(graph)

    assert mapping.algorithm == "declaration"
    assert mapping.node_to_page == {"root": 1, "x": 2, "y": 3}
    assert validate_mapping(graph, mapping) is True


def test_fallback_failure_raises_mapping_invalid(monkeypatch) -> None:
    graph = StoryGraph.from_content({"root": _node("x"), "x": _node()})
    monkeypatch.setattr(page_mapping, "structural_sequence", lambda g: ["root"])
    monkeypatch.setattr(page_mapping, "declaration_sequence", lambda g: ["root", "root"])

    with pytest.raises(MappingError) as exc:
        compute_mapping(graph)
    assert exc.value.code == "MAPPING_INVALID"


def test_validate_rejects_gaps_and_missing_nodes() -> None:
    graph = StoryGraph.from_content({"root": _node("a"), "a": _node()})
    assert validate_mapping(graph, mapping_from_sequence(["root"], "structural")) is False
    assert validate_mapping(graph, mapping_from_sequence(["root", "a", "ghost"], "structural")) is False
    assert validate_mapping(graph, mapping_from_sequence(declaration_sequence(graph), "declaration")) is True


def test_bookkeeping_survives_serialization_in_place() -> None:
    content = branching_story()
    graph = StoryGraph.from_content(content)
    assert list(graph.to_content().keys()) == list(content.keys())
    assert graph.bookkeeping == {"inkVersion": 21, "listDefs": {}}
    assert graph.node_keys() == ["root", "A", "B", "C"]
