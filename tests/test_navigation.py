from __future__ import annotations

import pytest

from app.modules.errors import MappingError
from app.modules.navigation.state_machine import NavigationPhase, NavigationStateMachine
from app.modules.story.graph import StoryGraph
from tests.support.story_seed import branching_story, linear_story


def _cycle_graph() -> StoryGraph:
    return StoryGraph.from_content(
        {
            "root": {"text": "r", "choices": [{"text": "a", "nextNode": "A"}, {"text": "b", "nextNode": "B"}]},
            "A": {"text": "a", "choices": [], "isEnding": True},
            "B": {"text": "b", "choices": [{"text": "back", "nextNode": "root"}]},
        }
    )


def _ready(graph: StoryGraph | None = None) -> NavigationStateMachine:
    machine = NavigationStateMachine()
    machine.initialize(graph or _cycle_graph())
    return machine


def test_initialize_positions_on_entry_node() -> None:
    machine = _ready()
    state = machine.snapshot()
    assert state.phase is NavigationPhase.READY
    assert (state.current_node, state.current_page, state.total_pages) == ("root", 1, 3)
    assert state.history == ()
    assert state.can_go_back is False


def test_end_to_end_goto_node_and_back() -> None:
    machine = _ready()
    assert machine.mapping.node_to_page == {"root": 1, "A": 2, "B": 3}

    machine.go_to_node("B")
    machine.go_to_node("root")
    result = machine.go_back()

    assert result.accepted is True
    assert (machine.current_node, machine.current_page) == ("B", 3)


def test_go_to_page_then_back_restores_previous_position() -> None:
    machine = _ready()
    machine.go_to_page(3)
    before = (machine.current_node, machine.current_page)

    machine.go_to_page(2)
    machine.go_back()

    assert (machine.current_node, machine.current_page) == before


def test_out_of_range_page_is_rejected_without_state_change() -> None:
    machine = _ready()
    before = machine.snapshot()
    for page in (0, 4, -1):
        result = machine.go_to_page(page)
        assert result.accepted is False
        assert result.rejection.code == "PAGE_OUT_OF_RANGE"
    assert machine.snapshot() == before


def test_unknown_node_is_rejected() -> None:
    machine = _ready()
    result = machine.go_to_node("nowhere")
    assert result.accepted is False
    assert result.rejection.code == "UNKNOWN_NODE"
    assert machine.current_node == "root"


def test_go_back_on_empty_history_is_rejected() -> None:
    machine = _ready()
    result = machine.go_back()
    assert result.rejection.code == "HISTORY_EMPTY"
    assert machine.current_node == "root"


def test_staying_on_the_same_node_does_not_grow_history() -> None:
    machine = _ready()
    machine.go_to_page(1)
    machine.go_to_node("root")
    assert machine.snapshot().history == ()


def test_restart_clears_history() -> None:
    machine = _ready()
    machine.go_to_node("B")
    machine.go_to_node("A")
    result = machine.restart()
    assert result.accepted is True
    assert (machine.current_node, machine.current_page) == ("root", 1)
    assert machine.snapshot().history == ()


def test_follow_choice_and_continue() -> None:
    machine = _ready(StoryGraph.from_content(linear_story()))

    assert machine.follow_choice(0).node_key == "middle"
    assert machine.continue_story().node_key == "end"
    assert machine.continue_story().rejection.code == "NOT_SINGLE_CHOICE"
    assert machine.snapshot().history == ("start", "middle")


def test_follow_choice_rejects_bad_index_and_dangling_target() -> None:
    graph = StoryGraph.from_content({"root": {"text": "", "choices": [{"text": "x", "nextNode": "ghost"}]}})
    machine = _ready(graph)
    assert machine.follow_choice(3).rejection.code == "CHOICE_OUT_OF_RANGE"
    assert machine.follow_choice(0).rejection.code == "DANGLING_CHOICE"
    assert machine.current_node == "root"


def test_empty_graph_leaves_machine_idle() -> None:
    machine = NavigationStateMachine()
    with pytest.raises(MappingError):
        machine.initialize(StoryGraph.from_content({"inkVersion": 21}))
    state = machine.snapshot()
    assert state.phase is NavigationPhase.IDLE
    assert state.current_node is None
    assert machine.go_to_page(1).rejection.code == "NOT_READY"


def test_remap_keeps_current_node_and_prunes_history() -> None:
    machine = _ready(StoryGraph.from_content(branching_story()))
    machine.go_to_node("B")
    machine.go_to_node("C")
    assert machine.snapshot().history == ("root", "B")

    content = branching_story()
    del content["B"]
    content["root"]["choices"] = [{"text": "Climb", "nextNode": "A"}]
    machine.remap(StoryGraph.from_content(content))

    state = machine.snapshot()
    assert state.current_node == "C"
    assert state.current_page == 3
    assert state.history == ("root",)


def test_remap_moves_to_entry_when_current_node_is_removed() -> None:
    machine = _ready(StoryGraph.from_content(branching_story()))
    machine.go_to_node("B")

    content = branching_story()
    del content["B"]
    machine.remap(StoryGraph.from_content(content))

    assert machine.current_node == "root"
    assert machine.snapshot().history == ()


def test_teardown_returns_to_idle() -> None:
    machine = _ready()
    machine.go_to_node("A")
    machine.teardown()
    state = machine.snapshot()
    assert state.phase is NavigationPhase.IDLE
    assert state.history == ()
    assert state.total_pages == 0
