from __future__ import annotations

import logging
from dataclasses import dataclass
from enum import Enum

from app.modules.story.graph import StoryGraph
from app.modules.story.page_mapping import NodeMapping, compute_mapping, find_entry_node

logger = logging.getLogger(__name__)


class NavigationPhase(str, Enum):
    IDLE = "idle"
    READY = "ready"


@dataclass(frozen=True)
class NavigationRejection:
    code: str
    message: str


@dataclass(frozen=True)
class NavigationResult:
    accepted: bool
    node_key: str | None
    page: int | None
    rejection: NavigationRejection | None = None


@dataclass(frozen=True)
class NavigationState:
    phase: NavigationPhase
    current_node: str | None
    current_page: int | None
    total_pages: int
    history: tuple[str, ...]

    @property
    def can_go_back(self) -> bool:
        return len(self.history) > 0


class NavigationStateMachine:
    """Current position, back-history and page mapping for one story session.

    Page and node are two coordinates of one position: every accepted
    transition sets both from the active mapping, and rejected transitions
    leave the state untouched.
    """

    def __init__(self) -> None:
        self._graph: StoryGraph | None = None
        self._mapping: NodeMapping | None = None
        self._entry: str | None = None
        self._current: str | None = None
        self._history: list[str] = []

    @property
    def phase(self) -> NavigationPhase:
        return NavigationPhase.READY if self._mapping is not None else NavigationPhase.IDLE

    @property
    def mapping(self) -> NodeMapping | None:
        return self._mapping

    @property
    def graph(self) -> StoryGraph | None:
        return self._graph

    @property
    def current_node(self) -> str | None:
        return self._current

    @property
    def current_page(self) -> int | None:
        if self._mapping is None or self._current is None:
            return None
        return self._mapping.page_of(self._current)

    @property
    def can_go_back(self) -> bool:
        return len(self._history) > 0

    def snapshot(self) -> NavigationState:
        return NavigationState(
            phase=self.phase,
            current_node=self._current,
            current_page=self.current_page,
            total_pages=self._mapping.total_pages if self._mapping else 0,
            history=tuple(self._history),
        )

    def initialize(self, graph: StoryGraph) -> NavigationResult:
        # MappingError propagates; nothing is assigned until both succeed
        mapping = compute_mapping(graph)
        entry = find_entry_node(graph)
        self._graph = graph
        self._mapping = mapping
        self._entry = entry
        self._current = entry
        self._history = []
        logger.info("story initialized: %d pages (%s mapping)", mapping.total_pages, mapping.algorithm)
        return self._accepted()

    def teardown(self) -> None:
        self._graph = None
        self._mapping = None
        self._entry = None
        self._current = None
        self._history = []

    def go_to_page(self, page: int) -> NavigationResult:
        if self._mapping is None:
            return self._rejected("NOT_READY", "No story is loaded.")
        if not isinstance(page, int) or isinstance(page, bool) or not 1 <= page <= self._mapping.total_pages:
            return self._rejected(
                "PAGE_OUT_OF_RANGE",
                f"Page {page} is outside 1..{self._mapping.total_pages}.",
            )
        target = self._mapping.node_at(page)
        if target is None:
            return self._rejected("PAGE_OUT_OF_RANGE", f"Page {page} has no node.")
        return self._move_to(target)

    def go_to_node(self, node_key: str) -> NavigationResult:
        if self._mapping is None:
            return self._rejected("NOT_READY", "No story is loaded.")
        if self._mapping.page_of(node_key) is None:
            return self._rejected("UNKNOWN_NODE", f"Node '{node_key}' is not part of this story.")
        return self._move_to(node_key)

    def follow_choice(self, index: int) -> NavigationResult:
        if self._mapping is None or self._graph is None or self._current is None:
            return self._rejected("NOT_READY", "No story is loaded.")
        node = self._graph.get(self._current)
        choices = node.choices if node is not None else ()
        if not 0 <= index < len(choices):
            return self._rejected("CHOICE_OUT_OF_RANGE", f"Choice {index} does not exist on '{self._current}'.")
        target = choices[index].next_node
        if not target or self._mapping.page_of(target) is None:
            return self._rejected("DANGLING_CHOICE", f"Choice {index} on '{self._current}' leads nowhere.")
        return self._move_to(target)

    def continue_story(self) -> NavigationResult:
        if self._graph is None or self._current is None:
            return self._rejected("NOT_READY", "No story is loaded.")
        node = self._graph.get(self._current)
        if node is None or len(node.choices) != 1:
            return self._rejected("NOT_SINGLE_CHOICE", "Continue needs exactly one choice on the current node.")
        return self.follow_choice(0)

    def go_back(self) -> NavigationResult:
        if self._mapping is None:
            return self._rejected("NOT_READY", "No story is loaded.")
        if not self._history:
            return self._rejected("HISTORY_EMPTY", "There is no previous page.")
        previous = self._history.pop()
        self._current = previous
        return self._accepted()

    def restart(self) -> NavigationResult:
        if self._mapping is None or self._entry is None:
            return self._rejected("NOT_READY", "No story is loaded.")
        self._history = []
        self._current = self._entry
        return self._accepted()

    def remap(self, graph: StoryGraph) -> NavigationResult:
        """Adopt an edited graph, keeping the reader where they were if possible."""
        if self._mapping is None:
            return self._rejected("NOT_READY", "No story is loaded.")
        mapping = compute_mapping(graph)
        entry = find_entry_node(graph)
        current = self._current if self._current in mapping.node_to_page else entry

        history: list[str] = []
        for key in self._history:
            if key not in mapping.node_to_page:
                continue
            if history and history[-1] == key:
                continue
            history.append(key)
        if history and history[-1] == current:
            history.pop()

        self._graph = graph
        self._mapping = mapping
        self._entry = entry
        self._current = current
        self._history = history
        return self._accepted()

    def _move_to(self, target: str) -> NavigationResult:
        if self._current is not None and self._current != target:
            if not self._history or self._history[-1] != self._current:
                self._history.append(self._current)
        self._current = target
        return self._accepted()

    def _accepted(self) -> NavigationResult:
        return NavigationResult(accepted=True, node_key=self._current, page=self.current_page)

    def _rejected(self, code: str, message: str) -> NavigationResult:
        logger.debug("navigation rejected: %s (%s)", code, message)
        return NavigationResult(
            accepted=False,
            node_key=self._current,
            page=self.current_page,
            rejection=NavigationRejection(code=code, message=message),
        )
