from __future__ import annotations

import json
from dataclasses import dataclass, field, replace
from typing import Any, Iterator

BOOKKEEPING_KEYS = frozenset({"inkVersion", "listDefs", "#f"})
ENTRY_NODE_KEYS = ("start", "root")

_NODE_FIELDS = {"text", "choices", "isEnding"}
_CHOICE_FIELDS = {"text", "nextNode"}


@dataclass(frozen=True)
class StoryChoice:
    text: str
    next_node: str
    extra: dict[str, Any] = field(default_factory=dict)

    def to_content(self) -> dict[str, Any]:
        return {**self.extra, "text": self.text, "nextNode": self.next_node}


@dataclass(frozen=True)
class StoryNode:
    key: str
    text: str = ""
    choices: tuple[StoryChoice, ...] = ()
    is_ending: bool = False
    metadata: dict[str, Any] = field(default_factory=dict)

    def choice_targets(self) -> list[str]:
        return [choice.next_node for choice in self.choices if choice.next_node]

    def to_content(self) -> dict[str, Any]:
        payload: dict[str, Any] = dict(self.metadata)
        payload["text"] = self.text
        payload["choices"] = [choice.to_content() for choice in self.choices]
        if self.is_ending:
            payload["isEnding"] = True
        return payload


def _parse_choice(raw: Any) -> StoryChoice | None:
    if not isinstance(raw, dict):
        return None
    return StoryChoice(
        text=str(raw.get("text") or ""),
        next_node=str(raw.get("nextNode") or "").strip(),
        extra={k: v for k, v in raw.items() if k not in _CHOICE_FIELDS},
    )


def parse_node(key: str, raw: dict[str, Any]) -> StoryNode:
    raw_choices = raw.get("choices")
    choices = []
    if isinstance(raw_choices, list):
        for item in raw_choices:
            choice = _parse_choice(item)
            if choice is not None:
                choices.append(choice)
    text = raw.get("text")
    if text is None:
        # older documents stored the body under "content"
        text = raw.get("content")
    return StoryNode(
        key=key,
        text=str(text or ""),
        choices=tuple(choices),
        is_ending=bool(raw.get("isEnding")),
        metadata={k: v for k, v in raw.items() if k not in _NODE_FIELDS},
    )


def is_node_entry(key: str, value: Any) -> bool:
    return key not in BOOKKEEPING_KEYS and isinstance(value, dict)


class StoryGraph:
    """Ordered set of story nodes plus non-node bookkeeping entries.

    Declaration order is the order keys appear in the source document and is
    preserved through edits and serialization.
    """

    def __init__(self, nodes: dict[str, StoryNode] | None = None, bookkeeping: dict[str, Any] | None = None, order: list[str] | None = None) -> None:
        self._nodes: dict[str, StoryNode] = dict(nodes or {})
        self._bookkeeping: dict[str, Any] = dict(bookkeeping or {})
        known = list(self._nodes) + [k for k in self._bookkeeping if k not in self._nodes]
        if order is None:
            self._order = known
        else:
            seen = set(order)
            self._order = [k for k in order if k in self._nodes or k in self._bookkeeping]
            self._order.extend(k for k in known if k not in seen)

    @classmethod
    def from_content(cls, content: dict[str, Any] | None) -> StoryGraph:
        payload = content if isinstance(content, dict) else {}
        nodes: dict[str, StoryNode] = {}
        bookkeeping: dict[str, Any] = {}
        order: list[str] = []
        for raw_key, value in payload.items():
            key = str(raw_key)
            order.append(key)
            if is_node_entry(key, value):
                nodes[key] = parse_node(key, value)
            else:
                bookkeeping[key] = value
        return cls(nodes=nodes, bookkeeping=bookkeeping, order=order)

    @classmethod
    def from_json(cls, raw: str | bytes | None) -> StoryGraph:
        if not raw:
            return cls()
        return cls.from_content(json.loads(raw))

    def __contains__(self, key: object) -> bool:
        return key in self._nodes

    def __len__(self) -> int:
        return len(self._nodes)

    def __iter__(self) -> Iterator[str]:
        return iter(self.node_keys())

    def get(self, key: str) -> StoryNode | None:
        return self._nodes.get(key)

    def node_keys(self) -> list[str]:
        """Enumerable node keys in declaration order, bookkeeping excluded."""
        return [k for k in self._order if k in self._nodes]

    def nodes(self) -> list[StoryNode]:
        return [self._nodes[k] for k in self.node_keys()]

    @property
    def bookkeeping(self) -> dict[str, Any]:
        return dict(self._bookkeeping)

    def with_node(self, node: StoryNode) -> StoryGraph:
        nodes = dict(self._nodes)
        nodes[node.key] = node
        return StoryGraph(nodes=nodes, bookkeeping=self._bookkeeping, order=self._order)

    def update_node(self, key: str, **changes: Any) -> StoryGraph:
        current = self._nodes[key]
        return self.with_node(replace(current, **changes))

    def to_content(self) -> dict[str, Any]:
        payload: dict[str, Any] = {}
        for key in self._order:
            if key in self._nodes:
                payload[key] = self._nodes[key].to_content()
            else:
                payload[key] = self._bookkeeping[key]
        return payload

    def to_json(self) -> str:
        return json.dumps(self.to_content(), ensure_ascii=False)
