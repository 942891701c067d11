from __future__ import annotations

from app.modules.story.graph import ENTRY_NODE_KEYS, StoryGraph


def validate_story_graph_structural(graph: StoryGraph) -> tuple[list[str], list[str]]:
    """Return (errors, warnings) for a story graph.

    Errors make the graph unusable for a reading session. Warnings flag
    authoring problems that pagination tolerates.
    """
    errors: list[str] = []
    warnings: list[str] = []
    node_keys = graph.node_keys()

    if not node_keys:
        errors.append("EMPTY_STORY")
        return errors, warnings

    entry = next((key for key in ENTRY_NODE_KEYS if key in graph), None)
    if entry is None:
        errors.append(f"MISSING_ENTRY_NODE:{'|'.join(ENTRY_NODE_KEYS)}")

    for node in graph.nodes():
        if node.is_ending and node.choices:
            warnings.append(f"ENDING_WITH_CHOICES:{node.key}")
        if not node.is_ending and not node.choices:
            warnings.append(f"DEAD_END:{node.key}")
        for index, choice in enumerate(node.choices):
            if not choice.next_node:
                warnings.append(f"EMPTY_CHOICE_TARGET:{node.key}:{index}")
            elif choice.next_node not in graph:
                warnings.append(f"DANGLING_CHOICE_TARGET:{node.key}->{choice.next_node}")

    if entry is not None:
        reachable: set[str] = set()
        stack = [entry]
        while stack:
            key = stack.pop()
            if key in reachable:
                continue
            reachable.add(key)
            node = graph.get(key)
            if node is None:
                continue
            stack.extend(t for t in node.choice_targets() if t in graph and t not in reachable)
        for key in node_keys:
            if key not in reachable:
                warnings.append(f"UNREACHABLE_NODE:{key}")

    return errors, warnings


def friendly_story_issue(issue: str) -> dict[str, str | None]:
    text = str(issue or "").strip()
    if text == "EMPTY_STORY":
        return {
            "code": "EMPTY_STORY",
            "node": None,
            "message": "The story has no nodes.",
            "suggestion": "Add a 'root' or 'start' node.",
        }
    if text.startswith("MISSING_ENTRY_NODE:"):
        return {
            "code": "MISSING_ENTRY_NODE",
            "node": None,
            "message": "The story has no entry node.",
            "suggestion": "Name the first node 'root' or 'start'.",
        }
    if text.startswith("DANGLING_CHOICE_TARGET:"):
        source, _, target = text.split(":", 1)[1].partition("->")
        return {
            "code": "DANGLING_CHOICE_TARGET",
            "node": source,
            "message": f"Choice in '{source}' points to missing node '{target}'.",
            "suggestion": "Point the choice at an existing node or create it.",
        }
    if text.startswith("EMPTY_CHOICE_TARGET:"):
        _, source, index = text.split(":", 2)
        return {
            "code": "EMPTY_CHOICE_TARGET",
            "node": source,
            "message": f"Choice #{index} in '{source}' has no target.",
            "suggestion": "Set nextNode for this choice.",
        }
    if text.startswith("UNREACHABLE_NODE:"):
        key = text.split(":", 1)[1]
        return {
            "code": "UNREACHABLE_NODE",
            "node": key,
            "message": f"Node '{key}' cannot be reached from the entry node.",
            "suggestion": "It is still paginated after all reachable nodes.",
        }
    if text.startswith("DEAD_END:"):
        key = text.split(":", 1)[1]
        return {
            "code": "DEAD_END",
            "node": key,
            "message": f"Node '{key}' has no choices and is not marked as an ending.",
            "suggestion": "Add a choice or set isEnding.",
        }
    if text.startswith("ENDING_WITH_CHOICES:"):
        key = text.split(":", 1)[1]
        return {
            "code": "ENDING_WITH_CHOICES",
            "node": key,
            "message": f"Ending node '{key}' still has choices.",
            "suggestion": "Remove the choices or clear isEnding.",
        }
    return {
        "code": "STRUCTURAL_ISSUE",
        "node": None,
        "message": text,
        "suggestion": None,
    }
