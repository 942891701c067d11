from __future__ import annotations

import logging
import time
import uuid
from typing import Any, Callable

from pydantic import ValidationError

from app.config import settings
from app.modules.comments.slice import CommentSlice, require_category, require_comment_text
from app.modules.comments.types import Comment, CommentCategory
from app.modules.editor.save import LeaveDecision, SaveCoordinator
from app.modules.errors import MappingError, PersistenceFailure, StoryCoreError, ValidationFailure
from app.modules.generation.client import ChatCompletionsGenerator, ContentGenerator
from app.modules.generation.prompts import DEFAULT_SYSTEM_PROMPT, build_generation_prompt
from app.modules.generation.schemas import GenerationRequest
from app.modules.navigation.state_machine import NavigationResult, NavigationState, NavigationStateMachine
from app.modules.persistence.protocol import StoryPersistence
from app.modules.session.notifications import NotificationCenter
from app.modules.story.graph import StoryChoice, StoryGraph, StoryNode
from app.modules.telemetry.service import record_action_outcome, record_mapping_fallback
from app.modules.throttle.guard import ActionOutcome, ActionThrottle

logger = logging.getLogger(__name__)

PAGE_CHANGE_KEY = "pageChange"
NODE_CHANGE_KEY = "nodeChange"
NAVIGATE_KEY = "navigate"
CONTENT_CHANGE_KEY = "storyDataChange"
GENERATE_KEY = "generate"

_FAILURE_MESSAGES = {
    PAGE_CHANGE_KEY: "Failed to change page",
    NODE_CHANGE_KEY: "Failed to change node",
    NAVIGATE_KEY: "Navigation failed",
    CONTENT_CHANGE_KEY: "Failed to update story data",
    GENERATE_KEY: "Failed to generate content",
}


def _error_text(error: BaseException | None) -> str:
    if isinstance(error, StoryCoreError):
        return error.message
    return str(error or "unknown error")


class StorySession:
    """Single owner of one story's reading/editing state.

    Every state-changing entry point goes through the session's action
    throttle; the navigation, save and comment components are never mutated
    from outside this class.
    """

    def __init__(
        self,
        story_id: str,
        persistence: StoryPersistence,
        *,
        generator: ContentGenerator | None = None,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.id = uuid.uuid4()
        self.story_id = story_id
        self._persistence = persistence
        self.generator: ContentGenerator = generator or ChatCompletionsGenerator()
        self.navigation = NavigationStateMachine()
        self.throttle = ActionThrottle(clock=clock)
        self.saver = SaveCoordinator(story_id, persistence, self.throttle)
        self.comments = CommentSlice(persistence)
        self.notifications = NotificationCenter()

    # lifecycle

    async def load(self) -> NavigationState:
        graph = await self._persistence.load_story(self.story_id)
        self.navigation.initialize(graph)
        self._note_mapping()
        return self.navigation.snapshot()

    def teardown(self) -> None:
        self.navigation.teardown()
        self.comments.clear()
        self.notifications.clear()
        self.throttle.reset()

    def _note_mapping(self) -> None:
        mapping = self.navigation.mapping
        if mapping is not None and mapping.algorithm == "declaration":
            record_mapping_fallback()
            self.notifications.push(
                "info",
                "Page order could not be derived from the story structure; using declaration order.",
                key="mapping-fallback",
            )

    @property
    def graph(self) -> StoryGraph | None:
        return self.navigation.graph

    def state(self) -> NavigationState:
        return self.navigation.snapshot()

    def current_node(self) -> StoryNode | None:
        graph = self.navigation.graph
        key = self.navigation.current_node
        if graph is None or key is None:
            return None
        return graph.get(key)

    # throttled execution

    def _report(self, outcome: ActionOutcome, *, failure_message: str | None = None) -> ActionOutcome:
        record_action_outcome(outcome)
        if outcome.failed:
            prefix = failure_message or _FAILURE_MESSAGES.get(outcome.action_key, "Action failed")
            self.notifications.push("error", f"{prefix}: {_error_text(outcome.error)}", key=outcome.action_key)
        return outcome

    async def _run(
        self,
        action_key: str,
        operation: Callable[..., Any],
        *args: Any,
        min_interval_ms: int | None = None,
        failure_message: str | None = None,
    ) -> ActionOutcome:
        guarded = self.throttle.guard(action_key, operation, min_interval_ms=min_interval_ms)
        outcome = await guarded(*args)
        return self._report(outcome, failure_message=failure_message)

    # navigation

    async def go_to_page(self, page: int) -> ActionOutcome:
        return await self._run(PAGE_CHANGE_KEY, self.navigation.go_to_page, page)

    async def go_to_node(self, node_key: str) -> ActionOutcome:
        return await self._run(NODE_CHANGE_KEY, self.navigation.go_to_node, node_key)

    async def follow_choice(self, index: int) -> ActionOutcome:
        return await self._run(NODE_CHANGE_KEY, self.navigation.follow_choice, index)

    async def go_back(self) -> ActionOutcome:
        return await self._run(NAVIGATE_KEY, self.navigation.go_back)

    async def restart(self) -> ActionOutcome:
        return await self._run(NAVIGATE_KEY, self.navigation.restart)

    async def continue_story(self) -> ActionOutcome:
        return await self._run(NAVIGATE_KEY, self.navigation.continue_story)

    # editing

    def _apply_graph(self, graph: StoryGraph) -> NavigationResult:
        result = self.navigation.remap(graph)
        if not result.accepted:
            raise ValidationFailure(code=result.rejection.code, message=result.rejection.message)
        self.saver.mark_dirty()
        self._note_mapping()
        return result

    async def replace_content(self, content: dict) -> ActionOutcome:
        if not isinstance(content, dict):
            raise ValidationFailure(code="INVALID_CONTENT", message="Story content must be a JSON object.")
        graph = StoryGraph.from_content(content)
        return await self._run(
            CONTENT_CHANGE_KEY,
            self._apply_graph,
            graph,
            min_interval_ms=settings.throttle_content_min_interval_ms,
        )

    async def edit_node(
        self,
        node_key: str,
        *,
        text: str | None = None,
        choices: list[dict] | None = None,
        is_ending: bool | None = None,
    ) -> ActionOutcome:
        graph = self.navigation.graph
        if graph is None:
            raise ValidationFailure(code="NOT_READY", message="No story is loaded.")
        if node_key not in graph:
            raise ValidationFailure(code="UNKNOWN_NODE", message=f"Node '{node_key}' is not part of this story.")
        changes: dict[str, Any] = {}
        if text is not None:
            changes["text"] = text
        if choices is not None:
            changes["choices"] = tuple(
                StoryChoice(text=str(item.get("text") or ""), next_node=str(item.get("next_node") or "").strip())
                for item in choices
            )
        if is_ending is not None:
            changes["is_ending"] = bool(is_ending)
        if not changes:
            raise ValidationFailure(code="NO_CHANGES", message="Nothing to update.")
        return await self._run(
            CONTENT_CHANGE_KEY,
            lambda: self._apply_graph(graph.update_node(node_key, **changes)),
            min_interval_ms=settings.throttle_content_min_interval_ms,
        )

    # saving

    async def save(self) -> ActionOutcome:
        self.notifications.push("info", "Saving changes...", key="story-save")
        try:
            outcome = await self.saver.save(self.navigation.graph)
        except ValidationFailure as exc:
            self.notifications.push("error", exc.message, key="story-save")
            raise
        record_action_outcome(outcome)
        if outcome.succeeded:
            self.notifications.push("success", "Story saved successfully", key="story-save")
        elif outcome.failed:
            self.notifications.push("error", f"Failed to save story: {_error_text(outcome.error)}", key="story-save")
        elif outcome.skip_reason != "in_flight":
            # an in-flight save still owns the progress notice
            self.notifications.dismiss_key("story-save")
        return outcome

    def request_leave(self) -> LeaveDecision:
        return self.saver.request_leave()

    def resolve_leave(self, confirm: bool) -> bool:
        return self.saver.resolve_leave(confirm)

    # comments

    def _position(self, page: int | None) -> tuple[int, str]:
        mapping = self.navigation.mapping
        if mapping is None:
            raise ValidationFailure(code="NOT_READY", message="No story is loaded.")
        target_page = self.navigation.current_page if page is None else page
        node_key = mapping.node_at(target_page) if target_page is not None else None
        if node_key is None:
            raise ValidationFailure(code="PAGE_OUT_OF_RANGE", message=f"Page {target_page} is not part of this story.")
        return target_page, node_key

    async def fetch_comments(self, page: int | None = None) -> list[Comment]:
        target_page, _ = self._position(page)
        try:
            return await self.comments.fetch(self.story_id, target_page)
        except PersistenceFailure as exc:
            self.notifications.push("error", f"Failed to load comments: {exc.message}", key="comments-fetch")
            return self.comments.comments(self.story_id, target_page)

    async def add_comment(self, *, text: str, category: CommentCategory | str, author_id: str) -> ActionOutcome:
        body = require_comment_text(text)
        kind = require_category(category)
        if not str(author_id or "").strip():
            raise ValidationFailure(code="MISSING_AUTHOR", message="An author is required to comment.")
        page, node_key = self._position(None)
        return await self._run(
            "comment:add",
            self.comments.add,
            self.story_id,
            page,
            body,
            kind,
            author_id,
            node_key,
            failure_message="Failed to post comment",
        )

    async def update_comment(
        self,
        comment_id: str,
        *,
        text: str,
        category: CommentCategory | str,
        author_id: str,
        page: int | None = None,
    ) -> ActionOutcome:
        body = require_comment_text(text)
        kind = require_category(category)
        target_page, _ = self._position(page)
        return await self._run(
            f"comment:update:{comment_id}",
            self.comments.update,
            comment_id,
            self.story_id,
            target_page,
            body,
            kind,
            author_id,
            failure_message="Failed to update comment",
        )

    async def delete_comment(self, comment_id: str, *, author_id: str, page: int | None = None) -> ActionOutcome:
        target_page, _ = self._position(page)
        return await self._run(
            f"comment:delete:{comment_id}",
            self.comments.delete,
            comment_id,
            self.story_id,
            target_page,
            author_id,
            failure_message="Failed to delete comment",
        )

    # content generation

    async def generate(
        self,
        *,
        instruction: str,
        content_type: str,
        model: str | None = None,
        temperature: float | None = None,
        system_prompt: str | None = None,
    ) -> ActionOutcome:
        graph = self.navigation.graph
        mapping = self.navigation.mapping
        node_key = self.navigation.current_node
        page = self.navigation.current_page
        if graph is None or mapping is None or node_key is None or page is None:
            raise ValidationFailure(code="NOT_READY", message="No story is loaded.")
        if not str(instruction or "").strip():
            raise ValidationFailure(code="EMPTY_PROMPT", message="A prompt is required.")
        fields: dict[str, Any] = {
            "system_prompt": system_prompt or DEFAULT_SYSTEM_PROMPT,
            "prompt": build_generation_prompt(
                graph=graph,
                mapping=mapping,
                node_key=node_key,
                page=page,
                comments=self.comments.comments(self.story_id, page),
                instruction=instruction,
            ),
            "content_type": content_type,
        }
        if model is not None:
            fields["model"] = model
        if temperature is not None:
            fields["temperature"] = temperature
        try:
            request = GenerationRequest(**fields)
        except ValidationError as exc:
            first = exc.errors()[0] if exc.errors() else {}
            location = ".".join(str(part) for part in first.get("loc", ()))
            raise ValidationFailure(
                code="INVALID_GENERATION_REQUEST",
                message=f"{location}: {first.get('msg') or 'invalid value'}",
            ) from exc
        return await self._run(GENERATE_KEY, self.generator.generate, request)


async def open_session(
    story_id: str,
    persistence: StoryPersistence,
    *,
    generator: ContentGenerator | None = None,
    clock: Callable[[], float] = time.monotonic,
) -> StorySession:
    """Load a story and return a READY session.

    Raises PersistenceFailure when the story cannot be loaded and
    MappingError when it cannot be paginated.
    """
    session = StorySession(story_id, persistence, generator=generator, clock=clock)
    try:
        await session.load()
    except MappingError:
        session.teardown()
        raise
    logger.info("opened session %s for story %s", session.id, story_id)
    return session
