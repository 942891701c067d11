from __future__ import annotations

import asyncio
import itertools
from datetime import datetime, timedelta

from app.modules.comments.types import Comment, CommentCategory
from app.modules.errors import PersistenceFailure
from app.modules.story.graph import StoryGraph


class FakeStoryPersistence:
    """In-memory persistence with per-call failure switches and call log."""

    def __init__(self, stories: dict[str, dict] | None = None) -> None:
        self.stories: dict[str, StoryGraph] = {
            story_id: StoryGraph.from_content(content) for story_id, content in (stories or {}).items()
        }
        self.saved: list[tuple[str, str]] = []
        self.comments: dict[str, Comment] = {}
        self.calls: list[str] = []
        self.fail: set[str] = set()
        self.save_gate: asyncio.Event | None = None
        self._ids = itertools.count(1)
        self._clock = datetime(2026, 1, 1, 12, 0, 0)

    def _maybe_fail(self, name: str) -> None:
        self.calls.append(name)
        if name in self.fail:
            raise PersistenceFailure(code="STORAGE_ERROR", message=f"{name} failed")

    def _tick(self) -> datetime:
        self._clock = self._clock + timedelta(seconds=1)
        return self._clock

    async def load_story(self, story_id: str) -> StoryGraph:
        self._maybe_fail("load_story")
        graph = self.stories.get(story_id)
        if graph is None:
            raise PersistenceFailure(code="STORY_NOT_FOUND", message=f"Story '{story_id}' not found.", retryable=False)
        return graph

    async def save_story(self, story_id: str, serialized_content: str) -> None:
        self._maybe_fail("save_story")
        if self.save_gate is not None:
            await self.save_gate.wait()
        self.saved.append((story_id, serialized_content))
        self.stories[story_id] = StoryGraph.from_json(serialized_content)

    async def fetch_comments(self, story_id: str, page: int) -> list[Comment]:
        self._maybe_fail("fetch_comments")
        rows = [c for c in self.comments.values() if c.story_id == story_id and c.page == page]
        return sorted(rows, key=lambda c: c.created_at, reverse=True)

    async def insert_comment(
        self,
        story_id: str,
        page: int,
        position_legacy: str,
        node_key: str,
        text: str,
        category: CommentCategory,
        author_id: str,
    ) -> str:
        self._maybe_fail("insert_comment")
        comment_id = f"c{next(self._ids)}"
        self.comments[comment_id] = Comment(
            id=comment_id,
            story_id=story_id,
            page=page,
            node_key=node_key,
            author_id=author_id,
            text=text,
            category=CommentCategory(category),
            created_at=self._tick(),
        )
        return comment_id

    def _owned(self, comment_id: str, author_id: str) -> Comment:
        comment = self.comments.get(comment_id)
        if comment is None:
            raise PersistenceFailure(code="COMMENT_NOT_FOUND", message="Comment not found.", retryable=False)
        if comment.author_id != author_id:
            raise PersistenceFailure(code="FORBIDDEN", message="Only the author can change this comment.", retryable=False)
        return comment

    async def update_comment(self, comment_id: str, text: str, category: CommentCategory, *, author_id: str) -> None:
        self._maybe_fail("update_comment")
        current = self._owned(comment_id, author_id)
        self.comments[comment_id] = Comment(
            id=current.id,
            story_id=current.story_id,
            page=current.page,
            node_key=current.node_key,
            author_id=current.author_id,
            text=text,
            category=CommentCategory(category),
            created_at=current.created_at,
            updated_at=self._tick(),
        )

    async def delete_comment(self, comment_id: str, *, author_id: str) -> None:
        self._maybe_fail("delete_comment")
        self._owned(comment_id, author_id)
        del self.comments[comment_id]
