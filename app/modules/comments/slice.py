from __future__ import annotations

import logging

from app.config import settings
from app.modules.comments.types import Comment, CommentCategory
from app.modules.errors import PersistenceFailure, ValidationFailure
from app.modules.persistence.protocol import StoryPersistence

logger = logging.getLogger(__name__)

CacheKey = tuple[str, int]


def _normalized_text(value: str | None) -> str:
    return str(value or "").strip()


def require_category(category: CommentCategory | str) -> CommentCategory:
    try:
        return CommentCategory(category)
    except ValueError as exc:
        allowed = ", ".join(item.value for item in CommentCategory)
        raise ValidationFailure(code="INVALID_CATEGORY", message=f"Category must be one of: {allowed}.") from exc


def require_comment_text(text: str | None) -> str:
    normalized = _normalized_text(text)
    if not normalized:
        raise ValidationFailure(code="EMPTY_COMMENT", message="Comment text is required.")
    if len(normalized) > settings.comments_max_length:
        raise ValidationFailure(
            code="COMMENT_TOO_LONG",
            message=f"Comment text exceeds {settings.comments_max_length} characters.",
        )
    return normalized


class CommentSlice:
    """Per-(story, page) comment cache backed by the persistence collaborator.

    Mutations never patch the cache in place; a successful mutation is
    followed by a full refetch of the affected (story, page) entry. A failed
    call leaves the cache as it was.
    """

    def __init__(self, persistence: StoryPersistence) -> None:
        self._persistence = persistence
        self._entries: dict[CacheKey, list[Comment]] = {}
        self.loading = False
        self.error: str | None = None

    def comments(self, story_id: str, page: int) -> list[Comment]:
        return list(self._entries.get((story_id, page), []))

    def count(self, story_id: str, page: int) -> int:
        return len(self._entries.get((story_id, page), []))

    def is_cached(self, story_id: str, page: int) -> bool:
        return (story_id, page) in self._entries

    def clear(self) -> None:
        self._entries = {}
        self.error = None

    async def fetch(self, story_id: str, page: int) -> list[Comment]:
        if not _normalized_text(story_id) or page <= 0:
            raise ValidationFailure(code="INVALID_POSITION", message="A story id and a positive page are required.")
        self.loading = True
        self.error = None
        try:
            comments = await self._persistence.fetch_comments(story_id, page)
        except PersistenceFailure as exc:
            self.error = exc.message
            raise
        finally:
            self.loading = False
        self._entries[(story_id, page)] = list(comments)
        return list(comments)

    async def add(
        self,
        story_id: str,
        page: int,
        text: str,
        category: CommentCategory | str,
        author_id: str,
        node_key: str,
    ) -> list[Comment]:
        body = require_comment_text(text)
        kind = require_category(category)
        if not _normalized_text(author_id) or not _normalized_text(story_id):
            raise ValidationFailure(code="MISSING_AUTHOR", message="Missing required data for adding a comment.")
        try:
            await self._persistence.insert_comment(story_id, page, str(page), node_key, body, kind, author_id)
        except PersistenceFailure as exc:
            self.error = exc.message
            logger.warning("posting comment on %s page %d failed: %s", story_id, page, exc.code)
            raise
        return await self.fetch(story_id, page)

    async def update(
        self,
        comment_id: str,
        story_id: str,
        page: int,
        text: str,
        category: CommentCategory | str,
        author_id: str,
    ) -> list[Comment]:
        if not _normalized_text(comment_id):
            raise ValidationFailure(code="MISSING_COMMENT_ID", message="A comment id is required.")
        body = require_comment_text(text)
        kind = require_category(category)
        try:
            await self._persistence.update_comment(comment_id, body, kind, author_id=author_id)
        except PersistenceFailure as exc:
            self.error = exc.message
            logger.warning("updating comment %s failed: %s", comment_id, exc.code)
            raise
        return await self.fetch(story_id, page)

    async def delete(self, comment_id: str, story_id: str, page: int, author_id: str) -> list[Comment]:
        if not _normalized_text(comment_id):
            raise ValidationFailure(code="MISSING_COMMENT_ID", message="A comment id is required.")
        try:
            await self._persistence.delete_comment(comment_id, author_id=author_id)
        except PersistenceFailure as exc:
            self.error = exc.message
            logger.warning("deleting comment %s failed: %s", comment_id, exc.code)
            raise
        return await self.fetch(story_id, page)
