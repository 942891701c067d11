from __future__ import annotations

from typing import Protocol

from app.modules.comments.types import Comment, CommentCategory
from app.modules.story.graph import StoryGraph


class StoryPersistence(Protocol):
    """Calls the story core issues to its storage collaborator.

    Every method raises ``PersistenceFailure`` on any failure (network,
    validation, authorization); a normal return is the acknowledgement.
    """

    async def load_story(self, story_id: str) -> StoryGraph:
        ...

    async def save_story(self, story_id: str, serialized_content: str) -> None:
        ...

    async def fetch_comments(self, story_id: str, page: int) -> list[Comment]:
        ...

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
        ...

    async def update_comment(self, comment_id: str, text: str, category: CommentCategory, *, author_id: str) -> None:
        ...

    async def delete_comment(self, comment_id: str, *, author_id: str) -> None:
        ...
