from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from enum import Enum


class CommentCategory(str, Enum):
    EDIT = "edit"
    SUGGESTION = "suggestion"
    SPELLING = "spelling"
    ERROR = "error"
    OTHER = "other"

    @property
    def label(self) -> str:
        return COMMENT_CATEGORY_LABELS[self]


COMMENT_CATEGORY_LABELS: dict[CommentCategory, str] = {
    CommentCategory.EDIT: "Edit",
    CommentCategory.SUGGESTION: "Suggestion",
    CommentCategory.SPELLING: "Spelling",
    CommentCategory.ERROR: "Error",
    CommentCategory.OTHER: "Comment",
}

ANONYMOUS_AUTHOR = "Anonymous"


@dataclass(frozen=True)
class Comment:
    id: str
    story_id: str
    page: int
    node_key: str
    author_id: str
    text: str
    category: CommentCategory
    created_at: datetime
    updated_at: datetime | None = None
    author_name: str = ANONYMOUS_AUTHOR
    author_avatar: str | None = None

    def as_payload(self) -> dict:
        return {
            "id": self.id,
            "story_id": self.story_id,
            "page": self.page,
            "node_key": self.node_key,
            "author_id": self.author_id,
            "author_name": self.author_name,
            "author_avatar": self.author_avatar,
            "text": self.text,
            "category": self.category.value,
            "created_at": self.created_at,
            "updated_at": self.updated_at,
        }
