from __future__ import annotations

import json
import uuid
from contextlib import contextmanager
from typing import Iterator

from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from app.db import session as db_session
from app.db.models import Comment as CommentRow
from app.db.models import Profile, Story
from app.modules.comments.types import ANONYMOUS_AUTHOR, Comment, CommentCategory
from app.modules.errors import PersistenceFailure
from app.modules.story.graph import StoryGraph
from app.utils.time import utc_now_naive


def _parse_comment_id(comment_id: str) -> uuid.UUID:
    try:
        return uuid.UUID(str(comment_id))
    except ValueError as exc:
        raise PersistenceFailure(code="COMMENT_NOT_FOUND", message="Comment not found.", retryable=False) from exc


def _category(value: str | None) -> CommentCategory:
    try:
        return CommentCategory(str(value or ""))
    except ValueError:
        return CommentCategory.OTHER


def _to_comment(row: CommentRow, profile: Profile | None) -> Comment:
    author_name = str(profile.username or "").strip() if profile is not None else ""
    return Comment(
        id=str(row.id),
        story_id=row.story_id,
        page=int(row.story_position),
        node_key=row.story_node or "",
        author_id=row.user_id,
        text=row.text or "",
        category=_category(row.comment_type),
        created_at=row.created_at,
        updated_at=row.updated_at,
        author_name=author_name or ANONYMOUS_AUTHOR,
        author_avatar=profile.avatar_url if profile is not None else None,
    )


class SqlStoryPersistence:
    """Story persistence over the SQLAlchemy ``stories``/``comments`` tables."""

    @contextmanager
    def _db(self) -> Iterator[Session]:
        db = db_session.SessionLocal()
        try:
            yield db
        except SQLAlchemyError as exc:
            db.rollback()
            raise PersistenceFailure(code="STORAGE_ERROR", message=f"Storage call failed: {exc.__class__.__name__}") from exc
        finally:
            db.close()

    async def load_story(self, story_id: str) -> StoryGraph:
        with self._db() as db:
            row = db.get(Story, story_id)
            if row is None:
                raise PersistenceFailure(code="STORY_NOT_FOUND", message=f"Story '{story_id}' not found.", retryable=False)
            raw = row.story_content
        try:
            return StoryGraph.from_json(raw)
        except json.JSONDecodeError as exc:
            raise PersistenceFailure(
                code="STORY_CONTENT_INVALID",
                message=f"Story '{story_id}' content is not valid JSON.",
                retryable=False,
            ) from exc

    async def save_story(self, story_id: str, serialized_content: str) -> None:
        with self._db() as db:
            with db.begin():
                row = db.get(Story, story_id)
                if row is None:
                    raise PersistenceFailure(code="STORY_NOT_FOUND", message=f"Story '{story_id}' not found.", retryable=False)
                row.story_content = serialized_content
                row.updated_at = utc_now_naive()

    async def fetch_comments(self, story_id: str, page: int) -> list[Comment]:
        with self._db() as db:
            rows = db.execute(
                select(CommentRow, Profile)
                .outerjoin(Profile, Profile.user_id == CommentRow.user_id)
                .where(CommentRow.story_id == story_id, CommentRow.story_position == page)
                .order_by(CommentRow.created_at.desc())
            ).all()
            return [_to_comment(row, profile) for row, profile in rows]

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
        with self._db() as db:
            with db.begin():
                if db.get(Story, story_id) is None:
                    raise PersistenceFailure(code="STORY_NOT_FOUND", message=f"Story '{story_id}' not found.", retryable=False)
                now = utc_now_naive()
                row = CommentRow(
                    story_id=story_id,
                    story_position=int(page),
                    story_position_old=str(position_legacy),
                    story_node=node_key or "",
                    text=text,
                    comment_type=CommentCategory(category).value,
                    user_id=author_id,
                    created_at=now,
                    updated_at=now,
                )
                db.add(row)
                db.flush()
                return str(row.id)

    def _owned_comment(self, db: Session, comment_id: str, author_id: str) -> CommentRow:
        row = db.get(CommentRow, _parse_comment_id(comment_id))
        if row is None:
            raise PersistenceFailure(code="COMMENT_NOT_FOUND", message="Comment not found.", retryable=False)
        if row.user_id != author_id:
            raise PersistenceFailure(code="FORBIDDEN", message="Only the author can change this comment.", retryable=False)
        return row

    async def update_comment(self, comment_id: str, text: str, category: CommentCategory, *, author_id: str) -> None:
        with self._db() as db:
            with db.begin():
                row = self._owned_comment(db, comment_id, author_id)
                # position and node stay as they were when the comment was posted
                row.text = text
                row.comment_type = CommentCategory(category).value
                row.updated_at = utc_now_naive()

    async def delete_comment(self, comment_id: str, *, author_id: str) -> None:
        with self._db() as db:
            with db.begin():
                row = self._owned_comment(db, comment_id, author_id)
                db.delete(row)
