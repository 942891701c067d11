from __future__ import annotations

import logging
import uuid
from threading import Lock

from app.modules.generation.client import ChatCompletionsGenerator, ContentGenerator
from app.modules.persistence.protocol import StoryPersistence
from app.modules.persistence.sql import SqlStoryPersistence
from app.modules.session.service import StorySession, open_session

logger = logging.getLogger(__name__)


class SessionRegistry:
    """Open story sessions, keyed by session id."""

    def __init__(self) -> None:
        self._lock = Lock()
        self._sessions: dict[uuid.UUID, StorySession] = {}

    async def open(
        self,
        story_id: str,
        persistence: StoryPersistence,
        *,
        generator: ContentGenerator | None = None,
    ) -> StorySession:
        session = await open_session(story_id, persistence, generator=generator)
        with self._lock:
            self._sessions[session.id] = session
        return session

    def get(self, session_id: uuid.UUID) -> StorySession | None:
        with self._lock:
            return self._sessions.get(session_id)

    def close(self, session_id: uuid.UUID) -> bool:
        with self._lock:
            session = self._sessions.pop(session_id, None)
        if session is None:
            return False
        session.teardown()
        logger.info("closed session %s", session_id)
        return True

    def reset(self) -> None:
        with self._lock:
            sessions = list(self._sessions.values())
            self._sessions.clear()
        for session in sessions:
            session.teardown()

    def __len__(self) -> int:
        with self._lock:
            return len(self._sessions)


_registry = SessionRegistry()


def get_session_registry() -> SessionRegistry:
    return _registry


def get_story_persistence() -> StoryPersistence:
    return SqlStoryPersistence()


def get_content_generator() -> ContentGenerator:
    return ChatCompletionsGenerator()
