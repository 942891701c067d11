from __future__ import annotations

import logging
from enum import Enum

from app.config import settings
from app.modules.errors import ValidationFailure
from app.modules.persistence.protocol import StoryPersistence
from app.modules.story.graph import StoryGraph
from app.modules.throttle.guard import ActionOutcome, ActionThrottle

logger = logging.getLogger(__name__)

SAVE_ACTION_KEY = "save"


class LeaveDecision(str, Enum):
    ALLOW = "allow"
    CONFIRM = "confirm"


class SaveCoordinator:
    def __init__(self, story_id: str, persistence: StoryPersistence, throttle: ActionThrottle) -> None:
        self.story_id = story_id
        self._persistence = persistence
        self._throttle = throttle
        self.has_unsaved_changes = False
        self.saving = False
        self.last_error: BaseException | None = None
        self.leave_pending = False
        self._revision = 0

    def mark_dirty(self) -> None:
        self._revision += 1
        self.has_unsaved_changes = True

    async def _commit(self, serialized: str, revision: int) -> None:
        self.saving = True
        try:
            await self._persistence.save_story(self.story_id, serialized)
        finally:
            self.saving = False
        # an edit made while the save was in flight is not covered by it
        if self._revision == revision:
            self.has_unsaved_changes = False
        self.last_error = None
        logger.info("story %s saved (%d bytes)", self.story_id, len(serialized))

    def _record_failure(self, exc: BaseException) -> None:
        self.last_error = exc

    async def save(self, content: StoryGraph | None) -> ActionOutcome:
        if content is None:
            raise ValidationFailure(code="NO_CONTENT", message="No story data to save.")
        # snapshot taken now; later edits mark the story dirty again
        serialized = content.to_json()
        guarded = self._throttle.guard(
            SAVE_ACTION_KEY,
            self._commit,
            min_interval_ms=settings.throttle_save_min_interval_ms,
            on_failure=self._record_failure,
        )
        return await guarded(serialized, self._revision)

    def request_leave(self) -> LeaveDecision:
        if not self.has_unsaved_changes:
            self.leave_pending = False
            return LeaveDecision.ALLOW
        self.leave_pending = True
        return LeaveDecision.CONFIRM

    def resolve_leave(self, confirm: bool) -> bool:
        self.leave_pending = False
        # leaving abandons the edits; only a successful save clears the flag
        if confirm:
            return True
        return not self.has_unsaved_changes
