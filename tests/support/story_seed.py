from __future__ import annotations

import json

from app.db import session as db_session
from app.db.models import Profile, Story
from app.utils.time import utc_now_naive


def branching_story() -> dict:
    return {
        "inkVersion": 21,
        "root": {"text": "You wake in a cellar.", "choices": [{"text": "Climb", "nextNode": "A"}, {"text": "Dig", "nextNode": "B"}]},
        "A": {"text": "The stairs creak.", "choices": [{"text": "Go on", "nextNode": "C"}]},
        "B": {"text": "Your hands hit stone.", "choices": [], "isEnding": True},
        "C": {"text": "Daylight.", "choices": [], "isEnding": True},
        "listDefs": {},
    }


def linear_story() -> dict:
    return {
        "start": {"text": "Once.", "choices": [{"text": "Next", "nextNode": "middle"}]},
        "middle": {"text": "Then.", "choices": [{"text": "Next", "nextNode": "end"}]},
        "end": {"text": "Finally.", "choices": [], "isEnding": True},
    }


def seed_story(*, story_id: str = "story-1", content: dict | None = None, title: str = "Seeded Story") -> str:
    now = utc_now_naive()
    with db_session.SessionLocal() as db:
        with db.begin():
            db.add(
                Story(
                    id=story_id,
                    title=title,
                    story_content=json.dumps(branching_story() if content is None else content),
                    created_at=now,
                    updated_at=now,
                )
            )
    return story_id


def seed_profile(*, user_id: str, username: str, avatar_url: str | None = None) -> None:
    with db_session.SessionLocal() as db:
        with db.begin():
            db.add(Profile(user_id=user_id, username=username, avatar_url=avatar_url, created_at=utc_now_naive()))


def stored_content(story_id: str) -> dict:
    with db_session.SessionLocal() as db:
        row = db.get(Story, story_id)
        assert row is not None
        return json.loads(row.story_content)
