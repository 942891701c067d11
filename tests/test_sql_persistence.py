from __future__ import annotations

import asyncio

import pytest

from app.modules.comments.types import ANONYMOUS_AUTHOR, CommentCategory
from app.modules.errors import PersistenceFailure
from app.modules.persistence.sql import SqlStoryPersistence
from app.modules.story.graph import StoryGraph
from tests.support.story_seed import branching_story, seed_profile, seed_story, stored_content


def test_load_story_preserves_bookkeeping_and_order() -> None:
    seed_story(story_id="s1")
    graph = asyncio.run(SqlStoryPersistence().load_story("s1"))

    assert graph.node_keys() == ["root", "A", "B", "C"]
    assert graph.bookkeeping["inkVersion"] == 21


def test_load_missing_story_fails_not_retryable() -> None:
    with pytest.raises(PersistenceFailure) as exc:
        asyncio.run(SqlStoryPersistence().load_story("missing"))
    assert exc.value.code == "STORY_NOT_FOUND"
    assert exc.value.retryable is False


def test_save_story_overwrites_content() -> None:
    seed_story(story_id="s1")
    content = branching_story()
    content["A"]["text"] = "The stairs are gone."

    asyncio.run(SqlStoryPersistence().save_story("s1", StoryGraph.from_content(content).to_json()))

    assert stored_content("s1")["A"]["text"] == "The stairs are gone."


def test_comment_lifecycle_with_author_profile() -> None:
    seed_story(story_id="s1")
    seed_profile(user_id="u1", username="Ada", avatar_url="https://example.invalid/ada.png")
    persistence = SqlStoryPersistence()

    async def _run():
        first = await persistence.insert_comment("s1", 2, "2", "A", "Lovely", CommentCategory.SUGGESTION, "u1")
        await persistence.insert_comment("s1", 2, "2", "A", "Typo", CommentCategory.SPELLING, "u2")
        await persistence.insert_comment("s1", 3, "3", "B", "Elsewhere", CommentCategory.OTHER, "u1")
        listed = await persistence.fetch_comments("s1", 2)
        await persistence.update_comment(first, "Lovely!", CommentCategory.EDIT, author_id="u1")
        updated = await persistence.fetch_comments("s1", 2)
        await persistence.delete_comment(first, author_id="u1")
        remaining = await persistence.fetch_comments("s1", 2)
        return first, listed, updated, remaining

    first, listed, updated, remaining = asyncio.run(_run())

    assert len(listed) == 2
    by_id = {c.id: c for c in listed}
    assert by_id[first].author_name == "Ada"
    assert by_id[first].author_avatar == "https://example.invalid/ada.png"
    assert by_id[first].node_key == "A"
    others = [c for c in listed if c.id != first]
    assert others[0].author_name == ANONYMOUS_AUTHOR

    changed = next(c for c in updated if c.id == first)
    assert changed.text == "Lovely!"
    assert changed.category is CommentCategory.EDIT
    assert changed.page == 2

    assert [c.text for c in remaining] == ["Typo"]


def test_comment_changes_by_other_user_are_forbidden() -> None:
    seed_story(story_id="s1")
    persistence = SqlStoryPersistence()
    comment_id = asyncio.run(persistence.insert_comment("s1", 1, "1", "root", "Mine", CommentCategory.EDIT, "owner"))

    with pytest.raises(PersistenceFailure) as update_exc:
        asyncio.run(persistence.update_comment(comment_id, "x", CommentCategory.EDIT, author_id="other"))
    with pytest.raises(PersistenceFailure) as delete_exc:
        asyncio.run(persistence.delete_comment(comment_id, author_id="other"))
    with pytest.raises(PersistenceFailure) as missing_exc:
        asyncio.run(persistence.delete_comment("not-a-uuid", author_id="owner"))

    assert update_exc.value.code == "FORBIDDEN"
    assert delete_exc.value.code == "FORBIDDEN"
    assert missing_exc.value.code == "COMMENT_NOT_FOUND"
    assert [c.text for c in asyncio.run(persistence.fetch_comments("s1", 1))] == ["Mine"]


def test_insert_comment_for_unknown_story_fails() -> None:
    with pytest.raises(PersistenceFailure) as exc:
        asyncio.run(
            SqlStoryPersistence().insert_comment("ghost", 1, "1", "root", "hi", CommentCategory.OTHER, "u1")
        )
    assert exc.value.code == "STORY_NOT_FOUND"
