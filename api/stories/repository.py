"""
Story persistence helpers.
"""

from __future__ import annotations

from typing import Callable, TypeVar

from core import store

STORIES_KEY = "stories"

T = TypeVar("T")


async def list_stories() -> list[dict]:
    return [s for s in await store.read_list(STORIES_KEY) if isinstance(s, dict)]


async def mutate_stories(
    mutate: Callable[[list[dict]], T],
    *,
    changed: Callable[[T], bool] | None = None,
) -> T:
    return await store.update_list(STORIES_KEY, mutate, changed=changed)


async def insert_story(story: dict) -> dict:
    def _append(stories: list[dict]) -> dict:
        stories.append(story)
        return story

    return await mutate_stories(_append)


async def increment_view_count(story_id: str) -> dict | None:
    """
    Bump `view_count` for one story and return the updated record (or None).

    An unknown id leaves the blob as it was.
    """

    def _bump(stories: list[dict]) -> dict | None:
        for story in stories:
            if isinstance(story, dict) and str(story.get("id") or "") == story_id:
                story["view_count"] = int(story.get("view_count") or 0) + 1
                return story
        return None

    return await mutate_stories(_bump, changed=lambda story: story is not None)
