"""
Admin listing and deletion over the user and story blobs.
"""

from __future__ import annotations

import logging

from fastapi import HTTPException, status

from auth import repository as auth_repository
from stories import repository as stories_repository

logger = logging.getLogger(__name__)

LIST_TYPES = ("users", "stories")
DELETE_TYPES = ("user", "story")

# Never leave the users blob through the admin API.
_PRIVATE_USER_FIELDS = {"password_hash", "token"}


def _public_user(user_row: dict) -> dict:
    return {k: v for (k, v) in user_row.items() if k not in _PRIVATE_USER_FIELDS}


async def list_data(data_type: str | None) -> list[dict]:
    kind = (data_type or "").strip().lower()
    if kind == "users":
        return [_public_user(u) for u in await auth_repository.list_users()]
    if kind == "stories":
        stories = await stories_repository.list_stories()
        # ISO-8601 UTC strings sort chronologically.
        return sorted(stories, key=lambda s: str(s.get("created_at") or ""), reverse=True)

    raise HTTPException(
        status_code=status.HTTP_400_BAD_REQUEST,
        detail=f"Invalid data type requested. Allowed: {list(LIST_TYPES)}",
    )


async def delete_item(data_type: str | None, item_id: str | None, *, admin: dict) -> str:
    kind = (data_type or "").strip().lower()
    target = (item_id or "").strip()
    if not kind or not target:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Item ID and type are required.",
        )
    if kind not in DELETE_TYPES:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=f"Invalid delete type. Allowed: {list(DELETE_TYPES)}",
        )

    label = "User" if kind == "user" else "Story"

    def _remove(items: list[dict]) -> dict:
        index = auth_repository.find_index(items, target)
        if index == -1:
            raise HTTPException(
                status_code=status.HTTP_404_NOT_FOUND,
                detail=f"{label} not found.",
            )
        return items.pop(index)

    if kind == "user":
        await auth_repository.mutate_users(_remove)
    else:
        await stories_repository.mutate_stories(_remove)

    logger.info("admin_delete admin_id=%s type=%s id=%s", admin.get("id"), kind, target)
    return target
