"""
Story business logic.

Scope:
- validate publish requests (all problems reported at once)
- publish a story for the token's user
- public listing and detail reads (detail reads count views)
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from uuid import uuid4

from fastapi import HTTPException, status

from auth import security as auth_security
from auth import service as auth_service
from core import config

from . import repository, schemas

logger = logging.getLogger(__name__)

MAX_TITLE_CHARS = 200
MAX_CONTENT_BYTES = 500 * 1024
PUBLISH_TYPES = ("chapter", "fullstory")
DEFAULT_CATEGORY = "Fiction"
DEFAULT_AUTHOR = "Anonymous"


@dataclass
class StoryValidation:
    missing: list[str] = field(default_factory=list)
    invalid: list[str] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return not self.missing and not self.invalid

    def message(self) -> str:
        if self.missing:
            return f"Missing required parameter: {self.missing[0]}"
        return self.invalid[0] if self.invalid else ""


def validate_story(payload: schemas.PublishStoryRequest, *, token: str | None) -> StoryValidation:
    result = StoryValidation()

    title = payload.title or ""
    if not title.strip():
        result.missing.append("title")
    elif not auth_security.is_utf8_text(title):
        result.invalid.append("title contains invalid characters")
    elif len(title) > MAX_TITLE_CHARS:
        result.invalid.append(f"title exceeds maximum length ({MAX_TITLE_CHARS} characters)")

    content = payload.content or ""
    if not content.strip():
        result.missing.append("content")
    elif not auth_security.is_utf8_text(content):
        result.invalid.append("content contains invalid characters")
    elif len(content.encode("utf-8")) > MAX_CONTENT_BYTES:
        result.invalid.append("content exceeds maximum size (500KB)")

    if not payload.publish_type:
        result.missing.append("publish_type")
    elif payload.publish_type not in PUBLISH_TYPES:
        result.invalid.append('publish_type must be "chapter" or "fullstory"')

    for name in ("author", "category"):
        value = getattr(payload, name) or ""
        if not auth_security.is_utf8_text(value):
            result.invalid.append(f"{name} contains invalid characters")

    if not (token or "").strip():
        result.missing.append("token")
    elif not auth_security.is_utf8_text(token):
        result.invalid.append("token contains invalid characters")

    return result


def story_url(story_id: str) -> str:
    return f"{config.public_base_url()}/story/{story_id}"


def _to_summary(story: dict) -> schemas.StorySummary:
    return schemas.StorySummary(
        id=str(story.get("id") or ""),
        title=str(story.get("title") or ""),
        author=str(story.get("author") or DEFAULT_AUTHOR),
        category=str(story.get("category") or DEFAULT_CATEGORY),
        publish_type=str(story.get("publish_type") or ""),
        created_at=str(story.get("created_at") or ""),
        view_count=int(story.get("view_count") or 0),
    )


def _to_detail(story: dict) -> schemas.StoryDetail:
    summary = _to_summary(story)
    return schemas.StoryDetail(
        **summary.model_dump(),
        content=str(story.get("content") or ""),
        author_id=str(story.get("author_id") or ""),
        author_username=str(story.get("author_username") or ""),
        updated_at=str(story.get("updated_at") or summary.created_at),
        status=str(story.get("status") or "published"),
    )


async def publish(
    payload: schemas.PublishStoryRequest,
    *,
    header_token: str | None = None,
) -> schemas.PublishStoryResponse:
    token = (payload.token or "").strip() or (header_token or "").strip()

    validation = validate_story(payload, token=token)
    if not validation.ok:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail={
                "message": validation.message(),
                "missing_fields": validation.missing,
                "invalid_fields": validation.invalid,
            },
        )

    user = await auth_service.user_from_token(token)

    now = auth_security.isoformat(auth_security.utc_now())
    author = (payload.author or "").strip() or str(user.get("username") or "") or DEFAULT_AUTHOR
    story = {
        "id": str(uuid4()),
        "title": (payload.title or "").strip(),
        "content": payload.content,
        "author": author,
        "category": (payload.category or "").strip() or DEFAULT_CATEGORY,
        "publish_type": payload.publish_type,
        "author_id": str(user["id"]),
        "author_username": str(user.get("username") or ""),
        "author_email": str(user.get("email") or ""),
        "created_at": now,
        "updated_at": now,
        "status": "published",
        "view_count": 0,
    }
    await repository.insert_story(story)
    logger.info(
        "story_published story_id=%s author_id=%s publish_type=%s",
        story["id"],
        story["author_id"],
        story["publish_type"],
    )

    return schemas.PublishStoryResponse(
        story_id=story["id"],
        published_at=now,
        url=story_url(story["id"]),
    )


async def list_summaries() -> list[schemas.StorySummary]:
    return [_to_summary(story) for story in await repository.list_stories()]


async def read_story(story_id: str) -> schemas.StoryDetail:
    story = await repository.increment_view_count(story_id)
    if story is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Story not found.",
        )
    return _to_detail(story)
