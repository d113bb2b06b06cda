"""
Story API endpoints.
"""

from __future__ import annotations

from fastapi import APIRouter, Depends, status

from auth import dependencies as auth_dependencies

from . import schemas, service

router = APIRouter(prefix="/api")


@router.post(
    "/publish/story",
    response_model=schemas.PublishStoryResponse,
    status_code=status.HTTP_201_CREATED,
)
async def publish_story(
    request: schemas.PublishStoryRequest,
    header_token: str | None = Depends(auth_dependencies.get_optional_bearer_token),
) -> schemas.PublishStoryResponse:
    """
    Publish a story or chapter. The user token may be sent in the body or as a Bearer header.
    """
    return await service.publish(request, header_token=header_token)


@router.get("/stories")
async def list_stories() -> dict:
    stories = await service.list_summaries()
    return {"stories": stories, "count": len(stories)}


@router.get("/story/{story_id}")
async def get_story(story_id: str) -> dict:
    story = await service.read_story(story_id)
    return {"story": story}
