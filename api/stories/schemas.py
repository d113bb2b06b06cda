"""
Pydantic schemas for story endpoints.
"""

from __future__ import annotations

from pydantic import BaseModel


class PublishStoryRequest(BaseModel):
    # Everything is optional here; `service.validate_story` reports
    # missing and invalid fields together.
    title: str | None = None
    content: str | None = None
    publish_type: str | None = None
    token: str | None = None
    author: str | None = None
    category: str | None = None


class PublishStoryResponse(BaseModel):
    story_id: str
    published_at: str
    url: str


class StorySummary(BaseModel):
    id: str
    title: str
    author: str
    category: str
    publish_type: str
    created_at: str
    view_count: int


class StoryDetail(StorySummary):
    content: str
    author_id: str
    author_username: str
    updated_at: str
    status: str
