from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field


class StoryCreateRequest(BaseModel):
    model_config = ConfigDict(extra="forbid")

    id: str | None = Field(default=None, max_length=128)
    title: str = Field(default="", max_length=256)
    content: dict


class StoryOut(BaseModel):
    id: str
    title: str
    content: dict
    node_count: int
    created_at: datetime
    updated_at: datetime


class StoryValidateRequest(BaseModel):
    model_config = ConfigDict(extra="forbid")

    content: dict


class StoryIssueOut(BaseModel):
    code: str
    node: str | None = None
    message: str
    suggestion: str | None = None


class MappingOut(BaseModel):
    node_to_page: dict[str, int]
    page_to_node: dict[str, str]
    total_pages: int
    algorithm: str


class ValidateResponse(BaseModel):
    valid: bool
    errors: list[StoryIssueOut]
    warnings: list[StoryIssueOut]
    node_count: int
    mapping: MappingOut | None = None
    mapping_error: dict | None = None
