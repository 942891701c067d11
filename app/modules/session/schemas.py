import uuid
from datetime import datetime
from typing import Literal

from pydantic import BaseModel, ConfigDict, Field, model_validator

from app.modules.comments.types import CommentCategory
from app.modules.generation.schemas import ContentType


class SessionCreateRequest(BaseModel):
    model_config = ConfigDict(extra="forbid")

    story_id: str = Field(min_length=1)


class ChoiceOut(BaseModel):
    index: int
    text: str
    next_node: str
    available: bool


class CurrentNodeOut(BaseModel):
    key: str
    text: str
    is_ending: bool
    choices: list[ChoiceOut]


class NotificationOut(BaseModel):
    id: int
    level: str
    message: str
    key: str | None = None


class SessionViewOut(BaseModel):
    id: uuid.UUID
    story_id: str
    phase: str
    current_node_key: str | None = None
    current_page: int | None = None
    total_pages: int
    history: list[str] = Field(default_factory=list)
    can_go_back: bool
    mapping_algorithm: str | None = None
    has_unsaved_changes: bool
    saving: bool
    leave_pending: bool
    current_node: CurrentNodeOut | None = None
    notifications: list[NotificationOut] = Field(default_factory=list)


class RejectionOut(BaseModel):
    code: str
    message: str


class ActionResponse(BaseModel):
    action_key: str
    status: Literal["succeeded", "failed", "skipped"]
    skip_reason: str | None = None
    error: dict | None = None
    rejection: RejectionOut | None = None
    session: SessionViewOut


class NavigateRequest(BaseModel):
    model_config = ConfigDict(extra="forbid")

    page: int | None = None
    node_key: str | None = None
    choice_index: int | None = Field(default=None, ge=0)
    action: Literal["back", "restart", "continue"] | None = None

    @model_validator(mode="after")
    def exactly_one_target(self):
        given = [v for v in (self.page, self.node_key, self.choice_index, self.action) if v is not None]
        if len(given) != 1:
            raise ValueError("exactly one of page, node_key, choice_index or action is required")
        return self


class ContentReplaceRequest(BaseModel):
    model_config = ConfigDict(extra="forbid")

    content: dict


class ChoiceIn(BaseModel):
    model_config = ConfigDict(extra="forbid")

    text: str = ""
    next_node: str = ""


class NodeEditRequest(BaseModel):
    model_config = ConfigDict(extra="forbid")

    text: str | None = None
    choices: list[ChoiceIn] | None = None
    is_ending: bool | None = None


class LeaveOut(BaseModel):
    decision: Literal["allow", "confirm"]
    session: SessionViewOut


class LeaveResolveRequest(BaseModel):
    model_config = ConfigDict(extra="forbid")

    confirm: bool


class LeaveResolveOut(BaseModel):
    left: bool
    session: SessionViewOut


class CommentOut(BaseModel):
    id: str
    story_id: str
    page: int
    node_key: str
    author_id: str
    author_name: str
    author_avatar: str | None = None
    text: str
    category: CommentCategory
    created_at: datetime
    updated_at: datetime | None = None


class CommentListOut(BaseModel):
    story_id: str
    page: int
    count: int
    comments: list[CommentOut]


class CommentCreateRequest(BaseModel):
    model_config = ConfigDict(extra="forbid")

    text: str
    category: str = CommentCategory.OTHER.value
    author_id: str


class CommentUpdateRequest(BaseModel):
    model_config = ConfigDict(extra="forbid")

    text: str
    category: str
    author_id: str
    page: int | None = None


class CommentActionResponse(ActionResponse):
    comments: list[CommentOut] = Field(default_factory=list)


class GenerateRequest(BaseModel):
    model_config = ConfigDict(extra="forbid")

    prompt: str
    content_type: ContentType
    model: str | None = None
    temperature: float | None = None
    system_prompt: str | None = None


class GenerateResponse(ActionResponse):
    content: str | None = None
    model: str | None = None
