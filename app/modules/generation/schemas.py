from __future__ import annotations

from typing import Literal

from pydantic import BaseModel, ConfigDict, Field, field_validator

from app.config import settings

ContentType = Literal["edit_json", "story_suggestions"]


class GenerationRequest(BaseModel):
    model_config = ConfigDict(extra="forbid")

    system_prompt: str = Field(min_length=1)
    prompt: str = Field(min_length=1)
    content_type: ContentType
    model: str = Field(default_factory=lambda: settings.llm_default_model)
    temperature: float = Field(default=0.7, ge=0.0, le=1.0)

    @field_validator("model")
    @classmethod
    def validate_model(cls, value: str) -> str:
        model = str(value or "").strip()
        if model not in settings.llm_allowed_models:
            raise ValueError(f"model must be one of: {', '.join(settings.llm_allowed_models)}")
        return model


class GenerationResult(BaseModel):
    content: str
    content_type: ContentType
    model: str
