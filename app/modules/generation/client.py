from __future__ import annotations

from typing import Protocol

import httpx

from app.config import settings
from app.modules.errors import StoryCoreError
from app.modules.generation.schemas import GenerationRequest, GenerationResult

_CONTENT_TYPE_INSTRUCTIONS = {
    "edit_json": (
        "You are a JSON editor. Your task is to generate valid JSON for story nodes "
        "based on user instructions and context provided."
    ),
    "story_suggestions": (
        "You are a creative writing assistant providing suggestions and ideas to improve the story."
    ),
}


class GenerationError(StoryCoreError):
    pass


class ContentGenerator(Protocol):
    async def generate(self, request: GenerationRequest) -> GenerationResult:
        ...


def _endpoint_url(*, base_url: str, path: str) -> str:
    return f"{base_url.rstrip('/')}/{path.lstrip('/')}"


def build_messages(request: GenerationRequest) -> list[dict[str, str]]:
    system = f"{request.system_prompt}\n{_CONTENT_TYPE_INSTRUCTIONS[request.content_type]}"
    return [
        {"role": "system", "content": system},
        {"role": "user", "content": request.prompt},
    ]


def extract_message_content(data: dict) -> str:
    try:
        content = data["choices"][0]["message"]["content"]
    except (KeyError, IndexError, TypeError) as exc:
        raise GenerationError(code="GENERATION_BAD_RESPONSE", message="missing choices[0].message.content") from exc
    if not isinstance(content, str):
        raise GenerationError(code="GENERATION_BAD_RESPONSE", message="model content is not text")
    return content


class ChatCompletionsGenerator:
    """OpenAI-compatible chat/completions client."""

    def __init__(
        self,
        *,
        api_key: str | None = None,
        base_url: str | None = None,
        timeout_s: float | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self.api_key = settings.llm_api_key if api_key is None else api_key
        self.base_url = base_url or settings.llm_base_url
        self.timeout_s = float(timeout_s or settings.llm_timeout_s)
        self._transport = transport

    async def generate(self, request: GenerationRequest) -> GenerationResult:
        if not str(self.api_key or "").strip():
            raise GenerationError(code="GENERATION_NOT_CONFIGURED", message="LLM API key is not configured.", retryable=False)
        payload = {
            "model": request.model,
            "messages": build_messages(request),
            "temperature": request.temperature,
            "max_tokens": settings.llm_max_tokens,
        }
        headers = {
            "Authorization": f"Bearer {self.api_key}",
            "Content-Type": "application/json",
        }
        endpoint = _endpoint_url(base_url=self.base_url, path="/chat/completions")
        try:
            async with httpx.AsyncClient(timeout=httpx.Timeout(self.timeout_s), transport=self._transport) as client:
                response = await client.post(endpoint, headers=headers, json=payload)
        except httpx.HTTPError as exc:
            raise GenerationError(code="GENERATION_UNAVAILABLE", message=f"Content generation failed: {exc}") from exc
        if response.status_code != 200:
            raise GenerationError(
                code="GENERATION_FAILED",
                message=f"Failed to generate content (HTTP {response.status_code}).",
            )
        try:
            data = response.json()
        except ValueError as exc:
            raise GenerationError(code="GENERATION_BAD_RESPONSE", message="response is not JSON") from exc
        return GenerationResult(
            content=extract_message_content(data),
            content_type=request.content_type,
            model=request.model,
        )
