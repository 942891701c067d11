import uuid

from fastapi import APIRouter, Depends, HTTPException, Query

from app.modules.errors import MappingError, PersistenceFailure, StoryCoreError, ValidationFailure
from app.modules.generation.client import ContentGenerator
from app.modules.navigation.state_machine import NavigationResult
from app.modules.persistence.protocol import StoryPersistence
from app.modules.session.registry import (
    SessionRegistry,
    get_content_generator,
    get_session_registry,
    get_story_persistence,
)
from app.modules.session.schemas import (
    ActionResponse,
    CommentActionResponse,
    CommentCreateRequest,
    CommentListOut,
    CommentUpdateRequest,
    ContentReplaceRequest,
    GenerateRequest,
    GenerateResponse,
    LeaveOut,
    LeaveResolveOut,
    LeaveResolveRequest,
    NavigateRequest,
    NodeEditRequest,
    SessionCreateRequest,
    SessionViewOut,
)
from app.modules.session.service import StorySession
from app.modules.throttle.guard import ActionOutcome

router = APIRouter(prefix="", tags=["sessions"])


def _require_session(session_id: uuid.UUID, registry: SessionRegistry) -> StorySession:
    session = registry.get(session_id)
    if session is None:
        raise HTTPException(
            status_code=404,
            detail={"code": "SESSION_NOT_FOUND", "message": f"Session '{session_id}' not found."},
        )
    return session


def _validation_error(exc: ValidationFailure) -> HTTPException:
    return HTTPException(status_code=422, detail=exc.as_detail())


def _error_detail(error: BaseException | None) -> dict | None:
    if error is None:
        return None
    if isinstance(error, StoryCoreError):
        return {**error.as_detail(), "retryable": error.retryable}
    return {"code": error.__class__.__name__, "message": str(error), "retryable": True}


def session_view(session: StorySession) -> dict:
    state = session.state()
    mapping = session.navigation.mapping
    node = session.current_node()
    current_node = None
    if node is not None:
        current_node = {
            "key": node.key,
            "text": node.text,
            "is_ending": node.is_ending,
            "choices": [
                {
                    "index": index,
                    "text": choice.text,
                    "next_node": choice.next_node,
                    "available": bool(mapping and mapping.page_of(choice.next_node) is not None),
                }
                for index, choice in enumerate(node.choices)
            ],
        }
    return {
        "id": session.id,
        "story_id": session.story_id,
        "phase": state.phase.value,
        "current_node_key": state.current_node,
        "current_page": state.current_page,
        "total_pages": state.total_pages,
        "history": list(state.history),
        "can_go_back": state.can_go_back,
        "mapping_algorithm": mapping.algorithm if mapping else None,
        "has_unsaved_changes": session.saver.has_unsaved_changes,
        "saving": session.saver.saving,
        "leave_pending": session.saver.leave_pending,
        "current_node": current_node,
        "notifications": [
            {"id": item.id, "level": item.level, "message": item.message, "key": item.key}
            for item in session.notifications.items()
        ],
    }


def _action_payload(session: StorySession, outcome: ActionOutcome) -> dict:
    rejection = None
    if isinstance(outcome.value, NavigationResult) and outcome.value.rejection is not None:
        rejection = {"code": outcome.value.rejection.code, "message": outcome.value.rejection.message}
    return {
        "action_key": outcome.action_key,
        "status": outcome.status.value,
        "skip_reason": outcome.skip_reason,
        "error": _error_detail(outcome.error),
        "rejection": rejection,
        "session": session_view(session),
    }


def _comments_payload(session: StorySession, page: int) -> list[dict]:
    return [comment.as_payload() for comment in session.comments.comments(session.story_id, page)]


@router.post("/sessions", response_model=SessionViewOut)
async def create_session(
    payload: SessionCreateRequest,
    registry: SessionRegistry = Depends(get_session_registry),
    persistence: StoryPersistence = Depends(get_story_persistence),
    generator: ContentGenerator = Depends(get_content_generator),
):
    story_id = str(payload.story_id or "").strip()
    try:
        session = await registry.open(story_id, persistence, generator=generator)
    except MappingError as exc:
        raise HTTPException(status_code=422, detail=exc.as_detail()) from exc
    except PersistenceFailure as exc:
        status_code = 404 if exc.code == "STORY_NOT_FOUND" else 503
        raise HTTPException(status_code=status_code, detail=exc.as_detail()) from exc
    return session_view(session)


@router.get("/sessions/{session_id}", response_model=SessionViewOut)
def get_session(session_id: uuid.UUID, registry: SessionRegistry = Depends(get_session_registry)):
    return session_view(_require_session(session_id, registry))


@router.delete("/sessions/{session_id}")
def close_session(session_id: uuid.UUID, registry: SessionRegistry = Depends(get_session_registry)):
    _require_session(session_id, registry)
    registry.close(session_id)
    return {"closed": True, "id": session_id}


@router.post("/sessions/{session_id}/navigate", response_model=ActionResponse)
async def navigate(
    session_id: uuid.UUID,
    payload: NavigateRequest,
    registry: SessionRegistry = Depends(get_session_registry),
):
    session = _require_session(session_id, registry)
    if payload.page is not None:
        outcome = await session.go_to_page(payload.page)
    elif payload.node_key is not None:
        outcome = await session.go_to_node(payload.node_key)
    elif payload.choice_index is not None:
        outcome = await session.follow_choice(payload.choice_index)
    elif payload.action == "back":
        outcome = await session.go_back()
    elif payload.action == "restart":
        outcome = await session.restart()
    else:
        outcome = await session.continue_story()
    return _action_payload(session, outcome)


@router.put("/sessions/{session_id}/content", response_model=ActionResponse)
async def replace_content(
    session_id: uuid.UUID,
    payload: ContentReplaceRequest,
    registry: SessionRegistry = Depends(get_session_registry),
):
    session = _require_session(session_id, registry)
    try:
        outcome = await session.replace_content(payload.content)
    except ValidationFailure as exc:
        raise _validation_error(exc) from exc
    return _action_payload(session, outcome)


@router.patch("/sessions/{session_id}/nodes/{node_key}", response_model=ActionResponse)
async def edit_node(
    session_id: uuid.UUID,
    node_key: str,
    payload: NodeEditRequest,
    registry: SessionRegistry = Depends(get_session_registry),
):
    session = _require_session(session_id, registry)
    choices = None
    if payload.choices is not None:
        choices = [choice.model_dump() for choice in payload.choices]
    try:
        outcome = await session.edit_node(node_key, text=payload.text, choices=choices, is_ending=payload.is_ending)
    except ValidationFailure as exc:
        raise _validation_error(exc) from exc
    return _action_payload(session, outcome)


@router.post("/sessions/{session_id}/save", response_model=ActionResponse)
async def save_story(session_id: uuid.UUID, registry: SessionRegistry = Depends(get_session_registry)):
    session = _require_session(session_id, registry)
    try:
        outcome = await session.save()
    except ValidationFailure as exc:
        raise _validation_error(exc) from exc
    return _action_payload(session, outcome)


@router.post("/sessions/{session_id}/leave", response_model=LeaveOut)
def request_leave(session_id: uuid.UUID, registry: SessionRegistry = Depends(get_session_registry)):
    session = _require_session(session_id, registry)
    decision = session.request_leave()
    return {"decision": decision.value, "session": session_view(session)}


@router.post("/sessions/{session_id}/leave/resolve", response_model=LeaveResolveOut)
def resolve_leave(
    session_id: uuid.UUID,
    payload: LeaveResolveRequest,
    registry: SessionRegistry = Depends(get_session_registry),
):
    session = _require_session(session_id, registry)
    left = session.resolve_leave(payload.confirm)
    view = session_view(session)
    if left:
        registry.close(session_id)
    return {"left": left, "session": view}


@router.get("/sessions/{session_id}/comments", response_model=CommentListOut)
async def list_comments(
    session_id: uuid.UUID,
    page: int | None = Query(default=None, ge=1),
    registry: SessionRegistry = Depends(get_session_registry),
):
    session = _require_session(session_id, registry)
    try:
        comments = await session.fetch_comments(page)
    except ValidationFailure as exc:
        raise _validation_error(exc) from exc
    target_page = page if page is not None else session.state().current_page
    return {
        "story_id": session.story_id,
        "page": target_page,
        "count": len(comments),
        "comments": [comment.as_payload() for comment in comments],
    }


@router.post("/sessions/{session_id}/comments", response_model=CommentActionResponse)
async def add_comment(
    session_id: uuid.UUID,
    payload: CommentCreateRequest,
    registry: SessionRegistry = Depends(get_session_registry),
):
    session = _require_session(session_id, registry)
    try:
        outcome = await session.add_comment(text=payload.text, category=payload.category, author_id=payload.author_id)
    except ValidationFailure as exc:
        raise _validation_error(exc) from exc
    result = _action_payload(session, outcome)
    result["comments"] = _comments_payload(session, session.state().current_page)
    return result


@router.patch("/sessions/{session_id}/comments/{comment_id}", response_model=CommentActionResponse)
async def update_comment(
    session_id: uuid.UUID,
    comment_id: str,
    payload: CommentUpdateRequest,
    registry: SessionRegistry = Depends(get_session_registry),
):
    session = _require_session(session_id, registry)
    try:
        outcome = await session.update_comment(
            comment_id,
            text=payload.text,
            category=payload.category,
            author_id=payload.author_id,
            page=payload.page,
        )
    except ValidationFailure as exc:
        raise _validation_error(exc) from exc
    result = _action_payload(session, outcome)
    page = payload.page if payload.page is not None else session.state().current_page
    result["comments"] = _comments_payload(session, page)
    return result


@router.delete("/sessions/{session_id}/comments/{comment_id}", response_model=CommentActionResponse)
async def delete_comment(
    session_id: uuid.UUID,
    comment_id: str,
    author_id: str = Query(min_length=1),
    page: int | None = Query(default=None, ge=1),
    registry: SessionRegistry = Depends(get_session_registry),
):
    session = _require_session(session_id, registry)
    try:
        outcome = await session.delete_comment(comment_id, author_id=author_id, page=page)
    except ValidationFailure as exc:
        raise _validation_error(exc) from exc
    result = _action_payload(session, outcome)
    result["comments"] = _comments_payload(session, page if page is not None else session.state().current_page)
    return result


@router.get("/sessions/{session_id}/notifications")
def list_notifications(session_id: uuid.UUID, registry: SessionRegistry = Depends(get_session_registry)):
    session = _require_session(session_id, registry)
    return {"notifications": session_view(session)["notifications"]}


@router.delete("/sessions/{session_id}/notifications/{notification_id}")
def dismiss_notification(
    session_id: uuid.UUID,
    notification_id: int,
    registry: SessionRegistry = Depends(get_session_registry),
):
    session = _require_session(session_id, registry)
    if not session.notifications.dismiss(notification_id):
        raise HTTPException(
            status_code=404,
            detail={"code": "NOTIFICATION_NOT_FOUND", "message": f"Notification {notification_id} not found."},
        )
    return {"dismissed": True, "id": notification_id}


@router.post("/sessions/{session_id}/generate", response_model=GenerateResponse)
async def generate_content(
    session_id: uuid.UUID,
    payload: GenerateRequest,
    registry: SessionRegistry = Depends(get_session_registry),
):
    session = _require_session(session_id, registry)
    try:
        outcome = await session.generate(
            instruction=payload.prompt,
            content_type=payload.content_type,
            model=payload.model,
            temperature=payload.temperature,
            system_prompt=payload.system_prompt,
        )
    except ValidationFailure as exc:
        raise _validation_error(exc) from exc
    result = _action_payload(session, outcome)
    if outcome.succeeded and outcome.value is not None:
        result["content"] = outcome.value.content
        result["model"] = outcome.value.model
    return result
