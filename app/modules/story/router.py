from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.orm import Session

from app.db.session import get_db
from app.modules.errors import MappingError
from app.modules.story import service
from app.modules.story.page_mapping import compute_mapping
from app.modules.story.schemas import (
    MappingOut,
    StoryCreateRequest,
    StoryOut,
    StoryValidateRequest,
    ValidateResponse,
)

router = APIRouter(prefix="", tags=["stories"])


def _story_out(row) -> dict:
    graph = service.story_graph(row)
    return {
        "id": row.id,
        "title": row.title,
        "content": graph.to_content(),
        "node_count": len(graph),
        "created_at": row.created_at,
        "updated_at": row.updated_at,
    }


def _not_found(story_id: str) -> HTTPException:
    return HTTPException(
        status_code=404,
        detail={"code": "STORY_NOT_FOUND", "message": f"Story '{story_id}' not found."},
    )


@router.post("/stories/validate", response_model=ValidateResponse)
def validate_story(payload: StoryValidateRequest):
    return service.preview_story(payload.content)


@router.post("/stories", response_model=StoryOut)
def create_story(payload: StoryCreateRequest, db: Session = Depends(get_db)):
    with db.begin():
        if payload.id and service.get_story(db, payload.id.strip()) is not None:
            raise HTTPException(
                status_code=409,
                detail={"code": "STORY_EXISTS", "message": f"Story '{payload.id}' already exists."},
            )
        row = service.create_story(db, title=payload.title, content=payload.content, story_id=payload.id)
    return _story_out(row)


@router.get("/stories/{story_id}", response_model=StoryOut)
def get_story(story_id: str, db: Session = Depends(get_db)):
    row = service.get_story(db, story_id)
    if row is None:
        raise _not_found(story_id)
    return _story_out(row)


@router.get("/stories/{story_id}/mapping", response_model=MappingOut)
def get_story_mapping(story_id: str, db: Session = Depends(get_db)):
    row = service.get_story(db, story_id)
    if row is None:
        raise _not_found(story_id)
    try:
        mapping = compute_mapping(service.story_graph(row))
    except MappingError as exc:
        raise HTTPException(status_code=422, detail=exc.as_detail()) from exc
    return mapping.as_payload()
