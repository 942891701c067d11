from __future__ import annotations

from fastapi import APIRouter

from app.modules.telemetry.service import get_action_telemetry_summary

router = APIRouter(prefix="/telemetry", tags=["telemetry"])


@router.get("/actions")
def action_telemetry() -> dict:
    return get_action_telemetry_summary()
