from typing import Any

from fastapi import APIRouter, Body, Depends, Query

from dvpanel.di import Container, get_container

router = APIRouter(prefix="/api", tags=["settings"])


@router.get("/settings")
def load_settings(c: Container = Depends(get_container)):
    return {"status": "success", "data": c.panel_settings.load().to_record()}


@router.post("/settings")
def save_settings(payload: dict[str, Any] = Body(...), c: Container = Depends(get_container)):
    saved = c.panel_settings.save(payload)
    c.activity.log_event(
        "System", "System", "GLOBAL_SETTINGS_UPDATED", "INFO", {"updatedFields": sorted(payload.keys())}
    )
    return {"status": "success", "message": "Panel settings saved successfully!", "data": saved.to_record()}


@router.get("/logs/{log_file}")
def read_logs(
    log_file: str,
    limit: int | None = Query(None, ge=1, le=10000),
    c: Container = Depends(get_container),
):
    entries = c.activity.read(log_file, limit=limit)
    return {"logs": [e.to_record() for e in entries]}
