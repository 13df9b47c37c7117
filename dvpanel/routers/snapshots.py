from fastapi import APIRouter, Depends, Query

from dvpanel.di import Container, get_container
from dvpanel.schemas.snapshots import Snapshot, SnapshotCreate, SnapshotLock
from dvpanel.services.path_jail import from_panel_path

router = APIRouter(prefix="/api/panel-daemon/snapshots", tags=["snapshots"])


def _payload(snapshots: list[Snapshot], **extra) -> dict:
    return {**extra, "snapshots": [s.to_record() for s in snapshots]}


@router.get("")
def list_snapshots(file_path: str = Query(..., alias="filePath"), c: Container = Depends(get_container)):
    return _payload(c.snapshots.list_snapshots(from_panel_path(file_path)))


@router.post("")
def create_snapshot(payload: SnapshotCreate, c: Container = Depends(get_container)):
    snapshots = c.snapshots.create_snapshot(from_panel_path(payload.file_path), payload.content, payload.language)
    c.activity.log_event(
        "System", "System", "SNAPSHOT_CREATED", "INFO", {"filePath": payload.file_path, "total": len(snapshots)}
    )
    return _payload(snapshots, success=True, message="Snapshot created.")


@router.post("/lock")
def lock_snapshot(payload: SnapshotLock, c: Container = Depends(get_container)):
    snapshots = c.snapshots.set_lock(from_panel_path(payload.file_path), payload.snapshot_id, payload.lock)
    c.activity.log_event(
        "System",
        "System",
        "SNAPSHOT_LOCKED" if payload.lock else "SNAPSHOT_UNLOCKED",
        "INFO",
        {"filePath": payload.file_path, "snapshotId": payload.snapshot_id},
    )
    state = "locked" if payload.lock else "unlocked"
    return _payload(snapshots, success=True, message=f"Snapshot {state} successfully.")


@router.delete("")
def delete_snapshot(
    file_path: str = Query(..., alias="filePath"),
    snapshot_id: str = Query(..., alias="snapshotId"),
    c: Container = Depends(get_container),
):
    snapshots = c.snapshots.delete_snapshot(from_panel_path(file_path), snapshot_id)
    c.activity.log_event(
        "System", "System", "SNAPSHOT_DELETED", "INFO", {"filePath": file_path, "snapshotId": snapshot_id}
    )
    return _payload(snapshots, success=True, message="Snapshot deleted.")


@router.get("/{snapshot_id}")
def get_snapshot(snapshot_id: str, file_path: str = Query(..., alias="filePath"), c: Container = Depends(get_container)):
    return c.snapshots.get_snapshot(from_panel_path(file_path), snapshot_id).to_record()
