import os

from fastapi import APIRouter, Depends
from fastapi.responses import PlainTextResponse

from dvpanel.di import Container, get_container
from dvpanel.schemas.files import CreateRequest, DirectoryListing, FileWrite, PermissionsRequest
from dvpanel.services.path_jail import from_panel_path

router = APIRouter(prefix="/api/panel-daemon", tags=["files"])


@router.get("/files", response_model=DirectoryListing)
def list_files(path: str = "/", c: Container = Depends(get_container)):
    return c.files.list_directory(from_panel_path(path))


@router.get("/file", response_class=PlainTextResponse)
def read_file(path: str, c: Container = Depends(get_container)):
    return PlainTextResponse(c.files.read_text(from_panel_path(path)))


@router.post("/file")
def write_file(payload: FileWrite, c: Container = Depends(get_container)):
    resolved = c.files.write_text(from_panel_path(payload.path), payload.content)
    name = os.path.basename(resolved)
    c.activity.log_event("System", "System", "FILE_SAVED", "INFO", {"path": c.files.client_path(resolved)})
    return {"success": True, "message": f"File {name} saved successfully."}


@router.post("/create")
def create_entry(payload: CreateRequest, c: Container = Depends(get_container)):
    resolved = c.files.create(from_panel_path(payload.path), payload.type)
    c.activity.log_event(
        "System", "System", "FILE_CREATED", "INFO", {"path": c.files.client_path(resolved), "type": payload.type}
    )
    return {"success": True, "message": f"{payload.type.capitalize()} {os.path.basename(resolved)} created."}


@router.post("/permissions")
def change_permissions(payload: PermissionsRequest, c: Container = Depends(get_container)):
    resolved = c.files.set_permissions(from_panel_path(payload.path), payload.mode)
    c.activity.log_event(
        "System", "System", "PERMISSIONS_CHANGED", "INFO", {"path": c.files.client_path(resolved), "mode": payload.mode}
    )
    return {
        "success": True,
        "message": f"Permissions for {os.path.basename(resolved)} updated to {payload.mode}.",
    }
