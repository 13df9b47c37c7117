from typing import Literal

from pydantic import BaseModel, Field


class FileEntry(BaseModel):
    name: str
    type: Literal["folder", "file", "unknown"]
    size: int | None = None
    modified: str | None = None
    permissions: str = "---------"


class DirectoryListing(BaseModel):
    path: str
    files: list[FileEntry]


class FileWrite(BaseModel):
    path: str
    content: str


class CreateRequest(BaseModel):
    path: str
    type: Literal["file", "folder"]


class PermissionsRequest(BaseModel):
    path: str
    mode: str = Field(..., description='3 or 4 digit octal string, e.g. "755" or "0644"')
