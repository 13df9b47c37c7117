from datetime import datetime, timezone

from pydantic import BaseModel, ConfigDict, Field, field_validator


class Snapshot(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    id: str
    timestamp: datetime
    content: str
    language: str
    is_locked: bool = Field(False, alias="isLocked")

    @field_validator("timestamp")
    @classmethod
    def _assume_utc(cls, value: datetime) -> datetime:
        return value.replace(tzinfo=timezone.utc) if value.tzinfo is None else value

    def to_record(self) -> dict:
        return self.model_dump(mode="json", by_alias=True)


class SnapshotSet(BaseModel):
    snapshots: list[Snapshot] = Field(default_factory=list)


class SnapshotCreate(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    file_path: str = Field(..., alias="filePath", min_length=1)
    content: str
    language: str


class SnapshotLock(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    file_path: str = Field(..., alias="filePath", min_length=1)
    snapshot_id: str = Field(..., alias="snapshotId", min_length=1)
    lock: bool

