from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field

LogLevel = Literal["INFO", "WARN", "ERROR", "AUTH", "DEBUG"]


class LogEntry(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    timestamp: str
    level: LogLevel
    username: str
    role: str
    action: str
    details: dict[str, Any] | str | None = None
    target_user: str | None = Field(None, alias="targetUser")
    target_role: str | None = Field(None, alias="targetRole")

    def to_record(self) -> dict:
        return self.model_dump(by_alias=True, exclude_none=True)
