from typing import Literal

from pydantic import BaseModel, ConfigDict, Field

Role = Literal["Administrator", "Admin", "Custom", "Owner"]
USERNAME_PATTERN = r"^[a-zA-Z0-9_.-]+$"


class UserRecord(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    id: str
    username: str = Field(..., min_length=3, pattern=USERNAME_PATTERN)
    hashed_password: str = Field(..., alias="hashedPassword")
    role: Role
    projects: list[str] = Field(default_factory=list)
    assigned_pages: list[str] = Field(default_factory=list, alias="assignedPages")
    allowed_settings_pages: list[str] = Field(default_factory=list, alias="allowedSettingsPages")
    status: Literal["Active", "Inactive"] = "Active"
    created_at: str = Field(..., alias="createdAt")
    updated_at: str = Field(..., alias="updatedAt")
    last_login: str | None = Field(None, alias="lastLogin")

    def to_record(self) -> dict:
        return self.model_dump(by_alias=True, exclude_none=True)


class UserCreate(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    username: str = Field(..., min_length=3, pattern=USERNAME_PATTERN)
    password: str = Field(..., min_length=8)
    role: Literal["Administrator", "Admin", "Custom"]
    projects: list[str] = Field(default_factory=list)
    assigned_pages: list[str] = Field(default_factory=list, alias="assignedPages")
    allowed_settings_pages: list[str] = Field(default_factory=list, alias="allowedSettingsPages")
    status: Literal["Active", "Inactive"] = "Active"


class UserSettingsData(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    debug_mode: bool = Field(False, alias="debugMode")
    popup_duration: int = Field(5, alias="popupDuration", ge=1)

    def to_record(self) -> dict:
        return self.model_dump(by_alias=True)
