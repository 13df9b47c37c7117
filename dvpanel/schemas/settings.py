import re

from pydantic import BaseModel, ConfigDict, Field, field_validator

_IPV4_RE = re.compile(r"^(?:(?:25[0-5]|2[0-4][0-9]|[01]?[0-9][0-9]?)\.){3}(?:25[0-5]|2[0-4][0-9]|[01]?[0-9][0-9]?)$")
_HOSTNAME_RE = re.compile(r"^[a-zA-Z0-9.-]+$")


class PanelSettingsData(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    panel_port: str = Field("27407", alias="panelPort")
    panel_ip: str = Field("", alias="panelIp")
    session_inactivity_timeout: int = Field(30, alias="sessionInactivityTimeout", ge=1)
    disable_auto_logout_on_inactivity: bool = Field(False, alias="disableAutoLogoutOnInactivity")
    debug_mode: bool = Field(False, alias="debugMode")

    @field_validator("panel_port")
    @classmethod
    def _check_port(cls, value: str) -> str:
        value = value.strip()
        if not value.isdigit():
            raise ValueError("Panel Port must be a number.")
        if not 1 <= int(value) <= 65535:
            raise ValueError("Panel Port must be between 1 and 65535.")
        return value

    @field_validator("panel_ip")
    @classmethod
    def _check_ip(cls, value: str) -> str:
        value = value.strip()
        if value and not (_IPV4_RE.match(value) or _HOSTNAME_RE.match(value)):
            raise ValueError("Must be a valid IPv4 address, domain name, or empty (interpreted as 0.0.0.0).")
        return value

    def to_record(self) -> dict:
        return self.model_dump(by_alias=True)
