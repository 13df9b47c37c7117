from pathlib import Path

from pydantic_settings import BaseSettings, SettingsConfigDict


_PROJECT_ROOT = Path(__file__).resolve().parent.parent


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=str(_PROJECT_ROOT / ".env"), env_prefix="DVPANEL_", extra="ignore")

    app_name: str = "DVPanel"
    environment: str = "dev"
    log_level: str = "INFO"

    # Security
    # Operator-provisioned secret. Every encrypted record is keyed from it; losing it
    # makes existing records unreadable.
    installation_code: str | None = None
    # Optional: override where the Argon2 salt lives. Defaults to <data_path>/.salt.
    salt_file: str | None = None
    kdf_time_cost: int = 3
    kdf_memory_cost: int = 65536
    kdf_parallelism: int = 1

    # Storage paths
    data_path: str = "./.dvpanel_data"
    # Root of the file manager sandbox. "/" disables containment.
    file_manager_base_dir: str = "/"

    # Retention
    max_snapshots: int = 10
    max_log_entries: int = 1000

    # Owner account bootstrapped at startup when both are set.
    owner_username: str = ""
    owner_password: str = ""

    def resolved_data_path(self) -> Path:
        p = Path(self.data_path).expanduser()
        if not p.is_absolute():
            p = Path.cwd() / p
        return p.resolve()

    def resolved_salt_file(self) -> Path:
        if self.salt_file:
            return Path(self.salt_file).expanduser().resolve()
        return self.resolved_data_path() / ".salt"


settings = Settings()
