from pathlib import Path
from typing import Optional

from pydantic_settings import BaseSettings, SettingsConfigDict

from fsindexd.version import __version__


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_prefix="FSINDEXD_",
        case_sensitive=True,
        extra="ignore"
    )

    VERSION: str = __version__

    # --- BATCHING ---
    BATCH_SIZE: int = 100
    BATCH_INTERVAL_MS: int = 1000
    DRAIN_CAP: int = 500
    WAKE_TIMEOUT_MS: int = 1000
    DRAIN_ON_SHUTDOWN: bool = False

    # --- DELAYED DELETIONS (engine side) ---
    DELETION_BATCH_SIZE: int = 100
    DELETION_INTERVAL_MS: int = 1000

    # --- MOUNT AWARENESS ---
    SUPPRESSED_FS_TYPE: str = "fuse.dlnfs"
    LONGNAME_SUFFIX: str = ".longname"

    # --- ENGINE ---
    INDEX_DIR: str = str(Path.home() / ".cache" / "fsindexd" / "index")
    ENGINE_INDEX_MEM_MB: int = 128
    ENGINE_RELOAD_MS: int = 1000

    # --- SERVICE ENDPOINT ---
    SERVICE_NAME: str = "org.fsindexd.Index"
    SERVICE_OBJECT_PATH: str = "/org/fsindexd/Index"
    REGISTRY_FILE: Optional[str] = None

    # --- LOGGING ---
    LOG_LEVEL: str = "INFO"
    LOG_JSON: bool = True

    @property
    def registry_path(self) -> str:
        if self.REGISTRY_FILE:
            return self.REGISTRY_FILE
        return str(Path.home() / ".local" / "share" / "fsindexd" / "services.json")


settings = Settings()
