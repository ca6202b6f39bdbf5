"""
Configuration for the traffic meter engine.

We use pydantic-settings (Pydantic v2) to load settings from:
- environment variables prefixed with TRAFFICMETER_
- a local `.env` file in the working directory
"""

import os
from pathlib import Path
from typing import Annotated, List, Optional

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, NoDecode, SettingsConfigDict

APP_NAME = "trafficmeter"
DB_FILENAME = "network_usage.db"

MAX_HISTORY_AUTO_TRIM_DAYS = 365


class Settings(BaseSettings):
    """
    Engine-wide settings.

    Environment variables (with defaults):

    - TRAFFICMETER_POLL_INTERVAL_SECONDS:  Tick period in seconds (default: 2)
    - TRAFFICMETER_ENABLE_HISTORY:         Write per-tick deltas to the history store (default: 1)
    - TRAFFICMETER_HISTORY_AUTO_TRIM_DAYS: Days of history kept at startup, 0 = keep all (default: 0)
    - TRAFFICMETER_SELECTED_INTERFACE:     Interface to report/log, empty = all interfaces
    - TRAFFICMETER_DATABASE_URL:           SQLAlchemy URL, default SQLite file in the user data dir
    - TRAFFICMETER_EXCLUDE_INTERFACES:     Comma-separated interface names to skip
    - TRAFFICMETER_USE_COUNTER_STUB:       "1" to use synthetic counters instead of the OS
    - TRAFFICMETER_COUNTER_TIMEOUT_SECONDS: Timeout for one raw counter read (default: 5)
    - TRAFFICMETER_LOG_LEVEL:              Logging level name (default: INFO)
    """

    poll_interval_seconds: float = Field(default=2.0, gt=0)

    enable_history: bool = True
    history_auto_trim_days: int = 0

    selected_interface: str = ""

    database_url: Optional[str] = None

    # Will be populated from TRAFFICMETER_EXCLUDE_INTERFACES; parsed below.
    # NoDecode: the raw string reaches the validator instead of json.loads.
    exclude_interfaces: Annotated[List[str], NoDecode] = Field(default_factory=list)

    use_counter_stub: bool = False
    counter_timeout_seconds: float = Field(default=5.0, gt=0)

    log_level: str = "INFO"

    model_config = SettingsConfigDict(
        env_prefix="TRAFFICMETER_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    @field_validator("exclude_interfaces", mode="before")
    @classmethod
    def parse_exclude_interfaces(cls, v):
        """
        Allow TRAFFICMETER_EXCLUDE_INTERFACES to be specified as:

        - "docker0"            -> ["docker0"]
        - "docker0, virbr0"    -> ["docker0", "virbr0"]
        - ["docker0"]          -> ["docker0"]
        """
        if v is None:
            return []
        if isinstance(v, str):
            return [p.strip() for p in v.split(",") if p.strip()]
        return v

    @field_validator("history_auto_trim_days", mode="after")
    @classmethod
    def clamp_trim_days(cls, v: int) -> int:
        return max(0, min(v, MAX_HISTORY_AUTO_TRIM_DAYS))

    def resolved_database_url(self) -> str:
        """Return the configured URL, or the default SQLite file location."""
        if self.database_url:
            return self.database_url
        return f"sqlite:///{default_database_path()}"


def user_data_dir() -> Path:
    """Per-user, application-local data directory (not created here)."""
    local_app_data = os.environ.get("LOCALAPPDATA")
    if os.name == "nt" and local_app_data:
        base = Path(local_app_data)
    else:
        base = Path(os.environ.get("XDG_DATA_HOME") or Path.home() / ".local" / "share")
    return base / APP_NAME


def default_database_path() -> Path:
    return user_data_dir() / DB_FILENAME


def get_settings(**overrides) -> Settings:
    """Build a settings object; keyword arguments override env values."""
    return Settings(**overrides)
