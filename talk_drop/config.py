"""Settings loaded from environment variables (and a .env file)."""

import os
from pathlib import Path

from dotenv import load_dotenv
from pydantic import BaseModel, Field, field_validator

DEFAULT_FILES_ROOT = "files"
DEFAULT_UPDATE_INTERVAL_MS = 5 * 60 * 1000


class Settings(BaseModel):
    """Runtime configuration for the talk index engine."""

    event_name: str = "talk-drop"
    # Local files and/or remote URLs
    schedule_urls: list[str] = Field(min_length=1)
    files_root: Path = Path(DEFAULT_FILES_ROOT)
    # How often remote schedules are fetched again, in milliseconds
    remote_schedule_update_interval: int = DEFAULT_UPDATE_INTERVAL_MS

    @field_validator("schedule_urls", mode="before")
    @classmethod
    def _strip_urls(cls, urls: str | list[str]) -> list[str]:
        if isinstance(urls, str):
            urls = urls.split(",")
        return [u.strip() for u in urls if u.strip()]

    @property
    def update_interval_seconds(self) -> float:
        return self.remote_schedule_update_interval / 1000


def env(name: str, required: bool = False) -> str | None:
    value = os.environ.get(name)
    if required and not value:
        raise ValueError(f"Missing required environment variable {name}")
    return value


def load_settings() -> Settings:
    """Build settings from the environment.

    Raises ValueError when SCHEDULE_URLS is missing.
    """
    load_dotenv()
    interval = env("REMOTE_SCHEDULE_UPDATE_INTERVAL")
    return Settings(
        event_name=env("EVENT_NAME") or "talk-drop",
        schedule_urls=env("SCHEDULE_URLS", required=True),
        files_root=Path(env("FILES_ROOT") or DEFAULT_FILES_ROOT),
        remote_schedule_update_interval=int(interval) if interval else DEFAULT_UPDATE_INTERVAL_MS,
    )
