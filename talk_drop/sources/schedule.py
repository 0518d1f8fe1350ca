"""Schedule feed documents and where to load them from.

A schedule source is either a local JSON file or a remote URL serving the
usual ``{schedule: {conference: {days: [{rooms: {...}}]}}}`` export.
"""

import json
import logging
from dataclasses import dataclass, field
from datetime import datetime
from pathlib import Path
from typing import Optional
from urllib.parse import unquote, urlparse

from pydantic import BaseModel, Field

from talk_drop.models.talk import Talk

logger = logging.getLogger(__name__)

REMOTE_SCHEMES = {"http", "https"}


class RawPerson(BaseModel):
    """Speaker entry; older exports only carry ``name``."""

    public_name: Optional[str] = None
    name: Optional[str] = None

    class Config:
        extra = "ignore"

    @property
    def display_name(self) -> str:
        return self.public_name or self.name or ""


class RawTalk(BaseModel):
    """Talk entry as found in a room's list."""

    guid: str
    date: datetime
    start: str
    duration: str
    room: str
    title: str
    language: str
    track: Optional[str] = None
    type: str
    persons: list[RawPerson] = Field(default_factory=list)
    subtitle: Optional[str] = None
    abstract: Optional[str] = None
    url: Optional[str] = None

    class Config:
        extra = "ignore"


class RawDay(BaseModel):
    index: int
    rooms: dict[str, list[RawTalk]] = Field(default_factory=dict)

    class Config:
        extra = "ignore"


class RawConference(BaseModel):
    acronym: Optional[str] = None
    days: list[RawDay] = Field(default_factory=list)

    class Config:
        extra = "ignore"


class RawSchedule(BaseModel):
    version: Optional[str] = None
    conference: RawConference

    class Config:
        extra = "ignore"


class ScheduleDocument(BaseModel):
    """Top-level schedule export."""

    schedule: RawSchedule

    class Config:
        extra = "ignore"

    def talks(self) -> list[tuple[RawTalk, int]]:
        """All talk entries in feed order, with their day index."""
        return [
            (talk, day.index)
            for day in self.schedule.conference.days
            for room_talks in day.rooms.values()
            for talk in room_talks
        ]


def version_fragment(document: ScheduleDocument) -> Optional[str]:
    """``"<acronym>: <version>"`` for diagnostics, or None if either is missing."""
    acronym = document.schedule.conference.acronym
    version = document.schedule.version
    if not acronym or not version:
        logger.warning(
            "Schedule is missing version information (acronym=%r, version=%r)",
            acronym, version,
        )
        return None
    return f"{acronym}: {version}"


@dataclass
class ScheduleSource:
    """One configured schedule location plus its conditional-fetch state."""

    location: str
    url: Optional[str] = None
    path: Optional[Path] = None
    # Conditional fetch state for remote sources
    last_modified: Optional[str] = None
    document: Optional[ScheduleDocument] = None

    @property
    def is_remote(self) -> bool:
        return self.url is not None


def parse_location(location: str) -> ScheduleSource:
    """Resolve a configured location to a remote URL or a local file.

    Absolute http(s) URLs are remote; ``file://`` URLs and anything that does
    not parse as an absolute URL are local paths.
    """
    location = location.strip()
    parsed = urlparse(location)
    if parsed.scheme in REMOTE_SCHEMES and parsed.netloc:
        return ScheduleSource(location=location, url=location)
    if parsed.scheme == "file":
        return ScheduleSource(location=location, path=Path(unquote(parsed.path)).resolve())
    return ScheduleSource(location=location, path=Path(location).expanduser().resolve())


@dataclass
class ScheduleSnapshot:
    """Talks built from one complete refresh, in source then feed order."""

    talks: list[Talk] = field(default_factory=list)
    version: Optional[str] = None


def load_document(data: bytes | str) -> ScheduleDocument:
    """Parse raw JSON into a validated schedule document."""
    return ScheduleDocument.model_validate(json.loads(data))
