"""Builders for schedule documents used across tests."""

from typing import Optional


def talk_entry(
    guid: str,
    title: str,
    language: str = "en",
    room: str = "Saal 1",
    persons: Optional[list[dict]] = None,
    **extra,
) -> dict:
    """A talk entry shaped like the schedule export."""
    entry = {
        "guid": guid,
        "date": "2023-12-27T11:00:00+01:00",
        "start": "11:00",
        "duration": "00:40",
        "room": room,
        "title": title,
        "language": language,
        "track": "Science",
        "type": "Talk",
        "persons": persons if persons is not None else [{"public_name": "Ada"}],
    }
    entry.update(extra)
    return entry


def schedule_document(
    talks: list[dict],
    acronym: Optional[str] = "37c3",
    version: Optional[str] = "1.0",
    day_index: int = 1,
) -> dict:
    """Wrap talk entries into a one-day, one-room-per-talk schedule."""
    rooms: dict[str, list[dict]] = {}
    for talk in talks:
        rooms.setdefault(talk["room"], []).append(talk)
    conference: dict = {"days": [{"index": day_index, "rooms": rooms}]}
    if acronym is not None:
        conference["acronym"] = acronym
    schedule: dict = {"conference": conference}
    if version is not None:
        schedule["version"] = version
    return {"schedule": schedule}
