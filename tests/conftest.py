"""Shared test fixtures and configuration."""

import json
from pathlib import Path
from typing import Callable

import pytest

from tests.factories import schedule_document, talk_entry


@pytest.fixture
def files_root(tmp_path: Path) -> Path:
    root = tmp_path / "files"
    root.mkdir()
    return root


@pytest.fixture
def write_schedule(tmp_path: Path) -> Callable[..., Path]:
    """Write a schedule document to disk and return its path."""

    def _write(talks: list[dict], name: str = "schedule.json", **kwargs) -> Path:
        path = tmp_path / name
        path.write_text(json.dumps(schedule_document(talks, **kwargs)))
        return path

    return _write


@pytest.fixture
def sample_talks() -> list[dict]:
    return [
        talk_entry("abc-123", "The Widget"),
        talk_entry("def-456", "Apple Pie", room="Saal 2"),
        talk_entry("ghi-789", "Zebra", language="de"),
    ]
