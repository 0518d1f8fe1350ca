"""Talk model: one schedule entry and the files uploaded for it.

Talks are rebuilt from the schedule on every refresh and never mutated in
place. Their file views are derived from the shared ``FileIndex`` by path
containment and cached against the index's generation counter.
"""

import asyncio
import logging
import os
import shutil
import time
from datetime import datetime
from pathlib import Path
from typing import TYPE_CHECKING, Any, BinaryIO, Optional

from pydantic import BaseModel, Field, PrivateAttr

from talk_drop.models.files import COMMENT_EXTENSION, Comment, FileEntry, TalkFile, UploadedFile
from talk_drop.normalizers.text import slugify, sort_title

if TYPE_CHECKING:
    from talk_drop.indexers.files import FileIndex
    from talk_drop.sources.schedule import RawTalk

logger = logging.getLogger(__name__)


class Talk(BaseModel):
    """A scheduled talk with an upload directory at ``<root>/<id>``."""

    # ===== IDENTITY =====
    id: str = Field(description="Stable guid from the schedule feed")
    file_path: Path = Field(description="Upload directory, always root/id")

    # ===== SCHEDULE =====
    date: datetime
    time: str
    duration: str
    room: str
    day: Optional[int] = Field(default=None, description="Conference day index")

    # ===== CONTENT =====
    title: str
    sort_title: str = Field(description="Lowercased, article-stripped sort key")
    subtitle: Optional[str] = None
    slug: str = Field(description="URL slug; not unique across feeds")
    track: Optional[str] = None
    type: str
    language: str
    abstract: Optional[str] = None
    url: Optional[str] = None
    speakers: list[str] = Field(default_factory=list)

    _files: Any = PrivateAttr()
    _files_cache: Optional[list[TalkFile]] = PrivateAttr(default=None)
    _files_generation: int = PrivateAttr(default=-1)
    _comment_files_cache: Optional[list[TalkFile]] = PrivateAttr(default=None)
    _comment_files_generation: int = PrivateAttr(default=-1)

    @classmethod
    def from_schedule(
        cls,
        raw: "RawTalk",
        day: Optional[int],
        root: Path,
        files: "FileIndex",
    ) -> "Talk":
        """Build a talk from a schedule entry."""
        title = raw.title.strip()
        talk = cls(
            id=raw.guid,
            file_path=Path(os.path.abspath(root)) / raw.guid,
            date=raw.date,
            time=raw.start,
            duration=raw.duration,
            room=raw.room,
            day=day,
            title=title,
            sort_title=sort_title(title),
            subtitle=raw.subtitle or None,
            slug=slugify(title, raw.language),
            track=raw.track,
            type=raw.type,
            language=raw.language,
            abstract=raw.abstract or None,
            url=raw.url or None,
            speakers=[p.display_name for p in raw.persons],
        )
        talk._files = files
        return talk

    # ===== FILE VIEWS =====

    def _collect(self, comments: bool) -> list[TalkFile]:
        return [
            TalkFile(path, entry)
            for path, entry in self._files.entries_under(self.file_path)
            if not entry.is_dir and entry.is_comment == comments
        ]

    @property
    def files(self) -> list[TalkFile]:
        """Uploaded files (no directories, no comments)."""
        generation = self._files.last_updated
        if self._files_cache is None or self._files_generation < generation:
            self._files_cache = self._collect(comments=False)
            self._files_generation = generation
        return self._files_cache

    @property
    def comment_files(self) -> list[TalkFile]:
        generation = self._files.last_updated
        if self._comment_files_cache is None or self._comment_files_generation < generation:
            self._comment_files_cache = self._collect(comments=True)
            self._comment_files_generation = generation
        return self._comment_files_cache

    async def get_comments(self) -> list[Comment]:
        """Read every comment for this talk, oldest first.

        Always reads from disk; comment bodies are not cached.
        """
        comment_files = sorted(self._collect(comments=True), key=lambda f: f.name)
        results = await asyncio.gather(
            *[_read_comment(f.path, f.entry) for f in comment_files]
        )
        return [c for c in results if c is not None]

    def read_file(self, name: str) -> BinaryIO:
        return open(self.file_path / Path(name).name, "rb")

    # ===== MUTATIONS =====

    async def add_comment(self, comment: str) -> "Talk":
        """Store a comment as ``<millis>.comment.txt`` in the talk directory."""
        path = await asyncio.to_thread(_write_comment, self.file_path, comment)
        stats = await asyncio.to_thread(os.stat, path)
        self._files.on_added(path, stats)
        return self

    async def add_files(self, uploads: list[UploadedFile]) -> "Talk":
        """Move uploaded temporary files into the talk directory."""

        async def move(upload: UploadedFile) -> None:
            dest = self.file_path / Path(upload.original_name).name
            await asyncio.to_thread(shutil.move, upload.temporary_path, dest)
            stats = await asyncio.to_thread(os.stat, dest)
            self._files.on_added(dest, stats)

        await asyncio.gather(*[move(u) for u in uploads])
        return self


def _write_comment(directory: Path, comment: str) -> Path:
    millis = int(time.time() * 1000)
    while True:
        path = directory / f"{millis}{COMMENT_EXTENSION}"
        try:
            with open(path, "x", encoding="utf-8") as f:
                f.write(comment)
            return path
        except FileExistsError:
            millis += 1


async def _read_comment(path: str, entry: FileEntry) -> Optional[Comment]:
    try:
        data = await asyncio.to_thread(Path(path).read_bytes)
    except FileNotFoundError:
        # Deleted after listing
        return None
    except OSError as e:
        logger.warning("Error reading comment %s: %s", path, e)
        return None
    return Comment(body=data.decode("utf-8", errors="replace"), entry=entry, path=path)
