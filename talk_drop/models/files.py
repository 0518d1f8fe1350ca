"""File metadata tracked by the filesystem index."""

import os
from dataclasses import dataclass, field
from datetime import datetime
from pathlib import Path
from typing import BinaryIO, Optional

from talk_drop.normalizers.text import redact_filename

COMMENT_EXTENSION = ".comment.txt"


def is_comment_path(path: str | Path) -> bool:
    """Comments are plain text files with the reserved suffix."""
    return str(path).endswith(COMMENT_EXTENSION)


@dataclass
class FileEntry:
    """Index entry for one path below the files root.

    ``stats`` is the exact stat result captured for the event that produced
    this entry; hash results are only applied while it is still the same
    object.
    """

    is_dir: bool
    is_comment: bool = False
    stats: Optional[os.stat_result] = None
    hash: Optional[str] = None


@dataclass
class TalkFile:
    """A file in a talk's directory, as shown to the view layer."""

    path: str
    entry: FileEntry
    name: str = field(init=False)
    redacted_name: str = field(init=False)

    def __post_init__(self) -> None:
        self.name = os.path.basename(self.path)
        self.redacted_name = redact_filename(self.name)

    @property
    def size(self) -> Optional[int]:
        return self.entry.stats.st_size if self.entry.stats else None

    @property
    def created(self) -> Optional[datetime]:
        """Birth time where the platform records it, else last status change."""
        stats = self.entry.stats
        if stats is None:
            return None
        timestamp = getattr(stats, "st_birthtime", None) or stats.st_ctime
        return datetime.fromtimestamp(timestamp)

    @property
    def hash(self) -> Optional[str]:
        return self.entry.hash

    def open(self) -> BinaryIO:
        return open(self.path, "rb")


@dataclass
class Comment:
    """A comment file's body with its index entry."""

    body: str
    entry: FileEntry
    path: str


@dataclass
class UploadedFile:
    """A file received by the upload endpoint, waiting to be moved into place."""

    temporary_path: Path
    original_name: str
