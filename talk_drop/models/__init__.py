"""Data models for talks and their files."""

from talk_drop.models.files import (
    COMMENT_EXTENSION,
    Comment,
    FileEntry,
    TalkFile,
    UploadedFile,
    is_comment_path,
)
from talk_drop.models.talk import Talk

__all__ = [
    "COMMENT_EXTENSION",
    "Comment",
    "FileEntry",
    "TalkFile",
    "UploadedFile",
    "is_comment_path",
    "Talk",
]
