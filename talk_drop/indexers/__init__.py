"""In-memory indexes over talks and files."""

from talk_drop.indexers.files import FileIndex
from talk_drop.indexers.talks import TalkIndex
from talk_drop.indexers.watcher import FileWatcher

__all__ = ["FileIndex", "FileWatcher", "TalkIndex"]
