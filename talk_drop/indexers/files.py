"""In-memory index of every file and directory below the files root.

Mutations arrive from the filesystem watcher (in delivery order) and from
direct writes made through ``Talk``. Each mutation bumps ``last_updated`` so
talks can tell when their cached file lists are stale.

Hashes are computed out of band. A slow hash of an old version must never
overwrite the entry of a newer version, so every hash is tagged with the stat
result it was started for and only applied while that same object is still
stored in the entry.
"""

import asyncio
import logging
import os
from pathlib import Path
from types import MappingProxyType
from typing import Callable, Mapping, Optional

from talk_drop.hashing import hash_file
from talk_drop.models.files import FileEntry, is_comment_path

logger = logging.getLogger(__name__)


def _normalize(path: str | Path) -> str:
    return os.path.abspath(path)


class FileIndex:
    """Maps absolute paths to ``FileEntry`` records."""

    def __init__(self, root: str | Path, hasher: Callable[[str], str] = hash_file):
        self.root = _normalize(root)
        self._entries: dict[str, FileEntry] = {}
        self._hasher = hasher
        self._hash_tasks: set[asyncio.Task] = set()
        # Generation counter; only ever increases
        self.last_updated = 0
        # Changes found while backfilling are logged at debug level
        self.initial_scan = True

    @property
    def entries(self) -> Mapping[str, FileEntry]:
        """Read-only view of all entries."""
        return MappingProxyType(self._entries)

    def get(self, path: str | Path) -> Optional[FileEntry]:
        return self._entries.get(_normalize(path))

    def __contains__(self, path: object) -> bool:
        return isinstance(path, (str, Path)) and _normalize(path) in self._entries

    def __len__(self) -> int:
        return len(self._entries)

    def _touch(self) -> None:
        self.last_updated += 1

    def _log_change(self, message: str, path: str) -> None:
        level = logging.DEBUG if self.initial_scan else logging.INFO
        logger.log(level, message, path)

    # ===== MUTATIONS =====

    def on_added(self, path: str | Path, stats: os.stat_result) -> None:
        """Record a new or rewritten file and start hashing it."""
        p = _normalize(path)
        self._log_change("Added file %s", p)
        self._entries[p] = FileEntry(
            is_dir=False,
            is_comment=is_comment_path(p),
            stats=stats,
            hash=None,
        )
        self._touch()
        self._schedule_hash(p, stats)

    def on_changed(self, path: str | Path, stats: os.stat_result) -> None:
        self.on_added(path, stats)

    def on_removed(self, path: str | Path) -> None:
        p = _normalize(path)
        self._log_change("Removed file %s", p)
        self._entries.pop(p, None)
        self._touch()

    def on_dir_added(self, path: str | Path) -> None:
        p = _normalize(path)
        self._log_change("Added directory %s", p)
        self._entries[p] = FileEntry(is_dir=True)
        self._touch()

    def on_dir_removed(self, path: str | Path) -> None:
        """Drop a directory and anything still recorded beneath it."""
        p = _normalize(path)
        self._log_change("Removed directory %s", p)
        self._entries.pop(p, None)
        for child in [c for c in self._entries if _is_below(c, p)]:
            del self._entries[child]
        self._touch()

    def on_moved(self, src: str | Path, dest: str | Path, stats: os.stat_result) -> None:
        self.on_removed(src)
        self.on_added(dest, stats)

    # ===== HASHING =====

    def _schedule_hash(self, path: str, stats: os.stat_result) -> None:
        task = asyncio.get_running_loop().create_task(self._hash(path, stats))
        self._hash_tasks.add(task)
        task.add_done_callback(self._hash_tasks.discard)

    async def _hash(self, path: str, stats: os.stat_result) -> None:
        try:
            digest = await asyncio.to_thread(self._hasher, path)
        except OSError as e:
            logger.warning("Error computing hash for file %s: %s", path, e)
            return

        entry = self._entries.get(path)
        # Deleted in the meantime
        if entry is None:
            return
        # Overwritten by a newer version; this hash belongs to the old one
        if entry.stats is not stats:
            return
        entry.hash = digest

    async def wait_for_hashes(self) -> None:
        """Wait until every hash started so far has settled."""
        while self._hash_tasks:
            await asyncio.gather(*list(self._hash_tasks), return_exceptions=True)

    # ===== QUERIES =====

    def entries_under(self, directory: str | Path) -> list[tuple[str, FileEntry]]:
        """Entries strictly below ``directory``, matched on whole path segments."""
        d = _normalize(directory)
        return [(p, e) for p, e in self._entries.items() if _is_below(p, d)]


def _is_below(path: str, directory: str) -> bool:
    # "/files/1" must not claim "/files/10/slides.pdf"
    return path.startswith(directory.rstrip(os.sep) + os.sep)
