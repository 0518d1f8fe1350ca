"""The talk index engine: schedule, filesystem watch and talks in one place.

Each ``TalkDrop`` instance owns its own indexes and watchers, so several can
run side by side (as the tests do).
"""

import asyncio
import logging
import os
from pathlib import Path
from typing import Callable, Optional

import httpx

from talk_drop.config import Settings
from talk_drop.indexers.files import FileIndex
from talk_drop.indexers.talks import TalkIndex
from talk_drop.indexers.watcher import FileWatcher
from talk_drop.models.talk import Talk
from talk_drop.sources.fetcher import ScheduleFetcher
from talk_drop.sources.refresh import DEFAULT_INTERVAL_SECONDS, RefreshScheduler

logger = logging.getLogger(__name__)


class TalkDrop:
    """Keeps the talk index consistent with the schedule feed and the disk."""

    def __init__(
        self,
        schedule_urls: list[str],
        files_root: str | Path,
        update_interval: float = DEFAULT_INTERVAL_SECONDS,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        on_fatal: Optional[Callable[[BaseException], None]] = None,
    ):
        self.root = Path(files_root).resolve()
        self.files = FileIndex(self.root)
        self.watcher = FileWatcher(self.files, on_fatal=on_fatal)
        self.fetcher = ScheduleFetcher(schedule_urls, self.root, self.files, transport=transport)
        self.talks = TalkIndex(
            files_ready=self.watcher.ready,
            schedule_ready=lambda: self.scheduler.wait_settled(),
        )
        self.scheduler = RefreshScheduler(
            self.fetcher, self.talks, self.watcher.ready, interval=update_interval
        )

    @classmethod
    def from_settings(cls, settings: Settings, **kwargs) -> "TalkDrop":
        return cls(
            settings.schedule_urls,
            settings.files_root,
            update_interval=settings.update_interval_seconds,
            **kwargs,
        )

    async def start(self) -> None:
        """Start the file watch and the first schedule fetch side by side."""
        await asyncio.to_thread(self.root.mkdir, parents=True, exist_ok=True)
        self.scheduler.request_refresh("Loading schedule", wait_for_files=False)
        await self.watcher.start()
        self.scheduler.start(self.fetcher.local_paths)

    async def stop(self) -> None:
        await self.scheduler.stop()
        await self.watcher.stop()
        await self.files.wait_for_hashes()
        await self.fetcher.aclose()

    async def __aenter__(self) -> "TalkDrop":
        await self.start()
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.stop()

    # ===== READ API =====

    async def wait_ready(self) -> None:
        await self.talks.wait_ready()

    async def all(self) -> list[Talk]:
        return await self.talks.all()

    async def all_sorted(self) -> list[Talk]:
        return await self.talks.all_sorted()

    async def find_by_id(self, talk_id: str) -> Optional[Talk]:
        return await self.talks.find_by_id(talk_id)

    async def find_by_slug(self, slug: str) -> Optional[Talk]:
        return await self.talks.find_by_slug(slug)

    def schedule_version(self) -> Optional[str]:
        return self.talks.schedule_version()

    async def orphaned_directories(self) -> list[str]:
        """Top-level directories under the root that belong to no talk.

        Hidden directories (such as an upload staging area) are skipped.
        """
        talks = await self.all()
        claimed = {str(t.file_path) for t in talks}
        orphans = []
        for path, entry in self.files.entries_under(self.root):
            if not entry.is_dir or os.path.dirname(path) != str(self.root):
                continue
            if os.path.basename(path).startswith("."):
                continue
            if path not in claimed:
                orphans.append(path)
        return sorted(orphans)
