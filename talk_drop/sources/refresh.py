"""Decides when the schedule is fetched again.

Refreshes run one at a time. A request made while a refresh is running is
queued behind it; further requests made while one is already queued join the
queued one instead of piling up.
"""

import asyncio
import contextlib
import logging
import os
from pathlib import Path
from typing import Optional

from watchdog.events import (
    EVENT_TYPE_CREATED,
    EVENT_TYPE_MODIFIED,
    EVENT_TYPE_MOVED,
    FileSystemEvent,
    FileSystemEventHandler,
)
from watchdog.observers import Observer

from talk_drop.errors import ScheduleFetchError
from talk_drop.indexers.talks import TalkIndex
from talk_drop.sources.fetcher import ScheduleFetcher

logger = logging.getLogger(__name__)

DEFAULT_INTERVAL_SECONDS = 5 * 60
SCHEDULE_EVENTS = {EVENT_TYPE_CREATED, EVENT_TYPE_MODIFIED, EVENT_TYPE_MOVED}


class _ScheduleFileHandler(FileSystemEventHandler):
    """Requests a refresh when one of the watched schedule files changes."""

    def __init__(self, loop: asyncio.AbstractEventLoop, scheduler: "RefreshScheduler", paths: set[str]):
        super().__init__()
        self._loop = loop
        self._scheduler = scheduler
        self._paths = paths

    def on_any_event(self, event: FileSystemEvent) -> None:
        if event.is_directory or event.event_type not in SCHEDULE_EVENTS:
            return
        path = os.fsdecode(getattr(event, "dest_path", "") or event.src_path)
        if os.path.abspath(path) not in self._paths or self._loop.is_closed():
            return
        self._loop.call_soon_threadsafe(self._scheduler.request_refresh, "Schedule changed")


class RefreshScheduler:
    """Serialises schedule refreshes and installs their results."""

    def __init__(
        self,
        fetcher: ScheduleFetcher,
        index: TalkIndex,
        files_ready: asyncio.Event,
        interval: float = DEFAULT_INTERVAL_SECONDS,
    ):
        self.fetcher = fetcher
        self.index = index
        self.files_ready = files_ready
        self.interval = interval
        # Set once the first refresh attempt has settled, successful or not
        self.first_refresh = asyncio.Event()
        self._lock = asyncio.Lock()
        self._queued: Optional[asyncio.Task] = None
        self._tasks: set[asyncio.Task] = set()
        self._idle = asyncio.Event()
        self._idle.set()
        self._observer: Optional[Observer] = None
        self._interval_task: Optional[asyncio.Task] = None

    # ===== REFRESHING =====

    def request_refresh(self, reason: str, wait_for_files: bool = True) -> asyncio.Task:
        """Queue a refresh and return the task that will perform it."""
        if self._queued is not None:
            return self._queued

        logger.info("%s; updating", reason)
        task = asyncio.get_running_loop().create_task(self._run(wait_for_files))
        self._queued = task
        self._tasks.add(task)
        self._idle.clear()
        task.add_done_callback(self._on_done)
        return task

    async def refresh(self, reason: str = "Refresh requested", wait_for_files: bool = True) -> bool:
        """Request a refresh and wait for it. Returns True if it was installed."""
        return await self.request_refresh(reason, wait_for_files)

    def _on_done(self, task: asyncio.Task) -> None:
        if self._queued is task:
            self._queued = None
        self._tasks.discard(task)
        if not self._tasks:
            self._idle.set()

    async def _run(self, wait_for_files: bool) -> bool:
        async with self._lock:
            # From here on new requests queue behind this one
            self._queued = None
            try:
                if wait_for_files:
                    await self.files_ready.wait()
                snapshot = await self.fetcher.fetch()
                self.index.install(snapshot)
                return True
            except ScheduleFetchError as e:
                logger.warning("Error while trying to update schedule: %s", e)
                return False
            except Exception:
                logger.exception("Unexpected error while trying to update schedule")
                return False
            finally:
                self.first_refresh.set()

    async def wait_settled(self) -> None:
        """Wait for the first refresh, then for any running or queued one."""
        await self.first_refresh.wait()
        while not self._idle.is_set():
            await self._idle.wait()

    # ===== TRIGGERS =====

    def start(self, local_paths: list[Path]) -> None:
        """Watch local schedule files and, for remote feeds, poll on an interval."""
        loop = asyncio.get_running_loop()

        if local_paths:
            paths = {os.path.abspath(p) for p in local_paths}
            handler = _ScheduleFileHandler(loop, self, paths)
            self._observer = Observer()
            for directory in sorted({os.path.dirname(p) for p in paths}):
                if not os.path.isdir(directory):
                    logger.warning("Schedule directory %s does not exist; not watching it", directory)
                    continue
                self._observer.schedule(handler, directory, recursive=False)
            self._observer.start()

        if self.fetcher.has_remote_sources:
            logger.info(
                "Remote schedule URLs detected; will update every %d seconds", self.interval
            )
            self._interval_task = loop.create_task(self._interval_loop())

    async def _interval_loop(self) -> None:
        while True:
            await asyncio.sleep(self.interval)
            await self.request_refresh("Updating schedule on interval")

    async def stop(self) -> None:
        if self._observer is not None:
            self._observer.stop()
            await asyncio.to_thread(self._observer.join)
            self._observer = None
        if self._interval_task is not None:
            self._interval_task.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await self._interval_task
            self._interval_task = None
        for task in list(self._tasks):
            task.cancel()
        if self._tasks:
            await asyncio.gather(*self._tasks, return_exceptions=True)
