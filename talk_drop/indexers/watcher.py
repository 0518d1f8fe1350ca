"""Recursive filesystem watch that keeps a ``FileIndex`` up to date.

watchdog delivers events on its own thread; they are handed to the event loop
through a queue and applied by a single consumer task, so index mutations
happen in delivery order on the loop thread. The consumer backfills the index
with an initial scan first, then sets ``ready`` and applies live events
(including those that arrived during the scan).
"""

import asyncio
import contextlib
import logging
import os
from typing import Callable, Optional

from watchdog.events import (
    EVENT_TYPE_CREATED,
    EVENT_TYPE_DELETED,
    EVENT_TYPE_MODIFIED,
    EVENT_TYPE_MOVED,
    FileSystemEvent,
    FileSystemEventHandler,
)
from watchdog.observers import Observer

from talk_drop.errors import WatcherError
from talk_drop.indexers.files import FileIndex

logger = logging.getLogger(__name__)

IGNORED_NAMES = {".DS_Store"}
HANDLED_EVENTS = {EVENT_TYPE_CREATED, EVENT_TYPE_DELETED, EVENT_TYPE_MODIFIED, EVENT_TYPE_MOVED}

# How often the consumer checks that the observer and root are still alive
HEALTH_CHECK_SECONDS = 5.0

ScanItem = tuple[bool, str, Optional[os.stat_result]]


def exit_process(error: BaseException) -> None:
    """Default reaction to a fatal watch error: terminate with status 1.

    A stale index is worse than a crash; a supervisor restarts the process.
    """
    logging.shutdown()
    os._exit(1)


class _EventBridge(FileSystemEventHandler):
    """Forwards watchdog events from the observer thread to the event loop."""

    def __init__(self, loop: asyncio.AbstractEventLoop, queue: asyncio.Queue):
        super().__init__()
        self._loop = loop
        self._queue = queue

    def on_any_event(self, event: FileSystemEvent) -> None:
        if event.event_type not in HANDLED_EVENTS or self._loop.is_closed():
            return
        self._loop.call_soon_threadsafe(self._queue.put_nowait, event)


def _ignored(path: str) -> bool:
    return os.path.basename(path) in IGNORED_NAMES


def _scan(root: str) -> list[ScanItem]:
    """Walk the tree once. Returns (is_dir, path, stats) in walk order."""
    found: list[ScanItem] = []

    def onerror(error: OSError) -> None:
        if error.filename and os.path.abspath(error.filename) == root:
            raise WatcherError(f"Cannot read files root {root}: {error}") from error
        logger.warning("Skipping unreadable directory during scan: %s", error)

    for dirpath, _dirnames, filenames in os.walk(root, onerror=onerror):
        found.append((True, dirpath, None))
        for name in filenames:
            if name in IGNORED_NAMES:
                continue
            path = os.path.join(dirpath, name)
            try:
                stats = os.stat(path)
            except FileNotFoundError:
                continue
            except OSError as e:
                logger.warning("Skipping unreadable file during scan: %s", e)
                continue
            found.append((False, path, stats))
    return found


async def _stat(path: str) -> Optional[os.stat_result]:
    try:
        return await asyncio.to_thread(os.stat, path)
    except FileNotFoundError:
        # Gone again; its deletion event is still in the queue
        return None
    except OSError as e:
        logger.warning("Cannot stat %s: %s", path, e)
        return None


class FileWatcher:
    """Drives a ``FileIndex`` from recursive filesystem notifications."""

    def __init__(
        self,
        index: FileIndex,
        on_fatal: Optional[Callable[[BaseException], None]] = None,
    ):
        self.index = index
        self.root = index.root
        self.ready = asyncio.Event()
        self._on_fatal = on_fatal or exit_process
        self._observer: Optional[Observer] = None
        self._queue: Optional[asyncio.Queue] = None
        self._task: Optional[asyncio.Task] = None

    async def start(self) -> None:
        """Start watching; ``ready`` is set once the initial scan is applied."""
        loop = asyncio.get_running_loop()
        self._queue = asyncio.Queue()
        self._observer = Observer()
        self._observer.schedule(_EventBridge(loop, self._queue), self.root, recursive=True)
        self._observer.start()
        self._task = loop.create_task(self._run())

    async def stop(self) -> None:
        if self._observer is not None:
            self._observer.stop()
            await asyncio.to_thread(self._observer.join)
            self._observer = None
        if self._task is not None:
            self._task.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await self._task
            self._task = None

    async def _run(self) -> None:
        try:
            for is_dir, path, stats in await asyncio.to_thread(_scan, self.root):
                if is_dir:
                    self.index.on_dir_added(path)
                else:
                    self.index.on_added(path, stats)
            self.index.initial_scan = False
            self.ready.set()
            logger.info("Initial scan complete. Ready for changes")

            while True:
                try:
                    event = await asyncio.wait_for(self._queue.get(), HEALTH_CHECK_SECONDS)
                except asyncio.TimeoutError:
                    self._check_health()
                    continue
                await self._dispatch(event)
        except asyncio.CancelledError:
            raise
        except Exception as e:
            logger.critical("Filesystem watch on %s failed: %s", self.root, e, exc_info=True)
            self._on_fatal(e)

    def _check_health(self) -> None:
        if self._observer is not None and not self._observer.is_alive():
            raise WatcherError("Filesystem observer thread stopped")
        if not os.path.isdir(self.root):
            raise WatcherError(f"Files root {self.root} is no longer accessible")

    async def _dispatch(self, event: FileSystemEvent) -> None:
        src = os.path.abspath(os.fsdecode(event.src_path))
        if _ignored(src):
            return
        kind = event.event_type

        if event.is_directory:
            if kind in (EVENT_TYPE_DELETED, EVENT_TYPE_MOVED) and src == self.root:
                raise WatcherError(f"Files root {self.root} was removed")
            if kind == EVENT_TYPE_CREATED:
                self.index.on_dir_added(src)
            elif kind == EVENT_TYPE_DELETED:
                self.index.on_dir_removed(src)
            elif kind == EVENT_TYPE_MOVED:
                # Children arrive as their own move events
                self.index.on_dir_removed(src)
                self.index.on_dir_added(os.fsdecode(event.dest_path))
            return

        if kind in (EVENT_TYPE_CREATED, EVENT_TYPE_MODIFIED):
            stats = await _stat(src)
            if stats is None:
                return
            if kind == EVENT_TYPE_CREATED:
                self.index.on_added(src, stats)
            else:
                self.index.on_changed(src, stats)
        elif kind == EVENT_TYPE_DELETED:
            self.index.on_removed(src)
        elif kind == EVENT_TYPE_MOVED:
            dest = os.path.abspath(os.fsdecode(event.dest_path))
            stats = await _stat(dest)
            if stats is None or _ignored(dest):
                self.index.on_removed(src)
            else:
                self.index.on_moved(src, dest, stats)
