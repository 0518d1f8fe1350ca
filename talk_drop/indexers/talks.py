"""The current collection of talks and its derived views."""

import asyncio
import logging
from typing import Awaitable, Callable, Optional

from talk_drop.models.talk import Talk
from talk_drop.sources.schedule import ScheduleSnapshot

logger = logging.getLogger(__name__)


async def _always_ready() -> None:
    return None


class TalkIndex:
    """Talks from the last successful refresh.

    Reads wait on two gates: the schedule (the latest refresh has settled)
    and the filesystem (the initial scan is done). Installing a snapshot
    replaces every view at once; talks handed out earlier stay coherent.
    """

    def __init__(
        self,
        files_ready: Optional[asyncio.Event] = None,
        schedule_ready: Optional[Callable[[], Awaitable[None]]] = None,
    ):
        self._files_ready = files_ready
        self._schedule_ready = schedule_ready or _always_ready
        self._talks: list[Talk] = []
        self._sorted: list[Talk] = []
        self._by_id: dict[str, Talk] = {}
        self._version: Optional[str] = None

    def install(self, snapshot: ScheduleSnapshot) -> None:
        """Swap in a complete snapshot."""
        talks = list(snapshot.talks)
        by_id = {t.id: t for t in talks}
        ordered = sorted(talks, key=lambda t: t.sort_title)

        self._talks = talks
        self._sorted = ordered
        self._by_id = by_id
        self._version = snapshot.version
        logger.info("Done updating talks (%d talks)", len(talks))

    async def wait_ready(self) -> None:
        if self._files_ready is not None:
            await asyncio.gather(self._schedule_ready(), self._files_ready.wait())
        else:
            await self._schedule_ready()

    async def all(self) -> list[Talk]:
        await self.wait_ready()
        return self._talks

    async def all_sorted(self) -> list[Talk]:
        """Talks by sort title; equal keys keep feed order."""
        await self.wait_ready()
        return self._sorted

    async def find_by_id(self, talk_id: str) -> Optional[Talk]:
        await self.wait_ready()
        return self._by_id.get(talk_id)

    async def find_by_slug(self, slug: str) -> Optional[Talk]:
        """First talk with this slug; slugs may repeat across feeds."""
        await self.wait_ready()
        return next((t for t in self._talks if t.slug == slug), None)

    def schedule_version(self) -> Optional[str]:
        return self._version
