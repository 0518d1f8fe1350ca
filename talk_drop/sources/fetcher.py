"""Fetch schedule sources and turn them into a snapshot of talks.

Every source is fetched concurrently. The snapshot is only returned when all
of them succeeded and every talk directory exists, so callers can install it
in one step or keep what they had.
"""

import asyncio
import json
import logging
from pathlib import Path
from typing import TYPE_CHECKING, Optional

import httpx
from pydantic import ValidationError

from talk_drop import __version__
from talk_drop.errors import ScheduleFetchError
from talk_drop.models.talk import Talk
from talk_drop.sources.schedule import (
    ScheduleDocument,
    ScheduleSnapshot,
    ScheduleSource,
    load_document,
    parse_location,
    version_fragment,
)

if TYPE_CHECKING:
    from talk_drop.indexers.files import FileIndex

logger = logging.getLogger(__name__)

USER_AGENT = f"talk-drop/{__version__}"
REQUEST_TIMEOUT = httpx.Timeout(30.0, connect=10.0)


class ScheduleFetcher:
    """Loads all configured schedule sources into a ``ScheduleSnapshot``."""

    def __init__(
        self,
        locations: list[str],
        root: str | Path,
        files: "FileIndex",
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.sources = [parse_location(loc) for loc in locations]
        self.root = Path(root).resolve()
        self.files = files
        self._transport = transport
        self._client: Optional[httpx.AsyncClient] = None

    @property
    def has_remote_sources(self) -> bool:
        return any(s.is_remote for s in self.sources)

    @property
    def local_paths(self) -> list[Path]:
        return [s.path for s in self.sources if s.path is not None]

    def _get_client(self) -> httpx.AsyncClient:
        """Get or create the shared HTTP client."""
        if self._client is None:
            self._client = httpx.AsyncClient(
                timeout=REQUEST_TIMEOUT,
                follow_redirects=True,
                headers={"User-Agent": USER_AGENT},
                transport=self._transport,
            )
        return self._client

    async def aclose(self) -> None:
        if self._client is not None:
            await self._client.aclose()
            self._client = None

    # ===== PER SOURCE =====

    async def _fetch_remote(self, source: ScheduleSource) -> ScheduleDocument:
        headers = {}
        if source.document is not None and source.last_modified:
            headers["If-Modified-Since"] = source.last_modified

        response = await self._get_client().get(source.url, headers=headers)
        if response.status_code == 304 and source.document is not None:
            logger.info("Schedule %s unchanged", source.location)
            return source.document
        response.raise_for_status()

        document = load_document(response.content)
        source.document = document
        source.last_modified = response.headers.get("Last-Modified")
        logger.info("Schedule %s downloaded", source.location)
        return document

    async def _fetch_local(self, source: ScheduleSource) -> ScheduleDocument:
        data = await asyncio.to_thread(source.path.read_bytes)
        return load_document(data)

    async def fetch_document(self, source: ScheduleSource) -> ScheduleDocument:
        """Fetch and validate one source, wrapping failures in ScheduleFetchError."""
        try:
            if source.is_remote:
                return await self._fetch_remote(source)
            return await self._fetch_local(source)
        except httpx.HTTPStatusError as e:
            raise ScheduleFetchError(
                source.location, f"HTTP {e.response.status_code}", e
            ) from e
        except httpx.HTTPError as e:
            raise ScheduleFetchError(source.location, f"request failed: {e}", e) from e
        except OSError as e:
            raise ScheduleFetchError(source.location, f"cannot read file: {e}", e) from e
        except json.JSONDecodeError as e:
            raise ScheduleFetchError(source.location, f"invalid JSON: {e}", e) from e
        except ValidationError as e:
            raise ScheduleFetchError(
                source.location, f"unexpected schedule format: {e.error_count()} errors", e
            ) from e

    # ===== SNAPSHOT =====

    async def fetch(self) -> ScheduleSnapshot:
        """Fetch every source and build a complete snapshot.

        Raises ScheduleFetchError if any source fails; nothing partial is
        returned.
        """
        results = await asyncio.gather(
            *[self.fetch_document(s) for s in self.sources],
            return_exceptions=True,
        )

        documents: list[ScheduleDocument] = []
        failures: list[ScheduleFetchError] = []
        for source, result in zip(self.sources, results):
            if isinstance(result, ScheduleFetchError):
                logger.warning("Error fetching schedule %s: %s", source.location, result.reason)
                failures.append(result)
            elif isinstance(result, BaseException):
                raise result
            else:
                documents.append(result)
        if failures:
            raise failures[0]

        talks = [
            Talk.from_schedule(raw, day, self.root, self.files)
            for document in documents
            for raw, day in document.talks()
        ]
        fragments = [f for f in (version_fragment(d) for d in documents) if f]

        await self._provision(talks)
        return ScheduleSnapshot(talks=talks, version="; ".join(sorted(fragments)) or None)

    async def _provision(self, talks: list[Talk]) -> None:
        """Make sure every talk has its upload directory."""
        results = await asyncio.gather(
            *[
                asyncio.to_thread(t.file_path.mkdir, parents=True, exist_ok=True)
                for t in talks
            ],
            return_exceptions=True,
        )
        for talk, result in zip(talks, results):
            if isinstance(result, OSError):
                raise ScheduleFetchError(
                    str(talk.file_path), f"cannot create talk directory: {result}", result
                ) from result
            if isinstance(result, BaseException):
                raise result
