"""Tests for schedule sources and the schedule fetcher."""

import asyncio
import json
import logging
from pathlib import Path

import httpx
import pytest

from talk_drop.errors import ScheduleFetchError
from talk_drop.indexers.files import FileIndex
from talk_drop.sources.fetcher import ScheduleFetcher
from talk_drop.sources.schedule import ScheduleDocument, parse_location, version_fragment
from tests.factories import schedule_document, talk_entry

REMOTE_URL = "https://fahrplan.example.org/schedule.json"


class TestParseLocation:
    """Tests for resolving configured schedule locations."""

    @pytest.mark.parametrize("location", [
        "https://fahrplan.events.ccc.de/congress/2023/fahrplan/schedule.json",
        "http://localhost:8080/schedule.json",
    ])
    def test_absolute_urls_are_remote(self, location: str):
        source = parse_location(location)
        assert source.is_remote
        assert source.url == location

    def test_plain_path_is_local(self, tmp_path: Path):
        source = parse_location(str(tmp_path / "schedule.json"))
        assert not source.is_remote
        assert source.path == (tmp_path / "schedule.json").resolve()

    def test_relative_path_is_local(self):
        source = parse_location("schedule.json")
        assert not source.is_remote
        assert source.path.name == "schedule.json"

    def test_file_url_is_local(self, tmp_path: Path):
        source = parse_location(f"file://{tmp_path}/schedule.json")
        assert not source.is_remote
        assert source.path == (tmp_path / "schedule.json").resolve()


class TestScheduleDocument:
    """Tests for the schedule document model."""

    def test_flattens_days_and_rooms_in_feed_order(self):
        doc = {
            "schedule": {
                "version": "1.0",
                "conference": {
                    "acronym": "37c3",
                    "days": [
                        {"index": 0, "rooms": {
                            "Saal 1": [talk_entry("a", "A")],
                            "Saal 2": [talk_entry("b", "B", room="Saal 2")],
                        }},
                        {"index": 1, "rooms": {"Saal 1": [talk_entry("c", "C")]}},
                    ],
                },
            },
        }
        talks = ScheduleDocument.model_validate(doc).talks()
        assert [(t.guid, day) for t, day in talks] == [("a", 0), ("b", 0), ("c", 1)]

    def test_person_falls_back_to_name(self):
        doc = schedule_document([talk_entry("a", "A", persons=[{"name": "Grace"}])])
        raw, _ = ScheduleDocument.model_validate(doc).talks()[0]
        assert raw.persons[0].display_name == "Grace"

    def test_version_fragment(self):
        doc = ScheduleDocument.model_validate(schedule_document([], acronym="37c3", version="1.2"))
        assert version_fragment(doc) == "37c3: 1.2"

    def test_missing_version_logs_and_returns_none(self, caplog):
        doc = ScheduleDocument.model_validate(schedule_document([], version=None))
        with caplog.at_level(logging.WARNING):
            assert version_fragment(doc) is None
        assert "missing version" in caplog.text


class TestScheduleFetcher:
    """Tests for fetching and provisioning."""

    def test_local_schedule_builds_talks(self, files_root, write_schedule, sample_talks):
        path = write_schedule(sample_talks)

        async def run():
            fetcher = ScheduleFetcher([str(path)], files_root, FileIndex(files_root))
            return await fetcher.fetch()

        snapshot = asyncio.run(run())
        assert [t.id for t in snapshot.talks] == ["abc-123", "ghi-789", "def-456"]
        assert snapshot.version == "37c3: 1.0"

        talk = snapshot.talks[0]
        assert talk.title == "The Widget"
        assert talk.sort_title == "widget"
        assert talk.slug == "the-widget"
        assert talk.day == 1
        assert talk.speakers == ["Ada"]
        assert talk.file_path == files_root.resolve() / "abc-123"

    def test_provisions_talk_directories(self, files_root, write_schedule):
        """Directories exist afterwards whether or not they existed before."""
        (files_root / "abc-123").mkdir()
        (files_root / "abc-123" / "keep.txt").write_text("keep")
        path = write_schedule([talk_entry("abc-123", "Existing"), talk_entry("new-1", "New")])

        async def run():
            fetcher = ScheduleFetcher([str(path)], files_root, FileIndex(files_root))
            await fetcher.fetch()

        asyncio.run(run())
        assert (files_root / "abc-123").is_dir()
        assert (files_root / "abc-123" / "keep.txt").read_text() == "keep"
        assert (files_root / "new-1").is_dir()

    def test_blocked_talk_directory_is_a_fetch_error(self, files_root, write_schedule):
        (files_root / "abc-123").write_text("a file where the directory should be")
        path = write_schedule([talk_entry("abc-123", "Blocked")])

        async def run():
            fetcher = ScheduleFetcher([str(path)], files_root, FileIndex(files_root))
            await fetcher.fetch()

        with pytest.raises(ScheduleFetchError, match="cannot create talk directory"):
            asyncio.run(run())

    def test_unexpected_provisioning_error_propagates(self, files_root, write_schedule, monkeypatch):
        path = write_schedule([talk_entry("abc-123", "Widget")])

        def broken_mkdir(self, *args, **kwargs):
            raise RuntimeError("mkdir exploded")

        async def run():
            fetcher = ScheduleFetcher([str(path)], files_root, FileIndex(files_root))
            monkeypatch.setattr(Path, "mkdir", broken_mkdir)
            await fetcher.fetch()

        with pytest.raises(RuntimeError, match="mkdir exploded"):
            asyncio.run(run())

    def test_multiple_sources_concatenate_without_dedup(self, files_root, write_schedule):
        first = write_schedule([talk_entry("a", "Alpha")], name="one.json", acronym="one")
        second = write_schedule(
            [talk_entry("a", "Alpha again"), talk_entry("b", "Beta")],
            name="two.json", acronym="two", version="2.0",
        )

        async def run():
            fetcher = ScheduleFetcher([str(second), str(first)], files_root, FileIndex(files_root))
            return await fetcher.fetch()

        snapshot = asyncio.run(run())
        assert [t.id for t in snapshot.talks] == ["a", "b", "a"]
        assert snapshot.version == "one: 1.0; two: 2.0"

    def test_failing_source_fails_whole_fetch(self, files_root, write_schedule, tmp_path):
        good = write_schedule([talk_entry("a", "Alpha")])
        broken = tmp_path / "broken.json"
        broken.write_text("{not json")

        async def run():
            fetcher = ScheduleFetcher([str(good), str(broken)], files_root, FileIndex(files_root))
            await fetcher.fetch()

        with pytest.raises(ScheduleFetchError) as exc:
            asyncio.run(run())
        assert exc.value.location == str(broken)

    def test_schema_violation_is_a_fetch_error(self, files_root, tmp_path):
        path = tmp_path / "schedule.json"
        path.write_text(json.dumps({"schedule": {"conference": {"days": [{"rooms": {}}]}}}))

        async def run():
            fetcher = ScheduleFetcher([str(path)], files_root, FileIndex(files_root))
            await fetcher.fetch()

        with pytest.raises(ScheduleFetchError, match="unexpected schedule format"):
            asyncio.run(run())

    def test_missing_file_is_a_fetch_error(self, files_root, tmp_path):
        async def run():
            fetcher = ScheduleFetcher(
                [str(tmp_path / "nope.json")], files_root, FileIndex(files_root)
            )
            await fetcher.fetch()

        with pytest.raises(ScheduleFetchError, match="cannot read file"):
            asyncio.run(run())


class TestRemoteSchedule:
    """Tests for remote sources with conditional re-fetching."""

    def test_conditional_refetch_reuses_document(self, files_root):
        body = json.dumps(schedule_document([talk_entry("r-1", "Remote")])).encode()
        requests: list[httpx.Request] = []

        def handler(request: httpx.Request) -> httpx.Response:
            requests.append(request)
            if request.headers.get("If-Modified-Since") == "Wed, 27 Dec 2023 10:00:00 GMT":
                return httpx.Response(304)
            return httpx.Response(
                200, content=body,
                headers={"Last-Modified": "Wed, 27 Dec 2023 10:00:00 GMT"},
            )

        async def run():
            fetcher = ScheduleFetcher(
                [REMOTE_URL], files_root, FileIndex(files_root),
                transport=httpx.MockTransport(handler),
            )
            try:
                first = await fetcher.fetch()
                second = await fetcher.fetch()
            finally:
                await fetcher.aclose()
            return first, second

        first, second = asyncio.run(run())
        assert "If-Modified-Since" not in requests[0].headers
        assert requests[1].headers["If-Modified-Since"] == "Wed, 27 Dec 2023 10:00:00 GMT"
        assert [t.id for t in first.talks] == [t.id for t in second.talks] == ["r-1"]
        assert requests[0].headers["User-Agent"].startswith("talk-drop/")

    def test_http_error_is_a_fetch_error(self, files_root):
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(503)

        async def run():
            fetcher = ScheduleFetcher(
                [REMOTE_URL], files_root, FileIndex(files_root),
                transport=httpx.MockTransport(handler),
            )
            try:
                await fetcher.fetch()
            finally:
                await fetcher.aclose()

        with pytest.raises(ScheduleFetchError, match="HTTP 503"):
            asyncio.run(run())

    def test_unreachable_host_is_a_fetch_error(self, files_root):
        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectError("connection refused", request=request)

        async def run():
            fetcher = ScheduleFetcher(
                [REMOTE_URL], files_root, FileIndex(files_root),
                transport=httpx.MockTransport(handler),
            )
            try:
                await fetcher.fetch()
            finally:
                await fetcher.aclose()

        with pytest.raises(ScheduleFetchError, match="request failed"):
            asyncio.run(run())
