"""Tests for the CLI commands against a local schedule."""

import json

import pytest
from typer.testing import CliRunner

from talk_drop.cli import app

runner = CliRunner()


@pytest.fixture
def configured(monkeypatch, tmp_path, write_schedule, sample_talks, files_root):
    schedule = write_schedule(sample_talks)
    monkeypatch.chdir(tmp_path)
    monkeypatch.setenv("SCHEDULE_URLS", str(schedule))
    monkeypatch.setenv("FILES_ROOT", str(files_root))
    monkeypatch.setenv("EVENT_NAME", "37C3")
    return files_root


class TestCommands:
    """Tests for the read and write commands."""

    def test_talks_lists_every_talk(self, configured):
        result = runner.invoke(app, ["talks"])
        assert result.exit_code == 0
        assert "3 talks" in result.output
        assert "Apple Pie" in result.output
        assert "37c3: 1.0" in result.output

    def test_comment_then_show(self, configured):
        result = runner.invoke(app, ["comment", "zebra", "looks good"])
        assert result.exit_code == 0
        assert "1 total" in result.output

        result = runner.invoke(app, ["show", "ghi-789"])
        assert result.exit_code == 0
        view = json.loads(result.output)
        assert view["commentCount"] == 1
        assert view["comments"][0]["body"] == "looks good"

    def test_show_unknown_talk(self, configured):
        result = runner.invoke(app, ["show", "nope"])
        assert result.exit_code == 1

    def test_orphans(self, configured):
        (configured / "left-over").mkdir()
        result = runner.invoke(app, ["orphans"])
        assert result.exit_code == 0
        assert "left-over" in result.output


def test_missing_configuration(monkeypatch, tmp_path):
    monkeypatch.delenv("SCHEDULE_URLS", raising=False)
    monkeypatch.chdir(tmp_path)
    result = runner.invoke(app, ["talks"])
    assert result.exit_code == 1
    assert "SCHEDULE_URLS" in result.output
