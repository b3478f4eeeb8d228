"""Tests for the CLI commands."""

import json
import logging
from pathlib import Path

import pytest
from click.testing import CliRunner

from vibe_profiler.cli import _ExtraFormatter, main


@pytest.fixture
def runner():
    return CliRunner()


@pytest.fixture
def profiles_file(tmp_path):
    profiles = [
        {
            "user_id": f"p-{i}",
            "total_commits": 60 + i * 10,
            "total_repos": 2,
            "persona_id": "spec_first_director",
            "persona_confidence": "medium",
            "axes_json": {"planning_signal": {"score": 77}},
            "ai_tools_json": None,
        }
        for i in range(4)
    ]
    path = tmp_path / "profiles.json"
    path.write_text(json.dumps({"profiles": profiles}))
    return path


class TestRollupCommand:
    def test_json_format(self, runner, snapshots_file):
        result = runner.invoke(main, ["rollup", str(snapshots_file), "--format", "json"])
        assert result.exit_code == 0
        data = json.loads(result.output)
        assert data["suppressed"] is False
        assert data["eligible_profiles"] == 12
        assert data["eligible_repos"] == 48
        assert data["total_analyzed_commits"] == 12 * 120
        assert data["personas"] == []
        assert data["ai_tools"] is None

    def test_thresholds_from_options(self, runner, snapshots_file):
        result = runner.invoke(
            main,
            ["rollup", str(snapshots_file), "--format", "json", "--bucket-threshold", "12", "--window", "7d"],
        )
        assert result.exit_code == 0
        data = json.loads(result.output)
        assert data["personas"] == [{"id": "prompt_sprinter", "name": "Vibe Prototyper", "pct": 100.0}]
        assert data["ai_tools"]["eligible_profiles_with_data"] == 12
        assert data["meta"]["window"] == "7d"

    def test_global_threshold_suppresses(self, runner, snapshots_file):
        result = runner.invoke(main, ["rollup", str(snapshots_file), "--format", "json", "--global-threshold", "13"])
        assert result.exit_code == 0
        assert json.loads(result.output) == {
            "suppressed": True,
            "reason": "insufficient_data",
            "eligible_profiles": 12,
            "threshold": 13,
        }

    def test_min_commits_option(self, runner, snapshots_file):
        result = runner.invoke(main, ["rollup", str(snapshots_file), "--format", "json", "--min-commits", "40"])
        assert json.loads(result.output)["eligible_profiles"] == 13

    def test_threshold_from_environment(self, runner, snapshots_file):
        result = runner.invoke(
            main,
            ["rollup", str(snapshots_file), "--format", "json"],
            env={"VIBE_PROFILER_GLOBAL_THRESHOLD": "20"},
        )
        assert result.exit_code == 0
        assert json.loads(result.output)["threshold"] == 20

    def test_invalid_environment_value(self, runner, snapshots_file):
        result = runner.invoke(
            main,
            ["rollup", str(snapshots_file)],
            env={"VIBE_PROFILER_BUCKET_THRESHOLD": "lots"},
        )
        assert result.exit_code == 1
        assert "Error" in result.output

    def test_json_to_file(self, runner, snapshots_file, tmp_path):
        output = tmp_path / "stats.json"
        result = runner.invoke(main, ["rollup", str(snapshots_file), "--format", "json", "-o", str(output)])
        assert result.exit_code == 0
        assert json.loads(output.read_text())["eligible_profiles"] == 12

    def test_terminal_format(self, runner, snapshots_file):
        result = runner.invoke(main, ["rollup", str(snapshots_file)])
        assert result.exit_code == 0
        assert "Community Insights" in result.output

    def test_html_format_writes_file(self, runner, snapshots_file, tmp_path):
        output = tmp_path / "community.html"
        result = runner.invoke(main, ["rollup", str(snapshots_file), "--format", "html", "--output", str(output)])
        assert result.exit_code == 0
        assert "<html" in output.read_text()

    def test_html_default_output_filename(self, runner, snapshots_file):
        with runner.isolated_filesystem():
            result = runner.invoke(main, ["rollup", str(snapshots_file), "--format", "html"])
            assert result.exit_code == 0
            assert Path("community-report.html").exists()

    def test_malformed_snapshot_file(self, runner, tmp_path):
        path = tmp_path / "bad.json"
        path.write_text(json.dumps([{"user_id": "x", "total_commits": 100}]))
        result = runner.invoke(main, ["rollup", str(path)])
        assert result.exit_code == 1
        assert "Error" in result.output

    def test_nonexistent_path(self, runner):
        result = runner.invoke(main, ["rollup", "/nonexistent/snapshots.json"])
        assert result.exit_code != 0

    def test_store_option_persists(self, runner, snapshots_file, tmp_path):
        store = tmp_path / "rollups.json"
        result = runner.invoke(main, ["rollup", str(snapshots_file), "--format", "json", "--store", str(store)])
        assert result.exit_code == 0
        records = json.loads(store.read_text())
        assert len(records) == 1
        assert records[0]["payload_json"] == json.loads(result.output)


class TestStatsCommand:
    def test_no_data_yet(self, runner, tmp_path):
        result = runner.invoke(main, ["stats", "--store", str(tmp_path / "rollups.json")])
        assert result.exit_code == 0
        assert json.loads(result.output)["reason"] == "no_data_yet"

    def test_reads_stored_rollup(self, runner, snapshots_file, tmp_path):
        store = tmp_path / "rollups.json"
        runner.invoke(main, ["rollup", str(snapshots_file), "--format", "json", "--store", str(store)])
        result = runner.invoke(main, ["stats", "--store", str(store)])
        assert result.exit_code == 0
        assert json.loads(result.output)["eligible_profiles"] == 12

    def test_headers(self, runner, tmp_path):
        result = runner.invoke(main, ["stats", "--store", str(tmp_path / "rollups.json"), "--headers"])
        first_line, _, body = result.output.partition("\n\n")
        assert first_line == "Cache-Control: public, s-maxage=60, stale-while-revalidate=300"
        assert json.loads(body)["suppressed"] is True

    def test_corrupt_store(self, runner, tmp_path):
        store = tmp_path / "rollups.json"
        store.write_text("not json")
        result = runner.invoke(main, ["stats", "--store", str(store)])
        assert result.exit_code == 1
        assert "Error" in result.output

    def test_store_with_non_object_records(self, runner, tmp_path):
        store = tmp_path / "rollups.json"
        store.write_text(json.dumps([1, "x"]))
        result = runner.invoke(main, ["stats", "--store", str(store)])
        assert result.exit_code == 1
        assert "Error" in result.output


class TestBackfillCommand:
    def test_outputs_rows(self, runner, profiles_file):
        result = runner.invoke(main, ["backfill", str(profiles_file)])
        assert result.exit_code == 0
        rows = json.loads(result.output)
        assert [row["is_eligible"] for row in rows] == [False, False, True, True]
        assert rows[0]["planning_signal"] == 77
        assert rows[0]["ai_tools_detected"] is None

    def test_writes_file(self, runner, profiles_file, tmp_path):
        output = tmp_path / "snapshots.json"
        result = runner.invoke(main, ["backfill", str(profiles_file), "-o", str(output)])
        assert result.exit_code == 0
        assert len(json.loads(output.read_text())) == 4
        assert "2 eligible" in result.output

    def test_malformed_nested_profile_fields(self, runner, tmp_path):
        path = tmp_path / "profiles.json"
        path.write_text(json.dumps([{"user_id": "p-1", "total_commits": 90, "total_repos": 1, "axes_json": [1]}]))
        result = runner.invoke(main, ["backfill", str(path)])
        assert result.exit_code == 1
        assert "axes_json must be an object" in result.output

    def test_backfilled_rows_feed_rollup(self, runner, profiles_file, tmp_path):
        output = tmp_path / "snapshots.json"
        runner.invoke(main, ["backfill", str(profiles_file), "-o", str(output)])
        result = runner.invoke(main, ["rollup", str(output), "--format", "json"])
        assert json.loads(result.output)["eligible_profiles"] == 2


class TestVersionCommand:
    def test_version_command(self, runner):
        result = runner.invoke(main, ["version"])
        assert result.exit_code == 0
        assert "vibe-profiler" in result.output

    def test_version_option(self, runner):
        result = runner.invoke(main, ["--version"])
        assert result.exit_code == 0
        assert "0.1.0" in result.output

    def test_verbose_flag(self, runner):
        result = runner.invoke(main, ["--verbose", "version"])
        assert result.exit_code == 0


class TestLogFormatting:
    def _record(self, **extra):
        record = logging.LogRecord("vibe_profiler.rollup", logging.INFO, __file__, 1, "AI_TOOLS_SUPPRESSED", (), None)
        record.__dict__.update(extra)
        return record

    def test_extras_are_rendered(self):
        formatter = _ExtraFormatter("%(message)s")
        line = formatter.format(self._record(group_size=3, k_threshold=25))
        assert line == "AI_TOOLS_SUPPRESSED group_size=3 k_threshold=25"

    def test_plain_record(self):
        assert _ExtraFormatter("%(message)s").format(self._record()) == "AI_TOOLS_SUPPRESSED"
