"""Tests for the tablepull CLI."""

import json

import pytest
from typer.testing import CliRunner

from tablepull import __version__
from tablepull.cli.app import app

runner = CliRunner()


class TestRoot:
    def test_version(self):
        result = runner.invoke(app, ["--version"])
        assert result.exit_code == 0
        assert __version__ in result.stdout

    def test_no_args_shows_help(self):
        result = runner.invoke(app, [])
        assert "pull" in result.output


class TestWorkers:
    def test_with_cores(self):
        result = runner.invoke(app, ["workers", "--cores", "8", "--max-workers", "8"])
        assert result.exit_code == 0
        assert "6 workers" in result.stdout

    def test_bad_ceiling(self):
        result = runner.invoke(app, ["workers", "--cores", "8", "--max-workers", "1"])
        assert result.exit_code == 2

    def test_zero_ceiling_is_not_treated_as_unset(self):
        result = runner.invoke(app, ["workers", "--cores", "8", "--max-workers", "0"])
        assert result.exit_code == 2


class TestPull:
    def test_partitioned_json(self, sqlite_url, tmp_path):
        result = runner.invoke(
            app,
            [
                "pull", "LLDS_HDR",
                "--schema", "main",
                "--partition-column", "LANDYR",
                "--workers", "2",
                "--url", sqlite_url,
                "--output-dir", str(tmp_path / "out"),
                "--json",
            ],
        )
        assert result.exit_code == 0, result.output
        (summary,) = json.loads(result.stdout)
        assert summary["table"] == "LLDS_HDR"
        assert summary["rows"] == 11
        assert summary["shards_total"] == 2
        assert (tmp_path / "out" / "LLDS_HDR.csv").exists()

    def test_sequential_keys(self, sqlite_url):
        result = runner.invoke(
            app,
            [
                "pull", "LLDS_HDR",
                "--schema", "main",
                "--partition-column", "LANDYR",
                "--key", "2021",
                "--key", "2022",
                "--sequential",
                "--url", sqlite_url,
                "--json",
            ],
        )
        assert result.exit_code == 0, result.output
        (summary,) = json.loads(result.stdout)
        assert summary["rows"] == 7
        assert summary["artifact"] is None

    def test_table_output(self, sqlite_url):
        result = runner.invoke(app, ["pull", "LLDS_HDR", "--schema", "main", "--url", sqlite_url])
        assert result.exit_code == 0, result.output
        assert "LLDS_HDR" in result.stdout

    def test_failed_job_exit_code(self, sqlite_url):
        result = runner.invoke(app, ["pull", "NO_SUCH", "--schema", "main", "--url", sqlite_url, "--json"])
        assert result.exit_code == 1
        (summary,) = json.loads(result.stdout)
        assert summary["error"]

    def test_invalid_table_name(self, sqlite_url):
        result = runner.invoke(app, ["pull", "bad name", "--url", sqlite_url])
        assert result.exit_code == 2

    @pytest.mark.parametrize("ceiling", ["1", "0"])
    def test_bad_ceiling_is_configuration_error(self, sqlite_url, ceiling):
        result = runner.invoke(
            app,
            ["pull", "LLDS_HDR", "--schema", "main", "--partition-column", "LANDYR", "--url", sqlite_url,
             "--max-workers", ceiling],
        )
        assert result.exit_code == 2

    def test_duplicate_keys_is_configuration_error(self, sqlite_url):
        result = runner.invoke(
            app,
            ["pull", "LLDS_HDR", "--schema", "main", "-p", "LANDYR", "-k", "2021", "-k", "2021", "--url", sqlite_url],
        )
        assert result.exit_code == 2

    def test_bad_ceiling_in_environment(self, sqlite_url, monkeypatch):
        monkeypatch.setenv("TABLEPULL_MAX_WORKERS", "1")
        result = runner.invoke(app, ["pull", "LLDS_HDR", "--schema", "main", "--url", sqlite_url])
        assert result.exit_code == 2


class TestRun:
    @pytest.fixture
    def job_file(self, tmp_path):
        path = tmp_path / "jobs.yaml"
        path.write_text(
            "schema: main\n"
            "jobs:\n"
            "  - table: LLDS_HDR\n"
            "    partition_column: LANDYR\n"
            "  - table: LDS_TRIPS_V\n",
            encoding="utf-8",
        )
        return path

    def test_runs_file(self, job_file, sqlite_url, tmp_path):
        out = tmp_path / "out"
        result = runner.invoke(
            app,
            ["run", str(job_file), "--url", sqlite_url, "--workers", "2", "--output-dir", str(out), "--json"],
        )
        assert result.exit_code == 0, result.output
        summaries = {s["table"]: s for s in json.loads(result.stdout)}
        assert summaries["LLDS_HDR"]["rows"] == 11
        assert summaries["LDS_TRIPS_V"]["rows"] == 4
        assert sorted(p.name for p in out.iterdir()) == ["LDS_TRIPS_V.csv", "LLDS_HDR.csv"]

    def test_invalid_file(self, tmp_path, sqlite_url):
        path = tmp_path / "bad.yaml"
        path.write_text("jobs: []\n", encoding="utf-8")
        result = runner.invoke(app, ["run", str(path), "--url", sqlite_url])
        assert result.exit_code == 2
