"""Tests for the command line entry point."""

import json
from unittest.mock import patch

import duckdb
import pytest

from metadata_graph.cli import EXIT_FAILURE, EXIT_INVALID_INPUT, EXIT_OK, build_parser, main


@pytest.fixture(autouse=True)
def keep_test_logging():
    with patch("metadata_graph.cli.configure_logging"):
        yield


@pytest.fixture
def duckdb_source(tmp_path):
    """Source definition file pointing at a one-table DuckDB file."""
    database = tmp_path / "app.duckdb"
    conn = duckdb.connect(str(database))
    conn.execute("CREATE TABLE accounts (id INTEGER NOT NULL, name VARCHAR)")
    conn.execute("INSERT INTO accounts VALUES (1, 'Ann'), (2, NULL)")
    conn.close()

    definition = tmp_path / "source.json"
    definition.write_text(
        json.dumps({"id": "app", "kind": "duckdb", "connection": {"file_path": str(database)}})
    )
    return str(definition)


def write_json(tmp_path, payload) -> str:
    path = tmp_path / "source.json"
    path.write_text(payload if isinstance(payload, str) else json.dumps(payload))
    return str(path)


class TestParser:
    """Tests for argument parsing."""

    def test_crawl_defaults(self):
        args = build_parser().parse_args(["crawl", "s.json"])
        assert args.command == "crawl"
        assert args.dry_run is False
        assert args.sample_size is None
        assert args.graph_url is None

    def test_command_required(self):
        with pytest.raises(SystemExit):
            build_parser().parse_args([])


class TestCrawlCommand:
    """Tests for the crawl command."""

    def test_dry_run(self, duckdb_source, capsys):
        assert main(["crawl", duckdb_source, "--dry-run"]) == EXIT_OK

        output = json.loads(capsys.readouterr().out)
        assert output["source_id"] == "app"
        assert output["kind"] == "embedded-analytical"
        assert output["connected"] is True
        assert output["tables"] == 1
        assert output["graph"] is None

    def test_materializes(self, duckdb_source, tmp_path, capsys):
        graph_url = f"sqlite:///{tmp_path / 'graph.db'}"

        assert main(["crawl", duckdb_source, "--graph-url", graph_url, "--sample-size", "10"]) == EXIT_OK

        output = json.loads(capsys.readouterr().out)
        assert output["graph"]["nodes"] == 4
        assert output["graph"]["edges"] == 3

    def test_unreachable_source(self, tmp_path, capsys):
        path = write_json(
            tmp_path,
            {"id": "gone", "kind": "duckdb", "connection": {"file_path": str(tmp_path / "none.duckdb")}},
        )

        assert main(["crawl", path, "--dry-run"]) == EXIT_FAILURE
        assert json.loads(capsys.readouterr().out)["connected"] is False

    @pytest.mark.parametrize(
        "payload",
        [
            "{not json",
            {"id": "x", "kind": "oracle"},
            {"id": "x", "kind": "postgres", "connection": {"host": "db"}},
        ],
    )
    def test_invalid_input(self, tmp_path, payload):
        assert main(["crawl", write_json(tmp_path, payload), "--dry-run"]) == EXIT_INVALID_INPUT

    def test_missing_file(self, tmp_path):
        assert main(["crawl", str(tmp_path / "nope.json")]) == EXIT_INVALID_INPUT

    def test_non_positive_sample_size(self, duckdb_source):
        assert main(["crawl", duckdb_source, "--sample-size", "0"]) == EXIT_INVALID_INPUT


class TestCheckCommand:
    """Tests for the check command."""

    def test_connected(self, duckdb_source, capsys):
        assert main(["check", duckdb_source]) == EXIT_OK
        assert json.loads(capsys.readouterr().out)["status"] == "connected"

    def test_unreachable(self, tmp_path, capsys):
        path = write_json(
            tmp_path,
            {"id": "gone", "kind": "duckdb", "connection": {"file_path": str(tmp_path / "none.duckdb")}},
        )
        assert main(["check", path]) == EXIT_FAILURE
        assert json.loads(capsys.readouterr().out)["status"] == "error"


class TestLoggingOptions:
    """Tests for the logging flags."""

    def test_log_file_passed_through(self, duckdb_source, tmp_path, monkeypatch):
        monkeypatch.delenv("METADATA_GRAPH_LOG_LEVEL", raising=False)
        log_file = str(tmp_path / "crawl.log")

        with patch("metadata_graph.cli.configure_logging") as configure:
            assert main(["--log-file", log_file, "check", duckdb_source]) == EXIT_OK

        configure.assert_called_once_with(level="INFO", json_format=False, log_file=log_file)
