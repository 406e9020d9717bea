import json
from pathlib import Path

import pytest
from click.testing import CliRunner

from dbbench.cli import cli
from dbbench.config import Config


@pytest.fixture
def runner(monkeypatch) -> CliRunner:
    monkeypatch.setattr(Config, "SQLITE_PATH", ":memory:")
    monkeypatch.setattr(Config, "DATA_SIZE", "S")
    return CliRunner()


class TestRunCommand:

    def test_writes_every_report(self, runner: CliRunner, tmp_path: Path) -> None:
        result = runner.invoke(
            cli, ["run", "-s", "raw", "-c", "findUserById", "-w", "1", "-n", "3", "-o", str(tmp_path)]
        )

        assert result.exit_code == 0, result.output
        names = sorted(p.name.split("_")[0] for p in tmp_path.iterdir())
        assert names == ["report", "results", "summary"]

        results_file = next(tmp_path.glob("results_*.json"))
        records = json.loads(results_file.read_text(encoding="utf-8"))
        assert [(r["strategy"], r["case"], r["errors"]) for r in records] == [("raw", "findUserById", 0)]
        assert len(records[0]["timings_ms"]) == 3

    def test_single_format(self, runner: CliRunner, tmp_path: Path) -> None:
        result = runner.invoke(
            cli, ["run", "-s", "dal", "-c", "batchGetUsers", "-w", "0", "-n", "1", "-o", str(tmp_path), "-f", "csv"]
        )

        assert result.exit_code == 0, result.output
        assert [p.suffix for p in tmp_path.iterdir()] == [".csv"]

    def test_unknown_case_exits_without_reports(self, runner: CliRunner, tmp_path: Path) -> None:
        result = runner.invoke(cli, ["run", "-c", "nope", "-o", str(tmp_path)])

        assert result.exit_code == 1
        assert "Valid:" in result.output
        assert list(tmp_path.iterdir()) == []

    def test_unknown_strategy_exits(self, runner: CliRunner, tmp_path: Path) -> None:
        result = runner.invoke(cli, ["run", "-s", "mongo", "-o", str(tmp_path)])

        assert result.exit_code == 1
        assert "mongo" in result.output

    def test_unopenable_database_exits_with_message(self, runner: CliRunner, monkeypatch, tmp_path: Path) -> None:
        # a directory cannot be opened as a database file
        monkeypatch.setattr(Config, "SQLITE_PATH", str(tmp_path))
        out_dir = tmp_path / "reports"

        result = runner.invoke(cli, ["run", "-s", "raw", "-c", "findUserById", "-n", "1", "-o", str(out_dir)])

        assert result.exit_code == 1
        assert "Error initializing strategy" in result.output
        assert not out_dir.exists()

    def test_negative_iterations_rejected_by_parser(self, runner: CliRunner) -> None:
        result = runner.invoke(cli, ["run", "-n", "-1"])
        assert result.exit_code == 2


class TestListCommands:

    def test_list_cases(self, runner: CliRunner) -> None:
        result = runner.invoke(cli, ["list-cases"])

        assert result.exit_code == 0
        assert "findUserById" in result.output
        assert "updateOrderStatus" in result.output

    def test_list_strategies(self, runner: CliRunner) -> None:
        result = runner.invoke(cli, ["list-strategies"])

        assert result.exit_code == 0
        assert "raw" in result.output
        assert "dal" in result.output
        assert "qb" in result.output
        assert "orm" in result.output
