import importlib
import os
from pathlib import Path

import pytest

import dbbench.config


@pytest.fixture
def reload_config(monkeypatch, tmp_path: Path):
    """Re-import the config module from inside ``tmp_path`` with a private environment."""
    monkeypatch.chdir(tmp_path)
    monkeypatch.setattr(os, "environ", os.environ.copy())
    for key in ("REPORT_DIR", "BENCH_DATA_SIZE", "BENCH_ITERATIONS"):
        os.environ.pop(key, None)

    yield lambda: importlib.reload(dbbench.config)

    monkeypatch.undo()
    importlib.reload(dbbench.config)


class TestWorkingDirectoryResolution:

    def test_dotenv_found_in_working_directory(self, reload_config, tmp_path: Path) -> None:
        (tmp_path / ".env").write_text("BENCH_DATA_SIZE=m\nBENCH_ITERATIONS=7\n", encoding="utf-8")

        config = reload_config()

        assert config.Config.DATA_SIZE == "M"
        assert config.Config.ITERATIONS == 7

    def test_dotenv_found_in_parent_directory(self, reload_config, tmp_path: Path, monkeypatch) -> None:
        (tmp_path / ".env").write_text("BENCH_ITERATIONS=11\n", encoding="utf-8")
        nested = tmp_path / "nested"
        nested.mkdir()
        monkeypatch.chdir(nested)

        config = reload_config()

        assert config.Config.ITERATIONS == 11

    def test_report_dir_relative_to_working_directory(self, reload_config, tmp_path: Path) -> None:
        config = reload_config()

        assert config.Config.REPORT_DIR == Path("bench/reports")
        created = config.Config.ensure_directories()
        assert created.resolve() == (tmp_path / "bench" / "reports").resolve()
        assert created.is_dir()

    def test_environment_wins_over_dotenv(self, reload_config, tmp_path: Path) -> None:
        (tmp_path / ".env").write_text("BENCH_DATA_SIZE=L\n", encoding="utf-8")
        os.environ["BENCH_DATA_SIZE"] = "S"

        config = reload_config()

        assert config.Config.DATA_SIZE == "S"


class TestStrategyConfig:

    @pytest.mark.parametrize("name", ["raw", "qb", "dal", "orm", "ORM"])
    def test_known_strategies_share_sqlite_config(self, name: str) -> None:
        assert dbbench.config.Config.get_strategy_config(name) == dbbench.config.Config.get_sqlite_config()

    def test_unknown_strategy_has_no_config(self) -> None:
        assert dbbench.config.Config.get_strategy_config("mongo") is None

    def test_unknown_data_size(self) -> None:
        with pytest.raises(ValueError, match="Available: S, M, L"):
            dbbench.config.Config.get_data_size("XL")
