import csv
import io
import json
from pathlib import Path

import pytest

from dbbench.benchmark.reporter import SUMMARY_COLUMNS, ResultAggregator, format_ms
from dbbench.benchmark.runner import CaseRunner, RunResult


def make_result(strategy="raw", case="findUserById", timings=(10.0, 20.0, 30.0, 40.0), errors=0, **kwargs):
    fields = dict(
        strategy=strategy,
        case=case,
        warmup=2,
        iterations=len(timings),
        timings_ms=tuple(timings),
        errors=errors,
        mean=sum(timings) / len(timings) if timings else 0.0,
        p50=20.0,
        p95=40.0,
        p99=40.0,
        min=min(timings) if timings else 0.0,
        max=max(timings) if timings else 0.0,
    )
    fields.update(kwargs)
    return RunResult(**fields)


class TestSummaryTable:

    def test_header_is_fixed(self) -> None:
        text = ResultAggregator().to_summary_csv()
        assert text.splitlines() == [
            "strategy,case,iterations,mean_ms,p50_ms,p95_ms,p99_ms,min_ms,max_ms,errors"
        ]

    def test_three_fractional_digits(self) -> None:
        assert format_ms(12.3) == "12.300"
        assert format_ms(0.0) == "0.000"
        assert format_ms(1.23456) == "1.235"

    def test_row_layout(self) -> None:
        aggregator = ResultAggregator([make_result(mean=12.3, errors=1)])
        rows = list(csv.reader(io.StringIO(aggregator.to_summary_csv())))

        assert rows[0] == SUMMARY_COLUMNS
        assert rows[1] == [
            "raw", "findUserById", "4", "12.300", "20.000", "40.000",
            "40.000", "10.000", "40.000", "1",
        ]

    def test_rows_in_production_order(self) -> None:
        aggregator = ResultAggregator()
        aggregator.add(make_result(strategy="raw", case="b"))
        aggregator.add(make_result(strategy="dal", case="a"))

        rows = list(csv.reader(io.StringIO(aggregator.to_summary_csv())))[1:]
        assert [(r[0], r[1]) for r in rows] == [("raw", "b"), ("dal", "a")]

    def test_no_timing_series(self) -> None:
        result = make_result(timings=(1.111, 2.222, 3.333), mean=2.0, min=1.0, max=4.0)
        text = ResultAggregator([result]).to_summary_csv()

        assert "2.222" not in text
        rows = list(csv.reader(io.StringIO(text)))
        assert all(len(row) == len(SUMMARY_COLUMNS) for row in rows)


class TestCompleteRecord:

    def test_every_field_serialized(self) -> None:
        records = json.loads(ResultAggregator([make_result()]).to_json())

        assert records == [{
            "strategy": "raw",
            "case": "findUserById",
            "warmup": 2,
            "iterations": 4,
            "timings_ms": [10.0, 20.0, 30.0, 40.0],
            "mean": 25.0,
            "p50": 20.0,
            "p95": 40.0,
            "p99": 40.0,
            "min": 10.0,
            "max": 40.0,
            "errors": 0,
            "teardown_error": None,
        }]

    @pytest.mark.asyncio
    async def test_all_failing_run_serializes(self, failing_strategy, ping_case) -> None:
        result = await CaseRunner().run(failing_strategy, ping_case, warmup=2, iterations=5)
        aggregator = ResultAggregator([result])

        records = json.loads(aggregator.to_json())
        assert records[0]["errors"] == 5
        assert records[0]["iterations"] == 5
        assert len(records[0]["timings_ms"]) == 5
        assert aggregator.to_summary_csv().splitlines()[1].endswith(",5")


class TestMarkdown:

    def test_tables_per_case_with_strategy_columns(self) -> None:
        aggregator = ResultAggregator([
            make_result(strategy="raw", p50=5.0),
            make_result(strategy="dal", p50=7.0),
        ])
        text = aggregator.to_markdown(machine_info={"hostname": "bench-host"})

        assert "## findUserById" in text
        assert "| Metric | raw | dal |" in text
        assert "**Fastest (p50):** raw (5.000ms)" in text
        assert "| hostname | bench-host |" in text

    def test_lists_teardown_failures(self) -> None:
        aggregator = ResultAggregator([make_result(teardown_error="RuntimeError: x")])
        assert "raw/findUserById: RuntimeError: x" in aggregator.to_markdown(machine_info={})


class TestWriting:

    def test_write_all_creates_named_artifacts(self, tmp_path: Path) -> None:
        aggregator = ResultAggregator([make_result()])
        paths = aggregator.write_all(tmp_path, ("json", "csv", "md"), timestamp="20250101_000000")

        assert paths["json"].name == "results_20250101_000000.json"
        assert paths["csv"].name == "summary_20250101_000000.csv"
        assert paths["md"].name == "report_20250101_000000.md"
        assert json.loads(paths["json"].read_text(encoding="utf-8"))[0]["case"] == "findUserById"
        assert paths["csv"].read_text(encoding="utf-8") == aggregator.to_summary_csv()

    def test_no_temp_files_left_behind(self, tmp_path: Path) -> None:
        ResultAggregator([make_result()]).write_all(tmp_path, timestamp="t")
        assert sorted(p.name for p in tmp_path.iterdir()) == ["results_t.json", "summary_t.csv"]

    def test_failed_write_keeps_results_for_retry(self, tmp_path: Path) -> None:
        aggregator = ResultAggregator([make_result()])
        missing_parent = tmp_path / "file.txt"
        missing_parent.write_text("not a directory")

        with pytest.raises(OSError):
            aggregator.write_json(missing_parent / "results.json")

        assert len(aggregator) == 1
        path = aggregator.write_json(tmp_path / "results.json")
        assert path.exists()

    def test_overwrite_replaces_whole_file(self, tmp_path: Path) -> None:
        target = tmp_path / "summary.csv"
        target.write_text("stale content that is much longer than the new file " * 10)

        ResultAggregator().write_csv(target)
        assert target.read_text(encoding="utf-8") == ",".join(SUMMARY_COLUMNS) + "\n"

    def test_unknown_format_rejected(self, tmp_path: Path) -> None:
        with pytest.raises(ValueError, match="xml"):
            ResultAggregator().write_all(tmp_path, ("xml",))
