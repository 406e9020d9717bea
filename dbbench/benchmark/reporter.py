"""
Result aggregation and report generation.
Supports JSON (complete record), CSV (summary table) and Markdown output.
"""

import csv
import io
import json
import logging
import os
import tempfile
from datetime import datetime
from pathlib import Path
from typing import TYPE_CHECKING, Dict, Iterable, List, Optional

from .utils import get_machine_info, get_report_timestamp

if TYPE_CHECKING:
    from .runner import RunResult

logger = logging.getLogger(__name__)


SUMMARY_COLUMNS = [
    "strategy",
    "case",
    "iterations",
    "mean_ms",
    "p50_ms",
    "p95_ms",
    "p99_ms",
    "min_ms",
    "max_ms",
    "errors",
]

REPORT_FORMATS = ("json", "csv", "md")


def format_ms(value: float) -> str:
    """Fixed-point milliseconds with exactly three fractional digits."""
    return f"{value:.3f}"


def atomic_write(path: Path, content: str) -> Path:
    """
    Write ``content`` to ``path`` so readers see either nothing or the
    whole file.

    The data goes to a temporary file in the same directory which then
    replaces the target.
    """
    path = Path(path)
    fd, tmp_name = tempfile.mkstemp(dir=path.parent, prefix=f".{path.name}.", suffix=".tmp")
    try:
        with os.fdopen(fd, "w", encoding="utf-8", newline="") as f:
            f.write(content)
            f.flush()
            os.fsync(f.fileno())
        os.replace(tmp_name, path)
    except BaseException:
        try:
            os.unlink(tmp_name)
        except FileNotFoundError:
            pass
        raise
    return path


class ResultAggregator:
    """
    Collects run results and serializes them.

    Results are kept in memory in the order they were produced. Writing
    never discards them, so a failed write can simply be retried.

    Example:
        aggregator = ResultAggregator()
        aggregator.add(result)
        paths = aggregator.write_all(Path("bench/reports"))
    """

    def __init__(self, results: Iterable["RunResult"] = ()):
        self._results: List["RunResult"] = list(results)

    def add(self, result: "RunResult") -> None:
        self._results.append(result)

    @property
    def results(self) -> List["RunResult"]:
        return list(self._results)

    def __len__(self) -> int:
        return len(self._results)

    # ==========================================================================
    # Complete record
    # ==========================================================================

    def to_records(self) -> List[Dict]:
        return [r.to_dict() for r in self._results]

    def to_json(self) -> str:
        """Complete record: every field, full timing series included."""
        return json.dumps(self.to_records(), ensure_ascii=False, indent=2)

    # ==========================================================================
    # Summary table
    # ==========================================================================

    def summary_rows(self) -> List[List[str]]:
        rows = []
        for r in self._results:
            rows.append([
                r.strategy,
                r.case,
                str(r.iterations),
                format_ms(r.mean),
                format_ms(r.p50),
                format_ms(r.p95),
                format_ms(r.p99),
                format_ms(r.min),
                format_ms(r.max),
                str(r.errors),
            ])
        return rows

    def to_summary_csv(self) -> str:
        """Summary table: fixed columns, aggregates only."""
        buffer = io.StringIO()
        writer = csv.writer(buffer, lineterminator="\n")
        writer.writerow(SUMMARY_COLUMNS)
        writer.writerows(self.summary_rows())
        return buffer.getvalue()

    # ==========================================================================
    # Markdown comparison
    # ==========================================================================

    def to_markdown(self, machine_info: Optional[Dict[str, str]] = None) -> str:
        """
        Comparison report with one table per case and strategies as columns.

        Args:
            machine_info: Test environment details (default: this machine)
        """
        if machine_info is None:
            machine_info = get_machine_info()
        timestamp = datetime.now().strftime("%Y-%m-%d %H:%M:%S")

        strategies = list(dict.fromkeys(r.strategy for r in self._results))
        by_case: Dict[str, Dict[str, "RunResult"]] = {}
        for r in self._results:
            by_case.setdefault(r.case, {})[r.strategy] = r

        lines = []
        lines.append("# Data-Access Benchmark Report")
        lines.append(f"\n**Generated:** {timestamp}")
        lines.append(f"**Strategies:** {', '.join(strategies)}")
        if self._results:
            first = self._results[0]
            lines.append(f"**Warmup / iterations:** {first.warmup} / {first.iterations}")
        lines.append("\n---\n")

        lines.append("## Test Environment\n")
        lines.append("| Item | Value |")
        lines.append("|------|-------|")
        for key, value in machine_info.items():
            lines.append(f"| {key} | {value} |")

        for case_name, per_strategy in by_case.items():
            lines.append(f"\n## {case_name}\n")
            present = [s for s in strategies if s in per_strategy]
            lines.append("| Metric |" + "|".join(f" {s} " for s in present) + "|")
            lines.append("|--------|" + "|".join("------" for _ in present) + "|")

            rows = [
                ("mean (ms)", lambda r: format_ms(r.mean)),
                ("p50 (ms)", lambda r: format_ms(r.p50)),
                ("p95 (ms)", lambda r: format_ms(r.p95)),
                ("p99 (ms)", lambda r: format_ms(r.p99)),
                ("errors", lambda r: str(r.errors)),
            ]
            for label, getter in rows:
                row = f"| {label} |"
                for s in present:
                    row += f" {getter(per_strategy[s])} |"
                lines.append(row)

            fastest = min(per_strategy.values(), key=lambda r: r.p50)
            lines.append(f"\n**Fastest (p50):** {fastest.strategy} ({format_ms(fastest.p50)}ms)")

        teardown_failures = [r for r in self._results if r.teardown_error]
        if teardown_failures:
            lines.append("\n## Teardown Failures\n")
            for r in teardown_failures:
                lines.append(f"- {r.strategy}/{r.case}: {r.teardown_error}")

        return "\n".join(lines) + "\n"

    # ==========================================================================
    # Files
    # ==========================================================================

    def write_json(self, path: Path) -> Path:
        return atomic_write(path, self.to_json())

    def write_csv(self, path: Path) -> Path:
        return atomic_write(path, self.to_summary_csv())

    def write_markdown(self, path: Path) -> Path:
        return atomic_write(path, self.to_markdown())

    def write_all(
        self,
        output_dir: Path,
        formats: Iterable[str] = ("json", "csv"),
        timestamp: Optional[str] = None,
    ) -> Dict[str, Path]:
        """
        Write the requested artifacts into ``output_dir``.

        Each artifact is rendered in memory first and then written
        atomically: ``results_<ts>.json``, ``summary_<ts>.csv`` and
        ``report_<ts>.md``.

        Returns:
            Mapping of format to written path
        """
        output_dir = Path(output_dir)
        output_dir.mkdir(parents=True, exist_ok=True)
        ts = timestamp or get_report_timestamp()

        writers = {
            "json": (f"results_{ts}.json", self.write_json),
            "csv": (f"summary_{ts}.csv", self.write_csv),
            "md": (f"report_{ts}.md", self.write_markdown),
        }

        paths = {}
        for fmt in formats:
            if fmt not in writers:
                raise ValueError(f"Unknown report format: {fmt}. Available: {', '.join(REPORT_FORMATS)}")
            filename, write = writers[fmt]
            paths[fmt] = write(output_dir / filename)
            logger.info(f"Wrote {fmt} report: {paths[fmt]}")

        return paths
