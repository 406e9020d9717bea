"""
Benchmark execution and reporting package.
"""

from .cases import CASES, BenchCase, CaseContext, CaseRegistry, list_cases
from .errors import BenchmarkError, CaseSetupError, ConfigurationError
from .metrics import MetricsCollector, RunStats, TimingSample, compute_stats, percentile
from .reporter import ResultAggregator, SUMMARY_COLUMNS
from .runner import BenchmarkConfig, BenchmarkOrchestrator, CaseRunner, RunResult

__all__ = [
    "CASES",
    "BenchCase",
    "CaseContext",
    "CaseRegistry",
    "list_cases",
    "BenchmarkError",
    "CaseSetupError",
    "ConfigurationError",
    "MetricsCollector",
    "RunStats",
    "TimingSample",
    "compute_stats",
    "percentile",
    "ResultAggregator",
    "SUMMARY_COLUMNS",
    "BenchmarkConfig",
    "BenchmarkOrchestrator",
    "CaseRunner",
    "RunResult",
]
