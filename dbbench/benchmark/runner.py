"""
Benchmark runner for executing cases against access strategies.
"""

import asyncio
import logging
import time
from dataclasses import dataclass
from typing import Any, Callable, Dict, List, Mapping, Optional, Sequence, Tuple

from ..config import Config
from ..strategies import STRATEGIES
from ..strategies.base import AccessStrategy
from .cases import CASES, BenchCase, CaseContext, CaseRegistry, CaseStep
from .errors import CaseSetupError, ConfigurationError
from .metrics import MetricsCollector
from .reporter import ResultAggregator

logger = logging.getLogger(__name__)


@dataclass
class BenchmarkConfig:
    """Configuration for a benchmark run."""
    warmup: int = 5
    iterations: int = 50
    # Per-iteration deadline in seconds; None waits indefinitely
    timeout: Optional[float] = None

    @classmethod
    def from_env(cls) -> "BenchmarkConfig":
        return cls(
            warmup=Config.WARMUP,
            iterations=Config.ITERATIONS,
            timeout=Config.ITERATION_TIMEOUT or None,
        )

    def validate(self) -> None:
        if self.warmup < 0:
            raise ConfigurationError(f"warmup must be >= 0, got {self.warmup}")
        if self.iterations < 0:
            raise ConfigurationError(f"iterations must be >= 0, got {self.iterations}")
        if self.timeout is not None and self.timeout <= 0:
            raise ConfigurationError(f"timeout must be > 0, got {self.timeout}")


@dataclass(frozen=True)
class RunResult:
    """
    Result of one case executed against one strategy.

    ``timings_ms`` holds exactly ``iterations`` durations in the order they
    were measured, errored calls included.
    """
    strategy: str
    case: str
    warmup: int
    iterations: int
    timings_ms: Tuple[float, ...]
    errors: int
    mean: float
    p50: float
    p95: float
    p99: float
    min: float
    max: float
    teardown_error: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary."""
        return {
            "strategy": self.strategy,
            "case": self.case,
            "warmup": self.warmup,
            "iterations": self.iterations,
            "timings_ms": list(self.timings_ms),
            "mean": self.mean,
            "p50": self.p50,
            "p95": self.p95,
            "p99": self.p99,
            "min": self.min,
            "max": self.max,
            "errors": self.errors,
            "teardown_error": self.teardown_error,
        }


class CaseRunner:
    """
    Executes one case against one strategy instance.

    Lifecycle: fresh context → setup → warmup → measured loop → teardown.
    Calls never overlap; each measured call is timed on its own with a
    monotonic clock read right before the call and right after it settles.

    Example:
        runner = CaseRunner(timeout=2.0)
        result = await runner.run(strategy, CASES.get("findUserById"), 5, 50)
    """

    def __init__(
        self,
        timeout: Optional[float] = None,
        clock: Callable[[], float] = time.perf_counter,
    ):
        """
        Initialize case runner.

        Args:
            timeout: Per-iteration deadline in seconds (None disables it)
            clock: Monotonic clock returning seconds
        """
        self.timeout = timeout
        self.clock = clock
        self._abandoned: Optional["asyncio.Future[Any]"] = None

    async def _invoke(self, step: CaseStep, strategy: AccessStrategy, ctx: CaseContext) -> None:
        """
        Await one call of ``step``, bounded by the deadline if one is set.

        A call that outlives its deadline keeps running as its own task and
        is parked in ``_abandoned`` until ``_settle`` waits it out.
        """
        if self.timeout is None:
            await step(strategy, ctx)
            return

        task = asyncio.ensure_future(step(strategy, ctx))
        try:
            await asyncio.wait_for(asyncio.shield(task), self.timeout)
        except asyncio.TimeoutError:
            self._abandoned = task
            raise

    async def _settle(self, label: str) -> None:
        """Wait for a call abandoned at its deadline, outside any measured window."""
        task, self._abandoned = self._abandoned, None
        if task is None:
            return

        try:
            await task
        except Exception as e:
            logger.debug(f"[{label}] call abandoned at its deadline failed: {e!r}")

    async def run(
        self,
        strategy: AccessStrategy,
        bench_case: BenchCase,
        warmup: int,
        iterations: int,
        strategy_name: Optional[str] = None,
    ) -> RunResult:
        """
        Run the full case lifecycle.

        Args:
            strategy: Strategy instance under test
            bench_case: Case definition
            warmup: Unmeasured calls before timing starts
            iterations: Measured calls
            strategy_name: Name recorded on the result (default: strategy.name)

        Returns:
            RunResult with timings and statistics

        Raises:
            CaseSetupError: If the case's setup fails
        """
        name = strategy_name or strategy.name
        ctx = CaseContext()

        if bench_case.setup is not None:
            try:
                await bench_case.setup(strategy, ctx)
            except Exception as e:
                raise CaseSetupError(name, bench_case.name, e) from e

        for _ in range(warmup):
            try:
                await self._invoke(bench_case.run, strategy, ctx)
            except Exception as e:
                logger.debug(f"[{name}/{bench_case.name}] warmup call failed: {e!r}")
            await self._settle(f"{name}/{bench_case.name}")

        collector = MetricsCollector()
        clock = self.clock

        for i in range(iterations):
            started = clock()
            try:
                await self._invoke(bench_case.run, strategy, ctx)
            except Exception as e:
                collector.record((clock() - started) * 1000, errored=True)
                logger.debug(f"[{name}/{bench_case.name}] iteration {i} failed: {e!r}")
            else:
                collector.record((clock() - started) * 1000)
            await self._settle(f"{name}/{bench_case.name}")

        teardown_error = None
        if bench_case.teardown is not None:
            try:
                await bench_case.teardown(strategy, ctx)
            except Exception as e:
                teardown_error = f"{type(e).__name__}: {e}"
                logger.warning(f"[{name}/{bench_case.name}] teardown failed: {teardown_error}")

        stats = collector.calculate()
        return RunResult(
            strategy=name,
            case=bench_case.name,
            warmup=warmup,
            iterations=iterations,
            timings_ms=tuple(collector.timings),
            errors=collector.error_count,
            teardown_error=teardown_error,
            **stats.to_dict(),
        )


StrategyFactory = Callable[[], AccessStrategy]


class BenchmarkOrchestrator:
    """
    Runs the (strategy × case) matrix, one strategy at a time.

    Every requested name is validated before any strategy is built. Each
    strategy instance is constructed once, runs every selected case in
    order, and is closed exactly once whatever happens to its cases.

    Example:
        orchestrator = BenchmarkOrchestrator(config=BenchmarkConfig(warmup=2, iterations=20))
        results = await orchestrator.run(["raw", "dal"], ["findUserById"])
        orchestrator.aggregator.write_all(Path("bench/reports"))
    """

    def __init__(
        self,
        strategies: Optional[Mapping[str, StrategyFactory]] = None,
        registry: Optional[CaseRegistry] = None,
        config: Optional[BenchmarkConfig] = None,
        aggregator: Optional[ResultAggregator] = None,
    ):
        self.strategies = strategies if strategies is not None else STRATEGIES
        self.registry = registry if registry is not None else CASES
        self.config = config or BenchmarkConfig.from_env()
        self.aggregator = aggregator if aggregator is not None else ResultAggregator()
        self.runner = CaseRunner(timeout=self.config.timeout)

        # Callbacks
        self._on_case_start: Optional[Callable[[str, BenchCase], None]] = None
        self._on_result: Optional[Callable[[RunResult], None]] = None

    def on_case_start(self, callback: Callable[[str, BenchCase], None]) -> "BenchmarkOrchestrator":
        """
        Set case-start callback.

        Args:
            callback: Function(strategy_name, bench_case) called before each case
        """
        self._on_case_start = callback
        return self

    def on_result(self, callback: Callable[[RunResult], None]) -> "BenchmarkOrchestrator":
        """
        Set result callback.

        Args:
            callback: Function(result) called after each case
        """
        self._on_result = callback
        return self

    def validate(
        self,
        strategy_names: Optional[Sequence[str]] = None,
        case_names: Optional[Sequence[str]] = None,
    ) -> Tuple[List[str], List[BenchCase]]:
        """
        Resolve the selection or fail before anything runs.

        Args:
            strategy_names: Strategies in run order (default: all registered)
            case_names: Cases in run order (default: all registered)

        Returns:
            Tuple of (strategy names, case definitions)

        Raises:
            ConfigurationError: On unknown names or invalid counts
        """
        self.config.validate()

        names = list(strategy_names) if strategy_names is not None else list(self.strategies)
        unknown = [n for n in names if n not in self.strategies]
        if unknown:
            raise ConfigurationError(
                f"Unknown strategy(s): {', '.join(unknown)}",
                list(self.strategies),
            )

        return names, self.registry.select(case_names)

    async def run(
        self,
        strategy_names: Optional[Sequence[str]] = None,
        case_names: Optional[Sequence[str]] = None,
    ) -> List[RunResult]:
        """
        Run every selected case against every selected strategy.

        Returns:
            Results appended during this run, in production order
        """
        names, cases = self.validate(strategy_names, case_names)
        start = len(self.aggregator)

        logger.info(
            f"Running {len(cases)} case(s) against {len(names)} strategy(s): "
            f"warmup={self.config.warmup} iterations={self.config.iterations}"
        )

        for name in names:
            logger.info(f"Constructing strategy: {name}")
            # closed exactly once when the block exits, however it exits
            async with self.strategies[name]() as strategy:
                for bench_case in cases:
                    if self._on_case_start:
                        self._on_case_start(name, bench_case)

                    result = await self.runner.run(
                        strategy,
                        bench_case,
                        self.config.warmup,
                        self.config.iterations,
                        strategy_name=name,
                    )
                    self.aggregator.add(result)

                    if self._on_result:
                        self._on_result(result)

        return self.aggregator.results[start:]
