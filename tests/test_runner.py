import asyncio
import itertools
import time

import pytest

from dbbench.benchmark.cases import BenchCase, CaseContext
from dbbench.benchmark.errors import CaseSetupError, ConfigurationError
from dbbench.benchmark.runner import BenchmarkConfig, CaseRunner
from dbbench.strategies.raw import RawSqlStrategy

from .conftest import FakeStrategy


class TestCaseRunner:
    """CaseRunner lifecycle and measurement."""

    @pytest.mark.asyncio
    @pytest.mark.parametrize("iterations", [0, 1, 5, 17])
    async def test_timings_length_equals_iterations(self, fake_strategy, ping_case, iterations) -> None:
        result = await CaseRunner().run(fake_strategy, ping_case, warmup=0, iterations=iterations)
        assert len(result.timings_ms) == iterations
        assert result.iterations == iterations
        assert result.errors == 0

    @pytest.mark.asyncio
    async def test_ping_end_to_end(self, fake_strategy, ping_case) -> None:
        result = await CaseRunner().run(fake_strategy, ping_case, warmup=2, iterations=5)

        assert result.strategy == "fake"
        assert result.case == "ping"
        assert result.warmup == 2
        assert result.iterations == 5
        assert result.errors == 0
        assert len(result.timings_ms) == 5
        assert all(t >= 0 for t in result.timings_ms)
        assert result.min <= result.p50 <= result.p95 <= result.p99 <= result.max
        # warmup + measured calls, nothing else
        assert len(fake_strategy.calls) == 7

    @pytest.mark.asyncio
    async def test_zero_iterations_all_zero_stats(self, fake_strategy, ping_case) -> None:
        result = await CaseRunner().run(fake_strategy, ping_case, warmup=3, iterations=0)
        assert result.timings_ms == ()
        assert (result.mean, result.p50, result.p95, result.p99, result.min, result.max) == (0.0,) * 6

    @pytest.mark.asyncio
    async def test_always_failing_still_measured(self, failing_strategy, ping_case) -> None:
        result = await CaseRunner().run(failing_strategy, ping_case, warmup=2, iterations=5)

        assert result.iterations == 5
        assert result.errors == 5
        assert len(result.timings_ms) == 5
        assert result.max >= result.min >= 0.0
        assert result.mean >= 0.0

    @pytest.mark.asyncio
    async def test_warmup_failures_not_counted(self, ping_case) -> None:
        strategy = FakeStrategy()
        outcomes = iter([True, True, False, False, False])

        async def flaky(s, ctx):
            if next(outcomes):
                raise RuntimeError("cold cache")

        bench_case = BenchCase("flaky", "", flaky)
        result = await CaseRunner().run(strategy, bench_case, warmup=2, iterations=3)
        assert result.errors == 0

    @pytest.mark.asyncio
    async def test_partial_failures_counted(self, fake_strategy) -> None:
        counter = {"n": 0}

        async def every_other(s, ctx):
            counter["n"] += 1
            if counter["n"] % 2 == 0:
                raise ValueError("boom")

        result = await CaseRunner().run(fake_strategy, BenchCase("x", "", every_other), 0, 6)
        assert result.errors == 3
        assert len(result.timings_ms) == 6

    @pytest.mark.asyncio
    async def test_setup_value_reaches_measured_call(self, fake_strategy) -> None:
        seen = []

        async def setup(s, ctx):
            ctx["user_id"] = 42

        async def run(s, ctx):
            seen.append(ctx.require("user_id"))

        result = await CaseRunner().run(fake_strategy, BenchCase("x", "", run, setup=setup), 1, 2)
        assert seen == [42, 42, 42]
        assert result.errors == 0

    @pytest.mark.asyncio
    async def test_context_is_fresh_per_run(self, fake_strategy) -> None:
        contexts = []

        async def run(s, ctx):
            ctx["hits"] = ctx.get("hits", 0) + 1
            contexts.append(ctx)

        bench_case = BenchCase("x", "", run)
        runner = CaseRunner()
        await runner.run(fake_strategy, bench_case, 0, 2)
        await runner.run(fake_strategy, bench_case, 0, 2)

        assert contexts[0] is not contexts[2]
        assert contexts[-1]["hits"] == 2

    @pytest.mark.asyncio
    async def test_setup_failure_is_fatal(self, fake_strategy, ping_case) -> None:
        async def broken_setup(s, ctx):
            raise LookupError("no seed data")

        bench_case = BenchCase("x", "", ping_case.run, setup=broken_setup)
        with pytest.raises(CaseSetupError, match="no seed data") as exc_info:
            await CaseRunner().run(fake_strategy, bench_case, 2, 5)

        assert isinstance(exc_info.value.__cause__, LookupError)
        assert exc_info.value.case == "x"
        assert fake_strategy.calls == []

    @pytest.mark.asyncio
    async def test_teardown_failure_keeps_timings(self, fake_strategy, ping_case) -> None:
        async def broken_teardown(s, ctx):
            raise RuntimeError("cleanup failed")

        bench_case = BenchCase("x", "", ping_case.run, teardown=broken_teardown)
        result = await CaseRunner().run(fake_strategy, bench_case, 0, 4)

        assert len(result.timings_ms) == 4
        assert result.errors == 0
        assert result.teardown_error == "RuntimeError: cleanup failed"

    @pytest.mark.asyncio
    async def test_teardown_runs_after_measurement(self, fake_strategy, ping_case) -> None:
        order = []

        async def run(s, ctx):
            order.append("run")

        async def teardown(s, ctx):
            order.append("teardown")

        await CaseRunner().run(fake_strategy, BenchCase("x", "", run, teardown=teardown), 1, 2)
        assert order == ["run", "run", "run", "teardown"]

    @pytest.mark.asyncio
    async def test_timing_uses_supplied_clock(self, fake_strategy, ping_case) -> None:
        ticks = iter([0.0, 0.010, 1.0, 1.004])
        runner = CaseRunner(clock=lambda: next(ticks))

        result = await runner.run(fake_strategy, ping_case, warmup=0, iterations=2)
        assert result.timings_ms == pytest.approx((10.0, 4.0))
        assert result.mean == pytest.approx(7.0)

    @pytest.mark.asyncio
    async def test_timeout_counts_as_error_and_continues(self) -> None:
        strategy = FakeStrategy(delay=0.5)
        async def run(s, ctx):
            return await s.find_user_by_id(1)

        result = await CaseRunner(timeout=0.01).run(strategy, BenchCase("slow", "", run), 0, 3)

        assert result.errors == 3
        assert len(result.timings_ms) == 3
        assert all(t < 400 for t in result.timings_ms)

    @pytest.mark.asyncio
    async def test_expired_call_never_overlaps_the_next(self, fake_strategy) -> None:
        active = {"now": 0, "peak": 0}
        calls = itertools.count()

        async def run(s, ctx):
            active["now"] += 1
            active["peak"] = max(active["peak"], active["now"])
            try:
                await asyncio.sleep(0.2 if next(calls) == 0 else 0)
            finally:
                active["now"] -= 1

        result = await CaseRunner(timeout=0.05).run(fake_strategy, BenchCase("x", "", run), 0, 3)

        assert active["peak"] == 1
        assert result.errors == 1
        assert result.timings_ms[1] < 50
        assert result.timings_ms[2] < 50

    @pytest.mark.asyncio
    async def test_expired_call_does_not_stall_a_real_connection(self, sqlite_config) -> None:
        strategy = RawSqlStrategy(sqlite_config)
        calls = itertools.count()

        async def run(s, ctx):
            if next(calls) == 0:
                # blocks the connection thread well past the deadline
                await s.db.call(lambda conn: time.sleep(0.5))
            return await s.find_user_by_id(1)

        try:
            result = await CaseRunner(timeout=0.1).run(strategy, BenchCase("stall", "", run), 0, 3)
        finally:
            await strategy.close()

        assert result.errors == 1
        assert result.timings_ms[0] < 400
        assert result.timings_ms[1] < 100
        assert result.timings_ms[2] < 100

    @pytest.mark.asyncio
    async def test_expired_warmup_call_is_settled_before_measuring(self, fake_strategy) -> None:
        calls = itertools.count()

        async def run(s, ctx):
            await asyncio.sleep(0.2 if next(calls) == 0 else 0)

        result = await CaseRunner(timeout=0.05).run(fake_strategy, BenchCase("x", "", run), 1, 2)

        assert result.errors == 0
        assert all(t < 50 for t in result.timings_ms)

    @pytest.mark.asyncio
    async def test_measurement_is_sequential(self, fake_strategy) -> None:
        active = {"now": 0, "peak": 0}

        async def run(s, ctx):
            active["now"] += 1
            active["peak"] = max(active["peak"], active["now"])
            await asyncio.sleep(0)
            active["now"] -= 1

        await CaseRunner().run(fake_strategy, BenchCase("x", "", run), 3, 10)
        assert active["peak"] == 1


class TestBenchmarkConfig:

    @pytest.mark.parametrize(
        "kwargs",
        [{"warmup": -1}, {"iterations": -1}, {"timeout": 0}],
    )
    def test_invalid_values_rejected(self, kwargs) -> None:
        with pytest.raises(ConfigurationError):
            BenchmarkConfig(**kwargs).validate()

    def test_zero_counts_are_valid(self) -> None:
        BenchmarkConfig(warmup=0, iterations=0).validate()
