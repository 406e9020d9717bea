import pytest

from dbbench.benchmark.metrics import MetricsCollector, RunStats, compute_stats, percentile


class TestPercentile:
    """Nearest-rank percentile selection."""

    def test_nearest_rank_on_four_samples(self) -> None:
        data = [10.0, 20.0, 30.0, 40.0]
        assert percentile(data, 50) == 20.0
        assert percentile(data, 95) == 40.0
        assert percentile(data, 99) == 40.0

    @pytest.mark.parametrize("p", [1, 50, 95, 99, 100])
    def test_single_sample_is_every_percentile(self, p: float) -> None:
        assert percentile([7.5], p) == 7.5

    def test_empty_is_zero(self) -> None:
        assert percentile([], 95) == 0.0

    def test_never_interpolates(self) -> None:
        data = [1.0, 2.0, 3.0, 4.0, 5.0, 6.0, 7.0, 8.0, 9.0, 10.0]
        assert percentile(data, 50) == 5.0
        assert percentile(data, 95) == 10.0
        assert percentile(data, 1) == 1.0

    def test_zero_percentile_clamps_to_first(self) -> None:
        assert percentile([3.0, 4.0], 0) == 3.0

    def test_hundred_samples(self) -> None:
        data = [float(i) for i in range(1, 101)]
        assert percentile(data, 50) == 50.0
        assert percentile(data, 95) == 95.0
        assert percentile(data, 99) == 99.0


class TestComputeStats:

    def test_mean_is_exact(self) -> None:
        assert compute_stats([1, 2, 3, 4, 5]).mean == 3.0

    def test_min_max_from_unsorted_input(self) -> None:
        stats = compute_stats([30.0, 10.0, 40.0, 20.0])
        assert stats.min == 10.0
        assert stats.max == 40.0
        assert stats.p50 == 20.0

    def test_empty_yields_all_zero(self) -> None:
        assert compute_stats([]) == RunStats(0.0, 0.0, 0.0, 0.0, 0.0, 0.0)

    def test_input_not_mutated(self) -> None:
        timings = [3.0, 1.0, 2.0]
        compute_stats(timings)
        assert timings == [3.0, 1.0, 2.0]

    def test_to_dict_keys(self) -> None:
        assert list(compute_stats([1.0]).to_dict()) == ["mean", "p50", "p95", "p99", "min", "max"]


class TestMetricsCollector:

    def test_errored_samples_counted_and_timed(self) -> None:
        collector = MetricsCollector()
        collector.record(1.0)
        collector.record(3.0, errored=True)

        assert collector.timings == [1.0, 3.0]
        assert collector.error_count == 1
        assert collector.calculate().mean == 2.0

    def test_negative_duration_clamped(self) -> None:
        collector = MetricsCollector()
        collector.record(-0.001)
        assert collector.timings == [0.0]
