"""Tests for chronometre.orchestrator — the end-to-end measurement protocol."""

from __future__ import annotations

import time
import unittest
from unittest.mock import MagicMock, patch

from bench_test_helpers import busy_wait, fast_config

from chronometre.errors import ComputationFailure, InvalidConfiguration
from chronometre.orchestrator import (
    Benchmark,
    BenchProgress,
    Phase,
    benchmark,
    quick_benchmark,
    thorough_benchmark,
)
from chronometre.overhead import OverheadCalibrator
from chronometre.results import FINAL_GC_PROBLEM, UNMEASURABLE_EXECUTION
from chronometre.runner import blackhole
from chronometre.stats import outlier_variance

DELAY_NS = 200_000


def _record_phases(config, computation=lambda: None) -> tuple[list[BenchProgress], object]:
    events: list[BenchProgress] = []
    result = Benchmark(computation, config, progress_callback=events.append).run()
    return events, result


# ---------------------------------------------------------------------------
# End-to-end
# ---------------------------------------------------------------------------


class TestEndToEnd(unittest.TestCase):
    """A real run against a computation of known duration."""

    @classmethod
    def setUpClass(cls) -> None:
        config = fast_config(
            target_sample_duration_ns=5 * DELAY_NS,
            sample_count=10,
            warmup_duration_ns=2 * DELAY_NS,
        )
        cls.config = config
        cls.result = benchmark(lambda: busy_wait(DELAY_NS), config)

    def test_batch_size_matches_target(self) -> None:
        self.assertGreaterEqual(self.result.batch_size, 3)
        self.assertLessEqual(self.result.batch_size, 7)

    def test_mean_close_to_delay(self) -> None:
        self.assertGreaterEqual(self.result.mean, 0.8 * DELAY_NS)
        self.assertLessEqual(self.result.mean, 2.0 * DELAY_NS)

    def test_sample_count_and_floor(self) -> None:
        self.assertEqual(self.result.sample_count, 10)
        self.assertTrue(all(s >= 0 for s in self.result.samples))
        self.assertEqual(self.result.outliers.total, 10)

    def test_bootstrap_points_match_descriptive_stats(self) -> None:
        self.assertEqual(self.result.mean_ci.point, self.result.stats.mean)
        self.assertEqual(self.result.variance_ci.point, self.result.stats.variance)
        self.assertTrue(self.result.mean_ci.contains(self.result.mean))

    def test_warmup_ran(self) -> None:
        self.assertGreaterEqual(self.result.warmup.executions, 1)

    def test_config_and_overhead_recorded(self) -> None:
        self.assertEqual(self.result.config, self.config)
        self.assertIsNot(self.result.config, self.config)
        self.assertTrue(self.result.overhead.pinned)
        self.assertEqual(self.result.overhead.per_invocation_ns, 0.0)

    def test_no_unmeasurable_warning(self) -> None:
        self.assertFalse(self.result.has_warning(UNMEASURABLE_EXECUTION))


# ---------------------------------------------------------------------------
# Collection quiescence
# ---------------------------------------------------------------------------


class TestGcBeforeSample(unittest.TestCase):
    """gc_before_sample controls the per-sample quiescence request."""

    @patch("chronometre.orchestrator.request_quiescence", return_value=0)
    def test_enabled_requests_before_every_sample(self, mock_quiesce) -> None:
        benchmark(lambda: None, fast_config(sample_count=5, gc_before_sample=True))
        # One per sample plus the final one.
        self.assertEqual(mock_quiesce.call_count, 6)

    @patch("chronometre.orchestrator.request_quiescence", return_value=0)
    def test_disabled_requests_only_final(self, mock_quiesce) -> None:
        benchmark(lambda: None, fast_config(sample_count=5, gc_before_sample=False))
        self.assertEqual(mock_quiesce.call_count, 1)

    @patch("chronometre.orchestrator.request_quiescence", return_value=0)
    def test_final_request_does_not_pause(self, mock_quiesce) -> None:
        config = fast_config(sample_count=3, quiescence_pause_s=0.5, max_gc_attempts=7)
        with patch("chronometre.orchestrator.run_batch", return_value=100_000):
            benchmark(lambda: None, config)
        per_sample = mock_quiesce.call_args_list[0].kwargs
        final = mock_quiesce.call_args_list[-1].kwargs
        self.assertEqual(per_sample, {"max_attempts": 7, "pause_s": 0.5})
        self.assertEqual(final, {"max_attempts": 7, "pause_s": 0})

    def test_slow_final_collection_warns(self) -> None:
        def slow_final(**kwargs) -> int:
            time.sleep(0.05)
            return 0

        config = fast_config(sample_count=5, gc_before_sample=False)
        with patch("chronometre.orchestrator.request_quiescence", side_effect=slow_final):
            result = benchmark(lambda: busy_wait(20_000), config)
        self.assertTrue(result.has_warning(FINAL_GC_PROBLEM))
        self.assertGreaterEqual(result.final_gc_time_ns, 50_000_000)


# ---------------------------------------------------------------------------
# Failures
# ---------------------------------------------------------------------------


class TestFailures(unittest.TestCase):
    def test_invalid_config_raises_before_running(self) -> None:
        computation = MagicMock()
        bench = Benchmark(computation, fast_config(sample_count=1, confidence_level=1.0))
        with self.assertRaises(InvalidConfiguration) as ctx:
            bench.run()
        computation.assert_not_called()
        self.assertEqual(
            {e.field for e in ctx.exception.errors}, {"sample_count", "confidence_level"}
        )
        self.assertIsInstance(ctx.exception, ValueError)

    def test_config_warnings_are_logged(self) -> None:
        with self.assertLogs("chronometre", level="WARNING") as logs:
            benchmark(lambda: None, fast_config(sample_count=3, bootstrap_resample_count=50))
        self.assertTrue(any("bootstrap_resample_count" in line for line in logs.output))

    def test_failure_during_warmup(self) -> None:
        def boom() -> None:
            raise ZeroDivisionError("warm")

        bench = Benchmark(boom, fast_config(warmup_duration_ns=1_000_000))
        with self.assertRaises(ComputationFailure) as ctx:
            bench.run()
        self.assertEqual(ctx.exception.phase, "warm-up")
        self.assertIsInstance(ctx.exception.__cause__, ZeroDivisionError)
        self.assertIsNot(bench.phase, Phase.DONE)

    def test_failure_during_planning(self) -> None:
        def boom() -> None:
            raise KeyError("plan")

        with self.assertRaises(ComputationFailure) as ctx:
            benchmark(boom, fast_config(warmup_duration_ns=0))
        self.assertEqual(ctx.exception.phase, "planning")
        self.assertIs(ctx.exception.original, ctx.exception.__cause__)

    def test_failure_during_sampling(self) -> None:
        with patch(
            "chronometre.orchestrator.run_batch",
            side_effect=[100_000, 100_000, RuntimeError("sample")],
        ):
            with self.assertRaises(ComputationFailure) as ctx:
                benchmark(lambda: None, fast_config(sample_count=5))
        self.assertEqual(ctx.exception.phase, "sampling")
        self.assertIn("RuntimeError: sample", str(ctx.exception))

    def test_instance_runs_once(self) -> None:
        bench = Benchmark(lambda: None, fast_config(sample_count=2))
        bench.run()
        with self.assertRaises(RuntimeError):
            bench.run()

    def test_non_callable_rejected(self) -> None:
        with self.assertRaises(TypeError):
            Benchmark(42)  # type: ignore[arg-type]


# ---------------------------------------------------------------------------
# Phases and overhead
# ---------------------------------------------------------------------------


class TestPhases(unittest.TestCase):
    def test_phase_order_with_pinned_overhead(self) -> None:
        events, _ = _record_phases(fast_config(sample_count=3))
        phases = [e.phase for e in events if not e.sample]
        self.assertEqual(
            phases,
            [Phase.WARMING_UP, Phase.PLANNING, Phase.SAMPLING, Phase.FINALIZING, Phase.DONE],
        )
        samples = [e.sample for e in events if e.sample]
        self.assertEqual(samples, [1, 2, 3])
        self.assertTrue(all(e.total_samples == 3 for e in events))

    def test_pinned_config_overhead_skips_calibrator(self) -> None:
        with patch("chronometre.orchestrator.get_calibrator") as mock_get:
            result = benchmark(lambda: None, fast_config(pinned_overhead_ns=12.0))
        mock_get.assert_not_called()
        self.assertEqual(result.overhead.per_invocation_ns, 12.0)
        self.assertTrue(result.overhead.pinned)

    def test_calibrates_once_per_process(self) -> None:
        calibrator = OverheadCalibrator(invocations=1_000, batch_size=100)
        config = fast_config(pinned_overhead_ns=None, sample_count=3)
        with patch("chronometre.orchestrator.get_calibrator", return_value=calibrator):
            first_events, first = _record_phases(config)
            second_events, second = _record_phases(fast_config(pinned_overhead_ns=None))
        self.assertEqual(first_events[0].phase, Phase.CALIBRATING)
        self.assertNotIn(Phase.CALIBRATING, [e.phase for e in second_events])
        self.assertIs(first.overhead, second.overhead)
        self.assertIs(first.overhead, calibrator.cached)

    def test_result_kept_observable(self) -> None:
        sentinel = object()
        benchmark(lambda: sentinel, fast_config(sample_count=2))
        self.assertIs(blackhole.value, sentinel)


# ---------------------------------------------------------------------------
# Result assembly
# ---------------------------------------------------------------------------


class TestAssembly(unittest.TestCase):
    def test_unmeasurable_execution_is_a_warning(self) -> None:
        config = fast_config(pinned_overhead_ns=1_000_000.0, fallback_batch_size=10)
        result = benchmark(lambda: None, config)
        self.assertTrue(result.has_warning(UNMEASURABLE_EXECUTION))
        self.assertEqual(result.batch_size, 10)
        self.assertEqual(set(result.samples), {0.0})

    @patch("chronometre.orchestrator.estimate_execution_time", return_value=100.0)
    def test_seeded_runs_are_reproducible(self, mock_estimate) -> None:
        raw = [200_000, 210_000, 190_000, 250_000, 205_000, 199_000]
        results = []
        for _ in range(2):
            with patch("chronometre.orchestrator.run_batch", side_effect=list(raw)):
                results.append(benchmark(lambda: None, fast_config(sample_count=6, seed=5)))
        first, second = results
        self.assertEqual(first.batch_size, 2_000)
        self.assertEqual(first.samples, tuple(r / 2_000 for r in raw))
        self.assertEqual(first.mean_ci, second.mean_ci)
        self.assertEqual(first.variance_ci, second.variance_ci)
        self.assertEqual(first.sampling_time_ns, sum(raw))

    def test_config_edits_after_run_do_not_reach_result(self) -> None:
        config = fast_config(sample_count=3)
        result = benchmark(lambda: None, config)
        config.sample_count = 999
        config.confidence_level = 0.5
        self.assertEqual(result.config.sample_count, 3)
        self.assertEqual(result.config.confidence_level, 0.95)
        self.assertEqual(len(result.samples), 3)

    @patch("chronometre.orchestrator.resolution_ns", return_value=100.0)
    @patch("chronometre.orchestrator.estimate_execution_time", return_value=0.4)
    def test_estimate_below_resolution_uses_fallback(self, mock_estimate, mock_res) -> None:
        result = benchmark(lambda: None, fast_config(sample_count=2, fallback_batch_size=25))
        self.assertEqual(result.batch_size, 25)

    @patch("chronometre.orchestrator.estimate_execution_time", return_value=100.0)
    def test_outlier_variance_uses_batch_totals(self, mock_estimate) -> None:
        raw = [200_000, 210_000, 190_000, 250_000]
        with patch("chronometre.orchestrator.run_batch", side_effect=raw), patch(
            "chronometre.orchestrator.outlier_variance", wraps=outlier_variance
        ) as mock_effect:
            result = benchmark(lambda: None, fast_config(sample_count=4))
        mean_block, variance_block, n = mock_effect.call_args.args
        self.assertEqual(n, 2_000)
        self.assertAlmostEqual(mean_block, result.mean * 2_000)
        self.assertAlmostEqual(variance_block, result.variance * 2_000**2)

    def test_environment_passed_through(self) -> None:
        env = {"host": "bench-01"}
        result = Benchmark(lambda: None, fast_config(sample_count=2), environment=env).run()
        self.assertIs(result.environment, env)


class TestConvenience(unittest.TestCase):
    @patch("chronometre.orchestrator.Benchmark")
    def test_quick_benchmark_uses_quick_preset(self, mock_bench) -> None:
        quick_benchmark(lambda: None)
        config = mock_bench.call_args.args[1]
        self.assertEqual(config.sample_count, 6)
        mock_bench.return_value.run.assert_called_once()

    @patch("chronometre.orchestrator.Benchmark")
    def test_thorough_benchmark_uses_thorough_preset(self, mock_bench) -> None:
        thorough_benchmark(lambda: None, environment="env")
        self.assertEqual(mock_bench.call_args.args[1].sample_count, 100)
        self.assertEqual(mock_bench.call_args.kwargs["environment"], "env")


if __name__ == "__main__":
    unittest.main()
