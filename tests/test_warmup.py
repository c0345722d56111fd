"""Tests for chronometre.warmup."""

from __future__ import annotations

import unittest
from unittest.mock import MagicMock, patch

from chronometre.warmup import WarmupSummary, _is_stable, warm_up


class TestWarmUp(unittest.TestCase):
    def test_zero_budget_makes_no_calls(self) -> None:
        computation = MagicMock()
        summary = warm_up(computation, 0)
        computation.assert_not_called()
        self.assertEqual(summary, WarmupSummary(executions=0, elapsed_ns=0))

    def test_zero_execution_limit_makes_no_calls(self) -> None:
        computation = MagicMock()
        summary = warm_up(computation, 1_000_000, max_executions=0)
        computation.assert_not_called()
        self.assertEqual(summary.executions, 0)

    @patch("chronometre.warmup.run_batch", return_value=10**9)
    def test_slow_computation_runs_once(self, mock_run) -> None:
        summary = warm_up(lambda: None, 1_000)
        self.assertEqual(summary.executions, 1)
        self.assertEqual(summary.elapsed_ns, 10**9)
        mock_run.assert_called_once()

    @patch("chronometre.warmup.run_batch", return_value=100)
    def test_runs_until_budget_spent(self, mock_run) -> None:
        summary = warm_up(lambda: None, 1_000)
        self.assertEqual(summary.executions, 10)
        self.assertEqual(summary.elapsed_ns, 1_000)

    @patch("chronometre.warmup.run_batch", return_value=0)
    def test_execution_limit(self, mock_run) -> None:
        summary = warm_up(lambda: None, 1_000_000, max_executions=50)
        self.assertEqual(summary.executions, 50)
        self.assertEqual(mock_run.call_count, 50)

    @patch("chronometre.warmup.run_batch", return_value=100)
    def test_steady_timings_are_stable(self, mock_run) -> None:
        self.assertTrue(warm_up(lambda: None, 2_000).stabilized)

    def test_exception_propagates(self) -> None:
        def boom() -> None:
            raise RuntimeError("nope")

        with self.assertRaises(RuntimeError):
            warm_up(boom, 1_000_000)

    def test_real_budget(self) -> None:
        summary = warm_up(lambda: None, 1_000_000)
        self.assertGreaterEqual(summary.executions, 1)
        self.assertGreaterEqual(summary.elapsed_ns, 1_000_000)

    def test_to_dict(self) -> None:
        d = WarmupSummary(executions=3, elapsed_ns=900, stabilized=True).to_dict()
        self.assertEqual(d, {"executions": 3, "elapsed_ns": 900, "stabilized": True})


class TestIsStable(unittest.TestCase):
    def test_too_short(self) -> None:
        self.assertFalse(_is_stable([100] * 7))

    def test_drifting(self) -> None:
        self.assertFalse(_is_stable([100] * 8 + [200] * 4 + [400] * 4))

    def test_settled_after_slow_start(self) -> None:
        self.assertTrue(_is_stable([900] * 8 + [100] * 8))

    def test_all_zero(self) -> None:
        self.assertTrue(_is_stable([0] * 8))


if __name__ == "__main__":
    unittest.main()
