"""Tests for chronometre.cli — the click command-line interface."""

from __future__ import annotations

import json
import logging
import unittest
from pathlib import Path

import click
from click.testing import CliRunner

from chronometre.cli import main, resolve_target

TARGET_MODULE = """\
def work():
    return sum(range(200))


def make_work():
    data = list(range(50))
    return lambda: sorted(data)


def broken():
    raise ValueError("broken computation")


not_callable = 42
"""

FAST_RUN = [
    "--samples",
    "3",
    "--target-time",
    "100us",
    "--warmup",
    "0",
    "--overhead",
    "0ns",
    "--bootstrap",
    "1000",
    "--no-gc-before-sample",
    "--no-environment",
]


def tearDownModule() -> None:
    # Handlers installed by the CLI point at CliRunner streams that are now closed.
    logging.getLogger("chronometre").handlers.clear()


def _json_output(output: str) -> dict:
    # Log records share the captured stream; the JSON document comes last.
    return json.loads(output[output.index("{") :])


class _TargetModuleCase(unittest.TestCase):
    """Runs each test inside a directory holding an importable target module."""

    module_name = "chrono_target"

    def run_cli(self, args: list[str]):
        runner = CliRunner()
        with runner.isolated_filesystem():
            Path(f"{self.module_name}.py").write_text(TARGET_MODULE)
            return runner.invoke(main, args)


# ---------------------------------------------------------------------------
# Help and info commands
# ---------------------------------------------------------------------------


class TestHelp(unittest.TestCase):
    """Tests for the group and subcommand help."""

    def test_group_help(self) -> None:
        result = CliRunner().invoke(main, ["--help"])
        self.assertEqual(result.exit_code, 0)
        for command in ("run", "calibrate", "system"):
            self.assertIn(command, result.output)

    def test_run_help(self) -> None:
        result = CliRunner().invoke(main, ["run", "--help"])
        self.assertEqual(result.exit_code, 0)
        for option in ("--samples", "--target-time", "--overhead", "--quick", "--profile"):
            self.assertIn(option, result.output)

    def test_version(self) -> None:
        result = CliRunner().invoke(main, ["--version"])
        self.assertEqual(result.exit_code, 0)
        self.assertIn("0.1.0", result.output)


class TestSystem(unittest.TestCase):
    """Tests for the system command."""

    def test_system_runs(self) -> None:
        result = CliRunner().invoke(main, ["system"])
        self.assertEqual(result.exit_code, 0)
        self.assertIn("Environment", result.output)
        self.assertIn("Python:", result.output)

    def test_system_json(self) -> None:
        result = CliRunner().invoke(main, ["system", "--json"])
        self.assertEqual(result.exit_code, 0)
        data = json.loads(result.output)
        self.assertIn("python_version", data)
        self.assertIn("cpu_model", data)


class TestCalibrate(unittest.TestCase):
    """Tests for the calibrate command."""

    def test_calibrate_json(self) -> None:
        result = CliRunner().invoke(main, ["-q", "calibrate", "--invocations", "1000", "--json"])
        self.assertEqual(result.exit_code, 0, result.output)
        data = _json_output(result.output)
        self.assertEqual(data["invocations"], 1000)
        self.assertGreaterEqual(data["per_invocation_ns"], 0)
        self.assertFalse(data["pinned"])

    def test_calibrate_text(self) -> None:
        result = CliRunner().invoke(main, ["-q", "calibrate", "--invocations", "1000"])
        self.assertEqual(result.exit_code, 0, result.output)
        self.assertIn("per call (1000 calls)", result.output)

    def test_calibrate_rejects_zero(self) -> None:
        result = CliRunner().invoke(main, ["calibrate", "--invocations", "0"])
        self.assertNotEqual(result.exit_code, 0)


# ---------------------------------------------------------------------------
# run
# ---------------------------------------------------------------------------


class TestRun(_TargetModuleCase):
    """Tests for the run command against a real target module."""

    module_name = "chrono_target_run"

    def test_run_json(self) -> None:
        result = self.run_cli(
            ["-q", "run", f"{self.module_name}:work", "--json", "--seed", "7", *FAST_RUN]
        )
        self.assertEqual(result.exit_code, 0, result.output)
        data = _json_output(result.output)
        self.assertEqual(len(data["samples"]), 3)
        self.assertEqual(data["config"]["sample_count"], 3)
        self.assertEqual(data["config"]["seed"], 7)
        self.assertFalse(data["config"]["gc_before_sample"])
        self.assertTrue(data["overhead"]["pinned"])
        self.assertNotIn("environment", data)

    def test_run_text(self) -> None:
        result = self.run_cli(["-q", "run", f"{self.module_name}:work", *FAST_RUN])
        self.assertEqual(result.exit_code, 0, result.output)
        self.assertIn("Evaluation count:", result.output)
        self.assertIn("in 3 samples", result.output)

    def test_run_factory(self) -> None:
        result = self.run_cli(
            ["-q", "run", f"{self.module_name}:make_work", "--factory", "--json", *FAST_RUN]
        )
        self.assertEqual(result.exit_code, 0, result.output)
        self.assertEqual(len(_json_output(result.output)["samples"]), 3)

    def test_verbose_flag_selects_detailed_report(self) -> None:
        result = self.run_cli(["-v", "run", f"{self.module_name}:work", *FAST_RUN])
        self.assertEqual(result.exit_code, 0, result.output)
        self.assertIn("Warm-up", result.output)
        self.assertIn("Sampling time", result.output)

    def test_environment_alone_keeps_short_report(self) -> None:
        args = [a for a in FAST_RUN if a != "--no-environment"]
        result = self.run_cli(["-q", "run", f"{self.module_name}:work", *args])
        self.assertEqual(result.exit_code, 0, result.output)
        self.assertIn("Evaluation count:", result.output)
        self.assertNotIn("Sampling time", result.output)
        self.assertNotIn("Environment", result.output)

    def test_verbose_report_includes_environment(self) -> None:
        args = [a for a in FAST_RUN if a != "--no-environment"]
        result = self.run_cli(["-v", "run", f"{self.module_name}:work", *args])
        self.assertEqual(result.exit_code, 0, result.output)
        self.assertIn("Environment", result.output)


class TestRunProfile(_TargetModuleCase):
    """Tests for run --profile."""

    module_name = "chrono_target_profile"

    def test_profile_values_apply(self) -> None:
        runner = CliRunner()
        with runner.isolated_filesystem():
            Path(f"{self.module_name}.py").write_text(TARGET_MODULE)
            Path("bench.yaml").write_text(
                "sample_count: 4\n"
                "target_time: 100us\n"
                "warmup: 0\n"
                "pinned_overhead: 0ns\n"
                "gc_before_sample: false\n"
            )
            result = runner.invoke(
                main,
                [
                    "-q",
                    "run",
                    f"{self.module_name}:work",
                    "--profile",
                    "bench.yaml",
                    "--no-environment",
                    "--json",
                ],
            )
        self.assertEqual(result.exit_code, 0, result.output)
        data = _json_output(result.output)
        self.assertEqual(data["config"]["sample_count"], 4)
        self.assertEqual(data["config"]["target_sample_duration_ns"], 100_000)

    def test_profile_unknown_key(self) -> None:
        runner = CliRunner()
        with runner.isolated_filesystem():
            Path(f"{self.module_name}.py").write_text(TARGET_MODULE)
            Path("bench.yaml").write_text("iterations: 4\n")
            result = runner.invoke(
                main, ["run", f"{self.module_name}:work", "--profile", "bench.yaml"]
            )
        self.assertEqual(result.exit_code, 2)
        self.assertIn("Unknown configuration key", result.output)


class TestRunErrors(_TargetModuleCase):
    """Tests for run error handling."""

    module_name = "chrono_target_errors"

    def test_invalid_configuration_exits_2(self) -> None:
        args = [a if a != "3" else "1" for a in FAST_RUN]
        result = self.run_cli(["-q", "run", f"{self.module_name}:work", *args])
        self.assertEqual(result.exit_code, 2)
        self.assertIn("sample_count", result.output)

    def test_computation_failure_exits_1(self) -> None:
        result = self.run_cli(["-q", "run", f"{self.module_name}:broken", *FAST_RUN])
        self.assertEqual(result.exit_code, 1)
        self.assertIn("ValueError: broken computation", result.output)

    def test_not_callable(self) -> None:
        result = self.run_cli(["run", f"{self.module_name}:not_callable", *FAST_RUN])
        self.assertNotEqual(result.exit_code, 0)
        self.assertIn("not callable", result.output)

    def test_quick_and_thorough_conflict(self) -> None:
        result = self.run_cli(["run", f"{self.module_name}:work", "--quick", "--thorough"])
        self.assertNotEqual(result.exit_code, 0)
        self.assertIn("mutually exclusive", result.output)

    def test_bad_duration(self) -> None:
        result = self.run_cli(["run", f"{self.module_name}:work", "--target-time", "soon"])
        self.assertNotEqual(result.exit_code, 0)
        self.assertIn("Invalid duration", result.output)


class TestResolveTarget(unittest.TestCase):
    """Tests for resolve_target()."""

    def test_resolves_dotted_attribute(self) -> None:
        self.assertIs(resolve_target("json:decoder.JSONDecoder"), json.decoder.JSONDecoder)

    def test_missing_colon(self) -> None:
        with self.assertRaises(click.BadParameter):
            resolve_target("json")

    def test_missing_module(self) -> None:
        with self.assertRaises(click.BadParameter):
            resolve_target("no_such_module_xyz:thing")

    def test_missing_attribute(self) -> None:
        with self.assertRaises(click.BadParameter):
            resolve_target("json:no_such_attribute")


if __name__ == "__main__":
    unittest.main()
