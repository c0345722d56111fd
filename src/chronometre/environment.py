"""Host and interpreter metadata attached to benchmark results.

Captures the facts that most often explain a surprising number: CPU
model and frequency governor, system load, and how the running
interpreter was built (GC state, free-threading, JIT).  The orchestrator
passes the profile through untouched; nothing in the measurement path
reads it.

Every capture step is best-effort.  Failures leave default values.
"""

from __future__ import annotations

import gc
import json
import logging
import os
import platform
import subprocess
import sys
import sysconfig
import time
from dataclasses import asdict, dataclass, field
from pathlib import Path
from typing import Any

log = logging.getLogger("chronometre")


@dataclass
class EnvironmentProfile:
    """Where and how a benchmark ran."""

    # Host
    hostname: str = ""
    timestamp: str = ""
    os_name: str = ""
    os_release: str = ""
    architecture: str = ""
    cpu_model: str = "unknown"
    cpu_count: int = 0
    cpu_governor: str = ""  # Linux cpufreq scaling governor
    load_avg_1m: float = 0.0
    ram_available_gb: float = 0.0

    # Interpreter
    python_version: str = ""
    python_implementation: str = ""
    python_compiler: str = ""
    executable: str = ""
    debug_build: bool = False
    gil_enabled: bool = True
    jit_enabled: bool = False
    gc_enabled: bool = True
    gc_thresholds: list[int] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        """Serialize to a JSON-compatible dict."""
        return asdict(self)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> EnvironmentProfile:
        """Deserialize from a dict, ignoring unknown fields."""
        known = {f.name for f in cls.__dataclass_fields__.values()}
        return cls(**{k: v for k, v in data.items() if k in known})

    def to_json(self, indent: int = 2) -> str:
        return json.dumps(self.to_dict(), indent=indent)


def capture_environment() -> EnvironmentProfile:
    """Capture the current host and interpreter profile."""
    profile = EnvironmentProfile(
        hostname=platform.node(),
        timestamp=time.strftime("%Y-%m-%dT%H:%M:%S%z"),
        os_name=platform.system(),
        os_release=platform.release(),
        architecture=platform.machine(),
        cpu_count=os.cpu_count() or 0,
        python_version=platform.python_version(),
        python_implementation=platform.python_implementation(),
        python_compiler=platform.python_compiler(),
        executable=sys.executable,
        debug_build=bool(sysconfig.get_config_var("Py_DEBUG")),
        gc_enabled=gc.isenabled(),
        gc_thresholds=list(gc.get_threshold()),
    )
    _capture_interpreter_flags(profile)
    _capture_cpu(profile)
    _capture_load(profile)
    return profile


def _capture_interpreter_flags(profile: EnvironmentProfile) -> None:
    """Free-threading and JIT state (3.13+); older versions keep defaults."""
    is_gil_enabled = getattr(sys, "_is_gil_enabled", None)
    if callable(is_gil_enabled):
        profile.gil_enabled = bool(is_gil_enabled())

    jit = getattr(sys, "_jit", None)
    is_jit_enabled = getattr(jit, "is_enabled", None)
    if callable(is_jit_enabled):
        profile.jit_enabled = bool(is_jit_enabled())
    else:
        profile.jit_enabled = os.environ.get("PYTHON_JIT") == "1"


def _capture_cpu(profile: EnvironmentProfile) -> None:
    if sys.platform == "linux":
        try:
            for line in Path("/proc/cpuinfo").read_text().splitlines():
                if line.startswith("model name"):
                    profile.cpu_model = line.split(":", 1)[1].strip()
                    break
        except OSError:
            pass
        governor = Path("/sys/devices/system/cpu/cpu0/cpufreq/scaling_governor")
        try:
            profile.cpu_governor = governor.read_text().strip()
        except OSError:
            pass
    elif sys.platform == "darwin":
        try:
            proc = subprocess.run(
                ["sysctl", "-n", "machdep.cpu.brand_string"],
                capture_output=True,
                text=True,
                timeout=5,
            )
            if proc.returncode == 0 and proc.stdout.strip():
                profile.cpu_model = proc.stdout.strip()
        except (OSError, subprocess.SubprocessError):
            pass
    else:
        log.debug("CPU info capture not supported on %s", sys.platform)


def _capture_load(profile: EnvironmentProfile) -> None:
    try:
        profile.load_avg_1m = round(os.getloadavg()[0], 2)
    except (AttributeError, OSError):
        pass

    if sys.platform == "linux":
        try:
            for line in Path("/proc/meminfo").read_text().splitlines():
                if line.startswith("MemAvailable:"):
                    profile.ram_available_gb = round(int(line.split()[1]) / (1024 * 1024), 2)
                    break
        except (OSError, ValueError):
            pass


def format_environment(profile: EnvironmentProfile) -> str:
    """Format an environment profile for terminal display."""
    lines = [
        "Environment",
        "─" * 11,
    ]
    cpu = f"{profile.cpu_model} ({profile.cpu_count} logical CPUs)"
    if profile.cpu_governor:
        cpu += f", governor {profile.cpu_governor}"
    lines.append(f"CPU:      {cpu}")
    lines.append(f"OS:       {profile.os_name} {profile.os_release} ({profile.architecture})")
    load = f"Load:     {profile.load_avg_1m}"
    if profile.ram_available_gb:
        load += f", {profile.ram_available_gb:.1f} GB RAM available"
    lines.append(load)

    flags: list[str] = []
    if profile.debug_build:
        flags.append("debug")
    if not profile.gil_enabled:
        flags.append("free-threaded")
    if profile.jit_enabled:
        flags.append("JIT")
    if not profile.gc_enabled:
        flags.append("GC disabled")
    python = f"Python:   {profile.python_version} ({profile.python_implementation})"
    if flags:
        python += f" [{', '.join(flags)}]"
    lines.append(python)
    lines.append(f"Compiler: {profile.python_compiler}")
    lines.append(f"GC:       thresholds {tuple(profile.gc_thresholds)}")
    lines.append(f"Hostname: {profile.hostname}")
    lines.append(f"Time:     {profile.timestamp}")
    return "\n".join(lines)
