"""
Pytest configuration and shared fixtures for the perfwatch test suite.

This module provides common fixtures, an in-memory process table with fake
performance counters, and configuration helpers for all test modules.
"""

import sys
import tempfile
import shutil
from pathlib import Path
from typing import Callable, Dict, List, Optional, Sequence, Tuple

import pytest

# Add src to Python path for testing
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from perfwatch.counters import (  # noqa: E402
    ID_PROCESS,
    PROCESS_CATEGORY,
    AbstractCounterTable,
    Counter,
    instance_base_name,
)
from perfwatch.models import CounterSpec, MonitorConfig, ThresholdConfig  # noqa: E402
from perfwatch.orchestration import SampleSink  # noqa: E402
from perfwatch.validation import (  # noqa: E402
    CounterBindError,
    CounterReadError,
    ProcessVanishedError,
)


# ============================================================================
# Test Configuration
# ============================================================================


def pytest_configure(config):
    """Configure pytest with custom markers and settings."""
    config.addinivalue_line("markers", "unit: mark test as a unit test")
    config.addinivalue_line("markers", "integration: mark test as an integration test")
    config.addinivalue_line("markers", "slow: mark test as slow running")


# ============================================================================
# Fake Counter Table
# ============================================================================

CounterKey = Tuple[str, str, Optional[str]]

SYSTEM_CPU_KEY: CounterKey = ("Processor", "% Processor Time", "_Total")
FREE_MEMORY_KEY: CounterKey = ("Memory", "Available Bytes", None)

MB = 1024 * 1024


def _key(spec: CounterSpec) -> CounterKey:
    return (spec.category, spec.counter, spec.instance)


class FakeCounter(Counter):
    """A counter whose readings come from a FakeCounterTable."""

    def __init__(self, spec: CounterSpec, table: "FakeCounterTable", pid: Optional[int] = None):
        super().__init__(spec)
        self.table = table
        self.pid = pid

    def read(self) -> float:
        if self.closed:
            raise CounterReadError(f"{self.spec} read after close", self.spec)
        return self.table.read_value(self)


class FakeCounterTable(AbstractCounterTable):
    """
    In-memory process table.

    Processes are added with `add_process`, their CPU/memory set with
    `set_usage`. Failures are injected with `fail_bind` and `read_errors`.
    """

    def __init__(self):
        # pid -> (name, parent pid)
        self.processes: Dict[int, Tuple[str, Optional[int]]] = {}
        # pid -> {"cpu": percent, "memory": bytes}
        self.usage: Dict[int, Dict[str, float]] = {}
        # Extra parent -> child links, pointing at pids that may not exist.
        self.extra_children: Dict[int, List[int]] = {}
        self.values: Dict[CounterKey, float] = {
            SYSTEM_CPU_KEY: 25.0,
            FREE_MEMORY_KEY: 4096.0 * MB,
        }
        # Remaining forced failures per counter key.
        self.bind_failures: Dict[CounterKey, int] = {}
        # Exceptions raised, in order, by the next reads of non-"ID Process" counters.
        self.read_errors: List[Exception] = []
        self.bound: List[FakeCounter] = []
        self.bind_log: List[CounterSpec] = []

    # --- Test setup helpers ---

    def add_process(
        self,
        pid: int,
        name: str,
        parent: Optional[int] = None,
        cpu: float = 0.0,
        memory_bytes: float = 0.0,
    ) -> None:
        self.processes[pid] = (name, parent)
        self.usage[pid] = {"cpu": cpu, "memory": memory_bytes}

    def remove_process(self, pid: int) -> None:
        self.processes.pop(pid, None)

    def set_usage(self, pid: int, cpu: Optional[float] = None, memory_bytes: Optional[float] = None) -> None:
        if cpu is not None:
            self.usage[pid]["cpu"] = cpu
        if memory_bytes is not None:
            self.usage[pid]["memory"] = memory_bytes

    def fail_bind(self, category: str, counter: str, instance: Optional[str] = None, times: int = 1) -> None:
        self.bind_failures[(category, counter, instance)] = times

    def open_counters(self) -> List[FakeCounter]:
        return [counter for counter in self.bound if not counter.closed]

    def instance_map(self) -> Dict[str, int]:
        groups: Dict[str, List[int]] = {}
        for pid in sorted(self.processes):
            groups.setdefault(instance_base_name(self.processes[pid][0]), []).append(pid)
        instances = {}
        for base, pids in groups.items():
            for index, pid in enumerate(pids):
                instances[base if index == 0 else f"{base}#{index}"] = pid
        return instances

    # --- AbstractCounterTable ---

    def process_exists(self, pid: int) -> bool:
        return pid in self.processes

    def process_name(self, pid: int) -> str:
        if pid not in self.processes:
            raise ProcessVanishedError(pid)
        return self.processes[pid][0]

    def child_pids(self, pid: int) -> List[int]:
        if pid not in self.processes:
            raise ProcessVanishedError(pid)
        children = [child for child, (_, parent) in self.processes.items() if parent == pid]
        return sorted(children) + self.extra_children.get(pid, [])

    def instance_names(self, category: str) -> List[str]:
        if category != PROCESS_CATEGORY:
            return []
        instances = self.instance_map()
        return sorted(instances, key=instances.get)

    def bind(self, spec: CounterSpec) -> Counter:
        self.bind_log.append(spec)
        key = _key(spec)
        remaining = self.bind_failures.get(key, 0)
        if remaining:
            self.bind_failures[key] = remaining - 1
            raise CounterBindError(f"Injected bind failure for {spec}", spec)

        pid = None
        if spec.category == PROCESS_CATEGORY:
            pid = self.instance_map().get(spec.instance)
            if pid is None:
                raise CounterBindError(f"Unknown process instance '{spec.instance}'", spec)
        elif key not in self.values:
            raise CounterBindError(f"Unknown counter {spec}", spec)

        counter = FakeCounter(spec, self, pid)
        self.bound.append(counter)
        return counter

    def read_value(self, counter: FakeCounter) -> float:
        spec = counter.spec
        if spec.counter != ID_PROCESS and self.read_errors:
            raise self.read_errors.pop(0)
        if counter.pid is None:
            return self.values[_key(spec)]
        if counter.pid not in self.processes:
            raise ProcessVanishedError(counter.pid)
        if spec.counter == ID_PROCESS:
            return float(counter.pid)
        if spec.counter == "% Processor Time":
            return self.usage[counter.pid]["cpu"]
        return self.usage[counter.pid]["memory"]


class RecordingSink(SampleSink):
    """Sample sink that keeps everything it receives."""

    def __init__(self):
        self.headers: List[Tuple[str, ...]] = []
        self.samples = []

    def write_header(self, names: Sequence[str]) -> None:
        self.headers.append(tuple(names))

    def write_sample(self, sample) -> None:
        self.samples.append(sample)


class ScriptedSleep:
    """
    Replacement for time.sleep driving a sampling run.

    Interval sleeps are counted; `actions[n]` runs on the n-th sleep (1-based)
    and the root process is removed on sleep number `stop_after`.
    """

    def __init__(
        self,
        table: FakeCounterTable,
        root_pid: int,
        stop_after: int,
        actions: Optional[Dict[int, Callable[[], None]]] = None,
    ):
        self.table = table
        self.root_pid = root_pid
        self.stop_after = stop_after
        self.actions = actions or {}
        self.calls: List[float] = []

    def __call__(self, seconds: float) -> None:
        self.calls.append(seconds)
        count = len(self.calls)
        if count in self.actions:
            self.actions[count]()
        if count >= self.stop_after:
            self.table.remove_process(self.root_pid)


# ============================================================================
# Core Fixtures
# ============================================================================


@pytest.fixture
def temp_dir():
    """Create a temporary directory for test files."""
    temp_path = tempfile.mkdtemp()
    yield Path(temp_path)
    shutil.rmtree(temp_path, ignore_errors=True)


@pytest.fixture
def fake_table():
    """A process table with a root service (pid 100) and two 'Worker' children."""
    table = FakeCounterTable()
    table.add_process(100, "Service.exe", cpu=10.0, memory_bytes=200 * MB)
    table.add_process(101, "Worker.exe", parent=100, cpu=5.0, memory_bytes=50 * MB)
    table.add_process(102, "Worker.exe", parent=100, cpu=7.5, memory_bytes=60 * MB)
    return table


@pytest.fixture
def empty_table():
    return FakeCounterTable()


@pytest.fixture
def recording_sink():
    return RecordingSink()


@pytest.fixture
def scripted_sleep():
    """The ScriptedSleep class, for tests that drive the sampling loop."""
    return ScriptedSleep


@pytest.fixture
def make_monitor_config():
    """Factory for a fast MonitorConfig; keyword arguments override fields."""

    def _make(**overrides) -> MonitorConfig:
        values = dict(
            interval_ms=10,
            monitoring_delay_ms=0,
            delay_on_exception_ms=0,
            recreate_child_counters_intervals=0,
            excluded_process_names=["conhost"],
            thresholds=ThresholdConfig(cpu_percent=0, memory_mb=0),
        )
        values.update(overrides)
        return MonitorConfig(**values)

    return _make


# ============================================================================
# Configuration Fixtures
# ============================================================================


@pytest.fixture
def sample_config_data(temp_dir):
    """Sample configuration data for testing."""
    return {
        "monitor": {
            "enabled": True,
            "process_name": "Service",
            "collection": {
                "interval_ms": 500,
                "monitoring_delay_ms": 1000,
                "delay_on_exception_ms": 2000,
                "recreate_child_counters_intervals": 10,
                "excluded_process_names": ["conhost", "perfwatch"],
                "max_tree_depth": 16,
            },
            "columns": {
                "enable_system_usage": True,
                "enable_child_services_usage": True,
                "enable_named_counters": True,
            },
            "thresholds": {"cpu_percent": 80, "memory_mb": 1024},
            "logging": {
                "log_dir": str(temp_dir / "logs"),
                "level": "debug",
                "sample_log_max_bytes": 4096,
                "sample_log_backup_count": 2,
                "console_echo": False,
                "value_width": 6,
            },
            "counters": [
                {
                    "column": "CtxSw/s",
                    "category": "System",
                    "counter": "Context Switches/sec",
                },
                {
                    "column": "NetRecv",
                    "category": "Network Interface",
                    "counter": "Bytes Received/sec",
                    "instance": "_Total",
                },
            ],
        }
    }


@pytest.fixture
def config_files(temp_dir, sample_config_data):
    """Create a temporary config.toml for testing."""
    import toml

    config_file = temp_dir / "config.toml"
    with open(config_file, "w") as f:
        toml.dump(sample_config_data, f)

    return {"config": config_file, "dir": temp_dir}


@pytest.fixture(autouse=True)
def clear_config_after_test():
    """Automatically clear configuration cache after each test."""
    original_config_path = Path(__file__).parent.parent / "conf" / "config.toml"

    yield  # Run the test

    from perfwatch.config import clear_config_cache, set_config_path

    clear_config_cache()
    set_config_path(original_config_path)
