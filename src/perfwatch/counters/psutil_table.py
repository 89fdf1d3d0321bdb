"""
Counter table implementation using the 'psutil' library.

This module provides the PsutilCounterTable class, which exposes the process
table and a set of Windows-style performance counters (category, counter,
instance) on top of psutil, so the same counter paths work on every platform
psutil supports.

Supported counters:

    Process(<instance>)\\% Processor Time   CPU of one process, normalised to all cores
    Process(<instance>)\\Private Bytes      private memory (RSS where psutil has no 'private')
    Process(<instance>)\\Working Set        resident memory
    Process(<instance>)\\Thread Count
    Process(<instance>)\\ID Process         pid behind an instance name
    Processor(_Total|<n>)\\% Processor Time
    Memory\\Available Bytes, Available MBytes, Committed Bytes, % Committed Bytes In Use
    System\\Processes, Context Switches/sec, Processor Queue Length
    Network Interface(_Total|<nic>)\\Bytes Sent/sec, Bytes Received/sec,
                                     Packets Sent/sec, Packets Received/sec
    PhysicalDisk(_Total|<disk>)\\Disk Read Bytes/sec, Disk Write Bytes/sec

Per-process instance names follow the Windows convention: processes sharing
an executable name are ordered by pid and named `name`, `name#1`, `name#2`...
"""

import logging
import time
from collections import defaultdict
from typing import Callable, Dict, List, Optional

import psutil

from ..models.runtime import CounterSpec
from ..validation import CounterBindError, CounterError, CounterReadError, ProcessVanishedError
from .base import (
    AVAILABLE_BYTES,
    ID_PROCESS,
    MEMORY_CATEGORY,
    PRIVATE_BYTES,
    PROCESS_CATEGORY,
    PROCESSOR_CATEGORY,
    PROCESSOR_TIME,
    TOTAL_INSTANCE,
    AbstractCounterTable,
    Counter,
)

logger = logging.getLogger(__name__)

# Exceptions a psutil call may raise that mean "this reading is not available".
_READ_ERRORS = (psutil.Error, OSError, KeyError, IndexError, AttributeError, TypeError, ValueError)


def instance_base_name(process_name: str) -> str:
    """Return the counter instance base name for an executable name ('svc.exe' -> 'svc')."""
    if process_name.lower().endswith(".exe"):
        return process_name[:-4]
    return process_name


class _PsutilCounter(Counter):
    """Common error translation for counters backed by psutil calls."""

    def __init__(self, spec: CounterSpec, fetch: Callable[[], float]):
        super().__init__(spec)
        self._fetch = fetch

    def _guarded_fetch(self) -> float:
        try:
            return float(self._fetch())
        except psutil.NoSuchProcess as e:
            raise ProcessVanishedError(e.pid, f"Process behind {self.spec} exited") from e
        except _READ_ERRORS as e:
            raise CounterReadError(f"Failed to read {self.spec}: {e}", self.spec) from e

    def read(self) -> float:
        if self.closed:
            raise CounterReadError(f"Counter {self.spec} is closed", self.spec)
        return self._guarded_fetch()


class _GaugeCounter(_PsutilCounter):
    """A counter whose reading is the instantaneous value of `fetch`."""


class _RateCounter(_PsutilCounter):
    """
    A per-second counter derived from a monotonically increasing total.

    The first reading after binding reports the rate since binding.
    """

    def __init__(self, spec: CounterSpec, fetch: Callable[[], float]):
        super().__init__(spec, fetch)
        self._last_value = self._guarded_fetch()
        self._last_time = time.monotonic()

    def read(self) -> float:
        value = super().read()
        now = time.monotonic()
        elapsed = now - self._last_time
        rate = (value - self._last_value) / elapsed if elapsed > 0 else 0.0
        self._last_value, self._last_time = value, now
        # Totals reset when an interface goes away; report no traffic rather than a negative rate.
        return max(rate, 0.0)


class _ProcessCpuCounter(_PsutilCounter):
    """
    CPU usage of one process in percent of the whole machine.

    psutil reports percent of a single core, so the value is divided by the
    number of logical CPUs. The first reading after binding covers the time
    since binding.
    """

    def __init__(self, spec: CounterSpec, proc: psutil.Process, cpu_count: int):
        super().__init__(spec, lambda: proc.cpu_percent(interval=None) / cpu_count)
        # Prime the measurement window.
        self._guarded_fetch()


class _ProcessIdCounter(Counter):
    """Reports the pid an instance name was assigned to in the last instance snapshot."""

    def __init__(self, spec: CounterSpec, pid: int):
        super().__init__(spec)
        self._pid = pid

    def read(self) -> float:
        return float(self._pid)


def _private_bytes(proc: psutil.Process) -> int:
    mem = proc.memory_info()
    private = getattr(mem, "private", None)
    return private if private is not None else mem.rss


class PsutilCounterTable(AbstractCounterTable):
    """
    Process table and performance counters backed by psutil.

    Attributes:
        cpu_count: Number of logical CPUs used to normalise per-process CPU.
    """

    def __init__(self):
        self.cpu_count: int = psutil.cpu_count() or 1
        # Instance name -> pid, from the most recent per-process instance snapshot.
        self._process_instances: Dict[str, int] = {}
        # Process objects for pids checked with process_exists(), to detect pid reuse.
        self._watched: Dict[int, psutil.Process] = {}
        logger.debug(f"PsutilCounterTable initialized ({self.cpu_count} logical CPUs)")

    # --- Process table ---

    def process_exists(self, pid: int) -> bool:
        proc = self._watched.get(pid)
        if proc is None:
            try:
                proc = psutil.Process(pid)
            except (psutil.NoSuchProcess, ValueError):
                return False
            except psutil.Error as e:
                logger.warning(f"Cannot query process {pid}: {e}")
                return False
            self._watched[pid] = proc
        try:
            return proc.is_running() and proc.status() != psutil.STATUS_ZOMBIE
        except psutil.NoSuchProcess:
            return False
        except psutil.AccessDenied:
            return proc.is_running()

    def process_name(self, pid: int) -> str:
        try:
            return psutil.Process(pid).name()
        except psutil.NoSuchProcess as e:
            raise ProcessVanishedError(pid) from e
        except psutil.Error as e:
            raise CounterError(f"Cannot read name of process {pid}: {e}") from e

    def child_pids(self, pid: int) -> List[int]:
        try:
            return [child.pid for child in psutil.Process(pid).children(recursive=False)]
        except psutil.NoSuchProcess as e:
            raise ProcessVanishedError(pid) from e
        except psutil.Error as e:
            raise CounterError(f"Cannot enumerate children of process {pid}: {e}") from e

    def find_pids_by_name(self, name: str) -> List[int]:
        """Return the pids of processes whose name matches `name` (case-insensitive, '.exe' ignored)."""
        wanted = instance_base_name(name).lower()
        pids = []
        for proc in psutil.process_iter(["pid", "name"]):
            proc_name = proc.info["name"] or ""
            if instance_base_name(proc_name).lower() == wanted:
                pids.append(proc.info["pid"])
        return sorted(pids)

    # --- Instance names ---

    def instance_names(self, category: str) -> List[str]:
        category_key = category.lower()
        if category_key == PROCESS_CATEGORY.lower():
            return list(self._snapshot_process_instances())
        if category_key == PROCESSOR_CATEGORY.lower():
            return [TOTAL_INSTANCE] + [str(i) for i in range(self.cpu_count)]
        if category_key == "network interface":
            return [TOTAL_INSTANCE] + sorted(psutil.net_io_counters(pernic=True))
        if category_key == "physicaldisk":
            return [TOTAL_INSTANCE] + sorted(psutil.disk_io_counters(perdisk=True) or {})
        return []

    def _snapshot_process_instances(self) -> Dict[str, int]:
        groups: Dict[str, List[int]] = defaultdict(list)
        for proc in psutil.process_iter(["pid", "name"]):
            name = proc.info["name"]
            if not name:
                continue
            groups[instance_base_name(name)].append(proc.info["pid"])

        instances: Dict[str, int] = {}
        for base, pids in groups.items():
            for index, pid in enumerate(sorted(pids)):
                instances[base if index == 0 else f"{base}#{index}"] = pid
        self._process_instances = instances
        logger.debug(f"Snapshot of {len(instances)} process instances taken")
        return instances

    # --- Binding ---

    def bind(self, spec: CounterSpec) -> Counter:
        try:
            counter = self._create(spec)
        except CounterBindError:
            raise
        except ProcessVanishedError as e:
            raise CounterBindError(f"Cannot bind {spec}: process {e.pid} exited", spec) from e
        except (CounterError, *_READ_ERRORS) as e:
            raise CounterBindError(f"Cannot bind {spec}: {e}", spec) from e
        logger.debug(f"Bound counter {spec}")
        return counter

    def _create(self, spec: CounterSpec) -> Counter:
        category = spec.category.lower()
        if category == PROCESS_CATEGORY.lower():
            return self._create_process_counter(spec)
        if category == PROCESSOR_CATEGORY.lower():
            return self._create_processor_counter(spec)
        if category == MEMORY_CATEGORY.lower():
            return self._create_memory_counter(spec)
        if category == "system":
            return self._create_system_counter(spec)
        if category == "network interface":
            return self._create_network_counter(spec)
        if category == "physicaldisk":
            return self._create_disk_counter(spec)
        raise CounterBindError(f"Unknown counter category '{spec.category}'", spec)

    def _resolve_instance_pid(self, spec: CounterSpec) -> int:
        if not spec.instance:
            raise CounterBindError(f"{spec} requires an instance name", spec)
        pid = self._process_instances.get(spec.instance)
        if pid is None:
            pid = self._snapshot_process_instances().get(spec.instance)
        if pid is None:
            raise CounterBindError(f"Unknown process instance '{spec.instance}'", spec)
        return pid

    def _create_process_counter(self, spec: CounterSpec) -> Counter:
        pid = self._resolve_instance_pid(spec)
        counter_name = spec.counter.lower()
        if counter_name == ID_PROCESS.lower():
            return _ProcessIdCounter(spec, pid)

        proc = psutil.Process(pid)
        if counter_name == PROCESSOR_TIME.lower():
            return _ProcessCpuCounter(spec, proc, self.cpu_count)
        if counter_name == PRIVATE_BYTES.lower():
            counter = _GaugeCounter(spec, lambda: _private_bytes(proc))
        elif counter_name == "working set":
            counter = _GaugeCounter(spec, lambda: proc.memory_info().rss)
        elif counter_name == "thread count":
            counter = _GaugeCounter(spec, proc.num_threads)
        else:
            raise CounterBindError(f"Unknown process counter '{spec.counter}'", spec)
        counter.read()
        return counter

    def _create_processor_counter(self, spec: CounterSpec) -> Counter:
        if spec.counter.lower() != PROCESSOR_TIME.lower():
            raise CounterBindError(f"Unknown processor counter '{spec.counter}'", spec)
        instance = spec.instance or TOTAL_INSTANCE
        if instance == TOTAL_INSTANCE:
            fetch = lambda: psutil.cpu_percent(interval=None)
        else:
            index = int(instance)
            fetch = lambda: psutil.cpu_percent(interval=None, percpu=True)[index]
        counter = _GaugeCounter(spec, fetch)
        # Prime the measurement window; psutil's first call returns 0.
        counter.read()
        return counter

    def _create_memory_counter(self, spec: CounterSpec) -> Counter:
        fetchers: Dict[str, Callable[[], float]] = {
            AVAILABLE_BYTES.lower(): lambda: psutil.virtual_memory().available,
            "available mbytes": lambda: psutil.virtual_memory().available // (1024 * 1024),
            "committed bytes": lambda: psutil.virtual_memory().used,
            "% committed bytes in use": lambda: psutil.virtual_memory().percent,
        }
        return self._gauge_from(spec, fetchers)

    def _create_system_counter(self, spec: CounterSpec) -> Counter:
        if spec.counter.lower() == "context switches/sec":
            return _RateCounter(spec, lambda: psutil.cpu_stats().ctx_switches)
        fetchers: Dict[str, Callable[[], float]] = {
            "processes": lambda: len(psutil.pids()),
            "processor queue length": lambda: psutil.getloadavg()[0],
        }
        return self._gauge_from(spec, fetchers)

    def _create_network_counter(self, spec: CounterSpec) -> Counter:
        fields = {
            "bytes sent/sec": "bytes_sent",
            "bytes received/sec": "bytes_recv",
            "packets sent/sec": "packets_sent",
            "packets received/sec": "packets_recv",
        }
        field_name = fields.get(spec.counter.lower())
        if field_name is None:
            raise CounterBindError(f"Unknown network counter '{spec.counter}'", spec)
        nic = self._non_total_instance(spec)
        if nic is None:
            fetch = lambda: getattr(psutil.net_io_counters(), field_name)
        else:
            fetch = lambda: getattr(psutil.net_io_counters(pernic=True)[nic], field_name)
        return _RateCounter(spec, fetch)

    def _create_disk_counter(self, spec: CounterSpec) -> Counter:
        fields = {
            "disk read bytes/sec": "read_bytes",
            "disk write bytes/sec": "write_bytes",
        }
        field_name = fields.get(spec.counter.lower())
        if field_name is None:
            raise CounterBindError(f"Unknown disk counter '{spec.counter}'", spec)
        disk = self._non_total_instance(spec)
        if disk is None:
            fetch = lambda: getattr(psutil.disk_io_counters(), field_name)
        else:
            fetch = lambda: getattr(psutil.disk_io_counters(perdisk=True)[disk], field_name)
        return _RateCounter(spec, fetch)

    @staticmethod
    def _non_total_instance(spec: CounterSpec) -> Optional[str]:
        if not spec.instance or spec.instance == TOTAL_INSTANCE:
            return None
        return spec.instance

    @staticmethod
    def _gauge_from(spec: CounterSpec, fetchers: Dict[str, Callable[[], float]]) -> Counter:
        fetch = fetchers.get(spec.counter.lower())
        if fetch is None:
            raise CounterBindError(
                f"Unknown counter '{spec.counter}' in category '{spec.category}'", spec
            )
        counter = _GaugeCounter(spec, fetch)
        counter.read()
        return counter
