"""
The sampling engine.

SamplingEngine attaches to a root process, binds counters for the host, the
root process, its descendants and any auxiliary named counters, and polls them
on a fixed interval until the root process exits.

Lifecycle:

    UNINITIALIZED -> INITIALIZING -> RUNNING <-> REINITIALIZING -> TERMINATED

Any failure while binding or reading counters moves the engine to
REINITIALIZING: after a backoff delay every binding is closed and rebuilt.
Counter failures never stop the engine; only the root process exiting (or a
stop request from the caller) does.
"""

import logging
import time
from dataclasses import dataclass, replace
from typing import Callable, Dict, Iterable, List, Optional, Set

from ..counters.base import (
    AVAILABLE_BYTES,
    MEMORY_CATEGORY,
    PRIVATE_BYTES,
    PROCESS_CATEGORY,
    PROCESSOR_CATEGORY,
    PROCESSOR_TIME,
    TOTAL_INSTANCE,
    AbstractCounterTable,
    Counter,
)
from ..models.config import MonitorConfig
from ..models.results import EngineReport
from ..models.runtime import CounterSpec, EngineState, ProcessHandle
from ..orchestration.sample_log import SampleSink
from ..system.instances import InstanceNameMatcher
from ..system.processes import ProcessTreeResolver, sorted_handles
from ..validation import (
    CounterBindError,
    CounterError,
    ErrorKind,
    ProcessVanishedError,
    RootProcessExitedError,
    classify_error,
    handle_counter_error,
)
from .sample import Sample
from .schema import (
    FREE_MEMORY_COLUMN,
    PROCESS_CPU_COLUMN,
    PROCESS_MEMORY_COLUMN,
    SYSTEM_CPU_COLUMN,
    ColumnLayout,
    SampleSchema,
    child_cpu_column,
    child_memory_column,
)

logger = logging.getLogger(__name__)


@dataclass
class ChildBinding:
    """Counters bound for one child process during one initialization cycle."""

    handle: ProcessHandle
    instance: str
    cpu: Counter
    memory: Counter

    def counters(self) -> List[Counter]:
        return [self.cpu, self.memory]


class SamplingEngine:
    """
    Polls the counters of a monitored process tree and logs samples over threshold.

    Attributes:
        root_pid: The monitored root process.
        config: Sampling configuration.
        table: Source of process information and counter bindings.
        sink: Receives header lines and over-threshold samples.
        schema: The append-only column header, owned by the engine.
        state: Current lifecycle state.
        report: Counters describing the run so far.
    """

    def __init__(
        self,
        root_pid: int,
        config: MonitorConfig,
        table: AbstractCounterTable,
        sink: SampleSink,
        schema: Optional[SampleSchema] = None,
        sleep: Callable[[float], None] = time.sleep,
        stop_requested: Callable[[], bool] = lambda: False,
    ):
        self.root_pid = root_pid
        self.config = config
        self.table = table
        self.sink = sink
        self.schema = schema if schema is not None else SampleSchema()
        self.layout = ColumnLayout.from_config(config)
        self.resolver = ProcessTreeResolver(
            table,
            excluded_names=config.excluded_process_names,
            max_depth=config.max_tree_depth,
        )
        self.matcher = InstanceNameMatcher(table)
        self.state = EngineState.UNINITIALIZED
        self.report = EngineReport(root_pid=root_pid)

        self._sleep = sleep
        self._stop_requested = stop_requested
        self._root_exited = False
        self._ticks_since_discovery = 0

        # Bindings of the current initialization cycle.
        self._system_cpu: Optional[Counter] = None
        self._free_memory: Optional[Counter] = None
        self._process_cpu: Optional[Counter] = None
        self._process_memory: Optional[Counter] = None
        self._named: Dict[str, Optional[Counter]] = {}
        self._children: List[ChildBinding] = []

    # --- Public interface ---

    def run(self) -> EngineReport:
        """
        Monitor the root process until it exits.

        Returns:
            The run report. `report.started` is False when the root process
            did not exist at startup.
        """
        logger.info(f"Attaching to process {self.root_pid}")
        if not self.table.process_exists(self.root_pid):
            logger.error(f"Process {self.root_pid} does not exist, nothing to monitor")
            self._set_state(EngineState.TERMINATED)
            return self.report

        self.report.started = True
        if self.config.monitoring_delay_ms:
            logger.info(f"Waiting {self.config.monitoring_delay_ms}ms before the first measurement")
            self._sleep(self.config.monitoring_delay_ms / 1000)

        self._set_state(EngineState.INITIALIZING)
        try:
            self._initialize()
        except Exception as e:
            self._on_failure(e, "initializing counters")

        interval = self.config.interval_ms / 1000
        while self._should_continue():
            if self.state is EngineState.RUNNING:
                try:
                    self._tick()
                except Exception as e:
                    self._on_failure(e, "reading counters")
            if self.state is EngineState.REINITIALIZING and not self._root_exited:
                self._reinitialize()
            if self._root_exited:
                break
            self._sleep(interval)

        self._terminate()
        return self.report

    @property
    def child_instances(self) -> List[str]:
        """Instance names of the children polled in the current cycle."""
        return [child.instance for child in self._children]

    # --- State handling ---

    def _set_state(self, state: EngineState) -> None:
        if state is not self.state:
            logger.debug(f"Engine state {self.state.value} -> {state.value}")
            self.state = state
            self.report.final_state = state

    def _should_continue(self) -> bool:
        if self._root_exited:
            return False
        if not self.table.process_exists(self.root_pid):
            self._root_exited = True
            return False
        if self._stop_requested():
            logger.info("Stop requested, ending sampling")
            return False
        return True

    def _on_failure(self, error: Exception, context: str) -> None:
        kind = classify_error(error)
        if kind is ErrorKind.FATAL:
            raise error
        if kind is ErrorKind.TERMINAL or not self.table.process_exists(self.root_pid):
            logger.info(f"Monitored process {self.root_pid} is gone ({context}: {error})")
            self._root_exited = True
            return

        handle_counter_error(error, context, logger=logger)
        self._set_state(EngineState.REINITIALIZING)

    def _reinitialize(self) -> None:
        self.report.reinitializations += 1
        delay_ms = self.config.delay_on_exception_ms
        logger.warning(
            f"Re-initializing counters in {delay_ms}ms "
            f"(attempt {self.report.reinitializations})"
        )
        if delay_ms:
            self._sleep(delay_ms / 1000)
        try:
            self._initialize()
        except Exception as e:
            self._on_failure(e, "re-initializing counters")

    def _terminate(self) -> None:
        self._release_bindings()
        self._set_state(EngineState.TERMINATED)
        logger.info(
            f"Process exited: {self._root_exited}. "
            f"{self.report.ticks} ticks, {self.report.samples_logged} samples logged, "
            f"{self.report.reinitializations} re-initializations"
        )

    # --- Initialization ---

    def _initialize(self) -> None:
        previous = [child.handle for child in self._children]
        self._release_bindings()

        if self.config.enable_system_usage:
            self._system_cpu = self._bind_optional(
                CounterSpec(PROCESSOR_CATEGORY, PROCESSOR_TIME, TOTAL_INSTANCE)
            )
            self._free_memory = self._bind_optional(CounterSpec(MEMORY_CATEGORY, AVAILABLE_BYTES))

        children: Set[ProcessHandle] = set()
        if self.config.enable_child_services_usage:
            children = self.resolver.resolve(self.root_pid)
            self._record_exited(previous, children)

        instances = self.matcher.match_instances({self.root_pid} | {c.pid for c in children})
        root_instance = instances.get(self.root_pid)
        if root_instance is None:
            raise CounterBindError(f"No counter instance found for monitored process {self.root_pid}")

        self._process_cpu = self.table.bind(CounterSpec(PROCESS_CATEGORY, PROCESSOR_TIME, root_instance))
        self._process_memory = self.table.bind(CounterSpec(PROCESS_CATEGORY, PRIVATE_BYTES, root_instance))

        self._bind_children(children, instances)

        if self.config.enable_named_counters:
            for named in self.config.named_counters:
                self._named[named.column] = self._bind_optional(
                    CounterSpec(named.category, named.counter, named.instance)
                )

        self._refresh_header()
        self._ticks_since_discovery = 0
        self._set_state(EngineState.RUNNING)
        logger.info(
            f"Counters initialized for process {self.root_pid} ({root_instance}) "
            f"with {len(self._children)} child processes"
        )

    def _bind_optional(self, spec: CounterSpec) -> Optional[Counter]:
        try:
            return self.table.bind(spec)
        except CounterError as e:
            logger.warning(f"Counter {spec} unavailable, reporting -1: {e}")
            return None

    def _bind_children(self, children: Iterable[ProcessHandle], instances: Dict[int, str]) -> None:
        for handle in sorted_handles(children):
            instance = instances.get(handle.pid)
            if instance is None:
                logger.warning(f"Child process {handle.pid} ({handle.name}) has no counter instance, skipping")
                continue
            try:
                cpu = self.table.bind(CounterSpec(PROCESS_CATEGORY, PROCESSOR_TIME, instance))
                try:
                    memory = self.table.bind(CounterSpec(PROCESS_CATEGORY, PRIVATE_BYTES, instance))
                except CounterError:
                    cpu.close()
                    raise
            except CounterError as e:
                logger.warning(f"Child process {handle.pid} ({handle.name}) skipped for this cycle: {e}")
                continue
            self._children.append(ChildBinding(handle, instance, cpu, memory))
            logger.info(f"Child process: {handle.pid}\t{handle.name}\t{instance}")

    def _refresh_children(self) -> None:
        logger.debug(f"Re-resolving child processes of {self.root_pid}")
        previous = [child.handle for child in self._children]
        for child in self._children:
            self._close_all(child.counters())
        self._children = []

        children = self.resolver.resolve(self.root_pid)
        self._record_exited(previous, children)
        instances = self.matcher.match_instances(c.pid for c in children)
        self._bind_children(children, instances)
        self._refresh_header()
        self._ticks_since_discovery = 0

    def _record_exited(self, previous: Iterable[ProcessHandle], current: Set[ProcessHandle]) -> None:
        current_pids = {handle.pid for handle in current}
        for handle in previous:
            if handle.alive and handle.pid not in current_pids:
                logger.info(f"Child process {handle.pid} ({handle.name}) is gone")
                self.report.exited_children.append(replace(handle, alive=False))

    def _refresh_header(self) -> None:
        if self.schema.append_header(self.layout.build(self.child_instances)):
            self.sink.write_header(self.schema.names)
            self.report.headers_written += 1

    # --- Sampling ---

    def _tick(self) -> None:
        recreate_every = self.config.recreate_child_counters_intervals
        if (
            recreate_every
            and self.config.enable_child_services_usage
            and self._ticks_since_discovery >= recreate_every
        ):
            self._refresh_children()

        sample = Sample.from_readings(self.schema.columns, self._read_all())
        self._ticks_since_discovery += 1
        self._dispatch(sample)

    def _read_all(self) -> Dict[str, Optional[float]]:
        readings: Dict[str, Optional[float]] = {}
        if self.config.enable_system_usage:
            readings[SYSTEM_CPU_COLUMN] = self._system_cpu.read() if self._system_cpu else None
            readings[FREE_MEMORY_COLUMN] = self._free_memory.read() if self._free_memory else None

        readings[PROCESS_CPU_COLUMN] = self._read_root(self._process_cpu)
        readings[PROCESS_MEMORY_COLUMN] = self._read_root(self._process_memory)

        for column, counter in self._named.items():
            readings[column] = counter.read() if counter else None

        for child in self._children:
            readings[child_cpu_column(child.instance)] = child.cpu.read()
            readings[child_memory_column(child.instance)] = child.memory.read()
        return readings

    def _read_root(self, counter: Counter) -> float:
        try:
            return counter.read()
        except ProcessVanishedError as e:
            if e.pid == self.root_pid:
                raise RootProcessExitedError(self.root_pid) from e
            raise

    def _dispatch(self, sample: Sample) -> None:
        self.report.ticks += 1
        self.report.peak_process_cpu = max(self.report.peak_process_cpu, sample.value(PROCESS_CPU_COLUMN))
        self.report.peak_process_mem_mb = max(
            self.report.peak_process_mem_mb, sample.value(PROCESS_MEMORY_COLUMN)
        )

        thresholds = self.config.thresholds
        if sample.is_over_threshold(thresholds.cpu_percent, thresholds.memory_mb):
            self.sink.write_sample(sample)
            self.report.samples_logged += 1

    # --- Resource cleanup ---

    def _release_bindings(self) -> None:
        counters: List[Optional[Counter]] = [
            self._system_cpu,
            self._free_memory,
            self._process_cpu,
            self._process_memory,
            *self._named.values(),
        ]
        for child in self._children:
            counters.extend(child.counters())
        self._close_all(counters)

        self._system_cpu = self._free_memory = None
        self._process_cpu = self._process_memory = None
        self._named = {}
        self._children = []

    @staticmethod
    def _close_all(counters: Iterable[Optional[Counter]]) -> None:
        for counter in counters:
            if counter is None:
                continue
            try:
                counter.close()
            except Exception as e:
                logger.warning(f"Failed to close counter {counter}: {e}")
