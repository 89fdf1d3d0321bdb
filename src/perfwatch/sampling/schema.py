"""
Sample log schema.

The schema is the ordered list of columns a sample row can contain. It only
ever grows: once a column has been written to the log it keeps its position
for the rest of the run, so earlier rows stay readable against later headers.

Column groups, in order:
    Time, [CPU%, FreeMemMB], ProcCPU%, ProcMemMB, [named counters],
    [<child instance> CPU%, <child instance> MemMB]*
"""

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Iterable, List, Sequence, Set, Tuple

from ..models.config import MonitorConfig

logger = logging.getLogger(__name__)

TIME_COLUMN = "Time"
SYSTEM_CPU_COLUMN = "CPU%"
FREE_MEMORY_COLUMN = "FreeMemMB"
PROCESS_CPU_COLUMN = "ProcCPU%"
PROCESS_MEMORY_COLUMN = "ProcMemMB"
BASE_COLUMN_NAMES = frozenset(
    {TIME_COLUMN, SYSTEM_CPU_COLUMN, FREE_MEMORY_COLUMN, PROCESS_CPU_COLUMN, PROCESS_MEMORY_COLUMN}
)
CHILD_CPU_SUFFIX = " CPU%"
CHILD_MEMORY_SUFFIX = " MemMB"


class ColumnKind(Enum):
    """What a column measures; decides rounding and threshold participation."""

    TIME = "time"
    SYSTEM_CPU = "system_cpu"
    SYSTEM_MEMORY = "system_memory"
    PROCESS_CPU = "process_cpu"
    PROCESS_MEMORY = "process_memory"
    COUNTER = "counter"
    CHILD_CPU = "child_cpu"
    CHILD_MEMORY = "child_memory"


CPU_KINDS = frozenset({ColumnKind.SYSTEM_CPU, ColumnKind.PROCESS_CPU, ColumnKind.CHILD_CPU})
MEMORY_KINDS = frozenset({ColumnKind.SYSTEM_MEMORY, ColumnKind.PROCESS_MEMORY, ColumnKind.CHILD_MEMORY})


@dataclass(frozen=True)
class Column:
    name: str
    kind: ColumnKind


def child_cpu_column(instance: str) -> str:
    return f"{instance}{CHILD_CPU_SUFFIX}"


def child_memory_column(instance: str) -> str:
    return f"{instance}{CHILD_MEMORY_SUFFIX}"


def is_reserved_column(name: str) -> bool:
    """True if `name` is a built-in column or has the shape of a per-child column."""
    return (
        name in BASE_COLUMN_NAMES
        or name.endswith(CHILD_CPU_SUFFIX)
        or name.endswith(CHILD_MEMORY_SUFFIX)
    )


class SampleSchema:
    """
    Append-only, ordered header of sample columns.

    Only `append_header` mutates the schema. Readers get immutable tuples.
    """

    def __init__(self, columns: Iterable[Column] = ()):
        self._columns: List[Column] = []
        self._names: Set[str] = set()
        self.append_header(columns)

    @property
    def columns(self) -> Tuple[Column, ...]:
        """A snapshot of the current header."""
        return tuple(self._columns)

    @property
    def names(self) -> Tuple[str, ...]:
        return tuple(column.name for column in self._columns)

    def __len__(self) -> int:
        return len(self._columns)

    def __contains__(self, name: object) -> bool:
        return name in self._names

    def append_header(self, columns: Iterable[Column]) -> bool:
        """
        Append the columns whose names are not in the header yet.

        Args:
            columns: Candidate columns, in the order they should be appended

        Returns:
            True if at least one column was appended
        """
        added = []
        for column in columns:
            if column.name in self._names:
                continue
            self._columns.append(column)
            self._names.add(column.name)
            added.append(column.name)

        if added:
            logger.debug(f"Header extended with {added}")
        return bool(added)


class ColumnLayout:
    """
    Builds the ordered column list from the enabled capabilities.

    Attributes:
        enable_system_usage: Include host CPU% and free memory.
        enable_child_usage: Include one CPU% and one MemMB column per child instance.
        counter_columns: Column names of the named counters, empty when disabled.
    """

    def __init__(
        self,
        enable_system_usage: bool = True,
        enable_child_usage: bool = True,
        counter_columns: Sequence[str] = (),
    ):
        self.enable_system_usage = enable_system_usage
        self.enable_child_usage = enable_child_usage
        self.counter_columns = list(counter_columns)

    @classmethod
    def from_config(cls, config: MonitorConfig) -> "ColumnLayout":
        counter_columns = (
            [counter.column for counter in config.named_counters]
            if config.enable_named_counters
            else []
        )
        return cls(
            enable_system_usage=config.enable_system_usage,
            enable_child_usage=config.enable_child_services_usage,
            counter_columns=counter_columns,
        )

    def base_columns(self) -> List[Column]:
        columns = [Column(TIME_COLUMN, ColumnKind.TIME)]
        if self.enable_system_usage:
            columns.append(Column(SYSTEM_CPU_COLUMN, ColumnKind.SYSTEM_CPU))
            columns.append(Column(FREE_MEMORY_COLUMN, ColumnKind.SYSTEM_MEMORY))
        columns.append(Column(PROCESS_CPU_COLUMN, ColumnKind.PROCESS_CPU))
        columns.append(Column(PROCESS_MEMORY_COLUMN, ColumnKind.PROCESS_MEMORY))
        columns.extend(Column(name, ColumnKind.COUNTER) for name in self.counter_columns)
        return columns

    def child_columns(self, instances: Iterable[str]) -> List[Column]:
        if not self.enable_child_usage:
            return []
        columns = []
        for instance in instances:
            columns.append(Column(child_cpu_column(instance), ColumnKind.CHILD_CPU))
            columns.append(Column(child_memory_column(instance), ColumnKind.CHILD_MEMORY))
        return columns

    def build(self, child_instances: Iterable[str] = ()) -> List[Column]:
        """Return the full column list for the given child instances."""
        return self.base_columns() + self.child_columns(child_instances)
