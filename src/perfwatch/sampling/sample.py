"""
One polling tick worth of metric values.

A Sample is laid out against a snapshot of the schema header taken when it
is built, so its columns always equal the header at construction time. Every
column carries a value; a reading that failed or was never bound is stored
as UNAVAILABLE (-1).
"""

import math
from dataclasses import dataclass
from datetime import datetime
from types import MappingProxyType
from typing import Iterable, List, Mapping, Optional, Tuple

from .schema import CPU_KINDS, MEMORY_KINDS, Column, ColumnKind

UNAVAILABLE = -1
BYTES_PER_MB = 1024 * 1024

THRESHOLD_CPU_KINDS = frozenset({ColumnKind.PROCESS_CPU, ColumnKind.CHILD_CPU})
THRESHOLD_MEMORY_KINDS = frozenset({ColumnKind.PROCESS_MEMORY, ColumnKind.CHILD_MEMORY})


def normalize_reading(kind: ColumnKind, raw: Optional[float]) -> int:
    """
    Convert a raw counter reading into the integer stored in a sample.

    CPU percentages are rounded up, memory readings (bytes) are floor-divided
    to whole megabytes, other counters are rounded to the nearest integer.
    Missing, negative or NaN readings become UNAVAILABLE.
    """
    if raw is None or raw < 0 or math.isnan(raw):
        return UNAVAILABLE
    if kind in CPU_KINDS:
        return math.ceil(raw)
    if kind in MEMORY_KINDS:
        return int(raw) // BYTES_PER_MB
    return int(round(raw))


@dataclass(frozen=True)
class Sample:
    """
    Immutable snapshot of metric values for one tick.

    Attributes:
        timestamp: When the readings were taken.
        columns: Header snapshot the sample is laid out against.
        values: Column name -> integer value for every non-time column.
    """

    timestamp: datetime
    columns: Tuple[Column, ...]
    values: Mapping[str, int]

    @classmethod
    def from_readings(
        cls,
        columns: Iterable[Column],
        readings: Mapping[str, Optional[float]],
        timestamp: Optional[datetime] = None,
    ) -> "Sample":
        """
        Build a sample from raw readings keyed by column name.

        Columns without a reading get UNAVAILABLE; readings for columns that
        are not in the header are ignored.
        """
        columns = tuple(columns)
        values = {
            column.name: normalize_reading(column.kind, readings.get(column.name))
            for column in columns
            if column.kind is not ColumnKind.TIME
        }
        return cls(
            timestamp=timestamp or datetime.now(),
            columns=columns,
            values=MappingProxyType(values),
        )

    @property
    def column_names(self) -> Tuple[str, ...]:
        return tuple(column.name for column in self.columns)

    def value(self, name: str) -> int:
        return self.values[name]

    def values_of(self, kinds: Iterable[ColumnKind]) -> List[int]:
        kinds = frozenset(kinds)
        return [self.values[c.name] for c in self.columns if c.kind in kinds]

    def is_over_threshold(self, cpu_threshold: int, memory_threshold: int) -> bool:
        return is_over_threshold(self, cpu_threshold, memory_threshold)


def is_over_threshold(sample: Sample, cpu_threshold: int, memory_threshold: int) -> bool:
    """
    Decide whether a sample is worth logging.

    Only the monitored process and its children count: host-wide CPU, free
    memory and named counters never trigger logging.

    Returns:
        True if the highest process/child CPU% is above `cpu_threshold` or the
        highest process/child memory (MB) is above `memory_threshold`.
    """
    max_cpu = max(sample.values_of(THRESHOLD_CPU_KINDS), default=UNAVAILABLE)
    max_memory = max(sample.values_of(THRESHOLD_MEMORY_KINDS), default=UNAVAILABLE)
    return max_cpu > cpu_threshold or max_memory > memory_threshold
