"""
Sampling: column schema, samples and the polling engine.
"""

from .engine import ChildBinding, SamplingEngine
from .sample import UNAVAILABLE, Sample, is_over_threshold, normalize_reading
from .schema import (
    FREE_MEMORY_COLUMN,
    PROCESS_CPU_COLUMN,
    PROCESS_MEMORY_COLUMN,
    SYSTEM_CPU_COLUMN,
    TIME_COLUMN,
    Column,
    ColumnKind,
    ColumnLayout,
    SampleSchema,
    child_cpu_column,
    child_memory_column,
    is_reserved_column,
)

__all__ = [
    "ChildBinding",
    "SamplingEngine",
    "UNAVAILABLE",
    "Sample",
    "is_over_threshold",
    "normalize_reading",
    "FREE_MEMORY_COLUMN",
    "PROCESS_CPU_COLUMN",
    "PROCESS_MEMORY_COLUMN",
    "SYSTEM_CPU_COLUMN",
    "TIME_COLUMN",
    "Column",
    "ColumnKind",
    "ColumnLayout",
    "SampleSchema",
    "child_cpu_column",
    "child_memory_column",
    "is_reserved_column",
]
