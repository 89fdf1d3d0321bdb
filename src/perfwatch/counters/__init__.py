"""
Performance counter access.

Provides the counter table capability interface and its psutil-backed
implementation.
"""

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
from .psutil_table import PsutilCounterTable, instance_base_name

__all__ = [
    "AVAILABLE_BYTES",
    "ID_PROCESS",
    "MEMORY_CATEGORY",
    "PRIVATE_BYTES",
    "PROCESS_CATEGORY",
    "PROCESSOR_CATEGORY",
    "PROCESSOR_TIME",
    "TOTAL_INSTANCE",
    "AbstractCounterTable",
    "Counter",
    "PsutilCounterTable",
    "instance_base_name",
]
