"""
Defines the base structures and abstract classes for performance counters.

This module provides:
- Counter: an abstract bound counter handle producing float readings.
- AbstractCounterTable: the capability interface over the OS process table
  and its performance counters. The sampling engine, the process tree resolver
  and the instance name matcher only talk to the OS through this interface,
  which lets them run against an in-memory table in tests.
"""

import logging
from abc import ABC, abstractmethod
from typing import List

from ..models.runtime import CounterSpec

logger = logging.getLogger(__name__)

# Well-known categories and counter names.
PROCESS_CATEGORY = "Process"
PROCESSOR_CATEGORY = "Processor"
MEMORY_CATEGORY = "Memory"

PROCESSOR_TIME = "% Processor Time"
PRIVATE_BYTES = "Private Bytes"
ID_PROCESS = "ID Process"
AVAILABLE_BYTES = "Available Bytes"
TOTAL_INSTANCE = "_Total"


class Counter(ABC):
    """
    A bound performance counter.

    Counters own an OS resource for their whole lifetime and must be closed
    before they are replaced. Closing twice is harmless.
    """

    def __init__(self, spec: CounterSpec):
        self.spec = spec
        self.closed = False

    @abstractmethod
    def read(self) -> float:
        """
        Return the current value of the counter.

        Raises:
            CounterReadError: If the reading failed
            ProcessVanishedError: If the process behind the counter exited
        """
        pass

    def close(self) -> None:
        """Release the OS handle held by this counter."""
        self.closed = True

    def __enter__(self) -> "Counter":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}({self.spec})"


class AbstractCounterTable(ABC):
    """
    Abstract base class for access to the OS process table and its counters.
    """

    @abstractmethod
    def process_exists(self, pid: int) -> bool:
        """
        Return whether `pid` refers to a live process.

        Implementations should remember the first process seen under a pid so
        that a recycled pid is not mistaken for the original process.
        """
        pass

    @abstractmethod
    def process_name(self, pid: int) -> str:
        """
        Return the executable name of a process.

        Raises:
            ProcessVanishedError: If the process no longer exists
        """
        pass

    @abstractmethod
    def child_pids(self, pid: int) -> List[int]:
        """
        Return the pids whose parent is `pid` (direct children only).

        Raises:
            ProcessVanishedError: If `pid` no longer exists
        """
        pass

    @abstractmethod
    def instance_names(self, category: str) -> List[str]:
        """
        Return every instance name currently exposed by a counter category.

        For the per-process category, names are not unique per executable:
        processes sharing a name get distinct suffixed instance names.
        """
        pass

    @abstractmethod
    def bind(self, spec: CounterSpec) -> Counter:
        """
        Create a counter for `spec`.

        Raises:
            CounterBindError: If the category, counter or instance is unknown
        """
        pass
