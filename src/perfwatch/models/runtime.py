"""
Runtime data models.

This module contains the value types used while a sampling run is in
progress: discovered processes, counter identities and the engine state.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Optional


@dataclass(frozen=True)
class ProcessHandle:
    """
    A process discovered in the monitored tree.

    The handle is a snapshot: it goes stale the moment the OS process exits,
    and reads against it are expected to fail from then on. The engine marks
    handles of children it no longer finds with `alive=False`; `alive` does
    not take part in equality or hashing.
    """

    pid: int
    name: str
    alive: bool = field(default=True, compare=False)


@dataclass(frozen=True)
class CounterSpec:
    """Identity of an OS performance counter: category, counter name and optional instance."""

    category: str
    counter: str
    instance: Optional[str] = None

    def __str__(self) -> str:
        if self.instance:
            return f"\\{self.category}({self.instance})\\{self.counter}"
        return f"\\{self.category}\\{self.counter}"


class EngineState(Enum):
    """Lifecycle states of the sampling engine."""

    UNINITIALIZED = "uninitialized"
    INITIALIZING = "initializing"
    RUNNING = "running"
    REINITIALIZING = "reinitializing"
    TERMINATED = "terminated"
