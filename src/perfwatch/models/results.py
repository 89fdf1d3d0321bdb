"""
Run report data model.

The sampling engine returns an `EngineReport` when it stops, summarising how
the run went so the CLI can log a final status line.
"""

from dataclasses import dataclass, field
from typing import List

from .runtime import EngineState, ProcessHandle


@dataclass
class EngineReport:
    """
    Summary of one sampling run.
    """

    # The pid the run was attached to.
    root_pid: int
    # False when the root process did not exist at startup.
    started: bool = False
    # Number of polling iterations that produced a sample.
    ticks: int = 0
    # Number of samples that passed the threshold and were written to the log.
    samples_logged: int = 0
    # Number of full counter re-initializations after a failure.
    reinitializations: int = 0
    # Number of header lines written to the log.
    headers_written: int = 0
    # Highest process CPU% and memory (MB) observed across all ticks.
    peak_process_cpu: int = -1
    peak_process_mem_mb: int = -1
    # Child processes that were sampled and later disappeared, marked `alive=False`.
    exited_children: List[ProcessHandle] = field(default_factory=list)
    final_state: EngineState = EngineState.UNINITIALIZED
