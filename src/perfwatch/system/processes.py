"""
Process tree discovery.

This module provides the ProcessTreeResolver, which walks parent -> child links
of the process table starting from a root pid and returns every descendant
that is not on the exclusion list.
"""

import logging
from typing import Dict, Iterable, List, Set

from ..counters.base import AbstractCounterTable
from ..counters.psutil_table import instance_base_name
from ..models.runtime import ProcessHandle
from ..validation import CounterError, ProcessVanishedError

logger = logging.getLogger(__name__)


def normalize_process_name(name: str) -> str:
    """Lower-case a process name and drop a trailing '.exe' for comparisons."""
    return instance_base_name(name.strip()).lower()


class ProcessTreeResolver:
    """
    Discovers the descendants of a root process.

    Exclusion is applied per node: an excluded process is not reported, but
    the walk still descends into its children, so real workers started through
    a wrapper (e.g. a console host) are kept.

    Attributes:
        excluded_names: Normalised names of processes that are never reported.
        max_depth: Depth limit of the walk.
    """

    def __init__(
        self,
        table: AbstractCounterTable,
        excluded_names: Iterable[str] = (),
        max_depth: int = 64,
    ):
        self.table = table
        self.excluded_names: Set[str] = {normalize_process_name(n) for n in excluded_names if n}
        self.max_depth = max_depth

    def is_excluded(self, name: str) -> bool:
        return normalize_process_name(name) in self.excluded_names

    def resolve(self, root_pid: int) -> Set[ProcessHandle]:
        """
        Return every non-excluded descendant of `root_pid`.

        Processes that exit during the walk are skipped with a warning; the
        walk itself never fails because of them.

        Args:
            root_pid: The pid at the top of the monitored tree

        Returns:
            The discovered processes; the root itself is not included.
        """
        found: Dict[int, ProcessHandle] = {}
        visited: Set[int] = {root_pid}
        self._walk(root_pid, 0, found, visited)
        logger.debug(
            f"Resolved {len(found)} descendants of pid {root_pid} "
            f"({len(visited) - 1 - len(found)} excluded or vanished)"
        )
        return set(found.values())

    def _walk(self, pid: int, depth: int, found: Dict[int, ProcessHandle], visited: Set[int]) -> None:
        if depth >= self.max_depth:
            logger.warning(f"Process tree deeper than {self.max_depth} levels below pid {pid}, not descending")
            return

        try:
            children = self.table.child_pids(pid)
        except ProcessVanishedError:
            logger.warning(f"Process {pid} exited while enumerating its children")
            return
        except CounterError as e:
            logger.warning(f"Cannot enumerate children of process {pid}: {e}")
            return

        for child_pid in children:
            if child_pid in visited:
                logger.warning(f"Process {child_pid} seen twice in the process tree, ignoring")
                continue
            visited.add(child_pid)

            try:
                name = self.table.process_name(child_pid)
            except CounterError as e:
                logger.warning(f"Skipping child process {child_pid} of {pid}: {e}")
                continue

            if self.is_excluded(name):
                logger.debug(f"Excluding process {child_pid} ({name}), descending into its children")
            else:
                found[child_pid] = ProcessHandle(pid=child_pid, name=name)

            self._walk(child_pid, depth + 1, found, visited)


def sorted_handles(handles: Iterable[ProcessHandle]) -> List[ProcessHandle]:
    """Order handles by pid, the order used for instance naming and columns."""
    return sorted(handles, key=lambda handle: handle.pid)
