"""
Counter instance name resolution.

Per-process counters are addressed by instance name, not pid, and instance
names are not unique per executable. InstanceNameMatcher finds the instance
name of each requested pid by reading the "ID Process" counter of every
instance of the per-process category.
"""

import logging
from typing import Dict, Iterable

from ..counters.base import ID_PROCESS, PROCESS_CATEGORY, AbstractCounterTable
from ..models.runtime import CounterSpec
from ..validation import CounterError

logger = logging.getLogger(__name__)


class InstanceNameMatcher:
    """Maps pids to per-process counter instance names."""

    def __init__(self, table: AbstractCounterTable, category: str = PROCESS_CATEGORY):
        self.table = table
        self.category = category

    def match_instances(self, pids: Iterable[int]) -> Dict[int, str]:
        """
        Find the counter instance name of every pid in `pids`.

        Enumeration stops as soon as all pids are matched. Pids that cannot be
        matched (usually because the process exited meanwhile) are left out of
        the result.

        Args:
            pids: The pids to look up

        Returns:
            Mapping of pid -> instance name for the pids that were found
        """
        wanted = set(pids)
        matched: Dict[int, str] = {}
        if not wanted:
            return matched

        scanned = 0
        for instance in self.table.instance_names(self.category):
            scanned += 1
            spec = CounterSpec(self.category, ID_PROCESS, instance)
            try:
                with self.table.bind(spec) as counter:
                    instance_pid = int(counter.read())
            except CounterError as e:
                # The instance disappeared between enumeration and the read.
                logger.debug(f"Cannot read {spec}: {e}")
                continue

            if instance_pid in wanted and instance_pid not in matched:
                matched[instance_pid] = instance
                if len(matched) == len(wanted):
                    break

        missing = wanted - matched.keys()
        if missing:
            logger.warning(f"No counter instance found for pids {sorted(missing)}")
        logger.debug(f"Matched {len(matched)}/{len(wanted)} pids after scanning {scanned} instances")
        return matched
