"""
System interaction: process tree discovery and counter instance naming.
"""

from .instances import InstanceNameMatcher
from .processes import ProcessTreeResolver, normalize_process_name, sorted_handles

__all__ = [
    "InstanceNameMatcher",
    "ProcessTreeResolver",
    "normalize_process_name",
    "sorted_handles",
]
