"""
Unit tests for child process discovery.
"""

import pytest

from perfwatch.models import ProcessHandle
from perfwatch.system import ProcessTreeResolver, normalize_process_name, sorted_handles


def pids(handles):
    return sorted(h.pid for h in handles)


@pytest.mark.unit
class TestProcessTreeResolver:
    """Walking the parent -> child links of the process table."""

    def test_direct_and_nested_children(self, empty_table):
        empty_table.add_process(1, "root")
        empty_table.add_process(2, "a", parent=1)
        empty_table.add_process(3, "b", parent=2)
        empty_table.add_process(4, "c", parent=3)

        resolved = ProcessTreeResolver(empty_table).resolve(1)

        assert pids(resolved) == [2, 3, 4]
        assert ProcessHandle(pid=3, name="b") in resolved

    def test_root_is_not_included(self, fake_table):
        resolved = ProcessTreeResolver(fake_table).resolve(100)
        assert 100 not in pids(resolved)
        assert pids(resolved) == [101, 102]

    def test_leaf_process_has_no_children(self, fake_table):
        assert ProcessTreeResolver(fake_table).resolve(101) == set()

    def test_excluded_process_is_skipped_but_walked(self, empty_table):
        empty_table.add_process(1, "Service.exe")
        empty_table.add_process(2, "conhost.exe", parent=1)
        empty_table.add_process(3, "Worker.exe", parent=2)

        resolved = ProcessTreeResolver(empty_table, excluded_names=["conhost"]).resolve(1)

        assert pids(resolved) == [3]

    def test_exclusion_ignores_case_and_extension(self):
        resolver = ProcessTreeResolver(None, excluded_names=["ConHost.EXE", ""])
        assert resolver.is_excluded("conhost")
        assert resolver.is_excluded("CONHOST.exe")
        assert not resolver.is_excluded("worker")

    def test_vanished_child_is_skipped(self, empty_table):
        empty_table.add_process(1, "root")
        empty_table.add_process(2, "alive", parent=1)
        empty_table.extra_children[1] = [99]

        resolved = ProcessTreeResolver(empty_table).resolve(1)

        assert pids(resolved) == [2]

    def test_vanished_root_resolves_to_nothing(self, empty_table):
        assert ProcessTreeResolver(empty_table).resolve(42) == set()

    def test_cycle_does_not_loop(self, empty_table):
        empty_table.add_process(1, "root")
        empty_table.add_process(2, "a", parent=1)
        empty_table.extra_children[2] = [1, 2]

        resolved = ProcessTreeResolver(empty_table).resolve(1)

        assert pids(resolved) == [2]

    def test_depth_limit(self, empty_table):
        empty_table.add_process(1, "root")
        for pid in range(2, 7):
            empty_table.add_process(pid, f"p{pid}", parent=pid - 1)

        resolved = ProcessTreeResolver(empty_table, max_depth=2).resolve(1)

        assert pids(resolved) == [2, 3]


@pytest.mark.unit
def test_normalize_process_name():
    assert normalize_process_name(" Worker.EXE ") == "worker"
    assert normalize_process_name("python3") == "python3"


@pytest.mark.unit
def test_sorted_handles_orders_by_pid():
    handles = {ProcessHandle(30, "c"), ProcessHandle(10, "a"), ProcessHandle(20, "b")}
    assert [h.pid for h in sorted_handles(handles)] == [10, 20, 30]
