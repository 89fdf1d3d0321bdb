"""
Unit tests for pid -> counter instance name matching.
"""

import pytest

from perfwatch.system import InstanceNameMatcher


def id_binds(table):
    return [spec for spec in table.bind_log if spec.counter == "ID Process"]


@pytest.mark.unit
class TestInstanceNameMatcher:
    """Resolving instance names through the "ID Process" counter."""

    def test_same_executable_gets_distinct_instances(self, fake_table):
        matched = InstanceNameMatcher(fake_table).match_instances([101, 102])
        assert matched == {101: "Worker", 102: "Worker#1"}

    def test_stops_once_all_pids_are_matched(self, empty_table):
        empty_table.add_process(10, "a")
        empty_table.add_process(20, "b")
        empty_table.add_process(30, "c")

        matched = InstanceNameMatcher(empty_table).match_instances([10])

        assert matched == {10: "a"}
        assert len(id_binds(empty_table)) == 1

    def test_missing_pid_is_left_out(self, fake_table):
        matched = InstanceNameMatcher(fake_table).match_instances([100, 555])
        assert matched == {100: "Service"}
        assert len(id_binds(fake_table)) == 3

    def test_instance_vanishing_during_scan_is_skipped(self, fake_table):
        fake_table.fail_bind("Process", "ID Process", "Worker")

        matched = InstanceNameMatcher(fake_table).match_instances([100, 102])

        assert matched == {100: "Service", 102: "Worker#1"}

    def test_no_pids_requested(self, fake_table):
        assert InstanceNameMatcher(fake_table).match_instances([]) == {}
        assert fake_table.bind_log == []

    def test_id_counters_are_closed(self, fake_table):
        InstanceNameMatcher(fake_table).match_instances([100, 101, 102])
        assert fake_table.bound
        assert fake_table.open_counters() == []
