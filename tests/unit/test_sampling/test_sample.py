"""
Unit tests for samples, reading normalization and the threshold predicate.
"""

import math
from datetime import datetime

import pytest

from perfwatch.sampling import (
    UNAVAILABLE,
    ColumnKind,
    ColumnLayout,
    Sample,
    is_over_threshold,
    normalize_reading,
)

MB = 1024 * 1024


def build_sample(**readings):
    columns = ColumnLayout(counter_columns=["Msgs"]).build(["Worker"])
    return Sample.from_readings(columns, readings, timestamp=datetime(2024, 5, 1, 8, 30, 0))


@pytest.mark.unit
class TestNormalizeReading:
    """Conversion of raw readings into sample integers."""

    @pytest.mark.parametrize(
        "raw, expected",
        [(0.0, 0), (12.1, 13), (85.0, 85), (99.0001, 100)],
    )
    def test_cpu_rounds_up(self, raw, expected):
        assert normalize_reading(ColumnKind.PROCESS_CPU, raw) == expected

    def test_memory_floors_to_megabytes(self):
        assert normalize_reading(ColumnKind.PROCESS_MEMORY, 5.9 * MB) == 5
        assert normalize_reading(ColumnKind.CHILD_MEMORY, MB - 1) == 0

    def test_other_counters_round(self):
        assert normalize_reading(ColumnKind.COUNTER, 2.5) == 2
        assert normalize_reading(ColumnKind.COUNTER, 3.6) == 4

    @pytest.mark.parametrize("raw", [None, -1.0, math.nan])
    def test_unavailable(self, raw):
        assert normalize_reading(ColumnKind.PROCESS_CPU, raw) == UNAVAILABLE


@pytest.mark.unit
class TestSample:
    """Sample construction against a header snapshot."""

    def test_missing_readings_are_unavailable(self):
        sample = build_sample(**{"ProcCPU%": 3.0})
        assert sample.value("ProcCPU%") == 3
        assert sample.value("ProcMemMB") == UNAVAILABLE
        assert sample.value("Msgs") == UNAVAILABLE
        assert sample.value("Worker CPU%") == UNAVAILABLE

    def test_readings_outside_header_are_ignored(self):
        sample = build_sample(**{"Other CPU%": 50.0})
        assert "Other CPU%" not in sample.values

    def test_columns_match_header(self):
        sample = build_sample()
        assert sample.column_names[0] == "Time"
        assert "Time" not in sample.values
        assert len(sample.values) == len(sample.columns) - 1

    def test_values_are_read_only(self):
        sample = build_sample()
        with pytest.raises(TypeError):
            sample.values["ProcCPU%"] = 1


@pytest.mark.unit
class TestIsOverThreshold:
    """Only process and child CPU/memory decide whether a sample is logged."""

    def test_process_cpu_over_threshold(self):
        sample = build_sample(**{"ProcCPU%": 85.0, "Worker CPU%": 10.0})
        assert is_over_threshold(sample, 80, 80) is True

    def test_both_under_threshold(self):
        sample = build_sample(**{"ProcCPU%": 50.0, "Worker CPU%": 50.0})
        assert is_over_threshold(sample, 80, 80) is False

    def test_child_memory_over_threshold(self):
        sample = build_sample(**{"ProcMemMB": 10.0 * MB, "Worker MemMB": 900.0 * MB})
        assert sample.is_over_threshold(80, 512) is True

    def test_system_values_do_not_count(self):
        sample = build_sample(**{"CPU%": 100.0, "FreeMemMB": 8000.0 * MB, "Msgs": 5000.0})
        assert is_over_threshold(sample, 80, 512) is False

    def test_threshold_is_strict(self):
        sample = build_sample(**{"ProcCPU%": 80.0})
        assert is_over_threshold(sample, 80, 80) is False

    def test_fractional_cpu_rounded_before_comparison(self):
        sample = build_sample(**{"ProcCPU%": 80.2})
        assert is_over_threshold(sample, 80, 80) is True

    def test_monotonic_in_inputs(self):
        base = {"ProcCPU%": 85.0, "Worker CPU%": 10.0}
        assert is_over_threshold(build_sample(**base), 80, 80) is True
        raised = dict(base, **{"Worker CPU%": 95.0, "ProcMemMB": 50.0 * MB})
        assert is_over_threshold(build_sample(**raised), 80, 80) is True

    def test_all_unavailable_with_zero_threshold(self):
        assert is_over_threshold(build_sample(), 0, 0) is False
