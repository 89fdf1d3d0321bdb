"""
perfwatch: process-tree CPU and memory sampler.

This package attaches to a running process, discovers its child processes and
periodically samples host, process and child CPU/memory counters, logging the
samples that exceed the configured thresholds.

The package is organized into specialized modules:
- config: Configuration management and validation
- models: Data structures and type definitions
- validation: Input validation and error handling
- counters: Performance counter access (psutil backend)
- system: Child process discovery and counter instance naming
- sampling: Column schema, samples and the sampling engine
- orchestration: Log setup and the sample log sink
- cli: Command-line interface
- plotter: Offline plots of sample logs

Usage:
    From command line:
        perfwatch <pid>

    Programmatically:
        from perfwatch import PsutilCounterTable, SampleLog, SamplingEngine, get_config
        config = get_config()
        engine = SamplingEngine(pid, config.monitor, PsutilCounterTable(), SampleLog())
        report = engine.run()
"""

# Main interfaces
from .config import clear_config_cache, get_config, set_config_path
from .counters import AbstractCounterTable, PsutilCounterTable
from .orchestration import LogManager, SampleLog, SampleSink
from .sampling import ColumnLayout, Sample, SampleSchema, SamplingEngine, is_over_threshold
from .system import InstanceNameMatcher, ProcessTreeResolver

# Model classes for external use
from .models import (
    AppConfig,
    CounterSpec,
    EngineReport,
    EngineState,
    LoggingConfig,
    MonitorConfig,
    NamedCounterConfig,
    ProcessHandle,
    ThresholdConfig,
)

# Validation utilities
from .validation import (
    CounterError,
    ValidationError,
    classify_error,
)

__version__ = "1.0.0"

__all__ = [
    # Main interfaces
    "get_config",
    "clear_config_cache",
    "set_config_path",
    "AbstractCounterTable",
    "PsutilCounterTable",
    "LogManager",
    "SampleLog",
    "SampleSink",
    "ColumnLayout",
    "Sample",
    "SampleSchema",
    "SamplingEngine",
    "is_over_threshold",
    "InstanceNameMatcher",
    "ProcessTreeResolver",
    # Models
    "AppConfig",
    "CounterSpec",
    "EngineReport",
    "EngineState",
    "LoggingConfig",
    "MonitorConfig",
    "NamedCounterConfig",
    "ProcessHandle",
    "ThresholdConfig",
    # Validation
    "CounterError",
    "ValidationError",
    "classify_error",
]
