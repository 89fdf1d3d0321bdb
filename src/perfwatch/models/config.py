"""
Configuration data models.

This module contains the configuration structures for the sampling loop,
column selection, thresholds, the sample log and auxiliary named counters.
"""

from dataclasses import dataclass, field
from pathlib import Path
from typing import List, Optional


@dataclass
class NamedCounterConfig:
    """
    An auxiliary counter sampled into its own column, loaded from `[[monitor.counters]]`.
    """

    # Column header used in the sample log (e.g. "Msgs/sec").
    column: str
    # Counter category (e.g. "Network Interface", "System").
    category: str
    # Counter name inside the category (e.g. "Bytes Received/sec").
    counter: str
    # Optional instance qualifier (e.g. "_Total", "eth0").
    instance: Optional[str] = None


@dataclass
class ThresholdConfig:
    """
    Threshold filter for logged samples, loaded from `[monitor.thresholds]`.

    A sample is written to the log only when the monitored process (or one of
    its children) goes above one of these values.
    """

    cpu_percent: int = 0
    memory_mb: int = 0


@dataclass
class LoggingConfig:
    """
    Log destinations and formatting, loaded from `[monitor.logging]`.
    """

    log_dir: Path = Path("logs")
    level: str = "INFO"
    sample_log_max_bytes: int = 10 * 1024 * 1024
    sample_log_backup_count: int = 5
    console_echo: bool = True
    value_width: int = 5


@dataclass
class MonitorConfig:
    """
    Configuration for the sampling engine, loaded from `config.toml`.
    """

    # [monitor]
    enabled: bool = True
    # Process looked up by name when no pid is given on the command line.
    process_name: str = ""

    # [monitor.collection]
    interval_ms: int = 1000
    monitoring_delay_ms: int = 0
    delay_on_exception_ms: int = 5000
    recreate_child_counters_intervals: int = 0
    excluded_process_names: List[str] = field(default_factory=lambda: ["conhost"])
    max_tree_depth: int = 64

    # [monitor.columns]
    enable_system_usage: bool = True
    enable_child_services_usage: bool = True
    enable_named_counters: bool = False

    # [monitor.thresholds]
    thresholds: ThresholdConfig = field(default_factory=ThresholdConfig)

    # [[monitor.counters]]
    named_counters: List[NamedCounterConfig] = field(default_factory=list)


@dataclass
class AppConfig:
    """
    The root configuration object that aggregates all loaded settings.
    """

    monitor: MonitorConfig
    logging: LoggingConfig
