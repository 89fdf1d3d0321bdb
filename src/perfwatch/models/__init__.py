"""
Data models for the monitoring system.

Configuration Models:
- Sampling loop, column selection and threshold settings
- Sample log destinations
- Auxiliary named counters

Runtime Models:
- Discovered process handles
- Counter identities
- Engine lifecycle state

Result Models:
- Run report returned by the sampling engine
"""

from .config import AppConfig, LoggingConfig, MonitorConfig, NamedCounterConfig, ThresholdConfig
from .results import EngineReport
from .runtime import CounterSpec, EngineState, ProcessHandle

__all__ = [
    # Configuration
    "AppConfig",
    "LoggingConfig",
    "MonitorConfig",
    "NamedCounterConfig",
    "ThresholdConfig",
    # Runtime
    "CounterSpec",
    "EngineState",
    "ProcessHandle",
    # Results
    "EngineReport",
]
