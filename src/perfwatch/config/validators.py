"""
Configuration validation utilities.

This module turns the raw `[monitor]` and `[monitor.logging]` tables into
validated configuration dataclasses.
"""

import logging
from pathlib import Path
from typing import Any, Dict, List

from ..models.config import LoggingConfig, MonitorConfig, NamedCounterConfig, ThresholdConfig
from ..sampling.schema import is_reserved_column
from ..validation import (
    ValidationError,
    validate_boolean,
    validate_enum_choice,
    validate_non_empty_string,
    validate_positive_integer,
    validate_string_list,
)

logger = logging.getLogger(__name__)

LOG_LEVELS = ["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]


def validate_monitor_config(monitor_data: Dict[str, Any]) -> MonitorConfig:
    """
    Validate and create a MonitorConfig from raw configuration data.

    Args:
        monitor_data: Raw `[monitor]` table from TOML

    Returns:
        Validated MonitorConfig instance

    Raises:
        ValidationError: If validation fails
    """
    defaults = MonitorConfig()
    collection_settings = monitor_data.get("collection", {})
    column_settings = monitor_data.get("columns", {})
    threshold_settings = monitor_data.get("thresholds", {})

    enabled = validate_boolean(
        monitor_data.get("enabled", defaults.enabled),
        field_name="monitor.enabled",
    )

    process_name = monitor_data.get("process_name", defaults.process_name)
    if not isinstance(process_name, str):
        raise ValidationError(
            "monitor.process_name must be a string",
            field_name="monitor.process_name",
            value=process_name,
        )

    # Validate collection settings
    interval_ms = validate_positive_integer(
        collection_settings.get("interval_ms", defaults.interval_ms),
        min_value=10,  # 10ms minimum
        max_value=3_600_000,  # 1h maximum
        field_name="monitor.collection.interval_ms",
    )

    monitoring_delay_ms = validate_positive_integer(
        collection_settings.get("monitoring_delay_ms", defaults.monitoring_delay_ms),
        min_value=0,
        field_name="monitor.collection.monitoring_delay_ms",
    )

    delay_on_exception_ms = validate_positive_integer(
        collection_settings.get("delay_on_exception_ms", defaults.delay_on_exception_ms),
        min_value=0,
        field_name="monitor.collection.delay_on_exception_ms",
    )

    recreate_child_counters_intervals = validate_positive_integer(
        collection_settings.get(
            "recreate_child_counters_intervals", defaults.recreate_child_counters_intervals
        ),
        min_value=0,
        field_name="monitor.collection.recreate_child_counters_intervals",
    )

    excluded_process_names = validate_string_list(
        collection_settings.get("excluded_process_names", defaults.excluded_process_names),
        field_name="monitor.collection.excluded_process_names",
    )

    max_tree_depth = validate_positive_integer(
        collection_settings.get("max_tree_depth", defaults.max_tree_depth),
        min_value=1,
        max_value=4096,
        field_name="monitor.collection.max_tree_depth",
    )

    # Validate column selection
    enable_system_usage = validate_boolean(
        column_settings.get("enable_system_usage", defaults.enable_system_usage),
        field_name="monitor.columns.enable_system_usage",
    )
    enable_child_services_usage = validate_boolean(
        column_settings.get(
            "enable_child_services_usage", defaults.enable_child_services_usage
        ),
        field_name="monitor.columns.enable_child_services_usage",
    )
    enable_named_counters = validate_boolean(
        column_settings.get("enable_named_counters", defaults.enable_named_counters),
        field_name="monitor.columns.enable_named_counters",
    )

    thresholds = ThresholdConfig(
        cpu_percent=validate_positive_integer(
            threshold_settings.get("cpu_percent", 0),
            min_value=0,
            field_name="monitor.thresholds.cpu_percent",
        ),
        memory_mb=validate_positive_integer(
            threshold_settings.get("memory_mb", 0),
            min_value=0,
            field_name="monitor.thresholds.memory_mb",
        ),
    )

    named_counters = validate_named_counters(monitor_data.get("counters", []))
    if enable_named_counters and not named_counters:
        logger.warning(
            "monitor.columns.enable_named_counters is set but no [[monitor.counters]] are defined"
        )

    return MonitorConfig(
        enabled=enabled,
        process_name=process_name.strip(),
        interval_ms=interval_ms,
        monitoring_delay_ms=monitoring_delay_ms,
        delay_on_exception_ms=delay_on_exception_ms,
        recreate_child_counters_intervals=recreate_child_counters_intervals,
        excluded_process_names=excluded_process_names,
        max_tree_depth=max_tree_depth,
        enable_system_usage=enable_system_usage,
        enable_child_services_usage=enable_child_services_usage,
        enable_named_counters=enable_named_counters,
        thresholds=thresholds,
        named_counters=named_counters,
    )


def validate_named_counters(counters_data: Any) -> List[NamedCounterConfig]:
    """
    Validate the `[[monitor.counters]]` array of tables.

    Column names must be unique, since they become header columns, and must
    not collide with the built-in columns or the `<instance> CPU%` /
    `<instance> MemMB` per-child columns.

    Raises:
        ValidationError: If an entry is malformed or a column is repeated
    """
    if not isinstance(counters_data, list):
        raise ValidationError(
            "monitor.counters must be an array of tables",
            field_name="monitor.counters",
            value=counters_data,
        )

    validated: List[NamedCounterConfig] = []
    seen_columns = set()
    for i, entry in enumerate(counters_data):
        prefix = f"monitor.counters[{i}]"
        if not isinstance(entry, dict):
            raise ValidationError(f"{prefix} must be a table", field_name=prefix, value=entry)

        column = validate_non_empty_string(entry.get("column"), field_name=f"{prefix}.column")
        if is_reserved_column(column):
            raise ValidationError(
                f"{prefix}.column '{column}' clashes with a built-in or per-child column name",
                field_name=f"{prefix}.column",
                value=column,
            )
        if column in seen_columns:
            raise ValidationError(
                f"{prefix}.column '{column}' is defined more than once",
                field_name=f"{prefix}.column",
                value=column,
            )
        seen_columns.add(column)

        instance = entry.get("instance")
        if instance is not None and not isinstance(instance, str):
            raise ValidationError(
                f"{prefix}.instance must be a string",
                field_name=f"{prefix}.instance",
                value=instance,
            )

        validated.append(
            NamedCounterConfig(
                column=column,
                category=validate_non_empty_string(
                    entry.get("category"), field_name=f"{prefix}.category"
                ),
                counter=validate_non_empty_string(
                    entry.get("counter"), field_name=f"{prefix}.counter"
                ),
                instance=(instance.strip() or None) if instance else None,
            )
        )
    return validated


def validate_logging_config(logging_data: Dict[str, Any]) -> LoggingConfig:
    """
    Validate and create a LoggingConfig from the raw `[monitor.logging]` table.

    The log directory is created if it does not exist yet.

    Raises:
        ValidationError: If validation fails
    """
    defaults = LoggingConfig()

    log_dir = Path(logging_data.get("log_dir", str(defaults.log_dir)))
    try:
        log_dir.mkdir(parents=True, exist_ok=True)
    except OSError as e:
        raise ValidationError(f"Cannot create log directory '{log_dir}': {e}")

    level = validate_enum_choice(
        logging_data.get("level", defaults.level),
        choices=LOG_LEVELS,
        field_name="monitor.logging.level",
        case_sensitive=False,
    )

    return LoggingConfig(
        log_dir=log_dir,
        level=level,
        sample_log_max_bytes=validate_positive_integer(
            logging_data.get("sample_log_max_bytes", defaults.sample_log_max_bytes),
            min_value=0,
            field_name="monitor.logging.sample_log_max_bytes",
        ),
        sample_log_backup_count=validate_positive_integer(
            logging_data.get("sample_log_backup_count", defaults.sample_log_backup_count),
            min_value=0,
            max_value=1000,
            field_name="monitor.logging.sample_log_backup_count",
        ),
        console_echo=validate_boolean(
            logging_data.get("console_echo", defaults.console_echo),
            field_name="monitor.logging.console_echo",
        ),
        value_width=validate_positive_integer(
            logging_data.get("value_width", defaults.value_width),
            min_value=1,
            max_value=32,
            field_name="monitor.logging.value_width",
        ),
    )
