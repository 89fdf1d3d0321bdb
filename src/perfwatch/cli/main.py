"""
Command-line interface for perfwatch.

This module provides the `perfwatch` entry point: it resolves the process to
watch, loads the configuration, sets up logging and runs the sampling engine
until the watched process exits or a stop signal arrives.
"""

import argparse
import dataclasses
import logging
import os
import signal
import sys
import tomllib
from pathlib import Path
from typing import List, Optional

from ..config import get_config, set_config_path
from ..counters import AbstractCounterTable, PsutilCounterTable
from ..models.config import MonitorConfig
from ..orchestration import LOG_FORMAT, LogManager
from ..sampling import SamplingEngine
from ..system import InstanceNameMatcher, ProcessTreeResolver, sorted_handles
from ..validation import CounterError, ErrorSeverity, ValidationError, handle_cli_error

# --- Logging Setup ---
logging.basicConfig(
    level=logging.INFO,
    format=LOG_FORMAT,
    datefmt="%Y-%m-%d %H:%M:%S",
    stream=sys.stdout,
)
logger = logging.getLogger(__name__)

EXIT_OK = 0
EXIT_ERROR = 1
EXIT_NO_PROCESS = 2


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="perfwatch",
        description="Sample CPU and memory usage of a process tree and log samples over threshold.",
    )
    parser.add_argument(
        "pid",
        nargs="?",
        type=int,
        help="Process id to watch. Defaults to the first process named like --name or monitor.process_name.",
    )
    parser.add_argument(
        "-n",
        "--name",
        type=str,
        help="Process name to look up when no pid is given.",
    )
    parser.add_argument(
        "-c",
        "--config",
        type=Path,
        help="Path to config.toml. Defaults to conf/config.toml.",
    )
    parser.add_argument(
        "--list-tree",
        action="store_true",
        help="Print the child process tree and counter instance names, then exit.",
    )
    return parser


def resolve_target_pid(
    table: AbstractCounterTable, pid: Optional[int], process_name: str = ""
) -> Optional[int]:
    """
    Decide which process to watch.

    Returns:
        The pid, or None when the given pid does not exist or no process matches the name
    """
    if pid is not None:
        return pid if table.process_exists(pid) else None
    if not process_name:
        return None

    find_pids = getattr(table, "find_pids_by_name", None)
    if find_pids is None:
        return None
    for candidate in find_pids(process_name):
        if table.process_exists(candidate):
            logger.info(f"Found process '{process_name}' with pid {candidate}")
            return candidate
    return None


def exclude_own_process(table: AbstractCounterTable, config: MonitorConfig) -> MonitorConfig:
    """Return a copy of `config` whose denylist also contains this program's process name."""
    try:
        own_name = table.process_name(os.getpid())
    except CounterError as e:
        logger.warning(f"Cannot determine own process name, not excluding it: {e}")
        return config
    if own_name in config.excluded_process_names:
        return config
    return dataclasses.replace(
        config, excluded_process_names=[*config.excluded_process_names, own_name]
    )


def print_process_tree(table: AbstractCounterTable, pid: int, config: MonitorConfig) -> List[str]:
    """Print the resolved child processes of `pid` with their counter instance names."""
    resolver = ProcessTreeResolver(
        table,
        excluded_names=config.excluded_process_names,
        max_depth=config.max_tree_depth,
    )
    children = sorted_handles(resolver.resolve(pid))
    instances = InstanceNameMatcher(table).match_instances([pid] + [c.pid for c in children])

    lines = [f"{pid}\t{table.process_name(pid)}\t{instances.get(pid, '-')}"]
    for child in children:
        lines.append(f"  {child.pid}\t{child.name}\t{instances.get(child.pid, '-')}")
    print("\n".join(lines))
    return lines


def main_cli(argv: Optional[List[str]] = None) -> None:
    """
    Main command-line interface for perfwatch.

    Exit codes:
        0: the watched process exited, a stop was requested, or monitoring is disabled
        1: configuration or log setup failed
        2: the process to watch does not exist

    Raises:
        SystemExit: Always, with one of the exit codes above.
    """
    args = build_parser().parse_args(argv)

    shutdown_requested = False

    def signal_handler(signum, frame):
        nonlocal shutdown_requested
        if shutdown_requested:
            logger.warning("Shutdown already in progress. Please be patient.")
            return
        logger.info(f"Signal {signal.strsignal(signum)} received. Stopping after the current tick...")
        shutdown_requested = True

    if args.config:
        set_config_path(args.config)

    try:
        app_config = get_config()
    except (FileNotFoundError, ValidationError, tomllib.TOMLDecodeError) as e:
        handle_cli_error(
            error=e,
            context="configuration loading",
            exit_code=EXIT_ERROR,
            logger=logger,
        )

    monitor_config = app_config.monitor
    if not monitor_config.enabled:
        logger.info("Monitoring is disabled in the configuration (monitor.enabled = false)")
        sys.exit(EXIT_OK)

    table = PsutilCounterTable()
    pid = resolve_target_pid(table, args.pid, args.name or monitor_config.process_name)
    if pid is None:
        logger.error("Non existing process id")
        sys.exit(EXIT_NO_PROCESS)

    monitor_config = exclude_own_process(table, monitor_config)

    if args.list_tree:
        try:
            print_process_tree(table, pid, monitor_config)
        except CounterError as e:
            handle_cli_error(
                error=e,
                context="listing the process tree",
                exit_code=EXIT_NO_PROCESS,
                severity=ErrorSeverity.WARNING,
                logger=logger,
            )
        sys.exit(EXIT_OK)

    signal.signal(signal.SIGINT, signal_handler)
    signal.signal(signal.SIGTERM, signal_handler)

    log_manager = LogManager(app_config.logging)
    try:
        sink = log_manager.open(pid)
    except OSError as e:
        handle_cli_error(error=e, context="log setup", exit_code=EXIT_ERROR, logger=logger)

    try:
        engine = SamplingEngine(
            pid,
            monitor_config,
            table,
            sink,
            stop_requested=lambda: shutdown_requested,
        )
        report = engine.run()
        logger.info(
            f"Run finished for process {pid}: {report.ticks} ticks, "
            f"{report.samples_logged} samples logged, "
            f"{report.reinitializations} re-initializations, "
            f"{len(report.exited_children)} child processes exited, "
            f"peak CPU {report.peak_process_cpu}%, peak memory {report.peak_process_mem_mb}MB"
        )
    finally:
        log_manager.close()

    sys.exit(EXIT_OK if report.started else EXIT_NO_PROCESS)


if __name__ == "__main__":
    main_cli()
