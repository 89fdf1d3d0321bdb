"""
Generates plots from sample log files.

This module is the offline visualization step: it reads a `samples_<pid>.csv`
sample log written by a monitoring run, loads it into a Polars DataFrame and
creates interactive time-series plots using Plotly.

The main functionalities include:
- Parsing the comma/tab separated sample log. The header only ever grows
  during a run, so the last header in the file describes every row; rows
  written before a header change are padded with nulls.
- Treating the -1 "unavailable" marker as a missing value.
- Generating one line plot of the CPU% columns and one of the process and
  child MemMB columns, saved as interactive HTML files.
"""

import argparse
import logging
import sys
from pathlib import Path
from typing import Dict, List, Optional, Sequence

# Third-party library imports
import plotly.express as px
import plotly.graph_objects as go
import polars as pl

from .orchestration.sample_log import COLUMN_SEPARATOR
from .sampling.sample import UNAVAILABLE
from .sampling.schema import FREE_MEMORY_COLUMN, TIME_COLUMN

logger = logging.getLogger(__name__)

CPU_SUFFIX = "CPU%"
MEMORY_SUFFIX = "MemMB"


def _split_line(line: str) -> List[str]:
    return [field.strip() for field in line.split(COLUMN_SEPARATOR.strip())]


def parse_sample_log(log_file: Path) -> pl.DataFrame:
    """
    Parse a sample log into a DataFrame laid out against its last header.

    Args:
        log_file: Path to the sample log.

    Returns:
        A DataFrame with a string `Time` column and one Int64 column per
        metric. Unavailable readings are null.

    Raises:
        FileNotFoundError: If the log file does not exist.
    """
    header: List[str] = []
    rows: List[List[Optional[int]]] = []
    times: List[str] = []

    with open(log_file, "r", encoding="utf-8") as f:
        for line_no, line in enumerate(f, start=1):
            if not line.strip():
                continue
            fields = _split_line(line)
            if fields[0] == TIME_COLUMN:
                header = fields
                continue
            if not header:
                logger.warning(f"{log_file.name}:{line_no}: row before any header, skipping")
                continue
            try:
                values = [int(value) for value in fields[1:]]
            except ValueError:
                logger.warning(f"{log_file.name}:{line_no}: malformed row, skipping")
                continue
            times.append(fields[0])
            rows.append(values)

    if not header:
        return pl.DataFrame({TIME_COLUMN: []}, schema={TIME_COLUMN: pl.Utf8})

    value_columns = header[1:]
    width = len(value_columns)
    padded = [row[:width] + [None] * (width - len(row)) for row in rows]

    df = pl.DataFrame(
        [[time] + row for time, row in zip(times, padded)],
        schema={TIME_COLUMN: pl.Utf8, **{name: pl.Int64 for name in value_columns}},
        orient="row",
    )
    return df.with_columns(
        [
            pl.when(pl.col(name) == UNAVAILABLE).then(None).otherwise(pl.col(name)).alias(name)
            for name in value_columns
        ]
    )


def cpu_columns(df: pl.DataFrame) -> List[str]:
    return [name for name in df.columns if name.endswith(CPU_SUFFIX)]


def memory_columns(df: pl.DataFrame) -> List[str]:
    """Process and child memory columns. Host free memory is left out."""
    return [
        name
        for name in df.columns
        if name.endswith(MEMORY_SUFFIX) and name != FREE_MEMORY_COLUMN
    ]


def summarize_peaks(df: pl.DataFrame) -> Dict[str, Optional[int]]:
    """Return the peak value of every metric column, None for columns without data."""
    value_columns = [name for name in df.columns if name != TIME_COLUMN]
    if not value_columns or df.is_empty():
        return {name: None for name in value_columns}
    return df.select(pl.col(value_columns).max()).row(0, named=True)


def _save_plotly_figure(fig: go.Figure, base_filename: str, output_dir: Path) -> Optional[Path]:
    """
    Saves a Plotly figure as an interactive HTML file.

    Returns:
        The path of the written file, or None if writing failed.
    """
    plot_filename_html = output_dir / f"{base_filename}.html"
    try:
        fig.write_html(plot_filename_html)
    except OSError as e:
        logger.error(f"Failed to save plot {plot_filename_html} using Plotly: {e}", exc_info=True)
        return None
    logger.info(f"Interactive plot saved to: {plot_filename_html}")
    return plot_filename_html


def _generate_line_plot_plotly(
    df: pl.DataFrame,
    columns: Sequence[str],
    value_label: str,
    title: str,
    base_filename: str,
    output_dir: Path,
) -> Optional[Path]:
    """
    Generates and saves a line plot with one line per column.
    """
    if df.is_empty() or not columns:
        logger.warning(f"Line Plot: no data for '{title}'. Skipping.")
        return None

    long_df = df.unpivot(
        index=TIME_COLUMN,
        on=list(columns),
        variable_name="Column",
        value_name=value_label,
    ).drop_nulls(value_label)

    if long_df.is_empty():
        logger.warning(f"Line Plot: only unavailable values for '{title}'. Skipping.")
        return None

    fig = px.line(
        long_df,
        x=TIME_COLUMN,
        y=value_label,
        color="Column",
        title=title,
        markers=True,
    )
    fig.update_layout(legend_title_text="Column", xaxis_title="Time", yaxis_title=value_label)
    return _save_plotly_figure(fig, base_filename, output_dir)


def plot_sample_log(log_file: Path, output_dir: Optional[Path] = None) -> List[Path]:
    """
    Parse a sample log and write its CPU and memory plots.

    Args:
        log_file: Path to the sample log.
        output_dir: Where to write the HTML files. Defaults to the log's directory.

    Returns:
        Paths of the plots written.
    """
    output_dir = output_dir or log_file.parent
    output_dir.mkdir(parents=True, exist_ok=True)

    df = parse_sample_log(log_file)
    if df.is_empty():
        logger.warning(f"No samples found in {log_file}. Skipping plots.")
        return []

    logger.info(f"Loaded {df.height} samples with {df.width - 1} metric columns from {log_file.name}")
    for name, peak in summarize_peaks(df).items():
        logger.info(f"Peak {name}: {peak if peak is not None else 'n/a'}")

    written = []
    for columns, label, kind in (
        (cpu_columns(df), "CPU %", "cpu"),
        (memory_columns(df), "Memory (MB)", "memory"),
    ):
        path = _generate_line_plot_plotly(
            df,
            columns,
            value_label=label,
            title=f"{label} over time - {log_file.stem}",
            base_filename=f"{log_file.stem}_{kind}_lines_plot",
            output_dir=output_dir,
        )
        if path is not None:
            written.append(path)
    return written


def main(argv: Optional[List[str]] = None) -> None:
    """Command-line entry point of `perfwatch-plot`."""
    logging.basicConfig(
        level=logging.INFO,
        format="%(asctime)s [%(levelname)s] %(message)s",
        handlers=[logging.StreamHandler(sys.stdout)],
    )
    parser = argparse.ArgumentParser(description="Generate plots from a perfwatch sample log.")
    parser.add_argument(
        "--log-file",
        type=Path,
        required=True,
        help="Required. Path to a samples_<pid>.csv sample log.",
    )
    parser.add_argument(
        "--output-dir",
        type=Path,
        help="Directory to save plots. Defaults to the directory of --log-file.",
    )
    args = parser.parse_args(argv)

    if not args.log_file.is_file():
        logger.error(f"Sample log not found: {args.log_file}")
        sys.exit(1)

    try:
        written = plot_sample_log(args.log_file, args.output_dir)
    except OSError as e:
        logger.error(f"Cannot generate plots for {args.log_file}: {e}")
        sys.exit(1)

    if not written:
        logger.warning("No plots were generated.")


if __name__ == "__main__":
    main()
