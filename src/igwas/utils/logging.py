"""loguru sinks and the ``##`` run log written beside each results file."""

import sys
from datetime import datetime
from pathlib import Path

import psutil
from loguru import logger

import igwas
from igwas.core.config import OutputConfig


def setup_logging(verbose: bool = False, log_file: Path | None = None) -> None:
    """Replace loguru's sinks with a stdout sink and an optional JSON file.

    Args:
        verbose: Show DEBUG records (per-source reads, window memory) on stdout.
        log_file: If given, every DEBUG-and-above record is also serialized
            to this file as one JSON object per line.
    """
    logger.remove()
    logger.add(
        sys.stdout,
        level="DEBUG" if verbose else "INFO",
        format="{time:HH:mm:ss} | <level>{level: <8}</level> | {message}",
        colorize=True,
    )
    if log_file:
        logger.add(log_file, serialize=True, level="DEBUG")


def _timing_line(phase: str, seconds: float | int) -> str:
    shown = f"{seconds:.2f}" if isinstance(seconds, float) else str(seconds)
    return f"## {phase} time = {shown} seconds"


def write_run_log(
    output_config: OutputConfig,
    params: dict,
    timing: dict,
    command_line: str,
) -> Path:
    """Record how a run was invoked, what it covered and how long it took.

    The file is ``{outdir}/{prefix}.log.txt``; every line starts with ``##``
    and blank ``##`` lines separate the sections, e.g.::

        ## IGWAS Version = 0.1.0
        ## Command Line Input = igwas run -p proj.tsv ...
        ## n_projections = 3
        ## windows time = 4.20 seconds

    Returns:
        Path to the written log.
    """
    lines = [
        "##",
        f"## IGWAS Version = {igwas.__version__}",
        f"## Date = {datetime.now().isoformat()}",
        "##",
        f"## Command Line Input = {command_line}",
        "##",
        "## Summary Statistics:",
        *(f"## {key} = {value}" for key, value in params.items()),
        "##",
        "## Computation Time:",
        *(_timing_line(phase, seconds) for phase, seconds in timing.items()),
        "##",
    ]

    output_config.ensure_outdir()
    log_path = output_config.log_path
    log_path.write_text("\n".join(lines) + "\n")
    return log_path


def log_rss_memory(phase: str, checkpoint: str) -> float:
    """Log process RSS in GB, bound to ``phase`` and ``checkpoint`` extras."""
    rss_gb = psutil.Process().memory_info().rss / 1e9
    logger.bind(phase=phase, checkpoint=checkpoint).info(
        f"RSS {rss_gb:.2f}GB at {phase}/{checkpoint}"
    )
    return rss_gb
