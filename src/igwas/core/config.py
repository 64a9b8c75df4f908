"""Configuration dataclasses for IGWAS.

This module contains dataclasses that configure output locations and the
mapping from summary-statistic file columns to the fields IGWAS needs.
"""

from dataclasses import dataclass, field
from pathlib import Path


@dataclass
class OutputConfig:
    """Configuration for output files and directories.

    Attributes:
        outdir: Output directory for result files. Created if it doesn't exist.
        prefix: Prefix for output filenames (e.g., "result" produces
            "result.igwas.txt" and "result.log.txt").
        verbose: Enable verbose/debug output to console.
    """

    outdir: Path = field(default_factory=lambda: Path("output"))
    prefix: str = "result"
    verbose: bool = False

    @property
    def log_path(self) -> Path:
        """Path to the run log file: {outdir}/{prefix}.log.txt"""
        return self.outdir / f"{self.prefix}.log.txt"

    @property
    def results_path(self) -> Path:
        """Path to the projected summary statistics: {outdir}/{prefix}.igwas.txt"""
        return self.outdir / f"{self.prefix}.igwas.txt"

    def ensure_outdir(self) -> None:
        """Create output directory if it doesn't exist."""
        self.outdir.mkdir(parents=True, exist_ok=True)


@dataclass(frozen=True)
class SumstatsColumns:
    """Column names to read from each per-phenotype summary-statistic file.

    Defaults follow PLINK2 ``--glm`` linear regression output.

    Attributes:
        variant_id: Column holding the variant identifier.
        beta: Column holding the effect estimate.
        std_error: Column holding the standard error of the effect estimate.
        sample_size: Column holding the per-variant number of observations.
    """

    variant_id: str = "ID"
    beta: str = "BETA"
    std_error: str = "SE"
    sample_size: str = "OBS_CT"

    def required(self) -> tuple[str, str, str, str]:
        """Column names in the order (variant_id, beta, std_error, sample_size)."""
        return (self.variant_id, self.beta, self.std_error, self.sample_size)
