"""IGWAS command-line interface.

Typer-based CLI. Global options (output directory, prefix, verbosity) are
set by the app callback; the ``run`` command performs an indirect GWAS.
"""

import sys
import time
from pathlib import Path
from typing import Annotated

import typer

import igwas
from igwas.core import IGWASError, OutputConfig, SumstatsColumns
from igwas.pipeline import PipelineConfig, PipelineRunner
from igwas.utils import setup_logging, write_run_log

app = typer.Typer(
    name="igwas",
    help="IGWAS: indirect GWAS of projected phenotypes from summary statistics.",
    add_completion=False,
)

# Store global options set by callback
_global_config: OutputConfig | None = None


def version_callback(value: bool) -> None:
    """Print version and exit."""
    if value:
        from igwas.core import get_jax_info

        typer.echo(f"IGWAS version {igwas.__version__}")

        info = get_jax_info()
        typer.echo(f"JAX {info['version']} (backend: {info['backend']})")
        raise typer.Exit()


@app.callback()
def main(
    outdir: Annotated[
        Path,
        typer.Option("--outdir", help="Output directory"),
    ] = Path("output"),
    output: Annotated[
        str,
        typer.Option("-o", "--output", help="Output file prefix"),
    ] = "result",
    verbose: Annotated[
        bool,
        typer.Option("-v", "--verbose", help="Verbose output"),
    ] = False,
    version: Annotated[
        bool | None,
        typer.Option(
            "--version",
            callback=version_callback,
            is_eager=True,
            help="Show version and exit",
        ),
    ] = None,
) -> None:
    """IGWAS: indirect GWAS.

    Computes GWAS summary statistics for projections of measured phenotypes
    from per-phenotype GWAS results and the phenotype covariance matrix.
    """
    global _global_config
    _global_config = OutputConfig(outdir=outdir, prefix=output, verbose=verbose)
    setup_logging(verbose=verbose)


@app.command("run")
def run_command(
    projection: Annotated[
        Path,
        typer.Option(
            "-p", "--projection", help="Projection matrix (phenotypes x projections)"
        ),
    ],
    covariance: Annotated[
        Path,
        typer.Option("-c", "--covariance", help="Phenotype covariance matrix"),
    ],
    gwas: Annotated[
        list[Path],
        typer.Option(
            "-g",
            "--gwas",
            help="Per-phenotype GWAS summary statistics. Repeat for each phenotype.",
        ),
    ],
    num_covar: Annotated[
        int,
        typer.Option("-n", "--num-covar", help="Number of covariates in each GWAS"),
    ],
    chunksize: Annotated[
        int,
        typer.Option("--chunksize", help="Variants per window"),
    ] = 50_000,
    num_threads: Annotated[
        int | None,
        typer.Option(
            "-t",
            "--num-threads",
            help="Worker threads (default: IGWAS_NUM_THREADS or physical cores)",
        ),
    ] = None,
    variant_id: Annotated[
        str,
        typer.Option("--variant-id", help="Variant ID column name"),
    ] = "ID",
    beta: Annotated[
        str,
        typer.Option("--beta", help="Effect estimate column name"),
    ] = "BETA",
    std_error: Annotated[
        str,
        typer.Option("--std-error", help="Standard error column name"),
    ] = "SE",
    sample_size: Annotated[
        str,
        typer.Option("--sample-size", help="Sample size column name"),
    ] = "OBS_CT",
    check_memory: Annotated[
        bool,
        typer.Option(
            "--check-memory/--no-check-memory",
            help="Enable/disable pre-flight memory check (default: enabled)",
        ),
    ] = True,
    mem_budget: Annotated[
        float | None,
        typer.Option(
            "--mem-budget",
            help="Hard memory budget in GB. Fail if estimate exceeds this.",
        ),
    ] = None,
    progress: Annotated[
        bool,
        typer.Option("--progress/--no-progress", help="Show a progress bar"),
    ] = True,
) -> None:
    """Compute projected summary statistics.

    Writes {outdir}/{prefix}.igwas.txt with one line per projection and
    variant, and a run log at {outdir}/{prefix}.log.txt.
    """
    start_time = time.perf_counter()

    global _global_config
    if _global_config is None:
        _global_config = OutputConfig()

    command_line = " ".join(sys.argv)

    config = PipelineConfig(
        projection_file=projection,
        covariance_file=covariance,
        gwas_files=list(gwas),
        n_covar=num_covar,
        columns=SumstatsColumns(
            variant_id=variant_id,
            beta=beta,
            std_error=std_error,
            sample_size=sample_size,
        ),
        window_size=chunksize,
        worker_count=num_threads,
        output_dir=_global_config.outdir,
        output_prefix=_global_config.prefix,
        check_memory=check_memory,
        mem_budget=mem_budget,
        show_progress=progress,
    )

    typer.echo(
        f"Combining {len(config.gwas_files)} GWAS files with {projection.name}..."
    )
    try:
        result = PipelineRunner(config).run()
    except (IGWASError, FileNotFoundError, MemoryError, ValueError) as e:
        typer.echo(f"Error: {e}", err=True)
        raise typer.Exit(code=1) from None

    typer.echo(
        f"Wrote {result.n_rows_written} rows "
        f"({result.n_projections} projections x {result.n_variants} variants) "
        f"to {result.results_path}"
    )

    elapsed = time.perf_counter() - start_time
    params = {
        "n_phenotypes": result.n_phenotypes,
        "n_projections": result.n_projections,
        "n_variants": result.n_variants,
        "n_rows": result.n_rows_written,
        "n_covar": num_covar,
        "window_size": chunksize,
        "projection_file": str(projection),
        "covariance_file": str(covariance),
        "results_file": str(result.results_path),
    }
    timing = {
        "total": elapsed,
        "load": result.timing["load_s"],
        "windows": result.timing["windows_s"],
    }
    log_path = write_run_log(_global_config, params, timing, command_line)
    typer.echo(f"Log written to {log_path}")


if __name__ == "__main__":
    app()
