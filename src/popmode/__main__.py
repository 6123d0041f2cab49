"""Command-line entry point for building a surrogate of a synthetic population."""

from __future__ import annotations

import argparse
import os
import sys
import time
from pathlib import Path

import numpy as np

from .analysis import run_synthetic_pipeline
from .config import SurrogateConfig
from .transfer import FitError


def format_elapsed(seconds: float) -> str:
    """Render a wall-clock duration as ``12.34s``, ``3m 05s`` or ``1h 02m``."""
    minutes, secs = divmod(seconds, 60.0)
    if minutes < 1:
        return f"{secs:.2f}s"
    hours, minutes = divmod(int(minutes), 60)
    if hours < 1:
        return f"{minutes}m {int(secs):02d}s"
    return f"{hours}h {minutes:02d}m"


def print_banner(title: str, width: int = 72) -> None:
    rule = "-" * width
    print(f"\n{rule}\n {title}\n{rule}")


def print_summary(artifacts, elapsed: float, verbose: bool) -> None:
    """Print model construction and trace statistics."""
    print_banner("Surrogate Summary")
    model = artifacts.model
    trace = artifacts.trace

    print(f"\nRuntime: {format_elapsed(elapsed)}")
    print(f"Origin indices: {model.get_origin_indices().tolist()}")

    print("\n--- Bias Model ---")
    grid = model.bias_model.grid
    print(f"  Grid type:                  {type(grid).__name__}")
    print(f"  Grid shape:                 {grid.shape}")
    print(f"  Max |bias|:                 {np.max(np.abs(model.bias_model.table)):.4e}")

    print("\n--- Noise Model ---")
    print(f"  Filter states:              {model.filter_system.n_states}")
    print(f"  Mean fit attempts:          {np.mean([fit.attempts for fit in model.fits]):.1f}")

    print("\n--- Surrogate Trace ---")
    print(f"  Steps:                      {trace.times.size}")
    print(f"  RMS bias:                   {np.sqrt(np.mean(np.square(trace.bias))):.4e}")
    print(f"  RMS noise:                  {np.sqrt(np.mean(np.square(trace.noise))):.4e}")

    if verbose:
        print("\n--- Noise Correlation ---")
        print(np.array2string(model.noise_statistics.correlation, precision=3))


def main() -> None:
    parser = argparse.ArgumentParser(
        description="Build a statistical surrogate of a synthetic spiking population.",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  %(prog)s                           # 1-D population with default settings
  %(prog)s --dimensions 2 --verbose  # 2-D population, detailed output
  %(prog)s --output-dir results/     # Also write spectrum fit plots
  %(prog)s --quiet                   # Minimal output
        """,
    )
    parser.add_argument(
        "--dimensions",
        type=int,
        default=1,
        help="Number of dimensions represented by the population (default: 1).",
    )
    parser.add_argument(
        "--neurons",
        type=int,
        default=100,
        help="Number of neurons in the population (default: 100).",
    )
    parser.add_argument(
        "--seed",
        type=int,
        default=None,
        help="Seed for the surrogate's random generator.",
    )
    parser.add_argument(
        "--output-dir",
        type=Path,
        default=None,
        help="Directory where spectrum fit plots will be written.",
    )
    parser.add_argument(
        "-v", "--verbose",
        action="store_true",
        help="Enable verbose output with detailed progress information.",
    )
    parser.add_argument(
        "-q", "--quiet",
        action="store_true",
        help="Suppress all output except errors and final results.",
    )
    args = parser.parse_args()

    if args.dimensions < 1:
        print(f"Error: --dimensions must be at least 1, got {args.dimensions}.", file=sys.stderr)
        sys.exit(1)

    # Set global verbosity level (used by other modules)
    if args.quiet:
        os.environ["POPMODE_VERBOSITY"] = "0"
    elif args.verbose:
        os.environ["POPMODE_VERBOSITY"] = "2"
    else:
        os.environ["POPMODE_VERBOSITY"] = "1"

    if not args.quiet:
        print_banner("Population Surrogate Construction")
        print(f"\nDimensions: {args.dimensions}, neurons: {args.neurons}")

    start_time = time.time()

    try:
        artifacts = run_synthetic_pipeline(
            dimensions=args.dimensions,
            config=SurrogateConfig(seed=args.seed),
            output_dir=args.output_dir,
            n_neurons=args.neurons,
        )
        elapsed = time.time() - start_time

        if args.quiet:
            worst = max(s.relative_mse for s in artifacts.summaries)
            print(f"{worst:.6e}")
        else:
            print_summary(artifacts, elapsed, args.verbose)
            print("\n" + artifacts.tables)
            if artifacts.plot_path is not None:
                print(f"\nSpectrum plot written to: {artifacts.plot_path.resolve()}")
            print_banner("Construction Complete")

    except FitError as e:
        elapsed = time.time() - start_time
        print(f"\nError after {format_elapsed(elapsed)}:\n{e}", file=sys.stderr)
        sys.exit(1)
    except ValueError as e:
        elapsed = time.time() - start_time
        print(
            f"\nError after {format_elapsed(elapsed)}:\n"
            f"Invalid input: {e}",
            file=sys.stderr
        )
        sys.exit(1)


if __name__ == "__main__":
    main()
