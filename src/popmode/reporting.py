"""Reporting utilities for fitted surrogate models."""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import Sequence

import matplotlib.pyplot as plt
import numpy as np
from tabulate import tabulate

from .transfer import FitResult


@dataclass(frozen=True)
class FitSummary:
    dimension: int
    origin: int
    omega0_hz: float
    quality: float
    mse: float
    relative_mse: float
    attempts: int


def summarize_fit(dimension: int, origin: int, magnitudes: np.ndarray, fit: FitResult) -> FitSummary:
    power = float(np.mean(np.square(magnitudes)))
    return FitSummary(
        dimension=dimension,
        origin=origin,
        omega0_hz=fit.omega0 / (2.0 * np.pi),
        quality=fit.quality,
        mse=fit.mse,
        # silent channels get an exact zero filter
        relative_mse=fit.mse / power if fit.attempts > 0 else 0.0,
        attempts=fit.attempts,
    )


def fit_summaries(
    origin_indices: np.ndarray,
    magnitudes: np.ndarray,
    fits: Sequence[FitResult],
) -> list[FitSummary]:
    return [
        summarize_fit(i, int(origin_indices[i]), magnitudes[i], fit)
        for i, fit in enumerate(fits)
    ]


def summarize_fits(summaries: Sequence[FitSummary]) -> str:
    rows: list[tuple] = []
    for summary in summaries:
        rows.append(
            (
                summary.dimension,
                summary.origin,
                f"{summary.omega0_hz:.1f}",
                f"{summary.quality:.3f}",
                f"{summary.mse:.3e}",
                f"{summary.relative_mse * 100.0:.2f}",
                summary.attempts,
            )
        )
    table = tabulate(
        rows,
        headers=[
            "Dim",
            "Origin",
            "f0 [Hz]",
            "Q",
            "MSE",
            "Relative MSE [%]",
            "Attempts",
        ],
        tablefmt="github",
        disable_numparse=True,
    )
    worst = max((s.relative_mse for s in summaries), default=float("nan"))
    return table + "\n" + f"Worst relative fit error: {worst * 100.0:.2f}%"


def plot_spectrum_fits(
    frequencies: np.ndarray,
    magnitudes: np.ndarray,
    fits: Sequence[FitResult],
    out_path: Path,
) -> None:
    """Plot target spectra against fitted transfer function magnitudes."""
    n = len(fits)
    fig, axes = plt.subplots(n, 1, figsize=(7.5, 3.0 * n), squeeze=False)
    hz = np.asarray(frequencies) / (2.0 * np.pi)
    for i, (ax, fit) in enumerate(zip(axes[:, 0], fits)):
        ax.plot(hz, magnitudes[i], "k", linewidth=1.0, label="Estimated")
        ax.plot(hz, fit.transfer_function.magnitude(frequencies), "b", linewidth=2.0, label="Fitted")
        ax.set_ylabel("|F|")
        ax.set_title(f"Output dimension {i} (f0={fit.omega0 / (2.0 * np.pi):.1f} Hz, Q={fit.quality:.2f})")
        ax.grid(True, alpha=0.3)
        ax.legend()
    axes[-1, 0].set_xlabel("Frequency [Hz]")
    plt.tight_layout()
    plt.savefig(out_path)
    plt.close(fig)
