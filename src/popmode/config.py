"""Configuration primitives for population surrogate models."""

from __future__ import annotations

import os
from dataclasses import dataclass, field

import numpy as np

PARAMETER_NAMES = ("kss", "ks", "k", "omega0", "quality")


def get_verbosity() -> int:
    """Get verbosity level from environment: 0=quiet, 1=normal, 2=verbose."""
    return int(os.environ.get("POPMODE_VERBOSITY", "1"))


@dataclass(frozen=True)
class SurrogateConfig:
    """Holds tunable constants for building and running a surrogate model.

    This frozen dataclass centralizes grid sizes, Monte Carlo settings and
    fit settings. Key parameter groups:

    **Simulation:**
    - dt: Simulation step size [s]; also the discretization step of the noise filter

    **Bias Grid:**
    - bias_extent: Bias is sampled over bias_extent * [-radius, radius]
    - line_points, mesh2d_points, mesh3d_points: Points per axis for 1-3 dimensions
    - radial_points: Points along the radial profile for higher dimensions

    **Noise Estimation:**
    - noise_points: Number of random evaluation points averaged together
    - noise_duration: Length of each spiking run [s]
    - cache_steps: Noise samples generated per cache refill

    **Transfer Function Fit:**
    - smoothing_window, peak_fraction, min_peak_hz, max_peak_hz: Resonance guess
    - initial_quality: Starting quality factor
    - init_spread, init_floor: Random restart distribution of normalized parameters
    - fit_tolerance: xtol/ftol of the optimizer
    - fit_max_attempts: Restarts before a FitError is raised
    - min_fit_parameter: Lower limit on normalized resonant frequency and quality
    - silent_power: Spectra with at most this mean squared magnitude get a zero filter
    """

    dt: float = 0.001

    bias_extent: float = 3.0
    line_points: int = 301
    mesh2d_points: int = 101
    mesh3d_points: int = 41
    radial_points: int = 201

    noise_points: int = 10
    noise_duration: float = 1.0
    cache_steps: int = 1000

    smoothing_window: int = 10
    peak_fraction: float = 0.75
    min_peak_hz: float = 50.0
    max_peak_hz: float = 300.0
    initial_quality: float = 2.0
    init_spread: float = 0.25
    init_floor: float = 0.1
    fit_tolerance: float = 1.0e-10
    fit_max_attempts: int = 50
    min_fit_parameter: float = 1.0e-3
    silent_power: float = 1.0e-20

    seed: int | None = None

    _frequencies: np.ndarray = field(init=False, repr=False, compare=False)

    def __post_init__(self) -> None:
        if self.dt <= 0:
            raise ValueError(
                f"dt must be positive, got {self.dt}.\n"
                f"dt is the simulation step size in seconds (typical: 0.001)."
            )
        for name in ("line_points", "mesh2d_points", "mesh3d_points", "radial_points"):
            value = getattr(self, name)
            if value < 2:
                raise ValueError(
                    f"{name} must be at least 2, got {value}.\n"
                    f"Grid lookup needs two points to determine the axis spacing."
                )
        if self.noise_points < 1:
            raise ValueError(f"noise_points must be at least 1, got {self.noise_points}.")
        if self.noise_duration < 2 * self.dt:
            raise ValueError(
                f"noise_duration must cover at least two time steps, got {self.noise_duration}s "
                f"with dt={self.dt}s."
            )
        if self.n_frequencies < len(PARAMETER_NAMES):
            raise ValueError(
                f"noise_duration={self.noise_duration}s gives only {self.n_frequencies} frequency bins.\n"
                f"The transfer function fit needs at least {len(PARAMETER_NAMES)} bins "
                f"(noise_duration >= {2 * len(PARAMETER_NAMES) * self.dt:g}s at dt={self.dt}s)."
            )
        if self.smoothing_window < 1:
            raise ValueError(f"smoothing_window must be at least 1, got {self.smoothing_window}.")
        if self.cache_steps < 1:
            raise ValueError(f"cache_steps must be at least 1, got {self.cache_steps}.")
        if self.fit_max_attempts < 1:
            raise ValueError(f"fit_max_attempts must be at least 1, got {self.fit_max_attempts}.")

        freq = 2.0 * np.pi * np.arange(self.n_frequencies) / self.noise_duration
        object.__setattr__(self, "_frequencies", freq)

    @property
    def n_noise_steps(self) -> int:
        """Number of time steps in each spiking run used for noise estimation."""
        return int(round(self.noise_duration / self.dt))

    @property
    def n_frequencies(self) -> int:
        """Number of non-negative FFT bins below the Nyquist frequency."""
        return self.n_noise_steps // 2

    @property
    def frequencies(self) -> np.ndarray:
        """Angular frequencies [rad/s] at which noise spectra are estimated."""
        return self._frequencies
