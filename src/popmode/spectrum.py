"""Monte Carlo estimation of noise correlations and power spectra.

Noise is the part of a population's decoded output that remains after the
ideal value and the bias are removed. Both the cross-correlation and the
spectrum depend on the population state in reality; here they are averaged
over a handful of random states and treated as state independent.
"""

from __future__ import annotations

from dataclasses import dataclass

import numpy as np
from tqdm import tqdm

from .bias import sample_bias
from .config import SurrogateConfig, get_verbosity
from .population import Population, generate_random_points


@dataclass(frozen=True)
class NoiseStatistics:
    """Averaged noise statistics of a population.

    Attributes:
        frequencies: Angular frequencies [rad/s] of the spectrum bins.
        magnitudes: Fourier magnitudes, shape (n_outputs, n_frequencies).
        correlation: Noise correlation matrix, shape (n_outputs, n_outputs).
        points: Evaluation points the statistics were averaged over (d x n).
    """

    frequencies: np.ndarray
    magnitudes: np.ndarray
    correlation: np.ndarray
    points: np.ndarray


def sample_noise(
    population: Population,
    origin_indices: np.ndarray,
    point: np.ndarray | None,
    dt: float,
    duration: float,
) -> np.ndarray:
    """Record decoded-output noise while the population sits at a fixed state.

    Args:
        population: Population to simulate.
        origin_indices: Owning origin of each output dimension.
        point: State at which noise is sampled; the origin if None.
        dt: Simulation step [s].
        duration: Simulated time [s].

    Returns:
        Noise samples of shape (len(origin_indices), n_steps).
    """
    if point is None:
        point = np.zeros(len(population.radii))
    point = np.ravel(np.asarray(point, dtype=float))

    n_steps = int(round(duration / dt))
    times = dt * np.arange(1, n_steps + 1)
    outputs = np.zeros((origin_indices.size, n_steps))

    drive = population.get_drive(point)
    population.reset()
    for i, t in enumerate(times):
        activity = population.spike_generator.run(drive, t - dt, t, True)
        for j, origin in enumerate(population.origins):
            origin.set_activity(t, activity)
            outputs[origin_indices == j, i] = origin.get_output()

    bias, ideal = sample_bias(population, origin_indices, point[:, None])
    return outputs - (ideal + bias)


def noise_correlation(noise: np.ndarray) -> np.ndarray:
    """Correlation matrix between rows of ``noise``.

    Rows without variance have no defined correlation; they are treated as
    uncorrelated with everything else.
    """
    noise = np.atleast_2d(noise)
    with np.errstate(divide="ignore", invalid="ignore"):
        rho = np.atleast_2d(np.corrcoef(noise))
    rho = np.where(np.isfinite(rho), rho, 0.0)
    np.fill_diagonal(rho, 1.0)
    return rho


def magnitude_spectrum(noise: np.ndarray, n_frequencies: int) -> np.ndarray:
    """Fourier magnitudes of each row of ``noise`` up to the Nyquist frequency."""
    noise = np.atleast_2d(noise)
    spectrum = np.fft.fft(noise, axis=1) / noise.shape[1] * 2.0 / np.sqrt(np.pi)
    return np.abs(spectrum[:, :n_frequencies])


def estimate_noise_statistics(
    population: Population,
    origin_indices: np.ndarray,
    config: SurrogateConfig | None = None,
    rng: np.random.Generator | None = None,
) -> NoiseStatistics:
    """Average noise correlation and spectra over random evaluation points."""
    config = config or SurrogateConfig()
    rng = rng if rng is not None else np.random.default_rng(config.seed)

    n = config.noise_points
    nd = origin_indices.size
    points = generate_random_points(n, population.radii, rng)

    rho = np.zeros((nd, nd))
    mags = np.zeros((nd, config.n_frequencies))
    weight = 1.0 / n

    point_iter = tqdm(
        range(n),
        desc="Sampling population noise",
        disable=get_verbosity() == 0,
        leave=False,
    )
    for i in point_iter:
        noise = sample_noise(population, origin_indices, points[:, i], config.dt, config.noise_duration)
        rho += weight * noise_correlation(noise)
        mags += weight * magnitude_spectrum(noise, config.n_frequencies)

    return NoiseStatistics(
        frequencies=config.frequencies,
        magnitudes=mags,
        correlation=rho,
        points=points,
    )
