"""Interface to the spiking population being modelled.

The surrogate never simulates spikes itself. It talks to a population-like
collaborator through the protocols below, which mirror the population,
origin and spike generator objects of the host simulator.
"""

from __future__ import annotations

from typing import Protocol, Sequence

import numpy as np


class Origin(Protocol):
    """A decoded output channel of a population."""

    dim: int
    decoders: np.ndarray

    def f(self, points: np.ndarray) -> np.ndarray:
        """Ideal function values (dim x n) at state-space points (d x n)."""
        ...

    def set_activity(self, time: float, activity: np.ndarray) -> None:
        ...

    def get_output(self) -> np.ndarray:
        ...


class SpikeGenerator(Protocol):
    def run(self, drive: np.ndarray, start_time: float, end_time: float, spiking: bool) -> np.ndarray:
        ...


class Population(Protocol):
    """A group of spiking neurons jointly representing a state vector."""

    radii: Sequence[float]
    origins: Sequence[Origin]
    spike_generator: SpikeGenerator

    def get_rates(self, points: np.ndarray, drive_noise: bool, rate_noise: bool) -> np.ndarray:
        """Neural response rates (neurons x n) at state-space points (d x n)."""
        ...

    def get_drive(self, point: np.ndarray) -> np.ndarray:
        ...

    def reset(self) -> None:
        ...


def validate_population(population: Population) -> None:
    """Check the preconditions for building a surrogate of ``population``."""
    radii = np.asarray(population.radii, dtype=float)
    if radii.size == 0:
        raise ValueError(
            "Population has no radii.\n"
            "A surrogate model needs at least one represented dimension."
        )
    if np.any(radii <= 0) or not np.all(np.isfinite(radii)):
        raise ValueError(
            f"Population radii must be positive and finite, got {radii.tolist()}.\n"
            f"Radii set the extent of the bias grid."
        )
    origins = list(population.origins)
    if not origins:
        raise ValueError(
            "Population has no origins.\n"
            "A surrogate model reproduces decoded outputs, so at least one origin is required."
        )
    for i, origin in enumerate(origins):
        if int(origin.dim) < 1:
            raise ValueError(f"Origin {i} has non-positive dimension {origin.dim}.")


def make_origin_indices(population: Population) -> np.ndarray:
    """Return the index of the owning origin for every decoded output dimension.

    For example, with two origins, the first 2-D and the second 3-D, the
    result is ``[0, 0, 1, 1, 1]``.
    """
    dims = [int(origin.dim) for origin in population.origins]
    return np.repeat(np.arange(len(dims)), dims)


def generate_random_points(
    n: int,
    radii: Sequence[float],
    rng: np.random.Generator,
    on_surface: bool = False,
) -> np.ndarray:
    """Draw points uniformly from the hyper-ellipsoid with the given radii.

    Args:
        n: Number of points.
        radii: Radius along each dimension.
        rng: Random generator.
        on_surface: If True, points lie on the surface rather than in the volume.

    Returns:
        Array of shape (len(radii), n).
    """
    radii = np.asarray(radii, dtype=float)
    d = radii.size
    directions = rng.standard_normal((d, n))
    norms = np.linalg.norm(directions, axis=0)
    norms[norms == 0] = 1.0
    directions /= norms
    if on_surface:
        scale = np.ones(n)
    else:
        scale = rng.random(n) ** (1.0 / d)
    return directions * scale * radii[:, None]


def randncov(n_steps: int, covariance: np.ndarray, rng: np.random.Generator) -> np.ndarray:
    """Draw zero-mean Gaussian vectors with the given covariance.

    Samples are drawn one time step at a time, so two calls for n steps
    consume the generator exactly like a single call for 2n steps.

    Returns:
        Array of shape (len(covariance), n_steps).
    """
    covariance = np.asarray(covariance, dtype=float)
    if covariance.ndim != 2 or covariance.shape[0] != covariance.shape[1]:
        raise ValueError(f"covariance must be a square matrix, got shape {covariance.shape}.")
    eigvals, eigvecs = np.linalg.eigh(covariance)
    root = eigvecs * np.sqrt(np.clip(eigvals, 0.0, None))
    white = rng.standard_normal((n_steps, covariance.shape[0]))
    return root @ white.T
