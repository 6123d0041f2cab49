"""Static (bias) error model of a population's decoded outputs."""

from __future__ import annotations

from dataclasses import dataclass

import numpy as np

from .config import SurrogateConfig
from .grid import BiasGrid, build_grid
from .population import Population


def sample_bias(
    population: Population,
    origin_indices: np.ndarray,
    points: np.ndarray,
) -> tuple[np.ndarray, np.ndarray]:
    """Sample bias (distortion) error of every origin at a batch of states.

    Rates are requested for all points in one call, since populations
    compute them most efficiently in bulk.

    Args:
        population: Population whose origins are sampled.
        origin_indices: Owning origin of each output dimension (see
            ``make_origin_indices``).
        points: Population states at which bias is sampled (d x n).

    Returns:
        Tuple ``(bias, ideal)``, each of shape (len(origin_indices), n), with
        actual decoded output = ideal + bias.
    """
    points = np.atleast_2d(np.asarray(points, dtype=float))
    rates = population.get_rates(points, False, False)

    bias = np.zeros((origin_indices.size, points.shape[1]))
    ideal = np.zeros_like(bias)
    for i, origin in enumerate(population.origins):
        rows = origin_indices == i
        ideal[rows, :] = np.reshape(origin.f(points), (int(origin.dim), points.shape[1]))
        actual = np.asarray(origin.decoders) @ rates
        bias[rows, :] = actual - ideal[rows, :]
    return bias, ideal


@dataclass(frozen=True)
class BiasModel:
    """Bias lookup table over a grid.

    Attributes:
        grid: Grid variant that generated the table.
        table: Bias values of shape (n_outputs,) + grid.shape.
    """

    grid: BiasGrid
    table: np.ndarray

    def __post_init__(self) -> None:
        expected = self.grid.shape
        if self.table.shape[1:] != expected:
            raise ValueError(
                f"Bias table shape {self.table.shape} does not match grid shape {expected}."
            )
        self.table.setflags(write=False)

    @property
    def n_outputs(self) -> int:
        return self.table.shape[0]

    def lookup(self, state: np.ndarray) -> np.ndarray:
        """Bias at the grid point nearest to ``state``; states off the grid are clamped."""
        index = self.grid.lookup(np.asarray(state, dtype=float))
        return self.table[(slice(None),) + index].copy()


def build_bias_model(
    population: Population,
    origin_indices: np.ndarray,
    config: SurrogateConfig | None = None,
) -> BiasModel:
    """Tabulate a population's bias over the grid chosen for its radii."""
    grid = build_grid(population.radii, config)
    bias, _ = sample_bias(population, origin_indices, grid.evaluation_points())
    return BiasModel(grid=grid, table=grid.reshape(bias))
