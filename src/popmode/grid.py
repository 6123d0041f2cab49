"""Bias grids over a population's state space.

Bias is tabulated on a line, square or cube for populations that represent
one to three dimensions. Higher-dimensional populations are assumed to be
radially symmetric and are sampled along a single radius.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Sequence

import numpy as np

from .config import SurrogateConfig


def make_axis(radius: float, n_points: int) -> np.ndarray:
    """Uniform axis of ``n_points`` values spanning [-radius, radius]."""
    return np.linspace(-radius, radius, n_points)


def make_radial_axis(radius: float, n_points: int) -> np.ndarray:
    """Uniform axis of ``n_points`` values spanning [0, radius]."""
    return np.linspace(0.0, radius, n_points)


def grid_index(axis: np.ndarray, value: float) -> int:
    """Index of the grid point nearest to ``value``, clamped to the axis."""
    step = axis[1] - axis[0]
    index = int(np.floor((value - axis[0]) / step + 0.5))
    return min(max(index, 0), axis.size - 1)


def _check_state(state: np.ndarray, expected: int) -> None:
    if state.size != expected:
        raise ValueError(
            f"State has {state.size} dimension(s) but the bias grid covers {expected}.\n"
            f"Pass a state vector with one entry per represented dimension."
        )


@dataclass(frozen=True)
class BiasGrid:
    """Base class of the grid variants; ``axes`` holds one vector per grid axis."""

    axes: tuple[np.ndarray, ...]

    @property
    def shape(self) -> tuple[int, ...]:
        return tuple(axis.size for axis in self.axes)

    @property
    def size(self) -> int:
        return int(np.prod(self.shape))

    def evaluation_points(self) -> np.ndarray:
        """State-space points at which bias is sampled, shape (d, size)."""
        raise NotImplementedError

    def reshape(self, values: np.ndarray) -> np.ndarray:
        """Reshape per-point samples (nd x size) into the table (nd x shape)."""
        values = np.asarray(values)
        return values.reshape((values.shape[0],) + self.shape)

    def lookup(self, state: np.ndarray) -> tuple[int, ...]:
        """Table index (excluding the output dimension) nearest to ``state``."""
        raise NotImplementedError


@dataclass(frozen=True)
class LineGrid(BiasGrid):
    def evaluation_points(self) -> np.ndarray:
        return self.axes[0][None, :]

    def lookup(self, state: np.ndarray) -> tuple[int, ...]:
        state = np.ravel(state)
        _check_state(state, 1)
        return (grid_index(self.axes[0], state[0]),)


@dataclass(frozen=True)
class MeshGrid2D(BiasGrid):
    def evaluation_points(self) -> np.ndarray:
        # "ij" indexing keeps the flattened order consistent with (X, Y) table axes
        x, y = np.meshgrid(*self.axes, indexing="ij")
        return np.vstack([x.ravel(), y.ravel()])

    def lookup(self, state: np.ndarray) -> tuple[int, ...]:
        state = np.ravel(state)
        _check_state(state, 2)
        return tuple(grid_index(axis, value) for axis, value in zip(self.axes, state))


@dataclass(frozen=True)
class MeshGrid3D(BiasGrid):
    def evaluation_points(self) -> np.ndarray:
        x, y, z = np.meshgrid(*self.axes, indexing="ij")
        return np.vstack([x.ravel(), y.ravel(), z.ravel()])

    def lookup(self, state: np.ndarray) -> tuple[int, ...]:
        state = np.ravel(state)
        _check_state(state, 3)
        return tuple(grid_index(axis, value) for axis, value in zip(self.axes, state))


@dataclass(frozen=True)
class RadialGrid(BiasGrid):
    """Bias profile along the first coordinate, indexed by Euclidean norm."""

    dimensions: int = 4

    def evaluation_points(self) -> np.ndarray:
        radius = self.axes[0]
        points = np.zeros((self.dimensions, radius.size))
        points[0] = radius
        return points

    def lookup(self, state: np.ndarray) -> tuple[int, ...]:
        state = np.ravel(state)
        _check_state(state, self.dimensions)
        return (grid_index(self.axes[0], float(np.linalg.norm(state))),)


def build_grid(radii: Sequence[float], config: SurrogateConfig | None = None) -> BiasGrid:
    """Choose and build the bias grid for a population with the given radii."""
    config = config or SurrogateConfig()
    radii = np.asarray(radii, dtype=float)
    extent = config.bias_extent
    d = radii.size

    if d == 0:
        raise ValueError("Cannot build a bias grid for a population with no radii.")
    if d == 1:
        return LineGrid(axes=(make_axis(extent * radii[0], config.line_points),))
    if d == 2:
        return MeshGrid2D(axes=tuple(make_axis(extent * r, config.mesh2d_points) for r in radii))
    if d == 3:
        return MeshGrid3D(axes=tuple(make_axis(extent * r, config.mesh3d_points) for r in radii))
    # TODO: handle unequal radii; the profile currently follows the first radius only
    return RadialGrid(
        axes=(make_radial_axis(extent * radii[0], config.radial_points),),
        dimensions=d,
    )
