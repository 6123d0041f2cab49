"""Discrete noise filters and the correlated noise synthesizer.

Correlated white noise is passed through a block-diagonal state-space filter
with two states per output dimension. The filter shapes the spectrum of
each dimension independently; correlations between dimensions come only
from the input noise.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Sequence

import numpy as np
from scipy.signal import cont2discrete, tf2ss

from .population import randncov
from .transfer import TransferFunction

StateSpace = tuple[np.ndarray, np.ndarray, np.ndarray, np.ndarray]


def discretize(tf: TransferFunction, dt: float) -> StateSpace:
    """Zero-order-hold discretization of a second-order transfer function.

    Returns:
        Discrete state-space matrices (A, B, C, D) with exactly two states.
    """
    if not np.any(tf.num):
        # zero-gain filter: keep the resonant dynamics, drop the output
        A, B, C, D = discretize(TransferFunction(np.array([0.0, 0.0, 1.0]), tf.den), dt)
        return A, B, np.zeros_like(C), np.zeros_like(D)

    num_d, den_d, _ = cont2discrete((tf.num, tf.den), dt, method="zoh")
    num_d = np.atleast_1d(np.squeeze(num_d))
    den_d = np.atleast_1d(np.squeeze(den_d))
    A, B, C, D = tf2ss(num_d, den_d)
    if A.shape != (2, 2):
        raise ValueError(
            f"Expected a two-state realization, got A with shape {A.shape}.\n"
            f"The transfer function must have a second-order denominator."
        )
    return A, B, C, D


@dataclass(frozen=True)
class DiscreteFilterSystem:
    """Discrete-time state-space filter x' = A x + B u, y = C x + D u."""

    A: np.ndarray
    B: np.ndarray
    C: np.ndarray
    D: np.ndarray

    def __post_init__(self) -> None:
        n_states = self.A.shape[0]
        n_outputs = self.C.shape[0]
        if (
            self.A.shape != (n_states, n_states)
            or self.B.shape != (n_states, n_outputs)
            or self.C.shape != (n_outputs, n_states)
            or self.D.shape != (n_outputs, n_outputs)
        ):
            raise ValueError(
                f"Inconsistent state-space shapes: A{self.A.shape}, B{self.B.shape}, "
                f"C{self.C.shape}, D{self.D.shape}.\n"
                f"Expected A (n, n), B (n, m), C (m, n) and D (m, m)."
            )
        for matrix in (self.A, self.B, self.C, self.D):
            matrix.setflags(write=False)

    @property
    def n_states(self) -> int:
        return self.A.shape[0]

    @property
    def n_outputs(self) -> int:
        return self.C.shape[0]

    @classmethod
    def block_diagonal(cls, blocks: Sequence[StateSpace]) -> "DiscreteFilterSystem":
        """Assemble single-input single-output blocks into one uncoupled system."""
        nd = len(blocks)
        A = np.zeros((2 * nd, 2 * nd))
        B = np.zeros((2 * nd, nd))
        C = np.zeros((nd, 2 * nd))
        D = np.zeros((nd, nd))
        for i, (a, b, c, d) in enumerate(blocks):
            ii = slice(2 * i, 2 * i + 2)
            A[ii, ii] = a
            B[ii, i] = np.ravel(b)
            C[i, ii] = np.ravel(c)
            D[i, i] = np.ravel(d)[0]
        return cls(A=A, B=B, C=C, D=D)


@dataclass
class FilterState:
    """Filter state and the input from the previous step."""

    x: np.ndarray
    u: np.ndarray

    @classmethod
    def zeros(cls, system: DiscreteFilterSystem) -> "FilterState":
        return cls(x=np.zeros(system.n_states), u=np.zeros(system.n_outputs))


@dataclass
class NoiseCache:
    start_time: float | None = None
    samples: np.ndarray = field(default_factory=lambda: np.zeros((0, 0)))

    @property
    def n_steps(self) -> int:
        return self.samples.shape[1]


class NoiseSynthesizer:
    """Generates spatially and temporally correlated noise.

    The filter state persists across calls, so consecutive calls to
    ``generate`` continue a single colored-noise process. Time-indexed
    queries through ``get_noise`` assume monotonic, contiguous times; a jump
    outside the cached window regenerates the cache from the current filter
    state.
    """

    def __init__(
        self,
        system: DiscreteFilterSystem,
        correlation: np.ndarray,
        dt: float,
        cache_steps: int = 1000,
        rng: np.random.Generator | None = None,
    ) -> None:
        correlation = np.asarray(correlation, dtype=float)
        if correlation.shape != (system.n_outputs, system.n_outputs):
            raise ValueError(
                f"Correlation matrix shape {correlation.shape} does not match the "
                f"filter's {system.n_outputs} output(s)."
            )
        self.system = system
        self.correlation = correlation
        self.dt = dt
        self.cache_steps = cache_steps
        self.rng = rng if rng is not None else np.random.default_rng()
        self.state = FilterState.zeros(system)
        self.cache = NoiseCache()

    def reset(self) -> None:
        """Zero the filter state and discard cached samples."""
        self.state = FilterState.zeros(self.system)
        self.cache = NoiseCache()

    def generate(self, n_steps: int) -> np.ndarray:
        """Generate ``n_steps`` filtered noise vectors, shape (n_outputs, n_steps)."""
        # the filter expects input with unit variance at each frequency
        scale = (1.0 / self.dt) ** 0.5
        raw = scale * randncov(n_steps, self.correlation, self.rng)
        unfiltered = np.hstack([self.state.u[:, None], raw])

        A, B, C, D = self.system.A, self.system.B, self.system.C, self.system.D
        x = self.state.x
        noise = np.zeros((self.system.n_outputs, n_steps))
        for i in range(n_steps):
            x = A @ x + B @ unfiltered[:, i]
            noise[:, i] = C @ x + D @ unfiltered[:, i + 1]

        self.state = FilterState(x=x, u=unfiltered[:, -1].copy())
        return noise

    def get_noise(self, time: float) -> np.ndarray:
        """Noise vector at the end of the time step ending at ``time``."""
        index = None
        if self.cache.start_time is not None:
            index = int(round((time - self.cache.start_time) / self.dt))
            if index < 0 or index >= self.cache.n_steps:
                index = None
        if index is None:
            self.cache = NoiseCache(start_time=time, samples=self.generate(self.cache_steps))
            index = 0
        return self.cache.samples[:, index].copy()
