"""Synthetic spiking population for demonstrations and tests.

This module provides a small leaky integrate-and-fire (LIF) rate population
that satisfies the ``Population`` protocol:
- Random unit encoders, with gains and bias currents set from random
  maximum rates and intercepts
- Least-squares decoders for each origin
- Poisson spike generation driven by the neurons' rates
- An exponential synapse on each origin's decoded output

Example:
    >>> from popmode.synthetic import make_synthetic_population
    >>> from popmode import get_model
    >>>
    >>> population = make_synthetic_population(radii=(1.0,), seed=0)
    >>> model = get_model(population)
    >>> model.get_bias([0.5])

Note: This is an idealized collaborator, not a replacement for a real
spiking simulator.
"""

from __future__ import annotations

from typing import Callable, Mapping, Sequence

import numpy as np

from .population import generate_random_points

TargetFunction = Callable[[np.ndarray], np.ndarray]


def lif_rates(currents: np.ndarray, tau_rc: float = 0.02, tau_ref: float = 0.002) -> np.ndarray:
    """Steady-state LIF firing rates for normalized input currents (threshold at 1)."""
    currents = np.asarray(currents, dtype=float)
    rates = np.zeros_like(currents)
    above = currents > 1.0
    rates[above] = 1.0 / (tau_ref - tau_rc * np.log1p(-1.0 / currents[above]))
    return rates


class PoissonSpikeGenerator:
    """Turns firing rates into spike trains, reported as spikes per second."""

    def __init__(self, rng: np.random.Generator) -> None:
        self.rng = rng

    def run(self, drive: np.ndarray, start_time: float, end_time: float, spiking: bool) -> np.ndarray:
        drive = np.asarray(drive, dtype=float)
        if not spiking:
            return drive.copy()
        duration = end_time - start_time
        counts = self.rng.poisson(drive * duration)
        return counts / duration


class SyntheticOrigin:
    """Decoded output of a synthetic population, filtered by an exponential synapse."""

    def __init__(
        self,
        name: str,
        function: TargetFunction,
        dim: int,
        decoders: np.ndarray,
        tau_synapse: float = 0.005,
    ) -> None:
        self.name = name
        self.function = function
        self.dim = dim
        self.decoders = decoders
        self.tau_synapse = tau_synapse
        self._filtered = np.zeros(decoders.shape[1])
        self._time = 0.0

    def f(self, points: np.ndarray) -> np.ndarray:
        return np.reshape(self.function(np.asarray(points, dtype=float)), (self.dim, -1))

    def reset(self, activity: np.ndarray | None = None) -> None:
        if activity is None:
            self._filtered = np.zeros(self.decoders.shape[1])
        else:
            self._filtered = np.array(activity, dtype=float)
        self._time = 0.0

    def set_activity(self, time: float, activity: np.ndarray) -> None:
        step = time - self._time
        alpha = 1.0 - np.exp(-step / self.tau_synapse)
        self._filtered = self._filtered + alpha * (np.asarray(activity, dtype=float) - self._filtered)
        self._time = time

    def get_output(self) -> np.ndarray:
        return self.decoders @ self._filtered


class SyntheticPopulation:
    """LIF rate population representing a vector within the given radii.

    Attributes:
        radii: Radius of each represented dimension.
        encoders: Unit preferred directions, shape (n_neurons, d).
        gains, bias_currents: Current transform of each neuron.
        origins: Decoded outputs, in registration order.
        spike_generator: Poisson spike generator.
    """

    def __init__(
        self,
        radii: Sequence[float],
        n_neurons: int = 100,
        max_rates: tuple[float, float] = (100.0, 200.0),
        intercepts: tuple[float, float] = (-0.9, 0.9),
        noise: float = 0.1,
        tau_rc: float = 0.02,
        tau_ref: float = 0.002,
        seed: int | None = None,
    ) -> None:
        self.radii = np.asarray(radii, dtype=float)
        self.n_neurons = n_neurons
        self.noise = noise
        self.tau_rc = tau_rc
        self.tau_ref = tau_ref
        self.rng = np.random.default_rng(seed)

        d = self.radii.size
        encoders = self.rng.standard_normal((n_neurons, d))
        self.encoders = encoders / np.linalg.norm(encoders, axis=1, keepdims=True)

        rate = self.rng.uniform(*max_rates, size=n_neurons)
        intercept = self.rng.uniform(*intercepts, size=n_neurons)
        j_max = 1.0 / (1.0 - np.exp((tau_ref - 1.0 / rate) / tau_rc))
        self.gains = (j_max - 1.0) / (1.0 - intercept)
        self.bias_currents = 1.0 - self.gains * intercept
        self.max_rate = float(max_rates[1])

        self.origins: list[SyntheticOrigin] = []
        self.spike_generator = PoissonSpikeGenerator(self.rng)
        self._drive: np.ndarray | None = None

    def _currents(self, points: np.ndarray) -> np.ndarray:
        scaled = np.atleast_2d(points) / self.radii[:, None]
        return self.gains[:, None] * (self.encoders @ scaled) + self.bias_currents[:, None]

    def get_rates(self, points: np.ndarray, drive_noise: bool, rate_noise: bool) -> np.ndarray:
        """Firing rates (n_neurons x n) at states (d x n), optionally with noise."""
        currents = self._currents(np.asarray(points, dtype=float))
        if drive_noise:
            currents = currents + self.noise * self.rng.standard_normal(currents.shape)
        rates = lif_rates(currents, self.tau_rc, self.tau_ref)
        if rate_noise:
            rates = np.maximum(rates + self.noise * self.max_rate * self.rng.standard_normal(rates.shape), 0.0)
        return rates

    def get_drive(self, point: np.ndarray) -> np.ndarray:
        """Firing rates driving the spike generator at a single state."""
        point = np.reshape(np.asarray(point, dtype=float), (-1, 1))
        self._drive = self.get_rates(point, False, False)[:, 0]
        return self._drive.copy()

    def reset(self) -> None:
        """Reset origin synapses to the steady state of the most recent drive."""
        for origin in self.origins:
            origin.reset(self._drive)

    def add_origin(
        self,
        name: str,
        function: TargetFunction,
        dim: int | None = None,
        n_eval_points: int = 500,
    ) -> SyntheticOrigin:
        """Solve regularized least-squares decoders for ``function`` and add an origin."""
        points = generate_random_points(n_eval_points, self.radii, self.rng)
        rates = self.get_rates(points, False, False)
        targets = np.asarray(function(points), dtype=float)
        if dim is None:
            dim = targets.shape[0] if targets.ndim > 1 else 1
        targets = np.reshape(targets, (dim, n_eval_points))

        gram = rates @ rates.T + (self.noise * self.max_rate) ** 2 * n_eval_points * np.eye(self.n_neurons)
        decoders = np.linalg.solve(gram, rates @ targets.T).T

        origin = SyntheticOrigin(name, function, dim, decoders)
        self.origins.append(origin)
        return origin


def _identity(points: np.ndarray) -> np.ndarray:
    return points


def _square(points: np.ndarray) -> np.ndarray:
    return points**2


def make_synthetic_population(
    radii: Sequence[float] = (1.0,),
    functions: Mapping[str, TargetFunction] | None = None,
    n_neurons: int = 100,
    seed: int | None = 0,
) -> SyntheticPopulation:
    """Build a synthetic population with one origin per entry of ``functions``.

    By default the population has an identity origin ``"X"``.
    """
    population = SyntheticPopulation(radii, n_neurons=n_neurons, seed=seed)
    functions = functions if functions is not None else {"X": _identity}
    for name, function in functions.items():
        population.add_origin(name, function)
    return population


STANDARD_FUNCTIONS: dict[str, TargetFunction] = {
    "X": _identity,
    "X_squared": _square,
}
