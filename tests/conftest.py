"""Shared fixtures: a population stub whose bias is known in closed form."""

import numpy as np
import pytest


class StubOrigin:
    """Decodes x + curvature * x**2 from rates [x, x**2, 1] with ideal f(x) = x."""

    def __init__(self, d, curvature=0.1):
        self.dim = d
        self.curvature = curvature
        self.decoders = np.hstack([np.eye(d), curvature * np.eye(d), np.zeros((d, 1))])
        self._activity = None

    def f(self, points):
        return np.asarray(points, dtype=float)

    def set_activity(self, time, activity):
        self._activity = np.asarray(activity, dtype=float)

    def get_output(self):
        return self.decoders @ self._activity


class StubSpikeGenerator:
    def __init__(self, rng, noise_std):
        self.rng = rng
        self.noise_std = noise_std
        self.calls = 0

    def run(self, drive, start_time, end_time, spiking):
        self.calls += 1
        if not spiking:
            return drive.copy()
        return drive + self.noise_std * self.rng.standard_normal(drive.shape)


class StubPopulation:
    def __init__(self, radii, n_origins=1, noise_std=0.05, seed=0):
        self.radii = list(radii)
        d = len(self.radii)
        self.origins = [StubOrigin(d) for _ in range(n_origins)]
        self.spike_generator = StubSpikeGenerator(np.random.default_rng(seed), noise_std)
        self.reset_count = 0
        self.rate_calls = 0

    def get_rates(self, points, drive_noise, rate_noise):
        self.rate_calls += 1
        points = np.atleast_2d(points)
        return np.vstack([points, points**2, np.ones((1, points.shape[1]))])

    def get_drive(self, point):
        return self.get_rates(np.reshape(point, (-1, 1)), False, False)[:, 0]

    def reset(self):
        self.reset_count += 1


@pytest.fixture
def make_stub_population():
    """Factory for stub populations; bias of each output is 0.1 * x_k**2."""
    return StubPopulation
