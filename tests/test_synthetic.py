"""Unit tests for synthetic.py module."""

import numpy as np
import pytest

from popmode.population import make_origin_indices, validate_population
from popmode.synthetic import (
    PoissonSpikeGenerator,
    STANDARD_FUNCTIONS,
    lif_rates,
    make_synthetic_population,
)


class TestLIFRates:
    """Test the LIF rate curve."""

    def test_silent_below_threshold(self):
        rates = lif_rates(np.array([-1.0, 0.5, 1.0]))
        np.testing.assert_array_equal(rates, 0.0)

    def test_monotonic_above_threshold(self):
        rates = lif_rates(np.linspace(1.1, 10.0, 20))
        assert np.all(np.diff(rates) > 0)
        assert rates[-1] < 1.0 / 0.002


class TestPoissonSpikeGenerator:
    """Test spike generation."""

    def test_mean_rate(self):
        """Test spike counts average to the driving rate."""
        gen = PoissonSpikeGenerator(np.random.default_rng(0))
        drive = np.full(1000, 50.0)
        activity = np.mean([gen.run(drive, 0.0, 0.001, True) for _ in range(200)])
        assert activity == pytest.approx(50.0, rel=0.05)

    def test_non_spiking_passthrough(self):
        gen = PoissonSpikeGenerator(np.random.default_rng(0))
        drive = np.array([10.0, 20.0])
        np.testing.assert_array_equal(gen.run(drive, 0.0, 0.001, False), drive)


class TestSyntheticPopulation:
    """Test the synthetic population collaborator."""

    def test_satisfies_preconditions(self):
        population = make_synthetic_population(radii=(1.0, 2.0), functions=STANDARD_FUNCTIONS)
        validate_population(population)
        np.testing.assert_array_equal(make_origin_indices(population), [0, 0, 1, 1])

    def test_rates_shape(self):
        population = make_synthetic_population(n_neurons=40)
        rates = population.get_rates(np.zeros((1, 7)), False, False)
        assert rates.shape == (40, 7)
        assert np.all(rates >= 0)

    def test_identity_decoding(self):
        """Test the identity origin decodes the state accurately within its radius."""
        population = make_synthetic_population(radii=(2.0,), n_neurons=100, seed=3)
        points = np.linspace(-1.8, 1.8, 25)[None, :]
        decoded = population.origins[0].decoders @ population.get_rates(points, False, False)
        np.testing.assert_allclose(decoded, points, atol=0.25)

    def test_reset_to_drive(self):
        """Test reset primes the synapse with the latest drive."""
        population = make_synthetic_population(seed=4)
        drive = population.get_drive(np.array([0.3]))
        population.reset()
        origin = population.origins[0]
        np.testing.assert_allclose(origin.get_output(), origin.decoders @ drive)

    def test_noisy_rates_differ(self):
        population = make_synthetic_population(seed=5)
        points = np.zeros((1, 3))
        clean = population.get_rates(points, False, False)
        noisy = population.get_rates(points, True, True)
        assert not np.allclose(clean, noisy)
