"""Unit tests for transfer.py module."""

from types import SimpleNamespace

import numpy as np
import pytest

import popmode.transfer as transfer
from popmode.config import SurrogateConfig
from popmode.transfer import (
    FitError,
    fit_transfer_function,
    initial_guess,
    moving_average,
    second_order,
    transfer_error,
)

FREQUENCIES = 2 * np.pi * np.arange(500)


def make_target(rng, noise=0.03):
    """Magnitude spectrum of a random resonant second-order system."""
    k = rng.uniform(0.5, 1.5) * 1e-2
    params = np.array(
        [
            k * rng.uniform(0.05, 0.2),
            k * rng.uniform(1.0, 2.0),
            k,
            2 * np.pi * rng.uniform(80.0, 200.0),
            rng.uniform(1.0, 3.0),
        ]
    )
    mags = second_order(*params).magnitude(FREQUENCIES)
    return params, mags * (1.0 + noise * rng.standard_normal(mags.size))


class TestSecondOrder:
    """Test transfer function construction."""

    def test_coefficients(self):
        """Test numerator and denominator follow the resonant parameterization."""
        tf = second_order(2.0, 3.0, 4.0, 10.0, 5.0)
        np.testing.assert_allclose(tf.num, [2.0, 3.0 * 2.0, 4.0 * 100.0])
        np.testing.assert_allclose(tf.den, [1.0, 2.0, 100.0])

    def test_gain_limits(self):
        """Test k is the DC gain and kss the high-frequency gain."""
        tf = second_order(0.1, 1.0, 2.0, 100.0, 2.0)
        low, high = tf.magnitude(np.array([1e-6, 1e9]))
        assert low == pytest.approx(2.0, rel=1e-6)
        assert high == pytest.approx(0.1, rel=1e-6)

    def test_transfer_error_zero_for_exact(self):
        """Test the error metric vanishes for the generating parameters."""
        params = np.array([0.1, 1.0, 2.0, 300.0, 2.0])
        mags = second_order(*params).magnitude(FREQUENCIES)
        assert transfer_error(FREQUENCIES, mags, params) == pytest.approx(0.0, abs=1e-20)


class TestInitialGuess:
    """Test the heuristic parameter scales."""

    def test_gain_guesses(self):
        """Test gain scales come from the low- and high-frequency averages."""
        mags = np.linspace(2.0, 1.0, 500)
        guess = initial_guess(FREQUENCIES, mags)
        assert guess[2] == pytest.approx(np.mean(mags[1:5]))
        assert guess[0] == pytest.approx(np.mean(mags[-4:]))
        assert guess[1] == pytest.approx((guess[0] + guess[2]) / 2)
        assert guess[4] == 2.0

    def test_peak_clamped_low(self):
        """Test the resonance guess is clamped to at least 50 Hz."""
        mags = np.linspace(2.0, 1.0, 500)  # peak at 0 Hz
        guess = initial_guess(FREQUENCIES, mags)
        assert guess[3] == pytest.approx(2 * np.pi * 50.0)

    def test_peak_clamped_high(self):
        """Test the resonance guess is clamped to at most 300 Hz."""
        mags = np.linspace(1.0, 2.0, 500)
        guess = initial_guess(FREQUENCIES, mags)
        assert guess[3] == pytest.approx(2 * np.pi * 300.0)

    def test_peak_scaled(self):
        """Test an interior peak is scaled by the peak fraction."""
        hz = np.arange(500)
        mags = np.exp(-0.5 * ((hz - 200) / 10.0) ** 2)
        guess = initial_guess(FREQUENCIES, mags)
        assert guess[3] == pytest.approx(0.75 * 2 * np.pi * 200.0, rel=0.02)

    def test_peak_of_impulse_uses_leading_edge(self):
        """Test an impulse spreads forward-leaning, so its first smoothed maximum is 5 bins early."""
        mags = np.zeros(500)
        mags[100] = 1.0
        guess = initial_guess(FREQUENCIES, mags)
        assert guess[3] == pytest.approx(0.75 * 2 * np.pi * 95.0)


class TestMovingAverage:
    """Test centered smoothing of spectra."""

    def test_even_window_support(self):
        """Test an even window covers (window - 1) // 2 bins behind and window // 2 ahead."""
        values = np.zeros(50)
        values[20] = 1.0
        smoothed = moving_average(values, 10)
        assert smoothed.shape == (50,)
        np.testing.assert_array_equal(np.flatnonzero(smoothed), np.arange(15, 25))
        np.testing.assert_allclose(smoothed[15:25], 0.1)

    def test_odd_window_symmetric(self):
        values = np.zeros(20)
        values[10] = 3.0
        smoothed = moving_average(values, 3)
        np.testing.assert_array_equal(np.flatnonzero(smoothed), [9, 10, 11])

    def test_window_of_one_is_identity(self):
        values = np.arange(7.0)
        np.testing.assert_allclose(moving_average(values, 1), values)


class TestFitTransferFunction:
    """Test nonlinear fits with restarts."""

    def test_fit_quality_on_known_spectra(self):
        """Test that at least 95% of fits to known resonant spectra are accurate."""
        rng = np.random.default_rng(2024)
        config = SurrogateConfig()
        good = 0
        n = 20
        for _ in range(n):
            _, mags = make_target(rng)
            fit = fit_transfer_function(FREQUENCIES, mags, config, rng)
            relative = fit.mse / np.mean(np.square(mags))
            if relative < 0.05:
                good += 1
            assert fit.omega0 > 0
            assert fit.quality > 0
        assert good >= 0.95 * n

    def test_reported_mse_matches_error(self):
        """Test the stored mse equals the error of the stored parameters."""
        rng = np.random.default_rng(7)
        _, mags = make_target(rng)
        fit = fit_transfer_function(FREQUENCIES, mags, rng=rng)
        assert fit.mse == pytest.approx(transfer_error(FREQUENCIES, mags, fit.parameters), rel=1e-6)
        np.testing.assert_allclose(fit.parameters, fit.normalized * fit.scale)

    def test_gives_up_after_max_attempts(self, monkeypatch):
        """Test that repeated solver failures raise FitError."""
        calls = []

        def failing(fun, x0, **kwargs):
            calls.append(x0)
            return SimpleNamespace(x=x0 * 1.1, status=0, message="max evaluations", cost=1.0)

        monkeypatch.setattr(transfer, "least_squares", failing)
        mags = np.linspace(2.0, 1.0, 500)
        config = SurrogateConfig(fit_max_attempts=4)
        with pytest.raises(FitError, match="4 attempt") as excinfo:
            fit_transfer_function(FREQUENCIES, mags, config, np.random.default_rng(0))
        assert len(calls) == 4
        assert excinfo.value.attempts == 4
        assert excinfo.value.last_message == "max evaluations"

    def test_restarts_on_degenerate_results(self, monkeypatch):
        """Test restarts after a stalled run and a negative quality factor."""
        outcomes = iter(
            [
                lambda x0: x0.copy(),  # did not move
                lambda x0: np.array([1.0, 1.0, 1.0, 1.0, -0.5]),  # negative Q
                lambda x0: np.array([1.0, 1.0, 1.0, 1.2, 0.9]),
            ]
        )

        def scripted(fun, x0, **kwargs):
            x = next(outcomes)(x0)
            return SimpleNamespace(x=x, status=2, message="ftol", cost=0.5 * float(np.sum(fun(x) ** 2)))

        monkeypatch.setattr(transfer, "least_squares", scripted)
        mags = np.linspace(2.0, 1.0, 500)
        fit = fit_transfer_function(FREQUENCIES, mags, rng=np.random.default_rng(0))
        assert fit.attempts == 3
        np.testing.assert_allclose(fit.normalized, [1.0, 1.0, 1.0, 1.2, 0.9])

    @pytest.mark.parametrize("status, accepted", [(-1, False), (0, False), (1, True), (2, True), (3, True), (4, True)])
    def test_tolerance_stops_are_converged(self, monkeypatch, status, accepted):
        """Test tolerance exits count as convergence and only failures are retried."""

        def stopped(fun, x0, **kwargs):
            x = x0 * 1.05
            return SimpleNamespace(x=x, status=status, message=f"status {status}", cost=0.5 * float(np.sum(fun(x) ** 2)))

        monkeypatch.setattr(transfer, "least_squares", stopped)
        mags = np.linspace(2.0, 1.0, 500)
        config = SurrogateConfig(fit_max_attempts=2)
        if accepted:
            assert fit_transfer_function(FREQUENCIES, mags, config, np.random.default_rng(0)).attempts == 1
        else:
            with pytest.raises(FitError, match="2 attempt"):
                fit_transfer_function(FREQUENCIES, mags, config, np.random.default_rng(0))

    def test_random_starts_respect_floor(self):
        """Test random restarts never fall below the configured floor."""
        config = SurrogateConfig(init_spread=10.0)
        starts = np.array([transfer._random_start(np.random.default_rng(i), config) for i in range(50)])
        assert np.all(starts >= config.init_floor)

    def test_shape_mismatch(self):
        """Test mismatched spectrum and frequency arrays are rejected."""
        with pytest.raises(ValueError, match="same shape"):
            fit_transfer_function(FREQUENCIES, np.ones(10))

    def test_non_finite_magnitudes(self):
        """Test NaN spectra are rejected before fitting."""
        mags = np.ones(500)
        mags[3] = np.nan
        with pytest.raises(ValueError, match="non-finite"):
            fit_transfer_function(FREQUENCIES, mags)


class TestSilentSpectrum:
    """Test spectra of outputs that carry no noise."""

    @pytest.mark.parametrize("level", [0.0, 1e-17])
    def test_zero_filter_without_optimizing(self, monkeypatch, level):
        """Test a silent spectrum gets a zero-gain filter and skips the optimizer."""

        def unexpected(*args, **kwargs):
            raise AssertionError("optimizer should not run on a silent spectrum")

        monkeypatch.setattr(transfer, "least_squares", unexpected)
        mags = np.full(500, level)
        fit = fit_transfer_function(FREQUENCIES, mags, rng=np.random.default_rng(0))
        assert fit.attempts == 0
        np.testing.assert_array_equal(fit.parameters[:3], 0.0)
        assert fit.omega0 == pytest.approx(2 * np.pi * 50.0)
        assert fit.quality == 2.0
        np.testing.assert_array_equal(fit.transfer_function.magnitude(FREQUENCIES), 0.0)
        assert fit.mse == pytest.approx(level**2, abs=1e-40)

    def test_quiet_but_audible_spectrum_is_fitted(self):
        """Test a small but real spectrum still goes through the optimizer."""
        rng = np.random.default_rng(11)
        _, mags = make_target(rng)
        fit = fit_transfer_function(FREQUENCIES, 1e-6 * mags, rng=rng)
        assert fit.attempts >= 1
        assert fit.message != "silent spectrum"
        assert np.any(fit.transfer_function.num != 0)
