"""Second-order transfer function fits to noise magnitude spectra.

The fitted transfer function is::

    H(s) = (kss*s^2 + ks*(w0/Q)*s + k*w0^2) / (s^2 + (w0/Q)*s + w0^2)

so that ``k`` is the low-frequency gain, ``kss`` the high-frequency gain and
``ks`` the gain near resonance. Parameters are fitted in normalized form,
each expected to be close to 1 after scaling by a guess taken from the
spectrum itself.
"""

from __future__ import annotations

from dataclasses import dataclass

import numpy as np
from scipy.optimize import least_squares
from scipy.signal import freqs
from tqdm import tqdm

from .config import PARAMETER_NAMES, SurrogateConfig, get_verbosity


class FitError(RuntimeError):
    """Raised when no acceptable fit is found within the allowed restarts."""

    def __init__(self, attempts: int, message: str) -> None:
        super().__init__(
            f"Transfer function fit did not converge after {attempts} attempt(s).\n"
            f"Last optimizer message: {message}\n"
            f"Increase fit_max_attempts or check the spectrum for NaNs or a flat response."
        )
        self.attempts = attempts
        self.last_message = message


@dataclass(frozen=True)
class TransferFunction:
    """Continuous-time transfer function with polynomial coefficients in descending powers of s."""

    num: np.ndarray
    den: np.ndarray

    def magnitude(self, frequencies: np.ndarray) -> np.ndarray:
        """Magnitude response at angular frequencies [rad/s]."""
        _, response = freqs(self.num, self.den, worN=np.asarray(frequencies, dtype=float))
        return np.abs(response)


def second_order(kss: float, ks: float, k: float, omega0: float, quality: float) -> TransferFunction:
    damping = omega0 / quality
    return TransferFunction(
        num=np.array([kss, ks * damping, k * omega0**2], dtype=float),
        den=np.array([1.0, damping, omega0**2], dtype=float),
    )


@dataclass(frozen=True)
class FitResult:
    """Outcome of a transfer function fit.

    Attributes:
        transfer_function: Fitted continuous-time system.
        parameters: Physical parameters [kss, ks, k, omega0, quality].
        normalized: Optimizer-space parameters (parameters / scale).
        scale: Initial guess used to normalize the parameters.
        mse: Mean squared error between target and fitted magnitudes.
        attempts: Number of optimizer runs, including rejected ones.
        message: Optimizer termination message of the accepted run.
    """

    transfer_function: TransferFunction
    parameters: np.ndarray
    normalized: np.ndarray
    scale: np.ndarray
    mse: float
    attempts: int
    message: str

    @property
    def omega0(self) -> float:
        return float(self.parameters[3])

    @property
    def quality(self) -> float:
        return float(self.parameters[4])


def moving_average(values: np.ndarray, window: int) -> np.ndarray:
    """Centered moving average with the same length as ``values``.

    Output ``j`` averages ``values[j - (window - 1) // 2 : j + window // 2 + 1]``
    with zero padding at both ends, so even windows lean one sample ahead.
    """
    full = np.convolve(values, np.ones(window) / window, mode="full")
    start = window // 2
    return full[start : start + len(values)]


def initial_guess(
    frequencies: np.ndarray,
    magnitudes: np.ndarray,
    config: SurrogateConfig | None = None,
) -> np.ndarray:
    """Guess the scale of [kss, ks, k, omega0, quality] from a spectrum."""
    config = config or SurrogateConfig()
    frequencies = np.asarray(frequencies, dtype=float)
    magnitudes = np.asarray(magnitudes, dtype=float)

    # there is typically a noisy resonant peak
    smoothed = moving_average(magnitudes, config.smoothing_window)
    peak = config.peak_fraction * frequencies[int(np.argmax(smoothed))]
    omega0 = float(np.clip(peak, 2 * np.pi * config.min_peak_hz, 2 * np.pi * config.max_peak_hz))

    k = float(np.mean(magnitudes[1:5]))
    kss = float(np.mean(magnitudes[-4:]))
    ks = (k + kss) / 2.0
    return np.array([kss, ks, k, omega0, config.initial_quality])


def transfer_error(frequencies: np.ndarray, magnitudes: np.ndarray, parameters: np.ndarray) -> float:
    """Mean squared error between ``magnitudes`` and a second-order fit."""
    fitted = second_order(*parameters).magnitude(frequencies)
    return float(np.mean(np.square(np.asarray(magnitudes) - fitted)))


def _random_start(rng: np.random.Generator, config: SurrogateConfig) -> np.ndarray:
    return np.maximum(config.init_floor, 1.0 + config.init_spread * rng.standard_normal(len(PARAMETER_NAMES)))


def fit_transfer_function(
    frequencies: np.ndarray,
    magnitudes: np.ndarray,
    config: SurrogateConfig | None = None,
    rng: np.random.Generator | None = None,
) -> FitResult:
    """Fit a second-order transfer function to a magnitude spectrum.

    The solver often stops immediately when started from a decent estimate,
    so each attempt starts from a random perturbation of the guess. A run is
    rejected and restarted when the solver fails, when it returns without
    moving from its start point, or when the resonant frequency or quality
    factor are not positive. Tolerance-based stops (``status`` 2 to 4) are
    accepted as converged; only ``status <= 0`` counts as a failure. This is
    the reverse of a policy that treats tolerance exits as stalls, and the
    stall case is detected from the unmoved start point instead.

    A silent spectrum, whose mean squared magnitude is at most
    ``config.silent_power``, has nothing to fit. It gets a zero-gain filter
    with the guessed resonance and ``attempts == 0``.

    Raises:
        FitError: If ``config.fit_max_attempts`` runs are all rejected.
    """
    config = config or SurrogateConfig()
    rng = rng if rng is not None else np.random.default_rng(config.seed)
    frequencies = np.asarray(frequencies, dtype=float)
    magnitudes = np.asarray(magnitudes, dtype=float)
    if frequencies.shape != magnitudes.shape:
        raise ValueError(
            f"frequencies and magnitudes must have the same shape, got "
            f"{frequencies.shape} and {magnitudes.shape}."
        )
    if not np.all(np.isfinite(magnitudes)):
        raise ValueError("magnitudes contain non-finite values.")

    scale = initial_guess(frequencies, magnitudes, config)
    power = float(np.mean(np.square(magnitudes)))
    if power <= config.silent_power:
        parameters = np.array([0.0, 0.0, 0.0, scale[3], scale[4]])
        return FitResult(
            transfer_function=second_order(*parameters),
            parameters=parameters,
            normalized=np.array([0.0, 0.0, 0.0, 1.0, 1.0]),
            scale=scale,
            mse=power,
            attempts=0,
            message="silent spectrum",
        )

    root_n = np.sqrt(frequencies.size)

    # residuals whose sum of squares is the mean squared magnitude error
    def residuals(x: np.ndarray) -> np.ndarray:
        fitted = second_order(*(x * scale)).magnitude(frequencies)
        return (fitted - magnitudes) / root_n

    verbose = get_verbosity() >= 2
    message = "no attempt made"
    for attempt in range(1, config.fit_max_attempts + 1):
        x0 = _random_start(rng, config)
        result = least_squares(
            residuals,
            x0,
            method="lm",
            xtol=config.fit_tolerance,
            ftol=config.fit_tolerance,
        )
        message = str(result.message)
        x = result.x

        if result.status <= 0:
            reason = "solver failure"
        elif np.allclose(x, x0, rtol=0.0, atol=1e-12):
            reason = "solver did not move from its start point"
        elif x[3] <= config.min_fit_parameter or x[4] <= config.min_fit_parameter:
            reason = f"non-positive resonance (omega0={x[3]:.3g}, Q={x[4]:.3g})"
        else:
            parameters = x * scale
            return FitResult(
                transfer_function=second_order(*parameters),
                parameters=parameters,
                normalized=x,
                scale=scale,
                mse=float(2.0 * result.cost),
                attempts=attempt,
                message=message,
            )

        if verbose:
            tqdm.write(f"Rejected transfer function fit (attempt {attempt}): {reason}")

    raise FitError(config.fit_max_attempts, message)
