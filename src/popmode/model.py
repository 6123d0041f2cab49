"""Surrogate models of spiking populations.

A surrogate replaces a population's spiking dynamics with a statistical
model of the errors in its decoded outputs: a static bias that depends on
the represented state, plus noise with realistic temporal and cross-dimension
correlations.

To build an alternative model, subclass ``SurrogateModel`` (or
``PopulationModeModel``), override the bias and/or noise methods, and
register the subclass under a new key with ``register_model``. Populations
obtain their surrogate through ``get_model``.
"""

from __future__ import annotations

from abc import ABC, abstractmethod

import numpy as np
from tqdm import tqdm

from .bias import BiasModel, build_bias_model
from .config import SurrogateConfig, get_verbosity
from .filters import DiscreteFilterSystem, NoiseSynthesizer, discretize
from .population import Population, make_origin_indices, validate_population
from .spectrum import NoiseStatistics, estimate_noise_statistics
from .transfer import FitResult, fit_transfer_function

_REGISTRY: dict[str, type["SurrogateModel"]] = {}


def register_model(key: str):
    """Class decorator that makes a surrogate model available to ``get_model``."""

    def decorator(cls: type["SurrogateModel"]) -> type["SurrogateModel"]:
        if not key:
            raise ValueError(f"{cls.__name__} must be registered under a non-empty key")
        _REGISTRY[key] = cls
        return cls

    return decorator


def list_models() -> list[str]:
    return list(_REGISTRY.keys())


def get_model(
    population: Population,
    kind: str = "default",
    config: SurrogateConfig | None = None,
) -> "SurrogateModel":
    """Return a surrogate model of ``population``.

    Args:
        population: The neural population to model.
        kind: Registry key of the model variant.
        config: Optional configuration; defaults to ``SurrogateConfig()``.
    """
    cls = _REGISTRY.get(kind)
    if cls is None:
        raise KeyError(f"No surrogate model registered for key '{kind}'. Available: {list_models()}")
    return cls(population, config=config)


class SurrogateModel(ABC):
    """Contract shared by all surrogate models.

    Construction validates the population, builds the origin index map and
    then calls ``create_bias_model`` and ``create_noise_model``.
    """

    def __init__(self, population: Population, config: SurrogateConfig | None = None) -> None:
        validate_population(population)
        self.population = population
        self.config = config or SurrogateConfig()
        self.rng = np.random.default_rng(self.config.seed)
        self.origin_indices = make_origin_indices(population)
        self.create_bias_model(self.origin_indices)
        self.create_noise_model(self.origin_indices)

    def get_origin_indices(self) -> np.ndarray:
        """Owning origin of each element returned by ``get_bias`` and ``get_noise``.

        For example, with two origins, the first 2-D and the second 3-D, the
        result is ``[0, 0, 1, 1, 1]``.
        """
        return self.origin_indices.copy()

    @abstractmethod
    def create_bias_model(self, origin_indices: np.ndarray) -> None:
        ...

    @abstractmethod
    def create_noise_model(self, origin_indices: np.ndarray) -> None:
        ...

    @abstractmethod
    def get_bias(self, state: np.ndarray) -> np.ndarray:
        """Bias of every output dimension at a population state."""

    @abstractmethod
    def get_noise(self, time: float) -> np.ndarray:
        """Noise of every output dimension at the end of the step ending at ``time``."""


@register_model("default")
class PopulationModeModel(SurrogateModel):
    """Default surrogate: gridded bias lookup and filtered correlated noise.

    Bias is tabulated over ``bias_extent`` times the population's radii and
    looked up at the nearest grid point. Noise correlations and spectra are
    estimated by simulating the population at random states; each output
    dimension's spectrum is fitted with a second-order transfer function and
    discretized into a noise filter.

    Attributes:
        origin_indices: Owning origin of each output dimension.
        bias_model: Bias lookup table.
        noise_statistics: Averaged noise correlation and spectra.
        fits: Transfer function fit for each output dimension.
        filter_system: Block-diagonal discrete noise filter.
        synthesizer: Stateful generator of filtered noise.
    """

    bias_model: BiasModel
    noise_statistics: NoiseStatistics
    fits: list[FitResult]
    filter_system: DiscreteFilterSystem
    synthesizer: NoiseSynthesizer

    def create_bias_model(self, origin_indices: np.ndarray) -> None:
        self.bias_model = build_bias_model(self.population, origin_indices, self.config)

    def create_noise_model(self, origin_indices: np.ndarray) -> None:
        config = self.config
        stats = estimate_noise_statistics(self.population, origin_indices, config, self.rng)

        fit_iter = tqdm(
            stats.magnitudes,
            desc="Fitting noise spectra",
            disable=get_verbosity() == 0,
            leave=False,
        )
        fits = [fit_transfer_function(stats.frequencies, mags, config, self.rng) for mags in fit_iter]

        # temporal filtering doesn't affect correlations except transiently when starting from zero
        system = DiscreteFilterSystem.block_diagonal(
            [discretize(fit.transfer_function, config.dt) for fit in fits]
        )

        self.noise_statistics = stats
        self.fits = fits
        self.filter_system = system
        self.synthesizer = NoiseSynthesizer(
            system,
            stats.correlation,
            config.dt,
            cache_steps=config.cache_steps,
            rng=self.rng,
        )

    def get_bias(self, state: np.ndarray) -> np.ndarray:
        return self.bias_model.lookup(state)

    def get_noise(self, time: float) -> np.ndarray:
        return self.synthesizer.get_noise(time)

    def generate_noise(self, n_steps: int) -> np.ndarray:
        """Generate ``n_steps`` consecutive noise vectors, bypassing the cache."""
        return self.synthesizer.generate(n_steps)
