"""Statistical surrogates of spiking neural populations.

A surrogate reproduces the errors in a population's decoded outputs without
simulating its spikes, so that large networks can run most populations in a
cheap "population mode". Errors are split into a static bias, a function of
the represented state, and noise with realistic temporal and cross-dimension
correlations.

Main Components:
    - PopulationModeModel: Default surrogate (gridded bias + filtered noise)
    - SurrogateModel: Base class for alternative surrogates
    - get_model / register_model: Factory and registry of model variants
    - SurrogateConfig: Configuration with all tunable parameters
    - NoiseSynthesizer: Stateful generator of correlated, colored noise
    - fit_transfer_function: Second-order fit to a noise magnitude spectrum

Quick Start:
    >>> from popmode import get_model
    >>> from popmode.synthetic import make_synthetic_population
    >>>
    >>> population = make_synthetic_population(radii=(1.0,))
    >>> model = get_model(population)
    >>> bias = model.get_bias([0.3])
    >>> noise = model.get_noise(0.001)
"""

from .config import SurrogateConfig
from .filters import DiscreteFilterSystem, NoiseSynthesizer
from .model import PopulationModeModel, SurrogateModel, get_model, list_models, register_model
from .transfer import FitError, fit_transfer_function

__all__ = [
    "SurrogateConfig",
    "DiscreteFilterSystem",
    "NoiseSynthesizer",
    "PopulationModeModel",
    "SurrogateModel",
    "get_model",
    "list_models",
    "register_model",
    "FitError",
    "fit_transfer_function",
]
