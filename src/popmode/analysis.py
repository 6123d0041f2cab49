"""Analysis routines orchestrating the synthetic surrogate pipeline."""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import Optional

import numpy as np
from tqdm import tqdm

from .config import SurrogateConfig, get_verbosity
from .model import PopulationModeModel, get_model
from .reporting import FitSummary, fit_summaries, plot_spectrum_fits, summarize_fits
from .synthetic import STANDARD_FUNCTIONS, make_synthetic_population


@dataclass(slots=True)
class SurrogateTrace:
    """Surrogate output along a state trajectory.

    Attributes:
        times: End time of each step [s].
        states: Population state at each step (d x n).
        ideal: Ideal origin outputs (n_outputs x n).
        bias: Looked-up bias (n_outputs x n).
        noise: Synthesized noise (n_outputs x n).
    """

    times: np.ndarray
    states: np.ndarray
    ideal: np.ndarray
    bias: np.ndarray
    noise: np.ndarray

    @property
    def output(self) -> np.ndarray:
        return self.ideal + self.bias + self.noise


@dataclass(slots=True)
class PipelineArtifacts:
    config: SurrogateConfig
    model: PopulationModeModel
    summaries: list[FitSummary]
    tables: str
    trace: SurrogateTrace
    plot_path: Optional[Path]


def run_surrogate(
    model: PopulationModeModel,
    states: np.ndarray,
    start_time: float = 0.0,
) -> SurrogateTrace:
    """Evaluate the surrogate's outputs along a sequence of states (d x n)."""
    dt = model.config.dt
    states = np.atleast_2d(states)
    n_steps = states.shape[1]
    nd = model.origin_indices.size
    times = start_time + dt * np.arange(1, n_steps + 1)

    ideal = np.zeros((nd, n_steps))
    for j, origin in enumerate(model.population.origins):
        ideal[model.origin_indices == j, :] = np.reshape(origin.f(states), (int(origin.dim), n_steps))

    bias = np.zeros((nd, n_steps))
    noise = np.zeros((nd, n_steps))
    for i in tqdm(range(n_steps), desc="Running surrogate", disable=get_verbosity() == 0, leave=False):
        bias[:, i] = model.get_bias(states[:, i])
        noise[:, i] = model.get_noise(times[i])

    return SurrogateTrace(times=times, states=states, ideal=ideal, bias=bias, noise=noise)


def sinusoidal_states(radii: np.ndarray, n_steps: int, dt: float, frequency_hz: float = 1.0) -> np.ndarray:
    """A trajectory sweeping each dimension sinusoidally across its radius."""
    times = dt * np.arange(1, n_steps + 1)
    phases = np.arange(radii.size)[:, None] * np.pi / max(radii.size, 1)
    return radii[:, None] * np.sin(2.0 * np.pi * frequency_hz * times[None, :] + phases)


def run_synthetic_pipeline(
    dimensions: int = 1,
    config: SurrogateConfig | None = None,
    output_dir: Path | None = None,
    n_neurons: int = 100,
    duration: float = 2.0,
    population_seed: int | None = 0,
) -> PipelineArtifacts:
    """Build a surrogate of a synthetic population and run it along a trajectory."""
    config = config or SurrogateConfig()
    population = make_synthetic_population(
        radii=np.ones(dimensions),
        functions=STANDARD_FUNCTIONS,
        n_neurons=n_neurons,
        seed=population_seed,
    )
    model = get_model(population, config=config)

    stats = model.noise_statistics
    summaries = fit_summaries(model.origin_indices, stats.magnitudes, model.fits)
    tables = summarize_fits(summaries)

    n_steps = int(round(duration / config.dt))
    states = sinusoidal_states(np.asarray(population.radii), n_steps, config.dt)
    trace = run_surrogate(model, states)

    plot_path: Optional[Path] = None
    if output_dir is not None:
        output_dir = Path(output_dir)
        output_dir.mkdir(parents=True, exist_ok=True)
        plot_path = output_dir / "noise_spectra.png"
        plot_spectrum_fits(stats.frequencies, stats.magnitudes, model.fits, plot_path)

    return PipelineArtifacts(
        config=config,
        model=model,
        summaries=summaries,
        tables=tables,
        trace=trace,
        plot_path=plot_path,
    )
