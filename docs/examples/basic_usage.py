"""
Basic Usage Example for popmode

This script demonstrates the fundamental workflow:
1. Create a population (here a synthetic LIF population)
2. Build its surrogate model
3. Query bias and noise along a state trajectory
4. Compare the surrogate output with the ideal output
"""

import matplotlib.pyplot as plt
import numpy as np

from popmode import SurrogateConfig, get_model
from popmode.synthetic import make_synthetic_population


def main():
    population = make_synthetic_population(radii=(1.0,), n_neurons=100, seed=0)
    config = SurrogateConfig(seed=1)

    print("Building surrogate (bias grid, noise spectra, filter fits)...")
    model = get_model(population, config=config)

    fit = model.fits[0]
    print(f"Fitted resonance: {fit.omega0 / (2 * np.pi):.1f} Hz, Q = {fit.quality:.2f}")

    # Sweep the state slowly across the represented range
    dt = config.dt
    times = dt * np.arange(1, 2001)
    states = np.sin(2 * np.pi * 0.5 * times)

    output = np.zeros_like(times)
    for i, (t, x) in enumerate(zip(times, states)):
        output[i] = x + model.get_bias([x])[0] + model.get_noise(t)[0]

    plt.figure(figsize=(7.5, 5.0))
    plt.plot(times, output, label="Surrogate output", linewidth=1.0)
    plt.plot(times, states, "k--", label="Ideal", linewidth=2.0)
    plt.xlabel("Time [s]")
    plt.ylabel("Decoded value")
    plt.grid(True, alpha=0.3)
    plt.legend()
    plt.tight_layout()
    plt.savefig("surrogate_output.png")
    plt.close()
    print("Saved surrogate_output.png")


if __name__ == "__main__":
    main()
