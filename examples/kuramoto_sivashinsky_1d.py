#!/usr/bin/env python3
"""
Kuramoto-Sivashinsky Example (1D, chaotic).

This example demonstrates:
- The ks preset with its default initial condition
- Automatic selection of the time step for a target accuracy
- Snapshots at a list of output times and a progress callback

The Kuramoto-Sivashinsky equation:
    du/dt = -u_xx - u_xxxx - (u^2/2)_x   on [0, 32*pi]

Run: python examples/kuramoto_sivashinsky_1d.py
"""

import time
from pathlib import Path

import numpy as np

from spinjax import configure_logging, spin


def report(info):
    print(f"  t={info.t:8.2f}  step={info.step:6d}  max|u|={info.max_abs:.4f}")


def main():
    print("=" * 60)
    print("Kuramoto-Sivashinsky Example")
    print("=" * 60)

    configure_logging("INFO")

    times = np.linspace(0.0, 100.0, 11)
    start_time = time.time()
    result = spin(
        "ks",
        times,
        N=256,
        tolerance=1e-6,
        progress_callback=report,
        progress_every=250,
    )
    elapsed = time.time() - start_time

    print(f"\nSelected dt: {result.dt:g} (estimate {result.diagnostics['dt_error_estimate']:.2e})")
    print(f"Steps: {result.n_steps}")
    print(f"Wall time: {elapsed:.2f} s")

    # Save the space-time diagram
    output_dir = Path("output")
    output_dir.mkdir(exist_ok=True)
    (x,) = result.grid.mesh()
    np.savez(
        output_dir / "ks_1d.npz",
        x=np.asarray(x),
        t=np.asarray(result.times),
        u=np.asarray(result.as_array()),
    )
    print(f"Results saved to {output_dir / 'ks_1d.npz'}")


if __name__ == "__main__":
    main()
