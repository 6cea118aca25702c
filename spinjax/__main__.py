"""
Run a preset from the command line.

Examples:
    python -m spinjax ks --tspan 0 100 --dt 0.05 --N 256
    python -m spinjax gl2 --tspan 0 10 20 30 --scheme exprk5s8 --verbose
    python -m spinjax --list
"""

import argparse
import logging
import sys
from typing import List, Optional

import jax.numpy as jnp

from spinjax.core.driver import spin
from spinjax.core.errors import SpinError
from spinjax.core.logs import configure_logging
from spinjax.core.presets import get_preset, list_presets
from spinjax.core.schemes import Scheme


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="spinjax",
        description="Integrate a preset stiff PDE with an exponential integrator.",
    )
    parser.add_argument('preset', nargs='?', help='Preset name (case-insensitive)')
    parser.add_argument('--list', action='store_true', help='List presets and exit')
    parser.add_argument('--tspan', type=float, nargs='+', default=None,
                        help='t0 t1 [t2 ...]; two values return only the final state')
    parser.add_argument('--scheme', type=str, default='etdrk4',
                        choices=[member.value for member in Scheme],
                        help='Exponential integrator (default: etdrk4)')
    parser.add_argument('--dt', type=float, default=None, help='Time step (default: automatic)')
    parser.add_argument('--N', type=int, default=None, help='Grid points per axis (default: automatic)')
    parser.add_argument('--tol', type=float, default=1e-6,
                        help='Tolerance of the automatic dt/N selection (default: 1e-6)')
    parser.add_argument('--dealias', action='store_true', help='Apply the 2/3 rule')
    parser.add_argument('--verbose', action='store_true', help='Log progress to stdout')
    return parser


def main(argv: Optional[List[str]] = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    if args.list:
        for name in list_presets():
            print(f"{name:6s} {get_preset(name).description}")
        return 0
    if args.preset is None:
        parser.error("a preset name is required (see --list)")

    configure_logging(logging.DEBUG if args.verbose else logging.WARNING)

    try:
        operator = get_preset(args.preset)
        result = spin(
            operator,
            args.tspan,
            scheme=args.scheme,
            dt=args.dt,
            N=args.N,
            tolerance=args.tol,
            dealias=args.dealias,
        )
    except SpinError as exc:
        print(f"spinjax: {type(exc).__name__}: {exc}", file=sys.stderr)
        return 1

    print(f"Preset:      {operator.name} ({operator.description})")
    print(f"Scheme:      {result.scheme}")
    print(f"Grid:        N={result.N} ({'x'.join(str(n) for n in result.grid.shape)})")
    print(f"Step size:   dt={result.dt:g}")
    print(f"Steps:       {result.n_steps}")
    print(f"Status:      {result.status}")
    for t, state in result:
        print(f"  t={t:<10g} max|u|={float(jnp.max(jnp.abs(state))):.6e}")
    return 0


if __name__ == "__main__":
    sys.exit(main())
