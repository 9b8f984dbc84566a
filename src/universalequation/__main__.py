"""
Command-line interface.

Sweeps the dimension cycle, logs every EnergyResult and optionally exports
the snapshots to CSV and plots them.

Usage:
    $ python -m universalequation --max-dimensions 5 --cycles 2 --csv energy.csv --plot
"""
import argparse
import logging
from typing import Optional, Sequence

from universalequation.config import DEFAULT_MAX_DIMENSIONS, MAX_DIMENSIONS_LIMIT
from universalequation.engine.equation import UniversalEquation
from universalequation.logging_config import setup_logging
from universalequation.model.errors import ConfigurationError, ResourceExhaustion
from universalequation.model.io import IOManager

logger = logging.getLogger("universalequation.cli")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="universalequation",
        description="Sweep the dimension cycle and report the energy channels.",
    )
    parser.add_argument(
        "--max-dimensions", type=int, default=DEFAULT_MAX_DIMENSIONS,
        help=f"Highest dimension of the cycle (1..{MAX_DIMENSIONS_LIMIT}, default {DEFAULT_MAX_DIMENSIONS}).",
    )
    parser.add_argument("--cycles", type=int, default=1, help="Number of full cycles to run (default 1).")
    parser.add_argument("--vertex-cap", type=int, default=None, help="Upper bound on the vertex count.")
    parser.add_argument("--parameters", metavar="PATH", default=None, help="JSON parameter preset to load.")
    parser.add_argument("--csv", metavar="PATH", default=None, help="Append every snapshot to this CSV file.")
    parser.add_argument("--plot", metavar="PATH", nargs="?", const="", default=None,
                        help="Plot the last cycle; save to PATH if given, else show it.")
    parser.add_argument("--log-level", default="INFO", choices=["DEBUG", "INFO", "WARNING", "ERROR"])
    parser.add_argument("--log-file", default=None, help="Also write the log to this file.")
    return parser


def main(argv: Optional[Sequence[str]] = None) -> int:
    args = build_parser().parse_args(argv)
    setup_logging(level=args.log_level, log_file=args.log_file)

    if args.cycles < 1:
        logger.error(f"--cycles must be at least 1, got {args.cycles}.")
        return 2

    try:
        parameters = IOManager.load_parameters(args.parameters) if args.parameters else None
        engine = UniversalEquation(
            max_dimensions=args.max_dimensions,
            vertex_cap=args.vertex_cap,
            parameters=parameters,
        )
    except (ConfigurationError, ResourceExhaustion, OSError, ValueError) as e:
        logger.error(f"Could not start the engine: {e}")
        return 1

    with engine:
        results = []
        for cycle in range(1, args.cycles + 1):
            results = engine.sweep_cycle()
            for result in results:
                logger.info(f"Cycle {cycle}: {result.interpretation()}")
            if args.csv:
                engine.export_to_csv(args.csv, results)

        if args.plot is not None:
            from universalequation.plotting import plot_energy_cycle
            plot_energy_cycle(results, show=not args.plot, save_path=args.plot or None)

    return 0


if __name__ == "__main__":
    raise SystemExit(main())
