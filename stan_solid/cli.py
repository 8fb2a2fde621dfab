# stan_solid/cli.py
"""
COMMAND LINE: Solve a Saved Model In Place
==========================================

USAGE:
------
    python -m stan_solid model.stan
    python -m stan_solid model.stan --jobs 8 --csv results/
    python -m stan_solid mesh.bdf --import-bdf     # writes mesh.stan

The model file is loaded, solved with its own Analysis settings and
OVERWRITTEN with the results appended. A failed run leaves the file
untouched. The process waits --delay seconds before exiting so the console
stays readable when launched from a GUI.
"""

import argparse
import logging
import sys
import time
from pathlib import Path

from .config import CONFIG
from .errors import StanError
from .io import load_model, save_model
from .post import export_results_csv
from .solver import run_analysis
from .v3d.bdf import read_bulk_data

logger = logging.getLogger(__name__)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="stan-solid",
        description="Solve a 3D solid finite-element model and store the results in the model file",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  python -m stan_solid cube.stan
  python -m stan_solid cube.stan --jobs 8 --csv results/
  python -m stan_solid mesh.bdf --import-bdf
        """
    )
    parser.add_argument('model', type=Path, help='Path of the model file')
    parser.add_argument(
        '--delay', type=float, default=CONFIG.exit_delay,
        help=f'Seconds to wait before exiting (default: {CONFIG.exit_delay})'
    )
    parser.add_argument(
        '--jobs', type=int, default=None,
        help=f'Worker threads for element loops (default: {CONFIG.n_jobs})'
    )
    parser.add_argument('--csv', type=Path, default=None, help='Also write result tables to this directory')
    parser.add_argument(
        '--import-bdf', action='store_true',
        help='Treat MODEL as Nastran bulk data and save it as a .stan model (no solve)'
    )
    parser.add_argument('-v', '--verbose', action='store_true', help='Debug logging')
    return parser


def import_bdf(path: Path) -> int:
    model, errors = read_bulk_data(path)
    for line in errors:
        print(f"  Import error: {line.splitlines()[0]}")
    target = save_model(model, path.with_suffix(".stan"))
    print(f"Imported {len(model.nodes)} nodes, {len(model.elements)} elements, "
          f"{len(model.parts)} parts → {target}")
    return 0


def solve_file(path: Path, jobs=None, csv_dir=None) -> int:
    start = time.perf_counter()
    model = load_model(path)
    print(f"Model: {path}")

    result = run_analysis(model, n_jobs=jobs)

    print(model.summary())
    print(f"DOF assignment time: {result.dof_time:.3f} s")
    for record in result.increments:
        status = record.solver_status[-1] if record.solver_status else "-"
        residual = record.residuals[-1] if record.residuals else 0.0
        print(f"  Increment {record.increment}: {record.iterations} iteration(s), "
              f"residual {residual:.3e}, solver {status}")

    save_model(model, path)
    if csv_dir is not None:
        export_results_csv(model, csv_dir)
        print(f"Result tables written to {csv_dir}")
    print(f"Total time: {time.perf_counter() - start:.3f} s")
    return 0


def main(argv=None) -> int:
    args = build_parser().parse_args(argv)
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else getattr(logging, CONFIG.log_level),
        format="%(asctime)s %(levelname)-7s %(message)s",
        datefmt="%H:%M:%S",
    )

    print("=" * 70)
    print(f"{CONFIG.app_name.upper()} {CONFIG.version}")
    print("=" * 70)

    try:
        if args.import_bdf:
            code = import_bdf(args.model)
        else:
            code = solve_file(args.model, args.jobs, args.csv)
    except (StanError, FileNotFoundError) as exc:
        logger.error("%s: %s", type(exc).__name__, exc)
        print(f"FAILED: {exc}")
        code = 1

    if args.delay > 0:
        time.sleep(args.delay)
    return code


if __name__ == "__main__":
    sys.exit(main())
