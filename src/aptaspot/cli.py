import argparse
import json
import logging
import os
import sys
from typing import Any, Dict

import numpy as np

from aptaspot.api import resolve_catalog, simulate
from aptaspot.catalog import random_catalog
from aptaspot.decoder import registry as scoring_registry
from aptaspot.errors import AptaspotError
from aptaspot.io import write_results
from aptaspot.motifs import DEFAULT_K, extract_motifs


def setup_logging(verbose: bool):
    """Setup logging configuration."""
    level = logging.DEBUG if verbose else logging.INFO
    logging.basicConfig(level=level, format="%(asctime)s - %(name)s - %(levelname)s - %(message)s")
    logging.getLogger("numba").setLevel(logging.WARNING)


def create_arg_parser() -> argparse.ArgumentParser:
    """Create and configure argument parser with subcommands."""
    parser = argparse.ArgumentParser(
        description="aptaspot: simulate a multiplexed aptamer assay and decode protein identities per spot",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
 Examples:
   # Simulate against a tab-separated catalog (id, sequence, abundance)
   aptaspot simulate catalog.tsv --num-spots 5000 --concentration 1e-3 --seed 7

   # Simulate against a synthetic catalog and write the identification table
   aptaspot simulate --random-proteins 200 --protein-length 300 \\
     --coverage 0.5 --output identifications.tsv --diagnostics

   # List the 3-mers of a sequence
   aptaspot motifs MKTAYIAKQR
         """,
    )

    subparsers = parser.add_subparsers(dest="mode", help="Operation mode", required=True)

    simulate_parser = subparsers.add_parser("simulate", help="Run one end-to-end simulation and print a JSON summary.")
    simulate_parser.add_argument(
        "catalog",
        nargs="?",
        help="Catalog file: CSV/TSV with id, sequence[, abundance] columns, or FASTA. Omit with --random-proteins.",
    )

    io_group = simulate_parser.add_argument_group("Input/Output Options")
    io_group.add_argument(
        "--random-proteins",
        type=int,
        help="Generate a synthetic catalog with this many proteins instead of reading one.",
    )
    io_group.add_argument(
        "--protein-length",
        type=int,
        default=300,
        help="Sequence length of synthetic proteins. (default: %(default)s)",
    )
    io_group.add_argument("--output", help="Write the per-spot identification table (TSV) to this path.")

    model_group = simulate_parser.add_argument_group("Model Options")
    model_group.add_argument(
        "--on-target",
        type=float,
        default=1e-5,
        help="On-target affinity base constant; its log10 is the mean on-target log affinity. (default: %(default)s)",
    )
    model_group.add_argument(
        "--off-target",
        type=float,
        default=1e-1,
        help="Off-target affinity base constant; its log10 is the mean off-target log affinity. (default: %(default)s)",
    )
    model_group.add_argument(
        "--affinity-std",
        type=float,
        default=0.5,
        help="Standard deviation of probe log10 affinities. (default: %(default)s)",
    )
    model_group.add_argument(
        "--coverage",
        type=float,
        default=0.5,
        help="Fraction of distinct catalog motifs deployed as probes. (default: %(default)s)",
    )
    model_group.add_argument(
        "--concentration",
        type=float,
        default=1e-3,
        help="Reagent concentration in the probability model. (default: %(default)s)",
    )

    decode_group = simulate_parser.add_argument_group("Decoder Options")
    decode_group.add_argument(
        "--num-spots",
        type=int,
        default=1000,
        help="Number of test spots to sample and decode. (default: %(default)s)",
    )
    decode_group.add_argument(
        "--metric",
        choices=scoring_registry.available,
        default="pearson",
        help="Similarity between observations and probability columns. (default: %(default)s)",
    )
    decode_group.add_argument(
        "--zero-degenerate",
        action="store_true",
        help="Report confidence 0 for spots whose scores have zero variance instead of failing.",
    )
    decode_group.add_argument(
        "--diagnostics",
        action="store_true",
        help="Fit a two-component Gaussian mixture to the probability matrix and include it in the summary.",
    )

    technical_group = simulate_parser.add_argument_group("Technical Options")
    technical_group.add_argument(
        "-v",
        "--verbose",
        action="store_true",
        help="Enable verbose logging for detailed execution tracking.",
    )
    technical_group.add_argument(
        "--seed",
        type=int,
        default=127,
        help="Random seed; a fixed seed reproduces the whole run. (default: %(default)s)",
    )
    technical_group.add_argument(
        "--jobs",
        type=int,
        default=1,
        help="Number of parallel decoding jobs. Set to -1 to use all available CPU cores. (default: %(default)s)",
    )

    motifs_parser = subparsers.add_parser("motifs", help="Print the overlapping motifs of a sequence as JSON.")
    motifs_parser.add_argument("sequence", help="Residue sequence.")
    motifs_parser.add_argument("-k", type=int, default=DEFAULT_K, help="Motif length. (default: %(default)s)")
    motifs_parser.add_argument("-v", "--verbose", action="store_true", help="Enable verbose logging.")

    return parser


def validate_inputs(args) -> None:
    """Validate input files and parameters."""
    logger = logging.getLogger(__name__)

    if args.mode == "simulate":
        if args.catalog is None and args.random_proteins is None:
            logger.error("Either a catalog file or --random-proteins is required")
            sys.exit(1)
        if args.catalog is not None and args.random_proteins is not None:
            logger.error("Use either a catalog file or --random-proteins, not both")
            sys.exit(1)
        if args.catalog is not None and not os.path.exists(args.catalog):
            logger.error(f"Catalog file not found: {args.catalog}")
            sys.exit(1)


def map_args_to_config_kwargs(args) -> Dict[str, Any]:
    """Map CLI arguments to simulation config keyword arguments."""
    return {
        "on_target_affinity_base": args.on_target,
        "off_target_affinity_base": args.off_target,
        "affinity_std": args.affinity_std,
        "coverage_fraction": args.coverage,
        "concentration": args.concentration,
        "num_spots": args.num_spots,
        "seed": args.seed,
        "metric": args.metric,
        "on_degenerate": "zero" if args.zero_degenerate else "raise",
        "n_jobs": args.jobs,
        "diagnostics": args.diagnostics,
    }


def run_simulate(args) -> dict:
    """Execute the simulate subcommand and return its JSON summary."""
    if args.random_proteins is not None:
        # catalog stream is independent of the simulation stream
        catalog = random_catalog(args.random_proteins, args.protein_length, np.random.default_rng([args.seed, 1]))
    else:
        catalog = resolve_catalog(args.catalog)

    result = simulate(catalog, **map_args_to_config_kwargs(args))

    if args.output:
        write_results(result.results, args.output)
        logging.getLogger(__name__).info(f"Wrote identification table to {args.output}")

    return result.to_dict()


def main_cli():
    """Main CLI entry point."""
    parser = create_arg_parser()
    if len(sys.argv) == 1:
        parser.print_help(sys.stderr)
        sys.exit(1)
    args = parser.parse_args()

    setup_logging(args.verbose)
    validate_inputs(args)

    try:
        if args.mode == "simulate":
            output = run_simulate(args)
        else:
            output = extract_motifs(args.sequence.upper(), args.k)
        print(json.dumps(output))
    except (AptaspotError, ValueError, OSError) as e:
        print(f"ERROR: {args.mode} failed: {e}")
        if args.verbose:
            import traceback

            traceback.print_exc()
        sys.exit(1)


if __name__ == "__main__":
    main_cli()
