#!/usr/bin/env python3
"""
Run spectrum and second-preference analysis over one election.

Results are printed, optionally stored in DuckDB (--db) and exported as CSV
(--export).
"""

import argparse
import logging
import sys
from pathlib import Path

# Add src to path so we can import our modules
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from analysis import SecondPreferenceMatrix, SpectraMaker  # noqa: E402
from data.categories import Categories, CategorizationError  # noqa: E402
from data.database import ResultsDatabase  # noqa: E402
from data.elections import ELECTIONS, default_data_dir, get_election  # noqa: E402
from data.stream import BallotStream  # noqa: E402

logging.basicConfig(
    level=logging.INFO, format="%(asctime)s - %(levelname)s - %(message)s"
)
logger = logging.getLogger(__name__)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Analyse ranked ballots of an election")
    parser.add_argument("election", choices=sorted(ELECTIONS), help="Election to analyse")
    parser.add_argument(
        "--data-dir",
        type=Path,
        default=None,
        help=f"Root of the election data (default: $RCV_DATA_DIR or {default_data_dir()})",
    )
    parser.add_argument("--db", help="DuckDB file to store result tables in")
    parser.add_argument(
        "--categories",
        default=Categories.UNCATEGORIZED.label,
        help="Predefined categorization: "
        + ", ".join(c.label for c in Categories),
    )
    parser.add_argument(
        "--primary-categories",
        action="store_true",
        help="Use categories for first preferences only",
    )
    parser.add_argument(
        "--secondary-categories",
        action="store_true",
        help="Use categories for later preferences only",
    )
    parser.add_argument("--spectra", action="store_true", help="Build spectra for every pair")
    parser.add_argument("--matrix", action="store_true", help="Build the second preference matrix")
    parser.add_argument("--export", type=Path, help="Directory to write CSV results to")
    parser.add_argument("--debug", action="store_true", help="Verbose logging and progress")
    return parser


def categorize(stream: BallotStream, args):
    """Apply the requested categorization, keeping the stream as it was if that fails."""
    category = Categories.from_label(args.categories)
    use_primary, use_secondary = True, True
    if args.primary_categories or args.secondary_categories:
        use_primary, use_secondary = args.primary_categories, args.secondary_categories
    try:
        stream.predefined_categorization(category, use_primary, use_secondary)
    except CategorizationError as e:
        logger.warning(f"{e}. Continuing with uncategorized election.")


def run_matrix(stream: BallotStream):
    matrix = SecondPreferenceMatrix(stream).make()
    frame = matrix.to_dataframe()
    print(f"\nSecond preferences ({stream.election_name}):")
    print(matrix.row_shares().round(3).to_string())
    return frame


def run_spectra(stream: BallotStream):
    maker = SpectraMaker(stream)
    maker.add_all_party_pairs()
    maker.move_data_into_spectra()

    best = maker.best_standard_deviation()
    if best is not None:
        summary = best.summary()
        print(
            f"\nWidest spectrum: {best.lower_name} -> {best.upper_name} "
            f"(std {summary['standard_deviation']:.3f}, {summary['total_ballots']:,} ballots)"
        )
        for _, row in best.to_dataframe().sort_values("spectrum_value").iterrows():
            print(f"  {row['party']:45s}: {row['spectrum_value']:6.3f}")
    best_alt = maker.best_alt_standard_deviation()
    if best_alt is not None:
        print(f"Widest spectrum excluding extremes: {best_alt.lower_name} -> {best_alt.upper_name}")
    return maker.to_dataframe(), maker.summary_dataframe()


def main():
    args = build_parser().parse_args()
    if args.debug:
        logging.getLogger().setLevel(logging.DEBUG)

    if not (args.spectra or args.matrix):
        args.matrix = True

    try:
        election = get_election(args.election, args.data_dir)
        results = {}
        with BallotStream(election, debug=args.debug) as stream:
            categorize(stream, args)
            if args.matrix:
                results["second_preferences"] = run_matrix(stream).reset_index(names="primary")
                stream.restart()
            if args.spectra:
                results["spectra"], results["spectra_summary"] = run_spectra(stream)

        if args.db:
            with ResultsDatabase(args.db) as db:
                for table, frame in results.items():
                    db.save_frame(table, frame)
            logger.info(f"Stored {len(results)} tables in {args.db}")

        if args.export:
            args.export.mkdir(parents=True, exist_ok=True)
            for table, frame in results.items():
                frame.to_csv(args.export / f"{table}.csv", index=False)
            logger.info(f"Exported {len(results)} CSV files to {args.export}")

    except (ValueError, OSError) as e:
        logger.error(f"Analysis failed: {e}")
        sys.exit(1)


if __name__ == "__main__":
    main()
