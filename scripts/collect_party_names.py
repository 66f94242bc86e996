#!/usr/bin/env python3
"""
List the party names found in an election's data files and write starter
alias and party order files from them.
"""

import argparse
import logging
import sys
from pathlib import Path

# Add src to path so we can import our modules
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from data.elections import ELECTIONS, get_election  # noqa: E402
from data.party_names import (  # noqa: E402
    collect_party_names,
    write_alias_file,
    write_party_order_file,
)

logging.basicConfig(
    level=logging.INFO, format="%(asctime)s - %(levelname)s - %(message)s"
)
logger = logging.getLogger(__name__)


def main():
    parser = argparse.ArgumentParser(description="Collect party names from election data")
    parser.add_argument("election", choices=sorted(ELECTIONS), help="Election to scan")
    parser.add_argument("--data-dir", type=Path, default=None, help="Root of the election data")
    parser.add_argument(
        "--output",
        type=Path,
        default=Path("."),
        help="Directory for AliasList.txt and PartyOrder.txt (default: current directory)",
    )
    args = parser.parse_args()

    try:
        election = get_election(args.election, args.data_dir)
        pairs = collect_party_names(election)
        if not pairs:
            logger.error(f"No party names found for {election.name}")
            sys.exit(1)

        args.output.mkdir(parents=True, exist_ok=True)
        write_alias_file(pairs, args.output / "AliasList.txt")
        write_party_order_file(pairs, args.output / "PartyOrder.txt")
    except (ValueError, OSError) as e:
        logger.error(f"Collection failed: {e}")
        sys.exit(1)

    for original, cleaned in pairs:
        print(f"  {original:50s} -> {cleaned}")
    print(f"✓ Wrote {len(pairs)} names to {args.output}")


if __name__ == "__main__":
    main()
