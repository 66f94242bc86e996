"""
Collect the party names used across an election's data files, to bootstrap
its alias table and party order file.
"""

import logging
from pathlib import Path
from typing import List, Tuple, Union

import pandas as pd

try:
    from .elections import ElectionResource
except ImportError:
    from elections import ElectionResource

logger = logging.getLogger(__name__)


def collect_party_names(election: ElectionResource) -> List[Tuple[str, str]]:
    """
    Every distinct (name as written in the file, cleaned name) pair.

    Args:
        election: Election whose data files are scanned; its alias and order
            files are not needed

    Returns:
        Pairs sorted case-insensitively by cleaned name
    """
    pairs = {}
    files = election.datafile_queue()
    while files:
        file_name = files.popleft()
        try:
            source = election.open_source(file_name)
        except (OSError, ValueError) as e:
            logger.warning(f"Skipping {file_name}: {e}")
            continue
        try:
            for original, cleaned in zip(source.parties_unaltered, source.parties):
                pairs.setdefault((original, cleaned), None)
        finally:
            source.close()

    result = sorted(pairs, key=lambda pair: (pair[1].lower(), pair[0]))
    logger.info(f"Collected {len(result)} party names for {election.name}")
    return result


def write_alias_file(pairs: List[Tuple[str, str]], path: Union[str, Path], delimiter: str = "\t"):
    """Write ``original -> cleaned`` entries, each followed by the cleaned identity entry."""
    rows = [row for original, cleaned in pairs for row in ((original, cleaned), (cleaned, cleaned))]
    table = pd.DataFrame(rows, columns=["alias", "canonical"])
    table.to_csv(path, sep=delimiter, header=False, index=False, encoding="utf-8", lineterminator="\n")
    logger.info(f"Wrote {len(table)} alias entries to {path}")


def write_party_order_file(pairs: List[Tuple[str, str]], path: Union[str, Path]):
    with open(path, "w", encoding="utf-8") as f:
        for cleaned in dict.fromkeys(cleaned for _, cleaned in pairs):
            f.write(f"{cleaned}\n")
