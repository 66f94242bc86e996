"""
Second preference matrix: for each primary option, where its voters' next
preference went.
"""

import logging
from typing import Dict, List, Optional

import numpy as np
import pandas as pd

try:
    from ..data.ballot import NO_SECOND_CHOICE
    from ..data.stream import BallotStream
except (ImportError, ValueError):
    from data.ballot import NO_SECOND_CHOICE
    from data.stream import BallotStream

logger = logging.getLogger(__name__)


class SecondPreferenceMatrix:
    """
    Counts of (primary choice, second choice) over the formal ballots of a stream.

    Rows are primary options, columns are secondary options plus one extra
    column for ballots with no usable second preference.
    """

    def __init__(self, stream: BallotStream):
        self.stream = stream
        self.rows: List[str] = list(stream.primary_options)
        self.columns: List[str] = list(stream.secondary_options)
        if NO_SECOND_CHOICE not in self.columns:
            self.columns.append(NO_SECOND_CHOICE)
        self._column_index: Dict[str, int] = {name: i for i, name in enumerate(self.columns)}
        self.counts = np.zeros((len(self.rows), len(self.columns)), dtype=np.int64)
        self.ballots_added = False

    def _column_for(self, second: Optional[str]) -> int:
        if second is not None and second in self._column_index:
            return self._column_index[second]
        return self._column_index[NO_SECOND_CHOICE]

    def make(self) -> "SecondPreferenceMatrix":
        """Read the rest of the stream into the matrix."""
        if self.ballots_added:
            return self
        stream = self.stream
        skipped = 0
        while stream.next_ballot():
            if not stream.ballot_is_formal():
                continue
            row = stream.primary_choice_index()
            if row < 0:
                skipped += 1
                continue
            self.counts[row, self._column_for(stream.secondary_choice())] += 1

        if skipped:
            logger.debug(f"{skipped} formal ballots had no recognised first preference")
        self.ballots_added = True
        logger.info(f"Second preference matrix complete: {int(self.counts.sum()):,} ballots")
        return self

    def count(self, primary: str, second: str) -> int:
        return int(self.counts[self.rows.index(primary), self._column_for(second)])

    def to_dataframe(self) -> pd.DataFrame:
        return pd.DataFrame(self.counts, index=self.rows, columns=self.columns)

    def row_shares(self) -> pd.DataFrame:
        """Each row as a share of that primary option's total; empty rows stay 0."""
        frame = self.to_dataframe().astype(float)
        totals = frame.sum(axis=1)
        return frame.div(totals.where(totals > 0, 1.0), axis=0)
