"""
Spectrum analysis.

A spectrum is defined by two bounding options, a lower and an upper one. For
every primary option it records how that option's voters ranked the two
bounds relative to each other. The spectrum value ``Ur / (Ur + Lr)`` places
each primary option between the bounds: 0 means its voters only ever ranked
the lower bound, 1 means they only ranked the upper one.
"""

import logging
from dataclasses import dataclass
from typing import Dict, List, Optional

import numpy as np
import pandas as pd

try:
    from ..data.ballot import Ranking
    from ..data.stream import BallotStream
except (ImportError, ValueError):
    from data.ballot import Ranking
    from data.stream import BallotStream

logger = logging.getLogger(__name__)

NO_VALUE = -1.0


@dataclass
class SpectrumParty:
    """Preference counts between two bounds for one primary option."""

    name: str
    lower_bound: str
    upper_bound: str
    lower_only: int = 0
    upper_only: int = 0
    lower_preferred: int = 0
    upper_preferred: int = 0
    neither: int = 0

    def add_preference(self, ranking: Optional[Ranking]):
        if ranking is Ranking.FIRST_ONLY:
            self.lower_only += 1
        elif ranking is Ranking.SECOND_ONLY:
            self.upper_only += 1
        elif ranking is Ranking.FIRST_PREFERRED:
            self.lower_preferred += 1
        elif ranking is Ranking.SECOND_PREFERRED:
            self.upper_preferred += 1
        elif ranking is Ranking.NEITHER:
            self.neither += 1

    @property
    def upper_ranked(self) -> int:
        return self.upper_only + self.upper_preferred

    @property
    def lower_ranked(self) -> int:
        return self.lower_only + self.lower_preferred

    @property
    def total_votes(self) -> int:
        return self.lower_only + self.upper_only + self.lower_preferred + self.upper_preferred + self.neither

    @property
    def spectrum_value(self) -> float:
        """Ur / (Ur + Lr), or -1 when neither bound was ranked."""
        ranked = self.upper_ranked + self.lower_ranked
        if ranked < 1:
            return NO_VALUE
        return self.upper_ranked / ranked

    @property
    def restricted_spectrum_value(self) -> float:
        """Up / (Up + Lp), counting only ballots that ranked both bounds."""
        ranked = self.upper_preferred + self.lower_preferred
        if ranked < 1:
            return NO_VALUE
        return self.upper_preferred / ranked


def sample_std(values: List[float]) -> float:
    """Sample standard deviation (n - 1); NaN with fewer than two values."""
    if len(values) < 2:
        return float("nan")
    return float(np.std(values, ddof=1))


def correlation(x: List[float], y: List[float]) -> float:
    """Pearson correlation of two equal-length samples; NaN if undefined."""
    n = min(len(x), len(y))
    if n < 2:
        return float("nan")
    xs = np.asarray(x[:n], dtype=float)
    ys = np.asarray(y[:n], dtype=float)
    if xs.std() == 0 or ys.std() == 0:
        return float("nan")
    return float(np.corrcoef(xs, ys)[0, 1])


class Spectrum:
    """One (lower, upper) pair of bounds and a ``SpectrumParty`` per primary option."""

    def __init__(self, lower_name: str, lower_index: int, upper_name: str, upper_index: int, primary_names: List[str]):
        self.lower_name = lower_name
        self.lower_index = lower_index
        self.upper_name = upper_name
        self.upper_index = upper_index
        self.parties: List[SpectrumParty] = [
            SpectrumParty(name, lower_name, upper_name) for name in primary_names
        ]

    def __repr__(self) -> str:
        return f"Spectrum(lower={self.lower_name!r}, upper={self.upper_name!r})"

    def party_at(self, index: int) -> SpectrumParty:
        return self.parties[index]

    def values(self, restricted: bool = False, exclude_extremes: bool = False) -> List[float]:
        """
        Spectrum values of the parties that have one.

        Args:
            restricted: Use the restricted value (both bounds ranked)
            exclude_extremes: Drop values of exactly 0 or 1
        """
        result = []
        for party in self.parties:
            value = party.restricted_spectrum_value if restricted else party.spectrum_value
            if value == NO_VALUE:
                continue
            if exclude_extremes and value in (0.0, 1.0):
                continue
            result.append(value)
        return result

    def standard_deviation(self) -> float:
        return sample_std(self.values())

    def alt_standard_deviation(self) -> float:
        """Standard deviation of the non-extreme values."""
        return sample_std(self.values(exclude_extremes=True))

    def restricted_standard_deviation(self) -> float:
        return sample_std(self.values(restricted=True))

    def restricted_alt_standard_deviation(self) -> float:
        return sample_std(self.values(restricted=True, exclude_extremes=True))

    def _matched_values(self, other: "Spectrum"):
        theirs = {p.name: p.spectrum_value for p in other.parties}
        x, y = [], []
        for party in self.parties:
            value = party.spectrum_value
            other_value = theirs.get(party.name, NO_VALUE)
            if value != NO_VALUE and other_value != NO_VALUE:
                x.append(value)
                y.append(other_value)
        return x, y

    def correlation_with(self, other: "Spectrum") -> float:
        """Pearson correlation over parties with a value in both spectra."""
        x, y = self._matched_values(other)
        return correlation(x, y)

    def compatible_count(self, other: "Spectrum") -> int:
        """Number of parties with a value in both spectra."""
        x, _ = self._matched_values(other)
        return len(x)

    def extremes(self) -> Dict[str, object]:
        """Highest and lowest non-extreme spectrum values and their parties."""
        candidates = [
            (p.spectrum_value, p.name)
            for p in self.parties
            if p.spectrum_value not in (NO_VALUE, 0.0, 1.0)
        ]
        if not candidates:
            return {"highest": NO_VALUE, "highest_party": "", "lowest": NO_VALUE, "lowest_party": ""}
        highest = max(candidates, key=lambda c: c[0])
        lowest = min(candidates, key=lambda c: c[0])
        return {
            "highest": highest[0],
            "highest_party": highest[1],
            "lowest": lowest[0],
            "lowest_party": lowest[1],
        }

    def to_dataframe(self) -> pd.DataFrame:
        rows = [
            {
                "lower_bound": self.lower_name,
                "upper_bound": self.upper_name,
                "party": p.name,
                "lower_only": p.lower_only,
                "upper_only": p.upper_only,
                "lower_preferred": p.lower_preferred,
                "upper_preferred": p.upper_preferred,
                "neither": p.neither,
                "total_votes": p.total_votes,
                "spectrum_value": p.spectrum_value,
                "restricted_spectrum_value": p.restricted_spectrum_value,
            }
            for p in self.parties
        ]
        return pd.DataFrame(rows)

    def summary(self) -> Dict[str, object]:
        summary = {
            "lower_bound": self.lower_name,
            "upper_bound": self.upper_name,
            "lower_index": self.lower_index,
            "upper_index": self.upper_index,
            "standard_deviation": self.standard_deviation(),
            "alt_standard_deviation": self.alt_standard_deviation(),
            "restricted_standard_deviation": self.restricted_standard_deviation(),
            "restricted_alt_standard_deviation": self.restricted_alt_standard_deviation(),
            "total_ballots": sum(p.total_votes for p in self.parties),
        }
        summary.update(self.extremes())
        return summary


class SpectraMaker:
    """
    Builds spectra for pairs of secondary options from one pass over a stream.

    Bounds are secondary options (categories when the stream uses categories
    for secondary queries); the entries are primary options.
    """

    def __init__(self, stream: BallotStream):
        self.stream = stream
        self.spectra: List[Spectrum] = []
        self.ballots_added = False

    def add_party_pair(self, lower: int, upper: int):
        """Add the spectrum between secondary options ``lower`` and ``upper``."""
        if self.ballots_added:
            return
        options = self.stream.secondary_options
        self.spectra.append(
            Spectrum(options[lower], lower, options[upper], upper, list(self.stream.primary_options))
        )

    def add_all_party_pairs_between(self, lower: int, upper: int, maximum: Optional[int] = None):
        """
        Add every pair (i, j) with ``lower <= i < upper - 1`` and ``i < j < maximum``.

        ``maximum`` defaults to the number of secondary options.
        """
        if self.ballots_added:
            return
        if maximum is None:
            maximum = len(self.stream.secondary_options)
        for i in range(lower, upper - 1):
            for j in range(i + 1, maximum):
                self.add_party_pair(i, j)

    def add_all_party_pairs(self):
        count = len(self.stream.secondary_options)
        self.add_all_party_pairs_between(0, count)

    def move_data_into_spectra(self):
        """Read the rest of the stream, counting formal ballots into every spectrum."""
        stream = self.stream
        logger.info(f"Filling {len(self.spectra)} spectra from {stream.election_name}")

        while stream.next_ballot():
            if not stream.ballot_is_formal():
                continue
            index = stream.primary_choice_index()
            if index < 0:
                continue
            for spectrum in self.spectra:
                if stream.secondary_runs_in_current_file(spectrum.upper_name) and stream.secondary_runs_in_current_file(
                    spectrum.lower_name
                ):
                    spectrum.party_at(index).add_preference(
                        stream.preference_between(spectrum.lower_name, spectrum.upper_name)
                    )

        self.ballots_added = True
        logger.info(f"Spectra complete after {stream.ballots_processed:,} ballots")

    def standard_deviation(self, index: int) -> float:
        return self.spectra[index].standard_deviation() if self.ballots_added else NO_VALUE

    def alt_standard_deviation(self, index: int) -> float:
        return self.spectra[index].alt_standard_deviation() if self.ballots_added else NO_VALUE

    def best_standard_deviation(self) -> Optional[Spectrum]:
        """Spectrum whose values are most spread out."""
        return self._best(Spectrum.standard_deviation)

    def best_alt_standard_deviation(self) -> Optional[Spectrum]:
        return self._best(Spectrum.alt_standard_deviation)

    def _best(self, measure) -> Optional[Spectrum]:
        if not self.ballots_added or not self.spectra:
            return None
        best, best_value = self.spectra[0], NO_VALUE
        for spectrum in self.spectra:
            value = measure(spectrum)
            if value > best_value:
                best, best_value = spectrum, value
        return best

    def to_dataframe(self) -> pd.DataFrame:
        """All spectra stacked into one long table."""
        if not self.spectra:
            return pd.DataFrame()
        return pd.concat([s.to_dataframe() for s in self.spectra], ignore_index=True)

    def summary_dataframe(self) -> pd.DataFrame:
        return pd.DataFrame([s.summary() for s in self.spectra])
