"""
Canonical ballot representation shared by every election format.

A ballot holds two ordered sections: above-the-line (ATL) slots, one per
party, and below-the-line (BTL) slots, one per candidate. Slot ``i`` holds the
party ranked ``i + 1``. Category labels run in parallel when categories are in
use. Only the leading run of filled slots (the "ranked prefix") counts; the
first empty slot or collision ends it.
"""

import logging
from dataclasses import dataclass
from enum import Enum
from typing import List, Optional, Sequence, Tuple

logger = logging.getLogger(__name__)

COLLISION = "** COLLISION ** DO NOT INCLUDE ** END PROCESSING OF BALLOT **"
INFORMAL_BALLOT = "** THIS BALLOT IS INFORMAL **"
NO_SECOND_CHOICE = "** THIS BALLOT EXPRESSES NO SECOND CHOICE **"

DEFAULT_MIN_ABOVE = 1
DEFAULT_MIN_BELOW = 6


class BallotStatus(Enum):
    """Classification of a ballot after validation."""

    UNFINALIZED = "unfinalized"
    INFORMAL = "informal"
    ABOVE_THE_LINE = "above the line"
    BELOW_THE_LINE = "below the line"


class Ranking(Enum):
    """Outcome of comparing two options on one ballot."""

    FIRST_ONLY = "first only"
    SECOND_ONLY = "second only"
    FIRST_PREFERRED = "first preferred"
    SECOND_PREFERRED = "second preferred"
    NEITHER = "neither"
    INFORMAL = "informal"


def ranked_length(slots: Sequence[Optional[str]]) -> int:
    """Number of leading slots before the first empty slot or collision."""
    count = 0
    for value in slots:
        if value is None or value == COLLISION:
            break
        count += 1
    return count


class BallotQueries:
    """
    Read-only preference queries over a finalized ballot.

    Subclasses provide ``above``, ``below``, ``above_categories``,
    ``below_categories`` and ``status``. Category sequences are ``None``
    when categories are not in use on the ballot.
    """

    above: Sequence[Optional[str]]
    below: Sequence[Optional[str]]
    above_categories: Optional[Sequence[Optional[str]]]
    below_categories: Optional[Sequence[Optional[str]]]
    status: BallotStatus

    @property
    def using_categories(self) -> bool:
        return self.above_categories is not None

    @property
    def is_finalized(self) -> bool:
        return self.status is not BallotStatus.UNFINALIZED

    @property
    def is_formal(self) -> bool:
        return self.status in (BallotStatus.ABOVE_THE_LINE, BallotStatus.BELOW_THE_LINE)

    def number_ranked_above(self) -> int:
        return ranked_length(self.above)

    def number_ranked_below(self) -> int:
        return ranked_length(self.below)

    def _valid_section(self) -> Tuple[Sequence[Optional[str]], Optional[Sequence[Optional[str]]], int]:
        """Slots, category slots and ranked-prefix length of the valid section."""
        if self.status is BallotStatus.BELOW_THE_LINE:
            return self.below, self.below_categories, self.number_ranked_below()
        return self.above, self.above_categories, self.number_ranked_above()

    def primary_preference(self) -> Optional[str]:
        """
        First preference of the valid section.

        Returns:
            The party in the first slot, INFORMAL_BALLOT for an informal
            ballot, or None if the ballot has not been validated
        """
        if not self.is_finalized:
            return None
        if self.status is BallotStatus.INFORMAL:
            return INFORMAL_BALLOT
        slots, _, _ = self._valid_section()
        return slots[0] if slots else None

    def primary_category_preference(self) -> Optional[str]:
        if not self.is_finalized or not self.using_categories:
            return None
        if self.status is BallotStatus.INFORMAL:
            return INFORMAL_BALLOT
        _, categories, _ = self._valid_section()
        return categories[0] if categories else None

    def second_preference(self) -> Optional[str]:
        """First party in the ranked prefix that differs from the primary."""
        first_two = self.first_n_parties(2)
        if first_two is None:
            return None
        return first_two[1] if first_two[1] is not None else NO_SECOND_CHOICE

    def second_category_preference(self) -> Optional[str]:
        """
        Category of the first ranked party that differs from the primary party.

        Slots repeating the primary party are skipped; a different party in the
        primary's own category still counts.
        """
        if not self.is_finalized or not self.using_categories:
            return None
        if self.status is BallotStatus.INFORMAL:
            return NO_SECOND_CHOICE

        slots, categories, length = self._valid_section()
        for i in range(1, length):
            if slots[i] == slots[0]:
                continue
            return categories[i]
        return NO_SECOND_CHOICE

    def first_n_parties(self, n: int) -> Optional[List[Optional[str]]]:
        """
        Up to ``n`` distinct parties from the ranked prefix, in ranked order.

        Args:
            n: Number of choices wanted

        Returns:
            List of length n padded with None, or None if not yet validated
        """
        if not self.is_finalized:
            return None
        result: List[Optional[str]] = [None] * n
        if self.status is BallotStatus.INFORMAL:
            return result

        slots, _, length = self._valid_section()
        found = 0
        for i in range(length):
            if found >= n:
                break
            if slots[i] not in result[:found]:
                result[found] = slots[i]
                found += 1
        return result

    def first_n_categories(self, n: int) -> Optional[List[Optional[str]]]:
        """
        Up to ``n`` categories from the ranked prefix.

        Element 0 is always the primary's category. Later elements come from
        slots whose party differs from the primary party and are deduplicated
        among themselves, so the primary's category may appear once more.
        """
        if not self.is_finalized or not self.using_categories:
            return None
        result: List[Optional[str]] = [None] * n
        if self.status is BallotStatus.INFORMAL or n <= 0:
            return result

        slots, categories, length = self._valid_section()
        if length == 0:
            return result

        result[0] = categories[0]
        found = 1
        for i in range(1, length):
            if found >= n:
                break
            if slots[i] == slots[0]:
                continue
            if categories[i] not in result[1:found]:
                result[found] = categories[i]
                found += 1
        return result

    def prefer_between_parties(self, first: str, second: str) -> Optional[Ranking]:
        """Which of two parties appears earlier in the ranked prefix."""
        if not self.is_finalized:
            return None
        if self.status is BallotStatus.INFORMAL:
            return Ranking.INFORMAL

        slots, _, length = self._valid_section()
        return _scan_preference(slots[:length], first, second)

    def prefer_between_categories(self, first: str, second: str) -> Optional[Ranking]:
        """
        Which of two categories appears earlier in the ranked prefix.

        Slots repeating the primary party are ignored, since the primary's own
        category is trivially ranked first.
        """
        if not self.is_finalized or not self.using_categories:
            return None
        if self.status is BallotStatus.INFORMAL:
            return Ranking.INFORMAL

        slots, categories, length = self._valid_section()
        if length == 0:
            return Ranking.NEITHER
        labels = [categories[i] for i in range(1, length) if slots[i] != slots[0]]
        return _scan_preference(labels, first, second)


def _scan_preference(labels: Sequence[Optional[str]], first: str, second: str) -> Ranking:
    state = Ranking.NEITHER
    for label in labels:
        if label == first:
            if state is Ranking.NEITHER:
                state = Ranking.FIRST_ONLY
            elif state is Ranking.SECOND_ONLY:
                return Ranking.SECOND_PREFERRED
        # Checked independently: identical bounds give FIRST_PREFERRED.
        if label == second:
            if state is Ranking.NEITHER:
                state = Ranking.SECOND_ONLY
            elif state is Ranking.FIRST_ONLY:
                return Ranking.FIRST_PREFERRED
    return state


@dataclass(frozen=True)
class BallotSnapshot(BallotQueries):
    """Immutable copy of a ballot that survives the stream advancing."""

    above: Tuple[Optional[str], ...]
    below: Tuple[Optional[str], ...]
    above_categories: Optional[Tuple[Optional[str], ...]]
    below_categories: Optional[Tuple[Optional[str], ...]]
    status: BallotStatus


class StandardBallot(BallotQueries):
    """
    Mutable ballot reused for every row of a file.

    Writes are ignored once the ballot has been validated; call ``clear``
    before loading the next ballot.
    """

    def __init__(
        self,
        num_above: int,
        num_below: int,
        min_above: int = DEFAULT_MIN_ABOVE,
        min_below: int = DEFAULT_MIN_BELOW,
    ):
        self.min_above = min_above
        self.min_below = min_below
        self.above: List[Optional[str]] = [None] * num_above
        self.below: List[Optional[str]] = [None] * num_below
        self.above_categories: Optional[List[Optional[str]]] = None
        self.below_categories: Optional[List[Optional[str]]] = None
        self.status = BallotStatus.UNFINALIZED

    def __repr__(self) -> str:
        return (
            f"StandardBallot(status={self.status.name}, "
            f"above={self.above[:self.number_ranked_above()]}, "
            f"below={self.below[:self.number_ranked_below()]})"
        )

    # Slot writes

    def set_above(self, index: int, value: Optional[str], stop_on_collision: bool = True):
        self._write(self.above, index, value, stop_on_collision)

    def set_below(self, index: int, value: Optional[str], stop_on_collision: bool = True):
        self._write(self.below, index, value, stop_on_collision)

    def set_above_category(self, index: int, value: Optional[str], stop_on_collision: bool = True):
        if self.above_categories is None:
            self.enable_categories()
        self._write(self.above_categories, index, value, stop_on_collision)

    def set_below_category(self, index: int, value: Optional[str], stop_on_collision: bool = True):
        if self.below_categories is None:
            self.enable_categories()
        self._write(self.below_categories, index, value, stop_on_collision)

    def _write(self, slots: List[Optional[str]], index: int, value: Optional[str], stop_on_collision: bool):
        if self.is_finalized:
            return
        if index < 0:
            raise IndexError(f"Ballot slot index must be non-negative, got {index}")
        if stop_on_collision and slots[index] is not None:
            slots[index] = COLLISION
        else:
            slots[index] = value

    # Lifecycle

    def enable_categories(self):
        """Allocate category slots, matching the current section sizes."""
        if self.above_categories is None:
            self.above_categories = [None] * len(self.above)
            self.below_categories = [None] * len(self.below)

    def disable_categories(self):
        self.above_categories = None
        self.below_categories = None

    def clear(self):
        """Reset every slot and category slot to None and unfinalize."""
        for i in range(len(self.above)):
            self.above[i] = None
        for i in range(len(self.below)):
            self.below[i] = None
        if self.above_categories is not None:
            for i in range(len(self.above_categories)):
                self.above_categories[i] = None
            for i in range(len(self.below_categories)):
                self.below_categories[i] = None
        self.status = BallotStatus.UNFINALIZED

    def resize(self, num_above: int, num_below: int):
        """Reallocate slots only when the section sizes change, then clear."""
        if len(self.above) != num_above or len(self.below) != num_below:
            logger.debug(f"Resizing ballot to {num_above} ATL and {num_below} BTL slots")
            categories = self.using_categories
            self.above = [None] * num_above
            self.below = [None] * num_below
            self.above_categories = None
            self.below_categories = None
            if categories:
                self.enable_categories()
        self.clear()

    def validate(self, min_above: Optional[int] = None, min_below: Optional[int] = None) -> "StandardBallot":
        """
        Classify the ballot from the length of each ranked prefix.

        Below the line takes precedence when both sections reach their minimum.

        Args:
            min_above: Minimum ATL preferences for a formal ballot (default: ballot minimum)
            min_below: Minimum BTL preferences for a formal ballot (default: ballot minimum)

        Returns:
            self, for chaining
        """
        min_above = self.min_above if min_above is None else min_above
        min_below = self.min_below if min_below is None else min_below

        if self.number_ranked_below() >= min_below:
            self.status = BallotStatus.BELOW_THE_LINE
        elif self.number_ranked_above() >= min_above:
            self.status = BallotStatus.ABOVE_THE_LINE
        else:
            self.status = BallotStatus.INFORMAL
        return self

    def force_formal(self) -> "StandardBallot":
        """Treat the ballot as formal in whichever section ranks more, ties going above."""
        if self.number_ranked_below() > self.number_ranked_above():
            self.status = BallotStatus.BELOW_THE_LINE
        else:
            self.status = BallotStatus.ABOVE_THE_LINE
        return self

    # Copies

    def copy(self) -> "StandardBallot":
        """Independent mutable copy, including status and category slots."""
        clone = StandardBallot(len(self.above), len(self.below), self.min_above, self.min_below)
        clone.above = list(self.above)
        clone.below = list(self.below)
        if self.above_categories is not None:
            clone.above_categories = list(self.above_categories)
            clone.below_categories = list(self.below_categories)
        clone.status = self.status
        return clone

    def snapshot(self) -> BallotSnapshot:
        return BallotSnapshot(
            above=tuple(self.above),
            below=tuple(self.below),
            above_categories=tuple(self.above_categories) if self.above_categories is not None else None,
            below_categories=tuple(self.below_categories) if self.below_categories is not None else None,
            status=self.status,
        )
