"""
Preference stream: reads every ballot of an election, file by file, and
answers preference queries about the current one.

The stream owns a single ``StandardBallot`` that is cleared and refilled for
each row. Anything read from the current ballot is only valid until the next
call to ``next_ballot`` or ``has_more_ballots``; use ``snapshot`` to keep a
ballot around.
"""

import logging
from collections import deque
from typing import Deque, Dict, Iterator, List, Optional, Set

try:
    from .ballot import COLLISION, BallotSnapshot, Ranking, StandardBallot
    from .categories import (
        Categories,
        CategoryOverlay,
        StreamInProgressError,
    )
    from .elections import ElectionResource
    from .sources import RawBallot, SourceAdapter
except ImportError:
    from ballot import COLLISION, BallotSnapshot, Ranking, StandardBallot
    from categories import (
        Categories,
        CategoryOverlay,
        StreamInProgressError,
    )
    from elections import ElectionResource
    from sources import RawBallot, SourceAdapter

logger = logging.getLogger(__name__)

PROGRESS_INTERVAL = 1_000_000


class BallotStream:
    """
    Iterates over the ballots of one election.

    Typical use::

        stream = BallotStream(aus_2022())
        while stream.next_ballot():
            if stream.ballot_is_formal():
                counts[stream.primary_choice()] += 1

    Categories can only be changed before the first ballot is read, or after
    ``restart``.
    """

    def __init__(self, election: ElectionResource, debug: bool = False):
        self.election = election
        self.debug = debug

        self._parties: List[str] = election.party_list()
        self._aliases = election.alias_resolver(self._parties)
        self._overlay: Optional[CategoryOverlay] = None

        self._files: Deque[str] = deque()
        self._source: Optional[SourceAdapter] = None
        self._ballot = StandardBallot(0, 0, election.min_above, election.min_below)
        self._current: Optional[StandardBallot] = None
        self._party_runs: Dict[str, bool] = {}
        self._category_runs: Dict[str, bool] = {}
        self._missing_aliases: Set[str] = set()
        self.ballots_processed = 0

        self.restart()

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()

    def __iter__(self) -> Iterator["BallotStream"]:
        return self.iter_ballots()

    # Stream lifecycle

    def restart(self):
        """Go back to the first file and unlock configuration."""
        self._close_source()
        self._files = self.election.datafile_queue()
        self.ballots_processed = 0
        self._current = None
        logger.info(f"Starting {self.election.name}: {len(self._files)} data file(s)")
        self._open_next_file()

    def close(self):
        self._close_source()
        self._files.clear()
        self._current = None

    def _close_source(self):
        if self._source is not None:
            close = getattr(self._source, "close", None)
            if close is not None:
                close()
            self._source = None

    def _open_next_file(self) -> bool:
        """Open the next readable file in the queue; False when none remain."""
        while self._files:
            file_name = self._files.popleft()
            try:
                source = self.election.open_source(file_name)
            except (OSError, ValueError) as e:
                logger.warning(f"Skipping {file_name}: {e}")
                continue

            self._source = source
            self._ballot.resize(len(source.parties), len(source.candidates))
            self._update_who_is_running()
            logger.info(f"Reading ballots from {file_name}")
            return True

        self._source = None
        return False

    def has_more_ballots(self) -> bool:
        """
        True if another ballot can be read, advancing to the next file if needed.

        Invalidates the current ballot.
        """
        self._current = None
        while self._source is not None:
            try:
                if self._source.has_more_raw_ballots():
                    return True
            except ValueError as e:
                logger.warning(f"Stopped reading {self._source.file_name}: {e}")
            self._close_source()
            self._open_next_file()
        return False

    def next_ballot(self) -> bool:
        """
        Load the next ballot.

        Returns:
            True if a ballot was loaded, False once every file is exhausted
        """
        if not self.has_more_ballots():
            return False

        ballot = self._ballot
        ballot.clear()
        if self._overlay is not None:
            ballot.enable_categories()
        else:
            ballot.disable_categories()

        self._transcribe(self._source.next_raw_ballot())
        self._resolve_names()
        self.ballots_processed += 1

        ballot.validate()
        self._current = self.election.additional_processing(ballot)

        if self.debug and self.ballots_processed % PROGRESS_INTERVAL == 0:
            logger.info(f"{self.ballots_processed:,} ballots processed ({self.file_name})")
        return True

    def iter_ballots(self) -> Iterator["BallotStream"]:
        """Yield the stream once per ballot, with that ballot current."""
        while self.next_ballot():
            yield self

    def _transcribe(self, tokens: RawBallot):
        """Write raw ranks into ballot slots, by position."""
        source = self._source
        ballot = self._ballot
        num_parties = len(source.parties)
        num_candidates = len(source.candidates)
        stop = source.stop_on_collision

        for position, token in enumerate(tokens):
            if token is None:
                continue
            if position < num_parties:
                value = source.parties[position]
                setter = ballot.set_above
                size = len(ballot.above)
            elif position - num_parties < num_candidates:
                value = source.candidates[position - num_parties]
                setter = ballot.set_below
                size = len(ballot.below)
            else:
                break

            ranks = token if isinstance(token, tuple) else (token,)
            for rank in ranks:
                index = self._slot_index(rank)
                if index is not None and index < size:
                    setter(index, value, stop)

    def _slot_index(self, rank: str) -> Optional[int]:
        try:
            index = int(rank) - 1
        except (TypeError, ValueError):
            logger.debug(f"Ignoring unreadable rank {rank!r} in {self.file_name}")
            return None
        return index if index >= 0 else None

    def _resolve_names(self):
        """Replace the ranked prefix of each section with canonical party names."""
        ballot = self._ballot
        overlay = self._overlay

        for i, value in enumerate(ballot.above):
            if value is None or value == COLLISION:
                break
            party = self._canonical(value)
            ballot.set_above(i, party, False)
            if overlay is not None:
                ballot.set_above_category(i, overlay.category_of(party), False)

        for i, value in enumerate(ballot.below):
            if value is None or value == COLLISION:
                break
            party = self._canonical(self._source.party_of(value), candidate=value)
            ballot.set_below(i, party, False)
            if overlay is not None:
                ballot.set_below_category(i, overlay.category_of(party), False)

    def _canonical(self, raw: Optional[str], candidate: Optional[str] = None) -> Optional[str]:
        party = self._aliases.resolve(raw)
        if party is None:
            key = raw if raw is not None else f"candidate {candidate}"
            if key not in self._missing_aliases:
                self._missing_aliases.add(key)
                logger.warning(f"No canonical party for {key!r} in {self.file_name}")
        return party

    def _update_who_is_running(self):
        raw_names = self._source.parties_including_secondary if self._source else []
        self._party_runs = {
            party: any(self._aliases.names_equal(raw, party) for raw in raw_names)
            for party in self._parties
        }
        self._category_runs = {}
        if self._overlay is not None:
            self._category_runs = {category: False for category in self._overlay.categories}
            for party, runs in self._party_runs.items():
                if runs:
                    self._category_runs[self._overlay.category_of(party)] = True

    # Categorization

    def categorize(
        self,
        categories: List[str],
        mapping: Dict[str, str],
        use_primary: bool = True,
        use_secondary: bool = True,
    ):
        """
        Group canonical parties into categories.

        Args:
            categories: Category names, in display order
            mapping: Canonical party -> category name; every party must appear
            use_primary: Answer primary queries with categories
            use_secondary: Answer secondary queries with categories

        Raises:
            StreamInProgressError: if ballots were read since the last restart
            MissingPartyError: if a party is unmapped or mapped outside ``categories``
        """
        if self.ballots_processed != 0:
            raise StreamInProgressError(
                f"{self.ballots_processed} ballots already processed; restart before categorizing"
            )
        self._overlay = CategoryOverlay(self._parties, categories, mapping, use_primary, use_secondary)
        self._update_who_is_running()
        logger.info(f"Categorized {len(self._parties)} parties into {len(categories)} categories")

    def decategorize(self):
        """Stop using categories."""
        if self.ballots_processed != 0 and self._overlay is not None:
            raise StreamInProgressError("Stream has begun processing ballots")
        self._overlay = None
        self._update_who_is_running()

    def predefined_categorization(
        self, category: Categories, use_primary: bool = True, use_secondary: bool = True
    ):
        """
        Apply one of the election's predefined categorizations.

        Raises:
            NotDefinedError: if the election does not define ``category``
        """
        built = self.election.premade_categorization(category, self._parties)
        if built is None:
            self.decategorize()
            return
        categories, mapping = built
        self.categorize(categories, mapping, use_primary, use_secondary)

    @property
    def categories_active(self) -> bool:
        return self._overlay is not None

    @property
    def uses_categories_primary(self) -> bool:
        return self._overlay is not None and self._overlay.use_primary

    @property
    def uses_categories_secondary(self) -> bool:
        return self._overlay is not None and self._overlay.use_secondary

    def category_of(self, party: str) -> Optional[str]:
        if self._overlay is None:
            return None
        return self._overlay.category_of(self._aliases.resolve(party))

    def category_members(self, category: str) -> List[str]:
        if self._overlay is None:
            return []
        return self._overlay.members(category)

    # Names and indices

    @property
    def party_list(self) -> List[str]:
        return self._parties

    @property
    def category_list(self) -> Optional[List[str]]:
        return self._overlay.categories if self._overlay is not None else None

    @property
    def number_of_parties(self) -> int:
        return len(self._parties)

    @property
    def number_of_categories(self) -> int:
        return len(self._overlay.categories) if self._overlay is not None else 0

    @property
    def primary_options(self) -> List[str]:
        return self._overlay.categories if self.uses_categories_primary else self._parties

    @property
    def secondary_options(self) -> List[str]:
        return self._overlay.categories if self.uses_categories_secondary else self._parties

    def index_to_party(self, index: int) -> str:
        return self._parties[index]

    def index_to_category(self, index: int) -> str:
        if self._overlay is None:
            raise IndexError("No categories are active")
        return self._overlay.categories[index]

    def party_to_index(self, name: Optional[str]) -> int:
        real = self._aliases.resolve(name)
        return self._parties.index(real) if real in self._parties else -1

    def category_to_index(self, name: Optional[str]) -> int:
        if self._overlay is None or name is None:
            return -1
        return self._overlay.index_of(name)

    def real_name_of(self, name: Optional[str]) -> Optional[str]:
        return self._aliases.resolve(name)

    def party_of_candidate(self, candidate: str) -> Optional[str]:
        if self._source is None:
            return None
        return self._aliases.resolve(self._source.party_of(candidate))

    def names_equal(self, first: Optional[str], second: Optional[str]) -> bool:
        return self._aliases.names_equal(first, second)

    # Which options contest the current file

    def party_runs_in_current_file(self, party: str) -> bool:
        return self._party_runs.get(party, False)

    def category_runs_in_current_file(self, category: str) -> bool:
        return self._category_runs.get(category, False)

    def primary_runs_in_current_file(self, name: str) -> bool:
        if self.uses_categories_primary:
            return self.category_runs_in_current_file(name)
        return self.party_runs_in_current_file(name)

    def secondary_runs_in_current_file(self, name: str) -> bool:
        if self.uses_categories_secondary:
            return self.category_runs_in_current_file(name)
        return self.party_runs_in_current_file(name)

    # Current ballot queries

    def primary_choice(self) -> Optional[str]:
        if self._current is None:
            return None
        if self.uses_categories_primary:
            return self._current.primary_category_preference()
        return self._current.primary_preference()

    def primary_choice_index(self) -> int:
        if self._current is None:
            return -1
        if self.uses_categories_primary:
            return self.category_to_index(self.primary_choice())
        return self.party_to_index(self.primary_choice())

    def secondary_name_to_index(self, name: Optional[str]) -> int:
        if self._current is None:
            return -1
        if self.uses_categories_secondary:
            return self.category_to_index(name)
        return self.party_to_index(name)

    def secondary_choice(self) -> Optional[str]:
        if self._current is None:
            return None
        if self.uses_categories_secondary:
            return self._current.second_category_preference()
        return self._current.second_preference()

    def secondary_ordered_choices(self) -> Optional[List[Optional[str]]]:
        if self._current is None:
            return None
        if self.uses_categories_secondary:
            # The primary's category can appear twice.
            return self._current.first_n_categories(self.number_of_categories + 1)
        return self._current.first_n_parties(self.number_of_parties)

    def preference_between(self, lower: str, upper: str) -> Optional[Ranking]:
        if self._current is None:
            return None
        if self.uses_categories_secondary:
            return self._current.prefer_between_categories(lower, upper)
        return self._current.prefer_between_parties(lower, upper)

    def ballot_is_formal(self) -> bool:
        return self._current is not None and self._current.is_formal

    def snapshot(self) -> Optional[BallotSnapshot]:
        """Immutable copy of the current ballot, or None."""
        return self._current.snapshot() if self._current is not None else None

    @property
    def current_ballot(self) -> Optional[StandardBallot]:
        """The borrowed scratch ballot; only valid until the stream advances."""
        return self._current

    # Metadata

    @property
    def file_name(self) -> Optional[str]:
        return self._source.file_name if self._source is not None else None

    @property
    def election_name(self) -> str:
        if self._overlay is not None:
            return f"{self.election.name} - Using Categories"
        return self.election.name

    @property
    def output_location(self):
        return self.election.output_location
