"""
File readers for each supported election format.

Each reader turns one data file into rows of rank tokens laid out as described
in ``sources``. Readers share helpers but not a base class; the stream only
relies on the ``SourceAdapter`` protocol.
"""

import itertools
import logging
from pathlib import Path
from typing import Dict, Iterator, List, Optional, Sequence

import pandas as pd

try:
    from .sources import (
        Lookahead,
        RankToken,
        RawBallot,
        SourceFormatError,
        blank_to_none,
        require_columns,
        strip_bom,
    )
except ImportError:
    from sources import (
        Lookahead,
        RankToken,
        RawBallot,
        SourceFormatError,
        blank_to_none,
        require_columns,
        strip_bom,
    )

logger = logging.getLogger(__name__)

CHUNK_SIZE = 50_000
UNGROUPED = "UG"


def read_header(path: Path) -> str:
    """First line of a file with any byte-order mark and newline removed."""
    with open(path, "r", encoding="utf-8-sig") as f:
        line = f.readline()
    if not line:
        raise SourceFormatError(f"{path} is empty")
    return strip_bom(line.rstrip("\r\n"))


def iter_rows(path: Path, sep: str = ",", skiprows: int = 1) -> Iterator[List[str]]:
    """
    Stream the data rows of a delimited file as lists of strings.

    Blank fields come through as empty strings.
    """
    try:
        with pd.read_csv(
            path,
            sep=sep,
            header=None,
            skiprows=skiprows,
            dtype=str,
            keep_default_na=False,
            chunksize=CHUNK_SIZE,
            encoding="utf-8-sig",
        ) as reader:
            for chunk in reader:
                for row in chunk.itertuples(index=False, name=None):
                    yield list(row)
    except pd.errors.EmptyDataError:
        logger.info(f"No ballot rows in {path}")


def add_rank(tokens: RawBallot, position: int, rank: str):
    """Record ``rank`` at ``position``, keeping every rank if the position repeats."""
    current: RankToken = tokens[position]
    if current is None:
        tokens[position] = rank
    elif isinstance(current, tuple):
        tokens[position] = current + (rank,)
    else:
        tokens[position] = (current, rank)


def state_from_file_name(path: Path, marker: str = "-") -> str:
    """State code at the end of a data file name, e.g. ``NSW`` in ``...-27966-NSW.csv``."""
    return path.stem.rsplit(marker, 1)[-1]


def rejoin_split_names(header: str) -> List[str]:
    """
    Split a 2022-style header, rejoining party names that contain commas.

    After the ``Paper No`` column every real field carries a ``group:`` prefix,
    so a fragment without a colon belongs to the field before it.
    """
    tokens: List[str] = []
    in_parties = False
    for raw in header.split(","):
        token = strip_bom(raw)
        if in_parties and ":" not in token and tokens:
            tokens[-1] = tokens[-1] + token
        else:
            tokens.append(token)
        if token == " Paper No":
            in_parties = True
    return tokens


class AusSenateWideReader:
    """
    AEC Senate formal preferences in the 2019 / 2022 wide layout.

    The header reads ``State, Division, ..., Paper No, A:Party, B:Party, ...,
    A:Candidate, A:Candidate, ...``: group columns first, then candidate
    columns, each prefixed with the group letter. The first repeated group
    prefix marks the start of the candidate columns.

    The two editions differ in a few conventions:

    - 2019 names an unnamed group by its letter, maps ungrouped candidates to
      ``UG`` and reports a candidate's party as the raw header field
      (``"A:Party"``), which the alias table resolves.
    - 2022 rejoins party names split on commas, names unnamed groups
      ``"<letter> - <state>"``, maps ungrouped candidates to ``Independent``
      and reports the cleaned party name. Candidates keep their ``"A:"``
      prefix.
    """

    stop_on_collision = True

    def __init__(self, data_file, year: int = 2019):
        if year not in (2019, 2022):
            raise ValueError(f"Unsupported AEC wide-format year: {year}")
        self.path = Path(data_file)
        self.file_name = str(data_file)
        self.year = year
        self.state_id = state_from_file_name(self.path)

        header = read_header(self.path)
        if year == 2022:
            tokens = rejoin_split_names(header)
        else:
            tokens = [strip_bom(token) for token in header.split(",")]

        self.first_party_index = self._first_party_index(tokens)
        self.first_candidate_index = self._first_candidate_index(tokens)
        self.parties_unaltered = tokens[self.first_party_index:self.first_candidate_index]
        self.candidates_unaltered = tokens[self.first_candidate_index:]
        self.parties = [self._party_name(token) for token in self.parties_unaltered]
        self.parties_including_secondary = self.parties

        self._group_to_party: Dict[str, str] = {}
        for token, party in zip(self.parties_unaltered, self.parties):
            self._group_to_party[token.split(":")[0]] = party if year == 2022 else token
        self._group_to_party[UNGROUPED] = "Independent" if year == 2022 else UNGROUPED

        self._candidate_to_group: Dict[str, str] = {}
        self.candidates: List[str] = []
        for token in self.candidates_unaltered:
            group, _, name = token.partition(":")
            self._candidate_to_group[token] = group
            if year == 2022:
                # Bare names can repeat across groups, so BTL slots keep the group prefix.
                self.candidates.append(token)
            else:
                self._candidate_to_group[name] = group
                self.candidates.append(name)

        self._width = len(self.parties) + len(self.candidates)
        self._rows = iter_rows(self.path)
        self._lookahead = Lookahead(self._rows)
        logger.info(
            f"Opened {self.path.name}: {len(self.parties)} groups, {len(self.candidates)} candidates"
        )

    def _first_party_index(self, tokens: Sequence[str]) -> int:
        for i, token in enumerate(tokens):
            if ":" in token:
                return i
        raise SourceFormatError(f"No group columns found in header of {self.file_name}")

    def _first_candidate_index(self, tokens: Sequence[str]) -> int:
        seen = set()
        for i in range(self.first_party_index, len(tokens)):
            group, _, name = tokens[i].partition(":")
            if name and group in seen:
                return i
            seen.add(group)
        return len(tokens)

    def _party_name(self, token: str) -> str:
        group, _, name = token.partition(":")
        if name:
            return name.replace(",", "")
        return f"{group} - {self.state_id}" if self.year == 2022 else group

    def party_of(self, candidate: str) -> Optional[str]:
        return self._group_to_party.get(self._candidate_to_group.get(candidate))

    def has_more_raw_ballots(self) -> bool:
        return self._lookahead.has_next()

    def next_raw_ballot(self) -> RawBallot:
        row = self._lookahead.next()
        values = row[self.first_party_index:self.first_party_index + self._width]
        tokens: RawBallot = [blank_to_none(value) for value in values]
        tokens.extend([None] * (self._width - len(tokens)))
        return tokens

    def close(self):
        self._rows.close()


class AusSenate2016Reader:
    """
    AEC 2016 Senate formal preferences.

    Groups and candidates come from the AEC candidate information CSV, filtered
    to Senate nominations for the state named by the data file suffix
    (``...-NSW.csv``). The data file has two header lines and a quoted,
    comma-joined preference field in its last column.
    """

    stop_on_collision = True

    def __init__(self, candidates_file, data_file):
        self.path = Path(data_file)
        self.file_name = str(data_file)
        self.state_id = state_from_file_name(self.path)

        candidates = pd.read_csv(candidates_file, dtype=str, keep_default_na=False)
        require_columns(
            list(candidates.columns),
            ["nom_ty", "state_ab", "party_ballot_nm", "surname", "ballot_given_nm", "ticket"],
            str(candidates_file),
        )
        senate = candidates[
            (candidates["nom_ty"] == "S") & (candidates["state_ab"] == self.state_id)
        ]
        if senate.empty:
            raise SourceFormatError(
                f"No Senate candidates for {self.state_id} in {candidates_file}"
            )

        self.candidates: List[str] = []
        self.parties: List[str] = []
        self._candidate_to_party: Dict[str, str] = {}
        current_group = ""
        for row in senate.itertuples(index=False):
            name = f"{row.ballot_given_nm} {row.surname}"
            party = self._clean_party(row.party_ballot_nm, row.ticket)
            self.candidates.append(name)
            self._candidate_to_party[name] = party
            if row.ticket != current_group and row.ticket != UNGROUPED:
                current_group = row.ticket
                self.parties.append(party)

        self.parties_unaltered = self.parties
        self.candidates_unaltered = self.candidates
        self.parties_including_secondary = list(dict.fromkeys(self._candidate_to_party.values()))

        self._width = len(self.parties) + len(self.candidates)
        self._rows = iter_rows(self.path, skiprows=2)
        self._lookahead = Lookahead(self._rows)
        logger.info(
            f"Opened {self.path.name}: {len(self.parties)} groups, {len(self.candidates)} candidates"
        )

    def _clean_party(self, party: str, group: str) -> str:
        if not party:
            if group == UNGROUPED:
                return "Independent"
            return f"{group.replace(',', '')} - {self.state_id}"
        return party.replace(",", "")

    def party_of(self, candidate: str) -> Optional[str]:
        return self._candidate_to_party.get(candidate)

    def has_more_raw_ballots(self) -> bool:
        return self._lookahead.has_next()

    def next_raw_ballot(self) -> RawBallot:
        row = self._lookahead.next()
        preferences = row[-1].split(",") if row else []
        tokens: RawBallot = [None] * self._width
        for i, value in enumerate(preferences[:self._width]):
            value = value.strip()
            if value in ("*", "/"):
                tokens[i] = "1"
            elif value and value != "-1":
                tokens[i] = value
        return tokens

    def close(self):
        self._rows.close()


class NSWPreferenceReader:
    """
    NSW Legislative Council preference data.

    The data file is tab separated with one row per preference; consecutive
    rows sharing a ``VCBallotPaperID`` make up one ballot. ``SATL``/``RATL``
    rows rank groups and ``BTL`` rows rank candidates. Informal ballots are
    skipped.
    """

    stop_on_collision = False

    DATA_COLUMNS = ["GroupCode", "CandidateName", "Formality", "Type", "VCBallotPaperID", "PreferenceNumber"]
    CANDIDATE_COLUMNS = ["Group/Candidates in Ballot Order", "Party", "Group"]

    def __init__(self, candidates_file, data_file, state_id: str = "NSW", candidates_sep: str = ","):
        self.path = Path(data_file)
        self.file_name = str(data_file)
        self.state_id = state_id

        candidates = pd.read_csv(candidates_file, sep=candidates_sep, dtype=str, keep_default_na=False)
        require_columns(list(candidates.columns), self.CANDIDATE_COLUMNS, str(candidates_file))

        self.candidates: List[str] = []
        self.parties: List[str] = []
        self._candidate_to_party: Dict[str, str] = {}
        self._group_position: Dict[str, int] = {}
        current_group = ""
        for name, party, group in candidates[self.CANDIDATE_COLUMNS].itertuples(index=False, name=None):
            party = self._clean_party(party, group)
            self.candidates.append(name)
            self._candidate_to_party[name] = party
            if group != current_group and group != UNGROUPED:
                current_group = group
                self._group_position[group] = len(self.parties)
                self.parties.append(party)

        self._candidate_position = {name: i for i, name in enumerate(self.candidates)}
        self.parties_unaltered = self.parties
        self.candidates_unaltered = self.candidates
        self.parties_including_secondary = list(dict.fromkeys(self._candidate_to_party.values()))

        header = read_header(self.path).split("\t")
        require_columns(header, self.DATA_COLUMNS, self.file_name)
        self._columns = {name: header.index(name) for name in self.DATA_COLUMNS}

        self._rows = iter_rows(self.path, sep="\t")
        self._lookahead = Lookahead(self._ballots())
        logger.info(
            f"Opened {self.path.name}: {len(self.parties)} groups, {len(self.candidates)} candidates"
        )

    def _clean_party(self, party: str, group: str) -> str:
        if not party:
            if group == UNGROUPED:
                return "INDEPENDENT"
            return f"{group.replace(',', '')} - {self.state_id}"
        return party.replace(",", "")

    def _ballots(self) -> Iterator[RawBallot]:
        ballot_id = self._columns["VCBallotPaperID"]
        formality = self._columns["Formality"]
        for _, rows in itertools.groupby(self._rows, key=lambda row: row[ballot_id]):
            rows = list(rows)
            if rows[0][formality] == "Informal":
                continue
            yield self._to_tokens(rows)

    def _to_tokens(self, rows: List[List[str]]) -> RawBallot:
        kind = self._columns["Type"]
        rank = self._columns["PreferenceNumber"]
        group = self._columns["GroupCode"]
        name = self._columns["CandidateName"]

        tokens: RawBallot = [None] * (len(self.parties) + len(self.candidates))
        for row in rows:
            if not row[rank]:
                continue
            if row[kind] in ("SATL", "RATL"):
                position = self._group_position.get(row[group])
            elif row[kind] == "BTL":
                position = self._candidate_position.get(row[name])
                if position is not None:
                    position += len(self.parties)
            else:
                position = None
            if position is None:
                logger.debug(f"Ignoring unplaced preference row in {self.path.name}: {row}")
                continue
            add_rank(tokens, position, row[rank])
        return tokens

    def party_of(self, candidate: str) -> Optional[str]:
        return self._candidate_to_party.get(candidate)

    def has_more_raw_ballots(self) -> bool:
        return self._lookahead.has_next()

    def next_raw_ballot(self) -> RawBallot:
        return self._lookahead.next()

    def close(self):
        self._rows.close()


class NYCPrimaryReader:
    """
    NYC 2021 primary cast vote records for one race.

    Every column whose header contains the race name (for example
    ``"DEM Mayor"``) is one rank. Cells hold candidate ids; ``undervote`` and
    ``overvote`` count as blank. Candidates are the "parties" of this format
    and there is no below-the-line section.
    """

    stop_on_collision = False

    def __init__(self, candidates_file, ids_file, data_file, race: str):
        self.path = Path(data_file)
        self.file_name = str(data_file)
        self.race = race

        ids = pd.read_csv(ids_file, header=None, dtype=str, keep_default_na=False, usecols=[0, 1])
        self._id_to_name: Dict[str, str] = dict(ids.itertuples(index=False, name=None))

        with open(candidates_file, "r", encoding="utf-8-sig") as f:
            self.parties: List[str] = [line.strip() for line in f if line.strip()]
        self.parties_unaltered = self.parties
        self.parties_including_secondary = self.parties
        self.candidates: List[str] = []
        self.candidates_unaltered = self.candidates
        self._position = {name: i for i, name in enumerate(self.parties)}

        header = [strip_bom(token) for token in read_header(self.path).split(",")]
        self.rank_columns = [i for i, token in enumerate(header) if race in token]
        if not self.rank_columns:
            raise SourceFormatError(f"No columns for race {race!r} in {self.file_name}")

        self._rows = iter_rows(self.path)
        self._lookahead = Lookahead(self._rows)
        logger.info(f"Opened {self.path.name}: {len(self.rank_columns)} ranks for {race}")

    def party_of(self, candidate: str) -> Optional[str]:
        return self._id_to_name.get(candidate)

    def has_more_raw_ballots(self) -> bool:
        return self._lookahead.has_next()

    def next_raw_ballot(self) -> RawBallot:
        row = self._lookahead.next()
        tokens: RawBallot = [None] * len(self.parties)
        for rank, column in enumerate(self.rank_columns, start=1):
            name = self._id_to_name.get(row[column]) if column < len(row) else None
            position = self._position.get(name)
            if position is not None:
                add_rank(tokens, position, str(rank))
        return tokens

    def close(self):
        self._rows.close()
