"""
Per-election configuration: where the files live, how to read them, formality
thresholds and the predefined categorizations each election supports.
"""

import logging
import os
from collections import deque
from dataclasses import dataclass, field
from enum import Enum
from functools import partial
from pathlib import Path
from typing import Callable, Deque, Dict, List, Optional, Tuple, Union

try:
    from .aliases import AliasResolver
    from .ballot import DEFAULT_MIN_ABOVE, DEFAULT_MIN_BELOW, StandardBallot
    from .categories import Categories, CategoryScheme, NotDefinedError
    from .readers import (
        AusSenate2016Reader,
        AusSenateWideReader,
        NSWPreferenceReader,
        NYCPrimaryReader,
    )
    from .sources import SourceAdapter
except ImportError:
    from aliases import AliasResolver
    from ballot import DEFAULT_MIN_ABOVE, DEFAULT_MIN_BELOW, StandardBallot
    from categories import Categories, CategoryScheme, NotDefinedError
    from readers import (
        AusSenate2016Reader,
        AusSenateWideReader,
        NSWPreferenceReader,
        NYCPrimaryReader,
    )
    from sources import SourceAdapter

logger = logging.getLogger(__name__)

DATA_DIR_ENV = "RCV_DATA_DIR"

SIZE_BASED_NAMES = ("Lib/Lab", "Parliamentary", "Minor", "Unnamed")

CROSS_ELECTION_NAMES = (
    "Animal Justice Party", "Australian Christians", "Australian Democrats",
    "Australian Labor Party", "Center Alliance", "Derryn Hinch's Justice Party",
    "Jacqui Lambie Network", "Legalise Cannabis Australia", "Liberal",
    "Liberal Democrats", "Pauline Hanson's One Nation", "Seniors United Party",
    "Shooters Fishers and Farmers", "Socialist Alliance", "Socialist Equality Party",
    "Sustainable Australia Party", "The Greens", "United Australia Party",
)

ALL_AUSTRALIA_NAMES = (
    "Animal Justice Party", "Australian Christians", "Australian Conservatives",
    "Australian Democrats", "Australian Federation", "Australian Labor Party",
    "Centre Alliance", "Christian Democratic Party", "Derryn Hinch's Justice Party",
    "Jacqui Lambie Network", "Legalize Cannabis Australia", "Liberal / Nationalist",
    "Liberal Democrats", "Pauline Hanson's One Nation", "Seniors United Party",
    "Shooters Fishers and Farmers", "Socialist Alliance", "Socialist Equality Party",
    "Sustaniable Australia Party", "The Greens", "United Australia Party",
    "Voluntary Euthanasia",
)

NSW_CROSS_ELECTION_NAMES = (
    "ANIMAL JUSTICE PARTY", "CHRISTIAN DEMOCRATIC PARTY (FRED NILE GROUP)",
    "LABOR / COUNTRY LABOR", "LIBERAL", "SHOOTERS", "SOCIALIST AlLIANCE",
    "THE GREENS", "VOLUNTARY EUTHANASIA PARTY",
)


def _singles(*indices: int) -> Tuple[Tuple[int, ...], ...]:
    return tuple((i,) for i in indices)


def _scheme(names, members, final_category: Optional[str] = None) -> CategoryScheme:
    if len(names) != len(members):
        raise ValueError(f"{len(names)} category names for {len(members)} member lists")
    return CategoryScheme(tuple(names), tuple(tuple(m) for m in members), final_category)


class Race(Enum):
    """Races available in the NYC 2021 primary data."""

    MAYORAL_DEM = ("DEM Mayor", "Democratic Mayor", "DemMayorCandOrder.txt")
    COMPTROLLER_DEM = ("DEM Comptroller", "Democratic Comptroller", "DemComptrollerCandOrder.txt")

    def __init__(self, column: str, title: str, candidate_file: str):
        self.column = column
        self.title = title
        self.candidate_file = candidate_file

    def __str__(self) -> str:
        return self.column


@dataclass
class ElectionResource:
    """
    Everything the preference stream needs to know about one election.

    Attributes:
        name: Display name, e.g. "Australia 2022"
        data_location: A single data file or a directory of per-region files
        reader_factory: Opens one data file and returns a source adapter
        party_order_file: One canonical party per line, in ballot order
        alias_file: Two-column alias table
        alias_delimiter: Separator used in the alias table
        min_above: ATL preferences needed for a formal ballot
        min_below: BTL preferences needed for a formal ballot
        force_formal: Treat every received ballot as formal
        schemes: Predefined categorizations, as indices into the party order
    """

    name: str
    data_location: Path
    reader_factory: Callable[[str], SourceAdapter]
    party_order_file: Path
    alias_file: Path
    alias_delimiter: str = ","
    min_above: int = DEFAULT_MIN_ABOVE
    min_below: int = DEFAULT_MIN_BELOW
    force_formal: bool = False
    schemes: Dict[Categories, CategoryScheme] = field(default_factory=dict)

    def open_source(self, file_name: str) -> SourceAdapter:
        return self.reader_factory(file_name)

    def party_list(self) -> List[str]:
        """Canonical parties in order, read from the party order file."""
        with open(self.party_order_file, "r", encoding="utf-8-sig") as f:
            parties = [line.rstrip("\r\n") for line in f]
        parties = [party for party in parties if party.strip()]
        logger.debug(f"{self.name}: {len(parties)} parties in {self.party_order_file}")
        return parties

    def alias_resolver(self, parties: Optional[List[str]] = None) -> AliasResolver:
        if parties is None:
            parties = self.party_list()
        return AliasResolver.from_file(self.alias_file, self.alias_delimiter, canonical=parties)

    def datafile_queue(self) -> Deque[str]:
        """Data files to read, in a stable order."""
        location = Path(self.data_location)
        if location.is_file():
            return deque([str(location)])
        if location.is_dir():
            return deque(str(p) for p in sorted(location.iterdir()) if p.is_file())
        logger.warning(f"Data location for {self.name} is neither a file nor a directory: {location}")
        return deque()

    @property
    def output_location(self) -> Path:
        return Path(self.data_location).parent / "output"

    def additional_processing(self, ballot: StandardBallot) -> StandardBallot:
        """Election-specific adjustment applied after validation."""
        if self.force_formal:
            return ballot.force_formal()
        return ballot

    def supports(self, category: Categories) -> bool:
        return category is Categories.UNCATEGORIZED or category in self.schemes

    def premade_categorization(
        self, category: Categories, parties: List[str]
    ) -> Optional[Tuple[List[str], Dict[str, str]]]:
        """
        Build a predefined categorization for this election.

        Returns:
            (category list, party -> category map), or None for UNCATEGORIZED

        Raises:
            NotDefinedError: if the election has no such scheme
        """
        if category is Categories.UNCATEGORIZED:
            return None
        scheme = self.schemes.get(category)
        if scheme is None:
            raise NotDefinedError(f"{category.name} is not defined for {self.name}")
        return scheme.build(parties)


def default_data_dir() -> Path:
    return Path(os.environ.get(DATA_DIR_ENV, "data"))


def _root(data_dir: Union[str, Path, None]) -> Path:
    return Path(data_dir) if data_dir is not None else default_data_dir()


def aus_2016(data_dir=None) -> ElectionResource:
    root = _root(data_dir) / "2016"
    return ElectionResource(
        name="Australia 2016",
        data_location=root / "data",
        reader_factory=partial(AusSenate2016Reader, root / "aec-senate-candidateinformation-20499.csv"),
        party_order_file=root / "2016PartyOrder.txt",
        alias_file=root / "2016Aliases.txt",
        schemes={
            Categories.SIZE_BASED: _scheme(SIZE_BASED_NAMES, [
                (6, 26),
                (18, 24, 25, 27, 32, 36, 49),
                (0, 1, 2, 3, 4, 5, 7, 8, 9, 10, 11, 13, 14, 15, 16, 17, 19, 21, 22, 28,
                 29, 30, 31, 33, 34, 35, 37, 38, 40, 41, 42, 43, 44, 45, 46, 47, 48, 51, 52, 53),
                (12, 20, 23, 39, 50),
            ]),
            Categories.CROSS_ELECTION: _scheme(
                CROSS_ELECTION_NAMES,
                _singles(0, 3, 15, 6, 32, 17, 24, 28, 26, 27, 36, 43, 44, 45, 46, 47, 49, 35),
                "Other",
            ),
            Categories.ALL_AUSTRALIA: _scheme(
                ALL_AUSTRALIA_NAMES,
                _singles(0, 3, 19, 15, 4, 6, 32, 13, 17, 24, 28, 26, 27, 36, 43, 44, 45, 46, 47, 49, 35, 52),
                "Other",
            ),
        },
    )


def aus_2019(data_dir=None) -> ElectionResource:
    root = _root(data_dir) / "2019"
    return ElectionResource(
        name="Australia 2019",
        data_location=root / "data",
        reader_factory=partial(AusSenateWideReader, year=2019),
        party_order_file=root / "2019PartyOrder.txt",
        alias_file=root / "2019Aliases.txt",
        schemes={
            Categories.SIZE_BASED: _scheme(SIZE_BASED_NAMES, [
                (6, 24),
                (9, 21, 22, 25, 27, 40, 45),
                (0, 1, 2, 3, 4, 5, 7, 8, 10, 11, 12, 13, 14, 15, 16, 17, 18, 20,
                 23, 26, 28, 30, 31, 32, 33, 34, 35, 36, 37, 38, 39, 41, 42, 43, 44, 46, 47, 48),
                (19, 29),
            ]),
            Categories.CROSS_ELECTION: _scheme(
                CROSS_ELECTION_NAMES,
                _singles(1, 3, 5, 6, 9, 14, 21, 17, 24, 25, 27, 34, 35, 36, 37, 38, 40, 45),
                "Other",
            ),
            Categories.ALL_AUSTRALIA: _scheme(ALL_AUSTRALIA_NAMES, [
                (1,), (3,), (4,), (5,), (), (6,), (9,), (10,), (14,), (21,), (17,),
                (24,), (25,), (27,), (34,), (35,), (36,), (37,), (38,), (40,), (45,), (),
            ], "Other"),
        },
    )


def aus_2022(data_dir=None) -> ElectionResource:
    root = _root(data_dir) / "2022"
    return ElectionResource(
        name="Australia 2022",
        data_location=root / "data",
        reader_factory=partial(AusSenateWideReader, year=2022),
        party_order_file=root / "PartyOrder.txt",
        alias_file=root / "AliasList.txt",
        alias_delimiter="\t",
        schemes={
            Categories.SIZE_BASED: _scheme(SIZE_BASED_NAMES, [
                (5, 24),
                (10, 20, 29, 40, 43),
                (1, 2, 3, 4, 6, 7, 9, 11, 12, 14, 15, 18, 19, 22, 23, 25, 31, 32, 33,
                 34, 35, 36, 37, 39, 41, 42, 44, 45),
                (0, 8, 13, 16, 17, 21, 26, 27, 28, 30, 38),
            ]),
            Categories.CROSS_ELECTION: _scheme(
                CROSS_ELECTION_NAMES,
                _singles(1, 2, 3, 5, 27, 11, 20, 23, 24, 25, 29, 33, 34, 35, 36, 37, 40, 43),
                "Other",
            ),
            Categories.ALL_AUSTRALIA: _scheme(ALL_AUSTRALIA_NAMES, [
                (1,), (2,), (), (3,), (4,), (5,), (27,), (), (11,), (20,), (23,),
                (24,), (25,), (29,), (33,), (34,), (35,), (36,), (37,), (40,), (43,), (),
            ], "Other"),
        },
    )


def nsw_2015(data_dir=None) -> ElectionResource:
    root = _root(data_dir) / "NSW2015"
    return ElectionResource(
        name="New South Wales 2015",
        data_location=root / "SGE2015 LC Pref Data_NA_State.txt",
        reader_factory=partial(NSWPreferenceReader, root / "SGE2015 LC Candidates v1.csv"),
        party_order_file=root / "PartyOrder.txt",
        alias_file=root / "AliasList.csv",
        min_below=15,
        force_formal=True,
        schemes={
            Categories.CROSS_ELECTION: _scheme(
                NSW_CROSS_ELECTION_NAMES, _singles(0, 5, 11, 12, 17, 18, 21, 23), "OTHER"
            ),
            Categories.ALL_AUSTRALIA: _scheme(ALL_AUSTRALIA_NAMES, [
                (0,), (), (), (2,), (6,), (11,), (), (5,), (), (), (), (12,),
                (), (), (), (17,), (18,), (), (), (21,), (), (23,),
            ], "Other"),
        },
    )


def nsw_2019(data_dir=None) -> ElectionResource:
    root = _root(data_dir) / "NSW2019"
    return ElectionResource(
        name="New South Wales 2019",
        data_location=root / "SGE2019 LC Pref Data_NA_State.txt",
        reader_factory=partial(
            NSWPreferenceReader,
            root / "2019 NSW LC Candidate Information.txt",
            candidates_sep="\t",
        ),
        party_order_file=root / "NSW2019PartyOrder.txt",
        alias_file=root / "NSW2019AliasList.txt",
        min_below=15,
        force_formal=True,
        schemes={
            Categories.CROSS_ELECTION: _scheme(
                NSW_CROSS_ELECTION_NAMES, _singles(1, 3, 10, 11, 15, 16, 18, 20), "OTHER"
            ),
            Categories.ALL_AUSTRALIA: _scheme(ALL_AUSTRALIA_NAMES, [
                (1,), (), (2,), (), (), (10,), (), (3,), (), (), (), (11,),
                (12,), (13,), (), (15,), (16,), (), (17,), (18,), (), (20,),
            ], "Other"),
        },
    )


def nyc_2021(data_dir=None, race: Race = Race.MAYORAL_DEM) -> ElectionResource:
    root = _root(data_dir) / "NYC2021"
    ids_file = root / "2021P_CandidacyID_To_Name.csv"
    candidates_file = root / race.candidate_file
    return ElectionResource(
        name=f"New York City 2021 - {race.title}",
        data_location=root / "dataNYC",
        reader_factory=partial(_nyc_reader, candidates_file, ids_file, race=race),
        party_order_file=candidates_file,
        alias_file=ids_file,
        min_above=1,
        min_below=1,
    )


def _nyc_reader(candidates_file, ids_file, data_file, race: Race) -> NYCPrimaryReader:
    return NYCPrimaryReader(candidates_file, ids_file, data_file, str(race))


ELECTIONS: Dict[str, Callable[..., ElectionResource]] = {
    "aus2016": aus_2016,
    "aus2019": aus_2019,
    "aus2022": aus_2022,
    "nsw2015": nsw_2015,
    "nsw2019": nsw_2019,
    "nyc2021-mayor": partial(nyc_2021, race=Race.MAYORAL_DEM),
    "nyc2021-comptroller": partial(nyc_2021, race=Race.COMPTROLLER_DEM),
}


def get_election(key: str, data_dir=None) -> ElectionResource:
    """Look up an election by its command-line key."""
    try:
        factory = ELECTIONS[key]
    except KeyError:
        raise ValueError(f"Unknown election {key!r}; choose from {', '.join(ELECTIONS)}") from None
    return factory(data_dir)
