"""
Shared pytest configuration and fixtures for the ranked affinity analyzer.

Provides an in-memory source adapter, a builder for small elections backed by
files under ``tmp_path``, and a temporary results database.
"""

import sys
from pathlib import Path

import pytest

# Add src to path for imports
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from data.database import ResultsDatabase  # noqa: E402
from data.elections import ElectionResource  # noqa: E402


class FakeSource:
    """In-memory source adapter serving a fixed list of raw ballots."""

    def __init__(
        self,
        file_name,
        parties,
        candidates=(),
        ballots=(),
        candidate_parties=None,
        stop_on_collision=True,
        parties_unaltered=None,
        secondary=None,
    ):
        self.file_name = str(file_name)
        self.parties = list(parties)
        self.parties_unaltered = list(parties_unaltered) if parties_unaltered is not None else list(parties)
        self.candidates = list(candidates)
        self._candidate_parties = dict(candidate_parties or {})
        if secondary is None:
            secondary = list(dict.fromkeys(self.parties + list(self._candidate_parties.values())))
        self.parties_including_secondary = list(secondary)
        self.stop_on_collision = stop_on_collision
        self._ballots = [list(ballot) for ballot in ballots]
        self.closed = False

    def party_of(self, candidate):
        return self._candidate_parties.get(candidate)

    def has_more_raw_ballots(self):
        return bool(self._ballots)

    def next_raw_ballot(self):
        return self._ballots.pop(0)

    def close(self):
        self.closed = True


@pytest.fixture
def make_election(tmp_path):
    """
    Build an ElectionResource whose data files are served by FakeSource.

    ``sources`` maps a data file name to FakeSource keyword arguments, or to
    an exception instance raised when that file is opened. Files are read in
    sorted name order.
    """

    def _make(
        sources,
        parties,
        aliases=None,
        min_above=1,
        min_below=6,
        force_formal=False,
        schemes=None,
        name="Test Election",
    ):
        data_dir = tmp_path / "data"
        data_dir.mkdir(exist_ok=True)
        for file_name in sources:
            (data_dir / file_name).write_text("placeholder\n")

        order_file = tmp_path / "PartyOrder.txt"
        order_file.write_text("\n".join(parties) + "\n")
        alias_file = tmp_path / "Aliases.txt"
        alias_file.write_text("".join(f"{raw},{real}\n" for raw, real in (aliases or {}).items()))

        def reader_factory(path):
            source_args = sources[Path(path).name]
            if isinstance(source_args, Exception):
                raise source_args
            return FakeSource(path, **source_args)

        return ElectionResource(
            name=name,
            data_location=data_dir,
            reader_factory=reader_factory,
            party_order_file=order_file,
            alias_file=alias_file,
            min_above=min_above,
            min_below=min_below,
            force_formal=force_formal,
            schemes=schemes or {},
        )

    return _make


@pytest.fixture
def abc_sources():
    """One file, three parties under raw names, five ballots, and the alias table."""
    sources = {
        "votes-TAS.csv": {
            "parties": ["Party A", "Party B", "Party C"],
            "candidates": ["a1", "b1", "c1"],
            "candidate_parties": {"a1": "Party A", "b1": "Party B", "c1": "Party C"},
            "ballots": [
                ["1", "2", None, None, None, None],
                ["2", "1", "3", None, None, None],
                [None, None, None, None, None, None],
                ["1", "1", None, None, None, None],
                [None, None, None, "3", "1", "2"],
            ],
        }
    }
    aliases = {"Party A": "A", "Party B": "B", "Party C": "C"}
    return sources, aliases


@pytest.fixture
def temp_db():
    """Provide a temporary in-memory results database."""
    db = ResultsDatabase()
    yield db
    db.close()


@pytest.fixture
def temp_db_file(tmp_path):
    """Path for a results database file that does not exist yet."""
    return tmp_path / "results.duckdb"


def pytest_configure(config):
    """Configure pytest with custom markers."""
    config.addinivalue_line(
        "markers", "unit: marks tests as unit tests (fast, no external dependencies)"
    )
    config.addinivalue_line(
        "markers",
        "integration: marks tests as integration tests (several components or files)",
    )
    config.addinivalue_line(
        "markers", "invariant: marks tests as ballot invariant validation"
    )
    config.addinivalue_line(
        "markers", "smoke: marks tests as smoke tests (basic functionality check)"
    )
