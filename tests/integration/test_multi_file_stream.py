"""
Integration tests: streams spanning several data files, and an election read
end to end from files in the AEC 2019 layout.
"""

import logging
import sys
from pathlib import Path

import pandas as pd
import pytest

from analysis import SecondPreferenceMatrix, SpectraMaker
from data.categories import Categories
from data.database import ResultsDatabase
from data.elections import aus_2019
from data.sources import SourceFormatError
from data.stream import BallotStream


@pytest.fixture
def two_state_election(make_election):
    sources = {
        "1-ACT.csv": {
            "parties": ["Party A", "Party B"],
            "ballots": [["1", "2"], ["2", "1"]],
        },
        "2-NT.csv": SourceFormatError("header has no group columns"),
        "3-TAS.csv": {
            "parties": ["Party C", "Party B", "Party A"],
            "ballots": [["1", None, "2"], [None, None, None], ["3", "2", "1"]],
        },
    }
    aliases = {"Party A": "A", "Party B": "B", "Party C": "C"}
    return make_election(sources, ["A", "B", "C"], aliases)


@pytest.mark.integration
class TestMultiFileStream:
    def test_ballots_continue_across_files(self, two_state_election, caplog):
        with caplog.at_level(logging.WARNING, logger="data.stream"):
            with BallotStream(two_state_election) as stream:
                seen = []
                counts = []
                while stream.next_ballot():
                    seen.append((Path(stream.file_name).name, stream.primary_choice()))
                    counts.append(stream.ballots_processed)

        assert seen == [
            ("1-ACT.csv", "A"),
            ("1-ACT.csv", "B"),
            ("3-TAS.csv", "C"),
            ("3-TAS.csv", "** THIS BALLOT IS INFORMAL **"),
            ("3-TAS.csv", "A"),
        ]
        assert counts == [1, 2, 3, 4, 5]
        assert "2-NT.csv" in caplog.text

    def test_who_runs_changes_with_file(self, two_state_election):
        with BallotStream(two_state_election) as stream:
            stream.next_ballot()
            assert not stream.party_runs_in_current_file("C")
            stream.next_ballot()
            stream.next_ballot()
            assert stream.party_runs_in_current_file("C")

    def test_ballot_resized_per_file(self, two_state_election):
        with BallotStream(two_state_election) as stream:
            stream.next_ballot()
            assert len(stream.current_ballot.above) == 2
            stream.next_ballot()
            stream.next_ballot()
            assert len(stream.current_ballot.above) == 3

    def test_spectrum_only_counts_files_where_both_bounds_run(self, two_state_election):
        with BallotStream(two_state_election) as stream:
            maker = SpectraMaker(stream)
            maker.add_party_pair(1, 2)
            maker.move_data_into_spectra()

        a, b, c = maker.spectra[0].parties
        # Only the TAS file has both B and C.
        assert a.total_votes == 1
        assert b.total_votes == 0
        assert c.total_votes == 1
        assert a.upper_preferred == 0 and a.lower_preferred == 1

    def test_matrix_then_restart(self, two_state_election):
        with BallotStream(two_state_election) as stream:
            matrix = SecondPreferenceMatrix(stream).make()
            stream.restart()
            assert sum(1 for _ in stream) == 5
        assert matrix.count("A", "B") == 2
        assert matrix.count("B", "A") == 1
        assert matrix.count("C", "A") == 1


@pytest.fixture
def aus_2019_root(tmp_path):
    root = tmp_path / "2019"
    data = root / "data"
    data.mkdir(parents=True)
    header = (
        "State,Division,Vote Collection Point Name,Vote Collection Point ID,Batch No,Paper No,"
        "A:Liberal,B:The Greens,C:,"
        "A:SMITH John,A:JONES Ann,B:BROWN Bob,B:GREEN Kim,C:LONE Wolf,C:GREY Sam\n"
    )
    (data / "aec-senate-formalpreferences-24310-ACT.csv").write_text(
        header
        + "ACT,Canberra,PPVC,1,1,1,1,2,,,,,,,\n"
        + "ACT,Canberra,PPVC,1,1,2,,,,2,3,1,6,4,5\n"
        + "ACT,Canberra,PPVC,1,1,3,,,,1,,,,,\n",
        encoding="utf-8",
    )
    (data / "aec-senate-formalpreferences-24310-TAS.csv").write_text(
        header + "TAS,Bass,PPVC,1,1,1,2,1,3,,,,,,\n",
        encoding="utf-8",
    )
    (root / "2019PartyOrder.txt").write_text("Liberal\nThe Greens\nGroup C\n", encoding="utf-8")
    (root / "2019Aliases.txt").write_text(
        "A:Liberal,Liberal\nB:The Greens,The Greens\nC,Group C\nC:,Group C\n",
        encoding="utf-8",
    )
    return tmp_path


@pytest.mark.integration
class TestAus2019EndToEnd:
    def test_stream_over_real_layout(self, aus_2019_root):
        with BallotStream(aus_2019(aus_2019_root)) as stream:
            results = [(stream.primary_choice(), stream.secondary_choice()) for _ in stream]

        assert results == [
            ("Liberal", "The Greens"),
            ("The Greens", "Liberal"),
            ("** THIS BALLOT IS INFORMAL **", "** THIS BALLOT EXPRESSES NO SECOND CHOICE **"),
            ("The Greens", "Liberal"),
        ]

    def test_btl_ballot_maps_candidates_to_parties(self, aus_2019_root):
        with BallotStream(aus_2019(aus_2019_root)) as stream:
            stream.next_ballot()
            stream.next_ballot()
            assert stream.snapshot().below[:5] == ("The Greens", "Liberal", "Liberal", "Group C", "Group C")

    def test_scheme_for_other_party_list_is_rejected(self, aus_2019_root):
        from data.categories import MissingPartyError

        with BallotStream(aus_2019(aus_2019_root)) as stream:
            with pytest.raises(MissingPartyError):
                stream.predefined_categorization(Categories.SIZE_BASED)
            assert not stream.categories_active


@pytest.mark.integration
def test_run_analysis_script(aus_2019_root, tmp_path, monkeypatch):
    """The analysis script stores and exports its tables."""
    scripts = str(Path(__file__).parent.parent.parent / "scripts")
    sys.path.insert(0, scripts)
    try:
        import run_analysis
    finally:
        sys.path.remove(scripts)

    db_path = tmp_path / "results.duckdb"
    export = tmp_path / "export"
    monkeypatch.setattr(
        sys,
        "argv",
        [
            "run_analysis.py",
            "aus2019",
            "--data-dir",
            str(aus_2019_root),
            "--matrix",
            "--spectra",
            "--db",
            str(db_path),
            "--export",
            str(export),
        ],
    )
    run_analysis.main()

    with ResultsDatabase(db_path, read_only=True) as db:
        assert set(db.tables()) == {"second_preferences", "spectra", "spectra_summary"}
        matrix = db.query("SELECT * FROM second_preferences")
    assert list(matrix["primary"]) == ["Liberal", "The Greens", "Group C"]

    spectra = pd.read_csv(export / "spectra.csv")
    assert set(spectra["lower_bound"]) == {"Liberal", "The Greens"}


@pytest.mark.integration
def test_run_analysis_script_continues_uncategorized(aus_2019_root, tmp_path, monkeypatch, caplog):
    """A categorization the election does not define leaves the run uncategorized."""
    scripts = str(Path(__file__).parent.parent.parent / "scripts")
    sys.path.insert(0, scripts)
    try:
        import run_analysis
    finally:
        sys.path.remove(scripts)

    db_path = tmp_path / "uncategorized.duckdb"
    monkeypatch.setattr(
        sys,
        "argv",
        [
            "run_analysis.py",
            "aus2019",
            "--data-dir",
            str(aus_2019_root),
            "--categories",
            "cross-election",
            "--db",
            str(db_path),
        ],
    )
    with caplog.at_level(logging.WARNING):
        run_analysis.main()

    assert "Continuing with uncategorized election" in caplog.text
    with ResultsDatabase(db_path, read_only=True) as db:
        matrix = db.query("SELECT * FROM second_preferences")
    assert list(matrix["primary"]) == ["Liberal", "The Greens", "Group C"]


@pytest.mark.integration
def test_run_analysis_script_exits_on_error(tmp_path, monkeypatch):
    scripts = str(Path(__file__).parent.parent.parent / "scripts")
    sys.path.insert(0, scripts)
    try:
        import run_analysis
    finally:
        sys.path.remove(scripts)

    # No party order file under this data directory.
    monkeypatch.setattr(sys, "argv", ["run_analysis.py", "aus2019", "--data-dir", str(tmp_path)])
    with pytest.raises(SystemExit) as exc:
        run_analysis.main()
    assert exc.value.code == 1
