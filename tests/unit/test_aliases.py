"""
Alias resolver unit tests.
"""

import logging

import pytest

from data.aliases import AliasResolver


@pytest.fixture
def alias_file(tmp_path):
    path = tmp_path / "AliasList.txt"
    path.write_text(
        "\ufeffA:Liberal\tLiberal\n"
        "Liberal National\tLiberal\n"
        "The Greens (WA)\tThe Greens\n"
        "not an alias line\n"
        "\n"
        "Old Name\tFirst\n"
        "Old Name\tSecond\n",
        encoding="utf-8",
    )
    return path


@pytest.mark.unit
class TestAliasResolver:
    def test_from_file_reads_pairs(self, alias_file):
        resolver = AliasResolver.from_file(alias_file, delimiter="\t")
        assert resolver.resolve("A:Liberal") == "Liberal"
        assert resolver.resolve("The Greens (WA)") == "The Greens"

    def test_byte_order_mark_is_stripped(self, alias_file):
        resolver = AliasResolver.from_file(alias_file, delimiter="\t")
        assert "A:Liberal" in resolver

    def test_short_lines_skipped(self, alias_file):
        resolver = AliasResolver.from_file(alias_file, delimiter="\t")
        assert "not an alias line" not in resolver
        assert len(resolver) == 4

    def test_duplicate_alias_last_write_wins(self, alias_file, caplog):
        with caplog.at_level(logging.DEBUG, logger="data.aliases"):
            resolver = AliasResolver.from_file(alias_file, delimiter="\t")
        assert resolver.resolve("Old Name") == "Second"
        assert "redefined" in caplog.text

    def test_quoted_field_keeps_embedded_delimiter(self, tmp_path):
        path = tmp_path / "Aliases.txt"
        path.write_text('"Liberal, National Coalition",Liberal\nLNP,Liberal\n', encoding="utf-8")
        resolver = AliasResolver.from_file(path, delimiter=",")
        assert resolver.resolve("Liberal, National Coalition") == "Liberal"
        assert resolver.resolve("LNP") == "Liberal"
        assert '"Liberal' not in resolver
        assert len(resolver) == 2

    def test_empty_file_gives_empty_table(self, tmp_path):
        path = tmp_path / "Aliases.txt"
        path.write_text("", encoding="utf-8")
        resolver = AliasResolver.from_file(path, canonical=["A"])
        assert len(resolver) == 1
        assert resolver.resolve("A") == "A"

    def test_canonical_names_resolve_to_themselves(self):
        resolver = AliasResolver({"Party A": "A"}, canonical=["A", "B"])
        assert resolver.resolve("A") == "A"
        assert resolver.resolve("B") == "B"
        assert resolver.resolve("Party A") == "A"

    def test_canonical_does_not_override_file_entry(self):
        resolver = AliasResolver({"A": "Alpha"}, canonical=["A"])
        assert resolver.resolve("A") == "Alpha"

    def test_miss_and_none(self):
        resolver = AliasResolver({"Party A": "A"})
        assert resolver.resolve("Unknown") is None
        assert resolver.resolve(None) is None

    def test_missing_file_raises(self, tmp_path):
        with pytest.raises(OSError):
            AliasResolver.from_file(tmp_path / "missing.txt")

    def test_aliases_of(self):
        resolver = AliasResolver({"Party A": "A", "A party": "A", "Party B": "B"}, canonical=["A"])
        assert resolver.aliases_of("A") == ["A", "A party", "Party A"]


@pytest.mark.unit
class TestNamesEqual:
    def setup_method(self):
        self.resolver = AliasResolver({"Party A": "A", "A Party": "A"}, canonical=["A", "B"])

    def test_identical_names(self):
        assert self.resolver.names_equal("Anything", "Anything")

    def test_alias_and_canonical_both_orders(self):
        assert self.resolver.names_equal("Party A", "A")
        assert self.resolver.names_equal("A", "Party A")

    def test_two_aliases_of_same_party(self):
        assert self.resolver.names_equal("Party A", "A Party")

    def test_different_parties(self):
        assert not self.resolver.names_equal("Party A", "B")

    def test_unresolvable_names_are_not_equal(self):
        assert not self.resolver.names_equal("X", "Y")
        assert not self.resolver.names_equal(None, "A")
