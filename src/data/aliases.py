"""
Alias table: raw party names as written in data files, mapped to the
canonical names used in analysis output.
"""

import logging
from pathlib import Path
from typing import Dict, Iterable, List, Optional, Union

import pandas as pd

logger = logging.getLogger(__name__)


class AliasResolver:
    """
    Maps raw party names to the canonical party they stand for.

    Lookups are exact. Every canonical name maps to itself, so resolving an
    already-canonical name is a no-op.
    """

    def __init__(self, aliases: Optional[Dict[str, str]] = None, canonical: Iterable[str] = ()):
        self._aliases: Dict[str, str] = dict(aliases or {})
        for name in canonical:
            self._aliases.setdefault(name, name)

    @classmethod
    def from_file(
        cls,
        path: Union[str, Path],
        delimiter: str = ",",
        canonical: Iterable[str] = (),
    ) -> "AliasResolver":
        """
        Read a two-column ``alias<delimiter>canonical`` table.

        Fields may be quoted. Lines with fewer than two fields are skipped,
        and a repeated alias overwrites the earlier entry.

        Args:
            path: Alias file location
            delimiter: Field separator (comma or tab depending on the election)
            canonical: Canonical names to register as identity entries

        Returns:
            AliasResolver built from the file
        """
        path = Path(path)
        aliases: Dict[str, str] = {}
        duplicates = 0

        try:
            table = pd.read_csv(
                path,
                sep=delimiter,
                header=None,
                names=["alias", "canonical"],
                usecols=[0, 1],
                dtype=str,
                keep_default_na=False,
                encoding="utf-8-sig",
            )
        except pd.errors.EmptyDataError:
            logger.warning(f"Alias file {path} is empty")
            return cls({}, canonical)
        table = table[table["canonical"].notna() & (table["canonical"] != "")]

        for alias, real in table.itertuples(index=False, name=None):
            if alias in aliases and aliases[alias] != real:
                duplicates += 1
            aliases[alias] = real

        if duplicates:
            logger.debug(f"{duplicates} aliases in {path.name} were redefined, keeping the last")
        logger.info(f"Loaded {len(aliases)} aliases from {path}")
        return cls(aliases, canonical)

    def __len__(self) -> int:
        return len(self._aliases)

    def __contains__(self, name: str) -> bool:
        return name in self._aliases

    def resolve(self, raw: Optional[str]) -> Optional[str]:
        """Canonical name for ``raw``, or None if it is not in the table."""
        if raw is None:
            return None
        return self._aliases.get(raw)

    def names_equal(self, first: Optional[str], second: Optional[str]) -> bool:
        """True if the two names are equal directly or through the alias table."""
        if first is None or second is None:
            return False
        if first == second:
            return True
        first_real = self.resolve(first)
        second_real = self.resolve(second)
        if second == first_real or first == second_real:
            return True
        return first_real is not None and first_real == second_real

    def aliases_of(self, canonical: str) -> List[str]:
        """Every raw name resolving to ``canonical``, including itself if registered."""
        return sorted(raw for raw, real in self._aliases.items() if real == canonical)
