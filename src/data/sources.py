"""
Contract between the preference stream and the per-election file readers.

A reader opens one data file and exposes:

- ``parties``: above-the-line positions in ballot order (raw names)
- ``candidates``: below-the-line positions in ballot order
- ``parties_including_secondary``: every party name appearing in the file,
  used to work out which canonical parties contest it
- ``party_of(candidate)``: raw party name for a candidate
- ``next_raw_ballot()``: one token per position, ATL positions first. A token
  is None (blank), a 1-based rank string, or a tuple of rank strings when one
  position was ranked more than once.
"""

from typing import (
    Callable,
    Generic,
    Iterator,
    List,
    Optional,
    Protocol,
    Sequence,
    Tuple,
    TypeVar,
    Union,
)

RankToken = Union[None, str, Tuple[str, ...]]
RawBallot = List[RankToken]

T = TypeVar("T")

BOM = "\ufeff"


class SourceFormatError(ValueError):
    """Raised when a data file does not have the layout its reader expects."""


class SourceAdapter(Protocol):
    file_name: str
    parties: List[str]
    candidates: List[str]
    parties_including_secondary: List[str]
    parties_unaltered: List[str]
    stop_on_collision: bool

    def party_of(self, candidate: str) -> Optional[str]:
        ...

    def has_more_raw_ballots(self) -> bool:
        ...

    def next_raw_ballot(self) -> RawBallot:
        ...

    def close(self) -> None:
        ...


SourceFactory = Callable[[str], SourceAdapter]


class Lookahead(Generic[T]):
    """
    One-item lookahead over an iterator.

    Readers that can only tell whether another ballot exists by reading it
    (for example when rows must be grouped or informal ballots skipped) keep
    the next item here until it is requested.
    """

    _EMPTY = object()

    def __init__(self, items: Iterator[T]):
        self._items = items
        self._pending = self._EMPTY

    def has_next(self) -> bool:
        if self._pending is self._EMPTY:
            self._pending = next(self._items, self._EMPTY)
        return self._pending is not self._EMPTY

    def next(self) -> T:
        if not self.has_next():
            raise StopIteration
        item, self._pending = self._pending, self._EMPTY
        return item


def strip_bom(token: str) -> str:
    return token[1:] if token.startswith(BOM) else token


def blank_to_none(value: Optional[str]) -> Optional[str]:
    if value is None:
        return None
    value = value.strip()
    return value or None


def require_columns(header: Sequence[str], columns: Sequence[str], file_name: str):
    missing = [c for c in columns if c not in header]
    if missing:
        raise SourceFormatError(f"{file_name} is missing columns: {', '.join(missing)}")
