"""
Category overlay: optional grouping of canonical parties into named categories.
"""

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Dict, List, Optional, Sequence, Tuple

logger = logging.getLogger(__name__)


class CategorizationError(Exception):
    """Base class for errors raised while configuring categories."""


class MissingPartyError(CategorizationError):
    """A canonical party is not mapped to any listed category."""


class StreamInProgressError(CategorizationError):
    """Categories cannot change after the stream has processed ballots."""


class NotDefinedError(CategorizationError):
    """The election does not define the requested predefined categorization."""


class Categories(Enum):
    """Predefined categorization schemes."""

    UNCATEGORIZED = ("uncategorized", "Uncategorized")
    ALL_AUSTRALIA = ("all-Australia", "All Australia")
    CROSS_ELECTION = ("cross-election", "Cross-Election")
    SIZE_BASED = ("size-based", "Size-Based")

    def __init__(self, label: str, title: str):
        self.label = label
        self.title = title

    def __str__(self) -> str:
        return self.label

    @classmethod
    def from_label(cls, label: str) -> "Categories":
        for member in cls:
            if label.lower() in (member.label.lower(), member.name.lower()):
                return member
        raise ValueError(f"Unknown categorization: {label}")


def build_categorization(
    parties: Sequence[str],
    categories: Sequence[str],
    members: Sequence[Sequence[int]],
) -> Tuple[List[str], Dict[str, str]]:
    """
    Turn index lists into a category list and party-to-category map.

    Args:
        parties: Canonical party order the indices refer to
        categories: Category names, one per member list
        members: Party indices belonging to each category

    Returns:
        (category list, party -> category mapping)
    """
    if len(categories) != len(members):
        raise MissingPartyError(
            f"{len(categories)} categories given with {len(members)} member lists"
        )

    mapping: Dict[str, str] = {}
    for category, indices in zip(categories, members):
        for index in indices:
            if not 0 <= index < len(parties):
                raise MissingPartyError(
                    f"Category {category!r} refers to party index {index}, "
                    f"but only {len(parties)} parties are known"
                )
            mapping[parties[index]] = category
    return list(categories), mapping


def build_incomplete_categorization(
    parties: Sequence[str],
    categories: Sequence[str],
    members: Sequence[Sequence[int]],
    final_category: str,
) -> Tuple[List[str], Dict[str, str]]:
    """As ``build_categorization``, sending every unlisted party to ``final_category``."""
    category_list, mapping = build_categorization(parties, categories, members)
    category_list.append(final_category)

    listed = {index for indices in members for index in indices}
    for index, party in enumerate(parties):
        if index not in listed:
            mapping[party] = final_category
    return category_list, mapping


@dataclass(frozen=True)
class CategoryScheme:
    """
    Index-based definition of a predefined categorization.

    When ``final_category`` is set the scheme is incomplete and unlisted
    parties fall into it.
    """

    categories: Tuple[str, ...]
    members: Tuple[Tuple[int, ...], ...]
    final_category: Optional[str] = None

    def build(self, parties: Sequence[str]) -> Tuple[List[str], Dict[str, str]]:
        if self.final_category is None:
            return build_categorization(parties, self.categories, self.members)
        return build_incomplete_categorization(
            parties, self.categories, self.members, self.final_category
        )


class CategoryOverlay:
    """
    Validated party-to-category mapping with its primary/secondary toggles.

    Every category label also maps to itself so a category name can be looked
    up the same way as a party name.
    """

    def __init__(
        self,
        parties: Sequence[str],
        categories: Sequence[str],
        mapping: Dict[str, str],
        use_primary: bool = True,
        use_secondary: bool = True,
    ):
        category_set = set(categories)
        for party in parties:
            if party not in mapping or mapping[party] not in category_set:
                raise MissingPartyError(
                    f"Party {party!r} is not mapped to one of the categories "
                    f"(mapped to {mapping.get(party)!r})"
                )

        self.categories: List[str] = list(categories)
        self.use_primary = use_primary
        self.use_secondary = use_secondary
        self._party_mapping: Dict[str, str] = dict(mapping)
        self._mapping: Dict[str, str] = dict(mapping)
        for category in self.categories:
            self._mapping[category] = category

    def __len__(self) -> int:
        return len(self.categories)

    def category_of(self, name: Optional[str]) -> Optional[str]:
        if name is None:
            return None
        return self._mapping.get(name)

    def members(self, category: str) -> List[str]:
        return [party for party, mapped in self._party_mapping.items() if mapped == category]

    def index_of(self, category: str) -> int:
        label = self.category_of(category)
        return self.categories.index(label) if label in self.categories else -1
