"""
Fuzzy entity matcher.

Resolves a free-text team name from the source-side tables to a canonical
SofaScore catalog entry. Strategies run in a fixed cascade and the first hit
wins; no hit returns None, which callers treat as "skip".

  1. exact        case-insensitive display-name equality
  2. normalized   equality after ``normalize_name``
  3. containment  either normalized name contains the other; the contained
                  name must be at least 4 characters
  4. alias        curated variants, by normalized equality or containment
  5. token        overlap of tokens >= 4 chars covering half the smaller set

Names with a curated alias entry skip step 3 and resolve through their variants.
"""
from __future__ import annotations

from collections.abc import Mapping
from typing import Iterable, Iterator, Optional, Sequence, TypeVar

from shared.models.domain import CatalogEntry, PlayerBasicInfo
from shared.models.enums import MatchStrategy
from shared.utils.logging import get_logger
from shared.utils.metrics import MATCHER_RESULTS

from matching.aliases import TEAM_NAME_ALIASES, AliasTable
from matching.normalize import normalize_name, normalize_person_name, significant_tokens

logger = get_logger(__name__)

CONTAINMENT_MIN_LENGTH = 4
TOKEN_MIN_LENGTH = 4
TOKEN_OVERLAP_RATIO = 0.5
LAST_NAME_MIN_LENGTH = 3

P = TypeVar("P", bound=PlayerBasicInfo)


class TeamCatalog(Mapping[str, CatalogEntry]):
    """
    Read-only catalog keyed by display name, iterated in discovery order.

    A later entry with the same display name replaces the earlier one.
    """

    def __init__(self, entries: Iterable[CatalogEntry] = ()) -> None:
        self._entries: dict[str, CatalogEntry] = {}
        for entry in entries:
            self._entries[entry.name] = entry
        self._normalized = {name: normalize_name(name) for name in self._entries}

    def __getitem__(self, name: str) -> CatalogEntry:
        return self._entries[name]

    def __iter__(self) -> Iterator[str]:
        return iter(self._entries)

    def __len__(self) -> int:
        return len(self._entries)

    def normalized_items(self) -> Iterator[tuple[str, CatalogEntry]]:
        """(normalized display name, entry) pairs in discovery order."""
        for name, entry in self._entries.items():
            yield self._normalized[name], entry

    def __repr__(self) -> str:
        return f"TeamCatalog({len(self)} entries)"


def _contains_either(a: str, b: str) -> bool:
    return a in b or b in a


def _contained_length(a: str, b: str) -> int:
    return min(len(a), len(b))


def match_with_strategy(
    query_name: str,
    catalog: TeamCatalog,
    aliases: AliasTable = TEAM_NAME_ALIASES,
) -> tuple[Optional[CatalogEntry], Optional[MatchStrategy]]:
    """Run the cascade; return the entry and the strategy that found it."""
    target = normalize_name(query_name)
    folded = query_name.casefold()

    # 1. Exact (case-insensitive)
    for name, entry in catalog.items():
        if name.casefold() == folded:
            return entry, MatchStrategy.EXACT

    # 2. Normalized exact
    for normalized, entry in catalog.normalized_items():
        if normalized == target:
            return entry, MatchStrategy.NORMALIZED

    variants = aliases.get(query_name, ())

    # 3. Containment, gated on the contained name's length
    if not variants and target:
        for normalized, entry in catalog.normalized_items():
            if not normalized:
                continue
            if (
                _contains_either(normalized, target)
                and _contained_length(normalized, target) >= CONTAINMENT_MIN_LENGTH
            ):
                return entry, MatchStrategy.CONTAINMENT

    # 4. Alias table
    for variant in variants:
        normalized_variant = normalize_name(variant)
        if not normalized_variant:
            continue
        for normalized, entry in catalog.normalized_items():
            if normalized and _contains_either(normalized, normalized_variant):
                return entry, MatchStrategy.ALIAS

    # 5. Significant-token overlap
    target_tokens = significant_tokens(target, TOKEN_MIN_LENGTH)
    if target_tokens:
        for normalized, entry in catalog.normalized_items():
            entry_tokens = significant_tokens(normalized, TOKEN_MIN_LENGTH)
            overlap = target_tokens & entry_tokens
            if overlap and len(overlap) >= TOKEN_OVERLAP_RATIO * min(len(target_tokens), len(entry_tokens)):
                return entry, MatchStrategy.TOKEN_OVERLAP

    return None, None


def match(
    query_name: str,
    catalog: TeamCatalog,
    aliases: AliasTable = TEAM_NAME_ALIASES,
) -> Optional[CatalogEntry]:
    """Resolve ``query_name`` to a catalog entry, or None when nothing matches."""
    entry, strategy = match_with_strategy(query_name, catalog, aliases)
    MATCHER_RESULTS.labels(strategy=strategy.value if strategy else "none").inc()
    if entry is None:
        logger.debug("team_unmatched", query=query_name, catalog_size=len(catalog))
    else:
        logger.debug("team_matched", query=query_name, match=entry.name, strategy=strategy.value)
    return entry


def match_player(name: str, candidates: Sequence[P]) -> Optional[P]:
    """
    Resolve a squad member by name among players harvested from a team page.

    Cascade: exact normalized name, containment either way, then last name
    (at least 3 letters).
    """
    target = normalize_person_name(name)
    if not target:
        return None

    normalized = [(normalize_person_name(c.name), c) for c in candidates]

    for candidate_name, candidate in normalized:
        if candidate_name == target:
            return candidate

    for candidate_name, candidate in normalized:
        if candidate_name and _contains_either(candidate_name, target):
            return candidate

    last_name = target.split(" ")[-1]
    if len(last_name) >= LAST_NAME_MIN_LENGTH:
        for candidate_name, candidate in normalized:
            if candidate_name and candidate_name.split(" ")[-1] == last_name:
                return candidate

    return None
