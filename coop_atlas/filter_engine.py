#!/usr/bin/env python3
"""
Cooperative Atlas - Filter & Search Engine

ARCHITECTURAL OVERVIEW:
=======================
Responsibility: Pure functions deriving the visible, ordered view of the
feature collection from a free-text query and four categorical predicates.

Key Features:
1. Case-insensitive substring search over the display name (legacy key fallback)
2. Exact-match categorical predicates, combined with logical AND
3. Accent-aware ordering by display name (stable for ties)
4. Filter option sets drawn from the UNFILTERED collection
5. Autocomplete suggestions that ignore the categorical filters

Nothing here holds state; every function is safe to call on every keystroke.

For Navigation: Use VS Code outline (Ctrl+Shift+O)
"""

import unicodedata
from dataclasses import dataclass
from typing import Any, Dict, Iterable, List, Optional, Sequence, Tuple

from coop_atlas.attributes import display_name, genre_option_label, read_count, read_text
from coop_atlas.models import Feature, FilterDimension, FilterPredicates

# ═══════════════════════════════════════════════════════════════════════════
# 🔤 TEXT NORMALIZATION
# ═══════════════════════════════════════════════════════════════════════════


def normalize_query(query: Optional[str]) -> str:
    """Trim and lower-case a query (casefold handles ß, ligatures, etc.)."""
    return (query or "").strip().casefold()


def collation_key(text: Optional[str]) -> Tuple[str, str]:
    """Sort key approximating French locale collation.

    Primary: base letters without diacritics, case-insensitive.
    Secondary: decomposed form, so "Ecologie" sorts before "Écologie".
    Names equal up to case compare equal and keep their input order.
    """
    decomposed = unicodedata.normalize("NFD", (text or "").casefold())
    base = "".join(ch for ch in decomposed if not unicodedata.combining(ch))
    return base, decomposed


def sort_features(features: Iterable[Feature]) -> List[Feature]:
    """Order by display name; sorted() is stable so ties keep input order."""
    return sorted(features, key=lambda f: collation_key(display_name(f)))


# ═══════════════════════════════════════════════════════════════════════════
# 🔎 PREDICATES
# ═══════════════════════════════════════════════════════════════════════════


def matches_query(feature: Feature, normalized_query: str) -> bool:
    """Substring match of an already-normalized query on the display name
    or the responsible person's name.

    Each field resolves through its candidate keys (current field, then the
    legacy one); a feature with neither never matches a non-empty query.
    """
    if not normalized_query:
        return True
    for text in (display_name(feature), read_text(feature.properties, "manager")):
        if text and normalized_query in text.casefold():
            return True
    return False


def matches_predicates(feature: Feature, predicates: FilterPredicates) -> bool:
    """Every non-empty predicate must equal the attribute exactly."""
    for dimension in FilterDimension:
        expected = predicates.value_for(dimension)
        if expected and read_text(feature.properties, dimension.value) != expected:
            return False
    return True


def filter_and_sort(
    features: Iterable[Feature],
    query: Optional[str] = "",
    predicates: Optional[FilterPredicates] = None,
) -> List[Feature]:
    """
    Derive the visible view of a collection.

    Args:
        features: Collection (or any iterable of features)
        query: Free-text query; trimmed and case-folded before comparison
        predicates: Categorical constraints (None = no constraint)

    Returns:
        New list of matching features ordered by display name.
        Empty when nothing matches.
    """
    predicates = predicates or FilterPredicates()
    q = normalize_query(query)
    matched = [
        f for f in features if matches_query(f, q) and matches_predicates(f, predicates)
    ]
    return sort_features(matched)


# ═══════════════════════════════════════════════════════════════════════════
# 📋 FILTER OPTIONS
# ═══════════════════════════════════════════════════════════════════════════


@dataclass(frozen=True)
class FilterOptions:
    """Distinct values per categorical dimension (full dataset)."""

    communes: Tuple[str, ...] = ()
    genres: Tuple[str, ...] = ()
    sectors: Tuple[str, ...] = ()
    education_levels: Tuple[str, ...] = ()

    def for_dimension(self, dimension: FilterDimension) -> Tuple[str, ...]:
        return {
            FilterDimension.COMMUNE: self.communes,
            FilterDimension.GENRE: self.genres,
            FilterDimension.SECTOR: self.sectors,
            FilterDimension.EDUCATION: self.education_levels,
        }[dimension]

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for JSON serialization."""
        return {
            "communes": list(self.communes),
            "genres": list(self.genres),
            "secteurs": list(self.sectors),
            "niveaux": list(self.education_levels),
            "genreLabels": {g: genre_option_label(g) for g in self.genres},
        }


def build_filter_options(features: Iterable[Feature]) -> FilterOptions:
    """Collect distinct non-empty values from the unfiltered collection."""
    values: Dict[FilterDimension, set] = {d: set() for d in FilterDimension}
    for feature in features:
        for dimension in FilterDimension:
            value = read_text(feature.properties, dimension.value)
            if value:
                values[dimension].add(value)

    def ordered(dimension: FilterDimension) -> Tuple[str, ...]:
        return tuple(sorted(values[dimension], key=collation_key))

    return FilterOptions(
        communes=ordered(FilterDimension.COMMUNE),
        genres=ordered(FilterDimension.GENRE),
        sectors=ordered(FilterDimension.SECTOR),
        education_levels=ordered(FilterDimension.EDUCATION),
    )


# ═══════════════════════════════════════════════════════════════════════════
# 💡 AUTOCOMPLETE
# ═══════════════════════════════════════════════════════════════════════════


def search_suggestions(
    features: Iterable[Feature],
    query: Optional[str],
    limit: int = 6,
    min_chars: int = 2,
) -> List[Feature]:
    """
    Best matches for the panel search box.

    Searches the entire collection (categorical filters do not apply).
    Features whose name starts with the query rank first, then the other
    matches; each group keeps display-name order.
    """
    q = normalize_query(query)
    if len(q) < min_chars:
        return []
    matched = sort_features(f for f in features if matches_query(f, q))
    prefix = [f for f in matched if display_name(f).casefold().startswith(q)]
    prefix_ids = {f.id for f in prefix}
    rest = [f for f in matched if f.id not in prefix_ids]
    return (prefix + rest)[:limit]


# ═══════════════════════════════════════════════════════════════════════════
# 📊 COLLECTION STATS
# ═══════════════════════════════════════════════════════════════════════════


@dataclass(frozen=True)
class CollectionStats:
    """Headline counters shown next to the map."""

    total: int = 0
    sector_count: int = 0
    commune_count: int = 0
    members: int = 0
    women: int = 0
    youth: int = 0

    def to_dict(self) -> Dict[str, int]:
        """Convert to dictionary for JSON serialization."""
        return {
            "total": self.total,
            "sectorsCount": self.sector_count,
            "communesCount": self.commune_count,
            "members": self.members,
            "women": self.women,
            "youth": self.youth,
        }


def summarize_collection(features: Sequence[Feature]) -> CollectionStats:
    sectors = set()
    communes = set()
    members = women = youth = 0
    for feature in features:
        props = feature.properties
        sector = read_text(props, "sector")
        if sector:
            sectors.add(sector)
        commune = read_text(props, "commune")
        if commune:
            communes.add(commune)
        members += read_count(props, "members")
        women += read_count(props, "women")
        youth += read_count(props, "youth")
    return CollectionStats(
        total=len(features),
        sector_count=len(sectors),
        commune_count=len(communes),
        members=members,
        women=women,
        youth=youth,
    )
