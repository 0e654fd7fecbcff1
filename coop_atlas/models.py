"""
Typed data models for the cooperative dashboard.

Architectural Overview:
=======================
Immutable dataclasses for the point features, the collection that owns them,
boundary overlays, filter predicates and the camera bounds. Collections are
replaced wholesale on refresh and never mutated in place.

Key Interactions:
-----------------
- Input: data_loader.parse_feature_collection() builds FeatureCollection
- Output: to_geojson() methods feed the JSON API
- Navigation: Use VS Code outline (Ctrl+Shift+O) for quick navigation
"""

from dataclasses import dataclass, field, replace
from enum import Enum
from typing import Any, Dict, Iterator, List, Optional, Tuple


# ═══════════════════════════════════════════════════════════════════════════
# 🏷️ ENUMS SECTION
# ═══════════════════════════════════════════════════════════════════════════


class FilterDimension(Enum):
    """Categorical filter dimensions shown in the sidebar.

    The value is the logical attribute field (see attributes.FIELD_KEYS).
    """

    COMMUNE = "commune"
    GENRE = "genre"
    SECTOR = "sector"
    EDUCATION = "education"

    @classmethod
    def from_string(cls, s: str) -> "FilterDimension":
        """Convert string to FilterDimension.

        Accepts the enum value ("commune") or the member name ("COMMUNE").

        Raises:
            ValueError: If the string names no dimension
        """
        for member in cls:
            if member.value == s or member.name == s.upper():
                return member
        raise ValueError(f"Unknown filter dimension: {s!r}")


class StoreStatus(Enum):
    """Lifecycle of the primary feature collection."""

    LOADING = "loading"  # First fetch not resolved yet
    READY = "ready"  # A collection has been loaded at least once
    NO_DATA = "no_data"  # First fetch failed, nothing to show


# ═══════════════════════════════════════════════════════════════════════════
# 📍 FEATURE SECTION
# ═══════════════════════════════════════════════════════════════════════════


@dataclass(frozen=True)
class Feature:
    """One cooperative with a stable identifier, geometry and attributes.

    Identity (hash/eq) is the identifier only; geometry and properties are
    raw GeoJSON and are excluded from comparison.
    """

    id: str
    geometry: Optional[Dict[str, Any]] = field(default=None, compare=False)
    properties: Dict[str, Any] = field(default_factory=dict, compare=False)

    @property
    def geometry_type(self) -> Optional[str]:
        if not isinstance(self.geometry, dict):
            return None
        return self.geometry.get("type")

    @property
    def coordinates(self) -> Optional[Tuple[float, float]]:
        """(lon, lat) for valid point geometries, None otherwise."""
        if self.geometry_type != "Point":
            return None
        coords = self.geometry.get("coordinates")
        if not isinstance(coords, (list, tuple)) or len(coords) < 2:
            return None
        try:
            return float(coords[0]), float(coords[1])
        except (TypeError, ValueError):
            return None

    @property
    def is_point(self) -> bool:
        return self.coordinates is not None

    def to_geojson(self) -> Dict[str, Any]:
        """GeoJSON Feature dict with the identifier mirrored in properties."""
        properties = dict(self.properties)
        properties["id"] = self.id
        return {
            "type": "Feature",
            "id": self.id,
            "geometry": self.geometry,
            "properties": properties,
        }


@dataclass(frozen=True)
class FeatureCollection:
    """Ordered, immutable sequence of features.

    revision increases every time the store replaces its collection, which
    lets derived data (filter options) be cached per collection.
    """

    features: Tuple[Feature, ...] = ()
    kind: str = "FeatureCollection"
    revision: int = 0

    def __len__(self) -> int:
        return len(self.features)

    def __iter__(self) -> Iterator[Feature]:
        return iter(self.features)

    def by_id(self, feature_id: Any) -> Optional[Feature]:
        """Resolve a feature by identifier (None if absent)."""
        if feature_id is None:
            return None
        key = str(feature_id)
        for feature in self.features:
            if feature.id == key:
                return feature
        return None

    def to_geojson(self) -> Dict[str, Any]:
        return {
            "type": self.kind,
            "features": [f.to_geojson() for f in self.features],
        }


EMPTY_COLLECTION = FeatureCollection()


@dataclass(frozen=True)
class BoundaryOverlay:
    """Display-only polygon/line geometry (province or commune limits)."""

    name: str
    data: Dict[str, Any] = field(compare=False)
    revision: int = 0

    @property
    def feature_count(self) -> int:
        return len(self.data.get("features", []) or [])


# ═══════════════════════════════════════════════════════════════════════════
# 🔎 FILTER PREDICATES SECTION
# ═══════════════════════════════════════════════════════════════════════════


@dataclass(frozen=True)
class FilterPredicates:
    """Four independent equality constraints; "" means unset."""

    commune: str = ""
    genre: str = ""
    sector: str = ""
    education: str = ""

    @property
    def is_empty(self) -> bool:
        return not any(self.as_dict().values())

    def value_for(self, dimension: FilterDimension) -> str:
        return getattr(self, dimension.value)

    def with_value(self, dimension: FilterDimension, value: Optional[str]) -> "FilterPredicates":
        """Return a copy with one dimension set (None/blank clears it)."""
        return replace(self, **{dimension.value: (value or "").strip()})

    def as_dict(self) -> Dict[str, str]:
        return {d.value: self.value_for(d) for d in FilterDimension}


# ═══════════════════════════════════════════════════════════════════════════
# 🗺️ GEOMETRY HELPERS SECTION
# ═══════════════════════════════════════════════════════════════════════════


@dataclass(frozen=True)
class LatLngBounds:
    """Geographic extent in degrees."""

    south: float
    west: float
    north: float
    east: float

    @classmethod
    def from_total_bounds(cls, total_bounds: Any) -> "LatLngBounds":
        """Build from a (minx, miny, maxx, maxy) sequence in lon/lat order."""
        minx, miny, maxx, maxy = (float(v) for v in total_bounds)
        return cls(south=miny, west=minx, north=maxy, east=maxx)

    def to_leaflet(self) -> List[List[float]]:
        """[[south, west], [north, east]] as expected by Leaflet fitBounds."""
        return [[self.south, self.west], [self.north, self.east]]


@dataclass(frozen=True)
class LayoutContext:
    """Device capability derived once per interaction.

    A missing viewport width is treated as a wide layout.
    """

    viewport_width: Optional[float] = None
    is_compact: bool = False

    @classmethod
    def from_width(cls, width: Optional[float], breakpoint_px: int = 768) -> "LayoutContext":
        if width is None:
            return cls(viewport_width=None, is_compact=False)
        return cls(viewport_width=float(width), is_compact=float(width) < breakpoint_px)


WIDE_LAYOUT = LayoutContext()
