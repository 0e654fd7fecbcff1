#!/usr/bin/env python3
"""
Cooperative Atlas - Data Loader & Feature Store

ARCHITECTURAL OVERVIEW:
=======================
Responsibility: Fetch the cooperative point collection and the two optional
boundary overlays over HTTP, and hold the latest successful copy of each.

Key Features:
1. Three independent GET requests (features required, overlays optional)
2. Partial success is a valid terminal state - a failed overlay stays unset
3. Identifier assignment at load time (unique, stable for the collection)
4. Sequence numbers per resource: a response older than the one already
   applied is discarded instead of overwriting newer data
5. Extent computation with GeoPandas for camera framing

Navigation Guide:
- parse_feature_collection: payload -> immutable FeatureCollection
- FeatureStore: read-only holder consumed by the rest of the app
- RemoteDataLoader: requests-based fetching, refresh_all / refresh_features

For Navigation: Use VS Code outline (Ctrl+Shift+O)
"""

import itertools
import logging
import threading
from concurrent.futures import ThreadPoolExecutor, as_completed
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Callable, Dict, Iterable, List, Optional, Set

import geopandas as gpd
import requests
from shapely.errors import ShapelyError
from shapely.geometry import Point, shape

from coop_atlas.attributes import read_text
from coop_atlas.models import (
    EMPTY_COLLECTION,
    BoundaryOverlay,
    Feature,
    FeatureCollection,
    LatLngBounds,
    StoreStatus,
)
from coop_atlas.viz_config_types import DataSourceConfig

# ═══════════════════════════════════════════════════════════════════════════
# 🔧 CONSTANTS
# ═══════════════════════════════════════════════════════════════════════════

CRS_WGS84 = "EPSG:4326"

FEATURES = "features"
PROVINCE = "province"
COMMUNES = "communes"
OVERLAY_NAMES = (PROVINCE, COMMUNES)

logger = logging.getLogger(__name__)

# ═══════════════════════════════════════════════════════════════════════════
# 📦 FETCH RESULTS
# ═══════════════════════════════════════════════════════════════════════════


@dataclass(frozen=True)
class FetchResult:
    """Outcome of one GET request, applied to the store as it completes."""

    resource: str
    seq: int
    ok: bool
    payload: Optional[Dict[str, Any]] = field(default=None, repr=False)
    error: Optional[str] = None
    fetched_at: datetime = field(default_factory=datetime.now)


def is_feature_collection(payload: Any) -> bool:
    return isinstance(payload, dict) and isinstance(payload.get("features"), list)


# ═══════════════════════════════════════════════════════════════════════════
# 🧩 PARSING
# ═══════════════════════════════════════════════════════════════════════════


def _candidate_id(raw: Dict[str, Any], properties: Dict[str, Any]) -> Optional[str]:
    if raw.get("id") not in (None, ""):
        return str(raw["id"])
    value = read_text(properties, "id")
    return value or None


def parse_feature_collection(payload: Dict[str, Any], revision: int = 0) -> FeatureCollection:
    """
    Build an immutable FeatureCollection from a GeoJSON payload.

    Identifier: feature "id", else properties id / FID, else "feature-{index}".
    Duplicated identifiers are replaced by the index-derived one so every
    feature is addressable.

    Args:
        payload: GeoJSON FeatureCollection dict
        revision: Store revision stamped on the collection

    Returns:
        FeatureCollection (malformed entries are skipped, not fatal)
    """
    features: List[Feature] = []
    seen: Set[str] = set()

    for index, raw in enumerate(payload.get("features", [])):
        if not isinstance(raw, dict):
            logger.warning(f"Skipping non-object feature at index {index}")
            continue
        properties = raw.get("properties")
        if not isinstance(properties, dict):
            properties = {}
        geometry = raw.get("geometry") if isinstance(raw.get("geometry"), dict) else None

        feature_id = _candidate_id(raw, properties)
        if feature_id is None or feature_id in seen:
            feature_id = f"feature-{index}"
            suffix = 1
            while feature_id in seen:
                feature_id = f"feature-{index}-{suffix}"
                suffix += 1
        seen.add(feature_id)

        features.append(Feature(id=feature_id, geometry=geometry, properties=properties))

    return FeatureCollection(
        features=tuple(features),
        kind=str(payload.get("type") or "FeatureCollection"),
        revision=revision,
    )


# ═══════════════════════════════════════════════════════════════════════════
# 📐 EXTENTS
# ═══════════════════════════════════════════════════════════════════════════


def _geojson_to_gdf(raw_features: Iterable[Dict[str, Any]]) -> Optional[gpd.GeoDataFrame]:
    """
    Convert GeoJSON features to a WGS84 GeoDataFrame.

    Missing, empty or malformed geometries are dropped; None when none remain.
    """
    geometries = []
    for raw in raw_features:
        geometry = raw.get("geometry") if isinstance(raw, dict) else None
        if not geometry:
            continue
        try:
            geom = shape(geometry)
        except (ShapelyError, ValueError, TypeError, KeyError, AttributeError) as e:
            logger.debug(f"Ignoring malformed geometry: {e}")
            continue
        if not geom.is_empty:
            geometries.append(geom)

    if not geometries:
        return None
    return gpd.GeoDataFrame(geometry=geometries, crs=CRS_WGS84)


def _gdf_bounds(gdf: Optional[gpd.GeoDataFrame]) -> Optional[LatLngBounds]:
    if gdf is None or gdf.empty:
        return None
    return LatLngBounds.from_total_bounds(gdf.total_bounds)


def compute_feature_bounds(collection: FeatureCollection) -> Optional[LatLngBounds]:
    """Extent of all point features with valid coordinates."""
    points = [Point(*f.coordinates) for f in collection if f.coordinates is not None]
    if not points:
        return None
    return _gdf_bounds(gpd.GeoDataFrame(geometry=points, crs=CRS_WGS84))


def compute_overlay_bounds(data: Dict[str, Any]) -> Optional[LatLngBounds]:
    return _gdf_bounds(_geojson_to_gdf(data.get("features", [])))


# ═══════════════════════════════════════════════════════════════════════════
# 🗄️ FEATURE STORE
# ═══════════════════════════════════════════════════════════════════════════


class FeatureStore:
    """
    Holds the point collection and the boundary overlays once loaded.

    The collection is replaced wholesale on refresh and never mutated.
    Absence of an overlay is a valid state ("not yet loaded"/"unavailable").
    """

    def __init__(self) -> None:
        self._collection: FeatureCollection = EMPTY_COLLECTION
        self._overlays: Dict[str, BoundaryOverlay] = {}
        self._feature_bounds: Optional[LatLngBounds] = None
        self._overlay_bounds: Dict[str, Optional[LatLngBounds]] = {}
        self._status = StoreStatus.LOADING
        self._revision = 0
        self._last_applied_seq: Dict[str, int] = {}
        self._last_updated: Optional[datetime] = None

    # ───────────────────────────────────────────────────────────────────────
    # Read-only accessors
    # ───────────────────────────────────────────────────────────────────────

    @property
    def collection(self) -> FeatureCollection:
        return self._collection

    @property
    def status(self) -> StoreStatus:
        return self._status

    @property
    def last_updated(self) -> Optional[datetime]:
        return self._last_updated

    @property
    def feature_bounds(self) -> Optional[LatLngBounds]:
        return self._feature_bounds

    def overlay(self, name: str) -> Optional[BoundaryOverlay]:
        return self._overlays.get(name)

    def overlay_bounds(self, name: str) -> Optional[LatLngBounds]:
        return self._overlay_bounds.get(name)

    # ───────────────────────────────────────────────────────────────────────
    # Mutation (only via fetch results)
    # ───────────────────────────────────────────────────────────────────────

    def _is_stale(self, resource: str, seq: int) -> bool:
        last = self._last_applied_seq.get(resource, 0)
        if seq <= last:
            logger.warning(
                f"Discarding stale {resource} response (seq {seq} <= applied {last})"
            )
            return True
        return False

    def apply(self, result: FetchResult) -> bool:
        """
        Apply a fetch result as it completes.

        Returns:
            True if the store content changed.
        """
        if not result.ok:
            if result.resource == FEATURES:
                self.mark_features_failed(result.seq, result.error)
            else:
                logger.warning(f"{result.resource} overlay unavailable: {result.error}")
            return False
        if result.resource == FEATURES:
            return self.apply_features(result.payload, result.seq, result.fetched_at)
        return self.apply_overlay(result.resource, result.payload, result.seq)

    def apply_features(
        self,
        payload: Dict[str, Any],
        seq: int,
        fetched_at: Optional[datetime] = None,
    ) -> bool:
        """Replace the collection wholesale. Returns False for a stale response."""
        if self._is_stale(FEATURES, seq):
            return False
        self._revision += 1
        self._collection = parse_feature_collection(payload, self._revision)
        self._feature_bounds = compute_feature_bounds(self._collection)
        self._status = StoreStatus.READY
        self._last_updated = fetched_at or datetime.now()
        self._last_applied_seq[FEATURES] = seq
        logger.info(f"✅ Loaded {len(self._collection)} cooperatives (rev {self._revision})")
        return True

    def apply_overlay(self, name: str, payload: Dict[str, Any], seq: int) -> bool:
        if name not in OVERLAY_NAMES:
            raise ValueError(f"Unknown overlay: {name!r}")
        if self._is_stale(name, seq):
            return False
        previous = self._overlays.get(name)
        overlay = BoundaryOverlay(
            name=name,
            data=payload,
            revision=(previous.revision + 1) if previous else 1,
        )
        self._overlays[name] = overlay
        self._overlay_bounds[name] = compute_overlay_bounds(payload)
        self._last_applied_seq[name] = seq
        logger.info(f"✅ Loaded {name} overlay ({overlay.feature_count} features)")
        return True

    def mark_features_failed(self, seq: int, error: Optional[str] = None) -> None:
        """
        Record a failed fetch of the primary collection.

        Prior data is kept; NO_DATA only when nothing was ever loaded.
        """
        if self._status == StoreStatus.LOADING:
            logger.warning(f"⚠️ No cooperative data available (seq {seq}): {error}")
            self._status = StoreStatus.NO_DATA
        else:
            logger.warning(
                f"Keeping previous cooperative data after failed fetch (seq {seq}): {error}"
            )

    def get_data_info(self) -> Dict[str, Any]:
        """Summary of loaded data for the info endpoint."""
        return {
            "status": self._status.value,
            "feature_count": len(self._collection),
            "revision": self._collection.revision,
            "last_updated": (
                self._last_updated.isoformat() if self._last_updated else None
            ),
            "overlays": {name: name in self._overlays for name in OVERLAY_NAMES},
        }


# ═══════════════════════════════════════════════════════════════════════════
# 🌐 REMOTE DATA LOADER
# ═══════════════════════════════════════════════════════════════════════════

ResultSink = Callable[[FetchResult], None]


class RemoteDataLoader:
    """
    Fetch GeoJSON resources over HTTP.

    Network errors, non-2xx statuses and invalid JSON never raise out of this
    class; they produce a failed FetchResult instead.
    """

    def __init__(
        self,
        config: DataSourceConfig,
        http: Optional[requests.Session] = None,
    ) -> None:
        self.config = config
        self._http = http or requests.Session()
        self._seq = itertools.count(1)
        self._seq_lock = threading.Lock()

    def _next_seq(self) -> int:
        with self._seq_lock:
            return next(self._seq)

    def _url_for(self, resource: str) -> Optional[str]:
        if resource == FEATURES:
            return self.config.features_url or None
        return self.config.overlay_urls.get(resource)

    def _fetch(self, resource: str, url: Optional[str], seq: int) -> FetchResult:
        if not url:
            return FetchResult(resource, seq, ok=False, error="no URL configured")
        try:
            response = self._http.get(url, timeout=self.config.timeout_s)
            response.raise_for_status()
            payload = response.json()
        except requests.RequestException as e:
            logger.warning(f"Failed to fetch {resource} from {url}: {e}")
            return FetchResult(resource, seq, ok=False, error=str(e))
        except ValueError as e:
            logger.warning(f"Invalid JSON for {resource} from {url}: {e}")
            return FetchResult(resource, seq, ok=False, error=f"invalid JSON: {e}")

        if not is_feature_collection(payload):
            logger.warning(f"{resource} response is not a FeatureCollection")
            return FetchResult(resource, seq, ok=False, error="not a FeatureCollection")
        return FetchResult(resource, seq, ok=True, payload=payload)

    def fetch(self, resource: str) -> FetchResult:
        """Fetch one resource synchronously."""
        return self._fetch(resource, self._url_for(resource), self._next_seq())

    def fetch_features(self) -> FetchResult:
        return self.fetch(FEATURES)

    def fetch_overlay(self, name: str) -> FetchResult:
        return self.fetch(name)

    def refresh_all(self, sink: ResultSink) -> List[FetchResult]:
        """
        Fetch features and configured overlays concurrently.

        Each result is handed to sink as soon as it completes; the requests
        are not a transaction and finish in any order.
        """
        resources = [FEATURES] + [
            name for name in OVERLAY_NAMES if self._url_for(name)
        ]
        results: List[FetchResult] = []
        with ThreadPoolExecutor(max_workers=len(resources)) as pool:
            futures = [
                pool.submit(self._fetch, resource, self._url_for(resource), self._next_seq())
                for resource in resources
            ]
            for future in as_completed(futures):
                result = future.result()
                sink(result)
                results.append(result)
        return results

    def refresh_features(self, sink: ResultSink) -> FetchResult:
        """Manual refresh: boundaries are static for the session."""
        result = self.fetch_features()
        sink(result)
        return result
