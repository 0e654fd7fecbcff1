#!/usr/bin/env python3
"""
Cooperative Atlas - Viewport Controller

ARCHITECTURAL OVERVIEW:
=======================
Responsibility: Decide where the map camera goes. The browser owns the real
camera; this module only emits MapCommand descriptors for it to apply.

Key Features:
1. Bootstrap fit: the first framing of the session is instant (zero duration)
2. Reset fit: the "home" action bumps a counter and re-frames with animation
3. Fly-to: animated zoom on a selected point, centre shifted south so the
   feature stays clear of the bottom-docked panel
4. Resize: layout changes schedule a delayed map size invalidation

Invariant: has_initial_fit flips to True once and is never reset. Data that
arrives after the bootstrap (e.g. a late boundary overlay) only updates the
stored bounds used by the next explicit reset.

For Navigation: Use VS Code outline (Ctrl+Shift+O)
"""

import logging
from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Tuple

from pyproj import Geod

from coop_atlas.models import Feature, LatLngBounds, LayoutContext
from coop_atlas.viz_config_types import LayoutConfig, ViewportConfig

logger = logging.getLogger(__name__)

# Geodesic calculations on the WGS84 ellipsoid (metre offsets -> degrees)
_GEOD = Geod(ellps="WGS84")

# Azimuth pointing due south
_SOUTH_AZIMUTH = 180.0

# ═══════════════════════════════════════════════════════════════════════════
# 📦 COMMAND DESCRIPTORS
# ═══════════════════════════════════════════════════════════════════════════

FIT_BOUNDS = "fit_bounds"
FLY_TO = "fly_to"
INVALIDATE_SIZE = "invalidate_size"


@dataclass(frozen=True)
class MapCommand:
    """One camera or map-surface instruction for the browser.

    Commands are fire-and-forget: a newer fly_to simply redirects the
    camera mid-animation.
    """

    kind: str
    bounds: Optional[LatLngBounds] = None
    center: Optional[Tuple[float, float]] = None  # (lat, lon)
    zoom: Optional[int] = None
    padding: Optional[int] = None
    duration_s: float = 0.0
    ease_linearity: Optional[float] = None
    delay_ms: int = 0
    animate: bool = True

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for JSON serialization (None fields dropped)."""
        payload: Dict[str, Any] = {
            "kind": self.kind,
            "duration": self.duration_s,
            "animate": self.animate,
            "delayMs": self.delay_ms,
        }
        if self.bounds is not None:
            payload["bounds"] = self.bounds.to_leaflet()
        if self.center is not None:
            payload["center"] = list(self.center)
        if self.zoom is not None:
            payload["zoom"] = self.zoom
        if self.padding is not None:
            payload["padding"] = [self.padding, self.padding]
        if self.ease_linearity is not None:
            payload["easeLinearity"] = self.ease_linearity
        return payload


# ═══════════════════════════════════════════════════════════════════════════
# 📐 GEOMETRY HELPERS
# ═══════════════════════════════════════════════════════════════════════════


def compute_fit_bounds(
    province_bounds: Optional[LatLngBounds],
    feature_bounds: Optional[LatLngBounds],
) -> Optional[LatLngBounds]:
    """Province overlay extent if present, else the features' extent."""
    if province_bounds is not None:
        return province_bounds
    return feature_bounds


def offset_center(lon: float, lat: float, offset_m: float) -> Tuple[float, float]:
    """
    Camera centre placed offset_m metres south of a feature.

    Returns:
        (lat, lon) of the camera centre
    """
    if offset_m <= 0:
        return lat, lon
    _, shifted_lat, _ = _GEOD.fwd(lon, lat, _SOUTH_AZIMUTH, offset_m)
    return shifted_lat, lon


# ═══════════════════════════════════════════════════════════════════════════
# 🎥 VIEWPORT CONTROLLER
# ═══════════════════════════════════════════════════════════════════════════


class ViewportController:
    """Camera target decisions with a one-time bootstrap rule."""

    def __init__(
        self,
        config: Optional[ViewportConfig] = None,
        layout_config: Optional[LayoutConfig] = None,
    ) -> None:
        self.config = config or ViewportConfig()
        self.layout_config = layout_config or LayoutConfig()
        self._has_initial_fit = False
        self._reset_trigger = 0
        self._stored_bounds: Optional[LatLngBounds] = None

    @property
    def has_initial_fit(self) -> bool:
        return self._has_initial_fit

    @property
    def reset_trigger(self) -> int:
        return self._reset_trigger

    @property
    def stored_bounds(self) -> Optional[LatLngBounds]:
        return self._stored_bounds

    def _fit(self, bounds: LatLngBounds, layout: LayoutContext, instant: bool) -> MapCommand:
        return MapCommand(
            kind=FIT_BOUNDS,
            bounds=bounds,
            padding=self.config.padding_for(layout.is_compact),
            duration_s=0.0 if instant else self.config.fit_duration_s,
            animate=not instant,
        )

    def on_data_changed(
        self,
        bounds: Optional[LatLngBounds],
        has_selection: bool,
        layout: LayoutContext,
    ) -> List[MapCommand]:
        """
        React to new features or overlays arriving in the store.

        Args:
            bounds: Current fit bounds (see compute_fit_bounds)
            has_selection: A selection suppresses the bootstrap fit
            layout: Layout at the time the data arrived

        Returns:
            [instant fit] the first time bounds exist with no selection,
            [] otherwise (bounds are still remembered for the next reset).
        """
        if bounds is not None:
            self._stored_bounds = bounds
        if self._has_initial_fit or bounds is None or has_selection:
            return []
        self._has_initial_fit = True
        logger.info(f"🎯 Bootstrap fit to {bounds.to_leaflet()}")
        return [self._fit(bounds, layout, instant=True)]

    def request_reset(
        self, bounds: Optional[LatLngBounds], layout: LayoutContext
    ) -> List[MapCommand]:
        """Explicit "home" action: always animated, forces recomputation."""
        self._reset_trigger += 1
        if bounds is not None:
            self._stored_bounds = bounds
        target = self._stored_bounds
        if target is None:
            logger.info("Home requested but no bounds are known yet")
            return []
        if not self._has_initial_fit:
            # Home before any automatic fit still counts as the first framing
            self._has_initial_fit = True
        return [self._fit(target, layout, instant=False)]

    def on_selection_changed(
        self, feature: Optional[Feature], layout: LayoutContext
    ) -> List[MapCommand]:
        """Fly to a newly selected point feature."""
        if feature is None:
            return []
        coords = feature.coordinates
        if coords is None:
            logger.debug(f"No fly-to for non-point feature {feature.id}")
            return []
        lon, lat = coords
        center = offset_center(lon, lat, self.config.offset_for(layout.is_compact))
        return [
            MapCommand(
                kind=FLY_TO,
                center=center,
                zoom=self.config.fly_to_zoom,
                duration_s=self.config.fly_to_duration_s,
                ease_linearity=self.config.fly_to_ease_linearity,
            )
        ]

    def on_layout_changed(self) -> List[MapCommand]:
        """Sidebar opened/closed: refresh the map's cached size after the transition."""
        return [
            MapCommand(
                kind=INVALIDATE_SIZE,
                delay_ms=self.layout_config.resize_delay_ms,
                animate=False,
            )
        ]
