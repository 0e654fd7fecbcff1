#!/usr/bin/env python3
"""
Cooperative Atlas - Configuration Types

ARCHITECTURAL OVERVIEW:
=======================
Responsibility: Centralized, typed configuration for the cooperative dashboard
using frozen dataclasses for immutability and type safety.

This follows the Typed Configuration Architecture pattern:
- viz_config.py defines VIZ_CONFIG_DATA dictionary (user edits this)
- viz_config_types.py defines frozen dataclasses (this file)
- VIZ_CONFIG module-level instance for orchestrator access
- Business logic receives primitives or section configs only

Environment overrides (applied on top of VIZ_CONFIG_DATA):
- COOP_ATLAS_FEATURES_URL, COOP_ATLAS_PROVINCE_URL, COOP_ATLAS_COMMUNES_URL
- COOP_ATLAS_INSIGHTS_URL, COOP_ATLAS_INSIGHTS_API_KEY

For Navigation: Use VS Code outline (Ctrl+Shift+O)
"""

import copy
import os
from dataclasses import dataclass, field
from typing import Dict, Any, Optional, Tuple

# ═══════════════════════════════════════════════════════════════════════════
# 🌐 DATA SOURCE CONFIGURATION
# ═══════════════════════════════════════════════════════════════════════════


@dataclass(frozen=True)
class DataSourceConfig:
    """Remote GeoJSON resources and refresh cadence.

    Attributes:
        features_url: Point collection (required resource)
        province_url: Province boundary overlay (optional)
        communes_url: Commune boundaries overlay (optional)
        timeout_s: Per-request timeout
        refresh_interval_s: Period of the automatic re-fetch
    """

    features_url: str = ""
    province_url: Optional[str] = None
    communes_url: Optional[str] = None
    timeout_s: float = 20.0
    refresh_interval_s: float = 300.0

    def __post_init__(self) -> None:
        if self.timeout_s <= 0:
            raise ValueError(f"timeout_s must be > 0, got {self.timeout_s}")
        if self.refresh_interval_s <= 0:
            raise ValueError(
                f"refresh_interval_s must be > 0, got {self.refresh_interval_s}"
            )

    @property
    def overlay_urls(self) -> Dict[str, Optional[str]]:
        """Boundary overlay name -> URL (None when not configured)."""
        return {"province": self.province_url, "communes": self.communes_url}

    @classmethod
    def from_dict(cls, d: Dict[str, Any]) -> "DataSourceConfig":
        """Create from dictionary."""
        return cls(
            features_url=d.get("features_url", ""),
            province_url=d.get("province_url"),
            communes_url=d.get("communes_url"),
            timeout_s=d.get("timeout_s", 20.0),
            refresh_interval_s=d.get("refresh_interval_s", 300.0),
        )


# ═══════════════════════════════════════════════════════════════════════════
# 📱 LAYOUT CONFIGURATION
# ═══════════════════════════════════════════════════════════════════════════


@dataclass(frozen=True)
class LayoutConfig:
    """Device-width breakpoint and layout transition timing."""

    compact_breakpoint_px: int = 768
    resize_delay_ms: int = 300

    def __post_init__(self) -> None:
        if self.compact_breakpoint_px <= 0:
            raise ValueError(
                f"compact_breakpoint_px must be > 0, got {self.compact_breakpoint_px}"
            )

    @classmethod
    def from_dict(cls, d: Dict[str, Any]) -> "LayoutConfig":
        """Create from dictionary."""
        return cls(
            compact_breakpoint_px=d.get("compact_breakpoint_px", 768),
            resize_delay_ms=d.get("resize_delay_ms", 300),
        )

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for JSON serialization."""
        return {
            "compact_breakpoint_px": self.compact_breakpoint_px,
            "resize_delay_ms": self.resize_delay_ms,
        }


# ═══════════════════════════════════════════════════════════════════════════
# 🎥 VIEWPORT CONFIGURATION
# ═══════════════════════════════════════════════════════════════════════════


@dataclass(frozen=True)
class ViewportConfig:
    """Camera framing constants.

    Attributes:
        center_lat / center_lon / zoom: Map view before any data arrives
        fly_to_zoom: Close zoom used when a feature is selected
        fly_to_duration_s / fly_to_ease_linearity: Fly-to animation
        compact_offset_m / wide_offset_m: Southward shift of the camera
            centre so the selected feature is not hidden by the panel
        compact_fit_padding_px / wide_fit_padding_px: Bounds-fit padding
        fit_duration_s: Duration of animated (non-bootstrap) fits
    """

    center_lat: float = 34.98
    center_lon: float = -3.38
    zoom: int = 10
    fly_to_zoom: int = 16
    fly_to_duration_s: float = 1.2
    fly_to_ease_linearity: float = 0.25
    compact_offset_m: float = 350.0
    wide_offset_m: float = 120.0
    compact_fit_padding_px: int = 20
    wide_fit_padding_px: int = 50
    fit_duration_s: float = 1.0

    def offset_for(self, is_compact: bool) -> float:
        """Vertical fly-to offset in metres for the given layout."""
        return self.compact_offset_m if is_compact else self.wide_offset_m

    def padding_for(self, is_compact: bool) -> int:
        """Fit padding in pixels for the given layout."""
        return self.compact_fit_padding_px if is_compact else self.wide_fit_padding_px

    @classmethod
    def from_dict(cls, d: Dict[str, Any]) -> "ViewportConfig":
        """Create from dictionary."""
        center = d.get("center", [34.98, -3.38])
        return cls(
            center_lat=center[0],
            center_lon=center[1],
            zoom=d.get("zoom", 10),
            fly_to_zoom=d.get("fly_to_zoom", 16),
            fly_to_duration_s=d.get("fly_to_duration_s", 1.2),
            fly_to_ease_linearity=d.get("fly_to_ease_linearity", 0.25),
            compact_offset_m=d.get("compact_offset_m", 350.0),
            wide_offset_m=d.get("wide_offset_m", 120.0),
            compact_fit_padding_px=d.get("compact_fit_padding_px", 20),
            wide_fit_padding_px=d.get("wide_fit_padding_px", 50),
            fit_duration_s=d.get("fit_duration_s", 1.0),
        )

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for JSON serialization."""
        return {
            "center": [self.center_lat, self.center_lon],
            "zoom": self.zoom,
            "fly_to_zoom": self.fly_to_zoom,
        }


# ═══════════════════════════════════════════════════════════════════════════
# 🪟 PANEL CONFIGURATION
# ═══════════════════════════════════════════════════════════════════════════


@dataclass(frozen=True)
class PanelConfig:
    """Overlay panel gesture thresholds and autocomplete limits."""

    drag_threshold_px: float = 4.0
    swipe_expand_px: float = 50.0
    swipe_collapse_px: float = 50.0
    swipe_close_px: float = 120.0
    suggestion_limit: int = 6
    suggestion_min_chars: int = 2

    def __post_init__(self) -> None:
        if self.swipe_close_px <= self.swipe_collapse_px:
            raise ValueError(
                "swipe_close_px must be larger than swipe_collapse_px, "
                f"got {self.swipe_close_px} <= {self.swipe_collapse_px}"
            )
        if self.suggestion_limit < 1:
            raise ValueError(
                f"suggestion_limit must be >= 1, got {self.suggestion_limit}"
            )

    @classmethod
    def from_dict(cls, d: Dict[str, Any]) -> "PanelConfig":
        """Create from dictionary."""
        return cls(
            drag_threshold_px=d.get("drag_threshold_px", 4.0),
            swipe_expand_px=d.get("swipe_expand_px", 50.0),
            swipe_collapse_px=d.get("swipe_collapse_px", 50.0),
            swipe_close_px=d.get("swipe_close_px", 120.0),
            suggestion_limit=d.get("suggestion_limit", 6),
            suggestion_min_chars=d.get("suggestion_min_chars", 2),
        )

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for JSON serialization."""
        return {
            "drag_threshold_px": self.drag_threshold_px,
            "swipe_expand_px": self.swipe_expand_px,
            "swipe_collapse_px": self.swipe_collapse_px,
            "swipe_close_px": self.swipe_close_px,
            "suggestion_limit": self.suggestion_limit,
            "suggestion_min_chars": self.suggestion_min_chars,
        }


# ═══════════════════════════════════════════════════════════════════════════
# 📍 MARKER CONFIGURATION
# ═══════════════════════════════════════════════════════════════════════════


@dataclass(frozen=True)
class MarkerConfig:
    """Configuration for cooperative marker appearance."""

    selected_color: str = "#f97316"
    standard_color: str = "#16a34a"
    satellite_color: str = "#4ade80"
    selected_border_color: str = "#f97316"
    standard_border_color: str = "#16a34a"
    satellite_border_color: str = "#4ade80"
    selected_scale: float = 1.25
    selected_z_index_offset: int = 1000

    @classmethod
    def from_dict(cls, d: Dict[str, Any]) -> "MarkerConfig":
        """Create from dictionary."""
        return cls(
            selected_color=d.get("selected_color", "#f97316"),
            standard_color=d.get("standard_color", "#16a34a"),
            satellite_color=d.get("satellite_color", "#4ade80"),
            selected_border_color=d.get("selected_border_color", "#f97316"),
            standard_border_color=d.get("standard_border_color", "#16a34a"),
            satellite_border_color=d.get("satellite_border_color", "#4ade80"),
            selected_scale=d.get("selected_scale", 1.25),
            selected_z_index_offset=d.get("selected_z_index_offset", 1000),
        )

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for JSON serialization."""
        return {
            "selected_color": self.selected_color,
            "standard_color": self.standard_color,
            "satellite_color": self.satellite_color,
            "selected_border_color": self.selected_border_color,
            "standard_border_color": self.standard_border_color,
            "satellite_border_color": self.satellite_border_color,
            "selected_scale": self.selected_scale,
            "selected_z_index_offset": self.selected_z_index_offset,
        }


# ═══════════════════════════════════════════════════════════════════════════
# 🧱 BASE LAYER CONFIGURATION
# ═══════════════════════════════════════════════════════════════════════════


@dataclass(frozen=True)
class TileLayerConfig:
    """A single base map tile layer."""

    url: str
    attribution: str = ""

    @classmethod
    def from_dict(cls, d: Dict[str, Any]) -> "TileLayerConfig":
        """Create from dictionary."""
        return cls(url=d.get("url", ""), attribution=d.get("attribution", ""))

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for JSON serialization."""
        return {"url": self.url, "attribution": self.attribution}


# ═══════════════════════════════════════════════════════════════════════════
# 🧠 INSIGHTS CONFIGURATION
# ═══════════════════════════════════════════════════════════════════════════


@dataclass(frozen=True)
class InsightsConfig:
    """External text-generation service used by the insights panel."""

    endpoint_url: Optional[str] = None
    api_key: Optional[str] = None
    model: str = "gemini-3-flash-preview"
    sample_size: int = 60
    timeout_s: float = 60.0

    @property
    def is_configured(self) -> bool:
        return bool(self.endpoint_url)

    @classmethod
    def from_dict(cls, d: Dict[str, Any]) -> "InsightsConfig":
        """Create from dictionary."""
        return cls(
            endpoint_url=d.get("endpoint_url"),
            api_key=d.get("api_key"),
            model=d.get("model", "gemini-3-flash-preview"),
            sample_size=d.get("sample_size", 60),
            timeout_s=d.get("timeout_s", 60.0),
        )


# ═══════════════════════════════════════════════════════════════════════════
# 📦 MAIN VIZ CONFIGURATION CLASS
# ═══════════════════════════════════════════════════════════════════════════

_DEFAULT_MAP_LAYERS: Dict[str, Dict[str, str]] = {
    "standard": {
        "url": "https://{s}.tile.openstreetmap.org/{z}/{x}/{y}.png",
        "attribution": "&copy; OpenStreetMap",
    },
    "satellite": {
        "url": "https://mt1.google.com/vt/lyrs=y&x={x}&y={y}&z={z}",
        "attribution": "&copy; Google Maps",
    },
}


@dataclass(frozen=True)
class VizConfig:
    """
    Main configuration class for the cooperative dashboard.

    Access via the module-level VIZ_CONFIG instance.
    """

    data_sources: DataSourceConfig = field(default_factory=DataSourceConfig)
    layout: LayoutConfig = field(default_factory=LayoutConfig)
    viewport: ViewportConfig = field(default_factory=ViewportConfig)
    panel: PanelConfig = field(default_factory=PanelConfig)
    markers: MarkerConfig = field(default_factory=MarkerConfig)
    map_layers: Dict[str, TileLayerConfig] = field(default_factory=dict)
    insights: InsightsConfig = field(default_factory=InsightsConfig)

    @property
    def map_layer_names(self) -> Tuple[str, ...]:
        return tuple(self.map_layers.keys())

    @classmethod
    def from_dict(cls, d: Dict[str, Any]) -> "VizConfig":
        """Create from dictionary."""
        layers = d.get("map_layers", _DEFAULT_MAP_LAYERS)
        return cls(
            data_sources=DataSourceConfig.from_dict(d.get("data_sources", {})),
            layout=LayoutConfig.from_dict(d.get("layout", {})),
            viewport=ViewportConfig.from_dict(d.get("viewport", {})),
            panel=PanelConfig.from_dict(d.get("panel", {})),
            markers=MarkerConfig.from_dict(d.get("markers", {})),
            map_layers={
                name: TileLayerConfig.from_dict(layer)
                for name, layer in layers.items()
            },
            insights=InsightsConfig.from_dict(d.get("insights", {})),
        )

    @classmethod
    def defaults(cls) -> "VizConfig":
        """Create with all default values."""
        return cls.from_dict({})

    def to_frontend_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for frontend JSON API."""
        return {
            "layout": self.layout.to_dict(),
            "viewport": self.viewport.to_dict(),
            "panel": self.panel.to_dict(),
            "markers": self.markers.to_dict(),
            "mapLayers": {
                name: layer.to_dict() for name, layer in self.map_layers.items()
            },
            "refreshIntervalS": self.data_sources.refresh_interval_s,
            "insightsEnabled": self.insights.is_configured,
        }


# ═══════════════════════════════════════════════════════════════════════════
# 🌱 ENVIRONMENT OVERRIDES
# ═══════════════════════════════════════════════════════════════════════════

_ENV_OVERRIDES: Dict[str, Tuple[str, str]] = {
    "COOP_ATLAS_FEATURES_URL": ("data_sources", "features_url"),
    "COOP_ATLAS_PROVINCE_URL": ("data_sources", "province_url"),
    "COOP_ATLAS_COMMUNES_URL": ("data_sources", "communes_url"),
    "COOP_ATLAS_INSIGHTS_URL": ("insights", "endpoint_url"),
    "COOP_ATLAS_INSIGHTS_API_KEY": ("insights", "api_key"),
}


def apply_env_overrides(
    data: Dict[str, Any], environ: Optional[Dict[str, str]] = None
) -> Dict[str, Any]:
    """Return a copy of a config dictionary with environment values applied."""
    environ = os.environ if environ is None else environ
    merged = copy.deepcopy(data)
    for env_name, (section, key) in _ENV_OVERRIDES.items():
        value = environ.get(env_name)
        if value:
            merged.setdefault(section, {})[key] = value
    return merged


# ═══════════════════════════════════════════════════════════════════════════
# 📌 MODULE-LEVEL CONFIG INSTANCE
# ═══════════════════════════════════════════════════════════════════════════

# Import configuration data from separate file (user-editable)
from coop_atlas.viz_config import VIZ_CONFIG_DATA

# Edit viz_config.py to change settings (restart server after changes)
VIZ_CONFIG: VizConfig = VizConfig.from_dict(apply_env_overrides(VIZ_CONFIG_DATA))


def get_frontend_config() -> Dict[str, Any]:
    """
    Get configuration for frontend JavaScript.

    Returns a dict suitable for JSON serialization and use in the frontend.
    This is the coordination boundary function for frontend config access.
    """
    return VIZ_CONFIG.to_frontend_dict()
