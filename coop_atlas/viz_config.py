#!/usr/bin/env python3
"""
Cooperative Atlas - Configuration

ARCHITECTURAL OVERVIEW:
=======================
Responsibility: Configuration dictionary for the cooperative dashboard.
This is the user-facing configuration file - edit values here.

Pattern:
- viz_config.py defines the VIZ_CONFIG_DATA dictionary (edit this)
- viz_config_types.py defines typed dataclasses and loads from VIZ_CONFIG_DATA

For Navigation: Use VS Code outline (Ctrl+Shift+O)
"""

from typing import Dict, Any

# ═══════════════════════════════════════════════════════════════════════════
# 🗺️ COOPERATIVE ATLAS CONFIGURATION
# ═══════════════════════════════════════════════════════════════════════════

VIZ_CONFIG_DATA: Dict[str, Any] = {
    # ═══════════════════════════════════════════════════════════════════════
    # 🌐 DATA SOURCES
    # ═══════════════════════════════════════════════════════════════════════
    "data_sources": {
        "features_url": (
            "https://raw.githubusercontent.com/sigtopo/coop_driouch/"
            "refs/heads/main/CooperativesDriouch.geojson"
        ),
        # Boundary overlays are optional - None means "unavailable"
        "province_url": None,
        "communes_url": None,
        "timeout_s": 20.0,
        "refresh_interval_s": 300.0,  # 5 minutes
    },
    # ═══════════════════════════════════════════════════════════════════════
    # 📱 LAYOUT
    # ═══════════════════════════════════════════════════════════════════════
    "layout": {
        "compact_breakpoint_px": 768,  # Below this width = compact layout
        "resize_delay_ms": 300,  # Wait for sidebar transition before redraw
    },
    # ═══════════════════════════════════════════════════════════════════════
    # 🎥 CAMERA
    # ═══════════════════════════════════════════════════════════════════════
    "viewport": {
        "center": [34.98, -3.38],  # [lat, lon] - Driouch province
        "zoom": 10,
        "fly_to_zoom": 16,
        "fly_to_duration_s": 1.2,
        "fly_to_ease_linearity": 0.25,
        # Camera centre is moved south so the feature clears the bottom panel
        "compact_offset_m": 350.0,
        "wide_offset_m": 120.0,
        "compact_fit_padding_px": 20,
        "wide_fit_padding_px": 50,
        "fit_duration_s": 1.0,
    },
    # ═══════════════════════════════════════════════════════════════════════
    # 🪟 OVERLAY PANEL
    # ═══════════════════════════════════════════════════════════════════════
    "panel": {
        "drag_threshold_px": 4.0,
        "swipe_expand_px": 50.0,
        "swipe_collapse_px": 50.0,
        "swipe_close_px": 120.0,
        "suggestion_limit": 6,
        "suggestion_min_chars": 2,
    },
    # ═══════════════════════════════════════════════════════════════════════
    # 📍 MARKERS
    # ═══════════════════════════════════════════════════════════════════════
    "markers": {
        "selected_color": "#f97316",  # Orange
        "standard_color": "#16a34a",  # Green
        "satellite_color": "#4ade80",  # Light green (readable on imagery)
        "selected_border_color": "#f97316",  # orange-500
        "standard_border_color": "#16a34a",  # green-600
        "satellite_border_color": "#4ade80",  # green-400
        "selected_scale": 1.25,
        "selected_z_index_offset": 1000,
    },
    # ═══════════════════════════════════════════════════════════════════════
    # 🧱 BASE LAYERS
    # ═══════════════════════════════════════════════════════════════════════
    "map_layers": {
        "standard": {
            "url": "https://{s}.tile.openstreetmap.org/{z}/{x}/{y}.png",
            "attribution": "&copy; OpenStreetMap",
        },
        "satellite": {
            "url": "https://mt1.google.com/vt/lyrs=y&x={x}&y={y}&z={z}",
            "attribution": "&copy; Google Maps",
        },
    },
    # ═══════════════════════════════════════════════════════════════════════
    # 🧠 AI INSIGHTS
    # ═══════════════════════════════════════════════════════════════════════
    "insights": {
        "endpoint_url": None,  # Set COOP_ATLAS_INSIGHTS_URL to enable
        "api_key": None,
        "model": "gemini-3-flash-preview",
        "sample_size": 60,
        "timeout_s": 60.0,
    },
}
