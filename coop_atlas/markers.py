"""
Marker presentation - pure mapping from (feature, is_selected) to a marker
descriptor the map front end turns into a Leaflet divIcon.

Selected markers are drawn on top with a permanently visible label; the
others only show their label on hover/tap.
"""

from dataclasses import dataclass
from typing import Any, Dict, Optional

from coop_atlas.attributes import display_name
from coop_atlas.models import Feature
from coop_atlas.viz_config_types import MarkerConfig

SATELLITE_LAYER = "satellite"

TOOLTIP_PERMANENT = "permanent"
TOOLTIP_HOVER = "hover"


@dataclass(frozen=True)
class MarkerDescriptor:
    """Visual description of one cooperative marker."""

    feature_id: str
    label: str
    visual_variant: str
    color: str
    border_color: str
    scale: float
    z_index_offset: int
    tooltip_policy: str

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for JSON serialization."""
        return {
            "featureId": self.feature_id,
            "label": self.label,
            "variant": self.visual_variant,
            "color": self.color,
            "borderColor": self.border_color,
            "scale": self.scale,
            "zIndexOffset": self.z_index_offset,
            "tooltip": self.tooltip_policy,
        }


def present_marker(
    feature: Feature,
    is_selected: bool,
    map_layer: str = "standard",
    config: Optional[MarkerConfig] = None,
) -> MarkerDescriptor:
    """Describe a marker; recomputed on every render pass, holds no state."""
    config = config or MarkerConfig()
    label = display_name(feature, "Coop")
    if is_selected:
        return MarkerDescriptor(
            feature_id=feature.id,
            label=label,
            visual_variant="selected",
            color=config.selected_color,
            border_color=config.selected_border_color,
            scale=config.selected_scale,
            z_index_offset=config.selected_z_index_offset,
            tooltip_policy=TOOLTIP_PERMANENT,
        )
    on_satellite = map_layer == SATELLITE_LAYER
    return MarkerDescriptor(
        feature_id=feature.id,
        label=label,
        visual_variant="satellite" if on_satellite else "standard",
        color=config.satellite_color if on_satellite else config.standard_color,
        border_color=(
            config.satellite_border_color if on_satellite else config.standard_border_color
        ),
        scale=1.0,
        z_index_offset=0,
        tooltip_policy=TOOLTIP_HOVER,
    )
