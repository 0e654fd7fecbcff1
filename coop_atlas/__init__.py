"""
Cooperative Atlas - Interactive Map Dashboard Core

═══════════════════════════════════════════════════════════════════════════════
ARCHITECTURAL OVERVIEW
═══════════════════════════════════════════════════════════════════════════════

Responsibility: State and behaviour behind a map dashboard of the cooperatives
of the Driouch province: filtering/search over a remote GeoJSON collection,
a single selection shared by list, map and panel, camera framing decisions
and a draggable / swipeable detail panel.

Key Features:
- Accent-aware filtering and ordering with four categorical predicates
- One-time instant bootstrap fit, animated home reset, offset fly-to
- Overlay panel state machine with sticky drag offset and swipe gestures
- Periodic and manual refresh with stale-response protection
- Flask JSON API (coop_atlas.server) for the Leaflet front end

Usage:
    from coop_atlas import DashboardSession, RemoteDataLoader

    session = DashboardSession()
    loader = RemoteDataLoader(session.config.data_sources)
    loader.refresh_all(session.apply_fetch_result)
    visible = session.visible_features()

For Navigation: Use VS Code outline (Ctrl+Shift+O)

═══════════════════════════════════════════════════════════════════════════════
"""

from .dashboard import DashboardSession
from .data_loader import FeatureStore, FetchResult, RemoteDataLoader
from .filter_engine import filter_and_sort, search_suggestions
from .models import Feature, FeatureCollection, FilterPredicates, LayoutContext
from .viz_config_types import VIZ_CONFIG, VizConfig

__all__ = [
    "DashboardSession",
    "FeatureStore",
    "FetchResult",
    "RemoteDataLoader",
    "filter_and_sort",
    "search_suggestions",
    "Feature",
    "FeatureCollection",
    "FilterPredicates",
    "LayoutContext",
    "VIZ_CONFIG",
    "VizConfig",
]
