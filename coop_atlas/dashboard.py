#!/usr/bin/env python3
"""
Cooperative Atlas - Dashboard Session

ARCHITECTURAL OVERVIEW:
=======================
Responsibility: Wire the feature store, filter engine, selection controller,
viewport controller, overlay panel, sidebar and base-layer switch into one
event-driven session.

Data Flow:
    Feature Store --collection--> Filter Engine --visible view--> list/markers
    List/marker/suggestion pick --> SelectionController
        --> OverlayPanel (detail, collapsed)
        --> ViewportController (fly-to command)
    Store data change --> ViewportController (bootstrap fit, once)
    Home action --> clear selection + animated reset fit

Camera effects are never applied here. Every MapCommand is appended to an
outbox that the browser drains and executes in order.

Key Interactions:
- Input: FetchResult objects from data_loader, UI events from server.py
- Output: JSON-ready dicts (snapshot, markers, detail, commands)

For Navigation: Use VS Code outline (Ctrl+Shift+O)
"""

import logging
from typing import Any, Dict, List, Optional, Tuple

from coop_atlas.data_loader import PROVINCE, FeatureStore, FetchResult
from coop_atlas.detail_view import build_detail, unavailable_detail
from coop_atlas.filter_engine import (
    CollectionStats,
    FilterOptions,
    build_filter_options,
    filter_and_sort,
    summarize_collection,
)
from coop_atlas.markers import MarkerDescriptor, present_marker
from coop_atlas.models import (
    WIDE_LAYOUT,
    Feature,
    FilterDimension,
    FilterPredicates,
    LatLngBounds,
    LayoutContext,
)
from coop_atlas.panel_state import DragPhase, OverlayPanel, PanelAction
from coop_atlas.selection import SelectionController, SelectionSource
from coop_atlas.viewport import MapCommand, ViewportController, compute_fit_bounds
from coop_atlas.viz_config_types import VIZ_CONFIG, VizConfig

logger = logging.getLogger(__name__)

# Picks that hide the sidebar on compact layouts so the panel stays visible
_SIDEBAR_CLOSING_SOURCES = (SelectionSource.LIST, SelectionSource.MARKER)


class DashboardSession:
    """One user's dashboard state, driven by discrete events."""

    def __init__(
        self,
        config: Optional[VizConfig] = None,
        store: Optional[FeatureStore] = None,
    ) -> None:
        self.config = config or VIZ_CONFIG
        self.store = store or FeatureStore()
        self.selection = SelectionController()
        self.viewport = ViewportController(self.config.viewport, self.config.layout)
        self.panel = OverlayPanel(self.config.panel)

        self._layout: LayoutContext = WIDE_LAYOUT
        self._query = ""
        self._predicates = FilterPredicates()
        self._options_cache: Optional[Tuple[int, FilterOptions]] = None
        self._sidebar_open: Optional[bool] = None
        layer_names = self.config.map_layer_names or ("standard",)
        self._map_layer = layer_names[0]
        self._commands: List[MapCommand] = []

        self.selection.subscribe(self._on_selection_changed)

    # ═══════════════════════════════════════════════════════════════════════
    # 🎬 COMMAND OUTBOX
    # ═══════════════════════════════════════════════════════════════════════

    def _emit(self, commands: List[MapCommand]) -> None:
        self._commands.extend(commands)

    def drain_commands(self) -> List[MapCommand]:
        """Pending map commands in emission order; the outbox is emptied."""
        commands, self._commands = self._commands, []
        return commands

    # ═══════════════════════════════════════════════════════════════════════
    # 📱 LAYOUT
    # ═══════════════════════════════════════════════════════════════════════

    @property
    def layout(self) -> LayoutContext:
        return self._layout

    def set_layout(self, layout: Optional[LayoutContext]) -> LayoutContext:
        """Record the layout read at the moment of an interaction."""
        if layout is not None:
            self._layout = layout
        return self._layout

    # ═══════════════════════════════════════════════════════════════════════
    # 📥 DATA
    # ═══════════════════════════════════════════════════════════════════════

    def fit_bounds(self) -> Optional[LatLngBounds]:
        return compute_fit_bounds(
            self.store.overlay_bounds(PROVINCE), self.store.feature_bounds
        )

    def apply_fetch_result(self, result: FetchResult) -> bool:
        """Apply one completed fetch and let the viewport react to new data."""
        changed = self.store.apply(result)
        if changed:
            self._emit(
                self.viewport.on_data_changed(
                    self.fit_bounds(),
                    has_selection=self.selection.current() is not None,
                    layout=self._layout,
                )
            )
        return changed

    # ═══════════════════════════════════════════════════════════════════════
    # 🔎 FILTERING
    # ═══════════════════════════════════════════════════════════════════════

    @property
    def query(self) -> str:
        return self._query

    @property
    def predicates(self) -> FilterPredicates:
        return self._predicates

    def set_query(self, text: Optional[str]) -> None:
        self._query = text or ""

    def set_filter(self, dimension: Any, value: Optional[str]) -> FilterPredicates:
        """
        Set one categorical predicate ("" or None clears it).

        Raises:
            ValueError: If dimension names no filter dimension
        """
        if not isinstance(dimension, FilterDimension):
            dimension = FilterDimension.from_string(str(dimension))
        self._predicates = self._predicates.with_value(dimension, value)
        return self._predicates

    def reset_filters(self) -> None:
        """Clear the query and all predicates."""
        self._query = ""
        self._predicates = FilterPredicates()

    def visible_features(self) -> List[Feature]:
        return filter_and_sort(self.store.collection, self._query, self._predicates)

    def filter_options(self) -> FilterOptions:
        """Option sets of the full collection, cached per revision."""
        revision = self.store.collection.revision
        if self._options_cache is None or self._options_cache[0] != revision:
            self._options_cache = (revision, build_filter_options(self.store.collection))
        return self._options_cache[1]

    def stats(self, filtered: bool = True) -> CollectionStats:
        if filtered:
            return summarize_collection(self.visible_features())
        return summarize_collection(self.store.collection.features)

    # ═══════════════════════════════════════════════════════════════════════
    # 🎯 SELECTION
    # ═══════════════════════════════════════════════════════════════════════

    def _on_selection_changed(
        self,
        new: Optional[Feature],
        previous: Optional[Feature],
        source: SelectionSource,
    ) -> None:
        self.panel.on_selection_changed(new, source)
        self._emit(self.viewport.on_selection_changed(new, self._layout))

    def select_by_id(
        self,
        feature_id: Any,
        source: SelectionSource = SelectionSource.LIST,
        layout: Optional[LayoutContext] = None,
    ) -> Optional[Feature]:
        """
        Select a feature of the full collection by identifier.

        Returns:
            The feature, or None when the identifier is unknown (the current
            selection is left unchanged).
        """
        layout = self.set_layout(layout)
        feature = self.store.collection.by_id(feature_id)
        if feature is None:
            logger.warning(f"Ignoring selection of unknown feature id {feature_id!r}")
            return None
        self.selection.select(feature, source)
        if layout.is_compact and source in _SIDEBAR_CLOSING_SOURCES:
            self.set_sidebar_open(False)
        return feature

    def select_from_list(
        self, feature_id: Any, layout: Optional[LayoutContext] = None
    ) -> Optional[Feature]:
        return self.select_by_id(feature_id, SelectionSource.LIST, layout)

    def select_from_marker(
        self, feature_id: Any, layout: Optional[LayoutContext] = None
    ) -> Optional[Feature]:
        return self.select_by_id(feature_id, SelectionSource.MARKER, layout)

    def select_from_suggestion(
        self, feature_id: Any, layout: Optional[LayoutContext] = None
    ) -> Optional[Feature]:
        return self.select_by_id(feature_id, SelectionSource.SUGGESTION, layout)

    def close_panel(self) -> None:
        """Close button or swipe-to-close: hide the panel and clear the selection."""
        self.selection.clear(SelectionSource.CLOSE)
        self.panel.close()

    def go_home(self, layout: Optional[LayoutContext] = None) -> None:
        """Home action: clear the selection and re-frame the region (animated)."""
        layout = self.set_layout(layout)
        self.selection.clear(SelectionSource.HOME)
        self.panel.close()
        self._emit(self.viewport.request_reset(self.fit_bounds(), layout))

    def current_detail(self) -> Optional[Dict[str, Any]]:
        """Detail payload of the selection resolved against the current collection."""
        selected_id = self.selection.current_id
        if selected_id is None:
            return None
        feature = self.store.collection.by_id(selected_id)
        if feature is None:
            return unavailable_detail(selected_id)
        return build_detail(feature).to_dict()

    # ═══════════════════════════════════════════════════════════════════════
    # 🪟 PANEL PASSTHROUGHS
    # ═══════════════════════════════════════════════════════════════════════

    def open_search(self) -> None:
        self.panel.open_search()

    def set_panel_query(self, text: Optional[str]) -> None:
        self.panel.set_query(text)

    def dismiss_suggestions(self) -> None:
        self.panel.dismiss_suggestions()

    def panel_suggestions(self) -> List[Feature]:
        return self.panel.suggestions(self.store.collection)

    def toggle_panel(self) -> bool:
        return self.panel.toggle_expanded()

    def pointer_down(
        self, x: float, y: float, target: Optional[str] = None,
        layout: Optional[LayoutContext] = None,
    ) -> bool:
        return self.panel.pointer_down(x, y, target, self.set_layout(layout))

    def pointer_move(self, x: float, y: float) -> Tuple[float, float]:
        return self.panel.pointer_move(x, y)

    def pointer_up(self) -> DragPhase:
        return self.panel.pointer_up()

    def swipe(
        self, start_y: float, end_y: float, layout: Optional[LayoutContext] = None
    ) -> PanelAction:
        action = self.panel.swipe(start_y, end_y, self.set_layout(layout))
        if action == PanelAction.CLOSE:
            self.close_panel()
        return action

    def touch_start(self, y: float) -> None:
        self.panel.touch_start(y)

    def touch_end(self, y: float, layout: Optional[LayoutContext] = None) -> PanelAction:
        action = self.panel.touch_end(y, self.set_layout(layout))
        if action == PanelAction.CLOSE:
            self.close_panel()
        return action

    # ═══════════════════════════════════════════════════════════════════════
    # 🗺️ MAP SURFACE
    # ═══════════════════════════════════════════════════════════════════════

    @property
    def sidebar_open(self) -> bool:
        if self._sidebar_open is None:
            return not self._layout.is_compact
        return self._sidebar_open

    def set_sidebar_open(self, is_open: bool) -> bool:
        """Open/close the sidebar; a change schedules a map size invalidation."""
        if self.sidebar_open == bool(is_open):
            self._sidebar_open = bool(is_open)
            return False
        self._sidebar_open = bool(is_open)
        self._emit(self.viewport.on_layout_changed())
        return True

    @property
    def map_layer(self) -> str:
        return self._map_layer

    def toggle_map_layer(self) -> str:
        names = list(self.config.map_layer_names) or [self._map_layer]
        index = names.index(self._map_layer) if self._map_layer in names else -1
        self._map_layer = names[(index + 1) % len(names)]
        return self._map_layer

    def markers(self) -> List[MarkerDescriptor]:
        """
        Markers for the visible view.

        The selected feature is always drawn, even when the active filter
        hides it from the list.
        """
        features = self.visible_features()
        selected_id = self.selection.current_id
        if selected_id is not None and all(f.id != selected_id for f in features):
            selected = self.store.collection.by_id(selected_id)
            if selected is not None:
                features.append(selected)
        return [
            present_marker(
                feature,
                is_selected=feature.id == selected_id,
                map_layer=self._map_layer,
                config=self.config.markers,
            )
            for feature in features
        ]

    # ═══════════════════════════════════════════════════════════════════════
    # 📸 SNAPSHOT
    # ═══════════════════════════════════════════════════════════════════════

    def snapshot(self) -> Dict[str, Any]:
        """Complete UI-facing state for one render pass."""
        return {
            "data": self.store.get_data_info(),
            "query": self._query,
            "filters": self._predicates.as_dict(),
            "selectedId": self.selection.current_id,
            "detail": self.current_detail(),
            "panel": self.panel.state().to_dict(),
            "sidebarOpen": self.sidebar_open,
            "mapLayer": self._map_layer,
            "isCompact": self._layout.is_compact,
            "viewport": {
                "hasInitialFit": self.viewport.has_initial_fit,
                "resetTrigger": self.viewport.reset_trigger,
            },
        }
