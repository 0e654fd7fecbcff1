#!/usr/bin/env python3
"""
Cooperative Atlas - Flask Server

ARCHITECTURAL OVERVIEW:
=======================
Responsibility: Lightweight Flask server exposing the dashboard session as a
JSON API for the Leaflet front end.

Key Interactions:
- Fetches the cooperative collection and boundary overlays at startup
- Re-fetches the collection on a timer and on manual refresh
- Every UI event (filter, pick, drag, swipe, home...) is applied to the
  DashboardSession under one lock, so each event is fully processed before
  the next one starts
- Camera instructions are returned as MapCommand dicts for the browser

Navigation Guide:
- ROUTES: API endpoints (/api/features, /api/selection, /api/panel/...)
- STARTUP: initialize_services(), start_refresher(), main()

For Navigation: Use VS Code outline (Ctrl+Shift+O)
"""

import logging
import threading
from typing import Any, Dict, Optional

import requests
from flask import Flask, jsonify, request
from flask_cors import CORS

from coop_atlas.dashboard import DashboardSession
from coop_atlas.data_loader import OVERLAY_NAMES, FetchResult, RemoteDataLoader
from coop_atlas.insights import InsightsClient, InsightsPanel
from coop_atlas.models import LayoutContext
from coop_atlas.refresh import PeriodicRefresher
from coop_atlas.selection import SelectionSource
from coop_atlas.viz_config_types import VIZ_CONFIG, VizConfig, get_frontend_config

# ═══════════════════════════════════════════════════════════════════════════
# 🔧 CONFIGURATION
# ═══════════════════════════════════════════════════════════════════════════

SERVER_HOST = "127.0.0.1"
SERVER_PORT = 5051

# ═══════════════════════════════════════════════════════════════════════════
# 🌐 FLASK APPLICATION
# ═══════════════════════════════════════════════════════════════════════════

app = Flask(__name__)
CORS(app)

# Global services - initialized on startup
session: Optional[DashboardSession] = None
data_loader: Optional[RemoteDataLoader] = None
insights_panel: Optional[InsightsPanel] = None
refresher: Optional[PeriodicRefresher] = None

# One logical event stream: HTTP events and fetch results never interleave
_event_lock = threading.RLock()
_insights_lock = threading.Lock()

logger = logging.getLogger(__name__)

_NOT_INITIALIZED = {"error": "Server not initialized"}


# ═══════════════════════════════════════════════════════════════════════════
# 🧰 REQUEST HELPERS
# ═══════════════════════════════════════════════════════════════════════════


def _body() -> Dict[str, Any]:
    data = request.get_json(silent=True)
    return data if isinstance(data, dict) else {}


def _layout_from(data: Dict[str, Any]) -> Optional[LayoutContext]:
    """
    Layout read at the moment of the interaction (None = keep last known).

    Raises:
        ValueError: If viewportWidth is present but not numeric
    """
    if data.get("viewportWidth") is None:
        return None
    width = _number(data, "viewportWidth")
    return LayoutContext.from_width(width, session.config.layout.compact_breakpoint_px)


def _number(data: Dict[str, Any], key: str) -> float:
    """
    Raises:
        ValueError: If the key is missing or not numeric
    """
    value = data.get(key)
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise ValueError(f"Missing or invalid {key} in request body")
    return float(value)


def _event_response(**extra: Any):
    """Snapshot + pending map commands, the common reply to a UI event."""
    payload = {
        "state": session.snapshot(),
        "commands": [c.to_dict() for c in session.drain_commands()],
    }
    payload.update(extra)
    return jsonify(payload)


def _apply_result(result: FetchResult) -> None:
    """Sink for data loader results (startup, timer and manual refresh)."""
    with _event_lock:
        session.apply_fetch_result(result)


# ═══════════════════════════════════════════════════════════════════════════
# 🛣️ API ROUTES - DATA
# ═══════════════════════════════════════════════════════════════════════════


@app.route("/api/config")
def get_config() -> Dict[str, Any]:
    """
    Get frontend configuration settings.

    Returns:
        JSON object with all configurable settings for the frontend.
    """
    if session is not None:
        return jsonify(session.config.to_frontend_dict())
    return jsonify(get_frontend_config())


@app.route("/api/data/info")
def get_data_info() -> Dict[str, Any]:
    """
    Get information about loaded data.

    Returns:
        JSON object with status, feature_count, last_updated and overlays.
    """
    if session is None:
        return jsonify(_NOT_INITIALIZED), 500
    with _event_lock:
        return jsonify(session.store.get_data_info())


@app.route("/api/features")
def get_features() -> Dict[str, Any]:
    """
    Get the visible (filtered, ordered) cooperatives with their markers.

    Returns:
        GeoJSON FeatureCollection plus "markers" and "total" (unfiltered count).
    """
    if session is None:
        return jsonify(_NOT_INITIALIZED), 500
    with _event_lock:
        visible = session.visible_features()
        return jsonify(
            {
                "type": "FeatureCollection",
                "features": [f.to_geojson() for f in visible],
                "markers": [m.to_dict() for m in session.markers()],
                "total": len(session.store.collection),
                "status": session.store.status.value,
            }
        )


@app.route("/api/filters", methods=["GET", "POST"])
def update_filters() -> Dict[str, Any]:
    """
    Read or update the search query and categorical filters.

    Request body (POST):
        {"query": "...", "filters": {"commune": "...", "sector": "..."}}
    """
    if session is None:
        return jsonify(_NOT_INITIALIZED), 500
    with _event_lock:
        if request.method == "POST":
            data = _body()
            filters = data.get("filters") or {}
            if not isinstance(filters, dict):
                return jsonify({"error": "filters must be an object"}), 400
            try:
                for dimension, value in filters.items():
                    session.set_filter(dimension, value)
            except ValueError as e:
                return jsonify({"error": str(e)}), 400
            if "query" in data:
                session.set_query(data.get("query"))
        return jsonify(
            {
                "query": session.query,
                "filters": session.predicates.as_dict(),
                "count": len(session.visible_features()),
            }
        )


@app.route("/api/filters/options")
def get_filter_options() -> Dict[str, Any]:
    """Distinct values per filter dimension, from the unfiltered collection."""
    if session is None:
        return jsonify(_NOT_INITIALIZED), 500
    with _event_lock:
        return jsonify(session.filter_options().to_dict())


@app.route("/api/filters/reset", methods=["POST"])
def reset_filters() -> Dict[str, Any]:
    if session is None:
        return jsonify(_NOT_INITIALIZED), 500
    with _event_lock:
        session.reset_filters()
        return jsonify(
            {"query": "", "filters": session.predicates.as_dict(),
             "count": len(session.visible_features())}
        )


@app.route("/api/boundaries/<name>")
def get_boundary(name: str) -> Dict[str, Any]:
    """
    Get a boundary overlay (province or communes) as GeoJSON.

    Returns 404 while the overlay is not loaded (absence is a valid state).
    """
    if session is None:
        return jsonify(_NOT_INITIALIZED), 500
    if name not in OVERLAY_NAMES:
        return jsonify({"error": f"Unknown boundary layer: {name}"}), 404
    with _event_lock:
        overlay = session.store.overlay(name)
        if overlay is None:
            return jsonify({"error": f"{name} boundary not available"}), 404
        return jsonify(overlay.data)


@app.route("/api/stats")
def get_stats() -> Dict[str, Any]:
    """Headline counters; ?scope=all ignores the active filters."""
    if session is None:
        return jsonify(_NOT_INITIALIZED), 500
    with _event_lock:
        filtered = request.args.get("scope", "filtered") != "all"
        return jsonify(session.stats(filtered=filtered).to_dict())


@app.route("/api/refresh", methods=["POST"])
def manual_refresh() -> Dict[str, Any]:
    """Re-fetch the cooperative collection now (boundaries are static)."""
    if session is None or data_loader is None:
        return jsonify(_NOT_INITIALIZED), 500
    # Fetch runs outside the event lock; the sink applies the result under it
    result = data_loader.refresh_features(_apply_result)
    with _event_lock:
        return _event_response(ok=result.ok, error=result.error)


# ═══════════════════════════════════════════════════════════════════════════
# 🎯 API ROUTES - SELECTION & VIEWPORT
# ═══════════════════════════════════════════════════════════════════════════


@app.route("/api/selection", methods=["GET", "POST", "DELETE"])
def selection() -> Dict[str, Any]:
    """
    GET: current detail. POST {"id", "source", "viewportWidth"}: select.
    DELETE: close the panel and clear the selection.
    """
    if session is None:
        return jsonify(_NOT_INITIALIZED), 500
    with _event_lock:
        if request.method == "GET":
            return jsonify({"selectedId": session.selection.current_id,
                            "detail": session.current_detail()})
        if request.method == "DELETE":
            session.close_panel()
            return _event_response()

        data = _body()
        if data.get("id") in (None, ""):
            return jsonify({"error": "Missing id in request body"}), 400
        try:
            layout = _layout_from(data)
        except ValueError as e:
            return jsonify({"error": str(e)}), 400
        source = SelectionSource.from_string(data.get("source"))
        feature = session.select_by_id(data["id"], source, layout)
        if feature is None:
            return jsonify({"error": f"Unknown feature id: {data['id']}"}), 404
        return _event_response()


@app.route("/api/viewport/home", methods=["POST"])
def viewport_home() -> Dict[str, Any]:
    if session is None:
        return jsonify(_NOT_INITIALIZED), 500
    try:
        layout = _layout_from(_body())
    except ValueError as e:
        return jsonify({"error": str(e)}), 400
    with _event_lock:
        session.go_home(layout)
        return _event_response()


@app.route("/api/viewport/commands")
def viewport_commands() -> Dict[str, Any]:
    """Drain map commands produced outside a UI event (e.g. data arrival)."""
    if session is None:
        return jsonify(_NOT_INITIALIZED), 500
    with _event_lock:
        return jsonify({"commands": [c.to_dict() for c in session.drain_commands()]})


@app.route("/api/sidebar", methods=["POST"])
def sidebar() -> Dict[str, Any]:
    if session is None:
        return jsonify(_NOT_INITIALIZED), 500
    data = _body()
    if not isinstance(data.get("open"), bool):
        return jsonify({"error": "Missing open (boolean) in request body"}), 400
    try:
        layout = _layout_from(data)
    except ValueError as e:
        return jsonify({"error": str(e)}), 400
    with _event_lock:
        session.set_layout(layout)
        session.set_sidebar_open(data["open"])
        return _event_response()


@app.route("/api/map-layer", methods=["POST"])
def map_layer() -> Dict[str, Any]:
    """Switch to the next base layer (standard <-> satellite)."""
    if session is None:
        return jsonify(_NOT_INITIALIZED), 500
    with _event_lock:
        layer = session.toggle_map_layer()
        return jsonify(
            {"mapLayer": layer, "markers": [m.to_dict() for m in session.markers()]}
        )


# ═══════════════════════════════════════════════════════════════════════════
# 🪟 API ROUTES - OVERLAY PANEL
# ═══════════════════════════════════════════════════════════════════════════


@app.route("/api/panel")
def panel_state() -> Dict[str, Any]:
    if session is None:
        return jsonify(_NOT_INITIALIZED), 500
    with _event_lock:
        return jsonify(session.panel.state().to_dict())


@app.route("/api/panel/search/open", methods=["POST"])
def panel_open_search() -> Dict[str, Any]:
    if session is None:
        return jsonify(_NOT_INITIALIZED), 500
    with _event_lock:
        session.open_search()
        return _event_response()


@app.route("/api/panel/search/query", methods=["POST"])
def panel_search_query() -> Dict[str, Any]:
    """Update the panel search text and return the autocomplete suggestions."""
    if session is None:
        return jsonify(_NOT_INITIALIZED), 500
    data = _body()
    with _event_lock:
        session.set_panel_query(data.get("query"))
        suggestions = session.panel_suggestions()
        return jsonify(
            {
                "query": session.panel.state().search_query,
                "suggestions": [f.to_geojson() for f in suggestions],
            }
        )


@app.route("/api/panel/search/dismiss", methods=["POST"])
def panel_dismiss_suggestions() -> Dict[str, Any]:
    if session is None:
        return jsonify(_NOT_INITIALIZED), 500
    with _event_lock:
        session.dismiss_suggestions()
        return jsonify(session.panel.state().to_dict())


@app.route("/api/panel/toggle", methods=["POST"])
def panel_toggle() -> Dict[str, Any]:
    if session is None:
        return jsonify(_NOT_INITIALIZED), 500
    with _event_lock:
        session.toggle_panel()
        return jsonify(session.panel.state().to_dict())


@app.route("/api/panel/pointer", methods=["POST"])
def panel_pointer() -> Dict[str, Any]:
    """
    Pointer drag on wide layouts.

    Request body:
        {"phase": "down"|"move"|"up", "x", "y", "target", "viewportWidth"}
    """
    if session is None:
        return jsonify(_NOT_INITIALIZED), 500
    data = _body()
    phase = data.get("phase")
    with _event_lock:
        try:
            if phase == "down":
                accepted = session.pointer_down(
                    _number(data, "x"), _number(data, "y"),
                    data.get("target"), _layout_from(data),
                )
                return jsonify({"accepted": accepted, **session.panel.state().to_dict()})
            if phase == "move":
                session.pointer_move(_number(data, "x"), _number(data, "y"))
                return jsonify(session.panel.state().to_dict())
        except ValueError as e:
            return jsonify({"error": str(e)}), 400
        if phase == "up":
            ended = session.pointer_up()
            return jsonify({"ended": ended.value, **session.panel.state().to_dict()})
    return jsonify({"error": f"Unknown pointer phase: {phase}"}), 400


@app.route("/api/panel/swipe", methods=["POST"])
def panel_swipe() -> Dict[str, Any]:
    """Vertical swipe on the panel handle (compact layouts)."""
    if session is None:
        return jsonify(_NOT_INITIALIZED), 500
    data = _body()
    try:
        start_y, end_y = _number(data, "startY"), _number(data, "endY")
        layout = _layout_from(data)
    except ValueError as e:
        return jsonify({"error": str(e)}), 400
    with _event_lock:
        action = session.swipe(start_y, end_y, layout)
        return _event_response(action=action.value)


# ═══════════════════════════════════════════════════════════════════════════
# 🧠 API ROUTES - AI INSIGHTS
# ═══════════════════════════════════════════════════════════════════════════


@app.route("/api/insights", methods=["GET", "POST"])
def insights() -> Dict[str, Any]:
    """
    AI analysis of the filtered cooperatives.

    Request body (POST): {"action": "open"|"generate"|"close"}
    """
    if session is None or insights_panel is None:
        return jsonify(_NOT_INITIALIZED), 500
    if request.method == "GET":
        return jsonify(insights_panel.state().to_dict())

    action = _body().get("action", "open")
    if action not in ("open", "generate", "close"):
        return jsonify({"error": f"Unknown insights action: {action}"}), 400
    with _event_lock:
        features = session.visible_features()
    # External call runs outside the event lock
    with _insights_lock:
        if action == "close":
            state = insights_panel.close()
        elif action == "generate":
            state = insights_panel.generate(features)
        else:
            state = insights_panel.open(features)
    return jsonify(state.to_dict())


# ═══════════════════════════════════════════════════════════════════════════
# 🚀 STARTUP
# ═══════════════════════════════════════════════════════════════════════════


def initialize_services(
    config: Optional[VizConfig] = None,
    http: Optional[requests.Session] = None,
    fetch: bool = True,
) -> bool:
    """
    Initialize the dashboard session, data loader and insights panel.

    Args:
        config: Configuration (defaults to VIZ_CONFIG)
        http: requests-compatible session (injected in tests)
        fetch: Run the initial fetch of features and overlays

    Returns:
        True if initialization successful, False otherwise.
    """
    global session, data_loader, insights_panel

    config = config or VIZ_CONFIG
    try:
        logger.info(f"🚀 Initializing services from: {config.data_sources.features_url}")
        session = DashboardSession(config)
        data_loader = RemoteDataLoader(config.data_sources, http=http)
        insights_panel = InsightsPanel(
            InsightsClient(config.insights, http=http),
            sample_size=config.insights.sample_size,
        )
        if fetch:
            data_loader.refresh_all(_apply_result)
        logger.info(f"✅ Session ready ({session.store.status.value})")
        return True

    except Exception as e:
        logger.error(f"❌ Failed to initialize services: {e}")
        return False


def start_refresher() -> PeriodicRefresher:
    """Start the periodic re-fetch of features and overlays."""
    global refresher

    if data_loader is None:
        raise RuntimeError("initialize_services() must run before start_refresher()")
    if refresher is None:
        refresher = PeriodicRefresher(
            lambda: data_loader.refresh_all(_apply_result),
            data_loader.config.refresh_interval_s,
        )
    refresher.start()
    return refresher


def stop_refresher() -> None:
    if refresher is not None:
        refresher.stop()


def main() -> None:
    """Main entry point - initialize and start server."""
    import sys

    logging.basicConfig(level=logging.INFO, format="%(levelname)s:%(name)s:%(message)s")

    if not initialize_services():
        logger.error("Failed to initialize. Check the data source configuration.")
        sys.exit(1)

    start_refresher()
    logger.info(f"🌐 Starting server at http://{SERVER_HOST}:{SERVER_PORT}")
    try:
        # Reloader off: one refresh timer per process
        app.run(host=SERVER_HOST, port=SERVER_PORT, debug=False)
    finally:
        stop_refresher()


if __name__ == "__main__":
    main()
