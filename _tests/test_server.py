#!/usr/bin/env python3
"""
Flask API Tests

Exercises the JSON routes with app.test_client() and a fake HTTP session
behind the data loader and the insights client.

Run with: python -m pytest _tests/test_server.py -v
"""

import pytest

from coop_atlas import server
from coop_atlas.viz_config_types import VizConfig

FEATURES_URL = "https://example.test/cooperatives.geojson"
PROVINCE_URL = "https://example.test/province.geojson"
INSIGHTS_URL = "https://example.test/generate"


# ============================================================================
# FIXTURES
# ============================================================================


@pytest.fixture
def config():
    return VizConfig.from_dict(
        {
            "data_sources": {"features_url": FEATURES_URL, "province_url": PROVINCE_URL},
            "insights": {"endpoint_url": INSIGHTS_URL},
        }
    )


@pytest.fixture
def client(config, fake_http, sample_payload, province_payload):
    fake_http.routes = {
        FEATURES_URL: sample_payload,
        PROVINCE_URL: province_payload,
        INSIGHTS_URL: {"text": "## Diagnostic Global"},
    }
    assert server.initialize_services(config, http=fake_http) is True
    server.app.config["TESTING"] = True
    with server.app.test_client() as test_client:
        yield test_client


def _kinds(response):
    return [c["kind"] for c in response.get_json()["commands"]]


# ============================================================================
# DATA ROUTES
# ============================================================================


class TestDataRoutes:
    def test_not_initialized(self, monkeypatch):
        monkeypatch.setattr(server, "session", None)
        with server.app.test_client() as test_client:
            response = test_client.get("/api/data/info")
        assert response.status_code == 500
        assert response.get_json() == {"error": "Server not initialized"}

    def test_config(self, client):
        body = client.get("/api/config").get_json()
        assert set(body["mapLayers"]) == {"standard", "satellite"}
        assert body["layout"]["compact_breakpoint_px"] == 768

    def test_data_info(self, client):
        body = client.get("/api/data/info").get_json()
        assert body["status"] == "ready"
        assert body["overlays"] == {"province": True, "communes": False}

    def test_features(self, client):
        body = client.get("/api/features").get_json()
        assert body["total"] == 3
        assert [f["id"] for f in body["features"]] == ["c2", "c3", "c1"]
        assert len(body["markers"]) == 3

    def test_filters(self, client):
        response = client.post("/api/filters", json={"filters": {"commune": "A"}, "query": "coop"})
        assert response.get_json()["count"] == 2
        ids = [f["id"] for f in client.get("/api/features").get_json()["features"]]
        assert ids == ["c3", "c1"]

        reset = client.post("/api/filters/reset").get_json()
        assert reset["count"] == 3

    def test_invalid_filter_dimension(self, client):
        response = client.post("/api/filters", json={"filters": {"colour": "red"}})
        assert response.status_code == 400

    def test_filter_options(self, client):
        body = client.get("/api/filters/options").get_json()
        assert body["communes"] == ["A", "B"]
        assert body["secteurs"] == ["Apiculture", "Artisanat"]

    def test_boundaries(self, client):
        assert client.get("/api/boundaries/province").status_code == 200
        assert client.get("/api/boundaries/communes").status_code == 404
        assert client.get("/api/boundaries/roads").status_code == 404

    def test_stats(self, client):
        client.post("/api/filters", json={"filters": {"commune": "B"}})
        assert client.get("/api/stats").get_json()["total"] == 1
        assert client.get("/api/stats?scope=all").get_json()["total"] == 3

    def test_manual_refresh(self, client, fake_http):
        before = len(fake_http.calls)
        body = client.post("/api/refresh").get_json()
        assert body["ok"] is True
        assert [url for _, url, _ in fake_http.calls[before:]] == [FEATURES_URL]


# ============================================================================
# SELECTION & VIEWPORT ROUTES
# ============================================================================


class TestSelectionRoutes:
    def test_bootstrap_fit_pending(self, client):
        commands = client.get("/api/viewport/commands").get_json()["commands"]
        fits = [c for c in commands if c["kind"] == "fit_bounds"]
        assert len(fits) == 1
        assert fits[0]["duration"] == 0.0
        assert client.get("/api/viewport/commands").get_json()["commands"] == []

    def test_select_and_close(self, client):
        client.get("/api/viewport/commands")
        response = client.post(
            "/api/selection", json={"id": "c1", "source": "marker", "viewportWidth": 1280}
        )
        assert response.status_code == 200
        assert _kinds(response) == ["fly_to"]
        state = response.get_json()["state"]
        assert state["selectedId"] == "c1"
        assert state["detail"]["name"] == "Zahra Coop"

        closed = client.delete("/api/selection").get_json()
        assert closed["state"]["selectedId"] is None
        assert closed["state"]["panel"]["mode"] == "hidden"

    def test_compact_selection_closes_sidebar(self, client):
        client.post("/api/sidebar", json={"open": True, "viewportWidth": 375})
        response = client.post("/api/selection", json={"id": "c2", "viewportWidth": 375})
        assert response.get_json()["state"]["sidebarOpen"] is False
        assert "invalidate_size" in _kinds(response)

    def test_unknown_and_missing_id(self, client):
        assert client.post("/api/selection", json={"id": "nope"}).status_code == 404
        assert client.post("/api/selection", json={}).status_code == 400

    def test_home(self, client):
        client.get("/api/viewport/commands")
        response = client.post("/api/viewport/home", json={"viewportWidth": 1280})
        (command,) = response.get_json()["commands"]
        assert command["kind"] == "fit_bounds"
        assert command["animate"] is True
        assert response.get_json()["state"]["viewport"]["resetTrigger"] == 1

    def test_sidebar_validation(self, client):
        assert client.post("/api/sidebar", json={"open": "yes"}).status_code == 400

    def test_non_numeric_viewport_width_rejected(self, client):
        bad = {"viewportWidth": "abc"}
        assert client.post("/api/selection", json={"id": "c1", **bad}).status_code == 400
        assert client.post("/api/viewport/home", json=bad).status_code == 400
        assert client.post("/api/sidebar", json={"open": True, **bad}).status_code == 400
        assert client.post("/api/panel/swipe",
                           json={"startY": 1, "endY": 2, **bad}).status_code == 400
        assert client.post("/api/panel/pointer",
                           json={"phase": "down", "x": 1, "y": 1, **bad}).status_code == 400
        assert client.get("/api/selection").get_json()["selectedId"] is None

    def test_map_layer(self, client):
        body = client.post("/api/map-layer").get_json()
        assert body["mapLayer"] == "satellite"
        assert {m["variant"] for m in body["markers"]} == {"satellite"}


# ============================================================================
# PANEL ROUTES
# ============================================================================


class TestPanelRoutes:
    def test_drag_is_sticky(self, client):
        client.post("/api/panel/pointer",
                    json={"phase": "down", "x": 10, "y": 10, "target": "div", "viewportWidth": 1280})
        client.post("/api/panel/pointer", json={"phase": "move", "x": 50, "y": -10})
        up = client.post("/api/panel/pointer", json={"phase": "up"}).get_json()
        assert up["ended"] == "dragging"
        assert up["screenOffset"] == {"x": 40.0, "y": -20.0}

        client.post("/api/selection", json={"id": "c3"})
        client.delete("/api/selection")
        assert client.get("/api/panel").get_json()["screenOffset"] == {"x": 40.0, "y": -20.0}

    def test_pointer_validation(self, client):
        assert client.post("/api/panel/pointer", json={"phase": "down"}).status_code == 400
        assert client.post("/api/panel/pointer", json={"phase": "hover"}).status_code == 400

    def test_search_suggestions(self, client):
        client.post("/api/panel/search/open")
        body = client.post("/api/panel/search/query", json={"query": "be"}).get_json()
        assert [f["id"] for f in body["suggestions"]] == ["c3"]

    def test_toggle_and_swipe(self, client):
        client.post("/api/selection", json={"id": "c1", "viewportWidth": 375})
        assert client.post("/api/panel/toggle").get_json()["isExpanded"] is True
        swipe = client.post("/api/panel/swipe",
                            json={"startY": 100, "endY": 200, "viewportWidth": 375}).get_json()
        assert swipe["action"] == "collapse"
        assert client.post("/api/panel/swipe", json={"startY": 1}).status_code == 400


# ============================================================================
# INSIGHTS
# ============================================================================


class TestInsightsRoute:
    def test_open_and_close(self, client):
        body = client.post("/api/insights", json={"action": "open"}).get_json()
        assert body["status"] == "ready"
        assert body["text"] == "## Diagnostic Global"
        assert client.post("/api/insights", json={"action": "close"}).get_json()["isOpen"] is False

    def test_unknown_action(self, client):
        assert client.post("/api/insights", json={"action": "dance"}).status_code == 400
