#!/usr/bin/env python3
"""
Viewport Controller Tests

Tests:
1. Bootstrap fit fires instantly exactly once, late boundary only stored
2. Home action: animated fit, monotonically increasing reset trigger
3. Fly-to with device-dependent southward offset
4. Non-point and malformed geometries never fly
5. Layout changes schedule a delayed size invalidation

Run with: python -m pytest _tests/test_viewport.py -v
"""

import pytest

from coop_atlas.dashboard import DashboardSession
from coop_atlas.data_loader import FetchResult
from coop_atlas.models import Feature, LatLngBounds, LayoutContext
from coop_atlas.viewport import (
    FIT_BOUNDS,
    FLY_TO,
    INVALIDATE_SIZE,
    ViewportController,
    compute_fit_bounds,
    offset_center,
)
from coop_atlas.viz_config_types import VizConfig

WIDE = LayoutContext.from_width(1440)
COMPACT = LayoutContext.from_width(390)

# Approximate metres per degree of latitude around 35°N
METRES_PER_DEG_LAT = 110_950.0


# ============================================================================
# FIXTURES
# ============================================================================


@pytest.fixture
def session():
    return DashboardSession(VizConfig.defaults())


@pytest.fixture
def features_result(sample_payload):
    return FetchResult("features", seq=1, ok=True, payload=sample_payload)


@pytest.fixture
def province_result(province_payload):
    return FetchResult("province", seq=2, ok=True, payload=province_payload)


# ============================================================================
# BOOTSTRAP & RESET
# ============================================================================


class TestBootstrapFit:
    """One instant fit per session."""

    def test_late_boundary_does_not_refit(self, session, features_result, province_result):
        session.apply_fetch_result(features_result)
        commands = session.drain_commands()
        assert len(commands) == 1
        fit = commands[0]
        assert fit.kind == FIT_BOUNDS
        assert fit.duration_s == 0.0
        assert fit.animate is False
        assert fit.bounds == LatLngBounds(south=34.90, west=-3.40, north=35.10, east=-3.20)

        session.apply_fetch_result(province_result)
        assert session.drain_commands() == []
        assert session.viewport.has_initial_fit is True
        assert session.viewport.stored_bounds == LatLngBounds(
            south=34.5, west=-4.0, north=35.4, east=-2.8
        )

    def test_boundary_first_frames_province(self, session, features_result, province_result):
        session.apply_fetch_result(province_result)
        (fit,) = session.drain_commands()
        assert fit.bounds.west == -4.0
        session.apply_fetch_result(features_result)
        assert session.drain_commands() == []

    def test_refresh_does_not_refit(self, session, sample_payload, features_result):
        session.apply_fetch_result(features_result)
        session.drain_commands()
        session.apply_fetch_result(FetchResult("features", seq=5, ok=True, payload=sample_payload))
        assert session.drain_commands() == []

    def test_selection_suppresses_bootstrap(self, session, sample_payload, province_result):
        session.store.apply_features(sample_payload, seq=1)
        session.select_from_list("c1", WIDE)
        session.drain_commands()
        session.apply_fetch_result(province_result)
        assert session.drain_commands() == []
        assert session.viewport.has_initial_fit is False

    def test_empty_collection_no_fit(self, session):
        empty = FetchResult("features", seq=1, ok=True,
                            payload={"type": "FeatureCollection", "features": []})
        session.apply_fetch_result(empty)
        assert session.drain_commands() == []

    def test_compact_padding(self, session, features_result):
        session.set_layout(COMPACT)
        session.apply_fetch_result(features_result)
        (fit,) = session.drain_commands()
        assert fit.padding == 20


class TestHomeReset:
    """Explicit home action."""

    def test_home_is_animated_and_counts(self, session, features_result, province_result):
        session.apply_fetch_result(features_result)
        session.apply_fetch_result(province_result)
        session.drain_commands()

        session.go_home(WIDE)
        (fit,) = session.drain_commands()
        assert fit.kind == FIT_BOUNDS
        assert fit.animate is True
        assert fit.duration_s > 0
        assert fit.bounds.north == 35.4
        assert fit.padding == 50
        assert session.viewport.reset_trigger == 1

        session.go_home(WIDE)
        assert len(session.drain_commands()) == 1
        assert session.viewport.reset_trigger == 2

    def test_home_clears_selection(self, session, features_result):
        session.apply_fetch_result(features_result)
        session.select_from_list("c2", WIDE)
        session.go_home(WIDE)
        assert session.selection.current() is None

    def test_home_without_bounds(self):
        controller = ViewportController()
        assert controller.request_reset(None, WIDE) == []
        assert controller.reset_trigger == 1

    def test_compute_fit_bounds_prefers_province(self):
        province = LatLngBounds(0, 0, 1, 1)
        features = LatLngBounds(2, 2, 3, 3)
        assert compute_fit_bounds(province, features) is province
        assert compute_fit_bounds(None, features) is features
        assert compute_fit_bounds(None, None) is None


# ============================================================================
# FLY-TO
# ============================================================================


class TestFlyTo:
    """Animated zoom on a selected point."""

    def test_wide_offset(self, make_feature):
        controller = ViewportController()
        (command,) = controller.on_selection_changed(
            make_feature("x", "X", lon=-3.3, lat=35.0), WIDE
        )
        lat, lon = command.center
        assert command.kind == FLY_TO
        assert command.zoom == 16
        assert command.duration_s == 1.2
        assert command.ease_linearity == 0.25
        assert lon == pytest.approx(-3.3)
        assert lat == pytest.approx(35.0 - 120 / METRES_PER_DEG_LAT, abs=2e-5)

    def test_compact_offset_larger(self, make_feature):
        controller = ViewportController()
        feature = make_feature("x", "X", lon=-3.3, lat=35.0)
        (wide,) = controller.on_selection_changed(feature, WIDE)
        (compact,) = controller.on_selection_changed(feature, COMPACT)
        assert compact.center[0] < wide.center[0] < 35.0

    def test_offset_center_zero(self):
        assert offset_center(-3.3, 35.0, 0) == (35.0, -3.3)

    def test_non_point_does_not_fly(self):
        polygon = Feature(
            id="p",
            geometry={"type": "Polygon", "coordinates": [[[0, 0], [1, 0], [1, 1], [0, 0]]]},
        )
        assert ViewportController().on_selection_changed(polygon, WIDE) == []

    def test_malformed_point_does_not_fly(self):
        broken = Feature(id="b", geometry={"type": "Point", "coordinates": ["x", None]})
        assert ViewportController().on_selection_changed(broken, WIDE) == []

    def test_selection_through_session_emits_fly_to(self, session, features_result):
        session.apply_fetch_result(features_result)
        session.drain_commands()
        session.select_from_marker("c3", WIDE)
        (command,) = session.drain_commands()
        assert command.to_dict()["kind"] == "fly_to"
        assert command.to_dict()["zoom"] == 16


class TestLayoutInvalidation:
    def test_sidebar_toggle_invalidates_size(self, session):
        session.set_sidebar_open(False)
        (command,) = session.drain_commands()
        assert command.kind == INVALIDATE_SIZE
        assert command.delay_ms == 300

    def test_unchanged_sidebar_emits_nothing(self, session):
        session.set_sidebar_open(True)
        assert session.drain_commands() == []
