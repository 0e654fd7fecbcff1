#!/usr/bin/env python3
"""
Data Loader, Feature Store & Periodic Refresh Tests

Tests:
1. Identifier assignment while parsing a FeatureCollection
2. Store status transitions (LOADING -> READY | NO_DATA)
3. Stale responses are discarded by sequence number
4. Partial success across the three resources
5. Periodic refresh lifecycle

Run with: python -m pytest _tests/test_data_loader.py -v
"""

import threading

import pytest
import requests

from coop_atlas.data_loader import (
    FeatureStore,
    FetchResult,
    RemoteDataLoader,
    parse_feature_collection,
)
from coop_atlas.models import StoreStatus
from coop_atlas.refresh import PeriodicRefresher
from coop_atlas.viz_config_types import DataSourceConfig

FEATURES_URL = "https://example.test/cooperatives.geojson"
PROVINCE_URL = "https://example.test/province.geojson"
COMMUNES_URL = "https://example.test/communes.geojson"


# ============================================================================
# FIXTURES
# ============================================================================


@pytest.fixture
def source_config():
    return DataSourceConfig(
        features_url=FEATURES_URL,
        province_url=PROVINCE_URL,
        communes_url=COMMUNES_URL,
        timeout_s=5.0,
    )


@pytest.fixture
def store():
    return FeatureStore()


# ============================================================================
# PARSING
# ============================================================================


class TestParseFeatureCollection:
    """Identifier assignment and tolerance to malformed entries."""

    def test_identifier_sources(self):
        payload = {
            "type": "FeatureCollection",
            "features": [
                {"id": "a", "properties": {}},
                {"properties": {"id": 7}},
                {"properties": {"FID": 3.0}},
                {"properties": {}},
                {"id": "a", "properties": {}},
            ],
        }
        collection = parse_feature_collection(payload, revision=4)
        assert [f.id for f in collection] == ["a", "7", "3", "feature-3", "feature-4"]
        assert collection.revision == 4

    def test_identifiers_unique(self):
        payload = {"features": [{"id": "x"}, {"id": "x"}, {"id": "feature-1"}]}
        ids = [f.id for f in parse_feature_collection(payload)]
        assert len(ids) == len(set(ids))

    def test_malformed_entries(self):
        payload = {"features": ["not a feature", {"id": "ok", "properties": None, "geometry": "bad"}]}
        collection = parse_feature_collection(payload)
        assert len(collection) == 1
        feature = collection.by_id("ok")
        assert feature.properties == {}
        assert feature.coordinates is None

    def test_by_id_accepts_numbers(self):
        collection = parse_feature_collection({"features": [{"id": 12}]})
        assert collection.by_id(12).id == "12"
        assert collection.by_id("missing") is None


# ============================================================================
# FEATURE STORE
# ============================================================================


class TestFeatureStore:
    """Status transitions and stale-response protection."""

    def test_initial_state(self, store):
        assert store.status == StoreStatus.LOADING
        assert len(store.collection) == 0
        assert store.overlay("province") is None

    def test_first_failure_is_no_data(self, store):
        store.apply(FetchResult("features", seq=1, ok=False, error="503"))
        assert store.status == StoreStatus.NO_DATA
        assert len(store.collection) == 0

    def test_failure_keeps_previous_collection(self, store, sample_payload):
        store.apply(FetchResult("features", seq=1, ok=True, payload=sample_payload))
        store.apply(FetchResult("features", seq=2, ok=False, error="timeout"))
        assert store.status == StoreStatus.READY
        assert len(store.collection) == 3

    def test_recovers_after_no_data(self, store, sample_payload):
        store.mark_features_failed(seq=1, error="503")
        assert store.apply_features(sample_payload, seq=2) is True
        assert store.status == StoreStatus.READY
        assert store.last_updated is not None

    def test_stale_response_discarded(self, store, sample_payload, raw_point):
        newer = {"type": "FeatureCollection", "features": [raw_point("n", "Nouvelle")]}
        assert store.apply_features(newer, seq=3) is True
        assert store.apply_features(sample_payload, seq=2) is False
        assert [f.id for f in store.collection] == ["n"]

    def test_revision_increases_on_replace(self, store, sample_payload):
        store.apply_features(sample_payload, seq=1)
        first = store.collection.revision
        store.apply_features(sample_payload, seq=2)
        assert store.collection.revision == first + 1

    def test_overlay_failure_leaves_unset(self, store):
        store.apply(FetchResult("communes", seq=1, ok=False, error="404"))
        assert store.overlay("communes") is None
        assert store.status == StoreStatus.LOADING

    def test_overlay_bounds(self, store, province_payload):
        store.apply_overlay("province", province_payload, seq=1)
        bounds = store.overlay_bounds("province")
        assert (bounds.south, bounds.west, bounds.north, bounds.east) == (34.5, -4.0, 35.4, -2.8)
        assert store.overlay("province").feature_count == 1

    def test_unknown_overlay_rejected(self, store, province_payload):
        with pytest.raises(ValueError):
            store.apply_overlay("roads", province_payload, seq=1)

    def test_data_info(self, store, sample_payload, province_payload):
        store.apply_features(sample_payload, seq=1)
        store.apply_overlay("province", province_payload, seq=2)
        info = store.get_data_info()
        assert info["status"] == "ready"
        assert info["feature_count"] == 3
        assert info["overlays"] == {"province": True, "communes": False}


# ============================================================================
# REMOTE DATA LOADER
# ============================================================================


class TestRemoteDataLoader:
    """requests-based fetching with a fake session."""

    def test_partial_success(
        self, source_config, fake_http, fake_response, invalid_json, sample_payload, store
    ):
        fake_http.routes = {
            FEATURES_URL: sample_payload,
            PROVINCE_URL: fake_response({"error": "boom"}, status_code=500),
            COMMUNES_URL: fake_response(invalid_json),
        }
        loader = RemoteDataLoader(source_config, http=fake_http)
        received = []

        def sink(result):
            received.append(result.resource)
            store.apply(result)

        results = loader.refresh_all(sink)
        assert sorted(received) == ["communes", "features", "province"]
        assert {r.resource: r.ok for r in results} == {
            "features": True, "province": False, "communes": False,
        }
        assert store.status == StoreStatus.READY
        assert store.overlay("province") is None
        assert store.overlay("communes") is None

    def test_network_error(self, source_config, fake_http):
        fake_http.routes = {FEATURES_URL: requests.ConnectionError("unreachable")}
        result = RemoteDataLoader(source_config, http=fake_http).fetch_features()
        assert result.ok is False
        assert "unreachable" in result.error

    def test_not_a_feature_collection(self, source_config, fake_http):
        fake_http.routes = {FEATURES_URL: {"type": "Feature"}}
        assert RemoteDataLoader(source_config, http=fake_http).fetch_features().ok is False

    def test_manual_refresh_fetches_features_only(self, source_config, fake_http, sample_payload):
        fake_http.routes = {FEATURES_URL: sample_payload}
        loader = RemoteDataLoader(source_config, http=fake_http)
        results = []
        loader.refresh_features(results.append)
        assert [url for _, url, _ in fake_http.calls] == [FEATURES_URL]
        assert results[0].ok is True

    def test_unconfigured_overlays_not_requested(self, fake_http, sample_payload):
        fake_http.routes = {FEATURES_URL: sample_payload}
        loader = RemoteDataLoader(DataSourceConfig(features_url=FEATURES_URL), http=fake_http)
        results = loader.refresh_all(lambda r: None)
        assert [r.resource for r in results] == ["features"]
        assert loader.fetch_overlay("province").error == "no URL configured"

    def test_sequence_numbers_increase(self, source_config, fake_http, sample_payload):
        fake_http.routes = {FEATURES_URL: sample_payload}
        loader = RemoteDataLoader(source_config, http=fake_http)
        first = loader.fetch_features()
        second = loader.fetch_features()
        assert second.seq > first.seq

    def test_timeout_passed(self, source_config, fake_http, sample_payload):
        fake_http.routes = {FEATURES_URL: sample_payload}
        RemoteDataLoader(source_config, http=fake_http).fetch_features()
        assert fake_http.calls[0][2]["timeout"] == 5.0


# ============================================================================
# PERIODIC REFRESH
# ============================================================================


class TestPeriodicRefresher:
    """Re-arming timer with explicit start/stop."""

    def test_runs_repeatedly_until_stopped(self):
        calls = []
        done = threading.Event()

        def tick():
            calls.append(1)
            if len(calls) >= 3:
                done.set()

        refresher = PeriodicRefresher(tick, interval_s=0.01)
        refresher.start()
        assert done.wait(timeout=5)
        refresher.stop()
        assert refresher.is_running is False
        assert len(calls) >= 3

    def test_failing_callback_keeps_schedule(self):
        calls = []
        done = threading.Event()

        def tick():
            calls.append(1)
            if len(calls) >= 2:
                done.set()
            raise RuntimeError("fetch exploded")

        refresher = PeriodicRefresher(tick, interval_s=0.01)
        refresher.start()
        assert done.wait(timeout=5)
        refresher.stop()

    def test_start_is_idempotent(self):
        refresher = PeriodicRefresher(lambda: None, interval_s=60)
        refresher.start()
        timer = refresher._timer
        refresher.start()
        assert refresher._timer is timer
        refresher.stop()

    def test_invalid_interval(self):
        with pytest.raises(ValueError):
            PeriodicRefresher(lambda: None, interval_s=0)
