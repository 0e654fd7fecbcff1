"""
Shared fixtures for the cooperative atlas tests.

No test touches the network: HTTP goes through FakeHttp, a minimal
requests.Session stand-in keyed by URL.
"""

from typing import Any, Dict, List, Optional, Tuple

import pytest
import requests

from coop_atlas.models import Feature


# ============================================================================
# FAKE HTTP
# ============================================================================

INVALID_JSON = object()


class FakeResponse:
    def __init__(self, payload: Any = None, status_code: int = 200) -> None:
        self.payload = payload
        self.status_code = status_code

    def raise_for_status(self) -> None:
        if self.status_code >= 400:
            raise requests.HTTPError(f"{self.status_code} Error")

    def json(self) -> Any:
        if self.payload is INVALID_JSON:
            raise ValueError("Expecting value: line 1 column 1 (char 0)")
        return self.payload


class FakeHttp:
    """Routes GET/POST by URL to canned responses or exceptions."""

    def __init__(self, routes: Optional[Dict[str, Any]] = None) -> None:
        self.routes: Dict[str, Any] = dict(routes or {})
        self.calls: List[Tuple[str, str, Dict[str, Any]]] = []

    def _respond(self, url: str) -> FakeResponse:
        route = self.routes.get(url)
        if isinstance(route, Exception):
            raise route
        if isinstance(route, FakeResponse):
            return route
        if route is None:
            return FakeResponse({"error": "not found"}, status_code=404)
        return FakeResponse(route)

    def get(self, url: str, **kwargs: Any) -> FakeResponse:
        self.calls.append(("GET", url, kwargs))
        return self._respond(url)

    def post(self, url: str, **kwargs: Any) -> FakeResponse:
        self.calls.append(("POST", url, kwargs))
        return self._respond(url)


# ============================================================================
# FIXTURES
# ============================================================================


def point_feature(
    feature_id: str,
    name: Optional[str] = None,
    lon: float = -3.38,
    lat: float = 34.98,
    **properties: Any,
) -> Dict[str, Any]:
    """Raw GeoJSON point feature as served by the data source."""
    props = dict(properties)
    if name is not None:
        props["Nom de coopérative"] = name
    return {
        "type": "Feature",
        "id": feature_id,
        "geometry": {"type": "Point", "coordinates": [lon, lat]},
        "properties": props,
    }


@pytest.fixture
def fake_http():
    return FakeHttp()


@pytest.fixture
def make_feature():
    """Factory for Feature objects with a point geometry."""

    def _make(
        feature_id: str,
        name: Optional[str] = None,
        lon: float = -3.38,
        lat: float = 34.98,
        **properties: Any,
    ) -> Feature:
        raw = point_feature(feature_id, name, lon, lat, **properties)
        return Feature(id=feature_id, geometry=raw["geometry"], properties=raw["properties"])

    return _make


@pytest.fixture
def sample_payload():
    """Three cooperatives in two communes, as a FeatureCollection payload."""
    return {
        "type": "FeatureCollection",
        "features": [
            point_feature("c1", "Zahra Coop", -3.40, 34.90, Commune="A",
                          **{"Filière d'activité": "Apiculture", "Nombre des adhérents": 12,
                             "Nombre des femmes": 7, "Nombre des jeunes": 3}),
            point_feature("c2", "Alpha Coop", -3.30, 35.00, Commune="B",
                          **{"Filière d'activité": "Artisanat", "Nombre des adherents": "8",
                             "Nombre des femmes": 8}),
            point_feature("c3", "Beta Coop", -3.20, 35.10, Commune="A",
                          **{"Filière d'activité": "Apiculture", "Nombre des adhérents": 5}),
        ],
    }


@pytest.fixture
def province_payload():
    return {
        "type": "FeatureCollection",
        "features": [
            {
                "type": "Feature",
                "properties": {"name": "Driouch"},
                "geometry": {
                    "type": "Polygon",
                    "coordinates": [
                        [[-4.0, 34.5], [-2.8, 34.5], [-2.8, 35.4], [-4.0, 35.4], [-4.0, 34.5]]
                    ],
                },
            }
        ],
    }


@pytest.fixture
def fake_response():
    """FakeResponse class, for routes with a status code or broken JSON."""
    return FakeResponse


@pytest.fixture
def invalid_json():
    return INVALID_JSON


@pytest.fixture
def raw_point():
    """Factory for raw GeoJSON point features."""
    return point_feature
