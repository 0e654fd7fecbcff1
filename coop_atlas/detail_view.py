"""
Detail view for the selected cooperative.

Resolves every attribute the overlay panel displays, each with its own
placeholder so a sparse record still renders a complete card.
"""

from dataclasses import asdict, dataclass
from typing import Any, Dict, Optional

from coop_atlas.attributes import format_genre, read_count, read_text
from coop_atlas.models import Feature

DEFAULT_PROVINCE = "Driouch"


@dataclass(frozen=True)
class DetailView:
    feature_id: str
    name: str
    sector: str
    members: int
    women: int
    youth: int
    commune: str
    cercle: str
    province: str
    douar: str
    manager: str
    genre: str
    birth_date: str
    education: str
    created: str
    phone: Optional[str]
    phone_href: Optional[str]
    coordinates: Optional[Dict[str, float]]

    def to_dict(self) -> Dict[str, Any]:
        payload = asdict(self)
        payload["available"] = True
        return payload


def build_detail(feature: Feature) -> DetailView:
    p = feature.properties
    phone = read_text(p, "phone") or None
    coords = feature.coordinates
    return DetailView(
        feature_id=feature.id,
        name=read_text(p, "name", "Coopérative"),
        sector=read_text(p, "sector", "Secteur non défini"),
        members=read_count(p, "members"),
        women=read_count(p, "women"),
        youth=read_count(p, "youth"),
        commune=read_text(p, "commune", "---"),
        cercle=read_text(p, "cercle", "---"),
        province=read_text(p, "province", DEFAULT_PROVINCE),
        douar=read_text(p, "douar", "Non renseigné"),
        manager=read_text(p, "manager", "Non mentionné"),
        genre=format_genre(read_text(p, "genre")),
        birth_date=read_text(p, "birth_date", "---"),
        education=read_text(p, "education", "---"),
        created=read_text(p, "created", "Non définie"),
        phone=phone,
        phone_href=f"tel:{phone}" if phone else None,
        coordinates={"lon": coords[0], "lat": coords[1]} if coords else None,
    )


def unavailable_detail(feature_id: Optional[str] = None) -> Dict[str, Any]:
    """Payload rendered when the selected identifier cannot be resolved."""
    return {"available": False, "feature_id": feature_id}
