"""
Attribute resolution for cooperative features.

The source dataset went through several revisions and the same concept is
spelled differently across them ("Nombre des adhérents" vs "Nombre des
adherents", "Filière d'activité" vs "Secteur"). Each logical field is an
ordered list of candidate keys, resolved first-match-wins at read time.

Every read has a defined fallback; nothing here raises on a missing key or a
wrong-typed value.
"""

import logging
import math
from typing import Any, Dict, List, Mapping, Optional

logger = logging.getLogger(__name__)

# ═══════════════════════════════════════════════════════════════════════════
# 🔑 FIELD CANDIDATES
# ═══════════════════════════════════════════════════════════════════════════

FIELD_KEYS: Dict[str, List[str]] = {
    "id": ["id", "FID"],
    "name": ["Nom de coopérative", "Nom_Coop"],
    "manager": ["Nom et prénom président/gestionnaire", "Président/Gestionnaire"],
    "commune": ["Commune"],
    "genre": ["Genre"],
    "sector": ["Filière d'activité", "Secteur"],
    "education": ["Niveau scolaire"],
    "members": ["Nombre des adhérents", "Nombre des adherents"],
    "women": ["Nombre des femmes"],
    "youth": ["Nombre des jeunes"],
    "phone": ["Tel", "Téléphone"],
    "cercle": ["Cercle"],
    "province": ["Province"],
    "douar": ["Douar/Quartier"],
    "birth_date": ["Date de naissance"],
    "created": ["Date de création"],
}

NOT_SPECIFIED = "Non spécifié"


def _is_blank(value: Any) -> bool:
    if value is None:
        return True
    if isinstance(value, float) and math.isnan(value):
        return True
    return isinstance(value, str) and not value.strip()


def resolve(properties: Optional[Mapping[str, Any]], field_name: str) -> Any:
    """Raw value of the first non-blank candidate key, or None."""
    if not isinstance(properties, Mapping):
        return None
    for key in FIELD_KEYS.get(field_name, [field_name]):
        value = properties.get(key)
        if not _is_blank(value):
            return value
    return None


def read_text(
    properties: Optional[Mapping[str, Any]], field_name: str, default: str = ""
) -> str:
    """Attribute as a stripped string, or default when missing."""
    value = resolve(properties, field_name)
    if value is None:
        return default
    if isinstance(value, float) and value.is_integer():
        value = int(value)
    return str(value).strip()


def read_count(properties: Optional[Mapping[str, Any]], field_name: str) -> int:
    """Attribute as a non-negative integer count, 0 when missing or invalid."""
    value = resolve(properties, field_name)
    if value is None or isinstance(value, bool):
        return 0
    try:
        count = int(float(str(value).replace(",", ".").strip()))
    except (TypeError, ValueError, OverflowError):
        logger.debug(f"Ignoring non-numeric {field_name} value: {value!r}")
        return 0
    return max(count, 0)


def display_name(feature: Any, default: str = "") -> str:
    """Cooperative display name (primary key, else legacy alternate)."""
    return read_text(getattr(feature, "properties", None), "name", default)


def format_genre(value: Optional[str]) -> str:
    """Human-readable gender label for the responsible person."""
    if value == "M":
        return "Homme (ذكر)"
    if value == "F":
        return "Femme (أنثى)"
    return value or NOT_SPECIFIED


def genre_option_label(value: str) -> str:
    """Short label used in the sidebar gender select."""
    return {"M": "Homme", "F": "Femme"}.get(value, value)
