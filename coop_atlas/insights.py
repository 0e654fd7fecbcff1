"""
AI insights panel.

Sends a compact sample of the currently filtered cooperatives to an external
text-generation service and shows the returned Markdown analysis. This panel
is isolated from the selection and the feature store: it only reads the
feature list it is given.

States:
    idle     nothing requested yet
    loading  request in flight
    ready    analysis text available
    error    empty data or service failure (retry is user-initiated only)
"""

import json
import logging
from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, List, Optional, Sequence

import requests

from coop_atlas.attributes import read_count, read_text
from coop_atlas.models import Feature
from coop_atlas.viz_config_types import InsightsConfig

logger = logging.getLogger(__name__)

NO_DATA_MESSAGE = "Aucune donnée disponible pour l'analyse."
SERVICE_ERROR_MESSAGE = (
    "Le service d'analyse est temporairement indisponible. "
    "Vérifiez votre configuration API."
)
EMPTY_RESPONSE_TEXT = "Erreur de génération."


class InsightsError(Exception):
    """The text-generation service could not produce an answer."""


# ═══════════════════════════════════════════════════════════════════════════
# 🧾 PROMPT
# ═══════════════════════════════════════════════════════════════════════════


def build_insight_sample(
    features: Sequence[Feature], sample_size: int = 60
) -> List[Dict[str, Any]]:
    """Compact records (name, commune, sector, members, women), capped."""
    sample = []
    for feature in list(features)[:sample_size]:
        props = feature.properties
        sample.append(
            {
                "n": read_text(props, "name") or None,
                "c": read_text(props, "commune") or None,
                "s": read_text(props, "sector") or None,
                "a": read_count(props, "members"),
                "f": read_count(props, "women"),
            }
        )
    return sample


def build_prompt(features: Sequence[Feature], sample: List[Dict[str, Any]]) -> str:
    return (
        "Agis en tant qu'expert en développement socio-économique pour la "
        "province de Driouch, Maroc.\n"
        f"Analyse ces {len(features)} coopératives.\n"
        f"Données clés: {json.dumps(sample, ensure_ascii=False)}\n\n"
        "Structure ta réponse en Markdown:\n"
        "- **Diagnostic Global**: Analyse de la répartition et des secteurs.\n"
        "- **Inclusion & Social**: Focus sur les adhérents et l'aspect genre.\n"
        "- **Opportunités Stratégiques**: 3 recommandations concrètes pour "
        "Agri Invest Development.\n\n"
        "Ton: Professionnel, analytique et visionnaire. Langue: Français."
    )


# ═══════════════════════════════════════════════════════════════════════════
# 🌐 SERVICE CLIENT
# ═══════════════════════════════════════════════════════════════════════════


class InsightsClient:
    """POST a prompt to the configured endpoint and return the generated text."""

    def __init__(
        self, config: InsightsConfig, http: Optional[requests.Session] = None
    ) -> None:
        self.config = config
        self._http = http or requests.Session()

    def generate(self, prompt: str) -> str:
        """
        Raises:
            InsightsError: Not configured, network error, non-2xx or bad JSON
        """
        if not self.config.is_configured:
            raise InsightsError("insights endpoint is not configured")
        headers = {"Content-Type": "application/json"}
        if self.config.api_key:
            headers["Authorization"] = f"Bearer {self.config.api_key}"
        try:
            response = self._http.post(
                self.config.endpoint_url,
                json={"model": self.config.model, "contents": prompt},
                headers=headers,
                timeout=self.config.timeout_s,
            )
            response.raise_for_status()
            body = response.json()
        except requests.RequestException as e:
            raise InsightsError(f"insights request failed: {e}") from e
        except ValueError as e:
            raise InsightsError(f"insights response is not JSON: {e}") from e

        text = body.get("text") if isinstance(body, dict) else None
        return text or EMPTY_RESPONSE_TEXT


# ═══════════════════════════════════════════════════════════════════════════
# 🧠 PANEL STATE
# ═══════════════════════════════════════════════════════════════════════════


class InsightsStatus(Enum):
    IDLE = "idle"
    LOADING = "loading"
    READY = "ready"
    ERROR = "error"


@dataclass(frozen=True)
class InsightsState:
    is_open: bool
    status: InsightsStatus
    text: Optional[str]
    error: Optional[str]

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for JSON serialization."""
        return {
            "isOpen": self.is_open,
            "status": self.status.value,
            "text": self.text,
            "error": self.error,
        }


class InsightsPanel:
    """Modal analysis panel; a generated text is kept until regenerated."""

    def __init__(self, client: InsightsClient, sample_size: int = 60) -> None:
        self.client = client
        self.sample_size = sample_size
        self._open = False
        self._status = InsightsStatus.IDLE
        self._text: Optional[str] = None
        self._error: Optional[str] = None

    def state(self) -> InsightsState:
        return InsightsState(self._open, self._status, self._text, self._error)

    def open(self, features: Sequence[Feature]) -> InsightsState:
        """Show the panel; generate once if nothing has been produced yet."""
        self._open = True
        if self._text is None and self._status != InsightsStatus.LOADING:
            return self.generate(features)
        return self.state()

    def close(self) -> InsightsState:
        self._open = False
        return self.state()

    def generate(self, features: Sequence[Feature]) -> InsightsState:
        """(Re)generate the analysis for the given features."""
        if not features:
            self._status = InsightsStatus.ERROR
            self._error = NO_DATA_MESSAGE
            return self.state()

        self._status = InsightsStatus.LOADING
        self._error = None
        self._text = None
        sample = build_insight_sample(features, self.sample_size)
        try:
            self._text = self.client.generate(build_prompt(features, sample))
        except InsightsError as e:
            logger.warning(f"⚠️ AI insights failed: {e}")
            self._status = InsightsStatus.ERROR
            self._error = SERVICE_ERROR_MESSAGE
            return self.state()
        self._status = InsightsStatus.READY
        logger.info(f"🧠 Generated insights for {len(features)} cooperatives")
        return self.state()
