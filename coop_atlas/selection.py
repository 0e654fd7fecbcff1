"""
Selection controller - single source of truth for the selected cooperative.

List rows, map markers and the overlay panel all read the current selection
from here. Consumers that need to react to a change (camera fly-to, panel
collapse) subscribe a listener; listeners receive (new, previous, source).

Selection is independent of the active filter: any feature of the full
collection may be selected.
"""

import logging
from enum import Enum
from typing import Callable, List, Optional

from coop_atlas.models import Feature

logger = logging.getLogger(__name__)


class SelectionSource(Enum):
    """Where a selection change came from."""

    LIST = "list"
    MARKER = "marker"
    SUGGESTION = "suggestion"
    CLOSE = "close"
    HOME = "home"

    @classmethod
    def from_string(cls, s: Optional[str]) -> "SelectionSource":
        """Convert string to SelectionSource, with fallback to LIST."""
        for member in cls:
            if member.value == s:
                return member
        return cls.LIST


SelectionListener = Callable[[Optional[Feature], Optional[Feature], SelectionSource], None]


class SelectionController:
    """Owns the currently selected feature (or none)."""

    def __init__(self) -> None:
        self._current: Optional[Feature] = None
        self._listeners: List[SelectionListener] = []

    def subscribe(self, listener: SelectionListener) -> None:
        self._listeners.append(listener)

    def current(self) -> Optional[Feature]:
        return self._current

    @property
    def current_id(self) -> Optional[str]:
        return self._current.id if self._current is not None else None

    def is_selected(self, feature: Feature) -> bool:
        return self._current is not None and self._current.id == feature.id

    def select(
        self, feature: Feature, source: SelectionSource = SelectionSource.LIST
    ) -> bool:
        """
        Make feature the current selection.

        Returns:
            True if the selection changed. Re-selecting the current
            identifier is not a change and notifies nobody.
        """
        if self._current is not None and self._current.id == feature.id:
            return False
        previous = self._current
        self._current = feature
        logger.debug(f"Selection {previous and previous.id} -> {feature.id} ({source.value})")
        self._notify(feature, previous, source)
        return True

    def clear(self, source: SelectionSource = SelectionSource.CLOSE) -> bool:
        """Drop the selection. Returns True if something was selected."""
        if self._current is None:
            return False
        previous = self._current
        self._current = None
        logger.debug(f"Selection {previous.id} cleared ({source.value})")
        self._notify(None, previous, source)
        return True

    def _notify(
        self,
        new: Optional[Feature],
        previous: Optional[Feature],
        source: SelectionSource,
    ) -> None:
        for listener in self._listeners:
            listener(new, previous, source)
