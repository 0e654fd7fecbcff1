#!/usr/bin/env python3
"""
Cooperative Atlas - Overlay Panel State Machine

ARCHITECTURAL OVERVIEW:
=======================
Responsibility: Visibility, expansion, free-floating position and embedded
search box of the overlay panel that shows the selected cooperative.

States:
    HIDDEN       no selection, search closed
    SEARCH_OPEN  search box active, nothing selected yet
    DETAIL       a selection exists; EXPANDED / COLLAPSED sub-state

Transitions:
    HIDDEN      --open_search-->          SEARCH_OPEN
    SEARCH_OPEN --pick suggestion-->      DETAIL(collapsed), query cleared
    any         --select (map/list)-->    DETAIL(collapsed), search closed
    DETAIL      --close-->                HIDDEN, query cleared, collapsed
    DETAIL      --toggle-->               EXPANDED <-> COLLAPSED
    DETAIL      --selection changes-->    DETAIL(collapsed)

Invariant: screen_offset is never reset by any transition (sticky placement).

Gestures:
- Pointer drag (wide layouts): IDLE -> PRESSED -> DRAGGING | CLICKED, with a
  minimum movement before DRAGGING so plain taps never move the panel
- Touch swipe (compact layouts): vertical swipe on the handle expands,
  collapses or closes

For Navigation: Use VS Code outline (Ctrl+Shift+O)
"""

import logging
import math
from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, Iterable, List, Optional, Tuple

from coop_atlas.filter_engine import search_suggestions
from coop_atlas.models import Feature, LayoutContext
from coop_atlas.selection import SelectionSource
from coop_atlas.viz_config_types import PanelConfig

logger = logging.getLogger(__name__)

# Pointer targets that keep their own click behaviour and never start a drag
INTERACTIVE_TARGETS = frozenset({"button", "input", "textarea", "select", "a"})


class PanelMode(Enum):
    HIDDEN = "hidden"
    SEARCH_OPEN = "search_open"
    DETAIL = "detail"


class PanelAction(Enum):
    """Outcome of a swipe gesture."""

    NONE = "none"
    EXPAND = "expand"
    COLLAPSE = "collapse"
    CLOSE = "close"


class DragPhase(Enum):
    IDLE = "idle"
    PRESSED = "pressed"
    DRAGGING = "dragging"
    CLICKED = "clicked"


# ═══════════════════════════════════════════════════════════════════════════
# 🖱️ DRAG TRACKER
# ═══════════════════════════════════════════════════════════════════════════


class DragTracker:
    """Drag-vs-click disambiguation for a single pointer."""

    def __init__(self, threshold_px: float = 4.0) -> None:
        self.threshold_px = threshold_px
        self.phase = DragPhase.IDLE
        self._start_pointer: Tuple[float, float] = (0.0, 0.0)
        self._start_offset: Tuple[float, float] = (0.0, 0.0)

    @property
    def is_dragging(self) -> bool:
        return self.phase == DragPhase.DRAGGING

    def press(self, x: float, y: float, offset: Tuple[float, float]) -> None:
        self.phase = DragPhase.PRESSED
        self._start_pointer = (x, y)
        self._start_offset = offset

    def move(self, x: float, y: float) -> Optional[Tuple[float, float]]:
        """New panel offset while dragging, None if the pointer is not dragging."""
        if self.phase not in (DragPhase.PRESSED, DragPhase.DRAGGING):
            return None
        dx = x - self._start_pointer[0]
        dy = y - self._start_pointer[1]
        if self.phase == DragPhase.PRESSED:
            if math.hypot(dx, dy) < self.threshold_px:
                return None
            self.phase = DragPhase.DRAGGING
        return self._start_offset[0] + dx, self._start_offset[1] + dy

    def release(self) -> DragPhase:
        """End the gesture; returns DRAGGING or CLICKED for what just ended."""
        if self.phase == DragPhase.DRAGGING:
            ended = DragPhase.DRAGGING
        elif self.phase == DragPhase.PRESSED:
            ended = DragPhase.CLICKED
        else:
            ended = DragPhase.IDLE
        self.phase = DragPhase.IDLE
        return ended


# ═══════════════════════════════════════════════════════════════════════════
# 🪟 PANEL STATE
# ═══════════════════════════════════════════════════════════════════════════


@dataclass(frozen=True)
class PanelState:
    """Immutable snapshot of the panel."""

    mode: PanelMode
    is_expanded: bool
    screen_offset: Tuple[float, float]
    search_query: str
    is_dragging: bool
    suggestions_visible: bool

    @property
    def is_open(self) -> bool:
        return self.mode != PanelMode.HIDDEN

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for JSON serialization."""
        return {
            "mode": self.mode.value,
            "isOpen": self.is_open,
            "isExpanded": self.is_expanded,
            "screenOffset": {"x": self.screen_offset[0], "y": self.screen_offset[1]},
            "searchQuery": self.search_query,
            "isDragging": self.is_dragging,
            "suggestionsVisible": self.suggestions_visible,
        }


class OverlayPanel:
    """State machine behind the floating detail/search panel."""

    def __init__(self, config: Optional[PanelConfig] = None) -> None:
        self.config = config or PanelConfig()
        self._has_selection = False
        self._search_open = False
        self._expanded = False
        self._query = ""
        self._suggestions_visible = False
        self._offset: Tuple[float, float] = (0.0, 0.0)
        self._drag = DragTracker(self.config.drag_threshold_px)
        self._swipe_start: Optional[float] = None

    # ───────────────────────────────────────────────────────────────────────
    # State accessors
    # ───────────────────────────────────────────────────────────────────────

    @property
    def mode(self) -> PanelMode:
        if self._has_selection:
            return PanelMode.DETAIL
        if self._search_open:
            return PanelMode.SEARCH_OPEN
        return PanelMode.HIDDEN

    @property
    def screen_offset(self) -> Tuple[float, float]:
        return self._offset

    def state(self) -> PanelState:
        return PanelState(
            mode=self.mode,
            is_expanded=self._expanded and self._has_selection,
            screen_offset=self._offset,
            search_query=self._query,
            is_dragging=self._drag.is_dragging,
            suggestions_visible=self._suggestions_visible,
        )

    # ───────────────────────────────────────────────────────────────────────
    # Search sub-state
    # ───────────────────────────────────────────────────────────────────────

    def open_search(self) -> None:
        if self.mode == PanelMode.HIDDEN:
            self._search_open = True
            self._suggestions_visible = True

    def set_query(self, text: Optional[str]) -> None:
        self._query = text or ""
        if self._search_open:
            self._suggestions_visible = True

    def dismiss_suggestions(self) -> None:
        """Click outside the panel: hide the list, keep the typed query."""
        self._suggestions_visible = False

    def suggestions(self, features: Iterable[Feature]) -> List[Feature]:
        """Autocomplete matches over the whole collection (filters ignored)."""
        if self.mode != PanelMode.SEARCH_OPEN or not self._suggestions_visible:
            return []
        return search_suggestions(
            features,
            self._query,
            limit=self.config.suggestion_limit,
            min_chars=self.config.suggestion_min_chars,
        )

    # ───────────────────────────────────────────────────────────────────────
    # Selection-driven transitions
    # ───────────────────────────────────────────────────────────────────────

    def on_selection_changed(
        self, feature: Optional[Feature], source: SelectionSource
    ) -> None:
        """Listener for SelectionController changes."""
        if feature is None:
            self._reset_to_hidden()
            return
        self._has_selection = True
        self._expanded = False
        self._search_open = False
        self._suggestions_visible = False
        if source == SelectionSource.SUGGESTION:
            self._query = ""

    def close(self) -> None:
        """Detail/search -> HIDDEN. The selection itself is cleared by the caller."""
        self._reset_to_hidden()

    def _reset_to_hidden(self) -> None:
        self._has_selection = False
        self._search_open = False
        self._suggestions_visible = False
        self._expanded = False
        self._query = ""

    def toggle_expanded(self) -> bool:
        if self.mode == PanelMode.DETAIL:
            self._expanded = not self._expanded
        return self._expanded and self._has_selection

    # ───────────────────────────────────────────────────────────────────────
    # Pointer drag (wide layouts)
    # ───────────────────────────────────────────────────────────────────────

    def pointer_down(
        self, x: float, y: float, target: Optional[str], layout: LayoutContext
    ) -> bool:
        """Start tracking a pointer. Returns False when drag is not available."""
        if layout.is_compact:
            return False
        if (target or "").lower() in INTERACTIVE_TARGETS:
            return False
        self._drag.press(x, y, self._offset)
        return True

    def pointer_move(self, x: float, y: float) -> Tuple[float, float]:
        new_offset = self._drag.move(x, y)
        if new_offset is not None:
            self._offset = new_offset
        return self._offset

    def pointer_up(self) -> DragPhase:
        ended = self._drag.release()
        if ended == DragPhase.DRAGGING:
            logger.debug(f"Panel dropped at offset {self._offset}")
        return ended

    # ───────────────────────────────────────────────────────────────────────
    # Touch swipe (compact layouts)
    # ───────────────────────────────────────────────────────────────────────

    def swipe(self, start_y: float, end_y: float, layout: LayoutContext) -> PanelAction:
        """
        Apply a vertical swipe on the panel handle.

        Upward past swipe_expand_px expands; downward past swipe_collapse_px
        collapses an expanded panel; downward past swipe_close_px on a
        collapsed panel asks for a close (the caller clears the selection).
        """
        if not layout.is_compact or self.mode != PanelMode.DETAIL:
            return PanelAction.NONE
        delta = start_y - end_y  # positive = upward
        if delta > self.config.swipe_expand_px:
            if not self._expanded:
                self._expanded = True
                return PanelAction.EXPAND
            return PanelAction.NONE
        downward = -delta
        if self._expanded:
            if downward > self.config.swipe_collapse_px:
                self._expanded = False
                return PanelAction.COLLAPSE
            return PanelAction.NONE
        if downward > self.config.swipe_close_px:
            return PanelAction.CLOSE
        return PanelAction.NONE

    def touch_start(self, y: float) -> None:
        self._swipe_start = y

    def touch_end(self, y: float, layout: LayoutContext) -> PanelAction:
        if self._swipe_start is None:
            return PanelAction.NONE
        start, self._swipe_start = self._swipe_start, None
        return self.swipe(start, y, layout)
