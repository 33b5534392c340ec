"""Viewport tracking: turns map settle events into viewport-bounds callbacks."""

from __future__ import annotations

import logging
from typing import Callable, Optional, Protocol

from ..errors import ViewportSubscriptionError
from ..models import Bounds, ViewportBounds
from .map_view import SETTLE_EVENTS

ViewportCallback = Callable[[ViewportBounds], None]


class MapWidget(Protocol):
    """Surface of the map widget consumed by the tracker."""

    viewport_tracker: Optional[object]

    def get_bounds(self) -> Bounds: ...

    def get_zoom(self) -> float: ...

    def on(self, event: str, handler: Callable[[], None]) -> None: ...

    def off(self, event: str, handler: Callable[[], None]) -> None: ...


class ViewportTracker:
    """Emit :class:`ViewportBounds` on every ``moveend`` / ``zoomend``.

    A map widget accepts one active tracker at a time; call
    :meth:`unsubscribe` before attaching another.
    """

    def __init__(self, map_widget: MapWidget, on_change: ViewportCallback) -> None:
        self._map = map_widget
        self._on_change = on_change
        self._subscribed = False
        self._log = logging.getLogger(self.__class__.__name__)

    @property
    def subscribed(self) -> bool:
        return self._subscribed

    def subscribe(self) -> None:
        """Register settle handlers and emit the current viewport once."""

        if self._subscribed:
            raise ViewportSubscriptionError("Tracker is already subscribed")
        current = getattr(self._map, "viewport_tracker", None)
        if current is not None and current is not self:
            raise ViewportSubscriptionError(
                "Map widget already has an active viewport tracker"
            )
        for event in SETTLE_EVENTS:
            self._map.on(event, self._handle_settle)
        self._map.viewport_tracker = self
        self._subscribed = True
        self._handle_settle()

    def unsubscribe(self) -> None:
        if not self._subscribed:
            return
        for event in SETTLE_EVENTS:
            self._map.off(event, self._handle_settle)
        if getattr(self._map, "viewport_tracker", None) is self:
            self._map.viewport_tracker = None
        self._subscribed = False

    def current_viewport(self) -> ViewportBounds:
        bounds = self._map.get_bounds()
        return ViewportBounds(
            north=bounds.north,
            south=bounds.south,
            east=bounds.east,
            west=bounds.west,
            zoom=self._map.get_zoom(),
        )

    def _handle_settle(self) -> None:
        viewport = self.current_viewport()
        self._log.debug("Viewport settled at zoom %.2f", viewport.zoom)
        self._on_change(viewport)


__all__ = ["MapWidget", "ViewportCallback", "ViewportTracker"]
