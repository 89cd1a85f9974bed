"""Map view fitting for event markers.

Views are computed in Web-Mercator pixel space (256 px tiles), the same
projection tile maps such as Leaflet render in, so a view produced here can be
handed straight to a browser map.
"""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass
from typing import Callable, Sequence

from community_events.models import EventItem

log = logging.getLogger(__name__)

TILE_SIZE = 256
MAX_LATITUDE = 85.0511287798

DEFAULT_CENTER: tuple[float, float] = (39.799, -89.644)
DEFAULT_ZOOM = 13
SINGLE_POINT_ZOOM = 14
MAX_ZOOM = 18
FIT_PADDING: tuple[int, int] = (24, 24)
DEFAULT_SIZE: tuple[int, int] = (640, 420)

Point = tuple[float, float]


@dataclass(frozen=True)
class LatLngBounds:
    south: float
    west: float
    north: float
    east: float

    @classmethod
    def from_points(cls, points: Sequence[Point]) -> LatLngBounds:
        if not points:
            raise ValueError("bounds need at least one point")
        lats = [p[0] for p in points]
        lngs = [p[1] for p in points]
        return cls(min(lats), min(lngs), max(lats), max(lngs))

    def contains(self, point: Point) -> bool:
        lat, lng = point
        return self.south <= lat <= self.north and self.west <= lng <= self.east


@dataclass(frozen=True)
class ViewState:
    center: Point
    zoom: int
    bounds: LatLngBounds | None = None


@dataclass(frozen=True)
class Marker:
    event_id: str
    position: Point
    title: str
    address: str


# ------------------------------------------------------------------
# Projection
# ------------------------------------------------------------------


def _scale(zoom: float) -> float:
    return TILE_SIZE * 2**zoom


def project(point: Point, zoom: float) -> tuple[float, float]:
    """Project a lat/lng to absolute pixel coordinates at *zoom*."""
    lat = max(-MAX_LATITUDE, min(MAX_LATITUDE, point[0]))
    siny = math.sin(math.radians(lat))
    scale = _scale(zoom)
    x = (point[1] + 180.0) / 360.0 * scale
    y = (0.5 - math.log((1 + siny) / (1 - siny)) / (4 * math.pi)) * scale
    return x, y


def unproject(pixel: tuple[float, float], zoom: float) -> Point:
    scale = _scale(zoom)
    lng = pixel[0] / scale * 360.0 - 180.0
    n = math.pi - 2 * math.pi * pixel[1] / scale
    lat = math.degrees(math.atan(math.sinh(n)))
    return lat, lng


def pixel_offset(
    view: ViewState, point: Point, size: tuple[int, int] = DEFAULT_SIZE
) -> tuple[float, float]:
    """Where *point* lands inside a viewport of *size* showing *view*."""
    cx, cy = project(view.center, view.zoom)
    px, py = project(point, view.zoom)
    return px - cx + size[0] / 2, py - cy + size[1] / 2


# ------------------------------------------------------------------
# Fitting
# ------------------------------------------------------------------


def bounds_zoom(
    bounds: LatLngBounds,
    size: tuple[int, int] = DEFAULT_SIZE,
    padding: tuple[int, int] = FIT_PADDING,
    max_zoom: int = MAX_ZOOM,
) -> int:
    """Largest whole zoom at which *bounds* fits inside the padded viewport."""
    usable_w = max(size[0] - 2 * padding[0], 1)
    usable_h = max(size[1] - 2 * padding[1], 1)
    west, north = project((bounds.north, bounds.west), 0)
    east, south = project((bounds.south, bounds.east), 0)
    span_x = abs(east - west)
    span_y = abs(south - north)
    if span_x == 0 and span_y == 0:
        return max_zoom
    ratios = []
    if span_x:
        ratios.append(usable_w / span_x)
    if span_y:
        ratios.append(usable_h / span_y)
    zoom = math.floor(math.log2(min(ratios)))
    return max(0, min(max_zoom, zoom))


def fit_view(
    points: Sequence[Point],
    current: ViewState | None = None,
    size: tuple[int, int] = DEFAULT_SIZE,
    padding: tuple[int, int] = FIT_PADDING,
) -> ViewState:
    """Return the view that shows all *points*.

    No points keeps *current*; one point centres on it at a fixed close zoom;
    more fit their bounding box with *padding* pixels on every side.
    """
    current = current or ViewState(DEFAULT_CENTER, DEFAULT_ZOOM)
    if not points:
        return current
    if len(points) == 1:
        return ViewState(tuple(points[0]), SINGLE_POINT_ZOOM)

    bounds = LatLngBounds.from_points(points)
    zoom = bounds_zoom(bounds, size, padding)
    nw = project((bounds.north, bounds.west), zoom)
    se = project((bounds.south, bounds.east), zoom)
    center = unproject(((nw[0] + se[0]) / 2, (nw[1] + se[1]) / 2), zoom)
    return ViewState(center, zoom, bounds)


class MapView:
    """Markers plus a fitted view for a list of events.

    Selection is reported through *on_marker_click*; the map keeps none.
    """

    def __init__(
        self,
        on_marker_click: Callable[[EventItem], None] | None = None,
        size: tuple[int, int] = DEFAULT_SIZE,
    ) -> None:
        self.on_marker_click = on_marker_click
        self.size = size
        self.view = ViewState(DEFAULT_CENTER, DEFAULT_ZOOM)
        self.markers: list[Marker] = []
        self._events: Sequence[EventItem] | None = None
        self._by_id: dict[str, EventItem] = {}

    def set_events(self, events: Sequence[EventItem]) -> bool:
        """Show *events*. Returns True if the view was refitted.

        Refitting happens only when a different sequence object is passed in.
        """
        if events is self._events:
            return False
        self._events = events
        self._by_id = {e.id: e for e in events}
        self.markers = [
            Marker(e.id, (e.lat, e.lng), e.title, e.address) for e in events
        ]
        self.view = fit_view([m.position for m in self.markers], self.view, self.size)
        log.debug("Map refitted to %d marker(s), zoom %d", len(self.markers), self.view.zoom)
        return True

    def click(self, event_id: str) -> EventItem | None:
        event = self._by_id.get(event_id)
        if event is not None and self.on_marker_click is not None:
            self.on_marker_click(event)
        return event
