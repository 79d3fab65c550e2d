"""
Click-driven authoring of circle and polygon delivery zones.

DrawingSession is an explicit state machine with one entry point for map
clicks (handle_click) and one state field. The map itself is reached only
through an injected MapRenderer, attached on open() and detached on close().

States:
    idle -> drawing_circle -> shape_complete      (first click places the circle)
    idle -> drawing_polygon -> shape_complete     (third click closes the polygon)
    shape_complete -> idle                        (clear_area / cancel / close)

Map dragging is disabled exactly while drawing.
"""
import math
from typing import List, Optional, Protocol, Tuple, Union

from delivery_areas.app.core.constants import (
    DEFAULT_CIRCLE_RADIUS_M,
    DRAWING_CURSOR,
    DRAWING_STATES,
    MIN_CIRCLE_RADIUS_M,
    MIN_POLYGON_VERTICES,
    MODE_CIRCLE,
    MODE_NONE,
    MODE_POLYGON,
    STATE_DRAWING_CIRCLE,
    STATE_DRAWING_POLYGON,
    STATE_IDLE,
    STATE_SHAPE_COMPLETE,
)
from delivery_areas.app.core.exceptions import (
    DeliveryZoneError,
    InvalidPointerEvent,
    MalformedZoneGeometry,
    PrematureCompletion,
)
from delivery_areas.app.core.geo import haversine_distance_m
from delivery_areas.app.core.logging import get_logger
from delivery_areas.app.core.settings import Settings, get_settings
from delivery_areas.app.schemas import (
    CircleGeometry,
    Coordinate,
    DrawnGeometry,
    MapClick,
    PolygonGeometry,
)

logger = get_logger(__name__)


class MapRenderer(Protocol):
    """Render sink for the map surface the operator draws on."""

    def attach(self) -> None:
        ...

    def detach(self) -> None:
        ...

    def render_overlay(self, geometry: DrawnGeometry, editable: bool) -> None:
        ...

    def clear_overlay(self) -> None:
        ...

    def set_map_interaction(self, draggable: bool, cursor: Optional[str]) -> None:
        ...


class NullMapRenderer:
    """Renderer for headless sessions (imports, scripted edits)."""

    def attach(self) -> None:
        pass

    def detach(self) -> None:
        pass

    def render_overlay(self, geometry: DrawnGeometry, editable: bool) -> None:
        pass

    def clear_overlay(self) -> None:
        pass

    def set_map_interaction(self, draggable: bool, cursor: Optional[str]) -> None:
        pass


def _check_vertex_index(index: int, size: int) -> None:
    if not 0 <= index < size:
        raise DeliveryZoneError(f"Vertex index {index} out of range 0..{size - 1}", 400)

class DrawingSession:
    def __init__(
        self,
        renderer: Optional[MapRenderer] = None,
        default_radius_meters: float = DEFAULT_CIRCLE_RADIUS_M,
        extend_polygon_on_click: bool = False,
    ):
        """
        Args:
            renderer: Map render sink (defaults to a no-op renderer)
            default_radius_meters: Radius given to a circle on its first click
            extend_polygon_on_click: If True, clicks on a completed polygon
                append vertices instead of being ignored
        """
        if not math.isfinite(default_radius_meters) or default_radius_meters <= 0:
            raise ValueError(f"default_radius_meters must be > 0, got {default_radius_meters}")
        self._renderer = renderer or NullMapRenderer()
        self._default_radius = default_radius_meters
        self._extend_polygon_on_click = extend_polygon_on_click

        self._state = STATE_IDLE
        self._pending: List[Coordinate] = []
        self._geometry: Optional[DrawnGeometry] = None
        self._map_draggable = True
        self._is_open = False

    @classmethod
    def from_settings(
        cls,
        renderer: Optional[MapRenderer] = None,
        settings: Optional[Settings] = None,
        extend_polygon_on_click: bool = False,
    ) -> "DrawingSession":
        """Session using the configured DEFAULT_CIRCLE_RADIUS_METERS."""
        settings = settings or get_settings()
        return cls(
            renderer,
            default_radius_meters=settings.DEFAULT_CIRCLE_RADIUS_METERS,
            extend_polygon_on_click=extend_polygon_on_click,
        )

    # --- lifecycle ---

    def open(self) -> "DrawingSession":
        if self._is_open:
            return self
        self._renderer.attach()
        self._is_open = True
        self._set_map_interaction(True)
        return self

    def close(self) -> None:
        """Discard everything drawn in this session; nothing is saved."""
        if not self._is_open:
            return
        self.cancel()
        self._renderer.detach()
        self._is_open = False

    def __enter__(self) -> "DrawingSession":
        return self.open()

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()

    # --- read-only state ---

    @property
    def state(self) -> str:
        return self._state

    @property
    def mode(self) -> str:
        if self._state == STATE_DRAWING_CIRCLE:
            return MODE_CIRCLE
        if self._state == STATE_DRAWING_POLYGON:
            return MODE_POLYGON
        return MODE_NONE

    @property
    def is_open(self) -> bool:
        return self._is_open

    @property
    def is_drawing(self) -> bool:
        return self._state in DRAWING_STATES

    @property
    def map_draggable(self) -> bool:
        return self._map_draggable

    @property
    def pending_vertices(self) -> Tuple[Coordinate, ...]:
        return tuple(self._pending)

    @property
    def geometry(self) -> Optional[DrawnGeometry]:
        """The completed shape, or None unless in shape_complete."""
        return self._geometry

    @property
    def preview(self) -> Optional[DrawnGeometry]:
        """What the operator currently sees: the completed shape or the partial polygon."""
        if self._geometry is not None:
            return self._geometry
        if self._pending:
            return PolygonGeometry(vertices=tuple(self._pending))
        return None

    # --- drawing ---

    def start_circle(self) -> None:
        self._start(STATE_DRAWING_CIRCLE)

    def start_polygon(self) -> None:
        self._start(STATE_DRAWING_POLYGON)

    def handle_click(self, event: Union[MapClick, Coordinate, None]) -> str:
        """
        Feed one map click into the state machine.

        Clicks are applied in the order received. A click without a position
        is ignored. Returns the state after the click.
        """
        if not self._is_open:
            logger.debug("Click ignored: drawing session is closed")
            return self._state
        try:
            point = self._resolve_point(event)
        except InvalidPointerEvent as e:
            logger.debug("Click ignored", reason=e.message, state=self._state)
            return self._state

        if self._state == STATE_DRAWING_CIRCLE:
            self._complete(CircleGeometry(center=point, radius_meters=self._default_radius))
        elif self._state == STATE_DRAWING_POLYGON:
            self._pending.append(point)
            if len(self._pending) >= MIN_POLYGON_VERTICES:
                self._complete(PolygonGeometry(vertices=tuple(self._pending)))
            elif len(self._pending) > 1:
                self._renderer.render_overlay(PolygonGeometry(vertices=tuple(self._pending)), editable=False)
        elif (
            self._state == STATE_SHAPE_COMPLETE
            and self._extend_polygon_on_click
            and isinstance(self._geometry, PolygonGeometry)
        ):
            self._replace_geometry(
                self._geometry.model_copy(update={"vertices": self._geometry.vertices + (point,)})
            )
        return self._state

    def finish_polygon(self) -> PolygonGeometry:
        """
        Explicitly close the polygon being drawn.

        Raises:
            PrematureCompletion: fewer than 3 vertices placed, or not drawing a polygon
        """
        if self._state == STATE_SHAPE_COMPLETE and isinstance(self._geometry, PolygonGeometry):
            return self._geometry
        if self._state != STATE_DRAWING_POLYGON:
            raise PrematureCompletion("No polygon is being drawn")
        if len(self._pending) < MIN_POLYGON_VERTICES:
            raise PrematureCompletion(
                f"A polygon needs at least {MIN_POLYGON_VERTICES} vertices, got {len(self._pending)}"
            )
        polygon = PolygonGeometry(vertices=tuple(self._pending))
        self._complete(polygon)
        return polygon

    def commit(self) -> DrawnGeometry:
        """
        Hand the finished shape over for saving.

        Raises:
            PrematureCompletion: no completed shape in this session
        """
        if self._state != STATE_SHAPE_COMPLETE or self._geometry is None:
            raise PrematureCompletion(f"Nothing to commit in state {self._state!r}")
        return self._geometry

    def load_geometry(self, geometry: DrawnGeometry) -> None:
        """
        Open an existing circle or polygon for editing.

        Raises:
            MalformedZoneGeometry: the shape is not drawable or breaks its invariants
        """
        self._require_open()
        if not isinstance(geometry, (CircleGeometry, PolygonGeometry)):
            raise MalformedZoneGeometry(f"Area type {geometry.area_type!r} cannot be drawn on a map")
        geometry.check()
        self._discard()
        self._complete(geometry)

    def clear_area(self) -> None:
        """Drop the completed shape and return to idle."""
        if self._state != STATE_SHAPE_COMPLETE:
            return
        self._discard()
        self._state = STATE_IDLE
        logger.info("Zone shape cleared")

    def cancel(self) -> None:
        """Return to idle from any state, discarding pending vertices and any shape."""
        self._discard()
        self._state = STATE_IDLE
        self._set_map_interaction(True)

    # --- handle drags on a completed shape ---

    def move_center(self, point: Coordinate) -> CircleGeometry:
        circle = self._require_shape(CircleGeometry)
        return self._replace_geometry(circle.model_copy(update={"center": point}))

    def set_radius(self, radius_meters: float) -> CircleGeometry:
        circle = self._require_shape(CircleGeometry)
        if not math.isfinite(radius_meters):
            raise ValueError(f"Radius must be finite, got {radius_meters}")
        radius = max(radius_meters, MIN_CIRCLE_RADIUS_M)
        return self._replace_geometry(circle.model_copy(update={"radius_meters": radius}))

    def drag_radius_handle(self, point: Coordinate) -> CircleGeometry:
        """Set the radius to the distance between the center and the dragged handle."""
        circle = self._require_shape(CircleGeometry)
        return self.set_radius(
            haversine_distance_m(circle.center.lat, circle.center.lng, point.lat, point.lng)
        )

    def move_vertex(self, index: int, point: Coordinate) -> PolygonGeometry:
        polygon = self._require_shape(PolygonGeometry)
        _check_vertex_index(index, len(polygon.vertices))
        vertices = list(polygon.vertices)
        vertices[index] = point
        return self._replace_geometry(polygon.model_copy(update={"vertices": tuple(vertices)}))

    def insert_vertex(self, index: int, point: Coordinate) -> PolygonGeometry:
        """Insert a vertex before index (dragging an edge midpoint handle)."""
        polygon = self._require_shape(PolygonGeometry)
        # index == len(vertices) appends after the last vertex
        _check_vertex_index(index, len(polygon.vertices) + 1)
        vertices = list(polygon.vertices)
        vertices.insert(index, point)
        return self._replace_geometry(polygon.model_copy(update={"vertices": tuple(vertices)}))

    def remove_vertex(self, index: int) -> PolygonGeometry:
        """
        Raises:
            PrematureCompletion: removal would leave fewer than 3 vertices
        """
        polygon = self._require_shape(PolygonGeometry)
        if len(polygon.vertices) <= MIN_POLYGON_VERTICES:
            raise PrematureCompletion(
                f"A polygon needs at least {MIN_POLYGON_VERTICES} vertices"
            )
        _check_vertex_index(index, len(polygon.vertices))
        vertices = list(polygon.vertices)
        del vertices[index]
        return self._replace_geometry(polygon.model_copy(update={"vertices": tuple(vertices)}))

    def translate(self, d_lat: float, d_lng: float) -> DrawnGeometry:
        """Drag the whole shape. Coordinates leaving the valid range raise ValueError."""
        geometry = self._geometry
        if self._state != STATE_SHAPE_COMPLETE or geometry is None:
            raise DeliveryZoneError("No completed shape to move", 409)
        if isinstance(geometry, CircleGeometry):
            center = Coordinate(lat=geometry.center.lat + d_lat, lng=geometry.center.lng + d_lng)
            return self._replace_geometry(geometry.model_copy(update={"center": center}))
        vertices = tuple(Coordinate(lat=v.lat + d_lat, lng=v.lng + d_lng) for v in geometry.vertices)
        return self._replace_geometry(geometry.model_copy(update={"vertices": vertices}))

    # --- internals ---

    def _start(self, state: str) -> None:
        self._require_open()
        # At most one shape per session: starting over discards the previous one
        self._discard()
        self._state = state
        self._set_map_interaction(False)
        logger.debug("Drawing started", state=state)

    def _complete(self, geometry: DrawnGeometry) -> None:
        self._pending = []
        self._geometry = geometry
        self._state = STATE_SHAPE_COMPLETE
        self._renderer.render_overlay(geometry, editable=True)
        self._set_map_interaction(True)
        logger.info("Zone shape drawn", area_type=geometry.area_type)

    def _replace_geometry(self, geometry):
        self._geometry = geometry
        self._renderer.render_overlay(geometry, editable=True)
        return geometry

    def _discard(self) -> None:
        had_overlay = self._geometry is not None or len(self._pending) > 1
        self._pending = []
        self._geometry = None
        if had_overlay:
            self._renderer.clear_overlay()

    def _set_map_interaction(self, draggable: bool) -> None:
        self._map_draggable = draggable
        self._renderer.set_map_interaction(draggable=draggable, cursor=None if draggable else DRAWING_CURSOR)

    def _require_open(self) -> None:
        if not self._is_open:
            raise DeliveryZoneError("Drawing session is closed", 409)

    def _require_shape(self, shape_type):
        if self._state != STATE_SHAPE_COMPLETE or not isinstance(self._geometry, shape_type):
            raise DeliveryZoneError(f"No completed {shape_type.__name__} to edit", 409)
        return self._geometry

    @staticmethod
    def _resolve_point(event: Union[MapClick, Coordinate, None]) -> Coordinate:
        if isinstance(event, Coordinate):
            return event
        if isinstance(event, MapClick) and event.point is not None:
            return event.point
        raise InvalidPointerEvent()
