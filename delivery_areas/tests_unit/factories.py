"""Zone and collaborator fakes shared by the unit tests."""
import asyncio
from typing import List, Optional, Tuple

from delivery_areas.app.schemas import (
    AddressComponents,
    CircleGeometry,
    CityGeometry,
    Coordinate,
    DeliveryZone,
    PolygonGeometry,
    PostalCodeGeometry,
)


def pt(lat: float, lng: float) -> Coordinate:
    return Coordinate(lat=lat, lng=lng)


def circle_zone(zone_id: str, lat: float, lng: float, radius_m: float, **kwargs) -> DeliveryZone:
    geometry = CircleGeometry(center=pt(lat, lng), radius_meters=radius_m)
    return DeliveryZone(id=zone_id, geometry=geometry, **kwargs)


def polygon_zone(zone_id: str, vertices: List[Tuple[float, float]], **kwargs) -> DeliveryZone:
    geometry = PolygonGeometry(vertices=tuple(pt(lat, lng) for lat, lng in vertices))
    return DeliveryZone(id=zone_id, geometry=geometry, **kwargs)


def postal_zone(zone_id: str, codes, **kwargs) -> DeliveryZone:
    return DeliveryZone(id=zone_id, geometry=PostalCodeGeometry(codes=frozenset(codes)), **kwargs)


def city_zone(zone_id: str, names, **kwargs) -> DeliveryZone:
    return DeliveryZone(id=zone_id, geometry=CityGeometry(names=frozenset(names)), **kwargs)


UNIT_SQUARE = [(0, 0), (0, 1), (1, 1), (1, 0)]


class FakeReverseGeocoder:
    """Reverse geocoder returning a fixed answer and counting calls."""

    def __init__(
        self,
        result: Optional[AddressComponents] = None,
        delay: float = 0.0,
        error: Optional[Exception] = None,
    ):
        self.result = result
        self.delay = delay
        self.error = error
        self.calls: List[Coordinate] = []

    async def reverse_geocode(self, point: Coordinate) -> Optional[AddressComponents]:
        self.calls.append(point)
        if self.delay:
            await asyncio.sleep(self.delay)
        if self.error is not None:
            raise self.error
        return self.result


class RecordingRenderer:
    """Map renderer that records every command it receives."""

    def __init__(self):
        self.attached = False
        self.overlays = []
        self.clears = 0
        self.interactions: List[Tuple[bool, Optional[str]]] = []

    def attach(self) -> None:
        self.attached = True

    def detach(self) -> None:
        self.attached = False

    def render_overlay(self, geometry, editable: bool) -> None:
        self.overlays.append((geometry, editable))

    def clear_overlay(self) -> None:
        self.clears += 1

    def set_map_interaction(self, draggable: bool, cursor: Optional[str]) -> None:
        self.interactions.append((draggable, cursor))
