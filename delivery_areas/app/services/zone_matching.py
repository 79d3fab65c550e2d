"""Delivery zone membership: which active zones contain a coordinate."""
import asyncio
import math
from typing import Iterable, List, Optional, Protocol, Sequence

from delivery_areas.app.core.constants import DEFAULT_GEOCODE_TIMEOUT_S, GEOCODED_AREA_TYPES
from delivery_areas.app.core.exceptions import GeocodeUnavailable, MalformedZoneGeometry
from delivery_areas.app.core.geo import is_point_in_circle, is_point_in_polygon
from delivery_areas.app.core.logging import get_logger
from delivery_areas.app.schemas import (
    AddressComponents,
    CircleGeometry,
    CityGeometry,
    Coordinate,
    DeliveryZone,
    PolygonGeometry,
    PostalCodeGeometry,
)

logger = get_logger(__name__)


class ReverseGeocoder(Protocol):
    async def reverse_geocode(self, point: Coordinate) -> Optional[AddressComponents]:
        ...


class ForwardGeocoder(Protocol):
    async def geocode(self, address: str) -> Optional[Coordinate]:
        ...


def zone_contains(zone: DeliveryZone, point: Coordinate) -> bool:
    """
    Geometric containment for circle and polygon zones.

    Raises:
        MalformedZoneGeometry: zone is not geometric or breaks its invariants
    """
    geometry = zone.geometry
    geometry.check()
    if isinstance(geometry, CircleGeometry):
        return is_point_in_circle(
            point.lat, point.lng, geometry.center.lat, geometry.center.lng, geometry.radius_meters
        )
    if isinstance(geometry, PolygonGeometry):
        ring = [(v.lat, v.lng) for v in geometry.vertices]
        return is_point_in_polygon(point.lat, point.lng, ring)
    raise MalformedZoneGeometry(
        f"Area type {geometry.area_type!r} cannot be evaluated from a coordinate", zone.id
    )


def address_matches(zone: DeliveryZone, address: AddressComponents) -> bool:
    """
    Postal codes match exactly; city names match case-insensitively.

    Raises:
        MalformedZoneGeometry: zone is not address-based or breaks its invariants
    """
    geometry = zone.geometry
    geometry.check()
    if isinstance(geometry, PostalCodeGeometry):
        return address.postal_code is not None and address.postal_code.strip() in geometry.codes
    if isinstance(geometry, CityGeometry):
        if not address.city:
            return False
        city = address.city.strip().casefold()
        return any(name.casefold() == city for name in geometry.names)
    raise MalformedZoneGeometry(
        f"Area type {geometry.area_type!r} cannot be matched against an address", zone.id
    )


def _dedupe(zones: Iterable[DeliveryZone]) -> List[DeliveryZone]:
    seen: set[str] = set()
    result: List[DeliveryZone] = []
    for zone in zones:
        if zone.id in seen:
            continue
        seen.add(zone.id)
        result.append(zone)
    return result


def _resolve_timeout(timeout: Optional[float]) -> float:
    if timeout is None:
        return DEFAULT_GEOCODE_TIMEOUT_S
    if not math.isfinite(timeout) or timeout <= 0:
        raise ValueError(f"Geocode timeout must be a positive number of seconds, got {timeout}")
    return timeout


def _log_skipped(zone: DeliveryZone, exc: MalformedZoneGeometry) -> None:
    logger.warning(
        "Skipping malformed delivery zone",
        zone_id=zone.id,
        area_type=zone.area_type,
        reason=exc.message,
    )


def find_geometric_matches(point: Coordinate, zones: Sequence[DeliveryZone]) -> List[DeliveryZone]:
    """
    Active circle/polygon zones containing the point. No I/O.

    Address-based zones are ignored here; malformed zones are logged and skipped.
    """
    matches = []
    for zone in zones:
        if not zone.is_active or zone.area_type in GEOCODED_AREA_TYPES:
            continue
        try:
            if zone_contains(zone, point):
                matches.append(zone)
        except MalformedZoneGeometry as e:
            _log_skipped(zone, e)
    return _dedupe(matches)


async def lookup_address(
    point: Coordinate,
    reverse_geocoder: Optional[ReverseGeocoder],
    timeout: Optional[float] = None,
) -> AddressComponents:
    """
    Reverse geocode with a hard timeout (None means DEFAULT_GEOCODE_TIMEOUT_S).

    Raises:
        ValueError: timeout is not a positive number
        GeocodeUnavailable: no collaborator, timeout, provider failure or empty result
    """
    timeout = _resolve_timeout(timeout)
    if reverse_geocoder is None:
        raise GeocodeUnavailable("No reverse geocoder configured")
    try:
        address = await asyncio.wait_for(reverse_geocoder.reverse_geocode(point), timeout=timeout)
    except asyncio.TimeoutError:
        raise GeocodeUnavailable(f"Reverse geocoding timed out after {timeout}s")
    except GeocodeUnavailable:
        raise
    except Exception as e:
        logger.error("Reverse geocoding failed", lat=point.lat, lng=point.lng, exc_info=e)
        raise GeocodeUnavailable(f"Reverse geocoding failed: {e}") from e
    if address is None:
        raise GeocodeUnavailable("Reverse geocoding returned no result")
    return address


async def find_matching_zones(
    point: Coordinate,
    zones: Sequence[DeliveryZone],
    reverse_geocoder: Optional[ReverseGeocoder] = None,
    timeout: Optional[float] = None,
) -> List[DeliveryZone]:
    """
    Find every active delivery zone containing the point.

    Circle and polygon zones are evaluated first. Postal code and city zones
    are then matched against a single reverse geocode of the point; if the
    geocoder is missing, fails or times out they simply do not match.
    Malformed zones are skipped. The result holds each zone id at most once.
    Never raises for bad zones or geocoding problems. A missing timeout means
    DEFAULT_GEOCODE_TIMEOUT_S; the geocoder is never awaited without a bound.
    """
    timeout = _resolve_timeout(timeout)
    matches = find_geometric_matches(point, zones)

    address_zones = []
    for zone in zones:
        if not zone.is_active or zone.area_type not in GEOCODED_AREA_TYPES:
            continue
        try:
            zone.geometry.check()
        except MalformedZoneGeometry as e:
            _log_skipped(zone, e)
            continue
        address_zones.append(zone)

    if address_zones:
        try:
            address = await lookup_address(point, reverse_geocoder, timeout=timeout)
        except GeocodeUnavailable as e:
            logger.warning(
                "Address-based zones treated as not matching",
                reason=e.message,
                zone_count=len(address_zones),
            )
        else:
            matches.extend(zone for zone in address_zones if address_matches(zone, address))

    return _dedupe(matches)
