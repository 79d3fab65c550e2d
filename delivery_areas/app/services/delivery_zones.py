"""Delivery zone management and delivery availability checks."""
import asyncio
import uuid
from decimal import Decimal
from typing import Any, Dict, List, Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from delivery_areas.app.core.constants import (
    AREA_CIRCLE,
    AREA_CITY,
    AREA_POLYGON,
    AREA_POSTAL_CODE,
    DEFAULT_ESTIMATED_TIME_MAX,
    DEFAULT_ESTIMATED_TIME_MIN,
    DEFAULT_GEOCODE_TIMEOUT_S,
    GEOMETRIC_AREA_TYPES,
    MSG_NOT_AVAILABLE,
    MSG_UNVERIFIED_LOCATION,
    VALID_AREA_TYPES,
)
from delivery_areas.app.core.exceptions import DeliveryZoneError, MalformedZoneGeometry, ZoneNotFound
from delivery_areas.app.core.logging import get_logger
from delivery_areas.app.core.settings import Settings, get_settings
from delivery_areas.app.models.delivery_area import DeliveryArea
from delivery_areas.app.schemas import (
    CircleGeometry,
    CityGeometry,
    Coordinate,
    DeliveryCheckResult,
    DeliveryZone,
    PolygonGeometry,
    PostalCodeGeometry,
)
from delivery_areas.app.services.zone_matching import (
    ForwardGeocoder,
    ReverseGeocoder,
    find_matching_zones,
)

logger = get_logger(__name__)

# Zone fields that update_zone replaces wholesale when present in data
_UPDATABLE_FIELDS = (
    "name",
    "description",
    "geometry",
    "is_active",
    "delivery_fee",
    "free_delivery_threshold",
    "estimated_time_min_minutes",
    "estimated_time_max_minutes",
    "max_orders_per_day",
    "operating_hours",
)


def _parse_point(value: Any) -> Coordinate:
    if isinstance(value, dict):
        return Coordinate(lat=float(value["lat"]), lng=float(value["lng"]))
    lat, lng = value[0], value[1]
    return Coordinate(lat=float(lat), lng=float(lng))


def parse_geometry(
    area_type: str,
    coordinates: Any = None,
    postal_codes: Optional[List[str]] = None,
    cities: Optional[List[str]] = None,
):
    """
    Build zone geometry from stored columns.

    Accepts both coordinate layouts found in storage:
        circle:  {"type": "circle", "center": {"lat", "lng"}, "radius": meters}
                 or legacy [center_lat, center_lng, radius_km]
        polygon: {"type": "polygon", "coordinates": [{"lat", "lng"}, ...]}
                 or legacy [[lat, lng], ...]

    Raises:
        MalformedZoneGeometry: unknown area type or unreadable coordinates
    """
    if area_type not in VALID_AREA_TYPES:
        raise MalformedZoneGeometry(f"Unknown delivery area type: {area_type!r}")
    try:
        if area_type == AREA_CIRCLE:
            if isinstance(coordinates, dict):
                return CircleGeometry(
                    center=_parse_point(coordinates["center"]),
                    radius_meters=float(coordinates["radius"]),
                )
            center_lat, center_lng, radius_km = coordinates[0], coordinates[1], coordinates[2]
            return CircleGeometry(
                center=Coordinate(lat=float(center_lat), lng=float(center_lng)),
                radius_meters=float(radius_km) * 1000,
            )
        if area_type == AREA_POLYGON:
            points = coordinates.get("coordinates", []) if isinstance(coordinates, dict) else coordinates
            return PolygonGeometry(vertices=tuple(_parse_point(p) for p in points or []))
        if area_type == AREA_POSTAL_CODE:
            return PostalCodeGeometry(codes=frozenset(postal_codes or []))
        if area_type == AREA_CITY:
            return CityGeometry(names=frozenset(cities or []))
    except (KeyError, IndexError, TypeError, ValueError) as e:
        raise MalformedZoneGeometry(f"Unreadable {area_type} coordinates: {e}")
    raise MalformedZoneGeometry(f"Unknown delivery area type: {area_type!r}")


def serialize_geometry(geometry) -> Dict[str, Any]:
    """Geometry -> column values (coordinates, postal_codes, cities)."""
    if isinstance(geometry, CircleGeometry):
        coordinates = {
            "type": AREA_CIRCLE,
            "center": {"lat": geometry.center.lat, "lng": geometry.center.lng},
            "radius": geometry.radius_meters,
        }
        return {"coordinates": coordinates, "postal_codes": [], "cities": []}
    if isinstance(geometry, PolygonGeometry):
        coordinates = {
            "type": AREA_POLYGON,
            "coordinates": [{"lat": v.lat, "lng": v.lng} for v in geometry.vertices],
        }
        return {"coordinates": coordinates, "postal_codes": [], "cities": []}
    if isinstance(geometry, PostalCodeGeometry):
        return {"coordinates": None, "postal_codes": sorted(geometry.codes), "cities": []}
    if isinstance(geometry, CityGeometry):
        return {"coordinates": None, "postal_codes": [], "cities": sorted(geometry.names)}
    raise MalformedZoneGeometry(f"Unknown delivery area type: {geometry.area_type!r}")


def delivery_terms(zone: DeliveryZone) -> DeliveryCheckResult:
    """Customer-facing delivery terms for a matched zone."""
    message = None
    if zone.free_delivery_threshold and zone.free_delivery_threshold > 0:
        message = f"Free delivery on orders over ${zone.free_delivery_threshold:.2f}"
    return DeliveryCheckResult(
        available=True,
        zone=zone,
        delivery_fee=zone.delivery_fee,
        estimated_time=f"{zone.estimated_time_min_minutes}-{zone.estimated_time_max_minutes} min",
        message=message,
    )


class DeliveryZoneService:
    def __init__(self, session: AsyncSession, geocode_timeout: float = DEFAULT_GEOCODE_TIMEOUT_S):
        if geocode_timeout <= 0:
            raise ValueError(f"geocode_timeout must be > 0, got {geocode_timeout}")
        self.session = session
        self.geocode_timeout = geocode_timeout

    @classmethod
    def from_settings(cls, session: AsyncSession, settings: Optional[Settings] = None) -> "DeliveryZoneService":
        settings = settings or get_settings()
        return cls(session, geocode_timeout=settings.GEOCODE_TIMEOUT_SECONDS)

    async def list_zones(self, store_id: str) -> List[DeliveryZone]:
        """Get all delivery zones for a store, newest first. Unreadable rows are skipped."""
        result = await self.session.execute(
            select(DeliveryArea)
            .where(DeliveryArea.store_id == store_id)
            .order_by(DeliveryArea.created_at.desc(), DeliveryArea.id)
        )
        return self._rows_to_zones(result.scalars().all())

    async def get_active_zones(self, store_id: str) -> List[DeliveryZone]:
        """Get only active delivery zones for a store."""
        result = await self.session.execute(
            select(DeliveryArea)
            .where(DeliveryArea.store_id == store_id, DeliveryArea.is_active == True)  # noqa: E712
            .order_by(DeliveryArea.created_at.desc(), DeliveryArea.id)
        )
        return self._rows_to_zones(result.scalars().all())

    async def get_zone(self, zone_id: str) -> Optional[DeliveryZone]:
        row = await self.session.get(DeliveryArea, zone_id)
        if not row:
            return None
        return self._row_to_zone(row)

    async def save_zone(self, zone: DeliveryZone) -> DeliveryZone:
        """
        Insert or replace a zone by id (last write wins).

        Raises:
            MalformedZoneGeometry: geometry breaks its invariants
            DeliveryZoneError: zone has no name
        """
        self._validate_for_save(zone)
        row = await self.session.get(DeliveryArea, zone.id)
        if row is None:
            row = DeliveryArea(id=zone.id, store_id=zone.store_id or "")
            self.session.add(row)
        elif zone.store_id:
            row.store_id = zone.store_id
        self._apply_zone(row, zone)
        await self.session.flush()
        logger.info("Delivery zone saved", zone_id=zone.id, store_id=row.store_id, area_type=zone.area_type)
        return self._row_to_zone(row)

    async def create_zone(self, store_id: str, data: Dict[str, Any]) -> DeliveryZone:
        """Create a new delivery zone from form data (geometry plus commercial terms)."""
        zone = DeliveryZone.model_validate({**data, "id": str(uuid.uuid4()), "store_id": store_id})
        return await self.save_zone(zone)

    async def update_zone(self, zone_id: str, data: Dict[str, Any]) -> DeliveryZone:
        """
        Replace the given fields of an existing zone.

        Raises:
            ZoneNotFound: no zone with this id
        """
        zone = await self.get_zone(zone_id)
        if zone is None:
            raise ZoneNotFound(zone_id)
        changes = {field: data[field] for field in _UPDATABLE_FIELDS if field in data}
        updated = DeliveryZone.model_validate({**zone.model_dump(), **changes})
        return await self.save_zone(updated)

    async def toggle_zone(self, zone_id: str, is_active: bool) -> DeliveryZone:
        """
        Raises:
            ZoneNotFound: no zone with this id
        """
        return await self.update_zone(zone_id, {"is_active": is_active})

    async def delete_zone(self, zone_id: str) -> bool:
        """Delete a delivery zone. Returns True if deleted."""
        row = await self.session.get(DeliveryArea, zone_id)
        if not row:
            return False
        await self.session.delete(row)
        await self.session.flush()
        logger.info("Delivery zone deleted", zone_id=zone_id)
        return True

    async def check_delivery(
        self,
        store_id: str,
        point: Coordinate,
        reverse_geocoder: Optional[ReverseGeocoder] = None,
    ) -> DeliveryCheckResult:
        """
        Check if the store delivers to a coordinate.
        The first matching zone supplies the delivery terms.
        """
        zones = await self.get_active_zones(store_id)
        if not zones:
            return DeliveryCheckResult(available=False, message=MSG_NOT_AVAILABLE)

        matches = await find_matching_zones(
            point, zones, reverse_geocoder=reverse_geocoder, timeout=self.geocode_timeout
        )
        logger.info(
            "Delivery check",
            store_id=store_id,
            lat=point.lat,
            lng=point.lng,
            zones=len(zones),
            matched=[z.id for z in matches],
        )
        if not matches:
            return DeliveryCheckResult(available=False, message=MSG_NOT_AVAILABLE)
        return delivery_terms(matches[0])

    async def check_delivery_for_address(
        self,
        store_id: str,
        address: str,
        geocoder: ForwardGeocoder,
        reverse_geocoder: Optional[ReverseGeocoder] = None,
    ) -> DeliveryCheckResult:
        """
        Geocode a typed address, then check delivery to it.
        A geocoder that can also reverse geocode is reused for address-based zones.
        """
        try:
            point = await asyncio.wait_for(geocoder.geocode(address), timeout=self.geocode_timeout)
        except asyncio.TimeoutError:
            logger.warning("Address geocoding timed out", address=address[:80])
            point = None
        except Exception as e:
            logger.error("Address geocoding failed", address=address[:80], exc_info=e)
            point = None

        if point is None:
            return DeliveryCheckResult(available=False, message=MSG_UNVERIFIED_LOCATION)

        if reverse_geocoder is None and hasattr(geocoder, "reverse_geocode"):
            reverse_geocoder = geocoder
        return await self.check_delivery(store_id, point, reverse_geocoder=reverse_geocoder)

    @staticmethod
    def _validate_for_save(zone: DeliveryZone) -> None:
        if not zone.name.strip():
            raise DeliveryZoneError("Delivery zone name is required", 422)
        # Empty code/name lists are allowed on inactive drafts only
        if zone.area_type in GEOMETRIC_AREA_TYPES or zone.is_active:
            try:
                zone.geometry.check()
            except MalformedZoneGeometry as e:
                e.zone_id = zone.id
                raise

    @staticmethod
    def _apply_zone(row: DeliveryArea, zone: DeliveryZone) -> None:
        columns = serialize_geometry(zone.geometry)
        row.name = zone.name
        row.description = zone.description
        row.area_type = zone.area_type
        row.coordinates = columns["coordinates"]
        row.postal_codes = columns["postal_codes"]
        row.cities = columns["cities"]
        row.delivery_fee = zone.delivery_fee
        row.free_delivery_threshold = zone.free_delivery_threshold
        row.estimated_delivery_time_min = zone.estimated_time_min_minutes
        row.estimated_delivery_time_max = zone.estimated_time_max_minutes
        row.is_active = zone.is_active
        row.max_orders_per_day = zone.max_orders_per_day
        row.operating_hours = {day: hours.model_dump() for day, hours in zone.operating_hours.items()}

    def _rows_to_zones(self, rows) -> List[DeliveryZone]:
        zones = []
        for row in rows:
            try:
                zones.append(self._row_to_zone(row))
            except (MalformedZoneGeometry, ValueError) as e:
                logger.warning("Skipping unreadable delivery zone", zone_id=row.id, reason=str(e))
        return zones

    @staticmethod
    def _row_to_zone(row: DeliveryArea) -> DeliveryZone:
        data: Dict[str, Any] = {
            "id": row.id,
            "store_id": row.store_id,
            "name": row.name,
            "description": row.description,
            "geometry": parse_geometry(row.area_type, row.coordinates, row.postal_codes, row.cities),
            "is_active": row.is_active,
            "delivery_fee": row.delivery_fee if row.delivery_fee is not None else Decimal(0),
            "free_delivery_threshold": row.free_delivery_threshold,
            "estimated_time_min_minutes": row.estimated_delivery_time_min or DEFAULT_ESTIMATED_TIME_MIN,
            "estimated_time_max_minutes": row.estimated_delivery_time_max or DEFAULT_ESTIMATED_TIME_MAX,
            "max_orders_per_day": row.max_orders_per_day,
        }
        if row.operating_hours:
            data["operating_hours"] = row.operating_hours
        return DeliveryZone.model_validate(data)
