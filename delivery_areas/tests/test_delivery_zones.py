"""
Tests for DeliveryZoneService.

Tests cover:
- Zone CRUD (create, get, list, save/upsert, update, toggle, delete)
- Geometry validation on save
- Reading rows written in the legacy coordinate format
- Delivery availability checks by coordinate and by typed address
"""
import asyncio
from decimal import Decimal
from typing import Optional

import pytest
from sqlalchemy.ext.asyncio import AsyncSession

from delivery_areas.app.core.constants import MSG_NOT_AVAILABLE, MSG_UNVERIFIED_LOCATION
from delivery_areas.app.core.exceptions import DeliveryZoneError, MalformedZoneGeometry, ZoneNotFound
from delivery_areas.app.models.delivery_area import DeliveryArea
from delivery_areas.app.schemas import (
    AddressComponents,
    CircleGeometry,
    Coordinate,
    PolygonGeometry,
    PostalCodeGeometry,
)
from delivery_areas.app.services.delivery_zones import DeliveryZoneService

STORE = "store-1"
OTHER_STORE = "store-2"

MANHATTAN_CIRCLE = {
    "area_type": "circle",
    "center": {"lat": 40.7128, "lng": -74.0060},
    "radius_meters": 5000,
}
UNIT_SQUARE = {
    "area_type": "polygon",
    "vertices": [
        {"lat": 0, "lng": 0},
        {"lat": 0, "lng": 1},
        {"lat": 1, "lng": 1},
        {"lat": 1, "lng": 0},
    ],
}


def zone_data(geometry: dict, **kwargs) -> dict:
    data = {"name": "Downtown", "geometry": geometry}
    data.update(kwargs)
    return data


class StaticGeocoder:
    """Forward and reverse geocoder with fixed answers."""

    def __init__(
        self,
        point: Optional[Coordinate] = None,
        address: Optional[AddressComponents] = None,
        error: Optional[Exception] = None,
        delay: float = 0.0,
    ):
        self.point = point
        self.address = address
        self.error = error
        self.delay = delay
        self.reverse_calls = 0

    async def geocode(self, address: str) -> Optional[Coordinate]:
        if self.delay:
            await asyncio.sleep(self.delay)
        if self.error is not None:
            raise self.error
        return self.point

    async def reverse_geocode(self, point: Coordinate) -> Optional[AddressComponents]:
        self.reverse_calls += 1
        return self.address


# ============================================
# CRUD
# ============================================

@pytest.mark.asyncio
async def test_create_and_get_zone(zone_service: DeliveryZoneService):
    created = await zone_service.create_zone(
        STORE,
        zone_data(MANHATTAN_CIRCLE, delivery_fee=Decimal("4.99"), description="Lower Manhattan"),
    )

    assert created.id
    assert created.store_id == STORE
    assert created.area_type == "circle"

    fetched = await zone_service.get_zone(created.id)
    assert fetched is not None
    assert fetched.name == "Downtown"
    assert fetched.description == "Lower Manhattan"
    assert fetched.delivery_fee == Decimal("4.99")
    assert fetched.geometry == CircleGeometry(
        center=Coordinate(lat=40.7128, lng=-74.0060), radius_meters=5000
    )
    assert fetched.operating_hours["sunday"].enabled is False


@pytest.mark.asyncio
async def test_get_zone_not_found(zone_service: DeliveryZoneService):
    assert await zone_service.get_zone("missing") is None


@pytest.mark.asyncio
async def test_list_zones_per_store(zone_service: DeliveryZoneService):
    a = await zone_service.create_zone(STORE, zone_data(MANHATTAN_CIRCLE))
    b = await zone_service.create_zone(STORE, zone_data(UNIT_SQUARE, is_active=False))
    await zone_service.create_zone(OTHER_STORE, zone_data(UNIT_SQUARE))

    zones = await zone_service.list_zones(STORE)
    assert {z.id for z in zones} == {a.id, b.id}

    active = await zone_service.get_active_zones(STORE)
    assert [z.id for z in active] == [a.id]


@pytest.mark.asyncio
async def test_save_zone_last_write_wins(zone_service: DeliveryZoneService):
    zone = await zone_service.create_zone(STORE, zone_data(MANHATTAN_CIRCLE))

    await zone_service.save_zone(zone.model_copy(update={"name": "First"}))
    await zone_service.save_zone(zone.model_copy(update={"name": "Second"}))

    zones = await zone_service.list_zones(STORE)
    assert len(zones) == 1
    assert zones[0].name == "Second"


@pytest.mark.asyncio
async def test_update_zone_replaces_geometry(zone_service: DeliveryZoneService):
    zone = await zone_service.create_zone(STORE, zone_data(MANHATTAN_CIRCLE, delivery_fee=Decimal("3.00")))

    updated = await zone_service.update_zone(zone.id, {"geometry": UNIT_SQUARE, "unknown_field": 1})

    assert updated.area_type == "polygon"
    assert isinstance(updated.geometry, PolygonGeometry)
    assert len(updated.geometry.vertices) == 4
    assert updated.delivery_fee == Decimal("3.00")
    assert updated.store_id == STORE


@pytest.mark.asyncio
async def test_update_missing_zone_raises(zone_service: DeliveryZoneService):
    with pytest.raises(ZoneNotFound) as exc_info:
        await zone_service.update_zone("missing", {"name": "x"})
    assert exc_info.value.status_code == 404


@pytest.mark.asyncio
async def test_toggle_zone(zone_service: DeliveryZoneService):
    zone = await zone_service.create_zone(STORE, zone_data(MANHATTAN_CIRCLE))

    toggled = await zone_service.toggle_zone(zone.id, False)
    assert toggled.is_active is False
    assert await zone_service.get_active_zones(STORE) == []

    await zone_service.toggle_zone(zone.id, True)
    assert len(await zone_service.get_active_zones(STORE)) == 1


@pytest.mark.asyncio
async def test_toggle_missing_zone_raises(zone_service: DeliveryZoneService):
    with pytest.raises(ZoneNotFound):
        await zone_service.toggle_zone("missing", True)


@pytest.mark.asyncio
async def test_delete_zone(zone_service: DeliveryZoneService):
    zone = await zone_service.create_zone(STORE, zone_data(MANHATTAN_CIRCLE))

    assert await zone_service.delete_zone(zone.id) is True
    assert await zone_service.delete_zone(zone.id) is False
    assert await zone_service.get_zone(zone.id) is None


# ============================================
# VALIDATION
# ============================================

@pytest.mark.asyncio
async def test_create_polygon_with_two_vertices_refused(zone_service: DeliveryZoneService):
    two_points = {"area_type": "polygon", "vertices": UNIT_SQUARE["vertices"][:2]}
    with pytest.raises(MalformedZoneGeometry):
        await zone_service.create_zone(STORE, zone_data(two_points))
    assert await zone_service.list_zones(STORE) == []


@pytest.mark.asyncio
async def test_create_zero_radius_circle_refused(zone_service: DeliveryZoneService):
    with pytest.raises(MalformedZoneGeometry):
        await zone_service.create_zone(STORE, zone_data({**MANHATTAN_CIRCLE, "radius_meters": 0}))


@pytest.mark.asyncio
async def test_empty_postal_zone_allowed_only_when_inactive(zone_service: DeliveryZoneService):
    empty = {"area_type": "postal_code", "codes": []}

    draft = await zone_service.create_zone(STORE, zone_data(empty, is_active=False))
    assert draft.geometry == PostalCodeGeometry(codes=frozenset())

    with pytest.raises(MalformedZoneGeometry):
        await zone_service.create_zone(STORE, zone_data(empty))


@pytest.mark.asyncio
@pytest.mark.parametrize("name", ["", "   "])
async def test_blank_zone_name_refused(zone_service: DeliveryZoneService, name: str):
    with pytest.raises(DeliveryZoneError) as exc_info:
        await zone_service.create_zone(STORE, zone_data(MANHATTAN_CIRCLE, name=name))
    assert exc_info.value.status_code == 422
    assert await zone_service.list_zones(STORE) == []


@pytest.mark.asyncio
async def test_update_cannot_blank_the_name(zone_service: DeliveryZoneService):
    zone = await zone_service.create_zone(STORE, zone_data(MANHATTAN_CIRCLE))
    with pytest.raises(DeliveryZoneError):
        await zone_service.update_zone(zone.id, {"name": ""})
    assert (await zone_service.get_zone(zone.id)).name == "Downtown"


# ============================================
# STORED ROW FORMATS
# ============================================

@pytest.mark.asyncio
async def test_legacy_coordinate_rows(test_session: AsyncSession, zone_service: DeliveryZoneService):
    test_session.add_all([
        DeliveryArea(
            id="legacy-circle",
            store_id=STORE,
            name="Old circle",
            area_type="circle",
            coordinates=[40.0, -74.0, 2.5],
            is_active=True,
        ),
        DeliveryArea(
            id="legacy-polygon",
            store_id=STORE,
            name="Old polygon",
            area_type="polygon",
            coordinates=[[0, 0], [0, 1], [1, 1]],
            is_active=True,
        ),
    ])
    await test_session.flush()

    circle = await zone_service.get_zone("legacy-circle")
    assert circle.geometry.radius_meters == pytest.approx(2500)
    assert circle.geometry.center == Coordinate(lat=40.0, lng=-74.0)
    assert circle.estimated_time_min_minutes == 30
    assert circle.estimated_time_max_minutes == 60

    polygon = await zone_service.get_zone("legacy-polygon")
    assert polygon.geometry.vertices[2] == Coordinate(lat=1, lng=1)


@pytest.mark.asyncio
async def test_unreadable_rows_skipped(test_session: AsyncSession, zone_service: DeliveryZoneService):
    good = await zone_service.create_zone(STORE, zone_data(MANHATTAN_CIRCLE))
    test_session.add_all([
        DeliveryArea(id="hexagon", store_id=STORE, name="?", area_type="hexagon", is_active=True),
        DeliveryArea(
            id="broken-circle",
            store_id=STORE,
            name="?",
            area_type="circle",
            coordinates={"type": "circle"},
            is_active=True,
        ),
    ])
    await test_session.flush()

    zones = await zone_service.get_active_zones(STORE)
    assert [z.id for z in zones] == [good.id]


@pytest.mark.asyncio
async def test_saved_circle_uses_object_format(test_session: AsyncSession, zone_service: DeliveryZoneService):
    zone = await zone_service.create_zone(STORE, zone_data(MANHATTAN_CIRCLE))
    row = await test_session.get(DeliveryArea, zone.id)
    assert row.coordinates == {
        "type": "circle",
        "center": {"lat": 40.7128, "lng": -74.0060},
        "radius": 5000.0,
    }
    assert row.postal_codes == []


# ============================================
# DELIVERY CHECK
# ============================================

@pytest.mark.asyncio
async def test_check_delivery_inside_zone(zone_service: DeliveryZoneService):
    await zone_service.create_zone(
        STORE,
        zone_data(
            MANHATTAN_CIRCLE,
            delivery_fee=Decimal("4.99"),
            free_delivery_threshold=Decimal("50"),
            estimated_time_min_minutes=20,
            estimated_time_max_minutes=40,
        ),
    )

    result = await zone_service.check_delivery(STORE, Coordinate(lat=40.72, lng=-74.0))

    assert result.available is True
    assert result.zone.name == "Downtown"
    assert result.delivery_fee == Decimal("4.99")
    assert result.estimated_time == "20-40 min"
    assert result.message == "Free delivery on orders over $50.00"


@pytest.mark.asyncio
async def test_check_delivery_outside_zone(zone_service: DeliveryZoneService):
    await zone_service.create_zone(STORE, zone_data(MANHATTAN_CIRCLE))

    result = await zone_service.check_delivery(STORE, Coordinate(lat=34.05, lng=-118.24))

    assert result.available is False
    assert result.zone is None
    assert result.message == MSG_NOT_AVAILABLE


@pytest.mark.asyncio
async def test_check_delivery_store_without_zones(zone_service: DeliveryZoneService):
    result = await zone_service.check_delivery(STORE, Coordinate(lat=0.5, lng=0.5))
    assert result.available is False
    assert result.message == MSG_NOT_AVAILABLE


@pytest.mark.asyncio
async def test_check_delivery_ignores_inactive_zone(zone_service: DeliveryZoneService):
    await zone_service.create_zone(STORE, zone_data(UNIT_SQUARE, is_active=False))
    result = await zone_service.check_delivery(STORE, Coordinate(lat=0.5, lng=0.5))
    assert result.available is False


@pytest.mark.asyncio
async def test_check_delivery_postal_zone(zone_service: DeliveryZoneService):
    await zone_service.create_zone(
        STORE, zone_data({"area_type": "postal_code", "codes": ["10001", "10002"]}, name="Zip")
    )
    geocoder = StaticGeocoder(address=AddressComponents(postal_code="10001", city="New York"))

    result = await zone_service.check_delivery(STORE, Coordinate(lat=40.75, lng=-73.99), geocoder)

    assert result.available is True
    assert result.zone.name == "Zip"
    assert geocoder.reverse_calls == 1


@pytest.mark.asyncio
async def test_check_delivery_postal_zone_without_geocoder(zone_service: DeliveryZoneService):
    await zone_service.create_zone(STORE, zone_data({"area_type": "postal_code", "codes": ["10001"]}))
    result = await zone_service.check_delivery(STORE, Coordinate(lat=40.75, lng=-73.99))
    assert result.available is False
    assert result.message == MSG_NOT_AVAILABLE


@pytest.mark.asyncio
async def test_check_delivery_for_address(zone_service: DeliveryZoneService):
    await zone_service.create_zone(STORE, zone_data(MANHATTAN_CIRCLE))
    geocoder = StaticGeocoder(point=Coordinate(lat=40.713, lng=-74.005))

    result = await zone_service.check_delivery_for_address(STORE, "1 Centre St, New York", geocoder)

    assert result.available is True


@pytest.mark.asyncio
async def test_check_delivery_for_address_reuses_geocoder_for_city_zones(
    zone_service: DeliveryZoneService,
):
    await zone_service.create_zone(STORE, zone_data({"area_type": "city", "names": ["Brooklyn"]}))
    geocoder = StaticGeocoder(
        point=Coordinate(lat=40.68, lng=-73.94),
        address=AddressComponents(postal_code="11216", city="brooklyn"),
    )

    result = await zone_service.check_delivery_for_address(STORE, "Bedford Ave", geocoder)

    assert result.available is True
    assert geocoder.reverse_calls == 1


@pytest.mark.asyncio
async def test_check_delivery_for_unknown_address(zone_service: DeliveryZoneService):
    await zone_service.create_zone(STORE, zone_data(MANHATTAN_CIRCLE))

    result = await zone_service.check_delivery_for_address(STORE, "nowhere", StaticGeocoder(point=None))

    assert result.available is False
    assert result.message == MSG_UNVERIFIED_LOCATION


@pytest.mark.asyncio
async def test_check_delivery_for_address_geocoder_failure(zone_service: DeliveryZoneService):
    await zone_service.create_zone(STORE, zone_data(MANHATTAN_CIRCLE))
    geocoder = StaticGeocoder(error=RuntimeError("quota exceeded"))

    result = await zone_service.check_delivery_for_address(STORE, "1 Centre St", geocoder)

    assert result.available is False
    assert result.message == MSG_UNVERIFIED_LOCATION


@pytest.mark.asyncio
async def test_check_delivery_for_address_geocoder_timeout(test_session: AsyncSession):
    service = DeliveryZoneService(test_session, geocode_timeout=0.05)
    await service.create_zone(STORE, zone_data(MANHATTAN_CIRCLE))
    geocoder = StaticGeocoder(point=Coordinate(lat=40.713, lng=-74.005), delay=1.0)

    result = await service.check_delivery_for_address(STORE, "1 Centre St", geocoder)

    assert result.available is False
    assert result.message == MSG_UNVERIFIED_LOCATION
