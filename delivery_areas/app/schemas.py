import math
from datetime import datetime
from decimal import Decimal
from typing import Annotated, Dict, Literal, Optional, Tuple, Union

from pydantic import BaseModel, ConfigDict, Field, field_validator

from delivery_areas.app.core.constants import (
    AREA_CIRCLE,
    AREA_CITY,
    AREA_POLYGON,
    AREA_POSTAL_CODE,
    DEFAULT_ESTIMATED_TIME_MAX,
    DEFAULT_ESTIMATED_TIME_MIN,
    DEFAULT_MAX_ORDERS_PER_DAY,
    MIN_POLYGON_VERTICES,
    WEEKDAYS,
)
from delivery_areas.app.core.exceptions import MalformedZoneGeometry


# --- Coordinates ---
class Coordinate(BaseModel):
    """Immutable lat/lng pair in degrees."""

    model_config = ConfigDict(frozen=True)

    lat: float = Field(ge=-90, le=90)
    lng: float = Field(ge=-180, le=180)


# --- Zone geometry ---
# Construction accepts shapes that break their invariants so that stored zones
# can always be loaded; check() is what enforces them.

class CircleGeometry(BaseModel):
    model_config = ConfigDict(frozen=True)

    area_type: Literal["circle"] = AREA_CIRCLE
    center: Coordinate
    radius_meters: float

    def check(self) -> None:
        if not math.isfinite(self.radius_meters) or self.radius_meters <= 0:
            raise MalformedZoneGeometry(f"Circle radius must be > 0, got {self.radius_meters}")


class PolygonGeometry(BaseModel):
    model_config = ConfigDict(frozen=True)

    area_type: Literal["polygon"] = AREA_POLYGON
    # Closed ring; the last vertex connects back to the first
    vertices: Tuple[Coordinate, ...]

    def check(self) -> None:
        if len(self.vertices) < MIN_POLYGON_VERTICES:
            raise MalformedZoneGeometry(
                f"Polygon must have at least {MIN_POLYGON_VERTICES} vertices, got {len(self.vertices)}"
            )


class PostalCodeGeometry(BaseModel):
    model_config = ConfigDict(frozen=True)

    area_type: Literal["postal_code"] = AREA_POSTAL_CODE
    codes: frozenset[str]

    @field_validator("codes")
    @classmethod
    def strip_codes(cls, v: frozenset[str]) -> frozenset[str]:
        return frozenset(code.strip() for code in v if code and code.strip())

    def check(self) -> None:
        if not self.codes:
            raise MalformedZoneGeometry("Postal code zone has no postal codes")


class CityGeometry(BaseModel):
    model_config = ConfigDict(frozen=True)

    area_type: Literal["city"] = AREA_CITY
    names: frozenset[str]

    @field_validator("names")
    @classmethod
    def strip_names(cls, v: frozenset[str]) -> frozenset[str]:
        return frozenset(name.strip() for name in v if name and name.strip())

    def check(self) -> None:
        if not self.names:
            raise MalformedZoneGeometry("City zone has no city names")


Geometry = Annotated[
    Union[CircleGeometry, PolygonGeometry, PostalCodeGeometry, CityGeometry],
    Field(discriminator="area_type"),
]

# Shapes the map drawing tool can produce
DrawnGeometry = Union[CircleGeometry, PolygonGeometry]


# --- Operating hours ---
class DayHours(BaseModel):
    model_config = ConfigDict(frozen=True)

    enabled: bool = True
    start: str = Field(default="09:00", pattern=r"^([01]\d|2[0-3]):[0-5]\d$")
    end: str = Field(default="17:00", pattern=r"^([01]\d|2[0-3]):[0-5]\d$")


DEFAULT_OPERATING_HOURS: Dict[str, DayHours] = {
    "monday": DayHours(enabled=True, start="09:00", end="17:00"),
    "tuesday": DayHours(enabled=True, start="09:00", end="17:00"),
    "wednesday": DayHours(enabled=True, start="09:00", end="17:00"),
    "thursday": DayHours(enabled=True, start="09:00", end="17:00"),
    "friday": DayHours(enabled=True, start="09:00", end="17:00"),
    "saturday": DayHours(enabled=True, start="10:00", end="16:00"),
    "sunday": DayHours(enabled=False, start="10:00", end="16:00"),
}


# --- Delivery zones ---
class DeliveryZone(BaseModel):
    """
    Merchant-defined delivery region with attached commercial terms.

    The commercial terms are opaque to the matching engine and travel with
    the zone unchanged. Zones are frozen: edits build a new zone with
    model_copy(update=...).
    """

    model_config = ConfigDict(frozen=True)

    id: str
    store_id: Optional[str] = None
    # Stored rows may predate the name requirement; save_zone refuses a blank name
    name: str = ""
    description: Optional[str] = None
    geometry: Geometry
    is_active: bool = True

    delivery_fee: Decimal = Field(default=Decimal(0), ge=0)
    free_delivery_threshold: Optional[Decimal] = Field(default=None, ge=0)
    estimated_time_min_minutes: int = Field(default=DEFAULT_ESTIMATED_TIME_MIN, ge=1)
    estimated_time_max_minutes: int = Field(default=DEFAULT_ESTIMATED_TIME_MAX, ge=1)
    max_orders_per_day: Optional[int] = Field(default=DEFAULT_MAX_ORDERS_PER_DAY, ge=1)
    operating_hours: Dict[str, DayHours] = Field(default_factory=lambda: dict(DEFAULT_OPERATING_HOURS))

    @field_validator("operating_hours")
    @classmethod
    def validate_weekdays(cls, v: Dict[str, DayHours]) -> Dict[str, DayHours]:
        unknown = set(v) - set(WEEKDAYS)
        if unknown:
            raise ValueError(f"Unknown weekdays in operating_hours: {sorted(unknown)}")
        return v

    @property
    def area_type(self) -> str:
        return self.geometry.area_type


# --- Geocoding ---
class AddressComponents(BaseModel):
    model_config = ConfigDict(frozen=True)

    postal_code: Optional[str] = None
    city: Optional[str] = None


# --- Delivery check ---
class DeliveryCheckResult(BaseModel):
    available: bool
    zone: Optional[DeliveryZone] = None
    delivery_fee: Decimal = Decimal(0)
    estimated_time: Optional[str] = None
    message: Optional[str] = None


# --- Map events ---
class MapClick(BaseModel):
    """Click delivered by the map surface; point is None when the event had no position."""

    model_config = ConfigDict(frozen=True)

    point: Optional[Coordinate] = None
    timestamp: Optional[datetime] = None
