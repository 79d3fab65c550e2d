"""
Unified base exception classes for delivery area services.

Geometry and authoring errors extend DeliveryZoneError so callers can catch
the whole family with one handler.
"""
from typing import Optional


class ServiceError(Exception):
    """Base exception for all service-layer errors."""

    def __init__(self, message: str, status_code: int = 400):
        self.message = message
        self.status_code = status_code
        super().__init__(self.message)


class DeliveryZoneError(ServiceError):
    """Base exception for delivery zone errors."""


class ZoneNotFound(DeliveryZoneError):
    def __init__(self, zone_id: str):
        super().__init__(f"Delivery zone {zone_id} not found", 404)
        self.zone_id = zone_id


class MalformedZoneGeometry(DeliveryZoneError):
    """Zone geometry violates its invariants (e.g. polygon with < 3 vertices)."""

    def __init__(self, message: str, zone_id: Optional[str] = None):
        super().__init__(message, 422)
        self.zone_id = zone_id


class GeocodeUnavailable(DeliveryZoneError):
    """Geocoding provider timed out, failed, or returned nothing usable."""

    def __init__(self, message: str = "Geocoding is unavailable"):
        super().__init__(message, 503)


class InvalidPointerEvent(DeliveryZoneError):
    """Map click that carries no resolvable coordinate."""

    def __init__(self, message: str = "Pointer event has no coordinate"):
        super().__init__(message, 400)


class PrematureCompletion(DeliveryZoneError):
    """Attempt to complete a shape that does not yet satisfy its invariants."""

    def __init__(self, message: str):
        super().__init__(message, 409)
