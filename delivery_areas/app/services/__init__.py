# delivery_areas/app/services/__init__.py
"""
Services layer for delivery areas.
Zone matching and drawing are pure in-memory logic; persistence and
geocoding sit behind DeliveryZoneService and GoogleGeocodingClient.
"""

from delivery_areas.app.services.zone_matching import (
    ForwardGeocoder,
    ReverseGeocoder,
    address_matches,
    find_geometric_matches,
    find_matching_zones,
    lookup_address,
    zone_contains,
)
from delivery_areas.app.services.zone_drawing import (
    DrawingSession,
    MapRenderer,
    NullMapRenderer,
)
from delivery_areas.app.services.geocoding import GoogleGeocodingClient
from delivery_areas.app.services.delivery_zones import (
    DeliveryZoneService,
    delivery_terms,
    parse_geometry,
    serialize_geometry,
)

__all__ = [
    # Matching
    "ForwardGeocoder",
    "ReverseGeocoder",
    "address_matches",
    "find_geometric_matches",
    "find_matching_zones",
    "lookup_address",
    "zone_contains",
    # Drawing
    "DrawingSession",
    "MapRenderer",
    "NullMapRenderer",
    # Geocoding
    "GoogleGeocodingClient",
    # Persistence
    "DeliveryZoneService",
    "delivery_terms",
    "parse_geometry",
    "serialize_geometry",
]
