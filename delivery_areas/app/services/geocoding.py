"""Google Geocoding API client: address -> coordinate and coordinate -> postal code / city."""
from typing import Any, Dict, List, Optional

import httpx

from delivery_areas.app.core.logging import get_logger
from delivery_areas.app.core.settings import get_settings
from delivery_areas.app.schemas import AddressComponents, Coordinate

logger = get_logger(__name__)

GOOGLE_GEOCODE_URL = "https://maps.googleapis.com/maps/api/geocode/json"

# Address component types that name the customer's city, best first
_CITY_COMPONENT_TYPES = ("locality", "postal_town", "administrative_area_level_2")


def _find_component(components: List[Dict[str, Any]], component_type: str) -> Optional[Dict[str, Any]]:
    for component in components:
        if component_type in component.get("types", []):
            return component
    return None


def parse_address_components(result: Dict[str, Any]) -> AddressComponents:
    """Extract postal code and city from one Google geocoding result."""
    components = result.get("address_components", [])

    postal_code = None
    postal = _find_component(components, "postal_code")
    if postal:
        postal_code = postal.get("long_name") or postal.get("short_name")

    city = None
    for component_type in _CITY_COMPONENT_TYPES:
        component = _find_component(components, component_type)
        if component and component.get("long_name"):
            city = component["long_name"]
            break

    return AddressComponents(postal_code=postal_code, city=city)


def _safe_float(val: Any) -> Optional[float]:
    if val is None:
        return None
    try:
        return float(val)
    except (TypeError, ValueError):
        return None


class GoogleGeocodingClient:
    """
    Forward and reverse geocoding through the Google Geocoding REST API.

    Every failure mode (missing key, HTTP error, timeout, non-OK status,
    empty result) is logged and reported as None; callers decide what
    "no result" means for them.
    """

    def __init__(
        self,
        api_key: Optional[str] = None,
        timeout: Optional[float] = None,
        language: Optional[str] = None,
        client: Optional[httpx.AsyncClient] = None,
    ):
        # Settings are only consulted for values not passed in
        if api_key is None or timeout is None or language is None:
            settings = get_settings()
            api_key = api_key if api_key is not None else settings.GOOGLE_MAPS_API_KEY
            timeout = timeout if timeout is not None else settings.GEOCODE_TIMEOUT_SECONDS
            language = language or settings.GEOCODE_LANGUAGE
        self.api_key = api_key
        self.timeout = timeout
        self.language = language
        self._client = client

    async def _call_google(self, params: Dict[str, Any]) -> List[Dict[str, Any]]:
        """Low-level geocode call. Returns the raw results list."""
        if not self.api_key:
            logger.warning("GOOGLE_MAPS_API_KEY not configured")
            return []

        query = {**params, "key": self.api_key, "language": self.language}
        try:
            if self._client is not None:
                response = await self._client.get(GOOGLE_GEOCODE_URL, params=query, timeout=self.timeout)
            else:
                async with httpx.AsyncClient(timeout=self.timeout) as client:
                    response = await client.get(GOOGLE_GEOCODE_URL, params=query)
            response.raise_for_status()
            data = response.json()
        except httpx.HTTPStatusError as e:
            logger.error(f"Google Geocoding API error: {e.response.status_code}")
            return []
        except httpx.TimeoutException:
            logger.error("Google Geocoding API timeout")
            return []
        except httpx.RequestError as e:
            logger.error(f"Google Geocoding API request error: {e}")
            return []
        except ValueError as e:
            logger.error(f"Google Geocoding API returned invalid JSON: {e}")
            return []

        if not isinstance(data, dict):
            logger.error("Google Geocoding API returned unexpected payload", payload_type=type(data).__name__)
            return []
        status = data.get("status")
        if status == "ZERO_RESULTS":
            return []
        if status != "OK":
            logger.warning(
                "Google Geocoding API rejected request",
                status=status,
                error_message=data.get("error_message"),
            )
            return []
        return data.get("results", [])

    async def reverse_geocode(self, point: Coordinate) -> Optional[AddressComponents]:
        """Postal code and city for a coordinate, or None."""
        results = await self._call_google({"latlng": f"{point.lat},{point.lng}"})
        if not results:
            return None

        address = parse_address_components(results[0])
        logger.info(
            "Reverse geocoded point",
            lat=point.lat,
            lng=point.lng,
            postal_code=address.postal_code,
            city=address.city,
        )
        if address.postal_code is None and address.city is None:
            return None
        return address

    async def geocode(self, address: str) -> Optional[Coordinate]:
        """Coordinate of a free-form address, or None."""
        if not address or not address.strip():
            return None

        results = await self._call_google({"address": address.strip()})
        if not results:
            return None

        location = results[0].get("geometry", {}).get("location", {})
        lat = _safe_float(location.get("lat"))
        lng = _safe_float(location.get("lng"))
        if lat is None or lng is None:
            logger.warning("Geocoding result has no location", address=address[:80])
            return None
        try:
            return Coordinate(lat=lat, lng=lng)
        except ValueError:
            logger.warning("Geocoding result out of range", lat=lat, lng=lng)
            return None
