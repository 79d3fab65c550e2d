"""
Shared constants for delivery areas.
"""

# ---------------------------------------------------------------------------
# Zone area types
# ---------------------------------------------------------------------------
AREA_CIRCLE = "circle"
AREA_POLYGON = "polygon"
AREA_POSTAL_CODE = "postal_code"
AREA_CITY = "city"

VALID_AREA_TYPES = (AREA_CIRCLE, AREA_POLYGON, AREA_POSTAL_CODE, AREA_CITY)

# Evaluable from a bare coordinate; the rest need reverse geocoding
GEOMETRIC_AREA_TYPES = (AREA_CIRCLE, AREA_POLYGON)
GEOCODED_AREA_TYPES = (AREA_POSTAL_CODE, AREA_CITY)

# ---------------------------------------------------------------------------
# Geometry
# ---------------------------------------------------------------------------
EARTH_RADIUS_KM = 6371.0
EARTH_RADIUS_M = EARTH_RADIUS_KM * 1000.0
MIN_POLYGON_VERTICES = 3

# Reverse geocoding sits on the customer-facing checkout path
DEFAULT_GEOCODE_TIMEOUT_S = 5.0

# ---------------------------------------------------------------------------
# Zone authoring
# ---------------------------------------------------------------------------
DEFAULT_CIRCLE_RADIUS_M = 1000.0
MIN_CIRCLE_RADIUS_M = 10.0
DRAWING_CURSOR = "crosshair"

# Drawing modes (what the operator selected)
MODE_NONE = "none"
MODE_CIRCLE = "circle"
MODE_POLYGON = "polygon"

# Session states
STATE_IDLE = "idle"
STATE_DRAWING_CIRCLE = "drawing_circle"
STATE_DRAWING_POLYGON = "drawing_polygon"
STATE_SHAPE_COMPLETE = "shape_complete"

DRAWING_STATES = (STATE_DRAWING_CIRCLE, STATE_DRAWING_POLYGON)

# ---------------------------------------------------------------------------
# Commercial term defaults (storefront zone form)
# ---------------------------------------------------------------------------
DEFAULT_ESTIMATED_TIME_MIN = 30
DEFAULT_ESTIMATED_TIME_MAX = 60
DEFAULT_MAX_ORDERS_PER_DAY = 50

WEEKDAYS = ("monday", "tuesday", "wednesday", "thursday", "friday", "saturday", "sunday")

# ---------------------------------------------------------------------------
# Customer-facing delivery check messages
# ---------------------------------------------------------------------------
MSG_NOT_AVAILABLE = "Delivery not available to this location"
MSG_UNVERIFIED_LOCATION = "Unable to verify location"
