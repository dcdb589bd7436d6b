"""
Vehicle-related enumerations.
"""

import enum


class VehicleType(str, enum.Enum):
    """Body type of a vehicle."""
    TRUCK = "truck"
    TEMPO = "tempo"
    MINI_TRUCK = "mini_truck"
    TRAILER = "trailer"
    OPEN_BODY = "open_body"
    CONTAINER = "container"
    CLOSED_CONTAINER = "closed_container"
    TIPPER = "tipper"
    TANKER = "tanker"
    OTHER = "other"


class OwnershipType(str, enum.Enum):
    """Who owns the vehicle."""
    SELF = "self"  # Owned by the brokerage, no commission split
    FLEET_OWNER = "fleet_owner"  # Hired from a fleet owner, commission applies


class VehicleStatus(str, enum.Enum):
    """Vehicle availability."""
    AVAILABLE = "available"
    BOOKED = "booked"  # Assigned to an active trip
    MAINTENANCE = "maintenance"
    INACTIVE = "inactive"


class VehicleDocumentType(str, enum.Enum):
    """Statutory documents tracked per vehicle."""
    INSURANCE = "insurance"
    FITNESS = "fitness"
    PERMIT = "permit"
    POLLUTION = "pollution"
