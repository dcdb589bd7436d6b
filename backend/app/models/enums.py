"""
User enumerations.

Defines the role and availability types for the fleet back office.
"""

import enum


class UserRole(str, enum.Enum):
    """
    User role enumeration.

    Roles:
        ADMIN: Back office staff, full access
        FLEET_OWNER: Third party owning vehicles hired for trips
        CLIENT: Customer whose goods are moved (default role)
        DRIVER: Drives self-owned vehicles
    """
    ADMIN = "admin"
    FLEET_OWNER = "fleet_owner"
    CLIENT = "client"
    DRIVER = "driver"


class AvailabilityStatus(str, enum.Enum):
    """Whether a driver is free for a new trip."""
    AVAILABLE = "available"
    BOOKED = "booked"
