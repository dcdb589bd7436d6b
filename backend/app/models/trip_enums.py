"""
Trip-related enumerations.
"""

import enum


class TripStatus(str, enum.Enum):
    """Trip status enumeration."""
    BOOKED = "booked"  # Created, vehicle reserved
    IN_PROGRESS = "in_progress"  # Vehicle on the road
    COMPLETED = "completed"  # Delivered, POD verified
    CANCELLED = "cancelled"
    BILLED = "billed"  # Invoices issued to clients
    PAID = "paid"  # Clients settled


class ClientPodStatus(str, enum.Enum):
    """Per-client proof-of-delivery progression, in order."""
    STARTED = "started"
    COMPLETE = "complete"
    POD_RECEIVED = "pod_received"
    POD_SUBMITTED = "pod_submitted"
    SETTLED = "settled"


CLIENT_POD_SEQUENCE = [
    ClientPodStatus.STARTED,
    ClientPodStatus.COMPLETE,
    ClientPodStatus.POD_RECEIVED,
    ClientPodStatus.POD_SUBMITTED,
    ClientPodStatus.SETTLED,
]


class PodVerificationStatus(str, enum.Enum):
    """State of the trip-level delivery document."""
    PENDING = "pending"
    VERIFIED = "verified"
    REJECTED = "rejected"


class ClientPaymentStatus(str, enum.Enum):
    """How much of a client's bill has been paid."""
    PENDING = "pending"
    PARTIAL = "partial"
    COMPLETED = "completed"


class LoadType(str, enum.Enum):
    GENERAL = "general"
    FRAGILE = "fragile"
    HAZARDOUS = "hazardous"
    PERISHABLE = "perishable"
    LIQUID = "liquid"


class TripDocumentType(str, enum.Enum):
    """Documents attachable to a trip besides the POD."""
    LOADING_RECEIPT = "loading_receipt"
    DELIVERY_RECEIPT = "delivery_receipt"
    INVOICE = "invoice"
    PHOTO = "photo"


class LedgerKind(str, enum.Enum):
    """Kind of monetary event recorded against a trip."""
    CLIENT_ADVANCE = "client_advance"
    CLIENT_EXPENSE = "client_expense"
    FLEET_ADVANCE = "fleet_advance"
    FLEET_EXPENSE = "fleet_expense"
    SELF_ADVANCE = "self_advance"
    SELF_EXPENSE = "self_expense"


class Beneficiary(str, enum.Enum):
    """Which party a ledger entry is booked against."""
    CLIENT = "client"
    FLEET_OWNER = "fleet_owner"
    DRIVER = "driver"
    VEHICLE = "vehicle"


class MemoType(str, enum.Enum):
    COLLECTION = "collection"
    BALANCE = "balance"
