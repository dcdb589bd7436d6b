"""
Trip Financials (Domain Logic).

Single place where a trip's derived money fields are computed. Every code path
that changes a rate, a payment or an expense calls `recalculate_trip` before
committing, so the stored values never drift.

Per client:
    total_rate     = rate + total_expense
    due_amount     = total_rate - paid_amount
    payment_status = pending | partial | completed
    commission     = rate * commission_rate / 100   (fleet owner trips only)

Per trip:
    total_client_amount  = sum(client.rate)
    total_commission     = total_client_amount * commission_rate / 100  (fleet owner)
                         = 0                                             (self)
    vehicle_owner_amount = total_client_amount - total_commission
    pod_balance          = vehicle_owner_amount - fleet advances - fleet expenses
                           - POD amount already paid            (fleet owner)
"""

from typing import Iterable
from backend.app.models.trip_enums import ClientPaymentStatus
from backend.app.models.vehicle_enums import OwnershipType

MONEY_PLACES = 2


def round_money(value: float) -> float:
    return round(float(value or 0), MONEY_PLACES)


def client_payment_status(paid_amount: float, due_amount: float) -> ClientPaymentStatus:
    if paid_amount <= 0:
        return ClientPaymentStatus.PENDING
    if due_amount <= 0:
        return ClientPaymentStatus.COMPLETED
    return ClientPaymentStatus.PARTIAL


def split_commission(amount: float, ownership_type: OwnershipType, commission_rate: float):
    """
    Split an amount between the brokerage and the vehicle owner.

    Returns:
        (commission, owner_amount). Self-owned vehicles keep everything,
        whatever commission rate was supplied.
    """
    if ownership_type == OwnershipType.SELF:
        return 0.0, round_money(amount)
    commission = round_money(amount * (commission_rate or 0) / 100)
    return commission, round_money(amount - commission)


def recalculate_client(client, ownership_type: OwnershipType, commission_rate: float) -> None:
    """Recompute one TripClient's derived fields in place."""
    client.total_expense = round_money(client.total_expense)
    client.paid_amount = round_money(client.paid_amount)
    client.total_rate = round_money((client.rate or 0) + client.total_expense)
    client.due_amount = round_money(client.total_rate - client.paid_amount)
    client.payment_status = client_payment_status(client.paid_amount, client.due_amount)
    client.commission, _ = split_commission(client.rate or 0, ownership_type, commission_rate)


def recalculate_trip(trip) -> None:
    """
    Recompute every derived money field on a trip and its clients.

    Args:
        trip: Trip with its `clients` loaded
    """
    clients: Iterable = trip.clients or []
    for client in clients:
        recalculate_client(client, trip.ownership_type, trip.commission_rate)

    trip.total_client_amount = round_money(sum(c.rate or 0 for c in clients))
    trip.total_commission, trip.vehicle_owner_amount = split_commission(
        trip.total_client_amount, trip.ownership_type, trip.commission_rate
    )

    if trip.ownership_type == OwnershipType.FLEET_OWNER and not trip.pod_details:
        trip.pod_balance = round_money(
            trip.vehicle_owner_amount
            - (trip.total_fleet_advance or 0)
            - (trip.total_fleet_expense or 0)
            - (trip.pod_balance_total_paid or 0)
        )
    elif trip.ownership_type == OwnershipType.SELF:
        trip.pod_balance = 0.0


def total_paid(trip) -> float:
    return round_money(sum(c.paid_amount or 0 for c in trip.clients))


def total_billable(trip) -> float:
    return round_money(sum(c.total_rate or 0 for c in trip.clients))
