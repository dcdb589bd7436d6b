"""
Unit tests for trip money derivation.

Runs recalculate_trip over plain namespaces, no database involved.
"""

from types import SimpleNamespace

import pytest
from backend.app.domain.trips.financials import (
    recalculate_trip,
    split_commission,
    client_payment_status,
    round_money,
    total_paid,
    total_billable,
)
from backend.app.models.trip_enums import ClientPaymentStatus
from backend.app.models.vehicle_enums import OwnershipType


def make_client(rate, paid=0.0, expense=0.0):
    return SimpleNamespace(
        rate=rate, paid_amount=paid, total_expense=expense,
        total_rate=0.0, due_amount=0.0, commission=0.0, payment_status=None,
    )


def make_trip(clients, ownership=OwnershipType.FLEET_OWNER, commission_rate=10.0, **extra):
    fields = dict(
        clients=clients,
        ownership_type=ownership,
        commission_rate=commission_rate,
        total_client_amount=0.0,
        total_commission=0.0,
        vehicle_owner_amount=0.0,
        total_fleet_advance=0.0,
        total_fleet_expense=0.0,
        pod_balance=0.0,
        pod_balance_total_paid=0.0,
        pod_details=None,
    )
    fields.update(extra)
    return SimpleNamespace(**fields)


# TEST 1: Commission split
def test_fleet_owner_commission_split():
    commission, owner_amount = split_commission(10000, OwnershipType.FLEET_OWNER, 10)
    assert commission == 1000.0
    assert owner_amount == 9000.0


def test_self_owned_keeps_everything_whatever_the_rate():
    commission, owner_amount = split_commission(10000, OwnershipType.SELF, 25)
    assert commission == 0.0
    assert owner_amount == 10000.0


# TEST 2: Payment status thresholds
@pytest.mark.parametrize("paid,due,expected", [
    (0, 5000, ClientPaymentStatus.PENDING),
    (2000, 3000, ClientPaymentStatus.PARTIAL),
    (5000, 0, ClientPaymentStatus.COMPLETED),
])
def test_client_payment_status(paid, due, expected):
    assert client_payment_status(paid, due) == expected


# TEST 3: Per-client derivation
def test_expense_raises_total_rate_and_due():
    client = make_client(rate=10000, paid=4000, expense=500)
    trip = make_trip([client])

    recalculate_trip(trip)

    assert client.total_rate == 10500.0
    assert client.due_amount == 6500.0
    assert client.payment_status == ClientPaymentStatus.PARTIAL
    assert client.commission == 1000.0


def test_argestment_does_not_change_due():
    client = make_client(rate=8000, paid=8000)
    client.argestment = 750
    trip = make_trip([client])

    recalculate_trip(trip)

    assert client.due_amount == 0.0
    assert client.payment_status == ClientPaymentStatus.COMPLETED


# TEST 4: Trip totals
def test_trip_totals_over_several_clients():
    trip = make_trip([make_client(10000), make_client(5000.55)], commission_rate=12.5)

    recalculate_trip(trip)

    assert trip.total_client_amount == 15000.55
    assert trip.total_commission == round_money(15000.55 * 12.5 / 100)
    assert trip.vehicle_owner_amount == round_money(15000.55 - trip.total_commission)


def test_pod_balance_nets_advances_expenses_and_payouts():
    trip = make_trip(
        [make_client(20000)],
        total_fleet_advance=5000,
        total_fleet_expense=1200,
        pod_balance_total_paid=800,
    )

    recalculate_trip(trip)

    # 20000 - 10% commission = 18000
    assert trip.pod_balance == 18000 - 5000 - 1200 - 800


def test_pod_balance_frozen_once_settled():
    trip = make_trip([make_client(20000)], pod_balance=0.0, pod_details={"pod_give": 12000})

    recalculate_trip(trip)

    assert trip.pod_balance == 0.0


def test_self_owned_trip_has_no_pod_balance():
    trip = make_trip([make_client(9000)], ownership=OwnershipType.SELF, commission_rate=0, pod_balance=123)

    recalculate_trip(trip)

    assert trip.total_commission == 0.0
    assert trip.vehicle_owner_amount == 9000.0
    assert trip.pod_balance == 0.0


def test_totals_helpers():
    trip = make_trip([make_client(1000, paid=250, expense=100), make_client(500, paid=500)])
    recalculate_trip(trip)

    assert total_paid(trip) == 750.0
    assert total_billable(trip) == 1600.0
