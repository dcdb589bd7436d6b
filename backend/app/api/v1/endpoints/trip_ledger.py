"""
Trip ledger API endpoints.

Client advances/expenses, trip-wide payments, fleet owner advances/expenses
with POD settlement, and self-owned driver/vehicle entries. Every call
mutates the running totals and the ledger table in one commit and answers
with the refreshed trip.
"""

from typing import Optional
from fastapi import APIRouter, Depends, Request, status, Query
from sqlalchemy.ext.asyncio import AsyncSession
from backend.app.db.session import get_db
from backend.app.models.enums import UserRole
from backend.app.models.trip import Trip
from backend.app.models.trip_enums import LedgerKind
from backend.app.models.activity_log import ActivityCategory
from backend.app.schemas.trip import TripResponse
from backend.app.schemas.ledger import (
    ClientAdvanceCreate, ClientExpenseCreate, PaidAmountCreate, ClientFinancialsUpdate,
    FleetAdvanceCreate, FleetExpenseCreate, PodDetailsUpdate, SelfExpenseCreate,
    SelfAdvanceCreate, LedgerEntryResponse, LedgerListResponse
)
from backend.app.core.dependencies import get_current_user
from backend.app.core.exceptions import InsufficientPermissionsError
from backend.app.core.guards import require_admin, require_role, is_admin
from backend.app.core.timeutils import as_naive_utc
from backend.app.domain.trips.financials import round_money
from backend.app.domain.trips.trip_service import TripService
from backend.app.domain.trips.ledger import LedgerService
from backend.app.services.activity_logger import ActivityLogger, ActivityAction

router = APIRouter(prefix="/trips", tags=["Trip Ledger"])


async def commit_and_respond(
    db: AsyncSession,
    trip: Trip,
    actor_id: int,
    action: str,
    description: str,
    request: Request,
    details: Optional[dict] = None,
) -> TripResponse:
    """Commit the ledger change, log it and return the reloaded trip."""
    trip_id = trip.id
    await db.commit()
    trip = await TripService.load_trip(db, trip_id)
    await ActivityLogger.record(
        db, actor_id, action, ActivityCategory.FINANCIAL, description,
        details=details, related_trip_id=trip_id, related_vehicle_id=trip.vehicle_id,
        request=request,
    )
    return TripResponse.model_validate(trip)


def ensure_self_ledger_actor(trip: Trip, current_user: dict) -> None:
    """Admins, or the driver assigned to the trip."""
    if is_admin(current_user):
        return
    if trip.driver_id != current_user["user_id"]:
        raise InsufficientPermissionsError("Only the assigned driver can record entries on this trip")


# ----------------------------------------------------------------------
# Read
# ----------------------------------------------------------------------

@router.get("/{trip_id}/ledger", response_model=LedgerListResponse)
async def trip_ledger(
    trip_id: int,
    kind: Optional[LedgerKind] = Query(None),
    current_user: dict = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    trip = await TripService.load_trip(db, trip_id)
    TripService.ensure_actor_can_touch(trip, current_user)
    entries = await LedgerService.entries_for_trip(db, trip_id, kind)
    return LedgerListResponse(
        entries=[LedgerEntryResponse.model_validate(e) for e in entries],
        total_amount=round_money(sum(e.amount for e in entries)),
    )


# ----------------------------------------------------------------------
# Client ledger
# ----------------------------------------------------------------------

@router.post("/{trip_id}/clients/{index}/advances", response_model=TripResponse, status_code=status.HTTP_201_CREATED)
async def add_client_advance(
    trip_id: int,
    index: int,
    payload: ClientAdvanceCreate,
    request: Request,
    admin: dict = Depends(require_admin),
    db: AsyncSession = Depends(get_db)
):
    """Record money received from a client; rejected beyond the client's total rate."""
    trip = await TripService.load_trip(db, trip_id)
    entry = await LedgerService.add_client_advance(
        db, trip, index, payload.amount, admin["user_id"],
        paid_to=payload.paid_to, paid_by=payload.paid_by, purpose=payload.purpose,
        payment_method=payload.payment_method, notes=payload.notes,
        paid_at=as_naive_utc(payload.paid_at),
    )
    return await commit_and_respond(
        db, trip, admin["user_id"], ActivityAction.ADVANCE_ADDED,
        f"Advance of {entry.amount} added for client #{index} on trip {trip.trip_number}",
        request, details={"amount": entry.amount, "entry_id": entry.id, "client_index": index},
    )


@router.delete("/{trip_id}/clients/{index}/advances/{entry_id}", response_model=TripResponse)
async def delete_client_advance(
    trip_id: int,
    index: int,
    entry_id: int,
    request: Request,
    admin: dict = Depends(require_admin),
    db: AsyncSession = Depends(get_db)
):
    trip = await TripService.load_trip(db, trip_id)
    entry = await LedgerService.delete_client_entry(
        db, trip, index, entry_id, LedgerKind.CLIENT_ADVANCE, admin["user_id"]
    )
    return await commit_and_respond(
        db, trip, admin["user_id"], ActivityAction.ADVANCE_DELETED,
        f"Advance of {entry.amount} removed from client #{index} on trip {trip.trip_number}",
        request, details={"amount": entry.amount, "entry_id": entry_id, "client_index": index},
    )


@router.post("/{trip_id}/clients/{index}/expenses", response_model=TripResponse, status_code=status.HTTP_201_CREATED)
async def add_client_expense(
    trip_id: int,
    index: int,
    payload: ClientExpenseCreate,
    request: Request,
    admin: dict = Depends(require_admin),
    db: AsyncSession = Depends(get_db)
):
    """Expense billed to the client; raises their total rate and due by the amount."""
    trip = await TripService.load_trip(db, trip_id)
    entry = await LedgerService.add_client_expense(
        db, trip, index, payload.amount, admin["user_id"],
        expense_type=payload.type, description=payload.description,
        receipt=payload.receipt, paid_by=payload.paid_by,
        paid_at=as_naive_utc(payload.paid_at),
    )
    return await commit_and_respond(
        db, trip, admin["user_id"], ActivityAction.EXPENSE_ADDED,
        f"{payload.type} expense of {entry.amount} added for client #{index} on trip {trip.trip_number}",
        request, details={"amount": entry.amount, "entry_id": entry.id, "client_index": index},
    )


@router.delete("/{trip_id}/clients/{index}/expenses/{entry_id}", response_model=TripResponse)
async def delete_client_expense(
    trip_id: int,
    index: int,
    entry_id: int,
    request: Request,
    admin: dict = Depends(require_admin),
    db: AsyncSession = Depends(get_db)
):
    trip = await TripService.load_trip(db, trip_id)
    entry = await LedgerService.delete_client_entry(
        db, trip, index, entry_id, LedgerKind.CLIENT_EXPENSE, admin["user_id"]
    )
    return await commit_and_respond(
        db, trip, admin["user_id"], ActivityAction.EXPENSE_DELETED,
        f"Expense of {entry.amount} removed from client #{index} on trip {trip.trip_number}",
        request, details={"amount": entry.amount, "entry_id": entry_id, "client_index": index},
    )


@router.post("/{trip_id}/paid-amount", response_model=TripResponse, status_code=status.HTTP_201_CREATED)
async def add_paid_amount(
    trip_id: int,
    payload: PaidAmountCreate,
    request: Request,
    admin: dict = Depends(require_admin),
    db: AsyncSession = Depends(get_db)
):
    """
    Record a payment against the whole trip.

    Total paid across clients may not exceed the sum of their total rates;
    the payment is booked as an advance on `client_index`.
    """
    trip = await TripService.load_trip(db, trip_id)
    entry = await LedgerService.add_paid_amount(
        db, trip, payload.amount, admin["user_id"],
        client_index=payload.client_index, paid_by=payload.paid_by,
        paid_to=payload.paid_to, purpose=payload.purpose, notes=payload.notes,
    )
    return await commit_and_respond(
        db, trip, admin["user_id"], ActivityAction.PAYMENT_RECORDED,
        f"Payment of {entry.amount} recorded on trip {trip.trip_number}",
        request, details={"amount": entry.amount, "entry_id": entry.id, "client_index": payload.client_index},
    )


@router.patch("/{trip_id}/clients/{index}", response_model=TripResponse)
async def update_client_financials(
    trip_id: int,
    index: int,
    payload: ClientFinancialsUpdate,
    request: Request,
    admin: dict = Depends(require_admin),
    db: AsyncSession = Depends(get_db)
):
    trip = await TripService.load_trip(db, trip_id)
    changes = payload.model_dump(exclude_unset=True)
    if changes.get("load_date") is not None:
        changes["load_date"] = as_naive_utc(changes["load_date"])
    LedgerService.update_client_financials(trip, index, admin["user_id"], **changes)
    return await commit_and_respond(
        db, trip, admin["user_id"], ActivityAction.CLIENT_FINANCIALS_UPDATED,
        f"Financials of client #{index} updated on trip {trip.trip_number}",
        request, details={"fields": sorted(changes), "client_index": index},
    )


# ----------------------------------------------------------------------
# Fleet owner ledger
# ----------------------------------------------------------------------

@router.post("/{trip_id}/fleet-advances", response_model=TripResponse, status_code=status.HTTP_201_CREATED)
async def add_fleet_advance(
    trip_id: int,
    payload: FleetAdvanceCreate,
    request: Request,
    admin: dict = Depends(require_admin),
    db: AsyncSession = Depends(get_db)
):
    trip = await TripService.load_trip(db, trip_id)
    entry = await LedgerService.add_fleet_advance(
        db, trip, payload.amount, admin["user_id"],
        reason=payload.reason, payment_type=payload.payment_type,
        paid_at=as_naive_utc(payload.date),
    )
    return await commit_and_respond(
        db, trip, admin["user_id"], ActivityAction.FLEET_ADVANCE_ADDED,
        f"Fleet advance of {entry.amount} paid to {trip.owner_name or 'owner'} on trip {trip.trip_number}",
        request, details={"amount": entry.amount, "entry_id": entry.id},
    )


@router.post("/{trip_id}/fleet-expenses", response_model=TripResponse, status_code=status.HTTP_201_CREATED)
async def add_fleet_expense(
    trip_id: int,
    payload: FleetExpenseCreate,
    request: Request,
    admin: dict = Depends(require_admin),
    db: AsyncSession = Depends(get_db)
):
    trip = await TripService.load_trip(db, trip_id)
    entry = await LedgerService.add_fleet_expense(
        db, trip, payload.amount, admin["user_id"],
        reason=payload.reason, category=payload.category,
        description=payload.description, receipt_number=payload.receipt_number,
    )
    return await commit_and_respond(
        db, trip, admin["user_id"], ActivityAction.FLEET_EXPENSE_ADDED,
        f"Fleet {payload.category} expense of {entry.amount} on trip {trip.trip_number}",
        request, details={"amount": entry.amount, "entry_id": entry.id},
    )


@router.delete("/{trip_id}/fleet-advances/{entry_id}", response_model=TripResponse)
async def delete_fleet_advance(
    trip_id: int,
    entry_id: int,
    request: Request,
    admin: dict = Depends(require_admin),
    db: AsyncSession = Depends(get_db)
):
    trip = await TripService.load_trip(db, trip_id)
    entry = await LedgerService.delete_fleet_entry(db, trip, entry_id, LedgerKind.FLEET_ADVANCE, admin["user_id"])
    return await commit_and_respond(
        db, trip, admin["user_id"], ActivityAction.FLEET_ENTRY_DELETED,
        f"Fleet advance of {entry.amount} removed from trip {trip.trip_number}",
        request, details={"amount": entry.amount, "entry_id": entry_id},
    )


@router.delete("/{trip_id}/fleet-expenses/{entry_id}", response_model=TripResponse)
async def delete_fleet_expense(
    trip_id: int,
    entry_id: int,
    request: Request,
    admin: dict = Depends(require_admin),
    db: AsyncSession = Depends(get_db)
):
    trip = await TripService.load_trip(db, trip_id)
    entry = await LedgerService.delete_fleet_entry(db, trip, entry_id, LedgerKind.FLEET_EXPENSE, admin["user_id"])
    return await commit_and_respond(
        db, trip, admin["user_id"], ActivityAction.FLEET_ENTRY_DELETED,
        f"Fleet expense of {entry.amount} removed from trip {trip.trip_number}",
        request, details={"amount": entry.amount, "entry_id": entry_id},
    )


@router.patch("/{trip_id}/pod-details", response_model=TripResponse)
async def update_pod_details(
    trip_id: int,
    payload: PodDetailsUpdate,
    request: Request,
    admin: dict = Depends(require_admin),
    db: AsyncSession = Depends(get_db)
):
    """Settle the fleet owner's POD balance; the outstanding balance drops to zero."""
    trip = await TripService.load_trip(db, trip_id)
    outstanding = trip.pod_balance
    LedgerService.update_pod_details(
        trip, admin["user_id"], payload.pod_give,
        date=as_naive_utc(payload.date), payment_type=payload.payment_type, notes=payload.notes,
    )
    return await commit_and_respond(
        db, trip, admin["user_id"], ActivityAction.POD_BALANCE_SETTLED,
        f"POD balance settled on trip {trip.trip_number}",
        request, details={"amount": payload.pod_give, "outstanding": outstanding},
    )


# ----------------------------------------------------------------------
# Self-owned ledger
# ----------------------------------------------------------------------

@router.post("/{trip_id}/self-expenses", response_model=TripResponse, status_code=status.HTTP_201_CREATED)
async def add_self_expense(
    trip_id: int,
    payload: SelfExpenseCreate,
    request: Request,
    current_user: dict = Depends(require_role([UserRole.ADMIN, UserRole.DRIVER])),
    db: AsyncSession = Depends(get_db)
):
    """Expense on a self-owned trip, booked to the driver or the vehicle."""
    trip = await TripService.load_trip(db, trip_id)
    ensure_self_ledger_actor(trip, current_user)
    entry = await LedgerService.add_self_expense(
        db, trip, payload.amount, current_user["user_id"], payload.expense_for,
        reason=payload.reason, category=payload.category, description=payload.description,
        receipt_number=payload.receipt_number, paid_at=as_naive_utc(payload.paid_at),
    )
    return await commit_and_respond(
        db, trip, current_user["user_id"], ActivityAction.SELF_EXPENSE_ADDED,
        f"Expense of {entry.amount} for {payload.expense_for.value} on trip {trip.trip_number}",
        request, details={"amount": entry.amount, "entry_id": entry.id},
    )


@router.post("/{trip_id}/self-advances", response_model=TripResponse, status_code=status.HTTP_201_CREATED)
async def add_self_advance(
    trip_id: int,
    payload: SelfAdvanceCreate,
    request: Request,
    admin: dict = Depends(require_admin),
    db: AsyncSession = Depends(get_db)
):
    trip = await TripService.load_trip(db, trip_id)
    entry = await LedgerService.add_self_advance(
        db, trip, payload.amount, admin["user_id"], payload.payment_for,
        reason=payload.reason, recipient_name=payload.recipient_name,
        description=payload.description, reference_number=payload.reference_number,
        paid_at=as_naive_utc(payload.paid_at),
    )
    return await commit_and_respond(
        db, trip, admin["user_id"], ActivityAction.SELF_ADVANCE_ADDED,
        f"Advance of {entry.amount} for {payload.payment_for.value} on trip {trip.trip_number}",
        request, details={"amount": entry.amount, "entry_id": entry.id},
    )


@router.delete("/{trip_id}/self-expenses/{entry_id}", response_model=TripResponse)
async def delete_self_expense(
    trip_id: int,
    entry_id: int,
    request: Request,
    admin: dict = Depends(require_admin),
    db: AsyncSession = Depends(get_db)
):
    trip = await TripService.load_trip(db, trip_id)
    entry = await LedgerService.delete_self_entry(db, trip, entry_id, LedgerKind.SELF_EXPENSE, admin["user_id"])
    return await commit_and_respond(
        db, trip, admin["user_id"], ActivityAction.SELF_ENTRY_DELETED,
        f"Expense of {entry.amount} removed from trip {trip.trip_number}",
        request, details={"amount": entry.amount, "entry_id": entry_id},
    )


@router.delete("/{trip_id}/self-advances/{entry_id}", response_model=TripResponse)
async def delete_self_advance(
    trip_id: int,
    entry_id: int,
    request: Request,
    admin: dict = Depends(require_admin),
    db: AsyncSession = Depends(get_db)
):
    trip = await TripService.load_trip(db, trip_id)
    entry = await LedgerService.delete_self_entry(db, trip, entry_id, LedgerKind.SELF_ADVANCE, admin["user_id"])
    return await commit_and_respond(
        db, trip, admin["user_id"], ActivityAction.SELF_ENTRY_DELETED,
        f"Advance of {entry.amount} removed from trip {trip.trip_number}",
        request, details={"amount": entry.amount, "entry_id": entry_id},
    )
