"""
Trip API endpoints.

Booking, visibility-scoped listing, admin edits, status transitions, trip
documents, invoicing and the trip-level reports (stats, dashboard, driver
summary, argestment, POD report, fleet owner statement).

Every write is committed once; activity logging follows the commit and
email goes out as a background task after the response.
"""

import logging
from datetime import datetime
from typing import Optional, List, Dict
from fastapi import APIRouter, BackgroundTasks, Depends, HTTPException, Request, status, Query, UploadFile, File, Form
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select, func
from backend.app.db.session import get_db
from backend.app.models.user import User
from backend.app.models.vehicle import Vehicle
from backend.app.models.trip import Trip, TripClient
from backend.app.models.payment import Payment
from backend.app.models.ledger_entry import TripLedgerEntry
from backend.app.models.counter import ResetPeriod
from backend.app.models.enums import UserRole, AvailabilityStatus
from backend.app.models.trip_enums import TripStatus, TripDocumentType, LedgerKind
from backend.app.models.vehicle_enums import OwnershipType, VehicleStatus
from backend.app.models.activity_log import ActivityCategory, ActivitySeverity
from backend.app.schemas.trip import (
    TripCreate, TripUpdate, TripStatusUpdate, TripResponse, TripListResponse,
    TripStatsResponse, StatusBucket, TripDashboardResponse, DriverSummaryResponse,
    ClientArgestmentRow, ArgestmentPayment, FleetOwnerStatementRequest,
    FleetOwnerStatementRow, FleetOwnerStatementResponse
)
from backend.app.schemas.pod import PodReportResponse
from backend.app.schemas.user import UserResponse
from backend.app.core.dependencies import get_current_user
from backend.app.core.guards import require_admin, require_role, is_admin
from backend.app.core.timeutils import utcnow, as_naive_utc
from backend.app.domain.trips.financials import recalculate_trip, round_money
from backend.app.domain.trips.trip_service import TripService
from backend.app.domain.trips.pod import PodWorkflow
from backend.app.services.counter_service import CounterService
from backend.app.services.activity_logger import ActivityLogger, ActivityAction
from backend.app.services.trip_notifications import trip_created_mails, trip_completed_mails, send_mails
from backend.app.services.storage import FileStorage

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/trips", tags=["Trips"])

ACTIVE_STATUSES = (TripStatus.BOOKED, TripStatus.IN_PROGRESS)


async def load_visible_trip(db: AsyncSession, trip_id: int, current_user: dict) -> Trip:
    trip = await TripService.load_trip(db, trip_id)
    TripService.ensure_actor_can_touch(trip, current_user)
    return trip


async def resolve_driver(db: AsyncSession, driver_id: Optional[int]) -> User:
    driver = await db.get(User, driver_id) if driver_id else None
    if not driver or driver.role != UserRole.DRIVER or not driver.is_active:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="A valid active driver is required for self-owned vehicles"
        )
    return driver


async def apply_owner_snapshot(db: AsyncSession, trip: Trip, vehicle: Vehicle) -> None:
    owner_id = vehicle.self_owner_id if vehicle.ownership_type == OwnershipType.SELF else vehicle.owner_id
    owner = await db.get(User, owner_id) if owner_id else None
    for field, value in vehicle.owner_details(owner).items():
        setattr(trip, field, value)


# ----------------------------------------------------------------------
# Booking
# ----------------------------------------------------------------------

@router.post("", response_model=TripResponse, status_code=status.HTTP_201_CREATED)
async def create_trip(
    payload: TripCreate,
    request: Request,
    background_tasks: BackgroundTasks,
    current_user: dict = Depends(require_role([UserRole.ADMIN, UserRole.CLIENT])),
    db: AsyncSession = Depends(get_db)
):
    """
    Book a trip.

    Flow:
    1. Validate clients (active users with role client; a client caller books only for themselves)
    2. Validate the vehicle and, if self-owned, a driver with no other active trip
    3. Reserve the vehicle (conditional UPDATE, so a racing booking loses) and take the next trip number
    4. Snapshot ownership, compute financials
    5. Commit once, then log and mail
    """
    if current_user["role"] == UserRole.CLIENT.value:
        if any(c.client_id != current_user["user_id"] for c in payload.clients):
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail="Clients can only book trips for themselves"
            )

    for entry in payload.clients:
        client = await db.get(User, entry.client_id)
        if not client or client.role != UserRole.CLIENT or not client.is_active:
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail=f"Client {entry.client_id} is not an active client"
            )

    vehicle = await db.get(Vehicle, payload.vehicle_id)
    if not vehicle or not vehicle.is_active:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Vehicle not found"
        )
    if vehicle.status != VehicleStatus.AVAILABLE:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=f"Vehicle is not available (status: {vehicle.status.value})"
        )

    driver_id = payload.driver_id
    if vehicle.ownership_type == OwnershipType.SELF:
        driver = await resolve_driver(db, driver_id)
        active = await db.execute(
            select(func.count(Trip.id)).where(Trip.driver_id == driver.id, Trip.status.in_(ACTIVE_STATUSES))
        )
        if driver.status != AvailabilityStatus.AVAILABLE or active.scalar():
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail="Driver is already booked on another trip"
            )
    elif driver_id:
        await resolve_driver(db, driver_id)

    await TripService.reserve_vehicle(db, vehicle.id)

    now = utcnow()
    number = await CounterService.get_next(
        db, "trip", prefix=f"TRP{now:%y%m}", pad_length=4, reset_period=ResetPeriod.MONTHLY
    )

    trip = Trip(
        trip_number=number.number,
        vehicle_id=vehicle.id,
        driver_id=driver_id,
        scheduled_date=as_naive_utc(payload.scheduled_date),
        estimated_duration=payload.estimated_duration,
        estimated_distance=payload.estimated_distance,
        notes=payload.notes,
        status=TripStatus.BOOKED,
        booked_at=now,
        documents={"invoices": [], "photos": []},
        created_by=current_user["user_id"],
        last_updated_by=current_user["user_id"],
    )
    await apply_owner_snapshot(db, trip, vehicle)
    trip.clients = [
        TripClient(
            client_id=entry.client_id,
            position=index,
            load_details=entry.load_details.model_dump(mode="json"),
            origin=entry.origin.model_dump(),
            destination=entry.destination.model_dump(),
            rate=entry.rate,
            total_rate=entry.rate,
            paid_amount=0,
            total_expense=0,
            truck_hire_cost=entry.truck_hire_cost,
            argestment=entry.argestment,
            load_number=entry.load_number,
            load_date=as_naive_utc(entry.load_date),
            documents=[],
        )
        for index, entry in enumerate(payload.clients)
    ]
    recalculate_trip(trip)

    db.add(trip)
    await db.commit()
    trip = await TripService.load_trip(db, trip.id)
    background_tasks.add_task(send_mails, await trip_created_mails(db, trip, vehicle))

    await ActivityLogger.record(
        db, current_user["user_id"], ActivityAction.TRIP_CREATED, ActivityCategory.TRIP,
        f"Trip {trip.trip_number} booked on {vehicle.registration_number}",
        details={"amount": trip.total_client_amount, "clients": len(trip.clients)},
        related_trip_id=trip.id, related_vehicle_id=vehicle.id, request=request,
    )

    return TripResponse.model_validate(trip)


# ----------------------------------------------------------------------
# Listing and reports (static paths before /{trip_id})
# ----------------------------------------------------------------------

@router.get("", response_model=TripListResponse)
async def list_trips(
    trip_status: Optional[TripStatus] = Query(None, alias="status"),
    vehicle_id: Optional[int] = Query(None),
    start_date: Optional[datetime] = Query(None),
    end_date: Optional[datetime] = Query(None),
    search: Optional[str] = Query(None, description="Trip number contains"),
    page: int = Query(1, ge=1),
    page_size: int = Query(20, ge=1, le=100),
    current_user: dict = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    """List trips visible to the caller, newest schedule first."""
    query = TripService.scope_query(select(Trip), current_user)
    if trip_status:
        query = query.where(Trip.status == trip_status)
    if vehicle_id:
        query = query.where(Trip.vehicle_id == vehicle_id)
    if start_date:
        query = query.where(Trip.scheduled_date >= as_naive_utc(start_date))
    if end_date:
        query = query.where(Trip.scheduled_date <= as_naive_utc(end_date))
    if search:
        query = query.where(Trip.trip_number.ilike(f"%{search}%"))

    total_result = await db.execute(select(func.count()).select_from(query.subquery()))
    total = total_result.scalar()

    offset = (page - 1) * page_size
    result = await db.execute(
        query.order_by(Trip.scheduled_date.desc(), Trip.id.desc()).offset(offset).limit(page_size)
    )
    trips = result.scalars().all()

    return TripListResponse(
        trips=[TripResponse.model_validate(t) for t in trips],
        total=total,
        page=page,
        page_size=page_size
    )


@router.get("/my-trips", response_model=TripListResponse)
async def my_trips(
    trip_status: Optional[TripStatus] = Query(None, alias="status"),
    page: int = Query(1, ge=1),
    page_size: int = Query(20, ge=1, le=100),
    current_user: dict = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    """Trips the caller takes part in; for admins, the trips they booked."""
    query = TripService.scope_query(select(Trip), current_user)
    if is_admin(current_user):
        query = query.where(Trip.created_by == current_user["user_id"])
    if trip_status:
        query = query.where(Trip.status == trip_status)

    total_result = await db.execute(select(func.count()).select_from(query.subquery()))
    offset = (page - 1) * page_size
    result = await db.execute(
        query.order_by(Trip.scheduled_date.desc(), Trip.id.desc()).offset(offset).limit(page_size)
    )
    return TripListResponse(
        trips=[TripResponse.model_validate(t) for t in result.scalars().all()],
        total=total_result.scalar(),
        page=page,
        page_size=page_size
    )


@router.get("/stats", response_model=TripStatsResponse)
async def trip_stats(
    admin: dict = Depends(require_admin),
    db: AsyncSession = Depends(get_db)
):
    """Counts and amounts grouped by status."""
    result = await db.execute(
        select(
            Trip.status,
            func.count(Trip.id),
            func.coalesce(func.sum(Trip.total_client_amount), 0),
            func.coalesce(func.sum(Trip.total_commission), 0),
        ).group_by(Trip.status)
    )
    by_status = {s.value: StatusBucket(count=0, total_amount=0, total_commission=0) for s in TripStatus}
    for trip_status, count, amount, commission in result.all():
        by_status[trip_status.value] = StatusBucket(
            count=count, total_amount=round_money(amount), total_commission=round_money(commission)
        )

    billable = [b for s, b in by_status.items() if s != TripStatus.CANCELLED.value]
    return TripStatsResponse(
        total_trips=sum(b.count for b in by_status.values()),
        by_status=by_status,
        total_revenue=round_money(sum(b.total_amount for b in billable)),
        total_commission=round_money(sum(b.total_commission for b in billable)),
    )


@router.get("/dashboard", response_model=TripDashboardResponse)
async def trip_dashboard(
    current_user: dict = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    """Role-scoped trip counts and money totals. Clients only see their own rows."""
    result = await db.execute(TripService.scope_query(select(Trip), current_user))
    trips = result.scalars().all()

    by_status: Dict[str, int] = {s.value: 0 for s in TripStatus}
    total_amount = total_paid = total_due = 0.0
    for trip in trips:
        by_status[trip.status.value] += 1
        if trip.status == TripStatus.CANCELLED:
            continue
        for client in trip.clients:
            if current_user["role"] == UserRole.CLIENT.value and client.client_id != current_user["user_id"]:
                continue
            total_amount += client.total_rate or 0
            total_paid += client.paid_amount or 0
            total_due += client.due_amount or 0

    return TripDashboardResponse(
        total_trips=len(trips),
        by_status=by_status,
        total_amount=round_money(total_amount),
        total_paid=round_money(total_paid),
        total_due=round_money(total_due),
    )


@router.get("/driver-summary", response_model=DriverSummaryResponse)
async def driver_summary(
    current_user: dict = Depends(require_role([UserRole.DRIVER])),
    db: AsyncSession = Depends(get_db)
):
    driver_id = current_user["user_id"]
    result = await db.execute(select(Trip.status, func.count(Trip.id)).where(Trip.driver_id == driver_id).group_by(Trip.status))
    counts = {s: c for s, c in result.all()}

    totals = await db.execute(
        select(TripLedgerEntry.kind, func.coalesce(func.sum(TripLedgerEntry.amount), 0))
        .where(TripLedgerEntry.user_id == driver_id)
        .group_by(TripLedgerEntry.kind)
    )
    sums = {k: v for k, v in totals.all()}

    return DriverSummaryResponse(
        driver_id=driver_id,
        total_trips=sum(counts.values()),
        active_trips=sum(counts.get(s, 0) for s in ACTIVE_STATUSES),
        completed_trips=sum(counts.get(s, 0) for s in (TripStatus.COMPLETED, TripStatus.BILLED, TripStatus.PAID)),
        total_advances=round_money(sums.get(LedgerKind.SELF_ADVANCE, 0)),
        total_expenses=round_money(sums.get(LedgerKind.SELF_EXPENSE, 0)),
    )


@router.get("/client-argestment", response_model=List[ClientArgestmentRow])
async def client_argestment(
    client_id: Optional[int] = Query(None),
    admin: dict = Depends(require_admin),
    db: AsyncSession = Depends(get_db)
):
    """Client rows carrying an argestment, with what has been paid out to the client so far."""
    query = (
        select(TripClient, Trip.trip_number, User)
        .join(Trip, Trip.id == TripClient.trip_id)
        .join(User, User.id == TripClient.client_id)
        .where(TripClient.argestment > 0)
        .order_by(Trip.scheduled_date.desc())
    )
    if client_id:
        query = query.where(TripClient.client_id == client_id)
    result = await db.execute(query)
    return [
        ClientArgestmentRow(
            trip_id=row.trip_id,
            trip_number=trip_number,
            client_index=row.position,
            client_id=row.client_id,
            client_name=user.name,
            argestment=row.argestment,
            total_pay_argestment=user.total_pay_argestment,
        )
        for row, trip_number, user in result.all()
    ]


@router.post("/client-argestment/pay", response_model=UserResponse)
async def pay_client_argestment(
    payload: ArgestmentPayment,
    request: Request,
    admin: dict = Depends(require_admin),
    db: AsyncSession = Depends(get_db)
):
    client = await db.get(User, payload.client_id)
    if not client or client.role != UserRole.CLIENT:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Client not found"
        )
    client.total_pay_argestment = round_money((client.total_pay_argestment or 0) + payload.amount)
    await db.commit()
    await db.refresh(client)

    await ActivityLogger.record(
        db, admin["user_id"], ActivityAction.ARGESTMENT_PAID, ActivityCategory.FINANCIAL,
        f"Argestment of {payload.amount} paid to {client.name}",
        details={"amount": payload.amount}, related_user_id=client.id, request=request,
    )
    return UserResponse.model_validate(client)


@router.get("/pod-report", response_model=PodReportResponse)
async def pod_report(
    current_user: dict = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    """Client rows split into pending (started, complete) and submitted POD buckets."""
    report = await PodWorkflow.pod_status_report(db, current_user)
    return PodReportResponse(**report)


@router.post("/fleet-owner-statement", response_model=FleetOwnerStatementResponse)
async def fleet_owner_statement(
    payload: FleetOwnerStatementRequest,
    current_user: dict = Depends(require_role([UserRole.ADMIN, UserRole.FLEET_OWNER])),
    db: AsyncSession = Depends(get_db)
):
    """
    Per-trip settlement rows for one fleet owner.

    filter_type: with_pod keeps trips whose POD balance was settled,
    without_pod keeps the ones still open.
    """
    if not is_admin(current_user) and payload.fleet_owner_id != current_user["user_id"]:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Fleet owners can only view their own statement"
        )

    query = select(Trip).where(
        Trip.owner_id == payload.fleet_owner_id,
        Trip.ownership_type == OwnershipType.FLEET_OWNER,
        Trip.status != TripStatus.CANCELLED,
    )
    if payload.start_date:
        query = query.where(Trip.scheduled_date >= as_naive_utc(payload.start_date))
    if payload.end_date:
        query = query.where(Trip.scheduled_date <= as_naive_utc(payload.end_date))
    if payload.search:
        query = query.where(Trip.trip_number.ilike(f"%{payload.search}%"))
    result = await db.execute(query.order_by(Trip.scheduled_date.desc()))

    rows = []
    for trip in result.scalars().all():
        settled = bool(trip.pod_details)
        if payload.filter_type == "with_pod" and not settled:
            continue
        if payload.filter_type == "without_pod" and settled:
            continue
        rows.append(FleetOwnerStatementRow(
            trip_id=trip.id,
            trip_number=trip.trip_number,
            scheduled_date=trip.scheduled_date,
            status=trip.status,
            vehicle_owner_amount=trip.vehicle_owner_amount,
            total_fleet_advance=trip.total_fleet_advance,
            total_fleet_expense=trip.total_fleet_expense,
            pod_paid=trip.pod_balance_total_paid,
            pod_pending=trip.pod_balance,
        ))

    return FleetOwnerStatementResponse(
        fleet_owner_id=payload.fleet_owner_id,
        trips=rows,
        total_amount=round_money(sum(r.vehicle_owner_amount for r in rows)),
        total_advances=round_money(sum(r.total_fleet_advance for r in rows)),
        total_expenses=round_money(sum(r.total_fleet_expense for r in rows)),
        total_pod_paid=round_money(sum(r.pod_paid for r in rows)),
        total_pod_pending=round_money(sum(r.pod_pending for r in rows)),
    )


# ----------------------------------------------------------------------
# Single trip
# ----------------------------------------------------------------------

@router.get("/{trip_id}", response_model=TripResponse)
async def get_trip(
    trip_id: int,
    current_user: dict = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    trip = await load_visible_trip(db, trip_id, current_user)
    return TripResponse.model_validate(trip)


@router.patch("/{trip_id}", response_model=TripResponse)
async def update_trip(
    trip_id: int,
    payload: TripUpdate,
    request: Request,
    admin: dict = Depends(require_admin),
    db: AsyncSession = Depends(get_db)
):
    """
    Edit schedule, estimates, notes, driver or vehicle (admin-only).

    A vehicle swap is only possible while the trip is booked: the old vehicle
    is released, the new one (must be available) is booked and the owner
    snapshot and commission split are refreshed.
    """
    trip = await TripService.load_trip(db, trip_id)
    changes = payload.model_dump(exclude_unset=True)

    new_vehicle_id = changes.pop("vehicle_id", None)
    if new_vehicle_id and new_vehicle_id != trip.vehicle_id:
        if trip.status != TripStatus.BOOKED:
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail="Vehicle can only be changed while the trip is booked"
            )
        new_vehicle = await db.get(Vehicle, new_vehicle_id)
        if not new_vehicle:
            raise HTTPException(
                status_code=status.HTTP_404_NOT_FOUND,
                detail="Vehicle not found"
            )
        if new_vehicle.status != VehicleStatus.AVAILABLE:
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail="New vehicle is not available"
            )
        await TripService.reserve_vehicle(db, new_vehicle.id)
        await TripService.set_vehicle_status(db, trip.vehicle_id, VehicleStatus.AVAILABLE)
        trip.vehicle_id = new_vehicle.id
        await apply_owner_snapshot(db, trip, new_vehicle)
        recalculate_trip(trip)

    if "driver_id" in changes:
        if changes["driver_id"] is not None:
            await resolve_driver(db, changes["driver_id"])
        trip.driver_id = changes.pop("driver_id")
    if trip.ownership_type == OwnershipType.SELF and not trip.driver_id:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Self-owned trips need a driver"
        )

    if "scheduled_date" in changes and changes["scheduled_date"] is not None:
        changes["scheduled_date"] = as_naive_utc(changes["scheduled_date"])
    for field, value in changes.items():
        setattr(trip, field, value)
    trip.last_updated_by = admin["user_id"]

    await db.commit()
    trip = await TripService.load_trip(db, trip_id)

    await ActivityLogger.record(
        db, admin["user_id"], ActivityAction.TRIP_UPDATED, ActivityCategory.TRIP,
        f"Trip {trip.trip_number} updated",
        details={"fields": sorted(payload.model_fields_set)},
        related_trip_id=trip.id, related_vehicle_id=trip.vehicle_id, request=request,
    )
    return TripResponse.model_validate(trip)


@router.delete("/{trip_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_trip(
    trip_id: int,
    request: Request,
    admin: dict = Depends(require_admin),
    db: AsyncSession = Depends(get_db)
):
    """Delete a trip that has not started yet and free its vehicle (admin-only)."""
    trip = await TripService.load_trip(db, trip_id)
    if trip.status != TripStatus.BOOKED:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Only booked trips can be deleted"
        )
    payment_count = await db.execute(select(func.count(Payment.id)).where(Payment.trip_id == trip_id))
    if payment_count.scalar():
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Trip has payments recorded; cancel it instead"
        )

    trip_number = trip.trip_number
    vehicle_id = trip.vehicle_id
    await TripService.release_resources(db, trip)
    await db.delete(trip)
    await db.commit()

    await ActivityLogger.record(
        db, admin["user_id"], ActivityAction.TRIP_DELETED, ActivityCategory.TRIP,
        f"Trip {trip_number} deleted", related_trip_id=trip_id, related_vehicle_id=vehicle_id,
        severity=ActivitySeverity.HIGH, request=request,
    )


@router.patch("/{trip_id}/status", response_model=TripResponse)
async def update_trip_status(
    trip_id: int,
    payload: TripStatusUpdate,
    request: Request,
    background_tasks: BackgroundTasks,
    current_user: dict = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    """
    Move a trip along booked -> in_progress -> completed -> billed -> paid.

    Role rules, the POD precondition and vehicle/driver availability are
    handled by TripService.apply_transition.
    """
    trip = await TripService.load_trip(db, trip_id)
    plan = await TripService.apply_transition(db, trip, payload.status, current_user)
    await db.commit()
    trip = await TripService.load_trip(db, trip_id)
    if plan.target == TripStatus.COMPLETED:
        background_tasks.add_task(send_mails, await trip_completed_mails(db, trip))

    await ActivityLogger.record(
        db, current_user["user_id"], ActivityAction.TRIP_STATUS_CHANGED, ActivityCategory.TRIP,
        f"Trip {trip.trip_number} moved from {plan.current.value} to {plan.target.value}",
        details={"from": plan.current.value, "to": plan.target.value, "pod_auto_verified": plan.auto_verify_pod},
        related_trip_id=trip.id, related_vehicle_id=trip.vehicle_id, request=request,
    )

    return TripResponse.model_validate(trip)


@router.post("/{trip_id}/documents", response_model=TripResponse)
async def upload_trip_document(
    trip_id: int,
    request: Request,
    document_type: TripDocumentType = Form(..., alias="type"),
    file: UploadFile = File(...),
    current_user: dict = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    """Attach a loading receipt, delivery receipt, invoice or photo."""
    trip = await load_visible_trip(db, trip_id, current_user)
    url = await FileStorage.save(file, f"trips/{trip.id}")
    record = {"url": url, "uploaded_at": utcnow().isoformat(), "uploaded_by": current_user["user_id"]}

    documents = dict(trip.documents or {})
    if document_type == TripDocumentType.INVOICE:
        documents["invoices"] = list(documents.get("invoices") or []) + [record]
    elif document_type == TripDocumentType.PHOTO:
        documents["photos"] = list(documents.get("photos") or []) + [record]
    else:
        documents[document_type.value] = record
    trip.documents = documents
    trip.last_updated_by = current_user["user_id"]

    await db.commit()
    trip = await TripService.load_trip(db, trip_id)

    await ActivityLogger.record(
        db, current_user["user_id"], ActivityAction.TRIP_DOCUMENT_UPLOADED, ActivityCategory.TRIP,
        f"{document_type.value} uploaded for trip {trip.trip_number}",
        related_trip_id=trip.id, request=request,
    )
    return TripResponse.model_validate(trip)


@router.post("/{trip_id}/invoices", response_model=TripResponse)
async def generate_invoices(
    trip_id: int,
    request: Request,
    admin: dict = Depends(require_admin),
    db: AsyncSession = Depends(get_db)
):
    """Number an invoice for every client of a completed trip."""
    trip = await TripService.load_trip(db, trip_id)
    if trip.status != TripStatus.COMPLETED:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Invoices can only be generated for completed trips"
        )

    now = utcnow()
    for index, client in enumerate(trip.clients):
        client.invoice_number = f"INV-{trip.trip_number}-{index + 1}"
        client.invoice_generated = True
        client.invoice_date = now
    trip.last_updated_by = admin["user_id"]

    await db.commit()
    trip = await TripService.load_trip(db, trip_id)

    await ActivityLogger.record(
        db, admin["user_id"], ActivityAction.INVOICES_GENERATED, ActivityCategory.FINANCIAL,
        f"{len(trip.clients)} invoice(s) generated for trip {trip.trip_number}",
        details={"amount": round_money(sum(c.total_rate for c in trip.clients))},
        related_trip_id=trip.id, request=request,
    )
    return TripResponse.model_validate(trip)
