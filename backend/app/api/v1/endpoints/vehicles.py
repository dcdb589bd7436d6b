"""
Vehicle API endpoints.

Admins manage every vehicle; fleet owners register and manage their own.
Also serves document expiry, EMI schedule, expense and ledger views.
"""

from datetime import date
from typing import Optional, List, Dict
from fastapi import APIRouter, Depends, HTTPException, Request, status, Query, UploadFile, File, Form
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select, func, or_
from backend.app.db.session import get_db
from backend.app.models.user import User
from backend.app.models.vehicle import Vehicle
from backend.app.models.trip import Trip
from backend.app.models.expense import Expense
from backend.app.models.maintenance import MaintenanceRecord
from backend.app.models.ledger_entry import TripLedgerEntry
from backend.app.models.enums import UserRole
from backend.app.models.trip_enums import TripStatus, LedgerKind
from backend.app.models.vehicle_enums import VehicleType, OwnershipType, VehicleStatus, VehicleDocumentType
from backend.app.models.activity_log import ActivityCategory, ActivitySeverity
from backend.app.schemas.vehicle import (
    VehicleCreate, VehicleUpdate, VehicleResponse, VehicleListResponse, ExpiringDocument,
    EmiDueVehicle, VehicleExpenseTotal, VehicleMonthlyFinance, MonthlyFinanceRow
)
from backend.app.schemas.maintenance import MaintenanceResponse
from backend.app.schemas.ledger import LedgerEntryResponse, LedgerListResponse
from backend.app.core.guards import require_role, ownership_guard, is_admin
from backend.app.core.timeutils import utcnow, as_naive_utc
from backend.app.domain.trips.financials import round_money
from backend.app.domain.trips.ledger import LedgerService
from backend.app.services.activity_logger import ActivityLogger, ActivityAction
from backend.app.services.storage import FileStorage

router = APIRouter(prefix="/vehicles", tags=["Vehicles"])

EXPENSE_KINDS = (LedgerKind.SELF_EXPENSE, LedgerKind.FLEET_EXPENSE)


async def get_vehicle_or_404(db: AsyncSession, vehicle_id: int) -> Vehicle:
    result = await db.execute(select(Vehicle).where(Vehicle.id == vehicle_id))
    vehicle = result.scalar_one_or_none()
    if not vehicle:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Vehicle not found"
        )
    return vehicle


async def get_visible_vehicle(db: AsyncSession, vehicle_id: int, current_user: dict) -> Vehicle:
    vehicle = await get_vehicle_or_404(db, vehicle_id)
    ownership_guard.enforce(vehicle.owner_id, current_user, "vehicle")
    return vehicle


async def resolve_fleet_owner(db: AsyncSession, owner_id: Optional[int]) -> User:
    if not owner_id:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="owner_id is required for fleet owner vehicles"
        )
    owner = await db.get(User, owner_id)
    if not owner or owner.role != UserRole.FLEET_OWNER:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="owner_id must reference a fleet owner"
        )
    return owner


def scoped_query(current_user: dict):
    query = select(Vehicle)
    owner_filter = ownership_guard.filter_by_ownership(current_user)
    if owner_filter is not None:
        query = query.where(Vehicle.owner_id == owner_filter)
    return query


@router.get("", response_model=VehicleListResponse)
async def list_vehicles(
    vehicle_status: Optional[VehicleStatus] = Query(None, alias="status"),
    ownership_type: Optional[OwnershipType] = Query(None),
    vehicle_type: Optional[VehicleType] = Query(None),
    search: Optional[str] = Query(None, description="Registration, make or model contains"),
    page: int = Query(1, ge=1),
    page_size: int = Query(50, ge=1, le=100),
    current_user: dict = Depends(require_role([UserRole.ADMIN, UserRole.FLEET_OWNER])),
    db: AsyncSession = Depends(get_db)
):
    """List vehicles; fleet owners only see their own."""
    query = scoped_query(current_user)
    if vehicle_status:
        query = query.where(Vehicle.status == vehicle_status)
    if ownership_type:
        query = query.where(Vehicle.ownership_type == ownership_type)
    if vehicle_type:
        query = query.where(Vehicle.vehicle_type == vehicle_type)
    if search:
        pattern = f"%{search}%"
        query = query.where(or_(
            Vehicle.registration_number.ilike(pattern),
            Vehicle.make.ilike(pattern),
            Vehicle.model.ilike(pattern),
        ))

    total_result = await db.execute(select(func.count()).select_from(query.subquery()))
    total = total_result.scalar()

    offset = (page - 1) * page_size
    result = await db.execute(query.order_by(Vehicle.created_at.desc(), Vehicle.id.desc()).offset(offset).limit(page_size))
    vehicles = result.scalars().all()

    return VehicleListResponse(
        vehicles=[VehicleResponse.model_validate(v) for v in vehicles],
        total=total,
        page=page,
        page_size=page_size
    )


@router.get("/expiring-documents", response_model=List[ExpiringDocument])
async def expiring_documents(
    days: int = Query(30, ge=0, le=365),
    current_user: dict = Depends(require_role([UserRole.ADMIN, UserRole.FLEET_OWNER])),
    db: AsyncSession = Depends(get_db)
):
    """Documents expiring within `days` (already expired ones included)."""
    result = await db.execute(scoped_query(current_user).where(Vehicle.is_active.is_(True)))
    rows = []
    for vehicle in result.scalars().all():
        for doc in vehicle.expiring_documents(days):
            rows.append(ExpiringDocument(
                vehicle_id=vehicle.id,
                registration_number=vehicle.registration_number,
                **doc,
            ))
    rows.sort(key=lambda r: r.expiry_date)
    return rows


@router.get("/emi-due", response_model=List[EmiDueVehicle])
async def emi_due_vehicles(
    days: int = Query(7, ge=0, le=31),
    current_user: dict = Depends(require_role([UserRole.ADMIN, UserRole.FLEET_OWNER])),
    db: AsyncSession = Depends(get_db)
):
    """Financed vehicles whose next EMI falls within `days`."""
    today = utcnow().date()
    result = await db.execute(scoped_query(current_user).where(Vehicle.loan_details.isnot(None)))
    rows = []
    for vehicle in result.scalars().all():
        due = vehicle.next_emi_date(today)
        if due is None:
            continue
        days_left = (due - today).days
        if days_left <= days:
            loan = vehicle.loan_details or {}
            rows.append(EmiDueVehicle(
                vehicle_id=vehicle.id,
                registration_number=vehicle.registration_number,
                lender=loan.get("lender"),
                emi_amount=loan.get("emi_amount"),
                next_emi_date=due,
                days_left=days_left,
            ))
    rows.sort(key=lambda r: r.days_left)
    return rows


@router.get("/by-ownership/{ownership_type}", response_model=List[VehicleResponse])
async def vehicles_by_ownership(
    ownership_type: OwnershipType,
    current_user: dict = Depends(require_role([UserRole.ADMIN, UserRole.FLEET_OWNER])),
    db: AsyncSession = Depends(get_db)
):
    result = await db.execute(
        scoped_query(current_user)
        .where(Vehicle.ownership_type == ownership_type)
        .order_by(Vehicle.registration_number)
    )
    return [VehicleResponse.model_validate(v) for v in result.scalars().all()]


@router.post("", response_model=VehicleResponse, status_code=status.HTTP_201_CREATED)
async def create_vehicle(
    payload: VehicleCreate,
    request: Request,
    current_user: dict = Depends(require_role([UserRole.ADMIN, UserRole.FLEET_OWNER])),
    db: AsyncSession = Depends(get_db)
):
    """
    Register a vehicle.

    Fleet owners always register fleet_owner vehicles owned by themselves.
    Admins register self-owned vehicles (owned by the admin) or vehicles of
    an existing fleet owner.
    """
    existing = await db.execute(
        select(Vehicle).where(Vehicle.registration_number == payload.registration_number)
    )
    if existing.scalar_one_or_none():
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Vehicle with this registration number already exists"
        )

    data = payload.model_dump(exclude={"documents", "loan_details", "owner_id", "commission_rate", "ownership_type"})
    ownership_type = payload.ownership_type
    owner_id = payload.owner_id
    if current_user["role"] == UserRole.FLEET_OWNER.value:
        ownership_type = OwnershipType.FLEET_OWNER
        owner_id = current_user["user_id"]

    vehicle = Vehicle(**data, ownership_type=ownership_type)
    if ownership_type == OwnershipType.FLEET_OWNER:
        owner = await resolve_fleet_owner(db, owner_id)
        vehicle.owner_id = owner.id
        vehicle.commission_rate = (
            payload.commission_rate if payload.commission_rate is not None else (owner.commission_rate or 0)
        )
    else:
        vehicle.self_owner_id = current_user["user_id"]
        vehicle.commission_rate = 0

    if payload.documents:
        vehicle.documents = {
            doc_type.value: doc.model_dump(mode="json") for doc_type, doc in payload.documents.items()
        }
    else:
        vehicle.documents = {}
    if payload.loan_details:
        vehicle.loan_details = payload.loan_details.model_dump(mode="json")
    if vehicle.next_service_at_km is None and vehicle.service_interval_km:
        vehicle.next_service_at_km = (vehicle.current_kilometers or 0) + vehicle.service_interval_km

    db.add(vehicle)
    await db.commit()
    await db.refresh(vehicle)

    await ActivityLogger.record(
        db, current_user["user_id"], ActivityAction.VEHICLE_CREATED, ActivityCategory.VEHICLE,
        f"Vehicle {vehicle.registration_number} registered",
        related_vehicle_id=vehicle.id, request=request,
    )
    return VehicleResponse.model_validate(vehicle)


@router.get("/{vehicle_id}", response_model=VehicleResponse)
async def get_vehicle(
    vehicle_id: int,
    current_user: dict = Depends(require_role([UserRole.ADMIN, UserRole.FLEET_OWNER])),
    db: AsyncSession = Depends(get_db)
):
    vehicle = await get_visible_vehicle(db, vehicle_id, current_user)
    return VehicleResponse.model_validate(vehicle)


@router.patch("/{vehicle_id}", response_model=VehicleResponse)
async def update_vehicle(
    vehicle_id: int,
    payload: VehicleUpdate,
    request: Request,
    current_user: dict = Depends(require_role([UserRole.ADMIN, UserRole.FLEET_OWNER])),
    db: AsyncSession = Depends(get_db)
):
    """
    Update a vehicle.

    Ownership changes are admin-only: switching to fleet_owner needs a valid
    fleet owner, switching to self clears the owner and the commission.
    """
    vehicle = await get_visible_vehicle(db, vehicle_id, current_user)
    changes = payload.model_dump(exclude_unset=True, exclude={"loan_details"})

    ownership_fields = {"ownership_type", "owner_id"}
    if ownership_fields & changes.keys() and not is_admin(current_user):
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Only admins can change vehicle ownership"
        )

    target_type = changes.pop("ownership_type", None) or vehicle.ownership_type
    target_owner = changes.pop("owner_id", vehicle.owner_id)
    if target_type == OwnershipType.FLEET_OWNER:
        owner = await resolve_fleet_owner(db, target_owner)
        vehicle.owner_id = owner.id
        vehicle.self_owner_id = None
        if vehicle.ownership_type != OwnershipType.FLEET_OWNER and "commission_rate" not in changes:
            vehicle.commission_rate = owner.commission_rate or 0
    else:
        vehicle.owner_id = None
        vehicle.self_owner_id = vehicle.self_owner_id or current_user["user_id"]
        changes.pop("commission_rate", None)
        vehicle.commission_rate = 0
    vehicle.ownership_type = target_type

    for field, value in changes.items():
        setattr(vehicle, field, value)
    if "loan_details" in payload.model_fields_set:
        vehicle.loan_details = payload.loan_details.model_dump(mode="json") if payload.loan_details else None

    await db.commit()
    await db.refresh(vehicle)

    await ActivityLogger.record(
        db, current_user["user_id"], ActivityAction.VEHICLE_UPDATED, ActivityCategory.VEHICLE,
        f"Vehicle {vehicle.registration_number} updated",
        details={"fields": sorted(payload.model_fields_set)},
        related_vehicle_id=vehicle.id, request=request,
    )
    return VehicleResponse.model_validate(vehicle)


@router.delete("/{vehicle_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_vehicle(
    vehicle_id: int,
    request: Request,
    current_user: dict = Depends(require_role([UserRole.ADMIN, UserRole.FLEET_OWNER])),
    db: AsyncSession = Depends(get_db)
):
    """Delete a vehicle that is not booked on a trip."""
    vehicle = await get_visible_vehicle(db, vehicle_id, current_user)
    if vehicle.status == VehicleStatus.BOOKED:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Cannot delete a vehicle that is currently booked"
        )

    trip_count = await db.execute(select(func.count(Trip.id)).where(Trip.vehicle_id == vehicle_id))
    if trip_count.scalar():
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Cannot delete a vehicle with trip history; mark it inactive instead"
        )

    registration = vehicle.registration_number
    await db.delete(vehicle)
    await db.commit()

    await ActivityLogger.record(
        db, current_user["user_id"], ActivityAction.VEHICLE_DELETED, ActivityCategory.VEHICLE,
        f"Vehicle {registration} deleted", related_vehicle_id=vehicle_id,
        severity=ActivitySeverity.HIGH, request=request,
    )


@router.post("/{vehicle_id}/documents", response_model=VehicleResponse)
async def upload_vehicle_document(
    vehicle_id: int,
    request: Request,
    document_type: VehicleDocumentType = Form(...),
    expiry_date: Optional[date] = Form(None),
    number: Optional[str] = Form(None),
    file: UploadFile = File(...),
    current_user: dict = Depends(require_role([UserRole.ADMIN, UserRole.FLEET_OWNER])),
    db: AsyncSession = Depends(get_db)
):
    """Attach insurance, fitness, permit or pollution paperwork."""
    vehicle = await get_visible_vehicle(db, vehicle_id, current_user)
    url = await FileStorage.save(file, f"vehicles/{vehicle.id}")

    previous = (vehicle.documents or {}).get(document_type.value) or {}
    vehicle.documents = {
        **(vehicle.documents or {}),
        document_type.value: {
            "number": number or previous.get("number"),
            "expiry_date": expiry_date.isoformat() if expiry_date else previous.get("expiry_date"),
            "url": url,
        },
    }
    await db.commit()
    await db.refresh(vehicle)

    await ActivityLogger.record(
        db, current_user["user_id"], ActivityAction.VEHICLE_DOCUMENT_UPLOADED, ActivityCategory.VEHICLE,
        f"{document_type.value} uploaded for {vehicle.registration_number}",
        related_vehicle_id=vehicle.id, request=request,
    )
    return VehicleResponse.model_validate(vehicle)


@router.get("/{vehicle_id}/maintenance", response_model=List[MaintenanceResponse])
async def vehicle_maintenance(
    vehicle_id: int,
    current_user: dict = Depends(require_role([UserRole.ADMIN, UserRole.FLEET_OWNER])),
    db: AsyncSession = Depends(get_db)
):
    await get_visible_vehicle(db, vehicle_id, current_user)
    result = await db.execute(
        select(MaintenanceRecord)
        .where(MaintenanceRecord.vehicle_id == vehicle_id)
        .order_by(MaintenanceRecord.scheduled_date.desc())
    )
    return [MaintenanceResponse.model_validate(r) for r in result.scalars().all()]


@router.get("/{vehicle_id}/expense-total", response_model=VehicleExpenseTotal)
async def vehicle_expense_total(
    vehicle_id: int,
    current_user: dict = Depends(require_role([UserRole.ADMIN, UserRole.FLEET_OWNER])),
    db: AsyncSession = Depends(get_db)
):
    """Trip ledger expenses + maintenance cost + general expenses for one vehicle."""
    await get_visible_vehicle(db, vehicle_id, current_user)

    ledger = await db.execute(
        select(func.coalesce(func.sum(TripLedgerEntry.amount), 0)).where(
            TripLedgerEntry.vehicle_id == vehicle_id,
            TripLedgerEntry.kind.in_(EXPENSE_KINDS),
        )
    )
    maintenance = await db.execute(
        select(func.coalesce(func.sum(MaintenanceRecord.total_cost), 0))
        .where(MaintenanceRecord.vehicle_id == vehicle_id)
    )
    general = await db.execute(
        select(func.coalesce(func.sum(Expense.amount), 0)).where(Expense.vehicle_id == vehicle_id)
    )
    ledger_total = round_money(ledger.scalar())
    maintenance_total = round_money(maintenance.scalar())
    general_total = round_money(general.scalar())

    return VehicleExpenseTotal(
        vehicle_id=vehicle_id,
        ledger_expenses=ledger_total,
        maintenance_cost=maintenance_total,
        general_expenses=general_total,
        total=round_money(ledger_total + maintenance_total + general_total),
    )


@router.get("/{vehicle_id}/monthly-finance", response_model=VehicleMonthlyFinance)
async def vehicle_monthly_finance(
    vehicle_id: int,
    year: Optional[int] = Query(None, ge=2000, le=2100),
    current_user: dict = Depends(require_role([UserRole.ADMIN, UserRole.FLEET_OWNER])),
    db: AsyncSession = Depends(get_db)
):
    """Trip income against expenses, month by month, for one calendar year."""
    await get_visible_vehicle(db, vehicle_id, current_user)
    year = year or utcnow().year

    income: Dict[int, float] = {m: 0.0 for m in range(1, 13)}
    expenses: Dict[int, float] = {m: 0.0 for m in range(1, 13)}

    trips = await db.execute(
        select(Trip.scheduled_date, Trip.total_client_amount).where(
            Trip.vehicle_id == vehicle_id,
            Trip.status != TripStatus.CANCELLED,
        )
    )
    for scheduled, amount in trips.all():
        scheduled = as_naive_utc(scheduled)
        if scheduled.year == year:
            income[scheduled.month] += amount or 0

    ledger = await db.execute(
        select(TripLedgerEntry.paid_at, TripLedgerEntry.amount).where(
            TripLedgerEntry.vehicle_id == vehicle_id,
            TripLedgerEntry.kind.in_(EXPENSE_KINDS),
        )
    )
    general = await db.execute(
        select(Expense.paid_at, Expense.amount).where(Expense.vehicle_id == vehicle_id)
    )
    maintenance = await db.execute(
        select(MaintenanceRecord.scheduled_date, MaintenanceRecord.completed_date, MaintenanceRecord.total_cost)
        .where(MaintenanceRecord.vehicle_id == vehicle_id)
    )
    dated_costs = list(ledger.all()) + list(general.all())
    dated_costs += [(completed or scheduled, cost) for scheduled, completed, cost in maintenance.all()]
    for when, amount in dated_costs:
        when = as_naive_utc(when)
        if when and when.year == year:
            expenses[when.month] += amount or 0

    months = [
        MonthlyFinanceRow(
            month=f"{year}-{m:02d}",
            income=round_money(income[m]),
            expenses=round_money(expenses[m]),
            net=round_money(income[m] - expenses[m]),
        )
        for m in range(1, 13)
    ]
    return VehicleMonthlyFinance(vehicle_id=vehicle_id, year=year, months=months)


@router.get("/{vehicle_id}/ledger", response_model=LedgerListResponse)
async def vehicle_ledger(
    vehicle_id: int,
    kind: Optional[LedgerKind] = Query(None),
    current_user: dict = Depends(require_role([UserRole.ADMIN, UserRole.FLEET_OWNER])),
    db: AsyncSession = Depends(get_db)
):
    """Trip advances and expenses booked against the vehicle."""
    await get_visible_vehicle(db, vehicle_id, current_user)
    entries = await LedgerService.entries_for_vehicle(db, vehicle_id, kind)
    return LedgerListResponse(
        entries=[LedgerEntryResponse.model_validate(e) for e in entries],
        total_amount=round_money(sum(e.amount for e in entries)),
    )
