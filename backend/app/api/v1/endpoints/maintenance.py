"""
Maintenance API endpoints.

Service, repair and inspection records per vehicle. Starting work moves the
vehicle into maintenance; completing it frees the vehicle and rolls the
service schedule forward.
"""

from datetime import timedelta
from typing import Optional
from fastapi import APIRouter, Depends, HTTPException, Request, status, Query, UploadFile, File
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select, func
from backend.app.db.session import get_db
from backend.app.models.vehicle import Vehicle
from backend.app.models.vehicle_enums import VehicleStatus
from backend.app.models.maintenance import (
    MaintenanceRecord, MaintenanceType, MaintenanceStatus, MaintenancePriority
)
from backend.app.models.enums import UserRole
from backend.app.models.activity_log import ActivityCategory, ActivitySeverity
from backend.app.schemas.maintenance import (
    MaintenanceCreate, MaintenanceUpdate, MaintenanceComplete, MaintenanceResponse,
    MaintenanceListResponse, MaintenanceStatsResponse
)
from backend.app.core.guards import require_admin, require_role, ownership_guard
from backend.app.core.timeutils import utcnow, as_naive_utc
from backend.app.domain.trips.financials import round_money
from backend.app.services.activity_logger import ActivityLogger, ActivityAction
from backend.app.services.storage import FileStorage

router = APIRouter(prefix="/maintenance", tags=["Maintenance"])

fleet_roles = require_role([UserRole.ADMIN, UserRole.FLEET_OWNER])

UPCOMING_WINDOW = timedelta(days=30)


def scoped_query(query, current_user: dict):
    """Fleet owners only see records of their own vehicles."""
    owner_filter = ownership_guard.filter_by_ownership(current_user)
    if owner_filter is not None:
        query = query.join(Vehicle, Vehicle.id == MaintenanceRecord.vehicle_id).where(Vehicle.owner_id == owner_filter)
    return query


async def get_record_or_404(db: AsyncSession, record_id: int, current_user: dict) -> MaintenanceRecord:
    result = await db.execute(select(MaintenanceRecord).where(MaintenanceRecord.id == record_id))
    record = result.scalar_one_or_none()
    if not record:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Maintenance record not found"
        )
    vehicle = await db.get(Vehicle, record.vehicle_id)
    ownership_guard.enforce(vehicle.owner_id if vehicle else None, current_user, "maintenance record")
    return record


def serialise(changes: dict) -> dict:
    if changes.get("service_provider") is not None:
        changes["service_provider"] = dict(changes["service_provider"])
    if changes.get("parts_replaced") is not None:
        changes["parts_replaced"] = [dict(part) for part in changes["parts_replaced"]]
    if changes.get("scheduled_date") is not None:
        changes["scheduled_date"] = as_naive_utc(changes["scheduled_date"])
    return changes


def start_work(vehicle: Vehicle) -> None:
    if vehicle.status == VehicleStatus.BOOKED:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Vehicle is booked on a trip"
        )
    vehicle.status = VehicleStatus.MAINTENANCE


@router.get("", response_model=MaintenanceListResponse)
async def list_maintenance(
    vehicle_id: Optional[int] = Query(None),
    record_status: Optional[MaintenanceStatus] = Query(None, alias="status"),
    maintenance_type: Optional[MaintenanceType] = Query(None),
    priority: Optional[MaintenancePriority] = Query(None),
    page: int = Query(1, ge=1),
    page_size: int = Query(20, ge=1, le=100),
    current_user: dict = Depends(fleet_roles),
    db: AsyncSession = Depends(get_db)
):
    query = scoped_query(select(MaintenanceRecord), current_user)
    if vehicle_id:
        query = query.where(MaintenanceRecord.vehicle_id == vehicle_id)
    if record_status:
        query = query.where(MaintenanceRecord.status == record_status)
    if maintenance_type:
        query = query.where(MaintenanceRecord.maintenance_type == maintenance_type)
    if priority:
        query = query.where(MaintenanceRecord.priority == priority)

    total_result = await db.execute(select(func.count()).select_from(query.subquery()))
    offset = (page - 1) * page_size
    result = await db.execute(
        query.order_by(MaintenanceRecord.scheduled_date.desc(), MaintenanceRecord.id.desc())
        .offset(offset).limit(page_size)
    )
    return MaintenanceListResponse(
        records=[MaintenanceResponse.model_validate(r) for r in result.scalars().all()],
        total=total_result.scalar(),
        page=page,
        page_size=page_size
    )


@router.get("/upcoming", response_model=MaintenanceListResponse)
async def upcoming_maintenance(
    current_user: dict = Depends(fleet_roles),
    db: AsyncSession = Depends(get_db)
):
    """Scheduled records falling within the next 30 days."""
    now = utcnow()
    query = scoped_query(select(MaintenanceRecord), current_user).where(
        MaintenanceRecord.status == MaintenanceStatus.SCHEDULED,
        MaintenanceRecord.scheduled_date >= now,
        MaintenanceRecord.scheduled_date <= now + UPCOMING_WINDOW,
    )
    result = await db.execute(query.order_by(MaintenanceRecord.scheduled_date.asc()))
    records = result.scalars().all()
    return MaintenanceListResponse(
        records=[MaintenanceResponse.model_validate(r) for r in records],
        total=len(records),
        page=1,
        page_size=max(len(records), 1)
    )


@router.get("/stats", response_model=MaintenanceStatsResponse)
async def maintenance_stats(
    current_user: dict = Depends(fleet_roles),
    db: AsyncSession = Depends(get_db)
):
    result = await db.execute(scoped_query(select(MaintenanceRecord), current_user))
    records = result.scalars().all()

    by_status = {s.value: 0 for s in MaintenanceStatus}
    by_type = {t.value: 0 for t in MaintenanceType}
    for record in records:
        by_status[record.status.value] += 1
        by_type[record.maintenance_type.value] += 1

    return MaintenanceStatsResponse(
        total_records=len(records),
        by_status=by_status,
        by_type=by_type,
        total_cost=round_money(sum(r.total_cost or 0 for r in records)),
        labor_cost=round_money(sum(r.labor_cost or 0 for r in records)),
        parts_cost=round_money(sum(r.parts_cost or 0 for r in records)),
        other_cost=round_money(sum(r.other_cost or 0 for r in records)),
    )


@router.post("", response_model=MaintenanceResponse, status_code=status.HTTP_201_CREATED)
async def create_maintenance(
    payload: MaintenanceCreate,
    request: Request,
    current_user: dict = Depends(fleet_roles),
    db: AsyncSession = Depends(get_db)
):
    """Admin, or the fleet owner of the vehicle. A record starting in_progress puts the vehicle in maintenance."""
    vehicle = await db.get(Vehicle, payload.vehicle_id)
    if not vehicle:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Vehicle not found"
        )
    ownership_guard.enforce(vehicle.owner_id, current_user, "vehicle")

    record = MaintenanceRecord(**serialise(payload.model_dump()), created_by=current_user["user_id"], documents=[])
    record.recalculate_total()
    if record.status == MaintenanceStatus.IN_PROGRESS:
        start_work(vehicle)

    db.add(record)
    await db.commit()
    await db.refresh(record)

    await ActivityLogger.record(
        db, current_user["user_id"], ActivityAction.MAINTENANCE_CREATED, ActivityCategory.MAINTENANCE,
        f"{record.maintenance_type.value} maintenance logged for {vehicle.registration_number}",
        details={"amount": record.total_cost, "status": record.status.value},
        related_vehicle_id=vehicle.id, request=request,
    )
    return MaintenanceResponse.model_validate(record)


@router.get("/{record_id}", response_model=MaintenanceResponse)
async def get_maintenance(
    record_id: int,
    current_user: dict = Depends(fleet_roles),
    db: AsyncSession = Depends(get_db)
):
    record = await get_record_or_404(db, record_id, current_user)
    return MaintenanceResponse.model_validate(record)


@router.patch("/{record_id}", response_model=MaintenanceResponse)
async def update_maintenance(
    record_id: int,
    payload: MaintenanceUpdate,
    request: Request,
    current_user: dict = Depends(fleet_roles),
    db: AsyncSession = Depends(get_db)
):
    """Edit a record; total cost is recomputed from its parts."""
    record = await get_record_or_404(db, record_id, current_user)
    if record.status == MaintenanceStatus.COMPLETED:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Completed records cannot be edited"
        )

    changes = serialise(payload.model_dump(exclude_unset=True))
    if changes.get("status") == MaintenanceStatus.COMPLETED:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Use the complete endpoint to close a record"
        )
    previous_status = record.status
    for field, value in changes.items():
        setattr(record, field, value)
    record.recalculate_total()

    vehicle = await db.get(Vehicle, record.vehicle_id)
    if record.status == MaintenanceStatus.IN_PROGRESS and previous_status != MaintenanceStatus.IN_PROGRESS:
        start_work(vehicle)
    elif record.status == MaintenanceStatus.CANCELLED and previous_status == MaintenanceStatus.IN_PROGRESS:
        vehicle.status = VehicleStatus.AVAILABLE

    await db.commit()
    await db.refresh(record)

    await ActivityLogger.record(
        db, current_user["user_id"], ActivityAction.MAINTENANCE_UPDATED, ActivityCategory.MAINTENANCE,
        f"Maintenance record {record.id} updated", details={"fields": sorted(changes)},
        related_vehicle_id=record.vehicle_id, request=request,
    )
    return MaintenanceResponse.model_validate(record)


@router.patch("/{record_id}/complete", response_model=MaintenanceResponse)
async def complete_maintenance(
    record_id: int,
    payload: MaintenanceComplete,
    request: Request,
    current_user: dict = Depends(fleet_roles),
    db: AsyncSession = Depends(get_db)
):
    """
    Close a record.

    Sets the completed date and final costs, frees the vehicle and updates
    its last service date and next service kilometre mark.
    """
    record = await get_record_or_404(db, record_id, current_user)
    if record.status in (MaintenanceStatus.COMPLETED, MaintenanceStatus.CANCELLED):
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=f"Record is already {record.status.value}"
        )

    for field, value in payload.model_dump(exclude_unset=True).items():
        if value is not None:
            setattr(record, field, value)
    now = utcnow()
    record.status = MaintenanceStatus.COMPLETED
    record.completed_date = now
    record.recalculate_total()

    vehicle = await db.get(Vehicle, record.vehicle_id)
    if vehicle.status == VehicleStatus.MAINTENANCE:
        vehicle.status = VehicleStatus.AVAILABLE
    vehicle.last_service_date = now
    if record.odometer_reading is not None:
        vehicle.current_kilometers = max(vehicle.current_kilometers or 0, record.odometer_reading)
    if record.next_service_km is not None:
        vehicle.next_service_at_km = record.next_service_km
    elif vehicle.service_interval_km:
        vehicle.next_service_at_km = (vehicle.current_kilometers or 0) + vehicle.service_interval_km

    await db.commit()
    await db.refresh(record)

    await ActivityLogger.record(
        db, current_user["user_id"], ActivityAction.MAINTENANCE_COMPLETED, ActivityCategory.MAINTENANCE,
        f"Maintenance completed for {vehicle.registration_number}",
        details={"amount": record.total_cost},
        related_vehicle_id=vehicle.id, request=request,
    )
    return MaintenanceResponse.model_validate(record)


@router.post("/{record_id}/documents", response_model=MaintenanceResponse)
async def upload_maintenance_document(
    record_id: int,
    file: UploadFile = File(...),
    current_user: dict = Depends(fleet_roles),
    db: AsyncSession = Depends(get_db)
):
    """Attach a bill or photo to a record."""
    record = await get_record_or_404(db, record_id, current_user)
    url = await FileStorage.save(file, f"maintenance/{record.id}")
    record.documents = list(record.documents or []) + [
        {"url": url, "name": file.filename, "uploaded_at": utcnow().isoformat()}
    ]
    await db.commit()
    await db.refresh(record)
    return MaintenanceResponse.model_validate(record)


@router.delete("/{record_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_maintenance(
    record_id: int,
    request: Request,
    admin: dict = Depends(require_admin),
    db: AsyncSession = Depends(get_db)
):
    record = await get_record_or_404(db, record_id, admin)
    vehicle_id = record.vehicle_id
    if record.status == MaintenanceStatus.IN_PROGRESS:
        vehicle = await db.get(Vehicle, vehicle_id)
        if vehicle and vehicle.status == VehicleStatus.MAINTENANCE:
            vehicle.status = VehicleStatus.AVAILABLE
    await db.delete(record)
    await db.commit()

    await ActivityLogger.record(
        db, admin["user_id"], ActivityAction.MAINTENANCE_DELETED, ActivityCategory.MAINTENANCE,
        f"Maintenance record {record_id} deleted", related_vehicle_id=vehicle_id,
        severity=ActivitySeverity.MEDIUM, request=request,
    )
