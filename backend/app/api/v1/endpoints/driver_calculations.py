"""
Driver calculation endpoints.

Periodic driver settlements:
    total_km = new_km - old_km
    km_value = total_km * per_km_rate
    total    = km_value + total_expenses + pichla
    due      = total - total_advances

Recording a calculation moves the vehicle odometer to new_km and, when the
vehicle has a service interval, its next service mark.
"""

from typing import Optional, List
from fastapi import APIRouter, Depends, HTTPException, Request, status
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select
from backend.app.db.session import get_db
from backend.app.models.user import User
from backend.app.models.vehicle import Vehicle
from backend.app.models.driver_calculation import DriverCalculation
from backend.app.models.enums import UserRole
from backend.app.models.activity_log import ActivityCategory
from backend.app.schemas.misc import (
    DriverCalculationCreate, DriverCalculationUpdate, DriverCalculationResponse
)
from backend.app.core.dependencies import get_current_user
from backend.app.core.guards import require_admin, ownership_guard
from backend.app.services.activity_logger import ActivityLogger, ActivityAction

router = APIRouter(prefix="/driver-calculations", tags=["Driver Calculations"])


async def get_calculation_or_404(db: AsyncSession, calculation_id: int) -> DriverCalculation:
    result = await db.execute(select(DriverCalculation).where(DriverCalculation.id == calculation_id))
    calculation = result.scalar_one_or_none()
    if not calculation:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Driver calculation not found"
        )
    return calculation


async def move_odometer(db: AsyncSession, vehicle_id: Optional[int], new_km: float) -> None:
    if not vehicle_id:
        return
    vehicle = await db.get(Vehicle, vehicle_id)
    if not vehicle:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Vehicle not found"
        )
    vehicle.current_kilometers = new_km
    if vehicle.service_interval_km:
        vehicle.next_service_at_km = new_km + vehicle.service_interval_km


@router.post("", response_model=DriverCalculationResponse, status_code=status.HTTP_201_CREATED)
async def create_calculation(
    payload: DriverCalculationCreate,
    request: Request,
    admin: dict = Depends(require_admin),
    db: AsyncSession = Depends(get_db)
):
    driver = await db.get(User, payload.driver_id)
    if not driver or driver.role != UserRole.DRIVER:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="driver_id must reference a driver"
        )
    if payload.new_km < payload.old_km:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="new_km cannot be lower than old_km"
        )

    calculation = DriverCalculation(**payload.model_dump(), created_by=admin["user_id"])
    calculation.recalculate()
    await move_odometer(db, payload.vehicle_id, payload.new_km)

    db.add(calculation)
    await db.commit()
    await db.refresh(calculation)

    await ActivityLogger.record(
        db, admin["user_id"], ActivityAction.DRIVER_CALCULATION_CREATED, ActivityCategory.FINANCIAL,
        f"Driver calculation for {driver.name}: due {calculation.due}",
        details={"amount": calculation.total, "due": calculation.due},
        related_user_id=driver.id, related_vehicle_id=calculation.vehicle_id, request=request,
    )
    return DriverCalculationResponse.model_validate(calculation)


@router.get("", response_model=List[DriverCalculationResponse])
async def list_calculations(
    admin: dict = Depends(require_admin),
    db: AsyncSession = Depends(get_db)
):
    result = await db.execute(
        select(DriverCalculation).order_by(DriverCalculation.created_at.desc(), DriverCalculation.id.desc())
    )
    return [DriverCalculationResponse.model_validate(c) for c in result.scalars().all()]


@router.get("/driver/{driver_id}", response_model=List[DriverCalculationResponse])
async def calculations_by_driver(
    driver_id: int,
    current_user: dict = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    """A driver's calculations, newest first. Drivers can read their own."""
    ownership_guard.enforce(driver_id, current_user, "driver calculation")
    result = await db.execute(
        select(DriverCalculation)
        .where(DriverCalculation.driver_id == driver_id)
        .order_by(DriverCalculation.created_at.desc(), DriverCalculation.id.desc())
    )
    return [DriverCalculationResponse.model_validate(c) for c in result.scalars().all()]


@router.get("/{calculation_id}", response_model=DriverCalculationResponse)
async def get_calculation(
    calculation_id: int,
    current_user: dict = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    calculation = await get_calculation_or_404(db, calculation_id)
    ownership_guard.enforce(calculation.driver_id, current_user, "driver calculation")
    return DriverCalculationResponse.model_validate(calculation)


@router.patch("/{calculation_id}", response_model=DriverCalculationResponse)
async def update_calculation(
    calculation_id: int,
    payload: DriverCalculationUpdate,
    admin: dict = Depends(require_admin),
    db: AsyncSession = Depends(get_db)
):
    calculation = await get_calculation_or_404(db, calculation_id)
    changes = payload.model_dump(exclude_unset=True)
    for field, value in changes.items():
        if value is not None:
            setattr(calculation, field, value)
    if calculation.new_km < calculation.old_km:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="new_km cannot be lower than old_km"
        )
    calculation.recalculate()
    if "new_km" in changes:
        await move_odometer(db, calculation.vehicle_id, calculation.new_km)

    await db.commit()
    await db.refresh(calculation)
    return DriverCalculationResponse.model_validate(calculation)


@router.delete("/{calculation_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_calculation(
    calculation_id: int,
    admin: dict = Depends(require_admin),
    db: AsyncSession = Depends(get_db)
):
    calculation = await get_calculation_or_404(db, calculation_id)
    await db.delete(calculation)
    await db.commit()
