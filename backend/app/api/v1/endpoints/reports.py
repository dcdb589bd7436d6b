"""
Report API endpoints.

Aggregations over trips, payments, vehicles and maintenance. Every report is
returned in the same envelope: report name, generation time, the filters
applied and a report-specific `data` dict.
"""

from datetime import datetime
from typing import Optional
from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select, func
from backend.app.db.session import get_db
from backend.app.models.trip import Trip
from backend.app.models.vehicle import Vehicle
from backend.app.models.payment import Payment
from backend.app.models.expense import Expense
from backend.app.models.maintenance import MaintenanceRecord, MaintenanceStatus
from backend.app.models.ledger_entry import TripLedgerEntry
from backend.app.models.enums import UserRole
from backend.app.models.trip_enums import TripStatus, LedgerKind
from backend.app.models.vehicle_enums import VehicleStatus
from backend.app.schemas.misc import ReportResponse
from backend.app.core.dependencies import get_current_user
from backend.app.core.guards import require_admin, require_role, ownership_guard
from backend.app.core.timeutils import utcnow, as_naive_utc
from backend.app.domain.trips.financials import round_money
from backend.app.domain.trips.trip_service import TripService

router = APIRouter(prefix="/reports", tags=["Reports"])

fleet_roles = require_role([UserRole.ADMIN, UserRole.FLEET_OWNER])


def date_filters(column, start_date: Optional[datetime], end_date: Optional[datetime]) -> list:
    filters = []
    if start_date:
        filters.append(column >= as_naive_utc(start_date))
    if end_date:
        filters.append(column <= as_naive_utc(end_date))
    return filters


def vehicle_scope(current_user: dict) -> list:
    owner_filter = ownership_guard.filter_by_ownership(current_user)
    return [] if owner_filter is None else [Vehicle.owner_id == owner_filter]


def envelope(report: str, data: dict, **filters) -> ReportResponse:
    return ReportResponse(
        report=report,
        generated_at=utcnow(),
        filters={k: v for k, v in filters.items() if v is not None},
        data=data,
    )


@router.get("/dashboard", response_model=ReportResponse)
async def dashboard_stats(
    current_user: dict = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    """Headline numbers for the caller's dashboard, scoped to what they can see."""
    result = await db.execute(TripService.scope_query(select(Trip), current_user))
    trips = result.scalars().all()
    by_status = {s.value: 0 for s in TripStatus}
    for trip in trips:
        by_status[trip.status.value] += 1
    billable = [t for t in trips if t.status != TripStatus.CANCELLED]

    data = {
        "trips": {
            "total": len(trips),
            "active": by_status[TripStatus.BOOKED.value] + by_status[TripStatus.IN_PROGRESS.value],
            "by_status": by_status,
        },
        "amounts": {
            "total_client_amount": round_money(sum(t.total_client_amount for t in billable)),
            "total_paid": round_money(sum(t.total_advance for t in billable)),
            "total_due": round_money(sum(t.balance_amount for t in billable)),
        },
    }

    role = current_user["role"]
    if role in (UserRole.ADMIN.value, UserRole.FLEET_OWNER.value):
        vehicles = await db.execute(
            select(Vehicle.status, func.count(Vehicle.id)).where(*vehicle_scope(current_user)).group_by(Vehicle.status)
        )
        data["vehicles"] = {s.value: c for s, c in vehicles.all()}
    if role == UserRole.ADMIN.value:
        data["amounts"]["total_commission"] = round_money(sum(t.total_commission for t in billable))
        pending = await db.execute(
            select(func.count(MaintenanceRecord.id)).where(
                MaintenanceRecord.status.in_((MaintenanceStatus.SCHEDULED, MaintenanceStatus.IN_PROGRESS))
            )
        )
        data["open_maintenance"] = pending.scalar()

    return envelope("dashboard", data)


@router.get("/financial", response_model=ReportResponse)
async def financial_report(
    start_date: Optional[datetime] = Query(None),
    end_date: Optional[datetime] = Query(None),
    admin: dict = Depends(require_admin),
    db: AsyncSession = Depends(get_db)
):
    """Revenue, commission, owner payouts, expenses and payments by status over a date range."""
    trip_filters = [Trip.status != TripStatus.CANCELLED] + date_filters(Trip.scheduled_date, start_date, end_date)
    totals = await db.execute(
        select(
            func.count(Trip.id),
            func.coalesce(func.sum(Trip.total_client_amount), 0),
            func.coalesce(func.sum(Trip.total_commission), 0),
            func.coalesce(func.sum(Trip.vehicle_owner_amount), 0),
        ).where(*trip_filters)
    )
    trip_count, revenue, commission, owner_amount = totals.one()

    payments = await db.execute(
        select(Payment.status, func.count(Payment.id), func.coalesce(func.sum(Payment.amount), 0))
        .where(*date_filters(Payment.created_at, start_date, end_date))
        .group_by(Payment.status)
    )
    ledger = await db.execute(
        select(TripLedgerEntry.kind, func.coalesce(func.sum(TripLedgerEntry.amount), 0))
        .where(*date_filters(TripLedgerEntry.paid_at, start_date, end_date))
        .group_by(TripLedgerEntry.kind)
    )
    ledger_totals = {kind.value: round_money(amount) for kind, amount in ledger.all()}
    general = await db.execute(
        select(func.coalesce(func.sum(Expense.amount), 0))
        .where(*date_filters(Expense.paid_at, start_date, end_date))
    )
    maintenance = await db.execute(
        select(func.coalesce(func.sum(MaintenanceRecord.total_cost), 0))
        .where(MaintenanceRecord.status == MaintenanceStatus.COMPLETED)
        .where(*date_filters(MaintenanceRecord.completed_date, start_date, end_date))
    )

    data = {
        "trips": trip_count,
        "revenue": round_money(revenue),
        "commission": round_money(commission),
        "vehicle_owner_amount": round_money(owner_amount),
        "payments_by_status": {
            s.value: {"count": c, "amount": round_money(a)} for s, c, a in payments.all()
        },
        "ledger": ledger_totals,
        "expenses": {
            "trip": round_money(
                ledger_totals.get(LedgerKind.SELF_EXPENSE.value, 0)
                + ledger_totals.get(LedgerKind.FLEET_EXPENSE.value, 0)
            ),
            "general": round_money(general.scalar()),
            "maintenance": round_money(maintenance.scalar()),
        },
    }
    return envelope("financial", data, start_date=start_date, end_date=end_date)


@router.get("/operational", response_model=ReportResponse)
async def operational_report(
    start_date: Optional[datetime] = Query(None),
    end_date: Optional[datetime] = Query(None),
    current_user: dict = Depends(fleet_roles),
    db: AsyncSession = Depends(get_db)
):
    """Trips by status and vehicle utilisation (booked share of active vehicles)."""
    trip_query = TripService.scope_query(select(Trip.status, func.count(Trip.id)), current_user)
    trip_query = trip_query.where(*date_filters(Trip.scheduled_date, start_date, end_date)).group_by(Trip.status)
    trips = await db.execute(trip_query)

    vehicles = await db.execute(
        select(Vehicle.status, func.count(Vehicle.id))
        .where(Vehicle.is_active.is_(True), *vehicle_scope(current_user))
        .group_by(Vehicle.status)
    )
    vehicle_counts = {s.value: c for s, c in vehicles.all()}
    total_vehicles = sum(vehicle_counts.values())
    booked = vehicle_counts.get(VehicleStatus.BOOKED.value, 0)

    data = {
        "trips_by_status": {s.value: c for s, c in trips.all()},
        "vehicles_by_status": vehicle_counts,
        "total_vehicles": total_vehicles,
        "utilisation_percent": round(booked * 100.0 / total_vehicles, 2) if total_vehicles else 0.0,
    }
    return envelope("operational", data, start_date=start_date, end_date=end_date)


@router.get("/vehicle-performance", response_model=ReportResponse)
async def vehicle_performance_report(
    start_date: Optional[datetime] = Query(None),
    end_date: Optional[datetime] = Query(None),
    current_user: dict = Depends(fleet_roles),
    db: AsyncSession = Depends(get_db)
):
    """Per vehicle: trips, revenue and maintenance cost."""
    vehicles_result = await db.execute(
        select(Vehicle).where(*vehicle_scope(current_user)).order_by(Vehicle.registration_number)
    )
    vehicles = vehicles_result.scalars().all()

    trip_rows = await db.execute(
        select(Trip.vehicle_id, func.count(Trip.id), func.coalesce(func.sum(Trip.total_client_amount), 0))
        .where(Trip.status != TripStatus.CANCELLED, *date_filters(Trip.scheduled_date, start_date, end_date))
        .group_by(Trip.vehicle_id)
    )
    trip_stats = {vid: (count, amount) for vid, count, amount in trip_rows.all()}

    maintenance_rows = await db.execute(
        select(MaintenanceRecord.vehicle_id, func.coalesce(func.sum(MaintenanceRecord.total_cost), 0))
        .where(*date_filters(MaintenanceRecord.scheduled_date, start_date, end_date))
        .group_by(MaintenanceRecord.vehicle_id)
    )
    maintenance_cost = {vid: cost for vid, cost in maintenance_rows.all()}

    rows = []
    for vehicle in vehicles:
        count, revenue = trip_stats.get(vehicle.id, (0, 0))
        rows.append({
            "vehicle_id": vehicle.id,
            "registration_number": vehicle.registration_number,
            "ownership_type": vehicle.ownership_type.value,
            "status": vehicle.status.value,
            "trips": count,
            "revenue": round_money(revenue),
            "maintenance_cost": round_money(maintenance_cost.get(vehicle.id, 0)),
            "current_kilometers": vehicle.current_kilometers,
        })

    return envelope("vehicle_performance", {"vehicles": rows}, start_date=start_date, end_date=end_date)
