"""
Trip Ledger Service (Domain Logic).

Advances and expenses booked against a trip. Each operation:

1. Validates the amount and the trip's ownership type
2. Adjusts the running totals on the client or trip
3. Inserts or deletes one TripLedgerEntry
4. Recomputes derived fields via `recalculate_trip`

The entry row is the only copy of the event. User and vehicle ledgers are
queries over the same table (`entries_for_user`, `entries_for_vehicle`), so
deleting an entry removes it everywhere without any matching heuristics.

Methods flush but never commit.
"""

from datetime import datetime
from typing import Optional, List
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select

from backend.app.core.exceptions import BusinessRuleError, LedgerLimitError, ResourceNotFoundError
from backend.app.core.timeutils import utcnow
from backend.app.domain.trips.financials import recalculate_trip, round_money, total_paid, total_billable
from backend.app.domain.trips.trip_service import TripService
from backend.app.models.ledger_entry import TripLedgerEntry
from backend.app.models.trip import Trip
from backend.app.models.vehicle import Vehicle
from backend.app.models.trip_enums import LedgerKind, Beneficiary
from backend.app.models.vehicle_enums import OwnershipType

CLIENT_KINDS = (LedgerKind.CLIENT_ADVANCE, LedgerKind.CLIENT_EXPENSE)
FLEET_KINDS = (LedgerKind.FLEET_ADVANCE, LedgerKind.FLEET_EXPENSE)
SELF_KINDS = (LedgerKind.SELF_ADVANCE, LedgerKind.SELF_EXPENSE)


def _require_positive(amount: float, label: str) -> float:
    if amount is None or amount <= 0:
        raise BusinessRuleError(f"{label} amount must be positive")
    return round_money(amount)


def _require_ownership(trip: Trip, ownership_type: OwnershipType) -> None:
    if trip.ownership_type != ownership_type:
        raise BusinessRuleError(
            f"Operation only allowed on {ownership_type.value} trips",
            details={"ownership_type": trip.ownership_type.value},
        )


class LedgerService:

    # ------------------------------------------------------------------
    # Client ledger
    # ------------------------------------------------------------------

    @staticmethod
    async def add_client_advance(
        db: AsyncSession,
        trip: Trip,
        index: int,
        amount: float,
        actor_id: int,
        paid_to: Optional[str] = None,
        paid_by: str = "client",
        purpose: str = "advances",
        payment_method: str = "cash",
        notes: Optional[str] = None,
        paid_at: Optional[datetime] = None,
    ) -> TripLedgerEntry:
        """
        Record money received from a client against their share of the trip.

        Raises:
            BusinessRuleError: amount is not positive
            LedgerLimitError: paid_amount would exceed the client's total_rate
        """
        client = TripService.client_at(trip, index)
        amount = _require_positive(amount, "Advance")

        new_paid = round_money((client.paid_amount or 0) + amount)
        if new_paid > round_money(client.total_rate):
            raise LedgerLimitError(
                "Advance amount exceeds the client's total rate",
                details={
                    "total_rate": client.total_rate,
                    "paid_amount": client.paid_amount,
                    "requested": amount,
                },
            )

        client.paid_amount = new_paid
        entry = TripLedgerEntry(
            trip_id=trip.id,
            trip_client_id=client.id,
            kind=LedgerKind.CLIENT_ADVANCE,
            amount=amount,
            paid_by=paid_by,
            paid_to=paid_to,
            purpose=purpose,
            payment_method=payment_method,
            notes=notes,
            beneficiary=Beneficiary.CLIENT,
            user_id=client.client_id,
            paid_at=paid_at or utcnow(),
            created_by=actor_id,
        )
        db.add(entry)
        recalculate_trip(trip)
        trip.last_updated_by = actor_id
        await db.flush()
        return entry

    @staticmethod
    async def add_paid_amount(
        db: AsyncSession,
        trip: Trip,
        amount: float,
        actor_id: int,
        client_index: int = 0,
        paid_by: str = "client",
        paid_to: Optional[str] = None,
        purpose: str = "general",
        notes: Optional[str] = None,
    ) -> TripLedgerEntry:
        """
        Record a payment against the trip as a whole.

        The trip-wide cap (sum of paid amounts must not exceed the sum of
        client total rates) is checked first, then the payment is booked on
        the given client like any other advance.
        """
        amount = _require_positive(amount, "Paid")
        if round_money(total_paid(trip) + amount) > total_billable(trip):
            raise LedgerLimitError(
                "Total paid cannot exceed total client amount",
                details={"total_paid": total_paid(trip), "total_billable": total_billable(trip)},
            )
        return await LedgerService.add_client_advance(
            db, trip, client_index, amount, actor_id,
            paid_to=paid_to, paid_by=paid_by, purpose=purpose, notes=notes,
        )

    @staticmethod
    async def add_client_expense(
        db: AsyncSession,
        trip: Trip,
        index: int,
        amount: float,
        actor_id: int,
        expense_type: str = "other",
        description: Optional[str] = None,
        receipt: Optional[str] = None,
        paid_by: str = "driver",
        paid_at: Optional[datetime] = None,
    ) -> TripLedgerEntry:
        """
        Record an expense billed to a client.

        The client's total_expense grows by `amount`, which raises total_rate
        and due_amount by the same amount.
        """
        client = TripService.client_at(trip, index)
        amount = _require_positive(amount, "Expense")

        client.total_expense = round_money((client.total_expense or 0) + amount)
        entry = TripLedgerEntry(
            trip_id=trip.id,
            trip_client_id=client.id,
            kind=LedgerKind.CLIENT_EXPENSE,
            amount=amount,
            category=expense_type,
            description=description,
            reference_number=receipt,
            paid_by=paid_by,
            beneficiary=Beneficiary.CLIENT,
            user_id=client.client_id,
            paid_at=paid_at or utcnow(),
            created_by=actor_id,
        )
        db.add(entry)
        recalculate_trip(trip)
        trip.last_updated_by = actor_id
        await db.flush()
        return entry

    @staticmethod
    async def delete_client_entry(
        db: AsyncSession,
        trip: Trip,
        index: int,
        entry_id: int,
        kind: LedgerKind,
        actor_id: int,
    ) -> TripLedgerEntry:
        """Remove a client advance or expense and reverse its effect on the totals."""
        client = TripService.client_at(trip, index)
        entry = await LedgerService._get_entry(db, trip, entry_id, kind)
        if entry.trip_client_id != client.id:
            raise ResourceNotFoundError("Ledger entry", entry_id)

        if kind == LedgerKind.CLIENT_ADVANCE:
            client.paid_amount = max(round_money((client.paid_amount or 0) - entry.amount), 0.0)
        else:
            remaining_expense = max(round_money((client.total_expense or 0) - entry.amount), 0.0)
            remaining_total = round_money((client.rate or 0) + remaining_expense)
            if round_money(client.paid_amount or 0) > remaining_total:
                raise LedgerLimitError(
                    "Cannot remove an expense the client has already paid for",
                    details={"paid_amount": client.paid_amount, "total_rate": remaining_total},
                )
            client.total_expense = remaining_expense

        await db.delete(entry)
        recalculate_trip(trip)
        trip.last_updated_by = actor_id
        await db.flush()
        return entry

    @staticmethod
    def update_client_financials(trip: Trip, index: int, actor_id: int, **changes) -> None:
        """Apply edits to a client's rate and bookkeeping fields, then recompute."""
        client = TripService.client_at(trip, index)
        for field in ("rate", "truck_hire_cost", "argestment", "load_number", "load_date"):
            value = changes.get(field)
            if value is not None:
                setattr(client, field, value)
        if client.rate is None or client.rate <= 0:
            raise BusinessRuleError("Rate must be positive")
        recalculate_trip(trip)
        if client.due_amount < 0:
            raise LedgerLimitError(
                "Rate cannot drop below the amount already paid",
                details={"paid_amount": client.paid_amount, "total_rate": client.total_rate},
            )
        trip.last_updated_by = actor_id

    # ------------------------------------------------------------------
    # Fleet owner ledger
    # ------------------------------------------------------------------

    @staticmethod
    async def add_fleet_advance(
        db: AsyncSession,
        trip: Trip,
        amount: float,
        actor_id: int,
        reason: Optional[str] = None,
        payment_type: str = "cash",
        paid_at: Optional[datetime] = None,
    ) -> TripLedgerEntry:
        """Money paid up front to the fleet owner of a hired vehicle."""
        _require_ownership(trip, OwnershipType.FLEET_OWNER)
        if amount is None or amount < 1:
            raise BusinessRuleError("Fleet advance amount must be at least 1")
        amount = round_money(amount)

        trip.total_fleet_advance = round_money((trip.total_fleet_advance or 0) + amount)
        entry = TripLedgerEntry(
            trip_id=trip.id,
            kind=LedgerKind.FLEET_ADVANCE,
            amount=amount,
            reason=reason,
            payment_method=payment_type,
            beneficiary=Beneficiary.FLEET_OWNER,
            user_id=trip.owner_id,
            vehicle_id=trip.vehicle_id,
            paid_at=paid_at or utcnow(),
            created_by=actor_id,
        )
        db.add(entry)
        recalculate_trip(trip)
        trip.last_updated_by = actor_id
        await db.flush()
        return entry

    @staticmethod
    async def add_fleet_expense(
        db: AsyncSession,
        trip: Trip,
        amount: float,
        actor_id: int,
        reason: Optional[str] = None,
        category: str = "fuel",
        description: Optional[str] = None,
        receipt_number: Optional[str] = None,
    ) -> TripLedgerEntry:
        """Expense borne on behalf of the fleet owner, deducted from their POD balance."""
        _require_ownership(trip, OwnershipType.FLEET_OWNER)
        amount = _require_positive(amount, "Fleet expense")

        trip.total_fleet_expense = round_money((trip.total_fleet_expense or 0) + amount)
        entry = TripLedgerEntry(
            trip_id=trip.id,
            kind=LedgerKind.FLEET_EXPENSE,
            amount=amount,
            reason=reason,
            category=category,
            description=description,
            reference_number=receipt_number,
            beneficiary=Beneficiary.FLEET_OWNER,
            user_id=trip.owner_id,
            vehicle_id=trip.vehicle_id,
            paid_at=utcnow(),
            created_by=actor_id,
        )
        db.add(entry)
        recalculate_trip(trip)
        trip.last_updated_by = actor_id
        await db.flush()
        return entry

    @staticmethod
    async def delete_fleet_entry(
        db: AsyncSession, trip: Trip, entry_id: int, kind: LedgerKind, actor_id: int
    ) -> TripLedgerEntry:
        entry = await LedgerService._get_entry(db, trip, entry_id, kind)
        if kind == LedgerKind.FLEET_ADVANCE:
            trip.total_fleet_advance = max(round_money((trip.total_fleet_advance or 0) - entry.amount), 0.0)
        else:
            trip.total_fleet_expense = max(round_money((trip.total_fleet_expense or 0) - entry.amount), 0.0)
        await db.delete(entry)
        recalculate_trip(trip)
        trip.last_updated_by = actor_id
        await db.flush()
        return entry

    @staticmethod
    def update_pod_details(
        trip: Trip,
        actor_id: int,
        pod_give: float,
        date: Optional[datetime] = None,
        payment_type: Optional[str] = None,
        notes: Optional[str] = None,
    ) -> None:
        """
        Settle the fleet owner's POD balance.

        Stores the payment details, adds pod_give to the paid total and
        zeroes the outstanding balance.
        """
        _require_ownership(trip, OwnershipType.FLEET_OWNER)
        if pod_give is None or pod_give < 0:
            raise BusinessRuleError("POD amount cannot be negative")
        trip.pod_details = {
            "date": (date or utcnow()).isoformat(),
            "payment_type": payment_type,
            "pod_give": round_money(pod_give),
            "notes": notes,
        }
        trip.pod_balance_total_paid = round_money((trip.pod_balance_total_paid or 0) + pod_give)
        trip.pod_balance = 0.0
        trip.last_updated_by = actor_id

    # ------------------------------------------------------------------
    # Self-owned ledger
    # ------------------------------------------------------------------

    @staticmethod
    async def _self_target(db: AsyncSession, trip: Trip, target: Beneficiary):
        if target == Beneficiary.DRIVER:
            if not trip.driver_id:
                raise BusinessRuleError("Trip has no driver assigned")
            return trip.driver_id, None, None
        if target == Beneficiary.VEHICLE:
            vehicle = await db.get(Vehicle, trip.vehicle_id)
            return None, trip.vehicle_id, vehicle
        raise BusinessRuleError("Self ledger entries are booked for a driver or a vehicle")

    @staticmethod
    async def add_self_expense(
        db: AsyncSession,
        trip: Trip,
        amount: float,
        actor_id: int,
        expense_for: Beneficiary,
        reason: Optional[str] = None,
        category: Optional[str] = None,
        description: Optional[str] = None,
        receipt_number: Optional[str] = None,
        paid_at: Optional[datetime] = None,
    ) -> TripLedgerEntry:
        """Expense on a self-owned trip, booked to the driver or the vehicle."""
        _require_ownership(trip, OwnershipType.SELF)
        amount = _require_positive(amount, "Expense")
        user_id, vehicle_id, vehicle = await LedgerService._self_target(db, trip, expense_for)

        if vehicle is not None:
            vehicle.total_expenses = round_money((vehicle.total_expenses or 0) + amount)

        entry = TripLedgerEntry(
            trip_id=trip.id,
            kind=LedgerKind.SELF_EXPENSE,
            amount=amount,
            reason=reason,
            category=category,
            description=description,
            reference_number=receipt_number,
            beneficiary=expense_for,
            user_id=user_id,
            vehicle_id=vehicle_id,
            paid_at=paid_at or utcnow(),
            created_by=actor_id,
        )
        db.add(entry)
        trip.last_updated_by = actor_id
        await db.flush()
        return entry

    @staticmethod
    async def add_self_advance(
        db: AsyncSession,
        trip: Trip,
        amount: float,
        actor_id: int,
        payment_for: Beneficiary,
        reason: Optional[str] = None,
        recipient_name: Optional[str] = None,
        description: Optional[str] = None,
        reference_number: Optional[str] = None,
        paid_at: Optional[datetime] = None,
    ) -> TripLedgerEntry:
        """Advance on a self-owned trip, booked to the driver or the vehicle."""
        _require_ownership(trip, OwnershipType.SELF)
        amount = _require_positive(amount, "Advance")
        user_id, vehicle_id, _ = await LedgerService._self_target(db, trip, payment_for)

        entry = TripLedgerEntry(
            trip_id=trip.id,
            kind=LedgerKind.SELF_ADVANCE,
            amount=amount,
            reason=reason,
            recipient_name=recipient_name,
            description=description,
            reference_number=reference_number,
            beneficiary=payment_for,
            user_id=user_id,
            vehicle_id=vehicle_id,
            paid_at=paid_at or utcnow(),
            created_by=actor_id,
        )
        db.add(entry)
        trip.last_updated_by = actor_id
        await db.flush()
        return entry

    @staticmethod
    async def delete_self_entry(
        db: AsyncSession, trip: Trip, entry_id: int, kind: LedgerKind, actor_id: int
    ) -> TripLedgerEntry:
        entry = await LedgerService._get_entry(db, trip, entry_id, kind)
        if kind == LedgerKind.SELF_EXPENSE and entry.vehicle_id:
            vehicle = await db.get(Vehicle, entry.vehicle_id)
            if vehicle:
                vehicle.total_expenses = max(round_money((vehicle.total_expenses or 0) - entry.amount), 0.0)
        await db.delete(entry)
        trip.last_updated_by = actor_id
        await db.flush()
        return entry

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    @staticmethod
    async def _get_entry(db: AsyncSession, trip: Trip, entry_id: int, kind: LedgerKind) -> TripLedgerEntry:
        result = await db.execute(
            select(TripLedgerEntry).where(
                TripLedgerEntry.id == entry_id,
                TripLedgerEntry.trip_id == trip.id,
                TripLedgerEntry.kind == kind,
            )
        )
        entry = result.scalar_one_or_none()
        if not entry:
            raise ResourceNotFoundError("Ledger entry", entry_id)
        return entry

    @staticmethod
    async def entries_for_trip(db: AsyncSession, trip_id: int, kind: Optional[LedgerKind] = None) -> List[TripLedgerEntry]:
        query = select(TripLedgerEntry).where(TripLedgerEntry.trip_id == trip_id)
        if kind:
            query = query.where(TripLedgerEntry.kind == kind)
        result = await db.execute(query.order_by(TripLedgerEntry.paid_at.desc(), TripLedgerEntry.id.desc()))
        return result.scalars().all()

    @staticmethod
    async def entries_for_user(db: AsyncSession, user_id: int, kind: Optional[LedgerKind] = None) -> List[TripLedgerEntry]:
        """Derived view replacing the per-user ledger arrays."""
        query = select(TripLedgerEntry).where(TripLedgerEntry.user_id == user_id)
        if kind:
            query = query.where(TripLedgerEntry.kind == kind)
        result = await db.execute(query.order_by(TripLedgerEntry.paid_at.desc(), TripLedgerEntry.id.desc()))
        return result.scalars().all()

    @staticmethod
    async def entries_for_vehicle(db: AsyncSession, vehicle_id: int, kind: Optional[LedgerKind] = None) -> List[TripLedgerEntry]:
        """Derived view replacing the per-vehicle expense/advance arrays."""
        query = select(TripLedgerEntry).where(
            TripLedgerEntry.vehicle_id == vehicle_id,
            TripLedgerEntry.kind.in_(SELF_KINDS + FLEET_KINDS),
        )
        if kind:
            query = query.where(TripLedgerEntry.kind == kind)
        result = await db.execute(query.order_by(TripLedgerEntry.paid_at.desc(), TripLedgerEntry.id.desc()))
        return result.scalars().all()

