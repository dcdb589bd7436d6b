"""
Payment API endpoints.

Payments are recorded pending, approved into completed or cancelled with a
reason. The money fields (trip, amount, type, payer, payee) cannot be edited
after creation.
"""

from datetime import datetime
from typing import Optional, Dict
from fastapi import APIRouter, Depends, HTTPException, Request, status, Query
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select, func, or_
from backend.app.db.session import get_db
from backend.app.models.user import User
from backend.app.models.trip import Trip
from backend.app.models.payment import Payment
from backend.app.models.payment_enums import PaymentType, PaymentStatus, PaymentMethod
from backend.app.models.activity_log import ActivityCategory, ActivitySeverity
from backend.app.schemas.payment import (
    PaymentCreate, PaymentUpdate, PaymentCancel, PaymentResponse,
    PaymentListResponse, PaymentStatsResponse
)
from backend.app.core.dependencies import get_current_user
from backend.app.core.guards import require_admin, is_admin
from backend.app.core.timeutils import utcnow, as_naive_utc
from backend.app.domain.trips.financials import round_money
from backend.app.services.counter_service import CounterService
from backend.app.services.activity_logger import ActivityLogger, ActivityAction

router = APIRouter(prefix="/payments", tags=["Payments"])

IMMUTABLE_FIELDS = ("trip_id", "amount", "payment_type", "paid_by_id", "paid_to_id")
DATE_FIELDS = ("payment_date", "due_date")


def tax_breakdown(amount: float, tax_details) -> Optional[dict]:
    """gst and tds with the resulting net amount (amount + gst - tds)."""
    if tax_details is None:
        return None
    gst = tax_details.gst or 0
    tds = tax_details.tds or 0
    return {"gst": gst, "tds": tds, "net_amount": round_money(amount + gst - tds)}


async def get_payment_or_404(db: AsyncSession, payment_id: int) -> Payment:
    result = await db.execute(select(Payment).where(Payment.id == payment_id))
    payment = result.scalar_one_or_none()
    if not payment:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Payment not found"
        )
    return payment


def ensure_can_view(payment: Payment, current_user: dict) -> None:
    if is_admin(current_user):
        return
    if current_user["user_id"] in (payment.paid_by_id, payment.paid_to_id):
        return
    raise HTTPException(
        status_code=status.HTTP_403_FORBIDDEN,
        detail="You can only view payments you made or received"
    )


@router.post("", response_model=PaymentResponse, status_code=status.HTTP_201_CREATED)
async def create_payment(
    payload: PaymentCreate,
    request: Request,
    admin: dict = Depends(require_admin),
    db: AsyncSession = Depends(get_db)
):
    """Record a pending payment against a trip; numbered PAY000001, PAY000002, ..."""
    trip = await db.get(Trip, payload.trip_id)
    if not trip:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Trip not found"
        )
    for user_id in (payload.paid_by_id, payload.paid_to_id):
        if user_id is not None and not await db.get(User, user_id):
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail=f"User {user_id} not found"
            )

    number = await CounterService.get_next(db, "pay", prefix="PAY", pad_length=6)
    data = payload.model_dump(exclude={"tax_details"})
    for field in DATE_FIELDS:
        data[field] = as_naive_utc(data[field])

    payment = Payment(
        **data,
        payment_number=number.number,
        tax_details=tax_breakdown(payload.amount, payload.tax_details),
        status=PaymentStatus.PENDING,
        created_by=admin["user_id"],
    )
    db.add(payment)
    await db.commit()
    await db.refresh(payment)

    await ActivityLogger.record(
        db, admin["user_id"], ActivityAction.PAYMENT_CREATED, ActivityCategory.PAYMENT,
        f"Payment {payment.payment_number} of {payment.amount} recorded for trip {trip.trip_number}",
        details={"amount": payment.amount, "payment_type": payment.payment_type.value},
        related_trip_id=trip.id, related_payment_id=payment.id, request=request,
    )
    return PaymentResponse.model_validate(payment)


@router.get("", response_model=PaymentListResponse)
async def list_payments(
    payment_status: Optional[PaymentStatus] = Query(None, alias="status"),
    payment_type: Optional[PaymentType] = Query(None),
    payment_method: Optional[PaymentMethod] = Query(None),
    trip_id: Optional[int] = Query(None),
    start_date: Optional[datetime] = Query(None),
    end_date: Optional[datetime] = Query(None),
    page: int = Query(1, ge=1),
    page_size: int = Query(20, ge=1, le=100),
    current_user: dict = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    """List payments; non-admins only see payments they made or received."""
    filters = []
    if not is_admin(current_user):
        uid = current_user["user_id"]
        filters.append(or_(Payment.paid_by_id == uid, Payment.paid_to_id == uid))
    if payment_status:
        filters.append(Payment.status == payment_status)
    if payment_type:
        filters.append(Payment.payment_type == payment_type)
    if payment_method:
        filters.append(Payment.payment_method == payment_method)
    if trip_id:
        filters.append(Payment.trip_id == trip_id)
    if start_date:
        filters.append(Payment.created_at >= as_naive_utc(start_date))
    if end_date:
        filters.append(Payment.created_at <= as_naive_utc(end_date))

    total_result = await db.execute(select(func.count(Payment.id)).where(*filters))
    offset = (page - 1) * page_size
    result = await db.execute(
        select(Payment).where(*filters).order_by(Payment.created_at.desc(), Payment.id.desc())
        .offset(offset).limit(page_size)
    )
    return PaymentListResponse(
        payments=[PaymentResponse.model_validate(p) for p in result.scalars().all()],
        total=total_result.scalar(),
        page=page,
        page_size=page_size
    )


@router.get("/stats", response_model=PaymentStatsResponse)
async def payment_stats(
    admin: dict = Depends(require_admin),
    db: AsyncSession = Depends(get_db)
):
    """Count and amount totals by status and by type."""
    def buckets(rows) -> Dict[str, Dict[str, float]]:
        return {key.value: {"count": count, "amount": round_money(amount)} for key, count, amount in rows}

    by_status = await db.execute(
        select(Payment.status, func.count(Payment.id), func.coalesce(func.sum(Payment.amount), 0))
        .group_by(Payment.status)
    )
    by_type = await db.execute(
        select(Payment.payment_type, func.count(Payment.id), func.coalesce(func.sum(Payment.amount), 0))
        .group_by(Payment.payment_type)
    )
    status_buckets = buckets(by_status.all())

    return PaymentStatsResponse(
        total_payments=int(sum(b["count"] for b in status_buckets.values())),
        total_amount=round_money(sum(b["amount"] for b in status_buckets.values())),
        by_status=status_buckets,
        by_type=buckets(by_type.all()),
    )


@router.get("/outstanding", response_model=PaymentListResponse)
async def outstanding_payments(
    page: int = Query(1, ge=1),
    page_size: int = Query(20, ge=1, le=100),
    admin: dict = Depends(require_admin),
    db: AsyncSession = Depends(get_db)
):
    """Pending payments whose due date has passed."""
    filters = [
        Payment.status == PaymentStatus.PENDING,
        Payment.due_date.isnot(None),
        Payment.due_date < utcnow(),
    ]
    total_result = await db.execute(select(func.count(Payment.id)).where(*filters))
    offset = (page - 1) * page_size
    result = await db.execute(
        select(Payment).where(*filters).order_by(Payment.due_date.asc()).offset(offset).limit(page_size)
    )
    return PaymentListResponse(
        payments=[PaymentResponse.model_validate(p) for p in result.scalars().all()],
        total=total_result.scalar(),
        page=page,
        page_size=page_size
    )


@router.get("/{payment_id}", response_model=PaymentResponse)
async def get_payment(
    payment_id: int,
    current_user: dict = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    payment = await get_payment_or_404(db, payment_id)
    ensure_can_view(payment, current_user)
    return PaymentResponse.model_validate(payment)


@router.patch("/{payment_id}", response_model=PaymentResponse)
async def update_payment(
    payment_id: int,
    payload: PaymentUpdate,
    request: Request,
    admin: dict = Depends(require_admin),
    db: AsyncSession = Depends(get_db)
):
    """
    Edit method, dates, transaction details, taxes or notes.

    Raises:
        400: a money field was sent, or the payment is completed
    """
    payment = await get_payment_or_404(db, payment_id)
    changes = payload.model_dump(exclude_unset=True)

    locked = sorted(field for field in IMMUTABLE_FIELDS if field in changes)
    if locked:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=f"Cannot modify {', '.join(locked)} after creation"
        )
    if payment.status == PaymentStatus.COMPLETED:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Completed payments cannot be modified"
        )

    if "tax_details" in changes:
        changes["tax_details"] = tax_breakdown(payment.amount, payload.tax_details)
    for field in DATE_FIELDS:
        if field in changes:
            changes[field] = as_naive_utc(changes[field])
    for field, value in changes.items():
        setattr(payment, field, value)
    await db.commit()
    await db.refresh(payment)

    await ActivityLogger.record(
        db, admin["user_id"], ActivityAction.PAYMENT_UPDATED, ActivityCategory.PAYMENT,
        f"Payment {payment.payment_number} updated", details={"fields": sorted(changes)},
        related_trip_id=payment.trip_id, related_payment_id=payment.id, request=request,
    )
    return PaymentResponse.model_validate(payment)


@router.patch("/{payment_id}/approve", response_model=PaymentResponse)
async def approve_payment(
    payment_id: int,
    request: Request,
    admin: dict = Depends(require_admin),
    db: AsyncSession = Depends(get_db)
):
    payment = await get_payment_or_404(db, payment_id)
    if payment.status != PaymentStatus.PENDING:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=f"Only pending payments can be approved (status: {payment.status.value})"
        )

    now = utcnow()
    payment.status = PaymentStatus.COMPLETED
    payment.approved_by = admin["user_id"]
    payment.approved_at = now
    if payment.payment_date is None:
        payment.payment_date = now
    await db.commit()
    await db.refresh(payment)

    await ActivityLogger.record(
        db, admin["user_id"], ActivityAction.PAYMENT_APPROVED, ActivityCategory.PAYMENT,
        f"Payment {payment.payment_number} approved", details={"amount": payment.amount},
        related_trip_id=payment.trip_id, related_payment_id=payment.id, request=request,
    )
    return PaymentResponse.model_validate(payment)


@router.patch("/{payment_id}/cancel", response_model=PaymentResponse)
async def cancel_payment(
    payment_id: int,
    payload: PaymentCancel,
    request: Request,
    admin: dict = Depends(require_admin),
    db: AsyncSession = Depends(get_db)
):
    payment = await get_payment_or_404(db, payment_id)
    if payment.status == PaymentStatus.COMPLETED:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Completed payments cannot be cancelled"
        )
    if payment.status == PaymentStatus.CANCELLED:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Payment is already cancelled"
        )

    reason = payload.reason.strip()
    payment.status = PaymentStatus.CANCELLED
    payment.notes = f"{payment.notes}\nCancelled: {reason}" if payment.notes else f"Cancelled: {reason}"
    await db.commit()
    await db.refresh(payment)

    await ActivityLogger.record(
        db, admin["user_id"], ActivityAction.PAYMENT_CANCELLED, ActivityCategory.PAYMENT,
        f"Payment {payment.payment_number} cancelled", details={"reason": reason, "amount": payment.amount},
        related_trip_id=payment.trip_id, related_payment_id=payment.id,
        severity=ActivitySeverity.MEDIUM, request=request,
    )
    return PaymentResponse.model_validate(payment)


@router.delete("/{payment_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_payment(
    payment_id: int,
    request: Request,
    admin: dict = Depends(require_admin),
    db: AsyncSession = Depends(get_db)
):
    """Only pending payments can be deleted."""
    payment = await get_payment_or_404(db, payment_id)
    if payment.status != PaymentStatus.PENDING:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Only pending payments can be deleted"
        )
    number, trip_id = payment.payment_number, payment.trip_id
    await db.delete(payment)
    await db.commit()

    await ActivityLogger.record(
        db, admin["user_id"], ActivityAction.PAYMENT_DELETED, ActivityCategory.PAYMENT,
        f"Payment {number} deleted", related_trip_id=trip_id, related_payment_id=payment_id,
        severity=ActivitySeverity.HIGH, request=request,
    )
