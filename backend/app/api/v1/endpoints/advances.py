"""
Standalone advance endpoints.

Cash handed to a driver or fleet owner outside any trip ledger. Each advance
moves the user's running `advance_amount`.
"""

from typing import Optional
from fastapi import APIRouter, Depends, HTTPException, Request, status, Query
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select
from backend.app.db.session import get_db
from backend.app.models.user import User
from backend.app.models.trip import Trip
from backend.app.models.advance import Advance
from backend.app.models.activity_log import ActivityCategory, ActivitySeverity
from backend.app.schemas.misc import AdvanceCreate, AdvanceResponse, AdvanceListResponse
from backend.app.core.dependencies import get_current_user
from backend.app.core.guards import require_admin, ownership_guard
from backend.app.domain.trips.financials import round_money
from backend.app.services.activity_logger import ActivityLogger, ActivityAction

router = APIRouter(prefix="/advances", tags=["Advances"])


@router.post("", response_model=AdvanceResponse, status_code=status.HTTP_201_CREATED)
async def create_advance(
    payload: AdvanceCreate,
    request: Request,
    admin: dict = Depends(require_admin),
    db: AsyncSession = Depends(get_db)
):
    user = await db.get(User, payload.user_id)
    if not user:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="User not found"
        )
    if payload.trip_id is not None and not await db.get(Trip, payload.trip_id):
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Trip not found"
        )

    advance = Advance(**payload.model_dump(), type="credit", created_by=admin["user_id"])
    user.advance_amount = round_money((user.advance_amount or 0) + payload.amount)
    db.add(advance)
    await db.commit()
    await db.refresh(advance)

    await ActivityLogger.record(
        db, admin["user_id"], ActivityAction.ADVANCE_ADDED, ActivityCategory.FINANCIAL,
        f"Advance of {advance.amount} given to {user.name}",
        details={"amount": advance.amount, "advance_id": advance.id},
        related_user_id=user.id, related_trip_id=advance.trip_id, request=request,
    )
    return AdvanceResponse.model_validate(advance)


@router.get("", response_model=AdvanceListResponse)
async def list_advances(
    user_id: Optional[int] = Query(None, description="Defaults to the caller"),
    current_user: dict = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    """Advances of one user; admins may list everyone by omitting user_id."""
    query = select(Advance)
    if user_id is not None:
        ownership_guard.enforce(user_id, current_user, "advances")
        query = query.where(Advance.user_id == user_id)
    else:
        owner_filter = ownership_guard.filter_by_ownership(current_user)
        if owner_filter is not None:
            query = query.where(Advance.user_id == owner_filter)

    result = await db.execute(query.order_by(Advance.created_at.desc(), Advance.id.desc()))
    advances = result.scalars().all()
    return AdvanceListResponse(
        advances=[AdvanceResponse.model_validate(a) for a in advances],
        total_amount=round_money(sum(a.amount for a in advances)),
    )


@router.delete("/{advance_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_advance(
    advance_id: int,
    request: Request,
    admin: dict = Depends(require_admin),
    db: AsyncSession = Depends(get_db)
):
    """Remove an advance and take it off the user's running total (floored at 0)."""
    result = await db.execute(select(Advance).where(Advance.id == advance_id))
    advance = result.scalar_one_or_none()
    if not advance:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Advance not found"
        )

    user = await db.get(User, advance.user_id)
    if user:
        user.advance_amount = max(round_money((user.advance_amount or 0) - advance.amount), 0.0)
    amount, user_id = advance.amount, advance.user_id
    await db.delete(advance)
    await db.commit()

    await ActivityLogger.record(
        db, admin["user_id"], ActivityAction.ADVANCE_DELETED, ActivityCategory.FINANCIAL,
        f"Advance {advance_id} of {amount} deleted", details={"amount": amount},
        related_user_id=user_id, severity=ActivitySeverity.MEDIUM, request=request,
    )
