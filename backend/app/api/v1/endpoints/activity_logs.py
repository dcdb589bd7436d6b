"""
Activity log API endpoints.

Read side of the activity trail written by ActivityLogger, plus manual
entries and admin clean-up. Non-admins only ever see their own entries.
"""

from datetime import datetime, timedelta
from typing import Optional, List, Dict
from fastapi import APIRouter, Depends, HTTPException, Request, status, Query
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select, func, delete
from backend.app.db.session import get_db
from backend.app.models.activity_log import ActivityLog, ActivityCategory, ActivitySeverity
from backend.app.schemas.activity_log import (
    ActivityLogCreate, ActivityLogResponse, ActivityLogListResponse, UserActivitySummary,
    FinancialActivitySummary, BulkDeleteRequest, BulkDeleteResponse
)
from backend.app.core.dependencies import get_current_user
from backend.app.core.guards import require_admin, ownership_guard
from backend.app.core.timeutils import utcnow, as_naive_utc
from backend.app.domain.trips.financials import round_money
from backend.app.services.activity_logger import ActivityLogger

router = APIRouter(prefix="/activity-logs", tags=["Activity Logs"])

FINANCIAL_CATEGORIES = (ActivityCategory.FINANCIAL, ActivityCategory.PAYMENT)


def scoped_filters(current_user: dict) -> list:
    owner_filter = ownership_guard.filter_by_ownership(current_user)
    return [] if owner_filter is None else [ActivityLog.user_id == owner_filter]


async def paginate(db: AsyncSession, filters: list, page: int, page_size: int) -> ActivityLogListResponse:
    total_result = await db.execute(select(func.count(ActivityLog.id)).where(*filters))
    offset = (page - 1) * page_size
    result = await db.execute(
        select(ActivityLog).where(*filters)
        .order_by(ActivityLog.created_at.desc(), ActivityLog.id.desc())
        .offset(offset).limit(page_size)
    )
    return ActivityLogListResponse(
        logs=[ActivityLogResponse.model_validate(log) for log in result.scalars().all()],
        total=total_result.scalar(),
        page=page,
        page_size=page_size
    )


@router.get("", response_model=ActivityLogListResponse)
async def list_activity_logs(
    user_id: Optional[int] = Query(None),
    action: Optional[str] = Query(None),
    category: Optional[ActivityCategory] = Query(None),
    severity: Optional[ActivitySeverity] = Query(None),
    start_date: Optional[datetime] = Query(None),
    end_date: Optional[datetime] = Query(None),
    page: int = Query(1, ge=1),
    page_size: int = Query(50, ge=1, le=200),
    current_user: dict = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    filters = scoped_filters(current_user)
    if user_id is not None:
        filters.append(ActivityLog.user_id == user_id)
    if action:
        filters.append(ActivityLog.action == action)
    if category:
        filters.append(ActivityLog.category == category)
    if severity:
        filters.append(ActivityLog.severity == severity)
    if start_date:
        filters.append(ActivityLog.created_at >= as_naive_utc(start_date))
    if end_date:
        filters.append(ActivityLog.created_at <= as_naive_utc(end_date))
    return await paginate(db, filters, page, page_size)


@router.get("/recent", response_model=List[ActivityLogResponse])
async def recent_activity(
    limit: int = Query(20, ge=1, le=100),
    current_user: dict = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    result = await db.execute(
        select(ActivityLog).where(*scoped_filters(current_user))
        .order_by(ActivityLog.created_at.desc(), ActivityLog.id.desc()).limit(limit)
    )
    return [ActivityLogResponse.model_validate(log) for log in result.scalars().all()]


@router.get("/category/{category}", response_model=ActivityLogListResponse)
async def activity_by_category(
    category: ActivityCategory,
    page: int = Query(1, ge=1),
    page_size: int = Query(50, ge=1, le=200),
    current_user: dict = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    filters = scoped_filters(current_user) + [ActivityLog.category == category]
    return await paginate(db, filters, page, page_size)


@router.get("/users/{user_id}/summary", response_model=UserActivitySummary)
async def user_activity_summary(
    user_id: int,
    current_user: dict = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    """Counts of a user's entries by category and by action."""
    ownership_guard.enforce(user_id, current_user, "activity summary")
    by_category_result = await db.execute(
        select(ActivityLog.category, func.count(ActivityLog.id))
        .where(ActivityLog.user_id == user_id).group_by(ActivityLog.category)
    )
    by_action_result = await db.execute(
        select(ActivityLog.action, func.count(ActivityLog.id))
        .where(ActivityLog.user_id == user_id).group_by(ActivityLog.action)
    )
    by_category = {category.value: count for category, count in by_category_result.all()}
    return UserActivitySummary(
        user_id=user_id,
        total=sum(by_category.values()),
        by_category=by_category,
        by_action={action: count for action, count in by_action_result.all()},
    )


@router.get("/financial-summary", response_model=FinancialActivitySummary)
async def financial_activity_summary(
    start_date: Optional[datetime] = Query(None),
    end_date: Optional[datetime] = Query(None),
    admin: dict = Depends(require_admin),
    db: AsyncSession = Depends(get_db)
):
    """Sum of `details.amount` over financial and payment entries, per action."""
    filters = [ActivityLog.category.in_(FINANCIAL_CATEGORIES)]
    if start_date:
        filters.append(ActivityLog.created_at >= as_naive_utc(start_date))
    if end_date:
        filters.append(ActivityLog.created_at <= as_naive_utc(end_date))
    result = await db.execute(select(ActivityLog).where(*filters))
    logs = result.scalars().all()

    by_action: Dict[str, float] = {}
    for log in logs:
        amount = (log.details or {}).get("amount")
        if isinstance(amount, (int, float)):
            by_action[log.action] = round_money(by_action.get(log.action, 0) + amount)

    return FinancialActivitySummary(
        total_entries=len(logs),
        total_amount=round_money(sum(by_action.values())),
        by_action=by_action,
    )


@router.post("", response_model=ActivityLogResponse, status_code=status.HTTP_201_CREATED)
async def create_activity_log(
    payload: ActivityLogCreate,
    request: Request,
    current_user: dict = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    """Add a manual entry attributed to the caller."""
    entry = await ActivityLogger.record(
        db, current_user["user_id"], payload.action, payload.category, payload.description,
        details=payload.details,
        related_trip_id=payload.related_trip_id,
        related_user_id=payload.related_user_id,
        related_vehicle_id=payload.related_vehicle_id,
        related_payment_id=payload.related_payment_id,
        severity=payload.severity,
        status=payload.status,
        request=request,
    )
    if entry is None:
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Activity log could not be written"
        )
    await db.refresh(entry)
    return ActivityLogResponse.model_validate(entry)


@router.post("/bulk-delete", response_model=BulkDeleteResponse)
async def bulk_delete_activity_logs(
    payload: BulkDeleteRequest,
    admin: dict = Depends(require_admin),
    db: AsyncSession = Depends(get_db)
):
    """Delete entries by id, or everything older than `older_than_days`."""
    if not payload.ids and payload.older_than_days is None:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Provide ids or older_than_days"
        )
    stmt = delete(ActivityLog)
    if payload.ids:
        stmt = stmt.where(ActivityLog.id.in_(payload.ids))
    if payload.older_than_days is not None:
        stmt = stmt.where(ActivityLog.created_at < utcnow() - timedelta(days=payload.older_than_days))
    result = await db.execute(stmt)
    await db.commit()
    return BulkDeleteResponse(deleted=result.rowcount or 0)


@router.get("/{log_id}", response_model=ActivityLogResponse)
async def get_activity_log(
    log_id: int,
    current_user: dict = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    log = await db.get(ActivityLog, log_id)
    if not log:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Activity log not found"
        )
    ownership_guard.enforce(log.user_id, current_user, "activity log")
    return ActivityLogResponse.model_validate(log)


@router.delete("/{log_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_activity_log(
    log_id: int,
    admin: dict = Depends(require_admin),
    db: AsyncSession = Depends(get_db)
):
    log = await db.get(ActivityLog, log_id)
    if not log:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Activity log not found"
        )
    await db.delete(log)
    await db.commit()
