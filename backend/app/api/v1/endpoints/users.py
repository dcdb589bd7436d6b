"""
User management API endpoints.

Admin CRUD over every role, self-service profile endpoints, and the derived
per-user ledger view.
"""

from typing import Optional
from fastapi import APIRouter, Depends, HTTPException, Request, status, Query, UploadFile, File
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select, func, or_
from backend.app.db.session import get_db
from backend.app.models.user import User
from backend.app.models.trip import Trip, TripClient
from backend.app.models.enums import UserRole, AvailabilityStatus
from backend.app.models.trip_enums import LedgerKind
from backend.app.models.activity_log import ActivityCategory, ActivitySeverity
from backend.app.schemas.user import (
    UserResponse, UserCreate, UserUpdate, ProfileUpdate, UserListResponse, UserStatsResponse
)
from backend.app.schemas.ledger import LedgerEntryResponse, LedgerListResponse
from backend.app.core.dependencies import get_current_user
from backend.app.core.guards import require_admin, ownership_guard
from backend.app.core.security import get_password_hash
from backend.app.domain.trips.ledger import LedgerService
from backend.app.services.activity_logger import ActivityLogger, ActivityAction
from backend.app.services.storage import FileStorage

router = APIRouter(prefix="/users", tags=["Users"])


async def get_user_or_404(db: AsyncSession, user_id: int) -> User:
    result = await db.execute(select(User).where(User.id == user_id))
    user = result.scalar_one_or_none()
    if not user:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="User not found"
        )
    return user


@router.get("", response_model=UserListResponse)
async def list_users(
    role: Optional[UserRole] = Query(None),
    is_active: Optional[bool] = Query(None),
    availability: Optional[AvailabilityStatus] = Query(None, description="Driver availability"),
    search: Optional[str] = Query(None, description="Name, email or phone contains"),
    page: int = Query(1, ge=1, description="Page number"),
    page_size: int = Query(50, ge=1, le=100, description="Items per page"),
    admin: dict = Depends(require_admin),
    db: AsyncSession = Depends(get_db)
):
    """List users with role/status/search filters (admin-only)."""
    filters = []
    if role:
        filters.append(User.role == role)
    if is_active is not None:
        filters.append(User.is_active == is_active)
    if availability:
        filters.append(User.status == availability)
    if search:
        pattern = f"%{search}%"
        filters.append(or_(User.name.ilike(pattern), User.email.ilike(pattern), User.phone.ilike(pattern)))

    total_result = await db.execute(select(func.count(User.id)).where(*filters))
    total = total_result.scalar()

    offset = (page - 1) * page_size
    result = await db.execute(
        select(User).where(*filters).order_by(User.created_at.desc(), User.id.desc()).offset(offset).limit(page_size)
    )
    users = result.scalars().all()

    return UserListResponse(
        users=[UserResponse.model_validate(user) for user in users],
        total=total,
        page=page,
        page_size=page_size
    )


@router.get("/stats", response_model=UserStatsResponse)
async def user_stats(
    admin: dict = Depends(require_admin),
    db: AsyncSession = Depends(get_db)
):
    """Counts by role and activation state."""
    result = await db.execute(select(User.role, func.count(User.id)).group_by(User.role))
    by_role = {role.value: 0 for role in UserRole}
    for role, count in result.all():
        by_role[role.value] = count

    active_result = await db.execute(select(func.count(User.id)).where(User.is_active.is_(True)))
    active = active_result.scalar()
    total = sum(by_role.values())

    return UserStatsResponse(total=total, active=active, inactive=total - active, by_role=by_role)


@router.get("/profile", response_model=UserResponse)
async def get_profile(
    current_user: dict = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    user = await get_user_or_404(db, current_user["user_id"])
    return UserResponse.model_validate(user)


@router.patch("/profile", response_model=UserResponse)
async def update_profile(
    payload: ProfileUpdate,
    request: Request,
    current_user: dict = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    """Update the caller's own name, phone, address or GST number."""
    user = await get_user_or_404(db, current_user["user_id"])
    changes = payload.model_dump(exclude_unset=True)
    for field, value in changes.items():
        setattr(user, field, value)
    await db.commit()
    await db.refresh(user)

    await ActivityLogger.record(
        db, user.id, ActivityAction.USER_UPDATED, ActivityCategory.USER,
        "Profile updated", details={"fields": sorted(changes)},
        related_user_id=user.id, request=request,
    )
    return UserResponse.model_validate(user)


@router.post("/profile/photo", response_model=UserResponse)
async def upload_profile_photo(
    file: UploadFile = File(...),
    current_user: dict = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    user = await get_user_or_404(db, current_user["user_id"])
    user.profile_photo = await FileStorage.save(file, "profiles")
    await db.commit()
    await db.refresh(user)
    return UserResponse.model_validate(user)


@router.post("", response_model=UserResponse, status_code=status.HTTP_201_CREATED)
async def create_user(
    payload: UserCreate,
    request: Request,
    admin: dict = Depends(require_admin),
    db: AsyncSession = Depends(get_db)
):
    """Create a user of any role, including admins (admin-only)."""
    result = await db.execute(select(User).where(User.email == payload.email))
    if result.scalar_one_or_none():
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Email already registered"
        )

    data = payload.model_dump(exclude={"password", "address"})
    if payload.role == UserRole.FLEET_OWNER and data.get("commission_rate") is None:
        data["commission_rate"] = 10.0
    if payload.role == UserRole.CLIENT and data.get("credit_terms") is None:
        data["credit_terms"] = 30
    if data.get("credit_limit") is None:
        data.pop("credit_limit")

    user = User(
        **data,
        address=payload.address.model_dump() if payload.address else None,
        hashed_password=get_password_hash(payload.password),
        is_active=True,
    )
    db.add(user)
    await db.commit()
    await db.refresh(user)

    await ActivityLogger.record(
        db, admin["user_id"], ActivityAction.USER_CREATED, ActivityCategory.USER,
        f"Created {user.role.value} {user.email}", related_user_id=user.id, request=request,
    )
    return UserResponse.model_validate(user)


@router.get("/{user_id}", response_model=UserResponse)
async def get_user(
    user_id: int,
    admin: dict = Depends(require_admin),
    db: AsyncSession = Depends(get_db)
):
    user = await get_user_or_404(db, user_id)
    return UserResponse.model_validate(user)


@router.patch("/{user_id}", response_model=UserResponse)
async def update_user(
    user_id: int,
    payload: UserUpdate,
    request: Request,
    admin: dict = Depends(require_admin),
    db: AsyncSession = Depends(get_db)
):
    user = await get_user_or_404(db, user_id)
    changes = payload.model_dump(exclude_unset=True)
    if "address" in changes and payload.address is not None:
        changes["address"] = payload.address.model_dump()
    for field, value in changes.items():
        setattr(user, field, value)
    await db.commit()
    await db.refresh(user)

    await ActivityLogger.record(
        db, admin["user_id"], ActivityAction.USER_UPDATED, ActivityCategory.USER,
        f"Updated user {user.email}", details={"fields": sorted(changes)},
        related_user_id=user.id, request=request,
    )
    return UserResponse.model_validate(user)


@router.delete("/{user_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_user(
    user_id: int,
    request: Request,
    admin: dict = Depends(require_admin),
    db: AsyncSession = Depends(get_db)
):
    """Delete a user that takes part in no trip (admin-only)."""
    user = await get_user_or_404(db, user_id)
    if user.id == admin["user_id"]:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Cannot delete yourself"
        )

    trip_count = await db.execute(
        select(func.count(Trip.id)).where(
            or_(
                Trip.driver_id == user_id,
                Trip.owner_id == user_id,
                Trip.clients.any(TripClient.client_id == user_id),
            )
        )
    )
    if trip_count.scalar():
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Cannot delete a user with trips; deactivate the account instead"
        )

    email = user.email
    await db.delete(user)
    await db.commit()

    await ActivityLogger.record(
        db, admin["user_id"], ActivityAction.USER_DELETED, ActivityCategory.USER,
        f"Deleted user {email}", related_user_id=user_id,
        severity=ActivitySeverity.HIGH, request=request,
    )


async def _set_active(db: AsyncSession, user_id: int, active: bool, admin: dict, request: Request) -> UserResponse:
    user = await get_user_or_404(db, user_id)
    if user.id == admin["user_id"] and not active:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Cannot deactivate yourself"
        )
    user.is_active = active
    await db.commit()
    await db.refresh(user)

    await ActivityLogger.record(
        db, admin["user_id"],
        ActivityAction.USER_ACTIVATED if active else ActivityAction.USER_DEACTIVATED,
        ActivityCategory.USER,
        f"{'Activated' if active else 'Deactivated'} user {user.email}",
        related_user_id=user.id, severity=ActivitySeverity.MEDIUM, request=request,
    )
    return UserResponse.model_validate(user)


@router.patch("/{user_id}/activate", response_model=UserResponse)
async def activate_user(
    user_id: int,
    request: Request,
    admin: dict = Depends(require_admin),
    db: AsyncSession = Depends(get_db)
):
    return await _set_active(db, user_id, True, admin, request)


@router.patch("/{user_id}/deactivate", response_model=UserResponse)
async def deactivate_user(
    user_id: int,
    request: Request,
    admin: dict = Depends(require_admin),
    db: AsyncSession = Depends(get_db)
):
    """Deactivated users are rejected on their next request."""
    return await _set_active(db, user_id, False, admin, request)


@router.get("/{user_id}/ledger", response_model=LedgerListResponse)
async def user_ledger(
    user_id: int,
    kind: Optional[LedgerKind] = Query(None),
    current_user: dict = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    """
    Every trip ledger entry booked against a user.

    Replaces the per-user advance/expense arrays; admins see anyone, other
    users only themselves.
    """
    ownership_guard.enforce(user_id, current_user, "ledger")
    await get_user_or_404(db, user_id)

    entries = await LedgerService.entries_for_user(db, user_id, kind)
    return LedgerListResponse(
        entries=[LedgerEntryResponse.model_validate(e) for e in entries],
        total_amount=round(sum(e.amount for e in entries), 2),
    )
