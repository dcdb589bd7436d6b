"""
Authentication API endpoints.

Register, login/logout, password lifecycle, email verification and the
client's own balance sheet. Tokens are returned in the body and mirrored in
an HTTP-only `jwt` cookie.
"""

import logging
from datetime import timedelta
from fastapi import APIRouter, BackgroundTasks, Depends, HTTPException, Request, Response, status
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select
from backend.app.db.session import get_db
from backend.app.models.user import User
from backend.app.models.trip import Trip, TripClient
from backend.app.models.enums import UserRole
from backend.app.models.activity_log import ActivityCategory, ActivitySeverity, ActivityStatus
from backend.app.schemas.auth import (
    UserRegister, UserLogin, TokenResponse, PasswordUpdate, ForgotPasswordRequest,
    ResetPasswordRequest, MessageResponse, TripBalance, TripBalanceListResponse
)
from backend.app.schemas.user import UserResponse
from backend.app.core.config import settings
from backend.app.core.security import get_password_hash, verify_password, hash_token, generate_one_time_token
from backend.app.core.jwt import create_access_token
from backend.app.core.dependencies import get_current_user, get_token, JWT_COOKIE_NAME
from backend.app.core.guards import require_role
from backend.app.core.timeutils import utcnow, as_naive_utc
from backend.app.core.token_revocation import revoke_token
from backend.app.services.activity_logger import ActivityLogger, ActivityAction
from backend.app.services.mailer import send_email, frontend_link

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/auth", tags=["Authentication"])

VERIFICATION_TTL = timedelta(hours=24)
RESET_TTL = timedelta(minutes=10)


def issue_token(user: User, response: Response) -> TokenResponse:
    """Create a JWT for the user and mirror it in the auth cookie."""
    access_token = create_access_token(data={
        "sub": user.email,
        "user_id": user.id,
        "role": user.role.value,
    })
    response.set_cookie(
        key=JWT_COOKIE_NAME,
        value=access_token,
        max_age=settings.jwt_cookie_expire_days * 24 * 60 * 60,
        httponly=True,
        secure=settings.environment == "production",
        samesite="lax",
    )
    return TokenResponse(
        access_token=access_token,
        token_type="bearer",
        user=UserResponse.model_validate(user),
    )


@router.post("/register", response_model=TokenResponse, status_code=status.HTTP_201_CREATED)
async def register(
    user_data: UserRegister,
    request: Request,
    response: Response,
    background_tasks: BackgroundTasks,
    db: AsyncSession = Depends(get_db)
):
    """
    Register a new user.

    - ADMIN role cannot be created via API.
    - Fleet owners start with a 10% commission, clients with 30 day credit terms.
    - A verification link is emailed (best-effort).
    """
    if user_data.role == UserRole.ADMIN:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Admin users cannot be registered via API"
        )

    result = await db.execute(select(User).where(User.email == user_data.email))
    if result.scalar_one_or_none():
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Email already registered"
        )

    raw_token, hashed_token = generate_one_time_token()
    new_user = User(
        name=user_data.name,
        email=user_data.email,
        hashed_password=get_password_hash(user_data.password),
        role=user_data.role,
        phone=user_data.phone,
        address=user_data.address.model_dump() if user_data.address else None,
        gst_number=user_data.gst_number,
        license_number=user_data.license_number,
        commission_rate=10.0 if user_data.role == UserRole.FLEET_OWNER else None,
        credit_terms=30 if user_data.role == UserRole.CLIENT else None,
        is_active=True,
        email_verified=False,
        email_verification_token=hashed_token,
        email_verification_expires=utcnow() + VERIFICATION_TTL,
    )

    db.add(new_user)
    await db.commit()
    await db.refresh(new_user)

    background_tasks.add_task(send_email, new_user.email, "verification", {
        "name": new_user.name,
        "link": frontend_link(f"verify-email/{raw_token}"),
    })
    await ActivityLogger.record(
        db, new_user.id, ActivityAction.USER_REGISTERED, ActivityCategory.AUTH,
        f"User {new_user.email} registered as {new_user.role.value}",
        related_user_id=new_user.id, request=request,
    )

    return issue_token(new_user, response)


@router.post("/login", response_model=TokenResponse)
async def login(
    credentials: UserLogin,
    request: Request,
    response: Response,
    db: AsyncSession = Depends(get_db)
):
    """
    Login user and return JWT token.

    Logs successful and failed login attempts for security monitoring.
    """
    result = await db.execute(select(User).where(User.email == credentials.email))
    user = result.scalar_one_or_none()

    if not user or not verify_password(credentials.password, user.hashed_password):
        await ActivityLogger.record(
            db, user.id if user else None, ActivityAction.LOGIN_FAILED, ActivityCategory.AUTH,
            f"Failed login for {credentials.email}",
            details={"reason": "User not found" if not user else "Invalid password"},
            severity=ActivitySeverity.MEDIUM, status=ActivityStatus.FAILED, request=request,
        )
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Incorrect email or password",
            headers={"WWW-Authenticate": "Bearer"},
        )

    if not user.is_active:
        await ActivityLogger.record(
            db, user.id, ActivityAction.LOGIN_FAILED, ActivityCategory.AUTH,
            f"Login attempt on deactivated account {user.email}",
            details={"reason": "Account is deactivated"},
            severity=ActivitySeverity.MEDIUM, status=ActivityStatus.FAILED, request=request,
        )
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Your account has been deactivated"
        )

    user.last_login = utcnow()
    await db.commit()
    await db.refresh(user)

    await ActivityLogger.record(
        db, user.id, ActivityAction.LOGIN_SUCCESS, ActivityCategory.AUTH,
        f"User {user.email} logged in", request=request,
    )

    return issue_token(user, response)


@router.post("/logout", response_model=MessageResponse)
async def logout(
    request: Request,
    response: Response,
    token: str = Depends(get_token),
    current_user: dict = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    """Revoke the presented token and clear the auth cookie."""
    await revoke_token(token, current_user["user_id"])
    response.delete_cookie(JWT_COOKIE_NAME)

    await ActivityLogger.record(
        db, current_user["user_id"], ActivityAction.LOGOUT, ActivityCategory.AUTH,
        "User logged out", request=request,
    )
    return MessageResponse(message="Logged out successfully")


@router.get("/me", response_model=UserResponse)
async def get_current_user_info(
    current_user: dict = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    """
    Get current authenticated user information.

    Raises:
        404: If user not found in database
    """
    result = await db.execute(select(User).where(User.id == current_user["user_id"]))
    user = result.scalar_one_or_none()

    if not user:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="User not found"
        )

    return UserResponse.model_validate(user)


@router.patch("/update-password", response_model=TokenResponse)
async def update_password(
    payload: PasswordUpdate,
    request: Request,
    response: Response,
    token: str = Depends(get_token),
    current_user: dict = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    """
    Change password after checking the current one.

    Tokens issued before the change stop working; a fresh token is returned.
    """
    user = await db.get(User, current_user["user_id"])
    if not verify_password(payload.current_password, user.hashed_password):
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Your current password is wrong"
        )

    user.hashed_password = get_password_hash(payload.new_password)
    # One second back so the token issued below is not older than the change
    user.password_changed_at = utcnow() - timedelta(seconds=1)
    await db.commit()
    await db.refresh(user)
    await revoke_token(token, user.id)

    await ActivityLogger.record(
        db, user.id, ActivityAction.PASSWORD_CHANGED, ActivityCategory.AUTH,
        "Password changed", severity=ActivitySeverity.MEDIUM, request=request,
    )
    return issue_token(user, response)


@router.post("/forgot-password", response_model=MessageResponse)
async def forgot_password(
    payload: ForgotPasswordRequest,
    background_tasks: BackgroundTasks,
    db: AsyncSession = Depends(get_db)
):
    """
    Email a password reset link.

    Always answers 200 so the endpoint cannot reveal which emails have accounts.
    """
    result = await db.execute(select(User).where(User.email == payload.email))
    user = result.scalar_one_or_none()

    if user and user.is_active:
        raw_token, hashed_token = generate_one_time_token()
        user.password_reset_token = hashed_token
        user.password_reset_expires = utcnow() + RESET_TTL
        await db.commit()

        background_tasks.add_task(send_email, user.email, "password_reset", {
            "name": user.name,
            "link": frontend_link(f"reset-password/{raw_token}"),
        })
    else:
        logger.info("Password reset requested for unknown or inactive email")

    return MessageResponse(message="If that email is registered, a reset link has been sent")


@router.patch("/reset-password/{token}", response_model=TokenResponse)
async def reset_password(
    token: str,
    payload: ResetPasswordRequest,
    request: Request,
    response: Response,
    db: AsyncSession = Depends(get_db)
):
    """Set a new password using the emailed one-time token."""
    result = await db.execute(select(User).where(User.password_reset_token == hash_token(token)))
    user = result.scalar_one_or_none()

    if not user or not user.password_reset_expires or as_naive_utc(user.password_reset_expires) < utcnow():
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Token is invalid or has expired"
        )

    user.hashed_password = get_password_hash(payload.password)
    user.password_reset_token = None
    user.password_reset_expires = None
    user.password_changed_at = utcnow() - timedelta(seconds=1)
    await db.commit()
    await db.refresh(user)

    await ActivityLogger.record(
        db, user.id, ActivityAction.PASSWORD_RESET, ActivityCategory.AUTH,
        "Password reset via email link", severity=ActivitySeverity.MEDIUM, request=request,
    )
    return issue_token(user, response)


@router.get("/verify-email/{token}", response_model=MessageResponse)
async def verify_email(
    token: str,
    request: Request,
    db: AsyncSession = Depends(get_db)
):
    result = await db.execute(select(User).where(User.email_verification_token == hash_token(token)))
    user = result.scalar_one_or_none()

    if not user or not user.email_verification_expires or as_naive_utc(user.email_verification_expires) < utcnow():
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Verification link is invalid or has expired"
        )

    user.email_verified = True
    user.email_verification_token = None
    user.email_verification_expires = None
    await db.commit()

    await ActivityLogger.record(
        db, user.id, ActivityAction.EMAIL_VERIFIED, ActivityCategory.AUTH,
        f"Email {user.email} verified", request=request,
    )
    return MessageResponse(message="Email verified successfully")


@router.get("/my-trip-balances", response_model=TripBalanceListResponse)
async def my_trip_balances(
    current_user: dict = Depends(require_role([UserRole.CLIENT])),
    db: AsyncSession = Depends(get_db)
):
    """Per-trip rate, paid and due for the calling client."""
    result = await db.execute(
        select(TripClient, Trip)
        .join(Trip, Trip.id == TripClient.trip_id)
        .where(TripClient.client_id == current_user["user_id"])
        .order_by(Trip.scheduled_date.desc())
    )
    balances = [
        TripBalance(
            trip_id=trip.id,
            trip_number=trip.trip_number,
            status=trip.status.value,
            rate=row.rate,
            total_rate=row.total_rate,
            paid_amount=row.paid_amount,
            due_amount=row.due_amount,
            payment_status=row.payment_status.value,
        )
        for row, trip in result.all()
    ]
    return TripBalanceListResponse(
        balances=balances,
        total_due=round(sum(b.due_amount for b in balances), 2),
        total_paid=round(sum(b.paid_amount for b in balances), 2),
    )
