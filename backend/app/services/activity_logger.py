"""
Activity logging service.

Records who did what to which trip, payment, vehicle or user. Logging runs
after the business commit and never fails the request. The row is written
inside a SAVEPOINT, so a failed write only discards the log row and leaves
the objects the endpoint is about to serialize loaded.
"""

import logging
from typing import Optional, Dict, Any
from fastapi import Request
from sqlalchemy.ext.asyncio import AsyncSession

from backend.app.models.activity_log import ActivityLog, ActivityCategory, ActivitySeverity, ActivityStatus

logger = logging.getLogger(__name__)


class ActivityAction:
    """Standardized activity action constants."""
    # Auth
    USER_REGISTERED = "USER_REGISTERED"
    LOGIN_SUCCESS = "LOGIN_SUCCESS"
    LOGIN_FAILED = "LOGIN_FAILED"
    LOGOUT = "LOGOUT"
    PASSWORD_CHANGED = "PASSWORD_CHANGED"
    PASSWORD_RESET = "PASSWORD_RESET"
    EMAIL_VERIFIED = "EMAIL_VERIFIED"

    # Users
    USER_CREATED = "USER_CREATED"
    USER_UPDATED = "USER_UPDATED"
    USER_DELETED = "USER_DELETED"
    USER_ACTIVATED = "USER_ACTIVATED"
    USER_DEACTIVATED = "USER_DEACTIVATED"
    ARGESTMENT_PAID = "ARGESTMENT_PAID"

    # Vehicles
    VEHICLE_CREATED = "VEHICLE_CREATED"
    VEHICLE_UPDATED = "VEHICLE_UPDATED"
    VEHICLE_DELETED = "VEHICLE_DELETED"
    VEHICLE_DOCUMENT_UPLOADED = "VEHICLE_DOCUMENT_UPLOADED"

    # Trips
    TRIP_CREATED = "TRIP_CREATED"
    TRIP_UPDATED = "TRIP_UPDATED"
    TRIP_DELETED = "TRIP_DELETED"
    TRIP_STATUS_CHANGED = "TRIP_STATUS_CHANGED"
    TRIP_DOCUMENT_UPLOADED = "TRIP_DOCUMENT_UPLOADED"
    INVOICES_GENERATED = "INVOICES_GENERATED"
    POD_UPLOADED = "POD_UPLOADED"
    POD_VERIFIED = "POD_VERIFIED"
    POD_REJECTED = "POD_REJECTED"
    CLIENT_POD_UPDATED = "CLIENT_POD_UPDATED"

    # Ledger
    ADVANCE_ADDED = "ADVANCE_ADDED"
    ADVANCE_DELETED = "ADVANCE_DELETED"
    EXPENSE_ADDED = "EXPENSE_ADDED"
    EXPENSE_DELETED = "EXPENSE_DELETED"
    PAYMENT_RECORDED = "PAYMENT_RECORDED"
    FLEET_ADVANCE_ADDED = "FLEET_ADVANCE_ADDED"
    FLEET_EXPENSE_ADDED = "FLEET_EXPENSE_ADDED"
    FLEET_ENTRY_DELETED = "FLEET_ENTRY_DELETED"
    POD_BALANCE_SETTLED = "POD_BALANCE_SETTLED"
    SELF_ADVANCE_ADDED = "SELF_ADVANCE_ADDED"
    SELF_EXPENSE_ADDED = "SELF_EXPENSE_ADDED"
    SELF_ENTRY_DELETED = "SELF_ENTRY_DELETED"
    CLIENT_FINANCIALS_UPDATED = "CLIENT_FINANCIALS_UPDATED"
    MEMO_CREATED = "MEMO_CREATED"
    MEMO_DELETED = "MEMO_DELETED"
    DRIVER_CALCULATION_CREATED = "DRIVER_CALCULATION_CREATED"

    # Payments
    PAYMENT_CREATED = "PAYMENT_CREATED"
    PAYMENT_UPDATED = "PAYMENT_UPDATED"
    PAYMENT_APPROVED = "PAYMENT_APPROVED"
    PAYMENT_CANCELLED = "PAYMENT_CANCELLED"
    PAYMENT_DELETED = "PAYMENT_DELETED"

    # Maintenance
    MAINTENANCE_CREATED = "MAINTENANCE_CREATED"
    MAINTENANCE_UPDATED = "MAINTENANCE_UPDATED"
    MAINTENANCE_COMPLETED = "MAINTENANCE_COMPLETED"
    MAINTENANCE_DELETED = "MAINTENANCE_DELETED"


def _client_info(request: Optional[Request]):
    if request is None:
        return None, None
    ip_address = request.client.host if request.client else None
    user_agent = request.headers.get("user-agent")
    if user_agent:
        user_agent = user_agent[:255]
    return ip_address, user_agent


class ActivityLogger:

    @staticmethod
    async def record(
        db: AsyncSession,
        user_id: Optional[int],
        action: str,
        category: ActivityCategory,
        description: str,
        details: Optional[Dict[str, Any]] = None,
        related_trip_id: Optional[int] = None,
        related_user_id: Optional[int] = None,
        related_vehicle_id: Optional[int] = None,
        related_payment_id: Optional[int] = None,
        severity: ActivitySeverity = ActivitySeverity.LOW,
        status: ActivityStatus = ActivityStatus.SUCCESS,
        request: Optional[Request] = None,
    ) -> Optional[ActivityLog]:
        """
        Write one activity log row and commit it.

        Call after the business change is committed. Returns None when the
        row could not be written; the failure is logged, never raised.

        Args:
            db: Database session
            user_id: Actor (None for system actions)
            action: Action performed (use ActivityAction constants)
            category: Area of the system touched
            description: Human readable summary
            details: Extra JSON context; financial actions carry `amount`
            request: Incoming request, for IP and user agent
        """
        ip_address, user_agent = _client_info(request)
        try:
            entry = ActivityLog(
                user_id=user_id,
                action=action,
                category=category,
                description=description,
                details=details,
                related_trip_id=related_trip_id,
                related_user_id=related_user_id,
                related_vehicle_id=related_vehicle_id,
                related_payment_id=related_payment_id,
                severity=severity,
                status=status,
                ip_address=ip_address,
                user_agent=user_agent,
            )
            async with db.begin_nested():
                db.add(entry)
            await db.commit()
            return entry
        except Exception as e:
            # No outer rollback: it would expire the caller's loaded objects
            logger.error("Failed to record activity %s for user %s: %s", action, user_id, e)
            return None
