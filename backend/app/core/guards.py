"""
Security guards for role-based and ownership-based access control.

Provides dependencies for protecting endpoints.
"""

from typing import List, Optional
from fastapi import Depends, HTTPException, status
from backend.app.models.enums import UserRole
from backend.app.core.dependencies import get_current_user


def require_role(allowed_roles: List[UserRole]):
    """
    Dependency factory for role-based access control.

    Usage:
        @router.post("/vehicles")
        async def create_vehicle(
            current_user: dict = Depends(require_role([UserRole.ADMIN, UserRole.FLEET_OWNER]))
        ):
            ...

    Raises:
        HTTPException 403 if user role is not in allowed_roles
    """
    async def role_checker(current_user: dict = Depends(get_current_user)) -> dict:
        user_role_str = current_user.get("role")

        if not user_role_str:
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail="Role information missing from token"
            )

        try:
            user_role = UserRole(user_role_str)
        except ValueError:
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail="Invalid role in token"
            )

        if user_role not in allowed_roles:
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail=f"Access denied. Required role: {', '.join([r.value for r in allowed_roles])}"
            )

        return current_user

    return role_checker


def require_admin(current_user: dict = Depends(get_current_user)) -> dict:
    """
    Dependency for admin-only endpoints.

    Returns:
        User payload if admin, raises 403 otherwise
    """
    if current_user.get("role") != UserRole.ADMIN.value:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Admin access required"
        )

    return current_user


def is_admin(current_user: dict) -> bool:
    return current_user.get("role") == UserRole.ADMIN.value


def verify_ownership(resource_owner_id: Optional[int], current_user: dict) -> bool:
    """
    Verify that the current user owns the resource.

    Admins: always allowed. Everyone else: user_id must match the owner.
    """
    if is_admin(current_user):
        return True
    return resource_owner_id is not None and current_user.get("user_id") == resource_owner_id


class OwnershipGuard:
    """
    Ownership checks shared by the user, vehicle, maintenance and advance endpoints.

    Usage:
        ownership_guard.enforce(vehicle.owner_id, current_user, "vehicle")
    """

    def enforce(
        self,
        resource_owner_id: Optional[int],
        current_user: dict,
        resource_name: str = "resource"
    ):
        """
        Raises:
            HTTPException 403 if ownership check fails
        """
        if not verify_ownership(resource_owner_id, current_user):
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail=f"Access denied. You do not have permission to access this {resource_name}."
            )

    def filter_by_ownership(self, current_user: dict) -> Optional[int]:
        """
        Get the owner_id to filter database queries by.

        For admins: None (no filtering). For everyone else: their own user_id.
        """
        if is_admin(current_user):
            return None
        return current_user.get("user_id")


ownership_guard = OwnershipGuard()
