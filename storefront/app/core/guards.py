"""
Security guards for role-based and ownership-based access control.
"""

from fastapi import Depends, HTTPException, status
from storefront.app.models.enums import UserRole
from storefront.app.core.dependencies import get_current_user


def is_admin(current_user: dict) -> bool:
    return current_user.get("role") == UserRole.ADMIN.value


def require_admin(current_user: dict = Depends(get_current_user)) -> dict:
    """
    Dependency for admin-only endpoints.

    Usage:
        @router.post("/shipments")
        async def create_shipment(admin: dict = Depends(require_admin)):
            ...
    """
    if not is_admin(current_user):
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Admin access required"
        )

    return current_user


def enforce_order_access(order_user_id: int, current_user: dict) -> None:
    """
    Allow admins and the customer who placed the order.

    Raises:
        HTTPException 403 if the user neither owns the order nor is an admin
    """
    if is_admin(current_user):
        return
    if current_user.get("user_id") != order_user_id:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Access denied. You do not own this order"
        )
