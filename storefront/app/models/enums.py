"""
User roles enumeration.

Roles are issued in JWT claims by the identity service.
"""

import enum


class UserRole(str, enum.Enum):
    """
    User role enumeration.

    Roles:
        ADMIN: Store administrator (shipments, labels, cancellations)
        CUSTOMER: Shopper; may only see their own orders
    """
    ADMIN = "ADMIN"
    CUSTOMER = "CUSTOMER"
