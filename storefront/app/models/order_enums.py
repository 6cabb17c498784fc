"""
Order lifecycle enumerations.
"""

import enum


class OrderStatus(str, enum.Enum):
    """
    Order status enumeration.

    Status flow:
        PENDING → PROCESSING → SHIPPED → DELIVERED
        Any status can transition to CANCELLED
    """
    PENDING = "PENDING"
    PROCESSING = "PROCESSING"
    SHIPPED = "SHIPPED"
    DELIVERED = "DELIVERED"
    CANCELLED = "CANCELLED"


class PaymentStatus(str, enum.Enum):
    PENDING = "PENDING"
    PAID = "PAID"
    FAILED = "FAILED"
    REFUNDED = "REFUNDED"


# Orders in these states may still get a carrier shipment booked
PRE_SHIPPED_STATUSES = frozenset({OrderStatus.PENDING, OrderStatus.PROCESSING})
