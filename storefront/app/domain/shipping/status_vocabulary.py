"""
Carrier status vocabulary.

Static lookups from the carrier's lowercase-hyphenated status codes to a
human description and to the store's order status bucket. Both tables are
read-only mapping proxies built at import time.
"""

from types import MappingProxyType
from typing import Mapping, Optional

from storefront.app.models.order_enums import OrderStatus

STATUS_DESCRIPTIONS: Mapping[str, str] = MappingProxyType({
    "submitted": "Shipment submitted",
    "collection-assigned": "Driver assigned for collection",
    "collection-unassigned": "Awaiting driver assignment",
    "collection-exception": "Collection issue - please contact support",
    "collection-failed-attempt": "Collection attempted but unsuccessful",
    "collected": "Parcel collected",
    "awaiting-dropoff": "Awaiting drop-off",
    "at-hub": "At sorting hub",
    "on-hold": "On hold - pending resolution",
    "returned-to-hub": "Returned to hub",
    "manifested": "Added to transfer manifest",
    "ready-for-dispatch": "Ready for dispatch",
    "in-transit": "In transit",
    "at-destination-hub": "Arrived at destination hub",
    "delivery-assigned": "Out for delivery",
    "delivery-unassigned": "Awaiting delivery assignment",
    "out-for-delivery": "Out for delivery",
    "delivery-exception": "Delivery issue - please contact support",
    "delivery-failed-attempt": "Delivery attempted but unsuccessful",
    "ready-for-pickup": "Ready for pickup",
    "delivered": "Delivered",
    "returned-to-sender": "Returned to sender",
    "undeliverable": "Unable to deliver",
    "cancelled": "Cancelled",
})

_BUCKETS = {
    OrderStatus.PROCESSING: (
        "submitted",
        "collection-assigned",
        "collection-unassigned",
    ),
    OrderStatus.SHIPPED: (
        "collected",
        "at-hub",
        "in-transit",
        "at-destination-hub",
        "delivery-assigned",
        "out-for-delivery",
        "manifested",
        "ready-for-dispatch",
    ),
    OrderStatus.DELIVERED: ("delivered",),
    OrderStatus.CANCELLED: (
        "cancelled",
        "returned-to-sender",
        "undeliverable",
    ),
}

STATUS_TO_ORDER_STATUS: Mapping[str, OrderStatus] = MappingProxyType({
    code: order_status
    for order_status, codes in _BUCKETS.items()
    for code in codes
})


def map_carrier_status(code: Optional[str]) -> Optional[OrderStatus]:
    """
    Order status bucket for a carrier status code.

    Matching is exact and case-sensitive. Codes outside the table
    (collection-exception, on-hold, ...) return None: no status change.
    """
    if not code:
        return None
    return STATUS_TO_ORDER_STATUS.get(code)


def describe_status(code: Optional[str]) -> str:
    """Human description; unknown codes render with hyphens as spaces."""
    if not code:
        return ""
    description = STATUS_DESCRIPTIONS.get(code)
    if description is not None:
        return description
    return code.replace("-", " ")
