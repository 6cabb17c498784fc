"""
Parcel planning for apparel orders.

Estimates parcel dimensions from item counts: items are stacked flat in a
35 x 25 cm satchel, at most 10 items per parcel.
"""

from decimal import Decimal
from typing import List

from storefront.app.models.order import Order
from storefront.app.schemas.shipping import Parcel

BASE_LENGTH_CM = Decimal("35")
BASE_WIDTH_CM = Decimal("25")
HEIGHT_PER_ITEM_CM = Decimal("3")
WEIGHT_PER_ITEM_KG = Decimal("0.3")
MIN_HEIGHT_CM = Decimal("5")
MIN_WEIGHT_KG = Decimal("0.5")
MAX_ITEMS_PER_PARCEL = 10


def default_parcel(description: str = "Apparel") -> Parcel:
    """Single-garment parcel used when a rate request names no parcels."""
    return Parcel(
        length_cm=BASE_LENGTH_CM,
        width_cm=BASE_WIDTH_CM,
        height_cm=MIN_HEIGHT_CM,
        weight_kg=MIN_WEIGHT_KG,
        description=description,
    )


def parcels_for_item_count(item_count: int, store_name: str) -> List[Parcel]:
    parcels = []
    remaining = item_count
    while remaining > 0:
        in_parcel = min(remaining, MAX_ITEMS_PER_PARCEL)
        parcels.append(
            Parcel(
                length_cm=BASE_LENGTH_CM,
                width_cm=BASE_WIDTH_CM,
                height_cm=max(MIN_HEIGHT_CM, HEIGHT_PER_ITEM_CM * in_parcel),
                weight_kg=max(MIN_WEIGHT_KG, WEIGHT_PER_ITEM_KG * in_parcel),
                description=f"{store_name} ({in_parcel} items)",
            )
        )
        remaining -= in_parcel
    return parcels


def parcels_for_order(order: Order, store_name: str, default_description: str = "Apparel") -> List[Parcel]:
    """Parcels for all items of an order; an empty order still ships one default parcel."""
    item_count = sum(item.quantity for item in order.items)
    return parcels_for_item_count(item_count, store_name) or [default_parcel(default_description)]
