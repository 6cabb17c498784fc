"""
Translation helpers from storefront shapes to carrier wire shapes.
"""

from datetime import datetime, timedelta, timezone
from typing import Iterable, List, Optional

from storefront.app.core.timeutils import utcnow
from storefront.app.models.order import Order
from storefront.app.schemas.carrier import CarrierAddress, CarrierParcel
from storefront.app.schemas.shipping import Parcel, ShippingAddress

_ZONES = {
    "gauteng": "Gauteng",
    "gp": "Gauteng",
    "western cape": "Western Cape",
    "wc": "Western Cape",
    "eastern cape": "Eastern Cape",
    "ec": "Eastern Cape",
    "northern cape": "Northern Cape",
    "nc": "Northern Cape",
    "kwazulu-natal": "KwaZulu-Natal",
    "kwazulu natal": "KwaZulu-Natal",
    "kzn": "KwaZulu-Natal",
    "free state": "Free State",
    "fs": "Free State",
    "north west": "North West",
    "nw": "North West",
    "mpumalanga": "Mpumalanga",
    "mp": "Mpumalanga",
    "limpopo": "Limpopo",
    "lp": "Limpopo",
}


def province_to_zone(province: Optional[str]) -> str:
    """Canonical carrier zone for a province name or abbreviation."""
    if not province:
        return "GP"
    return _ZONES.get(province.strip().lower(), province)


def to_carrier_address(address: ShippingAddress) -> CarrierAddress:
    return CarrierAddress(
        type="residential",
        company="",
        street_address=address.address_line1,
        local_area=address.address_line2 or "",
        city=address.city,
        zone=province_to_zone(address.province),
        country="ZA",
        code=address.postal_code,
    )


def order_delivery_address(order: Order) -> CarrierAddress:
    """Delivery address from an order's shipping snapshot; blanks stay empty."""
    return CarrierAddress(
        type="residential",
        company="",
        street_address=order.shipping_address_line1 or "",
        local_area=order.shipping_address_line2 or "",
        city=order.shipping_city or "",
        zone=province_to_zone(order.shipping_province),
        country="ZA",
        code=order.shipping_postal_code or "",
    )


def to_carrier_parcels(parcels: Iterable[Parcel], default_description: str) -> List[CarrierParcel]:
    return [
        CarrierParcel(
            parcel_description=parcel.description or default_description,
            submitted_length_cm=float(parcel.length_cm),
            submitted_width_cm=float(parcel.width_cm),
            submitted_height_cm=float(parcel.height_cm),
            submitted_weight_kg=float(parcel.weight_kg),
        )
        for parcel in parcels
    ]


def tomorrow(now: Optional[datetime] = None) -> datetime:
    return (now or utcnow()) + timedelta(days=1)


def format_date(value: datetime) -> str:
    """YYYY-MM-DD, as used by rate requests."""
    return value.strftime("%Y-%m-%d")


def format_timestamp(value: datetime) -> str:
    """ISO-8601 UTC with millisecond precision and trailing Z."""
    value = value.astimezone(timezone.utc)
    return value.strftime("%Y-%m-%dT%H:%M:%S.") + f"{value.microsecond // 1000:03d}Z"
