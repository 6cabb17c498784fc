"""
Carrier wire schemas.

Request and response bodies exactly as the parcel carrier's REST API speaks
them: snake_case keys, nested address/contact/parcel objects. Unknown keys in
carrier responses are ignored.
"""

from datetime import datetime
from decimal import Decimal
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, ValidationInfo, field_validator


class CarrierModel(BaseModel):
    """
    Base for carrier payloads.

    The carrier sends null for values it does not have; an explicit null
    falls back to the field default. Required fields still reject null.
    """

    @field_validator("*", mode="before")
    @classmethod
    def null_as_default(cls, value, info: ValidationInfo):
        if value is None:
            field = cls.model_fields[info.field_name]
            if not field.is_required():
                return field.get_default(call_default_factory=True)
        return value


class CarrierAddress(CarrierModel):
    type: str = "residential"  # business, residential, counter, locker
    company: str = ""
    street_address: str = ""
    local_area: str = ""
    city: str = ""
    zone: str = ""  # province
    country: str = "ZA"
    code: str = ""  # postal code
    lat: Optional[float] = None
    lng: Optional[float] = None


class CarrierContact(CarrierModel):
    name: str = ""
    mobile_number: str = ""
    email: str = ""


class CarrierParcel(CarrierModel):
    parcel_description: str = ""
    submitted_length_cm: float
    submitted_width_cm: float
    submitted_height_cm: float
    submitted_weight_kg: float


# Rates

class CarrierRatesRequest(CarrierModel):
    collection_address: CarrierAddress
    delivery_address: CarrierAddress
    parcels: List[CarrierParcel]
    declared_value: Optional[float] = None
    collection_min_date: Optional[str] = None  # YYYY-MM-DD
    delivery_min_date: Optional[str] = None


class CarrierServiceLevel(CarrierModel):
    id: int = 0
    code: str = ""
    name: str = ""


class CarrierBaseRate(CarrierModel):
    charge: Decimal = Decimal("0")
    vat: Decimal = Decimal("0")


class CarrierRate(CarrierModel):
    service_level: CarrierServiceLevel = CarrierServiceLevel()
    rate: Decimal = Decimal("0")
    rate_excluding_vat: Decimal = Decimal("0")
    base_rate: CarrierBaseRate = CarrierBaseRate()
    estimated_delivery_from: Optional[datetime] = None
    estimated_delivery_to: Optional[datetime] = None
    collection_hub: Optional[str] = None
    delivery_hub: Optional[str] = None


class CarrierRatesResponse(CarrierModel):
    rates: List[CarrierRate] = []


# Shipments

class CarrierShipmentRequest(CarrierModel):
    collection_address: CarrierAddress
    collection_contact: CarrierContact
    delivery_address: CarrierAddress
    delivery_contact: CarrierContact
    parcels: List[CarrierParcel]
    service_level_code: str
    declared_value: Optional[float] = None
    special_instructions_collection: Optional[str] = None
    special_instructions_delivery: Optional[str] = None
    customer_reference: Optional[str] = None
    mute_notifications: bool = False
    collection_min_date: Optional[str] = None  # YYYY-MM-DDTHH:MM:SS.mmmZ
    collection_after: str = "08:00"
    collection_before: str = "17:00"
    delivery_min_date: Optional[str] = None
    delivery_after: str = "08:00"
    delivery_before: str = "17:00"


class CarrierParcelStatus(CarrierModel):
    id: int = 0
    tracking_reference: str = ""
    status: str = ""


class CarrierShipmentResponse(CarrierModel):
    id: int
    short_tracking_reference: str = ""
    custom_tracking_reference: str = ""
    status: str = ""
    rate: Decimal = Decimal("0")
    service_level_code: str = ""
    service_level_name: str = ""
    estimated_collection: Optional[datetime] = None
    estimated_delivery_from: Optional[datetime] = None
    estimated_delivery_to: Optional[datetime] = None
    time_created: Optional[datetime] = None
    parcels: List[CarrierParcelStatus] = []
    collected_date: Optional[datetime] = None
    delivered_date: Optional[datetime] = None
    collection_branch_name: Optional[str] = None
    delivery_branch_name: Optional[str] = None


class CarrierLabelResponse(CarrierModel):
    url: Optional[str] = None


# Tracking

class CarrierTrackingEventData(CarrierModel):
    """Structured payload attached to some events (proof of delivery)."""
    type: Optional[str] = None
    images: Optional[List[str]] = None
    pdfs: Optional[List[str]] = None
    recipient_name: Optional[str] = None
    digital_pod_url: Optional[str] = None
    lat: Optional[float] = None
    lng: Optional[float] = None


class CarrierTrackingEvent(CarrierModel):
    model_config = ConfigDict(frozen=True)

    id: int = 0
    status: str = ""
    message: Optional[str] = None
    location: Optional[str] = None
    date: Optional[datetime] = None
    source: Optional[str] = None
    data: Optional[CarrierTrackingEventData] = None


class CarrierTrackingResponse(CarrierModel):
    short_tracking_reference: str = ""
    custom_tracking_reference: str = ""
    status: str = ""
    collection_hub: Optional[str] = None
    delivery_hub: Optional[str] = None
    collected_date: Optional[datetime] = None
    delivered_date: Optional[datetime] = None
    estimated_delivery_from: Optional[datetime] = None
    estimated_delivery_to: Optional[datetime] = None
    tracking_events: List[CarrierTrackingEvent] = []


# Webhooks

class CarrierWebhookPayload(CarrierModel):
    """Status push from the carrier. Every field is optional on the wire."""
    shipment_id: Optional[int] = None
    short_tracking_reference: Optional[str] = None
    custom_tracking_reference: Optional[str] = None
    status: str = ""
    event_time: Optional[datetime] = None
    collected_date: Optional[datetime] = None
    delivered_date: Optional[datetime] = None
    estimated_delivery_from: Optional[datetime] = None
    estimated_delivery_to: Optional[datetime] = None
    tracking_events: Optional[List[CarrierTrackingEvent]] = None
    update_type: Optional[str] = None
