"""
Shipping Pydantic schemas.

Defines request and response models for rates, shipments, labels and
tracking as exposed by the storefront API.
"""

from datetime import datetime
from decimal import Decimal
from typing import Annotated, List, Optional

from pydantic import BaseModel, ConfigDict, Field, PlainSerializer, computed_field

# Amounts and dimensions stay Decimal in code and render as JSON numbers
JsonDecimal = Annotated[Decimal, PlainSerializer(float, return_type=float, when_used="json")]


class ShippingAddress(BaseModel):
    """Delivery address as captured at checkout."""
    full_name: Optional[str] = Field(None, max_length=200)
    address_line1: str = Field(..., min_length=1, max_length=255)
    address_line2: Optional[str] = Field(None, max_length=255)
    city: str = Field(..., min_length=1, max_length=100)
    province: str = Field("", max_length=100)
    postal_code: str = Field(..., min_length=1, max_length=20)
    country: str = Field("South Africa", max_length=100)


class Parcel(BaseModel):
    """A single parcel; all dimensions must be positive."""
    length_cm: JsonDecimal = Field(..., gt=0, description="Length in centimeters")
    width_cm: JsonDecimal = Field(..., gt=0, description="Width in centimeters")
    height_cm: JsonDecimal = Field(..., gt=0, description="Height in centimeters")
    weight_kg: JsonDecimal = Field(..., gt=0, description="Weight in kilograms")
    description: Optional[str] = Field(None, max_length=200)


class GetShippingRatesRequest(BaseModel):
    delivery_address: ShippingAddress
    parcels: List[Parcel] = Field(default_factory=list)
    declared_value: Optional[JsonDecimal] = Field(None, ge=0)


class ShippingOption(BaseModel):
    """Customer-facing rate for one service level, after markup."""
    model_config = ConfigDict(frozen=True)

    service_level_id: int
    service_level_code: str
    service_level_name: str
    rate: JsonDecimal
    vat: JsonDecimal
    estimated_delivery_from: Optional[datetime] = None
    estimated_delivery_to: Optional[datetime] = None
    delivery_estimate: str
    collection_hub: Optional[str] = None
    delivery_hub: Optional[str] = None

    @computed_field
    @property
    def total_rate(self) -> float:
        return float(self.rate + self.vat)


class ShippingRatesResponse(BaseModel):
    rates: List[ShippingOption] = Field(default_factory=list)
    free_shipping_available: bool = False
    amount_to_free_shipping: JsonDecimal = Decimal("0")


class CreateShipmentRequest(BaseModel):
    order_id: int = Field(..., ge=1)
    service_level_code: Optional[str] = Field(None, max_length=20, description="Defaults to the configured service level")
    parcels: List[Parcel] = Field(default_factory=list)
    collection_instructions: Optional[str] = Field(None, max_length=500)
    delivery_instructions: Optional[str] = Field(None, max_length=500)
    declared_value: Optional[JsonDecimal] = Field(None, ge=0)
    mute_notifications: bool = False


class ShipmentResponse(BaseModel):
    shipment_id: int
    tracking_reference: str
    custom_tracking_reference: str
    status: str
    rate: JsonDecimal
    service_level_code: str
    service_level_name: str
    estimated_collection: Optional[datetime] = None
    estimated_delivery_from: Optional[datetime] = None
    estimated_delivery_to: Optional[datetime] = None
    label_url: Optional[str] = None
    parcel_tracking_references: List[str] = Field(default_factory=list)
    created_at: Optional[datetime] = None


class LabelResponse(BaseModel):
    url: str


class MessageResponse(BaseModel):
    message: str


class TrackingEvent(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: int
    status: str
    message: str
    location: Optional[str] = None
    event_date: Optional[datetime] = None
    source: Optional[str] = None


class ProofOfDelivery(BaseModel):
    method: str
    recipient_name: Optional[str] = None
    image_urls: List[str] = Field(default_factory=list)
    pdf_urls: List[str] = Field(default_factory=list)
    digital_pod_url: Optional[str] = None
    delivered_at: Optional[datetime] = None
    latitude: Optional[float] = None
    longitude: Optional[float] = None


class TrackingResponse(BaseModel):
    tracking_reference: str
    status: str
    status_description: str
    collection_hub: Optional[str] = None
    delivery_hub: Optional[str] = None
    collected_date: Optional[datetime] = None
    delivered_date: Optional[datetime] = None
    estimated_delivery_from: Optional[datetime] = None
    estimated_delivery_to: Optional[datetime] = None
    events: List[TrackingEvent] = Field(default_factory=list)
    proof_of_delivery: Optional[ProofOfDelivery] = None
