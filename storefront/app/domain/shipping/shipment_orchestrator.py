"""
Shipment Orchestrator.

Books carrier shipments for orders, records the carrier identifiers on the
order, and handles labels and cancellations.
"""

import logging
from datetime import datetime
from decimal import Decimal
from typing import Optional

from sqlalchemy.exc import SQLAlchemyError

from storefront.app.core.config import CarrierSettings
from storefront.app.core.exceptions import (
    NoShipmentError,
    OrderNotFoundError,
    ShipmentAlreadyExistsError,
    ShipmentNotAllowedError,
    UpstreamCancelError,
    UpstreamLabelError,
)
from storefront.app.core.timeutils import utcnow
from storefront.app.domain.shipping.parcels import parcels_for_order
from storefront.app.models.order import Order
from storefront.app.models.order_enums import OrderStatus, PRE_SHIPPED_STATUSES
from storefront.app.repositories.order_store import OrderStore
from storefront.app.schemas.carrier import (
    CarrierContact,
    CarrierShipmentRequest,
    CarrierShipmentResponse,
)
from storefront.app.schemas.shipping import CreateShipmentRequest, ShipmentResponse
from storefront.app.services.carrier_gateway import CarrierGateway
from storefront.app.services.carrier_mapping import (
    format_timestamp,
    order_delivery_address,
    to_carrier_parcels,
    tomorrow,
)

logger = logging.getLogger("storefront.shipping.shipments")

WINDOW_OPENS = "08:00"
WINDOW_CLOSES = "17:00"


class ShipmentOrchestrator:

    def __init__(self, gateway: CarrierGateway, store: OrderStore, carrier_settings: CarrierSettings):
        self.gateway = gateway
        self.store = store
        self.settings = carrier_settings

    async def create_shipment(self, request: CreateShipmentRequest, now: Optional[datetime] = None) -> ShipmentResponse:
        """
        Book a carrier shipment for an order.

        Flow:
        1. Validate the order exists and has not shipped yet
        2. Build the carrier request from store config and the order snapshot
        3. Book with the carrier (nothing is written if this fails)
        4. Record tracking identifiers, cost and ETA; move order to PROCESSING
        5. Fetch the label (best effort)

        Raises:
            OrderNotFoundError: Unknown order id
            ShipmentAlreadyExistsError: Order already has a tracking reference
            ShipmentNotAllowedError: Order is shipped, delivered or cancelled
            UpstreamShipmentError: Carrier rejected the booking
        """
        order = await self.store.find_order_by_id(request.order_id)
        if order is None:
            raise OrderNotFoundError(request.order_id)
        if order.tracking_number or order.carrier_shipment_id:
            raise ShipmentAlreadyExistsError(order.id)
        if order.status not in PRE_SHIPPED_STATUSES:
            raise ShipmentNotAllowedError(order.id, order.status.value)

        now = now or utcnow()
        carrier_request = self.build_carrier_request(order, request, now)

        booked = await self.gateway.book(carrier_request)

        self._record_shipment(order, booked, now)
        try:
            await self.store.save_order(order)
        except Exception:
            logger.error(
                "Shipment booked but order update failed",
                extra={"order_id": order.id, "shipment_id": booked.id},
            )
            raise

        logger.info(
            "Shipment created",
            extra={
                "order_id": order.id,
                "order_number": order.order_number,
                "shipment_id": booked.id,
                "tracking_reference": booked.custom_tracking_reference,
            },
        )

        label_url = await self._label_url_or_none(booked.id)

        return ShipmentResponse(
            shipment_id=booked.id,
            tracking_reference=booked.short_tracking_reference,
            custom_tracking_reference=booked.custom_tracking_reference,
            status=booked.status,
            rate=booked.rate,
            service_level_code=booked.service_level_code,
            service_level_name=booked.service_level_name,
            estimated_collection=booked.estimated_collection,
            estimated_delivery_from=booked.estimated_delivery_from,
            estimated_delivery_to=booked.estimated_delivery_to,
            label_url=label_url,
            parcel_tracking_references=[p.tracking_reference for p in booked.parcels],
            created_at=booked.time_created,
        )

    def build_carrier_request(
        self, order: Order, request: CreateShipmentRequest, now: datetime
    ) -> CarrierShipmentRequest:
        parcels = request.parcels or parcels_for_order(
            order, self.settings.store_name, self.settings.parcel_description
        )
        declared_value = request.declared_value
        if declared_value is None:
            declared_value = Decimal(order.total_amount or 0)
        window_start = format_timestamp(tomorrow(now))

        return CarrierShipmentRequest(
            collection_address=self.settings.collection_address,
            collection_contact=self.settings.collection_contact,
            delivery_address=order_delivery_address(order),
            delivery_contact=CarrierContact(
                name=order.shipping_full_name or order.customer_name or "",
                mobile_number=order.customer_phone or "",
                email=order.customer_email or "",
            ),
            parcels=to_carrier_parcels(parcels, self.settings.parcel_description),
            service_level_code=request.service_level_code or self.settings.default_service_level_code,
            declared_value=float(declared_value),
            special_instructions_collection=request.collection_instructions,
            special_instructions_delivery=request.delivery_instructions,
            customer_reference=order.order_number,
            mute_notifications=request.mute_notifications,
            collection_min_date=window_start,
            collection_after=WINDOW_OPENS,
            collection_before=WINDOW_CLOSES,
            delivery_min_date=window_start,
            delivery_after=WINDOW_OPENS,
            delivery_before=WINDOW_CLOSES,
        )

    def _record_shipment(self, order: Order, booked: CarrierShipmentResponse, now: datetime) -> None:
        order.tracking_number = booked.custom_tracking_reference or booked.short_tracking_reference
        order.short_tracking_reference = booked.short_tracking_reference or None
        order.carrier_shipment_id = booked.id
        order.carrier_name = self.settings.carrier_name
        order.carrier_status = booked.status or None
        order.shipping_cost = booked.rate
        order.service_level_code = booked.service_level_code or None
        order.service_level_name = booked.service_level_name or None
        if booked.estimated_delivery_to is not None:
            order.estimated_delivery = booked.estimated_delivery_to.strftime("%Y-%m-%d")
        order.status = OrderStatus.PROCESSING
        order.updated_at = now

    async def _label_url_or_none(self, shipment_id: int) -> Optional[str]:
        try:
            return await self.gateway.fetch_label(shipment_id)
        except UpstreamLabelError as exc:
            logger.warning(
                "Failed to get label URL for shipment",
                extra={"shipment_id": shipment_id, "provider_status": exc.provider_status},
            )
            return None

    # Labels

    async def get_label_url(self, shipment_id: int) -> str:
        """Signed label URL. Raises UpstreamLabelError."""
        return await self.gateway.fetch_label(shipment_id)

    async def label_for_order(self, order_id: int) -> str:
        order = await self.store.find_order_by_id(order_id)
        if order is None:
            raise OrderNotFoundError(order_id)
        if not order.carrier_shipment_id:
            raise NoShipmentError(order_id)
        return await self.get_label_url(order.carrier_shipment_id)

    # Cancellation

    async def cancel_shipment(self, tracking_reference: str) -> bool:
        """
        Cancel a shipment with the carrier (only possible before collection).

        On success the matching order is cancelled and its shipment fields are
        cleared. Returns False when the carrier refuses (nothing is written) or
        when the order update fails after the carrier accepted the cancel.
        """
        try:
            await self.gateway.cancel(tracking_reference)
        except UpstreamCancelError as exc:
            logger.error(
                "Carrier refused shipment cancellation",
                extra={
                    "tracking_reference": tracking_reference,
                    "provider_status": exc.provider_status,
                    "provider_body": exc.provider_body,
                },
            )
            return False

        order = await self.store.find_order_by_tracking_reference(tracking_reference)
        if order is not None:
            order_id = order.id
            order.status = OrderStatus.CANCELLED
            order.tracking_number = None
            order.short_tracking_reference = None
            order.carrier_shipment_id = None
            order.carrier_status = "cancelled"
            order.shipping_cost = None
            order.updated_at = utcnow()
            try:
                await self.store.save_order(order)
            except SQLAlchemyError:
                logger.exception(
                    "Shipment cancelled with carrier but order update failed",
                    extra={"order_id": order_id, "tracking_reference": tracking_reference},
                )
                return False
            logger.info(
                "Shipment cancelled",
                extra={"order_id": order.id, "tracking_reference": tracking_reference},
            )

        return True

    async def cancel_order_shipment(self, order_id: int) -> bool:
        order = await self.store.find_order_by_id(order_id)
        if order is None:
            raise OrderNotFoundError(order_id)
        if not order.tracking_number:
            raise NoShipmentError(order_id, message="No shipment to cancel")
        return await self.cancel_shipment(order.tracking_number)
