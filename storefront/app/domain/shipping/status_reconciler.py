"""
Status Reconciler.

Keeps an order's status in step with the carrier. Updates arrive either as
webhook pushes or as polled tracking responses; both are reduced to a
CarrierUpdate and applied through the same policy:

- Carrier codes map onto order statuses through the status vocabulary;
  unmapped codes (on-hold, collection-exception, ...) never change status.
- A mapped status is only written when it differs from the current one, so
  duplicate deliveries are no-ops.
- The order remembers the time of the last carrier event it applied. A
  status carried by an older event is rejected as stale, so late deliveries
  cannot move an order backwards.
- Collected/delivered/ETA dates are copied whenever the carrier sends them.

Webhook handling never raises: every failure is logged and reported as an
ERROR result so the receiving endpoint stays up.
"""

import enum
import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Iterable, Mapping, Optional, Union

from sqlalchemy.exc import SQLAlchemyError

from storefront.app.core.exceptions import NoShipmentError, OrderNotFoundError
from storefront.app.core.timeutils import as_utc, utcnow
from storefront.app.domain.shipping.status_vocabulary import describe_status, map_carrier_status
from storefront.app.models.order import Order
from storefront.app.models.order_enums import OrderStatus
from storefront.app.repositories.order_store import OrderStore
from storefront.app.schemas.carrier import (
    CarrierTrackingEvent,
    CarrierTrackingResponse,
    CarrierWebhookPayload,
)
from storefront.app.schemas.shipping import ProofOfDelivery, TrackingEvent, TrackingResponse
from storefront.app.services.carrier_gateway import CarrierGateway

logger = logging.getLogger("storefront.shipping.reconciler")

DELIVERED = "delivered"
_UNDATED = datetime.min.replace(tzinfo=timezone.utc)


class ReconciliationOutcome(str, enum.Enum):
    ORDER_NOT_FOUND = "ORDER_NOT_FOUND"  # acknowledged, nothing to do
    APPLIED = "APPLIED"
    NO_CHANGE = "NO_CHANGE"
    STALE = "STALE"
    ERROR = "ERROR"


@dataclass(frozen=True)
class ReconciliationResult:
    outcome: ReconciliationOutcome
    order_id: Optional[int] = None
    previous_status: Optional[OrderStatus] = None
    new_status: Optional[OrderStatus] = None
    changed: bool = False
    error: Optional[str] = None

    @property
    def acknowledged(self) -> bool:
        return self.outcome is not ReconciliationOutcome.ERROR


@dataclass(frozen=True)
class CarrierUpdate:
    """Carrier-reported state of a shipment, whatever channel it came from."""
    carrier_status: str
    event_time: Optional[datetime] = None
    collected_date: Optional[datetime] = None
    delivered_date: Optional[datetime] = None
    estimated_delivery_to: Optional[datetime] = None

    @classmethod
    def from_webhook(cls, payload: CarrierWebhookPayload) -> "CarrierUpdate":
        return cls(
            carrier_status=payload.status,
            event_time=payload.event_time or _latest_event_time(payload.tracking_events or []),
            collected_date=payload.collected_date,
            delivered_date=payload.delivered_date,
            estimated_delivery_to=payload.estimated_delivery_to,
        )

    @classmethod
    def from_tracking(cls, tracking: CarrierTrackingResponse) -> "CarrierUpdate":
        return cls(
            carrier_status=tracking.status,
            event_time=_latest_event_time(tracking.tracking_events),
            collected_date=tracking.collected_date,
            delivered_date=tracking.delivered_date,
            estimated_delivery_to=tracking.estimated_delivery_to,
        )


def _latest_event_time(events: Iterable[CarrierTrackingEvent]) -> Optional[datetime]:
    dates = [as_utc(event.date) for event in events if event.date is not None]
    return max(dates) if dates else None


def reconcile(order: Order, update: CarrierUpdate, now: Optional[datetime] = None) -> ReconciliationResult:
    """
    Apply a carrier update to an order in memory. The caller persists the
    order when the result reports a change.
    """
    previous_status = order.status
    before = _snapshot(order)

    event_time = as_utc(update.event_time)
    last_applied = as_utc(order.last_carrier_event_at)
    stale = event_time is not None and last_applied is not None and event_time < last_applied

    if update.collected_date is not None:
        order.shipped_date = update.collected_date
    if update.delivered_date is not None:
        order.delivered_date = update.delivered_date
    if update.estimated_delivery_to is not None:
        order.estimated_delivery = update.estimated_delivery_to.strftime("%Y-%m-%d")

    mapped = map_carrier_status(update.carrier_status)
    if stale:
        outcome = ReconciliationOutcome.STALE if mapped is not None else ReconciliationOutcome.NO_CHANGE
    else:
        if update.carrier_status:
            order.carrier_status = update.carrier_status
        if event_time is not None:
            order.last_carrier_event_at = event_time
        if mapped is not None and mapped != order.status:
            order.status = mapped
            outcome = ReconciliationOutcome.APPLIED
        else:
            outcome = ReconciliationOutcome.NO_CHANGE

    changed = _snapshot(order) != before
    if changed:
        order.updated_at = now or utcnow()

    return ReconciliationResult(
        outcome=outcome,
        order_id=order.id,
        previous_status=previous_status,
        new_status=order.status,
        changed=changed,
    )


def _snapshot(order: Order) -> tuple:
    return (
        order.status,
        order.carrier_status,
        as_utc(order.shipped_date),
        as_utc(order.delivered_date),
        order.estimated_delivery,
        as_utc(order.last_carrier_event_at),
    )


def build_tracking_response(tracking: CarrierTrackingResponse) -> TrackingResponse:
    """Customer-facing tracking view: newest event first, described statuses."""
    events = sorted(
        tracking.tracking_events,
        key=lambda e: as_utc(e.date) or _UNDATED,
        reverse=True,
    )
    return TrackingResponse(
        tracking_reference=tracking.custom_tracking_reference or tracking.short_tracking_reference,
        status=tracking.status,
        status_description=describe_status(tracking.status),
        collection_hub=tracking.collection_hub,
        delivery_hub=tracking.delivery_hub,
        collected_date=tracking.collected_date,
        delivered_date=tracking.delivered_date,
        estimated_delivery_from=tracking.estimated_delivery_from,
        estimated_delivery_to=tracking.estimated_delivery_to,
        events=[
            TrackingEvent(
                id=event.id,
                status=event.status,
                message=event.message or describe_status(event.status),
                location=event.location,
                event_date=event.date,
                source=event.source,
            )
            for event in events
        ],
        proof_of_delivery=extract_proof_of_delivery(tracking),
    )


def extract_proof_of_delivery(tracking: CarrierTrackingResponse) -> Optional[ProofOfDelivery]:
    """
    Proof of delivery from the first delivered event with structured data.

    Only attempted once the carrier reports a delivered date; without a
    structured event the result just records that delivery happened.
    """
    if tracking.delivered_date is None:
        return None

    delivery_event = next(
        (e for e in tracking.tracking_events if e.status == DELIVERED and e.data is not None),
        None,
    )
    if delivery_event is None:
        return ProofOfDelivery(method="Delivered", delivered_at=tracking.delivered_date)

    data = delivery_event.data
    return ProofOfDelivery(
        method=delivery_event.message or "Delivered",
        recipient_name=data.recipient_name,
        image_urls=list(data.images or []),
        pdf_urls=list(data.pdfs or []),
        digital_pod_url=data.digital_pod_url,
        delivered_at=tracking.delivered_date,
        latitude=data.lat,
        longitude=data.lng,
    )


class StatusReconciler:

    def __init__(self, gateway: CarrierGateway, store: OrderStore):
        self.gateway = gateway
        self.store = store

    # Push

    async def apply_webhook(
        self,
        payload: Union[CarrierWebhookPayload, Mapping[str, Any]],
        now: Optional[datetime] = None,
    ) -> ReconciliationResult:
        """
        Apply a carrier webhook to the matching order.

        Unknown shipments are acknowledged without changes so the carrier
        does not keep retrying events for orders this store never booked.
        """
        try:
            if not isinstance(payload, CarrierWebhookPayload):
                payload = CarrierWebhookPayload.model_validate(payload)

            log_data = {
                "shipment_id": payload.shipment_id,
                "carrier_status": payload.status,
                "tracking_reference": payload.custom_tracking_reference,
            }
            logger.info("Processing carrier webhook", extra=log_data)

            order = await self.store.find_order_by_tracking_or_shipment_id(
                payload.custom_tracking_reference,
                payload.short_tracking_reference,
                payload.shipment_id,
            )
            if order is None:
                logger.warning("Order not found for carrier webhook", extra=log_data)
                return ReconciliationResult(outcome=ReconciliationOutcome.ORDER_NOT_FOUND)

            result = reconcile(order, CarrierUpdate.from_webhook(payload), now)
            if result.changed:
                await self.store.save_order(order)

            logger.info(
                "Carrier webhook reconciled",
                extra={
                    **log_data,
                    "order_id": order.id,
                    "outcome": result.outcome.value,
                    "previous_status": result.previous_status.value,
                    "new_status": result.new_status.value,
                },
            )
            return result

        except Exception as exc:
            logger.exception("Error processing carrier webhook")
            await self._discard_changes()
            return ReconciliationResult(outcome=ReconciliationOutcome.ERROR, error=str(exc))

    async def process_webhook(self, payload: Union[CarrierWebhookPayload, Mapping[str, Any]]) -> bool:
        """True when the webhook may be acknowledged to the carrier."""
        result = await self.apply_webhook(payload)
        return result.acknowledged

    # Pull

    async def get_tracking(self, tracking_reference: str) -> TrackingResponse:
        """Current tracking for a reference. Raises UpstreamTrackingError."""
        tracking = await self.gateway.track(tracking_reference)
        return build_tracking_response(tracking)

    async def sync_order_tracking(self, order_id: int, now: Optional[datetime] = None) -> TrackingResponse:
        """
        Poll the carrier for an order's shipment and reconcile the order.

        Raises:
            OrderNotFoundError: Unknown order id
            NoShipmentError: Order has no tracking reference yet
            UpstreamTrackingError: Carrier call failed (order untouched)
        """
        order = await self.store.find_order_by_id(order_id)
        if order is None:
            raise OrderNotFoundError(order_id)
        if not order.tracking_number:
            raise NoShipmentError(order_id, message="No tracking available for this order yet")

        tracking = await self.gateway.track(order.tracking_number)

        result = reconcile(order, CarrierUpdate.from_tracking(tracking), now)
        if result.changed:
            await self.store.save_order(order)
            logger.info(
                "Order reconciled from tracking poll",
                extra={
                    "order_id": order.id,
                    "outcome": result.outcome.value,
                    "new_status": result.new_status.value,
                },
            )

        return build_tracking_response(tracking)

    async def _discard_changes(self) -> None:
        try:
            await self.store.discard_changes()
        except SQLAlchemyError:
            logger.warning("Rollback after webhook failure failed", exc_info=True)
