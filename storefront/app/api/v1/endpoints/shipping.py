"""
Shipping API Endpoints.

Rate quotes, shipment booking, tracking, labels and cancellations against
the configured carrier, plus the carrier's status webhook.
"""

import logging
from decimal import Decimal
from fastapi import APIRouter, Depends, HTTPException, Path, Request, status
from fastapi.responses import JSONResponse
from storefront.app.core.config import settings
from storefront.app.core.dependencies import (
    get_current_user,
    get_order_store,
    get_rate_quoter,
    get_shipment_orchestrator,
    get_status_reconciler,
)
from storefront.app.core.exceptions import OrderNotFoundError
from storefront.app.core.guards import enforce_order_access, require_admin
from storefront.app.domain.shipping.parcels import default_parcel
from storefront.app.domain.shipping.rate_quoter import RateQuoter
from storefront.app.domain.shipping.shipment_orchestrator import ShipmentOrchestrator
from storefront.app.domain.shipping.status_reconciler import StatusReconciler
from storefront.app.repositories.order_store import OrderStore
from storefront.app.schemas.shipping import (
    CreateShipmentRequest,
    GetShippingRatesRequest,
    LabelResponse,
    MessageResponse,
    ShipmentResponse,
    ShippingRatesResponse,
    TrackingResponse,
)

logger = logging.getLogger("storefront.shipping.api")

router = APIRouter(prefix="/shipping", tags=["Shipping"])


@router.post("/rates", response_model=ShippingRatesResponse)
async def get_shipping_rates(
    rates_request: GetShippingRatesRequest,
    current_user: dict = Depends(get_current_user),
    quoter: RateQuoter = Depends(get_rate_quoter),
):
    """
    Quote shipping options for a delivery address.

    A request without parcels is quoted as a single default apparel parcel.
    The declared value doubles as the subtotal for free-shipping eligibility.
    """
    if not rates_request.parcels:
        rates_request = rates_request.model_copy(
            update={"parcels": [default_parcel(settings.carrier.parcel_description)]}
        )
    subtotal = rates_request.declared_value or Decimal("0")
    return await quoter.get_rates(rates_request, order_subtotal=subtotal)


@router.get("/rates/order/{order_id}", response_model=ShippingRatesResponse)
async def get_order_shipping_rates(
    order_id: int = Path(..., ge=1, description="Order ID"),
    admin: dict = Depends(require_admin),
    store: OrderStore = Depends(get_order_store),
    quoter: RateQuoter = Depends(get_rate_quoter),
):
    """Quote shipping for an existing order from its shipping snapshot (Admin only)."""
    order = await store.find_order_by_id(order_id)
    if order is None:
        raise OrderNotFoundError(order_id)
    return await quoter.quote_for_order(order)


@router.post("/shipments", response_model=ShipmentResponse, status_code=status.HTTP_201_CREATED)
async def create_shipment(
    shipment_request: CreateShipmentRequest,
    admin: dict = Depends(require_admin),
    orchestrator: ShipmentOrchestrator = Depends(get_shipment_orchestrator),
):
    """
    Book a carrier shipment for an order (Admin only).

    Returns 404 for unknown orders, 409 when the order already has a shipment
    or can no longer ship, and 502 when the carrier rejects the booking.
    """
    return await orchestrator.create_shipment(shipment_request)


@router.get("/tracking/{tracking_reference}", response_model=TrackingResponse)
async def track_shipment(
    tracking_reference: str = Path(..., min_length=1, description="Carrier tracking reference"),
    reconciler: StatusReconciler = Depends(get_status_reconciler),
):
    """Public tracking lookup by reference. Does not touch any order."""
    return await reconciler.get_tracking(tracking_reference)


@router.get("/tracking/order/{order_id}", response_model=TrackingResponse)
async def track_order(
    order_id: int = Path(..., ge=1, description="Order ID"),
    current_user: dict = Depends(get_current_user),
    store: OrderStore = Depends(get_order_store),
    reconciler: StatusReconciler = Depends(get_status_reconciler),
):
    """
    Tracking for an order, reconciling the order status with the carrier.

    Customers may only track their own orders.
    """
    order = await store.find_order_by_id(order_id)
    if order is None:
        raise OrderNotFoundError(order_id)
    enforce_order_access(order.user_id, current_user)

    return await reconciler.sync_order_tracking(order_id)


@router.get("/label/{order_id}", response_model=LabelResponse)
async def get_shipping_label(
    order_id: int = Path(..., ge=1, description="Order ID"),
    admin: dict = Depends(require_admin),
    orchestrator: ShipmentOrchestrator = Depends(get_shipment_orchestrator),
):
    """Signed URL of the shipment's waybill label (Admin only)."""
    url = await orchestrator.label_for_order(order_id)
    return LabelResponse(url=url)


@router.post("/cancel/{order_id}", response_model=MessageResponse)
async def cancel_shipment(
    order_id: int = Path(..., ge=1, description="Order ID"),
    admin: dict = Depends(require_admin),
    orchestrator: ShipmentOrchestrator = Depends(get_shipment_orchestrator),
):
    """Cancel an order's shipment before collection (Admin only)."""
    cancelled = await orchestrator.cancel_order_shipment(order_id)
    if not cancelled:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Failed to cancel shipment. It may have already been collected."
        )
    return MessageResponse(message="Shipment cancelled successfully")


@router.post("/webhook")
async def carrier_webhook(
    request: Request,
    reconciler: StatusReconciler = Depends(get_status_reconciler),
):
    """
    Carrier status webhook.

    The raw body goes straight to the reconciler so a malformed delivery is
    answered with 500 and retried by the carrier rather than rejected as 422.
    """
    try:
        payload = await request.json()
    except ValueError:
        logger.warning("Carrier webhook body is not valid JSON")
        payload = None

    acknowledged = await reconciler.process_webhook(payload)
    if not acknowledged:
        return JSONResponse(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, content={})
    return {}
