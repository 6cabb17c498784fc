"""
Rate Quoter.

Turns carrier quotes into customer-facing shipping options: applies the
store's percentage markup, works out free-shipping eligibility and renders
a delivery estimate. Read-only; carrier errors propagate unchanged.
"""

import logging
from datetime import datetime
from decimal import Decimal, ROUND_HALF_UP
from typing import List, Optional, Tuple

from storefront.app.core.config import CarrierSettings
from storefront.app.core.timeutils import as_utc, utcnow
from storefront.app.domain.shipping.parcels import parcels_for_order
from storefront.app.models.order import Order
from storefront.app.schemas.carrier import CarrierAddress, CarrierRate, CarrierRatesRequest
from storefront.app.schemas.shipping import (
    GetShippingRatesRequest,
    Parcel,
    ShippingOption,
    ShippingRatesResponse,
)
from storefront.app.services.carrier_gateway import CarrierGateway
from storefront.app.services.carrier_mapping import (
    format_date,
    order_delivery_address,
    to_carrier_address,
    to_carrier_parcels,
    tomorrow,
)

logger = logging.getLogger("storefront.shipping.rates")

CENTS = Decimal("0.01")
SECONDS_PER_DAY = 86400
FALLBACK_ESTIMATE = "2-5 business days"


def apply_markup(amount: Decimal, markup_percent: Decimal) -> Decimal:
    """amount × (1 + markup/100); a markup of zero or less leaves the amount as is."""
    if markup_percent <= 0:
        return amount
    return amount * (1 + markup_percent / 100)


def free_shipping_status(subtotal: Decimal, threshold: Decimal) -> Tuple[bool, Decimal]:
    """
    Returns (free_shipping_available, amount_to_free_shipping).

    A threshold of zero disables free shipping entirely.
    """
    if threshold <= 0:
        return False, Decimal("0")
    return subtotal >= threshold, max(Decimal("0"), threshold - subtotal)


def _whole_days(until: datetime, now: datetime) -> int:
    # Truncates toward zero like a cast of fractional days
    return int((as_utc(until) - now).total_seconds() / SECONDS_PER_DAY)


def delivery_estimate(
    estimated_from: Optional[datetime],
    estimated_to: Optional[datetime],
    now: Optional[datetime] = None,
) -> str:
    """
    Human delivery window, e.g. "Next business day", "3 business days",
    "2-4 business days". Falls back to a generic window when either bound
    is missing.
    """
    if estimated_from is None or estimated_to is None:
        return FALLBACK_ESTIMATE

    now = as_utc(now) if now else utcnow()
    days_from = max(1, _whole_days(estimated_from, now))
    days_to = max(days_from, _whole_days(estimated_to, now))

    if days_from == days_to:
        return "Next business day" if days_from == 1 else f"{days_from} business days"
    return f"{days_from}-{days_to} business days"


class RateQuoter:

    def __init__(self, gateway: CarrierGateway, carrier_settings: CarrierSettings):
        self.gateway = gateway
        self.settings = carrier_settings

    async def get_rates(
        self,
        request: GetShippingRatesRequest,
        order_subtotal: Decimal = Decimal("0"),
        now: Optional[datetime] = None,
    ) -> ShippingRatesResponse:
        """
        Quote every service level the carrier offers for a delivery.

        Flow:
        1. Rate the parcels from the store's collection address
        2. Mark up charge and VAT independently
        3. Work out free-shipping eligibility from the order subtotal

        Raises:
            ValueError: If the request has no parcels
            UpstreamRateError: If the carrier rejects the request
        """
        if not request.parcels:
            raise ValueError("At least one parcel is required to quote shipping")

        return await self._quote(
            to_carrier_address(request.delivery_address),
            request.parcels,
            request.declared_value,
            order_subtotal,
            now,
        )

    async def quote_for_order(self, order: Order, now: Optional[datetime] = None) -> ShippingRatesResponse:
        """Rates for an existing order, from its stored shipping snapshot and items."""
        total = Decimal(order.total_amount or 0)
        return await self._quote(
            order_delivery_address(order),
            parcels_for_order(order, self.settings.store_name, self.settings.parcel_description),
            total,
            total,
            now,
        )

    async def _quote(
        self,
        delivery_address: CarrierAddress,
        parcels: List[Parcel],
        declared_value: Optional[Decimal],
        order_subtotal: Decimal,
        now: Optional[datetime],
    ) -> ShippingRatesResponse:
        now = now or utcnow()
        min_date = format_date(tomorrow(now))
        carrier_request = CarrierRatesRequest(
            collection_address=self.settings.collection_address,
            delivery_address=delivery_address,
            parcels=to_carrier_parcels(parcels, self.settings.parcel_description),
            declared_value=float(declared_value) if declared_value is not None else None,
            collection_min_date=min_date,
            delivery_min_date=min_date,
        )

        quote = await self.gateway.quote(carrier_request)

        free_available, amount_to_free = free_shipping_status(
            order_subtotal, self.settings.free_shipping_threshold
        )
        rates = [self._to_option(rate, now) for rate in quote.rates]

        logger.info(
            "Quoted shipping rates",
            extra={
                "rate_count": len(rates),
                "order_subtotal": str(order_subtotal),
                "free_shipping_available": free_available,
            },
        )

        return ShippingRatesResponse(
            rates=rates,
            free_shipping_available=free_available,
            amount_to_free_shipping=amount_to_free,
        )

    def _to_option(self, rate: CarrierRate, now: datetime) -> ShippingOption:
        markup = self.settings.markup_percent
        return ShippingOption(
            service_level_id=rate.service_level.id,
            service_level_code=rate.service_level.code,
            service_level_name=rate.service_level.name,
            rate=_cents(apply_markup(rate.base_rate.charge, markup)),
            vat=_cents(apply_markup(rate.base_rate.vat, markup)),
            estimated_delivery_from=rate.estimated_delivery_from,
            estimated_delivery_to=rate.estimated_delivery_to,
            delivery_estimate=delivery_estimate(
                rate.estimated_delivery_from, rate.estimated_delivery_to, now
            ),
            collection_hub=rate.collection_hub,
            delivery_hub=rate.delivery_hub,
        )


def _cents(amount: Decimal) -> Decimal:
    return amount.quantize(CENTS, rounding=ROUND_HALF_UP)
