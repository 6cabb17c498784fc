"""
Tests for shipping rate quotes: markup, free-shipping policy and delivery
estimates, against a stubbed carrier.
"""

import pytest
from datetime import datetime, timedelta, timezone
from decimal import Decimal

from storefront.app.core.config import CarrierSettings
from storefront.app.core.exceptions import UpstreamRateError
from storefront.app.domain.shipping.rate_quoter import (
    RateQuoter,
    apply_markup,
    delivery_estimate,
    free_shipping_status,
)
from storefront.app.schemas.shipping import GetShippingRatesRequest, Parcel, ShippingAddress

NOW = datetime(2026, 3, 2, 10, 0, tzinfo=timezone.utc)


def rates_payload():
    return {
        "rates": [
            {
                "service_level": {"id": 1, "code": "ECO", "name": "Economy"},
                "base_rate": {"charge": 100.00, "vat": 15.00},
                "rate": 115.00,
                "estimated_delivery_from": (NOW + timedelta(days=2, hours=1)).isoformat(),
                "estimated_delivery_to": (NOW + timedelta(days=4, hours=1)).isoformat(),
                "collection_hub": "JNB",
                "delivery_hub": "CPT",
            },
            {
                "service_level": {"id": 2, "code": "ONX", "name": "Overnight"},
                "base_rate": {"charge": 189.99, "vat": 28.50},
                "rate": 218.49,
                "estimated_delivery_from": (NOW + timedelta(days=1, hours=2)).isoformat(),
                "estimated_delivery_to": (NOW + timedelta(days=1, hours=6)).isoformat(),
            },
        ]
    }


def rates_request(**overrides):
    values = dict(
        delivery_address=ShippingAddress(
            full_name="Sipho Dlamini",
            address_line1="4 Beach Rd",
            city="Durban",
            province="KZN",
            postal_code="4001",
        ),
        parcels=[Parcel(length_cm=Decimal("35"), width_cm=Decimal("25"), height_cm=Decimal("5"), weight_kg=Decimal("0.5"))],
        declared_value=Decimal("450.00"),
    )
    values.update(overrides)
    return GetShippingRatesRequest(**values)


# Pure policy

def test_markup_zero_or_negative_leaves_amount():
    assert apply_markup(Decimal("100"), Decimal("0")) == Decimal("100")
    assert apply_markup(Decimal("100"), Decimal("-5")) == Decimal("100")


def test_markup_scales_amount():
    assert apply_markup(Decimal("100"), Decimal("10")) == Decimal("110")
    assert apply_markup(Decimal("15"), Decimal("10")) == Decimal("16.5")


def test_free_shipping_disabled_when_threshold_zero():
    assert free_shipping_status(Decimal("10000"), Decimal("0")) == (False, Decimal("0"))


def test_free_shipping_threshold_boundaries():
    assert free_shipping_status(Decimal("500"), Decimal("500")) == (True, Decimal("0"))
    assert free_shipping_status(Decimal("499.99"), Decimal("500")) == (False, Decimal("0.01"))
    assert free_shipping_status(Decimal("750"), Decimal("500")) == (True, Decimal("0"))


def test_delivery_estimate_ranges():
    assert delivery_estimate(NOW + timedelta(days=1, hours=2), NOW + timedelta(days=3, hours=5), NOW) == "1-3 business days"
    assert delivery_estimate(NOW + timedelta(days=3), NOW + timedelta(days=3, hours=2), NOW) == "3 business days"


def test_delivery_estimate_next_day_and_floor():
    # Less than a day out still counts as one day
    assert delivery_estimate(NOW + timedelta(hours=5), NOW + timedelta(hours=20), NOW) == "Next business day"


def test_delivery_estimate_upper_bound_never_below_lower():
    assert delivery_estimate(NOW + timedelta(days=4), NOW + timedelta(days=2), NOW) == "4 business days"


def test_delivery_estimate_fallback_when_bound_missing():
    assert delivery_estimate(None, NOW, NOW) == "2-5 business days"
    assert delivery_estimate(NOW, None, NOW) == "2-5 business days"


def test_delivery_estimate_accepts_naive_bounds():
    naive_from = (NOW + timedelta(days=2, hours=1)).replace(tzinfo=None)
    naive_to = (NOW + timedelta(days=2, hours=3)).replace(tzinfo=None)
    assert delivery_estimate(naive_from, naive_to, NOW) == "2 business days"


# Quoting

@pytest.mark.asyncio
async def test_get_rates_applies_markup_and_free_shipping(carrier, gateway):
    carrier.on("POST", "/rates", json_body=rates_payload())
    quoter = RateQuoter(gateway, CarrierSettings(markup_percent=Decimal("10"), free_shipping_threshold=Decimal("500")))

    result = await quoter.get_rates(rates_request(), order_subtotal=Decimal("450.00"), now=NOW)

    economy, overnight = result.rates
    assert economy.service_level_code == "ECO"
    assert economy.rate == Decimal("110.00")
    assert economy.vat == Decimal("16.50")
    assert economy.total_rate == pytest.approx(126.50)
    assert economy.delivery_estimate == "2-4 business days"
    assert economy.collection_hub == "JNB"

    assert overnight.rate == Decimal("208.99")
    assert overnight.vat == Decimal("31.35")
    assert overnight.delivery_estimate == "Next business day"

    assert result.free_shipping_available is False
    assert result.amount_to_free_shipping == Decimal("50.00")


@pytest.mark.asyncio
async def test_get_rates_without_markup_keeps_carrier_amounts(carrier, gateway):
    carrier.on("POST", "/rates", json_body=rates_payload())
    quoter = RateQuoter(gateway, CarrierSettings())

    result = await quoter.get_rates(rates_request(), now=NOW)

    assert result.rates[0].rate == Decimal("100.00")
    assert result.rates[0].vat == Decimal("15.00")
    assert result.free_shipping_available is False
    assert result.amount_to_free_shipping == Decimal("0")


@pytest.mark.asyncio
async def test_get_rates_sends_carrier_wire_format(carrier, gateway):
    carrier.on("POST", "/rates", json_body={"rates": []})
    quoter = RateQuoter(gateway, CarrierSettings())

    await quoter.get_rates(rates_request(), now=NOW)

    body = carrier.last_body("POST", "/rates")
    assert body["collection_min_date"] == "2026-03-03"
    assert body["delivery_min_date"] == "2026-03-03"
    assert body["declared_value"] == 450.0
    assert body["delivery_address"]["zone"] == "KwaZulu-Natal"
    assert body["delivery_address"]["country"] == "ZA"
    assert body["delivery_address"]["street_address"] == "4 Beach Rd"
    assert body["collection_address"]["type"] == "business"
    assert body["parcels"] == [{
        "parcel_description": "Apparel",
        "submitted_length_cm": 35.0,
        "submitted_width_cm": 25.0,
        "submitted_height_cm": 5.0,
        "submitted_weight_kg": 0.5,
    }]


@pytest.mark.asyncio
async def test_get_rates_handles_null_rate_list(carrier, gateway):
    carrier.on("POST", "/rates", json_body={"rates": None})
    quoter = RateQuoter(gateway, CarrierSettings())

    result = await quoter.get_rates(rates_request(), now=NOW)

    assert result.rates == []


@pytest.mark.asyncio
async def test_get_rates_requires_parcels(gateway):
    quoter = RateQuoter(gateway, CarrierSettings())

    with pytest.raises(ValueError):
        await quoter.get_rates(rates_request(parcels=[]), now=NOW)


@pytest.mark.asyncio
async def test_get_rates_surfaces_carrier_rejection(carrier, gateway):
    carrier.on("POST", "/rates", status_code=400, text='{"message": "invalid delivery zone"}')
    quoter = RateQuoter(gateway, CarrierSettings())

    with pytest.raises(UpstreamRateError) as exc_info:
        await quoter.get_rates(rates_request(), now=NOW)

    assert exc_info.value.provider_status == 400
    assert "invalid delivery zone" in exc_info.value.provider_body
    assert exc_info.value.status_code == 502


@pytest.mark.asyncio
async def test_quote_for_order_uses_snapshot_and_item_parcels(carrier, gateway, make_order):
    carrier.on("POST", "/rates", json_body=rates_payload())
    order = await make_order(item_quantities=(7, 5))
    quoter = RateQuoter(gateway, CarrierSettings(free_shipping_threshold=Decimal("500")))

    result = await quoter.quote_for_order(order, now=NOW)

    body = carrier.last_body("POST", "/rates")
    assert body["declared_value"] == 599.0
    assert body["delivery_address"]["zone"] == "Gauteng"
    assert body["delivery_address"]["local_area"] == "Parktown"
    assert [p["submitted_height_cm"] for p in body["parcels"]] == [30.0, 6.0]
    assert [p["submitted_weight_kg"] for p in body["parcels"]] == [3.0, 0.6]
    assert body["parcels"][0]["parcel_description"] == "Jits Apparel (10 items)"
    assert result.free_shipping_available is True
    assert result.amount_to_free_shipping == Decimal("0")


@pytest.mark.asyncio
async def test_quote_for_order_sends_blank_address_fields_empty(carrier, gateway, make_order):
    carrier.on("POST", "/rates", json_body=rates_payload())
    order = await make_order(
        shipping_address_line1=None,
        shipping_address_line2=None,
        shipping_city=None,
        shipping_province=None,
        shipping_postal_code=None,
    )
    quoter = RateQuoter(gateway, CarrierSettings())

    await quoter.quote_for_order(order, now=NOW)

    address = carrier.last_body("POST", "/rates")["delivery_address"]
    assert address["street_address"] == ""
    assert address["local_area"] == ""
    assert address["city"] == ""
    assert address["code"] == ""
    assert address["zone"] == "GP"
