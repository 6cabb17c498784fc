"""
Tests for the carrier HTTP gateway: one call per operation, typed upstream
errors for rejected, unreachable and unreadable responses.
"""

import httpx
import pytest

from storefront.app.core.exceptions import (
    UpstreamCancelError,
    UpstreamLabelError,
    UpstreamShipmentError,
    UpstreamTrackingError,
)
from storefront.app.schemas.carrier import (
    CarrierAddress,
    CarrierContact,
    CarrierParcel,
    CarrierShipmentRequest,
)


def shipment_request():
    return CarrierShipmentRequest(
        collection_address=CarrierAddress(type="business", company="Jits Apparel", city="Johannesburg"),
        collection_contact=CarrierContact(name="Warehouse"),
        delivery_address=CarrierAddress(street_address="1 Long St", city="Cape Town", zone="Western Cape", code="8001"),
        delivery_contact=CarrierContact(name="Aisha Patel", mobile_number="0830000000"),
        parcels=[CarrierParcel(submitted_length_cm=35, submitted_width_cm=25, submitted_height_cm=5, submitted_weight_kg=0.5)],
        service_level_code="ECO",
        declared_value=299.5,
    )


@pytest.mark.asyncio
async def test_requests_carry_bearer_auth_and_base_url(carrier, gateway):
    carrier.on("POST", "/shipments/cancel", json_body={})

    await gateway.cancel("TCG123")

    (request,) = carrier.requests
    assert request.url.host == "api.shiplogic.com"
    assert request.headers["Authorization"].startswith("Bearer ")
    assert request.headers["Accept"] == "application/json"


@pytest.mark.asyncio
async def test_book_parses_shipment(carrier, gateway):
    carrier.on("POST", "/shipments", json_body={
        "id": 9001,
        "short_tracking_reference": "ABC123",
        "custom_tracking_reference": "JA-ABC123",
        "status": "submitted",
        "rate": 115.0,
        "service_level_code": "ECO",
        "service_level_name": "Economy",
        "parcels": [{"id": 1, "tracking_reference": "ABC123-1", "status": "submitted"}],
        "unexpected_field": "ignored",
    })

    booked = await gateway.book(shipment_request())

    assert booked.id == 9001
    assert booked.custom_tracking_reference == "JA-ABC123"
    assert booked.parcels[0].tracking_reference == "ABC123-1"
    body = carrier.last_body("POST", "/shipments")
    assert body["delivery_address"]["zone"] == "Western Cape"
    assert body["collection_after"] == "08:00"
    assert body["delivery_before"] == "17:00"
    assert "special_instructions_delivery" not in body


@pytest.mark.asyncio
async def test_book_rejection_carries_status_and_body(carrier, gateway):
    carrier.on("POST", "/shipments", status_code=422, text="service level unavailable")

    with pytest.raises(UpstreamShipmentError) as exc_info:
        await gateway.book(shipment_request())

    err = exc_info.value
    assert err.provider_status == 422
    assert err.provider_body == "service level unavailable"
    assert err.message == "Failed to create shipment: service level unavailable"
    assert err.details == {"provider_status": 422, "provider_body": "service level unavailable"}


@pytest.mark.asyncio
async def test_transport_failure_is_an_upstream_error(carrier, gateway):
    carrier.on("GET", "/tracking/shipments", error=httpx.ConnectError("connection refused"))

    with pytest.raises(UpstreamTrackingError) as exc_info:
        await gateway.track("ABC123")

    assert exc_info.value.provider_status is None
    assert "connection refused" in exc_info.value.provider_body


@pytest.mark.asyncio
async def test_unreadable_body_is_an_upstream_error(carrier, gateway):
    carrier.on("GET", "/tracking/shipments", text="<html>gateway timeout</html>")

    with pytest.raises(UpstreamTrackingError) as exc_info:
        await gateway.track("ABC123")

    assert exc_info.value.message == "Failed to parse get tracking response"


@pytest.mark.asyncio
async def test_track_passes_reference_as_query(carrier, gateway):
    carrier.on("GET", "/tracking/shipments", json_body={
        "short_tracking_reference": "ABC123",
        "status": "in-transit",
        "tracking_events": None,
    })

    tracking = await gateway.track("ABC123")

    assert tracking.status == "in-transit"
    assert tracking.tracking_events == []
    assert carrier.requests[0].url.params["tracking_reference"] == "ABC123"


@pytest.mark.asyncio
async def test_track_accepts_null_fields(carrier, gateway):
    carrier.on("GET", "/tracking/shipments", json_body={
        "short_tracking_reference": "ABC123",
        "custom_tracking_reference": None,
        "status": None,
        "tracking_events": [{"id": None, "status": "collected", "date": "2026-03-03T09:00:00Z"}],
    })

    tracking = await gateway.track("ABC123")

    assert tracking.custom_tracking_reference == ""
    assert tracking.status == ""
    assert tracking.tracking_events[0].id == 0


@pytest.mark.asyncio
async def test_fetch_label_returns_url(carrier, gateway):
    carrier.on("GET", "/shipments/label", json_body={"url": "https://labels.example.com/9001.pdf"})

    url = await gateway.fetch_label(9001)

    assert url == "https://labels.example.com/9001.pdf"
    assert carrier.requests[0].url.params["id"] == "9001"


@pytest.mark.asyncio
async def test_fetch_label_without_url_fails(carrier, gateway):
    carrier.on("GET", "/shipments/label", json_body={})

    with pytest.raises(UpstreamLabelError) as exc_info:
        await gateway.fetch_label(9001)

    assert exc_info.value.message == "Label URL not found in response"


@pytest.mark.asyncio
async def test_cancel_sends_reference(carrier, gateway):
    carrier.on("POST", "/shipments/cancel", json_body={})

    await gateway.cancel("JA-ABC123")

    assert carrier.last_body("POST", "/shipments/cancel") == {"tracking_reference": "JA-ABC123"}


@pytest.mark.asyncio
async def test_cancel_refusal_raises(carrier, gateway):
    carrier.on("POST", "/shipments/cancel", status_code=400, text="already collected")

    with pytest.raises(UpstreamCancelError):
        await gateway.cancel("JA-ABC123")
