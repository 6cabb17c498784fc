"""
Carrier Gateway.

Thin async HTTP client for the parcel carrier's REST API. Each method makes
exactly one call, translates between the wire schemas and the carrier's JSON,
and turns any non-2xx response, transport failure or unreadable body into the
typed upstream error for that operation. No business rules live here.
"""

import logging
from typing import Optional, Type, TypeVar

import httpx
from pydantic import BaseModel, ValidationError

from storefront.app.core.config import CarrierSettings
from storefront.app.core.exceptions import (
    UpstreamCarrierError,
    UpstreamRateError,
    UpstreamShipmentError,
    UpstreamTrackingError,
    UpstreamLabelError,
    UpstreamCancelError,
)
from storefront.app.schemas.carrier import (
    CarrierRatesRequest,
    CarrierRatesResponse,
    CarrierShipmentRequest,
    CarrierShipmentResponse,
    CarrierTrackingResponse,
    CarrierLabelResponse,
)

logger = logging.getLogger("storefront.carrier")

ModelT = TypeVar("ModelT", bound=BaseModel)


class CarrierGateway:
    """
    Async client for the carrier API.

    Usage:
        async with CarrierGateway.from_settings(settings.carrier) as gateway:
            rates = await gateway.quote(request)
    """

    def __init__(self, client: httpx.AsyncClient):
        self._client = client

    @classmethod
    def from_settings(
        cls,
        carrier_settings: CarrierSettings,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> "CarrierGateway":
        client = httpx.AsyncClient(
            base_url=carrier_settings.base_url,
            headers={
                "Authorization": f"Bearer {carrier_settings.api_key}",
                "Accept": "application/json",
            },
            timeout=carrier_settings.timeout_seconds,
            transport=transport,
        )
        return cls(client)

    async def __aenter__(self) -> "CarrierGateway":
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        await self._client.aclose()

    # Operations

    async def quote(self, request: CarrierRatesRequest) -> CarrierRatesResponse:
        """POST /rates"""
        response = await self._send(
            "POST", "/rates", UpstreamRateError, json=_wire(request)
        )
        return _parse(CarrierRatesResponse, response, UpstreamRateError)

    async def book(self, request: CarrierShipmentRequest) -> CarrierShipmentResponse:
        """POST /shipments"""
        response = await self._send(
            "POST", "/shipments", UpstreamShipmentError, json=_wire(request)
        )
        return _parse(CarrierShipmentResponse, response, UpstreamShipmentError)

    async def track(self, tracking_reference: str) -> CarrierTrackingResponse:
        """GET /tracking/shipments?tracking_reference=..."""
        response = await self._send(
            "GET",
            "/tracking/shipments",
            UpstreamTrackingError,
            params={"tracking_reference": tracking_reference},
        )
        return _parse(CarrierTrackingResponse, response, UpstreamTrackingError)

    async def fetch_label(self, shipment_id: int) -> str:
        """GET /shipments/label?id=... and return the signed label URL."""
        response = await self._send(
            "GET", "/shipments/label", UpstreamLabelError, params={"id": shipment_id}
        )
        label = _parse(CarrierLabelResponse, response, UpstreamLabelError)
        if not label.url:
            raise UpstreamLabelError(
                response.text,
                response.status_code,
                message="Label URL not found in response",
            )
        return label.url

    async def cancel(self, tracking_reference: str) -> None:
        """POST /shipments/cancel"""
        await self._send(
            "POST",
            "/shipments/cancel",
            UpstreamCancelError,
            json={"tracking_reference": tracking_reference},
        )

    # Transport

    async def _send(
        self,
        method: str,
        path: str,
        error_cls: Type[UpstreamCarrierError],
        **kwargs,
    ) -> httpx.Response:
        log_data = {"method": method, "path": path}
        if "json" in kwargs:
            logger.info("Carrier request", extra={**log_data, "body": kwargs["json"]})

        try:
            response = await self._client.request(method, path, **kwargs)
        except httpx.HTTPError as exc:
            logger.error(
                "Carrier request failed",
                extra={**log_data, "error": repr(exc)},
            )
            raise error_cls(str(exc) or type(exc).__name__) from exc

        log_data.update(status_code=response.status_code, body=response.text)
        if not response.is_success:
            logger.error("Carrier request rejected", extra=log_data)
            raise error_cls(response.text, response.status_code)

        logger.info("Carrier response", extra=log_data)
        return response


def _wire(request: BaseModel) -> dict:
    return request.model_dump(mode="json", exclude_none=True)


def _parse(model: Type[ModelT], response: httpx.Response, error_cls: Type[UpstreamCarrierError]) -> ModelT:
    try:
        return model.model_validate_json(response.content)
    except ValidationError as exc:
        logger.error(
            "Unreadable carrier response",
            extra={"status_code": response.status_code, "body": response.text, "error": str(exc)},
        )
        raise error_cls(
            response.text,
            response.status_code,
            message=f"Failed to parse {error_cls.operation} response",
        ) from exc
