"""
Authentication and service dependencies for FastAPI.

Routes are protected with bearer JWTs; the carrier gateway and the shipping
services are built per request on top of the database session.
"""

from typing import AsyncIterator
from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from sqlalchemy.ext.asyncio import AsyncSession
from storefront.app.core.config import settings
from storefront.app.core.jwt import decode_access_token
from storefront.app.db.session import get_db
from storefront.app.repositories.order_store import OrderStore
from storefront.app.services.carrier_gateway import CarrierGateway
from storefront.app.domain.shipping.rate_quoter import RateQuoter
from storefront.app.domain.shipping.shipment_orchestrator import ShipmentOrchestrator
from storefront.app.domain.shipping.status_reconciler import StatusReconciler

# HTTP Bearer security scheme
security = HTTPBearer()


async def get_current_user(
    credentials: HTTPAuthorizationCredentials = Depends(security),
) -> dict:
    """
    FastAPI dependency for JWT authentication.

    Validates the token signature and expiry and requires a user_id claim.

    Returns:
        Decoded token payload containing user information

    Raises:
        HTTPException: 401 if authentication fails
    """
    payload = decode_access_token(credentials.credentials)
    if payload is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Could not validate credentials",
            headers={"WWW-Authenticate": "Bearer"},
        )

    if not payload.get("user_id"):
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid token payload",
            headers={"WWW-Authenticate": "Bearer"},
        )

    return payload


async def get_carrier_gateway() -> AsyncIterator[CarrierGateway]:
    """Carrier client for the duration of one request."""
    async with CarrierGateway.from_settings(settings.carrier) as gateway:
        yield gateway


def get_order_store(db: AsyncSession = Depends(get_db)) -> OrderStore:
    return OrderStore(db)


def get_rate_quoter(
    gateway: CarrierGateway = Depends(get_carrier_gateway),
) -> RateQuoter:
    return RateQuoter(gateway, settings.carrier)


def get_shipment_orchestrator(
    gateway: CarrierGateway = Depends(get_carrier_gateway),
    store: OrderStore = Depends(get_order_store),
) -> ShipmentOrchestrator:
    return ShipmentOrchestrator(gateway, store, settings.carrier)


def get_status_reconciler(
    gateway: CarrierGateway = Depends(get_carrier_gateway),
    store: OrderStore = Depends(get_order_store),
) -> StatusReconciler:
    return StatusReconciler(gateway, store)
