"""
API v1 Router.

Aggregates all v1 API endpoints.
"""

from fastapi import APIRouter
from storefront.app.api.v1.endpoints import shipping

router = APIRouter()

router.include_router(shipping.router)
