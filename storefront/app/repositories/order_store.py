"""
Order Store.

Narrow persistence interface over the orders table used by the shipping
services. Every save is one commit; a failed commit is rolled back and
re-raised so no partial update survives.
"""

from typing import Optional
from sqlalchemy import select, or_
from sqlalchemy.ext.asyncio import AsyncSession
from storefront.app.models.order import Order


class OrderStore:

    def __init__(self, db: AsyncSession):
        self.db = db

    async def find_order_by_id(self, order_id: int) -> Optional[Order]:
        result = await self.db.execute(select(Order).where(Order.id == order_id))
        return result.scalar_one_or_none()

    async def find_order_by_tracking_or_shipment_id(
        self,
        custom_reference: Optional[str],
        short_reference: Optional[str],
        shipment_id: Optional[int],
    ) -> Optional[Order]:
        """
        Locate an order from carrier identifiers in one disjunctive query.

        The carrier is not consistent about which reference it reports, so
        either reference may match either stored column. Blank identifiers
        never match.
        """
        references = [ref for ref in (custom_reference, short_reference) if ref]
        conditions = []
        if references:
            conditions.append(Order.tracking_number.in_(references))
            conditions.append(Order.short_tracking_reference.in_(references))
        if shipment_id:
            conditions.append(Order.carrier_shipment_id == shipment_id)
        if not conditions:
            return None

        result = await self.db.execute(
            select(Order).where(or_(*conditions)).order_by(Order.id).limit(1)
        )
        return result.scalar_one_or_none()

    async def find_order_by_tracking_reference(self, tracking_reference: str) -> Optional[Order]:
        return await self.find_order_by_tracking_or_shipment_id(tracking_reference, tracking_reference, None)

    async def save_order(self, order: Order) -> Order:
        """Commit all pending changes to the order atomically."""
        self.db.add(order)
        try:
            await self.db.commit()
        except Exception:
            await self.db.rollback()
            raise
        return order

    async def discard_changes(self) -> None:
        """Drop uncommitted in-memory changes."""
        await self.db.rollback()
